#!/usr/bin/env python
"""
Run the weekly health check from cron without going through HTTP.

Usage:
    python scripts/weekly_health_check.py [--no-email]

Reads the same environment variables as app.py (USE_SUPABASE, SUPABASE_URL,
SUPABASE_KEY or DATABASE_URL, RESEND_API_KEY, HEALTH_REPORT_RECIPIENT).
Exits 1 when any check reports an error.
"""

from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app  # noqa: E402
from health.service import email_report_if_needed, run_health_check  # noqa: E402
from store import get_store  # noqa: E402

STATUS_ICONS = {"ok": "✅", "warning": "⚠️", "error": "❌"}


def run(send_email: bool = True) -> int:
    app = create_app()
    with app.app_context():
        report = run_health_check(get_store())

        print(f"🩺 Health check finished in {report['duration_ms']} ms")
        for check in report["checks"]:
            print(f"  {STATUS_ICONS.get(check['status'], '•')} {check['name']}: {check['message']}")

        summary = report["summary"]
        print(
            f"\n{STATUS_ICONS[report['overall_status']]} Overall: {report['overall_status']}"
            f" ({summary['ok']} ok, {summary['warnings']} warnings, {summary['errors']} errors)"
        )

        if send_email:
            if email_report_if_needed(report, app.config):
                print("📧 Report emailed.")
            else:
                print("    No email sent.")

    return 1 if report["overall_status"] == "error" else 0


if __name__ == "__main__":
    try:
        sys.exit(run(send_email="--no-email" not in sys.argv[1:]))
    except KeyboardInterrupt:
        sys.exit("\n⚠️ Health check cancelled by user.")
