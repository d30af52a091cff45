"""Protected weekly health-check endpoint, hit by cron."""

from __future__ import annotations

import hmac

from flask import Blueprint, current_app, jsonify, request

from errors import error_response
from store import get_store

from .service import email_report_if_needed, run_health_check

health_bp = Blueprint("health", __name__, url_prefix="/api")


def is_authorized(headers, body: dict, expected: str) -> bool:
    """Accept `Authorization: Bearer <secret>` or a `secret`/`adminPassword` body field."""
    if not expected:
        return False
    auth_header = headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        provided = auth_header[len("Bearer "):].strip()
    else:
        provided = body.get("secret") or body.get("adminPassword") or ""
    if not isinstance(provided, str):
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


@health_bp.post("/weekly-health-check")
def weekly_health_check():
    body = request.get_json(force=True, silent=True)
    if not isinstance(body, dict):
        body = {}
    expected = current_app.config.get("HEALTHCHECK_SECRET") or current_app.config.get("ADMIN_PASSWORD") or ""
    if not is_authorized(request.headers, body, expected):
        return error_response("unauthorized", "Accès non autorisé", 401)

    report = run_health_check(get_store())
    current_app.logger.info(
        "Weekly health check: %s (%s)", report["overall_status"], report["summary"]
    )
    report["email_sent"] = email_report_if_needed(report, current_app.config)
    return jsonify(report)
