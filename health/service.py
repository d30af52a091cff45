"""Weekly health report: store reachability, content readiness and prize backlog.

Each check returns `{name, status, message[, details]}` and never includes
participant data, so the report can be e-mailed as-is.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from flask import current_app

from notifications import EmailDeliveryError, send_health_report
from store import QuizStore, StoreError

MIN_ACTIVE_QUESTIONS = 10
UNCLAIMED_WARNING_THRESHOLD = 5
ACTIVITY_WINDOW_DAYS = 7
STATUS_RANK = {"ok": 0, "warning": 1, "error": 2}


def _result(name: str, status: str, message: str, details: Optional[dict] = None) -> dict:
    result = {"name": name, "status": status, "message": message}
    if details is not None:
        result["details"] = details
    return result


def check_database(store: QuizStore) -> dict:
    store.count_active_questions()
    return _result("Database Connection", "ok", "Connexion à la base de données OK")


def check_questions(store: QuizStore) -> dict:
    count = store.count_active_questions()
    if count < MIN_ACTIVE_QUESTIONS:
        return _result(
            "Quiz Questions",
            "warning",
            f"Seulement {count} questions actives (minimum recommandé: {MIN_ACTIVE_QUESTIONS})",
        )
    return _result("Quiz Questions", "ok", f"{count} questions actives disponibles")


def check_weekly_stock(store: QuizStore) -> dict:
    stock = store.get_weekly_stock(store.current_week_start())
    if not stock:
        return _result("Weekly Stock", "warning", "Stock hebdomadaire non initialisé pour cette semaine")
    details = {
        "formule": stock.get("formule_complete_remaining") or 0,
        "galette": stock.get("galette_remaining") or 0,
        "crepe": stock.get("crepe_remaining") or 0,
    }
    return _result("Weekly Stock", "ok", f"Stock OK - {sum(details.values())} lots restants", details)


def check_secret_menu(store: QuizStore) -> dict:
    menu = store.get_current_secret_menu(store.current_week_start())
    if not menu:
        return _result("Secret Menu", "warning", "Aucun menu secret configuré pour cette semaine")
    if not menu.get("is_active"):
        return _result("Secret Menu", "warning", "Menu secret inactif pour cette semaine")
    return _result("Secret Menu", "ok", f"Menu \"{menu.get('menu_name')}\" actif")


def check_splash(store: QuizStore) -> dict:
    splash = store.get_setting("splash")
    if not splash or not splash.get("is_active"):
        return _result("Splash Screen", "ok", "Pas de splash screen actif (normal si désactivé)")
    value = splash.get("setting_value") or {}
    title = value.get("event_title") if isinstance(value, dict) else None
    return _result("Splash Screen", "ok", f"Splash actif: \"{title or 'sans titre'}\"")


def check_activity(store: QuizStore) -> dict:
    since = (datetime.now(timezone.utc) - timedelta(days=ACTIVITY_WINDOW_DAYS)).isoformat()
    total = store.count_participations(since=since)
    winners = store.count_participations(since=since, winners_only=True)
    return _result(
        "Quiz Activity",
        "ok",
        f"{total} participations ces {ACTIVITY_WINDOW_DAYS} derniers jours ({winners} gagnants)",
    )


def check_unclaimed_prizes(store: QuizStore) -> dict:
    unclaimed = store.count_participations(winners_only=True, claimed=False)
    if unclaimed > UNCLAIMED_WARNING_THRESHOLD:
        return _result("Unclaimed Prizes", "warning", f"{unclaimed} lots non réclamés (attention aux expirés)")
    return _result("Unclaimed Prizes", "ok", f"{unclaimed} lot(s) en attente de récupération")


CHECKS: List[tuple] = [
    (check_database, "Database Connection", "Erreur de connexion à la base de données"),
    (check_questions, "Quiz Questions", "Erreur lors de la vérification des questions"),
    (check_weekly_stock, "Weekly Stock", "Erreur lors de la vérification du stock"),
    (check_secret_menu, "Secret Menu", "Erreur lors de la vérification du menu secret"),
    (check_splash, "Splash Screen", "Erreur lors de la vérification du splash"),
    (check_activity, "Quiz Activity", "Erreur lors de la vérification des participations"),
    (check_unclaimed_prizes, "Unclaimed Prizes", "Erreur lors de la vérification des lots"),
]


def run_health_check(store: QuizStore, checks: Optional[List[tuple]] = None) -> dict:
    started = time.monotonic()
    results: List[dict] = []
    for check, name, failure_message in checks or CHECKS:
        try:
            results.append(check(store))
        except StoreError as exc:
            current_app.logger.warning("Health check %r failed: %s", name, exc)
            results.append(_result(name, "error", failure_message))

    overall = max((r["status"] for r in results), key=STATUS_RANK.__getitem__, default="ok")
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "duration_ms": int((time.monotonic() - started) * 1000),
        "overall_status": overall,
        "checks": results,
        "summary": {
            "total": len(results),
            "ok": sum(1 for r in results if r["status"] == "ok"),
            "warnings": sum(1 for r in results if r["status"] == "warning"),
            "errors": sum(1 for r in results if r["status"] == "error"),
        },
    }


def should_email_report(report: dict, today: Optional[datetime] = None) -> bool:
    today = today or datetime.now(timezone.utc)
    # Sunday always gets the weekly summary
    return report.get("overall_status") != "ok" or today.weekday() == 6


def email_report_if_needed(report: dict, config: Dict[str, object], today: Optional[datetime] = None) -> bool:
    """Send the report when warranted; delivery failures are only logged."""
    api_key = config.get("RESEND_API_KEY")
    recipient = config.get("HEALTH_REPORT_RECIPIENT")
    if not api_key or not recipient or not should_email_report(report, today):
        return False
    try:
        send_health_report(str(api_key), report, str(recipient))
    except EmailDeliveryError as exc:
        current_app.logger.error("Failed to send health check email: %s", exc)
        return False
    return True
