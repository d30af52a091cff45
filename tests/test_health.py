"""
Tests for the weekly health check.

Tests cover:
- Authorization by bearer token or body secret
- Check statuses and the overall roll-up
- When the report is e-mailed
"""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from extensions import db
from health.service import email_report_if_needed, run_health_check, should_email_report
from models import AdminSetting, QuizQuestion, SecretMenu, WeeklyStock
from notifications import EmailDeliveryError
from store import StoreError
from conftest import ADMIN_PASSWORD

CHECK_NAMES = [
    "Database Connection",
    "Quiz Questions",
    "Weekly Stock",
    "Secret Menu",
    "Splash Screen",
    "Quiz Activity",
    "Unclaimed Prizes",
]


def _checks(report):
    return {check["name"]: check for check in report["checks"]}


# ============================================================================
# ENDPOINT
# ============================================================================

def test_requires_secret(client):
    response = client.post("/api/weekly-health-check", json={})

    assert response.status_code == 401
    assert response.get_json() == {"error": "unauthorized", "message": "Accès non autorisé"}
    assert response.headers["Cache-Control"] == "no-store"


def test_bearer_token_falls_back_to_admin_password(client):
    response = client.post(
        "/api/weekly-health-check",
        headers={"Authorization": f"Bearer {ADMIN_PASSWORD}"},
    )

    assert response.status_code == 200
    payload = response.get_json()
    assert [check["name"] for check in payload["checks"]] == CHECK_NAMES
    assert payload["overall_status"] == "ok"
    assert payload["summary"] == {"total": 7, "ok": 7, "warnings": 0, "errors": 0}
    assert payload["email_sent"] is False


def test_dedicated_secret_in_body(client, app):
    app.config["HEALTHCHECK_SECRET"] = "cron-secret"

    assert client.post("/api/weekly-health-check", json={"secret": "cron-secret"}).status_code == 200
    assert client.post("/api/weekly-health-check", json={"adminPassword": ADMIN_PASSWORD}).status_code == 401


# ============================================================================
# CHECKS
# ============================================================================

def test_healthy_report_details(app, store):
    report = run_health_check(store)
    checks = _checks(report)

    assert checks["Quiz Questions"]["message"] == "15 questions actives disponibles"
    assert checks["Weekly Stock"]["details"] == {"formule": 1, "galette": 3, "crepe": 5}
    assert checks["Weekly Stock"]["message"] == "Stock OK - 9 lots restants"
    assert checks["Secret Menu"]["message"] == 'Menu "Menu Secret" actif'
    assert checks["Splash Screen"]["message"] == "Pas de splash screen actif (normal si désactivé)"
    assert checks["Quiz Activity"]["message"] == "0 participations ces 7 derniers jours (0 gagnants)"
    assert checks["Unclaimed Prizes"]["message"] == "0 lot(s) en attente de récupération"
    assert report["duration_ms"] >= 0


def test_warnings_raise_overall_status(app, store):
    QuizQuestion.query.filter(QuizQuestion.category == "local").update({"is_active": False})
    WeeklyStock.query.delete()
    SecretMenu.query.update({"is_active": False})
    db.session.commit()

    report = run_health_check(store)
    checks = _checks(report)

    assert report["overall_status"] == "warning"
    assert checks["Quiz Questions"]["status"] == "warning"
    assert checks["Weekly Stock"]["status"] == "warning"
    assert checks["Secret Menu"]["status"] == "warning"
    assert report["summary"]["warnings"] == 3


def test_active_splash(app, store):
    db.session.add(AdminSetting(setting_key="splash", setting_value={"event_title": "Chandeleur"}, is_active=True))
    db.session.commit()

    assert _checks(run_health_check(store))["Splash Screen"]["message"] == 'Splash actif: "Chandeleur"'


def test_activity_and_unclaimed(app, store, make_player):
    for index in range(3):
        make_player(fingerprint=f"device-{index}", phone=f"061111111{index}").play(correct=9)
    make_player(fingerprint="device-loser", phone="0622222222").play(correct=1)

    checks = _checks(run_health_check(store))
    assert checks["Quiz Activity"]["message"] == "4 participations ces 7 derniers jours (3 gagnants)"
    assert checks["Unclaimed Prizes"]["message"] == "3 lot(s) en attente de récupération"


def test_store_failure_is_an_error(app, store):
    with patch.object(store, "count_active_questions", side_effect=StoreError("count questions", "down")):
        report = run_health_check(store)

    checks = _checks(report)
    assert report["overall_status"] == "error"
    assert checks["Database Connection"]["status"] == "error"
    assert checks["Quiz Questions"]["status"] == "error"
    assert checks["Weekly Stock"]["status"] == "ok"


# ============================================================================
# E-MAIL
# ============================================================================

SUNDAY = datetime(2026, 10, 18, 20, 0, tzinfo=timezone.utc)
MONDAY = datetime(2026, 10, 19, 20, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "status, today, expected",
    [
        ("ok", MONDAY, False),
        ("ok", SUNDAY, True),
        ("warning", MONDAY, True),
        ("error", MONDAY, True),
    ],
)
def test_should_email_report(status, today, expected):
    assert should_email_report({"overall_status": status}, today) is expected


def test_email_needs_key_and_recipient(app):
    report = {"overall_status": "error"}

    with patch("health.service.send_health_report") as send:
        assert email_report_if_needed(report, {"RESEND_API_KEY": None, "HEALTH_REPORT_RECIPIENT": "a@b.fr"}) is False
        assert email_report_if_needed(report, {"RESEND_API_KEY": "re_x", "HEALTH_REPORT_RECIPIENT": None}) is False
        assert email_report_if_needed(report, {"RESEND_API_KEY": "re_x", "HEALTH_REPORT_RECIPIENT": "a@b.fr"}) is True

    send.assert_called_once_with("re_x", report, "a@b.fr")


def test_email_failure_is_only_logged(app):
    config = {"RESEND_API_KEY": "re_x", "HEALTH_REPORT_RECIPIENT": "a@b.fr"}

    with patch("health.service.send_health_report", side_effect=EmailDeliveryError("down")):
        assert email_report_if_needed({"overall_status": "error"}, config) is False
