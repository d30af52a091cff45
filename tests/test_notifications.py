"""Tests for Resend e-mail delivery."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from notifications import (
    RESEND_API_URL,
    RESEND_TIMEOUT_SECONDS,
    EmailDeliveryError,
    send_email,
    send_health_report,
    send_prize_email,
)


def _response(status_code=200, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload if payload is not None else {"id": "email-123"}
    resp.text = "error body"
    return resp


def test_send_email_posts_to_resend():
    with patch("notifications.requests.post", return_value=_response()) as post:
        assert send_email("re_key", to=["a@b.fr"], subject="Hi", html="<p>Hi</p>") == "email-123"

    args, kwargs = post.call_args
    assert args[0] == RESEND_API_URL
    assert kwargs["headers"]["Authorization"] == "Bearer re_key"
    assert kwargs["json"]["to"] == ["a@b.fr"]
    assert kwargs["timeout"] == RESEND_TIMEOUT_SECONDS


def test_send_email_rejected():
    with patch("notifications.requests.post", return_value=_response(422)):
        with pytest.raises(EmailDeliveryError):
            send_email("re_key", to=["a@b.fr"], subject="Hi", html="")


def test_send_email_network_error():
    with patch("notifications.requests.post", side_effect=requests.ConnectionError("down")):
        with pytest.raises(EmailDeliveryError):
            send_email("re_key", to=["a@b.fr"], subject="Hi", html="")


def test_prize_email_renders_code(app):
    app.config["EMAIL_FROM"] = "Crêperie <promo@creperie.example>"

    with patch("notifications.requests.post", return_value=_response()) as post:
        send_prize_email(
            "re_key",
            email="marie@example.fr",
            first_name="Marie",
            prize="Une Galette",
            prize_code="ABCD2345",
            verify_url="https://creperie.example/verify?code=ABCD2345",
            secret_code="CREPE42",
        )

    body = post.call_args.kwargs["json"]
    assert body["from"] == "Crêperie <promo@creperie.example>"
    assert "Marie" in body["subject"]
    assert "ABCD2345" in body["html"]
    assert "CREPE42" in body["html"]
    assert "https://creperie.example/verify?code=ABCD2345" in body["html"]


def test_health_report_email(app):
    report = {
        "timestamp": "2026-10-19T06:00:00+00:00",
        "duration_ms": 42,
        "overall_status": "warning",
        "checks": [{"name": "Weekly Stock", "status": "warning", "message": "Stock hebdomadaire non initialisé"}],
        "summary": {"total": 1, "ok": 0, "warnings": 1, "errors": 0},
    }

    with patch("notifications.requests.post", return_value=_response()) as post:
        send_health_report("re_key", report, "admin@creperie.example")

    body = post.call_args.kwargs["json"]
    assert body["to"] == ["admin@creperie.example"]
    assert "Avertissements" in body["subject"]
    assert "Weekly Stock" in body["html"]
