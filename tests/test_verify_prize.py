"""
Tests for public prize verification and prize e-mails.

Tests cover:
- Verify round trip after a win and after an admin claim
- Code format validation
- Re-sending the prize e-mail to the registered address
"""

from unittest.mock import patch

from notifications import EmailDeliveryError


def _win(player):
    return player.play(correct=10).get_json()


def test_verify_round_trip(player, client, admin):
    won = _win(player)

    payload = client.post("/api/verify-prize", json={"code": won["prizeCode"].lower()}).get_json()
    assert payload["valid"] is True
    assert payload["firstName"] == "Marie"
    assert payload["prize"] == "Formule Complète"
    assert payload["claimed"] is False
    assert isinstance(payload["weekNumber"], int)
    assert "status" not in payload

    assert admin("claim", code=won["prizeCode"]).get_json()["success"] is True

    after = client.post("/api/verify-prize", json={"code": won["prizeCode"]}).get_json()
    assert after["claimed"] is True
    assert after["claimedAt"]


def test_verify_unknown_code(client):
    payload = client.post("/api/verify-prize", json={"code": "ZZZZZZZZ"}).get_json()

    assert payload == {"valid": False, "message": "Code non trouvé"}


def test_verify_rejects_bad_format(client):
    missing = client.post("/api/verify-prize", json={})
    malformed = client.post("/api/verify-prize", json={"code": "abc"})

    assert missing.status_code == 400
    assert missing.get_json()["error"] == "missing_code"
    assert malformed.get_json()["error"] == "invalid_code"


# ============================================================================
# PRIZE E-MAIL
# ============================================================================

def test_prize_email_without_api_key(player, client):
    won = _win(player)

    response = client.post("/api/send-prize-email", json={"prizeCode": won["prizeCode"], "email": player.email})
    assert response.status_code == 503
    assert response.get_json()["error"] == "email_unavailable"


def test_prize_email_checks_owner(player, client, app):
    app.config["RESEND_API_KEY"] = "re_test"
    won = _win(player)

    response = client.post("/api/send-prize-email", json={"prizeCode": won["prizeCode"], "email": "other@example.fr"})
    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"


def test_prize_email_sends_verify_link(player, client, app):
    app.config["RESEND_API_KEY"] = "re_test"
    won = _win(player)

    with patch("quiz.service.send_prize_email", return_value="email-id") as send:
        response = client.post(
            "/api/send-prize-email",
            json={"prizeCode": won["prizeCode"], "email": player.email.upper()},
        )

    assert response.get_json() == {"success": True}
    kwargs = send.call_args.kwargs
    assert kwargs["email"] == player.email
    assert kwargs["prize_code"] == won["prizeCode"]
    assert kwargs["verify_url"] == f"https://creperie.example/verify?code={won['prizeCode']}"
    assert kwargs["secret_code"] == won["secretCode"]


def test_prize_email_delivery_failure(player, client, app):
    app.config["RESEND_API_KEY"] = "re_test"
    won = _win(player)

    with patch("quiz.service.send_prize_email", side_effect=EmailDeliveryError("boom")):
        response = client.post("/api/send-prize-email", json={"prizeCode": won["prizeCode"], "email": player.email})

    assert response.status_code == 502
    assert response.get_json()["error"] == "email_failed"
