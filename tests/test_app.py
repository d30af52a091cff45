"""Tests for app-wide behaviour: CORS, preflight and the error envelope."""

from unittest.mock import patch

from store import StoreError


def test_preflight(client):
    response = client.open("/api/quiz-submit", method="OPTIONS")

    assert response.status_code == 204
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert "POST" in response.headers["Access-Control-Allow-Methods"]


def test_cors_on_success(client):
    response = client.get("/api/carte")

    assert response.status_code == 200
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert "Cache-Control" not in response.headers


def test_unknown_route_uses_json_envelope(client):
    response = client.get("/api/nope")

    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"
    assert response.headers["Cache-Control"] == "no-store"


def test_wrong_method(client):
    response = client.get("/api/quiz-submit")

    assert response.status_code == 405
    assert response.get_json()["error"] == "method_not_allowed"


def test_store_error_is_opaque(client, store):
    with patch.object(store, "get_active_carte", side_effect=StoreError("fetch carte", "relation does not exist")):
        response = client.get("/api/carte")

    assert response.status_code == 500
    assert response.get_json() == {"error": "server_error", "message": "Une erreur est survenue"}


def test_unexpected_error_is_opaque(client, store):
    with patch.object(store, "list_social_posts", side_effect=KeyError("boom")):
        response = client.get("/api/social/latest")

    assert response.status_code == 500
    assert response.get_json()["error"] == "server_error"
