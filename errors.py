"""Error envelope shared by every feature blueprint."""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import jsonify, request

SERVER_ERROR_MESSAGE = "Une erreur est survenue"


class ServiceError(Exception):
    """Expected failure that maps to an `{error, message}` JSON response."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 400,
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.extra = extra or {}

    @property
    def payload(self) -> Dict[str, Any]:
        payload = {"error": self.code, "message": self.message}
        payload.update(self.extra)
        return payload


def error_response(code: str, message: str, status_code: int = 400):
    return jsonify({"error": code, "message": message}), status_code


def server_error_response():
    return error_response("server_error", SERVER_ERROR_MESSAGE, 500)


def read_json_body() -> Dict[str, Any]:
    """Parse the request body as a JSON object or raise `invalid_json`."""
    payload: Optional[Any] = request.get_json(force=True, silent=True)
    if not isinstance(payload, dict):
        raise ServiceError("invalid_json", "Requête invalide")
    return payload
