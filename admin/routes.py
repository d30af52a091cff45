"""Staff scanner / back-office endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from errors import ServiceError, read_json_body
from store import get_store

from . import service

admin_bp = Blueprint("admin", __name__, url_prefix="/api")


@admin_bp.post("/admin-scan")
def admin_scan():
    try:
        body = read_json_body()
        result = service.handle_admin_action(
            get_store(),
            body,
            admin_password=current_app.config.get("ADMIN_PASSWORD"),
            token_secret=current_app.config.get("SECURITY_TOKEN_SECRET") or "",
        )
    except ServiceError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(result)
