from __future__ import annotations

from flask import Blueprint, jsonify

from errors import ServiceError, read_json_body
from store import get_store

from . import service

menu_bp = Blueprint("menu", __name__, url_prefix="/api")


@menu_bp.post("/secret-menu")
def secret_menu():
    try:
        body = read_json_body()
        result = service.handle_secret_menu_action(get_store(), body)
    except ServiceError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(result)


@menu_bp.get("/carte")
def public_carte():
    try:
        result = service.get_public_carte(get_store())
    except ServiceError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(result)
