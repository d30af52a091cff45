from __future__ import annotations

from flask import Blueprint, jsonify, request

from errors import ServiceError, read_json_body
from store import get_store

from . import service

community_bp = Blueprint("community", __name__, url_prefix="/api")


@community_bp.get("/social/latest")
def latest_social_post():
    return jsonify(service.latest_post(get_store(), request.args.get("deviceId")))


@community_bp.post("/social/interactions")
def social_interaction():
    try:
        body = read_json_body()
        result = service.add_interaction(get_store(), body)
    except ServiceError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(result)


@community_bp.post("/contact")
def contact():
    try:
        body = read_json_body()
        result = service.submit_contact_message(get_store(), body)
    except ServiceError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(result), 201
