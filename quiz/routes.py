"""Public quiz endpoints: session round trips, submission and prize verification."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from errors import ServiceError, read_json_body
from store import get_store

from . import service

quiz_bp = Blueprint("quiz", __name__, url_prefix="/api")


@quiz_bp.post("/quiz-session")
def quiz_session():
    try:
        body = read_json_body()
        result = service.handle_session_action(
            get_store(),
            body,
            ttl_minutes=current_app.config.get("SESSION_TTL_MINUTES", service.SESSION_TTL_MINUTES),
            extend_minutes=current_app.config.get("ANSWER_EXTEND_MINUTES", service.ANSWER_EXTEND_MINUTES),
        )
    except ServiceError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(result)


@quiz_bp.post("/quiz-submit")
def quiz_submit():
    try:
        body = read_json_body()
        result = service.submit_quiz(get_store(), body)
    except ServiceError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(result)


@quiz_bp.post("/verify-prize")
def verify_prize():
    try:
        body = read_json_body()
        result = service.verify_prize_public(get_store(), body.get("code"))
    except ServiceError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(result)


@quiz_bp.post("/send-prize-email")
def send_prize_email():
    try:
        body = read_json_body()
        result = service.email_prize(
            get_store(),
            body,
            api_key=current_app.config.get("RESEND_API_KEY"),
            site_url=current_app.config.get("PUBLIC_SITE_URL", ""),
        )
    except ServiceError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(result)
