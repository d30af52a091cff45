"""Secret menu unlock and public carte."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from dateutil.parser import isoparse

from errors import ServiceError
from models import SecretMenu
from store import QuizStore
from validation import is_valid_email, is_valid_name, is_valid_phone, normalize_phone

ACCESS_DURATION_MINUTES = 30
ANONYMOUS_VISITOR = {
    "first_name": "Visiteur",
    "email": "anonymous@menu-secret.local",
    "phone": "0000000000",
}


class MenuServiceError(ServiceError):
    pass


def _now() -> datetime:
    return datetime.now(timezone.utc)


def public_menu(menu: Dict[str, Any]) -> Dict[str, Any]:
    """Strip the secret code and bookkeeping columns from a menu row."""
    return {field: menu.get(field) for field in SecretMenu.PUBLIC_FIELDS}


def handle_secret_menu_action(store: QuizStore, body: Dict[str, Any]) -> dict:
    action = body.get("action")
    if action == "unlock":
        return unlock(store, body.get("code"), identity=body)
    if action == "access":
        return check_access(store, body.get("accessToken"))
    raise MenuServiceError("invalid_action", "Action non reconnue")


def _identity(payload: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Quiz players unlock under their own name; everyone else is anonymous."""
    payload = payload or {}
    first_name = payload.get("firstName")
    email = payload.get("email")
    phone = payload.get("phone")
    if is_valid_name(first_name) and is_valid_email(email) and is_valid_phone(phone):
        return {
            "first_name": first_name.strip()[:50],
            "email": email.strip().lower()[:100],
            "phone": normalize_phone(phone)[:15],
        }
    return dict(ANONYMOUS_VISITOR)


def unlock(store: QuizStore, raw_code: Any, identity: Optional[Dict[str, Any]] = None) -> dict:
    if not raw_code or not isinstance(raw_code, str) or not raw_code.strip():
        raise MenuServiceError("missing_code", "Code requis")
    code = raw_code.strip().upper()[:30]
    if not store.validate_secret_code(code):
        raise MenuServiceError("invalid_code", "Code incorrect")

    now = _now()
    token = str(uuid.uuid4())
    payload = {
        "access_token": token,
        "secret_code": code,
        "week_start": store.current_week_start(),
        "created_at": now.isoformat(),
    }
    payload.update(_identity(identity))
    store.insert_secret_access(payload)
    return {
        "success": True,
        "accessToken": token,
        "expiresAt": (now + timedelta(minutes=ACCESS_DURATION_MINUTES)).isoformat(),
    }


def check_access(store: QuizStore, access_token: Any) -> dict:
    if not access_token or not isinstance(access_token, str):
        return {"hasAccess": False}

    grant = store.get_secret_access(access_token)
    if not grant:
        return {"hasAccess": False}

    created_at = grant.get("created_at")
    try:
        granted_at = isoparse(created_at) if isinstance(created_at, str) else created_at
    except ValueError:
        granted_at = None
    if granted_at is None:
        return {"hasAccess": False}
    if granted_at.tzinfo is None:
        granted_at = granted_at.replace(tzinfo=timezone.utc)
    if _now() - granted_at > timedelta(minutes=ACCESS_DURATION_MINUTES):
        return {"hasAccess": False}

    menu = store.get_current_secret_menu(store.current_week_start())
    if not menu:
        return {"hasAccess": True, "menu": None}
    return {"hasAccess": True, "menu": public_menu(menu)}


def get_public_carte(store: QuizStore) -> dict:
    carte = store.get_active_carte()
    if not carte:
        raise MenuServiceError("not_found", "Carte introuvable", 404)
    return {
        "galette_items": carte.get("galette_items") or [],
        "crepe_items": carte.get("crepe_items") or [],
    }
