"""Back-office actions behind the shared admin password.

Every action is a plain function registered under its wire name with
`@admin_action`; `handle_admin_action` checks the password and dispatches.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from dateutil.parser import isoparse
from flask import current_app

from errors import ServiceError
from quiz import service as quiz_service
from store import QuizStore
from validation import (
    is_valid_name,
    is_valid_network,
    is_valid_url,
    is_valid_uuid,
    sanitize_for_log,
)

MAX_MENU_ITEMS = 3
PARTICIPATION_LIST_LIMIT = 100
MESSAGE_LIST_LIMIT = 50
SETTING_KEY_MAX_LENGTH = 50
SECURITY_TOKEN_WINDOW_SECONDS = 10


class AdminServiceError(ServiceError):
    pass


@dataclass
class AdminRequest:
    store: QuizStore
    body: Dict[str, Any]
    token_secret: str = ""
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


AdminHandler = Callable[[AdminRequest], dict]
ADMIN_ACTIONS: Dict[str, AdminHandler] = {}


def admin_action(name: str):
    def decorator(func: AdminHandler) -> AdminHandler:
        ADMIN_ACTIONS[name] = func
        return func

    return decorator


def handle_admin_action(
    store: QuizStore,
    body: Dict[str, Any],
    *,
    admin_password: Optional[str],
    token_secret: str = "",
) -> dict:
    if not admin_password:
        current_app.logger.error("ADMIN_PASSWORD is not configured; admin actions are disabled.")
        raise AdminServiceError("server_error", "Une erreur est survenue", 500)

    action = body.get("action")
    current_app.logger.info(
        "Admin request: %s",
        sanitize_for_log(
            {
                "action": action,
                "menuId": body.get("menuId"),
                "participationId": body.get("participationId"),
            }
        ),
    )

    supplied = body.get("adminPassword")
    if not supplied or supplied != admin_password:
        raise AdminServiceError("unauthorized", "Mot de passe incorrect", 401)

    handler = ADMIN_ACTIONS.get(action) if isinstance(action, str) else None
    if handler is None:
        raise AdminServiceError("invalid_action", "Action non reconnue")
    return handler(AdminRequest(store=store, body=body, token_secret=token_secret))


# ---- security token ----------------------------------------------------------
def security_token(now_ms: Optional[int] = None, secret: str = "") -> str:
    """4-digit code rotating every 10 seconds, shown on the staff scanner.

    A 32-bit string hash over the time bucket (optionally salted with
    SECURITY_TOKEN_SECRET). It only deters replayed screenshots.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    bucket = now_ms // (SECURITY_TOKEN_WINDOW_SECONDS * 1000)
    value = f"{bucket}|{secret}" if secret else str(bucket)

    digest = 0
    for char in value:
        digest = ((digest << 5) - digest + ord(char)) & 0xFFFFFFFF
    if digest >= 0x80000000:
        digest -= 0x100000000
    return str(abs(digest)).zfill(4)[-4:]


def token_valid_for(now_ms: Optional[int] = None) -> int:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return SECURITY_TOKEN_WINDOW_SECONDS - (now_ms // 1000) % SECURITY_TOKEN_WINDOW_SECONDS


# ---- prize codes -------------------------------------------------------------
@admin_action("verify")
def verify(request: AdminRequest) -> dict:
    _, participation = quiz_service.lookup_prize(request.store, request.body.get("code"))
    if not participation:
        return {"valid": False, "message": "Code non trouvé"}

    if participation.get("status") == "invalidated":
        return {
            "valid": False,
            "message": "Ce coupon a été invalidé pour fraude",
            "invalidated": True,
        }

    return {
        "valid": True,
        "id": participation.get("id"),
        "firstName": participation.get("first_name"),
        "prize": participation.get("prize_won"),
        "weekNumber": quiz_service.week_number(participation.get("week_start")),
        "weekStart": participation.get("week_start"),
        "claimed": bool(participation.get("prize_claimed")),
        "claimedAt": participation.get("claimed_at"),
        "createdAt": participation.get("created_at"),
        "expectedToken": security_token(int(request.now.timestamp() * 1000), request.token_secret),
        "status": participation.get("status"),
    }


@admin_action("claim")
def claim(request: AdminRequest) -> dict:
    code, existing = quiz_service.lookup_prize(request.store, request.body.get("code"))
    if not existing:
        return {"success": False, "message": "Code non trouvé"}
    if existing.get("status") == "invalidated":
        return {"success": False, "message": "Ce coupon a été invalidé"}
    if existing.get("prize_claimed"):
        return {"success": False, "message": "Ce lot a déjà été réclamé"}

    claimed = request.store.claim_participation(code, request.now.isoformat())
    if not claimed:
        # lost the race against another scanner
        return {"success": False, "message": "Ce lot a déjà été réclamé"}
    return {
        "success": True,
        "message": "Lot marqué comme utilisé",
        "firstName": claimed.get("first_name"),
        "prize": claimed.get("prize_won"),
    }


@admin_action("invalidate")
def invalidate(request: AdminRequest) -> dict:
    participation_id = request.body.get("participationId")
    if not participation_id or not isinstance(participation_id, str):
        raise AdminServiceError("missing_id", "ID participation requis")

    row = request.store.invalidate_participation(participation_id, request.now.isoformat())
    if not row:
        return {"success": False, "message": "Participation introuvable"}
    return {
        "success": True,
        "message": "Participation invalidée",
        "firstName": row.get("first_name"),
    }


@admin_action("get_security_token")
def get_security_token(request: AdminRequest) -> dict:
    now_ms = int(request.now.timestamp() * 1000)
    return {
        "token": security_token(now_ms, request.token_secret),
        "validFor": token_valid_for(now_ms),
    }


# ---- participations and stats ------------------------------------------------
@admin_action("list_participations")
def list_participations(request: AdminRequest) -> dict:
    return {"participations": request.store.list_participations(PARTICIPATION_LIST_LIMIT)}


@admin_action("stats")
def stats(request: AdminRequest) -> dict:
    store = request.store
    week_start = store.current_week_start()
    return {
        "weekStart": week_start,
        "stock": store.get_weekly_stock(week_start),
        "totalParticipations": store.count_participations(week_start=week_start),
        "totalWinners": store.count_participations(week_start=week_start, winners_only=True),
        "totalClaimed": store.count_participations(week_start=week_start, claimed=True),
    }


# ---- menus -------------------------------------------------------------------
def _clip(value: Any, limit: int) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip()[:limit]


def _clean_menu_items(raw_items: Any) -> List[dict]:
    if raw_items is None:
        return []
    if not isinstance(raw_items, list) or len(raw_items) > MAX_MENU_ITEMS:
        raise AdminServiceError(
            "invalid_menu_items",
            f"Maximum {MAX_MENU_ITEMS} éléments par catégorie",
        )

    items = []
    for raw in raw_items:
        if not isinstance(raw, dict) or not isinstance(raw.get("name"), str) or not raw["name"].strip():
            raise AdminServiceError("invalid_menu_items", "Chaque élément doit avoir un nom")
        price = raw.get("price")
        image_url = raw.get("image_url")
        items.append(
            {
                "name": _clip(raw["name"], 100),
                "description": _clip(raw.get("description"), 500) or "",
                "price": str(price)[:20] if isinstance(price, (str, int, float)) and not isinstance(price, bool) else "",
                "image_url": image_url if is_valid_url(image_url) else None,
            }
        )
    return items


def _iso_or_none(value: Any) -> Optional[str]:
    if not value:
        return None
    try:
        parsed = isoparse(str(value))
    except (TypeError, ValueError) as exc:
        raise AdminServiceError("invalid_date", "Date invalide") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.isoformat()


@admin_action("update_secret_menu")
def update_secret_menu(request: AdminRequest) -> dict:
    menu_id = request.body.get("menuId")
    menu_data = request.body.get("menuData")
    if not menu_id or not isinstance(menu_data, dict) or not menu_data:
        raise AdminServiceError("missing_data", "Données requises")

    menu_name = menu_data.get("menu_name")
    if menu_name and not is_valid_name(menu_name):
        raise AdminServiceError("invalid_menu_name", "Nom de menu invalide")

    updates: Dict[str, Any] = {
        "galette_special": _clip(menu_data.get("galette_special"), 100),
        "galette_special_description": _clip(menu_data.get("galette_special_description"), 500),
        "crepe_special": _clip(menu_data.get("crepe_special"), 100),
        "crepe_special_description": _clip(menu_data.get("crepe_special_description"), 500),
        "galette_items": _clean_menu_items(menu_data.get("galette_items")),
        "crepe_items": _clean_menu_items(menu_data.get("crepe_items")),
        "valid_from": _iso_or_none(menu_data.get("valid_from")),
        "valid_until": _iso_or_none(menu_data.get("valid_until") or menu_data.get("valid_to")),
        "updated_at": request.now.isoformat(),
    }
    if isinstance(menu_name, str):
        updates["menu_name"] = menu_name.strip()[:100]
    if isinstance(menu_data.get("secret_code"), str) and menu_data["secret_code"].strip():
        updates["secret_code"] = menu_data["secret_code"].strip().upper()[:20]
    for prefix in ("galette_special", "crepe_special"):
        if f"{prefix}_price" in menu_data:
            updates[f"{prefix}_price"] = _clip(menu_data.get(f"{prefix}_price"), 20)
        for media in ("image_url", "video_url"):
            key = f"{prefix}_{media}"
            if key in menu_data:
                updates[key] = menu_data[key] if is_valid_url(menu_data[key]) else None

    menu = request.store.update_secret_menu(menu_id, updates)
    if not menu:
        return {"success": False, "message": "Menu introuvable"}
    return {"success": True, "menu": menu}


@admin_action("update_carte_public")
def update_carte_public(request: AdminRequest) -> dict:
    carte_id = request.body.get("carteId")
    carte_data = request.body.get("carteData")
    if not carte_id or not isinstance(carte_data, dict) or not carte_data:
        raise AdminServiceError("missing_data", "Données requises")

    updates: Dict[str, Any] = {
        "galette_items": _clean_menu_items(carte_data.get("galette_items")),
        "crepe_items": _clean_menu_items(carte_data.get("crepe_items")),
    }
    for key in ("valid_from", "valid_to"):
        if key in carte_data:
            parsed = _iso_or_none(carte_data.get(key))
            updates[key] = parsed[:10] if parsed else None

    carte = request.store.update_carte_public(carte_id, updates)
    if not carte:
        return {"success": False, "message": "Carte introuvable"}
    return {"success": True, "carte": carte}


@admin_action("get_daily_code")
def get_daily_code(request: AdminRequest) -> dict:
    return {"code": request.store.daily_code()}


@admin_action("validate_daily_code")
def validate_daily_code(request: AdminRequest) -> dict:
    code = request.body.get("code")
    if not code or not isinstance(code, str):
        raise AdminServiceError("missing_code", "Code requis")
    return {"valid": request.store.validate_secret_code(code.strip().upper())}


# ---- messages ----------------------------------------------------------------
@admin_action("list_messages")
def list_messages(request: AdminRequest) -> dict:
    return {"messages": request.store.list_messages(MESSAGE_LIST_LIMIT)}


@admin_action("mark_message_read")
def mark_message_read(request: AdminRequest) -> dict:
    message_id = request.body.get("messageId")
    if not message_id or not isinstance(message_id, str):
        raise AdminServiceError("missing_id", "messageId manquant")
    return {"success": request.store.mark_message_read(message_id)}


# ---- social posts ------------------------------------------------------------
def _post_id(body: Dict[str, Any]) -> str:
    post_id = body.get("id")
    if not post_id or not is_valid_uuid(post_id):
        raise AdminServiceError("invalid_post_id", "Identifiant de publication invalide")
    return post_id


@admin_action("list_social_posts")
def list_social_posts(request: AdminRequest) -> dict:
    return {"posts": request.store.list_social_posts()}


@admin_action("create_social_post")
def create_social_post(request: AdminRequest) -> dict:
    url = request.body.get("url")
    network = request.body.get("network")
    if not url or not is_valid_url(url):
        raise AdminServiceError("invalid_url", "URL invalide")
    if not is_valid_network(network):
        raise AdminServiceError("invalid_network", "Réseau invalide")
    request.store.insert_social_post(url.strip(), network)
    return {"success": True}


@admin_action("update_social_post")
def update_social_post(request: AdminRequest) -> dict:
    post_id = _post_id(request.body)
    is_visible = request.body.get("is_visible")
    if not isinstance(is_visible, bool):
        raise AdminServiceError("invalid_visibility", "Valeur de visibilité invalide")
    return {"success": request.store.update_social_post(post_id, is_visible)}


@admin_action("delete_social_post")
def delete_social_post(request: AdminRequest) -> dict:
    return {"success": request.store.delete_social_post(_post_id(request.body))}


# ---- settings ----------------------------------------------------------------
def _setting_key(body: Dict[str, Any]) -> str:
    key = body.get("settingKey")
    if not key or not isinstance(key, str) or len(key) > SETTING_KEY_MAX_LENGTH:
        raise AdminServiceError("invalid_input", "Clé de paramètre invalide")
    return key


@admin_action("get_setting")
def get_setting(request: AdminRequest) -> dict:
    return {"setting": request.store.get_setting(_setting_key(request.body))}


@admin_action("update_setting")
def update_setting(request: AdminRequest) -> dict:
    key = _setting_key(request.body)
    value = request.body.get("settingValue")
    updated = request.store.update_setting(
        key,
        value if value is not None else {},
        bool(request.body.get("isActive")),
    )
    return {"success": True, "updated": updated}
