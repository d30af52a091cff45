"""Social wall interactions and the contact form."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

import bleach

from content_filter import ContentFilter
from errors import ServiceError
from store import QuizStore
from validation import (
    is_valid_email,
    is_valid_fingerprint,
    is_valid_name,
    is_valid_phone,
    is_valid_uuid,
    normalize_phone,
)

CONTENT_FILTER = ContentFilter()
COMMENT_MAX_LENGTH = 500
CONTACT_MESSAGE_MAX_LENGTH = 2000
INTERACTION_TYPES = ("like", "comment")


class CommunityServiceError(ServiceError):
    pass


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _strip_html(value: str) -> str:
    return bleach.clean(value, tags=[], attributes={}, strip=True).strip()


def latest_post(store: QuizStore, device_id: Any = None) -> dict:
    """Newest visible post with its like count and comments (newest first)."""
    posts = store.list_social_posts(visible_only=True)
    if not posts:
        return {"post": None}

    post = posts[0]
    interactions = store.list_interactions(post["id"])
    likes = [item for item in interactions if item.get("interaction_type") == "like"]
    comments = [
        {
            "id": item.get("id"),
            "comment_text": item.get("comment_text"),
            "created_at": item.get("created_at"),
        }
        for item in interactions
        if item.get("interaction_type") == "comment"
    ]
    has_liked = bool(device_id) and any(item.get("device_fingerprint") == device_id for item in likes)
    return {
        "post": post,
        "likeCount": len(likes),
        "hasLiked": has_liked,
        "comments": comments,
    }


def add_interaction(store: QuizStore, body: Dict[str, Any]) -> dict:
    device_id = body.get("deviceId")
    post_id = body.get("postId")
    interaction_type = body.get("type")

    if not is_valid_fingerprint(device_id):
        raise CommunityServiceError("invalid_device", "Appareil invalide")
    if not is_valid_uuid(post_id):
        raise CommunityServiceError("invalid_post_id", "Identifiant de publication invalide")
    if interaction_type not in INTERACTION_TYPES:
        raise CommunityServiceError("invalid_interaction", "Interaction invalide")

    post = store.get_social_post(post_id)
    if not post or not post.get("is_visible"):
        raise CommunityServiceError("post_not_found", "Publication introuvable", 404)

    if interaction_type == "like":
        already_liked = any(
            item.get("interaction_type") == "like" and item.get("device_fingerprint") == device_id
            for item in store.list_interactions(post_id)
        )
        if already_liked:
            return {"success": True, "alreadyLiked": True}
        store.insert_interaction(
            {
                "post_id": post_id,
                "interaction_type": "like",
                "device_fingerprint": device_id,
                "comment_text": None,
                "created_at": _now_iso(),
            }
        )
        return {"success": True}

    text = body.get("text")
    if not isinstance(text, str) or not text.strip() or len(text.strip()) > COMMENT_MAX_LENGTH:
        raise CommunityServiceError("invalid_comment", "Commentaire invalide (500 caractères max)")

    decision = CONTENT_FILTER.scan(text)
    if decision:
        raise CommunityServiceError(
            "comment_rejected",
            "Commentaire refusé par la modération",
            422,
            extra={"filter": decision.to_dict()},
        )

    clean_text = _strip_html(text)
    if not clean_text:
        raise CommunityServiceError("invalid_comment", "Commentaire invalide (500 caractères max)")

    store.insert_interaction(
        {
            "post_id": post_id,
            "interaction_type": "comment",
            "device_fingerprint": device_id,
            "comment_text": clean_text,
            "created_at": _now_iso(),
        }
    )
    return {"success": True}


def submit_contact_message(store: QuizStore, body: Dict[str, Any]) -> dict:
    name = body.get("name")
    email = body.get("email")
    phone = body.get("phone")
    message = body.get("message")

    if not name or not email or not message:
        raise CommunityServiceError("missing_fields", "Tous les champs sont requis")
    if not is_valid_name(name):
        raise CommunityServiceError("invalid_name", "Nom invalide")
    if not is_valid_email(email):
        raise CommunityServiceError("invalid_email", "Format d'email invalide")
    if phone and not is_valid_phone(phone):
        raise CommunityServiceError("invalid_phone", "Format de téléphone invalide (10 chiffres)")
    if not isinstance(message, str) or len(message.strip()) > CONTACT_MESSAGE_MAX_LENGTH:
        raise CommunityServiceError("invalid_message", "Message trop long (2000 caractères max)")

    clean_message = _strip_html(message)
    if not clean_message:
        raise CommunityServiceError("missing_fields", "Tous les champs sont requis")

    store.insert_message(
        {
            "name": name.strip()[:50],
            "email": email.strip().lower()[:100],
            "phone": normalize_phone(phone)[:15] if phone else None,
            "message": clean_message,
            "is_read": False,
            "created_at": _now_iso(),
        }
    )
    return {"success": True}
