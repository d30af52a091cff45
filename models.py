"""Database models mirroring the hosted Supabase schema (used by the SQL store)."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import func

from extensions import db


def _uuid() -> str:
    return str(uuid.uuid4())


class QuizQuestion(db.Model):
    """A four-option question; `correct_answer` never leaves the server before answering."""

    __tablename__ = "quiz_questions"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    question = db.Column(db.Text, nullable=False)
    option_a = db.Column(db.String(255), nullable=False)
    option_b = db.Column(db.String(255), nullable=False)
    option_c = db.Column(db.String(255), nullable=False)
    option_d = db.Column(db.String(255), nullable=False)
    correct_answer = db.Column(db.String(1), nullable=False)
    category = db.Column(db.String(20), nullable=False, default="local")
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), nullable=False)

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "question": self.question,
            "option_a": self.option_a,
            "option_b": self.option_b,
            "option_c": self.option_c,
            "option_d": self.option_d,
        }

    def __repr__(self) -> str:  # pragma: no cover - helper for shell debugging
        return f"<QuizQuestion id={self.id} category={self.category!r}>"


class QuizSession(db.Model):
    """Per-device quiz run; `completed` is only set by submit or reset."""

    __tablename__ = "quiz_sessions"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    device_fingerprint = db.Column(db.String(50), index=True, nullable=False)
    question_ids = db.Column(db.JSON, nullable=False, default=list)
    answers = db.Column(db.JSON, nullable=False, default=list)
    current_question = db.Column(db.Integer, nullable=False, default=0)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_activity = db.Column(db.DateTime(timezone=True), nullable=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "device_fingerprint": self.device_fingerprint,
            "question_ids": list(self.question_ids or []),
            "answers": list(self.answers or []),
            "current_question": self.current_question,
            "completed": self.completed,
            "started_at": _isoformat_or_none(self.started_at),
            "last_activity": _isoformat_or_none(self.last_activity),
            "expires_at": _isoformat_or_none(self.expires_at),
            "created_at": _isoformat_or_none(self.created_at),
        }


class QuizParticipation(db.Model):
    """Scored result of a completed session, winning or not."""

    __tablename__ = "quiz_participations"

    STATUS_ACTIVE = "active"
    STATUS_CLAIMED = "claimed"
    STATUS_INVALIDATED = "invalidated"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    first_name = db.Column(db.String(50), nullable=False)
    email = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(15), index=True, nullable=False)
    device_fingerprint = db.Column(db.String(50), index=True, nullable=False)
    score = db.Column(db.Integer, nullable=False, default=0)
    total_questions = db.Column(db.Integer, nullable=False, default=10)
    prize_type = db.Column(db.String(30), nullable=True)
    prize_won = db.Column(db.String(50), nullable=True)
    prize_code = db.Column(db.String(10), unique=True, nullable=True)
    week_start = db.Column(db.Date, index=True, nullable=False)
    rgpd_consent = db.Column(db.Boolean, nullable=False, default=False)
    prize_claimed = db.Column(db.Boolean, nullable=False, default=False)
    claimed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    status = db.Column(db.String(20), nullable=False, default=STATUS_ACTIVE)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "email": self.email,
            "phone": self.phone,
            "device_fingerprint": self.device_fingerprint,
            "score": self.score,
            "total_questions": self.total_questions,
            "prize_type": self.prize_type,
            "prize_won": self.prize_won,
            "prize_code": self.prize_code,
            "week_start": _date_or_none(self.week_start),
            "rgpd_consent": self.rgpd_consent,
            "prize_claimed": self.prize_claimed,
            "claimed_at": _isoformat_or_none(self.claimed_at),
            "status": self.status,
            "created_at": _isoformat_or_none(self.created_at),
        }


class WeeklyStock(db.Model):
    """Remaining/total prize counters for one Monday-aligned week."""

    __tablename__ = "weekly_stock"

    TIERS = ("formule_complete", "galette", "crepe")

    id = db.Column(db.Integer, primary_key=True)
    week_start = db.Column(db.Date, unique=True, nullable=False)
    formule_complete_remaining = db.Column(db.Integer, nullable=False, default=0)
    formule_complete_total = db.Column(db.Integer, nullable=False, default=0)
    galette_remaining = db.Column(db.Integer, nullable=False, default=0)
    galette_total = db.Column(db.Integer, nullable=False, default=0)
    crepe_remaining = db.Column(db.Integer, nullable=False, default=0)
    crepe_total = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        db.CheckConstraint("formule_complete_remaining >= 0", name="ck_stock_formule_non_negative"),
        db.CheckConstraint("galette_remaining >= 0", name="ck_stock_galette_non_negative"),
        db.CheckConstraint("crepe_remaining >= 0", name="ck_stock_crepe_non_negative"),
    )

    def to_dict(self) -> dict:
        payload = {"id": self.id, "week_start": _date_or_none(self.week_start)}
        for tier in self.TIERS:
            payload[f"{tier}_remaining"] = getattr(self, f"{tier}_remaining")
            payload[f"{tier}_total"] = getattr(self, f"{tier}_total")
        return payload


class SecretMenu(db.Model):
    """Weekly secret menu unlocked by quiz players or with the secret code."""

    __tablename__ = "secret_menu"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    week_start = db.Column(db.Date, index=True, nullable=True)
    menu_name = db.Column(db.String(100), nullable=False, default="Menu Secret")
    secret_code = db.Column(db.String(20), nullable=False)

    galette_special = db.Column(db.String(100), nullable=True)
    galette_special_description = db.Column(db.String(500), nullable=True)
    galette_special_price = db.Column(db.String(20), nullable=True)
    galette_special_image_url = db.Column(db.String(500), nullable=True)
    galette_special_video_url = db.Column(db.String(500), nullable=True)

    crepe_special = db.Column(db.String(100), nullable=True)
    crepe_special_description = db.Column(db.String(500), nullable=True)
    crepe_special_price = db.Column(db.String(20), nullable=True)
    crepe_special_image_url = db.Column(db.String(500), nullable=True)
    crepe_special_video_url = db.Column(db.String(500), nullable=True)

    galette_items = db.Column(db.JSON, nullable=False, default=list)
    crepe_items = db.Column(db.JSON, nullable=False, default=list)

    valid_from = db.Column(db.DateTime(timezone=True), nullable=True)
    valid_until = db.Column(db.DateTime(timezone=True), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    PUBLIC_FIELDS = (
        "menu_name",
        "galette_special",
        "galette_special_description",
        "galette_special_price",
        "galette_special_image_url",
        "galette_special_video_url",
        "crepe_special",
        "crepe_special_description",
        "crepe_special_price",
        "crepe_special_image_url",
        "crepe_special_video_url",
        "galette_items",
        "crepe_items",
    )

    def to_dict(self) -> dict:
        payload = {field: getattr(self, field) for field in self.PUBLIC_FIELDS}
        payload.update(
            {
                "id": self.id,
                "week_start": _date_or_none(self.week_start),
                "secret_code": self.secret_code,
                "valid_from": _isoformat_or_none(self.valid_from),
                "valid_until": _isoformat_or_none(self.valid_until),
                "is_active": self.is_active,
                "updated_at": _isoformat_or_none(self.updated_at),
            }
        )
        return payload


class CartePublic(db.Model):
    """Public carte (regular galettes and crêpes) shown to every visitor."""

    __tablename__ = "carte_public"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    galette_items = db.Column(db.JSON, nullable=False, default=list)
    crepe_items = db.Column(db.JSON, nullable=False, default=list)
    valid_from = db.Column(db.Date, nullable=True)
    valid_to = db.Column(db.Date, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "galette_items": list(self.galette_items or []),
            "crepe_items": list(self.crepe_items or []),
            "valid_from": _date_or_none(self.valid_from),
            "valid_to": _date_or_none(self.valid_to),
            "is_active": self.is_active,
            "updated_at": _isoformat_or_none(self.updated_at),
        }


class SecretAccess(db.Model):
    """Short-lived secret menu access token."""

    __tablename__ = "secret_access"

    id = db.Column(db.Integer, primary_key=True)
    access_token = db.Column(db.String(64), unique=True, nullable=False)
    secret_code = db.Column(db.String(30), nullable=False)
    first_name = db.Column(db.String(50), nullable=False)
    email = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(15), nullable=False)
    week_start = db.Column(db.Date, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "secret_code": self.secret_code,
            "first_name": self.first_name,
            "week_start": _date_or_none(self.week_start),
            "created_at": _isoformat_or_none(self.created_at),
        }


class SocialPost(db.Model):
    __tablename__ = "social_posts"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    url = db.Column(db.String(2000), nullable=False)
    network = db.Column(db.String(20), nullable=False)
    is_visible = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "network": self.network,
            "is_visible": self.is_visible,
            "created_at": _isoformat_or_none(self.created_at),
        }


class PostInteraction(db.Model):
    __tablename__ = "post_interactions"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    post_id = db.Column(db.String(36), db.ForeignKey("social_posts.id", ondelete="CASCADE"), index=True, nullable=False)
    interaction_type = db.Column(db.String(10), nullable=False)
    device_fingerprint = db.Column(db.String(50), nullable=False)
    comment_text = db.Column(db.String(500), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "post_id": self.post_id,
            "interaction_type": self.interaction_type,
            "device_fingerprint": self.device_fingerprint,
            "comment_text": self.comment_text,
            "created_at": _isoformat_or_none(self.created_at),
        }


class Message(db.Model):
    """Contact form submission read from the admin back-office."""

    __tablename__ = "messages"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(50), nullable=False)
    email = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(15), nullable=True)
    message = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "message": self.message,
            "is_read": self.is_read,
            "created_at": _isoformat_or_none(self.created_at),
        }


class AdminSetting(db.Model):
    __tablename__ = "admin_settings"

    id = db.Column(db.Integer, primary_key=True)
    setting_key = db.Column(db.String(50), unique=True, nullable=False)
    setting_value = db.Column(db.JSON, nullable=False, default=dict)
    is_active = db.Column(db.Boolean, default=False, nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "setting_key": self.setting_key,
            "setting_value": self.setting_value,
            "is_active": self.is_active,
            "updated_at": _isoformat_or_none(self.updated_at),
        }


def _isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    aware = _ensure_aware(value)
    return aware.astimezone(timezone.utc).isoformat()


def _date_or_none(value: Optional[date]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def _ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
