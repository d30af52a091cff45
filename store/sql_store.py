"""Flask-SQLAlchemy implementation of the quiz store (local dev and tests).

The Supabase stored procedures are reproduced in Python here. `claim_prize`
stays a single conditional UPDATE so two winners can never share the last
unit of a tier.
"""

from __future__ import annotations

import hashlib
import secrets
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from dateutil.parser import isoparse
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db
from models import (
    AdminSetting,
    CartePublic,
    Message,
    PostInteraction,
    QuizParticipation,
    QuizQuestion,
    QuizSession,
    SecretAccess,
    SecretMenu,
    SocialPost,
    WeeklyStock,
)

from .base import PRIZE_TIERS, QuizStore, Row, StoreError

DEFAULT_STOCK = {"formule_complete": 1, "galette": 3, "crepe": 5}
PRIZE_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
PRIZE_CODE_LENGTH = 8
PRIZE_CODE_ATTEMPTS = 20

_DATETIME_FIELDS = {
    "started_at",
    "last_activity",
    "expires_at",
    "claimed_at",
    "created_at",
    "updated_at",
    "valid_from",
    "valid_until",
}
_DATE_FIELDS = {"week_start", "valid_to"}


def _resolve_timezone(name: str):
    try:
        return ZoneInfo(name)
    except Exception:
        print(f"⚠️ Unknown timezone {name!r}; falling back to UTC.")
        return timezone.utc


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = isoparse(str(value))
        except (TypeError, ValueError):
            return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    # SQLite drops tzinfo; keep everything in UTC so string comparisons hold
    return parsed.astimezone(timezone.utc)


def _parse_date(value: Any) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _coerce_columns(values: Row) -> Row:
    coerced: Dict[str, Any] = {}
    for key, value in values.items():
        if key in _DATETIME_FIELDS:
            coerced[key] = _parse_datetime(value)
        elif key in _DATE_FIELDS:
            coerced[key] = _parse_date(value)
        else:
            coerced[key] = value
    return coerced


class SqlStore(QuizStore):
    """Store backed by the shared `db` session."""

    def __init__(
        self,
        stock_defaults: Optional[Dict[str, int]] = None,
        timezone_name: str = "Europe/Paris",
    ):
        self.stock_defaults = dict(DEFAULT_STOCK)
        self.stock_defaults.update(stock_defaults or {})
        self.tz = _resolve_timezone(timezone_name)

    @contextmanager
    def _guard(self, action: str):
        try:
            yield
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError(action, str(exc)) from exc

    def _local_today(self) -> date:
        return datetime.now(self.tz).date()

    def _current_menu(self, week_start: Optional[str] = None) -> Optional[SecretMenu]:
        week = _parse_date(week_start) if week_start else _parse_date(self.current_week_start())
        return (
            SecretMenu.query.filter(
                SecretMenu.is_active.is_(True),
                or_(SecretMenu.week_start == week, SecretMenu.week_start.is_(None)),
            )
            .order_by(SecretMenu.week_start.desc())
            .first()
        )

    # ---- calendar / procedures ------------------------------------------------
    def current_week_start(self) -> str:
        today = self._local_today()
        return (today - timedelta(days=today.weekday())).isoformat()

    def ensure_weekly_stock(self) -> None:
        week = _parse_date(self.current_week_start())
        with self._guard("ensure_weekly_stock"):
            if WeeklyStock.query.filter_by(week_start=week).first():
                return
            values = {"week_start": week}
            for tier in PRIZE_TIERS:
                amount = int(self.stock_defaults.get(tier, 0))
                values[f"{tier}_remaining"] = amount
                values[f"{tier}_total"] = amount
            db.session.add(WeeklyStock(**values))
            try:
                db.session.commit()
            except IntegrityError:
                # another request created the row first
                db.session.rollback()

    def claim_prize(self, prize_type: str, week_start: str) -> bool:
        if prize_type not in PRIZE_TIERS:
            raise StoreError("claim_prize", f"unknown prize type {prize_type!r}")
        column = getattr(WeeklyStock, f"{prize_type}_remaining")
        with self._guard("claim_prize"):
            updated = (
                WeeklyStock.query.filter(
                    WeeklyStock.week_start == _parse_date(week_start),
                    column > 0,
                ).update({column: column - 1}, synchronize_session=False)
            )
            db.session.commit()
        return updated == 1

    def generate_prize_code(self) -> str:
        with self._guard("generate_prize_code"):
            for _ in range(PRIZE_CODE_ATTEMPTS):
                code = "".join(secrets.choice(PRIZE_CODE_ALPHABET) for _ in range(PRIZE_CODE_LENGTH))
                if not QuizParticipation.query.filter_by(prize_code=code).first():
                    return code
        raise StoreError("generate_prize_code", "no unique code after retries")

    def daily_code(self) -> Optional[str]:
        with self._guard("get_daily_code"):
            menu = self._current_menu()
        if not menu or not menu.secret_code:
            return None
        base = menu.secret_code.upper()
        digest = hashlib.sha256(f"{base}:{self._local_today().isoformat()}".encode("utf-8")).hexdigest()
        return f"{base}{digest[:4].upper()}"

    def validate_secret_code(self, code: str) -> bool:
        if not code:
            return False
        candidate = code.strip().upper()
        with self._guard("validate_secret_code"):
            menu = self._current_menu()
        if not menu or not menu.secret_code:
            return False
        return candidate in {menu.secret_code.upper(), self.daily_code()}

    # ---- questions ------------------------------------------------------------
    def list_active_question_ids(self, category: str, limit: int = 200) -> List[str]:
        with self._guard(f"list {category} questions"):
            rows = (
                db.session.query(QuizQuestion.id)
                .filter(QuizQuestion.is_active.is_(True), QuizQuestion.category == category)
                .limit(limit)
                .all()
            )
        return [row.id for row in rows]

    def fetch_public_questions(self, question_ids: List[str]) -> List[Row]:
        if not question_ids:
            return []
        with self._guard("fetch questions"):
            rows = QuizQuestion.query.filter(QuizQuestion.id.in_(list(question_ids))).all()
        return [row.to_public_dict() for row in rows]

    def get_correct_answer(self, question_id: str) -> Optional[str]:
        with self._guard("fetch correct answer"):
            row = db.session.get(QuizQuestion, question_id)
        return row.correct_answer if row else None

    def count_active_questions(self) -> int:
        with self._guard("count questions"):
            return QuizQuestion.query.filter(QuizQuestion.is_active.is_(True)).count()

    # ---- sessions -------------------------------------------------------------
    def find_active_session(self, fingerprint: str, now_iso: str) -> Optional[Row]:
        with self._guard("find active session"):
            row = (
                QuizSession.query.filter(
                    QuizSession.device_fingerprint == fingerprint,
                    QuizSession.completed.is_(False),
                    QuizSession.expires_at > _parse_datetime(now_iso),
                )
                .order_by(QuizSession.created_at.desc())
                .first()
            )
        return row.to_dict() if row else None

    def insert_session(self, payload: Row) -> Row:
        with self._guard("create session"):
            row = QuizSession(**_coerce_columns(payload))
            db.session.add(row)
            db.session.commit()
            return row.to_dict()

    def get_session(self, session_id: str, fingerprint: str) -> Optional[Row]:
        with self._guard("fetch session"):
            row = QuizSession.query.filter_by(id=session_id, device_fingerprint=fingerprint).first()
        return row.to_dict() if row else None

    def update_session(self, session_id: str, updates: Row) -> None:
        with self._guard("update session"):
            row = db.session.get(QuizSession, session_id)
            if not row:
                return
            for key, value in _coerce_columns(updates).items():
                setattr(row, key, value)
            db.session.commit()

    def complete_session(self, session_id: str) -> bool:
        with self._guard("complete session"):
            updated = QuizSession.query.filter(
                QuizSession.id == session_id,
                QuizSession.completed.is_(False),
            ).update({QuizSession.completed: True}, synchronize_session=False)
            db.session.commit()
        return updated == 1

    def complete_sessions_for_device(self, fingerprint: str) -> None:
        with self._guard("reset sessions"):
            QuizSession.query.filter(
                QuizSession.device_fingerprint == fingerprint,
                QuizSession.completed.is_(False),
            ).update({QuizSession.completed: True}, synchronize_session=False)
            db.session.commit()

    # ---- participations -------------------------------------------------------
    def find_weekly_win(
        self,
        week_start: str,
        *,
        fingerprint: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Optional[Row]:
        query = QuizParticipation.query.filter(
            QuizParticipation.week_start == _parse_date(week_start),
            QuizParticipation.prize_won.isnot(None),
        )
        if fingerprint:
            query = query.filter(QuizParticipation.device_fingerprint == fingerprint)
        if phone:
            query = query.filter(QuizParticipation.phone == phone)
        with self._guard("weekly win lookup"):
            row = query.first()
        return {"id": row.id} if row else None

    def insert_participation(self, payload: Row) -> Row:
        with self._guard("insert participation"):
            row = QuizParticipation(**_coerce_columns(payload))
            db.session.add(row)
            db.session.commit()
            return row.to_dict()

    def find_participation_by_code(self, code: str) -> Optional[Row]:
        with self._guard("prize lookup"):
            row = QuizParticipation.query.filter_by(prize_code=code).first()
        return row.to_dict() if row else None

    def claim_participation(self, code: str, claimed_at: str) -> Optional[Row]:
        with self._guard("claim prize code"):
            updated = QuizParticipation.query.filter(
                QuizParticipation.prize_code == code,
                QuizParticipation.prize_claimed.is_(False),
                QuizParticipation.status != QuizParticipation.STATUS_INVALIDATED,
            ).update(
                {
                    QuizParticipation.prize_claimed: True,
                    QuizParticipation.claimed_at: _parse_datetime(claimed_at),
                    QuizParticipation.status: QuizParticipation.STATUS_CLAIMED,
                },
                synchronize_session=False,
            )
            db.session.commit()
            if updated != 1:
                return None
            row = QuizParticipation.query.filter_by(prize_code=code).first()
            return row.to_dict() if row else None

    def invalidate_participation(self, participation_id: str, claimed_at: str) -> Optional[Row]:
        with self._guard("invalidate participation"):
            row = db.session.get(QuizParticipation, participation_id)
            if not row:
                return None
            row.status = QuizParticipation.STATUS_INVALIDATED
            row.prize_claimed = True
            row.claimed_at = _parse_datetime(claimed_at)
            db.session.commit()
            return row.to_dict()

    def list_participations(self, limit: int = 100) -> List[Row]:
        with self._guard("list participations"):
            rows = (
                QuizParticipation.query.order_by(QuizParticipation.created_at.desc())
                .limit(limit)
                .all()
            )
        return [row.to_dict() for row in rows]

    def count_participations(
        self,
        *,
        week_start: Optional[str] = None,
        winners_only: bool = False,
        claimed: Optional[bool] = None,
        since: Optional[str] = None,
    ) -> int:
        query = QuizParticipation.query
        if week_start:
            query = query.filter(QuizParticipation.week_start == _parse_date(week_start))
        if winners_only:
            query = query.filter(QuizParticipation.prize_won.isnot(None))
        if claimed is not None:
            query = query.filter(QuizParticipation.prize_claimed == claimed)
        if since:
            query = query.filter(QuizParticipation.created_at >= _parse_datetime(since))
        with self._guard("count participations"):
            return query.count()

    # ---- stock ----------------------------------------------------------------
    def get_weekly_stock(self, week_start: str) -> Optional[Row]:
        with self._guard("fetch weekly stock"):
            row = WeeklyStock.query.filter_by(week_start=_parse_date(week_start)).first()
        return row.to_dict() if row else None

    # ---- menus ----------------------------------------------------------------
    def get_current_secret_menu(self, week_start: str) -> Optional[Row]:
        with self._guard("fetch secret menu"):
            row = self._current_menu(week_start)
        return row.to_dict() if row else None

    def update_secret_menu(self, menu_id: str, updates: Row) -> Optional[Row]:
        with self._guard("update secret menu"):
            row = db.session.get(SecretMenu, menu_id)
            if not row:
                return None
            for key, value in _coerce_columns(updates).items():
                setattr(row, key, value)
            db.session.commit()
            return row.to_dict()

    def get_active_carte(self) -> Optional[Row]:
        with self._guard("fetch carte"):
            row = (
                CartePublic.query.filter(CartePublic.is_active.is_(True))
                .order_by(CartePublic.created_at.desc())
                .first()
            )
        return row.to_dict() if row else None

    def update_carte_public(self, carte_id: str, updates: Row) -> Optional[Row]:
        with self._guard("update carte"):
            row = db.session.get(CartePublic, carte_id)
            if not row:
                return None
            # the carte validity window is plain dates, unlike the secret menu
            for key, value in updates.items():
                setattr(row, key, _parse_date(value) if key in ("valid_from", "valid_to") else value)
            db.session.commit()
            return row.to_dict()

    def insert_secret_access(self, payload: Row) -> None:
        with self._guard("insert secret access"):
            db.session.add(SecretAccess(**_coerce_columns(payload)))
            db.session.commit()

    def get_secret_access(self, access_token: str) -> Optional[Row]:
        with self._guard("fetch secret access"):
            row = SecretAccess.query.filter_by(access_token=access_token).first()
        return row.to_dict() if row else None

    # ---- community ------------------------------------------------------------
    def list_social_posts(self, visible_only: bool = False) -> List[Row]:
        query = SocialPost.query
        if visible_only:
            query = query.filter(SocialPost.is_visible.is_(True))
        with self._guard("list social posts"):
            rows = query.order_by(SocialPost.created_at.desc()).all()
        return [row.to_dict() for row in rows]

    def get_social_post(self, post_id: str) -> Optional[Row]:
        with self._guard("fetch social post"):
            row = db.session.get(SocialPost, post_id)
        return row.to_dict() if row else None

    def insert_social_post(self, url: str, network: str) -> None:
        with self._guard("create social post"):
            db.session.add(SocialPost(url=url, network=network, is_visible=True))
            db.session.commit()

    def update_social_post(self, post_id: str, is_visible: bool) -> bool:
        with self._guard("update social post"):
            row = db.session.get(SocialPost, post_id)
            if not row:
                return False
            row.is_visible = bool(is_visible)
            db.session.commit()
        return True

    def delete_social_post(self, post_id: str) -> bool:
        with self._guard("delete social post"):
            row = db.session.get(SocialPost, post_id)
            if not row:
                return False
            PostInteraction.query.filter_by(post_id=post_id).delete(synchronize_session=False)
            db.session.delete(row)
            db.session.commit()
        return True

    def list_interactions(self, post_id: str) -> List[Row]:
        with self._guard("list interactions"):
            rows = (
                PostInteraction.query.filter_by(post_id=post_id)
                .order_by(PostInteraction.created_at.desc())
                .all()
            )
        return [row.to_dict() for row in rows]

    def insert_interaction(self, payload: Row) -> None:
        with self._guard("insert interaction"):
            db.session.add(PostInteraction(**_coerce_columns(payload)))
            db.session.commit()

    def insert_message(self, payload: Row) -> None:
        with self._guard("insert message"):
            db.session.add(Message(**_coerce_columns(payload)))
            db.session.commit()

    def list_messages(self, limit: int = 50) -> List[Row]:
        with self._guard("list messages"):
            rows = Message.query.order_by(Message.created_at.desc()).limit(limit).all()
        return [row.to_dict() for row in rows]

    def mark_message_read(self, message_id: str) -> bool:
        with self._guard("mark message read"):
            row = db.session.get(Message, message_id)
            if not row:
                return False
            row.is_read = True
            db.session.commit()
        return True

    # ---- settings -------------------------------------------------------------
    def get_setting(self, key: str) -> Optional[Row]:
        with self._guard("fetch setting"):
            row = AdminSetting.query.filter_by(setting_key=key).first()
        return row.to_dict() if row else None

    def update_setting(self, key: str, value: Any, is_active: bool) -> bool:
        with self._guard("update setting"):
            row = AdminSetting.query.filter_by(setting_key=key).first()
            if not row:
                return False
            row.setting_value = value
            row.is_active = bool(is_active)
            db.session.commit()
        return True
