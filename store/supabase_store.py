"""Supabase (PostgREST + RPC) implementation of the quiz store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional

from .base import QuizStore, Row, StoreError

PUBLIC_QUESTION_COLUMNS = "id, question, option_a, option_b, option_c, option_d"
PARTICIPATION_LIST_COLUMNS = (
    "id, created_at, first_name, email, phone, score, total_questions, "
    "prize_won, prize_code, prize_claimed, claimed_at, status"
)


class SupabaseStore(QuizStore):
    """Thin wrapper over a supabase-py client; stored procedures do the heavy lifting."""

    def __init__(self, client):
        self.client = client

    # ---- helpers --------------------------------------------------------------
    @staticmethod
    def _execute(query, action: str):
        try:
            return query.execute()
        except Exception as exc:
            raise StoreError(action, str(exc)) from exc

    def _rows(self, query, action: str) -> List[Row]:
        resp = self._execute(query, action)
        return getattr(resp, "data", None) or []

    def _first(self, query, action: str) -> Optional[Row]:
        rows = self._rows(query, action)
        return rows[0] if rows else None

    def _count(self, query, action: str) -> int:
        resp = self._execute(query, action)
        return getattr(resp, "count", None) or 0

    def _rpc(self, name: str, params: Optional[dict] = None) -> Any:
        resp = self._execute(self.client.rpc(name, params or {}), name)
        return getattr(resp, "data", None)

    # ---- calendar / procedures ------------------------------------------------
    def current_week_start(self) -> str:
        week_start = self._rpc("get_current_week_start")
        if not week_start:
            raise StoreError("get_current_week_start", "empty result")
        return str(week_start)

    def ensure_weekly_stock(self) -> None:
        self._rpc("ensure_weekly_stock")

    def claim_prize(self, prize_type: str, week_start: str) -> bool:
        claimed = self._rpc(
            "claim_prize",
            {"p_prize_type": prize_type, "p_week_start": week_start},
        )
        return bool(claimed)

    def generate_prize_code(self) -> str:
        code = self._rpc("generate_prize_code")
        if not code:
            raise StoreError("generate_prize_code", "empty result")
        return str(code)

    def daily_code(self) -> Optional[str]:
        code = self._rpc("get_daily_code")
        return str(code) if code else None

    def validate_secret_code(self, code: str) -> bool:
        return bool(self._rpc("validate_secret_code", {"p_code": code}))

    # ---- questions ------------------------------------------------------------
    def list_active_question_ids(self, category: str, limit: int = 200) -> List[str]:
        rows = self._rows(
            self.client.table("quiz_questions")
            .select("id")
            .eq("is_active", True)
            .eq("category", category)
            .limit(limit),
            f"list {category} questions",
        )
        return [row["id"] for row in rows if row.get("id")]

    def fetch_public_questions(self, question_ids: List[str]) -> List[Row]:
        if not question_ids:
            return []
        return self._rows(
            self.client.table("quiz_questions")
            .select(PUBLIC_QUESTION_COLUMNS)
            .in_("id", list(question_ids)),
            "fetch questions",
        )

    def get_correct_answer(self, question_id: str) -> Optional[str]:
        row = self._first(
            self.client.table("quiz_questions")
            .select("correct_answer")
            .eq("id", question_id)
            .limit(1),
            "fetch correct answer",
        )
        return row.get("correct_answer") if row else None

    def count_active_questions(self) -> int:
        return self._count(
            self.client.table("quiz_questions")
            .select("id", count="exact")
            .eq("is_active", True)
            .limit(1),
            "count questions",
        )

    # ---- sessions -------------------------------------------------------------
    def find_active_session(self, fingerprint: str, now_iso: str) -> Optional[Row]:
        return self._first(
            self.client.table("quiz_sessions")
            .select("*")
            .eq("device_fingerprint", fingerprint)
            .eq("completed", False)
            .gt("expires_at", now_iso)
            .order("created_at", desc=True)
            .limit(1),
            "find active session",
        )

    def insert_session(self, payload: Row) -> Row:
        row = self._first(self.client.table("quiz_sessions").insert(payload), "create session")
        if not row:
            raise StoreError("create session", "no row returned")
        return row

    def get_session(self, session_id: str, fingerprint: str) -> Optional[Row]:
        return self._first(
            self.client.table("quiz_sessions")
            .select("*")
            .eq("id", session_id)
            .eq("device_fingerprint", fingerprint)
            .limit(1),
            "fetch session",
        )

    def update_session(self, session_id: str, updates: Row) -> None:
        self._execute(
            self.client.table("quiz_sessions").update(updates).eq("id", session_id),
            "update session",
        )

    def complete_session(self, session_id: str) -> bool:
        rows = self._rows(
            self.client.table("quiz_sessions")
            .update({"completed": True})
            .eq("id", session_id)
            .eq("completed", False),
            "complete session",
        )
        return bool(rows)

    def complete_sessions_for_device(self, fingerprint: str) -> None:
        self._execute(
            self.client.table("quiz_sessions")
            .update({"completed": True})
            .eq("device_fingerprint", fingerprint)
            .eq("completed", False),
            "reset sessions",
        )

    # ---- participations -------------------------------------------------------
    def find_weekly_win(
        self,
        week_start: str,
        *,
        fingerprint: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Optional[Row]:
        query = (
            self.client.table("quiz_participations")
            .select("id")
            .eq("week_start", week_start)
            .not_.is_("prize_won", "null")
        )
        if fingerprint:
            query = query.eq("device_fingerprint", fingerprint)
        if phone:
            query = query.eq("phone", phone)
        return self._first(query.limit(1), "weekly win lookup")

    def insert_participation(self, payload: Row) -> Row:
        row = self._first(
            self.client.table("quiz_participations").insert(payload),
            "insert participation",
        )
        if not row:
            raise StoreError("insert participation", "no row returned")
        return row

    def find_participation_by_code(self, code: str) -> Optional[Row]:
        return self._first(
            self.client.table("quiz_participations")
            .select("*")
            .eq("prize_code", code)
            .limit(1),
            "prize lookup",
        )

    def claim_participation(self, code: str, claimed_at: str) -> Optional[Row]:
        return self._first(
            self.client.table("quiz_participations")
            .update({"prize_claimed": True, "claimed_at": claimed_at, "status": "claimed"})
            .eq("prize_code", code)
            .eq("prize_claimed", False)
            .neq("status", "invalidated"),
            "claim prize code",
        )

    def invalidate_participation(self, participation_id: str, claimed_at: str) -> Optional[Row]:
        return self._first(
            self.client.table("quiz_participations")
            .update({"status": "invalidated", "prize_claimed": True, "claimed_at": claimed_at})
            .eq("id", participation_id),
            "invalidate participation",
        )

    def list_participations(self, limit: int = 100) -> List[Row]:
        return self._rows(
            self.client.table("quiz_participations")
            .select(PARTICIPATION_LIST_COLUMNS)
            .order("created_at", desc=True)
            .limit(limit),
            "list participations",
        )

    def count_participations(
        self,
        *,
        week_start: Optional[str] = None,
        winners_only: bool = False,
        claimed: Optional[bool] = None,
        since: Optional[str] = None,
    ) -> int:
        query = self.client.table("quiz_participations").select("id", count="exact")
        if week_start:
            query = query.eq("week_start", week_start)
        if winners_only:
            query = query.not_.is_("prize_won", "null")
        if claimed is not None:
            query = query.eq("prize_claimed", claimed)
        if since:
            query = query.gte("created_at", since)
        return self._count(query.limit(1), "count participations")

    # ---- stock ----------------------------------------------------------------
    def get_weekly_stock(self, week_start: str) -> Optional[Row]:
        return self._first(
            self.client.table("weekly_stock").select("*").eq("week_start", week_start).limit(1),
            "fetch weekly stock",
        )

    # ---- menus ----------------------------------------------------------------
    def get_current_secret_menu(self, week_start: str) -> Optional[Row]:
        return self._first(
            self.client.table("secret_menu")
            .select("*")
            .eq("week_start", week_start)
            .eq("is_active", True)
            .limit(1),
            "fetch secret menu",
        )

    def update_secret_menu(self, menu_id: str, updates: Row) -> Optional[Row]:
        return self._first(
            self.client.table("secret_menu").update(updates).eq("id", menu_id),
            "update secret menu",
        )

    def get_active_carte(self) -> Optional[Row]:
        return self._first(
            self.client.table("carte_public")
            .select("*")
            .eq("is_active", True)
            .order("created_at", desc=True)
            .limit(1),
            "fetch carte",
        )

    def update_carte_public(self, carte_id: str, updates: Row) -> Optional[Row]:
        return self._first(
            self.client.table("carte_public").update(updates).eq("id", carte_id),
            "update carte",
        )

    def insert_secret_access(self, payload: Row) -> None:
        self._execute(
            self.client.table("secret_access").insert(payload, returning="minimal"),
            "insert secret access",
        )

    def get_secret_access(self, access_token: str) -> Optional[Row]:
        return self._first(
            self.client.table("secret_access")
            .select("access_token, secret_code, week_start, created_at")
            .eq("access_token", access_token)
            .limit(1),
            "fetch secret access",
        )

    # ---- community ------------------------------------------------------------
    def list_social_posts(self, visible_only: bool = False) -> List[Row]:
        query = self.client.table("social_posts").select("*")
        if visible_only:
            query = query.eq("is_visible", True)
        return self._rows(query.order("created_at", desc=True), "list social posts")

    def get_social_post(self, post_id: str) -> Optional[Row]:
        return self._first(
            self.client.table("social_posts").select("*").eq("id", post_id).limit(1),
            "fetch social post",
        )

    def insert_social_post(self, url: str, network: str) -> None:
        self._execute(
            self.client.table("social_posts").insert({"url": url, "network": network, "is_visible": True}),
            "create social post",
        )

    def update_social_post(self, post_id: str, is_visible: bool) -> bool:
        rows = self._rows(
            self.client.table("social_posts").update({"is_visible": is_visible}).eq("id", post_id),
            "update social post",
        )
        return bool(rows)

    def delete_social_post(self, post_id: str) -> bool:
        rows = self._rows(
            self.client.table("social_posts").delete().eq("id", post_id),
            "delete social post",
        )
        return bool(rows)

    def list_interactions(self, post_id: str) -> List[Row]:
        return self._rows(
            self.client.table("post_interactions")
            .select("*")
            .eq("post_id", post_id)
            .order("created_at", desc=True),
            "list interactions",
        )

    def insert_interaction(self, payload: Row) -> None:
        self._execute(
            self.client.table("post_interactions").insert(payload, returning="minimal"),
            "insert interaction",
        )

    def insert_message(self, payload: Row) -> None:
        self._execute(
            self.client.table("messages").insert(payload, returning="minimal"),
            "insert message",
        )

    def list_messages(self, limit: int = 50) -> List[Row]:
        return self._rows(
            self.client.table("messages").select("*").order("created_at", desc=True).limit(limit),
            "list messages",
        )

    def mark_message_read(self, message_id: str) -> bool:
        rows = self._rows(
            self.client.table("messages").update({"is_read": True}).eq("id", message_id),
            "mark message read",
        )
        return bool(rows)

    # ---- settings -------------------------------------------------------------
    def get_setting(self, key: str) -> Optional[Row]:
        return self._first(
            self.client.table("admin_settings").select("*").eq("setting_key", key).limit(1),
            "fetch setting",
        )

    def update_setting(self, key: str, value: Any, is_active: bool) -> bool:
        rows = self._rows(
            self.client.table("admin_settings")
            .update(
                {
                    "is_active": bool(is_active),
                    "setting_value": value,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                }
            )
            .eq("setting_key", key),
            "update setting",
        )
        return bool(rows)
