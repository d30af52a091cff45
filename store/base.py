"""Store interface shared by the Supabase and SQL backends.

Every method returns plain dicts shaped like the Supabase rows (ISO strings
for timestamps and dates) so services never care which backend answered.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

Row = Dict[str, Any]

PRIZE_TIERS = ("formule_complete", "galette", "crepe")


class StoreError(Exception):
    """Raised when the backing store fails or rejects an operation."""

    def __init__(self, action: str, detail: Optional[str] = None):
        super().__init__(f"{action} failed" + (f": {detail}" if detail else ""))
        self.action = action
        self.detail = detail


class QuizStore:
    """Persistence contract used by the quiz, admin, menu and community services."""

    # ---- calendar / procedures -------------------------------------------------
    def current_week_start(self) -> str:
        """Monday of the current week as YYYY-MM-DD (`get_current_week_start`)."""
        raise NotImplementedError

    def ensure_weekly_stock(self) -> None:
        raise NotImplementedError

    def claim_prize(self, prize_type: str, week_start: str) -> bool:
        """Atomically take one unit of `prize_type`; False when the tier is exhausted."""
        raise NotImplementedError

    def generate_prize_code(self) -> str:
        raise NotImplementedError

    def daily_code(self) -> Optional[str]:
        raise NotImplementedError

    def validate_secret_code(self, code: str) -> bool:
        raise NotImplementedError

    # ---- questions ------------------------------------------------------------
    def list_active_question_ids(self, category: str, limit: int = 200) -> List[str]:
        raise NotImplementedError

    def fetch_public_questions(self, question_ids: List[str]) -> List[Row]:
        raise NotImplementedError

    def get_correct_answer(self, question_id: str) -> Optional[str]:
        raise NotImplementedError

    def count_active_questions(self) -> int:
        raise NotImplementedError

    # ---- sessions -------------------------------------------------------------
    def find_active_session(self, fingerprint: str, now_iso: str) -> Optional[Row]:
        raise NotImplementedError

    def insert_session(self, payload: Row) -> Row:
        raise NotImplementedError

    def get_session(self, session_id: str, fingerprint: str) -> Optional[Row]:
        raise NotImplementedError

    def update_session(self, session_id: str, updates: Row) -> None:
        raise NotImplementedError

    def complete_session(self, session_id: str) -> bool:
        """Flip `completed` false -> true; False when another request got there first."""
        raise NotImplementedError

    def complete_sessions_for_device(self, fingerprint: str) -> None:
        raise NotImplementedError

    # ---- participations -------------------------------------------------------
    def find_weekly_win(
        self,
        week_start: str,
        *,
        fingerprint: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Optional[Row]:
        raise NotImplementedError

    def insert_participation(self, payload: Row) -> Row:
        raise NotImplementedError

    def find_participation_by_code(self, code: str) -> Optional[Row]:
        raise NotImplementedError

    def claim_participation(self, code: str, claimed_at: str) -> Optional[Row]:
        """Conditional claim: only unclaimed, non-invalidated rows are updated."""
        raise NotImplementedError

    def invalidate_participation(self, participation_id: str, claimed_at: str) -> Optional[Row]:
        raise NotImplementedError

    def list_participations(self, limit: int = 100) -> List[Row]:
        raise NotImplementedError

    def count_participations(
        self,
        *,
        week_start: Optional[str] = None,
        winners_only: bool = False,
        claimed: Optional[bool] = None,
        since: Optional[str] = None,
    ) -> int:
        raise NotImplementedError

    # ---- stock ----------------------------------------------------------------
    def get_weekly_stock(self, week_start: str) -> Optional[Row]:
        raise NotImplementedError

    # ---- menus ----------------------------------------------------------------
    def get_current_secret_menu(self, week_start: str) -> Optional[Row]:
        raise NotImplementedError

    def update_secret_menu(self, menu_id: str, updates: Row) -> Optional[Row]:
        raise NotImplementedError

    def get_active_carte(self) -> Optional[Row]:
        raise NotImplementedError

    def update_carte_public(self, carte_id: str, updates: Row) -> Optional[Row]:
        raise NotImplementedError

    def insert_secret_access(self, payload: Row) -> None:
        raise NotImplementedError

    def get_secret_access(self, access_token: str) -> Optional[Row]:
        raise NotImplementedError

    # ---- community ------------------------------------------------------------
    def list_social_posts(self, visible_only: bool = False) -> List[Row]:
        raise NotImplementedError

    def get_social_post(self, post_id: str) -> Optional[Row]:
        raise NotImplementedError

    def insert_social_post(self, url: str, network: str) -> None:
        raise NotImplementedError

    def update_social_post(self, post_id: str, is_visible: bool) -> bool:
        raise NotImplementedError

    def delete_social_post(self, post_id: str) -> bool:
        raise NotImplementedError

    def list_interactions(self, post_id: str) -> List[Row]:
        raise NotImplementedError

    def insert_interaction(self, payload: Row) -> None:
        raise NotImplementedError

    def insert_message(self, payload: Row) -> None:
        raise NotImplementedError

    def list_messages(self, limit: int = 50) -> List[Row]:
        raise NotImplementedError

    def mark_message_read(self, message_id: str) -> bool:
        raise NotImplementedError

    # ---- settings -------------------------------------------------------------
    def get_setting(self, key: str) -> Optional[Row]:
        raise NotImplementedError

    def update_setting(self, key: str, value: Any, is_active: bool) -> bool:
        raise NotImplementedError
