"""Persistence backends for the quiz, menu, community and admin features."""

from flask import current_app

from .base import PRIZE_TIERS, QuizStore, StoreError
from .sql_store import SqlStore
from .supabase_store import SupabaseStore

__all__ = ["PRIZE_TIERS", "QuizStore", "SqlStore", "StoreError", "SupabaseStore", "get_store"]


def get_store() -> QuizStore:
    """Return the store configured on the running app."""
    store = current_app.config.get("QUIZ_STORE")
    if store is None:
        raise StoreError("get_store", "no store configured")
    return store
