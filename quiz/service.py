"""Weekly quiz: session lifecycle, scoring, prize allocation and public verification."""

from __future__ import annotations

import math
import random
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from dateutil.parser import isoparse
from flask import current_app

from errors import ServiceError
from notifications import EmailDeliveryError, send_prize_email
from store import QuizStore, StoreError
from validation import (
    QUIZ_QUESTION_COUNT,
    is_valid_answer,
    is_valid_email,
    is_valid_fingerprint,
    is_valid_name,
    is_valid_phone,
    is_valid_prize_code,
    is_valid_question_index,
    is_valid_uuid,
    normalize_answer,
    normalize_phone,
    normalize_prize_code,
    sanitize_for_log_deep,
)

SESSION_TTL_MINUTES = 10
ANSWER_EXTEND_MINUTES = 5
QUESTION_POOL_LIMIT = 200
LOCAL_QUESTION_COUNT = 8
FOOD_QUESTION_COUNT = 2

# (minimum percentage, prize_type, label), best tier first
PRIZE_TIERS: Tuple[Tuple[int, str, str], ...] = (
    (100, "formule_complete", "Formule Complète"),
    (90, "galette", "Une Galette"),
    (80, "crepe", "Une Crêpe"),
)
STOCK_FIELDS = ("galette_remaining", "crepe_remaining", "formule_complete_remaining")


class QuizServiceError(ServiceError):
    pass


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = isoparse(str(value))
        except (TypeError, ValueError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _is_expired(session: dict, now: datetime) -> bool:
    expires_at = _parse_timestamp(session.get("expires_at"))
    return expires_at is not None and expires_at < now


# ---- session handler ---------------------------------------------------------
def handle_session_action(
    store: QuizStore,
    body: Dict[str, Any],
    *,
    ttl_minutes: int = SESSION_TTL_MINUTES,
    extend_minutes: int = ANSWER_EXTEND_MINUTES,
) -> dict:
    """Dispatch a quiz-session request body to start/answer/reset."""
    fingerprint = body.get("deviceFingerprint")
    if not is_valid_fingerprint(fingerprint):
        raise QuizServiceError("invalid_fingerprint", "Session invalide")

    action = body.get("action")
    if action == "start":
        return start_session(store, fingerprint, ttl_minutes=ttl_minutes)
    if action == "answer":
        return answer_question(
            store,
            fingerprint,
            body.get("sessionId"),
            body.get("answer"),
            body.get("questionIndex"),
            extend_minutes=extend_minutes,
        )
    if action == "reset":
        return reset_session(store, fingerprint)
    raise QuizServiceError("invalid_action", "Action non reconnue")


def draw_question_ids(store: QuizStore, rng=random) -> List[str]:
    """Pick 8 local + 2 food question ids, shuffled together."""
    local_ids = list(dict.fromkeys(store.list_active_question_ids("local", QUESTION_POOL_LIMIT)))
    food_ids = list(dict.fromkeys(store.list_active_question_ids("food", QUESTION_POOL_LIMIT)))
    rng.shuffle(local_ids)
    rng.shuffle(food_ids)
    selected = local_ids[:LOCAL_QUESTION_COUNT] + food_ids[:FOOD_QUESTION_COUNT]
    rng.shuffle(selected)
    return selected


def ordered_questions(store: QuizStore, question_ids: List[str]) -> List[dict]:
    """Fetch public question rows in the session's order."""
    rows = store.fetch_public_questions(question_ids)
    by_id = {row.get("id"): row for row in rows}
    return [by_id[qid] for qid in question_ids if qid in by_id]


def start_session(store: QuizStore, fingerprint: str, *, ttl_minutes: int = SESSION_TTL_MINUTES, rng=random) -> dict:
    week_start = store.current_week_start()
    if store.find_weekly_win(week_start, fingerprint=fingerprint):
        raise QuizServiceError("already_won", "Vous avez déjà gagné cette semaine !")

    now = _now()
    existing = store.find_active_session(fingerprint, now.isoformat())
    if existing:
        return {
            "session": existing,
            "questions": ordered_questions(store, list(existing.get("question_ids") or [])),
        }

    question_ids = draw_question_ids(store, rng)
    if len(set(question_ids)) < QUIZ_QUESTION_COUNT:
        raise QuizServiceError("not_enough_questions", "Pas assez de questions disponibles")

    session = store.insert_session(
        {
            "device_fingerprint": fingerprint,
            "question_ids": question_ids,
            "answers": [],
            "current_question": 0,
            "completed": False,
            "started_at": now.isoformat(),
            "last_activity": now.isoformat(),
            "expires_at": (now + timedelta(minutes=ttl_minutes)).isoformat(),
        }
    )
    return {"session": session, "questions": ordered_questions(store, question_ids)}


def answer_question(
    store: QuizStore,
    fingerprint: str,
    session_id: Any,
    answer: Any,
    question_index: Any,
    *,
    extend_minutes: int = ANSWER_EXTEND_MINUTES,
) -> dict:
    if not session_id or not isinstance(session_id, str) or not is_valid_uuid(session_id):
        raise QuizServiceError("invalid_session", "Session invalide")

    if not is_valid_answer(answer):
        raise QuizServiceError("invalid_answer", "Réponse invalide")
    if not is_valid_question_index(question_index):
        raise QuizServiceError("invalid_question", "Question invalide")
    letter = normalize_answer(answer)

    session = store.get_session(session_id, fingerprint)
    if not session:
        raise QuizServiceError("invalid_session", "Session invalide")

    now = _now()
    if _is_expired(session, now):
        raise QuizServiceError("session_expired", "Session expirée, veuillez recommencer")

    cursor = session.get("current_question")
    if isinstance(cursor, int) and question_index != cursor:
        raise QuizServiceError("out_of_order", "Réponse hors séquence")

    answers = list(session.get("answers") or [])
    if any(isinstance(item, dict) and item.get("questionIndex") == question_index for item in answers):
        raise QuizServiceError("already_answered", "Réponse déjà enregistrée")

    question_ids = list(session.get("question_ids") or [])
    if question_index >= len(question_ids):
        raise QuizServiceError("invalid_question", "Question invalide")

    correct_answer = store.get_correct_answer(question_ids[question_index])
    if not correct_answer:
        raise StoreError("fetch correct answer", f"question {question_ids[question_index]} has no answer")

    is_correct = correct_answer == letter
    answers.append({"questionIndex": question_index, "answer": letter, "isCorrect": is_correct})
    store.update_session(
        session["id"],
        {
            "answers": answers,
            "current_question": question_index + 1,
            "last_activity": now.isoformat(),
            "expires_at": (now + timedelta(minutes=extend_minutes)).isoformat(),
        },
    )
    return {"isCorrect": is_correct, "correctAnswer": correct_answer}


def reset_session(store: QuizStore, fingerprint: str) -> dict:
    store.complete_sessions_for_device(fingerprint)
    return {"success": True}


# ---- submission --------------------------------------------------------------
def determine_prize(score: int, total: int = QUIZ_QUESTION_COUNT) -> Tuple[Optional[str], Optional[str]]:
    """Map a score to (prize_type, label); thresholds are inclusive."""
    percentage = score * 100 / total if total else 0
    for minimum, prize_type, label in PRIZE_TIERS:
        if percentage >= minimum:
            return prize_type, label
    return None, None


def _public_stock(store: QuizStore, week_start: str) -> Optional[dict]:
    try:
        row = store.get_weekly_stock(week_start)
    except StoreError as exc:
        current_app.logger.warning("Weekly stock unavailable after submit: %s", exc)
        return None
    if not row:
        return None
    return {field: row.get(field) for field in STOCK_FIELDS}


def _current_secret_code(store: QuizStore, week_start: str) -> Optional[str]:
    try:
        menu = store.get_current_secret_menu(week_start)
    except StoreError as exc:
        current_app.logger.warning("Secret menu unavailable after submit: %s", exc)
        return None
    return menu.get("secret_code") if menu else None


def submit_quiz(store: QuizStore, body: Dict[str, Any]) -> dict:
    session_id = body.get("sessionId")
    fingerprint = body.get("deviceFingerprint")
    first_name = body.get("firstName")
    email = body.get("email")
    phone = body.get("phone")

    current_app.logger.info("Quiz submit request: %s", sanitize_for_log_deep(body))

    if not session_id or not fingerprint or not first_name or not email or not phone:
        raise QuizServiceError("missing_fields", "Tous les champs sont requis")
    if body.get("rgpdConsent") is not True:
        raise QuizServiceError("rgpd_required", "Le consentement RGPD est requis")
    if not is_valid_uuid(session_id):
        raise QuizServiceError("invalid_session", "Session invalide")
    if not is_valid_fingerprint(fingerprint):
        raise QuizServiceError("invalid_fingerprint", "Session invalide")
    if not is_valid_name(first_name):
        raise QuizServiceError("invalid_name", "Prénom invalide (lettres uniquement, max 50 caractères)")
    if not is_valid_email(email):
        raise QuizServiceError("invalid_email", "Format d'email invalide")
    if not is_valid_phone(phone):
        raise QuizServiceError("invalid_phone", "Format de téléphone invalide (10 chiffres)")

    clean_name = first_name.strip()[:50]
    clean_email = email.strip().lower()[:100]
    clean_phone = normalize_phone(phone)[:15]

    session = store.get_session(session_id, fingerprint)
    if not session:
        raise QuizServiceError("invalid_session", "Session invalide")
    if session.get("completed"):
        raise QuizServiceError("already_submitted", "Ce quiz a déjà été soumis")
    if _is_expired(session, _now()):
        raise QuizServiceError("session_expired", "Session expirée, veuillez recommencer")

    answers = [item for item in (session.get("answers") or []) if isinstance(item, dict)]
    cursor = session.get("current_question")
    if len(answers) < QUIZ_QUESTION_COUNT and (not isinstance(cursor, int) or cursor < QUIZ_QUESTION_COUNT):
        raise QuizServiceError("quiz_not_complete", "Veuillez terminer le quiz avant de valider")

    score = sum(1 for item in answers if item.get("isCorrect"))
    percentage = score * 100 // QUIZ_QUESTION_COUNT
    prize_type, prize_label = determine_prize(score)

    week_start = store.current_week_start()
    # checked for every submission, winning or not
    if store.find_weekly_win(week_start, phone=clean_phone):
        raise QuizServiceError("phone_already_won", "Ce numéro de téléphone a déjà gagné cette semaine")

    if not store.complete_session(session["id"]):
        raise QuizServiceError("already_submitted", "Ce quiz a déjà été soumis")

    prize_code = None
    stock_claimed = False
    if prize_type:
        prize_code, stock_claimed = _allocate_prize(store, prize_type, week_start)
        if not prize_code:
            prize_type, prize_label = None, None

    try:
        store.insert_participation(
            {
                "first_name": clean_name,
                "email": clean_email,
                "phone": clean_phone,
                "device_fingerprint": fingerprint,
                "score": score,
                "total_questions": QUIZ_QUESTION_COUNT,
                "prize_type": prize_type,
                "prize_won": prize_label,
                "prize_code": prize_code,
                "week_start": week_start,
                "rgpd_consent": True,
                "status": "active",
            }
        )
    except StoreError:
        if stock_claimed:
            current_app.logger.error(
                "Stock claimed for %s on %s but participation insert failed; needs manual review.",
                prize_type,
                week_start,
            )
        raise

    return {
        "success": True,
        "score": score,
        "totalQuestions": QUIZ_QUESTION_COUNT,
        "percentage": percentage,
        "prizeWon": prize_label,
        "prizeCode": prize_code,
        "firstName": clean_name,
        "stock": _public_stock(store, week_start),
        "secretCode": _current_secret_code(store, week_start),
    }


def _allocate_prize(store: QuizStore, prize_type: str, week_start: str) -> Tuple[Optional[str], bool]:
    """Claim one unit of stock and issue a code; (None, ...) means no prize."""
    try:
        store.ensure_weekly_stock()
    except StoreError as exc:
        # the row usually exists already; claim_prize decides
        current_app.logger.warning("ensure_weekly_stock failed before claiming %s: %s", prize_type, exc)
    try:
        claimed = store.claim_prize(prize_type, week_start)
    except StoreError as exc:
        current_app.logger.warning("claim_prize failed for %s: %s", prize_type, exc)
        return None, False
    if not claimed:
        current_app.logger.info("Stock exhausted for %s (week %s)", prize_type, week_start)
        return None, False

    try:
        code = store.generate_prize_code()
    except StoreError as exc:
        current_app.logger.error(
            "generate_prize_code failed after claiming %s (week %s); stock unit needs manual review: %s",
            prize_type,
            week_start,
            exc,
        )
        return None, True
    return code, True


# ---- verification ------------------------------------------------------------
def week_number(week_start: Any) -> Optional[int]:
    """Week of the year counted from Sunday-aligned weeks starting on Jan 1."""
    if isinstance(week_start, date):
        week_date = week_start
    else:
        try:
            week_date = date.fromisoformat(str(week_start)[:10])
        except ValueError:
            return None
    start_of_year = week_date.replace(month=1, day=1)
    days = (week_date - start_of_year).days
    # Sunday = 0, as on a JavaScript Date
    jan1_weekday = (start_of_year.weekday() + 1) % 7
    return math.ceil((days + jan1_weekday + 1) / 7)


def lookup_prize(store: QuizStore, raw_code: Any) -> Tuple[str, Optional[dict]]:
    """Validate a prize code and fetch its participation (None when unknown)."""
    if not raw_code or not isinstance(raw_code, str):
        raise QuizServiceError("missing_code", "Code requis")
    code = normalize_prize_code(raw_code)
    if not is_valid_prize_code(code):
        raise QuizServiceError("invalid_code", "Format de code invalide")
    return code, store.find_participation_by_code(code)


def verify_prize_public(store: QuizStore, raw_code: Any) -> dict:
    _, participation = lookup_prize(store, raw_code)
    if not participation:
        return {"valid": False, "message": "Code non trouvé"}

    # status stays private here; only the admin verify reports invalidation
    return {
        "valid": True,
        "firstName": participation.get("first_name"),
        "prize": participation.get("prize_won"),
        "weekNumber": week_number(participation.get("week_start")),
        "claimed": bool(participation.get("prize_claimed")),
        "claimedAt": participation.get("claimed_at"),
    }


def email_prize(
    store: QuizStore,
    body: Dict[str, Any],
    *,
    api_key: Optional[str],
    site_url: str,
) -> dict:
    """Re-send the winning code to the address it was registered with."""
    code, participation = lookup_prize(store, body.get("prizeCode"))
    email = body.get("email")
    if not is_valid_email(email):
        raise QuizServiceError("invalid_email", "Format d'email invalide")

    registered = (participation or {}).get("email") or ""
    if not participation or not participation.get("prize_won") or registered.lower() != email.strip().lower():
        raise QuizServiceError("not_found", "Code non trouvé", 404)

    if not api_key:
        raise QuizServiceError("email_unavailable", "Service e-mail indisponible", 503)

    verify_url = f"{site_url.rstrip('/')}/verify?code={quote(code)}"
    secret_code = _current_secret_code(store, participation.get("week_start") or store.current_week_start())
    try:
        send_prize_email(
            api_key,
            email=registered,
            first_name=participation.get("first_name") or "",
            prize=participation.get("prize_won"),
            prize_code=code,
            verify_url=verify_url,
            secret_code=secret_code,
        )
    except EmailDeliveryError as exc:
        current_app.logger.error("Prize email for %s failed: %s", code, exc)
        raise QuizServiceError("email_failed", "Impossible d'envoyer l'e-mail", 502) from exc
    return {"success": True}
