"""Input validators and log redaction shared by every request handler."""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import urlparse

ANSWER_LETTERS = ("A", "B", "C", "D")
QUIZ_QUESTION_COUNT = 10
SOCIAL_NETWORKS = ("instagram", "facebook")

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_SEPARATORS_RE = re.compile(r"[\s.\-()]")
_FRENCH_PHONE_RE = re.compile(r"^(\+33[1-9][0-9]{8}|0[1-9][0-9]{8})$")
_NAME_RE = re.compile(r"^[a-zA-ZÀ-ÿ\s\-']+$")
_NAME_LETTER_RE = re.compile(r"[a-zA-ZÀ-ÿ]")
_FINGERPRINT_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
_PRIZE_CODE_RE = re.compile(r"^[A-Z0-9]{6,10}$")
_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

SENSITIVE_FIELDS = frozenset(
    {
        "email",
        "phone",
        "password",
        "adminPassword",
        "access_token",
        "accessToken",
        "token",
        "authorization",
        "apikey",
    }
)
REDACTED = "[REDACTED]"


def is_valid_email(email: Any) -> bool:
    if not isinstance(email, str):
        return False
    trimmed = email.strip()
    return bool(_EMAIL_RE.match(trimmed)) and len(trimmed) <= 100


def normalize_phone(phone: str) -> str:
    """Strip the separators people type between French phone digit pairs."""
    return _PHONE_SEPARATORS_RE.sub("", phone or "")


def is_valid_phone(phone: Any) -> bool:
    """Accept 0X XX XX XX XX or +33 X XX XX XX XX, separators ignored."""
    if not isinstance(phone, str):
        return False
    return bool(_FRENCH_PHONE_RE.match(normalize_phone(phone)))


def is_valid_name(name: Any) -> bool:
    if not name or not isinstance(name, str):
        return False
    trimmed = name.strip()
    if not 1 <= len(trimmed) <= 50:
        return False
    if not _NAME_RE.match(trimmed):
        return False
    # "--" or "''" alone is not a name
    return bool(_NAME_LETTER_RE.search(trimmed))


def is_valid_fingerprint(fingerprint: Any) -> bool:
    if not fingerprint or not isinstance(fingerprint, str):
        return False
    return 5 <= len(fingerprint) <= 50 and bool(_FINGERPRINT_RE.match(fingerprint))


def normalize_prize_code(code: str) -> str:
    return code.strip().upper()


def is_valid_prize_code(code: Any) -> bool:
    if not code or not isinstance(code, str):
        return False
    return bool(_PRIZE_CODE_RE.match(normalize_prize_code(code)))


def is_valid_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(_UUID_RE.match(value))


def normalize_answer(answer: Any) -> str:
    if not isinstance(answer, str):
        return ""
    return answer.strip().upper()


def is_valid_answer(answer: Any) -> bool:
    return normalize_answer(answer) in ANSWER_LETTERS


def is_valid_question_index(index: Any) -> bool:
    # bool is an int subclass; True must not mean question 1
    if isinstance(index, bool) or not isinstance(index, int):
        return False
    return 0 <= index < QUIZ_QUESTION_COUNT


def is_valid_url(url: Any) -> bool:
    if not isinstance(url, str) or len(url) > 2000:
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def is_valid_network(network: Any) -> bool:
    return network in SOCIAL_NETWORKS


def sanitize_for_log(payload: dict) -> dict:
    """Return a shallow copy of `payload` with PII and secrets redacted."""
    return {
        key: (REDACTED if key in SENSITIVE_FIELDS else value)
        for key, value in (payload or {}).items()
    }


def sanitize_for_log_deep(value: Any) -> Any:
    """Recursive variant of sanitize_for_log for nested payloads."""
    if isinstance(value, list):
        return [sanitize_for_log_deep(item) for item in value]
    if isinstance(value, dict):
        return {
            key: (REDACTED if key in SENSITIVE_FIELDS else sanitize_for_log_deep(item))
            for key, item in value.items()
        }
    return value
