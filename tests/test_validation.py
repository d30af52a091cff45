"""Tests for input validators and log redaction."""

import pytest

from validation import (
    REDACTED,
    is_valid_email,
    is_valid_fingerprint,
    is_valid_name,
    is_valid_phone,
    is_valid_prize_code,
    is_valid_question_index,
    is_valid_url,
    is_valid_uuid,
    normalize_phone,
    sanitize_for_log,
    sanitize_for_log_deep,
)


@pytest.mark.parametrize(
    "phone, expected",
    [
        ("0612345678", True),
        ("06 12 34 56 78", True),
        ("06.12.34.56.78", True),
        ("+33612345678", True),
        ("+33 6 12 34 56 78", True),
        ("0012345678", False),
        ("061234567", False),
        ("+44612345678", False),
        (612345678, False),
    ],
)
def test_phone(phone, expected):
    assert is_valid_phone(phone) is expected


def test_normalize_phone():
    assert normalize_phone("(06) 12-34.56 78") == "0612345678"


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Marie", True),
        ("Jean-Luc", True),
        ("Anaïs", True),
        ("D'Artagnan", True),
        ("--", False),
        ("R2D2", False),
        ("", False),
        ("a" * 51, False),
    ],
)
def test_name(name, expected):
    assert is_valid_name(name) is expected


@pytest.mark.parametrize(
    "email, expected",
    [
        ("marie@example.fr", True),
        (" marie@example.fr ", True),
        ("marie@example", False),
        ("marie example@x.fr", False),
        ("a" * 96 + "@x.fr", False),
        (None, False),
    ],
)
def test_email(email, expected):
    assert is_valid_email(email) is expected


@pytest.mark.parametrize(
    "fingerprint, expected",
    [("abcde12345", True), ("abc_DEF-9", True), ("abcd", False), ("a" * 51, False), ("abc de", False)],
)
def test_fingerprint(fingerprint, expected):
    assert is_valid_fingerprint(fingerprint) is expected


@pytest.mark.parametrize(
    "code, expected",
    [("ABC123", True), (" abcd2345 ", True), ("ABC12", False), ("ABCDEFGHIJK", False), ("ABC-123", False)],
)
def test_prize_code(code, expected):
    assert is_valid_prize_code(code) is expected


@pytest.mark.parametrize("index, expected", [(0, True), (9, True), (-1, False), (10, False), (True, False), ("1", False)])
def test_question_index(index, expected):
    assert is_valid_question_index(index) is expected


def test_uuid_and_url():
    assert is_valid_uuid("3f2b8c1e-5d4a-4b6f-9a7e-1c2d3e4f5a6b")
    assert not is_valid_uuid("3f2b8c1e5d4a4b6f9a7e1c2d3e4f5a6b")
    assert is_valid_url("https://www.facebook.com/creperie/posts/1")
    assert not is_valid_url("javascript:alert(1)")
    assert not is_valid_url("https://")


def test_sanitize_for_log():
    payload = {"firstName": "Marie", "email": "m@x.fr", "phone": "0612345678", "adminPassword": "secret"}

    assert sanitize_for_log(payload) == {
        "firstName": "Marie",
        "email": REDACTED,
        "phone": REDACTED,
        "adminPassword": REDACTED,
    }
    assert payload["email"] == "m@x.fr"


def test_sanitize_for_log_deep():
    nested = {"rows": [{"email": "m@x.fr", "score": 10}], "token": "abc"}

    assert sanitize_for_log_deep(nested) == {"rows": [{"email": REDACTED, "score": 10}], "token": REDACTED}
