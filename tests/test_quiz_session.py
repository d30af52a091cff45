"""
Tests for the quiz-session endpoint.

Tests cover:
- Starting a session draws 8 local + 2 food questions without answers
- Idempotent restart for an open session
- Answer validation never mutating the session
- Strict answer ordering and duplicate answers
- Expiry, reset and the weekly winner lockout
"""

from datetime import datetime, timedelta, timezone

from extensions import db
from models import QuizQuestion, QuizSession


# ============================================================================
# START
# ============================================================================

def test_start_draws_ten_public_questions(player):
    response = player.start()

    assert response.status_code == 200
    payload = response.get_json()
    questions = payload["questions"]
    assert len(questions) == 10
    assert all("correct_answer" not in question for question in questions)
    assert [q["id"] for q in questions] == payload["session"]["question_ids"]

    categories = [db.session.get(QuizQuestion, q["id"]).category for q in questions]
    assert categories.count("local") == 8
    assert categories.count("food") == 2


def test_start_twice_returns_same_session(player):
    first = player.start().get_json()
    second = player.start().get_json()

    assert first["session"]["id"] == second["session"]["id"]
    assert QuizSession.query.count() == 1


def test_restart_keeps_answer_progress(player):
    player.start()
    player.answer(0, "A")

    resumed = player.start().get_json()["session"]
    assert resumed["current_question"] == 1
    assert len(resumed["answers"]) == 1


def test_start_rejects_bad_fingerprint(client):
    response = client.post("/api/quiz-session", json={"action": "start", "deviceFingerprint": "ab"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_fingerprint"
    assert QuizSession.query.count() == 0


def test_unknown_action(client):
    response = client.post("/api/quiz-session", json={"action": "skip", "deviceFingerprint": "abcde12345"})

    assert response.status_code == 400
    assert response.get_json() == {"error": "invalid_action", "message": "Action non reconnue"}


def test_not_enough_questions(player):
    QuizQuestion.query.filter_by(category="food").update({"is_active": False})
    db.session.commit()

    response = player.start()
    assert response.status_code == 400
    assert response.get_json()["error"] == "not_enough_questions"


def test_invalid_json_body(client):
    response = client.post("/api/quiz-session", data="not json", content_type="application/json")

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_json"


# ============================================================================
# ANSWER
# ============================================================================

def test_answer_reports_correctness(player):
    player.start()

    right = player.answer(0, "a").get_json()
    wrong = player.answer(1, "C").get_json()

    assert right == {"isCorrect": True, "correctAnswer": "A"}
    assert wrong == {"isCorrect": False, "correctAnswer": "A"}


def test_answer_extends_expiry(player):
    player.start()
    before = QuizSession.query.one().expires_at

    player.answer(0, "A")
    db.session.expire_all()
    session = QuizSession.query.one()
    assert session.current_question == 1
    assert session.expires_at != before


def test_invalid_answers_never_mutate(player):
    player.start()

    for index, letter in [(-1, "A"), (10, "A"), (0, "E"), (0, ""), (True, "A"), ("0", "A")]:
        response = player.answer(index, letter)
        assert response.status_code == 400
        assert response.get_json()["error"] in {"invalid_answer", "invalid_question"}

    db.session.expire_all()
    session = QuizSession.query.one()
    assert session.answers == []
    assert session.current_question == 0


def test_answer_out_of_order(player):
    player.start()

    response = player.answer(2, "A")
    assert response.status_code == 400
    assert response.get_json()["error"] == "out_of_order"


def test_answer_twice_is_out_of_order(player):
    player.start()
    player.answer(0, "A")

    response = player.answer(0, "A")
    assert response.status_code == 400
    assert response.get_json()["error"] == "out_of_order"


def test_answer_unknown_session(player):
    player.start()
    player.session_id = "00000000-0000-4000-8000-000000000000"

    response = player.answer(0, "A")
    assert response.get_json()["error"] == "invalid_session"


def test_answer_non_uuid_session(player):
    player.start()
    player.session_id = "not-a-uuid"

    response = player.answer(0, "A")
    assert response.get_json()["error"] == "invalid_session"


def test_answer_other_device_cannot_use_session(player, make_player):
    player.start()
    intruder = make_player(fingerprint="zzzzz99999")
    intruder.session_id = player.session_id

    response = intruder.answer(0, "A")
    assert response.get_json()["error"] == "invalid_session"


def test_expired_session(player):
    player.start()
    session = QuizSession.query.one()
    session.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    db.session.commit()

    response = player.answer(0, "A")
    assert response.status_code == 400
    assert response.get_json()["error"] == "session_expired"


def test_expired_session_is_not_resumed(player):
    first_id = player.start().get_json()["session"]["id"]
    session = QuizSession.query.one()
    session.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    db.session.commit()

    second_id = player.start().get_json()["session"]["id"]
    assert second_id != first_id


# ============================================================================
# RESET
# ============================================================================

def test_reset_completes_open_sessions(player, client):
    first_id = player.start().get_json()["session"]["id"]

    response = client.post("/api/quiz-session", json={"action": "reset", "deviceFingerprint": player.fingerprint})
    assert response.get_json() == {"success": True}

    second_id = player.start().get_json()["session"]["id"]
    assert second_id != first_id


def test_start_after_weekly_win(player):
    assert player.play(correct=10).get_json()["prizeWon"] == "Formule Complète"

    response = player.start()
    assert response.status_code == 400
    assert response.get_json()["error"] == "already_won"
    assert QuizSession.query.count() == 1
