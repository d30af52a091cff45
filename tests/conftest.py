"""Shared fixtures: an in-memory SQLite app seeded with questions, stock and a menu."""

import pytest

from app import create_app
from extensions import db
from models import CartePublic, QuizParticipation, QuizQuestion, SecretMenu
from store import SqlStore

ADMIN_PASSWORD = "secret"
SECRET_CODE = "CREPE42"
CORRECT_ANSWER = "A"
WRONG_ANSWER = "B"


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def store():
    return SqlStore()


@pytest.fixture
def app(store):
    app = create_app(
        {
            "TESTING": True,
            "USE_SUPABASE": False,
            "DATABASE_URL": None,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "ADMIN_PASSWORD": ADMIN_PASSWORD,
            "HEALTHCHECK_SECRET": None,
            "SECURITY_TOKEN_SECRET": "",
            "RESEND_API_KEY": None,
            "HEALTH_REPORT_RECIPIENT": None,
            "PUBLIC_SITE_URL": "https://creperie.example",
            "QUIZ_STORE": store,
        }
    )
    with app.app_context():
        _seed(store)
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _seed(store):
    for index in range(12):
        db.session.add(_question(f"Question locale {index}", "local"))
    for index in range(3):
        db.session.add(_question(f"Question cuisine {index}", "food"))
    db.session.add(
        SecretMenu(
            menu_name="Menu Secret",
            secret_code=SECRET_CODE,
            week_start=None,
            galette_special="Galette du Pêcheur",
            crepe_special="Crêpe Caramel Beurre Salé",
            galette_items=[],
            crepe_items=[],
            is_active=True,
        )
    )
    db.session.add(
        CartePublic(
            galette_items=[{"name": "Complète", "description": "", "price": "9.50"}],
            crepe_items=[{"name": "Sucre", "description": "", "price": "4.00"}],
            is_active=True,
        )
    )
    db.session.commit()
    store.ensure_weekly_stock()


def _question(text, category):
    return QuizQuestion(
        question=text,
        option_a="Bonne réponse",
        option_b="Mauvaise réponse",
        option_c="Autre",
        option_d="Encore une autre",
        correct_answer=CORRECT_ANSWER,
        category=category,
        is_active=True,
    )


# ============================================================================
# QUIZ HELPERS
# ============================================================================

class QuizPlayer:
    """Drives the HTTP quiz flow for one device."""

    def __init__(self, client, fingerprint="abcde12345", phone="06 12 34 56 78", email="marie@example.fr"):
        self.client = client
        self.fingerprint = fingerprint
        self.phone = phone
        self.email = email
        self.session_id = None

    def start(self):
        response = self.client.post(
            "/api/quiz-session",
            json={"action": "start", "deviceFingerprint": self.fingerprint},
        )
        if response.status_code == 200:
            self.session_id = response.get_json()["session"]["id"]
        return response

    def answer(self, index, letter):
        return self.client.post(
            "/api/quiz-session",
            json={
                "action": "answer",
                "deviceFingerprint": self.fingerprint,
                "sessionId": self.session_id,
                "questionIndex": index,
                "answer": letter,
            },
        )

    def answer_all(self, correct=10):
        for index in range(10):
            letter = CORRECT_ANSWER if index < correct else WRONG_ANSWER
            response = self.answer(index, letter)
            assert response.status_code == 200, response.get_json()

    def submit(self, **overrides):
        body = {
            "sessionId": self.session_id,
            "deviceFingerprint": self.fingerprint,
            "firstName": "Marie",
            "email": self.email,
            "phone": self.phone,
            "rgpdConsent": True,
        }
        body.update(overrides)
        return self.client.post("/api/quiz-submit", json=body)

    def play(self, correct=10):
        assert self.start().status_code == 200
        self.answer_all(correct)
        return self.submit()


@pytest.fixture
def player(client):
    return QuizPlayer(client)


@pytest.fixture
def make_player(client):
    def factory(**kwargs):
        return QuizPlayer(client, **kwargs)

    return factory


@pytest.fixture
def admin(client):
    def call(action, **payload):
        body = {"action": action, "adminPassword": ADMIN_PASSWORD}
        body.update(payload)
        return client.post("/api/admin-scan", json=body)

    return call


@pytest.fixture
def participations(app):
    def fetch():
        return QuizParticipation.query.all()

    return fetch
