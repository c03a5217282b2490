import time
from typing import Optional

import jwt
import pytest
from fastapi.testclient import TestClient

from pocket_backend.app.config import Settings
from pocket_backend.app.database import Database
from pocket_backend.app.main import create_app
from pocket_backend.app.services.access_control import ServicePrincipal, UserPrincipal
from pocket_backend.app.services.session_repository import SessionRepository

JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256"
SERVICE_KEY = "test-service-key"


def make_settings(**overrides) -> Settings:
    values = dict(
        _env_file=None,
        DATABASE_URL="sqlite://",
        AUTH_JWT_SECRET=JWT_SECRET,
        SERVICE_ROLE_KEY=SERVICE_KEY,
        TAVUS_API_KEY="tavus-test-key",
        TAVUS_PERSONA_TECHNICAL="p-technical",
        TAVUS_PERSONA_BEHAVIORAL="p-behavioral",
        PUBLIC_BASE_URL="https://api.example.test",
        DB_RETRY_DELAY_SECONDS=0,
        LOG_LEVEL="DEBUG",
    )
    values.update(overrides)
    return Settings(**values)


def make_token(user_id: str, secret: str = JWT_SECRET, expires_in: int = 3600, **claims) -> str:
    payload = {"sub": user_id, "aud": "authenticated", "exp": int(time.time()) + expires_in}
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


SERVICE_HEADERS = {"X-Service-Key": SERVICE_KEY}


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def database(settings):
    database = Database(settings)
    database.create_all()
    yield database
    database.engine.dispose()


@pytest.fixture
def db(database):
    session = database.SessionLocal()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def alice():
    return UserPrincipal("user-alice")


@pytest.fixture
def bob():
    return UserPrincipal("user-bob")


@pytest.fixture
def service():
    return ServicePrincipal()


@pytest.fixture
def make_session(db):
    """Фабрика сессий: make_session(user, conversation_id=None, category="technical")."""

    def factory(user: UserPrincipal, conversation_id: Optional[str] = None, category: str = "technical", **kw):
        repo = SessionRepository(db)
        session = repo.create_session(
            user.user_id,
            category,
            kw.get("session_name", "Practice"),
            kw.get("expected_duration_minutes", 30),
            user,
        )
        if conversation_id:
            repo.attach_conversation_id(session.id, conversation_id, user)
        db.commit()
        return session

    return factory


class FakeTavus:
    def __init__(self):
        self.created = []
        self.ended = []
        self.counter = 0

    def create_conversation(self, **kwargs):
        self.counter += 1
        self.created.append(kwargs)
        conversation_id = f"c{self.counter:04d}"
        return conversation_id, f"https://tavus.daily.co/{conversation_id}"

    def end_conversation(self, conversation_id):
        self.ended.append(conversation_id)


@pytest.fixture
def app(settings, database):
    app = create_app(settings, database)
    app.state.tavus_client = FakeTavus()
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client
