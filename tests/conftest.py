import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  registers the tables on Base.metadata
from config import Settings, get_settings
from database import Base, get_db
from main import app


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", cleanup_token=None)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory, settings):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_room(client):
    """Create a room; returns (code, host_key, room json)."""
    def _make_room(**game_settings):
        body = {"title": "Test Party"}
        if game_settings:
            body["settings"] = game_settings
        response = client.post("/api/rooms", json=body)
        assert response.status_code == 201, response.text
        data = response.json()
        return data["room"]["room_code"], data["host_key"], data["room"]
    return _make_room


@pytest.fixture
def join_player(client):
    """Join a room; returns the player json."""
    def _join(code, name="Player", client_uuid=None):
        response = client.post(
            f"/api/rooms/{code}/join",
            json={"client_uuid": client_uuid or str(uuid.uuid4()), "display_name": name},
        )
        assert response.status_code == 200, response.text
        return response.json()
    return _join


@pytest.fixture
def advance(client):
    """Advance a room and return the new game_state json."""
    def _advance(code, host_key, **expected):
        response = client.post(f"/api/rooms/{code}/advance", json={"host_key": host_key, **expected})
        assert response.status_code == 200, response.text
        return response.json()["room"]["game_state"]
    return _advance


@pytest.fixture
def current_question(client):
    def _question(code, round_number=1, question_number=1):
        response = client.get(f"/api/rooms/{code}/questions/{round_number}/{question_number}")
        assert response.status_code == 200, response.text
        return response.json()
    return _question
