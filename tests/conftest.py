"""Shared pytest fixtures for the card tracker API tests."""

from __future__ import annotations

import importlib
import sys
import threading
from contextlib import suppress
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlmodel import create_engine

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tracker_web.config import Settings, get_settings  # noqa: E402
from tracker_web.rate_limit import RateLimiter  # noqa: E402
from tracker_web.services.recognition import RecognitionClient  # noqa: E402


class FakeRecognitionClient(RecognitionClient):
    """Recognition client that records provider calls instead of making them."""

    def __init__(self, response: dict[str, Any] | None = None, settings: Settings | None = None):
        settings = settings or get_settings()
        super().__init__(settings.model_copy(update={"anthropic_api_key": "test-api-key"}))
        self.calls: list[dict[str, Any]] = []
        self.response = response or {
            "id": "msg_test",
            "type": "message",
            "role": "assistant",
            "content": [{"type": "text", "text": "Lewis Hamilton, Base"}],
            "stop_reason": "end_turn",
        }
        self.error: Exception | None = None

    async def create(self, params: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(params)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture()
def app_environment(monkeypatch, tmp_path):
    """Configure isolated settings and database for each test."""

    db_path = tmp_path / "tracker.db"
    db_url = f"sqlite:///{db_path}"

    monkeypatch.setenv("TRACKER_DATABASE_URL", db_url)
    monkeypatch.setenv("JWT_SECRET", "test-secret-key")
    monkeypatch.setenv("FRONTEND_URL", "http://frontend.test")
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

    from tracker_web import config, database

    config.get_settings.cache_clear()

    with suppress(Exception):
        database.engine.dispose()

    engine = create_engine(db_url, echo=False, connect_args={"check_same_thread": False})
    monkeypatch.setattr(database, "engine", engine)
    monkeypatch.setattr(database, "DATABASE_URL", db_url)
    monkeypatch.setattr(database, "USING_SQLITE", True)
    monkeypatch.setattr(database, "DATABASE_WRITE_LOCK", threading.RLock())
    monkeypatch.setattr(database, "_ASYNC_LOCKS", database.WeakKeyDictionary())
    database.init_db()

    password_hasher = lambda password: f"hashed:{password}"
    password_verifier = lambda plain, hashed: hashed == f"hashed:{plain}"
    monkeypatch.setattr("tracker_web.auth.get_password_hash", password_hasher)
    monkeypatch.setattr("tracker_web.auth.verify_password", password_verifier)
    monkeypatch.setattr("tracker_web.routes.auth.get_password_hash", password_hasher)

    importlib.invalidate_caches()
    server_module = sys.modules.get("server") or importlib.import_module("server")

    yield server_module

    config.get_settings.cache_clear()
    engine.dispose()


@pytest.fixture()
def recognition_client(app_environment):
    return FakeRecognitionClient()


@pytest.fixture()
def app(app_environment, recognition_client):
    from tracker_web.config import get_settings

    return app_environment.create_app(
        settings=get_settings(),
        rate_limiter=RateLimiter(max_requests=10_000, window_seconds=60),
        recognition_client=recognition_client,
    )


@pytest.fixture()
def api_client(app):
    """Return a FastAPI test client bound to the isolated application."""

    with TestClient(app) as client:
        yield client


@pytest.fixture()
def auth_user(api_client):
    """Register a user and return ``(user_id, headers)``."""

    response = api_client.post(
        "/api/auth/signup",
        json={"email": "max@example.com", "password": "verstappen", "confirmPassword": "verstappen"},
    )
    assert response.status_code == 200, response.text
    payload = response.json()
    headers = {"Authorization": f"Bearer {payload['token']}"}
    return payload["userId"], headers
