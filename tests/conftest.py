"""Shared fixtures: in-memory SQLite, fake AI providers and seeded rows."""

import os
from datetime import datetime, timedelta

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AI_REPLY_DELAY_SECONDS"] = "0"
for _key in ("OPENAI_API_KEY", "GROQ_API_KEY", "GOOGLE_AI_API_KEY", "SUPABASE_URL", "SUPABASE_SERVICE_KEY"):
    os.environ.pop(_key, None)

import pytest
from fastapi.testclient import TestClient

from launchpad.api.ai.gateway import AIGateway, get_gateway
from launchpad.api.ai.providers import BaseProvider, Completion
from launchpad.config import Settings, get_settings
from launchpad.database import crud
from launchpad.database.database import ENGINE, Base, db_session
from launchpad.notifications.realtime import RealtimeHub

import launchpad.database.models  # noqa: F401

get_settings.cache_clear()


class FakeProvider(BaseProvider):
    """Scripted provider: returns queued replies in order, then ``default``."""

    def __init__(self, name, replies=None, error=None, default="ok"):
        super().__init__("test-key", f"{name}-test-model")
        self.name = name
        self.replies = list(replies or [])
        self.error = error
        self.default = default
        self.calls = []

    async def complete(self, call):
        self.calls.append(call)
        if self.error is not None:
            raise self.error
        content = self.replies.pop(0) if self.replies else self.default
        return Completion(content=content, model=self.model, tokens=42)

    async def list_models(self):
        return ["llama3-8b-8192", "mixtral-8x7b-32768"]


def make_gateway(**providers):
    fakes = {name: FakeProvider(name) for name in ("openai", "groq", "gemini")}
    fakes.update(providers)
    return AIGateway(settings=Settings(), providers=fakes)


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(ENGINE)
    Base.metadata.create_all(ENGINE)
    yield
    Base.metadata.drop_all(ENGINE)


@pytest.fixture()
def hub():
    return RealtimeHub()


@pytest.fixture()
def gateway():
    return make_gateway()


@pytest.fixture()
def founder():
    with db_session() as db:
        return crud.create_profile(db, "founder-1", "Fiona Founder", "founder")


@pytest.fixture()
def investor():
    with db_session() as db:
        return crud.create_profile(db, "investor-1", "Ivan Investor", "investor")


@pytest.fixture()
def startup(founder):
    with db_session() as db:
        return crud.create_startup(
            db,
            founder_id=founder.user_id,
            name="Foo",
            tagline="Payments for small shops",
            description="Point of sale in a phone",
            funding_ask=100000,
            equity_offered=10,
            current_valuation=1000000,
            status="active",
        )


@pytest.fixture()
def pitch_session(startup):
    now = datetime.utcnow()
    with db_session() as db:
        return crud.create_pitch_session(
            db,
            startup_id=startup.id,
            session_name="Seed pitch",
            start_time=now,
            end_time=now + timedelta(hours=1),
            status="active",
            kind="pitch",
        )


@pytest.fixture()
def client(monkeypatch, gateway):
    """TestClient whose bearer token is taken as the user id."""
    from launchpad.main import app

    monkeypatch.setattr("launchpad.api.auth.authenticate_token", lambda token: token)
    monkeypatch.setattr("launchpad.messaging.bridge.notify_founder", lambda event_id: None)
    app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def auth(user_id):
    return {"Authorization": f"Bearer {user_id}"}
