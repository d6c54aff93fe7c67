"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import json
import os
from datetime import datetime
from typing import Any, Callable, Generator

# Settings are read when app.core.db is imported; tests default to SQLite
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_webhook_dispatcher
from app.core.config import Settings
from app.core.db import get_session
from app.main import app
from app.models import (
    FlagType,
    Phlag,
    PhlagApiKey,
    PhlagApiKeyEnvironment,
    PhlagEnvironment,
    PhlagEnvironmentValue,
    PhlagWebhook,
)
from app.models.base import Base
from app.services.repository import Repository
from app.services.webhook_dispatcher import WebhookDispatcher

# Point at PostgreSQL to run the suite against the production backend
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")

PUBLIC_ADDRESS = "93.184.216.34"


@pytest.fixture
def db_engine():
    """Create a fresh schema for every test."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_engine(
            TEST_DATABASE_URL,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(TEST_DATABASE_URL, future=True, pool_pre_ping=True)

    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session bound to the test schema."""
    SessionLocal = sessionmaker(bind=db_engine, autoflush=False, autocommit=False, expire_on_commit=False)
    session = SessionLocal()

    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def repository(db_session: Session) -> Repository:
    return Repository(db_session)


class RecordingEndpoint:
    """httpx.MockTransport handler that records requests and replays queued outcomes.

    Queued items are either ``httpx.Response`` objects or exceptions to
    raise; once the queue is empty every request gets a 200 "ok".
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._outcomes: list[Any] = []

    def queue(self, *outcomes: Any) -> None:
        self._outcomes.extend(outcomes)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self._outcomes.pop(0) if self._outcomes else httpx.Response(200, text="ok")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def payloads(self) -> list[Any]:
        return [json.loads(request.content) for request in self.requests]


@pytest.fixture
def endpoint() -> RecordingEndpoint:
    return RecordingEndpoint()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with no pause between retries."""
    return Settings(webhooks_retry_delay=0)


def public_resolver(host: str) -> list[str]:
    """Resolve every host to a public address so the network guard lets it through."""
    return [PUBLIC_ADDRESS]


@pytest.fixture
def dispatcher(repository: Repository, test_settings: Settings, endpoint: RecordingEndpoint) -> WebhookDispatcher:
    return WebhookDispatcher(
        repository,
        settings=test_settings,
        transport=httpx.MockTransport(endpoint),
        resolver=public_resolver,
    )


@pytest.fixture
def client(db_session: Session, dispatcher: WebhookDispatcher):
    """Create a FastAPI test client with overridden database session and webhook transport."""

    def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_webhook_dispatcher] = lambda: dispatcher

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ----------------------------------------------------------------------
# Entity factories
# ----------------------------------------------------------------------


@pytest.fixture
def make_flag(repository: Repository) -> Callable[..., Phlag]:
    def _make(name: str = "feature", flag_type: FlagType = FlagType.SWITCH, description: str | None = None) -> Phlag:
        return repository.save("Phlag", Phlag(name=name, type=flag_type, description=description))

    return _make


@pytest.fixture
def make_environment(repository: Repository) -> Callable[..., PhlagEnvironment]:
    def _make(name: str = "production", sort_order: int = 0) -> PhlagEnvironment:
        return repository.save("PhlagEnvironment", PhlagEnvironment(name=name, sort_order=sort_order))

    return _make


@pytest.fixture
def set_value(repository: Repository) -> Callable[..., PhlagEnvironmentValue]:
    def _set(
        flag: Phlag,
        environment: PhlagEnvironment,
        value: str | None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> PhlagEnvironmentValue:
        return repository.save(
            "PhlagEnvironmentValue",
            PhlagEnvironmentValue(
                flag_id=flag.id,
                environment_id=environment.id,
                value=value,
                start_datetime=start,
                end_datetime=end,
            ),
        )

    return _set


@pytest.fixture
def make_webhook(repository: Repository) -> Callable[..., PhlagWebhook]:
    def _make(
        name: str = "hook",
        url: str = "https://hooks.example.com/phlag",
        event_types: list[str] | None = None,
        is_active: bool = True,
        include_environment_changes: bool = False,
        headers: dict[str, str] | None = None,
        payload_template: str | None = None,
    ) -> PhlagWebhook:
        webhook = PhlagWebhook(
            name=name,
            url=url,
            is_active=is_active,
            event_types_json=json.dumps(event_types if event_types is not None else ["created", "updated", "deleted"]),
            include_environment_changes=include_environment_changes,
            headers_json=json.dumps(headers) if headers is not None else None,
            payload_template=payload_template,
        )
        return repository.save("PhlagWebhook", webhook)

    return _make


@pytest.fixture
def make_api_key(repository: Repository) -> Callable[..., PhlagApiKey]:
    def _make(
        token: str = "a" * 64,
        description: str = "consumer",
        environments: list[PhlagEnvironment] | None = None,
    ) -> PhlagApiKey:
        api_key = repository.save("PhlagApiKey", PhlagApiKey(description=description, api_key=token))
        for environment in environments or []:
            repository.save(
                "PhlagApiKeyEnvironment",
                PhlagApiKeyEnvironment(api_key_id=api_key.id, environment_id=environment.id),
            )
        return api_key

    return _make
