"""Pytest configuration and fixtures."""

import os

# app.main builds a module level app on import; keep it offline.
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["OPENAI_API_KEY"] = "test-openai-key"

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.db import create_db_engine
from app.dependencies.services import build_services
from app.main import create_app
from app.services.store import RecordStore
from tests.fakes import (
    ADMIN_EMAIL,
    WEBHOOK_SECRET,
    FakeBilling,
    FakeExporter,
    FakeIdentityVerifier,
    FakeLLM,
)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        APP_ENV="test",
        DATABASE_URL="sqlite://",
        SECRET_KEY="test-secret",
        STRIPE_SECRET_KEY="sk_test",
        STRIPE_PRICE_ID="price_test",
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
        ADMIN_EMAILS=ADMIN_EMAIL,
    )


@pytest.fixture
def store():
    record_store = RecordStore(create_db_engine("sqlite://"))
    record_store.create_schema()
    return record_store


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def billing():
    return FakeBilling()


@pytest.fixture
def exporter():
    return FakeExporter()


@pytest.fixture
def identity():
    return FakeIdentityVerifier()


@pytest.fixture
def services(settings, store, identity, llm, billing, exporter):
    return build_services(
        settings,
        store=store,
        identity=identity,
        llm=llm,
        billing=billing,
        exporter=exporter,
    )


@pytest.fixture
def client(services):
    return TestClient(create_app(services=services))
