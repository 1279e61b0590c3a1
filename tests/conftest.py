"""Shared fixtures: import paths, fake collaborators and the storefront app."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

_root = Path(__file__).resolve().parents[1]
_svc = _root / "services" / "storefront-service"
sys.path.insert(0, str(_root))
sys.path.insert(0, str(_svc))

from packages.delivery.config import DeliveryConfig  # noqa: E402

from fakes import FakePayments, FakeRecordStore, FakeSms  # noqa: E402

NOW = datetime(2025, 3, 10, 15, 0, tzinfo=timezone.utc)
ADMIN_TOKEN = "test-admin-token"


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def config() -> DeliveryConfig:
    return DeliveryConfig()


@pytest.fixture
def store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def sms() -> FakeSms:
    return FakeSms()


@pytest.fixture
def payments() -> FakePayments:
    return FakePayments()


@pytest.fixture
def app(store, payments, sms, monkeypatch):
    """Storefront app with the store, Stripe and Twilio replaced by fakes."""
    from main import app as storefront_app
    from config import settings
    from dependencies import get_payments, get_record_store, get_sms_sender

    monkeypatch.setattr(settings, "admin_api_token", ADMIN_TOKEN)
    storefront_app.dependency_overrides[get_record_store] = lambda: store
    storefront_app.dependency_overrides[get_payments] = lambda: payments
    storefront_app.dependency_overrides[get_sms_sender] = lambda: sms
    yield storefront_app
    storefront_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
