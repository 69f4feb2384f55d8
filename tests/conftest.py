"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from split_engine.distributor import TransactionDistributor
from split_engine.models import Recipient
from split_engine.publishers import InMemoryPublisher
from split_engine.registry import RecipientRegistry
from split_engine.rules import RuleStore
from split_engine.store import InMemorySplitStore

OWNER_ID = "merchant-001"
OTHER_OWNER_ID = "merchant-002"


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def owner_id() -> str:
    return OWNER_ID


@pytest.fixture
def other_owner_id() -> str:
    return OTHER_OWNER_ID


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store() -> InMemorySplitStore:
    return InMemorySplitStore()


@pytest.fixture
def registry(store: InMemorySplitStore, clock: FakeClock) -> RecipientRegistry:
    return RecipientRegistry(store, clock=clock)


@pytest.fixture
def rule_store(store: InMemorySplitStore, clock: FakeClock) -> RuleStore:
    return RuleStore(store, clock=clock)


@pytest.fixture
def publisher() -> InMemoryPublisher:
    return InMemoryPublisher()


@pytest.fixture
def distributor(
    store: InMemorySplitStore, publisher: InMemoryPublisher, clock: FakeClock
) -> TransactionDistributor:
    return TransactionDistributor(store, publisher, clock=clock)


@pytest.fixture
def individual_payload() -> dict[str, Any]:
    """Valid payload for an individual recipient."""
    return {
        "name": "Ana Souza",
        "email": "ana@example.com",
        "person_type": "individual",
        "tax_id": "123.456.789-09",
        "payout_destination": {"pix_key": "12345678909", "key_type": "cpf"},
    }


@pytest.fixture
def business_payload() -> dict[str, Any]:
    """Valid payload for a business recipient."""
    return {
        "name": "Loja Azul Ltda",
        "person_type": "business",
        "tax_id": "12.345.678/0001-95",
        "payout_destination": {"pix_key": "financeiro@lojaazul.com.br", "key_type": "email"},
    }


@pytest.fixture
def make_recipient(
    registry: RecipientRegistry, individual_payload: dict[str, Any]
) -> Callable[..., Recipient]:
    """Factory creating active individual recipients for an owner."""

    def _make(owner: str = OWNER_ID, **overrides: Any) -> Recipient:
        return registry.create(owner, {**individual_payload, **overrides})

    return _make


@pytest.fixture
def recipient_a(make_recipient: Callable[..., Recipient]) -> Recipient:
    return make_recipient(name="Recipient A")


@pytest.fixture
def recipient_b(make_recipient: Callable[..., Recipient]) -> Recipient:
    return make_recipient(name="Recipient B")
