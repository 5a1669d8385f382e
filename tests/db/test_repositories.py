from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from db.repositories import LedgerEventRepository
from domain.ledger import EventType, LedgerEvent
from domain.normalizer import normalize


def _sample_event(event_id: str, timestamp: datetime, **fields: object) -> LedgerEvent:
    return LedgerEvent(
        id=event_id,
        event_type=EventType.BUY,
        asset_id="BTC",
        timestamp=timestamp,
        amount=Decimal("0.1"),
        **fields,
    )


@pytest.fixture()
def repo(test_session: Session) -> LedgerEventRepository:
    return LedgerEventRepository(test_session)


def test_create_and_get_ledger_event(repo: LedgerEventRepository) -> None:
    event = _sample_event(
        "evt-1",
        datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
        cost_basis=Decimal("2000.123456789012345678901234567890"),
        fee=Decimal("1.5"),
        fee_asset_id="EUR",
        fee_amount=Decimal("1.5"),
        swap_id="swap-7",
    )

    created = repo.create(event)
    fetched = repo.get("evt-1")

    assert created == event
    assert fetched == event
    assert fetched is not None
    assert fetched.cost_basis == Decimal("2000.123456789012345678901234567890")
    assert fetched.timestamp.tzinfo == timezone.utc


def test_get_missing_event_returns_none(repo: LedgerEventRepository) -> None:
    assert repo.get("nope") is None


def test_list_keeps_insertion_order_and_deleted_events(repo: LedgerEventRepository) -> None:
    later = _sample_event("later", datetime(2024, 2, 1, tzinfo=timezone.utc))
    earlier = _sample_event("earlier", datetime(2024, 1, 1, tzinfo=timezone.utc))
    deleted = _sample_event("deleted", datetime(2024, 1, 15, tzinfo=timezone.utc), is_deleted=True)
    edit = _sample_event(
        "edit", datetime(2024, 2, 1, tzinfo=timezone.utc), supersedes_id="later", cost_basis=Decimal(10)
    )

    repo.create_many([later, earlier, deleted, edit])
    stored = repo.list()

    assert [event.id for event in stored] == ["later", "earlier", "deleted", "edit"]
    assert stored[2].is_deleted is True
    assert stored[3].supersedes_id == "later"
    assert [event.id for event in normalize(stored)] == ["earlier", "edit"]
