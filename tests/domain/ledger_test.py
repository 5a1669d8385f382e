from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from domain.ledger import EventClass, EventType, LedgerEvent, Lot, TransferPolicy, classify
from tests.constants import BTC, DAY_1, ETH


@pytest.mark.parametrize(
    ("event_type", "expected"),
    [
        (EventType.BUY, EventClass.ACQUISITION),
        (EventType.SWAP_IN, EventClass.ACQUISITION),
        (EventType.REWARD, EventClass.ACQUISITION),
        (EventType.STAKING_REWARD, EventClass.ACQUISITION),
        (EventType.AIRDROP, EventClass.ACQUISITION),
        (EventType.TRANSFER_IN, EventClass.ACQUISITION),
        (EventType.SELL, EventClass.DISPOSAL),
        (EventType.SWAP_OUT, EventClass.DISPOSAL),
        (EventType.FEE, EventClass.DISPOSAL),
        (EventType.TRANSFER_OUT, EventClass.DISPOSAL),
    ],
)
def test_classify_taxable_transfers(event_type: EventType, expected: EventClass) -> None:
    assert classify(event_type) == expected


def test_classify_custody_transfers_are_neutral() -> None:
    assert classify(EventType.TRANSFER_IN, TransferPolicy.CUSTODY) == EventClass.NEUTRAL
    assert classify(EventType.TRANSFER_OUT, TransferPolicy.CUSTODY) == EventClass.NEUTRAL
    # Policy only changes transfers.
    assert classify(EventType.BUY, TransferPolicy.CUSTODY) == EventClass.ACQUISITION
    assert classify(EventType.SELL, TransferPolicy.CUSTODY) == EventClass.DISPOSAL


def test_float_amounts_are_rejected() -> None:
    with pytest.raises(ValidationError, match="float values are not accepted"):
        LedgerEvent(id="e1", event_type=EventType.BUY, asset_id=BTC, timestamp=DAY_1, amount=0.1)

    with pytest.raises(ValidationError, match="float values are not accepted"):
        LedgerEvent(
            id="e1", event_type=EventType.SELL, asset_id=BTC, timestamp=DAY_1, amount=Decimal(1), proceeds=10.5
        )


def test_timestamps_are_converted_to_utc() -> None:
    helsinki = timezone(timedelta(hours=2))
    aware = LedgerEvent(
        id="e1",
        event_type=EventType.BUY,
        asset_id=BTC,
        timestamp=datetime(2025, 1, 1, 1, 0, tzinfo=helsinki),
        amount=Decimal(1),
    )
    naive = LedgerEvent(
        id="e2", event_type=EventType.BUY, asset_id=BTC, timestamp=datetime(2024, 5, 1), amount=Decimal(1)
    )

    assert aware.timestamp == datetime(2024, 12, 31, 23, 0, tzinfo=timezone.utc)
    assert aware.timestamp.tzinfo == timezone.utc
    assert aware.tax_year == 2024
    assert naive.timestamp == datetime(2024, 5, 1, tzinfo=timezone.utc)


def test_fee_asset_requires_amount_and_base_value() -> None:
    with pytest.raises(ValidationError, match="fee_missing_amount"):
        LedgerEvent(
            id="e1", event_type=EventType.SELL, asset_id=BTC, timestamp=DAY_1, amount=Decimal(-1), fee_asset_id=ETH
        )

    with pytest.raises(ValidationError, match="fee_missing_value_base"):
        LedgerEvent(
            id="e1",
            event_type=EventType.SELL,
            asset_id=BTC,
            timestamp=DAY_1,
            amount=Decimal(-1),
            fee_asset_id=ETH,
            fee_amount=Decimal("0.001"),
        )

    event = LedgerEvent(
        id="e1",
        event_type=EventType.SELL,
        asset_id=BTC,
        timestamp=DAY_1,
        amount=Decimal(-1),
        fee_asset_id=ETH,
        fee_amount=Decimal("0.001"),
        fee=Decimal("2.5"),
    )
    assert event.fee_base == Decimal("2.5")


def test_empty_ids_are_rejected() -> None:
    with pytest.raises(ValidationError):
        LedgerEvent(id="", event_type=EventType.BUY, asset_id=BTC, timestamp=DAY_1, amount=Decimal(1))
    with pytest.raises(ValidationError):
        LedgerEvent(id="e1", event_type=EventType.BUY, asset_id="", timestamp=DAY_1, amount=Decimal(1))


def test_quantity_and_fee_defaults() -> None:
    event = LedgerEvent(id="e1", event_type=EventType.SELL, asset_id=BTC, timestamp=DAY_1, amount=Decimal("-1.5"))

    assert event.quantity == Decimal("1.5")
    assert event.fee_base == Decimal(0)


def test_events_are_immutable() -> None:
    event = LedgerEvent(id="e1", event_type=EventType.BUY, asset_id=BTC, timestamp=DAY_1, amount=Decimal(1))

    with pytest.raises(ValidationError):
        event.amount = Decimal(2)


def test_lot_rejects_negative_remaining() -> None:
    with pytest.raises(ValidationError, match="amount_remaining"):
        Lot(
            lot_id="lot_e1",
            asset_id=BTC,
            acquired_at=DAY_1,
            amount_remaining=Decimal(-1),
            cost_basis_remaining=Decimal(0),
            origin_event_id="e1",
        )
