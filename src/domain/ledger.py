from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum
from typing import Any, NewType, assert_never

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

LedgerEventId = NewType("LedgerEventId", str)
AssetId = NewType("AssetId", str)
LotId = NewType("LotId", str)

DECIMAL_FIELDS = (
    "amount",
    "proceeds",
    "cost_basis",
    "fee",
    "price_per_unit",
    "fmv_total",
    "fmv_per_unit",
    "fee_amount",
)


class EventType(StrEnum):
    BUY = "BUY"
    SELL = "SELL"
    SWAP_IN = "SWAP_IN"
    SWAP_OUT = "SWAP_OUT"
    REWARD = "REWARD"
    STAKING_REWARD = "STAKING_REWARD"
    AIRDROP = "AIRDROP"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"
    FEE = "FEE"


REWARD_TYPES = frozenset({EventType.REWARD, EventType.STAKING_REWARD, EventType.AIRDROP})


class EventClass(StrEnum):
    ACQUISITION = "ACQUISITION"
    DISPOSAL = "DISPOSAL"
    NEUTRAL = "NEUTRAL"


class TransferPolicy(StrEnum):
    """How TRANSFER_IN / TRANSFER_OUT events affect lots.

    TAXABLE: inbound transfers open a lot, outbound transfers are disposals.
    CUSTODY: transfers are custody moves between own wallets and are ignored.
    """

    TAXABLE = "TAXABLE"
    CUSTODY = "CUSTODY"


def classify(event_type: EventType, transfer_policy: TransferPolicy = TransferPolicy.TAXABLE) -> EventClass:
    match event_type:
        case EventType.BUY | EventType.SWAP_IN | EventType.REWARD | EventType.STAKING_REWARD | EventType.AIRDROP:
            return EventClass.ACQUISITION
        case EventType.SELL | EventType.SWAP_OUT | EventType.FEE:
            return EventClass.DISPOSAL
        case EventType.TRANSFER_IN:
            return EventClass.ACQUISITION if transfer_policy == TransferPolicy.TAXABLE else EventClass.NEUTRAL
        case EventType.TRANSFER_OUT:
            return EventClass.DISPOSAL if transfer_policy == TransferPolicy.TAXABLE else EventClass.NEUTRAL
        case _:
            assert_never(event_type)


class LedgerEvent(BaseModel):
    """Immutable ledger fact. All money fields are in the base currency.

    Amount sign convention: acquisitions carry a non-negative amount, disposals
    may be recorded with either sign and are matched on the absolute value.
    """

    model_config = ConfigDict(frozen=True)

    id: LedgerEventId
    event_type: EventType
    asset_id: AssetId
    timestamp: datetime
    amount: Decimal

    proceeds: Decimal | None = None
    cost_basis: Decimal | None = None
    fee: Decimal | None = None
    price_per_unit: Decimal | None = None
    fmv_total: Decimal | None = None
    fmv_per_unit: Decimal | None = None

    fee_asset_id: AssetId | None = None
    fee_amount: Decimal | None = None

    supersedes_id: LedgerEventId | None = None
    is_deleted: bool = False
    swap_id: str | None = None

    @field_validator(*DECIMAL_FIELDS, mode="before")
    @classmethod
    def _reject_float(cls, value: Any) -> Any:
        # Money never passes through binary floating point.
        if isinstance(value, float):
            raise ValueError("float values are not accepted, use a decimal string")
        return value

    @field_validator("timestamp")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @model_validator(mode="after")
    def _validate_fields(self) -> LedgerEvent:
        if not self.id:
            raise ValueError("LedgerEvent.id must be non-empty")
        if not self.asset_id:
            raise ValueError("LedgerEvent.asset_id must be non-empty")
        if self.fee_asset_id is not None:
            if self.fee_amount is None:
                raise ValueError("fee_missing_amount")
            if self.fee is None:
                raise ValueError("fee_missing_value_base")
        return self

    @property
    def quantity(self) -> Decimal:
        return abs(self.amount)

    @property
    def fee_base(self) -> Decimal:
        return self.fee if self.fee is not None else Decimal(0)

    @property
    def tax_year(self) -> int:
        return self.timestamp.year


class Lot(BaseModel):
    lot_id: LotId
    asset_id: AssetId
    acquired_at: datetime
    amount_remaining: Decimal
    cost_basis_remaining: Decimal
    origin_event_id: LedgerEventId

    @model_validator(mode="after")
    def _validate_fields(self) -> Lot:
        if self.amount_remaining < 0:
            raise ValueError("amount_remaining must be >= 0")
        if self.cost_basis_remaining < 0:
            raise ValueError("cost_basis_remaining must be >= 0")
        return self


class LotMatch(BaseModel):
    lot_id: LotId
    amount: Decimal
    cost_basis: Decimal


class Disposal(BaseModel):
    """Realized disposal. ``amount`` is what was matched against open lots;
    ``unmatched_amount`` is the part of ``amount_requested`` no lot covered."""

    model_config = ConfigDict(frozen=True)

    event_id: LedgerEventId
    asset_id: AssetId
    disposed_at: datetime
    amount: Decimal
    amount_requested: Decimal
    unmatched_amount: Decimal = Decimal(0)
    proceeds_base: Decimal
    cost_basis_base: Decimal
    fee_base: Decimal
    realized_gain_base: Decimal
    lots_matched: list[LotMatch] = Field(default_factory=list)
    tax_year: int


class Position(BaseModel):
    asset_id: AssetId
    amount: Decimal
    cost_basis_base: Decimal
    avg_cost_base: Decimal
    value_base: Decimal | None = None
    unrealized_pnl_base: Decimal | None = None
    unrealized_pnl_pct: Decimal | None = None
