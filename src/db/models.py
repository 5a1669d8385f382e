from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class DecimalAsString(TypeDecorator):
    """Stores Decimals as text so amounts never round-trip through float."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value: Decimal | None, dialect: object) -> str | None:
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value: str | None, dialect: object) -> Decimal | None:
        if value is None:
            return None
        return Decimal(value)


class Base(DeclarativeBase):
    pass


class LedgerEventOrm(Base):
    __tablename__ = "ledger_events"

    # Insertion order is the tie-break for events sharing a timestamp.
    sequence: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    event_type: Mapped[str] = mapped_column(String, nullable=False)
    asset_id: Mapped[str] = mapped_column(String, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    amount: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)

    proceeds: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    cost_basis: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    fee: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    price_per_unit: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    fmv_total: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    fmv_per_unit: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    fee_asset_id: Mapped[str | None] = mapped_column(String, nullable=True)
    fee_amount: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)

    supersedes_id: Mapped[str | None] = mapped_column(String, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    swap_id: Mapped[str | None] = mapped_column(String, nullable=True)
