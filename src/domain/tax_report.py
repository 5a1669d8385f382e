from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal, localcontext
from typing import Callable, Iterable

from pydantic import BaseModel, Field

from .arithmetic import ACCOUNTING_CONTEXT
from .errors import LedgerValidationError
from .inventory import LotAccountingReplayer, reward_fmv_total
from .ledger import REWARD_TYPES, AssetId, Disposal, EventType, LedgerEvent, LedgerEventId
from .normalizer import RawEvent, normalize
from .settings import LotMethod, RewardsCostBasisMode, Settings, TaxProfile, resolve_lot_method

logger = logging.getLogger(__name__)


class TaxIncomeRow(BaseModel):
    """Reward or airdrop income. ``income_base`` is 0 in ZERO mode."""

    event_id: LedgerEventId
    asset_id: AssetId
    timestamp: datetime
    amount: Decimal
    income_base: Decimal
    fmv_total_base: Decimal | None = None
    event_type: EventType


class TaxHoldingRow(BaseModel):
    asset_id: AssetId
    amount: Decimal
    cost_basis_base: Decimal


class TaxYearTotals(BaseModel):
    proceeds_base: Decimal
    cost_basis_base: Decimal
    fees_base: Decimal
    realized_gain_base: Decimal
    income_base: Decimal


MIN_TAX_YEAR = 2000
MAX_TAX_YEAR = 2100


class TaxYearReport(BaseModel):
    year: int = Field(ge=MIN_TAX_YEAR, le=MAX_TAX_YEAR)
    base_currency: str
    tax_profile: TaxProfile
    lot_method_used: LotMethod
    generated_at: datetime
    disposals: list[Disposal]
    income: list[TaxIncomeRow]
    year_end_holdings: list[TaxHoldingRow]
    totals: TaxYearTotals
    warnings: list[str]


def end_of_tax_year(year: int) -> datetime:
    """Inclusive last instant of the calendar year in UTC."""
    return datetime(year, 12, 31, 23, 59, 59, 999000, tzinfo=timezone.utc)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TaxYearReportBuilder:
    """Build a tax-year report from two independent replay passes.

    The full-history pass yields the year's disposals; a pass truncated at the
    end of the year yields the year-end holdings.
    """

    def __init__(self, settings: Settings, *, clock: Callable[[], datetime] = _utc_now) -> None:
        self._settings = settings
        self._clock = clock

    def build(
        self,
        events: Iterable[RawEvent],
        year: int,
        *,
        lot_method_override: LotMethod | None = None,
    ) -> TaxYearReport:
        if not MIN_TAX_YEAR <= year <= MAX_TAX_YEAR:
            raise LedgerValidationError(f"tax year {year} outside {MIN_TAX_YEAR}..{MAX_TAX_YEAR}")

        active = normalize(events)
        lot_method = resolve_lot_method(self._settings, lot_method_override)
        replayer = LotAccountingReplayer(self._settings, lot_method=lot_method)

        full_history = replayer.replay(active)
        disposals = [disposal for disposal in full_history.disposals if disposal.tax_year == year]
        warnings = list(full_history.warnings)
        income = self._income_rows(active, year, warnings)

        cutoff = end_of_tax_year(year)
        year_end = replayer.replay([event for event in active if event.timestamp <= cutoff])
        holdings = [
            TaxHoldingRow(asset_id=position.asset_id, amount=position.amount, cost_basis_base=position.cost_basis_base)
            for position in year_end.positions
        ]

        logger.info(
            "Tax year %d (%s): %d disposals, %d income rows, %d holdings, %d warnings",
            year,
            lot_method,
            len(disposals),
            len(income),
            len(holdings),
            len(warnings),
        )
        return TaxYearReport(
            year=year,
            base_currency=self._settings.base_currency,
            tax_profile=self._settings.tax_profile,
            lot_method_used=lot_method,
            generated_at=self._clock(),
            disposals=disposals,
            income=income,
            year_end_holdings=holdings,
            totals=self._totals(disposals, income),
            warnings=warnings,
        )

    def _income_rows(self, events: Iterable[LedgerEvent], year: int, warnings: list[str]) -> list[TaxIncomeRow]:
        rows: list[TaxIncomeRow] = []
        with localcontext(ACCOUNTING_CONTEXT):
            for event in events:
                if event.event_type not in REWARD_TYPES or event.tax_year != year:
                    continue

                fmv_total = reward_fmv_total(event)
                income_base = Decimal(0)
                if self._settings.rewards_cost_basis_mode == RewardsCostBasisMode.FMV:
                    if fmv_total is not None:
                        income_base = fmv_total
                    else:
                        warning = f"tax_income_missing_fmv:{event.id}"
                        logger.warning("Income row without fair market value: %s", warning)
                        warnings.append(warning)

                rows.append(
                    TaxIncomeRow(
                        event_id=event.id,
                        asset_id=event.asset_id,
                        timestamp=event.timestamp,
                        amount=event.quantity,
                        income_base=income_base,
                        fmv_total_base=fmv_total,
                        event_type=event.event_type,
                    )
                )
        return rows

    @staticmethod
    def _totals(disposals: list[Disposal], income: list[TaxIncomeRow]) -> TaxYearTotals:
        zero = Decimal(0)
        with localcontext(ACCOUNTING_CONTEXT):
            return TaxYearTotals(
                proceeds_base=sum((d.proceeds_base for d in disposals), start=zero),
                cost_basis_base=sum((d.cost_basis_base for d in disposals), start=zero),
                fees_base=sum((d.fee_base for d in disposals), start=zero),
                realized_gain_base=sum((d.realized_gain_base for d in disposals), start=zero),
                income_base=sum((row.income_base for row in income), start=zero),
            )
