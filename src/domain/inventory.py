from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, localcontext
from typing import Iterable, assert_never

from pydantic import BaseModel

from .arithmetic import ACCOUNTING_CONTEXT
from .ledger import (
    REWARD_TYPES,
    Disposal,
    EventClass,
    EventType,
    LedgerEvent,
    Lot,
    LotId,
    LotMatch,
    Position,
    classify,
)
from .lot_selection import OpenLot, strategy_for
from .normalizer import RawEvent, normalize
from .settings import LotMethod, RewardsCostBasisMode, Settings

logger = logging.getLogger(__name__)


class ReplayResult(BaseModel):
    lot_method: LotMethod
    lots_by_asset: dict[str, list[Lot]]
    disposals: list[Disposal]
    positions: list[Position]
    realized_gain_base: Decimal
    warnings: list[str]


@dataclass
class _ReplayState:
    lots: dict[str, list[OpenLot]] = field(default_factory=lambda: defaultdict(list))
    disposals: list[Disposal] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    realized_gain: Decimal = Decimal(0)

    def warn(self, code: str, event: LedgerEvent) -> None:
        warning = f"{code}:{event.id}"
        logger.warning("Replay warning %s (asset=%s @%s)", warning, event.asset_id, event.timestamp.isoformat())
        self.warnings.append(warning)


def reward_fmv_total(event: LedgerEvent) -> Decimal | None:
    """Fair market value of a reward event in base currency, if the event carries one."""
    if event.fmv_total is not None:
        return event.fmv_total
    if event.fmv_per_unit is not None:
        return event.quantity * event.fmv_per_unit
    return None


class LotAccountingReplayer:
    """Replay normalized ledger events into open lots, disposals and positions.

    Every call to ``replay`` builds its own lot queues, so one replayer may be
    reused (or shared between threads) without carrying state across calls.
    """

    def __init__(self, settings: Settings, *, lot_method: LotMethod | None = None) -> None:
        self._settings = settings
        self._lot_method = lot_method or settings.lot_method_default
        self._strategy = strategy_for(self._lot_method)

    @property
    def lot_method(self) -> LotMethod:
        return self._lot_method

    def replay(self, events: Iterable[LedgerEvent]) -> ReplayResult:
        """Caller must provide normalized events (see ``normalize``)."""
        state = _ReplayState()
        event_count = 0

        with localcontext(ACCOUNTING_CONTEXT):
            for event in events:
                event_count += 1
                self._apply(event, state)

            lots_by_asset = {
                asset_id: [lot.snapshot() for lot in lots]
                for asset_id, lots in sorted(state.lots.items())
                if lots
            }
            positions = self._positions(state.lots)

        logger.debug(
            "Replayed %d events with %s: %d disposals, %d open positions, %d warnings",
            event_count,
            self._lot_method,
            len(state.disposals),
            len(positions),
            len(state.warnings),
        )
        return ReplayResult(
            lot_method=self._lot_method,
            lots_by_asset=lots_by_asset,
            disposals=state.disposals,
            positions=positions,
            realized_gain_base=state.realized_gain,
            warnings=state.warnings,
        )

    def _apply(self, event: LedgerEvent, state: _ReplayState) -> None:
        event_class = classify(event.event_type, self._settings.transfer_policy)
        match event_class:
            case EventClass.ACQUISITION:
                self._acquire(event, state)
            case EventClass.DISPOSAL:
                self._dispose(event, state)
            case EventClass.NEUTRAL:
                logger.debug("Skipping neutral %s event %s", event.event_type, event.id)
            case _:
                assert_never(event_class)

    def _acquire(self, event: LedgerEvent, state: _ReplayState) -> None:
        if event.amount == 0:
            return
        state.lots[event.asset_id].append(
            OpenLot(
                lot_id=LotId(f"lot_{event.id}"),
                asset_id=event.asset_id,
                acquired_at=event.timestamp,
                amount_remaining=event.amount,
                cost_basis_remaining=self._acquisition_cost(event, state),
                origin_event_id=event.id,
            )
        )

    def _acquisition_cost(self, event: LedgerEvent, state: _ReplayState) -> Decimal:
        if event.cost_basis is not None:
            return event.cost_basis

        if event.event_type in REWARD_TYPES:
            if self._settings.rewards_cost_basis_mode == RewardsCostBasisMode.ZERO:
                return Decimal(0)
            fmv_total = reward_fmv_total(event)
            if fmv_total is None:
                state.warn("reward_missing_fmv", event)
                return Decimal(0)
            return fmv_total

        if event.price_per_unit is not None:
            cost = event.quantity * event.price_per_unit
            # A purchase fee is part of what was paid for the units.
            if event.event_type == EventType.BUY:
                cost += event.fee_base
            return cost

        if event.event_type != EventType.TRANSFER_IN:
            state.warn("missing_cost_basis", event)
        return Decimal(0)

    def _dispose(self, event: LedgerEvent, state: _ReplayState) -> None:
        requested = event.quantity
        if requested == 0:
            return

        open_lots = state.lots[event.asset_id]
        picks = self._strategy.select(open_lots, requested)

        matched: list[LotMatch] = []
        matched_amount = Decimal(0)
        cost_basis = Decimal(0)
        for pick in picks:
            pick.lot.amount_remaining -= pick.amount
            pick.lot.cost_basis_remaining -= pick.cost_basis
            matched.append(LotMatch(lot_id=pick.lot.lot_id, amount=pick.amount, cost_basis=pick.cost_basis))
            matched_amount += pick.amount
            cost_basis += pick.cost_basis
        open_lots[:] = [lot for lot in open_lots if lot.amount_remaining != 0]

        unmatched = requested - matched_amount
        if unmatched > 0:
            state.warn("insufficient_lots", event)

        proceeds = self._disposal_proceeds(event, state)
        fee = event.fee_base
        gain = proceeds - cost_basis - fee
        state.realized_gain += gain
        state.disposals.append(
            Disposal(
                event_id=event.id,
                asset_id=event.asset_id,
                disposed_at=event.timestamp,
                amount=matched_amount,
                amount_requested=requested,
                unmatched_amount=unmatched,
                proceeds_base=proceeds,
                cost_basis_base=cost_basis,
                fee_base=fee,
                realized_gain_base=gain,
                lots_matched=matched,
                tax_year=event.tax_year,
            )
        )

    @staticmethod
    def _disposal_proceeds(event: LedgerEvent, state: _ReplayState) -> Decimal:
        if event.proceeds is not None:
            return event.proceeds
        if event.price_per_unit is not None:
            return event.quantity * event.price_per_unit
        if event.event_type != EventType.FEE:
            state.warn("missing_proceeds", event)
        return Decimal(0)

    @staticmethod
    def _positions(lots_by_asset: dict[str, list[OpenLot]]) -> list[Position]:
        positions: list[Position] = []
        for asset_id, lots in lots_by_asset.items():
            amount = sum((lot.amount_remaining for lot in lots), start=Decimal(0))
            if amount == 0:
                continue
            cost = sum((lot.cost_basis_remaining for lot in lots), start=Decimal(0))
            positions.append(
                Position(
                    asset_id=lots[0].asset_id,
                    amount=amount,
                    cost_basis_base=cost,
                    avg_cost_base=cost / amount,
                )
            )
        positions.sort(key=lambda position: (-position.cost_basis_base, position.asset_id))
        return positions


def replay_ledger(
    events: Iterable[RawEvent],
    settings: Settings,
    *,
    lot_method: LotMethod | None = None,
    until: datetime | None = None,
) -> ReplayResult:
    """Normalize raw events and replay them in one call."""
    active = normalize(events, until=until)
    return LotAccountingReplayer(settings, lot_method=lot_method).replay(active)
