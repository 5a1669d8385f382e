from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_DOWN, Decimal, localcontext
from typing import Sequence, assert_never

from .arithmetic import ACCOUNTING_CONTEXT
from .ledger import AssetId, LedgerEventId, Lot, LotId
from .settings import LotMethod

# Proportional shares are truncated to a fixed exponent so that every
# subtraction on lot amounts stays exact and amounts are conserved.
AVG_COST_QUANTUM = Decimal("1e-30")


@dataclass
class OpenLot:
    """Mutable working state of a lot, owned by a single replay call."""

    lot_id: LotId
    asset_id: AssetId
    acquired_at: datetime
    amount_remaining: Decimal
    cost_basis_remaining: Decimal
    origin_event_id: LedgerEventId

    @property
    def unit_cost(self) -> Decimal:
        if self.amount_remaining == 0:
            return Decimal(0)
        return self.cost_basis_remaining / self.amount_remaining

    def snapshot(self) -> Lot:
        return Lot(
            lot_id=self.lot_id,
            asset_id=self.asset_id,
            acquired_at=self.acquired_at,
            amount_remaining=self.amount_remaining,
            cost_basis_remaining=self.cost_basis_remaining,
            origin_event_id=self.origin_event_id,
        )


@dataclass(frozen=True)
class LotPick:
    lot: OpenLot
    amount: Decimal
    cost_basis: Decimal


def cost_share(lot: OpenLot, amount: Decimal) -> Decimal:
    """Cost basis attributable to ``amount`` units of ``lot``."""
    if amount >= lot.amount_remaining:
        return lot.cost_basis_remaining
    return lot.cost_basis_remaining * amount / lot.amount_remaining


class LotSelectionStrategy(ABC):
    """Chooses which open lots a disposal consumes.

    ``select`` is pure: it never mutates the lots it is given. The returned
    picks sum to ``min(amount, available)``.
    """

    method: LotMethod

    @abstractmethod
    def select(self, lots: Sequence[OpenLot], amount: Decimal) -> list[LotPick]: ...


class _OrderedSelection(LotSelectionStrategy, ABC):
    @abstractmethod
    def _order(self, lots: Sequence[OpenLot]) -> list[OpenLot]: ...

    def select(self, lots: Sequence[OpenLot], amount: Decimal) -> list[LotPick]:
        picks: list[LotPick] = []
        remaining = amount
        with localcontext(ACCOUNTING_CONTEXT):
            for lot in self._order([lot for lot in lots if lot.amount_remaining > 0]):
                if remaining <= 0:
                    break
                take = min(remaining, lot.amount_remaining)
                picks.append(LotPick(lot=lot, amount=take, cost_basis=cost_share(lot, take)))
                remaining -= take
        return picks


class FifoSelection(_OrderedSelection):
    method = LotMethod.FIFO

    def _order(self, lots: Sequence[OpenLot]) -> list[OpenLot]:
        return list(lots)


class LifoSelection(_OrderedSelection):
    method = LotMethod.LIFO

    def _order(self, lots: Sequence[OpenLot]) -> list[OpenLot]:
        return list(reversed(lots))


class HifoSelection(_OrderedSelection):
    method = LotMethod.HIFO

    def _order(self, lots: Sequence[OpenLot]) -> list[OpenLot]:
        # Stable sort keeps acquisition order among equal unit costs.
        return sorted(lots, key=lambda lot: -lot.unit_cost)


class AverageCostSelection(LotSelectionStrategy):
    """Blended unit cost over the whole open pool.

    The consumed cost is ``amount * total_cost / total_amount`` computed once.
    Every open lot is reduced by (almost) the same fraction; the per-lot
    breakdown is reported for audit only and does not imply a chronological
    selection.
    """

    method = LotMethod.AVG_COST

    def select(self, lots: Sequence[OpenLot], amount: Decimal) -> list[LotPick]:
        open_lots = [lot for lot in lots if lot.amount_remaining > 0]
        if not open_lots or amount <= 0:
            return []
        with localcontext(ACCOUNTING_CONTEXT):
            return self._proportional(open_lots, amount)

    @staticmethod
    def _proportional(open_lots: list[OpenLot], amount: Decimal) -> list[LotPick]:
        total_amount = sum((lot.amount_remaining for lot in open_lots), start=Decimal(0))
        if amount >= total_amount:
            return [
                LotPick(lot=lot, amount=lot.amount_remaining, cost_basis=lot.cost_basis_remaining) for lot in open_lots
            ]
        total_cost = sum((lot.cost_basis_remaining for lot in open_lots), start=Decimal(0))
        blended_cost = min(total_cost * amount / total_amount, total_cost)

        takes = [_truncated_share(lot.amount_remaining, amount, total_amount) for lot in open_lots]
        _settle(takes, [lot.amount_remaining for lot in open_lots], amount, [True] * len(open_lots))

        # A lot that is emptied gives up its whole cost and an untouched lot
        # gives up none; only the partially consumed lots absorb the remainder.
        costs: list[Decimal] = []
        adjustable: list[bool] = []
        for lot, take in zip(open_lots, takes):
            if take == lot.amount_remaining:
                costs.append(lot.cost_basis_remaining)
                adjustable.append(False)
            elif take == 0:
                costs.append(Decimal(0))
                adjustable.append(False)
            else:
                costs.append(_truncated_share(lot.cost_basis_remaining, amount, total_amount))
                adjustable.append(True)
        _settle(costs, [lot.cost_basis_remaining for lot in open_lots], blended_cost, adjustable)

        return [
            LotPick(lot=lot, amount=take, cost_basis=cost)
            for lot, take, cost in zip(open_lots, takes, costs)
            if take > 0
        ]


def _truncated_share(value: Decimal, amount: Decimal, total_amount: Decimal) -> Decimal:
    return (value * amount / total_amount).quantize(AVG_COST_QUANTUM, rounding=ROUND_DOWN)


def _settle(shares: list[Decimal], limits: list[Decimal], target: Decimal, adjustable: list[bool]) -> None:
    """Adjust ``shares`` in place so they sum to ``target``, keeping each within ``[0, limit]``.

    A shortfall goes to the entries with the most room left, an excess is taken
    from the largest entries. Only ``adjustable`` entries are touched.
    """
    indices = [idx for idx, flag in enumerate(adjustable) if flag]
    diff = target - sum(shares, start=Decimal(0))
    if diff > 0:
        for idx in sorted(indices, key=lambda i: limits[i] - shares[i], reverse=True):
            if diff == 0:
                break
            step = min(diff, limits[idx] - shares[idx])
            shares[idx] += step
            diff -= step
    elif diff < 0:
        for idx in sorted(indices, key=lambda i: shares[i], reverse=True):
            if diff == 0:
                break
            step = min(-diff, shares[idx])
            shares[idx] -= step
            diff += step


def strategy_for(method: LotMethod) -> LotSelectionStrategy:
    match method:
        case LotMethod.FIFO:
            return FifoSelection()
        case LotMethod.LIFO:
            return LifoSelection()
        case LotMethod.HIFO:
            return HifoSelection()
        case LotMethod.AVG_COST:
            return AverageCostSelection()
        case _:
            assert_never(method)
