from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, localcontext
from typing import Iterable, Mapping

from .arithmetic import ACCOUNTING_CONTEXT
from .ledger import Position
from .pricing import PriceProvider


class PositionProjector:
    """Enrich replayed positions with an externally supplied valuation."""

    def __init__(self, base_currency: str) -> None:
        self._base_currency = base_currency

    def project(self, positions: Iterable[Position], valuations: Mapping[str, Decimal]) -> list[Position]:
        """``valuations`` maps asset id to a unit price in base currency.

        Positions without a valuation are returned unchanged.
        """
        projected: list[Position] = []
        with localcontext(ACCOUNTING_CONTEXT):
            for position in positions:
                unit_price = valuations.get(position.asset_id)
                if unit_price is None:
                    projected.append(position)
                    continue
                projected.append(self._with_value(position, position.amount * unit_price))
        return projected

    def project_with_provider(
        self,
        positions: Iterable[Position],
        price_provider: PriceProvider,
        as_of: datetime | None = None,
    ) -> list[Position]:
        now = as_of or datetime.now(timezone.utc)
        positions = list(positions)
        valuations = {
            position.asset_id: price_provider.rate(position.asset_id, self._base_currency, now)
            for position in positions
        }
        return self.project(positions, valuations)

    @staticmethod
    def _with_value(position: Position, value: Decimal) -> Position:
        pnl = value - position.cost_basis_base
        # Percentage is undefined, not zero, for a position with no cost basis.
        pnl_pct = pnl / position.cost_basis_base if position.cost_basis_base != 0 else None
        return position.model_copy(
            update={
                "value_base": value,
                "unrealized_pnl_base": pnl,
                "unrealized_pnl_pct": pnl_pct,
            }
        )
