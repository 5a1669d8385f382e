from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from domain.pricing import PriceProvider


class FixedPriceService(PriceProvider):
    """Returns a constant unit price per asset and records every lookup."""

    __test__ = False

    def __init__(self, prices: dict[str, Decimal]) -> None:
        self._prices = prices
        self.lookups: list[tuple[str, str, datetime]] = []

    def rate(self, base_id: str, quote_id: str, timestamp: datetime) -> Decimal:
        self.lookups.append((base_id, quote_id, timestamp))
        return self._prices[base_id]


__all__ = ["FixedPriceService"]
