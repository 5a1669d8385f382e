"""Domain models and accounting logic for the lot ledger.

This package turns an append-only log of ledger events into open cost-basis
lots, realized disposals, positions and tax-year reports. Everything here is
pure and in-memory (Pydantic models and Decimal arithmetic) so that business
logic and testing can evolve without DB coupling.
"""

__all__ = [
    "arithmetic",
    "errors",
    "inventory",
    "ledger",
    "lot_selection",
    "normalizer",
    "positions",
    "pricing",
    "settings",
    "tax_report",
]
