from __future__ import annotations

from typing import Iterable

from domain.ledger import Position

from .formatting import format_currency, format_decimal, format_percent


def render_positions(positions: Iterable[Position], base_currency: str) -> None:
    positions_list = list(positions)
    print("Open positions:")
    if not positions_list:
        print("  (empty)")
        return

    labels = ("Asset", "Amount", f"Cost {base_currency}", f"Value {base_currency}", "Unrealized", "PnL %")
    rows: list[tuple[str, ...]] = []
    for position in positions_list:
        rows.append(
            (
                position.asset_id,
                format_decimal(position.amount),
                format_currency(position.cost_basis_base),
                format_currency(position.value_base) if position.value_base is not None else "n/a",
                format_currency(position.unrealized_pnl_base) if position.unrealized_pnl_base is not None else "n/a",
                format_percent(position.unrealized_pnl_pct),
            )
        )

    widths = [max(len(label), max(len(row[idx]) for row in rows)) for idx, label in enumerate(labels)]
    header = " ".join(
        f"{label:<{widths[idx]}}" if idx == 0 else f"{label:>{widths[idx]}}" for idx, label in enumerate(labels)
    )
    lines = [header, "-" * len(header)]
    for row in rows:
        lines.append(
            " ".join(f"{cell:<{widths[idx]}}" if idx == 0 else f"{cell:>{widths[idx]}}" for idx, cell in enumerate(row))
        )
    lines.append("-" * len(header))
    print("\n".join(lines))
