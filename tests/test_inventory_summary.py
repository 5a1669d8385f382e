from decimal import Decimal

import pytest

from domain.ledger import Position
from utils.formatting import format_currency, format_decimal, format_percent
from utils.inventory_summary import render_positions


def test_formatting_helpers() -> None:
    assert format_decimal(Decimal("3.000")) == "3"
    assert format_decimal(Decimal("0.12500")) == "0.125"
    assert format_currency(Decimal("1240.005")) == "1240.00"
    assert format_percent(Decimal("0.2")) == "20.00%"
    assert format_percent(None) == "n/a"


def test_render_positions_table(capsys: pytest.CaptureFixture[str]) -> None:
    positions = [
        Position(
            asset_id="BTC",
            amount=Decimal(3),
            cost_basis_base=Decimal(360),
            avg_cost_base=Decimal(120),
            value_base=Decimal(450),
            unrealized_pnl_base=Decimal(90),
            unrealized_pnl_pct=Decimal("0.25"),
        ),
        Position(asset_id="ETH", amount=Decimal("0.5"), cost_basis_base=Decimal(1000), avg_cost_base=Decimal(2000)),
    ]

    render_positions(positions, "EUR")
    lines = capsys.readouterr().out.splitlines()

    assert lines[0] == "Open positions:"
    assert "Cost EUR" in lines[1]
    assert "Value EUR" in lines[1]
    assert lines[3].split() == ["BTC", "3", "360.00", "450.00", "90.00", "25.00%"]
    assert lines[4].split() == ["ETH", "0.5", "1000.00", "n/a", "n/a", "n/a"]


def test_render_positions_empty(capsys: pytest.CaptureFixture[str]) -> None:
    render_positions([], "EUR")

    assert capsys.readouterr().out == "Open positions:\n  (empty)\n"
