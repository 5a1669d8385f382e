from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from domain.ledger import Disposal
from domain.tax_report import TaxYearReport

from .formatting import format_currency, format_decimal


@dataclass
class AssetGainSummary:
    asset_id: str
    disposals: int
    amount: Decimal
    proceeds: Decimal
    cost_basis: Decimal
    fees: Decimal
    realized_gain: Decimal


def summarize_disposals_by_asset(disposals: Iterable[Disposal]) -> list[AssetGainSummary]:
    """Aggregate realized disposals per asset, ordered by asset id."""
    totals: dict[str, AssetGainSummary] = {}
    for disposal in disposals:
        summary = totals.get(disposal.asset_id)
        if summary is None:
            summary = AssetGainSummary(
                asset_id=disposal.asset_id,
                disposals=0,
                amount=Decimal(0),
                proceeds=Decimal(0),
                cost_basis=Decimal(0),
                fees=Decimal(0),
                realized_gain=Decimal(0),
            )
            totals[disposal.asset_id] = summary
        summary.disposals += 1
        summary.amount += disposal.amount
        summary.proceeds += disposal.proceeds_base
        summary.cost_basis += disposal.cost_basis_base
        summary.fees += disposal.fee_base
        summary.realized_gain += disposal.realized_gain_base

    return [totals[asset_id] for asset_id in sorted(totals)]


def render_tax_report(report: TaxYearReport) -> None:
    print(
        f"Tax year {report.year} ({report.base_currency}, profile {report.tax_profile}, "
        f"lot method {report.lot_method_used})"
    )

    summaries = summarize_disposals_by_asset(report.disposals)
    print("Realized disposals by asset:")
    if not summaries:
        print("  (no disposals)")
    else:
        asset_width = max(len("Asset"), max(len(row.asset_id) for row in summaries))
        count_width = max(len("Disposals"), max(len(str(row.disposals)) for row in summaries))
        amount_width = max(len("Amount"), max(len(format_decimal(row.amount)) for row in summaries))
        proceeds_width = max(len("Proceeds"), max(len(format_currency(row.proceeds)) for row in summaries))
        cost_width = max(len("Cost basis"), max(len(format_currency(row.cost_basis)) for row in summaries))
        fee_width = max(len("Fees"), max(len(format_currency(row.fees)) for row in summaries))
        gain_width = max(len("Realized gain"), max(len(format_currency(row.realized_gain)) for row in summaries))

        header = (
            f"{'Asset':<{asset_width}} "
            f"{'Disposals':>{count_width}} "
            f"{'Amount':>{amount_width}} "
            f"{'Proceeds':>{proceeds_width}} "
            f"{'Cost basis':>{cost_width}} "
            f"{'Fees':>{fee_width}} "
            f"{'Realized gain':>{gain_width}}"
        )
        lines = [header, "-" * len(header)]
        for row in summaries:
            lines.append(
                f"{row.asset_id:<{asset_width}} "
                f"{row.disposals:>{count_width}} "
                f"{format_decimal(row.amount):>{amount_width}} "
                f"{format_currency(row.proceeds):>{proceeds_width}} "
                f"{format_currency(row.cost_basis):>{cost_width}} "
                f"{format_currency(row.fees):>{fee_width}} "
                f"{format_currency(row.realized_gain):>{gain_width}}"
            )
        print("\n".join(lines))

    totals = report.totals
    print("Totals:")
    print(f"  Proceeds:      {format_currency(totals.proceeds_base)}")
    print(f"  Cost basis:    {format_currency(totals.cost_basis_base)}")
    print(f"  Fees:          {format_currency(totals.fees_base)}")
    print(f"  Realized gain: {format_currency(totals.realized_gain_base)}")
    print(f"  Income:        {format_currency(totals.income_base)}")

    print(f"Year-end holdings: {len(report.year_end_holdings)} assets")
    for holding in report.year_end_holdings:
        print(
            f"  {holding.asset_id}: {format_decimal(holding.amount)} "
            f"(cost {format_currency(holding.cost_basis_base)})"
        )

    if report.warnings:
        print(f"Warnings ({len(report.warnings)}):")
        for warning in report.warnings:
            print(f"  {warning}")
