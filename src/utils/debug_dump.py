from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from pathlib import Path

from domain.tax_report import TaxYearReport


def dump_tax_report(
    report: TaxYearReport,
    *,
    root_dir: Path = Path(".tmp/debug_dumps"),
) -> dict[str, Path]:
    """Persist a tax report and its disposal lines for debugging."""

    root_dir.mkdir(parents=True, exist_ok=True)
    dump_dir = root_dir / datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    dump_dir.mkdir(parents=True, exist_ok=False)

    report_path = dump_dir / f"tax_report_{report.year}.json"
    lots_path = dump_dir / "disposal_lots.csv"

    # JSON mode serializes Decimals as strings.
    report_path.write_text(json.dumps(report.model_dump(mode="json"), indent=2), encoding="utf-8")

    with lots_path.open("w", encoding="utf-8", newline="") as fp:
        writer = csv.writer(fp)
        writer.writerow(["event_id", "asset_id", "disposed_at", "lot_id", "amount", "cost_basis"])
        for disposal in report.disposals:
            for match in disposal.lots_matched:
                writer.writerow(
                    [
                        disposal.event_id,
                        disposal.asset_id,
                        disposal.disposed_at.isoformat(),
                        match.lot_id,
                        str(match.amount),
                        str(match.cost_basis),
                    ]
                )

    return {
        "report": report_path,
        "disposal_lots": lots_path,
    }
