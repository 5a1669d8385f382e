from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Any

from domain.errors import LedgerValidationError
from domain.ledger import LedgerEvent
from domain.normalizer import parse_event

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {"id", "type", "asset_id", "timestamp", "amount"}
OPTIONAL_COLUMNS = (
    "proceeds",
    "cost_basis",
    "fee",
    "price_per_unit",
    "fmv_total",
    "fmv_per_unit",
    "fee_asset_id",
    "fee_amount",
    "supersedes_id",
    "swap_id",
)
TRUE_VALUES = {"1", "true", "yes", "y"}


def load_ledger_csv(csv_path: Path) -> list[LedgerEvent]:
    """Load ledger events from a canonical CSV export.

    Required columns: id,type,asset_id,timestamp,amount. Optional columns are
    the base-currency money fields plus supersedes_id, deleted and swap_id.
    Decimal cells are handed to validation as strings, never as floats.
    Rows are returned in file order, which is the insertion order.
    """

    with csv_path.open(newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            raise ValueError(f"Ledger CSV {csv_path} is empty or missing headers")

        missing = REQUIRED_COLUMNS - set(reader.fieldnames)
        if missing:
            raise ValueError(f"Ledger CSV {csv_path} missing required columns: {', '.join(sorted(missing))}")

        events: list[LedgerEvent] = []
        seen_ids: set[str] = set()
        for row in reader:
            event = parse_event(_row_to_payload(row))
            if event.id in seen_ids:
                raise LedgerValidationError("duplicate event id", event_id=event.id)
            seen_ids.add(event.id)
            events.append(event)

    logger.info("Loaded %d ledger events from %s", len(events), csv_path)
    return events


def _row_to_payload(row: dict[str, str | None]) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": (row["id"] or "").strip(),
        "event_type": (row["type"] or "").strip().upper(),
        "asset_id": (row["asset_id"] or "").strip(),
        "timestamp": (row["timestamp"] or "").strip(),
        "amount": (row["amount"] or "").strip(),
    }
    for column in OPTIONAL_COLUMNS:
        value = (row.get(column) or "").strip()
        if value:
            payload[column] = value
    payload["is_deleted"] = (row.get("deleted") or "").strip().lower() in TRUE_VALUES
    return payload
