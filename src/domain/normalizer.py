from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Mapping

from pydantic import ValidationError

from .errors import LedgerValidationError
from .ledger import EventClass, LedgerEvent, TransferPolicy, classify

logger = logging.getLogger(__name__)

RawEvent = LedgerEvent | Mapping[str, Any]


def parse_event(raw: RawEvent) -> LedgerEvent:
    """Validate a raw mapping into a LedgerEvent, translating pydantic errors."""
    if isinstance(raw, LedgerEvent):
        return raw
    try:
        return LedgerEvent.model_validate(dict(raw))
    except ValidationError as err:
        event_id = raw.get("id")
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'event'}: {error['msg']}" for error in err.errors()
        )
        raise LedgerValidationError(
            f"invalid ledger event: {details}",
            event_id=str(event_id) if event_id else None,
        ) from err


def normalize(events: Iterable[RawEvent], *, until: datetime | None = None) -> list[LedgerEvent]:
    """Return the active events in canonical replay order.

    Deleted and superseded events are dropped. The remainder is sorted by
    (timestamp, insertion order). Any structurally invalid event aborts the
    whole call with LedgerValidationError.
    """
    parsed: list[LedgerEvent] = []
    seen_ids: set[str] = set()
    for raw in events:
        event = parse_event(raw)
        if event.id in seen_ids:
            raise LedgerValidationError("duplicate event id", event_id=event.id)
        seen_ids.add(event.id)
        _validate_amounts(event)
        parsed.append(event)

    # Latest edit (by insertion order) wins for every superseded target.
    latest_edit: dict[str, int] = {}
    for index, event in enumerate(parsed):
        if event.supersedes_id is not None:
            latest_edit[event.supersedes_id] = index

    dropped: set[int] = set()
    for index, event in enumerate(parsed):
        if event.is_deleted or event.id in latest_edit:
            dropped.add(index)
        elif event.supersedes_id is not None and latest_edit[event.supersedes_id] != index:
            dropped.add(index)

    active = [
        (index, event)
        for index, event in enumerate(parsed)
        if index not in dropped and (until is None or event.timestamp <= until)
    ]
    active.sort(key=lambda item: (item[1].timestamp, item[0]))

    logger.debug("Normalized %d raw events into %d active events", len(parsed), len(active))
    return [event for _, event in active]


def _validate_amounts(event: LedgerEvent) -> None:
    if not event.amount.is_finite():
        raise LedgerValidationError("amount must be finite", event_id=event.id)
    # Direction is checked against the nominal classification so that a
    # custody policy does not hide a malformed inbound event.
    if classify(event.event_type, TransferPolicy.TAXABLE) == EventClass.ACQUISITION and event.amount < 0:
        raise LedgerValidationError("acquisition amount must be >= 0", event_id=event.id)
    for name in ("cost_basis", "price_per_unit", "fmv_total", "fmv_per_unit"):
        value = getattr(event, name)
        if value is not None and value < 0:
            raise LedgerValidationError(f"{name} must be >= 0", event_id=event.id)
