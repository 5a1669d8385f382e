from __future__ import annotations


class LedgerValidationError(ValueError):
    """Raised when a ledger event is structurally invalid.

    Aborts the whole replay; callers never receive partial accounting output.
    """

    def __init__(self, reason: str, *, event_id: str | None = None) -> None:
        self.reason = reason
        self.event_id = event_id
        message = reason if event_id is None else f"{reason} (event={event_id})"
        super().__init__(message)
