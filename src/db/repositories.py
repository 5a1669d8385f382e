from __future__ import annotations

from datetime import timezone
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from db import models
from domain.ledger import DECIMAL_FIELDS, AssetId, EventType, LedgerEvent, LedgerEventId


class LedgerEventRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, event: LedgerEvent) -> LedgerEvent:
        orm_event = self._to_orm(event)
        self._session.add(orm_event)
        self._session.commit()
        self._session.refresh(orm_event)
        return self._to_domain(orm_event)

    def create_many(self, events: Iterable[LedgerEvent]) -> None:
        self._session.add_all([self._to_orm(event) for event in events])
        self._session.commit()

    def get(self, event_id: str) -> LedgerEvent | None:
        orm_event = self._session.scalars(
            select(models.LedgerEventOrm).where(models.LedgerEventOrm.id == event_id)
        ).one_or_none()
        if orm_event is None:
            return None
        return self._to_domain(orm_event)

    def list(self) -> list[LedgerEvent]:
        """All stored events, including deleted and superseded ones, in insertion order."""
        orm_events = self._session.scalars(
            select(models.LedgerEventOrm).order_by(models.LedgerEventOrm.sequence.asc())
        ).all()
        return [self._to_domain(event) for event in orm_events]

    @staticmethod
    def _to_orm(event: LedgerEvent) -> models.LedgerEventOrm:
        return models.LedgerEventOrm(
            id=event.id,
            event_type=event.event_type.value,
            asset_id=event.asset_id,
            timestamp=event.timestamp,
            fee_asset_id=event.fee_asset_id,
            supersedes_id=event.supersedes_id,
            is_deleted=event.is_deleted,
            swap_id=event.swap_id,
            **{name: getattr(event, name) for name in DECIMAL_FIELDS},
        )

    @staticmethod
    def _to_domain(orm_event: models.LedgerEventOrm) -> LedgerEvent:
        timestamp = orm_event.timestamp
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        fee_asset_id = orm_event.fee_asset_id
        supersedes_id = orm_event.supersedes_id
        return LedgerEvent(
            id=LedgerEventId(orm_event.id),
            event_type=EventType(orm_event.event_type),
            asset_id=AssetId(orm_event.asset_id),
            timestamp=timestamp,
            fee_asset_id=AssetId(fee_asset_id) if fee_asset_id is not None else None,
            supersedes_id=LedgerEventId(supersedes_id) if supersedes_id is not None else None,
            is_deleted=orm_event.is_deleted,
            swap_id=orm_event.swap_id,
            **{name: getattr(orm_event, name) for name in DECIMAL_FIELDS},
        )
