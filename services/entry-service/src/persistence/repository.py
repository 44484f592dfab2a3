"""Ledger entry data access helpers."""

from __future__ import annotations

import calendar
import logging
from datetime import date
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from entry_model import EntryKind, LedgerEntry, PersistenceFailed, category_from_storage, category_to_storage
from persistence.models import LedgerEntryRecord

logger = logging.getLogger(__name__)


class EntryStore(Protocol):
    """What the entry pipeline needs from storage."""

    def append(self, entry: LedgerEntry) -> None:
        ...

    def list_all(self, owner_id: str, kind: EntryKind) -> list[LedgerEntry]:
        ...


class LedgerRepository:
    """Thin repository that encapsulates persistence operations."""

    def __init__(self, db: Session):
        self._db = db

    def append(self, entry: LedgerEntry) -> None:
        category, category_kind = category_to_storage(entry.category) if entry.category else (None, None)
        record = LedgerEntryRecord(
            entry_id=entry.id,
            owner_id=entry.owner_id,
            kind=entry.kind,
            description=entry.description,
            amount=entry.amount,
            category=category,
            category_kind=category_kind,
            is_private=entry.is_private,
            entry_date=entry.entry_date,
        )
        try:
            self._db.add(record)
            self._db.commit()
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.error(
                {
                    "event": "ledger_append_failed",
                    "entry_id": entry.id,
                    "kind": entry.kind,
                    "error_type": type(exc).__name__,
                }
            )
            raise PersistenceFailed(f"Could not store {entry.kind} entry {entry.id}") from exc

    def list_all(self, owner_id: str, kind: EntryKind) -> list[LedgerEntry]:
        """Entries for one owner and kind, most recent first."""
        statement = (
            select(LedgerEntryRecord)
            .where(LedgerEntryRecord.owner_id == owner_id, LedgerEntryRecord.kind == kind)
            .order_by(LedgerEntryRecord.id.desc())
        )
        return [_to_entry(record) for record in self._db.scalars(statement)]

    def list_by_month(self, owner_id: str, kind: EntryKind, year: int, month: int) -> list[LedgerEntry]:
        first_day = date(year, month, 1)
        last_day = date(year, month, calendar.monthrange(year, month)[1])
        statement = (
            select(LedgerEntryRecord)
            .where(
                LedgerEntryRecord.owner_id == owner_id,
                LedgerEntryRecord.kind == kind,
                LedgerEntryRecord.entry_date >= first_day,
                LedgerEntryRecord.entry_date <= last_day,
            )
            .order_by(LedgerEntryRecord.id.desc())
        )
        return [_to_entry(record) for record in self._db.scalars(statement)]

    def get(self, entry_id: str) -> LedgerEntry | None:
        record = self._db.scalars(select(LedgerEntryRecord).where(LedgerEntryRecord.entry_id == entry_id)).first()
        return _to_entry(record) if record is not None else None


def _to_entry(record: LedgerEntryRecord) -> LedgerEntry:
    category = category_from_storage(record.category, record.category_kind) if record.category else None
    return LedgerEntry(
        id=record.entry_id,
        owner_id=record.owner_id,
        kind=record.kind,  # type: ignore[arg-type]
        description=record.description,
        amount=record.amount,
        entry_date=record.entry_date,
        category=category,
        is_private=record.is_private,
    )
