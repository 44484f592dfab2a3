from __future__ import annotations

import logging
from datetime import date
from typing import Callable
from uuid import uuid4

from entry_model import EntryKind, LedgerEntry, ParsedEntry, ParsedIncome, PersistenceFailed
from persistence.repository import EntryStore

logger = logging.getLogger(__name__)


class EntryAssembler:
    """
    Turns parsed values into ledger entries and hands them to the store.

    Ids and dates come from injectable factories so tests can pin them. A
    single `append` call is made per entry; retries are the caller's business.
    """

    def __init__(
        self,
        store: EntryStore,
        *,
        id_factory: Callable[[], str] | None = None,
        clock: Callable[[], date] | None = None,
    ):
        self._store = store
        self._id_factory = id_factory or (lambda: str(uuid4()))
        self._clock = clock or date.today

    def assemble(
        self,
        parsed: ParsedEntry | ParsedIncome,
        *,
        kind: EntryKind,
        owner_id: str,
        is_private: bool = False,
    ) -> LedgerEntry:
        return LedgerEntry(
            id=self._id_factory(),
            owner_id=owner_id,
            kind=kind,
            description=parsed.description,
            amount=parsed.amount,
            entry_date=self._clock(),
            category=parsed.category if isinstance(parsed, ParsedEntry) else None,
            is_private=is_private,
        )

    def persist(self, entry: LedgerEntry) -> LedgerEntry:
        try:
            self._store.append(entry)
        except PersistenceFailed:
            raise
        except Exception as exc:
            logger.error({"event": "entry_store_error", "entry_id": entry.id, "error_type": type(exc).__name__})
            raise PersistenceFailed(f"Could not store {entry.kind} entry {entry.id}") from exc

        logger.info({"event": "entry_persisted", "entry_id": entry.id, "kind": entry.kind, "amount": entry.amount})
        return entry
