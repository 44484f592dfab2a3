from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest
from entry_model import AdHocCategory, KnownCategory, LedgerEntry, PersistenceFailed
from persistence.database import build_engine
from persistence.models import Base, LedgerEntryRecord
from persistence.repository import LedgerRepository
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker


def _entry(entry_id: str, **overrides) -> LedgerEntry:
    values = dict(
        id=entry_id,
        owner_id="user-1",
        kind="expense",
        description="Makan siang",
        amount=50_000,
        entry_date=date(2024, 5, 1),
        category=KnownCategory.FOOD,
    )
    values.update(overrides)
    return LedgerEntry(**values)


@pytest.fixture
def session_factory(tmp_path: Path):
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, expire_on_commit=False, future=True)
    engine.dispose()


def test_entries_survive_new_session(session_factory) -> None:
    """Entries written by one session are visible to the next, category union intact."""
    with session_factory() as session:
        repo = LedgerRepository(session)
        repo.append(_entry("a", category=KnownCategory.FOOD))
        repo.append(_entry("b", description="Langganan netflix", category=AdHocCategory("Hiburan Digital")))

    with session_factory() as session:
        restored = LedgerRepository(session).list_all("user-1", "expense")

    assert [entry.id for entry in restored] == ["b", "a"]
    assert restored[0].category == AdHocCategory("Hiburan Digital")
    assert restored[1].category is KnownCategory.FOOD


def test_list_all_is_scoped_by_owner_and_kind(session_factory) -> None:
    with session_factory() as session:
        repo = LedgerRepository(session)
        repo.append(_entry("mine"))
        repo.append(_entry("theirs", owner_id="user-2"))
        repo.append(_entry("salary", kind="income", description="Gaji", amount=10_000_000, category=None))

        expenses = repo.list_all("user-1", "expense")
        incomes = repo.list_all("user-1", "income")

    assert [entry.id for entry in expenses] == ["mine"]
    assert [entry.id for entry in incomes] == ["salary"]
    assert incomes[0].category is None


def test_list_by_month_filters_dates(session_factory) -> None:
    with session_factory() as session:
        repo = LedgerRepository(session)
        repo.append(_entry("april", entry_date=date(2024, 4, 30)))
        repo.append(_entry("may-first", entry_date=date(2024, 5, 1)))
        repo.append(_entry("may-last", entry_date=date(2024, 5, 31)))
        repo.append(_entry("june", entry_date=date(2024, 6, 1)))

        may = repo.list_by_month("user-1", "expense", 2024, 5)

    assert [entry.id for entry in may] == ["may-last", "may-first"]


def test_private_flag_round_trips(session_factory) -> None:
    with session_factory() as session:
        repo = LedgerRepository(session)
        repo.append(_entry("secret", is_private=True))
        restored = repo.get("secret")
        missing = repo.get("missing")

    assert restored is not None
    assert restored.is_private is True
    assert missing is None


def test_duplicate_entry_id_raises_persistence_failed(session_factory) -> None:
    with session_factory() as session:
        repo = LedgerRepository(session)
        repo.append(_entry("dup"))

        with pytest.raises(PersistenceFailed):
            repo.append(_entry("dup", amount=1))

        # The session is usable again after the rollback.
        repo.append(_entry("next"))
        stored = session.scalars(select(LedgerEntryRecord.entry_id).order_by(LedgerEntryRecord.id)).all()

    assert stored == ["dup", "next"]
