"""SQLAlchemy models for persisted ledger entries."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, Date, DateTime, Index, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class LedgerEntryRecord(Base):
    """One expense or income line owned by a single user."""

    __tablename__ = "ledger_entries"
    __table_args__ = (Index("ix_ledger_entries_owner_kind_date", "owner_id", "kind", "entry_date"),)

    # Autoincrement key doubles as insertion order for most-recent-first listings.
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entry_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    category_kind: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    is_private: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
