"""Persistence primitives for the entry service."""

from persistence.database import (
    DB_URL_ENV_VAR,
    DEFAULT_DB_FILENAME,
    DEFAULT_DB_PATH,
    SessionLocal,
    get_database_url,
    get_engine,
    get_session,
    init_db,
)
from persistence.models import Base, LedgerEntryRecord
from persistence.repository import EntryStore, LedgerRepository

__all__ = [
    "Base",
    "DB_URL_ENV_VAR",
    "DEFAULT_DB_FILENAME",
    "DEFAULT_DB_PATH",
    "EntryStore",
    "LedgerEntryRecord",
    "LedgerRepository",
    "SessionLocal",
    "get_database_url",
    "get_engine",
    "get_session",
    "init_db",
]
