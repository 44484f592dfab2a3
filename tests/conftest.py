"""Pytest configuration for root-level integration tests.

Adds the entry service src directory and the shared package to sys.path and
points the ledger database at a throwaway SQLite file.
"""

import os
import sys
import tempfile
from pathlib import Path

import pytest

SERVICES_ROOT = Path(__file__).resolve().parents[1] / "services"

SERVICE_PATHS = [
    SERVICES_ROOT / "entry-service" / "src",
    SERVICES_ROOT,
]

for path in SERVICE_PATHS:
    path_str = str(path)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

os.environ.setdefault(
    "ENTRY_DB_URL",
    f"sqlite:///{Path(tempfile.mkdtemp(prefix='entry-integration-')) / 'entries.db'}",
)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
