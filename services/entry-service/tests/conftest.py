"""Pytest configuration for entry-service tests.

Ensures the service's own src directory and the shared package are importable,
and points the ledger database at a throwaway SQLite file before the
persistence module builds its engine.
"""

import os
import sys
import tempfile
from pathlib import Path

import pytest

SERVICE_SRC = Path(__file__).resolve().parents[1] / "src"
SERVICES_ROOT = Path(__file__).resolve().parents[2]

for path in (SERVICES_ROOT, SERVICE_SRC):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

os.environ.setdefault(
    "ENTRY_DB_URL",
    f"sqlite:///{Path(tempfile.mkdtemp(prefix='entry-service-tests-')) / 'entries.db'}",
)

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def mock_fixture_path() -> Path:
    return FIXTURES_DIR / "mock_category_provider.json"
