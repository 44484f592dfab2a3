from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Dict

import pytest
from entry_model import PersistenceFailed, SubmissionInProgress
from fastapi.testclient import TestClient
from main import app, reload_category_provider_for_tests
from persistence.database import SessionLocal, init_db
from persistence.models import LedgerEntryRecord
from submission_guard import SubmissionGuard


def _clear_ledger() -> None:
    session = SessionLocal()
    session.query(LedgerEntryRecord).delete()
    session.commit()
    session.close()


@pytest.fixture(autouse=True)
def reset_state(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("CATEGORY_PROVIDER", "deterministic")
    monkeypatch.setenv("CATEGORY_AI_POLICY", "low_confidence")
    reload_category_provider_for_tests()
    init_db()
    _clear_ledger()
    yield
    _clear_ledger()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def mock_provider(monkeypatch: pytest.MonkeyPatch, mock_fixture_path) -> None:
    monkeypatch.setenv("CATEGORY_PROVIDER", "mock")
    monkeypatch.setenv("CATEGORY_PROVIDER_FIXTURE", str(mock_fixture_path))
    reload_category_provider_for_tests()


def _post_expense(client: TestClient, text: str, user: str = "user-1", **extra: Any):
    payload: Dict[str, Any] = {"input": text, "language": "id"}
    payload.update(extra)
    return client.post("/expenses", json=payload, headers={"x-user-id": user})


def test_health_reports_provider(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "service": "entry-service",
        "category_provider": "deterministic",
        "ai_policy": "low_confidence",
    }


def test_request_id_is_echoed(client: TestClient) -> None:
    response = client.get("/health", headers={"x-request-id": "req-123"})

    assert response.headers["x-request-id"] == "req-123"


def test_create_expense_returns_entry_and_notification(client: TestClient) -> None:
    response = _post_expense(client, "Makan siang 50rb")

    assert response.status_code == 201
    body = response.json()
    entry = body["entry"]
    assert entry["kind"] == "expense"
    assert entry["description"] == "Makan siang"
    assert entry["amount"] == 50_000
    assert entry["category"] == "Makanan"
    assert entry["category_kind"] == "known"
    assert entry["entry_date"] == date.today().isoformat()
    assert body["state"] == "persisted"
    assert body["notifications"][0]["code"] == "expense_recorded"
    assert body["notifications"][0]["message"] == "Makanan: Rp 50.000 (Makan siang)"


def test_create_expense_without_amount_returns_422(client: TestClient) -> None:
    response = _post_expense(client, "Beli sesuatu")

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "no_amount_found"
    assert body["input"] == "Beli sesuatu"
    assert body["example"] == "Makan siang 50rb"
    assert client.get("/expenses", headers={"x-user-id": "user-1"}).json() == []


def test_create_expense_with_amount_beyond_ledger_range_returns_422(client: TestClient) -> None:
    response = _post_expense(client, "Rumah 99999999999999jt")

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "no_amount_found"
    assert body["input"] == "Rumah 99999999999999jt"
    assert client.get("/expenses", headers={"x-user-id": "user-1"}).json() == []


def test_unsupported_language_is_rejected(client: TestClient) -> None:
    response = client.post("/expenses", json={"input": "Lunch 50k", "language": "fr"})

    assert response.status_code == 422


def test_create_expense_uses_mock_provider_for_unknown_category(client: TestClient, mock_provider) -> None:
    response = _post_expense(client, "Langganan Netflix 150rb")

    assert response.status_code == 201
    entry = response.json()["entry"]
    assert entry["category"] == "Hiburan Digital"
    assert entry["category_kind"] == "ad_hoc"
    assert entry["category_display"] == "Hiburan Digital"


def test_use_ai_false_keeps_deterministic_category(client: TestClient, mock_provider) -> None:
    response = _post_expense(client, "Langganan Netflix 150rb", use_ai=False)

    assert response.status_code == 201
    assert response.json()["entry"]["category"] == "Lainnya"


def test_private_expense_masks_notification(client: TestClient) -> None:
    response = _post_expense(client, "Kopi pagi 15rb", is_private=True)

    assert response.status_code == 201
    body = response.json()
    assert body["entry"]["is_private"] is True
    assert "Kopi pagi" not in body["notifications"][0]["message"]


def test_persistence_failure_returns_503_with_input(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    class BrokenRepository:
        def __init__(self, db) -> None:
            self._db = db

        def append(self, entry) -> None:
            raise PersistenceFailed("database is locked")

    monkeypatch.setattr("main.LedgerRepository", BrokenRepository)

    response = _post_expense(client, "Makan siang 50rb")

    assert response.status_code == 503
    body = response.json()
    assert body["error"] == "persistence_failed"
    assert body["input"] == "Makan siang 50rb"
    assert body["notifications"][0]["code"] == "persistence_failed"


def test_concurrent_submission_returns_409(client: TestClient) -> None:
    class BusyGuard(SubmissionGuard):
        @asynccontextmanager
        async def hold(self, form_key: str):
            raise SubmissionInProgress(form_key)
            yield

    original_guard = app.state.submission_guard
    app.state.submission_guard = BusyGuard()
    try:
        response = _post_expense(client, "Makan siang 50rb")
    finally:
        app.state.submission_guard = original_guard

    assert response.status_code == 409
    assert response.json()["error"] == "submission_in_progress"


def test_list_expenses_is_most_recent_first_and_scoped_by_user(client: TestClient) -> None:
    _post_expense(client, "Makan siang 50rb")
    _post_expense(client, "Transport 20k ke kantor")
    _post_expense(client, "Kopi 10rb", user="user-2")

    response = client.get("/expenses", params={"language": "en"}, headers={"x-user-id": "user-1"})

    assert response.status_code == 200
    entries = response.json()
    assert [entry["description"] for entry in entries] == ["Transport", "Makan siang"]
    assert [entry["category_display"] for entry in entries] == ["Transportation", "Food"]


def test_create_and_list_incomes(client: TestClient) -> None:
    created = client.post("/incomes", json={"input": "10jt gaji", "language": "id"}, headers={"x-user-id": "user-1"})

    assert created.status_code == 201
    assert created.json()["entry"]["description"] == "Gaji"
    assert created.json()["entry"]["category"] is None

    listed = client.get("/incomes", headers={"x-user-id": "user-1"}).json()
    assert [entry["amount"] for entry in listed] == [10_000_000]


def test_income_without_amount_returns_localized_example(client: TestClient) -> None:
    response = client.post("/incomes", json={"input": "bonus", "language": "en"})

    assert response.status_code == 422
    assert response.json()["example"] == "Monthly salary 10jt"


def test_parse_is_a_dry_run(client: TestClient, mock_provider) -> None:
    response = client.post("/parse", json={"input": "Langganan Netflix 150rb", "language": "id"})

    assert response.status_code == 200
    body = response.json()
    assert body["amount"] == 150_000
    assert body["description"] == "Langganan netflix"
    assert body["category"] == "Hiburan Digital"
    assert client.get("/expenses").json() == []


def test_parse_without_amount_returns_422(client: TestClient) -> None:
    response = client.post("/parse", json={"input": "Beli sesuatu", "language": "en"})

    assert response.status_code == 422
    assert response.json()["example"] == "Lunch 50k"


def test_monthly_report(client: TestClient) -> None:
    _post_expense(client, "Makan siang 50rb")
    _post_expense(client, "Kopi pagi 15rb")
    _post_expense(client, "Transport 20k ke kantor")
    client.post("/incomes", json={"input": "Gaji bulanan 10jt"}, headers={"x-user-id": "user-1"})

    today = date.today()
    response = client.get(
        "/reports/monthly",
        params={"year": today.year, "month": today.month, "language": "en"},
        headers={"x-user-id": "user-1"},
    )

    assert response.status_code == 200
    report = response.json()
    assert report["total_expenses"] == 85_000
    assert report["total_income"] == 10_000_000
    assert report["balance"] == 9_915_000
    assert report["expense_count"] == 3
    assert [(row["category"], row["category_display"], row["total"]) for row in report["by_category"]] == [
        ("Makanan", "Food", 65_000),
        ("Transport", "Transportation", 20_000),
    ]


def test_monthly_report_validates_month(client: TestClient) -> None:
    response = client.get("/reports/monthly", params={"year": 2024, "month": 13})

    assert response.status_code == 422
