"""
Entry Service turns one line of chat-style text ("Makan siang 50rb") into a
categorized ledger entry, stores it, and reports monthly totals per user.
"""

import logging
import sys
from dataclasses import asdict
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

SRC_DIR = Path(__file__).resolve().parent
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

SERVICES_ROOT = SRC_DIR.parents[1]
if str(SERVICES_ROOT) not in sys.path:
    sys.path.insert(0, str(SERVICES_ROOT))

from shared.observability.telemetry import (  # noqa: E402
    bind_request_context,
    ensure_request_id,
    reset_request_context,
    setup_telemetry,
)
from shared.provider_settings import ProviderSettings, ProviderSettingsError, load_provider_settings  # noqa: E402

import localization  # noqa: E402
from assembler import EntryAssembler  # noqa: E402
from category_provider import CategorySuggestionProvider, build_category_provider  # noqa: E402
from entry_model import (  # noqa: E402
    LedgerEntry,
    MonthlyReport,
    Notification,
    ParseFailure,
    SubmissionInProgress,
    category_to_storage,
)
from entry_pipeline import SubmissionResult, parse_and_categorize, submit_expense, submit_income  # noqa: E402
from persistence.database import get_session, init_db  # noqa: E402
from persistence.repository import LedgerRepository  # noqa: E402
from reports import monthly_report  # noqa: E402
from submission_guard import SubmissionGuard  # noqa: E402

logger = logging.getLogger(__name__)

app = FastAPI(title="Entry Service")
setup_telemetry(app, service_name="entry-service")
app.state.submission_guard = SubmissionGuard()

DEFAULT_OWNER_ID = "anonymous"


def _load_category_provider_settings() -> ProviderSettings:
    return load_provider_settings(
        provider_env="CATEGORY_PROVIDER",
        timeout_env="CATEGORY_PROVIDER_TIMEOUT_SECONDS",
        temperature_env="CATEGORY_PROVIDER_TEMPERATURE",
        max_tokens_env="CATEGORY_PROVIDER_MAX_TOKENS",
        policy_env="CATEGORY_AI_POLICY",
    )


try:
    CATEGORY_PROVIDER_SETTINGS = _load_category_provider_settings()
except ProviderSettingsError as exc:
    logger.error("Failed to load category provider settings: %s", exc)
    raise


def _initialize_category_provider() -> CategorySuggestionProvider:
    provider_name = CATEGORY_PROVIDER_SETTINGS.provider_name
    try:
        return build_category_provider(provider_name, settings=CATEGORY_PROVIDER_SETTINGS)
    except ValueError as exc:
        logger.error("Unsupported category provider '%s'", provider_name)
        raise RuntimeError(f"Unsupported category provider '{provider_name}'") from exc


CATEGORY_PROVIDER = _initialize_category_provider()


def reload_category_provider_for_tests() -> None:
    """
    Refresh category provider wiring after tests mutate environment variables.
    """

    global CATEGORY_PROVIDER_SETTINGS
    global CATEGORY_PROVIDER

    CATEGORY_PROVIDER_SETTINGS = _load_category_provider_settings()
    CATEGORY_PROVIDER = _initialize_category_provider()


class NotificationModel(BaseModel):
    code: str
    level: Literal["info", "warning", "error"]
    title: str
    message: str


class EntryModel(BaseModel):
    id: str
    kind: Literal["expense", "income"]
    description: str
    amount: int
    category: Optional[str] = None
    category_kind: Optional[Literal["known", "ad_hoc"]] = None
    category_display: Optional[str] = None
    entry_date: date
    is_private: bool


class ExpenseRequest(BaseModel):
    input: str
    language: Literal["id", "en"] = "id"
    existing_categories: Optional[List[str]] = None
    is_private: bool = False
    use_ai: bool = True


class IncomeRequest(BaseModel):
    input: str
    language: Literal["id", "en"] = "id"
    is_private: bool = False


class ParseRequest(BaseModel):
    input: str
    language: Literal["id", "en"] = "id"
    existing_categories: Optional[List[str]] = None
    use_ai: bool = True


class ParseResponseModel(BaseModel):
    description: str
    amount: int
    category: str
    category_kind: Literal["known", "ad_hoc"]
    category_display: str
    notifications: List[NotificationModel] = Field(default_factory=list)


class SubmissionResponseModel(BaseModel):
    entry: EntryModel
    state: str
    notifications: List[NotificationModel]


class CategoryTotalModel(BaseModel):
    category: str
    category_display: str
    total: int


class MonthlyReportModel(BaseModel):
    year: int
    month: int
    total_expenses: int
    total_income: int
    balance: int
    expense_count: int
    income_count: int
    by_category: List[CategoryTotalModel]


def error_response(status_code: int, error_code: str, details: str, **extra: Any) -> JSONResponse:
    content: Dict[str, Any] = {"error": error_code, "details": details}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def _ai_policy(use_ai: bool) -> str:
    return CATEGORY_PROVIDER_SETTINGS.ai_policy if use_ai else "off"


def _notification_payload(notifications: List[Notification]) -> List[Dict[str, Any]]:
    return [asdict(notification) for notification in notifications]


def _entry_model(entry: LedgerEntry, language: str) -> EntryModel:
    category = category_kind = display = None
    if entry.category is not None:
        category, category_kind = category_to_storage(entry.category)
        display = localization.category_display(entry.category, language)
    return EntryModel(
        id=entry.id,
        kind=entry.kind,
        description=entry.description,
        amount=entry.amount,
        category=category,
        category_kind=category_kind,
        category_display=display,
        entry_date=entry.entry_date,
        is_private=entry.is_private,
    )


def _submission_response(result: SubmissionResult, language: str, kind: str) -> JSONResponse:
    notifications = _notification_payload(result.notifications)
    if result.error == "no_amount_found":
        return error_response(
            422,
            "no_amount_found",
            "No amount found in input.",
            input=result.raw_input,
            example=localization.example_input(language, kind),  # type: ignore[arg-type]
            notifications=notifications,
        )
    if result.error == "persistence_failed":
        return error_response(
            503,
            "persistence_failed",
            "The entry could not be saved. Please retry.",
            input=result.raw_input,
            notifications=notifications,
        )
    if result.entry is None:
        return error_response(
            409,
            "submission_discarded",
            "The submission was cancelled before it was saved.",
            input=result.raw_input,
        )

    body = SubmissionResponseModel(
        entry=_entry_model(result.entry, language),
        state=result.state.value,
        notifications=[NotificationModel(**item) for item in notifications],
    )
    return JSONResponse(status_code=201, content=body.model_dump(mode="json"))


def _submission_in_progress(exc: SubmissionInProgress) -> JSONResponse:
    logger.warning({"event": "submission_in_progress", "form_key": exc.form_key})
    return error_response(409, "submission_in_progress", "A submission for this form is already in progress.")


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = ensure_request_id(request)
    token = bind_request_context(request_id)
    try:
        response = await call_next(request)
        response.headers.setdefault("x-request-id", request_id)
        return response
    finally:
        reset_request_context(token)


@app.on_event("startup")
def on_startup() -> None:
    """Initialize persistence before serving requests."""
    init_db()


@app.get("/health")
def health_check() -> dict:
    """Report Entry Service readiness along with the active category provider."""
    return {
        "status": "ok",
        "service": "entry-service",
        "category_provider": CATEGORY_PROVIDER_SETTINGS.provider_name,
        "ai_policy": CATEGORY_PROVIDER_SETTINGS.ai_policy,
    }


@app.post("/parse", response_model=None)
async def parse_entry(payload: ParseRequest) -> Dict[str, Any] | JSONResponse:
    """
    Dry run of the expense flow: parse and categorize without storing anything.
    Returns the parsed fields, or 422 with a localized example when no amount is present.
    """
    notifications: List[Notification] = []
    parsed = await parse_and_categorize(
        payload.input,
        payload.language,
        payload.existing_categories,
        provider=CATEGORY_PROVIDER,
        ai_policy=_ai_policy(payload.use_ai),  # type: ignore[arg-type]
        notifier=notifications.append,
    )
    if isinstance(parsed, ParseFailure):
        return error_response(
            422,
            parsed.reason,
            "No amount found in input.",
            input=parsed.raw_input,
            example=parsed.example,
        )

    category, category_kind = category_to_storage(parsed.category)
    return ParseResponseModel(
        description=parsed.description,
        amount=parsed.amount,
        category=category,
        category_kind=category_kind,  # type: ignore[arg-type]
        category_display=localization.category_display(parsed.category, payload.language),
        notifications=[NotificationModel(**item) for item in _notification_payload(notifications)],
    ).model_dump()


@app.post("/expenses", response_model=None)
async def create_expense(
    payload: ExpenseRequest,
    owner_id: str = Header(DEFAULT_OWNER_ID, alias="x-user-id"),
    db: Session = Depends(get_session),
) -> JSONResponse:
    """
    Parse, categorize, and store one expense line for the calling user.
    Expects an `ExpenseRequest`; returns 201 with the stored entry and toast notifications.
    """
    assembler = EntryAssembler(LedgerRepository(db))
    try:
        result = await submit_expense(
            payload.input,
            language=payload.language,
            owner_id=owner_id,
            assembler=assembler,
            existing_categories=payload.existing_categories,
            provider=CATEGORY_PROVIDER,
            ai_policy=_ai_policy(payload.use_ai),  # type: ignore[arg-type]
            is_private=payload.is_private,
            guard=app.state.submission_guard,
        )
    except SubmissionInProgress as exc:
        return _submission_in_progress(exc)
    return _submission_response(result, payload.language, "expense")


@app.post("/incomes", response_model=None)
async def create_income(
    payload: IncomeRequest,
    owner_id: str = Header(DEFAULT_OWNER_ID, alias="x-user-id"),
    db: Session = Depends(get_session),
) -> JSONResponse:
    """Parse and store one income line; incomes carry no category."""
    assembler = EntryAssembler(LedgerRepository(db))
    try:
        result = await submit_income(
            payload.input,
            language=payload.language,
            owner_id=owner_id,
            assembler=assembler,
            is_private=payload.is_private,
            guard=app.state.submission_guard,
        )
    except SubmissionInProgress as exc:
        return _submission_in_progress(exc)
    return _submission_response(result, payload.language, "income")


@app.get("/expenses", response_model=List[EntryModel])
def list_expenses(
    language: Literal["id", "en"] = "id",
    owner_id: str = Header(DEFAULT_OWNER_ID, alias="x-user-id"),
    db: Session = Depends(get_session),
) -> List[EntryModel]:
    """List the caller's expenses, most recent first."""
    entries = LedgerRepository(db).list_all(owner_id, "expense")
    return [_entry_model(entry, language) for entry in entries]


@app.get("/incomes", response_model=List[EntryModel])
def list_incomes(
    language: Literal["id", "en"] = "id",
    owner_id: str = Header(DEFAULT_OWNER_ID, alias="x-user-id"),
    db: Session = Depends(get_session),
) -> List[EntryModel]:
    """List the caller's incomes, most recent first."""
    entries = LedgerRepository(db).list_all(owner_id, "income")
    return [_entry_model(entry, language) for entry in entries]


@app.get("/reports/monthly", response_model=MonthlyReportModel)
def get_monthly_report(
    year: int = Query(..., ge=1970, le=9999),
    month: int = Query(..., ge=1, le=12),
    language: Literal["id", "en"] = "id",
    owner_id: str = Header(DEFAULT_OWNER_ID, alias="x-user-id"),
    db: Session = Depends(get_session),
) -> MonthlyReportModel:
    """
    Summarize one calendar month: totals, balance, and expense totals per category.
    Category totals are sorted from largest to smallest.
    """
    repository = LedgerRepository(db)
    report = monthly_report(
        repository.list_by_month(owner_id, "expense", year, month),
        repository.list_by_month(owner_id, "income", year, month),
        year,
        month,
    )
    return _report_model(report, language)


def _report_model(report: MonthlyReport, language: str) -> MonthlyReportModel:
    return MonthlyReportModel(
        year=report.year,
        month=report.month,
        total_expenses=report.total_expenses,
        total_income=report.total_income,
        balance=report.balance,
        expense_count=report.expense_count,
        income_count=report.income_count,
        by_category=[
            CategoryTotalModel(
                category=row.category,
                category_display=_stored_category_display(row.category, language),
                total=row.total,
            )
            for row in report.by_category
        ],
    )


def _stored_category_display(label: str, language: str) -> str:
    known = localization.known_category_for_label(label)
    if known is not None and label == known.value:
        return localization.category_display(known, language)
    return label
