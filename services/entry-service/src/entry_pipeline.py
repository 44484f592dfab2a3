"""
Submission pipeline: free text in, persisted ledger entry out.

One expense submission walks these states:

    Idle -> Parsing -> ParseFailed
                    -> CategoryClassified -> [AwaitingAISuggestion
                       -> SuggestionApplied | SuggestionFallback]
                       -> Assembled -> Persisted | PersistenceFailed

plus Discarded when the caller cancels while the suggestion is pending. The
only suspension point is the suggestion provider call; everything else is a
pure function of the input, the language, and the read-only rule table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Literal, Optional, Sequence, Union

from shared.observability.privacy import text_fingerprint

import localization
from assembler import EntryAssembler
from categorize import DEFAULT_CATEGORY, classify_category
from category_provider import (
    CategorySuggestionProvider,
    CategorySuggestionRequest,
    normalize_suggested_label,
    resolve_suggested_category,
)
from entry_model import (
    Category,
    EntryKind,
    KnownCategory,
    LedgerEntry,
    Notification,
    ParsedEntry,
    ParsedIncome,
    ParseFailure,
    PersistenceFailed,
)
from parsing import parse_amount_and_description, parse_income_input
from submission_guard import SubmissionGuard, form_key

logger = logging.getLogger(__name__)

AIPolicy = Literal["off", "low_confidence", "always"]
Notifier = Callable[[Notification], None]


class SubmissionState(str, Enum):
    IDLE = "idle"
    PARSING = "parsing"
    PARSE_FAILED = "parse_failed"
    CATEGORY_CLASSIFIED = "category_classified"
    AWAITING_AI_SUGGESTION = "awaiting_ai_suggestion"
    SUGGESTION_APPLIED = "suggestion_applied"
    SUGGESTION_FALLBACK = "suggestion_fallback"
    ASSEMBLED = "assembled"
    PERSISTED = "persisted"
    PERSISTENCE_FAILED = "persistence_failed"
    DISCARDED = "discarded"


TERMINAL_STATES = frozenset(
    {
        SubmissionState.PARSE_FAILED,
        SubmissionState.PERSISTED,
        SubmissionState.PERSISTENCE_FAILED,
        SubmissionState.DISCARDED,
    }
)

# Income skips classification, so Parsing may go straight to Assembled.
ALLOWED_TRANSITIONS: Dict[SubmissionState, FrozenSet[SubmissionState]] = {
    SubmissionState.IDLE: frozenset({SubmissionState.PARSING}),
    SubmissionState.PARSING: frozenset(
        {
            SubmissionState.PARSE_FAILED,
            SubmissionState.CATEGORY_CLASSIFIED,
            SubmissionState.ASSEMBLED,
            SubmissionState.DISCARDED,
        }
    ),
    SubmissionState.CATEGORY_CLASSIFIED: frozenset(
        {SubmissionState.AWAITING_AI_SUGGESTION, SubmissionState.ASSEMBLED, SubmissionState.DISCARDED}
    ),
    SubmissionState.AWAITING_AI_SUGGESTION: frozenset(
        {SubmissionState.SUGGESTION_APPLIED, SubmissionState.SUGGESTION_FALLBACK}
    ),
    SubmissionState.SUGGESTION_APPLIED: frozenset({SubmissionState.ASSEMBLED, SubmissionState.DISCARDED}),
    SubmissionState.SUGGESTION_FALLBACK: frozenset({SubmissionState.ASSEMBLED, SubmissionState.DISCARDED}),
    SubmissionState.ASSEMBLED: frozenset({SubmissionState.PERSISTED, SubmissionState.PERSISTENCE_FAILED}),
    **{state: frozenset() for state in TERMINAL_STATES},
}


class SubmissionDiscarded(Exception):
    """Raised inside the pipeline when the caller cancelled mid-flight."""


class CancellationToken:
    """
    Cooperative cancellation for one submission.

    The caller flips it when its form goes away; the pipeline checks it after
    the suggestion call resolves and before persisting. The outbound call
    itself is not aborted, its result is just dropped.
    """

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class SubmissionTracker:
    """Records the state trail of a single submission and rejects illegal moves."""

    def __init__(self) -> None:
        self.states: List[SubmissionState] = [SubmissionState.IDLE]

    @property
    def state(self) -> SubmissionState:
        return self.states[-1]

    def advance(self, state: SubmissionState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Submission already finished in state '{self.state.value}'")
        if state not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal submission transition '{self.state.value}' -> '{state.value}'")
        self.states.append(state)


@dataclass(slots=True)
class SubmissionResult:
    raw_input: str
    state: SubmissionState
    states: List[SubmissionState]
    entry: Optional[LedgerEntry] = None
    error: Optional[str] = None
    notifications: List[Notification] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state is SubmissionState.PERSISTED


async def parse_and_categorize(
    raw_input: str,
    language: str,
    existing_categories: Sequence[str] | None = None,
    *,
    provider: CategorySuggestionProvider | None = None,
    ai_policy: AIPolicy = "low_confidence",
    cancellation: CancellationToken | None = None,
    notifier: Notifier | None = None,
    tracker: SubmissionTracker | None = None,
) -> Union[ParsedEntry, ParseFailure]:
    """
    Parse one expense line and pick its category.

    The keyword classifier always runs. When a provider is given and the AI
    policy asks for it, the provider may refine that result; if the provider
    fails or answers with something unusable, the classifier's category is
    kept and a warning notification is emitted through `notifier`.

    Raises:
        UnsupportedLanguageError: `language` has no translation table.
        SubmissionDiscarded: `cancellation` fired while the suggestion was pending.
    """

    tracker = tracker or SubmissionTracker()
    tracker.advance(SubmissionState.PARSING)
    default_label = localization.default_description(language, "expense")

    parsed = parse_amount_and_description(raw_input, default_label)
    if parsed is None:
        tracker.advance(SubmissionState.PARSE_FAILED)
        logger.info({"event": "entry_parse_failed", "kind": "expense", "input": text_fingerprint(raw_input)})
        return ParseFailure(
            reason="no_amount_found",
            raw_input=raw_input,
            example=localization.example_input(language, "expense"),
        )

    classified = classify_category(raw_input)
    tracker.advance(SubmissionState.CATEGORY_CLASSIFIED)

    category: Category = classified
    if provider is not None and _should_consult_provider(ai_policy, classified):
        existing = list(existing_categories) if existing_categories else localization.known_category_labels(language)
        tracker.advance(SubmissionState.AWAITING_AI_SUGGESTION)
        category = await _suggest_category(
            provider,
            description=parsed.description,
            language=language,
            existing_categories=existing,
            fallback=classified,
            notifier=notifier,
            tracker=tracker,
        )
        if cancellation is not None and cancellation.cancelled:
            tracker.advance(SubmissionState.DISCARDED)
            logger.info({"event": "category_suggestion_discarded", "provider": provider.name})
            raise SubmissionDiscarded()

    return ParsedEntry(description=parsed.description, amount=parsed.amount, category=category)


def _should_consult_provider(ai_policy: AIPolicy, classified: KnownCategory) -> bool:
    if ai_policy == "always":
        return True
    if ai_policy == "low_confidence":
        return classified is DEFAULT_CATEGORY
    return False


async def _suggest_category(
    provider: CategorySuggestionProvider,
    *,
    description: str,
    language: str,
    existing_categories: List[str],
    fallback: KnownCategory,
    notifier: Notifier | None,
    tracker: SubmissionTracker,
) -> Category:
    request = CategorySuggestionRequest(
        description=description,
        language=language,
        existing_categories=existing_categories,
        context={"surface": "entry-service", "form": "expense"},
    )

    try:
        response = await provider.suggest(request)
    except Exception as exc:
        return _fall_back(provider, fallback, language, notifier, tracker, reason="provider_error", error=exc)

    label = normalize_suggested_label(response.category)
    if label is None:
        return _fall_back(provider, fallback, language, notifier, tracker, reason="unusable_label")

    tracker.advance(SubmissionState.SUGGESTION_APPLIED)
    return resolve_suggested_category(label, existing_categories)


def _fall_back(
    provider: CategorySuggestionProvider,
    fallback: KnownCategory,
    language: str,
    notifier: Notifier | None,
    tracker: SubmissionTracker,
    *,
    reason: str,
    error: Exception | None = None,
) -> Category:
    logger.warning(
        {
            "event": "category_suggestion_fallback",
            "provider": provider.name,
            "reason": reason,
            "error_type": type(error).__name__ if error else None,
            "fallback_category": fallback.value,
        }
    )
    tracker.advance(SubmissionState.SUGGESTION_FALLBACK)
    if notifier is not None:
        notifier(localization.ai_suggestion_failed(fallback, language))
    return fallback


async def submit_expense(
    raw_input: str,
    *,
    language: str,
    owner_id: str,
    assembler: EntryAssembler,
    existing_categories: Sequence[str] | None = None,
    provider: CategorySuggestionProvider | None = None,
    ai_policy: AIPolicy = "low_confidence",
    is_private: bool = False,
    cancellation: CancellationToken | None = None,
    guard: SubmissionGuard | None = None,
) -> SubmissionResult:
    """
    Run the full expense flow: parse, categorize, assemble, persist.

    Parse failures and storage failures come back as a SubmissionResult with
    `error` set; the raw input is echoed so the caller can leave it in the
    form. A second submission for the same form while this one is running
    raises SubmissionInProgress (only when `guard` is given).
    """

    if guard is None:
        return await _run_expense(
            raw_input, language, owner_id, assembler, existing_categories, provider, ai_policy, is_private, cancellation
        )
    async with guard.hold(form_key(owner_id, "expense")):
        return await _run_expense(
            raw_input, language, owner_id, assembler, existing_categories, provider, ai_policy, is_private, cancellation
        )


async def _run_expense(
    raw_input: str,
    language: str,
    owner_id: str,
    assembler: EntryAssembler,
    existing_categories: Sequence[str] | None,
    provider: CategorySuggestionProvider | None,
    ai_policy: AIPolicy,
    is_private: bool,
    cancellation: CancellationToken | None,
) -> SubmissionResult:
    tracker = SubmissionTracker()
    notifications: List[Notification] = []

    try:
        parsed = await parse_and_categorize(
            raw_input,
            language,
            existing_categories,
            provider=provider,
            ai_policy=ai_policy,
            cancellation=cancellation,
            notifier=notifications.append,
            tracker=tracker,
        )
    except SubmissionDiscarded:
        return _result(raw_input, tracker, notifications)

    if isinstance(parsed, ParseFailure):
        notifications.append(localization.incorrect_format(language, "expense"))
        return _result(raw_input, tracker, notifications, error=parsed.reason)

    return _assemble_and_persist(
        raw_input, parsed, "expense", language, owner_id, assembler, is_private, cancellation, tracker, notifications
    )


async def submit_income(
    raw_input: str,
    *,
    language: str,
    owner_id: str,
    assembler: EntryAssembler,
    is_private: bool = False,
    cancellation: CancellationToken | None = None,
    guard: SubmissionGuard | None = None,
) -> SubmissionResult:
    """Run the income flow: parse, assemble, persist. Income carries no category."""

    if guard is None:
        return _run_income(raw_input, language, owner_id, assembler, is_private, cancellation)
    async with guard.hold(form_key(owner_id, "income")):
        return _run_income(raw_input, language, owner_id, assembler, is_private, cancellation)


def _run_income(
    raw_input: str,
    language: str,
    owner_id: str,
    assembler: EntryAssembler,
    is_private: bool,
    cancellation: CancellationToken | None,
) -> SubmissionResult:
    tracker = SubmissionTracker()
    notifications: List[Notification] = []

    tracker.advance(SubmissionState.PARSING)
    parsed = parse_income_input(raw_input, localization.default_description(language, "income"))
    if parsed is None:
        tracker.advance(SubmissionState.PARSE_FAILED)
        logger.info({"event": "entry_parse_failed", "kind": "income", "input": text_fingerprint(raw_input)})
        notifications.append(localization.incorrect_format(language, "income"))
        return _result(raw_input, tracker, notifications, error="no_amount_found")

    return _assemble_and_persist(
        raw_input, parsed, "income", language, owner_id, assembler, is_private, cancellation, tracker, notifications
    )


def _assemble_and_persist(
    raw_input: str,
    parsed: ParsedEntry | ParsedIncome,
    kind: EntryKind,
    language: str,
    owner_id: str,
    assembler: EntryAssembler,
    is_private: bool,
    cancellation: CancellationToken | None,
    tracker: SubmissionTracker,
    notifications: List[Notification],
) -> SubmissionResult:
    if cancellation is not None and cancellation.cancelled:
        tracker.advance(SubmissionState.DISCARDED)
        return _result(raw_input, tracker, notifications)

    entry = assembler.assemble(parsed, kind=kind, owner_id=owner_id, is_private=is_private)
    tracker.advance(SubmissionState.ASSEMBLED)

    try:
        assembler.persist(entry)
    except PersistenceFailed as exc:
        tracker.advance(SubmissionState.PERSISTENCE_FAILED)
        logger.error({"event": "entry_submission_failed", "kind": kind, "entry_id": entry.id, "error": str(exc)})
        notifications.append(localization.persistence_failed(language))
        return _result(raw_input, tracker, notifications, error="persistence_failed")

    tracker.advance(SubmissionState.PERSISTED)
    if kind == "expense":
        notifications.append(localization.expense_recorded(entry, language))
    else:
        notifications.append(localization.income_recorded(entry, language))
    return _result(raw_input, tracker, notifications, entry=entry)


def _result(
    raw_input: str,
    tracker: SubmissionTracker,
    notifications: List[Notification],
    *,
    entry: LedgerEntry | None = None,
    error: str | None = None,
) -> SubmissionResult:
    return SubmissionResult(
        raw_input=raw_input,
        state=tracker.state,
        states=list(tracker.states),
        entry=entry,
        error=error,
        notifications=notifications,
    )
