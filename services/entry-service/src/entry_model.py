from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Literal, Union

EntryKind = Literal["expense", "income"]
ParseFailureReason = Literal["no_amount_found"]


class KnownCategory(str, Enum):
    """Canonical expense categories; values are the storage keys."""

    FOOD = "Makanan"
    TRANSPORT = "Transport"
    SHOPPING = "Belanja"
    OTHER = "Lainnya"


KNOWN_CATEGORY_VALUES = frozenset(category.value for category in KnownCategory)


@dataclass(frozen=True, slots=True)
class AdHocCategory:
    """Short free-form label, usually coined by the suggestion provider."""

    label: str

    def __str__(self) -> str:
        return self.label


Category = Union[KnownCategory, AdHocCategory]


def category_to_storage(category: Category) -> tuple[str, str]:
    """Flatten a category into its (label, kind) pair for persistence."""
    if isinstance(category, KnownCategory):
        return category.value, "known"
    return category.label, "ad_hoc"


def category_from_storage(label: str, kind: str | None) -> Category:
    if kind == "known":
        return KnownCategory(label)
    if not kind and label in KNOWN_CATEGORY_VALUES:
        return KnownCategory(label)
    return AdHocCategory(label)


def category_label(category: Category) -> str:
    return category_to_storage(category)[0]


@dataclass(frozen=True, slots=True)
class AmountAndDescription:
    amount: int
    description: str


@dataclass(frozen=True, slots=True)
class ParsedEntry:
    """Structured expense derived from one free-text input."""

    description: str
    amount: int
    category: Category


@dataclass(frozen=True, slots=True)
class ParsedIncome:
    description: str
    amount: int


@dataclass(frozen=True, slots=True)
class ParseFailure:
    """
    Returned instead of a ParsedEntry when the input carries no amount.

    Attributes:
        reason: Machine-readable failure code.
        raw_input: The untouched input so the caller can keep it in the form.
        example: Localized example of a valid input for the error message.
    """

    reason: ParseFailureReason
    raw_input: str
    example: str


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """Assembled expense or income record handed to the persistence store."""

    id: str
    owner_id: str
    kind: EntryKind
    description: str
    amount: int
    entry_date: date
    category: Category | None = None
    is_private: bool = False


@dataclass(frozen=True, slots=True)
class Notification:
    """User-facing toast produced while handling a submission."""

    code: str
    level: Literal["info", "warning", "error"]
    title: str
    message: str


@dataclass(slots=True)
class CategoryTotal:
    category: str
    total: int


@dataclass(slots=True)
class MonthlyReport:
    year: int
    month: int
    total_expenses: int
    total_income: int
    balance: int
    expense_count: int
    income_count: int
    by_category: list[CategoryTotal] = field(default_factory=list)


class NoAmountFound(ValueError):
    """Raised when an input has no recognizable amount."""

    def __init__(self, raw_input: str) -> None:
        super().__init__(f"No amount found in input of length {len(raw_input)}")
        self.raw_input = raw_input


class CategorySuggestionError(RuntimeError):
    """Raised by suggestion providers when no usable category can be produced."""


class PersistenceFailed(RuntimeError):
    """Raised when the entry store rejects an insert."""


class SubmissionInProgress(RuntimeError):
    """Raised when a form is submitted again before its previous submission finished."""

    def __init__(self, form_key: str) -> None:
        super().__init__(f"Submission already in progress for form '{form_key}'")
        self.form_key = form_key
