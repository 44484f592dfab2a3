"""
Localized labels and toast messages for the entry pipeline.

The pipeline never hard-codes user-facing text: default descriptions, the
"Other" category label, and every notification are looked up here by a
two-letter language code.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Literal, Optional

from entry_model import Category, EntryKind, KnownCategory, LedgerEntry, Notification, category_label

Language = Literal["id", "en"]
SUPPORTED_LANGUAGES: tuple[str, ...] = ("id", "en")


class UnsupportedLanguageError(ValueError):
    """Raised when a language code has no translation table."""


@dataclass(frozen=True, slots=True)
class Labels:
    categories: Dict[KnownCategory, str]
    default_expense_description: str
    default_income_description: str
    private_label: str
    example_expense_input: str
    example_income_input: str
    expense_recorded_title: str
    income_recorded_title: str
    income_recorded_prefix: str
    incorrect_format_title: str
    incorrect_format_message: str
    ai_suggestion_failed_title: str
    ai_suggestion_failed_message: str
    persistence_failed_title: str
    persistence_failed_message: str


_LABELS: Dict[str, Labels] = {
    "id": Labels(
        categories={
            KnownCategory.FOOD: "Makanan",
            KnownCategory.TRANSPORT: "Transportasi",
            KnownCategory.SHOPPING: "Belanja",
            KnownCategory.OTHER: "Lainnya",
        },
        # Bare amounts are recorded as "Expense" in every language.
        default_expense_description="Expense",
        default_income_description="Pemasukan",
        private_label="Privat",
        example_expense_input="Makan siang 50rb",
        example_income_input="Gaji bulanan 10jt",
        expense_recorded_title="✅ Pengeluaran Tercatat",
        income_recorded_title="✅ Pemasukan Tercatat",
        income_recorded_prefix="Pemasukan",
        incorrect_format_title="❌ Format Salah",
        incorrect_format_message="Tidak dapat memproses input. Contoh: '{example}'",
        ai_suggestion_failed_title="⚠️ Saran Kategori AI Gagal",
        ai_suggestion_failed_message="Kategori AI tidak tersedia, pengeluaran dicatat sebagai '{category}'.",
        persistence_failed_title="❌ Gagal Menyimpan",
        persistence_failed_message="Data belum tersimpan. Silakan coba lagi.",
    ),
    "en": Labels(
        categories={
            KnownCategory.FOOD: "Food",
            KnownCategory.TRANSPORT: "Transportation",
            KnownCategory.SHOPPING: "Shopping",
            KnownCategory.OTHER: "Others",
        },
        default_expense_description="Expense",
        default_income_description="Income",
        private_label="Private",
        example_expense_input="Lunch 50k",
        example_income_input="Monthly salary 10jt",
        expense_recorded_title="✅ Expense Recorded",
        income_recorded_title="✅ Income Recorded",
        income_recorded_prefix="Income",
        incorrect_format_title="❌ Incorrect Format",
        incorrect_format_message="Cannot process input. Example: '{example}'",
        ai_suggestion_failed_title="⚠️ AI Category Suggestion Failed",
        ai_suggestion_failed_message="AI category is unavailable, the expense was recorded as '{category}'.",
        persistence_failed_title="❌ Could Not Save",
        persistence_failed_message="The entry was not saved. Please try again.",
    ),
}


def _build_known_aliases() -> Dict[str, KnownCategory]:
    """Every spelling that maps back onto a canonical category, across languages."""
    aliases: Dict[str, KnownCategory] = {category.value.casefold(): category for category in KnownCategory}
    for labels in _LABELS.values():
        for category, label in labels.categories.items():
            aliases[label.casefold()] = category
    aliases["other"] = KnownCategory.OTHER
    return aliases


_KNOWN_ALIASES = _build_known_aliases()


def get_labels(language: str) -> Labels:
    try:
        return _LABELS[language]
    except KeyError as exc:
        raise UnsupportedLanguageError(
            f"Unsupported language '{language}'; expected one of {', '.join(SUPPORTED_LANGUAGES)}"
        ) from exc


def other_label(language: str) -> str:
    return get_labels(language).categories[KnownCategory.OTHER]


def default_description(language: str, kind: EntryKind = "expense") -> str:
    labels = get_labels(language)
    if kind == "income":
        return labels.default_income_description
    return labels.default_expense_description


def category_display(category: Category, language: str) -> str:
    if isinstance(category, KnownCategory):
        return get_labels(language).categories[category]
    return category_label(category)


def known_category_labels(language: str) -> List[str]:
    """Localized labels of the canonical categories, in display order."""
    return list(get_labels(language).categories.values())


def known_category_for_label(label: str) -> Optional[KnownCategory]:
    return _KNOWN_ALIASES.get(label.strip().casefold())


def format_currency(amount: int) -> str:
    """Format an IDR amount the way id-ID renders it (no decimals, dot grouping)."""
    sign = "-" if amount < 0 else ""
    return f"{sign}Rp {abs(amount):,}".replace(",", ".")


def expense_recorded(entry: LedgerEntry, language: str) -> Notification:
    labels = get_labels(language)
    if entry.is_private:
        category_text = labels.private_label
        description = labels.private_label
    else:
        category_text = category_display(entry.category, language) if entry.category else other_label(language)
        description = entry.description
    return Notification(
        code="expense_recorded",
        level="info",
        title=labels.expense_recorded_title,
        message=f"{category_text}: {format_currency(entry.amount)} ({description})",
    )


def income_recorded(entry: LedgerEntry, language: str) -> Notification:
    labels = get_labels(language)
    description = labels.private_label if entry.is_private else entry.description
    return Notification(
        code="income_recorded",
        level="info",
        title=labels.income_recorded_title,
        message=f"{labels.income_recorded_prefix}: {format_currency(entry.amount)} ({description})",
    )


def incorrect_format(language: str, kind: EntryKind = "expense") -> Notification:
    labels = get_labels(language)
    return Notification(
        code="no_amount_found",
        level="error",
        title=labels.incorrect_format_title,
        message=labels.incorrect_format_message.format(example=example_input(language, kind)),
    )


def example_input(language: str, kind: EntryKind = "expense") -> str:
    labels = get_labels(language)
    return labels.example_income_input if kind == "income" else labels.example_expense_input


def ai_suggestion_failed(fallback: Category, language: str) -> Notification:
    labels = get_labels(language)
    return Notification(
        code="ai_suggestion_failed",
        level="warning",
        title=labels.ai_suggestion_failed_title,
        message=labels.ai_suggestion_failed_message.format(category=category_display(fallback, language)),
    )


def persistence_failed(language: str) -> Notification:
    labels = get_labels(language)
    return Notification(
        code="persistence_failed",
        level="error",
        title=labels.persistence_failed_title,
        message=labels.persistence_failed_message,
    )
