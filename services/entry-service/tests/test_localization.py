from datetime import date

import pytest
from entry_model import AdHocCategory, KnownCategory, LedgerEntry
from localization import (
    UnsupportedLanguageError,
    ai_suggestion_failed,
    category_display,
    default_description,
    expense_recorded,
    format_currency,
    income_recorded,
    incorrect_format,
    known_category_for_label,
    known_category_labels,
    other_label,
    persistence_failed,
)


def _entry(**overrides) -> LedgerEntry:
    values = dict(
        id="entry-1",
        owner_id="user-1",
        kind="expense",
        description="Makan siang",
        amount=50_000,
        entry_date=date(2024, 5, 1),
        category=KnownCategory.FOOD,
        is_private=False,
    )
    values.update(overrides)
    return LedgerEntry(**values)


def test_other_label_per_language() -> None:
    assert other_label("id") == "Lainnya"
    assert other_label("en") == "Others"


def test_unknown_language_is_rejected() -> None:
    with pytest.raises(UnsupportedLanguageError):
        other_label("fr")


def test_default_descriptions() -> None:
    assert default_description("id") == "Expense"
    assert default_description("en") == "Expense"
    assert default_description("id", "income") == "Pemasukan"
    assert default_description("en", "income") == "Income"


def test_category_display_localizes_known_categories_only() -> None:
    assert category_display(KnownCategory.TRANSPORT, "id") == "Transportasi"
    assert category_display(KnownCategory.FOOD, "en") == "Food"
    assert category_display(AdHocCategory("Hiburan Digital"), "en") == "Hiburan Digital"


def test_known_category_labels_are_in_display_order() -> None:
    assert known_category_labels("en") == ["Food", "Transportation", "Shopping", "Others"]


@pytest.mark.parametrize(
    "label, expected",
    [
        ("Makanan", KnownCategory.FOOD),
        ("food", KnownCategory.FOOD),
        (" Transportasi ", KnownCategory.TRANSPORT),
        ("Transport", KnownCategory.TRANSPORT),
        ("SHOPPING", KnownCategory.SHOPPING),
        ("Others", KnownCategory.OTHER),
        ("Other", KnownCategory.OTHER),
        ("Lainnya", KnownCategory.OTHER),
        ("Hiburan", None),
    ],
)
def test_known_category_for_label(label: str, expected) -> None:
    assert known_category_for_label(label) is expected


def test_format_currency_uses_dot_grouping() -> None:
    assert format_currency(50_000) == "Rp 50.000"
    assert format_currency(10_000_000) == "Rp 10.000.000"
    assert format_currency(500) == "Rp 500"
    assert format_currency(-25_000) == "-Rp 25.000"


def test_expense_recorded_message() -> None:
    notification = expense_recorded(_entry(), "id")

    assert notification.code == "expense_recorded"
    assert notification.level == "info"
    assert notification.message == "Makanan: Rp 50.000 (Makan siang)"


def test_expense_recorded_masks_private_entries() -> None:
    notification = expense_recorded(_entry(is_private=True), "en")

    assert "Makan siang" not in notification.message
    assert notification.message == "Private: Rp 50.000 (Private)"


def test_income_recorded_message() -> None:
    entry = _entry(kind="income", description="Gaji bulanan", amount=10_000_000, category=None)

    assert income_recorded(entry, "id").message == "Pemasukan: Rp 10.000.000 (Gaji bulanan)"
    assert income_recorded(_entry(kind="income", category=None, is_private=True), "id").message.endswith("(Privat)")


def test_incorrect_format_includes_localized_example() -> None:
    assert "Makan siang 50rb" in incorrect_format("id").message
    assert "Lunch 50k" in incorrect_format("en").message
    assert "Monthly salary 10jt" in incorrect_format("en", "income").message
    assert incorrect_format("id").code == "no_amount_found"


def test_ai_suggestion_failed_is_a_warning_naming_the_fallback() -> None:
    notification = ai_suggestion_failed(KnownCategory.OTHER, "id")

    assert notification.level == "warning"
    assert "Lainnya" in notification.message


def test_persistence_failed_is_an_error() -> None:
    notification = persistence_failed("en")

    assert notification.code == "persistence_failed"
    assert notification.level == "error"
