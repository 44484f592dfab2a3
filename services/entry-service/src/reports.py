from __future__ import annotations

from typing import Dict, Iterable, List

from entry_model import CategoryTotal, KnownCategory, LedgerEntry, MonthlyReport, category_label


def entries_in_month(entries: Iterable[LedgerEntry], year: int, month: int) -> List[LedgerEntry]:
    return [entry for entry in entries if entry.entry_date.year == year and entry.entry_date.month == month]


def category_totals(expenses: Iterable[LedgerEntry]) -> List[CategoryTotal]:
    """
    Sum expense amounts per stored category label.

    Args:
        expenses: Expense entries; entries without a category count toward "Other".
    Returns:
        CategoryTotal rows sorted by total descending, ties broken by label so output is stable.
    Assumptions:
        Private entries still contribute to their category; privacy only masks descriptions.
    """
    totals: Dict[str, int] = {}
    for expense in expenses:
        label = category_label(expense.category) if expense.category else KnownCategory.OTHER.value
        totals[label] = totals.get(label, 0) + expense.amount

    ordered = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
    return [CategoryTotal(category=label, total=total) for label, total in ordered]


def monthly_report(
    expenses: Iterable[LedgerEntry],
    incomes: Iterable[LedgerEntry],
    year: int,
    month: int,
) -> MonthlyReport:
    """
    Aggregate one calendar month of expenses and incomes.

    Entries outside the requested month are ignored, so callers may pass a
    full ledger. Balance is income minus expenses and can be negative.
    """
    if not 1 <= month <= 12:
        raise ValueError(f"month must be between 1 and 12, got {month}")

    month_expenses = entries_in_month(expenses, year, month)
    month_incomes = entries_in_month(incomes, year, month)

    total_expenses = sum(entry.amount for entry in month_expenses)
    total_income = sum(entry.amount for entry in month_incomes)

    return MonthlyReport(
        year=year,
        month=month,
        total_expenses=total_expenses,
        total_income=total_income,
        balance=total_income - total_expenses,
        expense_count=len(month_expenses),
        income_count=len(month_incomes),
        by_category=category_totals(month_expenses),
    )
