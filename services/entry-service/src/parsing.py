from __future__ import annotations

"""
Free-text amount and description extraction.

Inputs look like chat messages ("Makan siang 50rb", "Transport 20k ke kantor",
"Gaji bulanan 10jt"). The first run of digits is the amount, optionally scaled
by a magnitude suffix; the text in front of it is the description. Only the
first number is considered, so "Beli 2 botol air 30rb" records 2. A suffix
letter directly after the digits always scales them, so "50 kopi" is 50000.
Amounts that do not fit a signed 64-bit ledger column are treated as no amount.
"""

import re
from dataclasses import dataclass
from typing import Optional

from entry_model import AmountAndDescription, NoAmountFound, ParsedIncome

DEFAULT_EXPENSE_DESCRIPTION = "Expense"
DEFAULT_INCOME_DESCRIPTION = "Pemasukan"

THOUSAND_SUFFIXES = frozenset({"rb", "k"})
MILLION_SUFFIXES = frozenset({"jt"})

MAX_AMOUNT = 2**63 - 1

AMOUNT_PATTERN = re.compile(r"(?P<digits>\d+)(?:\s*(?P<suffix>rb|k|jt))?", re.IGNORECASE | re.ASCII)


@dataclass(frozen=True, slots=True)
class AmountMatch:
    amount: int
    start: int
    end: int
    suffix: Optional[str] = None


def extract_amount(text: str) -> Optional[AmountMatch]:
    """Locate the first digit run (plus optional magnitude suffix) in `text`."""
    match = AMOUNT_PATTERN.search(text)
    if match is None:
        return None

    digits = match.group("digits").lstrip("0") or "0"
    if len(digits) > len(str(MAX_AMOUNT)):
        return None

    amount = int(digits)
    suffix = match.group("suffix")
    if suffix is not None:
        suffix = suffix.lower()
        if suffix in THOUSAND_SUFFIXES:
            amount *= 1_000
        elif suffix in MILLION_SUFFIXES:
            amount *= 1_000_000

    if amount > MAX_AMOUNT:
        return None

    return AmountMatch(amount=amount, start=match.start(), end=match.end(), suffix=suffix)


def parse_amount_and_description(
    raw_input: str,
    default_description: str = DEFAULT_EXPENSE_DESCRIPTION,
) -> Optional[AmountAndDescription]:
    """
    Split an expense line into amount and description.

    The description is the (lowercased, trimmed) text before the amount with
    its first character capitalized; `default_description` stands in when the
    amount is the first token. Returns None when the input has no digits.
    """

    cleaned = _normalize(raw_input)
    amount_match = extract_amount(cleaned)
    if amount_match is None:
        return None

    description = cleaned[: amount_match.start].strip() or default_description
    return AmountAndDescription(amount=amount_match.amount, description=_capitalize_first(description))


def require_amount_and_description(
    raw_input: str,
    default_description: str = DEFAULT_EXPENSE_DESCRIPTION,
) -> AmountAndDescription:
    """Like `parse_amount_and_description` but raises NoAmountFound instead of returning None."""
    parsed = parse_amount_and_description(raw_input, default_description)
    if parsed is None:
        raise NoAmountFound(raw_input)
    return parsed


def parse_income_input(
    raw_input: str,
    default_description: str = DEFAULT_INCOME_DESCRIPTION,
) -> Optional[ParsedIncome]:
    """
    Parse an income line.

    Income is often typed amount-first ("10jt gaji"), so when nothing precedes
    the amount the text after it becomes the description.
    """

    cleaned = _normalize(raw_input)
    amount_match = extract_amount(cleaned)
    if amount_match is None:
        return None

    description = cleaned[: amount_match.start].strip()
    if not description:
        description = cleaned[amount_match.end :].strip()
    if not description:
        description = default_description
    return ParsedIncome(description=_capitalize_first(description), amount=amount_match.amount)


def _normalize(raw_input: str) -> str:
    return (raw_input or "").strip().lower()


def _capitalize_first(text: str) -> str:
    return text[:1].upper() + text[1:]
