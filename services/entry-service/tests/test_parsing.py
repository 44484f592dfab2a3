import pytest
from entry_model import AmountAndDescription, NoAmountFound, ParsedIncome
from parsing import (
    extract_amount,
    parse_amount_and_description,
    parse_income_input,
    require_amount_and_description,
)


@pytest.mark.parametrize(
    "raw_input, expected",
    [
        ("Makan siang 50rb", AmountAndDescription(amount=50_000, description="Makan siang")),
        ("Transport 20k ke kantor", AmountAndDescription(amount=20_000, description="Transport")),
        ("Kopi pagi 15rb", AmountAndDescription(amount=15_000, description="Kopi pagi")),
        ("100000", AmountAndDescription(amount=100_000, description="Expense")),
        ("Gaji 10jt", AmountAndDescription(amount=10_000_000, description="Gaji")),
    ],
)
def test_parse_amount_and_description_examples(raw_input: str, expected: AmountAndDescription) -> None:
    assert parse_amount_and_description(raw_input) == expected


def test_missing_amount_returns_none() -> None:
    assert parse_amount_and_description("Beli sesuatu") is None
    assert parse_amount_and_description("") is None
    assert parse_amount_and_description("   ") is None


def test_require_amount_raises_no_amount_found() -> None:
    with pytest.raises(NoAmountFound) as excinfo:
        require_amount_and_description("Beli sesuatu")

    assert excinfo.value.raw_input == "Beli sesuatu"


def test_suffixes_are_case_insensitive_and_allow_whitespace() -> None:
    assert parse_amount_and_description("BENSIN 20 K").amount == 20_000
    assert parse_amount_and_description("Parkir 5RB").amount == 5_000
    assert parse_amount_and_description("Laptop 2 Jt").amount == 2_000_000


def test_suffix_scales_even_when_letters_follow() -> None:
    parsed = parse_amount_and_description("50 kopi")

    assert parsed.amount == 50_000
    assert parsed.description == "Expense"


@pytest.mark.parametrize(
    "raw_input, amount",
    [
        ("Makan 50rban", 50_000),
        ("Gaji 10jtan", 10_000_000),
        ("Beras 5kg 60rb", 5_000),
        ("Parkir 5rbu", 5_000),
    ],
)
def test_suffix_glued_to_a_word_still_counts(raw_input: str, amount: int) -> None:
    assert parse_amount_and_description(raw_input).amount == amount


def test_first_number_wins() -> None:
    parsed = parse_amount_and_description("Beli 2 botol air 30rb")

    assert parsed.amount == 2
    assert parsed.description == "Beli"


def test_description_is_lowercased_then_capitalized() -> None:
    parsed = parse_amount_and_description("  MAKAN Malam 75rb  ")

    assert parsed.description == "Makan malam"


def test_default_description_is_configurable() -> None:
    parsed = parse_amount_and_description("15000", default_description="pengeluaran")

    assert parsed.description == "Pengeluaran"


def test_extract_amount_reports_match_span() -> None:
    match = extract_amount("teh 5rb")

    assert match is not None
    assert match.amount == 5_000
    assert match.suffix == "rb"
    assert (match.start, match.end) == (4, 7)


def test_parse_income_prefers_text_before_amount() -> None:
    assert parse_income_input("Gaji bulanan 10jt") == ParsedIncome(description="Gaji bulanan", amount=10_000_000)


def test_parse_income_uses_text_after_amount_when_nothing_precedes_it() -> None:
    assert parse_income_input("10jt gaji") == ParsedIncome(description="Gaji", amount=10_000_000)


def test_parse_income_falls_back_to_default_description() -> None:
    assert parse_income_input("500rb") == ParsedIncome(description="Pemasukan", amount=500_000)
    assert parse_income_input("500rb", default_description="Income").description == "Income"


def test_parse_income_without_amount_returns_none() -> None:
    assert parse_income_input("bonus") is None


def test_amount_beyond_ledger_range_is_not_an_amount() -> None:
    assert parse_amount_and_description("Rumah 99999999999999jt") is None
    assert parse_amount_and_description("9" * 5000) is None
    assert parse_income_input("Warisan 99999999999999jt") is None


def test_largest_ledger_amount_still_parses() -> None:
    parsed = parse_amount_and_description(f"Rumah {2**63 - 1}")

    assert parsed.amount == 2**63 - 1
    assert parsed.description == "Rumah"
