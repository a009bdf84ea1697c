from decimal import Decimal

import pytest

from proposal_engine.utils.money import format_currency, format_currency_with_words, number_to_words, to_money
from proposal_engine.utils.text import last_name, letter_for, natural_join, normalize_whitespace, sanitize_bm_name

WORDS = [
    (15000, "Quince mil pesos 00/100 M.N."),
    (300000, "Trescientos mil pesos 00/100 M.N."),
    (100, "Cien pesos 00/100 M.N."),
    (21000, "Veintiún mil pesos 00/100 M.N."),
    (2500.50, "Dos mil quinientos pesos 50/100 M.N."),
    (1_000_000, "Un millón de pesos 00/100 M.N."),
    (2_345_678, "Dos millones trescientos cuarenta y cinco mil seiscientos setenta y ocho pesos 00/100 M.N."),
    (0, "Cero pesos 00/100 M.N."),
]


@pytest.mark.parametrize("amount, expected", WORDS)
def test_number_to_words(amount, expected):
    assert number_to_words(amount) == expected


@pytest.mark.parametrize("raw, expected", [
    (15000, Decimal("15000.00")),
    ("1,234.567", Decimal("1234.57")),
    (None, Decimal("0.00")),
    ("abc", Decimal("0.00")),
    (-5, Decimal("0.00")),
    ("NaN", Decimal("0.00")),
    ("1e30", Decimal("0.00")),
    (Decimal("1e30"), Decimal("0.00")),
    (Decimal("999999999999.99"), Decimal("999999999999.99")),
])
def test_to_money(raw, expected):
    assert to_money(raw) == expected


def test_format_currency():
    assert format_currency(15000) == "$15,000.00"
    assert format_currency(Decimal("1234567.891")) == "$1,234,567.89"
    assert format_currency_with_words(300000) == "$300,000.00 (Trescientos mil pesos 00/100 M.N.)"


@pytest.mark.parametrize("raw, expected", [
    ("  a   b \n c\n\n\n d ", "a b\nc\n\nd"),
    ("uno\r\ndos", "uno\ndos"),
    ("\n\n  \n", ""),
    ("x\n   \ny", "x\n\ny"),
    ("", ""),
])
def test_normalize_whitespace(raw, expected):
    assert normalize_whitespace(raw) == expected


def test_normalize_whitespace_is_idempotent():
    text = " p1 l1 \n  p1 l2\n\n\n\tp2 "
    once = normalize_whitespace(text)
    assert normalize_whitespace(once) == once


def test_small_text_helpers():
    assert [letter_for(i) for i in (0, 1, 25, 26, 27)] == ["a", "b", "z", "aa", "ab"]
    assert natural_join(["a"]) == "a"
    assert natural_join(["a", "b", "c"]) == "a, b y c"
    assert last_name("Juan Pérez García") == "Pérez"
    assert last_name("Ana López") == "López"
    assert sanitize_bm_name("pricing-service-abc", prefix="sec") == "sec_pricing_service_abc"
    assert len(sanitize_bm_name("x" * 80)) == 40


def test_long_bookmark_names_stay_distinct():
    shared = "servicio-de-reestructura-corporativa-integral-"
    first = sanitize_bm_name(f"pricing-service-{shared}norte", prefix="sec")
    second = sanitize_bm_name(f"pricing-service-{shared}sur", prefix="sec")
    assert first != second
    assert len(first) == len(second) == 40
    assert first.startswith("sec_pricing_service_servicio_de_r")
    assert sanitize_bm_name(f"pricing-service-{shared}norte", prefix="sec") == first


def test_huge_amount_does_not_break_formatting():
    assert format_currency(Decimal("1e30")) == "$0.00"
    assert number_to_words(Decimal("1e30")) == "Cero pesos 00/100 M.N."
