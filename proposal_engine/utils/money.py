# proposal_engine/utils/money.py
from __future__ import annotations
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import Any

CENTS = Decimal("0.01")
# Largest amount accepted on input; keeps cents arithmetic inside the default decimal context.
MAX_AMOUNT = Decimal("999999999999.99")


def to_money(value: Any) -> Decimal:
    """
    Coerce numbers/strings ("15,000.50") to a non-negative Decimal with cents.
    Returns Decimal('0.00') for None, blanks and garbage, and for values too large
    to carry cents in the default decimal context.
    """
    if value is None:
        return Decimal("0.00")
    if isinstance(value, Decimal):
        d = value
    else:
        try:
            d = Decimal(str(value).replace(",", "").strip() or "0")
        except ArithmeticError:
            return Decimal("0.00")
    if not d.is_finite() or d < 0:
        return Decimal("0.00")
    try:
        return d.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return Decimal("0.00")


def format_currency(amount: Any) -> str:
    """MXN in es-MX style: 15000 -> "$15,000.00"."""
    return f"${to_money(amount):,.2f}"


_UNITS = ["", "un", "dos", "tres", "cuatro", "cinco", "seis", "siete", "ocho", "nueve"]
_TEENS = ["diez", "once", "doce", "trece", "catorce", "quince",
          "dieciséis", "diecisiete", "dieciocho", "diecinueve"]
_TWENTIES = ["veinte", "veintiún", "veintidós", "veintitrés", "veinticuatro", "veinticinco",
             "veintiséis", "veintisiete", "veintiocho", "veintinueve"]
_TENS = ["", "diez", "veinte", "treinta", "cuarenta", "cincuenta",
         "sesenta", "setenta", "ochenta", "noventa"]
_HUNDREDS = ["", "ciento", "doscientos", "trescientos", "cuatrocientos", "quinientos",
             "seiscientos", "setecientos", "ochocientos", "novecientos"]


def _spanish_words(n: int) -> str:
    if n == 0:
        return "cero"

    def two_digits(x: int) -> str:
        if x < 10: return _UNITS[x]
        if x < 20: return _TEENS[x - 10]
        if x < 30: return _TWENTIES[x - 20]
        t, u = divmod(x, 10)
        return _TENS[t] + (f" y {_UNITS[u]}" if u else "")

    def three_digits(x: int) -> str:
        if x == 100:
            return "cien"
        h, r = divmod(x, 100)
        if h and r: return f"{_HUNDREDS[h]} {two_digits(r)}"
        if h: return _HUNDREDS[h]
        return two_digits(r)

    parts = []
    millions, n = divmod(n, 1_000_000)
    thousands, rest = divmod(n, 1000)
    if millions:
        parts.append("un millón" if millions == 1 else f"{_spanish_words(millions)} millones")
    if thousands:
        parts.append("mil" if thousands == 1 else f"{three_digits(thousands)} mil")
    if rest:
        parts.append(three_digits(rest))
    return " ".join(parts)


def number_to_words(amount: Any) -> str:
    """
    Spanish legal-style amount: 300000 -> "Trescientos mil pesos 00/100 M.N."
    Used next to the figure in the global fee narrative.
    """
    value = to_money(amount)
    whole = int(value.quantize(Decimal("1"), rounding=ROUND_DOWN))
    cents = int(((value - Decimal(whole)) * 100).quantize(Decimal("1")))
    words = _spanish_words(whole)
    # "un millón de pesos", "dos millones de pesos"
    if whole and whole % 1_000_000 == 0:
        words += " de"
    words = words[0].upper() + words[1:]
    return f"{words} pesos {cents:02d}/100 M.N."


def format_currency_with_words(amount: Any) -> str:
    """"$300,000.00 (Trescientos mil pesos 00/100 M.N.)"."""
    return f"{format_currency(amount)} ({number_to_words(amount)})"
