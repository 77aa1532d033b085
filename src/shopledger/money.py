from __future__ import annotations

import math
import re

from .errors import ValidationError

INVALID_AMOUNT = "Invalid amount"

_CURRENCY = re.compile(r"руб\.?|₽")
_SPACES = re.compile(r"[\s\u00a0\u202f]")
_AMOUNT = re.compile(r"^\d+(?:\.\d{1,2})?$")


def _non_negative(value) -> int | float:
    if value is None or isinstance(value, bool):
        return 0
    try:
        if not math.isfinite(value) or value < 0:
            return 0
    except TypeError:
        return 0
    return value


def line_total(unit_price_cents, quantity) -> int:
    return math.floor(_non_negative(unit_price_cents) * _non_negative(quantity))


def commission(line_total_cents, pct) -> int:
    # integer floor division keeps the result exact for int inputs
    total = _non_negative(line_total_cents)
    rate = _non_negative(pct)
    if isinstance(total, int) and isinstance(rate, int):
        return (total * rate) // 100
    return math.floor(total * rate / 100)


def _normalize_decimal(value: str) -> str:
    has_dot = "." in value
    has_comma = "," in value
    if has_dot and has_comma:
        if value.rfind(".") > value.rfind(","):
            return value.replace(",", "")
        return value.replace(".", "").replace(",", ".")
    if has_comma:
        return value.replace(",", ".")
    return value


def parse_rub_to_cents(text: str) -> int:
    """Parse a typed-in amount such as ``"1 234,50 ₽"`` into cents."""
    cleaned = _SPACES.sub("", _CURRENCY.sub("", (text or "").strip().lower()))
    if not cleaned:
        raise ValidationError(INVALID_AMOUNT)

    normalized = _normalize_decimal(cleaned)
    if not _AMOUNT.match(normalized):
        raise ValidationError(INVALID_AMOUNT)

    rubles, _, kopecks = normalized.partition(".")
    return int(rubles) * 100 + int((kopecks + "00")[:2])


def format_rub(cents: int) -> str:
    if not isinstance(cents, int) or isinstance(cents, bool):
        raise ValidationError(INVALID_AMOUNT)
    sign = "-" if cents < 0 else ""
    rubles, kopecks = divmod(abs(cents), 100)
    grouped = f"{rubles:,}".replace(",", " ")
    return f"{sign}{grouped},{kopecks:02d} ₽"
