from __future__ import annotations

import math
from typing import NamedTuple, Optional, Union

from .models import Currency


class _DisplayRule(NamedTuple):
    symbol: str
    divisor: float
    decimals: int


# Canonical units are USD-equivalent; crypto codes are rescaled for display.
_DISPLAY_RULES = {
    Currency.USD: _DisplayRule("$", 1, 2),
    Currency.GBP: _DisplayRule("£", 1, 2),
    Currency.EUR: _DisplayRule("€", 1, 2),
    Currency.BTC: _DisplayRule("₿", 100000, 8),
    Currency.ETH: _DisplayRule("Ξ", 4000, 6),
    Currency.LTC: _DisplayRule("Ł", 100, 4),
}


def parse_currency(code: Union[str, Currency]) -> Currency:
    """Return the `Currency` for `code`, raising `ValueError` if unknown."""

    if isinstance(code, Currency):
        return code
    try:
        return Currency(str(code).upper())
    except ValueError:
        raise ValueError(f"Unsupported currency code: {code!r}") from None


def format_amount(amount: Optional[float], currency: Union[str, Currency]) -> str:
    """
    Render a canonical amount for display in `currency`.

    Missing or NaN amounts render as zero. The stored value is never
    changed; only its presentation.
    """

    rule = _DISPLAY_RULES[parse_currency(currency)]
    if amount is None or math.isnan(amount):
        amount = 0.0
    # Adding 0.0 turns a rounded -0.0 into 0.0.
    value = round(amount / rule.divisor, rule.decimals) + 0.0
    return f"{rule.symbol}{value:.{rule.decimals}f}"
