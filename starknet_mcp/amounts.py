"""Fixed-point conversion between human decimal strings and token base units."""

from __future__ import annotations

import re
from typing import Optional

from starknet_mcp.errors import InvalidAmountError

# Digits with an optional fractional part; at least one digit overall.
AMOUNT_REGEX = re.compile(r"^(?=\.?[0-9])([0-9]*)(?:\.([0-9]*))?$")


def _check_decimals(decimals: int) -> int:
    if isinstance(decimals, bool) or not isinstance(decimals, int) or decimals < 0:
        raise InvalidAmountError(f"Invalid token decimals: {decimals!r}")
    return decimals


def to_base_units(amount: str, decimals: int) -> int:
    """
    Convert a human amount such as ``"1.5"`` into integer base units.

    Fraction digits beyond ``decimals`` are dropped, never rounded:
    ``to_base_units("1.23456", 2) == 123``.
    """
    decimals = _check_decimals(decimals)
    if not isinstance(amount, str):
        raise InvalidAmountError(f"Amount must be a decimal string, got {type(amount).__name__}")
    match = AMOUNT_REGEX.fullmatch(amount)
    if match is None:
        raise InvalidAmountError(f"Invalid amount: {amount!r}")
    whole, fraction = match.group(1), match.group(2) or ""
    fraction = fraction.ljust(decimals, "0")[:decimals]
    return int((whole or "0") + fraction)


def to_human_units(base_units: int, decimals: int) -> str:
    """Render base units as a decimal string without trailing fractional zeros."""
    decimals = _check_decimals(decimals)
    if isinstance(base_units, bool) or not isinstance(base_units, int) or base_units < 0:
        raise InvalidAmountError(f"Invalid base-unit amount: {base_units!r}")
    if decimals == 0:
        return str(base_units)
    digits = str(base_units).rjust(decimals + 1, "0")
    whole, fraction = digits[:-decimals], digits[-decimals:].rstrip("0")
    if not fraction:
        return whole
    return f"{whole}.{fraction}"


def format_percent_bps(bps: Optional[float]) -> Optional[str]:
    """Basis points to a two-decimal percentage string (15 -> "0.15%")."""
    if not bps:
        return None
    return f"{bps / 100:.2f}%"


def format_usd(value: Optional[float], places: int = 2) -> Optional[str]:
    if value is None:
        return None
    try:
        return f"{float(value):.{places}f}"
    except (TypeError, ValueError):
        return None
