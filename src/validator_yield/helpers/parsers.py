"""Parsing utilities for chain values."""

from decimal import Decimal

from typing import Any

from validator_yield.helpers.constants import APY_DECIMALS, PLANCK_PER_DOT


def parse_chain_int(value: Any, default: int = 0) -> int:
    """Parse an integer as returned by the chain data source.

    Large balances arrive as decimal or ``0x`` hex strings, small counters as
    JSON numbers.

    Args:
        value: JSON number, decimal string, hex string or None
        default: Value returned for None or an empty string

    Returns:
        int: Parsed integer value

    Raises:
        ValueError: If the value is not an integer representation

    Example:
        >>> parse_chain_int("0xff")
        255
        >>> parse_chain_int("1000000")
        1000000
        >>> parse_chain_int(None)
        0
    """
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        msg = f"Expected an integer, got {value!r}"
        raise ValueError(msg)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if text.lower().startswith("0x"):
            return int(text, 16)
        return int(text, 10)
    msg = f"Expected an integer, got {value!r}"
    raise ValueError(msg)


def planck_to_dot(planck: int | None) -> Decimal | None:
    """Convert planck to DOT (divide by 1e10) without losing precision.

    Args:
        planck: Amount in planck, or None

    Returns:
        Decimal | None: Amount in DOT, or None if input was None

    Example:
        >>> planck_to_dot(25_000_000_000)
        Decimal('2.5')
        >>> planck_to_dot(None)
        None
    """
    if planck is None:
        return None
    return Decimal(planck) / PLANCK_PER_DOT


def format_apy(apy: Decimal) -> str:
    """Format an APY percentage for display.

    Example:
        >>> format_apy(Decimal("16425"))
        '16425.00%'
    """
    return f"{apy:.{APY_DECIMALS}f}%"


__all__ = ["format_apy", "parse_chain_int", "planck_to_dot"]
