"""Parsing utilities for JSON-RPC quantities and wei amounts."""

from decimal import Decimal

from src.helpers.constants import WEI_PER_ETH, WEI_PER_GWEI


def parse_hex_int(hex_value: str | int | None, default: int = 0) -> int:
    """Parse a JSON-RPC quantity to integer.

    Nodes return hex strings; test doubles and some clients return ints.

    Args:
        hex_value: Hex-encoded string, int, or None
        default: Default value if hex_value is None

    Returns:
        int: Parsed integer value

    Example:
        >>> parse_hex_int("0xff")
        255
        >>> parse_hex_int(None, 0)
        0
    """
    if hex_value is None:
        return default
    if isinstance(hex_value, int):
        return hex_value
    return int(hex_value, 16)


def gwei_to_wei(gwei: int | float | str | Decimal) -> int:
    """Convert gwei to integer wei without float rounding drift.

    Example:
        >>> gwei_to_wei("0.1")
        100000000
        >>> gwei_to_wei(25)
        25000000000
    """
    return int(Decimal(str(gwei)) * WEI_PER_GWEI)


def wei_to_gwei(wei: int) -> float:
    """Convert wei to gwei for display and heuristic scoring.

    Example:
        >>> wei_to_gwei(25_000_000_000)
        25.0
    """
    return wei / WEI_PER_GWEI


def wei_to_eth(wei: int | None) -> float | None:
    """Convert Wei to ETH (divide by 1e18).

    Example:
        >>> wei_to_eth(1000000000000000000)
        1.0
        >>> wei_to_eth(None)
        None
    """
    return wei / WEI_PER_ETH if wei is not None else None


def scale_wei(amount: int, percent: int) -> int:
    """Scale an integer wei amount by a whole percentage.

    Example:
        >>> scale_wei(2_000, 125)
        2500
    """
    return amount * percent // 100


__all__ = [
    "gwei_to_wei",
    "parse_hex_int",
    "scale_wei",
    "wei_to_eth",
    "wei_to_gwei",
]
