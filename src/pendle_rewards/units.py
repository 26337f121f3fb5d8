from __future__ import annotations

from .errors import InvalidInput


def format_units(amount: int, decimals: int) -> str:
    """Format a raw integer token amount as a decimal string.

    Args:
        amount: Unsigned integer amount expressed in the token's smallest unit.
        decimals: Decimal precision of the token.

    Returns:
        The amount divided by ``10**decimals`` using integer arithmetic only,
        with trailing fractional zeros stripped but at least one fractional
        digit kept (``1000000, 6`` -> ``"1.0"``).

    Raises:
        InvalidInput: If ``amount`` or ``decimals`` is negative.
    """
    if amount < 0:
        raise InvalidInput(f"Token amount must be non-negative, got {amount}")
    if decimals < 0:
        raise InvalidInput(f"Token decimals must be non-negative, got {decimals}")

    whole, fraction = divmod(int(amount), 10**decimals)
    if decimals == 0:
        return f"{whole}.0"
    fraction_str = str(fraction).rjust(decimals, "0").rstrip("0") or "0"
    return f"{whole}.{fraction_str}"


def parse_units(value: str, decimals: int) -> int:
    """Convert a decimal string back to a raw integer amount.

    Inverse of :func:`format_units`. Digits beyond ``decimals`` are rejected
    rather than rounded.
    """
    if decimals < 0:
        raise InvalidInput(f"Token decimals must be non-negative, got {decimals}")

    text = value.strip()
    whole, _, fraction = text.partition(".")
    if not whole.isdigit() or (fraction and not fraction.isdigit()):
        raise InvalidInput(f"Invalid unsigned decimal amount: {value!r}")

    fraction = fraction.rstrip("0")
    if len(fraction) > decimals:
        raise InvalidInput(
            f"Amount {value} has more than {decimals} fractional digits"
        )
    return int(whole) * 10**decimals + int(fraction.ljust(decimals, "0") or "0")
