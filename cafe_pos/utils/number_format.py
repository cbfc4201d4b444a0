"""Decimal parsing and money formatting utilities."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENTS = Decimal('0.01')
ZERO = Decimal('0')


def to_decimal(value, default: Decimal = ZERO) -> Decimal:
    """
    Parse a decimal string (or number) into a Decimal.

    Floats are routed through ``str`` so ``0.1`` becomes ``Decimal('0.1')``.
    Empty, ``None`` or unparsable values yield ``default``.
    """
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value if value.is_finite() else default
    if isinstance(value, bool):
        return default
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default
    return parsed if parsed.is_finite() else default


def quantize_money(value) -> Decimal:
    """Round to cents, half-up."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def money_str(value) -> str:
    """Canonical persisted form of a monetary amount: ``'12.07'``."""
    return str(quantize_money(value))


def format_money(value, symbol: str = '$') -> str:
    """Human-readable money with thousands separators: ``'$1,234.50'``."""
    amount = quantize_money(value)
    sign = '-' if amount < 0 else ''
    return f"{sign}{symbol}{abs(amount):,.2f}"
