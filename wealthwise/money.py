# wealthwise/money.py
"""
Money helpers.

Every amount in the system is an integer count of minor units (paise,
1/100 rupee). Floats are only accepted at the edge and converted through
Decimal so that 0.1 + 0.2 style noise never reaches storage.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

MINOR_PER_MAJOR = 100
_CENT = Decimal("0.01")


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    try:
        # str() first so floats keep their shortest repr instead of binary noise
        return Decimal(str(value).strip().replace(",", ""))
    except (InvalidOperation, AttributeError):
        raise ValueError(f"Invalid amount: {value!r}")


def round_half_away(value) -> int:
    """Round to the nearest integer, halves away from zero."""
    d = _to_decimal(value)
    if not d.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return int(d.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_minor_units(value) -> int:
    """Major units (e.g. "150.25" rupees) -> minor units (15025 paise)."""
    return round_half_away(_to_decimal(value) * MINOR_PER_MAJOR)


def to_major_units(minor: int) -> Decimal:
    """Minor units -> exact Decimal major units with two places."""
    return (Decimal(int(minor)) / MINOR_PER_MAJOR).quantize(_CENT)


def div_round(numerator: int, denominator: int) -> int:
    """Integer division rounded half away from zero; 0 when denominator is 0."""
    if denominator == 0:
        return 0
    negative = (numerator < 0) != (denominator < 0)
    q, r = divmod(abs(numerator), abs(denominator))
    if 2 * r >= abs(denominator):
        q += 1
    return -q if negative else q


def format_currency(minor: int) -> str:
    """Whole-rupee display string with Indian digit grouping, e.g. ₹1,23,456."""
    sign = "-" if minor < 0 else ""
    digits = str(abs(int(minor)) // MINOR_PER_MAJOR)
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        digits = ",".join(groups + [tail])
    return f"{sign}₹{digits}"
