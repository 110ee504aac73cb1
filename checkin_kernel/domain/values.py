"""
Values -- Numeric coercion and rounding rules for check-in billing.

Responsibility:
    Provides the single place where raw numbers from a form or data layer
    become ``Decimal``, and the two rounding rules used by billing: hours to
    one decimal place, money to two.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - All billing arithmetic uses Decimal; floats are converted through
      ``str()`` so 0.1 stays 0.1.
    - Rounding is half-up, never banker's rounding.
    - Non-finite values (NaN, Infinity) survive coercion so that guards can
      reject them explicitly; they are never rounded.
    - Rounding never raises for large magnitudes: precision widens to fit
      the value, and a value beyond the exponent range rounds to NaN.

Failure modes:
    - ``to_decimal`` never raises: unparseable input becomes None.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any

_ONE_PLACE = Decimal("0.1")
_TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")
ONE = Decimal("1")


def to_decimal(value: Any) -> Decimal | None:
    """Coerce a raw numeric value to Decimal.

    Returns None for None, empty strings, booleans and anything that does
    not parse. ``float('nan')`` becomes ``Decimal('NaN')``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def is_finite(value: Decimal | None) -> bool:
    """True when value is present and neither NaN nor infinite."""
    return value is not None and value.is_finite()


def _quantize(value: Decimal, places: Decimal) -> Decimal:
    if not value.is_finite():
        return value
    # Widen the working precision so large magnitudes keep all their
    # integer digits; a value that still cannot be quantized is NaN.
    with localcontext() as ctx:
        if value.adjusted() > ctx.Emax:
            return Decimal("NaN")
        ctx.prec = max(ctx.prec, value.adjusted() - places.as_tuple().exponent + 2)
        try:
            return value.quantize(places, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            return Decimal("NaN")


def round_hours(value: Decimal) -> Decimal:
    """Round hours half-up to one decimal place."""
    return _quantize(value, _ONE_PLACE)


def round_money(value: Decimal) -> Decimal:
    """Round a monetary amount half-up to two decimal places."""
    return _quantize(value, _TWO_PLACES)


def format_hours(value: Decimal | None) -> str:
    """One-decimal string for notes; missing values render as '-'."""
    if value is None or not value.is_finite():
        return "-"
    return str(round_hours(value))
