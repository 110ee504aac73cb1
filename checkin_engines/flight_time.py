"""
Flight Time Engine - Split flight time into dual and solo portions.

Pure functions with deterministic behavior. No I/O.

Reads the meter that matches the resolved billing basis (hobbs or tacho)
and derives total, dual and solo hours, each rounded half-up to one
decimal. A flight may end with a solo segment (the instructor steps out
and the student flies the final circuits); in that case the ordinary end
reading marks the end of the dual portion and a separate solo-end reading
marks the end of the flight.

Rules, evaluated in order:
    1. Basis none/airswitch: zero hours, no error (unsupported).
    2. Solo instruction: all hours are solo.
    3. Solo at end: validated dual/solo split.
    4. Otherwise: all hours are dual.

Usage:
    from checkin_engines.flight_time import split_flight_time

    split = split_flight_time(
        basis=BillingBasis.HOBBS,
        instruction_kind=InstructionKind.DUAL,
        readings=MeterReadings(
            hobbs_start=Decimal("100.0"),
            hobbs_end=Decimal("101.5"),
            solo_end_hobbs=Decimal("102.0"),
        ),
        has_solo_at_end=True,
    )
    split.dual, split.solo, split.total  # 1.5, 0.5, 2.0
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from checkin_engines.charge_basis import is_supported_basis
from checkin_engines.tracer import traced_engine
from checkin_kernel.domain.checkin import (
    BillingBasis,
    InstructionKind,
    MeterReading,
    MeterReadings,
)
from checkin_kernel.domain.values import ZERO, is_finite, round_hours
from checkin_kernel.logging_config import get_logger

logger = get_logger("engines.flight_time")

SOLO_SPLIT_MISSING_READINGS = "Solo split requires start, dual end, and solo end."
DUAL_END_BEFORE_START = "Dual end cannot be less than start."
SOLO_END_BEFORE_DUAL_END = "Solo end cannot be less than dual end."


@dataclass(frozen=True)
class FlightTimeSplit:
    """
    Derived flight time in hours.

    ``error`` is set only when a solo-at-end split fails validation; all
    hours are zero in that case.
    """

    total: Decimal
    dual: Decimal
    solo: Decimal
    error: str | None = None

    @classmethod
    def zero(cls, error: str | None = None) -> FlightTimeSplit:
        return cls(total=ZERO, dual=ZERO, solo=ZERO, error=error)

    @property
    def is_valid(self) -> bool:
        return self.error is None


def split_meter_hours(start: Decimal | None, end: Decimal | None) -> Decimal:
    """
    Plain elapsed hours on one meter, clamped at zero.

    Missing or non-finite readings yield zero. Used for the governing meter
    and for the display value of the non-governing one.
    """
    if not (is_finite(start) and is_finite(end)):
        return ZERO
    hours = round_hours(end - start)
    return hours if is_finite(hours) and hours > ZERO else ZERO


def _split_solo_at_end(reading: MeterReading) -> FlightTimeSplit:
    start, dual_end, solo_end = reading.start, reading.end, reading.solo_end
    if not (is_finite(start) and is_finite(dual_end) and is_finite(solo_end)):
        return FlightTimeSplit.zero(SOLO_SPLIT_MISSING_READINGS)
    if dual_end < start:
        return FlightTimeSplit.zero(DUAL_END_BEFORE_START)
    if solo_end < dual_end:
        return FlightTimeSplit.zero(SOLO_END_BEFORE_DUAL_END)

    dual = round_hours(dual_end - start)
    solo = round_hours(solo_end - dual_end)
    return FlightTimeSplit(total=round_hours(dual + solo), dual=dual, solo=solo)


@traced_engine(
    "flight_time",
    "1.0",
    fingerprint_fields=("basis", "instruction_kind", "readings", "has_solo_at_end"),
)
def split_flight_time(
    *,
    basis: BillingBasis,
    instruction_kind: InstructionKind,
    readings: MeterReadings,
    has_solo_at_end: bool,
) -> FlightTimeSplit:
    """
    Compute total/dual/solo hours from the meter governing ``basis``.

    Pure function - no side effects, no I/O, deterministic output.

    Args:
        basis: Resolved aircraft billing basis.
        instruction_kind: dual, trial or solo.
        readings: All meter readings of the check-in.
        has_solo_at_end: The flight ended with a solo segment.

    Returns:
        FlightTimeSplit; ``error`` is non-null only for an invalid solo split.
    """
    if not is_supported_basis(basis):
        logger.debug("flight_time_unsupported_basis", extra={"basis": basis.value})
        return FlightTimeSplit.zero()

    reading = readings.for_basis(basis)

    if instruction_kind == InstructionKind.SOLO:
        total = split_meter_hours(reading.start, reading.end)
        return FlightTimeSplit(total=total, dual=ZERO, solo=total)

    if has_solo_at_end:
        split = _split_solo_at_end(reading)
        if split.error is not None:
            logger.info("flight_time_split_rejected", extra={
                "basis": basis.value,
                "error": split.error,
            })
        return split

    total = split_meter_hours(reading.start, reading.end)
    return FlightTimeSplit(total=total, dual=total, solo=ZERO)


def compute_billing_hours(
    *,
    basis: BillingBasis,
    instruction_kind: InstructionKind,
    readings: MeterReadings,
    has_solo_at_end: bool,
) -> Decimal:
    """
    Hours billed on the aircraft line.

    Re-runs the splitter restricted to the governing basis; an invalid split
    bills zero hours.
    """
    split = split_flight_time(
        basis=basis,
        instruction_kind=instruction_kind,
        readings=readings,
        has_solo_at_end=has_solo_at_end,
    )
    if split.error is not None:
        return ZERO
    return split.total
