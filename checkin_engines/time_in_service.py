"""
Time In Service Engine - Advance an aircraft's total time in service.

Pure functions with deterministic behavior. No I/O.

An aircraft's total time in service is persisted state that only ever
moves by deltas: approving a check-in adds the applied delta of that
flight, and correcting an approved check-in adds the difference between
the new and the previously applied delta. It is never recalculated from
flight history.

The applied delta depends on the aircraft's total time method:

    hobbs, airswitch        hobbs delta
    tacho                   tacho delta
    hobbs less 5% / 10%     hobbs delta * 0.95 / 0.90
    tacho less 5% / 10%     tacho delta * 0.95 / 0.90

A meter delta runs from the start reading to the final reading of the
flight: the solo-end reading when the flight ended with a solo segment,
otherwise the ordinary end reading.

Usage:
    from checkin_engines.time_in_service import advance_time_in_service

    update = advance_time_in_service(
        method="hobbs less 10%",
        total_before=Decimal("5120.4"),
        readings=MeterReadings(hobbs_start=Decimal("100.0"), hobbs_end=Decimal("102.0")),
    )
    update.applied_delta, update.total_after  # 1.800, 5122.200
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from checkin_engines.tracer import traced_engine
from checkin_kernel.domain.checkin import MeterReadings, TotalTimeMethod
from checkin_kernel.domain.values import ZERO, is_finite
from checkin_kernel.exceptions import (
    MeterDeltaError,
    TimeInServiceError,
    TotalTimeMethodError,
)
from checkin_kernel.logging_config import get_logger

logger = get_logger("engines.time_in_service")

# Corrections that take more than this many hours off an aircraft are
# logged as warnings for audit.
LARGE_DECREASE_HOURS = Decimal("5")

_HOBBS_METHODS = {
    TotalTimeMethod.HOBBS: Decimal("1"),
    TotalTimeMethod.AIRSWITCH: Decimal("1"),
    TotalTimeMethod.HOBBS_LESS_5: Decimal("0.95"),
    TotalTimeMethod.HOBBS_LESS_10: Decimal("0.90"),
}
_TACHO_METHODS = {
    TotalTimeMethod.TACHO: Decimal("1"),
    TotalTimeMethod.TACHO_LESS_5: Decimal("0.95"),
    TotalTimeMethod.TACHO_LESS_10: Decimal("0.90"),
}


@dataclass(frozen=True)
class MeterDeltas:
    """Elapsed hours per instrument; None where a reading is missing."""

    hobbs: Decimal | None = None
    tacho: Decimal | None = None
    airswitch: Decimal | None = None


@dataclass(frozen=True)
class TimeInServiceUpdate:
    """Applied delta of one approved flight and the resulting total."""

    method: TotalTimeMethod
    deltas: MeterDeltas
    applied_delta: Decimal
    total_before: Decimal
    total_after: Decimal


@dataclass(frozen=True)
class TimeInServiceCorrection:
    """Delta-of-deltas applied when an approved flight's end readings change."""

    method: TotalTimeMethod
    deltas: MeterDeltas
    previous_delta: Decimal
    applied_delta: Decimal
    correction_delta: Decimal
    total_before: Decimal
    total_after: Decimal


def parse_method(value: TotalTimeMethod | str | None) -> TotalTimeMethod:
    """Resolve a stored method string; raises TotalTimeMethodError when unknown."""
    if isinstance(value, TotalTimeMethod):
        return value
    try:
        return TotalTimeMethod((value or "").strip().lower())
    except ValueError:
        raise TotalTimeMethodError(value) from None


def _meter_delta(
    meter: str,
    start: Decimal | None,
    end: Decimal | None,
    solo_end: Decimal | None = None,
) -> Decimal | None:
    final = solo_end if solo_end is not None else end
    if start is None or final is None:
        return None
    if not (is_finite(start) and is_finite(final)):
        raise MeterDeltaError(meter, "reading is not a valid number")
    delta = final - start
    if delta < ZERO:
        raise MeterDeltaError(meter, "end reading is before start reading")
    return delta


def meter_deltas(readings: MeterReadings) -> MeterDeltas:
    """Per-instrument deltas of one flight; negative deltas raise MeterDeltaError."""
    return MeterDeltas(
        hobbs=_meter_delta(
            "hobbs", readings.hobbs_start, readings.hobbs_end, readings.solo_end_hobbs,
        ),
        tacho=_meter_delta(
            "tacho", readings.tach_start, readings.tach_end, readings.solo_end_tach,
        ),
        airswitch=_meter_delta("airswitch", readings.airswitch_start, readings.airswitch_end),
    )


def applied_delta(method: TotalTimeMethod, deltas: MeterDeltas) -> Decimal:
    """Delta added to the aircraft for one flight under ``method``."""
    if method in _HOBBS_METHODS:
        meter, base, factor = "hobbs", deltas.hobbs, _HOBBS_METHODS[method]
    else:
        meter, base, factor = "tacho", deltas.tacho, _TACHO_METHODS[method]
    if base is None:
        raise MeterDeltaError(meter, f"required for total time method '{method.value}'")
    return base * factor


@traced_engine(
    "time_in_service",
    "1.0",
    fingerprint_fields=("method", "total_before", "readings"),
)
def advance_time_in_service(
    *,
    method: TotalTimeMethod | str | None,
    total_before: Decimal,
    readings: MeterReadings,
) -> TimeInServiceUpdate:
    """
    Applied delta and new total for an approved flight.

    Raises:
        TotalTimeMethodError: method missing or unknown.
        MeterDeltaError: the method's meter is missing or runs backwards.
    """
    resolved = parse_method(method)
    deltas = meter_deltas(readings)
    delta = applied_delta(resolved, deltas)
    return TimeInServiceUpdate(
        method=resolved,
        deltas=deltas,
        applied_delta=delta,
        total_before=total_before,
        total_after=total_before + delta,
    )


@traced_engine(
    "time_in_service_correction",
    "1.0",
    fingerprint_fields=("method", "previous_delta", "total_before", "readings"),
)
def correct_time_in_service(
    *,
    method: TotalTimeMethod | str | None,
    previous_delta: Decimal,
    total_before: Decimal,
    readings: MeterReadings,
) -> TimeInServiceCorrection:
    """
    Re-derive a flight's applied delta from corrected readings.

    ``method`` is the snapshot taken at approval, so a later change to the
    aircraft's method does not change how the flight is corrected. Only
    the difference between the new and previous delta moves the total.

    Raises:
        TotalTimeMethodError, MeterDeltaError: as for approval.
        TimeInServiceError: the correction would take the total below zero.
    """
    resolved = parse_method(method)
    deltas = meter_deltas(readings)
    delta = applied_delta(resolved, deltas)
    correction = delta - previous_delta
    total_after = total_before + correction
    if total_after < ZERO:
        raise TimeInServiceError(
            f"Correction would make total time in service negative ({total_after})"
        )
    if correction < -LARGE_DECREASE_HOURS:
        logger.warning("time_in_service_large_decrease", extra={
            "method": resolved.value,
            "previous_delta": str(previous_delta),
            "applied_delta": str(delta),
            "correction_delta": str(correction),
        })
    return TimeInServiceCorrection(
        method=resolved,
        deltas=deltas,
        previous_delta=previous_delta,
        applied_delta=delta,
        correction_delta=correction,
        total_before=total_before,
        total_after=total_after,
    )
