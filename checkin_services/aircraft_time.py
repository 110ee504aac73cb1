"""
checkin_services.aircraft_time -- Persist aircraft time-in-service deltas.

Responsibility:
    Applies the time-in-service engine to the SQLAlchemy models: advances
    the aircraft on check-in approval and applies delta-of-deltas
    corrections to approved check-ins, recording the audit fields on the
    booking.

Architecture position:
    Services -- stateful, holds a caller-owned session and a clock.
    Composes the pure ``checkin_engines.time_in_service`` engine.

Invariants enforced:
    - The aircraft row is locked (FOR UPDATE on backends that support it)
      before its total is read.
    - Totals only move by deltas; nothing is recalculated from history.
    - A correction uses the method snapshot stored at approval and changes
      only end readings and time-in-service audit fields.

Failure modes:
    - AircraftNotFoundError, BookingNotFoundError.
    - TotalTimeMethodError, MeterDeltaError, TimeInServiceError from the
      engine.
    - TimeInServiceCorrectionError when a correction is refused.
    - The caller's ``session_scope`` rolls everything back on any failure.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from checkin_engines.time_in_service import (
    TimeInServiceCorrection,
    TimeInServiceUpdate,
    advance_time_in_service,
    correct_time_in_service,
)
from checkin_kernel.domain.checkin import MeterReadings
from checkin_kernel.domain.clock import Clock, SystemClock
from checkin_kernel.exceptions import (
    AircraftNotFoundError,
    BookingNotFoundError,
    TimeInServiceCorrectionError,
)
from checkin_kernel.logging_config import get_logger
from checkin_kernel.models.booking import Booking, BookingStatus, BookingType
from checkin_kernel.models.fleet import Aircraft

logger = get_logger("services.aircraft_time")

MIN_REASON_LENGTH = 3


def _key(value) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class AircraftTimeRecorder:
    """
    Advances and corrects aircraft time in service.

    Args:
        session: Caller-owned session; this class flushes but never commits.
        clock: Source of correction timestamps.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def record_approval(
        self,
        booking: Booking,
        aircraft_id,
        readings: MeterReadings,
    ) -> TimeInServiceUpdate:
        """Add the flight's applied delta to the aircraft and snapshot it on the booking."""
        aircraft = self._lock_aircraft(aircraft_id)
        update = advance_time_in_service(
            method=aircraft.total_time_method,
            total_before=aircraft.total_time_in_service,
            readings=readings,
        )
        aircraft.total_time_in_service = update.total_after
        booking.total_hours_start = update.total_before
        booking.total_hours_end = update.total_after
        booking.applied_aircraft_delta = update.applied_delta
        booking.applied_total_time_method = update.method.value

        self._log_change(aircraft, update.total_before, update.total_after, booking)
        return update

    def correct(
        self,
        booking_id: str,
        *,
        reason: str,
        hobbs_end: Decimal | None = None,
        tach_end: Decimal | None = None,
        airswitch_end: Decimal | None = None,
        actor_id: str | None = None,
    ) -> TimeInServiceCorrection:
        """
        Correct the end readings of an approved check-in.

        Each given end replaces the flight's final reading on that meter
        (the solo-end reading when one is stored); None keeps the stored
        reading. The aircraft moves by the difference between the newly
        derived delta and the one applied at approval.
        """
        booking_id = str(booking_id)
        reason = (reason or "").strip()
        if len(reason) < MIN_REASON_LENGTH:
            raise TimeInServiceCorrectionError(
                booking_id, f"a reason of at least {MIN_REASON_LENGTH} characters is required"
            )

        booking = self._lock_booking(booking_id)
        self._assert_correctable(booking)

        hobbs_field = "solo_end_hobbs" if booking.solo_end_hobbs is not None else "hobbs_end"
        tach_field = "solo_end_tach" if booking.solo_end_tach is not None else "tach_end"
        for name, value in ((hobbs_field, hobbs_end), (tach_field, tach_end),
                            ("airswitch_end", airswitch_end)):
            if value is not None:
                setattr(booking, name, value)

        aircraft = self._lock_aircraft(booking.checked_out_aircraft_id)
        correction = correct_time_in_service(
            method=booking.applied_total_time_method,
            previous_delta=booking.applied_aircraft_delta,
            total_before=aircraft.total_time_in_service,
            readings=MeterReadings(
                hobbs_start=booking.hobbs_start,
                hobbs_end=booking.hobbs_end,
                tach_start=booking.tach_start,
                tach_end=booking.tach_end,
                airswitch_start=booking.airswitch_start,
                airswitch_end=booking.airswitch_end,
                solo_end_hobbs=booking.solo_end_hobbs,
                solo_end_tach=booking.solo_end_tach,
            ),
        )

        aircraft.total_time_in_service = correction.total_after
        booking.applied_aircraft_delta = correction.applied_delta
        booking.correction_delta = correction.correction_delta
        booking.total_hours_end = (booking.total_hours_end or Decimal("0")) + correction.correction_delta
        booking.corrected_at = self._clock.now()
        booking.corrected_by = _key(actor_id) if actor_id else None
        booking.correction_reason = reason
        self._session.flush()

        self._log_change(aircraft, correction.total_before, correction.total_after, booking)
        logger.info("checkin_time_corrected", extra={
            "booking_id": booking_id,
            "previous_delta": str(correction.previous_delta),
            "applied_delta": str(correction.applied_delta),
            "correction_delta": str(correction.correction_delta),
        })
        return correction

    def _lock_aircraft(self, aircraft_id) -> Aircraft:
        key = _key(aircraft_id)
        aircraft = None
        if key is not None:
            aircraft = self._session.execute(
                select(Aircraft).where(Aircraft.id == key).with_for_update()
            ).scalar_one_or_none()
        if aircraft is None:
            raise AircraftNotFoundError(str(aircraft_id))
        return aircraft

    def _lock_booking(self, booking_id: str) -> Booking:
        key = _key(booking_id)
        booking = None
        if key is not None:
            booking = self._session.execute(
                select(Booking).where(Booking.id == key).with_for_update()
            ).scalar_one_or_none()
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking

    @staticmethod
    def _assert_correctable(booking: Booking) -> None:
        booking_id = str(booking.id)
        if booking.booking_type != BookingType.FLIGHT.value:
            raise TimeInServiceCorrectionError(booking_id, "not a flight booking")
        if booking.status == BookingStatus.CANCELLED.value:
            raise TimeInServiceCorrectionError(booking_id, "booking is cancelled")
        if booking.checkin_approved_at is None:
            raise TimeInServiceCorrectionError(booking_id, "check-in is not approved")
        if booking.checked_out_aircraft_id is None:
            raise TimeInServiceCorrectionError(booking_id, "no checked-out aircraft")
        if booking.applied_aircraft_delta is None or booking.applied_total_time_method is None:
            raise TimeInServiceCorrectionError(
                booking_id, "no applied delta or method snapshot recorded at approval"
            )

    @staticmethod
    def _log_change(aircraft: Aircraft, before: Decimal, after: Decimal, booking: Booking) -> None:
        logger.info("aircraft_time_in_service_changed", extra={
            "aircraft_id": str(aircraft.id),
            "registration": aircraft.registration,
            "booking_id": str(booking.id),
            "total_before": str(before),
            "total_after": str(after),
            "delta": str(after - before),
        })
