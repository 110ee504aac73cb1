"""
Module: checkin_kernel.models.booking
Responsibility: ORM persistence for flight bookings, including the meter
    readings and check-in approval fields written when a check-in is
    approved.
Architecture position: Kernel > Models. May import from db/base.py only.

Invariants enforced:
    - checkin_approved_at is set exactly once; an approved booking is never
      invoiced again (enforced by InvoiceWriter).
    - After approval only the end readings and the time-in-service audit
      fields change, and only through a correction (AircraftTimeRecorder).
    - checked_out_* ids, when present, override the scheduled aircraft and
      instructor.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from checkin_kernel.db.base import TrackedBase


class BookingStatus(str, Enum):
    UNCONFIRMED = "unconfirmed"
    CONFIRMED = "confirmed"
    BRIEFING = "briefing"
    FLYING = "flying"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


class BookingType(str, Enum):
    FLIGHT = "flight"
    GROUNDWORK = "groundwork"
    MAINTENANCE = "maintenance"
    OTHER = "other"


class Booking(TrackedBase):
    """A booking of an aircraft (and optionally an instructor)."""

    __tablename__ = "bookings"

    __table_args__ = (
        Index("idx_booking_status", "status"),
    )

    user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    aircraft_id: Mapped[UUID | None] = mapped_column(ForeignKey("aircraft.id"), nullable=True)
    instructor_id: Mapped[UUID | None] = mapped_column(ForeignKey("instructors.id"), nullable=True)
    checked_out_aircraft_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("aircraft.id"), nullable=True,
    )
    checked_out_instructor_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("instructors.id"), nullable=True,
    )
    flight_type_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("flight_types.id"), nullable=True,
    )

    status: Mapped[str] = mapped_column(String(20), default=BookingStatus.FLYING.value, nullable=False)
    booking_type: Mapped[str] = mapped_column(String(20), default=BookingType.FLIGHT.value, nullable=False)

    # Meter readings
    hobbs_start: Mapped[Decimal | None] = mapped_column(nullable=True)
    hobbs_end: Mapped[Decimal | None] = mapped_column(nullable=True)
    tach_start: Mapped[Decimal | None] = mapped_column(nullable=True)
    tach_end: Mapped[Decimal | None] = mapped_column(nullable=True)
    airswitch_start: Mapped[Decimal | None] = mapped_column(nullable=True)
    airswitch_end: Mapped[Decimal | None] = mapped_column(nullable=True)
    solo_end_hobbs: Mapped[Decimal | None] = mapped_column(nullable=True)
    solo_end_tach: Mapped[Decimal | None] = mapped_column(nullable=True)

    # Written on approval
    dual_time: Mapped[Decimal | None] = mapped_column(nullable=True)
    solo_time: Mapped[Decimal | None] = mapped_column(nullable=True)
    billing_basis: Mapped[str | None] = mapped_column(String(20), nullable=True)
    billing_hours: Mapped[Decimal | None] = mapped_column(nullable=True)
    checkin_invoice_id: Mapped[UUID | None] = mapped_column(nullable=True)
    checkin_approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Aircraft time in service: the delta this flight applied and the
    # method snapshot it was applied under, so corrections stay deterministic.
    total_hours_start: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_hours_end: Mapped[Decimal | None] = mapped_column(nullable=True)
    applied_aircraft_delta: Mapped[Decimal | None] = mapped_column(nullable=True)
    applied_total_time_method: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Written by a time-in-service correction
    correction_delta: Mapped[Decimal | None] = mapped_column(nullable=True)
    corrected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    corrected_by: Mapped[UUID | None] = mapped_column(nullable=True)
    correction_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def __repr__(self) -> str:
        return f"<Booking {self.id}: {self.status}>"
