"""
Module: checkin_kernel.models.charge_rate
Responsibility: ORM persistence for hourly charge rates per aircraft or
    instructor and flight type.
Architecture position: Kernel > Models. May import from db/base.py only.

Invariants enforced:
    - One rate per (aircraft, flight type) and per (instructor, flight type).
    - The three charge flags are stored independently. The data layer does
      not enforce "exactly one"; the charge-basis engine resolves conflicts.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from checkin_kernel.db.base import TrackedBase


class _ChargeFlags:
    rate_per_hour: Mapped[Decimal] = mapped_column(nullable=False)  # tax-exclusive
    charge_hobbs: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    charge_tacho: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    charge_airswitch: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class AircraftChargeRate(_ChargeFlags, TrackedBase):
    """Hourly hire rate of an aircraft for a flight type."""

    __tablename__ = "aircraft_charge_rates"

    __table_args__ = (
        UniqueConstraint("aircraft_id", "flight_type_id", name="uq_aircraft_rate"),
    )

    aircraft_id: Mapped[UUID] = mapped_column(ForeignKey("aircraft.id"), nullable=False)
    flight_type_id: Mapped[UUID] = mapped_column(ForeignKey("flight_types.id"), nullable=False)


class InstructorChargeRate(_ChargeFlags, TrackedBase):
    """Hourly rate of an instructor for a flight type."""

    __tablename__ = "instructor_flight_type_rates"

    __table_args__ = (
        UniqueConstraint("instructor_id", "flight_type_id", name="uq_instructor_rate"),
    )

    instructor_id: Mapped[UUID] = mapped_column(ForeignKey("instructors.id"), nullable=False)
    flight_type_id: Mapped[UUID] = mapped_column(ForeignKey("flight_types.id"), nullable=False)
