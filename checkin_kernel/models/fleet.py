"""
Module: checkin_kernel.models.fleet
Responsibility: ORM persistence for the reference data a check-in reads:
    aircraft, instructors and flight types.
Architecture position: Kernel > Models. May import from db/base.py only.

Invariants enforced:
    - total_time_in_service is never negative and only moves by deltas
      applied on check-in approval or correction (AircraftTimeRecorder).
"""

from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from checkin_kernel.db.base import TrackedBase


class Aircraft(TrackedBase):
    """An aircraft available for hire."""

    __tablename__ = "aircraft"

    __table_args__ = (
        CheckConstraint(
            "total_time_in_service >= 0",
            name="ck_aircraft_ttis_non_negative",
        ),
    )

    registration: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    type: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Which instruments the aircraft records; billing is governed by the
    # charge-rate flags, not by these.
    record_hobbs: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    record_tacho: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Total time in service and the method that advances it (a
    # TotalTimeMethod value such as "hobbs" or "tacho less 5%").
    total_time_in_service: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    total_time_method: Mapped[str | None] = mapped_column(String(20), nullable=True)

    @property
    def label(self) -> str:
        return self.registration

    def __repr__(self) -> str:
        return f"<Aircraft {self.registration}>"


class Instructor(TrackedBase):
    """A flight instructor."""

    __tablename__ = "instructors"

    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    @property
    def label(self) -> str:
        name = " ".join(p for p in (self.first_name, self.last_name) if p)
        return name or str(self.id)

    def __repr__(self) -> str:
        return f"<Instructor {self.label}>"


class FlightType(TrackedBase):
    """A flight type; carries the instruction kind (dual, trial, solo)."""

    __tablename__ = "flight_types"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    instruction_type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    def __repr__(self) -> str:
        return f"<FlightType {self.name}: {self.instruction_type}>"
