"""
Module: checkin_kernel.selectors.checkin_selector
Responsibility: Read side of the check-in data layer. Implements the
    ``CheckinDataSource`` collaborator over the SQLAlchemy models.
Architecture position: Kernel > Selectors. Read-only.

Rows are converted to plain mappings and normalized through
``checkin_kernel.domain.boundary`` so that the engines receive the same
shapes whether data comes from this selector or from a JSON API.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from checkin_kernel.domain.boundary import (
    booking_from_mapping,
    charge_rate_from_mapping,
    parse_instruction_kind,
)
from checkin_kernel.domain.checkin import Booking, ChargeRateConfig, InstructionKind
from checkin_kernel.exceptions import BookingNotFoundError
from checkin_kernel.logging_config import get_logger
from checkin_kernel.models.booking import Booking as BookingModel
from checkin_kernel.models.charge_rate import AircraftChargeRate, InstructorChargeRate
from checkin_kernel.models.fleet import Aircraft, FlightType, Instructor
from checkin_kernel.models.invoice import TaxRate
from checkin_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.checkin")

DEFAULT_TAX_RATE = Decimal("0.15")


def _row_to_mapping(row: Any) -> dict[str, Any]:
    return {column.key: getattr(row, column.key) for column in row.__table__.columns}


class CheckinSelector(BaseSelector):
    """
    Booking, charge-rate and tax lookups for one check-in.

    Args:
        session: Caller-owned session.
        default_tax_rate: Returned when no active default tax rate exists.
    """

    def __init__(self, session: Session, default_tax_rate: Decimal = DEFAULT_TAX_RATE):
        super().__init__(session)
        self.default_tax_rate = default_tax_rate

    def get_booking(self, booking_id: str) -> Booking:
        """
        Raises:
            BookingNotFoundError: No booking with ``booking_id``.
        """
        key = self.parse_id(booking_id)
        row = self.session.get(BookingModel, key) if key is not None else None
        if row is None:
            raise BookingNotFoundError(str(booking_id))

        raw = _row_to_mapping(row)
        if row.flight_type_id is not None:
            flight_type = self.session.get(FlightType, row.flight_type_id)
            if flight_type is not None:
                raw["flight_type"] = _row_to_mapping(flight_type)
        return booking_from_mapping(raw)

    def get_aircraft_charge_rate(
        self,
        aircraft_id: str | None,
        flight_type_id: str | None,
    ) -> ChargeRateConfig | None:
        aircraft_key = self.parse_id(aircraft_id)
        flight_type_key = self.parse_id(flight_type_id)
        if aircraft_key is None or flight_type_key is None:
            return None
        rows = self.session.execute(
            select(AircraftChargeRate).where(
                AircraftChargeRate.aircraft_id == aircraft_key,
                AircraftChargeRate.flight_type_id == flight_type_key,
            )
        ).scalars().all()
        return charge_rate_from_mapping([_row_to_mapping(r) for r in rows])

    def get_instructor_charge_rate(
        self,
        instructor_id: str | None,
        flight_type_id: str | None,
    ) -> ChargeRateConfig | None:
        instructor_key = self.parse_id(instructor_id)
        flight_type_key = self.parse_id(flight_type_id)
        if instructor_key is None or flight_type_key is None:
            return None
        rows = self.session.execute(
            select(InstructorChargeRate).where(
                InstructorChargeRate.instructor_id == instructor_key,
                InstructorChargeRate.flight_type_id == flight_type_key,
            )
        ).scalars().all()
        return charge_rate_from_mapping([_row_to_mapping(r) for r in rows])

    def get_org_tax_rate(self) -> Decimal:
        rate = self.session.execute(
            select(TaxRate.rate)
            .where(TaxRate.is_default.is_(True), TaxRate.is_active.is_(True))
            .limit(1)
        ).scalar_one_or_none()
        if rate is None:
            logger.info("tax_rate_default_used", extra={
                "rate": str(self.default_tax_rate),
            })
            return self.default_tax_rate
        return Decimal(str(rate))

    def get_aircraft_label(self, aircraft_id: str | None) -> str | None:
        key = self.parse_id(aircraft_id)
        aircraft = self.session.get(Aircraft, key) if key is not None else None
        return aircraft.label if aircraft is not None else None

    def get_instructor_label(self, instructor_id: str | None) -> str | None:
        key = self.parse_id(instructor_id)
        instructor = self.session.get(Instructor, key) if key is not None else None
        return instructor.label if instructor is not None else None

    def get_flight_type_instruction_kind(
        self, flight_type_id: str | None,
    ) -> InstructionKind | None:
        key = self.parse_id(flight_type_id)
        flight_type = self.session.get(FlightType, key) if key is not None else None
        if flight_type is None:
            return None
        return parse_instruction_kind(flight_type.instruction_type)
