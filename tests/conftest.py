"""
Pytest fixtures for the check-in billing test suite.

Provides:
- Structured logging configuration and a ``captured_logs`` fixture
- A ``DeterministicClock``
- Builders for bookings, rates and check-in contexts
- An in-memory SQLite session for the SQLAlchemy adapter
"""

import json
import logging
from collections.abc import Generator
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Any
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from checkin_kernel.models import (
    Aircraft,
    AircraftChargeRate,
    FlightType,
    Instructor,
    InstructorChargeRate,
    TaxRate,
)
from checkin_kernel.models import Booking as BookingModel
from checkin_kernel.db.base import Base
from checkin_kernel.domain.checkin import (
    Booking,
    ChargeRateConfig,
    CheckinContext,
    CheckinInputs,
    CheckinSessionState,
    InstructionKind,
    MeterReadings,
)
from checkin_kernel.domain.clock import DeterministicClock
from checkin_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

FIXED_NOW = datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture checkin_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            resolve_charge_basis(config)
            logs = captured_logs()
            assert any(r["message"] == "charge_rate_multiple_bases" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("checkin_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(FIXED_NOW)


# =============================================================================
# Domain builders
# =============================================================================


def hobbs_rate(rate: str = "150.00", rate_id: str = "rate-aircraft") -> ChargeRateConfig:
    return ChargeRateConfig(id=rate_id, rate_per_hour=Decimal(rate), charge_hobbs=True)


def tacho_rate(rate: str = "90.00", rate_id: str = "rate-tacho") -> ChargeRateConfig:
    return ChargeRateConfig(id=rate_id, rate_per_hour=Decimal(rate), charge_tacho=True)


def make_booking(**overrides) -> Booking:
    values = dict(
        id="booking-1",
        aircraft_id="aircraft-1",
        instructor_id=None,
        flight_type_id="flight-type-1",
        instruction_kind=InstructionKind.DUAL,
    )
    values.update(overrides)
    return Booking(**values)


def make_context(
    *,
    readings: MeterReadings | None = None,
    aircraft_rate: ChargeRateConfig | None = None,
    instructor_rate: ChargeRateConfig | None = None,
    instructor_id: str | None = None,
    instruction_kind: InstructionKind = InstructionKind.DUAL,
    has_solo_at_end: bool = False,
    tax_rate: str = "0.15",
    booking: Booking | None = None,
    with_booking: bool = True,
    **input_overrides,
) -> CheckinContext:
    """Context for booking-1 flown on aircraft-1, hobbs 8752.2 -> 8754.5 by default."""
    if booking is None and with_booking:
        booking = make_booking(instructor_id=instructor_id, instruction_kind=instruction_kind)
    inputs = dict(
        booking_id="booking-1",
        aircraft_id="aircraft-1",
        instructor_id=instructor_id,
        flight_type_id="flight-type-1",
        readings=readings or MeterReadings(
            hobbs_start=Decimal("8752.2"),
            hobbs_end=Decimal("8754.5"),
        ),
        has_solo_at_end=has_solo_at_end,
        instruction_kind=instruction_kind,
    )
    inputs.update(input_overrides)
    return CheckinContext(
        booking=booking,
        inputs=CheckinInputs(**inputs),
        aircraft_rate=aircraft_rate if aircraft_rate is not None else hobbs_rate(),
        instructor_rate=instructor_rate,
        tax_rate=Decimal(tax_rate),
        aircraft_label="ZK-ABC",
        instructor_label="Jamie Reid" if instructor_id else None,
    )


@pytest.fixture
def context() -> CheckinContext:
    return make_context()


@pytest.fixture
def state() -> CheckinSessionState:
    return CheckinSessionState()


# =============================================================================
# Database fixtures (in-memory SQLite)
# =============================================================================


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    factory = sessionmaker(bind=db_engine, expire_on_commit=False)
    session = factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@dataclass
class SeededFleet:
    aircraft: Any
    instructor: Any
    flight_type: Any
    aircraft_rate: Any
    instructor_rate: Any
    booking: Any

    @property
    def booking_id(self) -> str:
        return str(self.booking.id)


@pytest.fixture
def seeded(session) -> SeededFleet:
    """
    One dual training booking on ZK-ABC (5120.4 hours in service, advanced
    on hobbs) with Jamie Reid, hobbs 8752.2 -> 8754.5, aircraft 150.00/h and
    instructor 80.00/h on hobbs, and an active default tax rate of 15%.
    """
    aircraft = Aircraft(
        registration="ZK-ABC",
        type="C172",
        total_time_method="hobbs",
        total_time_in_service=Decimal("5120.4"),
    )
    instructor = Instructor(first_name="Jamie", last_name="Reid")
    flight_type = FlightType(name="Dual Training", instruction_type="dual")
    session.add_all([aircraft, instructor, flight_type])
    session.flush()

    aircraft_rate = AircraftChargeRate(
        aircraft_id=aircraft.id,
        flight_type_id=flight_type.id,
        rate_per_hour=Decimal("150.00"),
        charge_hobbs=True,
    )
    instructor_rate = InstructorChargeRate(
        instructor_id=instructor.id,
        flight_type_id=flight_type.id,
        rate_per_hour=Decimal("80.00"),
        charge_hobbs=True,
    )
    booking = BookingModel(
        user_id=uuid4(),
        aircraft_id=aircraft.id,
        instructor_id=instructor.id,
        flight_type_id=flight_type.id,
        status="flying",
        booking_type="flight",
        hobbs_start=Decimal("8752.2"),
        hobbs_end=Decimal("8754.5"),
    )
    tax = TaxRate(tax_name="GST", rate=Decimal("0.15"), is_default=True, is_active=True)
    session.add_all([aircraft_rate, instructor_rate, booking, tax])
    session.flush()

    return SeededFleet(
        aircraft=aircraft,
        instructor=instructor,
        flight_type=flight_type,
        aircraft_rate=aircraft_rate,
        instructor_rate=instructor_rate,
        booking=booking,
    )
