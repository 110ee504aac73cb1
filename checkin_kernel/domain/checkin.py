"""
Check-in domain types (``checkin_kernel.domain.checkin``).

Responsibility
--------------
Pure value objects describing one flight check-in: the booking as loaded
from the data layer, the charge-rate configuration of the aircraft and
instructor, the editable check-in inputs and the per-session mutable state
of the line editor.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects. ZERO I/O. No imports from
``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* ``ChargeRateConfig`` tolerates zero or several charge flags; deciding
  which one governs is the job of the charge-basis engine, never of the
  data layer.
* ``CheckinSessionState`` is owned by exactly one check-in session and is
  passed explicitly into every editor command; nothing in the kernel keeps
  it in module state.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from checkin_kernel.domain.invoice import DraftCalculation, InvoiceLineItem


class BillingBasis(str, Enum):
    """Metering instrument that governs billing for a flight."""

    HOBBS = "hobbs"
    TACHO = "tacho"
    AIRSWITCH = "airswitch"  # detected, never billed
    NONE = "none"


class InstructionKind(str, Enum):
    """Instruction type of the flight type flown."""

    DUAL = "dual"
    TRIAL = "trial"
    SOLO = "solo"


class TotalTimeMethod(str, Enum):
    """
    How an aircraft's total time in service advances per flight.

    The ``less`` variants apply a fixed reduction to the base meter delta.
    Airswitch aircraft advance on the hobbs delta.
    """

    HOBBS = "hobbs"
    TACHO = "tacho"
    AIRSWITCH = "airswitch"
    HOBBS_LESS_5 = "hobbs less 5%"
    HOBBS_LESS_10 = "hobbs less 10%"
    TACHO_LESS_5 = "tacho less 5%"
    TACHO_LESS_10 = "tacho less 10%"


@dataclass(frozen=True)
class MeterReading:
    """Start/end pair of one instrument, plus the final end of a solo segment."""

    start: Decimal | None = None
    end: Decimal | None = None
    solo_end: Decimal | None = None


@dataclass(frozen=True)
class MeterReadings:
    """
    All meter fields captured at check-in.

    ``hobbs_end``/``tach_end`` are the ordinary end readings; when the flight
    ended with a solo segment they are the *dual* end and the
    ``solo_end_*`` fields hold the final reading.
    """

    hobbs_start: Decimal | None = None
    hobbs_end: Decimal | None = None
    tach_start: Decimal | None = None
    tach_end: Decimal | None = None
    airswitch_start: Decimal | None = None
    airswitch_end: Decimal | None = None
    solo_end_hobbs: Decimal | None = None
    solo_end_tach: Decimal | None = None

    def for_basis(self, basis: BillingBasis) -> MeterReading:
        """Reading of the instrument that governs ``basis``."""
        if basis == BillingBasis.HOBBS:
            return MeterReading(self.hobbs_start, self.hobbs_end, self.solo_end_hobbs)
        if basis == BillingBasis.TACHO:
            return MeterReading(self.tach_start, self.tach_end, self.solo_end_tach)
        if basis == BillingBasis.AIRSWITCH:
            return MeterReading(self.airswitch_start, self.airswitch_end, None)
        return MeterReading()

    def as_dict(self) -> dict[str, Decimal | None]:
        return {
            "hobbs_start": self.hobbs_start,
            "hobbs_end": self.hobbs_end,
            "tach_start": self.tach_start,
            "tach_end": self.tach_end,
            "airswitch_start": self.airswitch_start,
            "airswitch_end": self.airswitch_end,
            "solo_end_hobbs": self.solo_end_hobbs,
            "solo_end_tach": self.solo_end_tach,
        }


@dataclass(frozen=True)
class ChargeRateConfig:
    """
    Hourly charge rate of an aircraft or instructor for one flight type.

    ``rate_per_hour`` is tax-exclusive. Intended to have exactly one charge
    flag set.
    """

    id: str | None
    rate_per_hour: Decimal | None
    charge_hobbs: bool = False
    charge_tacho: bool = False
    charge_airswitch: bool = False

    def snapshot(self) -> dict:
        """Fields that affect billing, for draft signatures."""
        return {
            "id": self.id,
            "rate_per_hour": self.rate_per_hour,
            "charge_hobbs": self.charge_hobbs,
            "charge_tacho": self.charge_tacho,
            "charge_airswitch": self.charge_airswitch,
        }


@dataclass(frozen=True)
class Booking:
    """A flight booking as loaded by the data source."""

    id: str
    aircraft_id: str | None = None
    instructor_id: str | None = None
    flight_type_id: str | None = None
    instruction_kind: InstructionKind | None = None
    readings: MeterReadings = field(default_factory=MeterReadings)
    status: str = "flying"
    booking_type: str = "flight"
    member_id: str | None = None
    approved_at: datetime | None = None
    invoice_id: str | None = None

    @property
    def is_approved(self) -> bool:
        return self.approved_at is not None


@dataclass(frozen=True)
class CheckinInputs:
    """
    Editable check-in form state.

    Every field except ``remarks`` participates in the draft signature.
    """

    booking_id: str | None
    aircraft_id: str | None = None
    instructor_id: str | None = None
    flight_type_id: str | None = None
    readings: MeterReadings = field(default_factory=MeterReadings)
    has_solo_at_end: bool = False
    instruction_kind: InstructionKind = InstructionKind.DUAL
    remarks: str | None = None

    @classmethod
    def from_booking(cls, booking: Booking) -> CheckinInputs:
        """Initial inputs for a booking, as the check-in form opens."""
        readings = booking.readings
        return cls(
            booking_id=booking.id,
            aircraft_id=booking.aircraft_id,
            instructor_id=booking.instructor_id,
            flight_type_id=booking.flight_type_id,
            readings=readings,
            has_solo_at_end=(
                readings.solo_end_hobbs is not None
                or readings.solo_end_tach is not None
            ),
            instruction_kind=booking.instruction_kind or InstructionKind.DUAL,
        )


@dataclass(frozen=True)
class CheckinContext:
    """
    Immutable snapshot of everything one computation pass reads.

    Built by the service from collaborator lookups; the engines never fetch.
    """

    booking: Booking | None
    inputs: CheckinInputs
    aircraft_rate: ChargeRateConfig | None = None
    instructor_rate: ChargeRateConfig | None = None
    tax_rate: Decimal = Decimal("0")
    aircraft_label: str | None = None
    instructor_label: str | None = None

    def with_inputs(self, **changes) -> CheckinContext:
        return replace(self, inputs=replace(self.inputs, **changes))


@dataclass
class CheckinSessionState:
    """
    Mutable state of one check-in session.

    Empty at session start; discarded with the session or once the booking
    is approved.
    """

    manual_items: list[InvoiceLineItem] = field(default_factory=list)
    excluded_keys: set[str] = field(default_factory=set)
    draft: DraftCalculation | None = None
    editing_index: int | None = None
