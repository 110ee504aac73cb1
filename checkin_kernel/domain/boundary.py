"""
Boundary normalization for raw data-layer rows.

Responsibility:
    Convert loosely shaped mappings (as returned by JSON APIs or row-dict
    queries) into the canonical ``Booking`` and ``ChargeRateConfig`` value
    objects before they reach the engines.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Invariants enforced:
    - Relationship fields may arrive as a single record or as a one-element
      list; both normalize to the same value. Engines never see lists.
    - Numeric fields are coerced through ``to_decimal``; charge flags through
      ``bool`` with None treated as False.
    - The checked-out aircraft/instructor take precedence over the
      scheduled ones.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from checkin_kernel.domain.checkin import (
    Booking,
    ChargeRateConfig,
    InstructionKind,
    MeterReadings,
)
from checkin_kernel.domain.values import to_decimal

_METER_FIELDS = (
    "hobbs_start",
    "hobbs_end",
    "tach_start",
    "tach_end",
    "airswitch_start",
    "airswitch_end",
    "solo_end_hobbs",
    "solo_end_tach",
)


def first_related(value: Any) -> Any:
    """Collapse a one-element list relation to its record."""
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return value[0] if value else None
    return value


def _optional_id(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def parse_instruction_kind(value: Any) -> InstructionKind | None:
    """Instruction kind for a stored ``instruction_type``; None when unknown."""
    if value is None:
        return None
    try:
        return InstructionKind(str(value).lower())
    except ValueError:
        return None


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def meter_readings_from_mapping(raw: Mapping[str, Any]) -> MeterReadings:
    """Extract every meter field from a row, coercing numbers."""
    return MeterReadings(**{name: to_decimal(raw.get(name)) for name in _METER_FIELDS})


def charge_rate_from_mapping(raw: Mapping[str, Any] | Sequence | None) -> ChargeRateConfig | None:
    """Normalize a charge-rate row (or one-element list of rows)."""
    record = first_related(raw)
    if record is None:
        return None
    return ChargeRateConfig(
        id=_optional_id(record.get("id")),
        rate_per_hour=to_decimal(record.get("rate_per_hour")),
        charge_hobbs=bool(record.get("charge_hobbs") or False),
        charge_tacho=bool(record.get("charge_tacho") or False),
        charge_airswitch=bool(record.get("charge_airswitch") or False),
    )


def booking_from_mapping(raw: Mapping[str, Any]) -> Booking:
    """Normalize a booking row with optional embedded relations.

    ``flight_type`` may be embedded as a record or a one-element list; its
    ``instruction_type`` becomes the booking's instruction kind.
    """
    flight_type = first_related(raw.get("flight_type")) or {}
    kind = parse_instruction_kind(
        raw.get("instruction_kind") or flight_type.get("instruction_type")
    )
    return Booking(
        id=str(raw["id"]),
        aircraft_id=_optional_id(raw.get("checked_out_aircraft_id") or raw.get("aircraft_id")),
        instructor_id=_optional_id(
            raw.get("checked_out_instructor_id") or raw.get("instructor_id")
        ),
        flight_type_id=_optional_id(raw.get("flight_type_id") or flight_type.get("id")),
        instruction_kind=kind,
        readings=meter_readings_from_mapping(raw),
        status=str(raw.get("status") or "flying"),
        booking_type=str(raw.get("booking_type") or "flight"),
        member_id=_optional_id(raw.get("user_id") or raw.get("member_id")),
        approved_at=_parse_timestamp(raw.get("checkin_approved_at")),
        invoice_id=_optional_id(raw.get("checkin_invoice_id")),
    )
