"""
Invoice Line Engine - Generate aircraft and instructor lines for a check-in.

Pure functions with deterministic behavior. No I/O.

Turns the resolved billing basis, the flight-time split and the charge-rate
configuration into generated invoice line items: one aircraft hire line
billed on the governing meter and, when an instructor flew, one instructor
line billed on dual time.

Configuration gaps never raise. A missing or unusable aircraft rate yields
no lines at all; a missing instructor rate drops only the instructor line.

Usage:
    from checkin_engines.invoice_lines import build_invoice_lines

    items = build_invoice_lines(context)
    for item in items:
        print(item.description, item.quantity, item.unit_price)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from checkin_engines.charge_basis import is_supported_basis, resolve_charge_basis
from checkin_engines.flight_time import (
    FlightTimeSplit,
    compute_billing_hours,
    split_flight_time,
)
from checkin_engines.tracer import traced_engine
from checkin_kernel.domain.checkin import (
    BillingBasis,
    CheckinContext,
    InstructionKind,
)
from checkin_kernel.domain.invoice import InvoiceLineItem
from checkin_kernel.domain.values import ZERO, format_hours, is_finite
from checkin_kernel.logging_config import get_logger

logger = get_logger("engines.invoice_lines")

AIRCRAFT_LINE_TEMPLATE = "Aircraft Hire ({aircraft})"
INSTRUCTOR_LINE_TEMPLATE = "Instructor Rate - {instructor}"


@dataclass(frozen=True)
class LineTemplates:
    """Description formats for the generated lines."""

    aircraft: str = AIRCRAFT_LINE_TEMPLATE
    instructor: str = INSTRUCTOR_LINE_TEMPLATE


DEFAULT_TEMPLATES = LineTemplates()


def _usable_rate(rate: Decimal | None) -> bool:
    return is_finite(rate) and rate > ZERO


def aircraft_basis(context: CheckinContext) -> BillingBasis:
    """Basis governing the aircraft line."""
    return resolve_charge_basis(context.aircraft_rate)


def flight_split(context: CheckinContext) -> FlightTimeSplit:
    """Flight-time split on the aircraft's governing meter."""
    inputs = context.inputs
    return split_flight_time(
        basis=aircraft_basis(context),
        instruction_kind=inputs.instruction_kind,
        readings=inputs.readings,
        has_solo_at_end=inputs.has_solo_at_end,
    )


def billing_hours(context: CheckinContext) -> Decimal:
    """Hours billed on the aircraft line."""
    inputs = context.inputs
    return compute_billing_hours(
        basis=aircraft_basis(context),
        instruction_kind=inputs.instruction_kind,
        readings=inputs.readings,
        has_solo_at_end=inputs.has_solo_at_end,
    )


def has_instructor_basis_conflict(context: CheckinContext) -> bool:
    """
    True when a solo-at-end split is in effect and the instructor rate is
    metered on a different instrument than the aircraft.

    The split is only computed on the aircraft's meter, so there is no
    trustworthy dual figure for an instructor billed on the other one.
    """
    inputs = context.inputs
    if not inputs.has_solo_at_end or inputs.instruction_kind == InstructionKind.SOLO:
        return False
    if not inputs.instructor_id or context.instructor_rate is None:
        return False
    return resolve_charge_basis(context.instructor_rate) != aircraft_basis(context)


def instructor_hours(context: CheckinContext, split: FlightTimeSplit) -> Decimal:
    """Hours billed on the instructor line (zero when no line applies)."""
    inputs = context.inputs
    if not inputs.instructor_id or context.instructor_rate is None:
        return ZERO
    if inputs.instruction_kind == InstructionKind.SOLO:
        return ZERO
    if has_instructor_basis_conflict(context):
        logger.warning("instructor_basis_conflict_excluded", extra={
            "booking_id": inputs.booking_id,
            "aircraft_basis": aircraft_basis(context).value,
            "instructor_basis": resolve_charge_basis(context.instructor_rate).value,
        })
        return ZERO
    return split.dual


def _line_notes(context: CheckinContext, basis: BillingBasis, split: FlightTimeSplit) -> str:
    readings = context.inputs.readings
    return (
        f"Booking {context.inputs.booking_id}; basis {basis.value}; "
        f"total {format_hours(split.total)}h, dual {format_hours(split.dual)}h, "
        f"solo {format_hours(split.solo)}h; "
        f"hobbs {format_hours(readings.hobbs_start)}-{format_hours(readings.hobbs_end)}; "
        f"tacho {format_hours(readings.tach_start)}-{format_hours(readings.tach_end)}"
    )


@traced_engine("invoice_lines", "1.0")
def build_invoice_lines(
    context: CheckinContext,
    *,
    aircraft_template: str = AIRCRAFT_LINE_TEMPLATE,
    instructor_template: str = INSTRUCTOR_LINE_TEMPLATE,
) -> tuple[InvoiceLineItem, ...]:
    """
    Generate the aircraft and instructor lines for a check-in.

    Pure function - no side effects, no I/O, deterministic output.

    Args:
        context: Snapshot of booking, inputs, rates and tax rate.
        aircraft_template: Description format, ``{aircraft}`` placeholder.
        instructor_template: Description format, ``{instructor}`` placeholder.

    Returns:
        Tuple of generated items; empty when any guard fails.
    """
    inputs = context.inputs
    if context.booking is None:
        return ()
    if context.aircraft_rate is None:
        logger.info("invoice_lines_no_aircraft_rate", extra={
            "booking_id": inputs.booking_id,
            "aircraft_id": inputs.aircraft_id,
            "flight_type_id": inputs.flight_type_id,
        })
        return ()

    basis = aircraft_basis(context)
    if not is_supported_basis(basis):
        logger.info("invoice_lines_unsupported_basis", extra={
            "booking_id": inputs.booking_id,
            "basis": basis.value,
        })
        return ()

    hours = billing_hours(context)
    if hours <= ZERO:
        return ()

    aircraft_rate = context.aircraft_rate.rate_per_hour
    if not _usable_rate(aircraft_rate):
        logger.info("invoice_lines_unusable_aircraft_rate", extra={
            "booking_id": inputs.booking_id,
            "rate_per_hour": str(aircraft_rate),
        })
        return ()

    split = flight_split(context)
    notes = _line_notes(context, basis, split)
    aircraft_name = context.aircraft_label or inputs.aircraft_id or "aircraft"

    items = [
        InvoiceLineItem(
            description=aircraft_template.format(aircraft=aircraft_name),
            quantity=hours,
            unit_price=aircraft_rate,
            tax_rate=context.tax_rate,
            notes=notes,
        )
    ]

    instr_hours = instructor_hours(context, split)
    instructor_rate = (
        context.instructor_rate.rate_per_hour if context.instructor_rate else None
    )
    if instr_hours > ZERO and _usable_rate(instructor_rate):
        instructor_name = context.instructor_label or inputs.instructor_id
        items.append(
            InvoiceLineItem(
                description=instructor_template.format(instructor=instructor_name),
                quantity=instr_hours,
                unit_price=instructor_rate,
                tax_rate=context.tax_rate,
                notes=notes,
            )
        )

    logger.debug("invoice_lines_generated", extra={
        "booking_id": inputs.booking_id,
        "basis": basis.value,
        "billing_hours": str(hours),
        "instructor_hours": str(instr_hours),
        "line_count": len(items),
    })
    return tuple(items)
