"""
checkin_engines.approval_gate -- Final check-in approval invariants and payload.

Responsibility:
    Decide whether a check-in may be approved and, if so, assemble the
    ``CheckinSubmission`` handed to the invoice-creation collaborator.

Architecture position:
    Engines -- pure calculation layer, zero I/O. The current time and the
    due-day / reference settings are parameters.

Invariants enforced (checked in this order, first failure wins):
    1.  Booking loaded and not already approved.
    2.  Aircraft and flight type selected.
    3.  Aircraft billing basis resolved to hobbs or tacho.
    4.  Billing hours > 0.
    5.  Flight-time split has no error.
    6.  No instructor/aircraft basis conflict while a solo split is on.
    7.  A draft exists.
    8.  The draft is not stale.
    9.  The draft has at least one item.
    10. Every item: finite quantity > 0, finite unit price >= 0.
    11. Finite total > 0.

Failure modes:
    - ``evaluate_approval`` never raises; it returns the blocker.
    - ``build_submission`` raises ApprovalBlockedError when the gate fails.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from checkin_engines.charge_basis import resolve_charge_basis
from checkin_engines.draft_signature import is_draft_stale
from checkin_engines.invoice_lines import (
    billing_hours,
    flight_split,
    has_instructor_basis_conflict,
)
from checkin_engines.tracer import traced_engine
from checkin_kernel.domain.checkin import (
    BillingBasis,
    CheckinContext,
    CheckinSessionState,
    InstructionKind,
)
from checkin_kernel.domain.invoice import CheckinSubmission, SubmissionItem
from checkin_kernel.domain.values import ZERO, is_finite
from checkin_kernel.exceptions import ApprovalBlockedError
from checkin_kernel.logging_config import get_logger

logger = get_logger("engines.approval_gate")

DEFAULT_DUE_DAYS = 7
DEFAULT_REFERENCE_TEMPLATE = "Booking {booking_id}"


class ApprovalBlocker(str, Enum):
    """Reason an approval was refused."""

    BOOKING_NOT_READY = "BOOKING_NOT_READY"
    BOOKING_ALREADY_APPROVED = "BOOKING_ALREADY_APPROVED"
    SELECTION_INCOMPLETE = "SELECTION_INCOMPLETE"
    BILLING_BASIS_UNRESOLVED = "BILLING_BASIS_UNRESOLVED"
    AIRSWITCH_UNSUPPORTED = "AIRSWITCH_UNSUPPORTED"
    BILLING_HOURS_NOT_POSITIVE = "BILLING_HOURS_NOT_POSITIVE"
    FLIGHT_TIME_INVALID = "FLIGHT_TIME_INVALID"
    INSTRUCTOR_BASIS_CONFLICT = "INSTRUCTOR_BASIS_CONFLICT"
    DRAFT_MISSING = "DRAFT_MISSING"
    DRAFT_STALE = "DRAFT_STALE"
    DRAFT_EMPTY = "DRAFT_EMPTY"
    LINE_ITEM_INVALID = "LINE_ITEM_INVALID"
    TOTAL_NOT_POSITIVE = "TOTAL_NOT_POSITIVE"


NO_AIRCRAFT_RATE_MESSAGE = (
    "No charge rate is configured for this aircraft and flight type."
)
NO_BASIS_MESSAGE = (
    "The aircraft charge rate does not select hobbs or tacho as its billing basis."
)

_MESSAGES: dict[ApprovalBlocker, str] = {
    ApprovalBlocker.BOOKING_NOT_READY: "Booking is not loaded yet.",
    ApprovalBlocker.BOOKING_ALREADY_APPROVED: "This booking check-in has already been approved.",
    ApprovalBlocker.SELECTION_INCOMPLETE: "Select an aircraft and a flight type before approving.",
    ApprovalBlocker.AIRSWITCH_UNSUPPORTED: "Airswitch billing is not supported for check-in invoicing.",
    ApprovalBlocker.BILLING_HOURS_NOT_POSITIVE: "Billing hours must be greater than zero.",
    ApprovalBlocker.INSTRUCTOR_BASIS_CONFLICT: (
        "Instructor and aircraft charge rates use different billing bases; "
        "a solo-at-end split cannot be billed across them."
    ),
    ApprovalBlocker.DRAFT_MISSING: "Calculate the invoice before approving.",
    ApprovalBlocker.DRAFT_STALE: "Inputs changed since the invoice was calculated. Recalculate before approving.",
    ApprovalBlocker.DRAFT_EMPTY: "The invoice has no line items.",
    ApprovalBlocker.TOTAL_NOT_POSITIVE: "Invoice total must be greater than zero.",
}


@dataclass(frozen=True)
class ApprovalEvaluation:
    """Outcome of the gate. ``blocker`` is None when approval may proceed."""

    blocker: ApprovalBlocker | None = None
    message: str | None = None

    @property
    def approved(self) -> bool:
        return self.blocker is None


def _blocked(blocker: ApprovalBlocker, message: str | None = None) -> ApprovalEvaluation:
    return ApprovalEvaluation(blocker=blocker, message=message or _MESSAGES[blocker])


def _check_items(state: CheckinSessionState) -> ApprovalEvaluation | None:
    for position, item in enumerate(state.draft.items, start=1):
        label = item.description or f"line {position}"
        if not (is_finite(item.quantity) and item.quantity > ZERO):
            return _blocked(
                ApprovalBlocker.LINE_ITEM_INVALID,
                f"Quantity for '{label}' must be greater than zero.",
            )
        if not is_finite(item.unit_price):
            return _blocked(
                ApprovalBlocker.LINE_ITEM_INVALID,
                f"Unit price for '{label}' is not a valid number.",
            )
        if item.unit_price < ZERO:
            return _blocked(
                ApprovalBlocker.LINE_ITEM_INVALID,
                f"Unit price for '{label}' cannot be negative.",
            )
        if item.tax_rate is not None and not is_finite(item.tax_rate):
            return _blocked(
                ApprovalBlocker.LINE_ITEM_INVALID,
                f"Tax rate for '{label}' is not a valid number.",
            )
    return None


@traced_engine("approval_gate", "1.0")
def evaluate_approval(
    state: CheckinSessionState,
    context: CheckinContext,
) -> ApprovalEvaluation:
    """
    Check the approval invariants, fail-fast, in priority order.

    Returns:
        ApprovalEvaluation with the first violated blocker, or an approved
        evaluation.
    """
    booking = context.booking
    inputs = context.inputs

    if booking is None:
        return _blocked(ApprovalBlocker.BOOKING_NOT_READY)
    if booking.is_approved:
        return _blocked(ApprovalBlocker.BOOKING_ALREADY_APPROVED)

    if not inputs.aircraft_id or not inputs.flight_type_id:
        return _blocked(ApprovalBlocker.SELECTION_INCOMPLETE)

    if context.aircraft_rate is None:
        return _blocked(ApprovalBlocker.BILLING_BASIS_UNRESOLVED, NO_AIRCRAFT_RATE_MESSAGE)
    basis = resolve_charge_basis(context.aircraft_rate)
    if basis == BillingBasis.AIRSWITCH:
        return _blocked(ApprovalBlocker.AIRSWITCH_UNSUPPORTED)
    if basis == BillingBasis.NONE:
        return _blocked(ApprovalBlocker.BILLING_BASIS_UNRESOLVED, NO_BASIS_MESSAGE)

    # An invalid split bills zero hours; report the split error itself.
    split = flight_split(context)
    if split.is_valid and billing_hours(context) <= ZERO:
        return _blocked(ApprovalBlocker.BILLING_HOURS_NOT_POSITIVE)
    if not split.is_valid:
        return _blocked(ApprovalBlocker.FLIGHT_TIME_INVALID, split.error)

    if has_instructor_basis_conflict(context):
        return _blocked(ApprovalBlocker.INSTRUCTOR_BASIS_CONFLICT)

    draft = state.draft
    if draft is None:
        return _blocked(ApprovalBlocker.DRAFT_MISSING)
    if is_draft_stale(draft, context):
        return _blocked(ApprovalBlocker.DRAFT_STALE)
    if not draft.items:
        return _blocked(ApprovalBlocker.DRAFT_EMPTY)

    invalid = _check_items(state)
    if invalid is not None:
        return invalid

    total = draft.totals.total_amount
    if not (is_finite(total) and total > ZERO):
        return _blocked(ApprovalBlocker.TOTAL_NOT_POSITIVE)

    return ApprovalEvaluation()


def _submission_readings(context: CheckinContext, basis: BillingBasis) -> dict:
    inputs = context.inputs
    readings = inputs.readings.as_dict()
    split_on = inputs.has_solo_at_end and inputs.instruction_kind != InstructionKind.SOLO
    if not (split_on and basis == BillingBasis.HOBBS):
        readings["solo_end_hobbs"] = None
    if not (split_on and basis == BillingBasis.TACHO):
        readings["solo_end_tach"] = None
    return readings


def build_submission(
    state: CheckinSessionState,
    context: CheckinContext,
    *,
    now: datetime,
    due_days: int = DEFAULT_DUE_DAYS,
    reference_template: str = DEFAULT_REFERENCE_TEMPLATE,
) -> CheckinSubmission:
    """
    Assemble the approval payload.

    Raises:
        ApprovalBlockedError: The gate refused approval.
    """
    evaluation = evaluate_approval(state, context)
    if not evaluation.approved:
        logger.info("approval_blocked", extra={
            "booking_id": context.inputs.booking_id,
            "blocker": evaluation.blocker.value,
        })
        raise ApprovalBlockedError(evaluation.blocker.value, evaluation.message)

    inputs = context.inputs
    draft = state.draft
    basis = resolve_charge_basis(context.aircraft_rate)

    submission = CheckinSubmission(
        booking_id=context.booking.id,
        aircraft_id=inputs.aircraft_id,
        instructor_id=inputs.instructor_id or None,
        flight_type_id=inputs.flight_type_id,
        meter_readings=_submission_readings(context, basis),
        dual_time=draft.dual_time if draft.dual_time > ZERO else None,
        solo_time=draft.solo_time if draft.solo_time > ZERO else None,
        billing_basis=basis,
        billing_hours=draft.billing_hours,
        tax_rate=context.tax_rate,
        due_date=now + timedelta(days=due_days),
        reference=reference_template.format(booking_id=context.booking.id),
        items=tuple(SubmissionItem.from_item(item) for item in draft.items),
    )
    logger.info("approval_submission_built", extra={
        "booking_id": submission.booking_id,
        "item_count": len(submission.items),
        "billing_basis": basis.value,
        "billing_hours": str(submission.billing_hours),
    })
    return submission
