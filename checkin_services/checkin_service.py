"""
checkin_services.checkin_service -- Command surface for one flight check-in.

Responsibility:
    Wires the collaborators, settings and clock into the pure engines and
    exposes the check-in as discrete commands: open, update inputs,
    calculate, edit / add / remove / exclude / restore lines, check
    staleness, evaluate and approve. Nothing is recomputed implicitly.

Architecture position:
    Services -- stateful orchestration over engines + kernel. The only
    layer that reads settings, calls collaborators or reads the clock.

Invariants enforced:
    - Session state lives on the ``CheckinSession`` handed to each command;
      the service itself holds no per-booking state.
    - Approval runs the full gate; the invoice sink is only called when
      every invariant holds.
    - A successful approval discards the draft and the manual items.

Failure modes:
    - ApprovalBlockedError: the gate refused approval.
    - Collaborator errors (BookingNotFoundError, InvoiceAlreadyExistsError,
      ...) propagate unchanged; there is no retry.

Usage:
    service = CheckinService(selector, writer, get_active_settings())
    session = service.open(booking_id)
    service.update_inputs(session, readings=readings)
    service.calculate(session)
    invoice = service.approve(session)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from uuid import uuid4

from checkin_config import CheckinSettings, get_active_settings
from checkin_engines.approval_gate import (
    ApprovalEvaluation,
    build_submission,
    evaluate_approval,
)
from checkin_engines.draft_signature import is_draft_stale
from checkin_engines.invoice_lines import LineTemplates
from checkin_engines.line_editor import (
    LinePatch,
    add_manual,
    edit_line,
    exclude_generated,
    recompute,
    remove_manual,
    restore_generated,
)
from checkin_kernel.domain.checkin import (
    CheckinContext,
    CheckinInputs,
    CheckinSessionState,
    InstructionKind,
)
from checkin_kernel.domain.clock import Clock, SystemClock
from checkin_kernel.domain.invoice import DraftCalculation, InvoiceRecord
from checkin_kernel.logging_config import LogContext, get_logger
from checkin_services.collaborators import CheckinDataSource, InvoiceSink

logger = get_logger("services.checkin")

# Input changes that require fresh rate / label lookups.
_LOOKUP_FIELDS = frozenset({"aircraft_id", "instructor_id", "flight_type_id"})


@dataclass
class CheckinSession:
    """One open check-in: the current context plus its editor state."""

    context: CheckinContext
    state: CheckinSessionState = field(default_factory=CheckinSessionState)
    session_id: str = field(default_factory=lambda: str(uuid4()))
    invoice: InvoiceRecord | None = None

    @property
    def draft(self) -> DraftCalculation | None:
        return self.state.draft


class CheckinService:
    """
    Check-in commands over injected collaborators.

    Args:
        data_source: Booking, rate and tax lookups.
        invoice_sink: Invoice creation.
        settings: Check-in settings; loaded from the packaged defaults
            when omitted.
        clock: Time source for draft stamps and due dates.
    """

    def __init__(
        self,
        data_source: CheckinDataSource,
        invoice_sink: InvoiceSink,
        settings: CheckinSettings | None = None,
        clock: Clock | None = None,
    ):
        self._data_source = data_source
        self._invoice_sink = invoice_sink
        self._settings = settings or get_active_settings()
        self._clock = clock or SystemClock()
        self._templates = LineTemplates(
            aircraft=self._settings.aircraft_line_template,
            instructor=self._settings.instructor_line_template,
        )

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    def _tax_rate(self) -> Decimal:
        rate = self._data_source.get_org_tax_rate()
        return self._settings.default_tax_rate if rate is None else rate

    def load_context(
        self,
        booking_id: str,
        inputs: CheckinInputs | None = None,
    ) -> CheckinContext:
        """Fetch the booking and every lookup the engines read."""
        booking = self._data_source.get_booking(booking_id)
        inputs = inputs or CheckinInputs.from_booking(booking)
        return self._context_for(booking, inputs)

    def _context_for(self, booking, inputs: CheckinInputs) -> CheckinContext:
        source = self._data_source
        return CheckinContext(
            booking=booking,
            inputs=inputs,
            aircraft_rate=source.get_aircraft_charge_rate(
                inputs.aircraft_id, inputs.flight_type_id,
            ),
            instructor_rate=(
                source.get_instructor_charge_rate(inputs.instructor_id, inputs.flight_type_id)
                if inputs.instructor_id
                else None
            ),
            tax_rate=self._tax_rate(),
            aircraft_label=source.get_aircraft_label(inputs.aircraft_id),
            instructor_label=(
                source.get_instructor_label(inputs.instructor_id)
                if inputs.instructor_id
                else None
            ),
        )

    def open(self, booking_id: str) -> CheckinSession:
        """Start a check-in session with an empty editor state."""
        context = self.load_context(booking_id)
        session = CheckinSession(context=context)
        with LogContext.bind(booking_id=booking_id, session_id=session.session_id):
            logger.info("checkin_session_opened", extra={
                "aircraft_id": context.inputs.aircraft_id,
                "instructor_id": context.inputs.instructor_id,
                "flight_type_id": context.inputs.flight_type_id,
            })
        return session

    def update_inputs(self, session: CheckinSession, **changes) -> bool:
        """
        Apply form changes. Returns whether the current draft is now stale.

        Selection changes re-run the rate and label lookups; the draft is
        never recomputed here. A new flight type also resets the
        instruction kind to that flight type's, unless the caller sets
        ``instruction_kind`` in the same change.
        """
        if "flight_type_id" in changes and "instruction_kind" not in changes:
            kind = self._data_source.get_flight_type_instruction_kind(changes["flight_type_id"])
            changes["instruction_kind"] = kind or InstructionKind.DUAL
        inputs = replace(session.context.inputs, **changes)
        if _LOOKUP_FIELDS & changes.keys():
            session.context = self._context_for(session.context.booking, inputs)
        else:
            session.context = replace(session.context, inputs=inputs)
        return self.is_stale(session)

    def is_stale(self, session: CheckinSession) -> bool:
        return is_draft_stale(session.state.draft, session.context)

    # ------------------------------------------------------------------
    # Editor commands
    # ------------------------------------------------------------------

    def calculate(self, session: CheckinSession) -> DraftCalculation | None:
        with LogContext.bind(booking_id=session.context.inputs.booking_id,
                             session_id=session.session_id):
            return recompute(
                session.state,
                session.context,
                now=self._clock.now(),
                templates=self._templates,
            )

    def edit_line(
        self, session: CheckinSession, index: int, patch: LinePatch,
    ) -> DraftCalculation:
        return edit_line(session.state, session.context, index, patch)

    def add_manual_item(self, session: CheckinSession) -> DraftCalculation | None:
        return add_manual(
            session.state, session.context,
            now=self._clock.now(), templates=self._templates,
        )

    def remove_manual_item(
        self, session: CheckinSession, index: int,
    ) -> DraftCalculation | None:
        return remove_manual(
            session.state, session.context, index,
            now=self._clock.now(), templates=self._templates,
        )

    def exclude_item(
        self, session: CheckinSession, description: str,
    ) -> DraftCalculation | None:
        return exclude_generated(
            session.state, session.context, description,
            now=self._clock.now(), templates=self._templates,
        )

    def restore_item(
        self, session: CheckinSession, description: str,
    ) -> DraftCalculation | None:
        return restore_generated(
            session.state, session.context, description,
            now=self._clock.now(), templates=self._templates,
        )

    # ------------------------------------------------------------------
    # Approval
    # ------------------------------------------------------------------

    def evaluate(self, session: CheckinSession) -> ApprovalEvaluation:
        return evaluate_approval(session.state, session.context)

    def approve(self, session: CheckinSession) -> InvoiceRecord:
        """
        Run the approval gate and create the invoice.

        Raises:
            ApprovalBlockedError: The first violated approval invariant.
            Any error of the invoice sink, unchanged.
        """
        booking_id = session.context.inputs.booking_id
        with LogContext.bind(booking_id=booking_id, session_id=session.session_id):
            submission = build_submission(
                session.state,
                session.context,
                now=self._clock.now(),
                due_days=self._settings.invoice_due_days,
                reference_template=self._settings.reference_template,
            )
            invoice = self._invoice_sink.create_invoice(submission)

            session.invoice = invoice
            session.state.draft = None
            session.state.manual_items.clear()
            session.state.excluded_keys.clear()
            session.state.editing_index = None
            if session.context.booking is not None:
                session.context = replace(
                    session.context,
                    booking=replace(
                        session.context.booking,
                        approved_at=self._clock.now(),
                        invoice_id=invoice.id,
                    ),
                )

            logger.info("checkin_approved", extra={
                "invoice_id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "total_amount": str(invoice.total_amount),
            })
        return invoice
