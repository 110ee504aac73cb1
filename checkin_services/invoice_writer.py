"""
checkin_services.invoice_writer -- Persist the invoice for an approved check-in.

Responsibility:
    Implements the ``InvoiceSink`` collaborator over the SQLAlchemy models:
    writes the invoice and its items, advances the checked-out aircraft's
    time in service and marks the booking complete and approved, in the
    caller's transaction.

Architecture position:
    Services -- stateful, holds a caller-owned session and a clock.
    Composes the pure line arithmetic from ``checkin_engines.line_editor``
    and the ``AircraftTimeRecorder``.

Invariants enforced:
    - Single writer per booking: the booking row is locked (FOR UPDATE on
      backends that support it) before the approval checks.
    - A cancelled or non-flight booking is never invoiced.
    - An approved booking, or one that already has a non-cancelled invoice,
      is never invoiced again.
    - Stored items are settled in cents (tax-inclusive rate first, then
      line total, then the exclusive amount backed out of it) and the
      invoice header totals are the sums of the stored items.

Failure modes:
    - BookingNotFoundError, BookingNotInvoiceableError,
      BookingAlreadyApprovedError, InvoiceAlreadyExistsError.
    - AircraftNotFoundError, TotalTimeMethodError, MeterDeltaError when the
      aircraft's time in service cannot advance.
    - The caller's ``session_scope`` rolls everything back on any failure.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from checkin_config import CheckinSettings
from checkin_engines.line_editor import calculate_totals, settle_line
from checkin_kernel.domain.checkin import MeterReadings
from checkin_kernel.domain.clock import Clock, SystemClock
from checkin_kernel.domain.invoice import (
    CheckinSubmission,
    InvoiceLineItem,
    InvoiceRecord,
)
from checkin_kernel.exceptions import (
    BookingAlreadyApprovedError,
    BookingNotFoundError,
    BookingNotInvoiceableError,
    InvoiceAlreadyExistsError,
)
from checkin_kernel.logging_config import get_logger
from checkin_kernel.models.booking import Booking, BookingStatus, BookingType
from checkin_kernel.models.invoice import Invoice, InvoiceItem, InvoiceStatus
from checkin_services.aircraft_time import AircraftTimeRecorder

logger = get_logger("services.invoice_writer")


def _uuid(value: str | None) -> UUID | None:
    return UUID(str(value)) if value else None


class InvoiceWriter:
    """
    Writes check-in invoices.

    Args:
        session: Caller-owned session; this class flushes but never commits.
        clock: Source of the issue and approval timestamps.
        status: Status of newly created invoices.
        number_prefix: Prefix of generated invoice numbers.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        status: str = InvoiceStatus.PENDING.value,
        number_prefix: str = "INV-",
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._status = status
        self._number_prefix = number_prefix
        self._aircraft_time = AircraftTimeRecorder(session, self._clock)

    @classmethod
    def from_settings(
        cls,
        session: Session,
        settings: CheckinSettings,
        clock: Clock | None = None,
    ) -> InvoiceWriter:
        """Writer using the invoice status and number prefix from settings."""
        return cls(
            session,
            clock=clock,
            status=settings.invoice_status,
            number_prefix=settings.invoice_number_prefix,
        )

    def create_invoice(self, submission: CheckinSubmission) -> InvoiceRecord:
        booking = self._lock_booking(submission.booking_id)
        self._assert_invoiceable(booking)

        now = self._clock.now()
        time_update = self._aircraft_time.record_approval(
            booking,
            submission.aircraft_id,
            MeterReadings(**submission.meter_readings),
        )

        lines = [
            settle_line(
                InvoiceLineItem(
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    tax_rate=item.tax_rate,
                    chargeable_id=item.chargeable_id,
                    notes=item.notes,
                ),
                submission.tax_rate,
            )
            for item in submission.items
        ]
        # Settled lines are already in cents, so these are exact sums of the
        # stored items.
        totals = calculate_totals(lines)

        invoice = Invoice(
            invoice_number=self._next_invoice_number(),
            booking_id=booking.id,
            user_id=booking.user_id,
            status=self._status,
            issue_date=now,
            due_date=submission.due_date,
            reference=submission.reference,
            tax_rate=submission.tax_rate,
            subtotal=totals.subtotal,
            tax_total=totals.tax_total,
            total_amount=totals.total_amount,
        )
        for position, line in enumerate(lines):
            invoice.items.append(
                InvoiceItem(
                    position=position,
                    chargeable_id=_uuid(line.item.chargeable_id),
                    description=line.description,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    amount=line.amount,
                    tax_rate=line.item.tax_rate,
                    tax_amount=line.tax_amount,
                    rate_inclusive=line.rate_inclusive,
                    line_total=line.line_total,
                    notes=line.item.notes,
                )
            )
        self._session.add(invoice)
        self._session.flush()

        self._apply_checkin(booking, submission, invoice, now)
        self._session.flush()

        logger.info("checkin_invoice_created", extra={
            "booking_id": str(booking.id),
            "invoice_id": str(invoice.id),
            "invoice_number": invoice.invoice_number,
            "item_count": len(lines),
            "total_amount": str(totals.total_amount),
            "applied_aircraft_delta": str(time_update.applied_delta),
        })
        return InvoiceRecord(
            id=str(invoice.id),
            invoice_number=invoice.invoice_number,
            booking_id=str(booking.id),
            status=invoice.status,
            subtotal=totals.subtotal,
            tax_total=totals.tax_total,
            total_amount=totals.total_amount,
            due_date=invoice.due_date,
            reference=invoice.reference,
        )

    def _lock_booking(self, booking_id: str) -> Booking:
        try:
            key = UUID(str(booking_id))
        except ValueError:
            raise BookingNotFoundError(str(booking_id)) from None
        booking = self._session.execute(
            select(Booking).where(Booking.id == key).with_for_update()
        ).scalar_one_or_none()
        if booking is None:
            raise BookingNotFoundError(str(booking_id))
        return booking

    def _assert_invoiceable(self, booking: Booking) -> None:
        booking_id = str(booking.id)
        if booking.status == BookingStatus.CANCELLED.value:
            raise BookingNotInvoiceableError(booking_id, "booking is cancelled")
        if booking.booking_type != BookingType.FLIGHT.value:
            raise BookingNotInvoiceableError(
                booking_id, f"booking type is {booking.booking_type}, not flight"
            )
        if booking.checkin_approved_at is not None:
            raise BookingAlreadyApprovedError(booking_id)

        existing = self._session.execute(
            select(Invoice.id).where(
                Invoice.booking_id == booking.id,
                Invoice.status != InvoiceStatus.CANCELLED.value,
            ).limit(1)
        ).scalar_one_or_none()
        if existing is not None:
            raise InvoiceAlreadyExistsError(booking_id, str(existing))

    def _next_invoice_number(self) -> str:
        count = self._session.execute(select(func.count(Invoice.id))).scalar_one()
        return f"{self._number_prefix}{count + 1:06d}"

    def _apply_checkin(self, booking, submission, invoice, now) -> None:
        booking.status = BookingStatus.COMPLETE.value
        booking.checked_out_aircraft_id = _uuid(submission.aircraft_id)
        booking.checked_out_instructor_id = _uuid(submission.instructor_id)
        booking.flight_type_id = _uuid(submission.flight_type_id)
        for name, value in submission.meter_readings.items():
            setattr(booking, name, value)
        booking.dual_time = submission.dual_time
        booking.solo_time = submission.solo_time
        booking.billing_basis = submission.billing_basis.value
        booking.billing_hours = submission.billing_hours
        booking.checkin_invoice_id = invoice.id
        booking.checkin_approved_at = now
