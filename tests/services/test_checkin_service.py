"""Tests for the check-in command surface (checkin_services/checkin_service.py)."""

from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

import pytest

from checkin_config.loader import load_settings
from checkin_engines.approval_gate import ApprovalBlocker
from checkin_engines.line_editor import LinePatch
from checkin_kernel.domain.checkin import InstructionKind, MeterReadings
from checkin_kernel.domain.invoice import InvoiceRecord
from checkin_kernel.exceptions import (
    ApprovalBlockedError,
    BookingNotFoundError,
    InvoiceAlreadyExistsError,
)
from checkin_kernel.selectors import CheckinSelector
from checkin_services import CheckinService, InvoiceWriter
from conftest import FIXED_NOW, hobbs_rate, make_booking, tacho_rate

D = Decimal


class FakeDataSource:
    """In-memory data source recording every lookup."""

    def __init__(self, bookings, aircraft_rates=None, instructor_rates=None, tax_rate=D("0.15")):
        self.bookings = {b.id: b for b in bookings}
        self.aircraft_rates = aircraft_rates or {}
        self.instructor_rates = instructor_rates or {}
        self.tax_rate = tax_rate
        self.calls: list[tuple] = []

    def get_booking(self, booking_id):
        self.calls.append(("booking", booking_id))
        if booking_id not in self.bookings:
            raise BookingNotFoundError(booking_id)
        return self.bookings[booking_id]

    def get_aircraft_charge_rate(self, aircraft_id, flight_type_id):
        self.calls.append(("aircraft_rate", aircraft_id, flight_type_id))
        return self.aircraft_rates.get((aircraft_id, flight_type_id))

    def get_instructor_charge_rate(self, instructor_id, flight_type_id):
        self.calls.append(("instructor_rate", instructor_id, flight_type_id))
        return self.instructor_rates.get((instructor_id, flight_type_id))

    def get_org_tax_rate(self):
        return self.tax_rate

    def get_aircraft_label(self, aircraft_id):
        return {"aircraft-1": "ZK-ABC", "aircraft-2": "ZK-XYZ"}.get(aircraft_id)

    def get_flight_type_instruction_kind(self, flight_type_id):
        self.calls.append(("flight_type_kind", flight_type_id))
        return {
            "flight-type-1": InstructionKind.DUAL,
            "flight-type-solo": InstructionKind.SOLO,
        }.get(flight_type_id)

    def get_instructor_label(self, instructor_id):
        return {"instructor-1": "Jamie Reid"}.get(instructor_id)


class FakeSink:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.submissions = []

    def create_invoice(self, submission):
        self.submissions.append(submission)
        if self.error is not None:
            raise self.error
        return InvoiceRecord(
            id="invoice-1",
            invoice_number="INV-000001",
            booking_id=submission.booking_id,
            status="pending",
            subtotal=D("345.00"),
            tax_total=D("51.75"),
            total_amount=D("396.75"),
            due_date=submission.due_date,
            reference=submission.reference,
        )


READINGS = MeterReadings(hobbs_start=D("8752.2"), hobbs_end=D("8754.5"))


@pytest.fixture
def settings():
    return load_settings()


@pytest.fixture
def source():
    return FakeDataSource(
        bookings=[make_booking(readings=READINGS)],
        aircraft_rates={
            ("aircraft-1", "flight-type-1"): hobbs_rate(),
            ("aircraft-2", "flight-type-1"): tacho_rate("120.00"),
        },
        instructor_rates={("instructor-1", "flight-type-1"): hobbs_rate("80.00", "rate-i")},
    )


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def service(source, sink, settings, clock):
    return CheckinService(source, sink, settings, clock)


class TestOpen:
    def test_builds_context_from_booking(self, service, source):
        checkin = service.open("booking-1")

        context = checkin.context
        assert context.inputs.booking_id == "booking-1"
        assert context.inputs.readings == READINGS
        assert context.aircraft_rate == hobbs_rate()
        assert context.instructor_rate is None
        assert context.tax_rate == D("0.15")
        assert context.aircraft_label == "ZK-ABC"
        assert checkin.draft is None
        assert not any(call[0] == "instructor_rate" for call in source.calls)

    def test_tax_falls_back_to_settings(self, source, sink, clock, settings):
        source.tax_rate = None
        settings = replace(settings, default_tax_rate=D("0.125"))

        checkin = CheckinService(source, sink, settings, clock).open("booking-1")

        assert checkin.context.tax_rate == D("0.125")

    def test_unknown_booking_propagates(self, service):
        with pytest.raises(BookingNotFoundError):
            service.open("missing")

    def test_logs_with_booking_context(self, service, captured_logs):
        checkin = service.open("booking-1")

        opened = next(r for r in captured_logs() if r["message"] == "checkin_session_opened")
        assert opened["booking_id"] == "booking-1"
        assert opened["session_id"] == checkin.session_id


class TestInputsAndStaleness:
    def test_no_draft_is_never_stale(self, service):
        checkin = service.open("booking-1")
        assert service.update_inputs(checkin, remarks="smooth flight") is False

    def test_reading_change_makes_draft_stale(self, service):
        checkin = service.open("booking-1")
        service.calculate(checkin)

        stale = service.update_inputs(
            checkin, readings=replace(READINGS, hobbs_end=D("8754.9")),
        )

        assert stale
        assert service.is_stale(checkin)
        assert checkin.draft.billing_hours == D("2.3")

    def test_remarks_do_not_make_draft_stale(self, service):
        checkin = service.open("booking-1")
        service.calculate(checkin)

        assert service.update_inputs(checkin, remarks="smooth flight") is False

    def test_aircraft_change_reloads_rate_and_label(self, service):
        checkin = service.open("booking-1")
        service.calculate(checkin)

        stale = service.update_inputs(checkin, aircraft_id="aircraft-2")

        assert stale
        assert checkin.context.aircraft_rate == tacho_rate("120.00")
        assert checkin.context.aircraft_label == "ZK-XYZ"

    def test_instructor_change_loads_instructor_rate(self, service):
        checkin = service.open("booking-1")

        service.update_inputs(checkin, instructor_id="instructor-1")
        draft = service.calculate(checkin)

        assert checkin.context.instructor_label == "Jamie Reid"
        assert [i.description for i in draft.items] == [
            "Aircraft Hire (ZK-ABC)",
            "Instructor Rate - Jamie Reid",
        ]

    def test_flight_type_change_refreshes_instruction_kind(self, service):
        checkin = service.open("booking-1")
        service.calculate(checkin)

        stale = service.update_inputs(checkin, flight_type_id="flight-type-solo")

        assert stale
        assert checkin.context.inputs.instruction_kind == InstructionKind.SOLO

    def test_unknown_flight_type_kind_defaults_to_dual(self, service):
        checkin = service.open("booking-1")
        service.update_inputs(checkin, flight_type_id="flight-type-solo")

        service.update_inputs(checkin, flight_type_id="flight-type-unknown")

        assert checkin.context.inputs.instruction_kind == InstructionKind.DUAL

    def test_explicit_instruction_kind_wins(self, service, source):
        checkin = service.open("booking-1")

        service.update_inputs(
            checkin, flight_type_id="flight-type-solo", instruction_kind=InstructionKind.DUAL,
        )

        assert checkin.context.inputs.instruction_kind == InstructionKind.DUAL
        assert not any(call[0] == "flight_type_kind" for call in source.calls)

    def test_recalculate_clears_staleness(self, service):
        checkin = service.open("booking-1")
        service.calculate(checkin)
        service.update_inputs(checkin, readings=replace(READINGS, hobbs_end=D("8755.0")))

        draft = service.calculate(checkin)

        assert not service.is_stale(checkin)
        assert draft.billing_hours == D("2.8")


class TestEditorCommands:
    def test_calculate_stamps_clock_time(self, service):
        checkin = service.open("booking-1")
        draft = service.calculate(checkin)

        assert draft.calculated_at == FIXED_NOW
        assert draft.totals.total_amount == D("396.75")

    def test_templates_from_settings(self, source, sink, clock, settings):
        settings = replace(settings, aircraft_line_template="Hire {aircraft}")
        service = CheckinService(source, sink, settings, clock)
        checkin = service.open("booking-1")

        assert service.calculate(checkin).items[0].description == "Hire ZK-ABC"

    def test_manual_item_lifecycle(self, service):
        checkin = service.open("booking-1")
        service.calculate(checkin)

        draft = service.add_manual_item(checkin)
        assert len(draft.items) == 2
        assert checkin.state.editing_index == 1

        draft = service.edit_line(
            checkin, 1, LinePatch(description="Landing fee", unit_price=D("20.00")),
        )
        assert draft.totals.subtotal == D("365.00")
        assert checkin.state.manual_items[0].description == "Landing fee"

        draft = service.remove_manual_item(checkin, 0)
        assert len(draft.items) == 1
        assert checkin.state.editing_index is None

    def test_exclude_and_restore(self, service):
        checkin = service.open("booking-1")
        service.calculate(checkin)

        assert service.exclude_item(checkin, "Aircraft Hire (ZK-ABC)") is None
        assert checkin.draft is None

        draft = service.restore_item(checkin, "Aircraft Hire (ZK-ABC)")
        assert len(draft.items) == 1


class TestApprove:
    def test_success_clears_session(self, service, sink):
        checkin = service.open("booking-1")
        service.calculate(checkin)
        service.add_manual_item(checkin)
        service.edit_line(checkin, 1, LinePatch(description="Landing fee", unit_price=D("20")))

        invoice = service.approve(checkin)

        assert invoice.invoice_number == "INV-000001"
        assert checkin.invoice == invoice
        assert checkin.draft is None
        assert checkin.state.manual_items == []
        assert checkin.state.editing_index is None
        assert checkin.context.booking.is_approved
        assert checkin.context.booking.invoice_id == "invoice-1"

        (submission,) = sink.submissions
        assert submission.due_date == FIXED_NOW + timedelta(days=7)
        assert [i.description for i in submission.items] == [
            "Aircraft Hire (ZK-ABC)", "Landing fee",
        ]

    def test_second_approval_is_blocked(self, service):
        checkin = service.open("booking-1")
        service.calculate(checkin)
        service.approve(checkin)

        assert service.evaluate(checkin).blocker == ApprovalBlocker.BOOKING_ALREADY_APPROVED
        with pytest.raises(ApprovalBlockedError):
            service.approve(checkin)

    def test_blocked_approval_never_calls_sink(self, service, sink):
        checkin = service.open("booking-1")

        with pytest.raises(ApprovalBlockedError) as exc_info:
            service.approve(checkin)

        assert exc_info.value.blocker == ApprovalBlocker.DRAFT_MISSING.value
        assert sink.submissions == []

    def test_stale_draft_blocks(self, service, sink):
        checkin = service.open("booking-1")
        service.calculate(checkin)
        service.update_inputs(checkin, readings=replace(READINGS, hobbs_end=D("8755.0")))

        with pytest.raises(ApprovalBlockedError) as exc_info:
            service.approve(checkin)

        assert exc_info.value.blocker == "DRAFT_STALE"
        assert sink.submissions == []

    def test_sink_error_propagates_and_keeps_draft(self, source, clock, settings):
        sink = FakeSink(error=InvoiceAlreadyExistsError("booking-1", "invoice-0"))
        service = CheckinService(source, sink, settings, clock)
        checkin = service.open("booking-1")
        service.calculate(checkin)

        with pytest.raises(InvoiceAlreadyExistsError):
            service.approve(checkin)

        assert checkin.draft is not None
        assert checkin.invoice is None
        assert not checkin.context.booking.is_approved


class TestSqlAlchemyCheckin:
    def test_open_calculate_approve(self, session, seeded, clock, settings):
        service = CheckinService(
            CheckinSelector(session, settings.default_tax_rate),
            InvoiceWriter.from_settings(session, settings, clock),
            settings,
            clock,
        )
        checkin = service.open(seeded.booking_id)
        draft = service.calculate(checkin)

        assert draft.totals.total_amount == D("608.35")
        invoice = service.approve(checkin)

        assert invoice.total_amount == D("608.35")
        assert seeded.booking.status == "complete"

        reopened = service.open(seeded.booking_id)
        assert reopened.context.booking.is_approved
        assert reopened.context.booking.invoice_id == invoice.id
        assert service.evaluate(reopened).blocker == ApprovalBlocker.BOOKING_ALREADY_APPROVED
