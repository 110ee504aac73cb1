"""Tests for the approval gate and submission payload (checkin_engines/approval_gate.py)."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from checkin_engines.approval_gate import (
    NO_AIRCRAFT_RATE_MESSAGE,
    ApprovalBlocker,
    build_submission,
    evaluate_approval,
)
from checkin_engines.flight_time import SOLO_END_BEFORE_DUAL_END
from checkin_engines.line_editor import LinePatch, edit_line, recompute
from checkin_kernel.domain.checkin import (
    BillingBasis,
    ChargeRateConfig,
    CheckinSessionState,
    InstructionKind,
    MeterReadings,
)
from checkin_kernel.domain.invoice import InvoiceLineItem
from checkin_kernel.exceptions import ApprovalBlockedError
from conftest import FIXED_NOW, hobbs_rate, make_booking, make_context, tacho_rate

D = Decimal

SPLIT_READINGS = MeterReadings(
    hobbs_start=D("100.0"),
    hobbs_end=D("101.5"),
    solo_end_hobbs=D("102.0"),
    tach_start=D("40.0"),
    tach_end=D("41.2"),
    solo_end_tach=D("41.6"),
)


def _calculated(context, manual_items=None) -> CheckinSessionState:
    state = CheckinSessionState()
    recompute(state, context, now=FIXED_NOW, manual_items=manual_items)
    return state


def _blocker(state, context):
    return evaluate_approval(state, context).blocker


class TestApprovedPath:
    def test_ready_checkin_is_approved(self, context):
        evaluation = evaluate_approval(_calculated(context), context)

        assert evaluation.approved
        assert evaluation.blocker is None
        assert evaluation.message is None


class TestInvariantOrder:
    def test_booking_not_loaded(self):
        context = make_context(with_booking=False)
        evaluation = evaluate_approval(CheckinSessionState(), context)

        assert evaluation.blocker == ApprovalBlocker.BOOKING_NOT_READY
        assert evaluation.message

    def test_already_approved_wins_over_later_failures(self):
        booking = make_booking(approved_at=datetime(2024, 5, 1, tzinfo=timezone.utc))
        context = make_context(booking=booking, aircraft_id=None)

        assert _blocker(CheckinSessionState(), context) == ApprovalBlocker.BOOKING_ALREADY_APPROVED

    @pytest.mark.parametrize("missing", ["aircraft_id", "flight_type_id"])
    def test_selection_incomplete(self, missing):
        context = make_context(**{missing: None})
        assert _blocker(CheckinSessionState(), context) == ApprovalBlocker.SELECTION_INCOMPLETE

    def test_no_aircraft_rate_is_configuration_gap(self):
        context = replace(make_context(), aircraft_rate=None)

        evaluation = evaluate_approval(_calculated(context), context)

        assert evaluation.blocker == ApprovalBlocker.BILLING_BASIS_UNRESOLVED
        assert evaluation.message == NO_AIRCRAFT_RATE_MESSAGE

    def test_rate_without_basis_flag(self):
        context = make_context(aircraft_rate=ChargeRateConfig(id="r", rate_per_hour=D("150")))
        assert _blocker(CheckinSessionState(), context) == ApprovalBlocker.BILLING_BASIS_UNRESOLVED

    def test_airswitch_unsupported(self):
        rate = ChargeRateConfig(id="r", rate_per_hour=D("150"), charge_airswitch=True)
        context = make_context(aircraft_rate=rate)
        assert _blocker(CheckinSessionState(), context) == ApprovalBlocker.AIRSWITCH_UNSUPPORTED

    def test_zero_billing_hours(self):
        context = make_context(readings=MeterReadings(hobbs_start=D("10.0"), hobbs_end=D("10.0")))
        assert _blocker(CheckinSessionState(), context) == ApprovalBlocker.BILLING_HOURS_NOT_POSITIVE

    def test_invalid_split_reports_split_error(self):
        readings = replace(SPLIT_READINGS, solo_end_hobbs=D("101.0"))
        context = make_context(readings=readings, has_solo_at_end=True)

        evaluation = evaluate_approval(CheckinSessionState(), context)

        assert evaluation.blocker == ApprovalBlocker.FLIGHT_TIME_INVALID
        assert evaluation.message == SOLO_END_BEFORE_DUAL_END

    def test_instructor_basis_conflict(self):
        context = make_context(
            readings=SPLIT_READINGS,
            has_solo_at_end=True,
            instructor_id="instructor-1",
            instructor_rate=tacho_rate("80.00"),
        )
        state = _calculated(context)
        assert _blocker(state, context) == ApprovalBlocker.INSTRUCTOR_BASIS_CONFLICT

    def test_basis_mismatch_without_split_passes(self):
        context = make_context(
            readings=SPLIT_READINGS,
            instructor_id="instructor-1",
            instructor_rate=tacho_rate("80.00"),
        )
        assert evaluate_approval(_calculated(context), context).approved

    def test_draft_missing(self, context):
        assert _blocker(CheckinSessionState(), context) == ApprovalBlocker.DRAFT_MISSING

    def test_draft_stale(self, context):
        state = _calculated(context)
        changed = context.with_inputs(
            readings=MeterReadings(hobbs_start=D("8752.2"), hobbs_end=D("8754.9"))
        )
        assert _blocker(state, changed) == ApprovalBlocker.DRAFT_STALE

    def test_draft_empty(self, context):
        state = _calculated(context)
        state.draft = replace(state.draft, items=(), lines=())
        assert _blocker(state, context) == ApprovalBlocker.DRAFT_EMPTY

    @pytest.mark.parametrize(
        "quantity, unit_price",
        [("0", "10"), ("-1", "10"), ("NaN", "10"), ("1", "-0.01"), ("1", "Infinity")],
    )
    def test_invalid_line_item(self, context, quantity, unit_price):
        manual = InvoiceLineItem(
            description="Fuel surcharge", quantity=D(quantity), unit_price=D(unit_price),
        )
        state = _calculated(context, manual_items=[manual])

        evaluation = evaluate_approval(state, context)

        assert evaluation.blocker == ApprovalBlocker.LINE_ITEM_INVALID
        assert "Fuel surcharge" in evaluation.message

    @pytest.mark.parametrize(
        "unit_price, expected",
        [
            ("NaN", "Unit price for 'Fuel surcharge' is not a valid number."),
            ("Infinity", "Unit price for 'Fuel surcharge' is not a valid number."),
            ("-0.01", "Unit price for 'Fuel surcharge' cannot be negative."),
        ],
    )
    def test_unit_price_messages(self, context, unit_price, expected):
        manual = InvoiceLineItem(
            description="Fuel surcharge", quantity=D("1"), unit_price=D(unit_price),
        )

        evaluation = evaluate_approval(_calculated(context, [manual]), context)

        assert evaluation.message == expected

    def test_zero_price_line_is_valid(self, context):
        manual = InvoiceLineItem(description="Briefing", quantity=D("1"), unit_price=D("0"))
        assert evaluate_approval(_calculated(context, [manual]), context).approved

    def test_total_not_positive(self, context):
        state = _calculated(context)
        edit_line(state, context, 0, LinePatch(unit_price=D("0")))
        assert _blocker(state, context) == ApprovalBlocker.TOTAL_NOT_POSITIVE

    def test_first_violation_wins(self):
        # no rate (3), no draft (7): only 3 is reported
        context = replace(make_context(), aircraft_rate=None)
        assert _blocker(CheckinSessionState(), context) == ApprovalBlocker.BILLING_BASIS_UNRESOLVED


class TestBuildSubmission:
    def test_blocked_raises(self, context):
        with pytest.raises(ApprovalBlockedError) as exc_info:
            build_submission(CheckinSessionState(), context, now=FIXED_NOW)

        assert exc_info.value.blocker == "DRAFT_MISSING"
        assert exc_info.value.code == "APPROVAL_BLOCKED"

    def test_dual_flight_payload(self, context):
        submission = build_submission(_calculated(context), context, now=FIXED_NOW)

        assert submission.booking_id == "booking-1"
        assert submission.aircraft_id == "aircraft-1"
        assert submission.instructor_id is None
        assert submission.flight_type_id == "flight-type-1"
        assert submission.billing_basis == BillingBasis.HOBBS
        assert submission.billing_hours == D("2.3")
        assert submission.dual_time == D("2.3")
        assert submission.solo_time is None
        assert submission.tax_rate == D("0.15")
        assert submission.due_date == FIXED_NOW + timedelta(days=7)
        assert submission.reference == "Booking booking-1"
        assert submission.meter_readings["hobbs_start"] == D("8752.2")
        assert submission.meter_readings["solo_end_hobbs"] is None

        (item,) = submission.items
        assert item.description == "Aircraft Hire (ZK-ABC)"
        assert item.quantity == D("2.3")
        assert item.unit_price == D("150.00")
        assert item.notes

    def test_split_payload_keeps_governing_solo_end_only(self):
        context = make_context(
            readings=SPLIT_READINGS,
            has_solo_at_end=True,
            instructor_id="instructor-1",
            instructor_rate=hobbs_rate("80.00", rate_id="rate-instructor"),
        )
        submission = build_submission(_calculated(context), context, now=FIXED_NOW)

        assert submission.meter_readings["solo_end_hobbs"] == D("102.0")
        assert submission.meter_readings["solo_end_tach"] is None
        assert submission.meter_readings["tach_end"] == D("41.2")
        assert submission.dual_time == D("1.5")
        assert submission.solo_time == D("0.5")
        assert submission.instructor_id == "instructor-1"
        assert [i.quantity for i in submission.items] == [D("2.0"), D("1.5")]

    def test_solo_flight_payload(self):
        context = make_context(instruction_kind=InstructionKind.SOLO)
        submission = build_submission(_calculated(context), context, now=FIXED_NOW)

        assert submission.dual_time is None
        assert submission.solo_time == D("2.3")

    def test_settings_override_due_days_and_reference(self, context):
        submission = build_submission(
            _calculated(context), context,
            now=FIXED_NOW, due_days=14, reference_template="Flight {booking_id}",
        )
        assert submission.due_date == FIXED_NOW + timedelta(days=14)
        assert submission.reference == "Flight booking-1"

    def test_as_dict(self, context):
        payload = build_submission(_calculated(context), context, now=FIXED_NOW).as_dict()

        assert payload["checked_out_aircraft_id"] == "aircraft-1"
        assert payload["billing_basis"] == "hobbs"
        assert payload["hobbs_end"] == D("8754.5")
        assert set(payload["items"][0]) == {
            "chargeable_id", "description", "quantity", "unit_price", "tax_rate", "notes",
        }
