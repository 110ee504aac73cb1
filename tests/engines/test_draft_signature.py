"""Tests for draft staleness detection (checkin_engines/draft_signature.py)."""

from dataclasses import replace
from decimal import Decimal

import pytest

from checkin_engines.draft_signature import (
    compute_draft_signature,
    is_draft_stale,
    signature_payload,
)
from checkin_engines.line_editor import recompute
from checkin_kernel.domain.checkin import InstructionKind, MeterReadings
from conftest import FIXED_NOW, hobbs_rate, make_context, tacho_rate

D = Decimal


@pytest.fixture
def calculated(state, context):
    recompute(state, context, now=FIXED_NOW)
    return state.draft


class TestSignature:
    def test_deterministic(self, context):
        assert compute_draft_signature(context) == compute_draft_signature(make_context())

    def test_sha256_hex(self, context):
        signature = compute_draft_signature(context)
        assert len(signature) == 64
        int(signature, 16)

    def test_solo_end_ignored_without_solo_at_end(self):
        base = make_context()
        with_solo_end = make_context(readings=replace(
            base.inputs.readings, solo_end_hobbs=D("9000.0"), solo_end_tach=D("1.0"),
        ))
        assert compute_draft_signature(base) == compute_draft_signature(with_solo_end)
        assert signature_payload(with_solo_end)["readings"]["solo_end_hobbs"] is None

    def test_solo_end_tracked_with_solo_at_end(self):
        readings = MeterReadings(
            hobbs_start=D("100.0"), hobbs_end=D("101.5"), solo_end_hobbs=D("102.0"),
        )
        a = make_context(readings=readings, has_solo_at_end=True)
        b = make_context(
            readings=replace(readings, solo_end_hobbs=D("102.1")), has_solo_at_end=True,
        )
        assert compute_draft_signature(a) != compute_draft_signature(b)


class TestStaleness:
    def test_missing_draft_is_not_stale(self, context):
        assert is_draft_stale(None, context) is False

    def test_fresh_draft_is_not_stale(self, calculated, context):
        assert is_draft_stale(calculated, context) is False

    @pytest.mark.parametrize(
        "changes",
        [
            {"aircraft_id": "aircraft-2"},
            {"instructor_id": "instructor-9"},
            {"flight_type_id": "flight-type-2"},
            {"has_solo_at_end": True},
            {"instruction_kind": InstructionKind.SOLO},
            {"readings": MeterReadings(hobbs_start=D("8752.2"), hobbs_end=D("8754.6"))},
            {"readings": MeterReadings(
                hobbs_start=D("8752.2"), hobbs_end=D("8754.5"), tach_start=D("1.0"),
            )},
            {"readings": MeterReadings(
                hobbs_start=D("8752.2"), hobbs_end=D("8754.5"), airswitch_end=D("3.0"),
            )},
        ],
    )
    def test_tracked_input_change_flips_staleness(self, calculated, context, changes):
        assert is_draft_stale(calculated, context.with_inputs(**changes)) is True

    def test_aircraft_rate_change_is_tracked(self, calculated, context):
        assert is_draft_stale(calculated, replace(context, aircraft_rate=hobbs_rate("155.00")))
        assert is_draft_stale(calculated, replace(context, aircraft_rate=tacho_rate("150.00")))

    def test_instructor_rate_change_is_tracked(self, calculated, context):
        assert is_draft_stale(calculated, replace(context, instructor_rate=hobbs_rate("80.00")))

    def test_tax_rate_change_is_tracked(self, calculated, context):
        assert is_draft_stale(calculated, replace(context, tax_rate=D("0.10")))

    def test_untracked_fields_do_not_flip(self, calculated, context):
        assert not is_draft_stale(calculated, context.with_inputs(remarks="Smooth flight"))
        assert not is_draft_stale(calculated, replace(context, aircraft_label="Other"))

    def test_equal_decimals_with_different_scale_match(self, calculated, context):
        rate = replace(context.aircraft_rate, rate_per_hour=D("150.0"))
        assert not is_draft_stale(calculated, replace(context, aircraft_rate=rate))
