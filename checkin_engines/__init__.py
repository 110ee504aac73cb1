"""
Check-in Engines - Pure billing calculations for flight check-in.

All engines are pure functions with no I/O; callers pass timestamps,
settings and collaborator snapshots in explicitly.

Pipeline (leaves first):
    charge_basis -> flight_time -> invoice_lines -> line_editor
    -> draft_signature -> approval_gate

    time_in_service runs at approval, on the readings the gate accepted.
"""

from checkin_engines.approval_gate import (
    ApprovalBlocker,
    ApprovalEvaluation,
    build_submission,
    evaluate_approval,
)
from checkin_engines.charge_basis import is_supported_basis, resolve_charge_basis
from checkin_engines.draft_signature import compute_draft_signature, is_draft_stale
from checkin_engines.flight_time import (
    FlightTimeSplit,
    compute_billing_hours,
    split_flight_time,
    split_meter_hours,
)
from checkin_engines.invoice_lines import (
    LineTemplates,
    build_invoice_lines,
    has_instructor_basis_conflict,
    instructor_hours,
)
from checkin_engines.line_editor import (
    LinePatch,
    add_manual,
    calculate_line,
    calculate_totals,
    edit_line,
    exclude_generated,
    recompute,
    remove_manual,
    restore_generated,
    settle_line,
)
from checkin_engines.time_in_service import (
    MeterDeltas,
    TimeInServiceCorrection,
    TimeInServiceUpdate,
    advance_time_in_service,
    correct_time_in_service,
    meter_deltas,
)
from checkin_engines.tracer import traced_engine

__all__ = [
    "ApprovalBlocker",
    "ApprovalEvaluation",
    "FlightTimeSplit",
    "LinePatch",
    "LineTemplates",
    "MeterDeltas",
    "TimeInServiceCorrection",
    "TimeInServiceUpdate",
    "add_manual",
    "advance_time_in_service",
    "build_invoice_lines",
    "build_submission",
    "calculate_line",
    "calculate_totals",
    "compute_billing_hours",
    "compute_draft_signature",
    "correct_time_in_service",
    "edit_line",
    "evaluate_approval",
    "exclude_generated",
    "has_instructor_basis_conflict",
    "instructor_hours",
    "is_draft_stale",
    "is_supported_basis",
    "meter_deltas",
    "recompute",
    "remove_manual",
    "resolve_charge_basis",
    "restore_generated",
    "settle_line",
    "split_flight_time",
    "split_meter_hours",
    "traced_engine",
]
