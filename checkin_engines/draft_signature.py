"""
Draft Signature Engine - Detect stale draft calculations.

Pure functions with deterministic behavior. No I/O.

A draft is stamped with a SHA-256 signature over every input that can
change its numbers. Comparing the stored signature with one recomputed from
the current inputs tells the caller whether the draft is stale. Nothing is
recomputed implicitly.

Tracked inputs:
    booking id, selected aircraft / instructor / flight type, every meter
    field (solo-end fields only while a solo-at-end split is on),
    has_solo_at_end, instruction kind, aircraft and instructor rate
    snapshots, organisation tax rate.

Untracked: remarks and any other cosmetic form field.
"""

from __future__ import annotations

from checkin_kernel.domain.checkin import CheckinContext
from checkin_kernel.domain.invoice import DraftCalculation
from checkin_kernel.utils.hashing import hash_payload


def signature_payload(context: CheckinContext) -> dict:
    """Canonical dict the signature is computed over."""
    inputs = context.inputs
    readings = inputs.readings.as_dict()
    if not inputs.has_solo_at_end:
        readings["solo_end_hobbs"] = None
        readings["solo_end_tach"] = None

    return {
        "booking_id": inputs.booking_id,
        "aircraft_id": inputs.aircraft_id,
        "instructor_id": inputs.instructor_id,
        "flight_type_id": inputs.flight_type_id,
        "readings": readings,
        "has_solo_at_end": inputs.has_solo_at_end,
        "instruction_kind": inputs.instruction_kind,
        "aircraft_rate": (
            context.aircraft_rate.snapshot() if context.aircraft_rate else None
        ),
        "instructor_rate": (
            context.instructor_rate.snapshot() if context.instructor_rate else None
        ),
        "tax_rate": context.tax_rate,
    }


def compute_draft_signature(context: CheckinContext) -> str:
    """SHA-256 hex digest of the tracked inputs."""
    return hash_payload(signature_payload(context))


def is_draft_stale(draft: DraftCalculation | None, context: CheckinContext) -> bool:
    """True when ``draft`` was computed from different inputs. No draft is never stale."""
    if draft is None:
        return False
    return draft.signature != compute_draft_signature(context)
