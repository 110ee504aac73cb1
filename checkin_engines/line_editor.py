"""
checkin_engines.line_editor -- Draft invoice assembly and line editing.

Responsibility:
    Merge the generated lines (minus exclusions) with the user's manual
    lines, derive per-line amounts and invoice totals, and apply the
    explicit editor commands (edit, add, remove, exclude, restore) to one
    check-in session.

Architecture position:
    Engines -- pure calculation layer. The only state touched is the
    ``CheckinSessionState`` passed in by the caller; timestamps are
    parameters, never read from a clock here.

Invariants enforced:
    - Effective items are generated first, manual appended, in that order.
    - A recompute replaces ``state.draft`` wholesale; an empty item list
      leaves no draft.
    - Stored unit prices are tax-exclusive. A tax-inclusive price coming
      from an edit is converted back and rounded to two decimals.
    - Non-finite quantities, prices or tax rates produce zero amounts, so
      they never reach the totals.

Failure modes:
    - BookingNotLoadedError: recompute, or any command that recomputes,
      without a booking. Session collections are left untouched.
    - DraftNotCalculatedError: edit_line before any draft exists.
    - LineIndexError: edit_line / remove_manual with an index out of range.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal

from checkin_engines.draft_signature import compute_draft_signature
from checkin_engines.invoice_lines import (
    DEFAULT_TEMPLATES,
    LineTemplates,
    aircraft_basis,
    billing_hours,
    build_invoice_lines,
    flight_split,
)
from checkin_kernel.domain.checkin import CheckinContext, CheckinSessionState
from checkin_kernel.domain.invoice import (
    CalculatedLine,
    DraftCalculation,
    InvoiceLineItem,
    InvoiceTotals,
)
from checkin_kernel.domain.values import ONE, ZERO, is_finite, round_money
from checkin_kernel.exceptions import (
    BookingNotLoadedError,
    DraftNotCalculatedError,
    LineIndexError,
)
from checkin_kernel.logging_config import get_logger

logger = get_logger("engines.line_editor")


@dataclass(frozen=True)
class LinePatch:
    """
    Field changes for one draft line. ``None`` leaves a field untouched.

    ``unit_price_inclusive`` wins over ``unit_price`` when both are set.
    """

    description: str | None = None
    quantity: Decimal | None = None
    unit_price: Decimal | None = None
    unit_price_inclusive: Decimal | None = None
    tax_rate: Decimal | None = None
    notes: str | None = None


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------


def effective_tax_rate(item: InvoiceLineItem, org_tax_rate: Decimal) -> Decimal:
    return item.tax_rate if item.tax_rate is not None else org_tax_rate


def calculate_line(item: InvoiceLineItem, org_tax_rate: Decimal) -> CalculatedLine:
    """Derive amount, tax, tax-inclusive rate and line total for one item."""
    tax_rate = effective_tax_rate(item, org_tax_rate)
    if not (is_finite(item.quantity) and is_finite(item.unit_price) and is_finite(tax_rate)):
        logger.warning("line_non_finite_input", extra={
            "description": item.description,
            "quantity": str(item.quantity),
            "unit_price": str(item.unit_price),
            "tax_rate": str(tax_rate),
        })
        return CalculatedLine(
            item=item,
            amount=ZERO,
            tax_amount=ZERO,
            rate_inclusive=ZERO,
            line_total=ZERO,
        )

    amount = item.quantity * item.unit_price
    tax_amount = amount * tax_rate
    return CalculatedLine(
        item=item,
        amount=amount,
        tax_amount=tax_amount,
        rate_inclusive=item.unit_price * (ONE + tax_rate),
        line_total=amount + tax_amount,
    )


def settle_line(item: InvoiceLineItem, org_tax_rate: Decimal) -> CalculatedLine:
    """
    Cent-rounded amounts for one item as stored on an invoice.

    The tax-inclusive rate is rounded first and the line total is taken
    from it; the tax-exclusive amount is backed out of the line total and
    tax is the remainder. ``amount + tax_amount == line_total`` holds
    exactly, so invoice totals summed from settled lines agree with the
    stored items.
    """
    tax_rate = effective_tax_rate(item, org_tax_rate)
    if not (is_finite(item.quantity) and is_finite(item.unit_price) and is_finite(tax_rate)):
        return calculate_line(item, org_tax_rate)

    divisor = ONE + tax_rate
    rate_inclusive = round_money(item.unit_price * divisor)
    line_total = round_money(item.quantity * rate_inclusive)
    amount = round_money(line_total / divisor) if divisor else ZERO
    return CalculatedLine(
        item=item,
        amount=amount,
        tax_amount=line_total - amount,
        rate_inclusive=rate_inclusive,
        line_total=line_total,
    )


def calculate_totals(lines: Iterable[CalculatedLine]) -> InvoiceTotals:
    """Sum the lines and round each total half-up to two decimals."""
    subtotal = tax_total = total_amount = ZERO
    for line in lines:
        subtotal += line.amount
        tax_total += line.tax_amount
        total_amount += line.line_total
    return InvoiceTotals(
        subtotal=round_money(subtotal),
        tax_total=round_money(tax_total),
        total_amount=round_money(total_amount),
    )


def exclusive_price(price_inclusive: Decimal, tax_rate: Decimal) -> Decimal:
    """Convert a tax-inclusive unit price to the stored tax-exclusive one."""
    return round_money(price_inclusive / (ONE + tax_rate))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _require_booking(context: CheckinContext, operation: str) -> None:
    # Checked before any session collection is touched.
    if context.booking is None:
        raise BookingNotLoadedError(operation)


def recompute(
    state: CheckinSessionState,
    context: CheckinContext,
    *,
    now: datetime,
    manual_items: Iterable[InvoiceLineItem] | None = None,
    excluded_keys: Iterable[str] | None = None,
    templates: LineTemplates = DEFAULT_TEMPLATES,
) -> DraftCalculation | None:
    """
    Rebuild the draft from current inputs and store it on ``state``.

    ``manual_items`` / ``excluded_keys`` replace the session collections
    when given. Returns the new draft, or None when no items remain.
    """
    _require_booking(context, "recompute")

    if manual_items is not None:
        state.manual_items = list(manual_items)
    if excluded_keys is not None:
        state.excluded_keys = set(excluded_keys)

    generated = [
        item
        for item in build_invoice_lines(
            context,
            aircraft_template=templates.aircraft,
            instructor_template=templates.instructor,
        )
        if item.description not in state.excluded_keys
    ]
    items = tuple(generated) + tuple(state.manual_items)

    if not items:
        state.draft = None
        logger.info("draft_recompute_empty", extra={
            "booking_id": context.booking.id,
            "excluded": sorted(state.excluded_keys),
        })
        return None

    lines = tuple(calculate_line(item, context.tax_rate) for item in items)
    split = flight_split(context)
    draft = DraftCalculation(
        signature=compute_draft_signature(context),
        calculated_at=now,
        billing_basis=aircraft_basis(context),
        billing_hours=billing_hours(context),
        dual_time=split.dual,
        solo_time=split.solo,
        items=items,
        lines=lines,
        totals=calculate_totals(lines),
        generated_count=len(generated),
    )
    state.draft = draft

    logger.info("draft_recompute_completed", extra={
        "booking_id": context.booking.id,
        "generated_count": len(generated),
        "manual_count": len(state.manual_items),
        "total_amount": str(draft.totals.total_amount),
    })
    return draft


def edit_line(
    state: CheckinSessionState,
    context: CheckinContext,
    index: int,
    patch: LinePatch,
) -> DraftCalculation:
    """
    Apply ``patch`` to draft line ``index``.

    Generated lines change only in the draft, so the next recompute
    discards the edit. Manual lines are also written back to
    ``state.manual_items``. The draft keeps its signature and timestamp.
    """
    draft = state.draft
    if draft is None:
        raise DraftNotCalculatedError("edit line")
    if index < 0 or index >= len(draft.items):
        raise LineIndexError(index, len(draft.items))

    current = draft.items[index]
    changes: dict = {}
    for name in ("description", "quantity", "tax_rate", "notes"):
        value = getattr(patch, name)
        if value is not None:
            changes[name] = value
    if patch.unit_price_inclusive is not None:
        tax_rate = changes.get("tax_rate", effective_tax_rate(current, context.tax_rate))
        changes["unit_price"] = exclusive_price(patch.unit_price_inclusive, tax_rate)
    elif patch.unit_price is not None:
        changes["unit_price"] = patch.unit_price
    updated = replace(current, **changes)

    items = draft.items[:index] + (updated,) + draft.items[index + 1:]
    lines = (
        draft.lines[:index]
        + (calculate_line(updated, context.tax_rate),)
        + draft.lines[index + 1:]
    )

    manual = index >= draft.generated_count
    if manual:
        state.manual_items[index - draft.generated_count] = updated

    state.draft = replace(draft, items=items, lines=lines, totals=calculate_totals(lines))
    logger.info("draft_line_edited", extra={
        "index": index,
        "manual": manual,
        "fields": sorted(changes),
    })
    return state.draft


def add_manual(
    state: CheckinSessionState,
    context: CheckinContext,
    *,
    now: datetime,
    templates: LineTemplates = DEFAULT_TEMPLATES,
) -> DraftCalculation | None:
    """Append a blank manual item and mark it as the line being edited."""
    _require_booking(context, "add manual item")
    state.manual_items.append(
        InvoiceLineItem(
            description="",
            quantity=ONE,
            unit_price=ZERO,
            tax_rate=context.tax_rate,
        )
    )
    draft = recompute(state, context, now=now, templates=templates)
    if draft is not None:
        state.editing_index = len(draft.items) - 1
    return draft


def remove_manual(
    state: CheckinSessionState,
    context: CheckinContext,
    index: int,
    *,
    now: datetime,
    templates: LineTemplates = DEFAULT_TEMPLATES,
) -> DraftCalculation | None:
    """Delete manual item ``index`` (an index into ``state.manual_items``)."""
    _require_booking(context, "remove manual item")
    if index < 0 or index >= len(state.manual_items):
        raise LineIndexError(index, len(state.manual_items))
    del state.manual_items[index]
    state.editing_index = None
    return recompute(state, context, now=now, templates=templates)


def exclude_generated(
    state: CheckinSessionState,
    context: CheckinContext,
    description: str,
    *,
    now: datetime,
    templates: LineTemplates = DEFAULT_TEMPLATES,
) -> DraftCalculation | None:
    """Drop the generated line with ``description`` from future drafts."""
    _require_booking(context, "exclude generated line")
    state.excluded_keys.add(description)
    return recompute(state, context, now=now, templates=templates)


def restore_generated(
    state: CheckinSessionState,
    context: CheckinContext,
    description: str,
    *,
    now: datetime,
    templates: LineTemplates = DEFAULT_TEMPLATES,
) -> DraftCalculation | None:
    _require_booking(context, "restore generated line")
    state.excluded_keys.discard(description)
    return recompute(state, context, now=now, templates=templates)
