"""
Invoice domain types (``checkin_kernel.domain.invoice``).

Responsibility
--------------
Value objects for draft invoice computation and the approval submission:
line items, calculated lines, totals, the draft calculation itself, and
the payload handed to the invoice-creation collaborator.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects. ZERO I/O.

Invariants enforced
-------------------
* ``unit_price`` is always tax-exclusive; tax-inclusive figures exist only
  as derived ``rate_inclusive`` / ``line_total`` values.
* ``DraftCalculation`` is replaced wholesale on every recompute; it is
  never patched field by field outside the line editor.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from checkin_kernel.domain.checkin import BillingBasis


@dataclass(frozen=True)
class InvoiceLineItem:
    """One invoice line before amounts are derived."""

    description: str
    quantity: Decimal
    unit_price: Decimal  # tax-exclusive
    tax_rate: Decimal | None = None  # None = organisation rate
    chargeable_id: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class CalculatedLine:
    """An ``InvoiceLineItem`` with its derived amounts."""

    item: InvoiceLineItem
    amount: Decimal
    tax_amount: Decimal
    rate_inclusive: Decimal
    line_total: Decimal

    @property
    def description(self) -> str:
        return self.item.description

    @property
    def quantity(self) -> Decimal:
        return self.item.quantity

    @property
    def unit_price(self) -> Decimal:
        return self.item.unit_price


@dataclass(frozen=True)
class InvoiceTotals:
    """Invoice totals, each rounded to two decimals."""

    subtotal: Decimal
    tax_total: Decimal
    total_amount: Decimal


@dataclass(frozen=True)
class DraftCalculation:
    """
    Result of an explicit "calculate" action.

    Attributes:
        signature: Draft signature of the inputs it was computed from.
        calculated_at: When the draft was computed (injected clock).
        billing_basis: Basis that governed the aircraft line.
        billing_hours: Hours billed on the aircraft line.
        dual_time: Dual portion of the split.
        solo_time: Solo portion of the split.
        items: Effective items, generated first then manual.
        lines: Calculated lines, same order as items.
        totals: Rounded invoice totals.
        generated_count: How many leading items came from the generator.
    """

    signature: str
    calculated_at: datetime
    billing_basis: BillingBasis
    billing_hours: Decimal
    dual_time: Decimal
    solo_time: Decimal
    items: tuple[InvoiceLineItem, ...]
    lines: tuple[CalculatedLine, ...]
    totals: InvoiceTotals
    generated_count: int = 0


@dataclass(frozen=True)
class SubmissionItem:
    """Line item stripped to the fields the invoice collaborator accepts."""

    chargeable_id: str | None
    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal | None
    notes: str | None

    @classmethod
    def from_item(cls, item: InvoiceLineItem) -> SubmissionItem:
        return cls(
            chargeable_id=item.chargeable_id,
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            tax_rate=item.tax_rate,
            notes=item.notes,
        )


@dataclass(frozen=True)
class CheckinSubmission:
    """Payload for finalizing a check-in and creating its invoice."""

    booking_id: str
    aircraft_id: str
    instructor_id: str | None
    flight_type_id: str
    meter_readings: dict[str, Decimal | None]
    dual_time: Decimal | None
    solo_time: Decimal | None
    billing_basis: BillingBasis
    billing_hours: Decimal
    tax_rate: Decimal
    due_date: datetime
    reference: str
    items: tuple[SubmissionItem, ...]

    def as_dict(self) -> dict:
        return {
            "booking_id": self.booking_id,
            "checked_out_aircraft_id": self.aircraft_id,
            "checked_out_instructor_id": self.instructor_id,
            "flight_type_id": self.flight_type_id,
            **self.meter_readings,
            "dual_time": self.dual_time,
            "solo_time": self.solo_time,
            "billing_basis": self.billing_basis.value,
            "billing_hours": self.billing_hours,
            "tax_rate": self.tax_rate,
            "due_date": self.due_date,
            "reference": self.reference,
            "items": [
                {
                    "chargeable_id": i.chargeable_id,
                    "description": i.description,
                    "quantity": i.quantity,
                    "unit_price": i.unit_price,
                    "tax_rate": i.tax_rate,
                    "notes": i.notes,
                }
                for i in self.items
            ],
        }


@dataclass(frozen=True)
class InvoiceRecord:
    """Invoice as returned by the invoice-creation collaborator."""

    id: str
    invoice_number: str
    booking_id: str
    status: str
    subtotal: Decimal
    tax_total: Decimal
    total_amount: Decimal
    due_date: datetime | None = None
    reference: str | None = None
