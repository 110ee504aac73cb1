"""
Module: checkin_kernel.models.invoice
Responsibility: ORM persistence for tax rates, invoices and invoice items
    created by check-in approval.
Architecture position: Kernel > Models. May import from db/base.py only.

Invariants enforced:
    - At most one non-cancelled invoice per booking (checked by
      InvoiceWriter before insert).
    - Item amounts are stored rounded to two decimals; unit_price is
      tax-exclusive.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from checkin_kernel.db.base import TrackedBase


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class TaxRate(TrackedBase):
    """An organisation tax rate. The active default one applies to check-ins."""

    __tablename__ = "tax_rates"

    tax_name: Mapped[str] = mapped_column(String(50), nullable=False)
    rate: Mapped[Decimal] = mapped_column(nullable=False)  # fraction, e.g. 0.15
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Invoice(TrackedBase):
    """Invoice issued for an approved check-in."""

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoice_number"),
        Index("idx_invoice_booking", "booking_id"),
    )

    invoice_number: Mapped[str] = mapped_column(String(40), nullable=False)
    booking_id: Mapped[UUID | None] = mapped_column(ForeignKey("bookings.id"), nullable=True)
    user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=InvoiceStatus.PENDING.value, nullable=False)
    issue_date: Mapped[datetime] = mapped_column(nullable=False)
    due_date: Mapped[datetime | None] = mapped_column(nullable=True)
    reference: Mapped[str | None] = mapped_column(String(200), nullable=True)
    tax_rate: Mapped[Decimal] = mapped_column(nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    tax_total: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    items: Mapped[list["InvoiceItem"]] = relationship(
        back_populates="invoice",
        order_by="InvoiceItem.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number}: {self.status}>"


class InvoiceItem(TrackedBase):
    """One line of an invoice."""

    __tablename__ = "invoice_items"

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    position: Mapped[int] = mapped_column(nullable=False)
    chargeable_id: Mapped[UUID | None] = mapped_column(nullable=True)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    tax_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    rate_inclusive: Mapped[Decimal] = mapped_column(nullable=False)
    line_total: Mapped[Decimal] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    invoice: Mapped[Invoice] = relationship(back_populates="items")
