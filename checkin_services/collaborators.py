"""
checkin_services.collaborators -- Collaborator contracts consumed by the service.

Responsibility:
    Declare the read (``CheckinDataSource``) and write (``InvoiceSink``)
    interfaces the check-in service depends on. Any transport can implement
    them; the SQLAlchemy implementations are ``CheckinSelector`` and
    ``InvoiceWriter``.

Architecture position:
    Services -- interface declarations only, no behavior.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, runtime_checkable

from checkin_kernel.domain.checkin import Booking, ChargeRateConfig, InstructionKind
from checkin_kernel.domain.invoice import CheckinSubmission, InvoiceRecord


@runtime_checkable
class CheckinDataSource(Protocol):
    """Read-side lookups. Results are treated as immutable snapshots."""

    def get_booking(self, booking_id: str) -> Booking: ...

    def get_aircraft_charge_rate(
        self, aircraft_id: str | None, flight_type_id: str | None,
    ) -> ChargeRateConfig | None: ...

    def get_instructor_charge_rate(
        self, instructor_id: str | None, flight_type_id: str | None,
    ) -> ChargeRateConfig | None: ...

    def get_org_tax_rate(self) -> Decimal: ...

    def get_aircraft_label(self, aircraft_id: str | None) -> str | None: ...

    def get_instructor_label(self, instructor_id: str | None) -> str | None: ...

    def get_flight_type_instruction_kind(
        self, flight_type_id: str | None,
    ) -> InstructionKind | None: ...


@runtime_checkable
class InvoiceSink(Protocol):
    """Creates the invoice for an approved check-in."""

    def create_invoice(self, submission: CheckinSubmission) -> InvoiceRecord: ...
