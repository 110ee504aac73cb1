"""ORM models for the booking / invoice data layer."""

from checkin_kernel.models.booking import Booking, BookingStatus, BookingType
from checkin_kernel.models.charge_rate import AircraftChargeRate, InstructorChargeRate
from checkin_kernel.models.fleet import Aircraft, FlightType, Instructor
from checkin_kernel.models.invoice import Invoice, InvoiceItem, InvoiceStatus, TaxRate

__all__ = [
    "Aircraft",
    "AircraftChargeRate",
    "Booking",
    "BookingStatus",
    "BookingType",
    "FlightType",
    "Instructor",
    "InstructorChargeRate",
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "TaxRate",
]
