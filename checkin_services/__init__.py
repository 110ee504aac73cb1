"""
checkin_services -- Package init and public API.

Responsibility:
    Stateful orchestration that composes the pure check-in engines with
    collaborators, settings and the clock. The only layer that may hold
    database sessions or read wall-clock time.

Architecture position:
    checkin_services/ -> checkin_engines/  (allowed)
    checkin_services/ -> checkin_kernel/   (allowed)
    checkin_services/ -> checkin_config/   (allowed)
    checkin_engines/  -> checkin_services/ (FORBIDDEN)
    checkin_kernel/   -> checkin_services/ (FORBIDDEN)
"""

from checkin_services.aircraft_time import AircraftTimeRecorder
from checkin_services.checkin_service import CheckinService, CheckinSession
from checkin_services.collaborators import CheckinDataSource, InvoiceSink
from checkin_services.invoice_writer import InvoiceWriter

__all__ = [
    "AircraftTimeRecorder",
    "CheckinDataSource",
    "CheckinService",
    "CheckinSession",
    "InvoiceSink",
    "InvoiceWriter",
]
