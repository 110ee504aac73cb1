"""Pure domain layer of the check-in kernel: value objects, clock, boundary."""

from checkin_kernel.domain.checkin import (
    BillingBasis,
    Booking,
    ChargeRateConfig,
    CheckinContext,
    CheckinInputs,
    CheckinSessionState,
    InstructionKind,
    MeterReading,
    MeterReadings,
    TotalTimeMethod,
)
from checkin_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from checkin_kernel.domain.invoice import (
    CalculatedLine,
    CheckinSubmission,
    DraftCalculation,
    InvoiceLineItem,
    InvoiceRecord,
    InvoiceTotals,
    SubmissionItem,
)

__all__ = [
    "BillingBasis",
    "Booking",
    "CalculatedLine",
    "ChargeRateConfig",
    "CheckinContext",
    "CheckinInputs",
    "CheckinSessionState",
    "CheckinSubmission",
    "Clock",
    "DeterministicClock",
    "DraftCalculation",
    "InstructionKind",
    "InvoiceLineItem",
    "InvoiceRecord",
    "InvoiceTotals",
    "MeterReading",
    "MeterReadings",
    "SubmissionItem",
    "SystemClock",
    "TotalTimeMethod",
]
