"""
Typed exception hierarchy for the check-in kernel.

Every error has a typed class and a machine-readable ``code`` class
attribute, and carries its context as attributes rather than inside the
message string.

Not everything that goes wrong is an exception. User-correctable problems
(meter readings out of order, a missing charge rate, a stale draft) are
*returned* by the engines as split errors or approval blockers so the
caller can render them. Exceptions are reserved for:

    CheckinKernelError (base)
    |
    +-- SessionError                 -- caller bugs against session state
    |   +-- BookingNotLoadedError
    |   +-- LineIndexError
    |   +-- DraftNotCalculatedError
    |
    +-- ApprovalError
    |   +-- ApprovalBlockedError     -- gate refused, carries the blocker
    |
    +-- CollaboratorError            -- raised by data-source / invoice adapters
    |   +-- BookingNotFoundError
    |   +-- BookingAlreadyApprovedError
    |   +-- BookingNotInvoiceableError
    |   +-- InvoiceAlreadyExistsError
    |   +-- AircraftNotFoundError
    |
    +-- TimeInServiceError           -- aircraft total time could not advance
    |   +-- TotalTimeMethodError
    |   +-- MeterDeltaError
    |   +-- TimeInServiceCorrectionError
    |
    +-- ConfigurationError           -- invalid settings file

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Session         | BOOKING_NOT_LOADED          | Recompute without a booking
                | LINE_INDEX_OUT_OF_RANGE     | Edit/remove of a non-existent line
                | DRAFT_NOT_CALCULATED        | Edit before any calculate
----------------|-----------------------------|-----------------------------------------
Approval        | APPROVAL_BLOCKED            | Gate refused approval
----------------|-----------------------------|-----------------------------------------
Collaborator    | BOOKING_NOT_FOUND           | Booking id does not exist
                | BOOKING_ALREADY_APPROVED    | Check-in already locked
                | BOOKING_NOT_INVOICEABLE     | Cancelled / non-flight booking
                | INVOICE_ALREADY_EXISTS      | Active invoice already linked
                | AIRCRAFT_NOT_FOUND          | Checked-out aircraft does not exist
----------------|-----------------------------|-----------------------------------------
Time in service | TOTAL_TIME_METHOD_INVALID   | Aircraft method missing or unknown
                | METER_DELTA_INVALID         | Required meter delta missing or negative
                | CORRECTION_REFUSED          | Correction refused (not approved,
                |                             | no snapshot, negative total)
----------------|-----------------------------|-----------------------------------------
Config          | CONFIGURATION_ERROR         | Settings file malformed
"""


class CheckinKernelError(Exception):
    """
    Base exception for all check-in kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "CHECKIN_KERNEL_ERROR"


# Session-state exceptions (programmer-invariant violations)


class SessionError(CheckinKernelError):
    """Base exception for misuse of check-in session state."""

    code: str = "SESSION_ERROR"


class BookingNotLoadedError(SessionError):
    """A computation was requested before a booking was loaded."""

    code: str = "BOOKING_NOT_LOADED"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Cannot {operation}: no booking loaded")


class LineIndexError(SessionError):
    """Line index outside the current draft or manual item range."""

    code: str = "LINE_INDEX_OUT_OF_RANGE"

    def __init__(self, index: int, size: int):
        self.index = index
        self.size = size
        super().__init__(f"Line index {index} out of range (size {size})")


class DraftNotCalculatedError(SessionError):
    """A draft line was edited before any draft was calculated."""

    code: str = "DRAFT_NOT_CALCULATED"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Cannot {operation}: no draft calculation exists")


# Approval exceptions


class ApprovalError(CheckinKernelError):
    """Base exception for check-in approval errors."""

    code: str = "APPROVAL_ERROR"


class ApprovalBlockedError(ApprovalError):
    """The approval gate refused finalization."""

    code: str = "APPROVAL_BLOCKED"

    def __init__(self, blocker: str, message: str):
        self.blocker = blocker
        self.reason = message
        super().__init__(message)


# Collaborator exceptions


class CollaboratorError(CheckinKernelError):
    """Base exception for data-source and invoice-sink failures."""

    code: str = "COLLABORATOR_ERROR"


class BookingNotFoundError(CollaboratorError):
    """Booking with given ID was not found."""

    code: str = "BOOKING_NOT_FOUND"

    def __init__(self, booking_id: str):
        self.booking_id = booking_id
        super().__init__(f"Booking not found: {booking_id}")


class BookingAlreadyApprovedError(CollaboratorError):
    """Booking check-in has already been approved and locked."""

    code: str = "BOOKING_ALREADY_APPROVED"

    def __init__(self, booking_id: str):
        self.booking_id = booking_id
        super().__init__(f"Booking check-in has already been approved: {booking_id}")


class BookingNotInvoiceableError(CollaboratorError):
    """Booking is cancelled or not a flight booking."""

    code: str = "BOOKING_NOT_INVOICEABLE"

    def __init__(self, booking_id: str, reason: str):
        self.booking_id = booking_id
        self.reason = reason
        super().__init__(f"Booking {booking_id} cannot be invoiced: {reason}")


class InvoiceAlreadyExistsError(CollaboratorError):
    """An active invoice is already linked to the booking."""

    code: str = "INVOICE_ALREADY_EXISTS"

    def __init__(self, booking_id: str, invoice_id: str):
        self.booking_id = booking_id
        self.invoice_id = invoice_id
        super().__init__(
            f"An active invoice already exists for booking {booking_id}: {invoice_id}"
        )


class AircraftNotFoundError(CollaboratorError):
    """Aircraft with given ID was not found."""

    code: str = "AIRCRAFT_NOT_FOUND"

    def __init__(self, aircraft_id: str):
        self.aircraft_id = aircraft_id
        super().__init__(f"Aircraft not found: {aircraft_id}")


# Aircraft time-in-service exceptions


class TimeInServiceError(CheckinKernelError):
    """Base exception for aircraft time-in-service updates."""

    code: str = "TIME_IN_SERVICE_ERROR"


class TotalTimeMethodError(TimeInServiceError):
    """The aircraft has no usable total time method."""

    code: str = "TOTAL_TIME_METHOD_INVALID"

    def __init__(self, method: str | None):
        self.method = method
        super().__init__(f"Unknown total time method: {method or 'not set'}")


class MeterDeltaError(TimeInServiceError):
    """A meter delta needed for the time-in-service update is missing or negative."""

    code: str = "METER_DELTA_INVALID"

    def __init__(self, meter: str, reason: str):
        self.meter = meter
        self.reason = reason
        super().__init__(f"Invalid {meter} delta: {reason}")


class TimeInServiceCorrectionError(TimeInServiceError):
    """A time-in-service correction was refused."""

    code: str = "CORRECTION_REFUSED"

    def __init__(self, booking_id: str, reason: str):
        self.booking_id = booking_id
        self.reason = reason
        super().__init__(f"Cannot correct booking {booking_id}: {reason}")


# Configuration exceptions


class ConfigurationError(CheckinKernelError):
    """Settings could not be loaded or failed validation."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, source: str, detail: str):
        self.source = source
        self.detail = detail
        super().__init__(f"Invalid check-in configuration in {source}: {detail}")
