"""
Check-in Kernel

Foundation for flight check-in billing:
- Decimal-only value objects for bookings, rates and invoice lines
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Deterministic hashing for draft signatures
- SQLAlchemy adapters for the booking / invoice data layer
"""

__version__ = "0.1.0"
