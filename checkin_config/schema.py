"""
CheckinSettings schema.

Runtime settings for check-in billing, parsed from YAML by the loader.
Frozen; callers hold one instance for the lifetime of a service.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class CheckinSettings:
    """Check-in billing settings."""

    config_id: str
    version: int
    checksum: str
    default_tax_rate: Decimal  # used when the organisation has no tax rate
    invoice_due_days: int
    reference_template: str  # {booking_id}
    aircraft_line_template: str  # {aircraft}
    instructor_line_template: str  # {instructor}
    invoice_status: str
    invoice_number_prefix: str
