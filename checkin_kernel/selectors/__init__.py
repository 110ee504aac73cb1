"""Read-only selectors over the check-in data layer."""

from checkin_kernel.selectors.base import BaseSelector
from checkin_kernel.selectors.checkin_selector import CheckinSelector

__all__ = ["BaseSelector", "CheckinSelector"]
