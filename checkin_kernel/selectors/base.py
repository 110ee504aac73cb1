"""
Module: checkin_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.
Architecture position: Kernel > Selectors. May import from db/, models/ and
    domain/. MUST NOT import from services/ or outer layers.
Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - DTO return convention: selectors return domain value objects, not ORM
      instances.
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC
from uuid import UUID

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Subclasses implement the domain-specific queries.
    """

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def parse_id(value: str | UUID | None) -> UUID | None:
        """UUID for ``value``; None when missing or malformed."""
        if value is None or isinstance(value, UUID):
            return value
        try:
            return UUID(str(value))
        except ValueError:
            return None
