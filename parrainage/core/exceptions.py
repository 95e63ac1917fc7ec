"""Domain errors raised by the parrain pricing services."""
from typing import Any, Optional


class ParrainPricingError(Exception):
    """Base class for all parrain pricing errors."""
    pass


class PricingValidationError(ParrainPricingError, ValueError):
    """Invalid calculator input, rejected before any computation."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value


class MigrationError(ParrainPricingError):
    """Table creation or verification failed; the stored DB version is left unchanged."""

    def __init__(self, message: str, from_version: Optional[str] = None, target_version: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.from_version = from_version
        self.target_version = target_version


class ContentConversionError(ParrainPricingError):
    """A single legacy modal content item could not be converted."""
    pass


class SchedulingError(ParrainPricingError):
    """Scheduling data rejected by the pricing storage."""
    pass
