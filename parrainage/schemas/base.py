"""
Base Schema Classes for Pydantic Models

RULE: Schemas that read from ORM models inherit from BaseResponseSchema;
value objects produced by the services inherit from FrozenSchema.
"""

from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for schemas that read from ORM models.

    Usage:
        class PricingScheduleResponse(BaseResponseSchema):
            id: int
            status: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Extra fields are ignored so callers can pass richer payloads.
    """
    model_config = ConfigDict(
        extra='ignore',
    )


class FrozenSchema(BaseModel):
    """Immutable value object."""
    model_config = ConfigDict(frozen=True)
