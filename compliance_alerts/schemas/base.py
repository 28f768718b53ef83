"""Base schemas and common types for the Compliance Alerts API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


# =============================================================================
# BASE SCHEMAS
# =============================================================================


class AlertBaseModel(BaseModel):
    """Base model with common configuration."""

    # Enum members are kept (not values) so request data can be handed to the
    # services unchanged; JSON output still carries the values.
    model_config = ConfigDict(
        from_attributes=True,  # Enable ORM mode
        populate_by_name=True,
    )


class TimestampMixin(BaseModel):
    """Mixin for created/updated timestamps."""

    created_at: datetime
    updated_at: datetime | None = None


# =============================================================================
# ERROR RESPONSES
# =============================================================================


class ErrorDetail(AlertBaseModel):
    """Detailed error information."""

    field: str | None = None
    message: str
    code: str


class ErrorResponse(AlertBaseModel):
    """Standard error response format."""

    error: str
    message: str
    details: list[ErrorDetail] = []
    request_id: str | None = None


# =============================================================================
# COMMON REFERENCE SCHEMAS
# =============================================================================


class OrganizationRef(AlertBaseModel):
    """Minimal organization reference."""

    id: UUID
    slug: str
    name: str
