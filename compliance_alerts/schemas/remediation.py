"""Pydantic schemas for action items, client actions, comments and in-app notifications."""

from datetime import date as date_type
from datetime import datetime
from uuid import UUID

from pydantic import Field

from ..models import Priority, RemediationStatus, RiskLevel
from .base import AlertBaseModel, TimestampMixin


# =============================================================================
# ACTION ITEMS
# =============================================================================


class ActionItemCreate(AlertBaseModel):
    text: str = Field(..., min_length=1)
    priority: Priority = Priority.MEDIUM
    due: str | None = Field(default=None, max_length=255)


class ActionItemPatch(AlertBaseModel):
    """Partial update; omitted fields stay as they are."""

    text: str | None = Field(default=None, min_length=1)
    priority: Priority | None = None
    due: str | None = Field(default=None, max_length=255)
    status: RemediationStatus | None = None


class ActionItemResponse(AlertBaseModel):
    id: UUID
    alert_id: UUID
    text: str
    priority: Priority
    due: str | None = None
    status: RemediationStatus
    created_at: datetime


# =============================================================================
# CLIENT ACTIONS
# =============================================================================


class ClientActionCreate(AlertBaseModel):
    text: str = Field(..., min_length=1)
    due: str | None = Field(
        default=None,
        max_length=255,
        description="Free-text due label shown to the client",
    )
    due_date: date_type | None = Field(
        default=None,
        description="Calendar due date, drives the reminder e-mails",
    )


class ClientActionStatusUpdate(AlertBaseModel):
    status: RemediationStatus


class ClientActionResponse(AlertBaseModel, TimestampMixin):
    id: UUID
    affected_client_id: UUID
    text: str
    due: str | None = None
    due_date: date_type | None = None
    status: RemediationStatus


class OrganizationActionsResponse(AlertBaseModel):
    """Client actions of one affected organization."""

    affected_client_id: UUID
    organization_id: UUID
    organization_name: str
    risk: RiskLevel
    actions: list[ClientActionResponse]


# =============================================================================
# COMMENTS
# =============================================================================


class CommentCreate(AlertBaseModel):
    text: str = Field(..., min_length=1, max_length=5000)


class CommentResponse(AlertBaseModel):
    id: UUID
    action_id: UUID
    user_id: UUID | None = None
    author_name: str | None = None
    text: str
    is_system: bool
    created_at: datetime


# =============================================================================
# IN-APP NOTIFICATIONS
# =============================================================================


class NotificationResponse(AlertBaseModel):
    id: UUID
    type: str
    title: str
    body: str | None = None
    link: str | None = None
    read_at: datetime | None = None
    created_at: datetime
