"""Pydantic schemas for regulatory alerts, publication and dispatch."""

from datetime import date as date_type
from datetime import datetime
from uuid import UUID

from pydantic import Field

from ..models import (
    AlertStatus,
    DeliveryStatus,
    NotificationStatus,
    RiskLevel,
    Severity,
)
from .base import AlertBaseModel, OrganizationRef, TimestampMixin
from .remediation import ActionItemResponse, ClientActionResponse


# =============================================================================
# REQUESTS
# =============================================================================


class AffectedClientIn(AlertBaseModel):
    """One entry of the affected-client set."""

    organization_id: UUID
    risk: RiskLevel = RiskLevel.MEDIUM
    reason: str | None = None
    comment: str | None = None


class AlertFieldsIn(AlertBaseModel):
    """Authoritative alert fields. Omitted fields keep their current value."""

    title: str | None = Field(default=None, max_length=500)
    source: str | None = Field(default=None, max_length=255)
    jurisdiction: str | None = Field(default=None, max_length=10)
    date: date_type | None = None
    category: str | None = Field(default=None, max_length=255)
    summary: str | None = None
    legal_basis: str | None = None
    deadline: str | None = Field(default=None, max_length=255)
    comment: str | None = None
    source_link: str | None = None
    severity: Severity | None = None


class SuggestionsIn(AlertBaseModel):
    """Staging values from feed ingestion."""

    summary: str | None = None
    legal_basis: str | None = None
    severity: Severity | None = None
    category: str | None = Field(default=None, max_length=255)
    comment: str | None = None
    feed_entry_id: str | None = Field(default=None, max_length=255)
    source_url: str | None = None


class AlertCreate(AlertFieldsIn):
    """Create a draft alert."""

    title: str = Field(..., min_length=1, max_length=500)
    suggestions: SuggestionsIn | None = None


class DraftSaveRequest(AlertFieldsIn):
    """Save a draft; the affected-client list replaces the current set."""

    affected_clients: list[AffectedClientIn] = Field(default_factory=list)
    expected_version: int | None = Field(
        default=None,
        description="Reject the save if the alert changed since this version",
    )


class PublishRequest(DraftSaveRequest):
    """Final fields and final affected-client set."""
    pass


class PromoteSuggestionsRequest(AlertBaseModel):
    fields: list[str] | None = Field(
        default=None,
        description="Fields to promote; omit to fill every empty field",
    )


class AlertStatusUpdate(AlertBaseModel):
    status: AlertStatus


# =============================================================================
# RESPONSES
# =============================================================================


class SuggestionsResponse(AlertBaseModel):
    summary: str | None = None
    legal_basis: str | None = None
    severity: Severity | None = None
    category: str | None = None
    comment: str | None = None
    feed_entry_id: str | None = None
    source_url: str | None = None


class AffectedClientSuggestionResponse(AlertBaseModel):
    risk: RiskLevel | None = None
    reason: str | None = None
    comment: str | None = None


class AffectedClientResponse(AlertBaseModel):
    id: UUID
    organization_id: UUID
    organization: OrganizationRef | None = None
    risk: RiskLevel
    reason: str | None = None
    comment: str | None = None
    notified_at: datetime | None = None
    notification_status: NotificationStatus | None = None
    suggestion: AffectedClientSuggestionResponse | None = Field(
        default=None,
        description="Last saved values; only present while the alert is a draft",
    )


class AlertResponse(AlertBaseModel, TimestampMixin):
    id: UUID
    title: str
    source: str | None = None
    jurisdiction: str
    date: date_type | None = None
    category: str | None = None
    summary: str | None = None
    legal_basis: str | None = None
    deadline: str | None = None
    comment: str | None = None
    source_link: str | None = None
    severity: Severity
    status: AlertStatus
    version: int
    created_by: UUID | None = None
    suggestions: SuggestionsResponse | None = Field(
        default=None,
        description="Only present while the alert is a draft",
    )
    action_items: list[ActionItemResponse] = Field(default_factory=list)
    affected_clients: list[AffectedClientResponse] = Field(default_factory=list)


class OrganizationDispatchResponse(AlertBaseModel):
    affected_client_id: UUID
    organization_id: UUID
    status: NotificationStatus
    sent: int
    errors: int


class DispatchSummaryResponse(AlertBaseModel):
    alert_id: UUID
    sent: int
    errors: int
    organizations: list[OrganizationDispatchResponse] = Field(default_factory=list)


class PublishResponse(AlertBaseModel):
    alert: AlertResponse
    dispatch: DispatchSummaryResponse | None = Field(
        default=None,
        description="None when notifications could not be dispatched",
    )


class NotificationLogEntryResponse(AlertBaseModel):
    id: UUID
    alert_id: UUID
    organization_id: UUID
    recipient_email: str
    recipient_name: str | None = None
    status: DeliveryStatus
    error_message: str | None = None
    content_hash: str | None = None
    sent_at: datetime


class ClientAlertResponse(AlertBaseModel):
    """A published alert as shown in the client portal."""

    affected_client_id: UUID
    alert_id: UUID
    title: str
    date: date_type | None = None
    category: str | None = None
    summary: str | None = None
    legal_basis: str | None = None
    deadline: str | None = None
    severity: Severity
    status: AlertStatus
    risk: RiskLevel
    reason: str | None = None
    comment: str | None = None
    is_new: bool
    actions: list[ClientActionResponse] = Field(default_factory=list)
