"""Compliance Alerts API Schemas.

Schemas are organized by domain:
- base: Common configuration, errors, references
- alerts: Alerts, publication, dispatch, notification log, client portal view
- remediation: Action items, client actions, comments, in-app notifications
"""

from .alerts import (
    AffectedClientIn,
    AffectedClientResponse,
    AffectedClientSuggestionResponse,
    AlertCreate,
    AlertFieldsIn,
    AlertResponse,
    AlertStatusUpdate,
    ClientAlertResponse,
    DispatchSummaryResponse,
    DraftSaveRequest,
    NotificationLogEntryResponse,
    OrganizationDispatchResponse,
    PromoteSuggestionsRequest,
    PublishRequest,
    PublishResponse,
    SuggestionsIn,
    SuggestionsResponse,
)
from .base import (
    AlertBaseModel,
    ErrorDetail,
    ErrorResponse,
    OrganizationRef,
    TimestampMixin,
)
from .remediation import (
    ActionItemCreate,
    ActionItemPatch,
    ActionItemResponse,
    ClientActionCreate,
    ClientActionResponse,
    ClientActionStatusUpdate,
    CommentCreate,
    CommentResponse,
    NotificationResponse,
    OrganizationActionsResponse,
)

__all__ = [
    # Base
    "AlertBaseModel",
    "TimestampMixin",
    "ErrorDetail",
    "ErrorResponse",
    "OrganizationRef",
    # Alerts
    "AlertCreate",
    "AlertFieldsIn",
    "AffectedClientIn",
    "SuggestionsIn",
    "DraftSaveRequest",
    "PublishRequest",
    "PromoteSuggestionsRequest",
    "AlertStatusUpdate",
    "AlertResponse",
    "AffectedClientResponse",
    "AffectedClientSuggestionResponse",
    "SuggestionsResponse",
    "PublishResponse",
    "DispatchSummaryResponse",
    "OrganizationDispatchResponse",
    "NotificationLogEntryResponse",
    "ClientAlertResponse",
    # Remediation
    "ActionItemCreate",
    "ActionItemPatch",
    "ActionItemResponse",
    "ClientActionCreate",
    "ClientActionResponse",
    "ClientActionStatusUpdate",
    "OrganizationActionsResponse",
    "CommentCreate",
    "CommentResponse",
    "NotificationResponse",
]
