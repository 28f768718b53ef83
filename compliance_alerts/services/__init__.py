"""Business logic services for Compliance Alerts."""

from .alert_store import (
    PUBLISHED_STATUSES,
    AffectedClientInput,
    AlertError,
    AlertNotFoundError,
    AlertStore,
    ClientAlertView,
    ConcurrencyError,
    InvalidOperationError,
    InvalidTransitionError,
    NotDraftError,
    NotFoundError,
    NotPublishedError,
    StoreUnavailableError,
    ValidationFailedError,
)
from .authoring import (
    AlertFields,
    CreateAlertInput,
    DraftAuthoringService,
    SuggestionInput,
)
from .dispatcher import (
    DispatchConfig,
    DispatchSummary,
    NotificationDispatcher,
    OrganizationDispatch,
)
from .inbox import NotificationInbox
from .publication import PublicationService, PublishResult
from .recipients import MemberRecipientDirectory, Recipient, RecipientDirectory
from .remediation import (
    ActionItemInput,
    ActionItemUpdate,
    CommentView,
    OrganizationActions,
    RemediationTracker,
)
from .reminders import ActionReminderEngine, ReminderKind, ReminderSummary
from .transport import (
    DeliveryFailedError,
    LogOnlyTransport,
    MessageTransport,
    OutboundMessage,
    ResendEmailTransport,
    get_transport,
)

__all__ = [
    # Alert store
    "AlertStore",
    "AffectedClientInput",
    "ClientAlertView",
    "PUBLISHED_STATUSES",
    # Errors
    "AlertError",
    "NotFoundError",
    "AlertNotFoundError",
    "InvalidTransitionError",
    "NotDraftError",
    "NotPublishedError",
    "ValidationFailedError",
    "ConcurrencyError",
    "StoreUnavailableError",
    "InvalidOperationError",
    "DeliveryFailedError",
    # Authoring & publication
    "DraftAuthoringService",
    "CreateAlertInput",
    "AlertFields",
    "SuggestionInput",
    "PublicationService",
    "PublishResult",
    # Dispatch
    "NotificationDispatcher",
    "DispatchConfig",
    "DispatchSummary",
    "OrganizationDispatch",
    "NotificationInbox",
    "Recipient",
    "RecipientDirectory",
    "MemberRecipientDirectory",
    "MessageTransport",
    "OutboundMessage",
    "ResendEmailTransport",
    "LogOnlyTransport",
    "get_transport",
    # Remediation
    "RemediationTracker",
    "ActionItemInput",
    "ActionItemUpdate",
    "CommentView",
    "OrganizationActions",
    "ActionReminderEngine",
    "ReminderKind",
    "ReminderSummary",
]
