"""SQLAlchemy ORM Models for Compliance Alerts."""

from .base import Base, SoftDeleteMixin, TimestampMixin, UUIDMixin, utcnow
from .models import (
    # Enums
    AlertStatus,
    DeliveryStatus,
    NotificationStatus,
    Priority,
    RemediationStatus,
    RiskLevel,
    Severity,
    # Directory
    Organization,
    OrganizationMember,
    User,
    # Alerts
    AffectedClientLink,
    AffectedClientSuggestion,
    AlertSuggestions,
    RegulatoryAlert,
    # Remediation
    ActionComment,
    ActionItem,
    ClientAction,
    # Notifications
    Notification,
    NotificationLogEntry,
)

__all__ = [
    # Base
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "SoftDeleteMixin",
    "utcnow",
    # Enums
    "AlertStatus",
    "Severity",
    "RiskLevel",
    "Priority",
    "RemediationStatus",
    "NotificationStatus",
    "DeliveryStatus",
    # Directory
    "Organization",
    "User",
    "OrganizationMember",
    # Alerts
    "RegulatoryAlert",
    "AlertSuggestions",
    "AffectedClientLink",
    "AffectedClientSuggestion",
    # Remediation
    "ActionItem",
    "ClientAction",
    "ActionComment",
    # Notifications
    "NotificationLogEntry",
    "Notification",
]
