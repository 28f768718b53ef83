"""SQLAlchemy ORM Models for Compliance Alerts.

Tables:
- organizations / users / organization_members: the client directory
- regulatory_alerts: one regulatory-change notice, with its staging mirrors
- alert_affected_clients: the affected-client fan-out set of an alert
- alert_action_items: internal checklist for an alert
- client_alert_actions / action_comments: per-client remediation + audit trail
- alert_notification_log: append-only delivery ledger
- notifications: in-app notifications
"""

from dataclasses import dataclass
from datetime import date as date_type
from datetime import datetime
from enum import Enum as PyEnum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, SoftDeleteMixin, TimestampMixin, UUIDMixin, utcnow


def _enum(enum_cls: type[PyEnum], name: str) -> Enum:
    """Portable (non-native) enum column storing the enum values."""
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda x: [e.value for e in x],
    )


# =============================================================================
# ENUMS
# =============================================================================


class AlertStatus(str, PyEnum):
    DRAFT = "draft"
    NEW = "new"
    ACKNOWLEDGED = "acknowledged"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class Severity(str, PyEnum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    INFO = "info"


class RiskLevel(str, PyEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Priority(str, PyEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RemediationStatus(str, PyEnum):
    """Status of an action item or client action."""
    OPEN = "offen"
    IN_PROGRESS = "in_arbeit"
    DONE = "erledigt"


class NotificationStatus(str, PyEnum):
    """Per-organization delivery outcome on an affected-client link."""
    SENT = "sent"
    PARTIAL = "partial"
    FAILED = "failed"
    NO_RECIPIENTS = "no_recipients"


class DeliveryStatus(str, PyEnum):
    """Per-recipient outcome in the notification log."""
    SENT = "sent"
    FAILED = "failed"


# =============================================================================
# ORGANIZATION & USER MODELS
# =============================================================================


class Organization(Base, UUIDMixin, SoftDeleteMixin):
    """Client organization."""

    __tablename__ = "organizations"

    slug: Mapped[str] = mapped_column(String(63), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    members: Mapped[list["OrganizationMember"]] = relationship(
        back_populates="organization"
    )


class User(Base, UUIDMixin, SoftDeleteMixin):
    """A person: compliance staff or a client operator."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255))
    is_staff: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False,
        comment="Member of the internal compliance team",
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    memberships: Mapped[list["OrganizationMember"]] = relationship(
        back_populates="user"
    )


class OrganizationMember(Base, UUIDMixin):
    """Membership of a user in a client organization."""

    __tablename__ = "organization_members"

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(50), default="member", nullable=False)
    receives_alerts: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False,
        comment="Contact is eligible for regulatory alert notifications",
    )

    organization: Mapped["Organization"] = relationship(back_populates="members")
    user: Mapped["User"] = relationship(back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id"),
    )


# =============================================================================
# REGULATORY ALERTS
# =============================================================================


@dataclass
class AlertSuggestions:
    """Staging values prepared upstream for a draft."""
    summary: str | None
    legal_basis: str | None
    severity: Severity | None
    category: str | None
    comment: str | None
    feed_entry_id: str | None
    source_url: str | None


class RegulatoryAlert(Base, UUIDMixin, TimestampMixin):
    """One regulatory-change notice.

    The authoritative columns are the single source of truth once the alert
    leaves draft. The ai_* staging columns are only meaningful while the
    alert is a draft; read them through `suggestions`.
    """

    __tablename__ = "regulatory_alerts"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    source: Mapped[str | None] = mapped_column(String(255))
    jurisdiction: Mapped[str] = mapped_column(String(10), nullable=False)
    date: Mapped[date_type | None] = mapped_column(Date)
    category: Mapped[str | None] = mapped_column(String(255))
    summary: Mapped[str | None] = mapped_column(Text)
    legal_basis: Mapped[str | None] = mapped_column(Text)
    deadline: Mapped[str | None] = mapped_column(String(255))
    comment: Mapped[str | None] = mapped_column(
        Text, comment="Analyst's plain-language interpretation"
    )
    source_link: Mapped[str | None] = mapped_column(
        Text, comment="Link to the official publication, shown in notifications"
    )
    severity: Mapped[Severity] = mapped_column(
        _enum(Severity, "alert_severity"), default=Severity.MEDIUM, nullable=False
    )
    status: Mapped[AlertStatus] = mapped_column(
        _enum(AlertStatus, "alert_status"), default=AlertStatus.DRAFT, nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))

    # Staging mirrors, written by feed ingestion
    ai_summary: Mapped[str | None] = mapped_column(Text)
    ai_legal_basis: Mapped[str | None] = mapped_column(Text)
    ai_severity: Mapped[Severity | None] = mapped_column(
        _enum(Severity, "alert_ai_severity")
    )
    ai_category: Mapped[str | None] = mapped_column(String(255))
    ai_comment: Mapped[str | None] = mapped_column(Text)
    feed_entry_id: Mapped[str | None] = mapped_column(String(255))
    source_url: Mapped[str | None] = mapped_column(Text)

    action_items: Mapped[list["ActionItem"]] = relationship(
        back_populates="alert",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ActionItem.created_at",
    )
    affected_clients: Mapped[list["AffectedClientLink"]] = relationship(
        back_populates="alert",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="AffectedClientLink.created_at",
    )

    __table_args__ = (
        Index("idx_regulatory_alerts_status", "status", "created_at"),
    )

    @property
    def is_draft(self) -> bool:
        return self.status == AlertStatus.DRAFT

    @property
    def suggestions(self) -> AlertSuggestions | None:
        """Staging view; None once the alert has left draft."""
        if not self.is_draft:
            return None
        return AlertSuggestions(
            summary=self.ai_summary,
            legal_basis=self.ai_legal_basis,
            severity=self.ai_severity,
            category=self.ai_category,
            comment=self.ai_comment,
            feed_entry_id=self.feed_entry_id,
            source_url=self.source_url,
        )


@dataclass
class AffectedClientSuggestion:
    """Last saved values of one affected client, offered when a draft is re-opened."""
    risk: RiskLevel | None
    reason: str | None
    comment: str | None


class AffectedClientLink(Base, UUIDMixin):
    """Binds an alert to one client organization it impacts."""

    __tablename__ = "alert_affected_clients"

    alert_id: Mapped[UUID] = mapped_column(
        ForeignKey("regulatory_alerts.id", ondelete="CASCADE"), nullable=False
    )
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    risk: Mapped[RiskLevel] = mapped_column(
        _enum(RiskLevel, "affected_client_risk"), default=RiskLevel.MEDIUM, nullable=False
    )
    reason: Mapped[str | None] = mapped_column(Text)
    comment: Mapped[str | None] = mapped_column(Text)

    # Staging mirrors (pre-publish only)
    ai_risk: Mapped[RiskLevel | None] = mapped_column(
        _enum(RiskLevel, "affected_client_ai_risk")
    )
    ai_reason: Mapped[str | None] = mapped_column(Text)
    ai_comment: Mapped[str | None] = mapped_column(Text)

    notified_at: Mapped[datetime | None] = mapped_column()
    notification_status: Mapped[NotificationStatus | None] = mapped_column(
        _enum(NotificationStatus, "affected_client_notification_status")
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    alert: Mapped["RegulatoryAlert"] = relationship(back_populates="affected_clients")
    organization: Mapped["Organization"] = relationship()
    actions: Mapped[list["ClientAction"]] = relationship(
        back_populates="affected_client",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ClientAction.created_at",
    )

    __table_args__ = (
        UniqueConstraint("alert_id", "organization_id"),
        Index("idx_affected_clients_org", "organization_id", "created_at"),
    )

    @property
    def suggestion(self) -> AffectedClientSuggestion | None:
        """Staging view; None once the alert has left draft."""
        if not self.alert.is_draft:
            return None
        return AffectedClientSuggestion(
            risk=self.ai_risk,
            reason=self.ai_reason,
            comment=self.ai_comment,
        )


# =============================================================================
# REMEDIATION
# =============================================================================


class ActionItem(Base, UUIDMixin):
    """Internal remediation task tied to the alert itself."""

    __tablename__ = "alert_action_items"

    alert_id: Mapped[UUID] = mapped_column(
        ForeignKey("regulatory_alerts.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[Priority] = mapped_column(
        _enum(Priority, "action_item_priority"), default=Priority.MEDIUM, nullable=False
    )
    due: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[RemediationStatus] = mapped_column(
        _enum(RemediationStatus, "action_item_status"),
        default=RemediationStatus.OPEN,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    alert: Mapped["RegulatoryAlert"] = relationship(back_populates="action_items")


class ClientAction(Base, UUIDMixin, TimestampMixin):
    """Remediation task scoped to one affected client."""

    __tablename__ = "client_alert_actions"

    affected_client_id: Mapped[UUID] = mapped_column(
        ForeignKey("alert_affected_clients.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    due: Mapped[str | None] = mapped_column(String(255))
    due_date: Mapped[date_type | None] = mapped_column(Date)
    status: Mapped[RemediationStatus] = mapped_column(
        _enum(RemediationStatus, "client_action_status"),
        default=RemediationStatus.OPEN,
        nullable=False,
    )
    reminder_sent_due_soon: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reminder_sent_due_today: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reminder_sent_overdue: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    affected_client: Mapped["AffectedClientLink"] = relationship(back_populates="actions")
    comments: Mapped[list["ActionComment"]] = relationship(
        back_populates="action",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ActionComment.created_at",
    )


class ActionComment(Base, UUIDMixin):
    """Comment on a client action. Never edited; system comments form the audit trail."""

    __tablename__ = "action_comments"

    action_id: Mapped[UUID] = mapped_column(
        ForeignKey("client_alert_actions.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    text: Mapped[str] = mapped_column(Text, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    action: Mapped["ClientAction"] = relationship(back_populates="comments")
    author: Mapped["User | None"] = relationship()

    __table_args__ = (
        Index("idx_action_comments_action", "action_id", "created_at"),
    )


# =============================================================================
# NOTIFICATION MODELS
# =============================================================================


class NotificationLogEntry(Base, UUIDMixin):
    """One delivery attempt to one recipient. Append-only."""

    __tablename__ = "alert_notification_log"

    alert_id: Mapped[UUID] = mapped_column(
        ForeignKey("regulatory_alerts.id"), nullable=False
    )
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    recipient_email: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient_name: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[DeliveryStatus] = mapped_column(
        _enum(DeliveryStatus, "notification_delivery_status"), nullable=False
    )
    error_message: Mapped[str | None] = mapped_column(Text)
    content_hash: Mapped[str | None] = mapped_column(String(64))
    sent_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_notification_log_alert", "alert_id", "sent_at"),
        Index("idx_notification_log_org", "organization_id", "sent_at"),
    )


class Notification(Base, UUIDMixin):
    """In-app notification for a single user."""

    __tablename__ = "notifications"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    body: Mapped[str | None] = mapped_column(Text)
    link: Mapped[str | None] = mapped_column(String(500))
    read_at: Mapped[datetime | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_notifications_user", "user_id", "created_at"),
    )
