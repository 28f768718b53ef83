"""
Remediation Tracker: alert-level action items, per-client actions and their comment trail.

Every status call on a client action appends exactly one system comment, even
when the status does not change, so the comment trail doubles as the audit
log of who touched the action and when. Comments are never edited.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models import (
    ActionComment,
    ActionItem,
    AffectedClientLink,
    ClientAction,
    Priority,
    RemediationStatus,
    RiskLevel,
    User,
)
from .alert_store import (
    AlertStore,
    InvalidOperationError,
    NotFoundError,
    ValidationFailedError,
    store_guard,
)

logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "Unbekannt"

STATUS_LABELS = {
    RemediationStatus.OPEN: "Offen",
    RemediationStatus.IN_PROGRESS: "In Arbeit",
    RemediationStatus.DONE: "Erledigt",
}


# =============================================================================
# EXCEPTIONS
# =============================================================================


class ActionItemNotFoundError(NotFoundError):
    pass


class AffectedClientNotFoundError(NotFoundError):
    pass


class ClientActionNotFoundError(NotFoundError):
    pass


class CommentNotFoundError(NotFoundError):
    pass


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class ActionItemInput:
    text: str
    priority: Priority = Priority.MEDIUM
    due: str | None = None


@dataclass
class ActionItemUpdate:
    """None leaves a field unchanged."""
    text: str | None = None
    priority: Priority | None = None
    due: str | None = None
    status: RemediationStatus | None = None


@dataclass
class CommentView:
    id: UUID
    action_id: UUID
    user_id: UUID | None
    author_name: str
    text: str
    is_system: bool
    created_at: datetime


@dataclass
class OrganizationActions:
    """Client actions of one affected organization."""
    affected_client_id: UUID
    organization_id: UUID
    organization_name: str
    risk: RiskLevel
    actions: list[ClientAction] = field(default_factory=list)


def status_change_text(old: RemediationStatus, new: RemediationStatus, actor: str) -> str:
    return f"Status geändert von {STATUS_LABELS[old]} auf {STATUS_LABELS[new]} durch {actor}"


def _require_text(text: str | None, name: str = "text") -> str:
    if not text or not text.strip():
        raise ValidationFailedError(f"{name} must not be empty", fields=[name])
    return text.strip()


# =============================================================================
# REMEDIATION TRACKER
# =============================================================================


class RemediationTracker:
    """Action items, client actions and comments."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._store = AlertStore(session)

    # =========================================================================
    # ACTION ITEMS (alert-level, any alert status)
    # =========================================================================

    async def add_action_item(self, alert_id: UUID, data: ActionItemInput) -> ActionItem:
        text = _require_text(data.text)
        await self._store.get_alert(alert_id)

        item = ActionItem(
            alert_id=alert_id,
            text=text,
            priority=data.priority,
            due=data.due,
            status=RemediationStatus.OPEN,
        )
        async with store_guard(self._session, f"Add action item to alert {alert_id}"):
            self._session.add(item)

        logger.info(f"Added action item {item.id} to alert {alert_id}")
        return item

    async def update_action_item(self, item_id: UUID, data: ActionItemUpdate) -> ActionItem:
        changes = {
            key: getattr(data, key)
            for key in ("text", "priority", "due", "status")
            if getattr(data, key) is not None
        }
        if "text" in changes:
            changes["text"] = _require_text(changes["text"])

        item = await self._get_action_item(item_id)
        async with store_guard(self._session, f"Update action item {item_id}"):
            for key, value in changes.items():
                setattr(item, key, value)

        return item

    async def delete_action_item(self, item_id: UUID) -> None:
        item = await self._get_action_item(item_id)
        async with store_guard(self._session, f"Delete action item {item_id}"):
            await self._session.delete(item)

        logger.info(f"Deleted action item {item_id}")

    async def _get_action_item(self, item_id: UUID) -> ActionItem:
        item = await self._session.get(ActionItem, item_id)
        if not item:
            raise ActionItemNotFoundError(f"Action item {item_id} not found")
        return item

    # =========================================================================
    # CLIENT ACTIONS
    # =========================================================================

    async def get_affected_client(self, affected_client_id: UUID) -> AffectedClientLink:
        link = await self._session.get(AffectedClientLink, affected_client_id)
        if not link:
            raise AffectedClientNotFoundError(f"Affected client {affected_client_id} not found")
        return link

    async def get_client_action(self, action_id: UUID) -> ClientAction:
        """Load a client action together with its affected-client link."""
        result = await self._session.execute(
            select(ClientAction)
            .where(ClientAction.id == action_id)
            .options(selectinload(ClientAction.affected_client))
        )
        action = result.scalar_one_or_none()
        if not action:
            raise ClientActionNotFoundError(f"Client action {action_id} not found")
        return action

    async def add_client_action(
        self,
        affected_client_id: UUID,
        text: str,
        due: str | None = None,
        due_date: date | None = None,
    ) -> ClientAction:
        """Create an action for one affected client, starting as offen."""
        text = _require_text(text)
        await self.get_affected_client(affected_client_id)

        action = ClientAction(
            affected_client_id=affected_client_id,
            text=text,
            due=due or (due_date.isoformat() if due_date else None),
            due_date=due_date,
            status=RemediationStatus.OPEN,
        )
        async with store_guard(self._session, f"Add client action to {affected_client_id}"):
            self._session.add(action)

        logger.info(f"Added client action {action.id} for affected client {affected_client_id}")
        return await self.get_client_action(action.id)

    async def update_client_action_status(
        self,
        action_id: UUID,
        new_status: RemediationStatus,
        user_id: UUID | None = None,
    ) -> ClientAction:
        """
        Set the status and append one system comment recording the change.

        Any status may follow any other; calling with the current status is
        still recorded.
        """
        async with store_guard(self._session, f"Update status of client action {action_id}"):
            result = await self._session.execute(
                select(ClientAction)
                .where(ClientAction.id == action_id)
                .options(selectinload(ClientAction.affected_client))
                .with_for_update()
            )
            action = result.scalar_one_or_none()
            if not action:
                raise ClientActionNotFoundError(f"Client action {action_id} not found")

            actor = await self._display_name(user_id)
            old_status = action.status
            action.status = new_status

            self._session.add(ActionComment(
                action_id=action.id,
                user_id=user_id,
                text=status_change_text(old_status, new_status, actor),
                is_system=True,
            ))

        logger.info(f"Client action {action_id}: {old_status.value} -> {new_status.value}")
        return action

    async def list_client_actions_by_organization(
        self,
        alert_id: UUID,
    ) -> list[OrganizationActions]:
        """Client actions of an alert, grouped per affected organization."""
        alert = await self._store.get_alert(alert_id)

        result = await self._session.execute(
            select(AffectedClientLink)
            .where(AffectedClientLink.alert_id == alert.id)
            .options(
                selectinload(AffectedClientLink.organization),
                selectinload(AffectedClientLink.actions),
            )
            .order_by(AffectedClientLink.created_at)
        )

        return [
            OrganizationActions(
                affected_client_id=link.id,
                organization_id=link.organization_id,
                organization_name=link.organization.name if link.organization else UNKNOWN_AUTHOR,
                risk=link.risk,
                actions=list(link.actions),
            )
            for link in result.scalars().all()
        ]

    # =========================================================================
    # COMMENTS
    # =========================================================================

    async def add_comment(self, action_id: UUID, user_id: UUID, text: str) -> ActionComment:
        text = _require_text(text)
        await self.get_client_action(action_id)

        comment = ActionComment(action_id=action_id, user_id=user_id, text=text, is_system=False)
        async with store_guard(self._session, f"Add comment to client action {action_id}"):
            self._session.add(comment)

        return comment

    async def delete_comment(self, comment_id: UUID, user_id: UUID) -> None:
        """Remove one of the user's own comments. System comments stay."""
        comment = await self._session.get(ActionComment, comment_id)
        if not comment:
            raise CommentNotFoundError(f"Comment {comment_id} not found")
        if comment.is_system:
            raise InvalidOperationError("System comments are part of the audit trail and cannot be deleted")
        if comment.user_id != user_id:
            raise InvalidOperationError("Only the author can delete a comment")

        async with store_guard(self._session, f"Delete comment {comment_id}"):
            await self._session.delete(comment)

    async def list_comments(self, action_id: UUID) -> list[CommentView]:
        """Comments oldest first, with the author's display name."""
        await self.get_client_action(action_id)

        result = await self._session.execute(
            select(ActionComment)
            .where(ActionComment.action_id == action_id)
            .options(selectinload(ActionComment.author))
            .order_by(ActionComment.created_at, ActionComment.id)
        )

        return [
            CommentView(
                id=comment.id,
                action_id=comment.action_id,
                user_id=comment.user_id,
                author_name=(comment.author.name if comment.author else None) or UNKNOWN_AUTHOR,
                text=comment.text,
                is_system=comment.is_system,
                created_at=comment.created_at,
            )
            for comment in result.scalars().all()
        ]

    async def _display_name(self, user_id: UUID | None) -> str:
        if user_id is None:
            return "System"
        user = await self._session.get(User, user_id)
        return (user.name if user else None) or UNKNOWN_AUTHOR
