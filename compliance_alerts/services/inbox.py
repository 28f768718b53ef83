"""In-app notifications for portal users."""

import logging
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Notification, RegulatoryAlert, utcnow
from .alert_store import NotFoundError

logger = logging.getLogger(__name__)

NEW_ALERT_TYPE = "new_alert"
NEW_ALERT_TITLE = "Neue regulatorische Meldung"


class NotificationInbox:
    """Writes and reads the per-user notification feed."""

    def __init__(self, session: AsyncSession):
        self._session = session

    def notify_new_alert(
        self,
        alert: RegulatoryAlert,
        user_ids: Iterable[UUID],
        link: str,
    ) -> list[Notification]:
        """Queue one notification per distinct user. The caller flushes."""
        notifications = []
        for user_id in dict.fromkeys(user_ids):
            notifications.append(Notification(
                user_id=user_id,
                type=NEW_ALERT_TYPE,
                title=NEW_ALERT_TITLE,
                body=alert.title,
                link=link,
            ))
        self._session.add_all(notifications)
        return notifications

    async def list_for_user(
        self,
        user_id: UUID,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[Notification]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.read_at.is_(None))
        query = query.order_by(Notification.created_at.desc()).limit(limit)

        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def mark_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        """Mark one of the user's notifications as read (idempotent)."""
        result = await self._session.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        notification = result.scalar_one_or_none()
        if not notification:
            raise NotFoundError(f"Notification {notification_id} not found")

        if notification.read_at is None:
            notification.read_at = utcnow()
            await self._session.flush()

        return notification
