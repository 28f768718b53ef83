"""
Notification Dispatcher: tells affected organizations about a published alert.

For each affected-client link of the alert:
1. Resolve the organization's recipients (an empty result is logged and
   recorded as `no_recipients`, never silently skipped)
2. Build one individualized message per recipient
3. Send all messages of all organizations concurrently, bounded by a
   semaphore, each with its own timeout
4. Append one NotificationLogEntry per recipient, derive the link's
   notification_status and stamp notified_at

A recipient failure never aborts the others; it only shows up in the
returned {sent, errors} count and in the log. Resend runs the whole thing
again without de-duplication.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, get_settings
from ..models import (
    AffectedClientLink,
    DeliveryStatus,
    NotificationLogEntry,
    NotificationStatus,
    RegulatoryAlert,
    utcnow,
)
from .alert_store import (
    PUBLISHED_STATUSES,
    AlertStore,
    NotPublishedError,
    store_guard,
)
from .inbox import NotificationInbox
from .messages import alerts_page_url, build_alert_message, content_hash
from .recipients import MemberRecipientDirectory, Recipient, RecipientDirectory
from .transport import MessageTransport, OutboundMessage, deliver_concurrently, get_transport

logger = logging.getLogger(__name__)


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class DispatchConfig:
    """Limits for one dispatch run."""
    concurrency: int = 5
    send_timeout_seconds: float = 15.0
    portal_url: str = "https://app.example.ch"

    @classmethod
    def from_settings(cls, settings: Settings) -> "DispatchConfig":
        return cls(
            concurrency=settings.notification_concurrency,
            send_timeout_seconds=settings.notification_send_timeout_seconds,
            portal_url=settings.portal_url,
        )


@dataclass
class OrganizationDispatch:
    """Outcome for one affected organization."""
    affected_client_id: UUID
    organization_id: UUID
    status: NotificationStatus
    sent: int = 0
    errors: int = 0


@dataclass
class DispatchSummary:
    """Aggregate outcome of one dispatch run."""
    alert_id: UUID
    sent: int = 0
    errors: int = 0
    organizations: list[OrganizationDispatch] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {"sent": self.sent, "errors": self.errors}


@dataclass
class _Delivery:
    link: AffectedClientLink
    recipient: Recipient
    message: OutboundMessage


def derive_notification_status(sent: int, errors: int) -> NotificationStatus:
    """Per-organization status once every recipient has been attempted."""
    if sent + errors == 0:
        return NotificationStatus.NO_RECIPIENTS
    if errors == 0:
        return NotificationStatus.SENT
    if sent == 0:
        return NotificationStatus.FAILED
    return NotificationStatus.PARTIAL


# =============================================================================
# DISPATCHER
# =============================================================================


class NotificationDispatcher:
    """Sends alert notifications and keeps the notification log."""

    def __init__(
        self,
        session: AsyncSession,
        transport: MessageTransport | None = None,
        directory: RecipientDirectory | None = None,
        config: DispatchConfig | None = None,
    ):
        self._session = session
        self._store = AlertStore(session)
        self._transport = transport or get_transport()
        self._directory = directory or MemberRecipientDirectory(session)
        self._config = config or DispatchConfig.from_settings(get_settings())
        self._inbox = NotificationInbox(session)

    async def dispatch(self, alert_id: UUID) -> DispatchSummary:
        """
        Notify every recipient of every affected organization.

        Raises:
            AlertNotFoundError: alert does not exist
            NotPublishedError: alert is a draft or dismissed
            StoreUnavailableError: bookkeeping could not be written
        """
        alert = await self._store.get_alert(alert_id)
        if alert.status not in PUBLISHED_STATUSES:
            raise NotPublishedError(
                f"Alert {alert_id} is '{alert.status.value}' and cannot be sent to clients"
            )

        links = list(alert.affected_clients)
        deliveries = await self._prepare_deliveries(alert, links)

        outcomes = await deliver_concurrently(
            self._transport,
            [d.message for d in deliveries],
            concurrency=self._config.concurrency,
            timeout_seconds=self._config.send_timeout_seconds,
        )

        summary = DispatchSummary(alert_id=alert.id)
        counts: dict[UUID, list[int]] = defaultdict(lambda: [0, 0])

        async with store_guard(self._session, f"Recording deliveries of alert {alert_id}"):
            for delivery, outcome in zip(deliveries, outcomes):
                self._session.add(NotificationLogEntry(
                    alert_id=alert.id,
                    organization_id=delivery.link.organization_id,
                    recipient_email=delivery.recipient.email,
                    recipient_name=delivery.recipient.name,
                    status=DeliveryStatus.SENT if outcome.success else DeliveryStatus.FAILED,
                    error_message=outcome.error,
                    content_hash=content_hash(delivery.message),
                ))
                counts[delivery.link.id][0 if outcome.success else 1] += 1

            self._inbox.notify_new_alert(
                alert,
                [d.recipient.user_id for d in deliveries if d.recipient.user_id],
                link=alerts_page_url(self._config.portal_url),
            )

        async with store_guard(self._session, f"Recording notification status of alert {alert_id}"):
            # The set may have been replaced while messages were in flight
            locked = await self._store.get_alert(alert_id, for_update=True)
            live_ids = {link.id for link in locked.affected_clients}

            completed_at = utcnow()
            for link in links:
                sent, errors = counts[link.id]
                status = derive_notification_status(sent, errors)
                if link.id in live_ids:
                    link.notification_status = status
                    link.notified_at = completed_at
                else:
                    logger.warning(
                        f"Affected client {link.id} of alert {alert_id} was removed "
                        f"during dispatch; its delivery log is kept"
                    )

                summary.sent += sent
                summary.errors += errors
                summary.organizations.append(OrganizationDispatch(
                    affected_client_id=link.id,
                    organization_id=link.organization_id,
                    status=status,
                    sent=sent,
                    errors=errors,
                ))

        logger.info(
            f"Dispatched alert {alert.id} to {len(links)} organization(s): "
            f"{summary.sent} sent, {summary.errors} failed"
        )
        return summary

    async def resend(self, alert_id: UUID) -> DispatchSummary:
        """Dispatch again. Prior log entries are kept; recipients may be notified twice."""
        logger.info(f"Resending notifications for alert {alert_id}")
        return await self.dispatch(alert_id)

    async def _prepare_deliveries(
        self,
        alert: RegulatoryAlert,
        links: list[AffectedClientLink],
    ) -> list[_Delivery]:
        deliveries = []
        for link in links:
            recipients = await self._directory.resolve(link.organization_id)
            if not recipients:
                logger.warning(
                    f"No recipients configured for organization {link.organization_id} "
                    f"(alert {alert.id})"
                )
                continue

            for recipient in recipients:
                deliveries.append(_Delivery(
                    link=link,
                    recipient=recipient,
                    message=build_alert_message(alert, link, recipient, self._config.portal_url),
                ))
        return deliveries

    # =========================================================================
    # NOTIFICATION LOG
    # =========================================================================

    async def get_notification_log(
        self,
        alert_id: UUID,
        organization_id: UUID | None = None,
    ) -> list[NotificationLogEntry]:
        """Delivery attempts for an alert, oldest first."""
        await self._store.get_alert(alert_id)

        query = select(NotificationLogEntry).where(NotificationLogEntry.alert_id == alert_id)
        if organization_id is not None:
            query = query.where(NotificationLogEntry.organization_id == organization_id)
        query = query.order_by(NotificationLogEntry.sent_at, NotificationLogEntry.id)

        result = await self._session.execute(query)
        return list(result.scalars().all())
