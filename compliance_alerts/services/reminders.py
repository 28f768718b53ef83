"""
Action Reminder Engine: due-date reminders for open client actions.

Each open action with a due date gets at most one reminder per run, chosen in
this order, and each kind is sent only once over the action's life:

- due_soon:  due exactly `lead_days` days from today
- due_today: due today
- overdue:   due date already passed

The flag for a kind is set after the attempt, whether or not delivery
succeeded; a failed reminder shows up in the error count and the log only.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import get_settings
from ..models import (
    AffectedClientLink,
    ClientAction,
    RegulatoryAlert,
    RemediationStatus,
)
from .alert_store import PUBLISHED_STATUSES, store_guard
from .messages import ReminderWording, build_reminder_message
from .recipients import MemberRecipientDirectory, RecipientDirectory
from .transport import MessageTransport, OutboundMessage, deliver_concurrently, get_transport

logger = logging.getLogger(__name__)


class ReminderKind(str, Enum):
    DUE_SOON = "due_soon"
    DUE_TODAY = "due_today"
    OVERDUE = "overdue"


REMINDER_FLAGS = {
    ReminderKind.DUE_SOON: "reminder_sent_due_soon",
    ReminderKind.DUE_TODAY: "reminder_sent_due_today",
    ReminderKind.OVERDUE: "reminder_sent_overdue",
}


def reminder_wording(kind: ReminderKind, lead_days: int) -> ReminderWording:
    if kind == ReminderKind.DUE_SOON:
        return ReminderWording(
            subject=f"Erinnerung: Massnahme fällig in {lead_days} Tagen",
            label=f"Fällig in {lead_days} Tagen",
            color="#d97706",
        )
    if kind == ReminderKind.DUE_TODAY:
        return ReminderWording(
            subject="Heute fällig: Massnahme erfordert Handlung",
            label="Heute fällig",
            color="#dc2626",
        )
    return ReminderWording(
        subject="Überfällig: Massnahme erfordert sofortige Handlung",
        label="Überfällig",
        color="#dc2626",
    )


def select_reminder_kind(action: ClientAction, today: date, lead_days: int) -> ReminderKind | None:
    """The one reminder this action should get today, if any."""
    if action.due_date is None or action.status == RemediationStatus.DONE:
        return None
    if action.due_date == today + timedelta(days=lead_days) and not action.reminder_sent_due_soon:
        return ReminderKind.DUE_SOON
    if action.due_date == today and not action.reminder_sent_due_today:
        return ReminderKind.DUE_TODAY
    if action.due_date < today and not action.reminder_sent_overdue:
        return ReminderKind.OVERDUE
    return None


@dataclass
class ReminderSummary:
    actions: int = 0
    sent: int = 0
    errors: int = 0

    def counts(self) -> dict[str, int]:
        return {"sent": self.sent, "errors": self.errors}


class ActionReminderEngine:
    """Scans open client actions and sends due-date reminders."""

    def __init__(
        self,
        session: AsyncSession,
        transport: MessageTransport | None = None,
        directory: RecipientDirectory | None = None,
        lead_days: int | None = None,
    ):
        settings = get_settings()
        self._session = session
        self._transport = transport or get_transport(settings)
        self._directory = directory or MemberRecipientDirectory(session)
        self._lead_days = settings.reminder_lead_days if lead_days is None else lead_days
        self._concurrency = settings.notification_concurrency
        self._timeout = settings.notification_send_timeout_seconds
        self._portal_url = settings.portal_url

    async def _open_actions(self) -> list[ClientAction]:
        query = (
            select(ClientAction)
            .join(AffectedClientLink, ClientAction.affected_client_id == AffectedClientLink.id)
            .join(RegulatoryAlert, AffectedClientLink.alert_id == RegulatoryAlert.id)
            .where(
                ClientAction.status != RemediationStatus.DONE,
                ClientAction.due_date.is_not(None),
                RegulatoryAlert.status.in_(list(PUBLISHED_STATUSES)),
            )
            .options(
                selectinload(ClientAction.affected_client).selectinload(AffectedClientLink.alert),
                selectinload(ClientAction.affected_client).selectinload(AffectedClientLink.organization),
            )
            .order_by(ClientAction.due_date)
        )
        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def process_due_reminders(self, today: date | None = None) -> ReminderSummary:
        """Send every reminder due today. Returns counts over all recipients."""
        today = today or date.today()
        summary = ReminderSummary()

        due: list[tuple[ClientAction, ReminderKind]] = []
        messages: list[OutboundMessage] = []
        for action in await self._open_actions():
            kind = select_reminder_kind(action, today, self._lead_days)
            if kind is None:
                continue

            link = action.affected_client
            recipients = await self._directory.resolve(link.organization_id)
            if not recipients:
                logger.warning(
                    f"No recipients for reminder on client action {action.id} "
                    f"(organization {link.organization_id})"
                )

            wording = reminder_wording(kind, self._lead_days)
            org_name = link.organization.name if link.organization else "Ihr Unternehmen"
            for recipient in recipients:
                messages.append(build_reminder_message(
                    action, wording, recipient, link.alert.title, org_name, self._portal_url,
                ))
            due.append((action, kind))

        outcomes = await deliver_concurrently(
            self._transport, messages, self._concurrency, self._timeout
        )
        summary.actions = len(due)
        summary.sent = sum(1 for o in outcomes if o.success)
        summary.errors = len(outcomes) - summary.sent

        async with store_guard(self._session, "Record action reminders"):
            for action, kind in due:
                setattr(action, REMINDER_FLAGS[kind], True)

        logger.info(
            f"Action reminders for {today.isoformat()}: {summary.actions} action(s), "
            f"{summary.sent} sent, {summary.errors} failed"
        )
        return summary
