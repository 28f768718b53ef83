"""
Alert Store: durable alert records and the alert state machine.

This module owns:
- The exception taxonomy shared by every alert operation
- The status transition table (which edges exist, and for which operation)
- Loading alerts with their fan-out set, under a per-alert row lock when writing
- Full-replacement of the affected-client set
- Read queries (alerts by status, client-portal view)

State machine:

    draft ──publish──> new
    draft ──dismiss──> dismissed ──restore──> draft
    new | acknowledged | in_progress | resolved
        ──status update──> acknowledged | in_progress | resolved | draft

Any other edge raises InvalidTransitionError and leaves the record untouched.
"""

import logging
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models import (
    AffectedClientLink,
    AlertStatus,
    ClientAction,
    RegulatoryAlert,
    RiskLevel,
)

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================


class AlertError(Exception):
    """Base exception for alert operations."""
    pass


class NotFoundError(AlertError):
    """Referenced record does not exist."""
    pass


class AlertNotFoundError(NotFoundError):
    """Alert does not exist."""
    pass


class InvalidTransitionError(AlertError):
    """Requested status change is not an edge of the state machine."""

    def __init__(self, current: AlertStatus, requested: AlertStatus):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot change alert status from '{current.value}' to '{requested.value}'"
        )


class NotDraftError(AlertError):
    """Edit attempted on an alert that is no longer a draft."""
    pass


class NotPublishedError(AlertError):
    """Notification requested for an alert clients cannot see."""
    pass


class ValidationFailedError(AlertError):
    """Input is incomplete or inconsistent."""

    def __init__(self, message: str, fields: list[str] | None = None):
        self.fields = fields or []
        super().__init__(message)


class ConcurrencyError(AlertError):
    """Concurrent modification detected."""
    pass


class StoreUnavailableError(AlertError):
    """The persistent store failed; the operation was rolled back."""
    pass


class InvalidOperationError(AlertError):
    """Operation not allowed in current state."""
    pass


# =============================================================================
# STATE MACHINE
# =============================================================================


PUBLISHED_STATUSES: frozenset[AlertStatus] = frozenset({
    AlertStatus.NEW,
    AlertStatus.ACKNOWLEDGED,
    AlertStatus.IN_PROGRESS,
    AlertStatus.RESOLVED,
})

STATUS_UPDATE_TARGETS: frozenset[AlertStatus] = frozenset({
    AlertStatus.ACKNOWLEDGED,
    AlertStatus.IN_PROGRESS,
    AlertStatus.RESOLVED,
    AlertStatus.DRAFT,
})

# Edges reachable through each operation
PUBLISH_EDGES = {AlertStatus.DRAFT: frozenset({AlertStatus.NEW})}
DISMISS_EDGES = {AlertStatus.DRAFT: frozenset({AlertStatus.DISMISSED})}
RESTORE_EDGES = {AlertStatus.DISMISSED: frozenset({AlertStatus.DRAFT})}
STATUS_UPDATE_EDGES = {status: STATUS_UPDATE_TARGETS for status in PUBLISHED_STATUSES}

ALLOWED_TRANSITIONS: dict[AlertStatus, frozenset[AlertStatus]] = {
    AlertStatus.DRAFT: frozenset({AlertStatus.NEW, AlertStatus.DISMISSED}),
    AlertStatus.DISMISSED: frozenset({AlertStatus.DRAFT}),
    **STATUS_UPDATE_EDGES,
}


def is_allowed_transition(
    current: AlertStatus,
    requested: AlertStatus,
    edges: Mapping[AlertStatus, frozenset[AlertStatus]] = ALLOWED_TRANSITIONS,
) -> bool:
    return requested in edges.get(current, frozenset())


def apply_transition(
    alert: RegulatoryAlert,
    requested: AlertStatus,
    edges: Mapping[AlertStatus, frozenset[AlertStatus]] = ALLOWED_TRANSITIONS,
) -> AlertStatus:
    """Move an alert along one edge. Returns the previous status."""
    current = alert.status
    if not is_allowed_transition(current, requested, edges):
        raise InvalidTransitionError(current, requested)
    alert.status = requested
    alert.version += 1
    return current


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class AffectedClientInput:
    """One entry of an affected-client set as submitted by an analyst."""
    organization_id: UUID
    risk: RiskLevel = RiskLevel.MEDIUM
    reason: str | None = None
    comment: str | None = None


@dataclass
class ClientAlertView:
    """A published alert as seen by one affected organization."""
    affected_client_id: UUID
    alert: RegulatoryAlert
    risk: RiskLevel
    reason: str | None
    comment: str | None
    actions: list[ClientAction]

    @property
    def is_new(self) -> bool:
        return self.alert.status == AlertStatus.NEW


# =============================================================================
# TRANSACTION HELPER
# =============================================================================


@asynccontextmanager
async def store_guard(session: AsyncSession, operation: str) -> AsyncIterator[None]:
    """
    Run a block of writes so that a store failure rolls back everything.

    Flushes at the end of the block; any SQLAlchemyError (during the block or
    the flush) rolls the transaction back and surfaces as StoreUnavailableError.
    """
    try:
        yield
        await session.flush()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"{operation} failed, transaction rolled back: {e}")
        raise StoreUnavailableError(f"{operation} failed: {e}") from e


# =============================================================================
# ALERT STORE
# =============================================================================


class AlertStore:
    """Persistence operations on alerts and their affected-client sets."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_alert(
        self,
        alert_id: UUID,
        for_update: bool = False,
    ) -> RegulatoryAlert:
        """
        Load an alert with action items and affected clients.

        for_update=True takes a row lock on the alert, serializing writers of
        the same alert until the transaction ends.
        """
        query = (
            select(RegulatoryAlert)
            .where(RegulatoryAlert.id == alert_id)
            .options(
                selectinload(RegulatoryAlert.action_items),
                selectinload(RegulatoryAlert.affected_clients).options(
                    selectinload(AffectedClientLink.organization),
                    selectinload(AffectedClientLink.alert),
                ),
            )
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()

        result = await self._session.execute(query)
        alert = result.scalar_one_or_none()

        if not alert:
            raise AlertNotFoundError(f"Alert {alert_id} not found")

        return alert

    async def replace_affected_clients(
        self,
        alert: RegulatoryAlert,
        clients: Iterable[AffectedClientInput],
        mirror_staging: bool,
    ) -> list[AffectedClientLink]:
        """
        Replace the whole affected-client set of an alert.

        Deletes every existing link, then inserts the given set. With
        mirror_staging the submitted values are copied into the ai_* columns
        too, so a re-opened draft shows the last saved state as its suggestion.
        The caller must hold the alert lock, run this inside store_guard and
        reload the alert afterwards to see the new set.
        """
        clients = list(clients)
        validate_affected_clients(clients)

        await self._session.execute(
            delete(AffectedClientLink).where(AffectedClientLink.alert_id == alert.id)
        )

        links = []
        for client in clients:
            link = AffectedClientLink(
                alert_id=alert.id,
                organization_id=client.organization_id,
                risk=client.risk,
                reason=client.reason,
                comment=client.comment,
            )
            if mirror_staging:
                link.ai_risk = client.risk
                link.ai_reason = client.reason
                link.ai_comment = client.comment
            links.append(link)

        self._session.add_all(links)
        await self._session.flush()

        return links

    # =========================================================================
    # READ QUERIES
    # =========================================================================

    async def list_alerts(
        self,
        statuses: Iterable[AlertStatus] | None = None,
    ) -> list[RegulatoryAlert]:
        """Alerts with their collections, newest first."""
        query = select(RegulatoryAlert).options(
            selectinload(RegulatoryAlert.action_items),
            selectinload(RegulatoryAlert.affected_clients).options(
                selectinload(AffectedClientLink.organization),
                selectinload(AffectedClientLink.alert),
            ),
        )
        if statuses is not None:
            query = query.where(RegulatoryAlert.status.in_(list(statuses)))

        query = query.order_by(RegulatoryAlert.created_at.desc())
        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def list_client_alerts(self, organization_id: UUID) -> list[ClientAlertView]:
        """Published alerts affecting one organization, newest first."""
        query = (
            select(AffectedClientLink)
            .join(RegulatoryAlert, AffectedClientLink.alert_id == RegulatoryAlert.id)
            .where(
                AffectedClientLink.organization_id == organization_id,
                RegulatoryAlert.status.in_(list(PUBLISHED_STATUSES)),
            )
            .options(
                selectinload(AffectedClientLink.alert),
                selectinload(AffectedClientLink.actions),
            )
            .order_by(AffectedClientLink.created_at.desc())
        )
        result = await self._session.execute(query)

        return [
            ClientAlertView(
                affected_client_id=link.id,
                alert=link.alert,
                risk=link.risk,
                reason=link.reason,
                comment=link.comment,
                actions=list(link.actions),
            )
            for link in result.scalars().all()
        ]


def validate_affected_clients(clients: list[AffectedClientInput]) -> None:
    """An affected-client set names each organization at most once."""
    seen: set[UUID] = set()
    duplicates = []
    for client in clients:
        if client.organization_id in seen:
            duplicates.append(str(client.organization_id))
        seen.add(client.organization_id)

    if duplicates:
        raise ValidationFailedError(
            f"Organizations listed more than once: {', '.join(duplicates)}",
            fields=["affected_clients"],
        )


def check_expected_version(alert: RegulatoryAlert, expected_version: int | None) -> None:
    """Optimistic locking for concurrent editors."""
    if expected_version is not None and alert.version != expected_version:
        raise ConcurrencyError(
            f"Version mismatch: expected v{expected_version}, "
            f"but current is v{alert.version}. "
            "The alert was modified by another user."
        )
