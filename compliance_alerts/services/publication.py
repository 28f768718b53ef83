"""
Publication Service: takes a draft live and moves alerts through their lifecycle.

Publishing is "commit, then best-effort dispatch": the alert fields, the
status change and the final affected-client set are committed first. Only
then is the dispatcher invoked, in its own unit of work. Whatever happens
during dispatch, the publication stands; the caller gets the dispatch
summary, or None when dispatch could not run at all.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import AlertStatus, RegulatoryAlert
from .alert_store import (
    DISMISS_EDGES,
    PUBLISH_EDGES,
    RESTORE_EDGES,
    STATUS_UPDATE_EDGES,
    AffectedClientInput,
    AlertStore,
    InvalidTransitionError,
    ValidationFailedError,
    apply_transition,
    check_expected_version,
    is_allowed_transition,
    store_guard,
    validate_affected_clients,
)
from .authoring import AlertFields, apply_fields
from .dispatcher import DispatchSummary, NotificationDispatcher

logger = logging.getLogger(__name__)

REQUIRED_FOR_PUBLISH = ("title", "severity", "category", "legal_basis", "deadline", "summary")


@dataclass
class PublishResult:
    """Published alert plus the dispatch outcome (None if dispatch failed to run)."""
    alert: RegulatoryAlert
    dispatch: DispatchSummary | None


def missing_required_fields(alert: RegulatoryAlert, fields: AlertFields) -> list[str]:
    """Required fields that would still be empty after applying `fields`."""
    changes = fields.changes()
    missing = []
    for name in REQUIRED_FOR_PUBLISH:
        value = changes.get(name, getattr(alert, name))
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    return missing


class PublicationService:
    """Publish, dismiss, restore and status updates."""

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: NotificationDispatcher | None = None,
    ):
        self._session = session
        self._store = AlertStore(session)
        self._dispatcher = dispatcher or NotificationDispatcher(session)

    async def publish(
        self,
        alert_id: UUID,
        fields: AlertFields,
        affected_clients: Iterable[AffectedClientInput],
        expected_version: int | None = None,
    ) -> PublishResult:
        """
        Publish a draft: final fields, status new, final affected-client set.

        Nothing is written unless every check passes. The write is committed
        before dispatch starts, so the dispatcher always reads the new set.

        Raises:
            AlertNotFoundError: alert does not exist
            InvalidTransitionError: alert is not a draft
            ConcurrencyError: expected_version does not match
            ValidationFailedError: required field missing, or duplicate organization
        """
        clients = list(affected_clients)

        async with store_guard(self._session, f"Publish alert {alert_id}"):
            alert = await self._store.get_alert(alert_id, for_update=True)
            if not is_allowed_transition(alert.status, AlertStatus.NEW, PUBLISH_EDGES):
                raise InvalidTransitionError(alert.status, AlertStatus.NEW)
            check_expected_version(alert, expected_version)
            validate_affected_clients(clients)

            missing = missing_required_fields(alert, fields)
            if missing:
                raise ValidationFailedError(
                    f"Cannot publish, required fields missing: {', '.join(missing)}",
                    fields=missing,
                )

            apply_fields(alert, fields)
            apply_transition(alert, AlertStatus.NEW, PUBLISH_EDGES)
            await self._store.replace_affected_clients(alert, clients, mirror_staging=False)

        await self._session.commit()
        logger.info(f"Published alert {alert_id} to {len(clients)} affected client(s)")

        summary = await self._dispatch_after_publish(alert_id)
        alert = await self._store.get_alert(alert_id)
        return PublishResult(alert=alert, dispatch=summary)

    async def _dispatch_after_publish(self, alert_id: UUID) -> DispatchSummary | None:
        try:
            summary = await self._dispatcher.dispatch(alert_id)
            await self._session.commit()
            return summary
        except Exception as e:
            # Publication is already committed; the operator can resend later
            await self._session.rollback()
            logger.warning(
                f"Alert {alert_id} was published but notification dispatch failed: {e}",
                exc_info=True,
            )
            return None

    async def dismiss(self, alert_id: UUID) -> RegulatoryAlert:
        """Discard a draft without publishing it."""
        return await self._transition(alert_id, AlertStatus.DISMISSED, DISMISS_EDGES, "Dismissed")

    async def restore(self, alert_id: UUID) -> RegulatoryAlert:
        """Re-open a dismissed alert as a draft. Fields and clients are untouched."""
        return await self._transition(alert_id, AlertStatus.DRAFT, RESTORE_EDGES, "Restored")

    async def update_status(self, alert_id: UUID, new_status: AlertStatus) -> RegulatoryAlert:
        """
        Manual status change on a published alert.

        Moving back to draft is allowed and never notifies anyone.
        """
        return await self._transition(alert_id, new_status, STATUS_UPDATE_EDGES, "Status changed")

    async def _transition(
        self,
        alert_id: UUID,
        requested: AlertStatus,
        edges,
        action: str,
    ) -> RegulatoryAlert:
        async with store_guard(self._session, f"{action} alert {alert_id}"):
            alert = await self._store.get_alert(alert_id, for_update=True)
            previous = apply_transition(alert, requested, edges)

        logger.info(f"{action} alert {alert_id}: {previous.value} -> {requested.value}")
        return await self._store.get_alert(alert_id)
