"""
Draft Authoring Service: creating alerts and editing them while they are drafts.

Feed ingestion and analysts both create alerts here. Ingestion additionally
seeds the staging (ai_*) columns, which the analyst can promote into the
authoritative fields. Every save replaces the whole affected-client set.
"""

import logging
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from datetime import date as date_type
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import get_settings
from ..models import AlertStatus, RegulatoryAlert, Severity
from .alert_store import (
    AffectedClientInput,
    AlertStore,
    NotDraftError,
    ValidationFailedError,
    check_expected_version,
    store_guard,
    validate_affected_clients,
)

logger = logging.getLogger(__name__)


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class AlertFields:
    """Authoritative alert fields. None leaves the current value unchanged."""
    title: str | None = None
    source: str | None = None
    jurisdiction: str | None = None
    date: date_type | None = None
    category: str | None = None
    summary: str | None = None
    legal_basis: str | None = None
    deadline: str | None = None
    comment: str | None = None
    source_link: str | None = None
    severity: Severity | None = None

    def changes(self) -> dict:
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass
class SuggestionInput:
    """Staging values seeded by feed ingestion."""
    summary: str | None = None
    legal_basis: str | None = None
    severity: Severity | None = None
    category: str | None = None
    comment: str | None = None
    feed_entry_id: str | None = None
    source_url: str | None = None


@dataclass
class CreateAlertInput:
    """Input for creating a new draft alert."""
    title: str
    source: str | None = None
    jurisdiction: str | None = None
    date: date_type | None = None
    category: str | None = None
    summary: str | None = None
    legal_basis: str | None = None
    deadline: str | None = None
    comment: str | None = None
    source_link: str | None = None
    severity: Severity | None = None
    suggestions: SuggestionInput | None = None


# Authoritative field -> staging column
PROMOTABLE_FIELDS = {
    "summary": "ai_summary",
    "legal_basis": "ai_legal_basis",
    "severity": "ai_severity",
    "category": "ai_category",
    "comment": "ai_comment",
    "source_link": "source_url",
}


def apply_fields(alert: RegulatoryAlert, fields: AlertFields) -> None:
    changes = fields.changes()
    if "title" in changes and not changes["title"].strip():
        raise ValidationFailedError("Title must not be empty", fields=["title"])
    for key, value in changes.items():
        setattr(alert, key, value)


# =============================================================================
# DRAFT AUTHORING SERVICE
# =============================================================================


class DraftAuthoringService:
    """Creates drafts and persists analyst edits."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._store = AlertStore(session)

    async def create_alert(
        self,
        data: CreateAlertInput,
        created_by: UUID | None = None,
    ) -> RegulatoryAlert:
        """
        Insert a new alert. Status is always draft, whatever the caller sends.

        Jurisdiction falls back to the configured home jurisdiction, severity
        to medium.
        """
        if not data.title or not data.title.strip():
            raise ValidationFailedError("Title must not be empty", fields=["title"])

        suggestions = data.suggestions or SuggestionInput()

        alert = RegulatoryAlert(
            title=data.title.strip(),
            source=data.source,
            jurisdiction=data.jurisdiction or get_settings().home_jurisdiction,
            date=data.date,
            category=data.category,
            summary=data.summary,
            legal_basis=data.legal_basis,
            deadline=data.deadline,
            comment=data.comment,
            source_link=data.source_link,
            severity=data.severity or Severity.MEDIUM,
            status=AlertStatus.DRAFT,
            version=1,
            created_by=created_by,
            ai_summary=suggestions.summary,
            ai_legal_basis=suggestions.legal_basis,
            ai_severity=suggestions.severity,
            ai_category=suggestions.category,
            ai_comment=suggestions.comment,
            feed_entry_id=suggestions.feed_entry_id,
            source_url=suggestions.source_url,
        )

        async with store_guard(self._session, "Create alert"):
            self._session.add(alert)

        logger.info(f"Created draft alert {alert.id}: {alert.title}")
        return await self._store.get_alert(alert.id)

    async def save_draft(
        self,
        alert_id: UUID,
        fields: AlertFields,
        affected_clients: Iterable[AffectedClientInput],
        expected_version: int | None = None,
    ) -> RegulatoryAlert:
        """
        Update a draft and replace its affected-client set.

        The submitted client values are mirrored into the staging columns so a
        re-opened edit session starts from the last saved state.

        Raises:
            AlertNotFoundError: alert does not exist
            NotDraftError: alert has left draft
            ConcurrencyError: expected_version does not match
            ValidationFailedError: empty title or duplicate organization
        """
        clients = list(affected_clients)

        async with store_guard(self._session, f"Save draft {alert_id}"):
            alert = await self._store.get_alert(alert_id, for_update=True)
            if not alert.is_draft:
                raise NotDraftError(
                    f"Alert {alert_id} is '{alert.status.value}', only drafts can be edited"
                )
            check_expected_version(alert, expected_version)
            validate_affected_clients(clients)

            apply_fields(alert, fields)
            await self._store.replace_affected_clients(alert, clients, mirror_staging=True)
            alert.version += 1

        logger.info(f"Saved draft {alert_id} with {len(clients)} affected client(s)")
        return await self._store.get_alert(alert_id)

    async def promote_suggestions(
        self,
        alert_id: UUID,
        fields: Iterable[str] | None = None,
    ) -> RegulatoryAlert:
        """
        Copy staged suggestions into the authoritative fields of a draft.

        With `fields`, exactly those are promoted (where a suggestion exists).
        Without, every empty text field that has a suggestion is filled in.
        """
        requested = list(fields) if fields is not None else None
        if requested is not None:
            unknown = [name for name in requested if name not in PROMOTABLE_FIELDS]
            if unknown:
                raise ValidationFailedError(
                    f"Fields cannot be promoted: {', '.join(unknown)}", fields=unknown
                )

        async with store_guard(self._session, f"Promote suggestions of {alert_id}"):
            alert = await self._store.get_alert(alert_id, for_update=True)
            if not alert.is_draft:
                raise NotDraftError(
                    f"Alert {alert_id} is '{alert.status.value}', suggestions are no longer available"
                )

            promoted = []
            for name, staging in PROMOTABLE_FIELDS.items():
                suggested = getattr(alert, staging)
                if suggested is None:
                    continue
                if requested is not None:
                    if name not in requested:
                        continue
                elif name == "severity" or getattr(alert, name):
                    continue
                setattr(alert, name, suggested)
                promoted.append(name)

            if promoted:
                alert.version += 1

        logger.info(f"Promoted suggestions on alert {alert_id}: {', '.join(promoted) or 'none'}")
        return await self._store.get_alert(alert_id)
