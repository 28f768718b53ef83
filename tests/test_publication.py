"""
Tests for publishing.

These tests verify:
1. Publish commits fields, status and the final affected-client set atomically
2. Dispatch runs after the commit and only reaches the final set
3. Missing required fields or a non-draft reject the publish without writing
4. A dispatch crash never un-publishes the alert
5. A store failure mid-publish leaves the draft and its previous set
"""

from uuid import uuid4

import pytest
from sqlalchemy import func, select

from compliance_alerts.models import (
    AlertStatus,
    NotificationLogEntry,
    NotificationStatus,
    RiskLevel,
    Severity,
)
from compliance_alerts.services import (
    AffectedClientInput,
    AlertFields,
    AlertStore,
    ConcurrencyError,
    CreateAlertInput,
    InvalidTransitionError,
    NotificationDispatcher,
    PublicationService,
    RecipientDirectory,
    StoreUnavailableError,
    SuggestionInput,
    ValidationFailedError,
)


class BrokenDirectory(RecipientDirectory):
    """Directory whose backend is down."""

    async def resolve(self, organization_id):
        raise RuntimeError("directory backend unreachable")


# =============================================================================
# TEST: PUBLISH
# =============================================================================


class TestPublish:
    """Taking a draft live."""

    async def test_publish_and_notify(
        self,
        session,
        authoring,
        publication,
        transport,
        org_a,
        org_b,
        complete_fields,
    ):
        """Scenario A: two organizations, three receiving members in total."""
        alert = await authoring.create_alert(CreateAlertInput(title="GwG-Revision"))

        result = await publication.publish(
            alert.id,
            complete_fields,
            [
                AffectedClientInput(org_a.id, RiskLevel.HIGH, "Treuhänder mit Domizilgesellschaften"),
                AffectedClientInput(org_b.id, RiskLevel.MEDIUM),
            ],
        )

        assert result.alert.status == AlertStatus.NEW
        assert result.alert.severity == Severity.CRITICAL
        assert result.alert.version == 2
        assert result.dispatch is not None
        assert result.dispatch.sent + result.dispatch.errors == 3
        assert result.dispatch.counts() == {"sent": 3, "errors": 0}
        assert transport.recipients() == ["alice@alpha.ch", "andreas@alpha.ch", "bruno@beta.ch"]

        statuses = {c.organization_id: c.notification_status for c in result.alert.affected_clients}
        assert statuses == {org_a.id: NotificationStatus.SENT, org_b.id: NotificationStatus.SENT}
        assert all(c.notified_at is not None for c in result.alert.affected_clients)

        log_rows = await session.scalar(
            select(func.count()).select_from(NotificationLogEntry).where(
                NotificationLogEntry.alert_id == alert.id
            )
        )
        assert log_rows == 3

    async def test_only_the_final_set_is_notified(
        self,
        authoring,
        publication,
        transport,
        org_a,
        org_b,
        complete_fields,
    ):
        alert = await authoring.create_alert(CreateAlertInput(title="Test"))
        await authoring.save_draft(alert.id, AlertFields(), [AffectedClientInput(org_a.id)])

        result = await publication.publish(alert.id, complete_fields, [AffectedClientInput(org_b.id)])

        assert [c.organization_id for c in result.alert.affected_clients] == [org_b.id]
        assert transport.recipients() == ["bruno@beta.ch"]

    async def test_fields_saved_earlier_count_as_present(
        self,
        authoring,
        publication,
        org_a,
        complete_fields,
    ):
        alert = await authoring.create_alert(CreateAlertInput(title="Test"))
        await authoring.save_draft(alert.id, complete_fields, [])

        result = await publication.publish(alert.id, AlertFields(), [AffectedClientInput(org_a.id)])

        assert result.alert.status == AlertStatus.NEW
        assert result.alert.summary == complete_fields.summary

    async def test_publish_without_clients_sends_nothing(
        self,
        authoring,
        publication,
        transport,
        complete_fields,
    ):
        alert = await authoring.create_alert(CreateAlertInput(title="Test"))

        result = await publication.publish(alert.id, complete_fields, [])

        assert result.alert.status == AlertStatus.NEW
        assert result.dispatch.counts() == {"sent": 0, "errors": 0}
        assert transport.attempts == []

    async def test_staging_is_not_mirrored_on_publish(self, authoring, publication, org_a, complete_fields):
        alert = await authoring.create_alert(CreateAlertInput(title="Test"))

        result = await publication.publish(
            alert.id,
            complete_fields,
            [AffectedClientInput(org_a.id, RiskLevel.HIGH, "Begründung")],
        )

        link = result.alert.affected_clients[0]
        assert link.reason == "Begründung"
        assert link.ai_reason is None

    async def test_unpromoted_source_url_is_not_sent(
        self,
        authoring,
        publication,
        transport,
        org_b,
        complete_fields,
    ):
        alert = await authoring.create_alert(CreateAlertInput(
            title="Test",
            suggestions=SuggestionInput(source_url="https://feed.example/staged-entry"),
        ))

        result = await publication.publish(alert.id, complete_fields, [AffectedClientInput(org_b.id)])

        assert result.alert.suggestions is None
        assert result.alert.source_link is None
        [message] = transport.sent
        assert "feed.example/staged-entry" not in message.html
        assert "Originalquelle ansehen" not in message.html

    async def test_source_link_is_sent(self, authoring, publication, transport, org_b, complete_fields):
        alert = await authoring.create_alert(CreateAlertInput(title="Test"))
        complete_fields.source_link = "https://www.fedlex.admin.ch/eli/cc/1998/892_892_892"

        await publication.publish(alert.id, complete_fields, [AffectedClientInput(org_b.id)])

        [message] = transport.sent
        assert "Originalquelle ansehen" in message.html
        assert "https://www.fedlex.admin.ch/eli/cc/1998/892_892_892" in message.html


# =============================================================================
# TEST: REJECTED PUBLISH
# =============================================================================


class TestPublishRejected:
    """Checks that keep an alert in draft."""

    async def test_missing_fields(self, authoring, publication, transport, org_a):
        alert = await authoring.create_alert(CreateAlertInput(title="Test", category="Datenschutz"))

        with pytest.raises(ValidationFailedError) as exc_info:
            await publication.publish(
                alert.id,
                AlertFields(summary="Zusammenfassung"),
                [AffectedClientInput(org_a.id)],
            )

        assert exc_info.value.fields == ["legal_basis", "deadline"]
        reloaded = await AlertStore(publication._session).get_alert(alert.id)
        assert reloaded.status == AlertStatus.DRAFT
        assert reloaded.summary is None
        assert reloaded.affected_clients == []
        assert reloaded.version == 1
        assert transport.attempts == []

    async def test_blank_text_counts_as_missing(self, authoring, publication, complete_fields):
        alert = await authoring.create_alert(CreateAlertInput(title="Test"))
        complete_fields.deadline = "   "

        with pytest.raises(ValidationFailedError) as exc_info:
            await publication.publish(alert.id, complete_fields, [])

        assert exc_info.value.fields == ["deadline"]

    @pytest.mark.parametrize("operation", ["publish_twice", "dismissed"])
    async def test_non_draft(self, authoring, publication, transport, org_a, complete_fields, operation):
        alert = await authoring.create_alert(CreateAlertInput(title="Test"))
        if operation == "publish_twice":
            await publication.publish(alert.id, complete_fields, [AffectedClientInput(org_a.id)])
        else:
            await publication.dismiss(alert.id)
        attempts = len(transport.attempts)

        with pytest.raises(InvalidTransitionError):
            await publication.publish(alert.id, complete_fields, [AffectedClientInput(org_a.id)])

        assert len(transport.attempts) == attempts

    async def test_stale_version(self, authoring, publication, org_a, complete_fields):
        alert = await authoring.create_alert(CreateAlertInput(title="Test"))
        await authoring.save_draft(alert.id, AlertFields(), [])

        with pytest.raises(ConcurrencyError):
            await publication.publish(
                alert.id,
                complete_fields,
                [AffectedClientInput(org_a.id)],
                expected_version=1,
            )

        reloaded = await AlertStore(publication._session).get_alert(alert.id)
        assert reloaded.status == AlertStatus.DRAFT

    async def test_duplicate_organization(self, authoring, publication, org_a, complete_fields):
        alert = await authoring.create_alert(CreateAlertInput(title="Test"))

        with pytest.raises(ValidationFailedError):
            await publication.publish(
                alert.id,
                complete_fields,
                [AffectedClientInput(org_a.id), AffectedClientInput(org_a.id)],
            )

    async def test_non_draft_reported_before_duplicates(self, authoring, publication, org_a, complete_fields):
        alert = await authoring.create_alert(CreateAlertInput(title="Test"))
        await publication.publish(alert.id, complete_fields, [AffectedClientInput(org_a.id)])

        with pytest.raises(InvalidTransitionError):
            await publication.publish(
                alert.id,
                complete_fields,
                [AffectedClientInput(org_a.id), AffectedClientInput(org_a.id)],
            )

    async def test_store_failure_keeps_draft_and_previous_set(
        self,
        session,
        authoring,
        publication,
        transport,
        org_a,
        org_b,
        complete_fields,
    ):
        alert = await authoring.create_alert(CreateAlertInput(title="Test"))
        alert_id = alert.id
        org_a_id, org_b_id = org_a.id, org_b.id
        await authoring.save_draft(alert_id, AlertFields(), [AffectedClientInput(org_a_id)])
        await session.commit()

        # Unknown organization violates the foreign key after the old set was deleted
        with pytest.raises(StoreUnavailableError):
            await publication.publish(
                alert_id,
                complete_fields,
                [AffectedClientInput(org_b_id), AffectedClientInput(uuid4())],
            )

        reloaded = await AlertStore(session).get_alert(alert_id)
        assert reloaded.status == AlertStatus.DRAFT
        assert reloaded.summary is None
        assert [c.organization_id for c in reloaded.affected_clients] == [org_a_id]
        assert reloaded.version == 2
        assert transport.attempts == []


# =============================================================================
# TEST: DISPATCH FAILURE AFTER PUBLISH
# =============================================================================


class TestDispatchFailure:
    """Publication stands even when notification cannot run."""

    async def test_crashing_dispatch_keeps_alert_published(
        self,
        session,
        authoring,
        transport,
        dispatch_config,
        org_a,
        complete_fields,
    ):
        dispatcher = NotificationDispatcher(
            session,
            transport=transport,
            directory=BrokenDirectory(),
            config=dispatch_config,
        )
        publication = PublicationService(session, dispatcher=dispatcher)
        alert = await authoring.create_alert(CreateAlertInput(title="Test"))
        alert_id, org_id = alert.id, org_a.id

        result = await publication.publish(alert_id, complete_fields, [AffectedClientInput(org_id)])

        assert result.dispatch is None
        assert result.alert.status == AlertStatus.NEW
        assert [c.organization_id for c in result.alert.affected_clients] == [org_id]
        assert result.alert.affected_clients[0].notification_status is None
        assert transport.attempts == []

    async def test_failed_deliveries_do_not_fail_publish(
        self,
        authoring,
        publication,
        transport,
        org_a,
        complete_fields,
    ):
        transport.fail_for = {"alice@alpha.ch", "andreas@alpha.ch"}
        alert = await authoring.create_alert(CreateAlertInput(title="Test"))

        result = await publication.publish(alert.id, complete_fields, [AffectedClientInput(org_a.id)])

        assert result.alert.status == AlertStatus.NEW
        assert result.dispatch.counts() == {"sent": 0, "errors": 2}
        assert result.alert.affected_clients[0].notification_status == NotificationStatus.FAILED
