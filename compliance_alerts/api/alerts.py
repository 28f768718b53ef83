"""
Alert API Routes: authoring, publication, lifecycle and dispatch.

Flows:
1. POST /alerts                        - create a draft
2. PUT  /alerts/{id}/draft             - save fields + replace affected clients
3. POST /alerts/{id}/publish           - go live, then notify affected clients
4. POST /alerts/{id}/dispatch|resend   - notify (again)
5. GET  /organizations/{id}/alerts     - client portal view
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..core import CurrentUserDep, SessionDep, StaffDep
from ..models import AlertStatus
from ..schemas import (
    AlertCreate,
    AlertFieldsIn,
    AlertResponse,
    AlertStatusUpdate,
    ClientAlertResponse,
    ClientActionResponse,
    DispatchSummaryResponse,
    DraftSaveRequest,
    NotificationLogEntryResponse,
    PromoteSuggestionsRequest,
    PublishRequest,
    PublishResponse,
)
from ..services import (
    AffectedClientInput,
    AlertError,
    AlertFields,
    AlertStore,
    ClientAlertView,
    CreateAlertInput,
    DraftAuthoringService,
    PublicationService,
    SuggestionInput,
)
from .common import DispatcherDep, ensure_organization_access, http_error

router = APIRouter(prefix="/alerts", tags=["alerts"])
portal_router = APIRouter(prefix="/organizations", tags=["client portal"])


# =============================================================================
# DEPENDENCIES
# =============================================================================


def get_authoring_service(session: SessionDep) -> DraftAuthoringService:
    return DraftAuthoringService(session)


def get_publication_service(session: SessionDep, dispatcher: DispatcherDep) -> PublicationService:
    return PublicationService(session, dispatcher=dispatcher)


AuthoringDep = Annotated[DraftAuthoringService, Depends(get_authoring_service)]
PublicationDep = Annotated[PublicationService, Depends(get_publication_service)]


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def to_fields(request: AlertFieldsIn) -> AlertFields:
    return AlertFields(
        title=request.title,
        source=request.source,
        jurisdiction=request.jurisdiction,
        date=request.date,
        category=request.category,
        summary=request.summary,
        legal_basis=request.legal_basis,
        deadline=request.deadline,
        comment=request.comment,
        source_link=request.source_link,
        severity=request.severity,
    )


def to_clients(request: DraftSaveRequest) -> list[AffectedClientInput]:
    return [
        AffectedClientInput(
            organization_id=client.organization_id,
            risk=client.risk,
            reason=client.reason,
            comment=client.comment,
        )
        for client in request.affected_clients
    ]


def build_client_alert_response(view: ClientAlertView) -> ClientAlertResponse:
    alert = view.alert
    return ClientAlertResponse(
        affected_client_id=view.affected_client_id,
        alert_id=alert.id,
        title=alert.title,
        date=alert.date,
        category=alert.category,
        summary=alert.summary,
        legal_basis=alert.legal_basis,
        deadline=alert.deadline,
        severity=alert.severity,
        status=alert.status,
        risk=view.risk,
        reason=view.reason,
        comment=view.comment,
        is_new=view.is_new,
        actions=[ClientActionResponse.model_validate(a) for a in view.actions],
    )


# =============================================================================
# AUTHORING
# =============================================================================


@router.post(
    "",
    response_model=AlertResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a draft alert",
)
async def create_alert(
    request: AlertCreate,
    current_user: StaffDep,
    service: AuthoringDep,
):
    """Create a new alert. It always starts as a draft."""
    suggestions = None
    if request.suggestions:
        suggestions = SuggestionInput(**request.suggestions.model_dump())

    try:
        alert = await service.create_alert(
            CreateAlertInput(
                title=request.title,
                source=request.source,
                jurisdiction=request.jurisdiction,
                date=request.date,
                category=request.category,
                summary=request.summary,
                legal_basis=request.legal_basis,
                deadline=request.deadline,
                comment=request.comment,
                source_link=request.source_link,
                severity=request.severity,
                suggestions=suggestions,
            ),
            created_by=current_user.id,
        )
    except AlertError as e:
        raise http_error(e)

    return AlertResponse.model_validate(alert)


@router.get("", response_model=list[AlertResponse], summary="List alerts")
async def list_alerts(
    current_user: StaffDep,
    session: SessionDep,
    status_filter: Annotated[list[AlertStatus] | None, Query(alias="status")] = None,
):
    """Alerts newest first, optionally restricted to some statuses."""
    alerts = await AlertStore(session).list_alerts(status_filter)
    return [AlertResponse.model_validate(a) for a in alerts]


@router.get("/{alert_id}", response_model=AlertResponse, summary="Get one alert")
async def get_alert(alert_id: UUID, current_user: StaffDep, session: SessionDep):
    try:
        alert = await AlertStore(session).get_alert(alert_id)
    except AlertError as e:
        raise http_error(e)
    return AlertResponse.model_validate(alert)


@router.put(
    "/{alert_id}/draft",
    response_model=AlertResponse,
    summary="Save a draft",
    description="""
    Update the draft's fields and replace its affected-client set.

    The list of affected clients is a full snapshot: organizations left out
    are removed. Pass `expected_version` to get a 409 instead of overwriting
    a concurrent edit.
    """,
)
async def save_draft(
    alert_id: UUID,
    request: DraftSaveRequest,
    current_user: StaffDep,
    service: AuthoringDep,
):
    try:
        alert = await service.save_draft(
            alert_id,
            to_fields(request),
            to_clients(request),
            expected_version=request.expected_version,
        )
    except AlertError as e:
        raise http_error(e)
    return AlertResponse.model_validate(alert)


@router.post(
    "/{alert_id}/promote-suggestions",
    response_model=AlertResponse,
    summary="Adopt suggested values",
)
async def promote_suggestions(
    alert_id: UUID,
    request: PromoteSuggestionsRequest,
    current_user: StaffDep,
    service: AuthoringDep,
):
    try:
        alert = await service.promote_suggestions(alert_id, request.fields)
    except AlertError as e:
        raise http_error(e)
    return AlertResponse.model_validate(alert)


# =============================================================================
# LIFECYCLE
# =============================================================================


@router.post(
    "/{alert_id}/publish",
    response_model=PublishResponse,
    summary="Publish a draft",
    description="""
    Publish the alert and notify the affected clients.

    The publication is committed before notifications go out. `dispatch` is
    null if notifications could not be sent at all; use /resend later.
    """,
)
async def publish_alert(
    alert_id: UUID,
    request: PublishRequest,
    current_user: StaffDep,
    service: PublicationDep,
):
    try:
        result = await service.publish(
            alert_id,
            to_fields(request),
            to_clients(request),
            expected_version=request.expected_version,
        )
    except AlertError as e:
        raise http_error(e)

    return PublishResponse(
        alert=AlertResponse.model_validate(result.alert),
        dispatch=DispatchSummaryResponse.model_validate(result.dispatch) if result.dispatch else None,
    )


@router.post("/{alert_id}/dismiss", response_model=AlertResponse, summary="Dismiss a draft")
async def dismiss_alert(alert_id: UUID, current_user: StaffDep, service: PublicationDep):
    try:
        alert = await service.dismiss(alert_id)
    except AlertError as e:
        raise http_error(e)
    return AlertResponse.model_validate(alert)


@router.post("/{alert_id}/restore", response_model=AlertResponse, summary="Restore a dismissed alert")
async def restore_alert(alert_id: UUID, current_user: StaffDep, service: PublicationDep):
    try:
        alert = await service.restore(alert_id)
    except AlertError as e:
        raise http_error(e)
    return AlertResponse.model_validate(alert)


@router.patch("/{alert_id}/status", response_model=AlertResponse, summary="Change alert status")
async def update_alert_status(
    alert_id: UUID,
    request: AlertStatusUpdate,
    current_user: StaffDep,
    service: PublicationDep,
):
    """Manual status change on a published alert. Never sends notifications."""
    try:
        alert = await service.update_status(alert_id, request.status)
    except AlertError as e:
        raise http_error(e)
    return AlertResponse.model_validate(alert)


# =============================================================================
# DISPATCH
# =============================================================================


@router.post(
    "/{alert_id}/dispatch",
    response_model=DispatchSummaryResponse,
    summary="Notify affected clients",
)
async def dispatch_alert(alert_id: UUID, current_user: StaffDep, dispatcher: DispatcherDep):
    try:
        summary = await dispatcher.dispatch(alert_id)
    except AlertError as e:
        raise http_error(e)
    return DispatchSummaryResponse.model_validate(summary)


@router.post(
    "/{alert_id}/resend",
    response_model=DispatchSummaryResponse,
    summary="Notify affected clients again",
    description="Not de-duplicated: every recipient gets the message again.",
)
async def resend_alert(alert_id: UUID, current_user: StaffDep, dispatcher: DispatcherDep):
    try:
        summary = await dispatcher.resend(alert_id)
    except AlertError as e:
        raise http_error(e)
    return DispatchSummaryResponse.model_validate(summary)


@router.get(
    "/{alert_id}/notification-log",
    response_model=list[NotificationLogEntryResponse],
    summary="Delivery attempts",
)
async def get_notification_log(
    alert_id: UUID,
    current_user: StaffDep,
    dispatcher: DispatcherDep,
    organization_id: UUID | None = None,
):
    try:
        entries = await dispatcher.get_notification_log(alert_id, organization_id)
    except AlertError as e:
        raise http_error(e)
    return [NotificationLogEntryResponse.model_validate(e) for e in entries]


# =============================================================================
# CLIENT PORTAL
# =============================================================================


@portal_router.get(
    "/{organization_id}/alerts",
    response_model=list[ClientAlertResponse],
    summary="Published alerts affecting an organization",
)
async def list_client_alerts(
    organization_id: UUID,
    current_user: CurrentUserDep,
    session: SessionDep,
):
    ensure_organization_access(current_user, organization_id)
    views = await AlertStore(session).list_client_alerts(organization_id)
    return [build_client_alert_response(v) for v in views]
