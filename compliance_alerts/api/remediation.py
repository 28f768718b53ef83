"""Remediation API Routes: action items, client actions and their comments."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from ..core import CurrentUserDep, SessionDep, StaffDep
from ..schemas import (
    ActionItemCreate,
    ActionItemPatch,
    ActionItemResponse,
    ClientActionCreate,
    ClientActionResponse,
    ClientActionStatusUpdate,
    CommentCreate,
    CommentResponse,
    OrganizationActionsResponse,
)
from ..services import (
    ActionItemInput,
    ActionItemUpdate,
    AlertError,
    RemediationTracker,
)
from .common import ensure_organization_access, http_error

router = APIRouter(tags=["remediation"])


def get_tracker(session: SessionDep) -> RemediationTracker:
    return RemediationTracker(session)


TrackerDep = Annotated[RemediationTracker, Depends(get_tracker)]


async def _check_action_access(tracker: RemediationTracker, action_id: UUID, current_user) -> None:
    try:
        action = await tracker.get_client_action(action_id)
    except AlertError as e:
        raise http_error(e)
    ensure_organization_access(current_user, action.affected_client.organization_id)


# =============================================================================
# ACTION ITEMS
# =============================================================================


@router.post(
    "/alerts/{alert_id}/action-items",
    response_model=ActionItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add an internal action item",
)
async def add_action_item(
    alert_id: UUID,
    request: ActionItemCreate,
    current_user: StaffDep,
    tracker: TrackerDep,
):
    try:
        item = await tracker.add_action_item(
            alert_id,
            ActionItemInput(text=request.text, priority=request.priority, due=request.due),
        )
    except AlertError as e:
        raise http_error(e)
    return ActionItemResponse.model_validate(item)


@router.patch(
    "/action-items/{item_id}",
    response_model=ActionItemResponse,
    summary="Update an action item",
)
async def update_action_item(
    item_id: UUID,
    request: ActionItemPatch,
    current_user: StaffDep,
    tracker: TrackerDep,
):
    try:
        item = await tracker.update_action_item(
            item_id,
            ActionItemUpdate(
                text=request.text,
                priority=request.priority,
                due=request.due,
                status=request.status,
            ),
        )
    except AlertError as e:
        raise http_error(e)
    return ActionItemResponse.model_validate(item)


@router.delete(
    "/action-items/{item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an action item",
)
async def delete_action_item(item_id: UUID, current_user: StaffDep, tracker: TrackerDep):
    try:
        await tracker.delete_action_item(item_id)
    except AlertError as e:
        raise http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# CLIENT ACTIONS
# =============================================================================


@router.post(
    "/affected-clients/{affected_client_id}/actions",
    response_model=ClientActionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a client action",
)
async def add_client_action(
    affected_client_id: UUID,
    request: ClientActionCreate,
    current_user: StaffDep,
    tracker: TrackerDep,
):
    try:
        action = await tracker.add_client_action(
            affected_client_id,
            request.text,
            due=request.due,
            due_date=request.due_date,
        )
    except AlertError as e:
        raise http_error(e)
    return ClientActionResponse.model_validate(action)


@router.get(
    "/alerts/{alert_id}/client-actions",
    response_model=list[OrganizationActionsResponse],
    summary="Client actions grouped by organization",
)
async def list_client_actions(alert_id: UUID, current_user: StaffDep, tracker: TrackerDep):
    try:
        groups = await tracker.list_client_actions_by_organization(alert_id)
    except AlertError as e:
        raise http_error(e)
    return [OrganizationActionsResponse.model_validate(g) for g in groups]


@router.patch(
    "/client-actions/{action_id}/status",
    response_model=ClientActionResponse,
    summary="Change a client action's status",
    description="Every call appends a system comment to the action's audit trail.",
)
async def update_client_action_status(
    action_id: UUID,
    request: ClientActionStatusUpdate,
    current_user: CurrentUserDep,
    tracker: TrackerDep,
):
    await _check_action_access(tracker, action_id, current_user)
    try:
        action = await tracker.update_client_action_status(
            action_id, request.status, user_id=current_user.id
        )
    except AlertError as e:
        raise http_error(e)
    return ClientActionResponse.model_validate(action)


# =============================================================================
# COMMENTS
# =============================================================================


@router.get(
    "/client-actions/{action_id}/comments",
    response_model=list[CommentResponse],
    summary="Comment trail of a client action",
)
async def list_comments(action_id: UUID, current_user: CurrentUserDep, tracker: TrackerDep):
    await _check_action_access(tracker, action_id, current_user)
    try:
        comments = await tracker.list_comments(action_id)
    except AlertError as e:
        raise http_error(e)
    return [CommentResponse.model_validate(c) for c in comments]


@router.post(
    "/client-actions/{action_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Comment on a client action",
)
async def add_comment(
    action_id: UUID,
    request: CommentCreate,
    current_user: CurrentUserDep,
    tracker: TrackerDep,
):
    await _check_action_access(tracker, action_id, current_user)
    try:
        comment = await tracker.add_comment(action_id, current_user.id, request.text)
    except AlertError as e:
        raise http_error(e)

    response = CommentResponse.model_validate(comment)
    response.author_name = current_user.user.name
    return response


@router.delete(
    "/comments/{comment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete your own comment",
)
async def delete_comment(comment_id: UUID, current_user: CurrentUserDep, tracker: TrackerDep):
    try:
        await tracker.delete_comment(comment_id, current_user.id)
    except AlertError as e:
        raise http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
