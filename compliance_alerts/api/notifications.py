"""In-app notification routes for the current user."""

from uuid import UUID

from fastapi import APIRouter

from ..core import CurrentUserDep, SessionDep
from ..schemas import NotificationResponse
from ..services import AlertError, NotificationInbox
from .common import http_error

router = APIRouter(prefix="/me/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_my_notifications(
    current_user: CurrentUserDep,
    session: SessionDep,
    unread_only: bool = False,
):
    notifications = await NotificationInbox(session).list_for_user(
        current_user.id, unread_only=unread_only
    )
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: UUID,
    current_user: CurrentUserDep,
    session: SessionDep,
):
    try:
        notification = await NotificationInbox(session).mark_read(notification_id, current_user.id)
    except AlertError as e:
        raise http_error(e)
    return NotificationResponse.model_validate(notification)
