"""Shared route helpers: service dependencies and error translation."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status

from ..core import CurrentUser, SessionDep
from ..services import (
    AlertError,
    ConcurrencyError,
    InvalidOperationError,
    InvalidTransitionError,
    MessageTransport,
    NotDraftError,
    NotFoundError,
    NotificationDispatcher,
    NotPublishedError,
    StoreUnavailableError,
    ValidationFailedError,
    get_transport,
)

# Exception type -> HTTP status, most specific first
ERROR_STATUS_CODES: list[tuple[type[AlertError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (NotDraftError, status.HTTP_409_CONFLICT),
    (NotPublishedError, status.HTTP_409_CONFLICT),
    (InvalidOperationError, status.HTTP_409_CONFLICT),
    (ConcurrencyError, status.HTTP_409_CONFLICT),
    (ValidationFailedError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (StoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def http_error(error: AlertError) -> HTTPException:
    """Translate a service exception into the HTTP error the client sees."""
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            break
    else:
        status_code = status.HTTP_400_BAD_REQUEST

    if isinstance(error, ValidationFailedError) and error.fields:
        return HTTPException(
            status_code=status_code,
            detail={"message": str(error), "fields": error.fields},
        )
    return HTTPException(status_code=status_code, detail=str(error))


def ensure_organization_access(current_user: CurrentUser, organization_id: UUID) -> None:
    if not current_user.can_access_organization(organization_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not a member of this organization",
        )


# =============================================================================
# DEPENDENCIES
# =============================================================================


async def get_message_transport() -> AsyncGenerator[MessageTransport, None]:
    transport = get_transport()
    try:
        yield transport
    finally:
        await transport.close()


TransportDep = Annotated[MessageTransport, Depends(get_message_transport)]


def get_dispatcher(session: SessionDep, transport: TransportDep) -> NotificationDispatcher:
    return NotificationDispatcher(session, transport=transport)


DispatcherDep = Annotated[NotificationDispatcher, Depends(get_dispatcher)]
