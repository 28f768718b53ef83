"""Recipient directory: who gets notified for an organization."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import OrganizationMember, User


@dataclass(frozen=True)
class Recipient:
    """A notification-eligible contact."""
    email: str
    name: str | None = None
    user_id: UUID | None = None


class RecipientDirectory(ABC):
    """Resolves the current contacts of an organization."""

    @abstractmethod
    async def resolve(self, organization_id: UUID) -> list[Recipient]:
        """Return the organization's contacts; may be empty."""
        pass


class MemberRecipientDirectory(RecipientDirectory):
    """Members of the organization who opted in to regulatory alerts."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def resolve(self, organization_id: UUID) -> list[Recipient]:
        query = (
            select(User)
            .join(OrganizationMember, OrganizationMember.user_id == User.id)
            .where(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.receives_alerts.is_(True),
                User.deleted_at.is_(None),
            )
            .order_by(User.email)
        )
        result = await self._session.execute(query)

        recipients = []
        seen: set[str] = set()
        for user in result.scalars().all():
            email = (user.email or "").strip()
            if not email or email.lower() in seen:
                continue
            seen.add(email.lower())
            recipients.append(Recipient(email=email, name=user.name, user_id=user.id))

        return recipients
