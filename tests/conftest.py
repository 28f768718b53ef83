"""
Shared fixtures: an in-memory SQLite database, a seeded client directory
and a scripted message transport.

Directory seeded for every test:
- org_a "Treuhand Alpha AG": alice + andreas receive alerts, carla opted out
- org_b "Beta Vermögensverwaltung": bruno receives alerts
- org_empty "Gamma Family Office": no members at all
- staff: compliance analyst, member of no organization
"""

import asyncio

import pytest
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from compliance_alerts.models import Base, Organization, OrganizationMember, Severity, User
from compliance_alerts.services import (
    AlertFields,
    DeliveryFailedError,
    DispatchConfig,
    DraftAuthoringService,
    MessageTransport,
    NotificationDispatcher,
    OutboundMessage,
    PublicationService,
)


# =============================================================================
# FAKE TRANSPORT
# =============================================================================


class FakeTransport(MessageTransport):
    """Records messages; fails or hangs for chosen addresses."""

    def __init__(self):
        self.sent: list[OutboundMessage] = []
        self.attempts: list[OutboundMessage] = []
        self.fail_for: set[str] = set()
        self.hang_for: set[str] = set()
        self.in_flight = 0
        self.max_in_flight = 0

    async def send(self, message: OutboundMessage) -> None:
        self.attempts.append(message)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if message.to in self.hang_for:
                await asyncio.sleep(3600)
            await asyncio.sleep(0.01)
            if message.to in self.fail_for:
                raise DeliveryFailedError(f"Mailbox unavailable: {message.to}")
            self.sent.append(message)
        finally:
            self.in_flight -= 1

    def recipients(self) -> list[str]:
        return sorted(m.to for m in self.sent)


# =============================================================================
# DATABASE
# =============================================================================


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine) -> AsyncSession:
    factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        yield session


# =============================================================================
# DIRECTORY
# =============================================================================


async def _add_org(session: AsyncSession, slug: str, name: str, members: list[tuple[str, str, bool]]):
    org = Organization(slug=slug, name=name)
    session.add(org)
    await session.flush()
    for email, person, receives_alerts in members:
        user = User(email=email, name=person)
        session.add(user)
        await session.flush()
        session.add(OrganizationMember(
            organization_id=org.id,
            user_id=user.id,
            receives_alerts=receives_alerts,
        ))
    await session.flush()
    return org


@pytest.fixture
async def org_a(session) -> Organization:
    return await _add_org(session, "alpha", "Treuhand Alpha AG", [
        ("alice@alpha.ch", "Alice Keller", True),
        ("andreas@alpha.ch", "Andreas Meier", True),
        ("carla@alpha.ch", "Carla Huber", False),
    ])


@pytest.fixture
async def org_b(session) -> Organization:
    return await _add_org(session, "beta", "Beta Vermögensverwaltung", [
        ("bruno@beta.ch", None, True),
    ])


@pytest.fixture
async def org_empty(session) -> Organization:
    return await _add_org(session, "gamma", "Gamma Family Office", [])


@pytest.fixture
async def staff(session) -> User:
    user = User(email="elena@compliance.ch", name="Elena Frei", is_staff=True)
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
async def alice(session, org_a) -> User:
    result = await session.execute(select(User).where(User.email == "alice@alpha.ch"))
    return result.scalar_one()


# =============================================================================
# SERVICES
# =============================================================================


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def dispatch_config() -> DispatchConfig:
    return DispatchConfig(concurrency=2, send_timeout_seconds=0.2, portal_url="https://portal.test")


@pytest.fixture
def dispatcher(session, transport, dispatch_config) -> NotificationDispatcher:
    return NotificationDispatcher(session, transport=transport, config=dispatch_config)


@pytest.fixture
def authoring(session) -> DraftAuthoringService:
    return DraftAuthoringService(session)


@pytest.fixture
def publication(session, dispatcher) -> PublicationService:
    return PublicationService(session, dispatcher=dispatcher)


@pytest.fixture
def complete_fields() -> AlertFields:
    """Every field required for publication."""
    return AlertFields(
        category="Geldwäscherei",
        summary="Die Revision des GwG verschärft die Sorgfaltspflichten.",
        legal_basis="GwG Art. 3-8",
        deadline="01.01.2026",
        severity=Severity.CRITICAL,
    )
