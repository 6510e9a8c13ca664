"""Service test fixtures — async DB, seeded organization data, FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use the test session factory
    - db_manager patched so the readiness probe hits the test engine
    - app.state populated by hand (ASGITransport does not run the lifespan)
    - Outbound HTTP goes through httpx.MockTransport (external_http.routes)

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for repository and route tests
      (PostgreSQL-only SQL such as jsonb casts is not exercised here)
    - One `seed` fixture with two organizations so cross-tenant rules are always testable
"""

from dataclasses import dataclass
from datetime import datetime, timezone

import httpx
import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from httpx import ASGITransport, AsyncClient

from donor_crm.core.message_dedup import MessageDeduplicator
from donor_crm.db.base import Base
from donor_crm.infrastructure.crm_providers import build_default_registry
from donor_crm.infrastructure.database import get_db, DatabaseSessionManager
from donor_crm.models import (
    Donation, Donor, Organization, Project, Staff, StaffWhatsAppPhoneNumber,
)
import donor_crm.infrastructure.database as db_module
from donor_crm.main import app
from tests.services.mock_anthropic import MockAnthropicClient

ORG_ID = "org_hope"
OTHER_ORG_ID = "org_other"
STAFF_PHONE = "+15551234567"


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


# -- Seed data -----------------------------------------------------------------


@dataclass
class Seed:
    organization: Organization
    other_organization: Organization
    staff: Staff
    primary_staff: Staff
    other_staff: Staff
    ana: Donor
    ben: Donor
    couple: Donor
    other_donor: Donor
    water: Project
    school: Project
    other_project: Project
    donations: list


def _at(year, month, day):
    return datetime(year, month, day, tzinfo=timezone.utc)


@pytest.fixture
async def seed(test_db):
    """Two organizations; the first has staff, three donors, two projects and gifts.

    Ana:    3 donations (Water 100.00 + 250.00, School 50.00), assigned to `staff`
    Ben:    no donations, unassigned
    Couple: 1 donation (School 1000.00), high potential
    """
    organization = Organization(
        id=ORG_ID,
        name="Hope Water",
        website_url="https://hope.example.org",
        writing_instructions="Warm and brief.",
        donor_journey={
            "nodes": [
                {"id": "n1", "label": "Prospect", "properties": {
                    "description": "Has not given yet", "actions": ["Send welcome"],
                }},
                {"id": "n2", "label": "Donor", "properties": {"description": "Gave once"}},
            ],
            "edges": [{"source": "n1", "target": "n2", "label": "Ask for a first gift"}],
        },
    )
    other_organization = Organization(id=OTHER_ORG_ID, name="Other Org")
    test_db.add_all([organization, other_organization])
    await test_db.flush()

    staff = Staff(
        organization_id=ORG_ID, first_name="Sam", last_name="Rivera",
        email="sam@hope.example.org", signature="Sam Rivera\nHope Water",
        writing_instructions="Use first names.",
    )
    primary_staff = Staff(
        organization_id=ORG_ID, first_name="Pat", last_name="Lee",
        email="pat@hope.example.org", is_primary=True,
    )
    other_staff = Staff(
        organization_id=OTHER_ORG_ID, first_name="Olga", last_name="Other",
        email="olga@other.example.org",
    )
    test_db.add_all([staff, primary_staff, other_staff])
    await test_db.flush()

    ana = Donor(
        organization_id=ORG_ID, first_name="Ana", last_name="Silva",
        email="ana@example.com", phone="555-0100", state="CA", gender="female",
        address="1 Main St, Springfield, CA, 90001, USA",
        assigned_to_staff_id=staff.id, current_stage_name="Donor", notes=[],
    )
    ben = Donor(
        organization_id=ORG_ID, first_name="Ben", last_name="Okafor",
        email="ben@example.com", state="NY", notes=[],
    )
    couple = Donor(
        organization_id=ORG_ID, first_name="John", last_name="Doe",
        email="does@example.com", is_couple=True,
        his_first_name="John", his_last_name="Doe",
        her_first_name="Jane", her_last_name="Doe",
        high_potential_donor=True, notes=[],
    )
    other_donor = Donor(
        organization_id=OTHER_ORG_ID, first_name="Ana", last_name="Elsewhere",
        email="ana@example.com", notes=[],
    )
    test_db.add_all([ana, ben, couple, other_donor])
    await test_db.flush()

    water = Project(
        organization_id=ORG_ID, name="Clean Water", description="Wells in rural areas",
        goal=5_000_000, tags=["water"],
    )
    school = Project(
        organization_id=ORG_ID, name="School Books", active=False, goal=100_000, tags=[],
    )
    other_project = Project(organization_id=OTHER_ORG_ID, name="Other Project", tags=[])
    test_db.add_all([water, school, other_project])
    await test_db.flush()

    donations = [
        Donation(donor_id=ana.id, project_id=water.id, amount=10_000, date=_at(2023, 1, 15)),
        Donation(donor_id=ana.id, project_id=water.id, amount=25_000, date=_at(2024, 3, 1)),
        Donation(donor_id=ana.id, project_id=school.id, amount=5_000, date=_at(2023, 6, 10)),
        Donation(donor_id=couple.id, project_id=school.id, amount=100_000, date=_at(2024, 5, 5)),
        Donation(
            donor_id=other_donor.id, project_id=other_project.id, amount=777,
            date=_at(2024, 1, 1),
        ),
    ]
    test_db.add_all(donations)
    test_db.add(StaffWhatsAppPhoneNumber(staff_id=staff.id, phone_number=STAFF_PHONE))
    await test_db.commit()

    return Seed(
        organization=organization,
        other_organization=other_organization,
        staff=staff,
        primary_staff=primary_staff,
        other_staff=other_staff,
        ana=ana,
        ben=ben,
        couple=couple,
        other_donor=other_donor,
        water=water,
        school=school,
        other_project=other_project,
        donations=donations,
    )


# -- Outbound HTTP and LLM ---------------------------------------------------


class _Routes:
    """URL -> httpx.Response (or callable(request) -> Response) for MockTransport."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url).split("?")[0]
        target = self.routes.get(url)
        if target is None:
            return httpx.Response(404, text="not found")
        return target(request) if callable(target) else target


@pytest.fixture
def external_http():
    routes = _Routes()
    return routes


@pytest.fixture
async def http_client(external_http):
    async with httpx.AsyncClient(transport=httpx.MockTransport(external_http.handle)) as c:
        yield c


@pytest.fixture
def mock_anthropic():
    return MockAnthropicClient()


@pytest.fixture
async def client(test_engine, test_session_factory, http_client, mock_anthropic):
    """FastAPI test client with DB dependency overridden and app.state populated."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    app.state.http_client = http_client
    app.state.crm_registry = build_default_registry(http_client)
    app.state.anthropic_client = mock_anthropic
    app.state.deduplicator = MessageDeduplicator(300)

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager


@pytest.fixture
def org_headers():
    return {"X-Organization-Id": ORG_ID}
