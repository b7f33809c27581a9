"""
Fixtures for applications tests.

Unit tests use mock sessions and MagicMock models. Workflow tests run the
real repository against an in-memory SQLite database.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from studieo.core.auth import Principal
from studieo.core.database import Base
from studieo.core.notifications import dispatcher
from studieo.modules.applications.models import (
    Application,
    ApplicationStatus,
    InviteStatus,
    TeamMember,
)
from studieo.modules.projects.models import AccessType, Company, Project
from studieo.modules.projects.repository import ProjectRepository
from studieo.modules.users.models import User, UserRole
from studieo.modules.users.repository import UserRepository


# ============================================
# Unit test fixtures
# ============================================


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def company_id():
    return uuid4()


@pytest.fixture
def student_principal():
    return Principal(id=uuid4(), email="lead@uni.edu", role=UserRole.STUDENT, name="Lena Lead")


@pytest.fixture
def company_principal(company_id):
    return Principal(
        id=uuid4(),
        email="reviewer@acme.com",
        role=UserRole.COMPANY,
        company_id=company_id,
        name="Rita Reviewer",
    )


@pytest.fixture
def sample_project(company_id):
    """A CLOSED project for teams of 2 to 4."""
    project = MagicMock(spec=Project)
    project.id = uuid4()
    project.title = "Campus Energy Dashboard"
    project.company_id = company_id
    project.company = MagicMock(spec=Company)
    project.company.name = "Acme"
    project.created_by_id = uuid4()
    project.access_type = AccessType.CLOSED
    project.max_teams = None
    project.min_students = 2
    project.max_students = 4
    project.contact_name = "Carla Contact"
    project.contact_email = "carla@acme.com"
    project.contact_role = "CTO"
    return project


@pytest.fixture
def sample_application(sample_project, student_principal):
    """A PENDING application led by student_principal."""
    application = MagicMock(spec=Application)
    application.id = uuid4()
    application.project_id = sample_project.id
    application.team_lead_id = student_principal.id
    application.status = ApplicationStatus.PENDING
    application.design_doc_url = f"design_docs/{application.id}/design-doc.pdf"
    application.answers = []
    application.submitted_at = None
    return application


def make_student(student_id=None, name="Sam Student"):
    user = MagicMock(spec=User)
    user.id = student_id or uuid4()
    user.email = f"{user.id.hex[:8]}@uni.edu"
    user.name = name
    user.display_name = name
    user.role = UserRole.STUDENT
    return user


def make_member(student_id, is_lead=False, invite_status=InviteStatus.PENDING):
    member = MagicMock(spec=TeamMember)
    member.id = uuid4()
    member.student_id = student_id
    member.is_lead = is_lead
    member.invite_status = invite_status
    return member


@pytest.fixture
def student_factory():
    return make_student


@pytest.fixture
def member_factory():
    return make_member


# ============================================
# SQLite-backed fixtures
# ============================================


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine

    # Let queued emails finish before the loop closes
    await dispatcher.drain()
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


class MarketplaceFactory:
    """Creates companies, users, projects and applications for workflow tests."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def company(self, name: str = "Acme") -> Company:
        company = await ProjectRepository.create_company(self.db, name=name)
        await self.db.commit()
        return company

    async def student(self, name: str) -> User:
        user = await UserRepository.create(
            self.db,
            email=f"{name.lower()}-{uuid4().hex[:6]}@uni.edu",
            role=UserRole.STUDENT,
            name=name,
        )
        await self.db.commit()
        return user

    async def company_user(self, company: Company, name: str = "Rita") -> User:
        user = await UserRepository.create(
            self.db,
            email=f"{name.lower()}-{uuid4().hex[:6]}@acme.com",
            role=UserRole.COMPANY,
            name=name,
            company_id=company.id,
            company_role="Engineering Manager",
        )
        await self.db.commit()
        return user

    async def project(self, company: Company, **kwargs) -> Project:
        kwargs.setdefault("title", "Campus Energy Dashboard")
        kwargs.setdefault("contact_name", "Carla Contact")
        kwargs.setdefault("contact_email", "carla@acme.com")
        kwargs.setdefault("contact_role", "CTO")
        project = await ProjectRepository.create(self.db, company_id=company.id, **kwargs)
        await self.db.commit()
        return project

    async def application(
        self,
        project: Project,
        lead: User,
        status: ApplicationStatus = ApplicationStatus.PENDING,
    ) -> Application:
        """Insert an application with just its lead, bypassing the service."""
        application = Application(
            project_id=project.id,
            team_lead_id=lead.id,
            status=status,
            answers=[],
            submitted_at=None if status == ApplicationStatus.PENDING else datetime.now(UTC),
        )
        self.db.add(application)
        await self.db.flush()
        self.db.add(
            TeamMember(
                application_id=application.id,
                student_id=lead.id,
                is_lead=True,
                invite_status=InviteStatus.ACCEPTED,
            )
        )
        await self.db.commit()
        return application


@pytest.fixture
def marketplace(db_session):
    return MarketplaceFactory(db_session)


@pytest.fixture
def design_doc():
    return b"%PDF-1.4 design document"
