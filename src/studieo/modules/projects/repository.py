"""
Project Repository

Read access to projects and companies for the application workflow.
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from studieo.modules.projects.models import AccessType, Company, Project

logger = logging.getLogger(__name__)


class ProjectRepository:
    """Repository for project database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        company_id: UUID,
        title: str,
        access_type: AccessType = AccessType.CLOSED,
        min_students: int = 1,
        max_students: int = 4,
        max_teams: int | None = None,
        created_by_id: UUID | None = None,
        contact_name: str | None = None,
        contact_email: str | None = None,
        contact_role: str | None = None,
    ) -> Project:
        """Create a project record."""
        project = Project(
            company_id=company_id,
            title=title,
            access_type=access_type,
            min_students=min_students,
            max_students=max_students,
            max_teams=max_teams,
            created_by_id=created_by_id,
            contact_name=contact_name,
            contact_email=contact_email,
            contact_role=contact_role,
        )

        db.add(project)
        await db.flush()
        await db.refresh(project)

        logger.info(f"Created project: {project.id} ({project.access_type.value})")
        return project

    @staticmethod
    async def get_by_id(db: AsyncSession, project_id: UUID) -> Project | None:
        """
        Get a project by ID, with its company loaded.

        Args:
            db: Database session
            project_id: Project UUID

        Returns:
            Project instance or None if not found
        """
        result = await db.execute(
            select(Project)
            .options(joinedload(Project.company))
            .where(Project.id == project_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def create_company(db: AsyncSession, *, name: str, domain: str | None = None) -> Company:
        """Create a company record."""
        company = Company(name=name, domain=domain)
        db.add(company)
        await db.flush()
        await db.refresh(company)
        return company
