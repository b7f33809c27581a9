"""
Student eligibility checks.

A student may lead at most ``max_active_projects`` accepted applications
and ``max_active_applications`` undecided (PENDING or SUBMITTED) ones.
The counts shown to the client are advisory; ``create_application``
runs the check again before inserting anything.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from studieo.core.config import settings
from studieo.modules.applications import repository
from studieo.modules.applications.models import ApplicationStatus
from studieo.modules.applications.schemas import StudentLimits

logger = logging.getLogger(__name__)

NOT_AUTHENTICATED_MESSAGE = "Not authenticated"

ACTIVE_PROJECT_STATUSES = [ApplicationStatus.ACCEPTED]
ACTIVE_APPLICATION_STATUSES = [ApplicationStatus.PENDING, ApplicationStatus.SUBMITTED]


def active_projects_message(limit: int) -> str:
    return f"You have reached the maximum of {limit} active projects"


def active_applications_message(limit: int) -> str:
    return f"You have reached the maximum of {limit} active applications"


async def check_limits(db: AsyncSession, student_id: UUID | None) -> StudentLimits:
    """
    Compute whether a student may start a new application.

    Args:
        db: Database session
        student_id: The acting student, or None when unauthenticated

    Returns:
        StudentLimits with both counts and one error per exceeded ceiling
    """
    if student_id is None:
        return StudentLimits(
            can_apply=False,
            active_projects=0,
            active_applications=0,
            errors=[NOT_AUTHENTICATED_MESSAGE],
        )

    active_projects = await repository.count_lead_applications(
        db, student_id, ACTIVE_PROJECT_STATUSES
    )
    active_applications = await repository.count_lead_applications(
        db, student_id, ACTIVE_APPLICATION_STATUSES
    )

    errors: list[str] = []
    if active_projects >= settings.max_active_projects:
        errors.append(active_projects_message(settings.max_active_projects))
    if active_applications >= settings.max_active_applications:
        errors.append(active_applications_message(settings.max_active_applications))

    if errors:
        logger.info(
            f"Student {student_id} is at an application limit: "
            f"projects={active_projects}, applications={active_applications}"
        )

    return StudentLimits(
        can_apply=not errors,
        active_projects=active_projects,
        active_applications=active_applications,
        errors=errors,
    )
