"""
Applications Shared Helpers

Small functions used by both service.py and jobs.py.
"""

from dataclasses import dataclass
from uuid import UUID

from studieo.modules.projects.models import AccessType, Project
from studieo.modules.users.models import User

DEFAULT_LEAD_NAME = "Team lead"
DEFAULT_CONTACT_NAME = "Company Contact"
DEFAULT_CONTACT_EMAIL = ""
DEFAULT_CONTACT_ROLE = "Representative"


@dataclass(frozen=True)
class ProjectContact:
    """Contact details disclosed to an accepted team."""

    name: str
    email: str
    role: str


def team_size_error(team_size: int, min_students: int, max_students: int) -> str | None:
    """
    Check a team size (lead included) against a project's bounds.

    Args:
        team_size: Number of students on the team, including the lead
        min_students: Smallest allowed team
        max_students: Largest allowed team

    Returns:
        An error message naming the violated bound, or None if the size is allowed
    """
    if team_size < min_students:
        return f"Team size must be at least {min_students} members"
    if team_size > max_students:
        return f"Team size cannot exceed {max_students} members"
    return None


def lead_name(name: str | None) -> str:
    """Name shown for a team lead in notifications."""
    return name or DEFAULT_LEAD_NAME


def user_name(user: User) -> str:
    """Name shown for any user in notifications."""
    return user.display_name


def project_contact(project: Project) -> ProjectContact:
    """
    Get the contact an accepted team should reach out to.

    Missing fields fall back to generic values so the acceptance email
    always renders.
    """
    return ProjectContact(
        name=project.contact_name or DEFAULT_CONTACT_NAME,
        email=project.contact_email or DEFAULT_CONTACT_EMAIL,
        role=project.contact_role or DEFAULT_CONTACT_ROLE,
    )


@dataclass(frozen=True)
class ProjectSummary:
    """
    Plain copy of the project fields the workflow reads.

    Taken once per operation so later rollbacks, which expire ORM
    instances, never force a reload mid-operation.
    """

    id: UUID
    title: str
    company_id: UUID
    company_name: str
    created_by_id: UUID | None
    access_type: AccessType
    min_students: int
    max_students: int
    contact: ProjectContact


def project_summary(project: Project) -> ProjectSummary:
    return ProjectSummary(
        id=project.id,
        title=project.title,
        company_id=project.company_id,
        company_name=project.company.name if project.company else "",
        created_by_id=project.created_by_id,
        access_type=project.access_type,
        min_students=project.min_students,
        max_students=project.max_students,
        contact=project_contact(project),
    )
