"""
Project Models

Companies and the projects they post. The application workflow reads the
team-size bounds, capacity and access type from here; it never writes them.
"""

import enum
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studieo.modules.shared import BaseModel

if TYPE_CHECKING:
    from studieo.modules.users.models import User


class AccessType(str, enum.Enum):
    """How applications to a project are decided."""

    OPEN = "OPEN"  # Decided automatically by capacity
    CLOSED = "CLOSED"  # Reviewed manually by the company


class Company(BaseModel):
    """A company posting projects on the marketplace."""

    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    domain: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)

    users: Mapped[list["User"]] = relationship("User", back_populates="company")
    projects: Mapped[list["Project"]] = relationship("Project", back_populates="company")

    def __repr__(self) -> str:
        return f"<Company(id={self.id}, name={self.name})>"


class Project(BaseModel):
    """
    A project students can apply to as a team.

    ``min_students``/``max_students`` bound the team size including the lead.
    ``max_teams`` caps accepted teams for OPEN projects; NULL means unlimited.
    Contact details are only disclosed to a team once it is accepted.
    """

    __tablename__ = "projects"

    title: Mapped[str] = mapped_column(String(200), nullable=False)

    company_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Application rules
    access_type: Mapped[AccessType] = mapped_column(
        Enum(AccessType, name="project_access_type"),
        nullable=False,
        default=AccessType.CLOSED,
    )
    max_teams: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_students: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_students: Mapped[int] = mapped_column(Integer, nullable=False, default=4)

    # Contact disclosed on acceptance
    contact_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_role: Mapped[str | None] = mapped_column(String(100), nullable=True)

    company: Mapped["Company"] = relationship(
        "Company", back_populates="projects", lazy="joined"
    )

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, title={self.title}, access_type={self.access_type.value})>"
