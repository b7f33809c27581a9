"""
User Models

Identity lives with the external provider. This table holds the profile
data the marketplace needs: display name, role and company affiliation.
"""

import enum
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studieo.modules.shared import BaseModel

if TYPE_CHECKING:
    from studieo.modules.projects.models import Company


class UserRole(str, enum.Enum):
    """User roles in the marketplace."""

    STUDENT = "STUDENT"
    COMPANY = "COMPANY"


class User(BaseModel):
    """
    Marketplace user.

    Students form teams and apply to projects. Company users belong to a
    company and review the applications to its projects.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    name: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
    )

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role"),
        nullable=False,
        default=UserRole.STUDENT,
    )

    # Company affiliation (NULL for students)
    # ON DELETE SET NULL: users outlive their company record
    company_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("companies.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    company_role: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    company: Mapped["Company | None"] = relationship(
        "Company",
        back_populates="users",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"

    @property
    def display_name(self) -> str:
        """Name to show in emails, falling back to the email address."""
        return self.name or self.email
