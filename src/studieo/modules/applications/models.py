"""
Application Models

Database models for team applications and their members.
An application is owned by its team lead and moves through
PENDING -> SUBMITTED -> ACCEPTED | REJECTED.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studieo.modules.shared import BaseModel


class ApplicationStatus(str, enum.Enum):
    """Lifecycle status of an application."""

    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class InviteStatus(str, enum.Enum):
    """Status of a team member's invitation."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"


class Application(BaseModel):
    """
    A team's application to a project.

    One application per (project, team lead). The design document is stored
    in object storage; ``design_doc_url`` holds the "{bucket}/{path}" reference.
    """

    __tablename__ = "applications"

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    team_lead_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(ApplicationStatus, name="application_status"),
        nullable=False,
        default=ApplicationStatus.PENDING,
    )

    design_doc_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # [{"question": str, "answer": str}, ...]
    answers: Mapped[list | None] = mapped_column(JSON, nullable=True)

    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    team_members: Mapped[list["TeamMember"]] = relationship(
        "TeamMember",
        back_populates="application",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="TeamMember.created_at",
    )

    __table_args__ = (
        UniqueConstraint("project_id", "team_lead_id", name="uq_applications_project_lead"),
        Index("ix_applications_status", "status"),
        Index("ix_applications_team_lead_status", "team_lead_id", "status"),
        Index("ix_applications_project_status", "project_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Application(id={self.id}, project_id={self.project_id}, status={self.status.value})>"


class TeamMember(BaseModel):
    """
    A student on an application's team.

    Exactly one member per application is the lead, created already ACCEPTED.
    Invitees start PENDING and confirm or decline.
    """

    __tablename__ = "team_members"

    application_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    is_lead: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    invite_status: Mapped[InviteStatus] = mapped_column(
        Enum(InviteStatus, name="invite_status"),
        nullable=False,
        default=InviteStatus.PENDING,
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Reminder tracking
    reminder_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    application: Mapped["Application"] = relationship(
        "Application", back_populates="team_members"
    )

    __table_args__ = (
        UniqueConstraint("application_id", "student_id", name="uq_team_members_application_student"),
        Index("ix_team_members_student_id", "student_id"),
        Index("ix_team_members_invite_status", "invite_status"),
    )
