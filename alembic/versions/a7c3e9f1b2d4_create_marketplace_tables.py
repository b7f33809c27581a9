"""create marketplace tables

Revision ID: a7c3e9f1b2d4
Revises:
Create Date: 2026-10-19 12:00:00.000000

This migration:
1. Creates companies, users and projects (read by the application workflow)
2. Creates applications with one row per (project, team lead)
3. Creates team_members with one row per (application, student)

companies is created before users, and users before projects, so every
foreign key points at an existing table.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a7c3e9f1b2d4"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create the marketplace and application tables."""
    op.create_table(
        "companies",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("domain", sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("domain"),
    )

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column(
            "role",
            sa.Enum("STUDENT", "COMPANY", name="user_role"),
            nullable=False,
        ),
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("company_role", sa.String(length=100), nullable=True),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_company_id", "users", ["company_id"])

    op.create_table(
        "projects",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("created_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "access_type",
            sa.Enum("OPEN", "CLOSED", name="project_access_type"),
            nullable=False,
        ),
        sa.Column("max_teams", sa.Integer(), nullable=True),
        sa.Column("min_students", sa.Integer(), nullable=False),
        sa.Column("max_students", sa.Integer(), nullable=False),
        # Disclosed to accepted teams only
        sa.Column("contact_name", sa.String(length=200), nullable=True),
        sa.Column("contact_email", sa.String(length=255), nullable=True),
        sa.Column("contact_role", sa.String(length=100), nullable=True),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_projects_company_id", "projects", ["company_id"])

    op.create_table(
        "applications",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("team_lead_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "status",
            sa.Enum("PENDING", "SUBMITTED", "ACCEPTED", "REJECTED", name="application_status"),
            nullable=False,
        ),
        sa.Column("design_doc_url", sa.String(length=500), nullable=True),
        sa.Column("answers", sa.JSON(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["team_lead_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id", "team_lead_id", name="uq_applications_project_lead"),
    )
    op.create_index("ix_applications_status", "applications", ["status"])
    op.create_index(
        "ix_applications_team_lead_status", "applications", ["team_lead_id", "status"]
    )
    op.create_index("ix_applications_project_status", "applications", ["project_id", "status"])

    op.create_table(
        "team_members",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
        sa.Column("application_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("is_lead", sa.Boolean(), nullable=False),
        sa.Column(
            "invite_status",
            sa.Enum("PENDING", "ACCEPTED", "DECLINED", name="invite_status"),
            nullable=False,
        ),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["application_id"], ["applications.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "application_id", "student_id", name="uq_team_members_application_student"
        ),
    )
    op.create_index("ix_team_members_student_id", "team_members", ["student_id"])
    op.create_index("ix_team_members_invite_status", "team_members", ["invite_status"])


def downgrade() -> None:
    """Drop every table and enum type created above."""
    op.drop_table("team_members")
    op.drop_table("applications")
    op.drop_table("projects")
    op.drop_table("users")
    op.drop_table("companies")

    bind = op.get_bind()
    for enum_name in (
        "invite_status",
        "application_status",
        "project_access_type",
        "user_role",
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
