"""
Applications Repository

Database operations for team applications and team members.
All operations are async and follow the repository pattern: no business
rules beyond the status state machine live here.

Design Principles:
- Status writes are compare-and-swap (UPDATE ... WHERE status = expected)
- The two check-then-act decisions (quorum auto-submit, capacity auto-decide)
  run as single transactions holding row locks
- Deleting an application deletes its team members explicitly, children first
- Timezone-aware datetime handling (UTC)
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studieo.modules.projects.models import Project
from studieo.modules.users.models import User

from .models import Application, ApplicationStatus, InviteStatus, TeamMember


async def create(
    db: AsyncSession,
    project_id: UUID,
    team_lead_id: UUID,
    answers: list[dict] | None = None,
) -> Application:
    """Create a new PENDING application."""

    new_application = Application(
        project_id=project_id,
        team_lead_id=team_lead_id,
        status=ApplicationStatus.PENDING,
        answers=answers or [],
    )

    db.add(new_application)
    await db.commit()
    await db.refresh(new_application)

    return new_application


async def get_by_id(db: AsyncSession, id: UUID) -> Application | None:
    """Get application by ID, always re-read from the database."""
    return await db.get(Application, id, populate_existing=True)


async def get_by_project_and_lead(
    db: AsyncSession, project_id: UUID, team_lead_id: UUID
) -> Application | None:
    """Get the application a student leads for a project, if any."""
    result = await db.execute(
        select(Application).where(
            Application.project_id == project_id,
            Application.team_lead_id == team_lead_id,
        )
    )
    return result.scalar_one_or_none()


async def count_lead_applications(
    db: AsyncSession,
    team_lead_id: UUID,
    statuses: list[ApplicationStatus],
) -> int:
    """Count applications led by a student whose status is in ``statuses``."""
    count = await db.scalar(
        select(func.count())
        .select_from(Application)
        .where(
            Application.team_lead_id == team_lead_id,
            Application.status.in_(statuses),
        )
    )
    return count or 0


async def set_design_doc(db: AsyncSession, id: UUID, reference: str) -> None:
    """Store the design document reference on an application."""
    await db.execute(
        update(Application)
        .where(Application.id == id)
        .values(design_doc_url=reference, updated_at=datetime.now(UTC))
    )
    await db.commit()


# Valid status transitions - status only moves forward
VALID_STATUS_TRANSITIONS: dict[ApplicationStatus, set[ApplicationStatus]] = {
    ApplicationStatus.PENDING: {
        ApplicationStatus.SUBMITTED,  # Lead submits, or every member confirmed
    },
    ApplicationStatus.SUBMITTED: {
        ApplicationStatus.ACCEPTED,  # Company accepts, or OPEN project has capacity
        ApplicationStatus.REJECTED,  # Company rejects, or OPEN project is full
    },
    # Terminal states - no transitions allowed
    ApplicationStatus.ACCEPTED: set(),
    ApplicationStatus.REJECTED: set(),
}


class InvalidStatusTransitionError(ValueError):
    """Raised when an invalid status transition is attempted."""

    def __init__(
        self,
        current_status: ApplicationStatus,
        new_status: ApplicationStatus,
    ):
        self.current_status = current_status
        self.new_status = new_status
        valid_transitions = VALID_STATUS_TRANSITIONS.get(current_status, set())
        super().__init__(
            f"Invalid status transition: {current_status.value} -> {new_status.value}. "
            f"Valid transitions: {sorted(s.value for s in valid_transitions)}"
        )


class UnexpectedApplicationStatusError(ValueError):
    """Raised when a guarded delete finds the application in another status."""

    def __init__(self, current_status: ApplicationStatus, expected_status: ApplicationStatus):
        self.current_status = current_status
        self.expected_status = expected_status
        super().__init__(
            f"Application is {current_status.value}, expected {expected_status.value}"
        )


class DeclinedMemberError(ValueError):
    """Raised when a lead submits while a team member has declined."""

    def __init__(self):
        super().__init__("A team member has declined the invitation")


async def transition_status(
    db: AsyncSession,
    id: UUID,
    expected_status: ApplicationStatus,
    new_status: ApplicationStatus,
    **kwargs,
) -> Application:
    """
    Move an application from ``expected_status`` to ``new_status``.

    The update only matches the row while it is still in ``expected_status``,
    so a second concurrent caller attempting the same transition updates
    nothing and gets InvalidStatusTransitionError with the status it lost to.

    Args:
        db: Database session
        id: Application UUID
        expected_status: Status the application must currently have
        new_status: Status to set
        **kwargs: Additional columns to set (e.g., submitted_at)

    Returns:
        The updated Application

    Raises:
        ValueError: If application not found
        InvalidStatusTransitionError: If the transition is not allowed or
            the application is no longer in ``expected_status``
    """
    if new_status not in VALID_STATUS_TRANSITIONS.get(expected_status, set()):
        raise InvalidStatusTransitionError(expected_status, new_status)

    values = {"status": new_status, "updated_at": datetime.now(UTC)}
    for key, value in kwargs.items():
        if hasattr(Application, key):
            values[key] = value

    result = await db.execute(
        update(Application)
        .where(Application.id == id, Application.status == expected_status)
        .values(**values)
    )

    if result.rowcount == 0:
        await db.commit()
        current_status = await db.scalar(select(Application.status).where(Application.id == id))
        if current_status is None:
            raise ValueError(f"Application {id} not found")
        raise InvalidStatusTransitionError(current_status, new_status)

    await db.commit()
    application = await get_by_id(db, id)
    if application is None:
        raise ValueError(f"Application {id} not found")
    return application


# ============================================
# Atomic decision procedures
# ============================================


async def auto_submit_application(db: AsyncSession, id: UUID) -> bool:
    """
    Submit an application if, and only if, every team member has accepted.

    Runs as one transaction with the application row locked, so concurrent
    confirmations cannot both miss (or both perform) the submission.

    Returns:
        True if the application was submitted, False if at least one member
        has not accepted (nothing is changed)

    Raises:
        ValueError: If application not found
        InvalidStatusTransitionError: If the application is no longer PENDING
    """
    try:
        result = await db.execute(
            select(Application)
            .where(Application.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        application = result.scalar_one_or_none()

        if application is None:
            raise ValueError(f"Application {id} not found")

        if application.status != ApplicationStatus.PENDING:
            raise InvalidStatusTransitionError(application.status, ApplicationStatus.SUBMITTED)

        unconfirmed = await db.scalar(
            select(func.count())
            .select_from(TeamMember)
            .where(
                TeamMember.application_id == id,
                TeamMember.invite_status != InviteStatus.ACCEPTED,
            )
        )

        if unconfirmed:
            # Nothing written; commit only releases the lock
            await db.commit()
            return False

        now = datetime.now(UTC)
        application.status = ApplicationStatus.SUBMITTED
        application.submitted_at = now
        application.updated_at = now

        await db.commit()
        return True
    except (ValueError, SQLAlchemyError):
        await db.rollback()
        raise


async def submit_by_lead(db: AsyncSession, id: UUID) -> Application:
    """
    Submit a PENDING application on the lead's request.

    Members still PENDING do not block the submission, a DECLINED member
    does. The application row is locked (the lock decline_invitation
    takes) and the update itself only matches while no member is
    DECLINED, so a decline committed after the caller's own checks still
    wins.

    Returns:
        The submitted Application

    Raises:
        ValueError: If application not found
        InvalidStatusTransitionError: If the application is no longer PENDING
        DeclinedMemberError: If a member has declined the invitation
    """
    try:
        current_status = await db.scalar(
            select(Application.status).where(Application.id == id).with_for_update()
        )

        if current_status is None:
            raise ValueError(f"Application {id} not found")

        if current_status != ApplicationStatus.PENDING:
            raise InvalidStatusTransitionError(current_status, ApplicationStatus.SUBMITTED)

        declined_member = (
            select(TeamMember.id)
            .where(
                TeamMember.application_id == id,
                TeamMember.invite_status == InviteStatus.DECLINED,
            )
            .exists()
        )
        now = datetime.now(UTC)
        result = await db.execute(
            update(Application)
            .where(
                Application.id == id,
                Application.status == ApplicationStatus.PENDING,
                ~declined_member,
            )
            .values(status=ApplicationStatus.SUBMITTED, submitted_at=now, updated_at=now)
        )

        if result.rowcount == 0:
            await db.commit()
            current_status = await db.scalar(select(Application.status).where(Application.id == id))
            if current_status is None:
                raise ValueError(f"Application {id} not found")
            if current_status != ApplicationStatus.PENDING:
                raise InvalidStatusTransitionError(current_status, ApplicationStatus.SUBMITTED)
            raise DeclinedMemberError()

        await db.commit()
    except (ValueError, SQLAlchemyError):
        await db.rollback()
        raise

    application = await get_by_id(db, id)
    if application is None:
        raise ValueError(f"Application {id} not found")
    return application


async def auto_decide_open_application(db: AsyncSession, id: UUID) -> ApplicationStatus:
    """
    Accept or reject a SUBMITTED application to an OPEN project by capacity.

    The project row is locked first, which serializes every decision for
    that project; the accepted-team count is then read and the application
    flipped inside the same transaction, so two teams can never both take
    the last slot.

    Returns:
        ApplicationStatus.ACCEPTED or ApplicationStatus.REJECTED

    Raises:
        ValueError: If the application or its project is not found
        InvalidStatusTransitionError: If the application is not SUBMITTED
    """
    try:
        project_id = await db.scalar(select(Application.project_id).where(Application.id == id))
        if project_id is None:
            raise ValueError(f"Application {id} not found")

        project_row = (
            await db.execute(
                select(Project.id, Project.max_teams)
                .where(Project.id == project_id)
                .with_for_update()
            )
        ).one_or_none()
        if project_row is None:
            raise ValueError(f"Project {project_id} not found")

        application = (
            await db.execute(
                select(Application)
                .where(Application.id == id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one()

        if application.status != ApplicationStatus.SUBMITTED:
            raise InvalidStatusTransitionError(application.status, ApplicationStatus.ACCEPTED)

        accepted_teams = await count_accepted_for_project(db, project_id)
        max_teams = project_row.max_teams

        if max_teams is None or accepted_teams < max_teams:
            decision = ApplicationStatus.ACCEPTED
        else:
            decision = ApplicationStatus.REJECTED

        application.status = decision
        application.updated_at = datetime.now(UTC)

        await db.commit()
        return decision
    except (ValueError, SQLAlchemyError):
        await db.rollback()
        raise


async def count_accepted_for_project(db: AsyncSession, project_id: UUID) -> int:
    """Count ACCEPTED applications for a project."""
    count = await db.scalar(
        select(func.count())
        .select_from(Application)
        .where(
            Application.project_id == project_id,
            Application.status == ApplicationStatus.ACCEPTED,
        )
    )
    return count or 0


async def delete_application(
    db: AsyncSession,
    id: UUID,
    expected_status: ApplicationStatus | None = None,
) -> bool:
    """
    Delete an application and its team members.

    Members are deleted first, then the application, in one transaction.
    When ``expected_status`` is given the application row is locked and the
    delete only happens while it is still in that status.

    Returns:
        True if deleted, False if the application did not exist

    Raises:
        UnexpectedApplicationStatusError: If the status guard fails
    """
    try:
        current_status = await db.scalar(
            select(Application.status).where(Application.id == id).with_for_update()
        )

        if current_status is None:
            await db.commit()
            return False

        if expected_status is not None and current_status != expected_status:
            await db.commit()
            raise UnexpectedApplicationStatusError(current_status, expected_status)

        await db.execute(delete(TeamMember).where(TeamMember.application_id == id))
        await db.execute(delete(Application).where(Application.id == id))
        await db.commit()
        return True
    except SQLAlchemyError:
        await db.rollback()
        raise


# ============================================
# TeamMember Repository
# ============================================


async def add_team_member(
    db: AsyncSession,
    application_id: UUID,
    student_id: UUID,
    is_lead: bool = False,
    invite_status: InviteStatus = InviteStatus.PENDING,
) -> TeamMember:
    """Add a single member to an application's team."""

    member = TeamMember(
        application_id=application_id,
        student_id=student_id,
        is_lead=is_lead,
        invite_status=invite_status,
        confirmed_at=datetime.now(UTC) if invite_status == InviteStatus.ACCEPTED else None,
    )

    db.add(member)
    await db.commit()
    await db.refresh(member)

    return member


async def add_invited_members(
    db: AsyncSession,
    application_id: UUID,
    student_ids: list[UUID],
) -> list[TeamMember]:
    """Add PENDING invitations for several students in one commit."""

    members = [
        TeamMember(
            application_id=application_id,
            student_id=student_id,
            is_lead=False,
            invite_status=InviteStatus.PENDING,
        )
        for student_id in student_ids
    ]

    db.add_all(members)
    await db.commit()

    return members


async def get_member(
    db: AsyncSession, application_id: UUID, student_id: UUID
) -> TeamMember | None:
    """Get a student's membership on an application."""
    result = await db.execute(
        select(TeamMember)
        .where(
            TeamMember.application_id == application_id,
            TeamMember.student_id == student_id,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_members_with_users(
    db: AsyncSession, application_id: UUID
) -> list[tuple[TeamMember, User]]:
    """Get every member of an application with their user record, lead first."""
    result = await db.execute(
        select(TeamMember, User)
        .join(User, TeamMember.student_id == User.id)
        .where(TeamMember.application_id == application_id)
        .order_by(TeamMember.is_lead.desc(), TeamMember.created_at)
    )
    return [(member, user) for member, user in result.all()]


async def count_members_with_status(
    db: AsyncSession, application_id: UUID, invite_status: InviteStatus
) -> int:
    """Count an application's members in a given invite status."""
    count = await db.scalar(
        select(func.count())
        .select_from(TeamMember)
        .where(
            TeamMember.application_id == application_id,
            TeamMember.invite_status == invite_status,
        )
    )
    return count or 0


async def update_invite_status(
    db: AsyncSession,
    member_id: UUID,
    expected_status: InviteStatus,
    new_status: InviteStatus,
    **kwargs,
) -> bool:
    """
    Compare-and-swap a member's invite status.

    Returns:
        True if the member was still in ``expected_status`` and was updated
    """
    values = {"invite_status": new_status, "updated_at": datetime.now(UTC)}
    values.update(kwargs)

    result = await db.execute(
        update(TeamMember)
        .where(TeamMember.id == member_id, TeamMember.invite_status == expected_status)
        .values(**values)
    )
    await db.commit()

    return result.rowcount > 0


async def decline_invitation(db: AsyncSession, application_id: UUID, member_id: UUID) -> bool:
    """
    Mark a PENDING invitation DECLINED while the application is still PENDING.

    Takes the application row lock, the same one auto_submit_application
    holds, so a decline and a quorum submission cannot interleave.

    Returns:
        True if the invitation was declined, False if it was no longer PENDING

    Raises:
        ValueError: If application not found
        UnexpectedApplicationStatusError: If the application is not PENDING
    """
    try:
        current_status = await db.scalar(
            select(Application.status).where(Application.id == application_id).with_for_update()
        )

        if current_status is None:
            raise ValueError(f"Application {application_id} not found")

        if current_status != ApplicationStatus.PENDING:
            raise UnexpectedApplicationStatusError(current_status, ApplicationStatus.PENDING)

        result = await db.execute(
            update(TeamMember)
            .where(
                TeamMember.id == member_id,
                TeamMember.invite_status == InviteStatus.PENDING,
            )
            .values(invite_status=InviteStatus.DECLINED, updated_at=datetime.now(UTC))
        )
        await db.commit()

        return result.rowcount > 0
    except (ValueError, SQLAlchemyError):
        await db.rollback()
        raise


# ============================================
# Background Job Repository Methods
# ============================================


async def get_invites_needing_reminder(
    db: AsyncSession,
    invited_before: datetime,
) -> list[tuple[TeamMember, User, Project]]:
    """
    Get invitations that need a reminder email.

    Finds team members that:
    1. Are still PENDING on an application that is still PENDING
    2. Were invited before the given datetime (e.g., 48 hours ago)
    3. Have NOT yet received a reminder (reminder_sent_at is NULL)

    Args:
        db: Database session
        invited_before: Find invitations created before this time

    Returns:
        (member, invited user, project) rows
    """
    result = await db.execute(
        select(TeamMember, User, Project)
        .join(Application, TeamMember.application_id == Application.id)
        .join(User, TeamMember.student_id == User.id)
        .join(Project, Application.project_id == Project.id)
        .where(
            TeamMember.invite_status == InviteStatus.PENDING,
            TeamMember.reminder_sent_at.is_(None),
            TeamMember.created_at < invited_before,
            Application.status == ApplicationStatus.PENDING,
        )
    )
    return [(member, user, project) for member, user, project in result.unique().all()]


async def mark_reminder_sent(db: AsyncSession, member_id: UUID) -> None:
    """Record that an invite reminder was sent."""
    await db.execute(
        update(TeamMember)
        .where(TeamMember.id == member_id)
        .values(reminder_sent_at=datetime.now(UTC))
    )
    await db.commit()
