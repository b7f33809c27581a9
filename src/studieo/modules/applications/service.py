"""
Applications Service Layer

Business logic for team applications to company projects.
Orchestrates the repository, object storage and email notifications.

This module implements:
1. Creation Flow:
   - Re-check the student's limits and reject duplicate applications
   - Validate the team size against the project's bounds
   - Insert the application, upload the design document, add the team
   - Roll every step back if a later one fails
   - Solo applications are submitted immediately

2. Submission Flow:
   - Manual submission by the team lead
   - Automatic submission once every invited member has confirmed
   - OPEN projects are decided on the spot by capacity; CLOSED projects
     wait for the company to review

3. Decisions and cleanup:
   - Company accept / reject of submitted applications
   - Lead withdrawal of pending applications
   - Company deletion of any application

4. Team membership:
   - Invited members confirm or decline their invitation

Every public operation takes the caller as an explicit Principal (None when
unauthenticated) and returns a result model; errors are raised internally
as ApplicationServiceError subclasses and converted at the boundary.
Emails are dispatched fire-and-forget and never affect the outcome.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studieo.core import storage
from studieo.core.auth import Principal
from studieo.core.config import settings
from studieo.core.email import (
    send_application_accepted,
    send_application_rejected,
    send_application_submitted,
    send_application_withdrawn,
    send_new_application,
    send_team_invite,
    send_team_member_confirmed,
    send_team_member_declined,
)
from studieo.core.notifications import dispatcher
from studieo.core.storage import StorageError
from studieo.modules.applications import repository
from studieo.modules.applications.eligibility import check_limits
from studieo.modules.applications.helpers import (
    ProjectSummary,
    lead_name,
    project_summary,
    team_size_error,
    user_name,
)
from studieo.modules.applications.models import ApplicationStatus, InviteStatus
from studieo.modules.applications.repository import (
    DeclinedMemberError,
    InvalidStatusTransitionError,
    UnexpectedApplicationStatusError,
)
from studieo.modules.applications.schemas import (
    ApplicationActionResult,
    DesignDocUrlResult,
    QuestionAnswer,
    ServiceResult,
    StudentLimits,
)
from studieo.modules.projects.models import AccessType
from studieo.modules.projects.repository import ProjectRepository
from studieo.modules.users.models import UserRole
from studieo.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

# Soft outcome of an OPEN project that is already full
AUTO_REJECTED = "AUTO_REJECTED"
AUTO_REJECTED_MESSAGE = "This project is at capacity and automatically rejected your team."

# Auto-submit outcomes after a confirmation that are normal, not failures:
# others still pending, a concurrent confirmation already submitted, or a full project
EXPECTED_AUTO_SUBMIT_OUTCOMES = ("QUORUM_NOT_MET", "INVALID_APPLICATION_STATE", AUTO_REJECTED)

DECISION_FAILED_MESSAGE ="Unable to finalize the application decision. Please try again."
DECLINED_MEMBER_MESSAGE = (
    "A team member declined the invitation. Withdraw and apply again with a new team"
)


class ApplicationServiceError(Exception):
    """Base exception for application service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)

    def to_result(self, result_type: type[ServiceResult] = ApplicationActionResult, **fields):
        """Convert to the failed result returned across the public boundary."""
        return result_type(
            success=False,
            error=self.message,
            error_code=self.error_code,
            status_code=self.status_code,
            **fields,
        )


class AuthenticationError(ApplicationServiceError):
    """Raised when no principal is available."""

    def __init__(self):
        super().__init__(
            message="Not authenticated",
            error_code="NOT_AUTHENTICATED",
            status_code=401,
        )


class AuthorizationError(ApplicationServiceError):
    """Raised when the principal lacks the required relationship to the application."""

    def __init__(self, message: str):
        super().__init__(message=message, error_code="FORBIDDEN", status_code=403)


class NotTeamMemberError(ApplicationServiceError):
    """Raised when a student acts on an invitation they do not have."""

    def __init__(self):
        super().__init__(
            message="You are not a member of this application",
            error_code="NOT_TEAM_MEMBER",
            status_code=403,
        )


class ApplicationNotFoundError(ApplicationServiceError):
    """Raised when an application is not found."""

    def __init__(self, message: str = "Application not found"):
        super().__init__(
            message=message,
            error_code="APPLICATION_NOT_FOUND",
            status_code=404,
        )


class ProjectNotFoundError(ApplicationServiceError):
    def __init__(self):
        super().__init__(
            message="Project not found",
            error_code="PROJECT_NOT_FOUND",
            status_code=404,
        )


class DesignDocNotFoundError(ApplicationServiceError):
    def __init__(self):
        super().__init__(
            message="Design document not found",
            error_code="DESIGN_DOC_NOT_FOUND",
            status_code=404,
        )


class ValidationError(ApplicationServiceError):
    """Raised when the request itself is invalid."""

    def __init__(self, message: str):
        super().__init__(message=message, error_code="VALIDATION_ERROR", status_code=422)


class LimitReachedError(ApplicationServiceError):
    """Raised when the student is at one of their application limits."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(
            message=". ".join(errors),
            error_code="LIMIT_REACHED",
            status_code=422,
        )


class TeamSizeError(ApplicationServiceError):
    """Raised when the team is smaller or larger than the project allows."""

    def __init__(self, message: str):
        super().__init__(message=message, error_code="INVALID_TEAM_SIZE", status_code=422)


class DuplicateApplicationError(ApplicationServiceError):
    """Raised when the student already leads an application to the project."""

    def __init__(self):
        super().__init__(
            message="You have already applied to this project",
            error_code="DUPLICATE_APPLICATION",
            status_code=409,
        )


class InvalidApplicationStateError(ApplicationServiceError):
    """Raised when an application is not in the expected state for an operation."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="INVALID_APPLICATION_STATE",
            status_code=409,
        )


class QuorumNotMetError(ApplicationServiceError):
    """Raised when an auto-submit finds a member who has not confirmed."""

    def __init__(self):
        super().__init__(
            message="All team members must confirm before submitting",
            error_code="QUORUM_NOT_MET",
            status_code=409,
        )


class DependencyError(ApplicationServiceError):
    """Raised when the database or object storage fails."""

    def __init__(self, message: str):
        super().__init__(message=message, error_code="DEPENDENCY_ERROR", status_code=502)


@dataclass(frozen=True)
class TeamEntry:
    """A team member with the contact details notifications need."""

    student_id: UUID
    email: str
    name: str
    is_lead: bool
    invite_status: InviteStatus


# ============================================
# Internal helpers
# ============================================


async def _guarded(
    db: AsyncSession,
    action: str,
    operation: Callable[[], Awaitable[ServiceResult]],
    result_type: type[ServiceResult] = ApplicationActionResult,
    **fields,
):
    """Run an operation, converting raised errors into a failed result."""
    try:
        return await operation()
    except ApplicationServiceError as e:
        logger.info(f"Could not {action}: [{e.error_code}] {e.message}")
        return e.to_result(result_type, **fields)
    except SQLAlchemyError as e:
        logger.error(f"Database error while trying to {action}: {e}", exc_info=True)
        await db.rollback()
        return DependencyError("A database error occurred. Please try again.").to_result(
            result_type, **fields
        )


def _require_principal(principal: Principal | None) -> Principal:
    if principal is None:
        raise AuthenticationError()
    return principal


async def _load_project(db: AsyncSession, project_id: UUID) -> ProjectSummary:
    project = await ProjectRepository.get_by_id(db, project_id)
    if project is None:
        raise ProjectNotFoundError()
    return project_summary(project)


async def _load_team(db: AsyncSession, application_id: UUID) -> list[TeamEntry]:
    """
    Get the team with contact details, lead first.

    Only used to address notifications, so a failure is logged and an empty
    team returned rather than failing a transition that already happened.
    """
    try:
        rows = await repository.get_members_with_users(db, application_id)
    except SQLAlchemyError as e:
        logger.error(f"Could not load team for application {application_id}: {e}")
        await db.rollback()
        return []

    return [
        TeamEntry(
            student_id=user.id,
            email=user.email,
            name=user_name(user),
            is_lead=member.is_lead,
            invite_status=member.invite_status,
        )
        for member, user in rows
    ]


def _team_lead_name(team: list[TeamEntry]) -> str:
    return lead_name(next((entry.name for entry in team if entry.is_lead), None))


async def _remove_document(application_id: UUID, reference: str | None) -> None:
    """Remove a stored design document. Failures are logged only."""
    if not reference:
        return

    try:
        await storage.remove([storage.path_from_reference(reference)])
    except StorageError as e:
        logger.error(f"Failed to remove design document of application {application_id}: {e}")


async def _rollback_creation(
    db: AsyncSession,
    application_id: UUID,
    document_path: str | None,
) -> None:
    """
    Undo a partially created application.

    Order: session rollback, uploaded file, then the application (members
    first). Failures here are logged and never replace the original error.
    """
    await db.rollback()

    if document_path:
        try:
            await storage.remove([document_path])
        except StorageError as e:
            logger.error(f"Rollback: failed to remove {document_path}: {e}")

    try:
        await repository.delete_application(db, application_id)
    except SQLAlchemyError as e:
        logger.error(f"Rollback: failed to delete application {application_id}: {e}", exc_info=True)

    logger.warning(f"Rolled back creation of application {application_id}")


async def _validate_invitees(
    db: AsyncSession,
    lead_id: UUID,
    invited_ids: list[UUID],
) -> list[tuple[str, str]]:
    """
    Check the invite list and return (email, name) for each invitee.

    Raises:
        ValidationError: On duplicates, a self-invite, or ids that are not students
    """
    if len(set(invited_ids)) != len(invited_ids):
        raise ValidationError("Each team member can only be invited once")

    if lead_id in invited_ids:
        raise ValidationError("You cannot invite yourself to your own team")

    users = {user.id: user for user in await UserRepository.get_by_ids(db, invited_ids)}

    contacts = []
    for student_id in invited_ids:
        user = users.get(student_id)
        if user is None or user.role != UserRole.STUDENT:
            raise ValidationError("Team members must be registered students")
        contacts.append((user.email, user_name(user)))

    return contacts


def _notify_decision(
    project: ProjectSummary,
    team: list[TeamEntry],
    decision: ApplicationStatus,
    application_id: UUID,
) -> None:
    """Email every member the company's (or capacity) decision."""
    for entry in team:
        if decision == ApplicationStatus.ACCEPTED:
            dispatcher.dispatch(
                "application_accepted",
                send_application_accepted(
                    to_email=entry.email,
                    to_name=entry.name,
                    project_title=project.title,
                    company_name=project.company_name,
                    contact_name=project.contact.name,
                    contact_email=project.contact.email,
                    contact_role=project.contact.role,
                    application_id=application_id,
                ),
            )
        else:
            dispatcher.dispatch(
                "application_rejected",
                send_application_rejected(
                    to_email=entry.email,
                    to_name=entry.name,
                    project_title=project.title,
                    company_name=project.company_name,
                ),
            )


async def _notify_company(
    db: AsyncSession,
    project: ProjectSummary,
    team_lead_name: str,
    team_size: int,
) -> None:
    """Tell the project's creator that an application awaits review."""
    if project.created_by_id is None:
        logger.warning(f"Project {project.id} has no creator to notify of a new application")
        return

    try:
        creator = await UserRepository.get_by_id(db, project.created_by_id)
    except SQLAlchemyError as e:
        logger.error(f"Could not load creator of project {project.id}: {e}")
        await db.rollback()
        return

    if creator is None:
        logger.warning(f"Creator {project.created_by_id} of project {project.id} not found")
        return

    dispatcher.dispatch(
        "new_application",
        send_new_application(
            to_email=creator.email,
            company_name=project.company_name,
            project_title=project.title,
            project_id=project.id,
            team_lead_name=team_lead_name,
            team_size=team_size,
        ),
    )


# ============================================
# Eligibility
# ============================================


async def check_student_limits(db: AsyncSession, principal: Principal | None) -> StudentLimits:
    """Advisory limits for the calling student."""
    return await check_limits(db, principal.id if principal else None)


# ============================================
# Creation
# ============================================


async def create_application(
    db: AsyncSession,
    principal: Principal | None,
    project_id: UUID,
    team_member_ids: list[UUID] | None,
    design_doc: bytes | None,
    answers: list[QuestionAnswer] | None = None,
) -> ApplicationActionResult:
    """
    Create a team application to a project.

    The lead is added as an ACCEPTED member and every invitee as PENDING.
    A team of one has nobody to wait for and is submitted straight away;
    the result then reports that submission's outcome.

    Args:
        db: Database session
        principal: The applying student
        project_id: Project to apply to
        team_member_ids: Students to invite (the lead excluded)
        design_doc: PDF bytes of the required design document
        answers: Answers to the project's questions

    Returns:
        ApplicationActionResult with the new application's id on success
    """
    return await _guarded(
        db,
        "create application",
        lambda: _create(db, principal, project_id, team_member_ids, design_doc, answers),
    )


async def _create(
    db: AsyncSession,
    principal: Principal | None,
    project_id: UUID,
    team_member_ids: list[UUID] | None,
    design_doc: bytes | None,
    answers: list[QuestionAnswer] | None,
) -> ApplicationActionResult:
    principal = _require_principal(principal)
    if not principal.is_student:
        raise AuthorizationError("Only students can apply to projects")

    invited_ids = list(team_member_ids or [])

    # 1. Limits are enforced here whatever the client was shown
    limits = await check_limits(db, principal.id)
    if not limits.can_apply:
        raise LimitReachedError(limits.errors)

    # 2. One application per project and lead
    if await repository.get_by_project_and_lead(db, project_id, principal.id):
        raise DuplicateApplicationError()

    # 3. Project
    project = await _load_project(db, project_id)

    # 4. Team size includes the lead
    size_error = team_size_error(len(invited_ids) + 1, project.min_students, project.max_students)
    if size_error:
        raise TeamSizeError(size_error)

    invitees = await _validate_invitees(db, principal.id, invited_ids)

    if not design_doc:
        raise ValidationError("A design document is required")

    # 5. Application row
    try:
        application = await repository.create(
            db,
            project_id=project_id,
            team_lead_id=principal.id,
            answers=[answer.model_dump() for answer in answers or []],
        )
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateApplicationError() from e

    application_id = application.id
    logger.info(f"Created application {application_id} for project {project_id}")

    # 6. Design document
    document_path = storage.design_doc_path(application_id)
    try:
        reference = await storage.upload(document_path, design_doc)
    except StorageError as e:
        await _rollback_creation(db, application_id, None)
        raise DependencyError(f"Failed to upload design document: {e}") from e

    # 7. Document reference
    try:
        await repository.set_design_doc(db, application_id, reference)
    except SQLAlchemyError as e:
        await _rollback_creation(db, application_id, document_path)
        raise DependencyError(f"Failed to update application with design document: {e}") from e

    # 8. Lead membership
    try:
        await repository.add_team_member(
            db,
            application_id=application_id,
            student_id=principal.id,
            is_lead=True,
            invite_status=InviteStatus.ACCEPTED,
        )
    except SQLAlchemyError as e:
        await _rollback_creation(db, application_id, document_path)
        raise DependencyError("Failed to add team lead to team members") from e

    # 10. Solo teams are complete already
    if not invited_ids:
        return await _guarded(
            db,
            "auto-submit solo application",
            lambda: _submit(db, principal, application_id, is_auto_submit=True),
            application_id=application_id,
        )

    # 9. Invitations
    try:
        await repository.add_invited_members(db, application_id, invited_ids)
    except SQLAlchemyError as e:
        await _rollback_creation(db, application_id, document_path)
        raise DependencyError("Failed to add team members") from e

    inviter = lead_name(principal.name)
    for email, name in invitees:
        dispatcher.dispatch(
            "team_invite",
            send_team_invite(
                to_email=email,
                to_name=name,
                inviter_name=inviter,
                project_title=project.title,
                application_id=application_id,
            ),
        )

    logger.info(f"Application {application_id} waiting on {len(invited_ids)} invitation(s)")
    return ApplicationActionResult(success=True, application_id=application_id)


# ============================================
# Submission
# ============================================


async def submit_application(
    db: AsyncSession,
    principal: Principal | None,
    application_id: UUID,
    is_auto_submit: bool = False,
) -> ApplicationActionResult:
    """
    Submit a PENDING application.

    A manual submit must come from the team lead. An auto-submit only
    succeeds if every member has accepted, checked atomically with the
    status change. OPEN projects are then decided by capacity; a full
    project gives a failed result with error_code AUTO_REJECTED even though
    the application did move to REJECTED.
    """
    return await _guarded(
        db,
        "submit application",
        lambda: _submit(db, principal, application_id, is_auto_submit),
        application_id=application_id,
    )


async def _submit(
    db: AsyncSession,
    principal: Principal | None,
    application_id: UUID,
    is_auto_submit: bool,
) -> ApplicationActionResult:
    principal = _require_principal(principal)

    application = await repository.get_by_id(db, application_id)
    if application is None:
        raise ApplicationNotFoundError()

    team_lead_id = application.team_lead_id
    current_status = application.status
    project = await _load_project(db, application.project_id)

    if is_auto_submit:
        try:
            submitted = await repository.auto_submit_application(db, application_id)
        except InvalidStatusTransitionError as e:
            raise InvalidApplicationStateError("Application has already been submitted") from e
        except ValueError as e:
            raise ApplicationNotFoundError() from e

        if not submitted:
            raise QuorumNotMetError()
    else:
        if principal.id != team_lead_id:
            raise AuthorizationError("Only the team lead can submit the application")

        if current_status != ApplicationStatus.PENDING:
            raise InvalidApplicationStateError("Application has already been submitted")

        declined = await repository.count_members_with_status(
            db, application_id, InviteStatus.DECLINED
        )
        if declined:
            raise InvalidApplicationStateError(DECLINED_MEMBER_MESSAGE)

        # Re-checked under the row lock; a decline may land after the count
        try:
            await repository.submit_by_lead(db, application_id)
        except DeclinedMemberError as e:
            raise InvalidApplicationStateError(DECLINED_MEMBER_MESSAGE) from e
        except InvalidStatusTransitionError as e:
            raise InvalidApplicationStateError("Application has already been submitted") from e
        except ValueError as e:
            raise ApplicationNotFoundError() from e

    mode = "auto" if is_auto_submit else "manual"
    logger.info(f"Application {application_id} submitted ({mode})")

    team = await _load_team(db, application_id)
    team_lead_name = _team_lead_name(team)

    for entry in team:
        dispatcher.dispatch(
            "application_submitted",
            send_application_submitted(
                to_email=entry.email,
                to_name=entry.name,
                project_title=project.title,
                company_name=project.company_name,
                application_id=application_id,
                team_lead_name=team_lead_name,
                is_lead=entry.is_lead,
                needs_confirmation=entry.invite_status == InviteStatus.PENDING,
            ),
        )

    if project.access_type == AccessType.OPEN:
        return await _auto_decide(db, application_id, project, team)

    await _notify_company(db, project, team_lead_name, len(team))
    return ApplicationActionResult(
        success=True,
        application_id=application_id,
        auto_approved=False,
    )


async def _auto_decide(
    db: AsyncSession,
    application_id: UUID,
    project: ProjectSummary,
    team: list[TeamEntry],
) -> ApplicationActionResult:
    """Accept or reject a just-submitted application to an OPEN project by capacity."""
    try:
        decision = await repository.auto_decide_open_application(db, application_id)
    except (ValueError, SQLAlchemyError) as e:
        logger.error(f"Auto-decide failed for application {application_id}: {e}", exc_info=True)
        raise DependencyError(DECISION_FAILED_MESSAGE) from e

    logger.info(f"Application {application_id} auto-decided: {decision.value}")
    _notify_decision(project, team, decision, application_id)

    if decision == ApplicationStatus.ACCEPTED:
        return ApplicationActionResult(
            success=True,
            application_id=application_id,
            auto_approved=True,
            decision=decision,
        )

    return ApplicationActionResult(
        success=False,
        error=AUTO_REJECTED_MESSAGE,
        error_code=AUTO_REJECTED,
        status_code=200,
        application_id=application_id,
        auto_approved=False,
        decision=decision,
    )


# ============================================
# Company decisions
# ============================================


async def accept_application(
    db: AsyncSession,
    principal: Principal | None,
    application_id: UUID,
) -> ApplicationActionResult:
    """Accept a SUBMITTED application. Members learn the project contact."""
    return await _guarded(
        db,
        "accept application",
        lambda: _decide(db, principal, application_id, ApplicationStatus.ACCEPTED),
        application_id=application_id,
    )


async def reject_application(
    db: AsyncSession,
    principal: Principal | None,
    application_id: UUID,
) -> ApplicationActionResult:
    """Reject a SUBMITTED application."""
    return await _guarded(
        db,
        "reject application",
        lambda: _decide(db, principal, application_id, ApplicationStatus.REJECTED),
        application_id=application_id,
    )


async def _decide(
    db: AsyncSession,
    principal: Principal | None,
    application_id: UUID,
    decision: ApplicationStatus,
) -> ApplicationActionResult:
    verb = "accept" if decision == ApplicationStatus.ACCEPTED else "reject"
    principal = _require_principal(principal)

    application = await repository.get_by_id(db, application_id)
    if application is None:
        raise ApplicationNotFoundError()

    current_status = application.status
    project = await _load_project(db, application.project_id)

    if not principal.belongs_to_company(project.company_id):
        raise AuthorizationError(f"Only company members can {verb} applications")

    if current_status != ApplicationStatus.SUBMITTED:
        raise InvalidApplicationStateError(f"Only submitted applications can be {verb}ed")

    try:
        await repository.transition_status(
            db,
            application_id,
            expected_status=ApplicationStatus.SUBMITTED,
            new_status=decision,
        )
    except InvalidStatusTransitionError as e:
        raise InvalidApplicationStateError(f"Only submitted applications can be {verb}ed") from e
    except ValueError as e:
        raise ApplicationNotFoundError() from e

    logger.info(f"Application {application_id} {verb}ed by {principal.id}")

    team = await _load_team(db, application_id)
    _notify_decision(project, team, decision, application_id)

    return ApplicationActionResult(success=True, application_id=application_id, decision=decision)


# ============================================
# Withdrawal and deletion
# ============================================


async def withdraw_application(
    db: AsyncSession,
    principal: Principal | None,
    application_id: UUID,
) -> ApplicationActionResult:
    """
    Withdraw a PENDING application as its lead.

    Deletes the team, the application and the design document, then tells
    the invited members.
    """
    return await _guarded(
        db,
        "withdraw application",
        lambda: _withdraw(db, principal, application_id),
        application_id=application_id,
    )


async def _withdraw(
    db: AsyncSession,
    principal: Principal | None,
    application_id: UUID,
) -> ApplicationActionResult:
    principal = _require_principal(principal)

    application = await repository.get_by_id(db, application_id)
    if application is None or application.team_lead_id != principal.id:
        raise ApplicationNotFoundError("Application not found or access denied")

    if application.status != ApplicationStatus.PENDING:
        raise InvalidApplicationStateError("Can only withdraw PENDING applications")

    document_reference = application.design_doc_url
    project = await _load_project(db, application.project_id)
    team = await _load_team(db, application_id)

    # Status is checked again under the row lock
    try:
        await repository.delete_application(
            db, application_id, expected_status=ApplicationStatus.PENDING
        )
    except UnexpectedApplicationStatusError as e:
        raise InvalidApplicationStateError("Can only withdraw PENDING applications") from e

    await _remove_document(application_id, document_reference)
    logger.info(f"Application {application_id} withdrawn by {principal.id}")

    team_lead_name = _team_lead_name(team)
    for entry in team:
        if entry.is_lead or entry.invite_status == InviteStatus.DECLINED:
            continue
        dispatcher.dispatch(
            "application_withdrawn",
            send_application_withdrawn(
                to_email=entry.email,
                to_name=entry.name,
                project_title=project.title,
                team_lead_name=team_lead_name,
            ),
        )

    return ApplicationActionResult(success=True, application_id=application_id)


async def delete_application(
    db: AsyncSession,
    principal: Principal | None,
    application_id: UUID,
) -> ApplicationActionResult:
    """Delete an application in any status as the project's company. Nobody is notified."""
    return await _guarded(
        db,
        "delete application",
        lambda: _delete(db, principal, application_id),
        application_id=application_id,
    )


async def _delete(
    db: AsyncSession,
    principal: Principal | None,
    application_id: UUID,
) -> ApplicationActionResult:
    principal = _require_principal(principal)

    application = await repository.get_by_id(db, application_id)
    if application is None:
        raise ApplicationNotFoundError()

    document_reference = application.design_doc_url
    project = await _load_project(db, application.project_id)

    if not principal.belongs_to_company(project.company_id):
        raise AuthorizationError("Only company members can delete applications")

    if not await repository.delete_application(db, application_id):
        raise ApplicationNotFoundError()

    await _remove_document(application_id, document_reference)
    logger.info(f"Application {application_id} deleted by company user {principal.id}")

    return ApplicationActionResult(success=True, application_id=application_id)


# ============================================
# Design document access
# ============================================


async def get_design_doc_url(
    db: AsyncSession,
    principal: Principal | None,
    application_id: UUID,
) -> DesignDocUrlResult:
    """
    Get a short-lived signed link to the design document.

    Available to the lead, any team member and users of the project's
    company. Links expire after ``signed_url_ttl_seconds``; do not cache them.
    """
    return await _guarded(
        db,
        "get design document URL",
        lambda: _design_doc_url(db, principal, application_id),
        result_type=DesignDocUrlResult,
    )


async def _design_doc_url(
    db: AsyncSession,
    principal: Principal | None,
    application_id: UUID,
) -> DesignDocUrlResult:
    principal = _require_principal(principal)

    application = await repository.get_by_id(db, application_id)
    if application is None:
        raise ApplicationNotFoundError()

    reference = application.design_doc_url
    project_id = application.project_id

    if principal.id != application.team_lead_id:
        member = await repository.get_member(db, application_id, principal.id)
        if member is None:
            project = await _load_project(db, project_id)
            if not principal.belongs_to_company(project.company_id):
                raise AuthorizationError("Access denied")

    if not reference:
        raise DesignDocNotFoundError()

    ttl = settings.signed_url_ttl_seconds
    try:
        url = await storage.create_signed_url(storage.path_from_reference(reference), ttl)
    except StorageError as e:
        raise DependencyError("Failed to generate document URL") from e

    return DesignDocUrlResult(success=True, url=url, expires_in=ttl)


# ============================================
# Team membership
# ============================================


async def confirm_team_membership(
    db: AsyncSession,
    principal: Principal | None,
    application_id: UUID,
) -> ApplicationActionResult:
    """
    Accept an invitation to a team.

    If the application is still PENDING this tries an auto-submit; the
    last member to confirm submits the application. The confirmation
    stands whatever the auto-submit's outcome.
    """
    return await _guarded(
        db,
        "confirm team membership",
        lambda: _confirm(db, principal, application_id),
        application_id=application_id,
    )


async def _confirm(
    db: AsyncSession,
    principal: Principal | None,
    application_id: UUID,
) -> ApplicationActionResult:
    principal = _require_principal(principal)

    member = await repository.get_member(db, application_id, principal.id)
    if member is None:
        raise NotTeamMemberError()

    member_id = member.id
    if member.invite_status == InviteStatus.ACCEPTED:
        raise InvalidApplicationStateError("You have already confirmed your participation")
    if member.invite_status == InviteStatus.DECLINED:
        raise InvalidApplicationStateError("You have already declined this invitation")

    application = await repository.get_by_id(db, application_id)
    if application is None:
        raise ApplicationNotFoundError()

    application_status = application.status
    team_lead_id = application.team_lead_id
    project = await _load_project(db, application.project_id)

    confirmed = await repository.update_invite_status(
        db,
        member_id,
        expected_status=InviteStatus.PENDING,
        new_status=InviteStatus.ACCEPTED,
        confirmed_at=datetime.now(UTC),
    )
    if not confirmed:
        raise InvalidApplicationStateError("You have already responded to this invitation")

    logger.info(f"Student {principal.id} confirmed membership of application {application_id}")

    team = await _load_team(db, application_id)
    lead = next((entry for entry in team if entry.student_id == team_lead_id), None)
    member_name = next(
        (entry.name for entry in team if entry.student_id == principal.id),
        principal.name or principal.email,
    )

    submit_result = None
    if application_status == ApplicationStatus.PENDING:
        submit_result = await _guarded(
            db,
            "auto-submit application",
            lambda: _submit(db, principal, application_id, is_auto_submit=True),
            application_id=application_id,
        )
        if submit_result.error_code in EXPECTED_AUTO_SUBMIT_OUTCOMES:
            logger.info(f"Auto-submit of {application_id} after confirmation: {submit_result.error}")
        elif not submit_result.success:
            logger.warning(
                f"Auto-submit of {application_id} after confirmation failed: {submit_result.error}"
            )

    if lead is not None:
        dispatcher.dispatch(
            "team_member_confirmed",
            send_team_member_confirmed(
                to_email=lead.email,
                team_lead_name=lead.name,
                member_name=member_name,
                project_title=project.title,
                application_id=application_id,
            ),
        )

    return ApplicationActionResult(
        success=True,
        application_id=application_id,
        auto_approved=submit_result.auto_approved if submit_result else None,
        decision=submit_result.decision if submit_result else None,
    )


async def decline_team_membership(
    db: AsyncSession,
    principal: Principal | None,
    application_id: UUID,
) -> ApplicationActionResult:
    """
    Decline an invitation to a PENDING application.

    The invitation is kept as DECLINED; the application stays PENDING but
    can no longer be submitted, so the lead has to withdraw and reapply.
    """
    return await _guarded(
        db,
        "decline team membership",
        lambda: _decline(db, principal, application_id),
        application_id=application_id,
    )


async def _decline(
    db: AsyncSession,
    principal: Principal | None,
    application_id: UUID,
) -> ApplicationActionResult:
    principal = _require_principal(principal)

    member = await repository.get_member(db, application_id, principal.id)
    if member is None:
        raise NotTeamMemberError()

    member_id = member.id
    if member.is_lead:
        raise InvalidApplicationStateError(
            "The team lead cannot decline; withdraw the application instead"
        )
    if member.invite_status == InviteStatus.ACCEPTED:
        raise InvalidApplicationStateError("You have already confirmed your participation")
    if member.invite_status == InviteStatus.DECLINED:
        raise InvalidApplicationStateError("You have already declined this invitation")

    application = await repository.get_by_id(db, application_id)
    if application is None:
        raise ApplicationNotFoundError()

    if application.status != ApplicationStatus.PENDING:
        raise InvalidApplicationStateError("Can only decline invitations for pending applications")

    project = await _load_project(db, application.project_id)
    team = await _load_team(db, application_id)

    try:
        declined = await repository.decline_invitation(db, application_id, member_id)
    except UnexpectedApplicationStatusError as e:
        raise InvalidApplicationStateError(
            "Can only decline invitations for pending applications"
        ) from e
    except ValueError as e:
        raise ApplicationNotFoundError() from e

    if not declined:
        raise InvalidApplicationStateError("You have already responded to this invitation")

    logger.info(f"Student {principal.id} declined membership of application {application_id}")

    member_name = next(
        (entry.name for entry in team if entry.student_id == principal.id),
        principal.name or principal.email,
    )
    for entry in team:
        if entry.student_id == principal.id or entry.invite_status == InviteStatus.DECLINED:
            continue
        dispatcher.dispatch(
            "team_member_declined",
            send_team_member_declined(
                to_email=entry.email,
                to_name=entry.name,
                member_name=member_name,
                project_title=project.title,
                is_lead=entry.is_lead,
            ),
        )

    return ApplicationActionResult(success=True, application_id=application_id)
