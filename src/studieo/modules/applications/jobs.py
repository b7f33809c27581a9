"""
Applications Background Jobs

Scheduled tasks for the team application lifecycle:
1. Remind invited students who have not responded after 48 hours

Design Principles:
- Jobs are idempotent (safe to run multiple times)
- Jobs handle their own database sessions
- Jobs continue processing even if individual items fail

Schedule:
- The reminder job runs hourly to catch invitations as they become eligible
- Jobs can also be triggered manually via the debug endpoints
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from apscheduler.triggers.interval import IntervalTrigger

from studieo.core.config import settings
from studieo.core.database import async_session_maker
from studieo.core.email import send_invite_reminder
from studieo.core.scheduler import register_job
from studieo.modules.applications import repository
from studieo.modules.applications.helpers import user_name

logger = logging.getLogger(__name__)

# Job IDs for registration and manual triggering
JOB_ID_SEND_INVITE_REMINDERS = "applications_send_invite_reminders"


@dataclass(frozen=True)
class PendingInvite:
    member_id: UUID
    application_id: UUID
    email: str
    name: str
    project_title: str


async def _find_pending_invites(invited_before: datetime) -> list[PendingInvite]:
    async with async_session_maker() as db:
        rows = await repository.get_invites_needing_reminder(db, invited_before=invited_before)
        return [
            PendingInvite(
                member_id=member.id,
                application_id=member.application_id,
                email=user.email,
                name=user_name(user),
                project_title=project.title,
            )
            for member, user, project in rows
        ]


async def _process_invite_reminder(invite: PendingInvite) -> dict[str, Any]:
    """
    Send one reminder and record it.

    The reminder is marked sent even if the email fails, so a broken
    address is not retried every hour.
    """
    async with async_session_maker() as db:
        email_sent = await send_invite_reminder(
            to_email=invite.email,
            to_name=invite.name,
            project_title=invite.project_title,
            application_id=invite.application_id,
        )

        if not email_sent:
            logger.error(f"Failed to send invite reminder for team member {invite.member_id}")

        await repository.mark_reminder_sent(db, invite.member_id)

        return {
            "member_id": str(invite.member_id),
            "application_id": str(invite.application_id),
            "status": "sent" if email_sent else "marked_sent_email_failed",
        }


async def send_invite_reminders() -> dict[str, Any]:
    """
    Remind invited students who have not answered.

    This job finds all team members that:
    1. Are still PENDING on a PENDING application
    2. Were invited more than ``invite_reminder_hours`` ago
    3. Have not yet received a reminder

    Returns:
        Dict with executed_at, reminders (per-invite results),
        total_processed and total_errors
    """
    executed_at = datetime.now(UTC)
    threshold = executed_at - timedelta(hours=settings.invite_reminder_hours)

    logger.info(
        f"Starting invite reminder job. Looking for invitations sent before {threshold.isoformat()}"
    )

    results: dict[str, Any] = {
        "executed_at": executed_at.isoformat(),
        "reminders": [],
        "total_processed": 0,
        "total_errors": 0,
    }

    invites = await _find_pending_invites(threshold)
    logger.info(f"Found {len(invites)} invitation(s) needing a reminder")

    for invite in invites:
        try:
            result = await _process_invite_reminder(invite)
            results["reminders"].append(result)
            results["total_processed"] += 1
        except Exception as e:
            logger.error(
                f"Error processing invite reminder for team member {invite.member_id}: {e}",
                exc_info=True,
            )
            results["reminders"].append(
                {
                    "member_id": str(invite.member_id),
                    "application_id": str(invite.application_id),
                    "status": "error",
                    "error": str(e),
                }
            )
            results["total_errors"] += 1

    logger.info(
        f"Invite reminder job completed. "
        f"Processed: {results['total_processed']}, Errors: {results['total_errors']}"
    )

    return results


def register_application_jobs() -> None:
    """
    Register the application background jobs with the scheduler.

    Call during startup, before the scheduler is started.
    """
    register_job(
        job_id=JOB_ID_SEND_INVITE_REMINDERS,
        func=send_invite_reminders,
        trigger=IntervalTrigger(hours=1),
    )
    logger.info(f"Registered job: {JOB_ID_SEND_INVITE_REMINDERS} (interval: 1 hour)")
