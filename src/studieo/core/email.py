"""
Email Service using Resend

Sends the application workflow notifications. Every sender returns True
on success and False on failure; callers dispatch them fire-and-forget.
"""

import asyncio
import logging
from html import escape
from uuid import UUID

import resend

from studieo.core.config import settings

logger = logging.getLogger(__name__)

# Initialize Resend with API key
resend.api_key = settings.resend_api_key

# Configurations
EMAIL_FROM = settings.email_from
FRONTEND_URL = settings.frontend_url


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> bool:
    """
    Send an email using Resend.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML content of the email

    Returns:
        True if email was sent successfully
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return True

    try:
        params: resend.Emails.SendParams = {
            "from": EMAIL_FROM,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        # Run sync Resend call in thread pool to avoid blocking event loop
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


def _layout(content: str) -> str:
    """Wrap a message body in the shared Studieo email layout."""
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
            body {{ font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #525252; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 40px 20px; }}
            .brand {{ color: #000; font-size: 28px; font-weight: 700; margin-bottom: 24px; }}
            .header {{ color: #000; font-size: 24px; font-weight: 600; }}
            .card {{ background-color: #f5f5f5; border-left: 4px solid #000; padding: 16px; margin: 24px 0; }}
            .notice {{ background-color: #fef3c7; border-left: 4px solid #f59e0b; padding: 16px; margin: 24px 0; color: #78350f; }}
            .label {{ color: #737373; font-size: 14px; font-weight: 600; margin: 0; }}
            .button {{ display: inline-block; background-color: #000; color: white; padding: 12px 24px; text-decoration: none; border-radius: 8px; margin: 24px 0; }}
            .footer {{ margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #737373; font-size: 14px; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="brand">Studieo</div>
            {content}
            <div class="footer">
                <p>Studieo - Real projects for student teams</p>
            </div>
        </div>
    </body>
    </html>
    """


def _application_url(application_id: UUID | str) -> str:
    return f"{FRONTEND_URL}/applications/{application_id}"


async def send_team_invite(
    to_email: str,
    to_name: str,
    inviter_name: str,
    project_title: str,
    application_id: UUID,
) -> bool:
    """Invite a student to join a team."""
    safe_title = escape(project_title)
    content = f"""
        <h1 class="header">You've been invited to join a team!</h1>
        <p>Hi {escape(to_name)},</p>
        <p><strong>{escape(inviter_name)}</strong> has invited you to join their team for the project:</p>
        <div class="card"><strong>{safe_title}</strong></div>
        <p>View the application details and decide whether you'd like to join the team.</p>
        <a href="{_application_url(application_id)}" class="button">View Application</a>
        <p><strong>Note:</strong> The team lead may submit the application before you confirm.
        You'll be able to confirm your participation after submission.</p>
    """
    return await send_email(
        to_email=to_email,
        subject=f"You've been invited to join a team for {project_title}",
        html_content=_layout(content),
    )


async def send_application_submitted(
    to_email: str,
    to_name: str,
    project_title: str,
    company_name: str,
    application_id: UUID,
    team_lead_name: str,
    is_lead: bool,
    needs_confirmation: bool,
) -> bool:
    """Tell a team member their application was submitted."""
    if is_lead:
        heading = "Application Submitted!"
        intro = "Your application has been successfully submitted!"
    else:
        heading = "Team Application Submitted"
        intro = f"{escape(team_lead_name)} has submitted the team application."

    if needs_confirmation:
        action = f"""
        <div class="notice">
            <p><strong>Action Required</strong></p>
            <p>Please confirm your participation in this application.</p>
        </div>
        <a href="{_application_url(application_id)}" class="button">Confirm Participation</a>
        """
    else:
        action = f'<a href="{_application_url(application_id)}" class="button">View Application</a>'

    content = f"""
        <h1 class="header">{heading}</h1>
        <p>Hi {escape(to_name)},</p>
        <p>{intro}</p>
        <div class="card">
            <p class="label">PROJECT</p>
            <p><strong>{escape(project_title)}</strong></p>
            <p class="label">COMPANY</p>
            <p>{escape(company_name)}</p>
        </div>
        {action}
        <p>The company will review your application and you'll be notified of their decision.</p>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Application submitted: {project_title}",
        html_content=_layout(content),
    )


async def send_application_accepted(
    to_email: str,
    to_name: str,
    project_title: str,
    company_name: str,
    contact_name: str,
    contact_email: str,
    contact_role: str,
    application_id: UUID,
) -> bool:
    """Tell a team member their application was accepted, disclosing the project contact."""
    safe_contact_email = escape(contact_email)
    content = f"""
        <h1 class="header">Congratulations! Your team was accepted</h1>
        <p>Hi {escape(to_name)},</p>
        <p><strong>{escape(company_name)}</strong> has accepted your application for:</p>
        <div class="card"><strong>{escape(project_title)}</strong></div>
        <p>Your project contact:</p>
        <div class="card">
            <p><strong>{escape(contact_name)}</strong> ({escape(contact_role)})</p>
            <p><a href="mailto:{safe_contact_email}">{safe_contact_email}</a></p>
        </div>
        <a href="{_application_url(application_id)}" class="button">View Project</a>
    """
    return await send_email(
        to_email=to_email,
        subject=f"🎉 Accepted: {project_title}",
        html_content=_layout(content),
    )


async def send_application_rejected(
    to_email: str,
    to_name: str,
    project_title: str,
    company_name: str,
) -> bool:
    """Tell a team member their application was not selected."""
    content = f"""
        <h1 class="header">Application Update</h1>
        <p>Hi {escape(to_name)},</p>
        <p>Thank you for applying to <strong>{escape(project_title)}</strong>.
        {escape(company_name)} has decided not to move forward with your team this time.</p>
        <p>There are plenty of other projects looking for teams like yours.</p>
        <a href="{FRONTEND_URL}/student/search" class="button">Browse Projects</a>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Application update: {project_title}",
        html_content=_layout(content),
    )


async def send_new_application(
    to_email: str,
    company_name: str,
    project_title: str,
    project_id: UUID,
    team_lead_name: str,
    team_size: int,
) -> bool:
    """Tell the project's company that a team applied and awaits review."""
    students = "student" if team_size == 1 else "students"
    content = f"""
        <h1 class="header">New Application Received</h1>
        <p>Hi {escape(company_name)} team,</p>
        <p>A new team has applied to your project!</p>
        <div class="card">
            <p class="label">PROJECT</p>
            <p><strong>{escape(project_title)}</strong></p>
            <p class="label">TEAM LEAD</p>
            <p>{escape(team_lead_name)}</p>
            <p class="label">TEAM SIZE</p>
            <p>{team_size} {students}</p>
        </div>
        <a href="{FRONTEND_URL}/projects/{project_id}" class="button">Review Application</a>
    """
    return await send_email(
        to_email=to_email,
        subject=f"New application for {project_title}",
        html_content=_layout(content),
    )


async def send_application_withdrawn(
    to_email: str,
    to_name: str,
    project_title: str,
    team_lead_name: str,
) -> bool:
    """Tell an invited member the lead withdrew the application."""
    content = f"""
        <h1 class="header">Application Withdrawn</h1>
        <p>Hi {escape(to_name)},</p>
        <p><strong>{escape(team_lead_name)}</strong> has withdrawn the team application for
        <strong>{escape(project_title)}</strong>. No further action is needed from you.</p>
        <a href="{FRONTEND_URL}/student/search" class="button">Browse Projects</a>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Application withdrawn: {project_title}",
        html_content=_layout(content),
    )


async def send_team_member_confirmed(
    to_email: str,
    team_lead_name: str,
    member_name: str,
    project_title: str,
    application_id: UUID,
) -> bool:
    """Tell the lead a member confirmed their participation."""
    content = f"""
        <h1 class="header">Team Member Confirmed</h1>
        <p>Hi {escape(team_lead_name)},</p>
        <p><strong>{escape(member_name)}</strong> has confirmed their participation in your application for:</p>
        <div class="card"><strong>{escape(project_title)}</strong></div>
        <a href="{_application_url(application_id)}" class="button">View Application</a>
        <p>You'll be notified when all members have confirmed.</p>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Team member confirmed for {project_title}",
        html_content=_layout(content),
    )


async def send_team_member_declined(
    to_email: str,
    to_name: str,
    member_name: str,
    project_title: str,
    is_lead: bool,
) -> bool:
    """Tell the team a member declined; the application can no longer be submitted."""
    if is_lead:
        next_step = "You can withdraw this application and apply again with a new team."
    else:
        next_step = "The team lead can withdraw it and apply again with a new team."
    content = f"""
        <h1 class="header">Team Member Declined</h1>
        <p>Hi {escape(to_name)},</p>
        <p><strong>{escape(member_name)}</strong> has declined to join the team application for
        <strong>{escape(project_title)}</strong>, so it can no longer be submitted.</p>
        <div class="notice"><p>{next_step}</p></div>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Team member declined: {project_title}",
        html_content=_layout(content),
    )


async def send_invite_reminder(
    to_email: str,
    to_name: str,
    project_title: str,
    application_id: UUID,
) -> bool:
    """Remind an invited student that their team is waiting on them."""
    content = f"""
        <h1 class="header">Your team is waiting for you</h1>
        <p>Hi {escape(to_name)},</p>
        <p>You still have a pending invitation to join a team for
        <strong>{escape(project_title)}</strong>. The application is submitted automatically
        once every member confirms.</p>
        <a href="{_application_url(application_id)}" class="button">Respond to Invitation</a>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Reminder: your team is waiting for {project_title}",
        html_content=_layout(content),
    )
