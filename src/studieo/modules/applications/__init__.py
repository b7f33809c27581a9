"""
Applications Module

Handles the team application workflow for company projects:
1. Application creation with team invitations and a design document
2. Submission, manual by the lead or automatic once every member confirms
3. Decisions: company review for CLOSED projects, capacity for OPEN ones
4. Withdrawal by the lead and deletion by the company
5. Background job reminding students of unanswered invitations

API Endpoints:
- /applications - Student endpoints (limits, create, submit, withdraw,
  design document, confirm, decline)
- /company/applications - Company endpoints (accept, reject, delete)

Background Jobs (via APScheduler):
- send_invite_reminders: Runs hourly, reminds invitees after 48 hours
"""

from .company_router import router as company_router
from .jobs import register_application_jobs
from .router import router

__all__ = ["router", "company_router", "register_application_jobs"]
