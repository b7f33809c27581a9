"""
Application Schemas

Pydantic schemas for request validation and the structured results
returned by the lifecycle operations.
"""

from uuid import UUID

from pydantic import BaseModel, Field

# Re-use enums from models
from studieo.modules.applications.models import ApplicationStatus


class QuestionAnswer(BaseModel):
    """One answer to a project's optional application question."""

    question: str = Field(..., min_length=1, max_length=500)
    answer: str = Field("", max_length=5000)


class StudentLimits(BaseModel):
    """Eligibility of a student to start another application."""

    can_apply: bool
    active_projects: int
    active_applications: int
    errors: list[str] = Field(default_factory=list)


# ============================================
# Operation results
# ============================================


class ServiceResult(BaseModel):
    """Common shape of every lifecycle operation's result."""

    success: bool
    error: str | None = None
    error_code: str | None = None
    # HTTP status the web layer should answer with; not serialized
    status_code: int | None = Field(default=None, exclude=True)


class ApplicationActionResult(ServiceResult):
    """Result of create / submit / accept / reject / withdraw / delete / confirm / decline."""

    application_id: UUID | None = None
    auto_approved: bool | None = None
    decision: ApplicationStatus | None = None


class DesignDocUrlResult(ServiceResult):
    """Short-lived signed link to an application's design document."""

    url: str | None = None
    expires_in: int | None = None
