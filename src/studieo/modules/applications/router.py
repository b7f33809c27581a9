"""
Applications Router

Student-facing endpoints for team applications.

Endpoints:
- GET /applications/limits - Advisory application limits for the caller
- POST /applications - Create an application (multipart, with design document)
- POST /applications/{id}/submit - Lead submits the application
- POST /applications/{id}/withdraw - Lead withdraws a pending application
- GET /applications/{id}/design-doc - Signed link to the design document
- POST /applications/{id}/confirm - Invited member confirms
- POST /applications/{id}/decline - Invited member declines

Every service result with success=False becomes an HTTPException carrying
{"error", "message"}, except an OPEN project's capacity rejection, which
is a completed decision and is returned as a 200 body.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from studieo.core.auth import Principal, get_optional_principal
from studieo.core.database import get_db
from studieo.core.rate_limit import enforce_rate_limit
from studieo.modules.applications import service
from studieo.modules.applications.schemas import (
    ApplicationActionResult,
    DesignDocUrlResult,
    QuestionAnswer,
    ServiceResult,
    StudentLimits,
)

logger = logging.getLogger(__name__)

router = APIRouter()

RATE_LIMIT_CREATE = (10, 60)  # 10 applications per minute per student

PDF_CONTENT_TYPE = "application/pdf"

_answers_adapter = TypeAdapter(list[QuestionAnswer])


def result_or_raise(result: ServiceResult) -> ServiceResult:
    """
    Return a service result, or raise it as an HTTPException if it failed.

    Raises:
        HTTPException: With the result's status code and {"error", "message"}
    """
    if result.success or result.error_code == service.AUTO_REJECTED:
        return result

    raise HTTPException(
        status_code=result.status_code or status.HTTP_400_BAD_REQUEST,
        detail={
            "error": result.error_code,
            "message": result.error,
        },
    )


def _validation_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={
            "error": "VALIDATION_ERROR",
            "message": message,
        },
    )


def _parse_answers(raw: str | None) -> list[QuestionAnswer]:
    if not raw:
        return []
    try:
        return _answers_adapter.validate_json(raw)
    except PydanticValidationError as e:
        raise _validation_error("answers must be a JSON list of {question, answer}") from e


@router.get(
    "/limits",
    response_model=StudentLimits,
    summary="Get Application Limits",
    description="""
Current counts against the student's application limits.

The result is advisory: limits are checked again when an application is
created.
""",
)
async def get_limits(
    principal: Principal | None = Depends(get_optional_principal),
    db: AsyncSession = Depends(get_db),
) -> StudentLimits:
    return await service.check_student_limits(db, principal)


@router.post(
    "",
    response_model=ApplicationActionResult,
    status_code=status.HTTP_201_CREATED,
    summary="Create Application",
    description="""
Apply to a project as team lead.

Send as multipart form data:
- `project_id`: the project
- `team_member_ids`: repeated, the students to invite (not yourself)
- `answers`: optional JSON list of `{"question", "answer"}`
- `design_doc`: the design document (PDF)

Invited students receive an email and must confirm. A team of one is
submitted immediately; for OPEN projects the response then carries the
capacity decision.

**Rate Limit:** 10 requests per minute per student.
""",
    responses={
        200: {"description": "Solo team created and rejected by a full OPEN project"},
        201: {"description": "Application created"},
        409: {"description": "Already applied to this project"},
        422: {"description": "Limit reached, invalid team size or invalid input"},
        429: {"description": "Rate limit exceeded"},
        502: {"description": "Storage or database failure; nothing was kept"},
    },
)
async def create_application(
    response: Response,
    project_id: UUID = Form(...),
    team_member_ids: list[UUID] = Form(default=[]),
    answers: str | None = Form(default=None),
    design_doc: UploadFile | None = File(default=None),
    principal: Principal | None = Depends(get_optional_principal),
    db: AsyncSession = Depends(get_db),
) -> ServiceResult:
    """
    Create an application with its team and design document.

    A solo team to a full OPEN project is created and rejected in the same
    call; that answer is 200, not 201.

    Raises:
        HTTPException 401/403/404/409/422/502: From the service result
        HTTPException 429: If the student is over the rate limit
    """
    if principal is not None:
        limit, window = RATE_LIMIT_CREATE
        await enforce_rate_limit(f"applications:create:{principal.id}", limit, window)

    parsed_answers = _parse_answers(answers)

    content = None
    if design_doc is not None:
        if design_doc.content_type and design_doc.content_type != PDF_CONTENT_TYPE:
            raise _validation_error("The design document must be a PDF")
        content = await design_doc.read()

    result = await service.create_application(
        db,
        principal,
        project_id=project_id,
        team_member_ids=team_member_ids,
        design_doc=content,
        answers=parsed_answers,
    )
    if result.error_code == service.AUTO_REJECTED:
        response.status_code = status.HTTP_200_OK
    return result_or_raise(result)


@router.post(
    "/{application_id}/submit",
    response_model=ApplicationActionResult,
    summary="Submit Application",
    description="""
Submit a PENDING application as its team lead.

Members who have not confirmed yet are asked to confirm in the
submission email. For OPEN projects the application is decided at once:
`auto_approved` is true on acceptance; a full project answers
`success: false` with error `AUTO_REJECTED`.
""",
)
async def submit_application(
    application_id: UUID,
    principal: Principal | None = Depends(get_optional_principal),
    db: AsyncSession = Depends(get_db),
) -> ServiceResult:
    result = await service.submit_application(db, principal, application_id)
    return result_or_raise(result)


@router.post(
    "/{application_id}/withdraw",
    response_model=ApplicationActionResult,
    summary="Withdraw Application",
    description="Withdraw a PENDING application as its team lead. Invited members are notified.",
)
async def withdraw_application(
    application_id: UUID,
    principal: Principal | None = Depends(get_optional_principal),
    db: AsyncSession = Depends(get_db),
) -> ServiceResult:
    result = await service.withdraw_application(db, principal, application_id)
    return result_or_raise(result)


@router.get(
    "/{application_id}/design-doc",
    response_model=DesignDocUrlResult,
    summary="Get Design Document Link",
    description="""
Short-lived signed link to the application's design document.

Available to the team and to the project's company. The link expires
after `expires_in` seconds.
""",
)
async def get_design_doc(
    application_id: UUID,
    principal: Principal | None = Depends(get_optional_principal),
    db: AsyncSession = Depends(get_db),
) -> ServiceResult:
    result = await service.get_design_doc_url(db, principal, application_id)
    return result_or_raise(result)


@router.post(
    "/{application_id}/confirm",
    response_model=ApplicationActionResult,
    summary="Confirm Team Membership",
    description="""
Accept an invitation to a team.

When the last invited member confirms, the application is submitted
automatically.
""",
)
async def confirm_membership(
    application_id: UUID,
    principal: Principal | None = Depends(get_optional_principal),
    db: AsyncSession = Depends(get_db),
) -> ServiceResult:
    result = await service.confirm_team_membership(db, principal, application_id)
    return result_or_raise(result)


@router.post(
    "/{application_id}/decline",
    response_model=ApplicationActionResult,
    summary="Decline Team Membership",
    description="Decline an invitation to a PENDING application. The team is notified.",
)
async def decline_membership(
    application_id: UUID,
    principal: Principal | None = Depends(get_optional_principal),
    db: AsyncSession = Depends(get_db),
) -> ServiceResult:
    result = await service.decline_team_membership(db, principal, application_id)
    return result_or_raise(result)
