"""
Company Applications Router

Endpoints for company users reviewing applications to their projects.

Endpoints:
- POST /company/applications/{id}/accept - Accept a submitted application
- POST /company/applications/{id}/reject - Reject a submitted application
- DELETE /company/applications/{id} - Delete an application (any status)

Security:
- The caller must be a company user of the project's company
- Rate limiting on every action to prevent abuse
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from studieo.core.auth import Principal, get_optional_principal
from studieo.core.database import get_db
from studieo.core.rate_limit import enforce_rate_limit
from studieo.modules.applications import service
from studieo.modules.applications.router import result_or_raise
from studieo.modules.applications.schemas import ApplicationActionResult, ServiceResult

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Rate Limiting Configuration
# ============================================

RATE_LIMIT_DECISION = (30, 60)  # 30 decisions per minute per user


async def _check_company_rate_limit(principal: Principal | None, action: str) -> None:
    if principal is None:
        return
    limit, window = RATE_LIMIT_DECISION
    await enforce_rate_limit(f"company:{action}:{principal.id}", limit, window)


@router.post(
    "/{application_id}/accept",
    response_model=ApplicationActionResult,
    summary="Accept Application",
    description="""
Accept a SUBMITTED application.

Every team member is emailed with the project contact's details.

**Rate Limit:** 30 requests per minute.
""",
)
async def accept_application(
    application_id: UUID,
    principal: Principal | None = Depends(get_optional_principal),
    db: AsyncSession = Depends(get_db),
) -> ServiceResult:
    await _check_company_rate_limit(principal, "decide")

    result = await service.accept_application(db, principal, application_id)
    if result.success:
        logger.info(f"AUDIT: Company user {principal.id} accepted application {application_id}")
    return result_or_raise(result)


@router.post(
    "/{application_id}/reject",
    response_model=ApplicationActionResult,
    summary="Reject Application",
    description="""
Reject a SUBMITTED application. Every team member is emailed.

**Rate Limit:** 30 requests per minute.
""",
)
async def reject_application(
    application_id: UUID,
    principal: Principal | None = Depends(get_optional_principal),
    db: AsyncSession = Depends(get_db),
) -> ServiceResult:
    await _check_company_rate_limit(principal, "decide")

    result = await service.reject_application(db, principal, application_id)
    if result.success:
        logger.info(f"AUDIT: Company user {principal.id} rejected application {application_id}")
    return result_or_raise(result)


@router.delete(
    "/{application_id}",
    response_model=ApplicationActionResult,
    summary="Delete Application",
    description="""
Delete an application in any status, with its team and design document.

This is cleanup, not a decision: nobody is notified.

**Rate Limit:** 30 requests per minute.
""",
)
async def delete_application(
    application_id: UUID,
    principal: Principal | None = Depends(get_optional_principal),
    db: AsyncSession = Depends(get_db),
) -> ServiceResult:
    await _check_company_rate_limit(principal, "delete")

    result = await service.delete_application(db, principal, application_id)
    if result.success:
        logger.info(f"AUDIT: Company user {principal.id} deleted application {application_id}")
    return result_or_raise(result)
