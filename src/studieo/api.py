from fastapi import APIRouter

from studieo.modules.applications import company_router as company_applications_router
from studieo.modules.applications import router as applications_router

api_router = APIRouter()

api_router.include_router(applications_router, prefix="/applications", tags=["Applications"])

api_router.include_router(
    company_applications_router,
    prefix="/company/applications",
    tags=["Company - Applications"],
)
