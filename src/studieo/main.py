"""
Studieo API - Main Application Entry Point

Builds the FastAPI application: connections and the job scheduler are
opened in the lifespan, pending notification emails are flushed on
shutdown, and the versioned API is mounted under /api/v1.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from studieo.api import api_router
from studieo.core.config import settings
from studieo.core.database import close_db, init_db
from studieo.core.notifications import dispatcher
from studieo.core.redis import close_redis, init_redis
from studieo.core.scheduler import list_jobs, run_job_now, start_scheduler, stop_scheduler
from studieo.modules.applications import register_application_jobs

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("studieo")

# Pending emails get this long to finish on shutdown
NOTIFICATION_DRAIN_TIMEOUT_SECONDS = 10


async def _start_jobs() -> None:
    register_application_jobs()
    await start_scheduler()


async def _startup_step(name: str, step) -> None:
    """Run a startup step; outside production a failure is logged and skipped."""
    try:
        await step()
        logger.info(f"[OK] {name}")
    except Exception as e:
        logger.error(f"[FAIL] {name}: {e}")
        if settings.is_production:
            raise


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info(f"Starting Studieo API in {settings.python_env} mode")

    await _startup_step("Redis connected", init_redis)
    await _startup_step("Database connected", init_db)
    await _startup_step("Background scheduler started", _start_jobs)

    yield

    logger.info("Shutting down Studieo API")
    # Jobs first: they may still dispatch emails
    await stop_scheduler()
    await dispatcher.drain(timeout=NOTIFICATION_DRAIN_TIMEOUT_SECONDS)
    await close_redis()
    await close_db()


app = FastAPI(
    title="Studieo API",
    description="Studieo marketplace API - student team applications to company projects",
    version="0.1.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

app.include_router(api_router, prefix="/api/v1")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for container orchestration."""
    return {"status": "healthy"}


# ============================================
# Background Job Debug Endpoints
# ============================================
# Not mounted in production, where jobs only run on schedule.

debug_router = APIRouter(prefix="/debug/jobs", tags=["Debug"])


@debug_router.get("")
async def get_jobs():
    """List registered background jobs and their next run time."""
    return {"jobs": list_jobs()}


@debug_router.post("/{job_id}/trigger")
async def trigger_job(job_id: str):
    """
    Run a background job now.

    Available jobs:
        - applications_send_invite_reminders

    Raises:
        HTTPException 404: If job_id is not registered.
    """
    try:
        return await run_job_now(job_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=f"Job {job_id} is not registered") from e


if not settings.is_production:
    app.include_router(debug_router)
