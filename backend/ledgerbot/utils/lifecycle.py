# /ledgerbot/utils/lifecycle.py

import logging
from contextlib import asynccontextmanager
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from ledgerbot.config.settings import settings
from ledgerbot.services.conversation_service import create_conversation_service
from ledgerbot.utils.logging import setup_logging

# This file manages the application's lifespan: wiring the conversation
# service on startup, scheduling the expiry sweep, and draining queues and
# closing HTTP clients on shutdown.

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "sweep_expired_state"


def create_scheduler(app: FastAPI) -> AsyncIOScheduler | None:
    """Schedules the periodic sweep of expired sessions and cache entries."""
    if settings.sweep_interval_seconds <= 0:
        logger.info("Expiry sweep disabled (SWEEP_INTERVAL_SECONDS=0)")
        return None

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        app.state.conversation_service.sweep_expired,
        'interval',
        seconds=settings.sweep_interval_seconds,
        id=SWEEP_JOB_ID,
        replace_existing=True,
        coalesce=True,
    )
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    setup_logging(logging.DEBUG if settings.environment == "development" else logging.INFO)

    logger.info("Application starting up...")

    # Tests may wire their own service before the app starts
    if getattr(app.state, "conversation_service", None) is None:
        app.state.conversation_service = create_conversation_service(settings)

    scheduler = create_scheduler(app)
    if scheduler:
        scheduler.start()
        logger.info(f"Expiry sweep scheduled every {settings.sweep_interval_seconds}s")

    logger.info("Application startup complete. Ready to accept requests.")

    yield  # Application is now running

    logger.info("Application shutting down...")

    if scheduler:
        scheduler.shutdown(wait=False)
    await app.state.conversation_service.shutdown()
    logger.info("Application shutdown complete.")
