# /taskflow/utils/lifecycle.py

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from fastapi import FastAPI

from taskflow.utils.logging import setup_logging
from taskflow.services.process_service import process_service
from taskflow.services.tool_service import WebhookToolInvoker
from taskflow.config.settings import settings

# This file manages the application's lifespan: loading the built-in process
# catalogue on startup, sweeping stale session contexts while running, and
# closing outbound connections on shutdown.

logger = logging.getLogger(__name__)


async def sweep_expired_contexts(interval_seconds: int):
    """Periodically evicts contexts whose process timeout elapsed."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await process_service.purge_expired()
        except Exception as e:
            logger.error(f"Expired context sweep failed: {e}", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    setup_logging()

    logger.info("Application starting up...")

    process_service.load_default_processes()

    sweeper = None
    if settings.session_sweep_interval_seconds > 0:
        sweeper = asyncio.create_task(sweep_expired_contexts(settings.session_sweep_interval_seconds))

    logger.info("Application startup complete. Ready to accept requests.")

    yield  # Application is now running

    logger.info("Application shutting down...")

    if sweeper is not None:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper
    if isinstance(process_service.tool_invoker, WebhookToolInvoker):
        await process_service.tool_invoker.aclose()
