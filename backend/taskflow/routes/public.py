# /taskflow/routes/public.py

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from prometheus_client import generate_latest

from taskflow.config.settings import settings
from taskflow.models.context import utcnow
from taskflow.services.process_service import process_service
from taskflow.utils.dependencies import verify_api_key

# This file defines public-facing endpoints that do not require authentication,
# such as the root and health checks. /metrics is protected by the API key
# when one is configured.

router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Taskflow Process Executor",
        "version": "1.0.0",
        "status": "operational",
        "environment": settings.environment,
    }


@router.get("/health", summary="Basic Health Check")
async def health_check():
    """Basic health check for load balancers."""
    return {
        "status": "healthy",
        "timestamp": utcnow(),
        "processes": len(process_service.registry),
        "active_sessions": process_service.store.size(),
    }


@router.get("/metrics", tags=["Monitoring"])
async def metrics(request: Request, _: bool = Depends(verify_api_key)):
    """Prometheus metrics endpoint."""
    return PlainTextResponse(generate_latest(), media_type="text/plain")
