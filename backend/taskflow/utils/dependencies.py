# /taskflow/utils/dependencies.py

import secrets
import structlog
from fastapi import Request, HTTPException

from taskflow.config.settings import settings

log = structlog.get_logger(__name__)


async def verify_api_key(request: Request):
    """Enforces the X-API-KEY header when an API key is configured; open otherwise."""
    if not settings.api_key:
        return
    provided_key = request.headers.get("X-API-KEY")
    if not (provided_key and secrets.compare_digest(provided_key, settings.api_key)):
        log.warning("api_key_rejected", path=request.url.path)
        raise HTTPException(status_code=403, detail="Invalid or missing API key")
