# /taskflow/routes/processes.py

import logging
from fastapi import APIRouter, Depends, HTTPException

from taskflow.config.settings import settings
from taskflow.models.api import (
    APIResponse,
    ChatRequest,
    ChatResponse,
    ProcessMessageResponse,
    ProcessRequest,
    ProcessSummary,
)
from taskflow.services.chat_service import chat_service
from taskflow.services.process_service import process_service
from taskflow.utils.dependencies import verify_api_key

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Processes"],
    dependencies=[Depends(verify_api_key)],
)


@router.post("/processes/message", response_model=ProcessMessageResponse)
async def process_message(request: ProcessRequest):
    """Offers a message to the structured processes. A null result means the caller should use its LLM."""
    result = await process_service.process_message(
        request.message,
        user_id=request.user_id,
        session_id=request.session_id,
        is_admin=request.is_admin,
        user_name=request.user_name,
        timezone=request.timezone,
    )
    return ProcessMessageResponse(handled=result is not None, result=result)


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest):
    """Process-first chat: structured processes answer when they can, the LLM otherwise."""
    return await chat_service.chat(request)


@router.get("/processes", response_model=APIResponse)
async def list_processes():
    summaries = [
        ProcessSummary(
            id=definition.id,
            name=definition.name,
            description=definition.description,
            version=definition.version,
            tags=definition.tags,
        ).model_dump()
        for definition in process_service.list_processes()
    ]
    return APIResponse(
        success=True,
        message=f"{len(summaries)} processes registered",
        data={"processes": summaries},
        version=settings.api_version,
    )


@router.get("/sessions/{session_id}", response_model=APIResponse)
async def get_session_state(session_id: str):
    state = await process_service.get_active_process_state(session_id)
    if state is None:
        raise HTTPException(status_code=404, detail="No process context for this session")
    return APIResponse(
        success=True,
        message="Session state retrieved",
        data={
            "active": await process_service.has_active_process(session_id),
            "state": state.model_dump(mode="json"),
        },
        version=settings.api_version,
    )


@router.delete("/sessions/{session_id}", response_model=APIResponse)
async def clear_session(session_id: str):
    await process_service.clear_session_context(session_id)
    logger.info(f"Cleared process context for session {session_id}")
    return APIResponse(success=True, message="Session context cleared", version=settings.api_version)
