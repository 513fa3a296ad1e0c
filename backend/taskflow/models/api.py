# /taskflow/models/api.py

from pydantic import BaseModel, Field
from typing import List, Dict, Optional, Literal
from datetime import datetime

from taskflow.models.context import utcnow
from taskflow.models.result import ProcessResult

# This file contains Pydantic models that define the structure of data for
# API requests and responses, ensuring type safety and validation.


class ProcessRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)
    user_id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    is_admin: bool = False
    user_name: Optional[str] = None
    timezone: Optional[str] = None


class ProcessMessageResponse(BaseModel):
    handled: bool
    result: Optional[ProcessResult] = None


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)
    user_id: str = Field(..., min_length=1)
    session_id: Optional[str] = None
    user_name: Optional[str] = None
    is_admin: bool = False
    conversation_history: List[ChatMessage] = Field(default_factory=list)
    processes_only: bool = False
    skip_processes: bool = False


class ChatMetrics(BaseModel):
    tokens_used: int = 0
    estimated_tokens_saved: int = 0
    duration_ms: int = 0


class ChatResponse(BaseModel):
    content: str
    session_id: str
    handled_by: Literal["process", "llm"]
    process_id: Optional[str] = None
    result: Optional[ProcessResult] = None
    conversation_history: List[ChatMessage] = Field(default_factory=list)
    metrics: ChatMetrics = Field(default_factory=ChatMetrics)


class ProcessSummary(BaseModel):
    id: str
    name: str
    description: str
    version: str
    tags: List[str] = Field(default_factory=list)


class APIResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Dict] = None
    timestamp: datetime = Field(default_factory=utcnow)
    version: str
