# /taskflow/models/result.py

from enum import Enum
from typing import Optional, List, Dict, Any, Literal
from pydantic import BaseModel, Field

from taskflow.models.context import ProcessStatus
from taskflow.models.process import ProcessTrigger


class ProcessErrorCode(str, Enum):
    PROCESS_NOT_FOUND = "PROCESS_NOT_FOUND"
    STEP_NOT_FOUND = "STEP_NOT_FOUND"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    MAX_ITERATIONS = "MAX_ITERATIONS"
    STEP_FAILED = "STEP_FAILED"


class QuickReply(BaseModel):
    label: str
    payload: str


class AwaitingInput(BaseModel):
    slot_name: str
    prompt: str


class AwaitingConfirmation(BaseModel):
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)


class ProcessMetrics(BaseModel):
    tool_calls_count: int = 0
    tokens_used: int = 0
    execution_time_ms: int = 0


class ProcessResult(BaseModel):
    """Externally visible outcome of one process_message / continue_process call."""
    success: bool
    process_id: str
    status: ProcessStatus
    response: str = ""
    data: Optional[Dict[str, Any]] = None
    awaiting_input: Optional[AwaitingInput] = None
    awaiting_confirmation: Optional[AwaitingConfirmation] = None
    quick_replies: Optional[List[QuickReply]] = None
    error: Optional[str] = None
    metrics: Optional[ProcessMetrics] = None


class TriggerMatch(BaseModel):
    process_id: str
    trigger: ProcessTrigger
    confidence: float
    extracted_data: Dict[str, Any] = Field(default_factory=dict)


ContinuationAction = Literal["confirm", "cancel", "modify", "input"]


class Continuation(BaseModel):
    should_continue: bool
    action: Optional[ContinuationAction] = None
    modifications: Dict[str, Any] = Field(default_factory=dict)


class ActiveProcessState(BaseModel):
    process_id: str
    status: ProcessStatus
    current_step: str
    awaiting_input: bool
    awaiting_confirmation: bool
