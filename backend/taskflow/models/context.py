# /taskflow/models/context.py

from enum import Enum
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProcessStatus(str, Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    CONFIRMING = "confirming"
    EXECUTING = "executing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"


TERMINAL_STATUSES = {ProcessStatus.COMPLETED, ProcessStatus.CANCELLED, ProcessStatus.ERROR}


class HistoryAction(str, Enum):
    ENTER = "enter"
    TOOL = "tool"
    ERROR = "error"
    INPUT = "input"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    MODIFY = "modify"


class HistoryEntry(BaseModel):
    """One append-only record of what the executor did."""
    step: str
    action: HistoryAction
    timestamp: datetime = Field(default_factory=utcnow)
    result: Optional[Any] = None
    error: Optional[str] = None


class UserContext(BaseModel):
    """Identity passthrough. The executor never makes authorization decisions itself."""
    is_admin: bool = False
    user_name: Optional[str] = None
    timezone: Optional[str] = None


class ProcessContext(BaseModel):
    """
    Mutable execution state of the single in-flight process of a session.

    Mutated in place by every step the executor runs. `slots` only grows
    (or is overwritten by an explicit modification) while the process lives.
    """
    process_id: str
    session_id: str
    user_id: str
    status: ProcessStatus = Field(default=ProcessStatus.IDLE)
    current_step: str = Field(default="")
    slots: Dict[str, Any] = Field(default_factory=dict)
    execution_history: List[HistoryEntry] = Field(default_factory=list)
    tool_results: Dict[str, Any] = Field(default_factory=dict)
    original_message: str = Field(default="")
    pending_responses: List[str] = Field(default_factory=list)
    awaiting_confirmation: bool = False
    awaiting_input: bool = False
    awaiting_slot: Optional[str] = Field(default=None, description="Slot the pending prompt asked for")
    retry_counts: Dict[str, int] = Field(default_factory=dict, description="Invalid answers per slot")
    user_context: UserContext = Field(default_factory=UserContext)
    started_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def has_slot(self, name: str) -> bool:
        return self.slots.get(name) is not None

    def record(self, step: str, action: HistoryAction, result: Any = None, error: Optional[str] = None) -> None:
        self.execution_history.append(HistoryEntry(step=step, action=action, result=result, error=error))

    def touch(self) -> None:
        self.updated_at = utcnow()

    def tool_calls_count(self) -> int:
        return sum(1 for entry in self.execution_history if entry.action == HistoryAction.TOOL)
