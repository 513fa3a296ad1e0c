# /taskflow/models/tools.py

from typing import Optional, Dict, Any
from pydantic import BaseModel, Field

from taskflow.config import strings


class ToolError(Exception):
    """Raised by tool handlers; converted into a failed ToolResult at the execute boundary."""


class ToolCall(BaseModel):
    id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    user_id: str
    is_admin: bool = False


class ToolResult(BaseModel):
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ToolResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: Optional[str]) -> "ToolResult":
        return cls(success=False, error=error or strings.TOOL_GENERIC_ERROR)

    @classmethod
    def from_payload(cls, payload: Any) -> "ToolResult":
        """Wraps a raw tool payload; a dict carrying success=False is a failure."""
        if isinstance(payload, dict) and payload.get("success") is False:
            return cls.fail(payload.get("error"))
        return cls.ok(payload)
