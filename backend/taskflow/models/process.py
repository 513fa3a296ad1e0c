# /taskflow/models/process.py

import re
from enum import Enum
from typing import Optional, Tuple, Dict, Any, Callable, Literal, Union, Annotated
from pydantic import BaseModel, ConfigDict, Field

from taskflow.models.context import ProcessContext

# This file defines process definitions as pure data: slots (what a process
# needs), steps (what it does) and triggers (how it is recognized). Steps are
# a closed tagged union discriminated by `type`; each variant carries only the
# fields its kind uses.

Predicate = Callable[[ProcessContext], bool]
Condition = Union[str, Predicate]
Template = Union[str, Callable[[ProcessContext], str]]
Hook = Callable[[ProcessContext], Any]
ToolArgs = Union[Dict[str, Any], Callable[[ProcessContext], Dict[str, Any]]]


class SlotType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    DATE = "date"
    USER_ID = "user_id"
    CLIENT_ID = "client_id"
    TASK_ID = "task_id"


class SlotSource(str, Enum):
    MESSAGE = "message"
    TOOL = "tool"
    CONTEXT = "context"
    DEFAULT = "default"


class SlotValidation(BaseModel):
    model_config = ConfigDict(frozen=True)

    pattern: Optional[re.Pattern] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    enum: Optional[Tuple[str, ...]] = None
    custom_validator: Optional[Callable[[Any], Union[bool, str]]] = Field(
        default=None, description="Returns True, False or an error message"
    )


class ProcessSlot(BaseModel):
    """A named, typed datum the process must obtain before it can act."""
    model_config = ConfigDict(frozen=True)

    name: str
    type: SlotType = SlotType.STRING
    required: bool = False
    description: str = ""
    extract_from: SlotSource = SlotSource.MESSAGE
    tool_to_call: Optional[str] = None
    tool_args: Dict[str, Any] = Field(default_factory=dict)
    context_key: Optional[str] = Field(default=None, description="Identity field read when extract_from is 'context'")
    default_value: Optional[Any] = None
    validation: Optional[SlotValidation] = None
    prompt_if_missing: Optional[str] = None


class FailAction(str, Enum):
    RETRY = "retry"
    ABORT = "abort"
    SKIP = "skip"


class ValidationRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    condition: Condition
    error_message: str
    fail_action: FailAction = FailAction.ABORT


class Branch(BaseModel):
    model_config = ConfigDict(frozen=True)

    condition: Condition
    next_step: str


class BaseStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    on_enter: Optional[Hook] = None
    on_exit: Optional[Hook] = None


class CollectStep(BaseStep):
    type: Literal["collect"] = "collect"
    slots: Tuple[str, ...] = Field(default_factory=tuple)
    next_step: Optional[str] = None


class ValidateStep(BaseStep):
    type: Literal["validate"] = "validate"
    validations: Tuple[ValidationRule, ...] = Field(default_factory=tuple)
    next_step: Optional[str] = None


class ConfirmStep(BaseStep):
    type: Literal["confirm"] = "confirm"
    confirm_message: Optional[Template] = None
    next_step: Optional[str] = None


class ExecuteStep(BaseStep):
    type: Literal["execute"] = "execute"
    tool: str
    tool_args: ToolArgs = Field(default_factory=dict)
    next_step: Optional[str] = None


class RespondStep(BaseStep):
    type: Literal["respond"] = "respond"
    response: Template = ""
    next_step: Optional[str] = None


class BranchStep(BaseStep):
    """First branch whose condition holds wins; no match completes the process."""
    type: Literal["branch"] = "branch"
    branches: Tuple[Branch, ...] = Field(default_factory=tuple)


ProcessStep = Annotated[
    Union[CollectStep, ValidateStep, ConfirmStep, ExecuteStep, RespondStep, BranchStep],
    Field(discriminator="type"),
]


class TriggerType(str, Enum):
    PATTERN = "pattern"
    KEYWORD = "keyword"
    INTENT = "intent"
    COMMAND = "command"


class ProcessTrigger(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: TriggerType
    patterns: Tuple[re.Pattern, ...] = Field(default_factory=tuple)
    keywords: Tuple[str, ...] = Field(default_factory=tuple)
    intents: Tuple[str, ...] = Field(default_factory=tuple)
    commands: Tuple[str, ...] = Field(default_factory=tuple)
    priority: int = Field(default=0, description="Higher = evaluated first")
    condition: Optional[Predicate] = None


class ProcessConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    requires_confirmation: bool = True
    max_retries: int = 3
    timeout_ms: int = 300_000
    allow_cancel: bool = True


class ProcessDefinition(BaseModel):
    """Complete, immutable description of a structured process."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    version: str = "1.0.0"
    triggers: Tuple[ProcessTrigger, ...] = Field(default_factory=tuple)
    slots: Tuple[ProcessSlot, ...] = Field(default_factory=tuple)
    steps: Tuple[ProcessStep, ...] = Field(default_factory=tuple)
    initial_step: str
    config: ProcessConfig = Field(default_factory=ProcessConfig)
    tags: Tuple[str, ...] = Field(default_factory=tuple)

    def get_step(self, step_id: str) -> Optional[ProcessStep]:
        return next((step for step in self.steps if step.id == step_id), None)

    def get_slot(self, name: str) -> Optional[ProcessSlot]:
        return next((slot for slot in self.slots if slot.name == name), None)
