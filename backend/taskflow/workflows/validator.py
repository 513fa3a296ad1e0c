# /taskflow/workflows/validator.py

"""
Definition-time validation of process definitions.

A malformed definition (dangling step reference, unknown slot, tool-sourced
slot without a tool) is rejected when it is registered, never discovered in
the middle of a conversation.

All functions are pure: no logging, no registry access, no state mutation.
"""

from typing import Optional, TypedDict

from taskflow.models.process import BranchStep, CollectStep, ProcessDefinition, SlotSource


class ValidationResult(TypedDict):
    """Result of a validation check."""
    is_valid: bool
    error_code: Optional[str]
    message: Optional[str]


class DefinitionError(ValueError):
    """Raised when a process definition fails validation."""

    def __init__(self, process_id: str, result: ValidationResult):
        self.process_id = process_id
        self.error_code = result["error_code"]
        super().__init__(f"Invalid process definition '{process_id}': {result['message']}")


class DuplicateProcessError(ValueError):
    """Raised when a process id is registered twice."""


def _fail(error_code: str, message: str) -> ValidationResult:
    return {"is_valid": False, "error_code": error_code, "message": message}


def validate_definition(definition: ProcessDefinition) -> ValidationResult:
    """
    Validate the structure of a process definition.

    Checks, in order: non-empty id, at least one step, unique step ids,
    unique slot names, an existing initial step, every next_step and branch
    target, the slots named by collect steps and the tool of tool-sourced slots.
    """
    if not definition.id or not definition.id.strip():
        return _fail("EMPTY_PROCESS_ID", "Process id cannot be empty")

    if not definition.steps:
        return _fail("NO_STEPS", f"Process '{definition.id}' defines no steps")

    step_ids = [step.id for step in definition.steps]
    duplicates = sorted({step_id for step_id in step_ids if step_ids.count(step_id) > 1})
    if duplicates:
        return _fail("DUPLICATE_STEP_ID", f"Duplicate step ids: {', '.join(duplicates)}")

    slot_names = [slot.name for slot in definition.slots]
    duplicates = sorted({name for name in slot_names if slot_names.count(name) > 1})
    if duplicates:
        return _fail("DUPLICATE_SLOT", f"Duplicate slot names: {', '.join(duplicates)}")

    known_steps = set(step_ids)
    if definition.initial_step not in known_steps:
        return _fail("UNKNOWN_INITIAL_STEP", f"Initial step '{definition.initial_step}' does not exist")

    for step in definition.steps:
        if isinstance(step, BranchStep):
            targets = [branch.next_step for branch in step.branches]
        else:
            targets = [step.next_step] if step.next_step else []
        for target in targets:
            if target not in known_steps:
                return _fail(
                    "DANGLING_STEP_REFERENCE",
                    f"Step '{step.id}' references unknown step '{target}'",
                )

        if isinstance(step, CollectStep):
            for slot_name in step.slots:
                if slot_name not in slot_names:
                    return _fail("UNKNOWN_SLOT", f"Step '{step.id}' collects undeclared slot '{slot_name}'")

    for slot in definition.slots:
        if slot.extract_from == SlotSource.TOOL and not slot.tool_to_call:
            return _fail("MISSING_TOOL", f"Slot '{slot.name}' is tool-sourced but names no tool")

    return {"is_valid": True, "error_code": None, "message": None}
