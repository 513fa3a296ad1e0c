# backend/tests/unit/test_registry.py
import pytest
from pydantic import ValidationError

from taskflow.models.context import ProcessContext
from taskflow.models.process import (
    Branch,
    BranchStep,
    CollectStep,
    ExecuteStep,
    ProcessDefinition,
    ProcessSlot,
    ProcessTrigger,
    RespondStep,
    SlotSource,
    TriggerType,
)
from taskflow.workflows.validator import DefinitionError, DuplicateProcessError, validate_definition


def make_definition(**overrides):
    fields = dict(
        id="demo",
        name="Demo",
        triggers=[ProcessTrigger(type=TriggerType.KEYWORD, keywords=["demo"])],
        slots=[ProcessSlot(name="client_name", required=True)],
        steps=[
            CollectStep(id="collect", slots=["client_name"], next_step="run"),
            ExecuteStep(id="run", tool="search_clients", next_step="done"),
            RespondStep(id="done", response="Listo"),
        ],
        initial_step="collect",
    )
    fields.update(overrides)
    return ProcessDefinition(**fields)


def test_valid_definition():
    assert validate_definition(make_definition()) == {"is_valid": True, "error_code": None, "message": None}


@pytest.mark.parametrize("overrides, error_code", [
    ({"id": "  "}, "EMPTY_PROCESS_ID"),
    ({"steps": []}, "NO_STEPS"),
    ({"steps": [RespondStep(id="done"), RespondStep(id="done")], "initial_step": "done"}, "DUPLICATE_STEP_ID"),
    ({"slots": [ProcessSlot(name="client_name"), ProcessSlot(name="client_name")]}, "DUPLICATE_SLOT"),
    ({"initial_step": "nowhere"}, "UNKNOWN_INITIAL_STEP"),
    ({"steps": [RespondStep(id="done", next_step="missing")], "initial_step": "done"}, "DANGLING_STEP_REFERENCE"),
    ({"steps": [BranchStep(id="route", branches=[Branch(condition="x exists", next_step="missing")])],
      "initial_step": "route"}, "DANGLING_STEP_REFERENCE"),
    ({"steps": [CollectStep(id="collect", slots=["undeclared"])], "initial_step": "collect"}, "UNKNOWN_SLOT"),
    ({"slots": [ProcessSlot(name="client_id", extract_from=SlotSource.TOOL)]}, "MISSING_TOOL"),
])
def test_invalid_definitions(overrides, error_code):
    overrides = dict(overrides)
    if "slots" in overrides and "steps" not in overrides:
        overrides["steps"] = [RespondStep(id="done")]
        overrides["initial_step"] = "done"
    result = validate_definition(make_definition(**overrides))
    assert result["is_valid"] is False
    assert result["error_code"] == error_code
    assert result["message"]


def test_register_and_lookup(registry):
    definition = make_definition()
    registry.register(definition)

    assert "demo" in registry
    assert len(registry) == 1
    assert registry.get("demo") is definition
    assert registry.get("other") is None
    assert registry.get_all() == [definition]


def test_register_rejects_invalid_definitions(registry):
    with pytest.raises(DefinitionError) as exc_info:
        registry.register(make_definition(initial_step="nowhere"))
    assert exc_info.value.error_code == "UNKNOWN_INITIAL_STEP"
    assert exc_info.value.process_id == "demo"
    assert "demo" not in registry


def test_duplicate_registration(registry):
    registry.register(make_definition())
    with pytest.raises(DuplicateProcessError):
        registry.register(make_definition(name="Again"))

    registry.register(make_definition(name="Replaced"), replace=True)
    assert registry.get("demo").name == "Replaced"
    assert len(registry) == 1


def test_unregister_removes_triggers(registry):
    registry.register(make_definition())
    context = ProcessContext(process_id="", session_id="s1", user_id="u1")
    assert registry.detector.detect("demo", context).process_id == "demo"

    registry.unregister("demo")
    assert "demo" not in registry
    assert registry.detector.detect("demo", context) is None
    # Unknown ids are ignored
    registry.unregister("demo")


def test_clear(registry):
    registry.register(make_definition())
    registry.register(make_definition(id="other", triggers=[]))
    registry.clear()
    assert len(registry) == 0
    assert registry.get_all() == []


def test_registered_definition_cannot_be_changed(registry):
    definition = make_definition()
    registry.register(definition)

    assert isinstance(definition.steps, tuple)
    with pytest.raises(AttributeError):
        definition.steps.append(RespondStep(id="extra", next_step="missing"))
    with pytest.raises(ValidationError):
        definition.initial_step = "nowhere"
    with pytest.raises(AttributeError):
        definition.triggers[0].keywords.append("otro")
    assert [step.id for step in registry.get("demo").steps] == ["collect", "run", "done"]
