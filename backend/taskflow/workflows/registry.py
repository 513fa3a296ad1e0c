# /taskflow/workflows/registry.py

from typing import Dict, List, Optional

from taskflow.models.process import ProcessDefinition
from taskflow.workflows.intent_detector import IntentDetector
from taskflow.workflows.validator import DefinitionError, DuplicateProcessError, validate_definition


class ProcessRegistry:
    """In-memory catalogue of process definitions keyed by id."""

    def __init__(self, detector: Optional[IntentDetector] = None):
        self.detector = detector or IntentDetector()
        self._definitions: Dict[str, ProcessDefinition] = {}

    def register(self, definition: ProcessDefinition, replace: bool = False) -> None:
        """Validates the definition, stores it and registers its triggers with the detector."""
        if definition.id in self._definitions and not replace:
            raise DuplicateProcessError(f"Process '{definition.id}' is already registered")

        result = validate_definition(definition)
        if not result["is_valid"]:
            raise DefinitionError(definition.id, result)

        self._definitions[definition.id] = definition
        self.detector.register(definition)

    def unregister(self, process_id: str) -> None:
        self._definitions.pop(process_id, None)
        self.detector.unregister(process_id)

    def get(self, process_id: str) -> Optional[ProcessDefinition]:
        return self._definitions.get(process_id)

    def get_all(self) -> List[ProcessDefinition]:
        return list(self._definitions.values())

    def clear(self) -> None:
        self._definitions.clear()
        self.detector.clear()

    def __contains__(self, process_id: str) -> bool:
        return process_id in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)
