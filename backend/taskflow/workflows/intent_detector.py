# /taskflow/workflows/intent_detector.py

from typing import Dict, List, Optional, Tuple, Any

import structlog

from taskflow.config import rules
from taskflow.models.context import ProcessContext
from taskflow.models.process import ProcessDefinition, ProcessTrigger, TriggerType
from taskflow.models.result import Continuation, TriggerMatch
from taskflow.workflows.entities import extract_entities, normalize_text

# Decides, without a language model, whether a message continues the
# session's active process or starts a registered one.

log = structlog.get_logger(__name__)

CONFIDENCE_PATTERN = 0.9
CONFIDENCE_KEYWORD_EXACT = 0.95
CONFIDENCE_KEYWORD_PARTIAL = 0.7
CONFIDENCE_COMMAND = 1.0
CONFIDENCE_INTENT_BASE = 0.6
CONFIDENCE_INTENT_CAP = 0.95


class IntentDetector:
    def __init__(self):
        self._processes: Dict[str, ProcessDefinition] = {}

    def register(self, definition: ProcessDefinition) -> None:
        self._processes[definition.id] = definition

    def unregister(self, process_id: str) -> None:
        self._processes.pop(process_id, None)

    def clear(self) -> None:
        self._processes.clear()

    def _candidates(self) -> List[Tuple[str, ProcessTrigger]]:
        """All triggers, highest priority first; ties keep registration order."""
        ordered = [
            (process_id, trigger)
            for process_id, definition in self._processes.items()
            for trigger in definition.triggers
        ]
        # sorted() is stable, so equal priorities stay in registration order
        return sorted(ordered, key=lambda item: -item[1].priority)

    def detect(self, message: str, context: ProcessContext) -> Optional[TriggerMatch]:
        """Returns the first trigger that matches and whose condition holds, or None."""
        normalized = normalize_text(message)
        if not normalized:
            return None

        for process_id, trigger in self._candidates():
            matched = self._match_trigger(message, normalized, trigger)
            if matched is None:
                continue
            confidence, extracted = matched
            if not self._condition_holds(process_id, trigger, context):
                continue
            return TriggerMatch(
                process_id=process_id,
                trigger=trigger,
                confidence=confidence,
                extracted_data=extracted,
            )
        return None

    @staticmethod
    def _condition_holds(process_id: str, trigger: ProcessTrigger, context: ProcessContext) -> bool:
        """A trigger condition that raises vetoes the trigger."""
        if trigger.condition is None:
            return True
        try:
            return bool(trigger.condition(context))
        except Exception:
            log.error("trigger_condition_failed", process_id=process_id, exc_info=True)
            return False

    def _match_trigger(
        self, message: str, normalized: str, trigger: ProcessTrigger
    ) -> Optional[Tuple[float, Dict[str, Any]]]:
        if trigger.type == TriggerType.PATTERN:
            for pattern in trigger.patterns:
                match = pattern.search(message)
                if match:
                    groups = {k: v for k, v in match.groupdict().items() if v is not None}
                    return CONFIDENCE_PATTERN, groups
            return None

        if trigger.type == TriggerType.KEYWORD:
            for keyword in trigger.keywords:
                normalized_keyword = normalize_text(keyword)
                if not normalized_keyword:
                    continue
                if normalized == normalized_keyword:
                    return CONFIDENCE_KEYWORD_EXACT, {}
                if normalized_keyword in normalized:
                    return CONFIDENCE_KEYWORD_PARTIAL, {}
            return None

        if trigger.type == TriggerType.COMMAND:
            first_token = message.strip().lower().split()[0] if message.strip() else ""
            if any(first_token == command.lower() for command in trigger.commands):
                return CONFIDENCE_COMMAND, {}
            return None

        if trigger.type == TriggerType.INTENT:
            confidence = self._intent_confidence(normalized, trigger.intents)
            return (confidence, {}) if confidence > 0 else None

        return None

    @staticmethod
    def _intent_confidence(normalized: str, intents: List[str]) -> float:
        best = 0.0
        for intent in intents:
            for keyword in rules.INTENT_KEYWORDS.get(intent, []):
                if keyword in normalized:
                    score = min(CONFIDENCE_INTENT_CAP, CONFIDENCE_INTENT_BASE + len(keyword) / len(normalized))
                    best = max(best, score)
        return best

    # ---------------- Continuation ---------------- #

    def should_continue_process(self, message: str, context: ProcessContext) -> Continuation:
        normalized = normalize_text(message)

        if context.awaiting_confirmation:
            if self.is_confirmation(normalized):
                return Continuation(should_continue=True, action="confirm")
            if self.is_cancellation(normalized):
                return Continuation(should_continue=True, action="cancel")
            modifications = self.detect_modifications(message)
            if modifications:
                return Continuation(should_continue=True, action="modify", modifications=modifications)

        if context.awaiting_input:
            if normalized in rules.EXPLICIT_CANCEL_WORDS:
                return Continuation(should_continue=True, action="cancel")
            return Continuation(should_continue=True, action="input")

        return Continuation(should_continue=False)

    @staticmethod
    def is_confirmation(normalized: str) -> bool:
        return any(pattern.match(normalized) for pattern in rules.CONFIRMATION_PATTERNS)

    @staticmethod
    def is_cancellation(normalized: str) -> bool:
        return any(pattern.match(normalized) for pattern in rules.CANCELLATION_PATTERNS)

    @staticmethod
    def detect_modifications(message: str) -> Dict[str, Any]:
        """Slot changes requested while a confirmation is pending."""
        modifications: Dict[str, Any] = {}
        normalized = normalize_text(message)

        for phrases, value in rules.PRIORITY_PHRASES:
            if any(phrase in normalized for phrase in phrases):
                modifications["priority"] = value
                break

        for phrases, value in rules.STATUS_PHRASES:
            if any(phrase in normalized for phrase in phrases):
                modifications["status"] = value
                break

        project = rules.PROJECT_RE.search(message)
        if project:
            modifications["project"] = project.group(1).strip()

        change = rules.CHANGE_FIELD_RE.search(message.strip())
        if change:
            field = rules.FIELD_ALIASES.get(change.group("field").lower())
            if field:
                raw_value = change.group("value").strip()
                modifications[field] = rules.CANONICAL_VALUES.get(normalize_text(raw_value), raw_value)

        return modifications

    @staticmethod
    def extract_entities(message: str) -> Dict[str, Any]:
        return extract_entities(message)
