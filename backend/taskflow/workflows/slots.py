# /taskflow/workflows/slots.py

"""
Slot value parsing (raw user text -> typed value) and slot validation rules.

Pure functions, no logging and no context access.
"""

from typing import Any, Optional, TypedDict

from taskflow.config import rules, strings
from taskflow.models.process import ProcessSlot, SlotType
from taskflow.workflows.entities import normalize_text, parse_date, to_iso_instant


class SlotCheck(TypedDict):
    """Result of validating a candidate slot value."""
    is_valid: bool
    value: Any
    message: Optional[str]


def parse_slot_value(slot: ProcessSlot, raw: str) -> Any:
    """
    Converts raw text into the slot's declared type.

    number -> leading numeric prefix as float (0.0 when there is none)
    boolean -> True iff the text is a known affirmative
    array -> comma-split, trimmed, empties dropped
    date -> UTC ISO instant string, or None when unparseable
    anything else -> trimmed text
    """
    text = raw.strip()

    if slot.type == SlotType.NUMBER:
        match = rules.LEADING_NUMBER_RE.match(text)
        return float(match.group(1)) if match else 0.0

    if slot.type == SlotType.BOOLEAN:
        return text.lower() in rules.AFFIRMATIVE_VALUES

    if slot.type == SlotType.ARRAY:
        return [item.strip() for item in text.split(",") if item.strip()]

    if slot.type == SlotType.DATE:
        parsed = parse_date(text)
        return to_iso_instant(parsed) if parsed else None

    return text


def coerce_slot_value(slot: ProcessSlot, value: Any) -> Any:
    """Like parse_slot_value, but leaves values that are already typed alone."""
    if isinstance(value, str):
        return parse_slot_value(slot, value)
    return value


def _invalid(value: Any, message: str) -> SlotCheck:
    return {"is_valid": False, "value": value, "message": message}


def validate_slot_value(slot: ProcessSlot, value: Any) -> SlotCheck:
    if value is None or value == "" or value == []:
        return _invalid(value, strings.UNPARSEABLE_SLOT_VALUE)

    validation = slot.validation
    if validation is None:
        return {"is_valid": True, "value": value, "message": None}

    if validation.enum:
        canonical = {normalize_text(option): option for option in validation.enum}
        items = value if isinstance(value, list) else [value]
        resolved = [canonical.get(normalize_text(str(item))) for item in items]
        if any(item is None for item in resolved):
            return _invalid(value, strings.INVALID_SLOT_ENUM.format(options=", ".join(validation.enum)))
        value = resolved if isinstance(value, list) else resolved[0]

    if isinstance(value, str):
        if validation.min_length is not None and len(value) < validation.min_length:
            return _invalid(value, strings.INVALID_SLOT_MIN_LENGTH.format(min_length=validation.min_length))
        if validation.max_length is not None and len(value) > validation.max_length:
            return _invalid(value, strings.INVALID_SLOT_MAX_LENGTH.format(max_length=validation.max_length))
        if validation.pattern is not None and not validation.pattern.search(value):
            return _invalid(value, strings.INVALID_SLOT_PATTERN)

    if validation.custom_validator is not None:
        outcome = validation.custom_validator(value)
        if isinstance(outcome, str):
            return _invalid(value, outcome)
        if not outcome:
            return _invalid(value, strings.INVALID_SLOT_VALUE)

    return {"is_valid": True, "value": value, "message": None}
