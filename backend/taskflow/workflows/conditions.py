# /taskflow/workflows/conditions.py

"""
The condition mini-language and the template substitution used by process
definitions.

Two literal condition forms are understood:

    "<slot> exists"        the slot is set and not None ("slot." prefix optional)
    "<lhs> == <rhs>"       lhs is "slot.<name>" or a literal, rhs a literal,
                           optionally quoted

Any other string is always true. Nothing here ever calls eval(); callables
are accepted wherever a string condition is, and `slot_exists` /
`slot_equals` build the closure equivalents of the two literal forms.
"""

import json
import re
from typing import Any, Dict, Optional

from taskflow.models.context import ProcessContext
from taskflow.models.process import Condition, Predicate, Template

_EXISTS_RE = re.compile(r"^\s*(?:slot\.)?(\w+)\s+exists\s*$")
_EQUALS_RE = re.compile(r"^\s*(.+?)\s*==\s*(.+?)\s*$")
_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")


def _unquote(literal: str) -> str:
    if len(literal) >= 2 and literal[0] == literal[-1] and literal[0] in ("'", '"'):
        return literal[1:-1]
    return literal


def _loose_equals(value: Any, literal: str) -> bool:
    """Compares a slot value against a textual literal."""
    if value is None:
        return False
    if isinstance(value, bool):
        return literal.lower() == ("true" if value else "false")
    if isinstance(value, (int, float)):
        try:
            return float(literal) == float(value)
        except ValueError:
            return False
    return str(value) == literal


def evaluate_condition(condition: Optional[Condition], context: ProcessContext) -> bool:
    if condition is None:
        return True
    if callable(condition):
        return bool(condition(context))

    match = _EXISTS_RE.match(condition)
    if match:
        return context.has_slot(match.group(1))

    match = _EQUALS_RE.match(condition)
    if match:
        left, right = match.group(1), _unquote(match.group(2))
        if left.startswith("slot."):
            return _loose_equals(context.slots.get(left[len("slot."):]), right)
        return _unquote(left) == right

    return True


def slot_exists(name: str) -> Predicate:
    def predicate(context: ProcessContext) -> bool:
        return context.has_slot(name)
    return predicate


def slot_equals(name: str, value: Any) -> Predicate:
    literal = str(value).lower() if isinstance(value, bool) else str(value)

    def predicate(context: ProcessContext) -> bool:
        return _loose_equals(context.slots.get(name), literal)
    return predicate


def interpolate_string(template: str, context: ProcessContext) -> str:
    """Replaces {name} with the slot value, else the tool result as JSON, else leaves it."""
    def replace(match: re.Match) -> str:
        key = match.group(1)
        if context.slots.get(key) is not None:
            return str(context.slots[key])
        if key in context.tool_results:
            return json.dumps(context.tool_results[key], ensure_ascii=False, default=str)
        return match.group(0)

    return _PLACEHOLDER_RE.sub(replace, template)


def render_template(template: Optional[Template], context: ProcessContext) -> str:
    if template is None:
        return ""
    if callable(template):
        return template(context)
    return interpolate_string(template, context)


def interpolate_args(args: Dict[str, Any], context: ProcessContext) -> Dict[str, Any]:
    """Replaces "$name" string values with the named slot value (None when unset)."""
    resolved = {}
    for key, value in args.items():
        if isinstance(value, str) and value.startswith("$"):
            resolved[key] = context.slots.get(value[1:])
        else:
            resolved[key] = value
    return resolved
