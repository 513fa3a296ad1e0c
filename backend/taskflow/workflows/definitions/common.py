# /taskflow/workflows/definitions/common.py

"""Helpers shared by the built-in task processes: tool result unwrapping, name matching and formatting."""

from typing import Any, Dict, List, Optional

from rapidfuzz import fuzz, process

from taskflow.config import strings
from taskflow.models.context import ProcessContext
from taskflow.workflows.entities import normalize_text

FUZZY_MATCH_THRESHOLD = 80
MAX_LISTED_TASKS = 10
MAX_CANDIDATES = 3
MAX_WORKLOAD_BAR = 10

TASK_STATUSES = ["Por Iniciar", "En Proceso", "Backlog", "Por Finalizar", "Finalizado", "Cancelado"]
TASK_PRIORITIES = ["Alta", "Media", "Baja"]
PRIORITY_MARKERS = {"Alta": "🔴", "Media": "🟡"}
DEFAULT_PRIORITY_MARKER = "🟢"


def always(_context: ProcessContext) -> bool:
    return True


def records_from(result: Any, *keys: str) -> List[Dict[str, Any]]:
    """Tools answer with a bare list or wrap it under one of `keys` ("tasks", "data", ...)."""
    items: Any = None
    if isinstance(result, list):
        items = result
    elif isinstance(result, dict):
        items = next((result[key] for key in keys if isinstance(result.get(key), list)), None)
    return [item for item in items or [] if isinstance(item, dict)]


def find_by_name(records: List[Dict[str, Any]], query: Optional[str], key: str = "name") -> Optional[Dict[str, Any]]:
    """Substring match first, then the closest fuzzy match above the threshold."""
    needle = normalize_text(query or "")
    if not needle or not records:
        return None

    names = [str(record.get(key) or "") for record in records]
    for record, name in zip(records, names):
        if needle in normalize_text(name):
            return record

    best = process.extractOne(needle, names, scorer=fuzz.token_sort_ratio, processor=normalize_text)
    if best and best[1] >= FUZZY_MATCH_THRESHOLD:
        return records[best[2]]
    return None


def format_task_list(tasks: List[Dict[str, Any]], context: ProcessContext) -> str:
    if not tasks:
        return strings.NO_TASKS_FOUND

    count = len(tasks)
    if context.slots.get("only_active"):
        header = strings.TASK_LIST_HEADER_ACTIVE.format(count=count)
    elif context.slots.get("status_filter"):
        header = strings.TASK_LIST_HEADER_STATUS.format(count=count, status=context.slots["status_filter"])
    elif context.slots.get("priority_filter"):
        header = strings.TASK_LIST_HEADER_PRIORITY.format(count=count, priority=context.slots["priority_filter"])
    else:
        header = strings.TASK_LIST_HEADER.format(count=count)

    lines = []
    for index, task in enumerate(tasks[:MAX_LISTED_TASKS], start=1):
        marker = PRIORITY_MARKERS.get(task.get("priority"), DEFAULT_PRIORITY_MARKER)
        client = f" | {task['clientName']}" if task.get("clientName") else ""
        name = task.get("name") or strings.UNNAMED_TASK
        status = task.get("status") or strings.NO_STATUS
        lines.append(f"{index}. {marker} **{name}** - {status}{client}")

    text = f"{header}\n\n" + "\n".join(lines)
    if count > MAX_LISTED_TASKS:
        text += "\n\n" + strings.TASK_LIST_OVERFLOW.format(remaining=count - MAX_LISTED_TASKS)
    return text


def format_workload(result: Any) -> str:
    if not result:
        return strings.NO_WORKLOAD_DATA

    members = records_from(result, "data", "users")
    if not members:
        return strings.NO_ACTIVE_WORKLOAD

    members = sorted(members, key=lambda member: member.get("taskCount") or 0, reverse=True)
    lines = []
    for index, member in enumerate(members, start=1):
        count = member.get("taskCount") or 0
        bar = "█" * min(count, MAX_WORKLOAD_BAR) + ("..." if count > MAX_WORKLOAD_BAR else "")
        lines.append(f"{index}. **{member.get('userName')}**: {count} tarea(s) {bar}")
    return f"{strings.WORKLOAD_HEADER}\n\n" + "\n".join(lines)


def format_candidates(candidates: List[Dict[str, Any]]) -> str:
    return "\n".join(
        f"{index}. {task.get('name') or strings.UNNAMED_TASK} ({task.get('status') or strings.NO_STATUS})"
        for index, task in enumerate(candidates, start=1)
    )
