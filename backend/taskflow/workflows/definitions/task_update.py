# /taskflow/workflows/definitions/task_update.py

import re

from taskflow.config import rules, strings
from taskflow.models.context import ProcessContext
from taskflow.models.process import (
    Branch,
    BranchStep,
    CollectStep,
    ConfirmStep,
    ExecuteStep,
    ProcessConfig,
    ProcessDefinition,
    ProcessSlot,
    ProcessTrigger,
    RespondStep,
    SlotType,
    SlotValidation,
    TriggerType,
)
from taskflow.workflows.definitions.common import (
    MAX_CANDIDATES,
    TASK_PRIORITIES,
    TASK_STATUSES,
    always,
    find_by_name,
    format_candidates,
    records_from,
)
from taskflow.workflows.entities import normalize_text

TASK_SEARCH_LIMIT = 5


def _is_admin(ctx: ProcessContext) -> bool:
    return bool(ctx.user_context.is_admin)


def _detect_update_type(ctx: ProcessContext) -> None:
    """Reads what to change from the first message. Values seeded by the trigger win."""
    message = normalize_text(ctx.original_message)
    identifier = normalize_text(ctx.slots.get("task_identifier") or "")
    if identifier:
        # A task called "Finalizar informe" must not read as a status change
        message = message.replace(identifier, " ")

    detected = None
    if not ctx.has_slot("new_status"):
        status = next((value for pattern, value in rules.STATUS_UPDATE_PATTERNS if pattern.search(message)), None)
        if status:
            ctx.slots["new_status"] = status
    if ctx.has_slot("new_status"):
        detected = "status"

    if not ctx.has_slot("new_priority"):
        priority = next((value for phrases, value in rules.PRIORITY_PHRASES if any(p in message for p in phrases)), None)
        change = rules.PRIORITY_CHANGE_RE.search(message)
        if priority is None and change:
            priority = rules.CANONICAL_VALUES[change.group(1)]
        if priority:
            ctx.slots["new_priority"] = priority
    if ctx.has_slot("new_priority"):
        detected = "priority"

    if not ctx.has_slot("assign_to"):
        assign = rules.ASSIGN_RE.search(message)
        if assign:
            ctx.slots["assign_to"] = assign.group(1)
    if ctx.has_slot("assign_to"):
        detected = "assign"

    if not ctx.has_slot("update_type"):
        ctx.slots["update_type"] = detected or "general"


def _match_task(ctx: ProcessContext) -> None:
    if ctx.has_slot("task_id"):
        return
    tasks = records_from(ctx.tool_results.get("search_tasks"), "tasks", "data")
    match = find_by_name(tasks, ctx.slots.get("task_identifier"))
    if match and match.get("id"):
        ctx.slots["task_id"] = match["id"]
        ctx.slots["task_name"] = match.get("name")
        ctx.slots["current_status"] = match.get("status")
    elif tasks:
        ctx.slots["task_candidates"] = tasks[:MAX_CANDIDATES]


def _match_assignee(ctx: ProcessContext) -> None:
    users = records_from(ctx.tool_results.get("get_team_workload"), "data", "users")
    match = find_by_name(users, ctx.slots.get("assign_to"), key="userName")
    user_id = match and (match.get("id") or match.get("userId"))
    if user_id:
        ctx.slots["assign_to_user_id"] = user_id
        ctx.slots["assign_to_user_name"] = match.get("userName")


def _update_args(ctx: ProcessContext) -> dict:
    args = {"taskId": ctx.slots.get("task_id")}
    if ctx.slots.get("new_status"):
        args["status"] = ctx.slots["new_status"]
    if ctx.slots.get("new_priority"):
        args["priority"] = ctx.slots["new_priority"]
    return args


def _update_response(ctx: ProcessContext) -> str:
    task_name = ctx.slots.get("task_name")
    if ctx.slots.get("update_type") == "assign" and ctx.slots.get("assign_to_user_name"):
        return strings.TASK_ASSIGNED.format(task_name=task_name, user_name=ctx.slots["assign_to_user_name"])
    if ctx.slots.get("new_status"):
        return strings.TASK_STATUS_UPDATED.format(task_name=task_name, new_status=ctx.slots["new_status"])
    if ctx.slots.get("new_priority"):
        return strings.TASK_PRIORITY_UPDATED.format(task_name=task_name, new_priority=ctx.slots["new_priority"])
    return strings.TASK_UPDATED.format(task_name=task_name)


task_update_process = ProcessDefinition(
    id="task-update",
    name="Actualización de Tareas",
    description="Actualiza estado, prioridad o asignación de una tarea existente",
    triggers=[
        ProcessTrigger(type=TriggerType.INTENT, intents=["TASK_UPDATE"], priority=100),
        ProcessTrigger(
            type=TriggerType.PATTERN,
            patterns=[
                re.compile(r"^asignar?\s+(?:la\s+)?tarea\s+(?P<task_identifier>.+?)\s+a\s+(?P<assign_to>\w+)",
                           re.IGNORECASE),
                re.compile(r"^(?:marcar?|poner?)\s+(?:la\s+)?tarea\s+(?P<task_identifier>.+?)\s+como\s+.+",
                           re.IGNORECASE),
                re.compile(r"^cambiar?\s+(?:el\s+)?estado\s+(?:de\s+)?(?:la\s+tarea\s+)?(?P<task_identifier>.+?)\s+a\s+.+",
                           re.IGNORECASE),
                re.compile(r"^cambiar?\s+(?:la\s+)?prioridad\s+(?:de\s+)?(?:la\s+tarea\s+)?(?P<task_identifier>.+?)\s+a\s+.+",
                           re.IGNORECASE),
                re.compile(r"^(?:actualizar?|editar?|modificar?|cambiar?)\s+(?:la\s+)?tarea\s+"
                           r"(?P<task_identifier>.+?)(?:\s+(?:a|como)\s+.*)?$", re.IGNORECASE),
            ],
            priority=110,
        ),
        ProcessTrigger(
            type=TriggerType.KEYWORD,
            keywords=["actualizar tarea", "editar tarea", "cambiar estado", "marcar como", "asignar tarea",
                      "update task"],
            priority=90,
        ),
    ],
    slots=[
        ProcessSlot(
            name="task_identifier",
            required=True,
            description="Nombre o ID de la tarea a actualizar",
            prompt_if_missing=strings.ASK_TASK_TO_UPDATE,
        ),
        ProcessSlot(name="task_id", type=SlotType.TASK_ID, description="ID de la tarea encontrada"),
        ProcessSlot(name="new_status", description="Nuevo estado", validation=SlotValidation(enum=TASK_STATUSES)),
        ProcessSlot(name="new_priority", description="Nueva prioridad", validation=SlotValidation(enum=TASK_PRIORITIES)),
        ProcessSlot(name="assign_to", description="Usuario a asignar"),
        ProcessSlot(name="update_type", description="Tipo de actualización",
                    validation=SlotValidation(enum=["general", "status", "priority", "assign"])),
    ],
    steps=[
        CollectStep(
            id="collect_task_identifier",
            name="Recolectar identificador de tarea",
            slots=["task_identifier"],
            on_exit=_detect_update_type,
            next_step="search_task",
        ),
        ExecuteStep(
            id="search_task",
            name="Buscar tarea",
            tool="search_tasks",
            tool_args={"name": "$task_identifier", "limit": TASK_SEARCH_LIMIT},
            on_exit=_match_task,
            next_step="find_matching_task",
        ),
        BranchStep(
            id="find_matching_task",
            name="Encontrar tarea coincidente",
            branches=[
                Branch(condition="task_id exists", next_step="check_update_type"),
                Branch(condition="task_candidates exists", next_step="show_candidates"),
                Branch(condition=always, next_step="task_not_found"),
            ],
        ),
        RespondStep(
            id="show_candidates",
            name="Mostrar tareas candidatas",
            response=lambda ctx: strings.TASK_CANDIDATES.format(
                identifier=ctx.slots.get("task_identifier"),
                candidates=format_candidates(ctx.slots.get("task_candidates") or []),
            ),
        ),
        RespondStep(
            id="task_not_found",
            name="Tarea no encontrada",
            response=lambda ctx: strings.TASK_NOT_FOUND.format(identifier=ctx.slots.get("task_identifier")),
        ),
        BranchStep(
            id="check_update_type",
            name="Verificar tipo de actualización",
            branches=[
                Branch(condition="slot.update_type == 'assign'", next_step="search_user_to_assign"),
                Branch(condition="new_status exists", next_step="confirm_status_change"),
                Branch(condition="new_priority exists", next_step="confirm_priority_change"),
                Branch(condition=always, next_step="ask_what_to_update"),
            ],
        ),
        RespondStep(
            id="ask_what_to_update",
            name="Preguntar qué actualizar",
            response=lambda ctx: strings.ASK_WHAT_TO_UPDATE.format(task_name=ctx.slots.get("task_name")),
        ),
        ConfirmStep(
            id="confirm_status_change",
            name="Confirmar cambio de estado",
            confirm_message=lambda ctx: strings.CONFIRM_STATUS_CHANGE.format(
                task_name=ctx.slots.get("task_name"),
                current_status=ctx.slots.get("current_status") or "actual",
                new_status=ctx.slots.get("new_status"),
            ),
            next_step="execute_update",
        ),
        ConfirmStep(
            id="confirm_priority_change",
            name="Confirmar cambio de prioridad",
            confirm_message=lambda ctx: strings.CONFIRM_PRIORITY_CHANGE.format(
                task_name=ctx.slots.get("task_name"), new_priority=ctx.slots.get("new_priority")
            ),
            next_step="execute_update",
        ),
        ExecuteStep(
            id="search_user_to_assign",
            name="Buscar usuario",
            tool="get_team_workload",
            on_exit=_match_assignee,
            next_step="check_user_found",
        ),
        BranchStep(
            id="check_user_found",
            name="Verificar usuario encontrado",
            branches=[
                Branch(condition="assign_to_user_id exists", next_step="confirm_assignment"),
                Branch(condition=always, next_step="user_not_found"),
            ],
        ),
        RespondStep(
            id="user_not_found",
            name="Usuario no encontrado",
            response=lambda ctx: strings.USER_NOT_FOUND.format(user_name=ctx.slots.get("assign_to")),
        ),
        ConfirmStep(
            id="confirm_assignment",
            name="Confirmar asignación",
            confirm_message=lambda ctx: strings.CONFIRM_ASSIGNMENT.format(
                task_name=ctx.slots.get("task_name"), user_name=ctx.slots.get("assign_to_user_name")
            ),
            next_step="execute_assignment",
        ),
        ExecuteStep(
            id="execute_assignment",
            name="Ejecutar asignación",
            tool="update_task",
            tool_args=lambda ctx: {"taskId": ctx.slots.get("task_id"), "AssignedTo": [ctx.slots.get("assign_to_user_id")]},
            next_step="update_success",
        ),
        ExecuteStep(id="execute_update", name="Ejecutar actualización", tool="update_task", tool_args=_update_args,
                    next_step="update_success"),
        RespondStep(id="update_success", name="Actualización exitosa", response=_update_response),
    ],
    initial_step="collect_task_identifier",
    config=ProcessConfig(requires_confirmation=True, max_retries=3, timeout_ms=300_000, allow_cancel=True),
    tags=["tasks", "update", "core"],
)


def _match_archived_task(ctx: ProcessContext) -> None:
    tasks = records_from(ctx.tool_results.get("search_tasks"), "tasks", "data")
    match = find_by_name(tasks, ctx.slots.get("task_identifier"))
    if match and match.get("id"):
        ctx.slots["task_id"] = match["id"]
        ctx.slots["task_name"] = match.get("name")


task_archive_process = ProcessDefinition(
    id="task-archive",
    name="Archivar Tarea",
    description="Archiva (cancela) tareas; solo administradores",
    triggers=[
        ProcessTrigger(type=TriggerType.INTENT, intents=["TASK_ARCHIVE"], priority=100, condition=_is_admin),
        ProcessTrigger(
            type=TriggerType.PATTERN,
            patterns=[
                re.compile(r"^(?:eliminar?|borrar?|archivar?)\s+(?:la\s+)?tarea\s+(?P<task_identifier>.+)", re.IGNORECASE),
                re.compile(r"^cancelar?\s+(?:la\s+)?tarea\s+(?P<task_identifier>.+)", re.IGNORECASE),
            ],
            priority=110,
            condition=_is_admin,
        ),
    ],
    slots=[
        ProcessSlot(
            name="task_identifier",
            required=True,
            description="Nombre o ID de la tarea",
            prompt_if_missing=strings.ASK_TASK_TO_ARCHIVE,
        ),
        ProcessSlot(name="task_id", type=SlotType.TASK_ID, description="ID de la tarea"),
    ],
    steps=[
        BranchStep(
            id="check_admin",
            name="Verificar permisos",
            branches=[
                Branch(condition=_is_admin, next_step="collect_task"),
                Branch(condition=always, next_step="not_authorized"),
            ],
        ),
        RespondStep(id="not_authorized", name="No autorizado", response=strings.ARCHIVE_NOT_AUTHORIZED),
        CollectStep(id="collect_task", name="Recolectar tarea", slots=["task_identifier"], next_step="search_task"),
        ExecuteStep(
            id="search_task",
            name="Buscar tarea",
            tool="search_tasks",
            tool_args={"name": "$task_identifier", "limit": TASK_SEARCH_LIMIT},
            on_exit=_match_archived_task,
            next_step="check_task_found",
        ),
        BranchStep(
            id="check_task_found",
            name="Verificar tarea encontrada",
            branches=[
                Branch(condition="task_id exists", next_step="confirm_archive"),
                Branch(condition=always, next_step="task_not_found"),
            ],
        ),
        RespondStep(
            id="task_not_found",
            name="Tarea no encontrada",
            response=lambda ctx: strings.TASK_NOT_FOUND.format(identifier=ctx.slots.get("task_identifier")),
        ),
        ConfirmStep(
            id="confirm_archive",
            name="Confirmar archivo",
            confirm_message=lambda ctx: strings.CONFIRM_TASK_ARCHIVE.format(task_name=ctx.slots.get("task_name")),
            next_step="execute_archive",
        ),
        ExecuteStep(id="execute_archive", name="Ejecutar archivo", tool="archive_task",
                    tool_args={"taskId": "$task_id"}, next_step="archive_success"),
        RespondStep(
            id="archive_success",
            name="Archivo exitoso",
            response=lambda ctx: strings.TASK_ARCHIVED.format(task_name=ctx.slots.get("task_name")),
        ),
    ],
    initial_step="check_admin",
    config=ProcessConfig(requires_confirmation=True, max_retries=2, timeout_ms=120_000, allow_cancel=True),
    tags=["tasks", "archive", "admin"],
)
