# /taskflow/workflows/definitions/task_query.py

import re

from taskflow.models.context import ProcessContext
from taskflow.models.process import (
    Branch,
    BranchStep,
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
    TASK_PRIORITIES,
    TASK_STATUSES,
    always,
    format_task_list,
    format_workload,
    records_from,
)
from taskflow.workflows.entities import normalize_text

DEFAULT_QUERY_LIMIT = 20

# (phrases, slot, value, query type); first hit wins
QUERY_FILTERS = [
    (("activa", "carga", "workload"), "only_active", True, "active"),
    (("pendiente", "por iniciar"), "status_filter", "Por Iniciar", "by_status"),
    (("en proceso",), "status_filter", "En Proceso", "by_status"),
    (("finalizada", "terminada", "completada"), "status_filter", "Finalizado", "by_status"),
    (("alta prioridad", "urgente"), "priority_filter", "Alta", "by_priority"),
    (("baja prioridad",), "priority_filter", "Baja", "by_priority"),
]

# Both read-only processes answer quickly or not at all
READ_ONLY_CONFIG = ProcessConfig(requires_confirmation=False, max_retries=2, timeout_ms=60_000, allow_cancel=False)


def _detect_query_filters(ctx: ProcessContext) -> None:
    message = normalize_text(ctx.original_message)
    for phrases, slot_name, value, query_type in QUERY_FILTERS:
        if any(phrase in message for phrase in phrases):
            ctx.slots[slot_name] = value
            ctx.slots["query_type"] = query_type
            return


def _query_args(ctx: ProcessContext) -> dict:
    args = {"limit": ctx.slots.get("limit") or DEFAULT_QUERY_LIMIT}
    if ctx.slots.get("only_active"):
        args["onlyActive"] = True
    if ctx.slots.get("status_filter"):
        args["status"] = ctx.slots["status_filter"]
    if ctx.slots.get("priority_filter"):
        args["priority"] = ctx.slots["priority_filter"]
    return args


def _task_list_response(ctx: ProcessContext) -> str:
    return format_task_list(records_from(ctx.tool_results.get("search_tasks"), "tasks", "data"), ctx)


task_query_process = ProcessDefinition(
    id="task-query",
    name="Consulta de Tareas",
    description="Consulta y lista las tareas del usuario",
    triggers=[
        ProcessTrigger(type=TriggerType.INTENT, intents=["TASK_QUERY"], priority=100),
        ProcessTrigger(
            type=TriggerType.PATTERN,
            patterns=[
                re.compile(r"^(?:mis\s+)?tareas$", re.IGNORECASE),
                re.compile(r"^(?:mostrar?|ver|listar?)\s+(?:mis\s+)?tareas$", re.IGNORECASE),
                re.compile(r"^(?:cuántas?|cuantas?)\s+tareas\s+tengo", re.IGNORECASE),
                re.compile(r"^(?:que|qué)\s+tareas\s+tengo", re.IGNORECASE),
                re.compile(r"^tareas\s+(?:pendientes|activas|finalizadas|en\s+proceso)", re.IGNORECASE),
            ],
            priority=110,
        ),
        ProcessTrigger(
            type=TriggerType.KEYWORD,
            keywords=["mis tareas", "ver tareas", "mostrar tareas", "listar tareas", "tareas pendientes",
                      "tareas activas", "my tasks", "show tasks"],
            priority=90,
        ),
    ],
    slots=[
        ProcessSlot(
            name="query_type",
            description="Tipo de consulta",
            default_value="all",
            validation=SlotValidation(enum=["all", "active", "by_status", "by_priority"]),
        ),
        ProcessSlot(name="status_filter", description="Filtrar por estado", validation=SlotValidation(enum=TASK_STATUSES)),
        ProcessSlot(name="priority_filter", description="Filtrar por prioridad",
                    validation=SlotValidation(enum=TASK_PRIORITIES)),
        ProcessSlot(name="only_active", type=SlotType.BOOLEAN, description="Solo tareas activas", default_value=False),
        ProcessSlot(name="limit", type=SlotType.NUMBER, description="Límite de resultados",
                    default_value=DEFAULT_QUERY_LIMIT),
    ],
    steps=[
        BranchStep(
            id="detect_query_type",
            name="Detectar tipo de consulta",
            on_enter=_detect_query_filters,
            branches=[Branch(condition=always, next_step="execute_query")],
        ),
        ExecuteStep(id="execute_query", name="Ejecutar búsqueda de tareas", tool="search_tasks",
                    tool_args=_query_args, next_step="format_response"),
        RespondStep(id="format_response", name="Formatear respuesta", response=_task_list_response),
    ],
    initial_step="detect_query_type",
    config=READ_ONLY_CONFIG,
    tags=["tasks", "query", "core"],
)


workload_query_process = ProcessDefinition(
    id="workload-query",
    name="Consulta de Carga de Trabajo",
    description="Muestra la carga de trabajo del equipo",
    triggers=[
        ProcessTrigger(type=TriggerType.INTENT, intents=["WORKLOAD"], priority=100),
        ProcessTrigger(
            type=TriggerType.PATTERN,
            patterns=[
                re.compile(r"^carga\s+(?:de\s+)?trabajo", re.IGNORECASE),
                re.compile(r"^workload", re.IGNORECASE),
                re.compile(r"^(?:cuántas?|cuantas?)\s+tareas\s+tiene\s+(?P<user_name>\w+)", re.IGNORECASE),
                re.compile(r"^tareas\s+del\s+equipo", re.IGNORECASE),
                re.compile(r"^distribuci[oó]n\s+(?:de\s+)?tareas", re.IGNORECASE),
            ],
            priority=110,
        ),
        ProcessTrigger(
            type=TriggerType.KEYWORD,
            keywords=["carga de trabajo", "workload", "tareas del equipo", "balance de carga"],
            priority=90,
        ),
    ],
    steps=[
        ExecuteStep(id="get_workload", name="Obtener carga de trabajo", tool="get_team_workload",
                    next_step="format_workload"),
        RespondStep(
            id="format_workload",
            name="Formatear carga de trabajo",
            response=lambda ctx: format_workload(ctx.tool_results.get("get_team_workload")),
        ),
    ],
    initial_step="get_workload",
    config=READ_ONLY_CONFIG,
    tags=["analytics", "workload", "team"],
)
