# /taskflow/workflows/definitions/task_creation.py

import re

from taskflow.config import strings
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
from taskflow.workflows.definitions.common import TASK_PRIORITIES, always, find_by_name, records_from

# Task creation: collect name and client, look the client up (offering to
# create it when missing), confirm, create.

DEFAULT_PROJECT = "chatbotTasks"
DEFAULT_PRIORITY = "Media"
DEFAULT_STATUS = "En Proceso"


def _resolve_client(ctx: ProcessContext) -> None:
    clients = records_from(ctx.tool_results.get("search_clients"), "clients", "data")
    if not clients:
        return
    client = find_by_name(clients, ctx.slots.get("client_name")) or clients[0]
    if client.get("id"):
        ctx.slots["client_id"] = client["id"]
        ctx.slots["client_found_name"] = client.get("name") or ctx.slots.get("client_name")


def _adopt_created_client(ctx: ProcessContext) -> None:
    created = ctx.tool_results.get("create_client")
    if isinstance(created, dict) and created.get("id"):
        ctx.slots["client_id"] = created["id"]
        ctx.slots["client_found_name"] = ctx.slots.get("client_name")


def _confirmation(ctx: ProcessContext) -> str:
    return strings.CONFIRM_TASK_CREATION.format(
        task_name=ctx.slots.get("task_name"),
        client_name=ctx.slots.get("client_found_name"),
        project=ctx.slots.get("project") or DEFAULT_PROJECT,
        priority=ctx.slots.get("priority") or DEFAULT_PRIORITY,
        status=ctx.slots.get("status") or DEFAULT_STATUS,
    )


def _create_task_args(ctx: ProcessContext) -> dict:
    args = {
        "name": ctx.slots.get("task_name"),
        "clientId": ctx.slots.get("client_id"),
        "project": ctx.slots.get("project") or DEFAULT_PROJECT,
        "priority": ctx.slots.get("priority") or DEFAULT_PRIORITY,
        "status": ctx.slots.get("status") or DEFAULT_STATUS,
    }
    if ctx.slots.get("description"):
        args["description"] = ctx.slots["description"]
    return args


task_creation_process = ProcessDefinition(
    id="task-creation",
    name="Creación de Tareas",
    description="Crea nuevas tareas con búsqueda automática de cliente",
    triggers=[
        ProcessTrigger(type=TriggerType.INTENT, intents=["TASK_CREATE"], priority=100),
        ProcessTrigger(
            type=TriggerType.PATTERN,
            patterns=[
                re.compile(r"^crea(?:r)?\s+(?:una?\s+)?tarea\s+(.+)", re.IGNORECASE),
                re.compile(r"^nueva\s+tarea\s+(.+)", re.IGNORECASE),
                re.compile(r"^agregar?\s+tarea\s+(.+)", re.IGNORECASE),
                re.compile(r"^add\s+task\s+(.+)", re.IGNORECASE),
                re.compile(r"^create\s+task\s+(.+)", re.IGNORECASE),
            ],
            priority=110,
        ),
        ProcessTrigger(
            type=TriggerType.KEYWORD,
            keywords=["crear tarea", "nueva tarea", "agregar tarea", "create task", "new task"],
            priority=90,
        ),
    ],
    slots=[
        ProcessSlot(
            name="task_name",
            required=True,
            description="Nombre/título de la tarea",
            prompt_if_missing=strings.ASK_TASK_NAME,
            validation=SlotValidation(min_length=3, max_length=200),
        ),
        ProcessSlot(
            name="client_name",
            required=True,
            description="Nombre del cliente",
            prompt_if_missing=strings.ASK_CLIENT_NAME,
        ),
        ProcessSlot(name="client_id", type=SlotType.CLIENT_ID, description="ID del cliente (se obtiene buscando)"),
        ProcessSlot(
            name="priority",
            description="Prioridad de la tarea",
            default_value=DEFAULT_PRIORITY,
            validation=SlotValidation(enum=TASK_PRIORITIES),
        ),
        ProcessSlot(name="project", description="Nombre del proyecto", default_value=DEFAULT_PROJECT),
        ProcessSlot(
            name="status",
            description="Estado inicial",
            default_value=DEFAULT_STATUS,
            validation=SlotValidation(enum=["Por Iniciar", "En Proceso", "Backlog"]),
        ),
        ProcessSlot(name="description", description="Descripción de la tarea"),
    ],
    steps=[
        CollectStep(id="collect_task_name", name="Recolectar nombre de tarea", slots=["task_name"],
                    next_step="collect_client_name"),
        CollectStep(id="collect_client_name", name="Recolectar cliente", slots=["client_name"],
                    next_step="search_client"),
        ExecuteStep(
            id="search_client",
            name="Buscar cliente",
            tool="search_clients",
            tool_args={"query": "$client_name", "limit": 5},
            on_exit=_resolve_client,
            next_step="check_client_found",
        ),
        BranchStep(
            id="check_client_found",
            name="Verificar cliente encontrado",
            branches=[
                Branch(condition="client_id exists", next_step="confirm_task"),
                Branch(condition=always, next_step="client_not_found"),
            ],
        ),
        ConfirmStep(
            id="client_not_found",
            name="Cliente no encontrado",
            confirm_message=lambda ctx: strings.CONFIRM_CLIENT_CREATION.format(client_name=ctx.slots.get("client_name")),
            next_step="create_client",
        ),
        ExecuteStep(
            id="create_client",
            name="Crear cliente",
            tool="create_client",
            tool_args={"name": "$client_name"},
            on_exit=_adopt_created_client,
            next_step="confirm_task",
        ),
        ConfirmStep(id="confirm_task", name="Confirmar tarea", confirm_message=_confirmation, next_step="create_task"),
        ExecuteStep(id="create_task", name="Crear tarea", tool="create_task", tool_args=_create_task_args,
                    next_step="success_response"),
        RespondStep(
            id="success_response",
            name="Responder éxito",
            response=lambda ctx: strings.TASK_CREATED.format(
                task_name=ctx.slots.get("task_name"), client_name=ctx.slots.get("client_found_name")
            ),
        ),
    ],
    initial_step="collect_task_name",
    config=ProcessConfig(requires_confirmation=True, max_retries=3, timeout_ms=300_000, allow_cancel=True),
    tags=["tasks", "crud", "core"],
)
