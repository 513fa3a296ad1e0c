# backend/tests/unit/test_engine.py
import asyncio
import re
from datetime import timedelta

import pytest

from taskflow.config import strings
from taskflow.models.context import HistoryAction, ProcessContext, ProcessStatus, utcnow
from taskflow.models.process import (
    Branch,
    BranchStep,
    CollectStep,
    ConfirmStep,
    ExecuteStep,
    FailAction,
    ProcessConfig,
    ProcessDefinition,
    ProcessSlot,
    ProcessTrigger,
    RespondStep,
    SlotSource,
    SlotType,
    SlotValidation,
    TriggerType,
    ValidateStep,
    ValidationRule,
)
from taskflow.models.result import ProcessErrorCode
from taskflow.workflows.engine import ProcessExecutor

SESSION = "session-1"
USER = "user-1"


def create_task_definition(**config):
    return ProcessDefinition(
        id="create-task",
        name="Crear tarea",
        triggers=[ProcessTrigger(type=TriggerType.PATTERN, patterns=[re.compile(r"^crear tarea", re.IGNORECASE)])],
        slots=[
            ProcessSlot(name="task_name", required=True, prompt_if_missing="¿Nombre de la tarea?"),
            ProcessSlot(name="client_name", required=True, prompt_if_missing="¿Para qué cliente?"),
            ProcessSlot(
                name="client_id",
                type=SlotType.CLIENT_ID,
                required=True,
                extract_from=SlotSource.TOOL,
                tool_to_call="lookup_client",
                tool_args={"name": "$client_name"},
            ),
            ProcessSlot(name="priority", default_value="Media", validation=SlotValidation(enum=["Alta", "Media", "Baja"])),
        ],
        steps=[
            CollectStep(id="collect", slots=["task_name", "client_name", "client_id", "priority"], next_step="confirm"),
            ConfirmStep(
                id="confirm",
                confirm_message="¿Creo {task_name} para {client_name} con prioridad {priority}?",
                next_step="create",
            ),
            ExecuteStep(
                id="create",
                tool="create_task",
                tool_args={"name": "$task_name", "clientId": "$client_id", "priority": "$priority"},
                next_step="done",
            ),
            RespondStep(id="done", response="Tarea {task_name} creada."),
        ],
        initial_step="collect",
        config=ProcessConfig(**config),
    )


def help_definition():
    return ProcessDefinition(
        id="help",
        name="Ayuda",
        triggers=[ProcessTrigger(type=TriggerType.COMMAND, commands=["/ayuda"], priority=100)],
        steps=[RespondStep(id="show", response="Puedo crear tareas.")],
        initial_step="show",
    )


@pytest.fixture
def calls(tools):
    """Registers lookup_client and create_task and records their invocations."""
    recorded = []

    @tools.register("lookup_client")
    def lookup_client(args, call):
        recorded.append(call)
        return "client-1"

    @tools.register("create_task")
    def create_task(args, call):
        recorded.append(call)
        return {"id": "task-1", **args}

    return recorded


async def send(executor, message, **identity):
    return await executor.process_message(message, user_id=USER, session_id=SESSION, **identity)


@pytest.mark.asyncio
async def test_unmatched_message_returns_none(executor, registry, store):
    registry.register(create_task_definition())
    assert await send(executor, "hola, ¿qué tal?") is None
    assert store.size() == 0


@pytest.mark.asyncio
async def test_create_task_with_seeded_slots(executor, registry, store, calls):
    registry.register(create_task_definition())

    result = await send(executor, "crear tarea revisión para aurin")
    assert result.status == ProcessStatus.CONFIRMING
    assert result.response == "¿Creo revisión para aurin con prioridad Media?"
    assert result.awaiting_confirmation.data["client_id"] == "client-1"
    assert [call.name for call in calls] == ["lookup_client"]
    assert calls[0].arguments == {"name": "aurin"}

    result = await send(executor, "confirmar")
    assert result.success is True
    assert result.status == ProcessStatus.COMPLETED
    assert result.response == "Tarea revisión creada."
    assert result.metrics.tool_calls_count == 2
    assert result.metrics.tokens_used == 0
    assert calls[1].arguments == {"name": "revisión", "clientId": "client-1", "priority": "Media"}
    assert result.data["create_task"]["id"] == "task-1"
    assert await store.get(SESSION) is None


@pytest.mark.asyncio
async def test_tool_calls_carry_identity(executor, registry, calls):
    registry.register(create_task_definition())
    await send(executor, "crear tarea revisión para aurin", is_admin=True)

    call = calls[0]
    assert call.id.startswith("process_")
    assert call.user_id == USER
    assert call.is_admin is True


@pytest.mark.asyncio
async def test_missing_slots_are_asked_one_at_a_time(executor, registry, store, calls):
    registry.register(create_task_definition())

    result = await send(executor, "crear tarea")
    assert result.status == ProcessStatus.COLLECTING
    assert result.awaiting_input.slot_name == "task_name"
    assert result.response == "¿Nombre de la tarea?"

    result = await send(executor, "Informe mensual")
    assert result.awaiting_input.slot_name == "client_name"
    assert (await store.get(SESSION)).slots["task_name"] == "Informe mensual"

    # "no" is a valid answer while waiting for input
    result = await send(executor, "no")
    assert result.status == ProcessStatus.CONFIRMING
    assert result.awaiting_confirmation.data["client_name"] == "no"


@pytest.mark.asyncio
async def test_slots_only_grow_while_the_process_lives(executor, registry, store, calls):
    registry.register(create_task_definition())
    seen = set()
    for message in ("crear tarea", "Informe", "aurin"):
        await send(executor, message)
        keys = set((await store.get(SESSION)).slots)
        assert seen <= keys
        seen = keys
    assert seen == {"task_name", "client_name", "client_id", "priority"}


@pytest.mark.asyncio
async def test_confirmation_offers_round_tripping_quick_replies(executor, registry, store, calls):
    registry.register(create_task_definition())

    result = await send(executor, "crear tarea revisión para aurin")
    confirm, cancel = result.quick_replies
    assert confirm.payload == strings.CONFIRM_PAYLOAD
    assert cancel.payload == strings.CANCEL_PAYLOAD

    result = await send(executor, cancel.payload)
    assert result.status == ProcessStatus.CANCELLED
    assert result.response == strings.OPERATION_CANCELLED
    assert await store.get(SESSION) is None
    assert [call.name for call in calls] == ["lookup_client"]

    await send(executor, "crear tarea revisión para aurin")
    result = await send(executor, confirm.payload)
    assert result.status == ProcessStatus.COMPLETED


@pytest.mark.asyncio
async def test_unrelated_message_re_renders_the_pending_confirmation(executor, registry, store, calls):
    registry.register(create_task_definition())
    first = await send(executor, "crear tarea revisión para aurin")
    before = (await store.get(SESSION)).model_copy(deep=True)

    again = await send(executor, "¿qué hora es?")
    assert again.status == ProcessStatus.CONFIRMING
    assert again.response.startswith(strings.PENDING_CONFIRMATION_HINT)
    assert again.awaiting_confirmation == first.awaiting_confirmation

    after = await store.get(SESSION)
    assert after.current_step == before.current_step
    assert after.slots == before.slots
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_same_process_trigger_does_not_restart_it(executor, registry, store, calls):
    registry.register(create_task_definition())
    await send(executor, "crear tarea revisión para aurin")

    result = await send(executor, "crear tarea otra para beta")
    assert result.status == ProcessStatus.CONFIRMING
    assert (await store.get(SESSION)).slots["task_name"] == "revisión"


@pytest.mark.asyncio
async def test_new_process_preempts_the_active_one(executor, registry, store, calls):
    registry.register(create_task_definition())
    registry.register(help_definition())
    await send(executor, "crear tarea revisión para aurin")
    assert store.size() == 1

    result = await send(executor, "/ayuda")
    assert result.process_id == "help"
    assert result.status == ProcessStatus.COMPLETED
    assert store.size() == 0

    result = await send(executor, "si")
    assert result is None


@pytest.mark.asyncio
async def test_one_context_per_session(executor, registry, store, calls):
    registry.register(create_task_definition())
    await send(executor, "crear tarea")
    await executor.process_message("crear tarea", user_id=USER, session_id="other-session")
    assert sorted(store.session_ids()) == ["other-session", SESSION]

    await send(executor, "Informe")
    assert store.size() == 2


@pytest.mark.asyncio
async def test_messages_of_one_session_are_serialized(registry, store, tools):
    entered = []

    async def slow_tool(args, call):
        entered.append(args["n"])
        await asyncio.sleep(0.01)
        entered.append(args["n"])
        return {"ok": True}

    tools.register("slow", slow_tool)
    registry.register(ProcessDefinition(
        id="slow",
        name="Lento",
        triggers=[ProcessTrigger(type=TriggerType.PATTERN, patterns=[re.compile(r"^lento (?P<n>\d+)")])],
        slots=[ProcessSlot(name="n")],
        steps=[ExecuteStep(id="run", tool="slow", tool_args={"n": "$n"})],
        initial_step="run",
    ))
    executor = ProcessExecutor(registry, store, tools)

    await asyncio.gather(send(executor, "lento 1"), send(executor, "lento 2"))
    assert entered in (["1", "1", "2", "2"], ["2", "2", "1", "1"])


@pytest.mark.asyncio
async def test_step_loop_stops_at_max_iterations(executor, registry, store):
    registry.register(ProcessDefinition(
        id="loop",
        name="Bucle",
        triggers=[ProcessTrigger(type=TriggerType.KEYWORD, keywords=["bucle"])],
        steps=[BranchStep(id="spin", branches=[Branch(condition="always true", next_step="spin")])],
        initial_step="spin",
    ))

    result = await send(executor, "bucle")
    assert result.success is False
    assert result.status == ProcessStatus.ERROR
    assert result.error == ProcessErrorCode.MAX_ITERATIONS.value

    context = await store.get(SESSION)
    entered = [entry for entry in context.execution_history if entry.action == HistoryAction.ENTER]
    assert len(entered) == executor.max_iterations


def test_max_iterations_must_be_positive(registry, store, tools):
    with pytest.raises(ValueError):
        ProcessExecutor(registry, store, tools, max_iterations=0)


@pytest.mark.asyncio
async def test_branches_are_evaluated_in_order(executor, registry):
    registry.register(ProcessDefinition(
        id="route",
        name="Ruta",
        triggers=[ProcessTrigger(type=TriggerType.PATTERN, patterns=[re.compile(r"^tipo (?P<kind>\w+)")])],
        slots=[ProcessSlot(name="kind")],
        steps=[
            BranchStep(id="pick", branches=[
                Branch(condition="slot.kind == 'a'", next_step="first"),
                Branch(condition="kind exists", next_step="second"),
            ]),
            RespondStep(id="first", response="primera"),
            RespondStep(id="second", response="segunda"),
        ],
        initial_step="pick",
    ))

    for _ in range(3):
        assert (await send(executor, "tipo a")).response == "primera"
        assert (await send(executor, "tipo b")).response == "segunda"


@pytest.mark.asyncio
async def test_branch_without_match_completes(executor, registry):
    registry.register(ProcessDefinition(
        id="route",
        name="Ruta",
        triggers=[ProcessTrigger(type=TriggerType.KEYWORD, keywords=["ruta"])],
        steps=[
            RespondStep(id="intro", response="inicio", next_step="pick"),
            BranchStep(id="pick", branches=[Branch(condition="missing exists", next_step="intro")]),
        ],
        initial_step="intro",
    ))
    result = await send(executor, "ruta")
    assert result.status == ProcessStatus.COMPLETED
    assert result.response == "inicio"


@pytest.mark.asyncio
async def test_tool_failure_ends_in_error_until_next_message(executor, registry, store, tools):
    tools.register("lookup_client", lambda args, call: "client-1")
    tools.register("create_task", lambda args, call: {"success": False, "error": "API caída"})
    registry.register(create_task_definition())

    await send(executor, "crear tarea revisión para aurin")
    result = await send(executor, "si")
    assert result.success is False
    assert result.status == ProcessStatus.ERROR
    assert result.error == "API caída"
    assert result.response == strings.TOOL_EXECUTION_FAILED.format(error="API caída")

    stored = await store.get(SESSION)
    assert stored.status == ProcessStatus.ERROR
    assert stored.tool_results["create_task"] == {"success": False, "error": "API caída"}

    assert await send(executor, "hola") is None
    assert await store.get(SESSION) is None


@pytest.mark.asyncio
async def test_tool_exception_is_contained(executor, registry, store, tools):
    def explode(args, call):
        raise RuntimeError("timeout del servidor")

    tools.register("lookup_client", lambda args, call: "client-1")
    tools.register("create_task", explode)
    registry.register(create_task_definition())

    await send(executor, "crear tarea revisión para aurin")
    result = await send(executor, "si")
    assert result.status == ProcessStatus.ERROR
    assert result.error == "timeout del servidor"


@pytest.mark.asyncio
async def test_error_context_is_replaced_by_a_new_process(executor, registry, store, tools):
    tools.register("lookup_client", lambda args, call: "client-1")
    tools.register("create_task", lambda args, call: {"success": False})
    registry.register(create_task_definition())
    registry.register(help_definition())

    await send(executor, "crear tarea revisión para aurin")
    result = await send(executor, "si")
    assert result.error == strings.TOOL_GENERIC_ERROR

    result = await send(executor, "/ayuda")
    assert result.process_id == "help"
    assert result.status == ProcessStatus.COMPLETED


@pytest.mark.asyncio
async def test_unknown_tool_fails_the_process(executor, registry, tools):
    tools.register("lookup_client", lambda args, call: "client-1")
    registry.register(create_task_definition())
    await send(executor, "crear tarea revisión para aurin")

    result = await send(executor, "si")
    assert result.status == ProcessStatus.ERROR
    assert result.error == strings.TOOL_NOT_REGISTERED.format(tool="create_task")


@pytest.mark.asyncio
async def test_idle_context_expires(executor, registry, store, calls):
    registry.register(create_task_definition(timeout_ms=1000))
    await send(executor, "crear tarea revisión para aurin")

    context = await store.get(SESSION)
    context.updated_at = utcnow() - timedelta(seconds=5)

    assert await send(executor, "si") is None
    assert await store.get(SESSION) is None
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_purge_expired(executor, registry, store, calls):
    registry.register(create_task_definition(timeout_ms=1000))
    await send(executor, "crear tarea revisión para aurin")
    await executor.process_message("crear tarea", user_id=USER, session_id="fresh")

    stale = await store.get(SESSION)
    stale.updated_at = utcnow() - timedelta(seconds=5)

    assert await executor.purge_expired() == 1
    assert store.session_ids() == ["fresh"]
    assert store.lock_count() == 0


@pytest.mark.asyncio
async def test_timeouts_can_be_disabled(registry, store, tools, calls):
    executor = ProcessExecutor(registry, store, tools, enforce_timeouts=False)
    registry.register(create_task_definition(timeout_ms=1000))
    await send(executor, "crear tarea revisión para aurin")
    (await store.get(SESSION)).updated_at = utcnow() - timedelta(hours=1)

    assert await executor.purge_expired() == 0
    assert (await send(executor, "si")).status == ProcessStatus.COMPLETED


@pytest.mark.asyncio
async def test_cancel_refused_when_not_allowed(executor, registry, store, calls):
    registry.register(create_task_definition(allow_cancel=False))

    result = await send(executor, "crear tarea")
    result = await send(executor, "cancelar")
    assert result.status == ProcessStatus.COLLECTING
    assert result.response.startswith(strings.CANCEL_NOT_ALLOWED)
    assert result.awaiting_input.slot_name == "task_name"

    await send(executor, "Informe")
    await send(executor, "aurin")
    result = await send(executor, "cancelar")
    assert result.status == ProcessStatus.CONFIRMING
    assert result.response.startswith(strings.CANCEL_NOT_ALLOWED)

    context = await store.get(SESSION)
    refused = [entry for entry in context.execution_history if entry.action == HistoryAction.CANCEL]
    assert [entry.result for entry in refused] == ["refused", "refused"]


@pytest.mark.asyncio
async def test_explicit_cancel_while_collecting(executor, registry, store, calls):
    registry.register(create_task_definition())
    await send(executor, "crear tarea")
    result = await send(executor, "Cancelar")
    assert result.status == ProcessStatus.CANCELLED
    assert store.size() == 0


@pytest.mark.asyncio
async def test_invalid_answers_are_retried_then_fail(executor, registry, store):
    registry.register(ProcessDefinition(
        id="priority",
        name="Prioridad",
        triggers=[ProcessTrigger(type=TriggerType.KEYWORD, keywords=["prioridad"])],
        slots=[ProcessSlot(
            name="level",
            required=True,
            prompt_if_missing="¿Qué prioridad?",
            validation=SlotValidation(enum=["Alta", "Media", "Baja"]),
        )],
        steps=[
            CollectStep(id="ask", slots=["level"], next_step="done"),
            RespondStep(id="done", response="Prioridad {level}"),
        ],
        initial_step="ask",
        config=ProcessConfig(max_retries=2),
    ))

    await send(executor, "prioridad")
    result = await send(executor, "altísima")
    assert result.status == ProcessStatus.COLLECTING
    assert result.response == "Las opciones válidas son: Alta, Media, Baja. ¿Qué prioridad?"
    assert (await store.get(SESSION)).retry_counts == {"level": 1}

    result = await send(executor, "urgentísima")
    assert result.success is False
    assert result.error == ProcessErrorCode.VALIDATION_FAILED.value
    assert result.response == strings.TOO_MANY_INVALID_ATTEMPTS


@pytest.mark.asyncio
async def test_valid_answer_resets_retries(executor, registry, store):
    registry.register(ProcessDefinition(
        id="hours",
        name="Horas",
        triggers=[ProcessTrigger(type=TriggerType.KEYWORD, keywords=["horas"])],
        slots=[
            ProcessSlot(name="hours", type=SlotType.NUMBER, required=True,
                        validation=SlotValidation(custom_validator=lambda v: v > 0 or "Debe ser mayor que cero")),
        ],
        steps=[
            CollectStep(id="ask", slots=["hours"], next_step="done"),
            RespondStep(id="done", response="{hours} horas"),
        ],
        initial_step="ask",
    ))

    await send(executor, "horas")
    result = await send(executor, "ninguna")
    assert result.response.startswith("Debe ser mayor que cero")
    result = await send(executor, "2.5")
    assert result.status == ProcessStatus.COMPLETED
    assert result.response == "2.5 horas"


@pytest.mark.asyncio
async def test_modification_at_confirmation_re_renders_it(executor, registry, store, calls):
    registry.register(create_task_definition())
    await send(executor, "crear tarea revisión para aurin")

    result = await send(executor, "en realidad, cambia la prioridad a alta")
    assert result.status == ProcessStatus.CONFIRMING
    assert result.response == "Actualizado. ¿Creo revisión para aurin con prioridad Alta?"
    assert result.awaiting_confirmation.data["priority"] == "Alta"

    result = await send(executor, "si")
    assert result.status == ProcessStatus.COMPLETED
    assert calls[-1].arguments["priority"] == "Alta"


@pytest.mark.asyncio
async def test_invalid_modification_is_ignored(executor, registry, store, calls):
    registry.register(create_task_definition())
    await send(executor, "crear tarea revisión para aurin")

    result = await send(executor, "cambia la prioridad a altísima")
    assert result.response.startswith(strings.UPDATED_PREFIX)
    assert (await store.get(SESSION)).slots["priority"] == "Media"


@pytest.mark.asyncio
async def test_context_sourced_slots_read_identity(executor, registry):
    registry.register(ProcessDefinition(
        id="greet",
        name="Saludo",
        triggers=[ProcessTrigger(type=TriggerType.KEYWORD, keywords=["saluda"])],
        slots=[
            ProcessSlot(name="requester", required=True, extract_from=SlotSource.CONTEXT, context_key="user_name"),
            ProcessSlot(name="user_id", required=True, extract_from=SlotSource.CONTEXT),
        ],
        steps=[
            CollectStep(id="who", slots=["requester", "user_id"], next_step="hello"),
            RespondStep(id="hello", response="Hola {requester} ({user_id})"),
        ],
        initial_step="who",
    ))

    result = await send(executor, "saluda", user_name="Ana")
    assert result.response == f"Hola Ana ({USER})"


@pytest.mark.asyncio
async def test_validate_step_abort_and_skip(executor, registry):
    registry.register(ProcessDefinition(
        id="checks",
        name="Checks",
        triggers=[ProcessTrigger(type=TriggerType.PATTERN, patterns=[re.compile(r"^check(?: (?P<flag>\w+))?")])],
        slots=[ProcessSlot(name="flag")],
        steps=[
            ValidateStep(id="validate", validations=[
                ValidationRule(condition="slot.flag == 'never'", error_message="ignorado", fail_action=FailAction.SKIP),
                ValidationRule(condition="flag exists", error_message="Falta la bandera"),
            ], next_step="done"),
            RespondStep(id="done", response="ok {flag}"),
        ],
        initial_step="validate",
    ))

    assert (await send(executor, "check rojo")).response == "ok rojo"

    result = await send(executor, "check")
    assert result.error == ProcessErrorCode.VALIDATION_FAILED.value
    assert result.response == "Falta la bandera"


@pytest.mark.asyncio
async def test_hooks_may_be_async(executor, registry):
    async def resolve(context):
        await asyncio.sleep(0)
        context.slots["resolved"] = "sí"

    registry.register(ProcessDefinition(
        id="hooks",
        name="Hooks",
        triggers=[ProcessTrigger(type=TriggerType.KEYWORD, keywords=["gancho"])],
        steps=[RespondStep(id="done", on_enter=resolve, response=lambda ctx: f"resuelto: {ctx.slots['resolved']}")],
        initial_step="done",
    ))
    assert (await send(executor, "gancho")).response == "resuelto: sí"


@pytest.mark.asyncio
async def test_start_unknown_process(executor):
    result = await executor.start_process("ghost", "hola", SESSION, USER)
    assert result.success is False
    assert result.status == ProcessStatus.ERROR
    assert result.error == ProcessErrorCode.PROCESS_NOT_FOUND.value


@pytest.mark.asyncio
async def test_unregistered_process_fails_on_continue(executor, registry, store, calls):
    registry.register(create_task_definition())
    await send(executor, "crear tarea revisión para aurin")
    registry.unregister("create-task")

    result = await send(executor, "si")
    assert result.error == ProcessErrorCode.PROCESS_NOT_FOUND.value
    assert result.response == strings.PROCESS_DEFINITION_MISSING


@pytest.mark.asyncio
async def test_missing_step_fails(executor, registry, store):
    definition = help_definition()
    registry.register(definition)
    context = ProcessContext(process_id="help", session_id=SESSION, user_id=USER, current_step="ghost")

    result = await executor.execute_process(definition, context)
    assert result.error == ProcessErrorCode.STEP_NOT_FOUND.value
    assert (await store.get(SESSION)).status == ProcessStatus.ERROR


def explode(context):
    raise RuntimeError("definición rota")


def single_step_definition(step, slots=(), first="only"):
    return ProcessDefinition(
        id="fragile",
        name="Frágil",
        triggers=[ProcessTrigger(type=TriggerType.KEYWORD, keywords=["probar"])],
        slots=list(slots),
        steps=[step] if first == "only" else step,
        initial_step=first,
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("step", [
    RespondStep(id="only", on_enter=explode, response="nunca"),
    RespondStep(id="only", on_exit=explode, response="nunca"),
    RespondStep(id="only", response=explode),
    ConfirmStep(id="only", confirm_message=explode),
    BranchStep(id="only", branches=[Branch(condition=explode, next_step="only")]),
    ValidateStep(id="only", validations=[ValidationRule(condition=explode, error_message="nunca")]),
])
async def test_definition_callable_errors_end_in_error(executor, registry, store, step):
    registry.register(single_step_definition(step))

    result = await send(executor, "probar")
    assert result.success is False
    assert result.status == ProcessStatus.ERROR
    assert result.error == ProcessErrorCode.STEP_FAILED.value
    assert result.response == strings.STEP_EXECUTION_FAILED
    assert (await store.get(SESSION)).status == ProcessStatus.ERROR


@pytest.mark.asyncio
async def test_callable_error_after_input_does_not_strand_the_session(executor, registry, store):
    def boom(context):
        return context.slots["missing"]

    registry.register(single_step_definition(
        [
            CollectStep(id="collect", slots=["valor"], next_step="show"),
            RespondStep(id="show", response=boom),
        ],
        slots=[ProcessSlot(name="valor", required=True, prompt_if_missing="¿Valor?")],
        first="collect",
    ))

    assert (await send(executor, "probar")).awaiting_input.slot_name == "valor"

    result = await send(executor, "42")
    assert result.status == ProcessStatus.ERROR
    assert result.error == ProcessErrorCode.STEP_FAILED.value
    context = await store.get(SESSION)
    assert context.status == ProcessStatus.ERROR
    assert context.is_terminal()

    assert await send(executor, "hola") is None
    assert await store.get(SESSION) is None

    # The session is usable again
    assert (await send(executor, "probar")).status == ProcessStatus.COLLECTING


@pytest.mark.asyncio
async def test_confirm_exit_hook_error_is_contained(executor, registry, store):
    registry.register(single_step_definition(ConfirmStep(id="only", confirm_message="¿Seguro?", on_exit=explode)))

    assert (await send(executor, "probar")).status == ProcessStatus.CONFIRMING
    result = await send(executor, "si")
    assert result.status == ProcessStatus.ERROR
    assert result.error == ProcessErrorCode.STEP_FAILED.value


@pytest.mark.asyncio
async def test_re_entering_a_paused_context_does_not_repeat_tool_calls(executor, registry, store, tools):
    invocations = []
    tools.register("reserve_slot", lambda args, call: invocations.append(call) or {"reserved": True})

    definition = ProcessDefinition(
        id="reserve",
        name="Reservar",
        triggers=[ProcessTrigger(type=TriggerType.KEYWORD, keywords=["reservar"])],
        steps=[
            ExecuteStep(id="reserve", tool="reserve_slot", next_step="confirm"),
            ConfirmStep(id="confirm", confirm_message="¿Confirmo la reserva?", next_step="done"),
            RespondStep(id="done", response="Reservado."),
        ],
        initial_step="reserve",
    )
    registry.register(definition)

    first = await send(executor, "reservar")
    assert first.status == ProcessStatus.CONFIRMING
    assert len(invocations) == 1

    stored = await store.get(SESSION)
    again = await executor.execute_process(definition, stored)
    assert again.status == ProcessStatus.CONFIRMING
    assert again.response == first.response
    assert len(invocations) == 1
    assert (await store.get(SESSION)).current_step == "confirm"
