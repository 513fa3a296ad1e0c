# /taskflow/workflows/engine.py

"""
Structured process execution engine.

The executor is a session-scoped state machine. For every inbound message it
either continues the session's active process (confirm, cancel, modify or
provide input), starts a newly matched process, or returns None so the
caller can fall back to the language model.

Guarantees:
- At most one live ProcessContext per session; starting another process
  cancels the current one first.
- Messages of one session are handled strictly one at a time.
- The step loop is bounded by `max_iterations`.
- Tool failures, tool exceptions and errors raised by definition callables
  end the process in `error`. They are never raised to the caller and never
  retried.
"""

import inspect
import uuid
from typing import Any, Dict, Optional

import structlog

from taskflow.config import strings
from taskflow.models.context import (
    HistoryAction,
    ProcessContext,
    ProcessStatus,
    UserContext,
    utcnow,
)
from taskflow.models.process import (
    BranchStep,
    CollectStep,
    ConfirmStep,
    ExecuteStep,
    FailAction,
    ProcessDefinition,
    ProcessSlot,
    RespondStep,
    SlotSource,
    ValidateStep,
)
from taskflow.models.result import (
    AwaitingConfirmation,
    AwaitingInput,
    ProcessErrorCode,
    ProcessMetrics,
    ProcessResult,
    QuickReply,
)
from taskflow.models.tools import ToolCall, ToolResult
from taskflow.services.context_store import SessionContextStore
from taskflow.services.tool_service import ToolInvoker
from taskflow.utils.metrics import (
    expired_contexts_counter,
    process_outcome_counter,
    process_started_counter,
    tool_calls_counter,
)
from taskflow.workflows.conditions import evaluate_condition, interpolate_args, render_template
from taskflow.workflows.entities import extract_entities
from taskflow.workflows.registry import ProcessRegistry
from taskflow.workflows.slots import coerce_slot_value, parse_slot_value, validate_slot_value

log = structlog.get_logger(__name__)

DEFAULT_MAX_ITERATIONS = 10

# Identity fields a context-sourced slot may read
_IDENTITY_FIELDS = ("user_id", "session_id", "user_name", "is_admin", "timezone")


async def _run_hook(hook, context: ProcessContext) -> None:
    if hook is None:
        return
    outcome = hook(context)
    if inspect.isawaitable(outcome):
        await outcome


class ProcessExecutor:
    def __init__(
        self,
        registry: ProcessRegistry,
        store: SessionContextStore,
        tool_invoker: ToolInvoker,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        enforce_timeouts: bool = True,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.registry = registry
        self.detector = registry.detector
        self.store = store
        self.tool_invoker = tool_invoker
        self.max_iterations = max_iterations
        self.enforce_timeouts = enforce_timeouts

    # ---------------- Entry point ---------------- #

    async def process_message(
        self,
        message: str,
        user_id: str,
        session_id: str,
        is_admin: bool = False,
        user_name: Optional[str] = None,
        timezone: Optional[str] = None,
    ) -> Optional[ProcessResult]:
        """Returns the outcome of this turn, or None when no process claims the message."""
        identity = UserContext(is_admin=is_admin, user_name=user_name, timezone=timezone)

        async with self.store.session_lock(session_id):
            active = await self._load_live_context(session_id)

            if active is not None:
                continuation = self.detector.should_continue_process(message, active)
                if continuation.should_continue:
                    return await self.continue_process(
                        active, message, continuation.action, continuation.modifications
                    )

                match = self.detector.detect(message, active)
                if match is not None and match.process_id != active.process_id:
                    await self._preempt(active, match.process_id)
                    return await self.start_process(
                        match.process_id, message, session_id, user_id, identity, match.extracted_data
                    )

                try:
                    pending = self._awaiting_result(active)
                except Exception as e:
                    return await self._step_failed(active, e)
                if pending is not None:
                    return pending

            probe = ProcessContext(process_id="", session_id=session_id, user_id=user_id, user_context=identity)
            match = self.detector.detect(message, probe)
            if match is None:
                return None
            return await self.start_process(
                match.process_id, message, session_id, user_id, identity, match.extracted_data
            )

    async def _load_live_context(self, session_id: str) -> Optional[ProcessContext]:
        """Returns the session's context, evicting it first when it errored or went stale."""
        context = await self.store.get(session_id)
        if context is None:
            return None

        if context.status == ProcessStatus.ERROR:
            await self.store.delete(session_id)
            log.info("error_context_discarded", session_id=session_id, process_id=context.process_id)
            return None

        if self.is_expired(context):
            await self._expire(context)
            return None

        return context

    # ---------------- Lifecycle ---------------- #

    async def start_process(
        self,
        process_id: str,
        message: str,
        session_id: str,
        user_id: str,
        user_context: Optional[UserContext] = None,
        extracted_data: Optional[Dict[str, Any]] = None,
    ) -> ProcessResult:
        definition = self.registry.get(process_id)
        if definition is None:
            return ProcessResult(
                success=False,
                process_id=process_id,
                status=ProcessStatus.ERROR,
                response=strings.PROCESS_NOT_FOUND.format(process_id=process_id),
                error=ProcessErrorCode.PROCESS_NOT_FOUND.value,
            )

        context = ProcessContext(
            process_id=process_id,
            session_id=session_id,
            user_id=user_id,
            status=ProcessStatus.COLLECTING,
            current_step=definition.initial_step,
            original_message=message,
            user_context=user_context or UserContext(),
        )
        await self.store.set(session_id, context)
        process_started_counter.labels(process_id=process_id).inc()
        try:
            self._seed_slots(definition, context, {**extract_entities(message), **(extracted_data or {})})
        except Exception as e:
            return await self._step_failed(context, e)
        log.info("process_started", process_id=process_id, session_id=session_id, seeded=sorted(context.slots))

        return await self.execute_process(definition, context)

    @staticmethod
    def _seed_slots(definition: ProcessDefinition, context: ProcessContext, seeds: Dict[str, Any]) -> None:
        """Entities and trigger data fill message-sourced slots when valid; defaults fill the rest."""
        for slot in definition.slots:
            raw = seeds.get(slot.name)
            if raw is not None and slot.extract_from in (SlotSource.MESSAGE, SlotSource.DEFAULT):
                check = validate_slot_value(slot, coerce_slot_value(slot, raw))
                if check["is_valid"]:
                    context.slots[slot.name] = check["value"]
                    continue
            if slot.default_value is not None:
                context.slots[slot.name] = slot.default_value

    async def continue_process(
        self,
        context: ProcessContext,
        message: str,
        action: Optional[str],
        modifications: Optional[Dict[str, Any]] = None,
    ) -> ProcessResult:
        definition = self.registry.get(context.process_id)
        if definition is None:
            return await self._fail(
                context, ProcessErrorCode.PROCESS_NOT_FOUND.value, strings.PROCESS_DEFINITION_MISSING
            )

        try:
            return await self._continue(definition, context, message, action, modifications)
        except Exception as e:
            return await self._step_failed(context, e)

    async def _continue(
        self,
        definition: ProcessDefinition,
        context: ProcessContext,
        message: str,
        action: Optional[str],
        modifications: Optional[Dict[str, Any]],
    ) -> ProcessResult:
        context.touch()
        step = definition.get_step(context.current_step)

        if action == "cancel":
            if not definition.config.allow_cancel:
                context.record(context.current_step, HistoryAction.CANCEL, result="refused")
                pending = self._awaiting_result(context, hint=strings.CANCEL_NOT_ALLOWED)
                if pending is not None:
                    return pending
                return await self.execute_process(definition, context)
            context.record(context.current_step, HistoryAction.CANCEL)
            return await self._cancel(context)

        if action == "modify" and modifications:
            applied = self._apply_modifications(definition, context, modifications)
            context.record(context.current_step, HistoryAction.MODIFY, result=applied)
            if isinstance(step, ConfirmStep):
                return await self._pause_for_confirmation(step, context, prefix=strings.UPDATED_PREFIX)
            return await self.execute_process(definition, context)

        if action == "confirm":
            context.record(context.current_step, HistoryAction.CONFIRM)
            context.awaiting_confirmation = False
            if isinstance(step, ConfirmStep):
                await _run_hook(step.on_exit, context)
                if step.next_step is None:
                    return await self._complete(context)
                context.current_step = step.next_step
            return await self.execute_process(definition, context)

        if action == "input":
            context.awaiting_input = False
            if isinstance(step, CollectStep):
                slot = self._slot_awaiting_answer(definition, step, context)
                context.awaiting_slot = None
                if slot is not None:
                    value = parse_slot_value(slot, message)
                    context.record(step.id, HistoryAction.INPUT, result={slot.name: value})
                    check = validate_slot_value(slot, value)
                    if not check["is_valid"]:
                        attempts = context.retry_counts.get(slot.name, 0) + 1
                        context.retry_counts[slot.name] = attempts
                        if attempts >= definition.config.max_retries:
                            return await self._fail(
                                context,
                                ProcessErrorCode.VALIDATION_FAILED.value,
                                strings.TOO_MANY_INVALID_ATTEMPTS,
                            )
                        return await self._ask_for_slot(context, slot, reason=check["message"])
                    context.slots[slot.name] = check["value"]
                    context.retry_counts.pop(slot.name, None)

        return await self.execute_process(definition, context)

    @staticmethod
    def _slot_awaiting_answer(
        definition: ProcessDefinition, step: CollectStep, context: ProcessContext
    ) -> Optional[ProcessSlot]:
        if context.awaiting_slot and context.awaiting_slot in step.slots:
            return definition.get_slot(context.awaiting_slot)
        for slot_name in step.slots:
            slot = definition.get_slot(slot_name)
            if slot is not None and not context.has_slot(slot_name):
                return slot
        return None

    @staticmethod
    def _apply_modifications(
        definition: ProcessDefinition, context: ProcessContext, modifications: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Overwrites slots; values for declared slots are validated and invalid ones dropped."""
        applied = {}
        for name, value in modifications.items():
            slot = definition.get_slot(name)
            if slot is not None:
                check = validate_slot_value(slot, coerce_slot_value(slot, value))
                if not check["is_valid"]:
                    continue
                value = check["value"]
            context.slots[name] = value
            applied[name] = value
        return applied

    # ---------------- Step loop ---------------- #

    async def execute_process(self, definition: ProcessDefinition, context: ProcessContext) -> ProcessResult:
        """Runs steps until a pause or a terminal state. Errors raised by hooks, templates or conditions end the process in error."""
        try:
            return await self._run_steps(definition, context)
        except Exception as e:
            return await self._step_failed(context, e)

    async def _run_steps(self, definition: ProcessDefinition, context: ProcessContext) -> ProcessResult:
        iterations = 0
        while iterations < self.max_iterations:
            iterations += 1

            step = definition.get_step(context.current_step)
            if step is None:
                return await self._fail(context, ProcessErrorCode.STEP_NOT_FOUND.value, strings.STEP_NOT_FOUND)

            await _run_hook(step.on_enter, context)
            context.record(step.id, HistoryAction.ENTER)

            if isinstance(step, CollectStep):
                paused = await self._run_collect(definition, step, context)
                if paused is not None:
                    return paused

            elif isinstance(step, ValidateStep):
                failed = await self._run_validate(step, context)
                if failed is not None:
                    return failed

            elif isinstance(step, ConfirmStep):
                return await self._pause_for_confirmation(step, context)

            elif isinstance(step, ExecuteStep):
                outcome = await self._run_execute(step, context)
                if not outcome.success:
                    return await self._fail(
                        context, outcome.error, strings.TOOL_EXECUTION_FAILED.format(error=outcome.error)
                    )

            elif isinstance(step, RespondStep):
                context.pending_responses.append(render_template(step.response, context))

            elif isinstance(step, BranchStep):
                target = self._select_branch(step, context)
                if target is not None:
                    context.current_step = target
                    continue

            await _run_hook(step.on_exit, context)

            next_step = getattr(step, "next_step", None)
            if next_step is None:
                return await self._complete(context)
            context.current_step = next_step

        return await self._fail(context, ProcessErrorCode.MAX_ITERATIONS.value, strings.MAX_ITERATIONS_EXCEEDED)

    async def _run_collect(
        self, definition: ProcessDefinition, step: CollectStep, context: ProcessContext
    ) -> Optional[ProcessResult]:
        """Resolves slots in order: already set, tool, identity, default; pauses on the first missing required one."""
        context.status = ProcessStatus.COLLECTING
        for slot_name in step.slots:
            slot = definition.get_slot(slot_name)
            if slot is None or context.has_slot(slot_name):
                continue

            if slot.extract_from == SlotSource.TOOL and slot.tool_to_call:
                outcome = await self._call_tool(slot.tool_to_call, interpolate_args(slot.tool_args, context), context)
                if outcome.success and outcome.data is not None:
                    context.slots[slot_name] = outcome.data
                    continue

            if slot.extract_from == SlotSource.CONTEXT:
                value = self._identity_value(context, slot.context_key or slot.name)
                if value is not None:
                    context.slots[slot_name] = value
                    continue

            if slot.default_value is not None:
                context.slots[slot_name] = slot.default_value
                continue

            if slot.required:
                return await self._ask_for_slot(context, slot)
        return None

    @staticmethod
    def _identity_value(context: ProcessContext, key: str) -> Any:
        if key not in _IDENTITY_FIELDS:
            return None
        if key in ("user_id", "session_id"):
            return getattr(context, key)
        return getattr(context.user_context, key)

    async def _run_validate(self, step: ValidateStep, context: ProcessContext) -> Optional[ProcessResult]:
        for rule in step.validations:
            if evaluate_condition(rule.condition, context):
                continue
            if rule.fail_action == FailAction.ABORT:
                return await self._fail(context, ProcessErrorCode.VALIDATION_FAILED.value, rule.error_message)
            log.debug("validation_rule_not_met", process_id=context.process_id, step=step.id,
                      fail_action=rule.fail_action.value)
        return None

    async def _run_execute(self, step: ExecuteStep, context: ProcessContext) -> ToolResult:
        context.status = ProcessStatus.EXECUTING
        if not callable(step.tool_args):
            return await self._call_tool(step.tool, interpolate_args(step.tool_args, context), context)
        try:
            args = step.tool_args(context)
        except Exception as e:
            log.error("tool_args_failed", tool=step.tool, process_id=context.process_id, exc_info=True)
            context.record(step.id, HistoryAction.ERROR, error=str(e))
            return ToolResult.fail(str(e) or strings.TOOL_UNKNOWN_ERROR)
        return await self._call_tool(step.tool, args, context)

    @staticmethod
    def _select_branch(step: BranchStep, context: ProcessContext) -> Optional[str]:
        for branch in step.branches:
            if evaluate_condition(branch.condition, context):
                return branch.next_step
        return None

    async def _call_tool(self, tool_name: str, args: Dict[str, Any], context: ProcessContext) -> ToolResult:
        call = ToolCall(
            id=f"process_{uuid.uuid4().hex}",
            name=tool_name,
            arguments=args,
            user_id=context.user_id,
            is_admin=context.user_context.is_admin,
        )
        context.record(context.current_step, HistoryAction.TOOL, result={"tool": tool_name, "call_id": call.id})

        try:
            result = await self.tool_invoker.invoke(call)
        except Exception as e:
            error = str(e) or strings.TOOL_UNKNOWN_ERROR
            context.record(context.current_step, HistoryAction.ERROR, error=error)
            tool_calls_counter.labels(tool=tool_name, status="exception").inc()
            log.warning("tool_call_failed", tool=tool_name, call_id=call.id, process_id=context.process_id,
                        error=error, exc_info=True)
            return ToolResult.fail(error)

        if result.success:
            context.tool_results[tool_name] = result.data
            tool_calls_counter.labels(tool=tool_name, status="success").inc()
        else:
            context.tool_results[tool_name] = {"success": False, "error": result.error}
            tool_calls_counter.labels(tool=tool_name, status="failure").inc()
            log.warning("tool_call_failed", tool=tool_name, call_id=call.id, process_id=context.process_id,
                        error=result.error)
        return result

    # ---------------- Pause points ---------------- #

    async def _ask_for_slot(
        self, context: ProcessContext, slot: ProcessSlot, reason: Optional[str] = None
    ) -> ProcessResult:
        prompt = slot.prompt_if_missing or strings.MISSING_SLOT_PROMPT.format(description=slot.description or slot.name)
        context.status = ProcessStatus.COLLECTING
        context.awaiting_input = True
        context.awaiting_slot = slot.name
        context.touch()
        await self.store.set(context.session_id, context)
        return ProcessResult(
            success=True,
            process_id=context.process_id,
            status=ProcessStatus.COLLECTING,
            response=f"{reason} {prompt}" if reason else prompt,
            awaiting_input=AwaitingInput(slot_name=slot.name, prompt=prompt),
        )

    async def _pause_for_confirmation(
        self, step: ConfirmStep, context: ProcessContext, prefix: str = ""
    ) -> ProcessResult:
        context.status = ProcessStatus.CONFIRMING
        context.awaiting_confirmation = True
        context.awaiting_input = False
        context.touch()
        await self.store.set(context.session_id, context)
        return self._confirmation_result(step, context, prefix)

    @staticmethod
    def _confirmation_result(step: ConfirmStep, context: ProcessContext, prefix: str = "") -> ProcessResult:
        message = render_template(step.confirm_message, context) or strings.DEFAULT_CONFIRMATION
        return ProcessResult(
            success=True,
            process_id=context.process_id,
            status=ProcessStatus.CONFIRMING,
            response=f"{prefix}{message}",
            awaiting_confirmation=AwaitingConfirmation(message=message, data=dict(context.slots)),
            quick_replies=[
                QuickReply(label=strings.CONFIRM_LABEL, payload=strings.CONFIRM_PAYLOAD),
                QuickReply(label=strings.CANCEL_LABEL, payload=strings.CANCEL_PAYLOAD),
            ],
        )

    def _awaiting_result(self, context: ProcessContext, hint: Optional[str] = None) -> Optional[ProcessResult]:
        """Re-renders the pause the context is currently in, without advancing it."""
        definition = self.registry.get(context.process_id)
        step = definition.get_step(context.current_step) if definition else None

        if context.awaiting_confirmation and isinstance(step, ConfirmStep):
            prefix = f"{hint or strings.PENDING_CONFIRMATION_HINT} "
            return self._confirmation_result(step, context, prefix)

        if context.awaiting_input and context.awaiting_slot and definition is not None:
            slot = definition.get_slot(context.awaiting_slot)
            if slot is not None:
                prompt = slot.prompt_if_missing or strings.MISSING_SLOT_PROMPT.format(
                    description=slot.description or slot.name
                )
                return ProcessResult(
                    success=True,
                    process_id=context.process_id,
                    status=ProcessStatus.COLLECTING,
                    response=f"{hint or strings.PENDING_INPUT_HINT} {prompt}",
                    awaiting_input=AwaitingInput(slot_name=slot.name, prompt=prompt),
                )
        return None

    # ---------------- Terminal states ---------------- #

    @staticmethod
    def _metrics(context: ProcessContext) -> ProcessMetrics:
        elapsed = utcnow() - context.started_at
        return ProcessMetrics(
            tool_calls_count=context.tool_calls_count(),
            tokens_used=0,
            execution_time_ms=int(elapsed.total_seconds() * 1000),
        )

    async def _complete(self, context: ProcessContext) -> ProcessResult:
        context.status = ProcessStatus.COMPLETED
        context.awaiting_input = context.awaiting_confirmation = False
        await self.store.delete(context.session_id)

        metrics = self._metrics(context)
        process_outcome_counter.labels(process_id=context.process_id, status=context.status.value).inc()
        log.info("process_completed", process_id=context.process_id, session_id=context.session_id,
                 tool_calls=metrics.tool_calls_count, duration_ms=metrics.execution_time_ms)

        return ProcessResult(
            success=True,
            process_id=context.process_id,
            status=ProcessStatus.COMPLETED,
            response="\n\n".join(context.pending_responses) or strings.PROCESS_COMPLETED,
            data=dict(context.tool_results),
            metrics=metrics,
        )

    async def _cancel(self, context: ProcessContext) -> ProcessResult:
        context.status = ProcessStatus.CANCELLED
        context.awaiting_input = context.awaiting_confirmation = False
        await self.store.delete(context.session_id)

        process_outcome_counter.labels(process_id=context.process_id, status=context.status.value).inc()
        log.info("process_cancelled", process_id=context.process_id, session_id=context.session_id,
                 step=context.current_step)

        return ProcessResult(
            success=True,
            process_id=context.process_id,
            status=ProcessStatus.CANCELLED,
            response=strings.OPERATION_CANCELLED,
            metrics=self._metrics(context),
        )

    async def _fail(self, context: ProcessContext, error: Optional[str], response: str) -> ProcessResult:
        """Ends the process in error. The context stays stored for inspection until the next message."""
        error = error or strings.TOOL_UNKNOWN_ERROR
        context.status = ProcessStatus.ERROR
        context.awaiting_input = context.awaiting_confirmation = False
        context.record(context.current_step, HistoryAction.ERROR, error=error)
        context.touch()
        await self.store.set(context.session_id, context)

        process_outcome_counter.labels(process_id=context.process_id, status=context.status.value).inc()
        log.warning("process_failed", process_id=context.process_id, session_id=context.session_id,
                    step=context.current_step, error=error)

        return ProcessResult(
            success=False,
            process_id=context.process_id,
            status=ProcessStatus.ERROR,
            response=response,
            error=error,
            metrics=self._metrics(context),
        )

    async def _step_failed(self, context: ProcessContext, error: Exception) -> ProcessResult:
        log.error("process_step_failed", process_id=context.process_id, session_id=context.session_id,
                  step=context.current_step, error=str(error), exc_info=True)
        return await self._fail(context, ProcessErrorCode.STEP_FAILED.value, strings.STEP_EXECUTION_FAILED)

    async def _preempt(self, context: ProcessContext, new_process_id: str) -> None:
        context.status = ProcessStatus.CANCELLED
        context.awaiting_input = context.awaiting_confirmation = False
        context.record(context.current_step, HistoryAction.CANCEL, result={"preempted_by": new_process_id})
        await self.store.delete(context.session_id)

        process_outcome_counter.labels(process_id=context.process_id, status=context.status.value).inc()
        log.info("process_preempted", process_id=context.process_id, session_id=context.session_id,
                 preempted_by=new_process_id)

    # ---------------- Expiry ---------------- #

    def is_expired(self, context: ProcessContext) -> bool:
        if not self.enforce_timeouts:
            return False
        definition = self.registry.get(context.process_id)
        if definition is None:
            return False
        idle_ms = (utcnow() - context.updated_at).total_seconds() * 1000
        return idle_ms > definition.config.timeout_ms

    async def _expire(self, context: ProcessContext) -> None:
        if context.status != ProcessStatus.ERROR:
            context.status = ProcessStatus.CANCELLED
            process_outcome_counter.labels(process_id=context.process_id, status=context.status.value).inc()
        context.awaiting_input = context.awaiting_confirmation = False
        await self.store.delete(context.session_id)
        expired_contexts_counter.inc()
        log.info("context_expired", process_id=context.process_id, session_id=context.session_id,
                 idle_since=context.updated_at.isoformat())

    async def purge_expired(self) -> int:
        """Evicts every stale context. Returns how many were removed."""
        purged = 0
        for session_id in self.store.session_ids():
            async with self.store.session_lock(session_id):
                context = await self.store.get(session_id)
                if context is not None and self.is_expired(context):
                    await self._expire(context)
                    purged += 1
        return purged
