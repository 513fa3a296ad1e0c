# /taskflow/services/process_service.py

import logging
from typing import List, Optional

from taskflow.config.settings import Settings, settings
from taskflow.models.context import ProcessContext
from taskflow.models.process import ProcessDefinition
from taskflow.models.result import ActiveProcessState, ProcessResult
from taskflow.services.context_store import SessionContextStore, context_store
from taskflow.services.tool_service import ToolInvoker, build_tool_invoker, tool_registry
from taskflow.workflows.catalog import default_processes
from taskflow.workflows.engine import ProcessExecutor
from taskflow.workflows.registry import ProcessRegistry

# This service is the public face of the process executor: it owns the
# registry, the session store and the tool invoker, and is what routes and
# the chat service talk to.

logger = logging.getLogger(__name__)


class ProcessService:
    def __init__(
        self,
        registry: Optional[ProcessRegistry] = None,
        store: Optional[SessionContextStore] = None,
        tool_invoker: Optional[ToolInvoker] = None,
        config: Settings = settings,
    ):
        self.registry = registry or ProcessRegistry()
        self.store = store or context_store
        self.tool_invoker = tool_invoker or build_tool_invoker(config, tool_registry)
        self.executor = ProcessExecutor(
            registry=self.registry,
            store=self.store,
            tool_invoker=self.tool_invoker,
            max_iterations=config.process_max_iterations,
            enforce_timeouts=config.process_enforce_timeouts,
        )

    def register_process(self, definition: ProcessDefinition, replace: bool = False) -> None:
        """Raises DefinitionError for a malformed definition, DuplicateProcessError for a taken id."""
        self.registry.register(definition, replace=replace)
        logger.info(f"Registered process '{definition.id}' ({len(definition.steps)} steps)")

    def load_default_processes(self) -> int:
        loaded = 0
        for definition in default_processes():
            if definition.id in self.registry:
                continue
            self.register_process(definition)
            loaded += 1
        logger.info(f"Loaded {loaded} built-in processes")
        return loaded

    async def process_message(
        self,
        message: str,
        user_id: str,
        session_id: str,
        is_admin: bool = False,
        user_name: Optional[str] = None,
        timezone: Optional[str] = None,
    ) -> Optional[ProcessResult]:
        """None means no process claimed the message and the caller should fall back to the LLM."""
        return await self.executor.process_message(
            message,
            user_id=user_id,
            session_id=session_id,
            is_admin=is_admin,
            user_name=user_name,
            timezone=timezone,
        )

    async def clear_session_context(self, session_id: str) -> None:
        async with self.store.session_lock(session_id):
            await self.store.delete(session_id)

    async def _live_context(self, session_id: str) -> Optional[ProcessContext]:
        """Stored context, unless its process timeout already elapsed."""
        context = await self.store.get(session_id)
        if context is None or self.executor.is_expired(context):
            return None
        return context

    async def has_active_process(self, session_id: str) -> bool:
        context = await self._live_context(session_id)
        return context is not None and not context.is_terminal()

    async def get_active_process_state(self, session_id: str) -> Optional[ActiveProcessState]:
        context = await self._live_context(session_id)
        if context is None:
            return None
        return ActiveProcessState(
            process_id=context.process_id,
            status=context.status,
            current_step=context.current_step,
            awaiting_input=context.awaiting_input,
            awaiting_confirmation=context.awaiting_confirmation,
        )

    def list_processes(self) -> List[ProcessDefinition]:
        return self.registry.get_all()

    async def purge_expired(self) -> int:
        purged = await self.executor.purge_expired()
        if purged:
            logger.info(f"Purged {purged} expired process contexts")
        return purged


# Globally accessible instance
process_service = ProcessService()
