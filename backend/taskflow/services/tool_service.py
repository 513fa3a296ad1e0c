# /taskflow/services/tool_service.py

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Union

import httpx

from taskflow.config import strings
from taskflow.config.settings import Settings
from taskflow.models.tools import ToolCall, ToolResult
from taskflow.utils.circuit_breaker import CircuitBreaker, CircuitOpenError

# This service is the boundary between processes and side effects. Processes
# only ever see a ToolInvoker; whether tools run in-process or behind an
# n8n-style webhook is decided once at startup. Nothing here retries.

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Dict[str, Any], ToolCall], Union[Any, Awaitable[Any]]]


class ToolInvoker(Protocol):
    async def invoke(self, call: ToolCall) -> ToolResult:
        ...


class ToolRegistry:
    """In-process name -> handler mapping. Handlers may be sync or async."""

    def __init__(self):
        self._handlers: Dict[str, ToolHandler] = {}

    def register(self, name: str, handler: Optional[ToolHandler] = None):
        """Registers a handler directly, or returns a decorator when no handler is given."""
        if handler is not None:
            self._handlers[name] = handler
            return handler

        def decorator(func: ToolHandler) -> ToolHandler:
            self._handlers[name] = func
            return func
        return decorator

    def unregister(self, name: str) -> None:
        self._handlers.pop(name, None)

    def names(self) -> List[str]:
        return sorted(self._handlers)

    def clear(self) -> None:
        self._handlers.clear()

    async def invoke(self, call: ToolCall) -> ToolResult:
        handler = self._handlers.get(call.name)
        if handler is None:
            return ToolResult.fail(strings.TOOL_NOT_REGISTERED.format(tool=call.name))

        outcome = handler(call.arguments, call)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        if isinstance(outcome, ToolResult):
            return outcome
        return ToolResult.from_payload(outcome)


class WebhookToolInvoker:
    """
    Invokes tools by POSTing to a single webhook, the way the n8n workflows
    expect: {"type", "callId", "arguments", "userId", "isAdmin"}.
    Each tool gets its own circuit breaker.
    """

    def __init__(
        self,
        url: str,
        secret: Optional[str] = None,
        timeout: float = 30.0,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.secret = secret
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self._breakers: Dict[str, CircuitBreaker] = {}

    def _breaker(self, tool_name: str) -> CircuitBreaker:
        breaker = self._breakers.get(tool_name)
        if breaker is None:
            breaker = self._breakers[tool_name] = CircuitBreaker(
                name=f"tool:{tool_name}",
                failure_threshold=self.failure_threshold,
                timeout=self.recovery_timeout,
            )
        return breaker

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        headers = {"Content-Type": "application/json"}
        if self.secret:
            headers["X-Webhook-Secret"] = self.secret
        response = await self.http_client.post(self.url, json=payload, headers=headers)
        response.raise_for_status()
        return response

    async def invoke(self, call: ToolCall) -> ToolResult:
        payload = {
            "type": call.name,
            "callId": call.id,
            "arguments": call.arguments,
            "userId": call.user_id,
            "isAdmin": call.is_admin,
        }
        try:
            response = await self._breaker(call.name).call(self._post, payload)
        except CircuitOpenError as e:
            return ToolResult.fail(str(e))
        except httpx.HTTPStatusError as e:
            logger.warning(f"Tool webhook returned {e.response.status_code} for '{call.name}'")
            return ToolResult.fail(f"HTTP {e.response.status_code}")
        except httpx.RequestError as e:
            logger.warning(f"Tool webhook request failed for '{call.name}': {e}")
            return ToolResult.fail(str(e) or strings.TOOL_UNKNOWN_ERROR)

        try:
            body = response.json()
        except ValueError:
            body = response.text
        return ToolResult.from_payload(body)

    async def aclose(self) -> None:
        await self.http_client.aclose()


def build_tool_invoker(config: Settings, registry: ToolRegistry) -> ToolInvoker:
    if config.tool_webhook_url:
        logger.info(f"Tools will be invoked through the webhook at {config.tool_webhook_url}")
        return WebhookToolInvoker(
            url=config.tool_webhook_url,
            secret=config.tool_webhook_secret,
            timeout=config.tool_timeout_seconds,
            failure_threshold=config.tool_failure_threshold,
            recovery_timeout=config.tool_recovery_timeout,
        )
    logger.info(f"Tools will be invoked in-process ({len(registry.names())} registered)")
    return registry


# Globally accessible instance
tool_registry = ToolRegistry()
