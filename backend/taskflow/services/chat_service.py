# /taskflow/services/chat_service.py

import math
import time
import logging
from typing import List, Optional, Protocol

from openai import AsyncOpenAI

from taskflow.config import strings
from taskflow.config.persona import AI_SYSTEM_PROMPT, DEFAULT_USER_NAME
from taskflow.config.settings import Settings, settings
from taskflow.models.api import ChatMessage, ChatMetrics, ChatRequest, ChatResponse
from taskflow.services.process_service import ProcessService, process_service
from taskflow.utils.circuit_breaker import CircuitBreaker
from taskflow.utils.metrics import chat_messages_counter, llm_fallback_counter

# Process-first chat routing. Every message is offered to the structured
# processes first; only when none claims it does the language model answer.

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
# System prompt (~2000) + typical history (~500) + answer (~200) + tool overhead (~300)
LLM_TURN_OVERHEAD_TOKENS = 3000


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_tokens_saved(message: str) -> int:
    return LLM_TURN_OVERHEAD_TOKENS + estimate_tokens(message)


class LLMFallback(Protocol):
    async def reply(self, request: ChatRequest) -> str:
        ...


class OpenAIFallback:
    """Answers with the OpenAI chat completions API, behind a circuit breaker."""

    def __init__(self, api_key: str, model: str, client: Optional[AsyncOpenAI] = None):
        self.client = client or AsyncOpenAI(api_key=api_key)
        self.model = model
        self.breaker = CircuitBreaker(name="llm:openai")

    def _messages(self, request: ChatRequest) -> List[dict]:
        system_prompt = AI_SYSTEM_PROMPT.format(
            user_id=request.user_id,
            user_name=request.user_name or DEFAULT_USER_NAME,
            is_admin="Sí" if request.is_admin else "No",
        )
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": m.role, "content": m.content} for m in request.conversation_history if m.role != "system")
        messages.append({"role": "user", "content": request.message})
        return messages

    async def _complete(self, request: ChatRequest) -> str:
        response = await self.client.chat.completions.create(model=self.model, messages=self._messages(request))
        return (response.choices[0].message.content or "").strip()

    async def reply(self, request: ChatRequest) -> str:
        try:
            return await self.breaker.call(self._complete, request)
        except Exception as e:
            logger.error(f"OpenAI fallback failed: {e}")
            llm_fallback_counter.labels(reason="error").inc()
            return strings.LLM_UNAVAILABLE


def build_llm_fallback(config: Settings) -> Optional[LLMFallback]:
    if not config.openai_api_key:
        logger.info("No OpenAI API key configured; unmatched messages get a generic answer")
        return None
    return OpenAIFallback(api_key=config.openai_api_key, model=config.openai_model)


class ChatService:
    def __init__(
        self,
        processes: ProcessService,
        llm: Optional[LLMFallback] = None,
        processes_only: bool = False,
    ):
        self.processes = processes
        self.llm = llm
        self.processes_only = processes_only

    async def chat(self, request: ChatRequest) -> ChatResponse:
        started = time.monotonic()
        session_id = request.session_id or f"session_{request.user_id}_{int(time.time() * 1000)}"
        history = list(request.conversation_history)
        user_turn = ChatMessage(role="user", content=request.message)

        def elapsed_ms() -> int:
            return int((time.monotonic() - started) * 1000)

        if not request.skip_processes:
            try:
                result = await self.processes.process_message(
                    request.message,
                    user_id=request.user_id,
                    session_id=session_id,
                    is_admin=request.is_admin,
                    user_name=request.user_name,
                )
            except Exception:
                logger.warning("Process routing failed, delegating to the LLM", exc_info=True)
                result = None

            if result is not None:
                chat_messages_counter.labels(handled_by="process").inc()
                return ChatResponse(
                    content=result.response,
                    session_id=session_id,
                    handled_by="process",
                    process_id=result.process_id,
                    result=result,
                    conversation_history=history + [user_turn, ChatMessage(role="assistant", content=result.response)],
                    metrics=ChatMetrics(
                        tokens_used=0,
                        estimated_tokens_saved=estimate_tokens_saved(request.message),
                        duration_ms=elapsed_ms(),
                    ),
                )

            if request.processes_only or self.processes_only or self.llm is None:
                chat_messages_counter.labels(handled_by="process").inc()
                return ChatResponse(
                    content=strings.NO_PROCESS_MATCHED,
                    session_id=session_id,
                    handled_by="process",
                    conversation_history=history + [user_turn],
                    metrics=ChatMetrics(duration_ms=elapsed_ms()),
                )
            llm_fallback_counter.labels(reason="no_match").inc()
        else:
            llm_fallback_counter.labels(reason="skip_processes").inc()

        if self.llm is None:
            content = strings.LLM_UNAVAILABLE
        else:
            content = await self.llm.reply(request)
        chat_messages_counter.labels(handled_by="llm").inc()
        return ChatResponse(
            content=content,
            session_id=session_id,
            handled_by="llm",
            conversation_history=history + [user_turn, ChatMessage(role="assistant", content=content)],
            metrics=ChatMetrics(tokens_used=estimate_tokens(content), duration_ms=elapsed_ms()),
        )


# Globally accessible instance
chat_service = ChatService(process_service, build_llm_fallback(settings), processes_only=settings.processes_only)
