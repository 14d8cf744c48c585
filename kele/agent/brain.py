"""
Brain -- the tool-calling conversation loop of one chat session.

For each user message the brain:
1. Appends it to the (bounded) history
2. Rebuilds the system prompt from the current tool catalog and memory
3. Asks the provider manager for a response with the tool schemas
4. Executes requested tool calls in order and feeds the results back
5. Loops until the model answers without tool calls, or the round budget
   is spent
"""

from __future__ import annotations

import logging
import threading
from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncIterator

from kele.agent.compress import DEFAULT_MAX_OUTPUT_SIZE
from kele.agent.execution import execute_tool
from kele.llm.errors import DecodeError
from kele.llm.manager import ProviderManager
from kele.llm.types import EventType, Message, StreamEvent, ToolCall
from kele.prompts.system import build_system_prompt
from kele.types import Executor, MemoryStore

logger = logging.getLogger(__name__)

MAX_ROUNDS_SENTINEL = "[reached max tool rounds]"

COMPLETE_PROMPT = """You are an input completion assistant. Given the conversation and the text the user is typing, predict the full text the user is about to enter.
Rules:
- Return the complete predicted text, including what the user already typed
- Keep it short
- Return an empty string if you cannot predict anything
- No quotes, explanations or anything else, only the predicted text"""

_COMPLETE_HISTORY = 4
_COMPLETE_MAX_TOKENS = 60


class AgentEventType:
    CONTENT = "content"
    REASONING = "reasoning"
    TOOL_START = "tool_start"
    TOOL_RESULT = "tool_result"
    ERROR = "error"
    DONE = "done"


@dataclass
class ToolExecution:
    name: str
    arguments: str = ""
    result: str = ""


@dataclass
class AgentEvent:
    """One event of ``Brain.chat_stream``; ``error`` and ``done`` are final."""

    type: str
    content: str = ""
    tool: ToolExecution | None = None
    error: str = ""


class Brain:
    """
    One conversation with tool calling.

    Parameters
    ----------
    provider : ProviderManager
        Routes chat requests; owned by this session.
    executor : Executor
        Tool catalog and execution.
    memory : MemoryStore, optional
        Long-term memory.  Failures are logged and ignored.
    max_tool_rounds : int
        Max LLM rounds per user message.
    max_turns : int
        History keeps the most recent ``max_turns * 2`` messages.
    max_output_size : int
        Hard cap applied to tool output before compression.
    memory_snippets : int
        Number of memory entries injected into the system prompt.
    """

    def __init__(
        self,
        provider: ProviderManager,
        executor: Executor,
        memory: MemoryStore | None = None,
        *,
        max_tool_rounds: int = 10,
        max_turns: int = 20,
        max_output_size: int = DEFAULT_MAX_OUTPUT_SIZE,
        memory_snippets: int = 5,
    ) -> None:
        self.provider = provider
        self.executor = executor
        self.memory = memory
        self.max_tool_rounds = max_tool_rounds
        self.max_turns = max_turns if max_turns > 0 else 20
        self.max_output_size = max_output_size
        self.memory_snippets = memory_snippets

        self._history: list[Message] = []
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def chat(self, user_input: str) -> str:
        """
        Run a full exchange without streaming and return the final text.

        LLM failures propagate to the caller as ``LLMError`` subclasses.
        """
        self._append(Message(role="user", content=user_input))

        for _ in range(self.max_tool_rounds):
            messages = await self._build_messages()
            resp = await self.provider.chat(messages, self._tools())

            if resp.tool_calls:
                self._append(
                    Message(
                        role="assistant",
                        content=resp.content,
                        tool_calls=resp.tool_calls,
                    )
                )
                for call in resp.tool_calls:
                    await self._run_tool(call)
                continue

            if resp.content:
                self._append(Message(role="assistant", content=resp.content))
            await self._remember(user_input, resp.content)
            return resp.content

        self._append(Message(role="assistant", content=MAX_ROUNDS_SENTINEL))
        return MAX_ROUNDS_SENTINEL

    async def chat_stream(self, user_input: str) -> AsyncIterator[AgentEvent]:
        """
        Run a full exchange, yielding ``AgentEvent`` objects for the UI.

        The stream always ends with exactly one ``done`` or ``error`` event.
        Unexpected exceptions are reported as an ``error`` event rather than
        raised into the consumer.
        """
        try:
            async with aclosing(self._stream_rounds(user_input)) as events:
                async for event in events:
                    yield event
        except Exception as exc:
            logger.exception("Chat stream failed")
            yield AgentEvent(type=AgentEventType.ERROR, error=str(exc))

    async def _stream_rounds(self, user_input: str) -> AsyncIterator[AgentEvent]:
        self._append(Message(role="user", content=user_input))

        for _ in range(self.max_tool_rounds):
            messages = await self._build_messages()
            round_content = ""
            terminal: StreamEvent | None = None

            async with aclosing(
                self.provider.chat_stream(messages, self._tools())
            ) as stream:
                async for event in stream:
                    if event.type == EventType.REASONING:
                        yield AgentEvent(
                            type=AgentEventType.REASONING, content=event.content
                        )
                    elif event.type == EventType.CONTENT:
                        round_content += event.content
                        yield AgentEvent(
                            type=AgentEventType.CONTENT, content=event.content
                        )
                    elif event.is_terminal:
                        terminal = event
                        break

            if terminal is None:
                raise DecodeError("stream ended without a terminal event")

            if terminal.type == EventType.ERROR:
                yield AgentEvent(type=AgentEventType.ERROR, error=str(terminal.error))
                return

            if terminal.type == EventType.TOOL_CALLS and terminal.tool_calls:
                self._append(
                    Message(
                        role="assistant",
                        content=round_content,
                        tool_calls=terminal.tool_calls,
                    )
                )
                for call in terminal.tool_calls:
                    yield AgentEvent(
                        type=AgentEventType.TOOL_START,
                        tool=ToolExecution(name=call.name, arguments=call.arguments),
                    )
                    result = await self._run_tool(call)
                    yield AgentEvent(
                        type=AgentEventType.TOOL_RESULT,
                        tool=ToolExecution(
                            name=call.name, arguments=call.arguments, result=result
                        ),
                    )
                continue

            if round_content:
                self._append(Message(role="assistant", content=round_content))
            await self._remember(user_input, round_content)
            yield AgentEvent(type=AgentEventType.DONE)
            return

        self._append(Message(role="assistant", content=MAX_ROUNDS_SENTINEL))
        yield AgentEvent(type=AgentEventType.DONE)

    async def _run_tool(self, call: ToolCall) -> str:
        result = await execute_tool(self.executor, call, self.max_output_size)
        self._append(Message(role="tool", content=result, tool_call_id=call.id))
        return result

    def _tools(self) -> list[dict] | None:
        return self.executor.get_tools() or None

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    @property
    def history(self) -> list[Message]:
        with self._lock:
            return list(self._history)

    def clear_history(self) -> None:
        with self._lock:
            self._history = []

    def _append(self, msg: Message) -> None:
        with self._lock:
            self._history.append(msg)
            limit = self.max_turns * 2
            if len(self._history) > limit:
                del self._history[: len(self._history) - limit]
            # A tool result whose assistant turn was trimmed away is
            # rejected by the APIs.
            while self._history and self._history[0].role == "tool":
                del self._history[0]

    async def _build_messages(self) -> list[Message]:
        history = self.history
        prompt = build_system_prompt(
            tool_names=self.executor.list_tools(),
            work_dir=self.executor.get_work_dir(),
            memories=await self._recent_memories(),
        )
        return [Message(role="system", content=prompt)] + history

    # ------------------------------------------------------------------
    # Memory
    # ------------------------------------------------------------------

    async def _recent_memories(self) -> list[str]:
        if self.memory is None:
            return []
        try:
            return await self.memory.get_recent_memories(self.memory_snippets)
        except Exception:
            logger.warning("Failed to load memories", exc_info=True)
            return []

    async def _remember(self, user_input: str, answer: str) -> None:
        if self.memory is None:
            return
        try:
            await self.memory.save_message("user", user_input)
            if answer:
                await self.memory.save_message("assistant", answer)
        except Exception:
            logger.warning("Failed to persist exchange to memory", exc_info=True)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def estimate_tokens(self) -> int:
        """Rough token count of the next request: 4 chars/token + 4 per message."""
        return sum(len(m.content) // 4 + 4 for m in await self._build_messages())

    async def complete(
        self, text: str, recent_history: list[Message] | None = None
    ) -> str:
        """Predict the rest of a partially typed input with the small model."""
        messages = [Message(role="system", content=COMPLETE_PROMPT)]
        if recent_history:
            messages.extend(recent_history[-_COMPLETE_HISTORY:])
        messages.append(Message(role="user", content=f"Current input: {text}"))
        return await self.provider.complete(messages, _COMPLETE_MAX_TOKENS)

    @property
    def model(self) -> str:
        return self.provider.model

    @property
    def default_model(self) -> str:
        return self.provider.default_model

    def set_model(self, model: str) -> None:
        self.provider.set_model(model)

    def reset_model(self) -> None:
        self.provider.reset_model()

    @property
    def small_model(self) -> str:
        return self.provider.small_model

    def set_small_model(self, model: str) -> None:
        self.provider.set_small_model(model)

    @property
    def provider_name(self) -> str:
        return self.provider.active_provider_name

    def list_providers(self) -> list[str]:
        return self.provider.list_providers()

    def list_tools(self) -> list[str]:
        return self.executor.list_tools()

    def provider_info(self) -> dict[str, str]:
        return {
            "provider": self.provider.active_provider_name,
            "model": self.provider.model,
            "default_model": self.provider.default_model,
            "small_model": self.provider.small_model,
            "supports_tools": str(self.provider.active_supports_tools).lower(),
        }
