"""
Anthropic Messages API provider.

Differences from the OpenAI dialect that this module absorbs:

  - ``system`` is a top-level request field, not a message role.
  - Assistant turns with tool calls and tool results are arrays of
    ``tool_use`` / ``tool_result`` content blocks.
  - Streaming uses named SSE events (``content_block_start``,
    ``content_block_delta``, ``content_block_stop``, ``message_delta``,
    ``message_stop``).

Dependencies: ``httpx``.
"""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator

import httpx

from kele.llm.errors import DecodeError, LLMError, TransportError
from kele.llm.providers.base import HTTPProvider, iter_data_lines
from kele.llm.tool_call_assembler import ToolCallAssembler
from kele.llm.types import (
    ChatOptions,
    ChatResponse,
    EventType,
    Message,
    StreamEvent,
    ToolCall,
    Usage,
)

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 4096

_STOP_REASONS = {"end_turn": "stop", "tool_use": "tool_calls"}


class AnthropicProvider(HTTPProvider):
    """
    Provider for the Anthropic ``/v1/messages`` endpoint.

    Parameters
    ----------
    name:
        Registry name.
    api_base:
        Base URL without the ``/v1`` suffix.
    api_key:
        Value for the ``x-api-key`` header.
    timeout:
        HTTP request timeout in seconds.
    transport:
        Optional ``httpx`` transport (tests).
    """

    def __init__(
        self,
        name: str = "anthropic",
        api_base: str = "https://api.anthropic.com",
        api_key: str = "",
        timeout: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout, transport=transport)
        self._name = name
        self._api_base = api_base.rstrip("/")
        self._api_key = api_key

    @property
    def name(self) -> str:
        return self._name

    async def chat(
        self,
        messages: list[Message],
        tools: list[dict] | None,
        options: ChatOptions,
    ) -> ChatResponse:
        body = self._build_body(messages, tools, options, stream=False)
        data = await self._post_json(self._url(), body, self._build_headers())
        return self._parse_response(data)

    async def chat_stream(
        self,
        messages: list[Message],
        tools: list[dict] | None,
        options: ChatOptions,
    ) -> AsyncIterator[StreamEvent]:
        body = self._build_body(messages, tools, options, stream=True)
        client, response = await self._open_stream(
            self._url(), body, self._build_headers()
        )
        return self._read_stream(client, response)

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def _url(self) -> str:
        return f"{self._api_base}/v1/messages"

    def _build_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self._api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def _build_body(
        self,
        messages: list[Message],
        tools: list[dict] | None,
        options: ChatOptions,
        stream: bool,
    ) -> dict:
        system, converted = convert_messages(messages)
        body: dict = {
            "model": options.model,
            "max_tokens": options.max_tokens or DEFAULT_MAX_TOKENS,
            "messages": converted,
        }
        if system:
            body["system"] = system
        if tools:
            body["tools"] = convert_tools(tools)
        if stream:
            body["stream"] = True
        return body

    # ------------------------------------------------------------------
    # Non-streaming response
    # ------------------------------------------------------------------

    def _parse_response(self, data: dict) -> ChatResponse:
        blocks = data.get("content")
        if blocks is None:
            raise DecodeError("API returned a response without content")

        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        for block in blocks:
            if block.get("type") == "text":
                text_parts.append(block.get("text", ""))
            elif block.get("type") == "tool_use":
                tool_calls.append(
                    ToolCall(
                        id=block.get("id", ""),
                        name=block.get("name", ""),
                        arguments=json.dumps(block.get("input") or {}),
                    )
                )

        stop_reason = data.get("stop_reason") or ""
        usage = data.get("usage") or {}
        input_tokens = usage.get("input_tokens", 0)
        output_tokens = usage.get("output_tokens", 0)
        return ChatResponse(
            content="".join(text_parts),
            tool_calls=tool_calls,
            finish_reason=_STOP_REASONS.get(stop_reason, stop_reason),
            model=data.get("model", ""),
            usage=Usage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
        )

    # ------------------------------------------------------------------
    # Streaming response
    # ------------------------------------------------------------------

    async def _read_stream(
        self, client: httpx.AsyncClient, response: httpx.Response
    ) -> AsyncIterator[StreamEvent]:
        assembler = ToolCallAssembler()
        current_tool: int | None = None
        try:
            async for data_str in iter_data_lines(response):
                try:
                    event = json.loads(data_str)
                except json.JSONDecodeError:
                    logger.warning("Failed to parse SSE data: %s", data_str[:200])
                    continue

                etype = event.get("type")

                if etype == "content_block_start":
                    block = event.get("content_block") or {}
                    if block.get("type") == "tool_use":
                        current_tool = len(assembler)
                        assembler.feed(
                            current_tool,
                            id=block.get("id"),
                            name=block.get("name"),
                        )

                elif etype == "content_block_delta":
                    delta = event.get("delta") or {}
                    dtype = delta.get("type")
                    if dtype == "text_delta" and delta.get("text"):
                        yield StreamEvent(type=EventType.CONTENT, content=delta["text"])
                    elif dtype == "input_json_delta" and current_tool is not None:
                        assembler.feed(current_tool, arguments=delta.get("partial_json"))
                    elif dtype == "thinking_delta" and delta.get("thinking"):
                        yield StreamEvent(
                            type=EventType.REASONING, content=delta["thinking"]
                        )

                elif etype == "content_block_stop":
                    current_tool = None

                elif etype == "message_delta":
                    stop_reason = (event.get("delta") or {}).get("stop_reason")
                    if stop_reason == "tool_use" and assembler:
                        yield StreamEvent(
                            type=EventType.TOOL_CALLS,
                            tool_calls=assembler.finalize(),
                        )
                        return

                elif etype == "message_stop":
                    yield _terminal(assembler)
                    return

                elif etype == "error":
                    message = (event.get("error") or {}).get("message", "unknown error")
                    yield StreamEvent.failed(LLMError(f"anthropic error: {message}"))
                    return

            yield _terminal(assembler)
        except httpx.TransportError as exc:
            yield StreamEvent.failed(TransportError(f"stream interrupted: {exc}"))
        finally:
            await response.aclose()
            await client.aclose()


def _terminal(assembler: ToolCallAssembler) -> StreamEvent:
    if assembler:
        return StreamEvent(type=EventType.TOOL_CALLS, tool_calls=assembler.finalize())
    return StreamEvent(type=EventType.DONE)


# ----------------------------------------------------------------------
# Format conversion
# ----------------------------------------------------------------------

def convert_messages(messages: list[Message]) -> tuple[str, list[dict]]:
    """
    Convert internal messages to Anthropic's format.

    Returns ``(system_prompt, messages)``.  Consecutive tool results are
    merged into a single ``user`` message.
    """
    system = ""
    result: list[dict] = []

    for msg in messages:
        if msg.role == "system":
            system = msg.content
            continue

        if msg.role == "tool":
            block = {
                "type": "tool_result",
                "tool_use_id": msg.tool_call_id or "",
                "content": msg.content,
            }
            prev = result[-1] if result else None
            if (
                prev is not None
                and prev["role"] == "user"
                and isinstance(prev["content"], list)
                and all(b.get("type") == "tool_result" for b in prev["content"])
            ):
                prev["content"].append(block)
            else:
                result.append({"role": "user", "content": [block]})
            continue

        if msg.role == "assistant" and msg.tool_calls:
            blocks: list[dict] = []
            if msg.content:
                blocks.append({"type": "text", "text": msg.content})
            for tc in msg.tool_calls:
                blocks.append({
                    "type": "tool_use",
                    "id": tc.id,
                    "name": tc.name,
                    "input": _decode_input(tc.arguments),
                })
            result.append({"role": "assistant", "content": blocks})
            continue

        result.append({"role": msg.role, "content": msg.content})

    return system, result


def convert_tools(tools: list[dict]) -> list[dict]:
    """Convert OpenAI-style function schemas to Anthropic tool definitions."""
    converted = []
    for tool in tools:
        func = tool.get("function", tool)
        converted.append({
            "name": func.get("name", ""),
            "description": func.get("description", ""),
            "input_schema": func.get("parameters") or {"type": "object"},
        })
    return converted


def _decode_input(arguments: str) -> dict:
    try:
        value = json.loads(arguments) if arguments else {}
    except json.JSONDecodeError:
        return {}
    return value if isinstance(value, dict) else {}
