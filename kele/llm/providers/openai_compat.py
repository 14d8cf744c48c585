"""
OpenAI-compatible chat-completion provider.

Works with any endpoint that speaks the OpenAI ``/chat/completions`` wire
protocol -- OpenAI itself, DeepSeek, vLLM, LM Studio, Ollama's ``/v1``, etc.

Dependencies: ``httpx`` (async HTTP client).  No ``openai`` SDK needed.
"""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator

import httpx

from kele.llm.errors import DecodeError, TransportError
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


class OpenAICompatProvider(HTTPProvider):
    """
    Stream-capable provider for any OpenAI-API-compatible endpoint.

    Parameters
    ----------
    name:
        Registry name.  Custom profiles pass their own.
    api_base:
        Base URL of the API, e.g. ``"https://api.openai.com/v1"``.
    api_key:
        Bearer token.  Pass ``""`` for unauthenticated local endpoints.
    timeout:
        HTTP request timeout in seconds.
    transport:
        Optional ``httpx`` transport (tests).
    """

    def __init__(
        self,
        name: str = "openai",
        api_base: str = "https://api.openai.com/v1",
        api_key: str = "",
        timeout: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout, transport=transport)
        self._name = name
        self._api_base = api_base.rstrip("/")
        self._api_key = api_key

    # ------------------------------------------------------------------
    # Provider interface
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def api_base(self) -> str:
        return self._api_base

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
        return f"{self._api_base}/chat/completions"

    def _build_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_body(
        self,
        messages: list[Message],
        tools: list[dict] | None,
        options: ChatOptions,
        stream: bool,
    ) -> dict:
        body: dict = {
            "model": options.model,
            "messages": [m.to_dict() for m in messages],
            "stream": stream,
        }
        if options.temperature:
            body["temperature"] = options.temperature
        if options.max_tokens:
            body["max_tokens"] = options.max_tokens
        if tools:
            body["tools"] = tools
        logger.debug(
            "REQUEST: provider=%s model=%s tools=%d messages=%d stream=%s",
            self._name,
            options.model,
            len(tools) if tools else 0,
            len(messages),
            stream,
        )
        return body

    # ------------------------------------------------------------------
    # Non-streaming response
    # ------------------------------------------------------------------

    def _parse_response(self, data: dict) -> ChatResponse:
        choices = data.get("choices") or []
        if not choices:
            raise DecodeError("API returned an empty response")

        choice = choices[0]
        message = choice.get("message") or {}
        tool_calls = [
            ToolCall(
                id=raw.get("id") or f"call_{idx}",
                name=(raw.get("function") or {}).get("name", ""),
                arguments=(raw.get("function") or {}).get("arguments") or "",
                type=raw.get("type") or "function",
            )
            for idx, raw in enumerate(message.get("tool_calls") or [])
        ]
        usage = data.get("usage") or {}
        return ChatResponse(
            content=message.get("content") or "",
            tool_calls=tool_calls,
            finish_reason=choice.get("finish_reason") or "",
            model=data.get("model", ""),
            usage=Usage(
                prompt_tokens=usage.get("prompt_tokens", 0),
                completion_tokens=usage.get("completion_tokens", 0),
                total_tokens=usage.get("total_tokens", 0),
            ),
        )

    # ------------------------------------------------------------------
    # Streaming response
    # ------------------------------------------------------------------

    async def _read_stream(
        self, client: httpx.AsyncClient, response: httpx.Response
    ) -> AsyncIterator[StreamEvent]:
        """
        Parse ``data: {json}`` records until ``data: [DONE]``, a chunk with a
        non-null ``finish_reason``, or end of body.
        """
        assembler = ToolCallAssembler()
        try:
            async for data_str in iter_data_lines(response):
                if data_str == "[DONE]":
                    yield _terminal(assembler)
                    return

                try:
                    data = json.loads(data_str)
                except json.JSONDecodeError:
                    logger.warning("Failed to parse SSE data: %s", data_str[:200])
                    continue

                choices = data.get("choices")
                if not choices:
                    continue
                choice = choices[0]
                delta = choice.get("delta") or {}

                for event in self._delta_events(delta, assembler):
                    yield event

                finish_reason = choice.get("finish_reason")
                if finish_reason is not None:
                    if finish_reason == "tool_calls":
                        yield StreamEvent(
                            type=EventType.TOOL_CALLS,
                            tool_calls=assembler.finalize(),
                        )
                    else:
                        yield StreamEvent(type=EventType.DONE)
                    return

            # Body ended without [DONE] or a finish reason.
            yield _terminal(assembler)
        except httpx.TransportError as exc:
            yield StreamEvent.failed(TransportError(f"stream interrupted: {exc}"))
        finally:
            await response.aclose()
            await client.aclose()

    @staticmethod
    def _delta_events(
        delta: dict, assembler: ToolCallAssembler
    ) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        reasoning = delta.get("reasoning_content")
        if reasoning:
            events.append(StreamEvent(type=EventType.REASONING, content=reasoning))
        content = delta.get("content")
        if content:
            events.append(StreamEvent(type=EventType.CONTENT, content=content))

        for raw_tc in delta.get("tool_calls") or []:
            func = raw_tc.get("function") or {}
            assembler.feed(
                raw_tc.get("index", 0),
                id=raw_tc.get("id"),
                type=raw_tc.get("type"),
                name=func.get("name"),
                arguments=func.get("arguments"),
            )
        return events


def _terminal(assembler: ToolCallAssembler) -> StreamEvent:
    if assembler:
        return StreamEvent(type=EventType.TOOL_CALLS, tool_calls=assembler.finalize())
    return StreamEvent(type=EventType.DONE)
