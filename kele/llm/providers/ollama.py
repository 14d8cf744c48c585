"""
Ollama provider.

Talks to a local Ollama instance through its OpenAI-compatible ``/v1``
endpoint, so all of the streaming and tool-call handling is reused from
``OpenAICompatProvider``.  Adds local model listing via ``/api/tags``.

Dependencies: ``httpx``.
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from typing import AsyncIterator

import httpx

from kele.llm.errors import DecodeError, LLMError, TransportError, classify_api_error
from kele.llm.providers.base import HTTPProvider
from kele.llm.providers.openai_compat import OpenAICompatProvider
from kele.llm.types import ChatOptions, ChatResponse, EventType, Message, StreamEvent

logger = logging.getLogger(__name__)

# Local inference can be slow.
_DEFAULT_TIMEOUT = 600.0
_LIST_TIMEOUT = 5.0


class OllamaProvider(HTTPProvider):
    """
    Provider for a local `Ollama <https://ollama.com>`_ instance.

    Parameters
    ----------
    host:
        Base URL of the Ollama HTTP API (e.g. ``"http://localhost:11434"``).
    timeout:
        HTTP request timeout in seconds.
    transport:
        Optional ``httpx`` transport (tests).
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        timeout: float = _DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout, transport=transport)
        self._host = host.rstrip("/")
        self._openai = OpenAICompatProvider(
            name="ollama",
            api_base=f"{self._host}/v1",
            api_key="ollama",  # Ollama ignores the key
            timeout=timeout,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def host(self) -> str:
        return self._host

    async def chat(
        self,
        messages: list[Message],
        tools: list[dict] | None,
        options: ChatOptions,
    ) -> ChatResponse:
        try:
            return await self._openai.chat(messages, tools, options)
        except LLMError as exc:
            self._add_hint(exc)
            raise

    async def chat_stream(
        self,
        messages: list[Message],
        tools: list[dict] | None,
        options: ChatOptions,
    ) -> AsyncIterator[StreamEvent]:
        try:
            stream = await self._openai.chat_stream(messages, tools, options)
        except LLMError as exc:
            self._add_hint(exc)
            raise
        return self._with_hint(stream)

    async def _with_hint(
        self, stream: AsyncIterator[StreamEvent]
    ) -> AsyncIterator[StreamEvent]:
        async with aclosing(stream):
            async for event in stream:
                if event.type == EventType.ERROR and isinstance(event.error, LLMError):
                    self._add_hint(event.error)
                yield event

    async def list_models(self) -> list[str]:
        """Return the names of the models installed locally."""
        async with self._client(timeout=_LIST_TIMEOUT) as client:
            try:
                resp = await client.get(f"{self._host}/api/tags")
            except httpx.TransportError as exc:
                raise TransportError(
                    f"cannot connect to Ollama ({self._host}): {exc}"
                ) from exc
            if not resp.is_success:
                raise classify_api_error(resp.status_code, resp.text)
            try:
                data = resp.json()
            except ValueError as exc:
                raise DecodeError(f"failed to decode model list: {exc}") from exc

        return [m.get("name", "") for m in data.get("models") or []]

    def _add_hint(self, exc: LLMError) -> None:
        exc.hint = f"check that Ollama is running at {self._host}"
