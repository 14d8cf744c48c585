"""Abstract base class and shared HTTP plumbing for LLM providers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator

import httpx

from kele.llm.errors import DecodeError, TransportError, classify_api_error
from kele.llm.types import ChatOptions, ChatResponse, Message, StreamEvent

logger = logging.getLogger(__name__)


class Provider(ABC):
    """
    A provider (wire adapter) encapsulates one vendor's chat protocol.

    Implementations must support:
      - Non-streaming completions (``chat``).
      - Streaming completions (``chat_stream``).  The coroutine raises a
        classified ``LLMError`` if the request cannot be opened; once it has
        returned an iterator, failures arrive as a terminal ``error`` event.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry name (e.g. ``"openai"``)."""
        ...

    @property
    def supports_tools(self) -> bool:
        return True

    @abstractmethod
    async def chat(
        self,
        messages: list[Message],
        tools: list[dict] | None,
        options: ChatOptions,
    ) -> ChatResponse:
        ...

    @abstractmethod
    async def chat_stream(
        self,
        messages: list[Message],
        tools: list[dict] | None,
        options: ChatOptions,
    ) -> AsyncIterator[StreamEvent]:
        ...


class HTTPProvider(Provider):
    """
    Base for providers that speak JSON over HTTP with ``httpx``.

    Parameters
    ----------
    timeout:
        Request timeout in seconds.
    transport:
        Optional ``httpx`` transport, used by tests to stub the vendor.
    """

    def __init__(
        self,
        timeout: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout or self._timeout, transport=self._transport
        )

    async def _post_json(self, url: str, body: dict, headers: dict[str, str]) -> dict:
        """POST *body* and return the decoded JSON response."""
        async with self._client() as client:
            try:
                resp = await client.post(url, json=body, headers=headers)
            except httpx.TransportError as exc:
                raise TransportError(f"network error: {exc}") from exc

            if not resp.is_success:
                raise classify_api_error(resp.status_code, resp.text)

            try:
                return resp.json()
            except ValueError as exc:
                raise DecodeError(f"failed to decode response: {exc}") from exc

    async def _open_stream(
        self, url: str, body: dict, headers: dict[str, str]
    ) -> tuple[httpx.AsyncClient, httpx.Response]:
        """
        Send a streaming POST and return the open client and response.

        The caller owns both and must close them.  Non-2xx responses are
        drained, closed and raised as classified errors.
        """
        client = self._client()
        try:
            request = client.build_request("POST", url, json=body, headers=headers)
            response = await client.send(request, stream=True)
        except httpx.TransportError as exc:
            await client.aclose()
            raise TransportError(f"network error: {exc}") from exc

        if not response.is_success:
            try:
                await response.aread()
            except httpx.TransportError as exc:
                raise TransportError(f"network error: {exc}") from exc
            finally:
                await response.aclose()
                await client.aclose()
            raise classify_api_error(response.status_code, response.text)

        return client, response


async def iter_data_lines(response: httpx.Response) -> AsyncIterator[str]:
    """
    Yield the payload of every ``data:`` line of a server-sent event stream.

    Blank lines, comments and ``event:`` lines are skipped.
    """
    async for line in response.aiter_lines():
        line = line.strip()
        if not line or not line.startswith("data:"):
            continue
        yield line[len("data:"):].strip()
