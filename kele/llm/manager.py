"""
Provider manager -- owns the registered adapters and the active model.

The manager is the only entry point the rest of kele uses for LLM calls.
It:

  1. Routes a model name to a registered provider.
  2. Applies per-session options (temperature, max tokens) at call time.
  3. Wraps ``chat`` / ``chat_stream`` in a bounded retry policy.

The (model, provider) pair is read and written under a lock, but the lock
is never held across a network call: callers snapshot the pair and then
talk to the provider.  Each session owns its own manager instance.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import aclosing
from typing import TYPE_CHECKING, AsyncIterator, Awaitable, Callable

from kele.llm.errors import (
    ConfigurationError,
    LLMError,
    RetriesExhaustedError,
    is_retryable,
)
from kele.llm.providers.base import Provider
from kele.llm.types import ChatOptions, ChatResponse, Message, StreamEvent

if TYPE_CHECKING:
    from kele.config import LLMConfig

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
BACKOFF_BASE = 1.0
COMPLETE_TEMPERATURE = 0.3

_BUILTIN_PROVIDERS = ("openai", "anthropic", "ollama")


class ProviderManager:
    """
    Routes chat requests to the provider that serves the active model.

    Parameters
    ----------
    model:
        Initial (and default) model name.
    small_model:
        Model for lightweight completions.  Empty means "use the main model".
    temperature, max_tokens:
        Session options applied to every ``chat`` / ``chat_stream`` call.
    complete_timeout:
        Upper bound in seconds for ``complete``.
    sleep:
        Coroutine used for retry backoff.  Tests inject a recorder.
    """

    def __init__(
        self,
        model: str = "gpt-4o",
        small_model: str = "",
        temperature: float = 0.7,
        max_tokens: int = 4096,
        complete_timeout: float = 8.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._providers: dict[str, Provider] = {}
        self._lock = threading.Lock()

        self._active: Provider | None = None
        self._active_name = ""  # set only while a provider is explicitly locked
        self._explicit = False
        self._model = model
        self._default_model = model
        self._small_model = small_model
        self._small_provider: Provider | None = None

        self.temperature = temperature
        self.max_tokens = max_tokens
        self.complete_timeout = complete_timeout
        self._sleep = sleep

    @classmethod
    def from_config(cls, cfg: LLMConfig, **kwargs) -> ProviderManager:
        """
        Build a manager with the built-in providers the config enables.

        OpenAI is registered when an OpenAI key is set, Anthropic when an
        Anthropic key is set; Ollama is always registered.  The first one
        registered becomes active, and the default model follows it when the
        configured model is still the stock OpenAI default.
        """
        from kele.llm.providers.anthropic import AnthropicProvider
        from kele.llm.providers.ollama import OllamaProvider
        from kele.llm.providers.openai_compat import OpenAICompatProvider

        mgr = cls(
            model=cfg.openai_model,
            small_model=cfg.small_model,
            temperature=cfg.temperature,
            max_tokens=cfg.max_tokens,
            complete_timeout=float(cfg.complete_timeout),
            **kwargs,
        )
        model = cfg.openai_model

        if cfg.openai_api_key:
            mgr.register_provider(
                "openai",
                OpenAICompatProvider(
                    name="openai",
                    api_base=cfg.openai_api_base,
                    api_key=cfg.openai_api_key,
                ),
            )

        if cfg.anthropic_api_key:
            mgr.register_provider(
                "anthropic",
                AnthropicProvider(
                    api_base=cfg.anthropic_api_base,
                    api_key=cfg.anthropic_api_key,
                ),
            )
            if not cfg.openai_api_key and model == "gpt-4o":
                model = "claude-sonnet-4-5-20250929"

        mgr.register_provider("ollama", OllamaProvider(host=cfg.ollama_host))
        if not cfg.openai_api_key and not cfg.anthropic_api_key and model == "gpt-4o":
            model = "llama3:8b"

        with mgr._lock:
            mgr._model = model
            mgr._default_model = model
            mgr._small_provider = mgr._resolve(mgr._small_model)
        return mgr

    # ------------------------------------------------------------------
    # Provider registry
    # ------------------------------------------------------------------

    def register_provider(self, name: str, provider: Provider) -> None:
        """Register *provider* under *name*.  The first one becomes active."""
        with self._lock:
            self._providers[name] = provider
            if self._active is None:
                self._active = provider

    def remove_provider(self, name: str) -> None:
        """
        Remove a registered provider.

        Raises ``KeyError`` for unknown names and ``ValueError`` when *name*
        is the explicitly locked active provider.
        """
        with self._lock:
            if name not in self._providers:
                raise KeyError(f"Unknown provider {name!r}")
            if self._explicit and self._active_name == name:
                raise ValueError(f"cannot remove the active provider: {name}")
            removed = self._providers.pop(name)
            if self._active is removed:
                self._active = next(iter(self._providers.values()), None)
            if self._small_provider is removed:
                self._small_provider = None

    def use_provider(self, name: str, model: str = "") -> None:
        """
        Switch to *name* and lock it.

        While locked, ``set_model`` changes only the model name.
        Raises ``KeyError`` if *name* has not been registered.
        """
        with self._lock:
            provider = self._providers.get(name)
            if provider is None:
                raise KeyError(
                    f"Unknown provider {name!r}. "
                    f"Registered: {list(self._providers)}"
                )
            self._active = provider
            self._active_name = name
            self._explicit = True
            if model:
                self._model = model

    @property
    def is_explicit_provider(self) -> bool:
        with self._lock:
            return self._explicit

    def list_providers(self) -> list[str]:
        with self._lock:
            return list(self._providers)

    @property
    def active_provider_name(self) -> str:
        with self._lock:
            if self._active_name:
                return self._active_name
            if self._active is not None:
                return self._active.name
            return "none"

    @property
    def active_supports_tools(self) -> bool:
        with self._lock:
            return self._active is not None and self._active.supports_tools

    # ------------------------------------------------------------------
    # Model state
    # ------------------------------------------------------------------

    @property
    def model(self) -> str:
        with self._lock:
            return self._model

    @property
    def default_model(self) -> str:
        with self._lock:
            return self._default_model

    def set_model(self, model: str) -> None:
        """Change the model; re-route the provider unless one is locked."""
        with self._lock:
            self._model = model
            if not self._explicit:
                self._active = self._resolve(model)

    def reset_model(self) -> None:
        """Return to the default model and drop any provider lock."""
        with self._lock:
            self._model = self._default_model
            self._explicit = False
            self._active_name = ""
            # Fall back to a built-in first so custom providers do not win
            # the "current active" branch of the routing table.
            for name in _BUILTIN_PROVIDERS:
                if name in self._providers:
                    self._active = self._providers[name]
                    break
            self._active = self._resolve(self._model)

    @property
    def small_model(self) -> str:
        with self._lock:
            return self._small_model or self._model

    def set_small_model(self, model: str) -> None:
        with self._lock:
            self._small_model = model
            self._small_provider = self._resolve(model)

    def _resolve(self, model: str) -> Provider | None:
        """Routing table; the caller must hold the lock."""
        if not model:
            return self._active
        lower = model.lower()

        if lower.startswith("claude") and "anthropic" in self._providers:
            return self._providers["anthropic"]

        if ":" in model and "ollama" in self._providers:
            return self._providers["ollama"]

        if lower.startswith(("gpt", "o1", "o3", "deepseek")) and "openai" in self._providers:
            return self._providers["openai"]

        if self._active is not None:
            return self._active

        return next(iter(self._providers.values()), None)

    def _snapshot(self) -> tuple[Provider, ChatOptions]:
        with self._lock:
            provider = self._active
            model = self._model
        if provider is None:
            raise ConfigurationError(
                "no LLM provider configured; set OPENAI_API_KEY or ANTHROPIC_API_KEY"
            )
        return provider, ChatOptions(
            model=model, temperature=self.temperature, max_tokens=self.max_tokens
        )

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def chat(
        self, messages: list[Message], tools: list[dict] | None = None
    ) -> ChatResponse:
        """Non-streaming chat with automatic retry."""
        provider, options = self._snapshot()
        return await self._with_retry(
            lambda: provider.chat(messages, tools, options), provider.name
        )

    async def chat_stream(
        self, messages: list[Message], tools: list[dict] | None = None
    ) -> AsyncIterator[StreamEvent]:
        """
        Streaming chat with automatic retry of the request.

        Retries cover opening the stream.  Every failure, including
        configuration errors and exhausted retries, is delivered as a single
        terminal ``error`` event.
        """
        try:
            provider, options = self._snapshot()
            stream = await self._with_retry(
                lambda: provider.chat_stream(messages, tools, options),
                provider.name,
            )
        except LLMError as exc:
            yield StreamEvent.failed(exc)
            return

        async with aclosing(stream):
            async for event in stream:
                yield event
                if event.is_terminal:
                    return

    async def complete(self, messages: list[Message], max_tokens: int) -> str:
        """
        Quick completion on the small model: no tools, no retries.

        Bounded by ``complete_timeout``; a timeout raises
        ``asyncio.TimeoutError``.
        """
        with self._lock:
            provider = self._small_provider
            model = self._small_model or self._model
            if provider is None:
                provider = self._active
                model = self._model
        if provider is None:
            raise ConfigurationError("no LLM provider available")

        options = ChatOptions(
            model=model, temperature=COMPLETE_TEMPERATURE, max_tokens=max_tokens
        )
        resp = await asyncio.wait_for(
            provider.chat(messages, None, options), timeout=self.complete_timeout
        )
        return resp.content.strip()

    async def _with_retry(self, call, provider_name: str):
        last_error: Exception | None = None
        for attempt in range(MAX_ATTEMPTS):
            try:
                return await call()
            except Exception as exc:
                if not is_retryable(exc):
                    raise
                last_error = exc
            delay = BACKOFF_BASE * (2 ** attempt)
            logger.warning(
                "LLM call to %s failed (attempt %d/%d), backing off %.0fs: %s",
                provider_name, attempt + 1, MAX_ATTEMPTS, delay, last_error,
            )
            await self._sleep(delay)
        raise RetriesExhaustedError(MAX_ATTEMPTS, last_error)
