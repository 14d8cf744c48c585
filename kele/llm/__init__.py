"""LLM subsystem -- wire adapters, provider routing and retries."""

from kele.llm.errors import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    DecodeError,
    LLMError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    RetriesExhaustedError,
    ServiceUnavailableError,
    TransportError,
)
from kele.llm.manager import ProviderManager
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

__all__ = [
    "APIError",
    "AuthenticationError",
    "ChatOptions",
    "ChatResponse",
    "ConfigurationError",
    "DecodeError",
    "EventType",
    "LLMError",
    "Message",
    "NotFoundError",
    "PermissionDeniedError",
    "ProviderManager",
    "RateLimitError",
    "RetriesExhaustedError",
    "ServiceUnavailableError",
    "StreamEvent",
    "ToolCall",
    "ToolCallAssembler",
    "TransportError",
    "Usage",
]
