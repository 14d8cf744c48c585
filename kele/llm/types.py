"""Core types for the LLM subsystem."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ToolCall:
    """
    A tool call requested by the model.

    *arguments* is the raw JSON-encoded argument string.  While a stream is
    still being assembled it may be incomplete; once the call is finalized it
    is whatever the model produced.
    """

    id: str
    name: str
    arguments: str = ""
    type: str = "function"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass
class Message:
    """A single message in a conversation."""

    role: str  # "user", "assistant", "system", "tool"
    content: str
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None

    def to_dict(self) -> dict:
        m: dict = {"role": self.role, "content": self.content}
        if self.tool_calls:
            m["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id:
            m["tool_call_id"] = self.tool_call_id
        return m


@dataclass
class ChatOptions:
    """Per-call request options.  Never persisted."""

    model: str
    temperature: float = 0.0
    max_tokens: int = 0


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class ChatResponse:
    """A complete, non-streamed assistant turn."""

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str = ""
    model: str = ""
    usage: Usage = field(default_factory=Usage)


class EventType:
    CONTENT = "content"
    REASONING = "reasoning"
    TOOL_CALLS = "tool_calls"
    DONE = "done"
    ERROR = "error"


TERMINAL_EVENTS = frozenset({EventType.TOOL_CALLS, EventType.DONE, EventType.ERROR})


@dataclass
class StreamEvent:
    """
    One event of a normalized streaming response.

    ``content`` and ``reasoning`` events may repeat; exactly one of
    ``tool_calls``, ``done`` or ``error`` closes the stream.
    """

    type: str
    content: str = ""
    tool_calls: list[ToolCall] | None = None
    error: Exception | None = None

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENTS

    @classmethod
    def failed(cls, error: Exception) -> StreamEvent:
        return cls(type=EventType.ERROR, error=error)
