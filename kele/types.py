"""
Shared types and the collaborator interfaces the agent core depends on.

``Executor`` and ``MemoryStore`` are implemented outside the core (tool
registry, long-term memory); ``AgentSpawner`` is implemented by the worker
pool and consumed by the sub-agent tools.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable

from kele.llm.types import ToolCall


@runtime_checkable
class Executor(Protocol):
    def get_tools(self) -> list[dict]: ...

    def list_tools(self) -> list[str]: ...

    async def execute(self, call: ToolCall) -> str: ...

    def get_work_dir(self) -> str: ...


@runtime_checkable
class MemoryStore(Protocol):
    async def save_message(self, role: str, content: str) -> None: ...

    async def get_recent_memories(self, n: int) -> list[str]: ...


@dataclass
class AgentLogEntry:
    time: datetime
    type: str  # info, content, tool_call, tool_result, error, done
    content: str


@dataclass
class AgentInfo:
    """Point-in-time snapshot of a sub-agent."""

    id: str
    task: str
    status: str
    start_time: datetime | None = None
    end_time: datetime | None = None
    log_count: int = 0
    result: str = ""
    error: str = ""

    @property
    def elapsed(self) -> float | None:
        """Seconds spent running so far (or in total once finished)."""
        if self.start_time is None:
            return None
        end = self.end_time or datetime.now()
        return (end - self.start_time).total_seconds()


class AgentSpawner(Protocol):
    def spawn(self, task: str) -> str: ...

    def status(self, id: str) -> AgentInfo: ...

    def list_all(self) -> list[AgentInfo]: ...

    async def result(self, id: str, timeout: float) -> str: ...

    def recent_logs(self, id: str, n: int) -> list[AgentLogEntry]: ...
