"""Conversation loop and sub-agent workers."""

from kele.agent.brain import AgentEvent, AgentEventType, Brain, ToolExecution
from kele.agent.compress import compress_tool_output, truncate
from kele.agent.errors import (
    AgentError,
    ConcurrencyLimitError,
    PoolStoppedError,
    WorkerFailedError,
    WorkerNotFoundError,
    WorkerTimeoutError,
)
from kele.agent.worker import AGENT_TOOL_BLACKLIST, Worker, WorkerPool, WorkerStatus

__all__ = [
    "AGENT_TOOL_BLACKLIST",
    "AgentError",
    "AgentEvent",
    "AgentEventType",
    "Brain",
    "ConcurrencyLimitError",
    "PoolStoppedError",
    "ToolExecution",
    "Worker",
    "WorkerFailedError",
    "WorkerNotFoundError",
    "WorkerPool",
    "WorkerStatus",
    "WorkerTimeoutError",
    "compress_tool_output",
    "truncate",
]
