"""Tool catalog, execution and the sub-agent tool surface."""

from kele.tools.agent_tools import (
    AgentResultTool,
    AgentStatusTool,
    SpawnAgentTool,
    agent_tools,
)
from kele.tools.base import Tool, ToolError
from kele.tools.registry import ToolRegistry
from kele.tools.validation import ToolValidator

__all__ = [
    "AgentResultTool",
    "AgentStatusTool",
    "SpawnAgentTool",
    "Tool",
    "ToolError",
    "ToolRegistry",
    "ToolValidator",
    "agent_tools",
]
