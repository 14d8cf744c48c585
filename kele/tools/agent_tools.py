"""
Tools that let the model delegate work to sub-agents.

They talk to an ``AgentSpawner`` (the worker pool) and are filtered out of
the sub-agents' own catalog.
"""

from __future__ import annotations

from datetime import datetime

from kele.agent.compress import truncate
from kele.tools.base import Tool, ToolError
from kele.types import AgentInfo, AgentSpawner

DEFAULT_RESULT_TIMEOUT = 300.0

_STATUS_LOG_LINES = 10
_RESULT_TIMEOUT_MARGIN = 5.0


def _elapsed(info: AgentInfo) -> str:
    seconds = info.elapsed
    if seconds is None:
        return ""
    if info.end_time is None:
        return f"{round(seconds)}s"
    return f"{seconds:.3f}s"


def _clock(t: datetime) -> str:
    return t.strftime("%H:%M:%S")


class SpawnAgentTool(Tool):
    def __init__(self, spawner: AgentSpawner):
        self._spawner = spawner

    @property
    def name(self) -> str:
        return "spawn_agent"

    @property
    def description(self) -> str:
        return (
            "Start a sub-agent that works on a task in the background. The "
            "sub-agent has the same tools and runs tool calls until it is done. "
            "Use it to split a large job into parallel sub-tasks."
        )

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "task": {
                    "type": "string",
                    "description": "Specific task description with all the context the sub-agent needs",
                },
            },
            "required": ["task"],
        }

    async def execute(self, **kwargs) -> str:
        task = kwargs.get("task", "")
        if not task:
            raise ToolError("missing task argument")
        agent_id = self._spawner.spawn(task)
        return (
            f"Sub-agent started\nID: {agent_id}\nTask: {task}\n\n"
            "Use agent_status to check progress and agent_result to get the result"
        )


class AgentStatusTool(Tool):
    def __init__(self, spawner: AgentSpawner):
        self._spawner = spawner

    @property
    def name(self) -> str:
        return "agent_status"

    @property
    def description(self) -> str:
        return (
            "Show a sub-agent's status and recent log. Without an id, list all "
            "sub-agents."
        )

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "id": {
                    "type": "string",
                    "description": "Sub-agent ID (optional, lists all when omitted)",
                },
            },
        }

    async def execute(self, **kwargs) -> str:
        agent_id = kwargs.get("id", "")
        if not agent_id:
            return self._list_all()

        info = self._spawner.status(agent_id)
        lines = [
            f"Agent {info.id}",
            f"Status: {info.status}",
            f"Task: {info.task}",
        ]
        if info.start_time:
            lines.append(f"Started: {_clock(info.start_time)}")
        if info.end_time:
            lines.append(f"Finished: {_clock(info.end_time)}")
            lines.append(f"Elapsed: {_elapsed(info)}")
        if info.error:
            lines.append(f"Error: {info.error}")

        logs = self._spawner.recent_logs(agent_id, _STATUS_LOG_LINES)
        if logs:
            lines.append("")
            lines.append("Recent log:")
            for entry in logs:
                lines.append(
                    f"  [{_clock(entry.time)}] {entry.type}: {truncate(entry.content, 100)}"
                )
        return "\n".join(lines) + "\n"

    def _list_all(self) -> str:
        agents = self._spawner.list_all()
        if not agents:
            return "No sub-agents"
        lines = [f"Sub-agents ({len(agents)})", ""]
        for info in agents:
            lines.append(
                f"  {info.id}  [{info.status}]  {_elapsed(info)}  {truncate(info.task, 60)}"
            )
        return "\n".join(lines) + "\n"


class AgentResultTool(Tool):
    """
    Blocks until the sub-agent finishes.

    Parameters
    ----------
    spawner : AgentSpawner
        Worker pool.
    timeout : float
        Seconds to wait before giving up.
    """

    def __init__(self, spawner: AgentSpawner, timeout: float = DEFAULT_RESULT_TIMEOUT):
        self._spawner = spawner
        self.timeout = timeout

    @property
    def execution_timeout(self) -> float:
        # The spawner enforces the wait; the registry only catches a hang.
        return self.timeout + _RESULT_TIMEOUT_MARGIN

    @property
    def name(self) -> str:
        return "agent_result"

    @property
    def description(self) -> str:
        return (
            "Wait for a sub-agent to finish and return its result. Blocks until "
            f"the agent is done or {self.timeout:g} seconds have passed."
        )

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "Sub-agent ID"},
            },
            "required": ["id"],
        }

    async def execute(self, **kwargs) -> str:
        agent_id = kwargs.get("id", "")
        if not agent_id:
            raise ToolError("missing id argument")
        result = await self._spawner.result(agent_id, self.timeout)
        if not result:
            return f"Agent {agent_id} finished without output"
        return f"Agent {agent_id} result:\n\n{result}"


def agent_tools(
    spawner: AgentSpawner, result_timeout: float = DEFAULT_RESULT_TIMEOUT
) -> list[Tool]:
    return [
        SpawnAgentTool(spawner),
        AgentStatusTool(spawner),
        AgentResultTool(spawner, timeout=result_timeout),
    ]
