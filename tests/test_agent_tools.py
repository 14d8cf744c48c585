"""Tests for spawn_agent, agent_status and agent_result."""

from __future__ import annotations

import asyncio

import pytest

from kele.agent.brain import AgentEventType, Brain
from kele.agent.errors import WorkerFailedError
from kele.agent.worker import WorkerPool
from kele.llm.errors import AuthenticationError
from kele.llm.types import ToolCall
from kele.tools.agent_tools import (
    AgentResultTool,
    AgentStatusTool,
    SpawnAgentTool,
    agent_tools,
)
from kele.tools.base import ToolError
from kele.tools.registry import ToolRegistry
from tests.mock_providers import (
    MockProvider,
    error_round,
    make_manager,
    text_round,
    tool_round,
)
from tests.mock_tools import BashTool


@pytest.fixture
def registry(tmp_path):
    reg = ToolRegistry(work_dir=str(tmp_path), tool_timeout=5.0)
    reg.register(BashTool())
    return reg


def make_pool(rounds, registry, gate=None) -> WorkerPool:
    return WorkerPool(make_manager(MockProvider(rounds=rounds, gate=gate)), registry)


class TestSpawnAgentTool:
    async def test_spawn(self, registry):
        pool = make_pool([text_round("ok")], registry)
        out = await SpawnAgentTool(pool).execute(task="count files")
        assert out.startswith("Sub-agent started\nID: w1\nTask: count files\n")
        assert "agent_result" in out
        await pool.shutdown(timeout=2)

    async def test_missing_task(self, registry):
        pool = make_pool([], registry)
        with pytest.raises(ToolError, match="missing task"):
            await SpawnAgentTool(pool).execute()

    def test_schema(self, registry):
        schema = SpawnAgentTool(make_pool([], registry)).to_openai_schema()
        assert schema["function"]["name"] == "spawn_agent"
        assert schema["function"]["parameters"]["required"] == ["task"]


class TestAgentStatusTool:
    async def test_no_agents(self, registry):
        pool = make_pool([], registry)
        assert await AgentStatusTool(pool).execute() == "No sub-agents"

    async def test_list_all(self, registry):
        pool = make_pool([text_round("a"), text_round("b")], registry)
        pool.spawn("first task")
        pool.spawn("second task")
        await pool.shutdown(timeout=2)

        out = await AgentStatusTool(pool).execute()
        assert out.startswith("Sub-agents (2)\n")
        assert "  w1  [completed]" in out
        assert "second task" in out

    async def test_single_agent_detail(self, registry):
        pool = make_pool([tool_round("bash", {"command": "ls"}), text_round("done")], registry)
        wid = pool.spawn("list things")
        await pool.result(wid, timeout=2)

        out = await AgentStatusTool(pool).execute(id=wid)
        lines = out.splitlines()
        assert lines[:3] == ["Agent w1", "Status: completed", "Task: list things"]
        assert any(line.startswith("Started: ") for line in lines)
        assert any(line.startswith("Elapsed: ") for line in lines)
        assert "Recent log:" in lines
        assert any("tool_call: bash" in line for line in lines)

    async def test_failed_agent_shows_error(self, registry):
        pool = make_pool([error_round(AuthenticationError("bad key", 401))], registry)
        wid = pool.spawn("x")
        with pytest.raises(WorkerFailedError):
            await pool.result(wid, timeout=2)

        out = await AgentStatusTool(pool).execute(id=wid)
        assert "Status: failed" in out
        assert "Error: bad key" in out


class TestAgentResultTool:
    async def test_result(self, registry):
        pool = make_pool([text_round("found 3 files")], registry)
        wid = pool.spawn("count")
        out = await AgentResultTool(pool, timeout=2).execute(id=wid)
        assert out == "Agent w1 result:\n\nfound 3 files"

    async def test_empty_result(self, registry):
        pool = make_pool([text_round("")], registry)
        wid = pool.spawn("quiet")
        out = await AgentResultTool(pool, timeout=2).execute(id=wid)
        assert out == "Agent w1 finished without output"

    async def test_missing_id(self, registry):
        with pytest.raises(ToolError, match="missing id"):
            await AgentResultTool(make_pool([], registry)).execute()

    def test_description_mentions_timeout(self, registry):
        tool = AgentResultTool(make_pool([], registry), timeout=45)
        assert "45 seconds" in tool.description

    def test_agent_tools_factory(self, registry):
        tools = agent_tools(make_pool([], registry), result_timeout=12)
        assert [t.name for t in tools] == ["spawn_agent", "agent_status", "agent_result"]
        assert tools[2].timeout == 12


class TestDelegation:
    async def test_brain_delegates_to_sub_agent(self, registry):
        worker_provider = MockProvider(rounds=[text_round("found 3 files")])
        pool = WorkerPool(make_manager(worker_provider), registry)
        for tool in agent_tools(pool, result_timeout=2):
            registry.register(tool)

        brain_provider = MockProvider(rounds=[
            tool_round("spawn_agent", {"task": "count files"}, call_id="c1"),
            tool_round("agent_result", {"id": "w1"}, call_id="c2"),
            text_round("There are 3 files"),
        ])
        brain = Brain(make_manager(brain_provider), registry)

        events = [e async for e in brain.chat_stream("how many files?")]
        results = [e.tool.result for e in events if e.type == AgentEventType.TOOL_RESULT]

        assert results[0].startswith("Sub-agent started\nID: w1")
        assert results[1] == "Agent w1 result:\n\nfound 3 files"
        assert events[-1].type == "done"
        names = [t["function"]["name"] for t in worker_provider.last_tools]
        assert "spawn_agent" not in names
        assert "spawn_agent" in [t["function"]["name"] for t in brain_provider.last_tools]

    async def test_failed_sub_agent_result_text(self, registry):
        pool = make_pool([error_round(AuthenticationError("bad key", 401))], registry)
        for tool in agent_tools(pool, result_timeout=2):
            registry.register(tool)

        brain_provider = MockProvider(rounds=[
            tool_round("spawn_agent", {"task": "x"}, call_id="c1"),
            tool_round("agent_result", {"id": "w1"}, call_id="c2"),
            text_round("it failed"),
        ])
        brain = Brain(make_manager(brain_provider), registry)
        events = [e async for e in brain.chat_stream("go")]

        results = [e.tool.result for e in events if e.type == AgentEventType.TOOL_RESULT]
        assert results[1] == "Error: sub-agent w1 failed: bad key"


class SlowSpawner:
    """Answers ``result`` after a delay, like a worker finishing late."""

    def __init__(self, delay: float):
        self.delay = delay

    async def result(self, id: str, timeout: float) -> str:
        await asyncio.sleep(self.delay)
        return "finished"


class TestResultTimeout:
    async def test_result_wait_not_cut_by_registry_timeout(self, tmp_path):
        registry = ToolRegistry(work_dir=str(tmp_path), tool_timeout=0.1)
        registry.register(AgentResultTool(SlowSpawner(0.5), timeout=5.0))

        out = await registry.execute(
            ToolCall(id="c1", name="agent_result", arguments='{"id": "w1"}')
        )
        assert out == "Agent w1 result:\n\nfinished"

    def test_execution_timeout_covers_result_timeout(self, registry):
        tool = AgentResultTool(make_pool([], registry), timeout=300)
        assert tool.execution_timeout > 300

    def test_other_agent_tools_use_registry_timeout(self, registry):
        pool = make_pool([], registry)
        assert SpawnAgentTool(pool).execution_timeout is None
        assert AgentStatusTool(pool).execution_timeout is None
