"""
Sub-agent worker pool.

A worker runs its own copy of the tool-calling loop on one task, with an
isolated message list and a structured log instead of a user-visible
stream.  Workers never see the agent tools, so a sub-agent cannot spawn
further sub-agents.

Every worker task has a fault boundary: anything raised inside it ends the
worker in ``failed`` state and never reaches the pool or the parent loop.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from contextlib import aclosing
from datetime import datetime
from enum import Enum

from kele.agent.compress import DEFAULT_MAX_OUTPUT_SIZE, truncate
from kele.agent.errors import (
    ConcurrencyLimitError,
    PoolStoppedError,
    WorkerFailedError,
    WorkerNotFoundError,
    WorkerTimeoutError,
)
from kele.agent.execution import execute_tool
from kele.llm.errors import DecodeError
from kele.llm.manager import ProviderManager
from kele.llm.types import EventType, Message, StreamEvent, ToolCall
from kele.prompts.system import SUBAGENT_SECTION, build_system_prompt
from kele.types import AgentInfo, AgentLogEntry, Executor

logger = logging.getLogger(__name__)

AGENT_TOOL_BLACKLIST = frozenset({"spawn_agent", "agent_status", "agent_result"})

SHUTDOWN_POLL_INTERVAL = 0.1

_TASK_PREVIEW = 100
_RESULT_PREVIEW = 500
_LOG_PREVIEW = 200


class WorkerStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


def _tool_name(tool: dict) -> str:
    return (tool.get("function") or tool).get("name", "")


class Worker:
    """One sub-agent.  State is written by its own task, read by snapshots."""

    def __init__(
        self,
        worker_id: str,
        task: str,
        provider: ProviderManager,
        executor: Executor,
        *,
        max_tool_rounds: int = 20,
        max_output_size: int = DEFAULT_MAX_OUTPUT_SIZE,
    ) -> None:
        self.id = worker_id
        self.task = task
        self.status = WorkerStatus.PENDING
        self.result = ""
        self.error = ""
        self.start_time: datetime | None = None
        self.end_time: datetime | None = None
        self.done = asyncio.Event()

        self._provider = provider
        self._executor = executor
        self._max_tool_rounds = max_tool_rounds if max_tool_rounds > 0 else 20
        self._max_output_size = max_output_size
        self._log: list[AgentLogEntry] = []
        self._lock = threading.Lock()

    @property
    def finished(self) -> bool:
        return self.status in (WorkerStatus.COMPLETED, WorkerStatus.FAILED)

    async def run(self) -> None:
        try:
            await self._execute()
        except Exception as exc:
            logger.exception("Sub-agent %s crashed", self.id)
            self._append_log("error", str(exc))
            self._finish(WorkerStatus.FAILED, error=f"internal error: {exc}")
        finally:
            if not self.finished:
                self._finish(WorkerStatus.FAILED, error="cancelled")
            self.done.set()

    async def _execute(self) -> None:
        with self._lock:
            self.status = WorkerStatus.RUNNING
            self.start_time = datetime.now()
        self._append_log("info", f"sub-agent started, task: {self.task}")

        messages = [
            Message(role="system", content=self._system_prompt()),
            Message(role="user", content=self.task),
        ]
        tools = [
            t for t in self._executor.get_tools()
            if _tool_name(t) not in AGENT_TOOL_BLACKLIST
        ] or None

        final_content = ""
        for _ in range(self._max_tool_rounds):
            round_content = ""
            terminal: StreamEvent | None = None

            async with aclosing(self._provider.chat_stream(messages, tools)) as stream:
                async for event in stream:
                    if event.type == EventType.CONTENT:
                        round_content += event.content
                    elif event.is_terminal:
                        terminal = event
                        break

            if terminal is None:
                raise DecodeError("stream ended without a terminal event")

            if terminal.type == EventType.ERROR:
                message = str(terminal.error) if terminal.error else "unknown error"
                self._append_log("error", message)
                self._finish(WorkerStatus.FAILED, error=message)
                return

            if terminal.type == EventType.TOOL_CALLS and terminal.tool_calls:
                if round_content:
                    self._append_log("content", truncate(round_content, _LOG_PREVIEW))
                messages.append(
                    Message(
                        role="assistant",
                        content=round_content,
                        tool_calls=terminal.tool_calls,
                    )
                )
                for call in terminal.tool_calls:
                    self._append_log("tool_call", call.name)
                    result = await self._run_tool(call)
                    messages.append(
                        Message(role="tool", content=result, tool_call_id=call.id)
                    )
                    self._append_log(
                        "tool_result",
                        f"{call.name}: {truncate(result, _LOG_PREVIEW)}",
                    )
                continue

            if round_content:
                final_content = round_content
                self._append_log("content", truncate(round_content, _RESULT_PREVIEW))
            self._finish(WorkerStatus.COMPLETED, result=final_content)
            return

        self._append_log("info", "reached max tool rounds")
        self._finish(WorkerStatus.COMPLETED, result=final_content)

    async def _run_tool(self, call: ToolCall) -> str:
        if call.name in AGENT_TOOL_BLACKLIST:
            return f"Error: tool {call.name} is not available to sub-agents"
        return await execute_tool(self._executor, call, self._max_output_size)

    def _system_prompt(self) -> str:
        names = [
            n for n in self._executor.list_tools() if n not in AGENT_TOOL_BLACKLIST
        ]
        return build_system_prompt(
            tool_names=names,
            work_dir=self._executor.get_work_dir(),
            extra_sections=[SUBAGENT_SECTION],
        )

    def _finish(self, status: WorkerStatus, result: str = "", error: str = "") -> None:
        with self._lock:
            self.status = status
            self.result = result
            self.error = error
            self.end_time = datetime.now()
            elapsed = (self.end_time - (self.start_time or self.end_time)).total_seconds()
            self._log.append(
                AgentLogEntry(
                    time=self.end_time,
                    type="done",
                    content=f"status: {status.value}, elapsed: {elapsed:.3f}s",
                )
            )
        logger.info("Sub-agent %s %s", self.id, status.value)

    def _append_log(self, type: str, content: str) -> None:
        with self._lock:
            self._log.append(AgentLogEntry(time=datetime.now(), type=type, content=content))

    def recent_logs(self, n: int) -> list[AgentLogEntry]:
        with self._lock:
            if n <= 0 or n > len(self._log):
                n = len(self._log)
            return self._log[len(self._log) - n:]

    def info(self) -> AgentInfo:
        with self._lock:
            return AgentInfo(
                id=self.id,
                task=truncate(self.task, _TASK_PREVIEW),
                status=self.status.value,
                start_time=self.start_time,
                end_time=self.end_time,
                log_count=len(self._log),
                result=truncate(self.result, _RESULT_PREVIEW),
                error=self.error,
            )


class WorkerPool:
    """
    Runs sub-agents as asyncio tasks and implements ``AgentSpawner``.

    Parameters
    ----------
    provider : ProviderManager
        Shared by all workers of this pool.
    executor : Executor
        Tool catalog; agent tools are filtered out for workers.
    max_concurrent : int
        Max workers running at the same time.
    max_tool_rounds : int
        Round budget of each worker.
    max_output_size : int
        Hard cap applied to tool output before compression.
    """

    def __init__(
        self,
        provider: ProviderManager,
        executor: Executor,
        *,
        max_concurrent: int = 5,
        max_tool_rounds: int = 20,
        max_output_size: int = DEFAULT_MAX_OUTPUT_SIZE,
    ) -> None:
        self._provider = provider
        self._executor = executor
        self.max_concurrent = max_concurrent
        self._max_tool_rounds = max_tool_rounds
        self._max_output_size = max_output_size

        self._workers: dict[str, Worker] = {}
        self._tasks: set[asyncio.Task] = set()
        self._counter = itertools.count(1)
        self._running = 0
        self._stopped = False
        self._lock = threading.Lock()

    @property
    def running(self) -> int:
        with self._lock:
            return self._running

    def spawn(self, task: str) -> str:
        """
        Start a worker on *task* and return its id.

        Must be called from a running event loop.  Raises
        ``PoolStoppedError`` after ``shutdown`` and ``ConcurrencyLimitError``
        when ``max_concurrent`` workers are already running.
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            if self._stopped:
                raise PoolStoppedError()
            if self._running >= self.max_concurrent:
                raise ConcurrencyLimitError(self.max_concurrent)
            worker_id = f"w{next(self._counter)}"
            worker = Worker(
                worker_id,
                task,
                self._provider,
                self._executor,
                max_tool_rounds=self._max_tool_rounds,
                max_output_size=self._max_output_size,
            )
            self._workers[worker_id] = worker
            self._running += 1

        t = loop.create_task(self._run(worker), name=f"kele-agent-{worker_id}")
        self._tasks.add(t)
        t.add_done_callback(self._tasks.discard)
        logger.info("Spawned sub-agent %s: %s", worker_id, truncate(task, _TASK_PREVIEW))
        return worker_id

    async def _run(self, worker: Worker) -> None:
        try:
            await worker.run()
        finally:
            with self._lock:
                self._running -= 1

    def _get(self, worker_id: str) -> Worker:
        with self._lock:
            worker = self._workers.get(worker_id)
        if worker is None:
            raise WorkerNotFoundError(worker_id)
        return worker

    def status(self, worker_id: str) -> AgentInfo:
        return self._get(worker_id).info()

    def list_all(self) -> list[AgentInfo]:
        with self._lock:
            workers = list(self._workers.values())
        return [w.info() for w in workers]

    async def result(self, worker_id: str, timeout: float) -> str:
        """Wait up to *timeout* seconds for the worker, then return its result."""
        worker = self._get(worker_id)
        try:
            await asyncio.wait_for(worker.done.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            raise WorkerTimeoutError(worker_id, timeout) from None

        info = worker.info()
        if info.status == WorkerStatus.FAILED.value:
            raise WorkerFailedError(worker_id, info.error)
        return worker.result

    def recent_logs(self, worker_id: str, n: int) -> list[AgentLogEntry]:
        return self._get(worker_id).recent_logs(n)

    async def shutdown(self, timeout: float) -> None:
        """
        Stop accepting spawns and wait for running workers.

        Returns once no worker is running or *timeout* seconds have passed;
        workers still running at the deadline are left alone.
        """
        with self._lock:
            self._stopped = True

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if self.running == 0:
                return
            await asyncio.sleep(SHUTDOWN_POLL_INTERVAL)
        if self.running:
            logger.warning(
                "Shutdown timed out with %d sub-agent(s) still running", self.running
            )
