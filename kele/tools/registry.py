from __future__ import annotations

import asyncio
import inspect
import json
import logging
import os
import time
from importlib.metadata import entry_points

from kele.llm.types import ToolCall
from kele.tools.base import Tool, ToolError
from kele.tools.validation import ToolValidator

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Tool catalog and executor used by the brain and the worker pool.

    Parameters
    ----------
    work_dir : str, optional
        Working directory reported to the model; defaults to the cwd.
    tool_timeout : float
        Max seconds for a single tool execution, unless the tool sets
        its own ``execution_timeout``.
    """

    def __init__(self, work_dir: str | None = None, tool_timeout: float = 60.0):
        self._tools: dict[str, Tool] = {}
        self._work_dir = work_dir or os.getcwd()
        self.tool_timeout = tool_timeout

    def register(self, tool: Tool, *, overwrite: bool = False) -> None:
        if tool.name in self._tools and not overwrite:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def require(self, name: str) -> Tool:
        t = self.get(name)
        if not t:
            raise KeyError(name)
        return t

    def list(self) -> list[Tool]:
        return sorted(self._tools.values(), key=lambda t: t.name)

    # ------------------------------------------------------------------
    # Executor interface
    # ------------------------------------------------------------------

    def get_tools(self) -> list[dict]:
        return [t.to_openai_schema() for t in self.list()]

    def list_tools(self) -> list[str]:
        return [t.name for t in self.list()]

    def get_work_dir(self) -> str:
        return self._work_dir

    async def execute(self, call: ToolCall) -> str:
        """
        Decode, validate and run one tool call.

        Raises ``ToolError`` for unknown tools, bad arguments, timeouts and
        any exception raised by the tool itself.
        """
        tool = self.get(call.name)
        if tool is None:
            raise ToolError(f"unknown tool: {call.name}")

        try:
            args = json.loads(call.arguments) if call.arguments.strip() else {}
        except json.JSONDecodeError as e:
            raise ToolError(f"failed to parse arguments: {e}") from e

        valid, error_msg = ToolValidator.validate(tool, args)
        if not valid:
            raise ToolError(f"invalid arguments: {error_msg}")

        timeout = tool.execution_timeout or self.tool_timeout
        start = time.monotonic()
        try:
            result = await asyncio.wait_for(tool.execute(**args), timeout=timeout)
        except asyncio.TimeoutError:
            raise ToolError(f"{call.name} timed out after {timeout:g}s") from None
        except ToolError:
            raise
        except Exception as e:
            raise ToolError(str(e)) from e
        finally:
            logger.debug(
                "Tool %s ran in %dms", call.name, (time.monotonic() - start) * 1000
            )
        return result

    # ------------------------------------------------------------------
    # Plugins
    # ------------------------------------------------------------------

    def load_plugins(
        self,
        *,
        enabled: bool,
        group: str = "kele.tools",
        allow_distributions: set[str] | None = None,
        allow_tools: set[str] | None = None,
    ) -> int:
        """Load tools from entry points.

        If a tool class's __init__ accepts a ``work_dir`` parameter, the
        registry's working directory is injected.  Other tools are
        constructed with no arguments.
        """
        if not enabled:
            return 0
        loaded = 0
        for ep in entry_points(group=group):
            dist = getattr(ep, "dist", None)
            dist_name = getattr(dist, "name", None)
            if allow_distributions and dist_name and dist_name not in allow_distributions:
                continue
            if allow_tools and ep.name not in allow_tools:
                continue
            tool_cls = ep.load()
            kwargs: dict = {}
            if "work_dir" in inspect.signature(tool_cls).parameters:
                kwargs["work_dir"] = self._work_dir
            self.register(tool_cls(**kwargs))
            logger.info("Loaded tool plugin %s from %s", ep.name, dist_name or "?")
            loaded += 1
        return loaded
