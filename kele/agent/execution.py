"""Single tool-call execution shared by the brain and the workers."""

from __future__ import annotations

import logging

from kele.agent.compress import compress_tool_output
from kele.llm.types import ToolCall
from kele.types import Executor

logger = logging.getLogger(__name__)


async def execute_tool(
    executor: Executor, call: ToolCall, max_output_size: int
) -> str:
    """
    Run *call* through *executor* and return the compressed result text.

    A failing tool does not abort the round: the failure is turned into an
    ``"Error: <message>"`` result so the model can see it and react.
    """
    try:
        result = await executor.execute(call)
    except Exception as exc:
        logger.warning("Tool %s (%s) failed: %s", call.name, call.id, exc)
        result = f"Error: {exc}"
    return compress_tool_output(result, max_output_size)
