"""Mock tool implementations for testing."""

import asyncio

from kele.tools.base import Tool, ToolError


class EchoTool(Tool):
    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Echoes the input message back."

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "message": {"type": "string", "description": "Message to echo"},
            },
            "required": ["message"],
        }

    async def execute(self, **kwargs) -> str:
        return kwargs.get("message", "")


class BashTool(Tool):
    """Pretends to run a command and records what it was asked to run."""

    def __init__(self, output: str = "file1\nfile2"):
        self.output = output
        self.commands: list[str] = []

    @property
    def name(self) -> str:
        return "bash"

    @property
    def description(self) -> str:
        return "Runs a shell command."

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "command": {"type": "string", "description": "Command to run"},
            },
            "required": ["command"],
        }

    async def execute(self, **kwargs) -> str:
        self.commands.append(kwargs["command"])
        return self.output


class FailingTool(Tool):
    @property
    def name(self) -> str:
        return "failing"

    @property
    def description(self) -> str:
        return "Always fails."

    @property
    def parameters(self) -> dict:
        return {"type": "object", "properties": {}}

    async def execute(self, **kwargs) -> str:
        raise RuntimeError("disk on fire")


class RefusingTool(Tool):
    @property
    def name(self) -> str:
        return "refusing"

    @property
    def description(self) -> str:
        return "Raises a ToolError."

    @property
    def parameters(self) -> dict:
        return {"type": "object", "properties": {}}

    async def execute(self, **kwargs) -> str:
        raise ToolError("permission denied")


class SlowTool(Tool):
    def __init__(self, delay: float = 10.0):
        self.delay = delay

    @property
    def name(self) -> str:
        return "slow"

    @property
    def description(self) -> str:
        return "Sleeps before answering."

    @property
    def parameters(self) -> dict:
        return {"type": "object", "properties": {}}

    async def execute(self, **kwargs) -> str:
        await asyncio.sleep(self.delay)
        return "finally"


class BigOutputTool(Tool):
    def __init__(self, size: int = 10_000):
        self.size = size

    @property
    def name(self) -> str:
        return "big"

    @property
    def description(self) -> str:
        return "Returns a large output."

    @property
    def parameters(self) -> dict:
        return {"type": "object", "properties": {}}

    async def execute(self, **kwargs) -> str:
        return "H" * 100 + "x" * (self.size - 200) + "T" * 100


class PluginTool(Tool):
    """Plugin-style tool that takes the working directory."""

    def __init__(self, work_dir: str = ""):
        self.work_dir = work_dir

    @property
    def name(self) -> str:
        return "plugin_tool"

    @property
    def description(self) -> str:
        return "Loaded from an entry point."

    @property
    def parameters(self) -> dict:
        return {"type": "object", "properties": {}}

    async def execute(self, **kwargs) -> str:
        return self.work_dir
