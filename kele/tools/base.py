from __future__ import annotations

from abc import ABC, abstractmethod


class ToolError(Exception):
    """A tool call that could not be run or did not succeed."""


def normalize_schema(schema: dict) -> dict:
    s = dict(schema or {})
    s.setdefault("type", "object")
    s.setdefault("properties", {})
    return s


class Tool(ABC):
    # Seconds allowed per call; None uses the registry default.
    execution_timeout: float | None = None

    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def description(self) -> str: ...

    @property
    @abstractmethod
    def parameters(self) -> dict: ...

    @abstractmethod
    async def execute(self, **kwargs) -> str:
        """Run the tool.  Raise ``ToolError`` (or any exception) on failure."""

    def to_openai_schema(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": normalize_schema(self.parameters),
            },
        }
