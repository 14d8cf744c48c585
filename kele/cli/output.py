"""Output formatting utilities for the CLI."""

from __future__ import annotations

import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from kele.agent.brain import AgentEvent, AgentEventType
from kele.tools.base import Tool
from kele.types import AgentInfo

STATUS_COLORS = {
    "pending": "dim",
    "running": "yellow",
    "completed": "green",
    "failed": "red",
}

_TOOL_PREVIEW = 300


class OutputFormatter:
    """Rich-based output formatting for the kele CLI."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def format_tool_list(self, tools: list[Tool]) -> None:
        if not tools:
            self.console.print("[dim]No tools registered.[/dim]")
            return

        table = Table(title="Tools")
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Description")
        for t in tools:
            table.add_row(t.name, t.description)
        self.console.print(table)

    def format_agent_list(self, agents: list[AgentInfo]) -> None:
        if not agents:
            self.console.print("[dim]No sub-agents.[/dim]")
            return

        table = Table(title="Sub-agents")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Status", no_wrap=True)
        table.add_column("Elapsed", no_wrap=True, justify="right")
        table.add_column("Task")
        for a in agents:
            elapsed = f"{a.elapsed:.1f}s" if a.elapsed is not None else "-"
            status = Text(a.status, style=STATUS_COLORS.get(a.status, "white"))
            table.add_row(a.id, status, elapsed, a.task)
        self.console.print(table)

    def format_providers(self, providers: list[str], active: str) -> None:
        for name in providers:
            marker = "[green]*[/green]" if name == active else " "
            self.console.print(f"  {marker} {name}")

    def format_config(self, config: dict) -> None:
        yaml_str = yaml.safe_dump(config, sort_keys=False)
        self.console.print(Syntax(yaml_str, "yaml", theme="monokai"))

    def format_event(self, event: AgentEvent) -> None:
        """Render one chat stream event incrementally."""
        if event.type == AgentEventType.CONTENT:
            self.console.print(event.content, end="", markup=False, highlight=False)
        elif event.type == AgentEventType.REASONING:
            self.console.print(
                Text(event.content, style="dim italic"), end="", highlight=False
            )
        elif event.type == AgentEventType.TOOL_START and event.tool:
            self.console.print(f"\n[bold blue]> {event.tool.name}[/bold blue]")
        elif event.type == AgentEventType.TOOL_RESULT and event.tool:
            preview = event.tool.result
            if len(preview) > _TOOL_PREVIEW:
                preview = preview[:_TOOL_PREVIEW] + "..."
            self.console.print(Text(preview, style="dim"))
        elif event.type == AgentEventType.ERROR:
            self.console.print(f"\n[red]Error:[/red] {event.error}")
