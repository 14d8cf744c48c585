"""Interactive chat session handler."""

from __future__ import annotations

import asyncio

from rich.console import Console

from kele.agent.brain import AgentEventType, Brain
from kele.agent.worker import WorkerPool
from kele.cli.output import OutputFormatter
from kele.tools.registry import ToolRegistry

HELP_TEXT = (
    "  [bold]Commands:[/bold]\n"
    "  /model [NAME|reset]      - Show, switch or reset the model\n"
    "  /provider NAME [MODEL]   - Lock a provider (optionally with a model)\n"
    "  /providers               - List registered providers\n"
    "  /tools                   - List available tools\n"
    "  /agents                  - List sub-agents\n"
    "  /clear                   - Clear the conversation history\n"
    "  /help                    - Show this help\n"
    "  /quit                    - Exit the chat\n"
)


class ChatHandler:
    """
    Manages the interactive chat loop.

    Handles streaming output and inline slash commands.
    """

    def __init__(
        self,
        brain: Brain,
        registry: ToolRegistry,
        pool: WorkerPool | None = None,
        console: Console | None = None,
    ) -> None:
        self.brain = brain
        self.registry = registry
        self.pool = pool
        self.console = console or Console()
        self.formatter = OutputFormatter(self.console)
        self._running = True

    async def handle_command(self, command: str) -> bool:
        """
        Handle inline commands. Returns True if the command was handled.
        """
        parts = command.strip().split()
        cmd = parts[0].lower()
        args = parts[1:]

        if cmd in ("/quit", "/exit"):
            self._running = False
            self.console.print("[dim]Goodbye.[/dim]")
            return True

        if cmd == "/model":
            if not args:
                info = self.brain.provider_info()
                self.console.print(
                    f"  Model: [bold]{info['model']}[/bold] "
                    f"(default {info['default_model']}, small {info['small_model']})\n"
                    f"  Provider: {info['provider']}"
                )
            elif args[0] == "reset":
                self.brain.reset_model()
                self.console.print(f"  Reset to [bold]{self.brain.model}[/bold]")
            else:
                self.brain.set_model(args[0])
                self.console.print(
                    f"  Switched to [bold]{args[0]}[/bold] ({self.brain.provider_name})"
                )
            return True

        if cmd == "/provider":
            if not args:
                self.console.print(f"  Active provider: {self.brain.provider_name}")
                return True
            try:
                self.brain.provider.use_provider(args[0], args[1] if len(args) > 1 else "")
                self.console.print(
                    f"  Using provider [bold]{args[0]}[/bold] with {self.brain.model}"
                )
            except KeyError as e:
                self.console.print(f"  [red]Error:[/red] {e}")
            return True

        if cmd == "/providers":
            self.formatter.format_providers(
                self.brain.list_providers(), self.brain.provider_name
            )
            return True

        if cmd == "/tools":
            self.formatter.format_tool_list(self.registry.list())
            return True

        if cmd == "/agents":
            if self.pool is None:
                self.console.print("[dim]Sub-agents are disabled.[/dim]")
            else:
                self.formatter.format_agent_list(self.pool.list_all())
            return True

        if cmd == "/clear":
            self.brain.clear_history()
            self.console.print("[dim]History cleared.[/dim]")
            return True

        if cmd == "/help":
            self.console.print(HELP_TEXT)
            return True

        return False

    async def handle_input(self, user_input: str) -> bool:
        """Run one exchange and stream it to the console.  False on error."""
        ok = True
        async for event in self.brain.chat_stream(user_input):
            self.formatter.format_event(event)
            if event.type == AgentEventType.ERROR:
                ok = False
        self.console.print()
        return ok

    async def run_loop(self) -> None:
        """Main interactive loop."""
        self.console.print(
            f"[bold]Kele[/bold] - {self.brain.model} via {self.brain.provider_name}\n"
            "[dim]Type /help for commands, /quit to exit.[/dim]\n"
        )

        loop = asyncio.get_running_loop()
        while self._running:
            try:
                user_input = await loop.run_in_executor(
                    None, lambda: input("you> ").strip()
                )
            except (EOFError, KeyboardInterrupt):
                self.console.print("\n[dim]Goodbye.[/dim]")
                break

            if not user_input:
                continue

            if user_input.startswith("/"):
                handled = await self.handle_command(user_input)
                if handled:
                    continue
                self.console.print(f"  [yellow]Unknown command:[/yellow] {user_input}")
                continue

            self.console.print("[dim]kele>[/dim] ", end="")
            await self.handle_input(user_input)
