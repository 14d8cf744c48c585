"""
Main CLI application for kele.

Usage:
    kele chat [--model NAME] [--provider NAME]
    kele ask TEXT [--model NAME]
    kele models
    kele config show
    kele version
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from kele import __version__
from kele.config import DEFAULT_CONFIG_PATH, KeleConfig, LoggingConfig, load_config

app = typer.Typer(name="kele", help="Kele - terminal coding and ops assistant")
config_app = typer.Typer(help="Configuration management")

app.add_typer(config_app, name="config")

console = Console()

logger = logging.getLogger(__name__)

_AGENT_SHUTDOWN_TIMEOUT = 5.0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_config_path() -> Path | None:
    """Find config file in standard locations."""
    candidates = [
        Path.cwd() / "kele.yaml",
        Path.cwd() / "kele.yml",
        Path(DEFAULT_CONFIG_PATH).expanduser(),
    ]
    for p in candidates:
        if p.is_file():
            return p
    return None


def _configure_logging(cfg: LoggingConfig) -> None:
    level = getattr(logging, cfg.level.upper(), logging.WARNING)
    kwargs: dict = {
        "level": level,
        "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
    }
    if cfg.file:
        kwargs["filename"] = str(Path(cfg.file).expanduser())
    logging.basicConfig(**kwargs)


def _load(config: Path | None, model: str | None = None) -> KeleConfig:
    cfg = load_config(
        config or _get_config_path(),
        cli_overrides={"llm.openai_model": model},
    )
    _configure_logging(cfg.logging)
    return cfg


def _setup_stack(cfg: KeleConfig, provider: str | None = None):
    """Wire up provider manager, tools, worker pool and brain."""
    from kele.agent.brain import Brain
    from kele.agent.worker import WorkerPool
    from kele.llm.manager import ProviderManager
    from kele.tools.agent_tools import agent_tools
    from kele.tools.registry import ToolRegistry

    manager = ProviderManager.from_config(cfg.llm)
    if provider:
        manager.use_provider(provider)

    registry = ToolRegistry(tool_timeout=cfg.tools.timeout_seconds)
    try:
        registry.load_plugins(
            enabled=cfg.tools.plugins_enabled,
            allow_tools=set(cfg.tools.allow_tools) if cfg.tools.allow_tools else None,
        )
    except Exception:
        logger.exception("Failed to load tool plugins")

    pool = None
    if cfg.agents.max_concurrent > 0:
        # Separate manager: model switches in the chat do not reach workers.
        worker_manager = ProviderManager.from_config(cfg.llm)
        if provider:
            worker_manager.use_provider(provider)
        pool = WorkerPool(
            worker_manager,
            registry,
            max_concurrent=cfg.agents.max_concurrent,
            max_tool_rounds=cfg.agents.max_tool_rounds,
            max_output_size=cfg.tools.max_output_size,
        )
        for tool in agent_tools(pool, result_timeout=cfg.agents.result_timeout):
            registry.register(tool, overwrite=True)

    brain = Brain(
        manager,
        registry,
        max_tool_rounds=cfg.llm.max_tool_rounds,
        max_turns=cfg.llm.max_turns,
        max_output_size=cfg.tools.max_output_size,
    )
    return brain, registry, pool


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command()
def chat(
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model name"),
    provider: Optional[str] = typer.Option(None, help="Lock a provider by name"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file"),
):
    """Start an interactive chat session."""
    from kele.cli.chat import ChatHandler

    cfg = _load(config, model)

    async def _run():
        brain, registry, pool = _setup_stack(cfg, provider)
        handler = ChatHandler(brain, registry, pool=pool, console=console)
        try:
            await handler.run_loop()
        finally:
            if pool is not None:
                await pool.shutdown(_AGENT_SHUTDOWN_TIMEOUT)

    try:
        asyncio.run(_run())
    except KeyError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def ask(
    text: str = typer.Argument(..., help="Prompt to send"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model name"),
    provider: Optional[str] = typer.Option(None, help="Lock a provider by name"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file"),
):
    """Run a single exchange and print the streamed answer."""
    from kele.cli.chat import ChatHandler

    cfg = _load(config, model)

    async def _run() -> bool:
        brain, registry, pool = _setup_stack(cfg, provider)
        handler = ChatHandler(brain, registry, pool=pool, console=console)
        try:
            return await handler.handle_input(text)
        finally:
            if pool is not None:
                await pool.shutdown(_AGENT_SHUTDOWN_TIMEOUT)

    try:
        ok = asyncio.run(_run())
    except KeyError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    if not ok:
        raise typer.Exit(1)


@app.command()
def models(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file"),
):
    """List models installed in the local Ollama instance."""
    from kele.llm.errors import LLMError
    from kele.llm.providers.ollama import OllamaProvider

    cfg = _load(config)
    provider = OllamaProvider(host=cfg.llm.ollama_host)
    try:
        names = asyncio.run(provider.list_models())
    except LLMError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if not names:
        console.print("[dim]No local models found.[/dim]")
        return
    for name in names:
        console.print(f"  {name}")


@config_app.command("show")
def config_show(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file"),
):
    """Show effective config (API keys redacted)."""
    from kele.cli.output import OutputFormatter

    cfg = _load(config)
    OutputFormatter(console).format_config(cfg.to_dict())


@app.command()
def version():
    """Show version."""
    console.print(f"kele v{__version__}")


def main():
    app()


if __name__ == "__main__":
    main()
