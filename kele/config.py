"""
Typed configuration model with precedence-based loader.

Precedence (lowest to highest):
    defaults < config file (YAML) < env vars < CLI flags
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_PATH = "~/.kele/config.yaml"


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------

@dataclass
class LLMConfig:
    openai_api_base: str = "https://api.openai.com/v1"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    anthropic_api_key: str = ""
    anthropic_api_base: str = "https://api.anthropic.com"
    ollama_host: str = "http://localhost:11434"
    small_model: str = ""
    temperature: float = 0.7
    max_tokens: int = 4096
    max_tool_rounds: int = 10
    max_turns: int = 20
    complete_timeout: int = 8


@dataclass
class ToolsConfig:
    max_output_size: int = 51200
    timeout_seconds: float = 120.0
    plugins_enabled: bool = True
    allow_tools: list[str] = field(default_factory=list)


@dataclass
class AgentsConfig:
    max_concurrent: int = 5
    max_tool_rounds: int = 20
    result_timeout: float = 300.0


@dataclass
class LoggingConfig:
    level: str = "WARNING"
    file: str = ""


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------

@dataclass
class KeleConfig:
    llm: LLMConfig = field(default_factory=LLMConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    agents: AgentsConfig = field(default_factory=AgentsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self, *, redact: bool = True) -> dict:
        d = asdict(self)
        if redact:
            for key in ("openai_api_key", "anthropic_api_key"):
                if d["llm"].get(key):
                    d["llm"][key] = "***"
        return d


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _apply_dotpath(obj: Any, dotpath: str, value: Any) -> None:
    """Walk obj via dotpath and set the final attribute."""
    parts = dotpath.split(".")
    for part in parts[:-1]:
        obj = getattr(obj, part)
    setattr(obj, parts[-1], value)


def _deep_merge(base: dict, overlay: dict) -> dict:
    """Recursively merge overlay into base, returning a new dict."""
    merged = dict(base)
    for k, v in overlay.items():
        if k in merged and isinstance(merged[k], dict) and isinstance(v, dict):
            merged[k] = _deep_merge(merged[k], v)
        else:
            merged[k] = v
    return merged


def _coerce(value: str, target_type: type) -> Any:
    """Coerce a string env value to the target type."""
    if target_type is bool:
        return value.lower() in ("1", "true", "yes", "on")
    if target_type is int:
        return int(value)
    if target_type is float:
        return float(value)
    if target_type is list:
        return [s.strip() for s in value.split(",") if s.strip()]
    return value


def _build_section(cls: type, raw: dict | None) -> Any:
    """Build a dataclass section from a raw dict, ignoring unknown keys."""
    valid_fields = {f.name for f in fields(cls)}
    filtered = {k: v for k, v in (raw or {}).items() if k in valid_fields}
    return cls(**filtered)


# ---------------------------------------------------------------------------
# ENV var mapping
# ---------------------------------------------------------------------------

_ENV_MAP: dict[str, tuple[str, type]] = {
    "OPENAI_API_BASE":           ("llm.openai_api_base", str),
    "OPENAI_API_KEY":            ("llm.openai_api_key", str),
    "OPENAI_MODEL":              ("llm.openai_model", str),
    "ANTHROPIC_API_KEY":         ("llm.anthropic_api_key", str),
    "ANTHROPIC_API_BASE":        ("llm.anthropic_api_base", str),
    "OLLAMA_HOST":               ("llm.ollama_host", str),
    "KELE_SMALL_MODEL":          ("llm.small_model", str),
    "KELE_TEMPERATURE":          ("llm.temperature", float),
    "KELE_MAX_TOKENS":           ("llm.max_tokens", int),
    "KELE_MAX_TOOL_ROUNDS":      ("llm.max_tool_rounds", int),
    "KELE_MAX_TURNS":            ("llm.max_turns", int),
    "KELE_COMPLETE_TIMEOUT":     ("llm.complete_timeout", int),
    "KELE_MAX_OUTPUT_SIZE":      ("tools.max_output_size", int),
    "KELE_TOOL_TIMEOUT":         ("tools.timeout_seconds", float),
    "KELE_MAX_AGENTS":           ("agents.max_concurrent", int),
    "KELE_AGENT_RESULT_TIMEOUT": ("agents.result_timeout", float),
    "KELE_LOG_LEVEL":            ("logging.level", str),
}


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: dict[str, Any] | None = None,
) -> KeleConfig:
    """
    Build a KeleConfig by layering sources in precedence order:

        defaults  <  config file  <  env vars  <  CLI flags

    Parameters
    ----------
    config_path : path to YAML config file (optional; a missing file is ignored)
    cli_overrides : dict of dotpath -> value CLI flag overrides
    """
    raw: dict[str, Any] = {}

    # --- 1. Config file ---
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.is_file():
            with p.open("r", encoding="utf-8") as f:
                file_data = yaml.safe_load(f) or {}
            raw = _deep_merge(raw, file_data)

    cfg = KeleConfig(
        llm=_build_section(LLMConfig, raw.get("llm")),
        tools=_build_section(ToolsConfig, raw.get("tools")),
        agents=_build_section(AgentsConfig, raw.get("agents")),
        logging=_build_section(LoggingConfig, raw.get("logging")),
    )

    # --- 2. Env var overrides ---
    for env_var, (dotpath, target_type) in _ENV_MAP.items():
        val = os.environ.get(env_var)
        if val:
            _apply_dotpath(cfg, dotpath, _coerce(val, target_type))

    # --- 3. CLI flag overrides ---
    if cli_overrides:
        for dotpath, value in cli_overrides.items():
            if value is not None:
                _apply_dotpath(cfg, dotpath, value)

    return cfg
