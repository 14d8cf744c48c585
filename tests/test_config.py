"""Tests for the layered configuration loader."""

import pytest
import yaml

from kele.config import _ENV_MAP, KeleConfig, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_MAP:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "llm": {
            "openai_model": "gpt-4o-mini",
            "openai_api_key": "sk-file",
            "max_turns": 30,
            "unknown_key": "ignored",
        },
        "tools": {"allow_tools": ["bash", "read"]},
        "agents": {"max_concurrent": 3},
        "surprise_section": {"x": 1},
    }))
    return path


class TestDefaults:
    def test_defaults(self):
        cfg = load_config()
        assert cfg.llm.openai_model == "gpt-4o"
        assert cfg.llm.openai_api_base == "https://api.openai.com/v1"
        assert cfg.llm.ollama_host == "http://localhost:11434"
        assert cfg.llm.max_tool_rounds == 10
        assert cfg.llm.max_turns == 20
        assert cfg.tools.max_output_size == 51200
        assert cfg.agents.max_concurrent == 5
        assert cfg.agents.max_tool_rounds == 20
        assert cfg.logging.level == "WARNING"

    def test_missing_file_ignored(self, tmp_path):
        cfg = load_config(tmp_path / "nope.yaml")
        assert cfg == KeleConfig()

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == KeleConfig()


class TestLayering:
    def test_file_values(self, config_file):
        cfg = load_config(config_file)
        assert cfg.llm.openai_model == "gpt-4o-mini"
        assert cfg.llm.max_turns == 30
        assert cfg.llm.temperature == 0.7
        assert cfg.tools.allow_tools == ["bash", "read"]
        assert cfg.agents.max_concurrent == 3

    def test_env_overrides_file(self, config_file, monkeypatch):
        monkeypatch.setenv("OPENAI_MODEL", "o3-mini")
        monkeypatch.setenv("KELE_MAX_AGENTS", "8")
        monkeypatch.setenv("KELE_TEMPERATURE", "0.1")
        cfg = load_config(config_file)
        assert cfg.llm.openai_model == "o3-mini"
        assert cfg.agents.max_concurrent == 8
        assert cfg.llm.temperature == 0.1

    def test_empty_env_value_ignored(self, config_file, monkeypatch):
        monkeypatch.setenv("OPENAI_MODEL", "")
        assert load_config(config_file).llm.openai_model == "gpt-4o-mini"

    def test_cli_overrides_env(self, config_file, monkeypatch):
        monkeypatch.setenv("OPENAI_MODEL", "o3-mini")
        cfg = load_config(
            config_file,
            cli_overrides={"llm.openai_model": "claude-sonnet-4-5", "llm.max_turns": None},
        )
        assert cfg.llm.openai_model == "claude-sonnet-4-5"
        assert cfg.llm.max_turns == 30

    def test_provider_env_vars(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "ak")
        monkeypatch.setenv("OLLAMA_HOST", "http://gpu-box:11434")
        monkeypatch.setenv("OPENAI_API_BASE", "https://api.deepseek.com/v1")
        cfg = load_config()
        assert cfg.llm.anthropic_api_key == "ak"
        assert cfg.llm.ollama_host == "http://gpu-box:11434"
        assert cfg.llm.openai_api_base == "https://api.deepseek.com/v1"


class TestRedaction:
    def test_keys_masked(self, config_file, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "ak")
        d = load_config(config_file).to_dict()
        assert d["llm"]["openai_api_key"] == "***"
        assert d["llm"]["anthropic_api_key"] == "***"

    def test_unset_keys_left_empty(self):
        assert load_config().to_dict()["llm"]["openai_api_key"] == ""

    def test_unredacted(self, config_file):
        d = load_config(config_file).to_dict(redact=False)
        assert d["llm"]["openai_api_key"] == "sk-file"
