"""Tests for the system prompt builder."""

from kele.prompts.system import SUBAGENT_SECTION, build_system_prompt


class TestBuildSystemPrompt:
    def test_minimal(self):
        prompt = build_system_prompt()
        assert prompt.startswith("You are Kele")
        assert "## Guidelines" in prompt
        assert "## Available Tools" not in prompt
        assert "## Working Directory" not in prompt
        assert "## Long-term Memory" not in prompt

    def test_tools_listed_in_order(self):
        prompt = build_system_prompt(tool_names=["read", "bash", "custom"])
        assert "- **read**: Read a file" in prompt
        assert "- **custom**: (no description)" in prompt
        assert prompt.index("**read**") < prompt.index("**bash**") < prompt.index("**custom**")

    def test_work_dir(self):
        prompt = build_system_prompt(work_dir="/home/me/project")
        assert "## Working Directory" in prompt
        assert "`/home/me/project`" in prompt

    def test_memories(self):
        prompt = build_system_prompt(memories=["prefers tabs", "on macOS"])
        assert "## Long-term Memory\n\n- prefers tabs\n- on macOS" in prompt

    def test_extra_sections_last(self):
        prompt = build_system_prompt(tool_names=["bash"], extra_sections=[SUBAGENT_SECTION])
        assert prompt.endswith(SUBAGENT_SECTION)

    def test_deterministic(self):
        args = dict(tool_names=["bash"], work_dir="/w", memories=["m"])
        assert build_system_prompt(**args) == build_system_prompt(**args)
