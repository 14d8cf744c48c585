"""System prompt builder."""

from __future__ import annotations


def build_system_prompt(
    tool_names: list[str] | None = None,
    work_dir: str | None = None,
    memories: list[str] | None = None,
    extra_sections: list[str] | None = None,
) -> str:
    """
    Build the system prompt for a chat session or a sub-agent.

    Assembles the identity and guidelines, the available tool list, the
    working directory and any long-term memory snippets into one string.
    The result depends only on the arguments, so callers rebuild it on every
    request to pick up tool and memory changes.
    """
    sections: list[str] = [IDENTITY_SECTION, GUIDELINES_SECTION]

    if tool_names:
        tool_lines = [
            f"- **{name}**: {TOOL_DESCRIPTIONS.get(name, '(no description)')}"
            for name in tool_names
        ]
        sections.append("## Available Tools\n\n" + "\n".join(tool_lines))

    sections.append(WORKFLOW_SECTION)

    if work_dir:
        sections.append(
            f"## Working Directory\n\nCurrent working directory: `{work_dir}`. "
            f"Relative paths given to read/write tools are resolved against it."
        )

    if memories:
        sections.append(
            "## Long-term Memory\n\n" + "\n".join(f"- {m}" for m in memories)
        )

    if extra_sections:
        sections.extend(extra_sections)

    return "\n\n".join(sections)


TOOL_DESCRIPTIONS: dict[str, str] = {
    "bash": "Run a shell command (inspect directories, run programs, install dependencies)",
    "read": "Read a file, path relative to the working directory",
    "write": "Create or overwrite a file, path relative to the working directory",
    "http": "Send an HTTP request (GET/POST/PUT/DELETE) and return the raw response",
    "web_fetch": "Fetch a web page and extract its readable text as Markdown",
    "git": "Run a Git operation (status/diff/log/add/commit, ...)",
    "python": "Execute a Python snippet, useful for data processing and calculations",
    "spawn_agent": "Start a sub-agent that works on a task in the background",
    "agent_status": "Show sub-agent status and recent logs; lists all sub-agents without an id",
    "agent_result": "Wait for a sub-agent to finish and return its result",
}

IDENTITY_SECTION = (
    "You are Kele, a terminal assistant for coding and operations work. "
    "You can answer questions directly and use your tools to act on the "
    "user's machine."
)

GUIDELINES_SECTION = """## Guidelines

- Be concise and precise.
- When an action is needed, call a tool. Do not only describe what you would do.
- Break multi-step tasks into consecutive tool calls.
- Do what the user asked and nothing more.
- If a tool returns an error, report it clearly and try an alternative."""

WORKFLOW_SECTION = """## Multi-step Examples

- Create and run a script: write the script -> bash `chmod +x` -> bash to run it.
- Summarize a web page: web_fetch the page -> answer from its content.
- Analyse API data: http request -> python to process the response."""

SUBAGENT_SECTION = """## Sub-agent Role

You are a sub-agent working independently on one assigned task.
- Focus on the task itself and do not ask the user questions.
- When you finish, summarize what you did in your final reply.
- When you hit an error, try to fix it; if you cannot, explain why."""
