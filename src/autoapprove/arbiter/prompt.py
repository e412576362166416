"""
Prompt construction for the model arbiter.

The system prompt is a versioned baseline policy document, optionally followed
by project-specific policy text and the list of paths to treat as part of the
project. The user prompt carries the request itself.

Bump SYSTEM_PROMPT_VERSION whenever DEFAULT_SYSTEM_PROMPT changes so saved
configs with an older copy pick up the new text automatically.
"""

import json
from typing import Any

from autoapprove.schema import LLMConfig

SYSTEM_PROMPT_VERSION = 3

DEFAULT_SYSTEM_PROMPT = """You are a security reviewer deciding whether a tool request from an autonomous coding agent can run without asking the developer.

Respond with ONLY a JSON object of the form:
{"decision": "allow" | "deny", "reason": "<one short sentence>"}

ALLOW when the request is routine development work confined to the project:
- Reading, searching, building, testing, linting, formatting, type-checking
- Package manager installs and script runs that use the project's manifests
- Version control operations that do not rewrite shared history
- Creating, editing, moving or deleting files inside the project root or a trusted path
- Starting local dev servers, running containers for the project, querying local databases read-only
- Network reads of documentation, package registries and public APIs

DENY when the request could cause harm outside the project or cannot be undone:
- Deleting or overwriting files outside the project root and trusted paths
- Modifying system configuration, shell profiles, credentials or SSH keys
- Privilege escalation (sudo, su, doas, setuid changes)
- Sending secrets, environment variables or source code to unknown hosts
- Piping downloaded scripts into a shell
- Force-pushing, deleting remote branches, or rewriting published history
- Destructive database statements (DROP, TRUNCATE, DELETE without WHERE) against non-local databases
- Disabling security tooling, firewalls or audit logging
- Anything obfuscated (base64-decoded commands, eval of fetched content)

When the request is ambiguous, judge whether a careful senior engineer would run it in this project without a second look. If not, deny and say what made it risky."""


def resolve_system_prompt(llm: LLMConfig, auto_update: bool) -> str:
    """
    Pick the baseline policy text for this request.

    The saved copy is used when it is current, or when the operator turned
    auto-update off. Otherwise the built-in text is used; the saved config is
    not modified.
    """
    if llm.system_prompt is None:
        return DEFAULT_SYSTEM_PROMPT
    if auto_update and llm.system_prompt_version < SYSTEM_PROMPT_VERSION:
        return DEFAULT_SYSTEM_PROMPT
    return llm.system_prompt


def build_system_prompt(
    base_prompt: str,
    project_instructions: str | None = None,
    trusted_paths: list[str] | None = None,
) -> str:
    """Combine the baseline policy with project policy and trusted paths."""
    sections = [base_prompt]

    if project_instructions:
        sections.append(
            "## Project-specific instructions\n\n"
            "The project maintainers added these rules. They take precedence "
            "over the general guidance above.\n\n"
            f"{project_instructions}"
        )

    if trusted_paths:
        listed = "\n".join(f"- {path}" for path in trusted_paths)
        sections.append(
            "## Trusted paths\n\n"
            "Treat operations on these paths exactly like operations inside "
            f"the project root:\n{listed}"
        )

    return "\n\n".join(sections)


def build_user_prompt(
    tool_name: str,
    tool_input: dict[str, Any],
    project_root: str | None = None,
    trusted_paths: list[str] | None = None,
) -> str:
    """Describe the request for the model."""
    lines = [
        "Evaluate this tool request for auto-approval:",
        "",
        f"Tool: {tool_name}",
        f"Project Root: {project_root or 'unknown'}",
    ]
    if trusted_paths:
        lines.append(f"Trusted Paths: {', '.join(trusted_paths)}")
    lines.append(f"Input: {json.dumps(tool_input, indent=2, default=str)}")
    lines += ["", "Should this be automatically approved or denied?"]
    return "\n".join(lines)
