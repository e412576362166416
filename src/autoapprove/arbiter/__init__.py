"""
Model arbiter module for autoapprove.

The third tier of the decision pipeline: when no rule fires and no cached
verdict exists, a language model is asked for an allow/deny judgment.

Components:
    - Arbiter: Abstract base class for judgment-service adapters
    - ArbiterContext: The request plus project policy and trusted paths
    - OpenAICompatibleArbiter: Adapter for chat-completions endpoints
    - prompt: Versioned baseline policy and prompt builders
    - response: Strict {decision, reason} validation

Usage:
    from autoapprove.arbiter import ArbiterContext, OpenAICompatibleArbiter

    arbiter = OpenAICompatibleArbiter(config.llm, api_key=key)
    decision = arbiter.judge(ArbiterContext(tool_name="Bash", tool_input={...}))
"""

from autoapprove.arbiter.base import Arbiter, ArbiterContext
from autoapprove.arbiter.openai_compat import OpenAICompatibleArbiter
from autoapprove.arbiter.prompt import (
    DEFAULT_SYSTEM_PROMPT,
    SYSTEM_PROMPT_VERSION,
    build_system_prompt,
    build_user_prompt,
    resolve_system_prompt,
)
from autoapprove.arbiter.response import parse_verdict

__all__ = [
    "Arbiter",
    "ArbiterContext",
    "DEFAULT_SYSTEM_PROMPT",
    "OpenAICompatibleArbiter",
    "SYSTEM_PROMPT_VERSION",
    "build_system_prompt",
    "build_user_prompt",
    "parse_verdict",
    "resolve_system_prompt",
]
