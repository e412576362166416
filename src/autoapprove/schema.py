"""
Schema definitions for autoapprove.

This module defines the Pydantic models used throughout autoapprove:
- ToolRequest: The permission request delivered by the agent's hook
- Verdict/Decision: The outcome of one decision tier
- CacheEntry: A replayable allow/deny verdict
- ArbiterVerdict: The strict shape the judgment service must answer with
- Config: Operator configuration
- DecisionLogEntry: One line of the audit log
- PermissionRequestOutput: What the hook prints back to the agent

Design Decisions:
    - Value models are immutable (frozen=True)
    - Passthrough and defer cannot be represented in a CacheEntry
    - Hook payload fields keep their wire names (tool_name, tool_input, ...)
"""

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


SHELL_TOOLS = frozenset({"Bash"})


# =============================================================================
# Enums
# =============================================================================


class Verdict(str, Enum):
    """
    Outcome of one decision tier.

    DEFER means "no fast rule applies, continue to the next tier" and is
    produced only by the fast-rule matcher. PASSTHROUGH means "a human must
    decide this time" and is never cached.
    """

    ALLOW = "allow"
    DENY = "deny"
    DEFER = "defer"
    PASSTHROUGH = "passthrough"


class DecisionSource(str, Enum):
    """Which tier produced a decision."""

    FAST = "fast"
    CACHE = "cache"
    MODEL = "model"


# =============================================================================
# Request Models
# =============================================================================


class ToolRequest(BaseModel):
    """
    A permission request from the coding agent.

    The hook payload carries more fields than we read (hook_event_name,
    transcript_path, permission_mode, ...); those are ignored.

    Attributes:
        tool_name: Operation class being requested (e.g., "Bash", "Read")
        tool_input: Tool parameters; opaque except for the shell command field
        cwd: Working directory the agent is in
        session_id: Correlation token, used for logging only
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    tool_name: str = Field(..., min_length=1, description="Requested tool")
    tool_input: dict[str, Any] = Field(..., description="Tool parameters")
    cwd: str | None = Field(default=None, description="Agent working directory")
    session_id: str | None = Field(default=None, description="Agent session id")

    @property
    def is_shell(self) -> bool:
        """Whether this request asks for shell execution."""
        return self.tool_name in SHELL_TOOLS

    @property
    def command(self) -> str | None:
        """The shell command text, or None when this is not a shell request."""
        if not self.is_shell:
            return None
        command = self.tool_input.get("command")
        if isinstance(command, str) and command:
            return command
        return None

    def serialized_input(self) -> str:
        """tool_input as the compact JSON text that patterns are matched against."""
        return json.dumps(self.tool_input, separators=(",", ":"), ensure_ascii=False, default=str)


# =============================================================================
# Decision Models
# =============================================================================


class Decision(BaseModel):
    """
    Result of one decision tier.

    Attributes:
        verdict: allow, deny, defer or passthrough
        reason: Human-readable explanation
        source: Which tier decided (fast, cache, model)
        rule: Which rule fired, when a rule decided
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    verdict: Verdict
    reason: str
    source: DecisionSource = DecisionSource.FAST
    rule: str | None = None

    @classmethod
    def allow(
        cls,
        reason: str,
        source: DecisionSource = DecisionSource.FAST,
        rule: str | None = None,
    ) -> "Decision":
        """Create an ALLOW decision."""
        return cls(verdict=Verdict.ALLOW, reason=reason, source=source, rule=rule)

    @classmethod
    def deny(
        cls,
        reason: str,
        source: DecisionSource = DecisionSource.FAST,
        rule: str | None = None,
    ) -> "Decision":
        """Create a DENY decision."""
        return cls(verdict=Verdict.DENY, reason=reason, source=source, rule=rule)

    @classmethod
    def passthrough(cls, reason: str, rule: str | None = None) -> "Decision":
        """Create a PASSTHROUGH decision (fast tier only)."""
        return cls(verdict=Verdict.PASSTHROUGH, reason=reason, rule=rule)

    @classmethod
    def defer(cls, reason: str = "Requires LLM analysis") -> "Decision":
        """Create a DEFER decision (fast tier only)."""
        return cls(verdict=Verdict.DEFER, reason=reason)

    @property
    def is_terminal(self) -> bool:
        """Whether this decision ends the pipeline."""
        return self.verdict != Verdict.DEFER

    @property
    def cacheable(self) -> bool:
        """Only allow and deny may be replayed from cache."""
        return self.verdict in (Verdict.ALLOW, Verdict.DENY)


class ArbiterVerdict(BaseModel):
    """
    The exact JSON object the judgment service must answer with.

    Anything else (extra keys, other decisions, blank reason) is a schema
    violation and resolves to deny.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    decision: Literal["allow", "deny"]
    reason: str = Field(..., min_length=1)


# =============================================================================
# Cache Models
# =============================================================================


class CacheEntry(BaseModel):
    """
    A previously rendered allow/deny verdict.

    Attributes:
        key: Fingerprint of (tool_name, tool_input, project_root)
        decision: allow or deny, never anything else
        reason: Reason given when the verdict was rendered
        created_at: When the verdict was stored (UTC)
        tool_name: Requested tool, kept for listing and grep-clears
        tool_input: Requested parameters, kept for listing and grep-clears
        project_root: Project scope the verdict applies to
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    key: str
    decision: Literal["allow", "deny"]
    reason: str
    created_at: datetime
    tool_name: str
    tool_input: dict[str, Any] = Field(default_factory=dict)
    project_root: str | None = None

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC so age arithmetic is always valid."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


CacheFile = TypeAdapter(dict[str, CacheEntry])


# =============================================================================
# Config Models
# =============================================================================


class LLMConfig(BaseModel):
    """
    Judgment-service settings.

    Attributes:
        provider: Provider name; "openrouter" enables reasoning suppression
        model: Model identifier sent with each request
        base_url: OpenAI-compatible API root (…/v1)
        api_key: Credential; falls back to environment variables when unset
        system_prompt: Saved baseline policy text (None = built-in)
        system_prompt_version: Version of the saved baseline policy text
        timeout_seconds: Request timeout
        max_tokens: Output token ceiling
    """

    model_config = ConfigDict(extra="forbid")

    provider: str = Field(default="openrouter")
    model: str = Field(default="openai/gpt-4.1-mini", min_length=1)
    base_url: str = Field(default="https://openrouter.ai/api/v1", min_length=1)
    api_key: str | None = Field(default=None)
    system_prompt: str | None = Field(default=None)
    system_prompt_version: int = Field(default=0, ge=0)
    timeout_seconds: float = Field(default=30.0, gt=0, le=300)
    max_tokens: int = Field(default=200, gt=0, le=4096)


class CacheConfig(BaseModel):
    """Decision cache settings."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    ttl_hours: float = Field(default=168, gt=0)


class LoggingConfig(BaseModel):
    """Decision log settings."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True


class Config(BaseModel):
    """
    Complete operator configuration.

    Attributes:
        llm: Judgment-service settings
        cache: Decision cache settings
        logging: Decision log settings
        custom_allow_patterns: Regexes matched against tool_name -> allow
        custom_deny_patterns: Regexes matched against tool_name and input -> deny
        custom_passthrough_patterns: Regexes matched against tool_name and
            input -> ask the human
        auto_update_system_prompt: Use the built-in prompt when the saved one
            is older
    """

    model_config = ConfigDict(extra="forbid")

    llm: LLMConfig = Field(default_factory=LLMConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    custom_allow_patterns: list[str] = Field(default_factory=list)
    custom_deny_patterns: list[str] = Field(default_factory=list)
    custom_passthrough_patterns: list[str] = Field(default_factory=list)
    auto_update_system_prompt: bool = True


# =============================================================================
# Audit Models
# =============================================================================


class DecisionLogEntry(BaseModel):
    """One line of the append-only decision log."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    tool_name: str
    decision: Verdict
    reason: str
    source: DecisionSource
    session_id: str | None = None
    project_root: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


# =============================================================================
# Hook Output Models
# =============================================================================


class HookDecision(BaseModel):
    """The behavior the agent should apply."""

    model_config = ConfigDict(frozen=True)

    behavior: Literal["allow", "deny"]
    message: str | None = None


class HookSpecificOutput(BaseModel):
    """Event-scoped payload of the hook response."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    hook_event_name: Literal["PermissionRequest"] = Field(
        default="PermissionRequest",
        alias="hookEventName",
    )
    decision: HookDecision


class PermissionRequestOutput(BaseModel):
    """
    Structured response printed by the hook.

    Passthrough has no PermissionRequestOutput at all: the hook prints
    nothing and the agent falls back to its own permission dialog.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    hook_specific_output: HookSpecificOutput = Field(..., alias="hookSpecificOutput")

    @classmethod
    def allow(cls) -> "PermissionRequestOutput":
        return cls(
            hook_specific_output=HookSpecificOutput(
                decision=HookDecision(behavior="allow"),
            )
        )

    @classmethod
    def deny(cls, message: str) -> "PermissionRequestOutput":
        return cls(
            hook_specific_output=HookSpecificOutput(
                decision=HookDecision(behavior="deny", message=message),
            )
        )

    @property
    def behavior(self) -> str:
        return self.hook_specific_output.decision.behavior

    def to_json(self) -> str:
        """Serialize with the camelCase wire names."""
        return self.model_dump_json(by_alias=True, exclude_none=True)
