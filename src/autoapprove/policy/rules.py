"""
Rule table for the fast-rule matcher.

Rules are data: an ordered tuple of PolicyRule values built once from the
config by build_rules(). Order is precedence, and the matcher returns the
first rule that fires.

Security Note:
    Destructive-command denial (BUILTIN_DENY) must stay ahead of every allow
    category, including operator allow patterns. An allow rule must never be
    able to mask a destructive command.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum

from autoapprove.schema import Config, Verdict

logger = logging.getLogger(__name__)


class RuleCategory(str, Enum):
    """Rule categories in evaluation order."""

    CUSTOM_DENY = "custom_deny"
    BUILTIN_DENY = "builtin_deny"
    DEV_WORKFLOW_ALLOW = "dev_workflow_allow"
    CUSTOM_ALLOW = "custom_allow"
    CUSTOM_PASSTHROUGH = "custom_passthrough"
    PASSTHROUGH_TOOL = "passthrough_tool"
    ALLOW_TOOL = "allow_tool"
    MCP_NAMESPACE = "mcp_namespace"


class RuleTarget(str, Enum):
    """What a rule's pattern is tested against."""

    TOOL_NAME = "tool_name"
    TOOL_NAME_OR_INPUT = "tool_name_or_input"
    COMMAND = "command"


CATEGORY_VERDICTS: dict[RuleCategory, Verdict] = {
    RuleCategory.CUSTOM_DENY: Verdict.DENY,
    RuleCategory.BUILTIN_DENY: Verdict.DENY,
    RuleCategory.DEV_WORKFLOW_ALLOW: Verdict.ALLOW,
    RuleCategory.CUSTOM_ALLOW: Verdict.ALLOW,
    RuleCategory.CUSTOM_PASSTHROUGH: Verdict.PASSTHROUGH,
    RuleCategory.PASSTHROUGH_TOOL: Verdict.PASSTHROUGH,
    RuleCategory.ALLOW_TOOL: Verdict.ALLOW,
    RuleCategory.MCP_NAMESPACE: Verdict.ALLOW,
}


# Read-only or low-risk tools
INSTANT_ALLOW_TOOLS = frozenset({
    "Read",
    "Glob",
    "Grep",
    "LS",
    "WebFetch",
    "WebSearch",
    "NotebookRead",
    "BashOutput",
    "Write",
    "Edit",
    "MultiEdit",
    "NotebookEdit",
    "TodoWrite",
    "Task",
})

# Tools whose whole purpose is a human response
INSTANT_PASSTHROUGH_TOOLS = frozenset({
    "AskUserQuestion",
    "ExitPlanMode",
})

MCP_PREFIX = "mcp__"

_PROTECTED_BRANCHES = r"(main|master|production|staging|develop)"

DESTRUCTIVE_COMMAND_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, flags)
    for p, flags in (
        # Unix root and system directory deletion
        (r"^rm\s+(-[rf]+\s+)*/$", 0),
        (r"^rm\s+(-[rf]+\s+)*/usr\b", 0),
        (r"^rm\s+(-[rf]+\s+)*/etc\b", 0),
        (r"^rm\s+(-[rf]+\s+)*/bin\b", 0),
        (r"^rm\s+(-[rf]+\s+)*/sbin\b", 0),
        (r"^rm\s+(-[rf]+\s+)*/boot\b", 0),
        (r"^rm\s+(-[rf]+\s+)*/var\b", 0),
        (r"^rm\s+(-[rf]+\s+)*/home\b", 0),
        (r"^rm\s+(-[rf]+\s+)*~/?$", 0),
        (r"^rm\s+(-[rf]+\s+)*\$HOME/?$", 0),
        # Windows system destruction
        (r"^(rmdir|rd)\s+/s\s+/q\s+[A-Z]:\\$", re.IGNORECASE),
        (r"^del\s+(/[fqs]\s+)+[A-Z]:\\$", re.IGNORECASE),
        (r"^del\s+(/[fqs]\s+)+[A-Z]:\\Windows", re.IGNORECASE),
        (r"^del\s+(/[fqs]\s+)+[A-Z]:\\System32", re.IGNORECASE),
        (r"Remove-Item\s+.*-Recurse.*[A-Z]:\\$", re.IGNORECASE),
        (r"Remove-Item\s+.*-Recurse.*\$env:SystemRoot", re.IGNORECASE),
        # Disk formatting and raw device writes
        (r"^mkfs\b", 0),
        (r"^fdisk\s+.*--delete", 0),
        (r"^dd\s+.*of=/dev/(sd[a-z]|nvme|hd[a-z])", 0),
        (r"^format\s+[A-Z]:", re.IGNORECASE),
        # Force push to protected branches
        (rf"^git\s+push\s+(-f|--force)\s+(origin\s+)?{_PROTECTED_BRANCHES}\b", re.IGNORECASE),
        (rf"^git\s+push\s+(origin\s+)?{_PROTECTED_BRANCHES}\s+(-f|--force)\b", re.IGNORECASE),
        (r"^git\s+push\s+.*--force-with-lease\s+.*\b(main|master|production)\b", re.IGNORECASE),
        # Fork bombs
        (r":\(\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:", 0),
        (r"\bfork\s*\(\s*\)\s*while", re.IGNORECASE),
        # Credential exfiltration
        (r"curl.*\|.*sh.*password", re.IGNORECASE),
        (r"wget.*-O.*-.*\|.*bash", 0),
        (r"curl.*/etc/passwd", 0),
        (r"curl.*/etc/shadow", 0),
    )
)

_DB_CLIENTS = r"\b(psql|mysql|sqlite3|mongosh)\b"
_READ_ONLY_SQL = r"\b(SELECT|EXPLAIN|DESCRIBE|SHOW)\b"

DEV_WORKFLOW_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        # source .env && psql "$DATABASE_URL" -c "SELECT ..."
        rf"source\s+\S*\.env\b.*{_DB_CLIENTS}.*{_READ_ONLY_SQL}",
        rf"\.\s+\S*\.env\b.*{_DB_CLIENTS}.*{_READ_ONLY_SQL}",
        # psql -c "SELECT ..." without sourcing anything
        rf"{_DB_CLIENTS}.*-[ce]\s+[\"']?\s*(SELECT|EXPLAIN|DESCRIBE|SHOW)\b",
    )
)


@dataclass(frozen=True)
class PolicyRule:
    """
    One tagged predicate in the rule table.

    Attributes:
        category: Which precedence group the rule belongs to
        target: What the pattern is tested against
        pattern: Source text of the pattern (or the tool name / prefix)
        compiled: Compiled regex; None for name-set rules and for operator
            patterns that failed to compile (those never match)
    """

    category: RuleCategory
    target: RuleTarget
    pattern: str
    compiled: re.Pattern[str] | None = None

    @property
    def verdict(self) -> Verdict:
        return CATEGORY_VERDICTS[self.category]


def _compile_operator_pattern(pattern: str, category: RuleCategory) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern)
    except re.error as e:
        logger.warning(
            "Ignoring invalid %s pattern %r: %s", category.value, pattern, e
        )
        return None


def _operator_rules(
    patterns: list[str],
    category: RuleCategory,
    target: RuleTarget,
) -> list[PolicyRule]:
    return [
        PolicyRule(
            category=category,
            target=target,
            pattern=pattern,
            compiled=_compile_operator_pattern(pattern, category),
        )
        for pattern in patterns
    ]


def _builtin_rules(
    patterns: tuple[re.Pattern[str], ...],
    category: RuleCategory,
) -> list[PolicyRule]:
    return [
        PolicyRule(
            category=category,
            target=RuleTarget.COMMAND,
            pattern=compiled.pattern,
            compiled=compiled,
        )
        for compiled in patterns
    ]


def build_rules(config: Config) -> tuple[PolicyRule, ...]:
    """Build the ordered rule table for a config."""
    rules: list[PolicyRule] = []
    rules += _operator_rules(
        config.custom_deny_patterns,
        RuleCategory.CUSTOM_DENY,
        RuleTarget.TOOL_NAME_OR_INPUT,
    )
    rules += _builtin_rules(DESTRUCTIVE_COMMAND_PATTERNS, RuleCategory.BUILTIN_DENY)
    rules += _builtin_rules(DEV_WORKFLOW_PATTERNS, RuleCategory.DEV_WORKFLOW_ALLOW)
    rules += _operator_rules(
        config.custom_allow_patterns,
        RuleCategory.CUSTOM_ALLOW,
        RuleTarget.TOOL_NAME,
    )
    rules += _operator_rules(
        config.custom_passthrough_patterns,
        RuleCategory.CUSTOM_PASSTHROUGH,
        RuleTarget.TOOL_NAME_OR_INPUT,
    )
    rules += [
        PolicyRule(RuleCategory.PASSTHROUGH_TOOL, RuleTarget.TOOL_NAME, name)
        for name in sorted(INSTANT_PASSTHROUGH_TOOLS)
    ]
    rules += [
        PolicyRule(RuleCategory.ALLOW_TOOL, RuleTarget.TOOL_NAME, name)
        for name in sorted(INSTANT_ALLOW_TOOLS)
    ]
    rules.append(PolicyRule(RuleCategory.MCP_NAMESPACE, RuleTarget.TOOL_NAME, MCP_PREFIX))
    return tuple(rules)
