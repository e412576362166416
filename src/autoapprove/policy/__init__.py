"""
Fast-rule matcher module for autoapprove.

This module implements the first tier of the decision pipeline: deterministic
pattern rules that allow, deny, or hand a request to a human without any I/O.

Key concepts:
    - PolicyRule: One tagged predicate (category, target, pattern)
    - build_rules: The ordered rule table for a config
    - FastRuleMatcher: First-match-wins evaluation; DEFER when nothing fires

The matcher must be:
    - Pure: No I/O, same inputs always produce same decisions
    - Deny-first: Destructive commands are denied before any allow rule runs
    - Robust: An invalid operator pattern never matches and never raises
"""

from autoapprove.policy.engine import FastRuleMatcher
from autoapprove.policy.rules import (
    DESTRUCTIVE_COMMAND_PATTERNS,
    DEV_WORKFLOW_PATTERNS,
    INSTANT_ALLOW_TOOLS,
    INSTANT_PASSTHROUGH_TOOLS,
    PolicyRule,
    RuleCategory,
    RuleTarget,
    build_rules,
)

__all__ = [
    "DESTRUCTIVE_COMMAND_PATTERNS",
    "DEV_WORKFLOW_PATTERNS",
    "FastRuleMatcher",
    "INSTANT_ALLOW_TOOLS",
    "INSTANT_PASSTHROUGH_TOOLS",
    "PolicyRule",
    "RuleCategory",
    "RuleTarget",
    "build_rules",
]
