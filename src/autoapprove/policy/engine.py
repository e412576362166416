"""
Fast-rule matcher for autoapprove.

The matcher is the first tier of the decision pipeline. It is a pure function
of the request and the rule table: no I/O, no mutation, same inputs always
produce the same decision.

How it works:
    1. Matcher receives a ToolRequest
    2. Walks the ordered rule table
    3. Returns the first rule's verdict as a Decision (source=fast)
    4. Returns DEFER when nothing fires, meaning "ask the next tier"

Security Note:
    This module is security-critical. Rule order lives in rules.build_rules()
    and must keep destructive-command denial ahead of every allow category.
"""

from autoapprove.policy.rules import (
    MCP_PREFIX,
    PolicyRule,
    RuleCategory,
    RuleTarget,
    build_rules,
)
from autoapprove.schema import Config, Decision, DecisionSource, ToolRequest, Verdict


class FastRuleMatcher:
    """
    Evaluates a request against the ordered rule table.

    Usage:
        matcher = FastRuleMatcher.from_config(config)
        decision = matcher.evaluate(request)
        if decision.is_terminal:
            # allow, deny or passthrough from the fast tier
        else:
            # DEFER: continue to the cache

    Attributes:
        rules: The ordered rule table
    """

    def __init__(self, rules: tuple[PolicyRule, ...]) -> None:
        self.rules = rules

    @classmethod
    def from_config(cls, config: Config) -> "FastRuleMatcher":
        return cls(build_rules(config))

    def evaluate(self, request: ToolRequest) -> Decision:
        """
        Evaluate a request against the rule table.

        Args:
            request: The validated permission request

        Returns:
            Decision with verdict allow, deny, passthrough or defer
        """
        # Serialized once and shared by every input-matching rule
        serialized_input = request.serialized_input()
        command = request.command

        for rule in self.rules:
            if self._matches(rule, request, serialized_input, command):
                return self._decision_for(rule, request)

        return Decision.defer()

    def _matches(
        self,
        rule: PolicyRule,
        request: ToolRequest,
        serialized_input: str,
        command: str | None,
    ) -> bool:
        """Check whether one rule fires for a request."""
        if rule.category in (RuleCategory.PASSTHROUGH_TOOL, RuleCategory.ALLOW_TOOL):
            return request.tool_name == rule.pattern
        if rule.category == RuleCategory.MCP_NAMESPACE:
            return request.tool_name.startswith(rule.pattern)

        if rule.compiled is None:
            # Operator pattern that failed to compile
            return False

        if rule.target == RuleTarget.COMMAND:
            return command is not None and rule.compiled.search(command) is not None
        if rule.target == RuleTarget.TOOL_NAME:
            return rule.compiled.search(request.tool_name) is not None
        return (
            rule.compiled.search(request.tool_name) is not None
            or rule.compiled.search(serialized_input) is not None
        )

    def _decision_for(self, rule: PolicyRule, request: ToolRequest) -> Decision:
        """Build the decision and its reason for a fired rule."""
        category = rule.category
        rule_id = f"{category.value}[{rule.pattern}]"

        if category == RuleCategory.CUSTOM_DENY:
            reason = f"Blocked by custom deny pattern: {rule.pattern}"
        elif category == RuleCategory.BUILTIN_DENY:
            reason = f"Blocked destructive command pattern: {rule.pattern}"
        elif category == RuleCategory.DEV_WORKFLOW_ALLOW:
            reason = f"Allowed common dev workflow: {rule.pattern}"
        elif category == RuleCategory.CUSTOM_ALLOW:
            reason = f"Allowed by custom pattern: {rule.pattern}"
        elif category == RuleCategory.CUSTOM_PASSTHROUGH:
            reason = f"Passthrough by custom pattern: {rule.pattern}"
        elif category == RuleCategory.PASSTHROUGH_TOOL:
            reason = (
                f"Tool '{request.tool_name}' requires user interaction - "
                "showing native dialog"
            )
        elif category == RuleCategory.ALLOW_TOOL:
            reason = f"Tool '{request.tool_name}' is in instant-allow list"
        else:
            reason = f"MCP tools ({MCP_PREFIX}*) are auto-approved"

        verdict = rule.verdict
        if verdict == Verdict.DENY:
            return Decision.deny(reason, source=DecisionSource.FAST, rule=rule_id)
        if verdict == Verdict.PASSTHROUGH:
            return Decision.passthrough(reason, rule=rule_id)
        return Decision.allow(reason, source=DecisionSource.FAST, rule=rule_id)
