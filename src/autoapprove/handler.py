"""
Decision orchestrator for autoapprove.

The handler runs one permission request through the three-tier pipeline:

    Start -> FastEvaluated -> CacheEvaluated -> ModelEvaluated -> Done

    1. Fast rules: allow/deny/passthrough end the pipeline; defer continues
    2. Cache: a hit ends the pipeline with the stored verdict
    3. Model: the arbiter's verdict is cached and returned

Exactly one decision and one log entry are produced per valid request.

Fail-safe contract:
    - Malformed input is denied without running any tier
    - Every ArbiterError becomes a deny (see _judge), the only place
      judgment-service failures are mapped to a decision
    - Cache read problems are a miss; cache write problems are logged
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from autoapprove.arbiter import Arbiter, ArbiterContext, OpenAICompatibleArbiter
from autoapprove.audit import LOG_FILE, DecisionLog
from autoapprove.cache import CACHE_FILE, DecisionCache
from autoapprove.config import get_api_key, get_config_dir
from autoapprove.errors import ArbiterError, CacheWriteError
from autoapprove.policy import FastRuleMatcher
from autoapprove.project import (
    get_project_instructions,
    get_trusted_paths,
    resolve_project_root,
)
from autoapprove.schema import (
    Config,
    Decision,
    DecisionLogEntry,
    DecisionSource,
    PermissionRequestOutput,
    ToolRequest,
    Verdict,
)

logger = logging.getLogger(__name__)

INVALID_INPUT_REASON = "Invalid permission request input"


class PermissionHandler:
    """
    Runs permission requests through the decision pipeline.

    Usage:
        with PermissionHandler.from_config(config) as handler:
            output = handler.handle(payload)
            if output is None:
                # passthrough: print nothing, the agent asks the human
            else:
                print(output.to_json())

    Attributes:
        matcher: Fast-rule matcher (tier 1)
        cache: Decision cache (tier 2)
        arbiter: Judgment-service adapter (tier 3)
        decision_log: Audit log receiving one entry per decision
    """

    def __init__(
        self,
        matcher: FastRuleMatcher,
        cache: DecisionCache,
        arbiter: Arbiter,
        decision_log: DecisionLog,
        resolve_root: Callable[[str], str] = resolve_project_root,
    ) -> None:
        self.matcher = matcher
        self.cache = cache
        self.arbiter = arbiter
        self.decision_log = decision_log
        self.resolve_root = resolve_root

    @classmethod
    def from_config(
        cls,
        config: Config,
        config_dir: Path | None = None,
    ) -> "PermissionHandler":
        """Wire the default components for a config."""
        config_dir = config_dir or get_config_dir()
        return cls(
            matcher=FastRuleMatcher.from_config(config),
            cache=DecisionCache(
                config_dir / CACHE_FILE,
                enabled=config.cache.enabled,
                ttl_hours=config.cache.ttl_hours,
            ),
            arbiter=OpenAICompatibleArbiter(
                config.llm,
                api_key=get_api_key(config),
                auto_update_prompt=config.auto_update_system_prompt,
            ),
            decision_log=DecisionLog(config_dir / LOG_FILE, enabled=config.logging.enabled),
        )

    def close(self) -> None:
        close = getattr(self.arbiter, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "PermissionHandler":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def handle(self, raw_input: Any) -> PermissionRequestOutput | None:
        """
        Decide a raw hook payload.

        Args:
            raw_input: Parsed JSON from the hook's stdin

        Returns:
            PermissionRequestOutput for allow/deny, None for passthrough
        """
        try:
            request = ToolRequest.model_validate(raw_input)
        except ValidationError as e:
            logger.warning("Rejecting malformed request (%d errors)", e.error_count())
            return PermissionRequestOutput.deny(INVALID_INPUT_REASON)

        decision = self.decide(request)
        return to_output(decision)

    def decide(self, request: ToolRequest) -> Decision:
        """Run a validated request through the three tiers."""
        project_root = self.resolve_root(request.cwd) if request.cwd else None

        # Tier 1: fast rules
        decision = self.matcher.evaluate(request)
        if decision.is_terminal:
            return self._finish(request, decision, project_root)

        # Tier 2: cache (passthrough is never stored, so never replayed)
        entry = self.cache.lookup(request.tool_name, request.tool_input, project_root)
        if entry is not None:
            cached = Decision(
                verdict=Verdict(entry.decision),
                reason=entry.reason,
                source=DecisionSource.CACHE,
                rule=entry.key,
            )
            return self._finish(request, cached, project_root, log_reason=f"Cached: {entry.reason}")

        # Tier 3: model
        decision = self._judge(request, project_root)
        try:
            self.cache.store(
                request.tool_name,
                request.tool_input,
                decision.verdict,
                decision.reason,
                project_root,
            )
        except CacheWriteError as e:
            logger.warning("Decision not cached: %s", e.message)
        return self._finish(request, decision, project_root)

    def _judge(self, request: ToolRequest, project_root: str | None) -> Decision:
        """Ask the arbiter; any ArbiterError is a deny."""
        context = ArbiterContext(
            tool_name=request.tool_name,
            tool_input=request.tool_input,
            project_root=project_root,
            project_instructions=get_project_instructions(project_root) if project_root else None,
            trusted_paths=get_trusted_paths(project_root) if project_root else [],
        )
        try:
            return self.arbiter.judge(context)
        except ArbiterError as e:
            logger.warning("Judgment service failed (%s): %s", e.kind.value, e.message)
            return Decision.deny(
                f"LLM error: {e.message}",
                source=DecisionSource.MODEL,
                rule=e.kind.value,
            )

    def _finish(
        self,
        request: ToolRequest,
        decision: Decision,
        project_root: str | None,
        log_reason: str | None = None,
    ) -> Decision:
        """Record the terminal decision and return it."""
        self.decision_log.record(
            DecisionLogEntry(
                tool_name=request.tool_name,
                decision=decision.verdict,
                reason=log_reason or decision.reason,
                source=decision.source,
                session_id=request.session_id,
                project_root=project_root,
            )
        )
        return decision


def to_output(decision: Decision) -> PermissionRequestOutput | None:
    """Map a terminal decision onto the hook response (None = passthrough)."""
    if decision.verdict == Verdict.ALLOW:
        return PermissionRequestOutput.allow()
    if decision.verdict == Verdict.DENY:
        return PermissionRequestOutput.deny(decision.reason)
    if decision.verdict == Verdict.PASSTHROUGH:
        return None
    raise ValueError("defer is not a terminal decision")
