"""
Base classes for autoapprove arbiters.

An arbiter is the third tier of the decision pipeline: it asks an external
judgment service for an allow/deny verdict on a request no rule or cached
precedent covers.

Design Principles:
    - Arbiters never defer and never pass through; they return allow or deny
    - Failures are raised as ArbiterError subclasses, never swallowed; the
      handler turns every one of them into a deny
    - Arbiters are stateless between calls (context passed explicitly)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from autoapprove.schema import Decision


@dataclass
class ArbiterContext:
    """
    Everything the arbiter sees about one request.

    Attributes:
        tool_name: Requested tool
        tool_input: Requested parameters
        project_root: Resolved project root, or None when unknown
        project_instructions: Project policy text, read fresh per request
        trusted_paths: Paths to treat like the project root
    """

    tool_name: str
    tool_input: dict[str, Any]
    project_root: str | None = None
    project_instructions: str | None = None
    trusted_paths: list[str] = field(default_factory=list)


class Arbiter(ABC):
    """
    Abstract base class for judgment-service adapters.

    Implementations:
        - OpenAICompatibleArbiter: Any /chat/completions endpoint
          (OpenRouter, OpenAI, local servers)

    Example Implementation:
        class AlwaysDeny(Arbiter):
            def judge(self, context):
                return Decision.deny("Nothing runs", source=DecisionSource.MODEL)
    """

    @abstractmethod
    def judge(self, context: ArbiterContext) -> Decision:
        """
        Render an allow/deny decision for a request.

        Args:
            context: The request plus project context

        Returns:
            Decision with verdict allow or deny and source=model

        Raises:
            ArbiterError: Any failure to obtain a trustworthy verdict
        """
        ...

    def get_name(self) -> str:
        """Return the arbiter's name for logging."""
        return self.__class__.__name__

    def get_config(self) -> dict[str, Any]:
        """Return arbiter configuration for debugging."""
        return {}
