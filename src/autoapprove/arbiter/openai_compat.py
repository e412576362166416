"""
OpenAI-compatible arbiter adapter.

This module implements the Arbiter interface against any endpoint that speaks
the OpenAI chat-completions protocol (OpenRouter, OpenAI, vLLM, LM Studio,
Ollama's /v1 API, ...).

One request per verdict:
    POST {base_url}/chat/completions
    Authorization: Bearer <api key>
    {"model": ..., "messages": [system, user], "temperature": 0,
     "max_tokens": ..., "response_format": {"type": "json_object"}}

Failures are not retried. Each failure class raises its own ArbiterError
subclass and the handler resolves all of them to deny.

Usage:
    from autoapprove.arbiter import ArbiterContext, OpenAICompatibleArbiter

    with OpenAICompatibleArbiter(config.llm, api_key=key) as arbiter:
        decision = arbiter.judge(ArbiterContext("Bash", {"command": "make"}))
"""

import json
import logging
from typing import Any

import httpx

from autoapprove.arbiter.base import Arbiter, ArbiterContext
from autoapprove.arbiter.prompt import (
    build_system_prompt,
    build_user_prompt,
    resolve_system_prompt,
)
from autoapprove.arbiter.response import parse_verdict
from autoapprove.errors import (
    ArbiterConnectionError,
    ArbiterCredentialError,
    ArbiterEmptyResponseError,
    ArbiterHTTPError,
    ArbiterParseError,
    ArbiterTimeoutError,
)
from autoapprove.schema import Decision, DecisionSource, LLMConfig

logger = logging.getLogger(__name__)

# Models that accept OpenRouter's reasoning control; reasoning is switched off
# so the token ceiling goes to the answer
REASONING_MODELS = frozenset({
    "openai/gpt-5",
    "openai/gpt-5-mini",
    "openai/gpt-5.1",
    "openai/gpt-5.2",
})


class OpenAICompatibleArbiter(Arbiter):
    """
    Arbiter backed by an OpenAI-compatible chat-completions endpoint.

    Attributes:
        config: Judgment-service settings
        api_key: Credential; None makes every judge() call fail closed
        auto_update_prompt: Use the built-in prompt when the saved one is older
    """

    def __init__(
        self,
        config: LLMConfig | None = None,
        api_key: str | None = None,
        auto_update_prompt: bool = True,
    ) -> None:
        self.config = config or LLMConfig()
        self.api_key = api_key
        self.auto_update_prompt = auto_update_prompt
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.config.base_url.rstrip("/") + "/",
                timeout=self.config.timeout_seconds,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "OpenAICompatibleArbiter":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def judge(self, context: ArbiterContext) -> Decision:
        """
        Ask the judgment service for a verdict.

        Raises:
            ArbiterCredentialError: No API key
            ArbiterConnectionError: Endpoint unreachable
            ArbiterTimeoutError: Request timed out
            ArbiterHTTPError: Non-2xx status
            ArbiterEmptyResponseError: No content in the completion
            ArbiterParseError: Body or content is not JSON
            ArbiterSchemaError: Content is not exactly {decision, reason}
        """
        if not self.api_key:
            raise ArbiterCredentialError(model=self.config.model)

        messages = self._build_messages(context)
        content = self._call(messages)
        verdict = parse_verdict(content, model=self.config.model)

        logger.debug("%s judged %s: %s", self.config.model, context.tool_name, verdict.decision)

        if verdict.decision == "allow":
            return Decision.allow(verdict.reason, source=DecisionSource.MODEL)
        return Decision.deny(verdict.reason, source=DecisionSource.MODEL)

    def _build_messages(self, context: ArbiterContext) -> list[dict[str, str]]:
        """Build the system/user message pair."""
        base_prompt = resolve_system_prompt(self.config, self.auto_update_prompt)
        system_content = build_system_prompt(
            base_prompt,
            project_instructions=context.project_instructions,
            trusted_paths=context.trusted_paths,
        )
        user_content = build_user_prompt(
            context.tool_name,
            context.tool_input,
            project_root=context.project_root,
            trusted_paths=context.trusted_paths,
        )
        return [
            {"role": "system", "content": system_content},
            {"role": "user", "content": user_content},
        ]

    def _build_payload(self, messages: list[dict[str, str]]) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "temperature": 0,
            "max_tokens": self.config.max_tokens,
            "response_format": {"type": "json_object"},
        }
        if self.config.provider == "openrouter" and self.config.model in REASONING_MODELS:
            payload["reasoning"] = {"effort": "none"}
        return payload

    def _call(self, messages: list[dict[str, str]]) -> str:
        """Make the single call to the endpoint and return the message content."""
        client = self._get_client()
        payload = self._build_payload(messages)

        try:
            response = client.post("chat/completions", json=payload)
        except httpx.TimeoutException as e:
            raise ArbiterTimeoutError(
                model=self.config.model,
                timeout_seconds=self.config.timeout_seconds,
            ) from e
        except httpx.HTTPError as e:
            raise ArbiterConnectionError(
                model=self.config.model,
                url=self.config.base_url,
                underlying_error=str(e),
            ) from e

        if not 200 <= response.status_code < 300:
            raise ArbiterHTTPError(
                model=self.config.model,
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise ArbiterParseError(
                model=self.config.model,
                raw_response=response.text[:500],
                parse_error=f"Invalid JSON body: {e}",
            ) from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None

        if not isinstance(content, str) or not content.strip():
            raise ArbiterEmptyResponseError(model=self.config.model)

        return content

    def get_name(self) -> str:
        return f"OpenAICompatibleArbiter({self.config.model})"

    def get_config(self) -> dict[str, Any]:
        return {
            "provider": self.config.provider,
            "base_url": self.config.base_url,
            "model": self.config.model,
            "timeout_seconds": self.config.timeout_seconds,
            "max_tokens": self.config.max_tokens,
            "has_api_key": bool(self.api_key),
        }

    def check_connection(self) -> tuple[bool, str]:
        """
        Check that the endpoint is reachable and accepts the credential.

        Returns:
            Tuple of (is_ok, message)
        """
        if not self.api_key:
            return False, "No API key configured"
        try:
            response = self._get_client().get("models")
        except httpx.HTTPError as e:
            return False, f"Cannot connect to {self.config.base_url}: {e}"

        if response.status_code in (401, 403):
            return False, f"Credential rejected (HTTP {response.status_code})"
        if response.status_code != 200:
            return False, f"Endpoint returned HTTP {response.status_code}"
        return True, f"Connected to {self.config.base_url}"
