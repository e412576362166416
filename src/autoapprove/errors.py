"""
Exception hierarchy for autoapprove.

All autoapprove exceptions inherit from AutoApproveError, allowing callers to
catch all autoapprove-specific exceptions with a single except clause.

Exception Categories:
    - InvalidRequestError: Hook payload failed validation
    - ConfigError: Config file could not be loaded or written
    - CacheError: Decision cache could not be written
    - ArbiterError: Judgment service unavailable or untrustworthy

Design Principles:
    - All errors have error codes for programmatic handling
    - All errors include context where applicable
    - ArbiterError subclasses map one-to-one onto ArbiterErrorKind, and every
      one of them resolves to a deny decision in the handler
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Request errors: 1xxx
ERROR_REQUEST_INVALID = 1001

# Config errors: 2xxx
ERROR_CONFIG_LOAD = 2001
ERROR_CONFIG_WRITE = 2002

# Cache errors: 3xxx
ERROR_CACHE_WRITE = 3001

# Arbiter errors: 4xxx
ERROR_ARBITER_MISSING_CREDENTIAL = 4001
ERROR_ARBITER_CONNECTION = 4002
ERROR_ARBITER_TIMEOUT = 4003
ERROR_ARBITER_HTTP_STATUS = 4004
ERROR_ARBITER_EMPTY_RESPONSE = 4005
ERROR_ARBITER_INVALID_JSON = 4006
ERROR_ARBITER_SCHEMA = 4007


class ArbiterErrorKind(str, Enum):
    """Why the judgment service could not produce a usable verdict."""

    MISSING_CREDENTIAL = "missing_credential"
    CONNECTION = "connection"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    EMPTY_RESPONSE = "empty_response"
    INVALID_JSON = "invalid_json"
    SCHEMA_VIOLATION = "schema_violation"


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class AutoApproveError(Exception):
    """
    Base exception for all autoapprove errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Request Errors
# =============================================================================


@dataclass
class InvalidRequestError(AutoApproveError):
    """Raised when a hook payload does not match the request schema."""

    validation_error: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Invalid permission request: {self.validation_error}"
        if self.code == 0:
            self.code = ERROR_REQUEST_INVALID
        self.context["validation_error"] = self.validation_error


# =============================================================================
# Config Errors
# =============================================================================


@dataclass
class ConfigError(AutoApproveError):
    """
    Base class for configuration errors.

    Attributes:
        path: The config file involved
    """

    path: str = ""

    def __post_init__(self) -> None:
        self.context["path"] = self.path


@dataclass
class ConfigLoadError(ConfigError):
    """Raised when the config file exists but cannot be parsed or validated."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Failed to load config {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_CONFIG_LOAD
        if not self.suggestion:
            self.suggestion = "Fix the file or delete it to regenerate defaults"
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class ConfigWriteError(ConfigError):
    """Raised when the config file cannot be written."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Failed to write config {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_CONFIG_WRITE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


# =============================================================================
# Cache Errors
# =============================================================================


@dataclass
class CacheError(AutoApproveError):
    """
    Base class for decision cache errors.

    Read failures never raise; a corrupt store reads as empty.
    """

    path: str = ""

    def __post_init__(self) -> None:
        self.context["path"] = self.path


@dataclass
class CacheWriteError(CacheError):
    """Raised when the cache file cannot be rewritten."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Failed to write decision cache: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_CACHE_WRITE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


# =============================================================================
# Arbiter Errors
# =============================================================================


@dataclass
class ArbiterError(AutoApproveError):
    """
    Base class for judgment-service failures.

    Attributes:
        model: Model identifier that was being queried
        kind: Which failure class this is
    """

    model: str = ""
    kind: ArbiterErrorKind = ArbiterErrorKind.CONNECTION

    def __post_init__(self) -> None:
        self.context.update({
            "model": self.model,
            "kind": self.kind.value,
        })


@dataclass
class ArbiterCredentialError(ArbiterError):
    """Raised when no API key is configured for the judgment service."""

    def __post_init__(self) -> None:
        self.kind = ArbiterErrorKind.MISSING_CREDENTIAL
        if not self.message:
            self.message = "No LLM API key configured - cannot make intelligent decision"
        if self.code == 0:
            self.code = ERROR_ARBITER_MISSING_CREDENTIAL
        if not self.suggestion:
            self.suggestion = "Set llm.api_key in the config or export OPENAI_API_KEY"
        super().__post_init__()


@dataclass
class ArbiterConnectionError(ArbiterError):
    """Raised when the judgment service cannot be reached."""

    url: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        self.kind = ArbiterErrorKind.CONNECTION
        if not self.message:
            self.message = f"Cannot connect to {self.url}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_ARBITER_CONNECTION
        super().__post_init__()
        self.context.update({
            "url": self.url,
            "underlying_error": self.underlying_error,
        })


@dataclass
class ArbiterTimeoutError(ArbiterError):
    """Raised when the judgment service does not answer in time."""

    timeout_seconds: float = 0.0

    def __post_init__(self) -> None:
        self.kind = ArbiterErrorKind.TIMEOUT
        if not self.message:
            self.message = f"Request to {self.model} timed out after {self.timeout_seconds}s"
        if self.code == 0:
            self.code = ERROR_ARBITER_TIMEOUT
        super().__post_init__()
        self.context["timeout_seconds"] = self.timeout_seconds


@dataclass
class ArbiterHTTPError(ArbiterError):
    """Raised when the judgment service answers with a non-2xx status."""

    status_code: int = 0
    body: str = ""

    def __post_init__(self) -> None:
        self.kind = ArbiterErrorKind.HTTP_STATUS
        if not self.message:
            self.message = f"HTTP {self.status_code}: {self.body[:200]}"
        if self.code == 0:
            self.code = ERROR_ARBITER_HTTP_STATUS
        super().__post_init__()
        self.context["status_code"] = self.status_code


@dataclass
class ArbiterEmptyResponseError(ArbiterError):
    """Raised when the model returns no content."""

    def __post_init__(self) -> None:
        self.kind = ArbiterErrorKind.EMPTY_RESPONSE
        if not self.message:
            self.message = "Empty LLM response"
        if self.code == 0:
            self.code = ERROR_ARBITER_EMPTY_RESPONSE
        super().__post_init__()


@dataclass
class ArbiterParseError(ArbiterError):
    """Raised when the response body or model content is not valid JSON."""

    raw_response: str = ""
    parse_error: str = ""

    def __post_init__(self) -> None:
        self.kind = ArbiterErrorKind.INVALID_JSON
        if not self.message:
            self.message = f"Invalid JSON in LLM response: {self.parse_error}"
        if self.code == 0:
            self.code = ERROR_ARBITER_INVALID_JSON
        super().__post_init__()
        self.context["raw_response"] = self.raw_response[:500]


@dataclass
class ArbiterSchemaError(ArbiterError):
    """Raised when the model's JSON is not exactly {decision, reason}."""

    raw_response: str = ""
    validation_error: str = ""

    def __post_init__(self) -> None:
        self.kind = ArbiterErrorKind.SCHEMA_VIOLATION
        if not self.message:
            self.message = f"LLM response failed validation: {self.validation_error}"
        if self.code == 0:
            self.code = ERROR_ARBITER_SCHEMA
        super().__post_init__()
        self.context["raw_response"] = self.raw_response[:500]
