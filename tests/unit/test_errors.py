"""
Unit tests for the exception hierarchy.
"""

import pytest

from autoapprove.errors import (
    ERROR_ARBITER_HTTP_STATUS,
    ERROR_ARBITER_MISSING_CREDENTIAL,
    ERROR_CACHE_WRITE,
    ERROR_CONFIG_LOAD,
    ArbiterConnectionError,
    ArbiterCredentialError,
    ArbiterEmptyResponseError,
    ArbiterError,
    ArbiterErrorKind,
    ArbiterHTTPError,
    ArbiterParseError,
    ArbiterSchemaError,
    ArbiterTimeoutError,
    AutoApproveError,
    CacheWriteError,
    ConfigLoadError,
    InvalidRequestError,
)


class TestAutoApproveError:
    """Tests for the base error."""

    def test_str_includes_code_and_suggestion(self) -> None:
        error = AutoApproveError(message="boom", code=42, suggestion="try again")
        assert str(error) == "[E42] boom\nSuggestion: try again"

    def test_to_dict(self) -> None:
        error = InvalidRequestError(validation_error="tool_name missing")
        data = error.to_dict()

        assert data["error_type"] == "InvalidRequestError"
        assert data["code"] == 1001
        assert data["context"]["validation_error"] == "tool_name missing"

    def test_is_catchable_as_exception(self) -> None:
        with pytest.raises(AutoApproveError):
            raise CacheWriteError(path="/tmp/cache.json", underlying_error="disk full")


class TestConfigAndCacheErrors:
    def test_config_load_error(self) -> None:
        error = ConfigLoadError(path="/x/config.yaml", underlying_error="bad yaml")
        assert error.code == ERROR_CONFIG_LOAD
        assert "/x/config.yaml" in error.message
        assert error.suggestion is not None
        assert error.context["path"] == "/x/config.yaml"

    def test_cache_write_error(self) -> None:
        error = CacheWriteError(path="/x/cache.json", underlying_error="read-only")
        assert error.code == ERROR_CACHE_WRITE
        assert error.context == {"path": "/x/cache.json", "underlying_error": "read-only"}


class TestArbiterErrors:
    """Every arbiter error carries its kind."""

    @pytest.mark.parametrize(
        ("error", "kind"),
        [
            (ArbiterCredentialError(model="m"), ArbiterErrorKind.MISSING_CREDENTIAL),
            (ArbiterConnectionError(model="m", url="http://x"), ArbiterErrorKind.CONNECTION),
            (ArbiterTimeoutError(model="m", timeout_seconds=5), ArbiterErrorKind.TIMEOUT),
            (ArbiterHTTPError(model="m", status_code=500), ArbiterErrorKind.HTTP_STATUS),
            (ArbiterEmptyResponseError(model="m"), ArbiterErrorKind.EMPTY_RESPONSE),
            (ArbiterParseError(model="m", parse_error="x"), ArbiterErrorKind.INVALID_JSON),
            (ArbiterSchemaError(model="m"), ArbiterErrorKind.SCHEMA_VIOLATION),
        ],
    )
    def test_kind(self, error: ArbiterError, kind: ArbiterErrorKind) -> None:
        assert isinstance(error, ArbiterError)
        assert error.kind == kind
        assert error.context["kind"] == kind.value
        assert error.context["model"] == "m"

    def test_credential_message_mentions_api_key(self) -> None:
        error = ArbiterCredentialError(model="m")
        assert error.code == ERROR_ARBITER_MISSING_CREDENTIAL
        assert "API key" in error.message

    def test_http_error_truncates_body(self) -> None:
        error = ArbiterHTTPError(model="m", status_code=503, body="x" * 1000)
        assert error.code == ERROR_ARBITER_HTTP_STATUS
        assert error.message == "HTTP 503: " + "x" * 200

    def test_parse_error_truncates_raw_response(self) -> None:
        error = ArbiterParseError(model="m", raw_response="y" * 1000, parse_error="bad")
        assert len(error.context["raw_response"]) == 500
