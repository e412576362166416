"""
Integration tests for the command-line interface.

The hook command is driven through stdin exactly as the agent invokes it.
"""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from autoapprove import __version__
from autoapprove.arbiter.prompt import SYSTEM_PROMPT_VERSION
from autoapprove.audit import LOG_FILE
from autoapprove.cache import CACHE_FILE, DecisionCache
from autoapprove.cli import app
from autoapprove.config import CONFIG_FILE, read_config
from autoapprove.handler import INVALID_INPUT_REASON, PermissionHandler
from autoapprove.schema import Verdict

runner = CliRunner()


def hook_response(stdout: str) -> dict | None:
    """Return the hook's JSON response line, or None when nothing was printed."""
    for line in stdout.splitlines():
        if line.startswith('{"hookSpecificOutput"'):
            return json.loads(line)
    return None


def run_hook(config_dir: Path, payload: object) -> tuple[int, dict | None]:
    stdin = payload if isinstance(payload, str) else json.dumps(payload)
    result = runner.invoke(app, ["hook", "--config-dir", str(config_dir)], input=stdin)
    return result.exit_code, hook_response(result.stdout)


@pytest.fixture
def populated_cache(config_dir: Path) -> DecisionCache:
    cache = DecisionCache(config_dir / CACHE_FILE)
    cache.store("Bash", {"command": "make"}, Verdict.ALLOW, "Builds", "/a")
    cache.store("Bash", {"command": "git push"}, Verdict.DENY, "LLM error: HTTP 500: oops", "/a")
    cache.store("WebFetch", {"url": "https://docs.example"}, Verdict.ALLOW, "Docs", "/b")
    return cache


class TestVersion:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestHookCommand:
    """The hook reads one request from stdin and always exits 0."""

    def test_allow(self, config_dir: Path) -> None:
        code, response = run_hook(config_dir, {"tool_name": "Read", "tool_input": {"file_path": "a"}})

        assert code == 0
        assert response == {
            "hookSpecificOutput": {
                "hookEventName": "PermissionRequest",
                "decision": {"behavior": "allow"},
            }
        }

    def test_destructive_denied(self, config_dir: Path) -> None:
        code, response = run_hook(
            config_dir, {"tool_name": "Bash", "tool_input": {"command": "rm -rf /"}}
        )

        assert code == 0
        assert response is not None
        assert response["hookSpecificOutput"]["decision"]["behavior"] == "deny"

    def test_passthrough_prints_nothing(self, config_dir: Path) -> None:
        code, response = run_hook(
            config_dir, {"tool_name": "AskUserQuestion", "tool_input": {}}
        )
        assert code == 0
        assert response is None

    def test_invalid_json_denied(self, config_dir: Path) -> None:
        code, response = run_hook(config_dir, "{not json")

        assert code == 0
        assert response is not None
        assert response["hookSpecificOutput"]["decision"] == {
            "behavior": "deny",
            "message": INVALID_INPUT_REASON,
        }

    def test_missing_fields_denied(self, config_dir: Path) -> None:
        code, response = run_hook(config_dir, {"tool_input": {}})
        assert code == 0
        assert response is not None
        assert response["hookSpecificOutput"]["decision"]["message"] == INVALID_INPUT_REASON

    def test_no_credential_denies(self, config_dir: Path) -> None:
        code, response = run_hook(
            config_dir, {"tool_name": "Bash", "tool_input": {"command": "npm test"}}
        )

        assert code == 0
        assert response is not None
        decision = response["hookSpecificOutput"]["decision"]
        assert decision["behavior"] == "deny"
        assert "API key" in decision["message"]

    def test_first_run_writes_default_config(self, config_dir: Path) -> None:
        run_hook(config_dir, {"tool_name": "Read", "tool_input": {}})
        assert (config_dir / CONFIG_FILE).exists()

    def test_custom_deny_from_config(self, config_dir: Path) -> None:
        (config_dir / CONFIG_FILE).write_text("custom_deny_patterns:\n  - '^WebSearch$'\n")

        _, response = run_hook(config_dir, {"tool_name": "WebSearch", "tool_input": {"q": "x"}})

        assert response is not None
        assert response["hookSpecificOutput"]["decision"]["behavior"] == "deny"

    def test_internal_failure_denied_and_logged(
        self, config_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def explode(self, payload):
            raise RuntimeError("boom")

        monkeypatch.setattr(PermissionHandler, "handle", explode)

        code, response = run_hook(
            config_dir, {"tool_name": "Bash", "tool_input": {"command": "make"}}
        )

        assert code == 0
        assert response is not None
        decision = response["hookSpecificOutput"]["decision"]
        assert decision["behavior"] == "deny"
        assert "internal error" in decision["message"]

        entries = [json.loads(line) for line in (config_dir / LOG_FILE).read_text().splitlines()]
        assert entries[-1]["tool_name"] == "Bash"
        assert entries[-1]["decision"] == "deny"
        assert "boom" in entries[-1]["reason"]


class TestCacheCommands:
    def test_list_json(self, config_dir: Path, populated_cache: DecisionCache) -> None:
        result = runner.invoke(app, ["cache", "list", "--config-dir", str(config_dir), "--json"])

        assert result.exit_code == 0
        entries = json.loads(result.stdout)
        assert [e["tool_name"] for e in entries] == ["WebFetch", "Bash", "Bash"]

    def test_list_by_project(self, config_dir: Path, populated_cache: DecisionCache) -> None:
        result = runner.invoke(
            app, ["cache", "list", "--config-dir", str(config_dir), "--json", "--project", "/b"]
        )
        assert [e["tool_name"] for e in json.loads(result.stdout)] == ["WebFetch"]

    def test_list_empty(self, config_dir: Path) -> None:
        result = runner.invoke(app, ["cache", "list", "--config-dir", str(config_dir)])
        assert result.exit_code == 0
        assert "No cached decisions" in result.stdout

    def test_stats(self, config_dir: Path, populated_cache: DecisionCache) -> None:
        result = runner.invoke(app, ["cache", "stats", "--config-dir", str(config_dir)])
        assert result.exit_code == 0
        assert "3 (2 allow, 1 deny)" in result.stdout

    def test_clear_all(self, config_dir: Path, populated_cache: DecisionCache) -> None:
        result = runner.invoke(app, ["cache", "clear", "--config-dir", str(config_dir)])

        assert result.exit_code == 0
        assert "Removed 3 cached decision(s)" in result.stdout
        assert populated_cache.list_entries() == []

    def test_clear_deny(self, config_dir: Path, populated_cache: DecisionCache) -> None:
        result = runner.invoke(app, ["cache", "clear", "--config-dir", str(config_dir), "--deny"])

        assert "Removed 1 cached decision(s)" in result.stdout
        assert {e.decision for e in populated_cache.list_entries()} == {"allow"}

    def test_clear_grep(self, config_dir: Path, populated_cache: DecisionCache) -> None:
        result = runner.invoke(
            app, ["cache", "clear", "--config-dir", str(config_dir), "--grep", "LLM error"]
        )
        assert "Removed 1 cached decision(s)" in result.stdout

    def test_clear_key(self, config_dir: Path, populated_cache: DecisionCache) -> None:
        key = populated_cache.list_entries()[0].key
        result = runner.invoke(app, ["cache", "clear", "--config-dir", str(config_dir), "--key", key])

        assert result.exit_code == 0
        assert len(populated_cache.list_entries()) == 2

    def test_clear_unknown_key(self, config_dir: Path, populated_cache: DecisionCache) -> None:
        result = runner.invoke(
            app, ["cache", "clear", "--config-dir", str(config_dir), "--key", "nope"]
        )
        assert result.exit_code == 1
        assert len(populated_cache.list_entries()) == 3

    def test_clear_rejects_two_selectors(
        self, config_dir: Path, populated_cache: DecisionCache
    ) -> None:
        result = runner.invoke(
            app, ["cache", "clear", "--config-dir", str(config_dir), "--allow", "--deny"]
        )
        assert result.exit_code == 1
        assert len(populated_cache.list_entries()) == 3


class TestConfigCommands:
    def test_path(self, config_dir: Path) -> None:
        result = runner.invoke(app, ["config", "path", "--config-dir", str(config_dir)])
        assert result.exit_code == 0
        assert result.stdout.strip() == str(config_dir.resolve() / CONFIG_FILE)

    def test_show_redacts_key(self, config_dir: Path) -> None:
        (config_dir / CONFIG_FILE).write_text("llm:\n  api_key: sk-very-secret\n")

        result = runner.invoke(app, ["config", "show", "--config-dir", str(config_dir)])

        assert result.exit_code == 0
        assert "sk-very-secret" not in result.stdout
        assert json.loads(result.stdout)["llm"]["api_key"] == "***"

    def test_update_prompt(self, config_dir: Path) -> None:
        result = runner.invoke(app, ["config", "update-prompt", "--config-dir", str(config_dir)])

        assert result.exit_code == 0
        assert f"version {SYSTEM_PROMPT_VERSION}" in result.stdout
        assert read_config(config_dir).llm.system_prompt_version == SYSTEM_PROMPT_VERSION


class TestLogCommands:
    def test_tail_after_hook(self, config_dir: Path) -> None:
        run_hook(config_dir, {"tool_name": "Read", "tool_input": {}})

        result = runner.invoke(app, ["log", "tail", "--config-dir", str(config_dir)])
        assert result.exit_code == 0
        assert "Read" in result.stdout

    def test_stats_without_log(self, config_dir: Path) -> None:
        result = runner.invoke(app, ["log", "stats", "--config-dir", str(config_dir)])
        assert result.exit_code == 0
        assert "No decision log" in result.stdout


class TestDoctor:
    def test_missing_key_fails(self, config_dir: Path) -> None:
        result = runner.invoke(app, ["doctor", "--config-dir", str(config_dir), "--json"])

        assert result.exit_code == 1
        report = json.loads(result.stdout)
        assert report["ok"] is False
        checks = {c["name"]: c for c in report["checks"]}
        assert checks["API key"]["ok"] is False
        assert checks["Config"]["ok"] is True
        assert checks["Decision log"]["message"] == "No log yet"

    def test_env_key_passes(self, config_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        result = runner.invoke(app, ["doctor", "--config-dir", str(config_dir), "--json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["ok"] is True
