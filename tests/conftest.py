"""
Pytest configuration and fixtures for autoapprove tests.

This module provides shared fixtures used across unit, integration,
and security tests.
"""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from autoapprove.arbiter import Arbiter, ArbiterContext
from autoapprove.errors import ArbiterError
from autoapprove.schema import Config, Decision, DecisionSource


class StubArbiter(Arbiter):
    """Arbiter returning a fixed decision (or raising) and recording calls."""

    def __init__(
        self,
        decision: Decision | None = None,
        error: ArbiterError | None = None,
    ) -> None:
        self.decision = decision or Decision.allow("Looks routine", source=DecisionSource.MODEL)
        self.error = error
        self.calls: list[ArbiterContext] = []

    def judge(self, context: ArbiterContext) -> Decision:
        self.calls.append(context)
        if self.error is not None:
            raise self.error
        return self.decision


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer credentials and config out of every test."""
    for name in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "LLM_API_KEY", "AUTOAPPROVE_HOME"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config_dir(temp_dir: Path) -> Path:
    """A config directory inside the temp dir."""
    path = temp_dir / "config"
    path.mkdir()
    return path


@pytest.fixture
def default_config() -> Config:
    return Config()


@pytest.fixture
def project_dir(temp_dir: Path) -> Path:
    """A git project with a nested working directory."""
    root = temp_dir / "project"
    (root / ".git").mkdir(parents=True)
    (root / "src" / "pkg").mkdir(parents=True)
    return root


@pytest.fixture
def stub_arbiter() -> StubArbiter:
    return StubArbiter()
