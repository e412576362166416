"""
Append-only decision log for autoapprove.

Every request that reaches a terminal decision (allow, deny or passthrough)
produces exactly one JSON line in <config_dir>/approval.jsonl, so operators
can audit what was auto-approved and why.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from autoapprove.schema import DecisionLogEntry

logger = logging.getLogger(__name__)

LOG_FILE = "approval.jsonl"


@dataclass
class LogStats:
    entries: int
    size_bytes: int


class DecisionLog:
    """
    JSONL audit log.

    Attributes:
        path: Location of the log file
        enabled: When False, record() does nothing
    """

    def __init__(self, path: str | Path, enabled: bool = True) -> None:
        self.path = Path(path)
        self.enabled = enabled

    def record(self, entry: DecisionLogEntry) -> None:
        """
        Append one entry.

        A write failure is reported through logging and does not affect the
        decision already made.
        """
        if not self.enabled:
            return
        line = entry.model_dump_json() + "\n"
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.warning("Cannot write decision log %s: %s", self.path, e)

    def exists(self) -> bool:
        return self.path.exists()

    def stats(self) -> LogStats | None:
        """Entry count and size, or None if there is no log."""
        try:
            content = self.path.read_text(encoding="utf-8", errors="replace")
            size = self.path.stat().st_size
        except FileNotFoundError:
            return None
        entries = sum(1 for line in content.splitlines() if line.strip())
        return LogStats(entries=entries, size_bytes=size)

    def tail(self, count: int = 20) -> list[dict[str, Any]]:
        """Return the last count entries, oldest first. Unparseable lines are skipped."""
        try:
            lines = self.path.read_text(encoding="utf-8", errors="replace").splitlines()
        except FileNotFoundError:
            return []

        entries: list[dict[str, Any]] = []
        for line in reversed(lines):
            if len(entries) >= count:
                break
            if not line.strip():
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        entries.reverse()
        return entries
