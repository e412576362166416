"""
File-backed decision cache for autoapprove.

The cache maps a request fingerprint to a previously rendered allow/deny
verdict so repeated requests skip the judgment service.

Design Principles:
    - Content-addressed: key = SHA-256 over canonical JSON of
      (tool_name, tool_input, project_root)
    - Advisory: a missing, unreadable or corrupt store reads as empty
    - Lazy expiry: entries older than the TTL are evicted when looked up
    - Whole-file: every mutation rewrites the store atomically
      (temp file + os.replace); concurrent writers are last-writer-wins
    - Allow/deny only: passthrough and defer can never be stored
"""

import hashlib
import json
import logging
import os
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from autoapprove.errors import CacheWriteError
from autoapprove.schema import CacheEntry, CacheFile, Verdict

logger = logging.getLogger(__name__)

CACHE_FILE = "approval_cache.json"


def compute_fingerprint(
    tool_name: str,
    tool_input: dict[str, Any],
    project_root: str | None = None,
) -> str:
    """
    Compute the cache key for a request.

    Keys are sorted at every nesting level, so two inputs that differ only in
    mapping order hash identically.
    """
    canonical = json.dumps(
        {
            "tool_name": tool_name,
            "tool_input": tool_input,
            "project_root": project_root or "",
        },
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def now_utc() -> datetime:
    return datetime.now(UTC)


@dataclass
class CacheStats:
    """Summary of the cache contents."""

    entries: int
    oldest: datetime | None = None
    allowed: int = 0
    denied: int = 0


class DecisionCache:
    """
    JSON-file decision cache.

    Usage:
        cache = DecisionCache(config_dir / CACHE_FILE, ttl_hours=168)
        entry = cache.lookup("Bash", {"command": "make test"}, "/repo")
        if entry is None:
            ...
            cache.store("Bash", {"command": "make test"}, Verdict.ALLOW,
                        "Runs the test suite", "/repo")

    Attributes:
        path: Location of the JSON store
        enabled: When False, lookup always misses and store does nothing
        ttl: Maximum entry age
    """

    def __init__(
        self,
        path: str | Path,
        enabled: bool = True,
        ttl_hours: float = 168,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.path = Path(path)
        self.enabled = enabled
        self.ttl = timedelta(hours=ttl_hours)
        self._now = now or now_utc

    # =========================================================================
    # Store I/O
    # =========================================================================

    def _load(self) -> dict[str, CacheEntry]:
        """Read the whole store; anything unreadable is an empty cache."""
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning("Cannot read decision cache %s: %s", self.path, e)
            return {}

        try:
            return CacheFile.validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "Decision cache %s is corrupt, treating as empty (%d errors)",
                self.path,
                e.error_count(),
            )
            return {}

    def _save(self, entries: dict[str, CacheEntry]) -> None:
        """Rewrite the whole store atomically."""
        payload = CacheFile.dump_json(entries, indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(payload)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise CacheWriteError(path=str(self.path), underlying_error=str(e)) from e

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self._now() - entry.created_at > self.ttl

    # =========================================================================
    # Pipeline Operations
    # =========================================================================

    def lookup(
        self,
        tool_name: str,
        tool_input: dict[str, Any],
        project_root: str | None = None,
    ) -> CacheEntry | None:
        """
        Return the cached verdict for a request, or None.

        An expired entry is evicted (and the store rewritten) before
        returning None.
        """
        if not self.enabled:
            return None
        return self.lookup_key(compute_fingerprint(tool_name, tool_input, project_root))

    def lookup_key(self, key: str) -> CacheEntry | None:
        """Return the cached verdict for a fingerprint, or None."""
        if not self.enabled:
            return None

        entries = self._load()
        entry = entries.get(key)
        if entry is None:
            return None

        if self._is_expired(entry):
            del entries[key]
            try:
                self._save(entries)
            except CacheWriteError as e:
                logger.warning("Could not evict expired cache entry: %s", e.message)
            return None

        return entry

    def store(
        self,
        tool_name: str,
        tool_input: dict[str, Any],
        decision: Verdict,
        reason: str,
        project_root: str | None = None,
    ) -> str | None:
        """
        Record an allow/deny verdict.

        Returns:
            The fingerprint written, or None when the cache is disabled

        Raises:
            ValueError: If decision is not allow or deny
            CacheWriteError: If the store cannot be rewritten
        """
        if decision not in (Verdict.ALLOW, Verdict.DENY):
            raise ValueError(f"Only allow/deny verdicts can be cached, got {decision.value}")
        if not self.enabled:
            return None

        key = compute_fingerprint(tool_name, tool_input, project_root)
        entries = self._load()
        entries[key] = CacheEntry(
            key=key,
            decision=decision.value,
            reason=reason,
            created_at=self._now(),
            tool_name=tool_name,
            tool_input=tool_input,
            project_root=project_root,
        )
        self._save(entries)
        return key

    # =========================================================================
    # Administrative Operations
    # =========================================================================

    def clear(self) -> int:
        """Remove every entry. Returns how many were removed."""
        entries = self._load()
        self._save({})
        return len(entries)

    def clear_by_decision(self, decision: Verdict) -> int:
        """Remove every entry with the given verdict."""
        entries = self._load()
        kept = {k: e for k, e in entries.items() if e.decision != decision.value}
        removed = len(entries) - len(kept)
        if removed:
            self._save(kept)
        return removed

    def clear_by_key(self, key: str) -> bool:
        """Remove one entry by fingerprint. Returns whether it existed."""
        entries = self._load()
        if key not in entries:
            return False
        del entries[key]
        self._save(entries)
        return True

    def clear_matching(self, text: str) -> int:
        """
        Remove entries whose tool name, reason, project root or input contain
        text (case-insensitive).
        """
        needle = text.lower()
        entries = self._load()
        kept: dict[str, CacheEntry] = {}
        for key, entry in entries.items():
            searchable = " ".join([
                entry.tool_name,
                entry.reason,
                entry.project_root or "",
                json.dumps(entry.tool_input, default=str),
            ]).lower()
            if needle not in searchable:
                kept[key] = entry

        removed = len(entries) - len(kept)
        if removed:
            self._save(kept)
        return removed

    def list_entries(self, project_root: str | None = None) -> list[CacheEntry]:
        """List entries, most recent first, optionally for one project."""
        entries = list(self._load().values())
        if project_root:
            entries = [e for e in entries if e.project_root == project_root]
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries

    def stats(self) -> CacheStats:
        entries = list(self._load().values())
        if not entries:
            return CacheStats(entries=0)
        return CacheStats(
            entries=len(entries),
            oldest=min(e.created_at for e in entries),
            allowed=sum(1 for e in entries if e.decision == "allow"),
            denied=sum(1 for e in entries if e.decision == "deny"),
        )
