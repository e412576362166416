"""
Project context for autoapprove.

Resolves which project a request belongs to and reads the per-project inputs
the model arbiter uses:
    - .autoapprove.md: plain-text policy appended to the system prompt
    - .claude/settings.json, .claude/settings.local.json:
      {"autoApprove": {"trustedPaths": [...]}}
"""

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

PROJECT_INSTRUCTIONS_FILE = ".autoapprove.md"
SETTINGS_FILES = (
    Path(".claude") / "settings.json",
    Path(".claude") / "settings.local.json",
)
SETTINGS_SECTION = "autoApprove"


def _find_ancestor_with(start: Path, marker: str) -> Path | None:
    for candidate in (start, *start.parents):
        if (candidate / marker).exists():
            return candidate
    return None


def resolve_project_root(cwd: str | Path) -> str:
    """
    Resolve the project root for a working directory.

    Nearest ancestor holding .git wins; otherwise the nearest holding .claude;
    otherwise cwd itself.
    """
    start = Path(cwd)
    for marker in (".git", ".claude"):
        found = _find_ancestor_with(start, marker)
        if found is not None:
            return str(found)
    return str(cwd)


def get_trusted_paths(project_root: str | Path) -> list[str]:
    """
    Read trusted paths from the project's agent settings files.

    Paths from both files are merged in order without duplicates. Unreadable
    or malformed files are skipped.
    """
    trusted: list[str] = []
    root = Path(project_root)

    for relative in SETTINGS_FILES:
        settings_path = root / relative
        if not settings_path.exists():
            continue
        try:
            settings = json.loads(settings_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.debug("Skipping unreadable settings %s: %s", settings_path, e)
            continue

        section = settings.get(SETTINGS_SECTION) if isinstance(settings, dict) else None
        paths = section.get("trustedPaths") if isinstance(section, dict) else None
        if not isinstance(paths, list):
            continue
        for path in paths:
            if isinstance(path, str) and path not in trusted:
                trusted.append(path)

    return trusted


def get_project_instructions(project_root: str | Path) -> str | None:
    """Return the project's policy text, or None when absent or blank."""
    path = Path(project_root) / PROJECT_INSTRUCTIONS_FILE
    if not path.exists():
        return None
    try:
        content = path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Ignoring unreadable project instructions %s: %s", path, e)
        return None
    return content or None
