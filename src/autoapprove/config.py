"""
Configuration loading for autoapprove.

The config lives in a single YAML file (JSON is valid YAML, so hand-written
JSON configs load too) inside the config directory:

    ~/.autoapprove/config.yaml      (override the directory with AUTOAPPROVE_HOME)

The loaded Config is an explicit value: the CLI loads it once per process and
passes it to every component. Nothing here memoizes it.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from autoapprove.arbiter.prompt import DEFAULT_SYSTEM_PROMPT, SYSTEM_PROMPT_VERSION
from autoapprove.errors import ConfigLoadError, ConfigWriteError
from autoapprove.schema import Config

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "AUTOAPPROVE_HOME"
CONFIG_FILE = "config.yaml"

# Checked in order after llm.api_key
API_KEY_ENV_VARS = ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "LLM_API_KEY")


def get_config_dir() -> Path:
    """Return the config directory (not created)."""
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".autoapprove"


def get_config_path(config_dir: Path | None = None) -> Path:
    return (config_dir or get_config_dir()) / CONFIG_FILE


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Create the config directory if needed and return it."""
    path = config_dir or get_config_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def read_config(config_dir: Path | None = None) -> Config:
    """
    Read and validate the config file.

    Raises:
        FileNotFoundError: If there is no config file
        ConfigLoadError: If the file cannot be parsed or validated
    """
    path = get_config_path(config_dir)
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigLoadError(path=str(path), underlying_error=str(e)) from e

    try:
        return Config.model_validate(data or {})
    except ValidationError as e:
        raise ConfigLoadError(path=str(path), underlying_error=str(e)) from e


def load_config(config_dir: Path | None = None) -> Config:
    """
    Load the config, bootstrapping defaults on first run.

    A missing file is created with defaults. A corrupt file is left untouched
    and defaults are used for this process.
    """
    try:
        return read_config(config_dir)
    except FileNotFoundError:
        config = Config()
        try:
            save_config(config, config_dir)
        except ConfigWriteError as e:
            logger.warning("Could not write default config: %s", e.message)
        return config
    except ConfigLoadError as e:
        logger.warning("%s; using defaults", e.message)
        return Config()


def save_config(config: Config, config_dir: Path | None = None) -> Path:
    """Write the config file and return its path."""
    path = get_config_path(config_dir)
    try:
        ensure_config_dir(path.parent)
        with path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(
                config.model_dump(mode="json"),
                f,
                sort_keys=False,
                allow_unicode=True,
            )
    except OSError as e:
        raise ConfigWriteError(path=str(path), underlying_error=str(e)) from e
    return path


def update_config(updates: dict[str, Any], config_dir: Path | None = None) -> Config:
    """
    Merge top-level updates into the stored config, re-validate, and save.

    Nested sections are merged one level deep so {"cache": {"ttl_hours": 1}}
    keeps cache.enabled.
    """
    current = load_config(config_dir).model_dump()
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(current.get(key), dict):
            current[key] = {**current[key], **value}
        else:
            current[key] = value
    updated = Config.model_validate(current)
    save_config(updated, config_dir)
    return updated


def upgrade_system_prompt(config_dir: Path | None = None) -> Config:
    """Persist the built-in baseline policy text and its version."""
    return update_config(
        {
            "llm": {
                "system_prompt": DEFAULT_SYSTEM_PROMPT,
                "system_prompt_version": SYSTEM_PROMPT_VERSION,
            }
        },
        config_dir,
    )


def get_api_key(config: Config) -> str | None:
    """Return the judgment-service credential: config first, then environment."""
    if config.llm.api_key:
        return config.llm.api_key
    for name in API_KEY_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value
    return None
