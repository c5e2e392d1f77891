"""
Configuration loading and persistence.

Implements the configuration precedence chain:
    defaults < user config file < user .env < project .env < shell env

The .env files only supply the OPENSPEC_SYNC_* variables listed in
``ENV_OVERRIDES``; other keys in them are ignored and the process
environment is never modified.

The user config file is read and written as a unit. Credentials live in
the ``jira`` section, stored with the same keys the file has always used
(``host``, ``email``, ``apiToken``).
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from dotenv import dotenv_values
from pydantic import ValidationError

from openspec_sync.core.exceptions import ConfigurationError, InvalidConfigError

from .models import AppConfig, JiraConfig

logger = logging.getLogger(__name__)

APP_DIR_NAME = "openspec-sync"

# Env var -> (section, key) overrides, highest precedence
ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "OPENSPEC_SYNC_JIRA_HOST": ("jira", "host"),
    "OPENSPEC_SYNC_JIRA_EMAIL": ("jira", "email"),
    "OPENSPEC_SYNC_JIRA_API_TOKEN": ("jira", "apiToken"),
    "OPENSPEC_SYNC_SPEC_DIR": (None, "spec_dir"),
}

# Global cache to avoid reloading config multiple times per session
_config_cache: AppConfig | None = None


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/openspec-sync/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / APP_DIR_NAME / "config.json"


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            return None
    except (json.JSONDecodeError, OSError) as e:
        # Config system should be resilient: a broken file means "not configured"
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def get_user_env_path() -> Path:
    """Path of the user-level .env file next to config.json."""
    return get_xdg_config_home() / APP_DIR_NAME / ".env"


def read_env_files(project_dir: Path | None = None) -> dict[str, str]:
    """
    Collect OPENSPEC_SYNC_* values from the user and project .env files.

    The project file (``<project_dir>/.env``, default cwd) wins over the
    user file. Blank values and unrelated keys are skipped.

    Returns:
        Variable name to value, for the keys in ``ENV_OVERRIDES`` only
    """
    if project_dir is None:
        project_dir = Path.cwd()

    found: dict[str, str] = {}
    for path in (get_user_env_path(), project_dir / ".env"):
        if not path.is_file():
            continue
        for key, value in dotenv_values(path).items():
            if key in ENV_OVERRIDES and value:
                found[key] = value
        logger.debug("Read .env file %s", path)
    return found


def apply_env_overrides(
    config_dict: dict[str, Any],
    env_files: dict[str, str] | None = None,
) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Supported env vars:
        OPENSPEC_SYNC_JIRA_HOST - overrides jira.host
        OPENSPEC_SYNC_JIRA_EMAIL - overrides jira.email
        OPENSPEC_SYNC_JIRA_API_TOKEN - overrides jira.apiToken
        OPENSPEC_SYNC_SPEC_DIR - overrides spec_dir

    Args:
        config_dict: Configuration dictionary to override
        env_files: Values read from .env files, used when the shell
            does not set the variable

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = dict(config_dict)
    env_files = env_files or {}

    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name) or env_files.get(env_name)
        if not value:
            continue
        if section is None:
            result[key] = value
        else:
            current = result.get(section)
            result[section] = {**(current if isinstance(current, dict) else {}), key: value}

    return result


def _validate(data: dict[str, Any]) -> AppConfig:
    """Build an AppConfig, reporting bad values as InvalidConfigError."""
    try:
        return AppConfig(**data)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise InvalidConfigError(
            f"Invalid configuration ({len(problems)} problem(s))",
            problems=problems,
            config_path=str(get_user_config_path()),
        ) from e


def load_config(use_cache: bool = True, project_dir: Path | None = None) -> AppConfig:
    """
    Load configuration with .env and env var overrides applied.

    Args:
        use_cache: If True, return cached config from previous load
        project_dir: Directory whose .env is read (defaults to cwd)

    Returns:
        Validated AppConfig instance

    Raises:
        InvalidConfigError: If the merged config fails Pydantic validation
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged = load_json_file(get_user_config_path()) or {}
    merged = apply_env_overrides(merged, read_env_files(project_dir))

    config = _validate(merged)
    _config_cache = config
    return config


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    global _config_cache
    _config_cache = None


def save_config(config: AppConfig) -> Path:
    """
    Write configuration to the user config file.

    Env var overrides are not persisted; only what is in ``config``.

    Returns:
        Path the config was written to
    """
    path = get_user_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(by_alias=True, exclude_none=True)
    temp_path = path.with_suffix(".tmp")
    try:
        temp_path.write_text(json.dumps(data, indent=2))
        temp_path.replace(path)
    except OSError:
        if temp_path.exists():
            temp_path.unlink()
        raise

    clear_cache()
    return path


def _load_file_config() -> AppConfig:
    """Load the user config file alone, ignoring env overrides."""
    return _validate(load_json_file(get_user_config_path()) or {})


def get_jira_config(config: AppConfig | None = None) -> JiraConfig | None:
    """
    Get Jira credentials if fully configured.

    Returns:
        JiraConfig with host, email and token set, or None.
    """
    if config is None:
        config = load_config()
    if config.jira is not None and config.jira.is_complete:
        return config.jira
    return None


def require_jira_config(config: AppConfig | None = None) -> JiraConfig:
    """
    Get Jira credentials or fail.

    Raises:
        ConfigurationError: If any of host, email or API token is missing.
    """
    jira = get_jira_config(config)
    if jira is None:
        raise ConfigurationError(
            "Jira is not configured",
            config_path=str(get_user_config_path()),
        )
    return jira


def set_jira_config(jira: JiraConfig) -> Path:
    """Store Jira credentials, keeping the rest of the config file."""
    config = _load_file_config()
    config.jira = jira
    return save_config(config)


def clear_jira_config() -> Path:
    """Remove stored Jira credentials, keeping the rest of the config file."""
    config = _load_file_config()
    config.jira = None
    return save_config(config)
