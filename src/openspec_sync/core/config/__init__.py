"""
Configuration models, loading and persistence.

Credentials come from the user config file with OPENSPEC_SYNC_* env var
overrides, which may also come from .env files.
"""

from .loader import (
    clear_cache,
    clear_jira_config,
    get_jira_config,
    get_user_config_path,
    get_user_env_path,
    get_xdg_config_home,
    load_config,
    read_env_files,
    require_jira_config,
    save_config,
    set_jira_config,
)
from .models import DEFAULT_ATTACHMENT_NAME, DEFAULT_SPEC_DIR, AppConfig, JiraConfig

__all__ = [
    # Models
    "AppConfig",
    "JiraConfig",
    "DEFAULT_ATTACHMENT_NAME",
    "DEFAULT_SPEC_DIR",
    # Loader functions
    "clear_cache",
    "clear_jira_config",
    "get_jira_config",
    "get_user_config_path",
    "get_user_env_path",
    "get_xdg_config_home",
    "load_config",
    "read_env_files",
    "require_jira_config",
    "save_config",
    "set_jira_config",
]
