"""Settings management for deckr41.

Hierarchical YAML settings:
- System-level (/etc/deckr41/ or %PROGRAMDATA%)
- User-level (~/.config/deckr41/, ~/.d41/ or %APPDATA%)
- Project-level ($project/.d41/)
- Environment variable overrides (highest priority)

Example usage:
    from deckr41.config import load_settings

    settings = load_settings(project_root="/path/to/project")
    print(settings.active_backend)
"""

from deckr41.config.loader import load_settings, load_yaml_file
from deckr41.config.paths import (
    RC_FILENAMES,
    get_config_paths,
    get_default_rc_path,
    get_project_config_path,
    get_user_config_path,
    get_user_rc_path,
)
from deckr41.config.schema import LoggingConfig, Settings, WatchConfig
from deckr41.config.secrets import clear_secret_cache, fetch_secret

__all__ = [
    "Settings",
    "LoggingConfig",
    "WatchConfig",
    "load_settings",
    "load_yaml_file",
    "fetch_secret",
    "clear_secret_cache",
    "RC_FILENAMES",
    "get_config_paths",
    "get_default_rc_path",
    "get_project_config_path",
    "get_user_config_path",
    "get_user_rc_path",
]
