"""Backend credentials.

A backend's `credential_env` names the variable holding its API key. The
value is taken from the environment, then from `.env.secrets` in the
working directory, then from `.env.secrets` next to the user's settings
(`~/.config/deckr41/.env.secrets`). Empty values count as unset.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import dotenv_values

from deckr41.config.paths import get_user_config_dir

SECRETS_FILE = ".env.secrets"


def secret_files() -> list[Path]:
    """Secrets files to consult, in lookup order."""
    files = [Path.cwd() / SECRETS_FILE]
    user_dir = get_user_config_dir()
    if user_dir is not None:
        files.append(user_dir / SECRETS_FILE)
    return files


@lru_cache(maxsize=8)
def _read_secrets(path: Path) -> dict[str, str | None]:
    if not path.is_file():
        return {}
    return dotenv_values(path)


def fetch_secret(
    key: str,
    default: str | None = None,
    secrets_path: Path | None = None,
) -> str | None:
    """Look up credential `key`.

    Args:
        key: Variable name, e.g. "OPENAI_API_KEY".
        default: Returned when no source has a non-empty value.
        secrets_path: Consult only this file after the environment.
    """
    value = os.environ.get(key)
    if value:
        return value

    files = [secrets_path] if secrets_path is not None else secret_files()
    for path in files:
        found = _read_secrets(path.absolute()).get(key)
        if found:
            return found
    return default


def clear_secret_cache() -> None:
    """Forget parsed secrets files, e.g. after editing one."""
    _read_secrets.cache_clear()
