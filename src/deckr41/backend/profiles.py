"""Backend profile definitions.

Built-in profiles are loaded from backends.yaml; user overrides from the
settings are deep-merged onto them.
"""

from __future__ import annotations

import importlib.resources
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any

import yaml

from deckr41.config.merge import deep_merge
from deckr41.config.secrets import fetch_secret
from deckr41.errors import BackendConfigError


class BackendFamily(Enum):
    """Wire protocol spoken by a backend."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"


@dataclass
class BackendProfile:
    """A configured backend endpoint."""

    id: str
    family: BackendFamily
    url: str
    default_model: str
    available_models: dict[str, int] = field(default_factory=dict)  # model -> max output tokens
    default_temperature: float = 0.2
    credential: str | None = None
    credential_env: str | None = None

    def max_output_tokens(self, model: str) -> int:
        try:
            return self.available_models[model]
        except KeyError:
            raise BackendConfigError(
                f"Model {model!r} not supported by backend {self.id!r}; "
                f"supported: {sorted(self.available_models)}"
            ) from None


@lru_cache(maxsize=1)
def _load_backends_yaml() -> dict[str, Any]:
    """Load backends.yaml from package resources."""
    resource = importlib.resources.files("deckr41.backend").joinpath("backends.yaml")
    return yaml.safe_load(resource.read_text(encoding="utf-8")) or {}


def builtin_backend_data() -> dict[str, dict[str, Any]]:
    return dict(_load_backends_yaml().get("backends", {}))


def autodetect_order() -> list[str]:
    return list(_load_backends_yaml().get("autodetect", []))


def profile_from_dict(backend_id: str, data: dict[str, Any]) -> BackendProfile:
    """Build a profile from merged raw data.

    Accepts `api_key` as an alias of `credential`. When no credential is
    given, it is read from `credential_env` via fetch_secret().

    Raises:
        BackendConfigError: Required fields are missing or invalid.
    """
    family_str = data.get("family")
    try:
        family = BackendFamily(family_str)
    except ValueError:
        raise BackendConfigError(
            f"Invalid backend {backend_id!r}: family must be 'openai' or 'anthropic', "
            f"got {family_str!r}"
        ) from None

    for required in ("url", "default_model"):
        if not data.get(required):
            raise BackendConfigError(f"Backend {backend_id!r} is missing {required!r}")

    models_raw = data.get("available_models") or {}
    models: dict[str, int] = {}
    for model, limit in models_raw.items():
        if isinstance(limit, dict):
            limit = limit.get("max_output_tokens")
        if not isinstance(limit, int) or limit <= 0:
            raise BackendConfigError(
                f"Backend {backend_id!r} model {model!r} needs a positive max output tokens"
            )
        models[str(model)] = limit

    credential_env = data.get("credential_env")
    credential = data.get("credential") or data.get("api_key")
    if not credential and credential_env:
        credential = fetch_secret(credential_env)

    return BackendProfile(
        id=backend_id,
        family=family,
        url=str(data["url"]),
        default_model=str(data["default_model"]),
        available_models=models,
        default_temperature=float(data.get("temperature", 0.2)),
        credential=credential,
        credential_env=credential_env,
    )


def _normalize_override(values: dict[str, Any]) -> dict[str, Any]:
    """Fold the short `models` key into `available_models`."""
    if "models" not in values:
        return values
    values = dict(values)
    short = values.pop("models") or {}
    values["available_models"] = {**short, **(values.get("available_models") or {})}
    return values


def build_profiles(overrides: dict[str, dict[str, Any]] | None = None) -> dict[str, BackendProfile]:
    """Built-in profiles with `overrides` merged in.

    New backend ids are accepted only when they declare a `family`.

    Raises:
        BackendConfigError: An override names an unknown backend without
            a family, or a merged profile is invalid.
    """
    raw = builtin_backend_data()
    for backend_id, values in (overrides or {}).items():
        values = _normalize_override(values)
        if backend_id not in raw and "family" not in values:
            raise BackendConfigError(
                f"Invalid backend {backend_id!r}, accepted values are "
                f"{sorted(raw)} (or declare a 'family')"
            )
        raw[backend_id] = deep_merge(raw.get(backend_id, {}), values)

    return {backend_id: profile_from_dict(backend_id, data) for backend_id, data in raw.items()}
