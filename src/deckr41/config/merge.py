"""Deep merge used for settings cascading and backend overrides.

Settings files (system, user, project) and user backend overrides are
layered on top of each other with the same rules.
"""

from __future__ import annotations

from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict with `override` layered over `base`.

    Rules:
    - nested dicts merge recursively
    - lists and scalars in `override` replace the base value
    - None in `override` leaves the base value alone

    Neither input is mutated.
    """
    merged = dict(base)

    for key, value in override.items():
        if value is None:
            continue

        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value

    return merged


def merge_configs(*layers: dict[str, Any] | None) -> dict[str, Any]:
    """Merge layers in order; later layers win. Empty layers are skipped."""
    merged: dict[str, Any] = {}
    for layer in layers:
        if layer:
            merged = deep_merge(merged, layer)
    return merged
