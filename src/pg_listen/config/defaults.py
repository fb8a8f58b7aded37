"""Packaged listener defaults and config layering."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from pg_listen.config.models import ListenerConfig

DEFAULTS_FILE = Path(__file__).parent / "defaults" / "listener.yaml"


def load_defaults() -> dict[str, Any]:
    """Built-in defaults shipped inside the package."""
    with DEFAULTS_FILE.open() as f:
        return yaml.safe_load(f) or {}  # type: ignore[no-any-return]


def merge_layers(*layers: dict[str, Any]) -> dict[str, Any]:
    """Combine *layers* left to right into a new dict.

    Nested mappings are combined key by key; any other value in a later
    layer replaces the earlier one outright, lists included.
    """
    merged: dict[str, Any] = {}
    for layer in layers:
        for key, value in layer.items():
            current = merged.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                value = merge_layers(current, value)
            merged[key] = value
    return merged


def build_listener_config(*layers: dict[str, Any]) -> ListenerConfig:
    """Validate the defaults with *layers* applied on top."""
    return ListenerConfig.model_validate(merge_layers(load_defaults(), *layers))
