"""Listener config files: YAML with environment references."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from pg_listen.config.defaults import build_listener_config
from pg_listen.config.models import ListenerConfig

# ${NAME} or ${NAME:-fallback}; the fallback runs up to the closing brace
_ENV_REF = re.compile(r"\$\{(?P<name>\w+)(?::-(?P<fallback>[^}]*))?\}")


def _lookup(match: re.Match[str]) -> str:
    name = match["name"]
    value = os.environ.get(name, match["fallback"])
    if value is None:
        msg = f"Environment variable '{name}' is not set and has no fallback"
        raise ValueError(msg)
    return value


def expand_env(value: Any) -> Any:
    """Substitute environment references in every string of parsed YAML."""
    if isinstance(value, str):
        return _ENV_REF.sub(_lookup, value)
    if isinstance(value, dict):
        return {key: expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    return value


def read_config_file(path: str | Path) -> dict[str, Any]:
    """Parse a listener YAML file; an empty file is an empty mapping."""
    p = Path(path)
    try:
        text = p.read_text()
    except FileNotFoundError as exc:
        msg = f"Config file not found: {p}"
        raise FileNotFoundError(msg) from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        where = f" at line {mark.line + 1}, column {mark.column + 1}" if mark else ""
        msg = f"Cannot parse {p}{where}: {exc}"
        raise ValueError(msg) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{p} must hold a mapping at the top level, not {type(data).__name__}"
        raise TypeError(msg)
    return expand_env(data)  # type: ignore[no-any-return]


def load_listener_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> ListenerConfig:
    """Load listener config: built-in defaults, then *path*, then *overrides*.

    *overrides* usually carries the command-line arguments, so the
    connection target and channel given on the command line always win over
    the file.
    """
    layers: list[dict[str, Any]] = []
    if path is not None:
        layers.append(read_config_file(path))
    if overrides:
        layers.append(overrides)
    try:
        return build_listener_config(*layers)
    except ValidationError as exc:
        source = path or "command line"
        msg = f"Invalid listener config ({source}):\n{exc}"
        raise ValueError(msg) from exc
