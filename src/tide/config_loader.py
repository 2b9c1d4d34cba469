"""Load TideConfig from tide.yaml / tide.toml if present.

Merges file config with keyword overrides. Overrides take precedence.
"""

from __future__ import annotations

import tomllib
from dataclasses import fields
from typing import TYPE_CHECKING

import yaml

from tide._errors import ConfigError
from tide.config import TideConfig

if TYPE_CHECKING:
    from pathlib import Path

_KNOWN_KEYS = frozenset(f.name for f in fields(TideConfig))


def load_config(root: Path, **overrides: object) -> TideConfig:
    """Load TideConfig from root, optionally merging tide.yaml.

    Looks for tide.yaml, tide.yml, or tide.toml in root. Keys may sit at the
    top level or under a ``tide`` section. Overrides whose value is None are
    treated as "not given" so CLI defaults don't mask the file.

    Raises:
        ConfigError: If a config file exists but cannot be parsed.

    """
    file_config = _read_tide_config(root)
    merged = {**file_config, **{k: v for k, v in overrides.items() if v is not None}}
    return TideConfig(**merged)  # type: ignore[arg-type]


def _read_tide_config(root: Path) -> dict[str, object]:
    """Read tide config from yaml/toml if present. Returns empty dict otherwise."""
    for name in ("tide.yaml", "tide.yml"):
        path = root / name
        if path.is_file():
            return _parse_yaml(path)
    toml_path = root / "tide.toml"
    if toml_path.is_file():
        return _parse_toml(toml_path)
    return {}


def _parse_yaml(path: Path) -> dict[str, object]:
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError) as exc:
        msg = f"Failed to read {path.name}: {exc}"
        raise ConfigError(msg) from exc
    return _flatten_tide_section(data, path)


def _parse_toml(path: Path) -> dict[str, object]:
    try:
        data = tomllib.loads(path.read_text())
    except (OSError, tomllib.TOMLDecodeError) as exc:
        msg = f"Failed to read {path.name}: {exc}"
        raise ConfigError(msg) from exc
    return _flatten_tide_section(data, path)


def _flatten_tide_section(data: object, path: Path) -> dict[str, object]:
    """Extract tide.* keys into top-level config, dropping unknown keys."""
    if not isinstance(data, dict):
        msg = f"{path.name} must contain a mapping, got {type(data).__name__}"
        raise ConfigError(msg)
    result: dict[str, object] = {}
    for k, v in data.items():
        if k in _KNOWN_KEYS:
            result[k] = v
    section = data.get("tide")
    if isinstance(section, dict):
        for k, v in section.items():
            if k in _KNOWN_KEYS:
                result[k] = v
    return result
