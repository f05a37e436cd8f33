"""
Property Loading with File/Env/Override Precedence

Implements three-level property composition:
1. **File level** (YAML/JSON): nested mappings flattened to dotted keys
2. **Environment level**: RESTCORE_* prefixed variables override file keys,
   matched case-insensitively
3. **Override level**: programmatic overrides win

Environment variables use double-underscore notation:
  RESTCORE_HTTP__REQUEST__ORDERS__SOCKETTIMEOUT=5000  →  http.request.orders.sockettimeout=5000
  RESTCORE_HTTP__PROXY__ENABLED=true                  →  http.proxy.enabled=True

JSON values are automatically parsed; strings are type-coerced when possible.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

import yaml

from .models import ProtectionConfig
from .properties import MappingPropertySource

_LOGGER = logging.getLogger(__name__)

DEFAULT_ENV_PREFIX = "RESTCORE_"
PROTECTION_SECTION = "protection"


def _read_file(path: str | Path) -> dict[str, Any]:
    """
    Read YAML or JSON config file.

    Raises:
        ValueError: If file cannot be read or parsed
    """
    p = Path(path)
    if not p.exists():
        raise ValueError(f"Config file not found: {path}")

    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ValueError(f"Cannot read config file {path}: {e}") from e

    suffix = p.suffix.lower()

    if suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e
    elif suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e
    else:
        raise ValueError(f"Unsupported file format: {suffix}. Use .yaml or .json")

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")
    return data


def _flatten(data: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """
    Flatten nested mappings into dotted keys.

    Example:
        {"http": {"request": {"orders": {"socketTimeout": 5000}}}}
        → {"http.request.orders.socketTimeout": 5000}
    """
    flat: dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(_flatten(value, dotted))
        else:
            flat[dotted] = value
    return flat


def _coerce_env_value(value: str) -> Any:
    """
    Attempt to coerce environment variable string to appropriate type.

    Tries JSON parsing first (handles bools, numbers, null).
    Falls back to string if JSON fails.
    """
    try:
        return json.loads(value)
    except (json.JSONDecodeError, ValueError):
        pass

    if value.lower() in ("true", "false"):
        return value.lower() == "true"

    return value


def _env_overrides(
    environ: Mapping[str, str], env_prefix: str = DEFAULT_ENV_PREFIX
) -> dict[str, Any]:
    """Collect RESTCORE_* variables as dotted property keys."""
    overrides: dict[str, Any] = {}
    for name, raw in environ.items():
        if not name.startswith(env_prefix):
            continue
        dotted = name[len(env_prefix) :].replace("__", ".").lower()
        if not dotted:
            continue
        overrides[dotted] = _coerce_env_value(raw)
        _LOGGER.debug("Property override from environment: %s", dotted)
    return overrides


def load_properties(
    path: Optional[str | Path] = None,
    *,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> MappingPropertySource:
    """
    Build a live property source from file, environment and overrides.

    The ``protection`` section of the file (if any) is not flattened into
    properties; read it with :func:`load_protection_config`.

    Args:
        path: Optional YAML/JSON file
        env_prefix: Prefix of environment variables to overlay
        environ: Environment mapping (defaults to ``os.environ``)
        overrides: Dotted-key overrides applied last

    Returns:
        MappingPropertySource populated in precedence order
    """
    values: dict[str, Any] = {}
    if path is not None:
        data = _read_file(path)
        data.pop(PROTECTION_SECTION, None)
        values.update(_flatten(data))
        _LOGGER.debug("Loaded %d properties from %s", len(values), path)

    source = MappingPropertySource(values)
    source.overlay(_env_overrides(os.environ if environ is None else environ, env_prefix))
    if overrides:
        source.update(overrides)
    return source


def load_protection_config(path: Optional[str | Path] = None) -> ProtectionConfig:
    """Read the ``protection`` section of a config file into a ProtectionConfig."""
    if path is None:
        return ProtectionConfig()
    section = _read_file(path).get(PROTECTION_SECTION) or {}
    return ProtectionConfig.model_validate(section)
