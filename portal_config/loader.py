"""
Settings Loader (``portal_config.loader``).

Responsibility
--------------
Reads a YAML settings file, applies environment overrides, and parses the
result into the frozen dataclasses of ``portal_config.schema``.  Callers
should go through ``portal_config.get_settings()``.

Invariants enforced
-------------------
* Unknown sections and keys are rejected, so a typo never silently falls
  back to a default.
* Every value is type-checked; a bad value raises ``ConfigurationError``
  naming the dotted key (``feed.timeout_seconds``).
* Environment overrides win over file values.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid key or value  -> ``ConfigurationError``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from portal_config.schema import (
    DatabaseSettings,
    FeedSettings,
    LoggingSettings,
    PortalSettings,
    SyncSettings,
)
from portal_kernel.exceptions import ConfigurationError

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

# environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "DATABASE_URL": ("database", "url"),
    "UH_API_URL": ("feed", "base_url"),
    "UH_API_KEY": ("feed", "api_key"),
    "UH_TIMEOUT_SECONDS": ("feed", "timeout_seconds"),
    "NSI_SYNC_INTERVAL_SECONDS": ("sync", "interval_seconds"),
    "LOG_LEVEL": ("logging", "level"),
}

_SECTIONS: dict[str, type] = {
    "database": DatabaseSettings,
    "feed": FeedSettings,
    "sync": SyncSettings,
    "logging": LoggingSettings,
}

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off"})
_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def _coerce(key: str, value: Any, annotation: str) -> Any:
    """Convert a YAML or environment value to the annotated field type."""
    optional = annotation.endswith("| None")
    base = annotation.removesuffix("| None").strip()

    if value is None:
        if optional:
            return None
        raise ConfigurationError(key, "must not be null")

    if base == "bool":
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in _TRUE_STRINGS:
            return True
        if isinstance(value, str) and value.lower() in _FALSE_STRINGS:
            return False
        raise ConfigurationError(key, f"expected a boolean, got {value!r}")

    if base in ("int", "float"):
        if isinstance(value, bool):
            raise ConfigurationError(key, f"expected a number, got {value!r}")
        try:
            number = int(value) if base == "int" else float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(key, f"expected {base}, got {value!r}") from None
        if number < 0:
            raise ConfigurationError(key, "must not be negative")
        return number

    if base == "str":
        if not isinstance(value, (str, int, float)):
            raise ConfigurationError(key, f"expected a string, got {value!r}")
        text = str(value)
        if not text and not optional:
            raise ConfigurationError(key, "must not be empty")
        return text or None

    return value


def parse_section(name: str, data: Mapping[str, Any] | None) -> Any:
    """Build the dataclass for one settings section."""
    cls = _SECTIONS[name]
    data = data or {}
    if not isinstance(data, Mapping):
        raise ConfigurationError(name, "section must be a mapping")

    known = {f.name: f for f in fields(cls)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ConfigurationError(f"{name}.{unknown[0]}", "unknown setting")

    kwargs = {
        key: _coerce(f"{name}.{key}", value, str(known[key].type))
        for key, value in data.items()
    }
    return cls(**kwargs)


def apply_env_overrides(
    raw: dict[str, Any],
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return a copy of ``raw`` with environment overrides applied."""
    environ = os.environ if environ is None else environ
    merged = {section: dict(raw.get(section) or {}) for section in _SECTIONS}
    for section in raw:
        if section not in _SECTIONS:
            merged[section] = raw[section]

    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is not None and value != "":
            merged[section][key] = value
    return merged


def build_settings(
    raw: dict[str, Any],
    environ: Mapping[str, str] | None = None,
    source: str | None = None,
) -> PortalSettings:
    """Parse a raw settings mapping (plus environment) into PortalSettings."""
    unknown = sorted(set(raw) - set(_SECTIONS))
    if unknown:
        raise ConfigurationError(unknown[0], "unknown settings section")

    merged = apply_env_overrides(raw, environ)
    settings = PortalSettings(
        database=parse_section("database", merged["database"]),
        feed=parse_section("feed", merged["feed"]),
        sync=parse_section("sync", merged["sync"]),
        logging=parse_section("logging", merged["logging"]),
        source=source,
    )

    level = settings.logging.level.upper()
    if level not in _LOG_LEVELS:
        raise ConfigurationError("logging.level", f"unknown level {settings.logging.level!r}")
    if settings.sync.interval_seconds <= 0:
        raise ConfigurationError("sync.interval_seconds", "must be positive")
    if settings.feed.timeout_seconds <= 0:
        raise ConfigurationError("feed.timeout_seconds", "must be positive")
    return settings


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> PortalSettings:
    """Load settings from ``path`` (packaged defaults when None)."""
    path = path or DEFAULTS_PATH
    return build_settings(load_yaml_file(path), environ=environ, source=str(path))
