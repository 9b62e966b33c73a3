"""
portal_config -- single public entrypoint for portal settings.

Responsibility:
    ``get_settings()`` is the only way runtime code obtains configuration.
    Services receive the pieces they need (``FeedSettings``,
    ``SyncSettings``, ...) by constructor injection and never read the
    environment themselves.

Architecture position:
    Configuration -- sits above ``portal_kernel`` and below ``nsi_sync``.
    The kernel MUST NOT import from ``portal_config``.

Failure modes:
    - ``FileNotFoundError`` -- explicit path does not exist.
    - ``ConfigurationError`` -- unknown key, wrong type, or invalid value.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from portal_config.loader import DEFAULTS_PATH, ENV_OVERRIDES, load_settings
from portal_config.schema import (
    DatabaseSettings,
    FeedSettings,
    LoggingSettings,
    PortalSettings,
    SyncSettings,
)
from portal_kernel.logging_config import get_logger

_logger = get_logger("config")


def get_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> PortalSettings:
    """The public settings entrypoint.

    Args:
        path: YAML settings file; the packaged ``defaults.yaml`` when None.
        environ: Environment mapping for overrides; ``os.environ`` when None.
    """
    settings = load_settings(Path(path) if path is not None else None, environ=environ)
    _logger.debug(
        "settings_loaded",
        extra={
            "source": settings.source,
            "feed_base_url": settings.feed.base_url,
            "interval_seconds": settings.sync.interval_seconds,
        },
    )
    return settings


__all__ = [
    "DEFAULTS_PATH",
    "DatabaseSettings",
    "ENV_OVERRIDES",
    "FeedSettings",
    "LoggingSettings",
    "PortalSettings",
    "SyncSettings",
    "get_settings",
]
