"""
checkin_config -- single public entrypoint for check-in billing settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``. Engines never import this package; the
    service layer reads settings once and passes plain values down.

Architecture position:
    Configuration -- YAML-driven. Sits above ``checkin_kernel`` and below
    ``checkin_services``.

Failure modes:
    - ``FileNotFoundError`` -- override file does not exist.
    - ``yaml.YAMLError`` -- override file is not valid YAML.
    - ``ConfigurationError`` -- a value fails validation.

Audit relevance:
    Every successful call emits a ``CHECKIN_CONFIG_TRACE`` log entry with
    the config id, version and checksum of the merged settings.
"""

from __future__ import annotations

from pathlib import Path

from checkin_config.loader import load_settings
from checkin_config.schema import CheckinSettings
from checkin_kernel.logging_config import get_logger

_logger = get_logger("config")

__all__ = ["CheckinSettings", "get_active_settings"]


def get_active_settings(config_path: Path | str | None = None) -> CheckinSettings:
    """The ONLY public settings entrypoint.

    Args:
        config_path: Optional YAML file overriding the packaged defaults.

    Returns:
        Frozen ``CheckinSettings``.
    """
    settings = load_settings(Path(config_path) if config_path is not None else None)

    _logger.info(
        "CHECKIN_CONFIG_TRACE",
        extra={
            "trace_type": "CHECKIN_CONFIG_TRACE",
            "config_id": settings.config_id,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "source": str(config_path) if config_path is not None else "defaults",
        },
    )
    return settings
