"""
docflow_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    directly.

Architecture position:
    Configuration -- sits above ``docflow_kernel`` and below
    ``docflow_services``.  The kernel MUST NEVER import from
    ``docflow_config``; the gateway passes the values into kernel services.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ConfigValidationError`` -- structural validation failed.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``DOCFLOW_CONFIG_TRACE`` log entry with config_id, version and
    checksum, tying every transition to the configuration that governed it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from docflow_config.loader import ConfigValidationError, load_config
from docflow_config.schema import EngineConfig, EngineSettings, GuardSettings

_logger = logging.getLogger("docflow_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | None = None) -> EngineConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a YAML configuration file.
            Defaults to docflow_config/sets/default.yaml.

    Returns:
        EngineConfig -- frozen and validated.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ConfigValidationError: If the configuration is invalid.
    """
    config = load_config(config_path or _DEFAULT_CONFIG_PATH)

    _logger.info(
        "DOCFLOW_CONFIG_TRACE",
        extra={
            "trace_type": "DOCFLOW_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "max_transition_attempts": config.engine.max_transition_attempts,
            "bulk_transition_limit": config.engine.bulk_transition_limit,
            "enabled_guards": sorted(config.guards.enabled_guards()),
        },
    )
    return config


__all__ = [
    "ConfigValidationError",
    "EngineConfig",
    "EngineSettings",
    "GuardSettings",
    "get_active_config",
]
