"""
reimburse_config -- single public entrypoint for application configuration.

Responsibility:
    ``get_active_config()`` is the one way to obtain configuration at
    runtime.  Resolution order: explicit path, then the
    ``REIMBURSE_CONFIG`` environment variable, then the packaged
    ``defaults.yaml``.

Architecture position:
    Configuration -- sits above ``reimburse_kernel`` and
    ``reimburse_engines`` and below ``reimburse_services``.  The kernel
    never imports from this package.

Failure modes:
    - ``FileNotFoundError`` -- the resolved path does not exist.
    - ``ValueError`` / ``KeyError`` -- schema validation failures.

Audit relevance:
    Every successful call emits a ``REIMBURSE_CONFIG_TRACE`` log entry with
    the config id, version and checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from reimburse_config.loader import compute_checksum, load_config
from reimburse_config.schema import AppConfig, SeedData

_logger = logging.getLogger("reimburse_kernel.config")

CONFIG_ENV_VAR = "REIMBURSE_CONFIG"

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def resolve_config_path(path: Path | str | None = None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def get_active_config(path: Path | str | None = None) -> AppConfig:
    """The public configuration entrypoint.

    Args:
        path: Explicit config file.  Defaults to ``$REIMBURSE_CONFIG`` or
            the packaged defaults.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        ValueError: If configuration validation fails.
    """
    resolved = resolve_config_path(path)
    config = load_config(resolved)

    _logger.info(
        "REIMBURSE_CONFIG_TRACE",
        extra={
            "trace_type": "REIMBURSE_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(resolved),
            "funder_count": len(config.funders),
            "seed_user_count": len(config.seed.users),
        },
    )
    return config


__all__ = [
    "AppConfig",
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
    "SeedData",
    "compute_checksum",
    "get_active_config",
    "resolve_config_path",
]
