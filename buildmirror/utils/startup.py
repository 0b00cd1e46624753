"""Startup validation for the build mirror.

Provides fail-fast validation of configuration before a prune touches the
workspace.
"""

from __future__ import annotations

from loguru import logger

from buildmirror.errors import ConfigError
from buildmirror.utils.config import Config, get_config

VALID_LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


def validate_startup(config: Config | None = None) -> list[str]:
    """
    Validate configuration.

    Returns:
        List of error messages. Empty if all valid.
    """
    config = config or get_config()
    errors = []

    if not config.workspace_dir.is_dir():
        errors.append(f"Workspace directory does not exist: {config.workspace_dir}")
    elif config.builds_path.exists() and not config.builds_path.is_file():
        errors.append(f"builds.json is not a file: {config.builds_path}")

    if config.delete_workers < 1:
        errors.append(f"BUILDMIRROR_DELETE_WORKERS must be at least 1, got {config.delete_workers}")
    if config.max_retries < 0:
        errors.append(f"BUILDMIRROR_MAX_RETRIES must not be negative, got {config.max_retries}")
    if config.log_level not in VALID_LOG_LEVELS:
        errors.append(f"Unknown BUILDMIRROR_LOG_LEVEL: {config.log_level}")

    return errors


def fail_fast_startup(config: Config | None = None) -> None:
    """
    Validate startup and raise if invalid.

    Raises:
        ConfigError: If configuration is unusable.
    """
    errors = validate_startup(config)
    if errors:
        error_msg = "Startup validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        logger.error(error_msg)
        raise ConfigError(error_msg)

    logger.debug("Startup validation passed")
