"""
Configuration for the build mirror.

Settings come from environment variables with development-friendly
defaults. ``get_config()`` returns a process-wide instance; tests call
``reset_config()`` after changing the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from loguru import logger

DEFAULT_WORKSPACE_DIR = "data_workspace"
DEFAULT_DATA_BRANCH = "main"


class Environment(Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


def _env_environment() -> Environment:
    raw = os.getenv("BUILDMIRROR_ENVIRONMENT", Environment.DEVELOPMENT.value)
    try:
        return Environment(raw.strip().lower())
    except ValueError:
        logger.warning(f"Unknown BUILDMIRROR_ENVIRONMENT '{raw}', using development")
        return Environment.DEVELOPMENT


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: '{raw}', using {default}")
        return default


@dataclass
class Config:
    """
    Runtime configuration.

    Attributes:
        environment: Deployment environment
        workspace_dir: Checkout holding builds.json and data/ (WORKSPACE_DIR)
        data_branch: Branch the workspace tracks (DATA_BRANCH)
        delete_workers: Parallel artifact deletions (BUILDMIRROR_DELETE_WORKERS)
        max_retries: Retries for workspace I/O (BUILDMIRROR_MAX_RETRIES)
        log_level: Loguru level for CLI output (BUILDMIRROR_LOG_LEVEL)
    """

    environment: Environment = Environment.DEVELOPMENT
    workspace_dir: Path = field(default_factory=lambda: Path(DEFAULT_WORKSPACE_DIR))
    data_branch: str = DEFAULT_DATA_BRANCH
    delete_workers: int = 4
    max_retries: int = 3
    log_level: str = "INFO"

    @property
    def builds_path(self) -> Path:
        return self.workspace_dir / "builds.json"

    @property
    def data_dir(self) -> Path:
        return self.workspace_dir / "data"

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables."""
        return cls(
            environment=_env_environment(),
            workspace_dir=Path(os.getenv("WORKSPACE_DIR") or DEFAULT_WORKSPACE_DIR).expanduser(),
            data_branch=os.getenv("DATA_BRANCH") or DEFAULT_DATA_BRANCH,
            delete_workers=_env_int("BUILDMIRROR_DELETE_WORKERS", 4),
            max_retries=_env_int("BUILDMIRROR_MAX_RETRIES", 3),
            log_level=(os.getenv("BUILDMIRROR_LOG_LEVEL") or "INFO").upper(),
        )


_config: Config | None = None


def get_config() -> Config:
    """Get the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Forget the cached configuration."""
    global _config
    _config = None
