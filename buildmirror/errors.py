"""Exceptions raised outside the (total) retention engine."""


class BuildMirrorError(Exception):
    """Base class for build mirror errors."""
    pass


class BuildListError(BuildMirrorError):
    """Raised when the canonical build list cannot be read or written."""
    pass


class ArtifactDeletionError(BuildMirrorError):
    """Raised when a build's artifacts cannot be deleted."""

    def __init__(self, build_number: str, reason: str):
        self.build_number = build_number
        self.reason = reason
        super().__init__(f"Could not remove data/{build_number}: {reason}")


class ConfigError(BuildMirrorError):
    """Raised when configuration is invalid at startup."""
    pass
