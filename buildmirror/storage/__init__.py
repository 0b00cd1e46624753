"""Workspace storage: the canonical build list and per-build data."""

from buildmirror.storage.workspace import ArtifactStore, BuildListStore, update_symlinks

__all__ = [
    "ArtifactStore",
    "BuildListStore",
    "update_symlinks",
]
