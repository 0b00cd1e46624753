"""
buildmirror - historical mirror of game data releases

Keeps a bounded, stable history of published builds by pruning old
nightlies with a deterministic retention policy.
"""

try:
    from importlib.metadata import version

    __version__ = version("buildmirror")
except Exception:
    __version__ = "0.0.0"  # Fallback for development
