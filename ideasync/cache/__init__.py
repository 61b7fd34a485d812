"""Local persistence for the device's copy of projects and ideas."""

from .local_cache import LocalCache

__all__ = ["LocalCache"]
