"""Remote store adapters.

A store wraps one owner-scoped remote table. Every call returns a
``StoreResult`` instead of raising, so a sync pass can continue past
individual failures.
"""

from .base import FailureReason, RemoteStore, Row, StoreResult
from .memory import MemoryRemoteStore
from .postgrest import PostgrestStore

__all__ = [
    "FailureReason",
    "RemoteStore",
    "Row",
    "StoreResult",
    "MemoryRemoteStore",
    "PostgrestStore",
]
