"""Remote store contract consumed by the sync engine."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")

Row = dict[str, Any]


class FailureReason(Enum):
    """Why a store call did not succeed."""

    UNAVAILABLE = "unavailable"  # Connection failed or server error
    TIMEOUT = "timeout"
    REJECTED = "rejected"  # Store refused the request
    NOT_CONFIGURED = "not_configured"


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    """Outcome of a single store call.

    Either ``ok`` is True and ``value`` holds the result, or ``reason``
    and ``error`` describe the failure.
    """

    ok: bool
    value: T | None = None
    reason: FailureReason | None = None
    error: str | None = None

    @classmethod
    def success(cls, value: T | None = None) -> "StoreResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, reason: FailureReason, error: str) -> "StoreResult[T]":
        return cls(ok=False, reason=reason, error=error)


class RemoteStore(ABC):
    """Owner-scoped remote table for one entity kind.

    Implementations never raise for store-side failures; they return a
    failed :class:`StoreResult` so callers can keep going.
    """

    @property
    @abstractmethod
    def table(self) -> str:
        """Name of the remote table this store reads and writes."""
        pass

    @abstractmethod
    async def fetch_all(self, owner_id: str) -> StoreResult[list[Row]]:
        """Fetch every row owned by ``owner_id``.

        Rows are ordered by ``updated_at`` descending.
        """
        pass

    @abstractmethod
    async def upsert(self, owner_id: str, row: Row) -> StoreResult[None]:
        """Insert or overwrite one row keyed by its ``id``.

        Calling this twice with the same content leaves the same stored
        state.
        """
        pass

    @abstractmethod
    async def delete(self, entity_id: str) -> StoreResult[None]:
        """Delete the row with the given id."""
        pass

    async def close(self) -> None:
        """Release any held connections."""
        return None
