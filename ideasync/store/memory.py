"""In-process remote store, used for offline work and tests."""

import copy
import logging
from typing import Callable

from ..timestamps import timestamp_key, utc_now_iso
from .base import FailureReason, RemoteStore, Row, StoreResult

logger = logging.getLogger(__name__)


class MemoryRemoteStore(RemoteStore):
    """Dictionary-backed table with the same contract as the HTTP store.

    Mirrors the behavior of the hosted table: ``created_at`` and
    ``updated_at`` are stamped on write, and a row owned by one user can
    not be overwritten by another.
    """

    def __init__(self, table: str, clock: Callable[[], str] | None = None):
        """Initialize the store.

        Args:
            table: Table name, used in log messages.
            clock: Returns the timestamp stamped on writes. Defaults to
                the current UTC time as ISO-8601.
        """
        self._table = table
        self._clock = clock or utc_now_iso
        self._rows: dict[str, Row] = {}
        self._available = True

    @property
    def table(self) -> str:
        return self._table

    def set_available(self, available: bool) -> None:
        """Simulate the store going offline or coming back."""
        self._available = available

    def seed(self, rows: list[Row]) -> None:
        """Insert rows verbatim, without stamping timestamps."""
        for row in rows:
            self._rows[row["id"]] = copy.deepcopy(row)

    def get(self, entity_id: str) -> Row | None:
        """Return a copy of a stored row, or None."""
        row = self._rows.get(entity_id)
        return copy.deepcopy(row) if row is not None else None

    def __len__(self) -> int:
        return len(self._rows)

    def _offline(self) -> StoreResult:
        return StoreResult.failure(
            FailureReason.UNAVAILABLE, f"{self._table} store is offline"
        )

    async def fetch_all(self, owner_id: str) -> StoreResult[list[Row]]:
        if not self._available:
            return self._offline()

        rows = [
            copy.deepcopy(row)
            for row in self._rows.values()
            if row.get("user_id") == owner_id
        ]
        rows.sort(key=lambda r: timestamp_key(r.get("updated_at")), reverse=True)
        return StoreResult.success(rows)

    async def upsert(self, owner_id: str, row: Row) -> StoreResult[None]:
        if not self._available:
            return self._offline()

        entity_id = row.get("id")
        if not entity_id:
            return StoreResult.failure(FailureReason.REJECTED, "Row has no id")

        existing = self._rows.get(entity_id)
        if existing is not None and existing.get("user_id") != owner_id:
            return StoreResult.failure(
                FailureReason.REJECTED,
                f"Row {entity_id} in {self._table} belongs to another owner",
            )

        now = self._clock()
        stored = copy.deepcopy(row)
        stored["user_id"] = owner_id
        stored["created_at"] = (
            existing.get("created_at") if existing is not None else None
        ) or row.get("created_at") or now
        stored["updated_at"] = row.get("updated_at") or now
        self._rows[entity_id] = stored

        logger.debug(f"Upserted {entity_id} into {self._table}")
        return StoreResult.success()

    async def delete(self, entity_id: str) -> StoreResult[None]:
        if not self._available:
            return self._offline()

        # Deleting a missing row is not an error, same as the hosted table
        self._rows.pop(entity_id, None)
        return StoreResult.success()
