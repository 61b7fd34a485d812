"""Last-write-wins reconciliation of a local collection with a remote table.

The same engine serves every entity kind; a schema object supplies ids,
timestamps and the row layout. A pass never raises for store failures: it
degrades, logs, and reports what went wrong alongside the merged result.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Iterable, TypeVar

from ..errors import MalformedRemoteRecord
from ..store.base import FailureReason, RemoteStore, StoreResult
from ..timestamps import timestamp_key
from .schema import EntitySchema

logger = logging.getLogger(__name__)

E = TypeVar("E")


class SyncStatus(Enum):
    """Overall outcome of a sync pass."""

    SUCCESS = "success"
    PARTIAL = "partial"  # Some uploads failed
    OFFLINE = "offline"  # Remote snapshot unavailable
    FAILED = "failed"  # Pipeline aborted; local records returned unchanged


class SyncIssue(Enum):
    """Non-fatal problems recorded during a pass."""

    FETCH_UNAVAILABLE = "fetch_unavailable"
    WRITE_REJECTED = "write_rejected"
    MALFORMED_REMOTE_RECORD = "malformed_remote_record"
    FOREIGN_OWNER_RECORD = "foreign_owner_record"
    UNEXPECTED_ERROR = "unexpected_error"


@dataclass
class SyncReport:
    """Counts and failures from one reconcile pass for one entity kind."""

    kind: str
    owner_id: str
    status: SyncStatus = SyncStatus.SUCCESS
    fetched: int = 0
    skipped_malformed: int = 0
    skipped_foreign: int = 0
    local_only: int = 0
    remote_only: int = 0
    local_wins: int = 0
    remote_wins: int = 0
    merged: int = 0
    uploads_attempted: int = 0
    uploads_failed: int = 0
    failed_ids: list[str] = field(default_factory=list)
    fetch_error: str | None = None
    error: str | None = None
    issues: list[SyncIssue] = field(default_factory=list)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def add_issue(self, issue: SyncIssue) -> None:
        if issue not in self.issues:
            self.issues.append(issue)

    @property
    def uploads_succeeded(self) -> int:
        return self.uploads_attempted - self.uploads_failed

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "kind": self.kind,
            "owner_id": self.owner_id,
            "status": self.status.value,
            "fetched": self.fetched,
            "skipped_malformed": self.skipped_malformed,
            "skipped_foreign": self.skipped_foreign,
            "local_only": self.local_only,
            "remote_only": self.remote_only,
            "local_wins": self.local_wins,
            "remote_wins": self.remote_wins,
            "merged": self.merged,
            "uploads_attempted": self.uploads_attempted,
            "uploads_failed": self.uploads_failed,
            "failed_ids": list(self.failed_ids),
            "fetch_error": self.fetch_error,
            "error": self.error,
            "issues": [issue.value for issue in self.issues],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


@dataclass
class MergeOutcome(Generic[E]):
    """Merged collection plus the report describing how it was built."""

    entities: list[E]
    report: SyncReport


class MergeEngine(Generic[E]):
    """Reconciles one owner's local entities against one remote table.

    For every id present on either side exactly one record survives:

    - local only: kept and uploaded
    - both sides, local ``updated_at`` >= remote: local kept and uploaded
    - both sides, remote strictly newer: remote kept, nothing uploaded
    - remote only: kept unchanged, nothing uploaded

    The engine never edits ``updated_at`` and never merges fields; it
    only chooses whole records.
    """

    def __init__(
        self,
        store: RemoteStore,
        schema: EntitySchema[E],
        upload_concurrency: int = 4,
    ):
        """Initialize the engine.

        Args:
            store: Remote table for this entity kind.
            schema: Field mapping for this entity kind.
            upload_concurrency: Maximum uploads in flight at once.
        """
        self.store = store
        self.schema = schema
        self.upload_concurrency = max(1, upload_concurrency)

    async def reconcile(self, owner_id: str, local_entities: Iterable[E]) -> MergeOutcome[E]:
        """Run one sync pass.

        Args:
            owner_id: Account whose records are synced.
            local_entities: The caller's cached records for this owner.

        Returns:
            MergeOutcome with the merged records and a SyncReport. The
            caller replaces its local cache with ``entities``.
        """
        report = SyncReport(
            kind=self.schema.kind, owner_id=owner_id, started_at=datetime.now()
        )

        remote_entities = await self.fetch_remote(owner_id, report)
        remote_index = {
            self.schema.entity_id(e): e
            for e in self._collapse_duplicates(remote_entities, "remote")
        }

        merged: list[E] = []
        to_upload: list[E] = []

        for local in self._collapse_duplicates(local_entities, "local"):
            entity_id = self.schema.entity_id(local)
            remote = remote_index.pop(entity_id, None)

            if remote is None:
                report.local_only += 1
                merged.append(local)
                to_upload.append(local)
                logger.debug(f"{self.schema.kind} {entity_id}: local only, uploading")
                continue

            local_ts = timestamp_key(self.schema.updated_at(local))
            remote_ts = timestamp_key(self.schema.updated_at(remote))

            if local_ts >= remote_ts:
                report.local_wins += 1
                merged.append(local)
                to_upload.append(local)
                logger.debug(f"{self.schema.kind} {entity_id}: local kept")
            else:
                report.remote_wins += 1
                merged.append(remote)
                logger.debug(f"{self.schema.kind} {entity_id}: remote newer, kept")

        for remote in remote_index.values():
            report.remote_only += 1
            merged.append(remote)

        await self._upload(owner_id, to_upload, report)

        report.merged = len(merged)
        report.finished_at = datetime.now()
        if report.fetch_error is not None:
            report.status = SyncStatus.OFFLINE
        elif report.uploads_failed:
            report.status = SyncStatus.PARTIAL

        logger.info(
            f"Synced {report.merged} {self.schema.kind}(s) for {owner_id}: "
            f"status={report.status.value}, local_only={report.local_only}, "
            f"remote_only={report.remote_only}, local_wins={report.local_wins}, "
            f"remote_wins={report.remote_wins}, "
            f"uploaded={report.uploads_succeeded}/{report.uploads_attempted}"
        )
        return MergeOutcome(entities=merged, report=report)

    async def fetch_remote(self, owner_id: str, report: SyncReport) -> list[E]:
        """Fetch and decode the remote snapshot.

        A failed fetch yields an empty snapshot: every local record then
        looks local-only and remote-only records are not seen this pass.
        """
        try:
            result = await self.store.fetch_all(owner_id)
        except Exception as e:
            logger.exception(f"{self.store.table} store raised during fetch")
            result = StoreResult.failure(FailureReason.UNAVAILABLE, str(e))

        if not result.ok:
            report.fetch_error = result.error or "fetch failed"
            report.add_issue(SyncIssue.FETCH_UNAVAILABLE)
            logger.warning(
                f"Could not fetch {self.store.table} for {owner_id}, "
                f"treating remote as empty: {report.fetch_error}"
            )
            return []

        rows = result.value or []
        report.fetched = len(rows)

        entities: list[E] = []
        for row in rows:
            if isinstance(row, dict):
                row_owner = row.get("user_id")
                if row_owner is not None and row_owner != owner_id:
                    report.skipped_foreign += 1
                    continue
            try:
                entities.append(self.schema.from_remote(row))
            except MalformedRemoteRecord as e:
                report.skipped_malformed += 1
                logger.debug(f"Skipping {self.store.table} row: {e}")
            except (AttributeError, TypeError, ValueError) as e:
                report.skipped_malformed += 1
                logger.debug(f"Skipping undecodable {self.store.table} row: {e}")

        if report.skipped_malformed:
            report.add_issue(SyncIssue.MALFORMED_REMOTE_RECORD)
            logger.warning(
                f"Skipped {report.skipped_malformed} malformed {self.store.table} row(s)"
            )
        if report.skipped_foreign:
            report.add_issue(SyncIssue.FOREIGN_OWNER_RECORD)
            logger.warning(
                f"Skipped {report.skipped_foreign} {self.store.table} row(s) "
                f"owned by another account"
            )

        return entities

    def _collapse_duplicates(self, entities: Iterable[E], side: str) -> list[E]:
        """Keep one record per id: the newest, or the first on a tie."""
        by_id: dict[str, E] = {}
        duplicates = 0

        for entity in entities:
            entity_id = self.schema.entity_id(entity)
            current = by_id.get(entity_id)
            if current is None:
                by_id[entity_id] = entity
                continue
            duplicates += 1
            if timestamp_key(self.schema.updated_at(entity)) > timestamp_key(
                self.schema.updated_at(current)
            ):
                by_id[entity_id] = entity

        if duplicates:
            logger.warning(
                f"Collapsed {duplicates} duplicate {side} {self.schema.kind} id(s)"
            )
        return list(by_id.values())

    async def _upload(self, owner_id: str, entities: list[E], report: SyncReport) -> None:
        """Upsert every entity the merge chose to keep from the local side."""
        if not entities:
            return

        semaphore = asyncio.Semaphore(self.upload_concurrency)

        async def push(entity: E) -> tuple[str, StoreResult]:
            entity_id = self.schema.entity_id(entity)
            async with semaphore:
                try:
                    row = self.schema.to_remote(owner_id, entity)
                    return entity_id, await self.store.upsert(owner_id, row)
                except Exception as e:
                    logger.exception(f"Upload of {self.schema.kind} {entity_id} raised")
                    return entity_id, StoreResult.failure(FailureReason.UNAVAILABLE, str(e))

        report.uploads_attempted = len(entities)
        results = await asyncio.gather(*(push(entity) for entity in entities))

        for entity_id, result in results:
            if result.ok:
                continue
            report.uploads_failed += 1
            report.failed_ids.append(entity_id)
            report.add_issue(SyncIssue.WRITE_REJECTED)
            logger.warning(
                f"Failed to upload {self.schema.kind} {entity_id}: {result.error}"
            )
