"""Runs the Projects and Ideas sync pipelines for an owner."""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable

from ..models import Idea, Project
from ..store.base import RemoteStore, StoreResult
from ..store.postgrest import PostgrestStore
from .merge import MergeEngine, MergeOutcome, SyncIssue, SyncReport, SyncStatus
from .schema import EntitySchema, IdeaSchema, ProjectSchema

if TYPE_CHECKING:
    from ..cache import LocalCache
    from ..config import Config

logger = logging.getLogger(__name__)

_STATUS_SEVERITY = {
    SyncStatus.SUCCESS: 0,
    SyncStatus.PARTIAL: 1,
    SyncStatus.OFFLINE: 2,
    SyncStatus.FAILED: 3,
}


class SyncState(Enum):
    """Sync activity for one owner."""

    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"


@dataclass
class SyncRunReport:
    """Reports of both pipelines from one sync invocation."""

    owner_id: str
    projects: SyncReport
    ideas: SyncReport

    @property
    def status(self) -> SyncStatus:
        """The worse of the two pipeline statuses."""
        return max(
            (self.projects.status, self.ideas.status),
            key=lambda s: _STATUS_SEVERITY[s],
        )

    @property
    def uploads_attempted(self) -> int:
        return self.projects.uploads_attempted + self.ideas.uploads_attempted

    @property
    def uploads_failed(self) -> int:
        return self.projects.uploads_failed + self.ideas.uploads_failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "status": self.status.value,
            "uploads_attempted": self.uploads_attempted,
            "uploads_failed": self.uploads_failed,
            "projects": self.projects.to_dict(),
            "ideas": self.ideas.to_dict(),
        }


@dataclass
class SyncRunResult:
    """Merged collections that replace the caller's local cache."""

    projects: list[Project]
    ideas: list[Idea]
    report: SyncRunReport


@dataclass
class _OwnerStatus:
    state: SyncState = SyncState.IDLE
    last_report: SyncRunReport | None = None
    last_sync: datetime | None = None
    last_error: str | None = None


class SyncOrchestrator:
    """Entry point used by the application state layer.

    Stores are injected per entity kind. Passes for the same owner are
    serialized with a per-owner lock; the Projects and Ideas pipelines of
    one pass run concurrently since they touch different tables.
    """

    def __init__(
        self,
        project_store: RemoteStore,
        idea_store: RemoteStore,
        upload_concurrency: int = 4,
    ):
        """Initialize the orchestrator.

        Args:
            project_store: Remote table holding projects.
            idea_store: Remote table holding ideas.
            upload_concurrency: Maximum uploads in flight per pipeline.
        """
        self.project_store = project_store
        self.idea_store = idea_store
        self.project_schema: EntitySchema[Project] = ProjectSchema()
        self.idea_schema: EntitySchema[Idea] = IdeaSchema()
        self.upload_concurrency = upload_concurrency
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._status: dict[str, _OwnerStatus] = {}

    @classmethod
    def from_config(cls, config: "Config") -> "SyncOrchestrator":
        """Build an orchestrator backed by the configured HTTP tables."""
        remote = config.remote

        def store(table: str) -> PostgrestStore:
            return PostgrestStore(
                base_url=remote.url or None,
                table=table,
                api_key=remote.api_key,
                access_token=remote.access_token,
                timeout=remote.timeout_seconds,
                max_retries=remote.max_retries,
            )

        return cls(
            project_store=store(remote.projects_table),
            idea_store=store(remote.ideas_table),
            upload_concurrency=config.sync.upload_concurrency,
        )

    async def close(self) -> None:
        """Close both stores."""
        await self.project_store.close()
        await self.idea_store.close()

    @asynccontextmanager
    async def _owner_lock(self, owner_id: str) -> AsyncIterator[None]:
        """Hold the owner's lock; drop it once nobody is using or waiting on it."""
        lock = self._locks.get(owner_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[owner_id] = lock
        self._lock_users[owner_id] = self._lock_users.get(owner_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[owner_id] -= 1
            if not self._lock_users[owner_id]:
                del self._lock_users[owner_id]
                del self._locks[owner_id]

    def _owner_status(self, owner_id: str) -> _OwnerStatus:
        return self._status.setdefault(owner_id, _OwnerStatus())

    def is_syncing(self, owner_id: str) -> bool:
        lock = self._locks.get(owner_id)
        return lock is not None and lock.locked()

    def forget(self, owner_id: str) -> None:
        """Drop the recorded status for an owner, e.g. after sign-out."""
        self._status.pop(owner_id, None)

    def _project_engine(self) -> MergeEngine[Project]:
        return MergeEngine(self.project_store, self.project_schema, self.upload_concurrency)

    def _idea_engine(self) -> MergeEngine[Idea]:
        return MergeEngine(self.idea_store, self.idea_schema, self.upload_concurrency)

    async def _reconcile(
        self,
        make_engine: Callable[[], MergeEngine[Any]],
        kind: str,
        owner_id: str,
        local_entities: list[Any],
    ) -> MergeOutcome[Any]:
        """Run one pipeline; an unexpected error keeps the local records."""
        started_at = datetime.now()
        try:
            return await make_engine().reconcile(owner_id, local_entities)
        except Exception as e:
            logger.exception(f"{kind} sync failed for {owner_id}, keeping local records")
            report = SyncReport(
                kind=kind,
                owner_id=owner_id,
                status=SyncStatus.FAILED,
                merged=len(local_entities),
                error=str(e) or type(e).__name__,
                started_at=started_at,
                finished_at=datetime.now(),
            )
            report.add_issue(SyncIssue.UNEXPECTED_ERROR)
            return MergeOutcome(entities=list(local_entities), report=report)

    async def sync_all(
        self,
        owner_id: str,
        local_projects: list[Project],
        local_ideas: list[Idea],
    ) -> SyncRunResult:
        """Reconcile both entity kinds for an owner.

        Waits for any pass already running for the same owner to finish.
        The two pipelines degrade independently; this never raises for a
        failure inside one of them.

        Returns:
            SyncRunResult with merged projects, merged ideas and the
            combined report.
        """
        status = self._owner_status(owner_id)

        async with self._owner_lock(owner_id):
            status.state = SyncState.SYNCING
            logger.info(
                f"Sync started for {owner_id}: {len(local_projects)} local project(s), "
                f"{len(local_ideas)} local idea(s)"
            )
            projects, ideas = await asyncio.gather(
                self._reconcile(
                    self._project_engine, self.project_schema.kind, owner_id, local_projects
                ),
                self._reconcile(
                    self._idea_engine, self.idea_schema.kind, owner_id, local_ideas
                ),
            )

            report = SyncRunReport(
                owner_id=owner_id, projects=projects.report, ideas=ideas.report
            )
            self._record(status, report)

        return SyncRunResult(
            projects=projects.entities, ideas=ideas.entities, report=report
        )

    async def sync_projects(
        self, owner_id: str, local_projects: list[Project]
    ) -> MergeOutcome[Project]:
        """Reconcile projects only."""
        async with self._owner_lock(owner_id):
            return await self._reconcile(
                self._project_engine, self.project_schema.kind, owner_id, local_projects
            )

    async def sync_ideas(self, owner_id: str, local_ideas: list[Idea]) -> MergeOutcome[Idea]:
        """Reconcile ideas only."""
        async with self._owner_lock(owner_id):
            return await self._reconcile(
                self._idea_engine, self.idea_schema.kind, owner_id, local_ideas
            )

    async def sync_cache(self, owner_id: str, cache: "LocalCache") -> SyncRunResult:
        """Sync a persisted local cache and write the merged result back."""
        result = await self.sync_all(owner_id, cache.load_projects(), cache.load_ideas())
        cache.replace_projects(result.projects)
        cache.replace_ideas(result.ideas)
        return result

    def _record(self, status: _OwnerStatus, report: SyncRunReport) -> None:
        status.last_report = report
        parts = (report.projects, report.ideas)
        if report.status in (SyncStatus.OFFLINE, SyncStatus.FAILED):
            status.state = SyncState.ERROR
            status.last_error = next(
                (part.error or part.fetch_error for part in parts if part.error or part.fetch_error),
                report.status.value,
            )
            logger.warning(
                f"Sync for {report.owner_id} ended with {report.status.value}: "
                f"{status.last_error}"
            )
        else:
            status.state = SyncState.IDLE
            status.last_error = None
            status.last_sync = datetime.now()
            logger.info(
                f"Sync complete for {report.owner_id}: {report.status.value}, "
                f"uploads failed {report.uploads_failed}/{report.uploads_attempted}"
            )

    async def _push(
        self,
        owner_id: str,
        store: RemoteStore,
        schema: EntitySchema[Any],
        entity: Any,
    ) -> StoreResult[None]:
        async with self._owner_lock(owner_id):
            result = await store.upsert(owner_id, schema.to_remote(owner_id, entity))
        if not result.ok:
            logger.warning(f"Failed to upsert {schema.kind} {entity.id}: {result.error}")
        return result

    async def push_project(self, owner_id: str, project: Project) -> StoreResult[None]:
        """Upload one project after a local change."""
        return await self._push(owner_id, self.project_store, self.project_schema, project)

    async def push_idea(self, owner_id: str, idea: Idea) -> StoreResult[None]:
        """Upload one idea after a local change."""
        return await self._push(owner_id, self.idea_store, self.idea_schema, idea)

    async def _delete(self, store: RemoteStore, kind: str, entity_id: str) -> StoreResult[None]:
        result = await store.delete(entity_id)
        if result.ok:
            logger.info(f"Deleted {kind} {entity_id} from {store.table}")
        else:
            logger.warning(f"Failed to delete {kind} {entity_id}: {result.error}")
        return result

    async def delete_project(self, project_id: str) -> StoreResult[None]:
        """Delete a project remotely.

        Other devices still holding the project will upload it again on
        their next sync; there is no deletion marker.
        """
        return await self._delete(self.project_store, "project", project_id)

    async def delete_idea(self, idea_id: str) -> StoreResult[None]:
        """Delete an idea remotely. Same caveat as :meth:`delete_project`."""
        return await self._delete(self.idea_store, "idea", idea_id)

    async def _fetch(self, owner_id: str, engine: MergeEngine) -> list[Any]:
        report = SyncReport(kind=engine.schema.kind, owner_id=owner_id)
        return await engine.fetch_remote(owner_id, report)

    async def fetch_projects(self, owner_id: str) -> list[Project]:
        """Fetch remote projects; empty list if the table is unreachable."""
        return await self._fetch(owner_id, self._project_engine())

    async def fetch_ideas(self, owner_id: str) -> list[Idea]:
        """Fetch remote ideas; empty list if the table is unreachable."""
        return await self._fetch(owner_id, self._idea_engine())

    def get_sync_status(self, owner_id: str) -> dict[str, Any]:
        """Get sync status for an owner.

        Returns:
            Dictionary with state, last sync time, last error and the
            last report.
        """
        status = self._status.get(owner_id) or _OwnerStatus()
        return {
            "owner_id": owner_id,
            "state": status.state.value,
            "in_flight": self.is_syncing(owner_id),
            "last_sync": status.last_sync.isoformat() if status.last_sync else None,
            "last_error": status.last_error,
            "last_report": status.last_report.to_dict() if status.last_report else None,
        }
