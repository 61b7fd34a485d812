"""SQLite-backed local cache of projects and ideas.

Holds the device's copy of each record as a JSON document in the local
(camelCase) layout. After a sync the caller replaces the cache contents
with the merged result.
"""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, TypeVar

from ..errors import LocalCacheError
from ..models import Idea, Project

logger = logging.getLogger(__name__)

T = TypeVar("T", Project, Idea)

PROJECT_KIND = "project"
IDEA_KIND = "idea"

CACHE_SCHEMA = """
CREATE TABLE IF NOT EXISTS entities (
    kind TEXT NOT NULL,
    id TEXT NOT NULL,
    document TEXT NOT NULL,
    updated_at TEXT,
    saved_at TEXT NOT NULL,
    PRIMARY KEY (kind, id)
);

CREATE INDEX IF NOT EXISTS idx_entities_kind ON entities(kind);
"""


class LocalCache:
    """Persisted local copy of one device's projects and ideas."""

    def __init__(self, db_path: str | Path):
        """Initialize the cache.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self.db_path = Path(db_path).expanduser()
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Initialize database connection and schema."""
        if str(self.db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(CACHE_SCHEMA)
        self._conn.commit()

        logger.info(f"LocalCache connected to {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure database connection exists."""
        if self._conn is None:
            self.connect()
        return self._conn

    def _load(self, kind: str, parse: Callable[[dict[str, Any]], T]) -> list[T]:
        conn = self._ensure_connected()
        cursor = conn.execute(
            "SELECT id, document FROM entities WHERE kind = ? ORDER BY rowid",
            (kind,),
        )

        entities = []
        for row in cursor:
            try:
                entities.append(parse(json.loads(row["document"])))
            except (ValueError, KeyError, TypeError) as e:
                raise LocalCacheError(
                    f"Cached {kind} {row['id']} could not be read: {e}"
                ) from e
        return entities

    def _write(self, conn: sqlite3.Connection, kind: str, entity: Project | Idea) -> None:
        document = entity.to_dict()
        conn.execute(
            """
            INSERT INTO entities (kind, id, document, updated_at, saved_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(kind, id) DO UPDATE SET
                document = excluded.document,
                updated_at = excluded.updated_at,
                saved_at = excluded.saved_at
            """,
            (
                kind,
                entity.id,
                json.dumps(document),
                str(document["updatedAt"]),
                datetime.now().isoformat(),
            ),
        )

    def _replace(self, kind: str, entities: list[Project] | list[Idea]) -> None:
        conn = self._ensure_connected()
        with conn:
            conn.execute("DELETE FROM entities WHERE kind = ?", (kind,))
            for entity in entities:
                self._write(conn, kind, entity)
        logger.debug(f"Replaced cached {kind}s with {len(entities)} record(s)")

    def _save(self, kind: str, entity: Project | Idea) -> None:
        conn = self._ensure_connected()
        with conn:
            self._write(conn, kind, entity)

    def _delete(self, kind: str, entity_id: str) -> bool:
        conn = self._ensure_connected()
        with conn:
            cursor = conn.execute(
                "DELETE FROM entities WHERE kind = ? AND id = ?", (kind, entity_id)
            )
        return cursor.rowcount > 0

    def load_projects(self) -> list[Project]:
        """Load cached projects in the order they were written."""
        return self._load(PROJECT_KIND, Project.from_dict)

    def load_ideas(self) -> list[Idea]:
        """Load cached ideas in the order they were written."""
        return self._load(IDEA_KIND, Idea.from_dict)

    def replace_projects(self, projects: list[Project]) -> None:
        """Replace every cached project with the given list."""
        self._replace(PROJECT_KIND, projects)

    def replace_ideas(self, ideas: list[Idea]) -> None:
        """Replace every cached idea with the given list."""
        self._replace(IDEA_KIND, ideas)

    def save_project(self, project: Project) -> None:
        self._save(PROJECT_KIND, project)

    def save_idea(self, idea: Idea) -> None:
        self._save(IDEA_KIND, idea)

    def delete_project(self, project_id: str) -> bool:
        """Remove a project. Returns True if it was cached."""
        return self._delete(PROJECT_KIND, project_id)

    def delete_idea(self, idea_id: str) -> bool:
        """Remove an idea. Returns True if it was cached."""
        return self._delete(IDEA_KIND, idea_id)

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with record counts per kind.
        """
        conn = self._ensure_connected()

        cursor = conn.execute("SELECT kind, COUNT(*) FROM entities GROUP BY kind")
        counts = {row[0]: row[1] for row in cursor}

        stats: dict[str, Any] = {
            "db_path": str(self.db_path),
            "projects": counts.get(PROJECT_KIND, 0),
            "ideas": counts.get(IDEA_KIND, 0),
        }

        if str(self.db_path) != ":memory:" and self.db_path.exists():
            stats["db_size_mb"] = round(self.db_path.stat().st_size / (1024 * 1024), 2)

        return stats
