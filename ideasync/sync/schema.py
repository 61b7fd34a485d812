"""Translation between entity models and remote table rows.

Each entity kind has one schema object. The merge engine only talks to
entities through a schema: reading ids and timestamps, and converting to
and from the remote layout.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from ..errors import MalformedRemoteRecord
from ..models import Idea, PrdCaptures, Project, Review, Timestamp
from ..timestamps import parse_timestamp

E = TypeVar("E")

Row = dict[str, Any]


class EntitySchema(ABC, Generic[E]):
    """Field mapping for one entity kind."""

    kind: str = ""

    def entity_id(self, entity: E) -> str:
        return entity.id

    def updated_at(self, entity: E) -> Timestamp:
        return entity.updated_at

    @abstractmethod
    def to_remote(self, owner_id: str, entity: E) -> Row:
        """Build the row sent on upsert.

        ``created_at``/``updated_at`` are never sent; the table stamps them.
        """
        pass

    @abstractmethod
    def from_remote(self, row: Row) -> E:
        """Build an entity from a fetched row.

        Raises:
            MalformedRemoteRecord: If the row is not an object, ``id`` or
                ``updated_at`` is missing or unusable, or a nested object
                field holds some other type.
        """
        pass

    def _require(self, row: Row, *mappings: str) -> tuple[str, Timestamp]:
        """Check the fields every row needs.

        ``mappings`` names nested fields that must be objects when present.
        """
        if not isinstance(row, dict):
            raise MalformedRemoteRecord("row")

        entity_id = row.get("id")
        if not isinstance(entity_id, str) or not entity_id:
            raise MalformedRemoteRecord("id")

        updated_at = row.get("updated_at")
        if parse_timestamp(updated_at) is None:
            raise MalformedRemoteRecord("updated_at", entity_id)

        for name in mappings:
            value = row.get(name)
            if value is not None and not isinstance(value, dict):
                raise MalformedRemoteRecord(name, entity_id)

        return entity_id, updated_at


class ProjectSchema(EntitySchema[Project]):
    kind = "project"

    def to_remote(self, owner_id: str, entity: Project) -> Row:
        return {
            "id": entity.id,
            "user_id": owner_id,
            "name": entity.name,
            "status": entity.status,
            "mode": entity.mode,
            "prd": entity.prd,
            "tasks": entity.tasks,
            "modules": entity.modules,
            "priority_stack": entity.priority_stack,
            "build_steps": entity.build_steps,
            "deploy_url": entity.deploy_url,
            "prod_url": entity.prod_url,
            "prod_version": entity.prod_version,
            "version_history": entity.version_history,
            "suggestions": entity.suggestions,
            "review": entity.review.to_dict(),
        }

    def from_remote(self, row: Row) -> Project:
        entity_id, updated_at = self._require(row, "review")
        return Project(
            id=entity_id,
            name=row.get("name") or "",
            updated_at=updated_at,
            status=row.get("status") or "draft",
            mode=row.get("mode") or "dev",
            prd=row.get("prd") or {},
            tasks=row.get("tasks") or [],
            modules=row.get("modules") or [],
            priority_stack=row.get("priority_stack") or [],
            build_steps=row.get("build_steps") or [],
            deploy_url=row.get("deploy_url"),
            prod_url=row.get("prod_url"),
            prod_version=row.get("prod_version") or 0,
            version_history=row.get("version_history") or [],
            suggestions=row.get("suggestions") or [],
            review=Review.from_dict(row.get("review")),
            created_at=row.get("created_at"),
        )


class IdeaSchema(EntitySchema[Idea]):
    kind = "idea"

    def to_remote(self, owner_id: str, entity: Idea) -> Row:
        return {
            "id": entity.id,
            "user_id": owner_id,
            "title": entity.title,
            "description": entity.description,
            "tags": entity.tags,
            "chat": entity.chat,
            "prd_captures": entity.prd_captures.to_dict(),
            "status": entity.status,
            "promoted_to_project_id": entity.project_id or None,
        }

    def from_remote(self, row: Row) -> Idea:
        entity_id, updated_at = self._require(row, "prd_captures")
        return Idea(
            id=entity_id,
            title=row.get("title") or "",
            updated_at=updated_at,
            description=row.get("description") or "",
            tags=row.get("tags") or [],
            chat=row.get("chat") or [],
            prd_captures=PrdCaptures.from_dict(row.get("prd_captures")),
            status=row.get("status") or "raw",
            project_id=row.get("promoted_to_project_id"),
            created_at=row.get("created_at"),
        )
