"""Entity models for the two synchronized record kinds.

Projects and Ideas are kept as typed dataclasses. ``to_dict``/``from_dict``
use the local (camelCase) layout that the desktop application persists;
the remote layout lives in :mod:`ideasync.sync.schema`.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# ISO-8601 string, datetime, or an epoch number
Timestamp = str | int | float | datetime

PROJECT_STATUSES = ("draft", "building", "complete")
PROJECT_MODES = ("dev", "test", "prod")
REVIEW_STATUSES = ("pending", "running", "complete", "skipped")
IDEA_STATUSES = ("raw", "chatting", "ready", "promoted")

CAPTURE_BUCKETS = ("overview", "features", "users", "screens", "data", "design")


@dataclass
class Review:
    """Code review state attached to a project."""

    status: str = "pending"
    errors: list[dict[str, Any]] = field(default_factory=list)
    improvements: list[dict[str, Any]] = field(default_factory=list)
    simplifications: list[dict[str, Any]] = field(default_factory=list)
    completed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "status": self.status,
            "errors": self.errors,
            "improvements": self.improvements,
            "simplifications": self.simplifications,
        }
        if self.completed_at:
            data["completedAt"] = self.completed_at
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Review":
        """Create from dictionary, falling back to a pending review."""
        if not isinstance(data, dict) or not data:
            return cls()
        return cls(
            status=data.get("status") or "pending",
            errors=data.get("errors") or [],
            improvements=data.get("improvements") or [],
            simplifications=data.get("simplifications") or [],
            completed_at=data.get("completedAt"),
        )


@dataclass
class PrdCaptures:
    """Structured PRD fragments captured while chatting about an idea."""

    overview: list[dict[str, Any]] = field(default_factory=list)
    features: list[dict[str, Any]] = field(default_factory=list)
    users: list[dict[str, Any]] = field(default_factory=list)
    screens: list[dict[str, Any]] = field(default_factory=list)
    data: list[dict[str, Any]] = field(default_factory=list)
    design: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {bucket: getattr(self, bucket) for bucket in CAPTURE_BUCKETS}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "PrdCaptures":
        if not isinstance(data, dict) or not data:
            return cls()
        return cls(**{bucket: data.get(bucket) or [] for bucket in CAPTURE_BUCKETS})


@dataclass
class Project:
    """A buildable project and its generation state."""

    id: str
    name: str
    updated_at: Timestamp
    status: str = "draft"
    mode: str = "dev"
    prd: dict[str, Any] = field(default_factory=dict)
    tasks: list[dict[str, Any]] = field(default_factory=list)
    modules: list[dict[str, Any]] = field(default_factory=list)
    priority_stack: list[str] = field(default_factory=list)
    build_steps: list[dict[str, Any]] = field(default_factory=list)
    deploy_url: str | None = None
    prod_url: str | None = None
    prod_version: int = 0
    version_history: list[dict[str, Any]] = field(default_factory=list)
    suggestions: list[dict[str, Any]] = field(default_factory=list)
    review: Review = field(default_factory=Review)
    created_at: Timestamp | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the local camelCase layout."""
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "mode": self.mode,
            "prd": self.prd,
            "tasks": self.tasks,
            "modules": self.modules,
            "priorityStack": self.priority_stack,
            "buildSteps": self.build_steps,
            "deployUrl": self.deploy_url,
            "prodUrl": self.prod_url,
            "prodVersion": self.prod_version,
            "versionHistory": self.version_history,
            "suggestions": self.suggestions,
            "review": self.review.to_dict(),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        """Create from the local layout.

        Projects saved before reviews existed have no ``review`` key; they
        get a pending review.
        """
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            updated_at=data["updatedAt"],
            status=data.get("status") or "draft",
            mode=data.get("mode") or "dev",
            prd=data.get("prd") or {},
            tasks=data.get("tasks") or [],
            modules=data.get("modules") or [],
            priority_stack=data.get("priorityStack") or [],
            build_steps=data.get("buildSteps") or [],
            deploy_url=data.get("deployUrl"),
            prod_url=data.get("prodUrl"),
            prod_version=data.get("prodVersion") or 0,
            version_history=data.get("versionHistory") or [],
            suggestions=data.get("suggestions") or [],
            review=Review.from_dict(data.get("review")),
            created_at=data.get("createdAt"),
        )


@dataclass
class Idea:
    """A product idea being brainstormed before it becomes a project."""

    id: str
    title: str
    updated_at: Timestamp
    description: str = ""
    tags: list[str] = field(default_factory=list)
    chat: list[dict[str, Any]] = field(default_factory=list)
    prd_captures: PrdCaptures = field(default_factory=PrdCaptures)
    status: str = "raw"
    project_id: str | None = None
    created_at: Timestamp | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "tags": self.tags,
            "chat": self.chat,
            "prdCaptures": self.prd_captures.to_dict(),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "status": self.status,
        }
        if self.project_id:
            data["projectId"] = self.project_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Idea":
        return cls(
            id=data["id"],
            title=data.get("title") or "",
            updated_at=data["updatedAt"],
            description=data.get("description") or "",
            tags=data.get("tags") or [],
            chat=data.get("chat") or [],
            prd_captures=PrdCaptures.from_dict(data.get("prdCaptures")),
            status=data.get("status") or "raw",
            project_id=data.get("projectId"),
            created_at=data.get("createdAt"),
        )


def _iso(value: Timestamp | None) -> str | int | float | None:
    """Render datetimes as ISO strings, leave other timestamps alone."""
    if isinstance(value, datetime):
        return value.isoformat()
    return value
