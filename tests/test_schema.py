"""Tests for the remote row layouts."""

import pytest

from ideasync.errors import MalformedRemoteRecord
from ideasync.models import Idea, PrdCaptures, Project, Review
from ideasync.sync import IdeaSchema, ProjectSchema

PROJECT_REMOTE_FIELDS = {
    "id", "user_id", "name", "status", "mode", "prd", "tasks", "modules",
    "priority_stack", "build_steps", "deploy_url", "prod_url", "prod_version",
    "version_history", "suggestions", "review",
}

IDEA_REMOTE_FIELDS = {
    "id", "user_id", "title", "description", "tags", "chat", "prd_captures",
    "status", "promoted_to_project_id",
}


class TestProjectSchema:
    """Tests for ProjectSchema."""

    def test_to_remote_layout(self):
        """Test the upsert row uses remote names and omits timestamps."""
        project = Project(
            id="p1",
            name="Todo app",
            updated_at="2026-01-02T00:00:00Z",
            created_at="2026-01-01T00:00:00Z",
            status="building",
            mode="test",
            priority_stack=["m1", "m2"],
            build_steps=[{"step": 1}],
            deploy_url="http://localhost:5173",
            prod_version=3,
        )

        row = ProjectSchema().to_remote("user-a", project)

        assert set(row) == PROJECT_REMOTE_FIELDS
        assert row["user_id"] == "user-a"
        assert row["priority_stack"] == ["m1", "m2"]
        assert row["build_steps"] == [{"step": 1}]
        assert row["deploy_url"] == "http://localhost:5173"
        assert row["prod_url"] is None
        assert row["prod_version"] == 3
        assert row["review"] == {
            "status": "pending",
            "errors": [],
            "improvements": [],
            "simplifications": [],
        }

    def test_from_remote_fills_defaults(self):
        """Test missing structural fields become empty collections."""
        project = ProjectSchema().from_remote({
            "id": "p1",
            "user_id": "user-a",
            "name": "Sparse",
            "updated_at": "2026-01-02T00:00:00Z",
            "tasks": None,
        })

        assert project.status == "draft"
        assert project.mode == "dev"
        assert project.prd == {}
        assert project.tasks == []
        assert project.modules == []
        assert project.priority_stack == []
        assert project.build_steps == []
        assert project.version_history == []
        assert project.suggestions == []
        assert project.prod_version == 0
        assert project.deploy_url is None
        assert project.review == Review()

    def test_from_remote_renames_fields(self):
        """Test remote snake_case fields map onto the model."""
        review = {
            "status": "complete",
            "errors": [{"id": "e1"}],
            "improvements": [],
            "simplifications": [],
            "completedAt": "2026-01-03T00:00:00Z",
        }
        project = ProjectSchema().from_remote({
            "id": "p1",
            "name": "Full",
            "priority_stack": ["m1"],
            "prod_url": "https://example.app",
            "version_history": [{"version": 1}],
            "review": review,
            "created_at": "2026-01-01T00:00:00Z",
            "updated_at": "2026-01-02T00:00:00Z",
        })

        assert project.priority_stack == ["m1"]
        assert project.prod_url == "https://example.app"
        assert project.version_history == [{"version": 1}]
        assert project.review.status == "complete"
        assert project.review.completed_at == "2026-01-03T00:00:00Z"
        assert project.created_at == "2026-01-01T00:00:00Z"
        assert project.updated_at == "2026-01-02T00:00:00Z"

    @pytest.mark.parametrize(
        "row, field",
        [
            ({"name": "x", "updated_at": 1}, "id"),
            ({"id": "", "updated_at": 1}, "id"),
            ({"id": "p1"}, "updated_at"),
            ({"id": "p1", "updated_at": "garbage"}, "updated_at"),
            (None, "row"),
            (["p1", 1], "row"),
            ({"id": "p1", "updated_at": 1, "review": "pending"}, "review"),
            ({"id": "p1", "updated_at": 1, "review": ["bad"]}, "review"),
        ],
    )
    def test_from_remote_rejects_malformed(self, row, field):
        """Test unusable rows are rejected with the offending field."""
        with pytest.raises(MalformedRemoteRecord) as exc_info:
            ProjectSchema().from_remote(row)

        assert exc_info.value.field == field


class TestIdeaSchema:
    """Tests for IdeaSchema."""

    def test_to_remote_layout(self):
        """Test the upsert row for an idea."""
        idea = Idea(
            id="i1",
            title="Recipe sharing",
            updated_at=5,
            tags=["food"],
            prd_captures=PrdCaptures(features=[{"content": "search"}]),
            status="promoted",
            project_id="p9",
        )

        row = IdeaSchema().to_remote("user-a", idea)

        assert set(row) == IDEA_REMOTE_FIELDS
        assert row["promoted_to_project_id"] == "p9"
        assert row["prd_captures"]["features"] == [{"content": "search"}]
        assert row["prd_captures"]["design"] == []

    def test_to_remote_sends_null_project(self):
        """Test an unpromoted idea sends a null project id."""
        row = IdeaSchema().to_remote("user-a", Idea(id="i1", title="x", updated_at=1))

        assert row["promoted_to_project_id"] is None

    def test_from_remote_defaults_captures(self):
        """Test a missing prd_captures becomes six empty buckets."""
        idea = IdeaSchema().from_remote({
            "id": "i1",
            "title": "Bare",
            "updated_at": "2026-01-01T00:00:00Z",
        })

        assert idea.prd_captures.to_dict() == {
            "overview": [],
            "features": [],
            "users": [],
            "screens": [],
            "data": [],
            "design": [],
        }
        assert idea.description == ""
        assert idea.tags == []
        assert idea.chat == []
        assert idea.status == "raw"
        assert idea.project_id is None

    def test_from_remote_maps_project_id(self):
        """Test promoted_to_project_id maps to project_id."""
        idea = IdeaSchema().from_remote({
            "id": "i1",
            "title": "Done",
            "status": "promoted",
            "promoted_to_project_id": "p1",
            "updated_at": 3,
        })

        assert idea.status == "promoted"
        assert idea.project_id == "p1"

    @pytest.mark.parametrize("captures", [[], "overview", 3])
    def test_from_remote_rejects_non_object_captures(self, captures):
        row = {"id": "i1", "updated_at": 1, "prd_captures": captures}

        with pytest.raises(MalformedRemoteRecord) as exc_info:
            IdeaSchema().from_remote(row)

        assert exc_info.value.field == "prd_captures"
        assert exc_info.value.entity_id == "i1"

    def test_from_remote_accepts_null_captures(self):
        idea = IdeaSchema().from_remote({"id": "i1", "updated_at": 1, "prd_captures": None})

        assert idea.prd_captures == PrdCaptures()
