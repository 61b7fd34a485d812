"""Tests for remote store adapters."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from ideasync.store import (
    FailureReason,
    MemoryRemoteStore,
    PostgrestStore,
    StoreResult,
)


def response(status_code: int, body=None) -> MagicMock:
    """Build a stand-in for an httpx.Response."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.content = b"x" if body is not None else b""
    resp.json = MagicMock(return_value=body)
    resp.text = "" if body is None else str(body)
    return resp


class TestStoreResult:
    """Tests for StoreResult."""

    def test_success(self):
        result = StoreResult.success([1, 2])

        assert result.ok
        assert result.value == [1, 2]
        assert result.reason is None

    def test_failure(self):
        result = StoreResult.failure(FailureReason.TIMEOUT, "slow")

        assert not result.ok
        assert result.reason == FailureReason.TIMEOUT
        assert result.error == "slow"


class TestMemoryRemoteStore:
    """Tests for MemoryRemoteStore."""

    @pytest.fixture
    def store(self):
        ticks = iter(f"2026-01-01T00:00:0{i}+00:00" for i in range(10))
        return MemoryRemoteStore("projects", clock=lambda: next(ticks))

    @pytest.mark.asyncio
    async def test_fetch_is_owner_scoped_and_newest_first(self, store):
        store.seed([
            {"id": "a", "user_id": "u1", "updated_at": "2026-01-01T00:00:00Z"},
            {"id": "b", "user_id": "u1", "updated_at": "2026-02-01T00:00:00Z"},
            {"id": "c", "user_id": "u2", "updated_at": "2026-03-01T00:00:00Z"},
        ])

        result = await store.fetch_all("u1")

        assert result.ok
        assert [r["id"] for r in result.value] == ["b", "a"]

    @pytest.mark.asyncio
    async def test_upsert_stamps_timestamps(self, store):
        result = await store.upsert("u1", {"id": "a", "name": "first"})

        assert result.ok
        row = store.get("a")
        assert row["user_id"] == "u1"
        assert row["created_at"] == "2026-01-01T00:00:00+00:00"
        assert row["updated_at"] == "2026-01-01T00:00:00+00:00"

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent_on_content(self, store):
        await store.upsert("u1", {"id": "a", "name": "same"})
        first = store.get("a")
        await store.upsert("u1", {"id": "a", "name": "same"})
        second = store.get("a")

        assert len(store) == 1
        assert second["name"] == first["name"]
        assert second["created_at"] == first["created_at"]

    @pytest.mark.asyncio
    async def test_upsert_rejects_other_owner(self, store):
        await store.upsert("u1", {"id": "a", "name": "mine"})

        result = await store.upsert("u2", {"id": "a", "name": "stolen"})

        assert not result.ok
        assert result.reason == FailureReason.REJECTED
        assert store.get("a")["name"] == "mine"

    @pytest.mark.asyncio
    async def test_upsert_requires_id(self, store):
        result = await store.upsert("u1", {"name": "anonymous"})

        assert result.reason == FailureReason.REJECTED

    @pytest.mark.asyncio
    async def test_delete(self, store):
        await store.upsert("u1", {"id": "a"})

        result = await store.delete("a")
        again = await store.delete("a")

        assert result.ok
        assert again.ok
        assert store.get("a") is None

    @pytest.mark.asyncio
    async def test_offline(self, store):
        store.set_available(False)

        for result in (
            await store.fetch_all("u1"),
            await store.upsert("u1", {"id": "a"}),
            await store.delete("a"),
        ):
            assert not result.ok
            assert result.reason == FailureReason.UNAVAILABLE


class TestPostgrestStore:
    """Tests for PostgrestStore."""

    @pytest.fixture
    def store(self):
        return PostgrestStore(
            base_url="https://example.supabase.co/",
            table="projects",
            api_key="anon-key",
            access_token="user-jwt",
            max_retries=3,
            backoff_seconds=0,
        )

    def test_init(self, store):
        """Test store initialization."""
        assert store.base_url == "https://example.supabase.co"
        assert store.table == "projects"
        assert store.path == "/rest/v1/projects"
        assert store._auth_headers() == {
            "apikey": "anon-key",
            "Authorization": "Bearer user-jwt",
        }

    def test_auth_falls_back_to_api_key(self):
        store = PostgrestStore("https://x.example", "ideas", api_key="anon-key")

        assert store._auth_headers()["Authorization"] == "Bearer anon-key"

    @pytest.mark.asyncio
    async def test_not_configured(self):
        store = PostgrestStore(None, "projects")

        result = await store.fetch_all("u1")

        assert result.reason == FailureReason.NOT_CONFIGURED

    @pytest.mark.asyncio
    async def test_fetch_all_filters_by_owner(self, store):
        rows = [{"id": "p1", "user_id": "u1", "updated_at": "2026-01-01T00:00:00Z"}]
        mock_http = AsyncMock()
        mock_http.request = AsyncMock(return_value=response(200, rows))

        with patch.object(store, "_get_client", new=AsyncMock(return_value=mock_http)):
            result = await store.fetch_all("u1")

        assert result.ok
        assert result.value == rows
        args, kwargs = mock_http.request.call_args
        assert args == ("GET", "/rest/v1/projects")
        assert kwargs["params"] == {
            "select": "*",
            "user_id": "eq.u1",
            "order": "updated_at.desc",
        }

    @pytest.mark.asyncio
    async def test_fetch_all_rejects_non_list(self, store):
        mock_http = AsyncMock()
        mock_http.request = AsyncMock(return_value=response(200, {"message": "?"}))

        with patch.object(store, "_get_client", new=AsyncMock(return_value=mock_http)):
            result = await store.fetch_all("u1")

        assert result.reason == FailureReason.REJECTED

    @pytest.mark.asyncio
    async def test_upsert_merges_on_id(self, store):
        mock_http = AsyncMock()
        mock_http.request = AsyncMock(return_value=response(201))

        with patch.object(store, "_get_client", new=AsyncMock(return_value=mock_http)):
            result = await store.upsert("u1", {"id": "p1", "name": "x"})

        assert result.ok
        args, kwargs = mock_http.request.call_args
        assert args == ("POST", "/rest/v1/projects")
        assert kwargs["params"] == {"on_conflict": "id"}
        assert kwargs["json"] == {"id": "p1", "name": "x", "user_id": "u1"}
        assert kwargs["headers"]["Prefer"] == "resolution=merge-duplicates,return=minimal"

    @pytest.mark.asyncio
    async def test_delete_by_id(self, store):
        mock_http = AsyncMock()
        mock_http.request = AsyncMock(return_value=response(204))

        with patch.object(store, "_get_client", new=AsyncMock(return_value=mock_http)):
            result = await store.delete("p1")

        assert result.ok
        args, kwargs = mock_http.request.call_args
        assert args == ("DELETE", "/rest/v1/projects")
        assert kwargs["params"] == {"id": "eq.p1"}

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, store):
        mock_http = AsyncMock()
        mock_http.request = AsyncMock(return_value=response(403, {"message": "RLS"}))

        with patch.object(store, "_get_client", new=AsyncMock(return_value=mock_http)):
            result = await store.upsert("u1", {"id": "p1"})

        assert result.reason == FailureReason.REJECTED
        assert "403" in result.error
        assert mock_http.request.call_count == 1

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self, store):
        mock_http = AsyncMock()
        mock_http.request = AsyncMock(side_effect=[response(503), response(200, [])])

        with patch.object(store, "_get_client", new=AsyncMock(return_value=mock_http)):
            result = await store.fetch_all("u1")

        assert result.ok
        assert result.value == []
        assert mock_http.request.call_count == 2

    @pytest.mark.asyncio
    async def test_timeouts_exhaust_retries(self, store):
        mock_http = AsyncMock()
        mock_http.request = AsyncMock(side_effect=httpx.ReadTimeout("slow"))

        with patch.object(store, "_get_client", new=AsyncMock(return_value=mock_http)):
            result = await store.fetch_all("u1")

        assert result.reason == FailureReason.TIMEOUT
        assert "Max retries (3)" in result.error
        assert mock_http.request.call_count == 3

    @pytest.mark.asyncio
    async def test_connection_failure(self, store):
        mock_http = AsyncMock()
        mock_http.request = AsyncMock(side_effect=httpx.ConnectError("refused"))

        with patch.object(store, "_get_client", new=AsyncMock(return_value=mock_http)):
            result = await store.delete("p1")

        assert result.reason == FailureReason.UNAVAILABLE
        assert mock_http.request.call_count == 3

    @pytest.mark.asyncio
    async def test_set_access_token_updates_client(self, store):
        client = await store._get_client()
        try:
            store.set_access_token("new-jwt")
            assert client.headers["Authorization"] == "Bearer new-jwt"
        finally:
            await store.close()

        assert store._client is None
