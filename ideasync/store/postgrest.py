"""HTTP remote store for a PostgREST-style table API.

Talks to the ``/rest/v1/<table>`` endpoints exposed by hosted Postgres
services. Row level security on the server scopes rows to the user the
access token belongs to; requests also filter on ``user_id`` explicitly.
"""

import asyncio
import logging
from typing import Any

import httpx

from .base import FailureReason, RemoteStore, Row, StoreResult

logger = logging.getLogger(__name__)

UPSERT_PREFER = "resolution=merge-duplicates,return=minimal"


class PostgrestStore(RemoteStore):
    """Remote table reached over HTTP, with retry and backoff.

    Server errors, connection failures and timeouts are retried with
    exponential backoff; client errors are returned immediately.
    """

    def __init__(
        self,
        base_url: str | None,
        table: str,
        api_key: str | None = None,
        access_token: str | None = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
    ):
        """Initialize the store.

        Args:
            base_url: Service URL (e.g., "https://example.supabase.co").
            table: Remote table name ("projects" or "ideas").
            api_key: Public API key sent in the ``apikey`` header.
            access_token: User session token; falls back to the API key.
            timeout: Request timeout in seconds.
            max_retries: Maximum attempts per request.
            backoff_seconds: Initial delay between attempts.
        """
        self.base_url = base_url.rstrip("/") if base_url else None
        self._table = table
        self.api_key = api_key
        self.access_token = access_token
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.backoff_seconds = backoff_seconds
        self._client: httpx.AsyncClient | None = None

    @property
    def table(self) -> str:
        return self._table

    @property
    def path(self) -> str:
        return f"/rest/v1/{self._table}"

    def set_access_token(self, token: str | None) -> None:
        """Switch the session token, e.g. after the user signs in again."""
        self.access_token = token
        if self._client is not None:
            self._client.headers.update(self._auth_headers())

    def _auth_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.api_key:
            headers["apikey"] = self.api_key
        bearer = self.access_token or self.api_key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url or "",
                headers=self._auth_headers(),
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request_with_retry(
        self,
        method: str,
        params: dict[str, str] | None = None,
        json_data: Any = None,
        headers: dict[str, str] | None = None,
    ) -> StoreResult[Any]:
        """Make an HTTP request against the table endpoint.

        Args:
            method: HTTP method (GET, POST, DELETE).
            params: Query parameters (PostgREST filters).
            json_data: Optional JSON body.
            headers: Extra request headers.

        Returns:
            StoreResult holding the decoded JSON body (None when empty).
        """
        if not self.base_url:
            return StoreResult.failure(
                FailureReason.NOT_CONFIGURED, "No remote URL configured"
            )

        client = await self._get_client()
        backoff = self.backoff_seconds
        reason = FailureReason.UNAVAILABLE
        error = ""

        for attempt in range(self.max_retries):
            try:
                response = await client.request(
                    method,
                    self.path,
                    params=params,
                    json=json_data,
                    headers=headers,
                )

                if 200 <= response.status_code < 300:
                    data = response.json() if response.content else None
                    return StoreResult.success(data)

                if response.status_code >= 500:
                    reason = FailureReason.UNAVAILABLE
                    error = f"HTTP {response.status_code}: {response.text}"
                    logger.warning(
                        f"{self._table}: server error {response.status_code}, "
                        f"attempt {attempt + 1}/{self.max_retries}"
                    )
                else:
                    # Client error, don't retry
                    return StoreResult.failure(
                        FailureReason.REJECTED,
                        f"HTTP {response.status_code}: {response.text}",
                    )

            except httpx.TimeoutException:
                reason = FailureReason.TIMEOUT
                error = "Request timed out"
                logger.warning(
                    f"{self._table}: request timeout, "
                    f"attempt {attempt + 1}/{self.max_retries}"
                )
            except httpx.ConnectError as e:
                reason = FailureReason.UNAVAILABLE
                error = f"Connection failed: {e}"
                logger.warning(
                    f"{self._table}: connection failed, "
                    f"attempt {attempt + 1}/{self.max_retries}"
                )
            except httpx.HTTPError as e:
                logger.error(f"{self._table}: request error: {e}")
                return StoreResult.failure(FailureReason.UNAVAILABLE, str(e))

            # Exponential backoff
            if attempt < self.max_retries - 1:
                await asyncio.sleep(backoff)
                backoff *= 2

        return StoreResult.failure(
            reason, f"Max retries ({self.max_retries}) exceeded: {error}"
        )

    async def fetch_all(self, owner_id: str) -> StoreResult[list[Row]]:
        result = await self._request_with_retry(
            "GET",
            params={
                "select": "*",
                "user_id": f"eq.{owner_id}",
                "order": "updated_at.desc",
            },
        )
        if not result.ok:
            return result

        rows = result.value if result.value is not None else []
        if not isinstance(rows, list):
            return StoreResult.failure(
                FailureReason.REJECTED,
                f"Expected a list of rows from {self._table}, got {type(rows).__name__}",
            )
        return StoreResult.success(rows)

    async def upsert(self, owner_id: str, row: Row) -> StoreResult[None]:
        payload = dict(row)
        payload["user_id"] = owner_id

        result = await self._request_with_retry(
            "POST",
            params={"on_conflict": "id"},
            json_data=payload,
            headers={"Prefer": UPSERT_PREFER},
        )
        return StoreResult.success() if result.ok else result

    async def delete(self, entity_id: str) -> StoreResult[None]:
        result = await self._request_with_retry(
            "DELETE", params={"id": f"eq.{entity_id}"}
        )
        return StoreResult.success() if result.ok else result
