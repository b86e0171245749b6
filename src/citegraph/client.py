"""HTTP client for the literature server's citation-graph endpoints.

Blocking `requests` calls run in a worker thread so the event loop that
drives polling never blocks on the network.
"""

import asyncio
import logging
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from citegraph.config import settings
from citegraph.errors import ApiError, NetworkError
from citegraph.graph.store import GraphFilterOptions

logger = logging.getLogger(__name__)


class CitationGraphClient:
    """Async-wrapped client for the project citation-graph API using requests."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        retries: int | None = None,
    ) -> None:
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.token = token if token is not None else settings.api_token
        self.timeout = timeout or settings.request_timeout
        self.retries = settings.request_retries if retries is None else retries
        self._session: requests.Session | None = None

    def _get_session(self) -> requests.Session:
        """Get or create requests session with connection pooling."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({"Content-Type": "application/json"})
            if self.token:
                self._session.headers["Authorization"] = f"Bearer {self.token}"
            # Only idempotent methods are retried at the connection level;
            # job launches must not be replayed.
            adapter = HTTPAdapter(
                max_retries=Retry(
                    total=self.retries,
                    backoff_factor=0.5,
                    allowed_methods=frozenset({"GET", "DELETE"}),
                ),
            )
            self._session.mount("http://", adapter)
            self._session.mount("https://", adapter)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def _sync_request(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json: Any = None,
    ) -> dict[str, Any]:
        """Synchronous request (runs in thread)."""
        session = self._get_session()
        url = f"{self.base_url}{path}"
        try:
            response = session.request(method, url, params=params, json=json, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 500:
            raise NetworkError(
                f"{method} {path} returned {response.status_code}: {_error_text(response)}",
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise ApiError(_error_text(response), status_code=response.status_code)

        if not response.content:
            return {}
        return response.json()

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json: Any = None,
    ) -> dict[str, Any]:
        try:
            return await asyncio.to_thread(self._sync_request, method, path, params, json)
        except ApiError as e:
            logger.error(f"API error: {method} {path} -> {e.status_code} {e}")
            raise
        except NetworkError as e:
            logger.warning(f"Network error: {e}")
            raise

    # ------------------------------------------------------------------
    # Graph
    # ------------------------------------------------------------------

    async def get_graph(
        self, project_id: str, options: GraphFilterOptions | None = None
    ) -> dict[str, Any]:
        """getGraph: nodes, links, stats, limits, availableQueries, yearRange."""
        params = options.to_params() if options else None
        return await self._request("GET", f"/api/projects/{project_id}/citation-graph", params=params)

    async def import_from_graph(
        self,
        project_id: str,
        pmids: list[str],
        dois: list[str],
        status: str = "candidate",
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/api/projects/{project_id}/articles/import-from-graph",
            json={"pmids": pmids, "dois": dois, "status": status},
        )

    # ------------------------------------------------------------------
    # Semantic structure
    # ------------------------------------------------------------------

    async def get_semantic_neighbors(self, project_id: str, threshold: float) -> dict[str, Any]:
        return await self._request(
            "GET",
            f"/api/projects/{project_id}/citation-graph/semantic-neighbors",
            params={"threshold": str(threshold)},
        )

    async def get_semantic_clusters(self, project_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/api/projects/{project_id}/citation-graph/semantic-clusters")

    async def create_semantic_clusters(self, project_id: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._request(
            "POST", f"/api/projects/{project_id}/citation-graph/semantic-clusters", json=body
        )

    async def delete_semantic_clusters(self, project_id: str) -> dict[str, Any]:
        return await self._request("DELETE", f"/api/projects/{project_id}/citation-graph/semantic-clusters")

    async def analyze_methodologies(self, project_id: str) -> dict[str, Any]:
        return await self._request(
            "POST", f"/api/projects/{project_id}/citation-graph/analyze-methodologies"
        )

    # ------------------------------------------------------------------
    # Reference fetch job
    # ------------------------------------------------------------------

    async def fetch_references(self, project_id: str, **options: Any) -> dict[str, Any]:
        body = {k: v for k, v in {
            "selectedOnly": options.get("selected_only"),
            "articleIds": options.get("article_ids"),
        }.items() if v is not None}
        return await self._request(
            "POST", f"/api/projects/{project_id}/articles/fetch-references", json=body or None
        )

    async def fetch_references_status(self, project_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/api/projects/{project_id}/articles/fetch-references/status")

    async def cancel_fetch_references(self, project_id: str) -> dict[str, Any]:
        return await self._request("POST", f"/api/projects/{project_id}/articles/fetch-references/cancel")

    # ------------------------------------------------------------------
    # Embedding job
    # ------------------------------------------------------------------

    async def generate_embeddings(self, project_id: str, **options: Any) -> dict[str, Any]:
        body = {k: v for k, v in {
            "importMissingArticles": options.get("import_missing_articles"),
            "includeReferences": options.get("include_references"),
            "includeCitedBy": options.get("include_cited_by"),
        }.items() if v is not None}
        return await self._request(
            "POST", f"/api/projects/{project_id}/citation-graph/generate-embeddings", json=body
        )

    async def get_embedding_job(self, project_id: str, job_id: str) -> dict[str, Any]:
        return await self._request(
            "GET", f"/api/projects/{project_id}/citation-graph/embedding-job/{job_id}"
        )

    async def get_embedding_jobs(self, project_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/api/projects/{project_id}/citation-graph/embedding-jobs")

    async def cancel_embedding_job(self, project_id: str, job_id: str) -> dict[str, Any]:
        return await self._request(
            "POST", f"/api/projects/{project_id}/citation-graph/embedding-job/{job_id}/cancel"
        )

    # ------------------------------------------------------------------
    # Dependent stats
    # ------------------------------------------------------------------

    async def get_embedding_stats(self, project_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/api/projects/{project_id}/citation-graph/embedding-stats")

    async def get_missing_articles_stats(self, project_id: str) -> dict[str, Any]:
        return await self._request(
            "GET", f"/api/projects/{project_id}/citation-graph/missing-articles-stats"
        )


def _error_text(response: requests.Response) -> str:
    """Best-effort error message from a JSON or text error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason or ""
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or body)
    return str(body)
