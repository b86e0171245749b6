"""GraphExplorer - ties the store, view state, pipeline, encoder and job monitors together.

Owns the only mutable state: the current GraphStore, the ViewState, the loaded
clusters/edges and one JobMonitor per job family. Everything derived from
them is recomputed through pure functions.
"""

import asyncio
import logging
from collections.abc import Iterable
from functools import partial
from typing import Any

from citegraph.client import CitationGraphClient
from citegraph.config import Settings, settings as default_settings
from citegraph.errors import CitegraphError, ValidationError
from citegraph.graph import (
    DerivedGraph,
    FilterPipeline,
    GraphFilterOptions,
    GraphStore,
    NodeEncoding,
    Theme,
    ViewState,
    VisualEncoder,
)
from citegraph.jobs import EmbeddingFamily, JobMonitor, Level, Notifier, ReferenceFetchFamily
from citegraph.models import ArticleStatus, GraphLevel, JobState, MethodologyCluster, Node, SemanticCluster, SemanticEdge
from citegraph.services import ClusterService, ClusterSettings, SemanticEdgeService

logger = logging.getLogger(__name__)

GRAPH_CHANNEL = "graph"
IMPORT_CHANNEL = "import"
CLUSTER_CHANNEL = "clusters"

MIN_CLUSTER_EMBEDDINGS = 10


class GraphExplorer:
    """Client-side session over one project's citation graph."""

    def __init__(
        self,
        project_id: str,
        client: CitationGraphClient | None = None,
        settings: Settings | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.project_id = project_id
        self.settings = settings or default_settings
        self.client = client or CitationGraphClient(
            base_url=self.settings.api_base_url,
            token=self.settings.api_token,
            timeout=self.settings.request_timeout,
            retries=self.settings.request_retries,
        )
        self.notifier = notifier or Notifier(
            info_ttl=self.settings.info_message_ttl,
            warning_ttl=self.settings.warning_message_ttl,
            error_ttl=self.settings.error_message_ttl,
        )

        # Read at reload time, never captured by pending work
        self.filter_options = GraphFilterOptions()
        self.view = ViewState(theme=Theme(self.settings.default_theme))

        self.store: GraphStore | None = None
        self.load_error: str | None = None  # Sticky until a load succeeds

        self.methodology_clusters: tuple[MethodologyCluster, ...] = ()
        self.semantic_clusters: tuple[SemanticCluster, ...] = ()
        self.semantic_edges: tuple[SemanticEdge, ...] = ()

        self.embedding_stats: dict[str, Any] | None = None
        self.missing_articles_stats: dict[str, Any] | None = None

        self.pipeline = FilterPipeline(cache_size=self.settings.pipeline_cache_size)
        self.clusters = ClusterService(self.client, project_id)
        self.edges = SemanticEdgeService(self.client, project_id)

        self.references = JobMonitor(
            ReferenceFetchFamily(self.client, project_id),
            self.notifier,
            poll_interval=self.settings.poll_interval,
            stall_threshold=self.settings.stall_threshold,
            on_completed=partial(self._on_job_completed, ReferenceFetchFamily.name),
            on_settled=self._on_job_settled,
        )
        self.embeddings = JobMonitor(
            EmbeddingFamily(self.client, project_id),
            self.notifier,
            poll_interval=self.settings.poll_interval,
            stall_threshold=self.settings.stall_threshold,
            on_completed=partial(self._on_job_completed, EmbeddingFamily.name),
            on_settled=self._on_job_settled,
        )

        self._reload_task: asyncio.Task | None = None
        self._load_generation = 0

    @property
    def monitors(self) -> dict[str, JobMonitor]:
        return {
            self.references.family.name: self.references,
            self.embeddings.family.name: self.embeddings,
        }

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> GraphStore | None:
        """
        Fetch the graph for the current filter options and replace the store.

        Starting a load supersedes every earlier one: a pending reload is
        cancelled, and a response to an older load that arrives late is
        discarded so it cannot overwrite a newer store.
        """
        self._cancel_pending_reload()
        self._load_generation += 1
        generation = self._load_generation

        options = self.filter_options
        try:
            payload = await self.client.get_graph(self.project_id, options)
        except CitegraphError as e:
            if generation != self._load_generation:
                logger.debug(f"Ignoring failure of superseded graph load: {e}")
                return self.store
            self.load_error = str(e)
            logger.error(f"Failed to load graph for project {self.project_id}: {e}")
            self.notifier.post(GRAPH_CHANNEL, f"Failed to load graph: {e}", Level.ERROR, sticky=True)
            raise

        if generation != self._load_generation:
            logger.debug(f"Discarding superseded graph response for project {self.project_id}")
            return self.store

        store = GraphStore.from_response(payload)
        self.store = store
        if self.load_error is not None:
            self.load_error = None
            self.notifier.dismiss(GRAPH_CHANNEL)
        logger.info(
            f"Loaded graph: {len(store.nodes)} nodes, {len(store.links)} links "
            f"({store.p_value_article_count} external with p-values)"
        )
        return store

    def request_reload(self, delay: float = 0.0, after_job: str | None = None) -> asyncio.Task:
        """Schedule a reload, replacing any reload that has not finished yet."""
        self._cancel_pending_reload()
        self._reload_task = asyncio.create_task(self._reload(delay, after_job))
        return self._reload_task

    def _cancel_pending_reload(self) -> None:
        task = self._reload_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _reload(self, delay: float, after_job: str | None) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        try:
            await self.load()
        except CitegraphError:
            if after_job is not None:
                self.notifier.post(
                    after_job,
                    "Job finished, but the graph could not be refreshed. Reload to see the changes.",
                    Level.WARNING,
                )
            return
        if after_job is not None:
            self.notifier.post(after_job, "Graph updated", Level.SUCCESS)

    async def wait_for_reload(self) -> None:
        task = self._reload_task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    # ------------------------------------------------------------------
    # Derivation and encoding
    # ------------------------------------------------------------------

    def derived(self) -> DerivedGraph:
        """The node/link set to draw. Empty while a load failure is unresolved."""
        if self.store is None or self.load_error is not None:
            return DerivedGraph()
        return self.pipeline.run(
            self.store,
            self.view,
            self.methodology_clusters,
            self.semantic_clusters,
            self.semantic_edges,
        )

    def encoder(self) -> VisualEncoder:
        return VisualEncoder(self.view, self.semantic_clusters)

    def encode_nodes(self) -> list[tuple[Node, NodeEncoding]]:
        encoder = self.encoder()
        return [(node, encoder.encode(node)) for node in self.derived().nodes]

    # ------------------------------------------------------------------
    # View controls
    # ------------------------------------------------------------------

    def select_methodology(self, cluster_type: str | None) -> None:
        self.view = self.view.evolve(methodology_filter=cluster_type)

    def select_semantic_cluster(self, cluster_id: str | None) -> None:
        self.view = self.view.evolve(semantic_cluster_id=cluster_id)

    def set_highlight_p_value(self, enabled: bool) -> None:
        self.view = self.view.evolve(highlight_p_value=enabled)

    def set_ai_found(self, node_ids: Iterable[str]) -> None:
        self.view = self.view.evolve(ai_found_ids=frozenset(node_ids))

    def set_theme(self, theme: Theme | str) -> None:
        self.view = self.view.evolve(theme=theme)

    async def set_show_semantic_edges(self, enabled: bool) -> None:
        """Toggle the overlay, loading edges on first enable."""
        if enabled and not self.semantic_edges:
            await self.load_semantic_edges()
        self.view = self.view.evolve(show_semantic_edges=enabled)

    # ------------------------------------------------------------------
    # Semantic structure
    # ------------------------------------------------------------------

    async def load_semantic_edges(self, threshold: float | None = None) -> tuple[SemanticEdge, ...]:
        threshold = self.settings.semantic_edge_threshold if threshold is None else threshold
        try:
            self.semantic_edges = await self.edges.get_neighbors(threshold)
        except CitegraphError as e:
            self.notifier.post(CLUSTER_CHANNEL, f"Failed to load semantic edges: {e}", Level.ERROR)
            raise
        return self.semantic_edges

    async def analyze_methodologies(self) -> tuple[MethodologyCluster, ...]:
        try:
            self.methodology_clusters = await self.clusters.analyze_methodologies()
        except CitegraphError as e:
            self.notifier.post(CLUSTER_CHANNEL, f"Methodology analysis failed: {e}", Level.ERROR)
            raise
        return self.methodology_clusters

    async def load_semantic_clusters(self) -> tuple[SemanticCluster, ...]:
        self.semantic_clusters = await self.clusters.get_semantic_clusters(self.view.theme)
        return self.semantic_clusters

    async def create_semantic_clusters(
        self, cluster_settings: ClusterSettings | None = None
    ) -> tuple[SemanticCluster, ...]:
        """Cluster the project by embeddings. Needs enough embedded articles first."""
        try:
            stats = self.embedding_stats or await self.refresh_embedding_stats()
        except CitegraphError as e:
            self.notifier.post(CLUSTER_CHANNEL, f"Clustering failed: {e}", Level.ERROR)
            raise
        embedded = int(stats.get("withEmbeddings", 0))
        if embedded < MIN_CLUSTER_EMBEDDINGS:
            message = (
                f"Only {embedded} articles have embeddings, clustering needs at least "
                f"{MIN_CLUSTER_EMBEDDINGS}. Generate embeddings first."
            )
            self.notifier.post(CLUSTER_CHANNEL, message, Level.WARNING)
            raise ValidationError(message)

        try:
            self.semantic_clusters = await self.clusters.create_semantic_clusters(
                cluster_settings, self.view.theme
            )
        except CitegraphError as e:
            self.notifier.post(CLUSTER_CHANNEL, f"Clustering failed: {e}", Level.ERROR)
            raise
        self.notifier.post(CLUSTER_CHANNEL, f"Created {len(self.semantic_clusters)} clusters", Level.SUCCESS)
        return self.semantic_clusters

    async def delete_semantic_clusters(self) -> None:
        await self.clusters.delete_semantic_clusters()
        self.semantic_clusters = ()
        self.select_semantic_cluster(None)

    # ------------------------------------------------------------------
    # Bulk import
    # ------------------------------------------------------------------

    async def import_nodes(self, nodes: Iterable[Node], status: str = ArticleStatus.CANDIDATE.value) -> int:
        """Add graph articles to the project by PMID/DOI. Returns the server's added count."""
        if status not in (ArticleStatus.CANDIDATE.value, ArticleStatus.SELECTED.value):
            raise ValueError(f"Import status must be candidate or selected, got {status!r}")

        pmids: list[str] = []
        dois: list[str] = []
        for node in nodes:
            if node.pmid:
                pmids.append(node.pmid)
            elif node.doi:
                dois.append(node.doi)
        if not pmids and not dois:
            self.notifier.post(IMPORT_CHANNEL, "No articles with a PMID or DOI to add", Level.WARNING)
            return 0

        try:
            response = await self.client.import_from_graph(self.project_id, pmids, dois, status)
        except CitegraphError as e:
            self.notifier.post(IMPORT_CHANNEL, f"Import failed: {e}", Level.ERROR)
            raise

        added = int(response.get("added", 0))
        label = "selected" if status == ArticleStatus.SELECTED.value else "candidates"
        self.notifier.post(IMPORT_CHANNEL, f"Added {added} articles to {label}", Level.SUCCESS)
        if added:
            self.request_reload()
        return added

    async def import_visible(self, status: str = ArticleStatus.CANDIDATE.value) -> int:
        """Add every drawn article that is not in the project yet."""
        return await self.import_nodes(
            (n for n in self.derived().nodes if n.graph_level != GraphLevel.PROJECT), status
        )

    async def import_ai_found(self, status: str = ArticleStatus.CANDIDATE.value) -> int:
        if self.store is None:
            return 0
        found = (self.store.get(node_id) for node_id in sorted(self.view.ai_found_ids))
        return await self.import_nodes((n for n in found if n is not None), status)

    async def import_p_value_articles(self, status: str = ArticleStatus.CANDIDATE.value) -> int:
        """Add external articles that report p-value statistics."""
        if self.store is None:
            return 0
        return await self.import_nodes(
            (n for n in self.store.nodes if n.graph_level != GraphLevel.PROJECT and n.has_p_value),
            status,
        )

    # ------------------------------------------------------------------
    # Dependent stats and job side effects
    # ------------------------------------------------------------------

    async def refresh_embedding_stats(self) -> dict[str, Any]:
        self.embedding_stats = await self.client.get_embedding_stats(self.project_id)
        return self.embedding_stats

    async def refresh_missing_articles_stats(self) -> dict[str, Any]:
        self.missing_articles_stats = await self.client.get_missing_articles_stats(self.project_id)
        return self.missing_articles_stats

    async def _on_job_completed(self, channel: str, state: JobState) -> None:
        self.request_reload(delay=self.settings.reload_settle_delay, after_job=channel)

    async def _on_job_settled(self, state: JobState) -> None:
        """Refresh the job-dependent stats; one failing does not block the other."""
        results = await asyncio.gather(
            self.refresh_embedding_stats(),
            self.refresh_missing_articles_stats(),
            return_exceptions=True,
        )
        for name, result in zip(("embedding", "missing article"), results):
            if isinstance(result, CitegraphError):
                logger.warning(f"Failed to refresh {name} stats: {result}")
            elif isinstance(result, BaseException):
                raise result

    async def resume_jobs(self) -> None:
        """Resume polling jobs that were started before this session."""
        await self.references.resume()
        await self.embeddings.resume()

    async def close(self) -> None:
        for monitor in self.monitors.values():
            await monitor.shutdown()
        self._cancel_pending_reload()
        await self.client.close()
