"""API routes for Citegraph.

Provides:
- /graph/view: derived nodes with their visual encoding, links with style
- /graph/filters, /graph/reload: server-side filter options and reloads
- /graph/import: add drawn, AI-found or p-value articles to the project
- /clusters: methodology analysis, semantic clustering
- /jobs/{family}: background job progress, launch, cancel
- /notifications: active banners
"""

import logging
from typing import Any, Literal

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from citegraph.errors import CitegraphError, ValidationError
from citegraph.explorer import GraphExplorer
from citegraph.jobs import JobMonitor
from citegraph.services import ClusterSettings

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Models
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    project_id: str
    graph_loaded: bool
    load_error: str | None = None
    version: str = "0.1.0"


class ViewUpdate(BaseModel):
    """Partial update of the view toggles; omitted fields stay unchanged."""

    methodology_filter: str | None = None
    semantic_cluster_id: str | None = None
    show_semantic_edges: bool | None = None
    highlight_p_value: bool | None = None
    ai_found_ids: list[str] | None = None
    theme: Literal["light", "dark"] | None = None


class FilterUpdate(BaseModel):
    """Server-side graph filters; applied on the next reload."""

    filter: Literal["all", "selected", "excluded"] | None = None
    depth: int | None = Field(default=None, ge=1, le=3)
    sort_by: Literal["citations", "frequency", "year", "default"] | None = None
    max_total_nodes: int | None = Field(default=None, ge=1)
    max_links_per_node: int | None = Field(default=None, ge=1)
    unlimited_nodes: bool | None = None
    unlimited_links: bool | None = None
    year_from: int | None = None
    year_to: int | None = None
    stats_quality: int | None = Field(default=None, ge=0, le=3)
    sources: list[Literal["pubmed", "doaj", "wiley"]] | None = None
    source_queries: list[str] | None = None


class LaunchRequest(BaseModel):
    """Options forwarded to the job family's launch endpoint."""

    selected_only: bool | None = None
    article_ids: list[str] | None = None
    import_missing_articles: bool | None = None
    include_references: bool | None = None
    include_cited_by: bool | None = None


class ImportRequest(BaseModel):
    """Which graph articles to add to the project."""

    scope: Literal["visible", "ai_found", "p_value"] = "visible"
    status: Literal["candidate", "selected"] = "candidate"


class ClusterRequest(BaseModel):
    """Semantic clustering parameters."""

    num_clusters: int = Field(default=5, ge=2, le=20)
    min_cluster_size: int = Field(default=3, ge=2, le=50)
    similarity_threshold: float = Field(default=0.6, ge=0.3, le=0.95)
    generate_names: bool = True


# ============================================================================
# Helper Functions
# ============================================================================


def get_explorer(request: Request) -> GraphExplorer:
    """Get explorer from app state."""
    return request.app.state.explorer


def get_monitor(request: Request, family: str) -> JobMonitor:
    monitor = get_explorer(request).monitors.get(family)
    if monitor is None:
        raise HTTPException(status_code=404, detail=f"Unknown job family: {family}")
    return monitor


def view_payload(explorer: GraphExplorer) -> dict[str, Any]:
    derived = explorer.derived()
    encoder = explorer.encoder()
    nodes = []
    for node in derived.nodes:
        data = node.to_dict()
        data.update(encoder.encode(node).to_dict())
        nodes.append(data)
    links = []
    for link in derived.links:
        data = link.to_dict()
        data["style"] = encoder.link_style(link).to_dict()
        links.append(data)
    return {
        "nodes": nodes,
        "links": links,
        "summary": derived.summary(),
        "loadError": explorer.load_error,
        "pValueArticles": explorer.store.p_value_article_count if explorer.store else 0,
        "canLoadMore": explorer.store.can_load_more if explorer.store else False,
    }


# ============================================================================
# Graph Endpoints
# ============================================================================


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    explorer = get_explorer(request)
    return HealthResponse(
        status="degraded" if explorer.load_error else "healthy",
        project_id=explorer.project_id,
        graph_loaded=explorer.store is not None,
        load_error=explorer.load_error,
    )


@router.get("/graph/view")
async def get_view(request: Request) -> dict:
    """Derived graph for the current view, ready to draw."""
    return view_payload(get_explorer(request))


@router.put("/graph/view")
async def update_view(request: Request, body: ViewUpdate) -> dict:
    explorer = get_explorer(request)
    changes = body.model_dump(exclude_unset=True)

    if "show_semantic_edges" in changes:
        try:
            await explorer.set_show_semantic_edges(bool(changes.pop("show_semantic_edges")))
        except CitegraphError as e:
            raise HTTPException(status_code=502, detail=str(e))
    if changes:
        explorer.view = explorer.view.evolve(**changes)

    return view_payload(explorer)


@router.put("/graph/filters")
async def update_filters(request: Request, body: FilterUpdate) -> dict:
    """Update server-side filters and reload the graph."""
    explorer = get_explorer(request)
    for name, value in body.model_dump(exclude_unset=True).items():
        setattr(explorer.filter_options, name, value)
    try:
        await explorer.load()
    except CitegraphError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return view_payload(explorer)


@router.post("/graph/reload")
async def reload_graph(request: Request) -> dict:
    explorer = get_explorer(request)
    try:
        await explorer.load()
    except CitegraphError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return view_payload(explorer)


@router.post("/graph/import")
async def import_articles(request: Request, body: ImportRequest | None = None) -> dict:
    """Add graph articles that are not in the project yet."""
    explorer = get_explorer(request)
    body = body or ImportRequest()
    importers = {
        "visible": explorer.import_visible,
        "ai_found": explorer.import_ai_found,
        "p_value": explorer.import_p_value_articles,
    }
    try:
        added = await importers[body.scope](status=body.status)
    except CitegraphError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"added": added, "scope": body.scope, "status": body.status}


# ============================================================================
# Cluster Endpoints
# ============================================================================


def cluster_payload(explorer: GraphExplorer) -> dict[str, Any]:
    return {
        "methodologies": [c.to_dict() for c in explorer.methodology_clusters],
        "semantic": [c.to_dict() for c in explorer.semantic_clusters],
    }


@router.get("/clusters")
async def clusters(request: Request) -> dict:
    """Loaded methodology and semantic clusters."""
    return cluster_payload(get_explorer(request))


@router.post("/clusters/methodologies")
async def analyze_methodologies(request: Request) -> dict:
    explorer = get_explorer(request)
    try:
        await explorer.analyze_methodologies()
    except CitegraphError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return cluster_payload(explorer)


@router.get("/clusters/semantic")
async def get_semantic_clusters(request: Request) -> dict:
    """Fetch the project's saved semantic clusters."""
    explorer = get_explorer(request)
    try:
        await explorer.load_semantic_clusters()
    except CitegraphError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return cluster_payload(explorer)


@router.post("/clusters/semantic")
async def create_semantic_clusters(request: Request, body: ClusterRequest | None = None) -> dict:
    """Rebuild semantic clusters from the project's embeddings."""
    explorer = get_explorer(request)
    cluster_settings = ClusterSettings(**(body or ClusterRequest()).model_dump())
    try:
        await explorer.create_semantic_clusters(cluster_settings)
    except ValidationError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except CitegraphError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return cluster_payload(explorer)


@router.delete("/clusters/semantic")
async def delete_semantic_clusters(request: Request) -> dict:
    explorer = get_explorer(request)
    try:
        await explorer.delete_semantic_clusters()
    except CitegraphError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return cluster_payload(explorer)


# ============================================================================
# Job Endpoints
# ============================================================================


@router.get("/jobs/{family}")
async def job_progress(request: Request, family: str) -> dict:
    return get_monitor(request, family).progress().to_dict()


@router.post("/jobs/{family}/launch")
async def launch_job(request: Request, family: str, body: LaunchRequest | None = None) -> dict:
    monitor = get_monitor(request, family)
    options = body.model_dump(exclude_none=True) if body else {}
    progress = await monitor.launch(**options)
    return progress.to_dict()


@router.post("/jobs/{family}/cancel")
async def cancel_job(request: Request, family: str) -> dict:
    progress = await get_monitor(request, family).cancel()
    return progress.to_dict()


@router.post("/jobs/{family}/acknowledge")
async def acknowledge_job(request: Request, family: str) -> dict:
    monitor = get_monitor(request, family)
    monitor.acknowledge()
    return monitor.progress().to_dict()


@router.get("/notifications")
async def notifications(request: Request) -> list[dict]:
    return [banner.to_dict() for banner in get_explorer(request).notifier.active()]
