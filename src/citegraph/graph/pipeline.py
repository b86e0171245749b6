"""Filter pipeline - reduces the loaded graph to the node/link set that is drawn.

Stages run strictly in order, each on the previous stage's output:

1. methodology filter
2. semantic-cluster filter
3. semantic-edge overlay

Every stage falls back to passing its input through unchanged; nothing here
raises for a stale selection.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from functools import lru_cache

from citegraph.graph.store import GraphStore
from citegraph.graph.view_state import ViewState
from citegraph.models import Link, MethodologyCluster, Node, SemanticCluster, SemanticEdge

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DerivedGraph:
    """Nodes and links to render. Links only reference ids present in nodes."""

    nodes: tuple[Node, ...] = ()
    links: tuple[Link, ...] = ()

    @property
    def node_ids(self) -> frozenset[str]:
        return frozenset(n.id for n in self.nodes)

    @property
    def semantic_link_count(self) -> int:
        return sum(1 for link in self.links if link.is_semantic)

    def summary(self) -> dict[str, int]:
        semantic = self.semantic_link_count
        return {
            "nodes": len(self.nodes),
            "links": len(self.links) - semantic,
            "semantic_links": semantic,
        }


@dataclass(frozen=True)
class MethodologySelection:
    clusters: tuple[MethodologyCluster, ...] = ()
    selected: str | None = None

    def members(self) -> frozenset[str] | None:
        """Article ids to keep, or None to pass through."""
        if not self.selected or not self.clusters:
            return None
        for cluster in self.clusters:
            if cluster.type == self.selected:
                return cluster.article_ids or None
        logger.debug(f"Methodology '{self.selected}' not among loaded clusters, ignoring filter")
        return None


@dataclass(frozen=True)
class ClusterSelection:
    clusters: tuple[SemanticCluster, ...] = ()
    selected: str | None = None

    def members(self) -> frozenset[str] | None:
        """Article ids to keep, or None to pass through."""
        if not self.selected or not self.clusters:
            return None
        for cluster in self.clusters:
            if cluster.id == self.selected:
                return cluster.article_ids or None
        logger.debug(f"Semantic cluster '{self.selected}' no longer exists, ignoring filter")
        return None


@dataclass(frozen=True)
class EdgeOverlay:
    enabled: bool = False
    edges: tuple[SemanticEdge, ...] = ()

    @property
    def active(self) -> bool:
        return self.enabled and bool(self.edges)


def keep_members(graph: DerivedGraph, members: frozenset[str] | None) -> DerivedGraph:
    """Keep nodes in `members` and the links whose endpoints both survive."""
    if members is None:
        return graph
    nodes = tuple(n for n in graph.nodes if n.id in members)
    kept = {n.id for n in nodes}
    links = tuple(
        link for link in graph.links
        if link.source in kept and link.target in kept
    )
    return DerivedGraph(nodes=nodes, links=links)


def filter_by_methodology(graph: DerivedGraph, selection: MethodologySelection) -> DerivedGraph:
    return keep_members(graph, selection.members())


def filter_by_semantic_cluster(graph: DerivedGraph, selection: ClusterSelection) -> DerivedGraph:
    return keep_members(graph, selection.members())


def overlay_semantic_edges(graph: DerivedGraph, overlay: EdgeOverlay) -> DerivedGraph:
    """Append semantic edges between drawn nodes that are not already linked."""
    if not overlay.active:
        return graph

    existing: set[str] = set()
    for link in graph.links:
        existing.add(link.key)
        existing.add(link.inverse_key)
    node_ids = {n.id for n in graph.nodes}

    added: list[Link] = []
    for edge in overlay.edges:
        if edge.source not in node_ids or edge.target not in node_ids:
            continue
        key = f"{edge.source}-{edge.target}"
        if key in existing:
            continue
        added.append(Link(
            source=edge.source,
            target=edge.target,
            is_semantic=True,
            similarity=edge.similarity,
        ))
        # A repeated or reversed edge in the same response is added once
        existing.add(key)
        existing.add(f"{edge.target}-{edge.source}")

    if not added:
        return graph
    return DerivedGraph(nodes=graph.nodes, links=graph.links + tuple(added))


def derive_graph(
    store: GraphStore,
    methodology: MethodologySelection,
    cluster: ClusterSelection,
    overlay: EdgeOverlay,
) -> DerivedGraph:
    """Run the three stages over a store. Pure."""
    graph = DerivedGraph(nodes=store.nodes, links=store.links)
    graph = filter_by_methodology(graph, methodology)
    graph = filter_by_semantic_cluster(graph, cluster)
    return overlay_semantic_edges(graph, overlay)


class FilterPipeline:
    """
    Memoized front end for `derive_graph`.

    Keyed on the store identity plus the three selections, so toggling back
    and forth between views reuses earlier results.
    """

    def __init__(self, cache_size: int = 32) -> None:
        self._derive = lru_cache(maxsize=cache_size)(derive_graph)

    def run(
        self,
        store: GraphStore,
        view: ViewState,
        methodology_clusters: Iterable[MethodologyCluster] = (),
        semantic_clusters: Iterable[SemanticCluster] = (),
        semantic_edges: Iterable[SemanticEdge] = (),
    ) -> DerivedGraph:
        return self._derive(
            store,
            MethodologySelection(tuple(methodology_clusters), view.methodology_filter),
            ClusterSelection(tuple(semantic_clusters), view.semantic_cluster_id),
            EdgeOverlay(view.show_semantic_edges, tuple(semantic_edges)),
        )

    def cache_info(self):
        return self._derive.cache_info()

    def clear(self) -> None:
        self._derive.cache_clear()
