"""Unit tests for the graph filter pipeline."""

import pytest

from citegraph.graph import (
    ClusterSelection,
    DerivedGraph,
    EdgeOverlay,
    FilterPipeline,
    GraphStore,
    MethodologySelection,
    ViewState,
    derive_graph,
)
from citegraph.graph.pipeline import keep_members, overlay_semantic_edges
from citegraph.models import Link, MethodologyCluster, Node, SemanticCluster, SemanticEdge


def make_store(node_ids: list[str], links: list[tuple[str, str]]) -> GraphStore:
    return GraphStore(
        nodes=tuple(Node(id=node_id) for node_id in node_ids),
        links=tuple(Link(source=s, target=t) for s, t in links),
    )


def assert_closed(graph: DerivedGraph) -> None:
    ids = graph.node_ids
    for link in graph.links:
        assert link.source in ids and link.target in ids


class TestMethodologyFilter:
    """Tests for the methodology stage."""

    def test_keeps_cluster_members(self) -> None:
        """Test that filtering drops non-members and their links."""
        store = make_store(["a", "b"], [("a", "b")])
        clusters = (MethodologyCluster(type="rct", name="RCT", article_ids=frozenset({"a"})),)

        result = derive_graph(
            store,
            MethodologySelection(clusters, "rct"),
            ClusterSelection(),
            EdgeOverlay(),
        )

        assert [n.id for n in result.nodes] == ["a"]
        assert result.links == ()

    def test_unknown_type_passes_through(self) -> None:
        """Test that a stale methodology selection is ignored."""
        store = make_store(["a", "b"], [("a", "b")])
        clusters = (MethodologyCluster(type="rct", name="RCT", article_ids=frozenset({"a"})),)

        result = derive_graph(store, MethodologySelection(clusters, "cohort"), ClusterSelection(), EdgeOverlay())

        assert len(result.nodes) == 2
        assert len(result.links) == 1

    def test_empty_membership_passes_through(self) -> None:
        """Test that a cluster without members does not empty the graph."""
        store = make_store(["a", "b"], [])
        clusters = (MethodologyCluster(type="rct", name="RCT"),)

        result = derive_graph(store, MethodologySelection(clusters, "rct"), ClusterSelection(), EdgeOverlay())

        assert len(result.nodes) == 2

    def test_selection_without_clusters(self) -> None:
        """Test that a selection with no loaded clusters passes through."""
        assert MethodologySelection((), "rct").members() is None


class TestSemanticClusterFilter:
    """Tests for the semantic-cluster stage."""

    def test_runs_after_methodology(self) -> None:
        """Test that both filters intersect."""
        store = make_store(["a", "b", "c"], [("a", "b"), ("b", "c")])
        methodology = (MethodologyCluster(type="rct", name="RCT", article_ids=frozenset({"a", "b"})),)
        semantic = (SemanticCluster(id="s1", color="#000", article_ids=frozenset({"b", "c"})),)

        result = derive_graph(
            store,
            MethodologySelection(methodology, "rct"),
            ClusterSelection(semantic, "s1"),
            EdgeOverlay(),
        )

        assert [n.id for n in result.nodes] == ["b"]
        assert result.links == ()

    def test_deleted_cluster_passes_through(self) -> None:
        """Test that a cluster id that no longer exists is ignored."""
        store = make_store(["a", "b"], [("a", "b")])
        semantic = (SemanticCluster(id="s1", color="#000", article_ids=frozenset({"a"})),)

        result = derive_graph(store, MethodologySelection(), ClusterSelection(semantic, "gone"), EdgeOverlay())

        assert len(result.nodes) == 2


class TestSemanticEdgeOverlay:
    """Tests for the semantic-edge stage."""

    def test_edge_to_missing_node_dropped(self) -> None:
        """Test that edges to nodes outside the view are not added."""
        store = make_store(["a", "b"], [("a", "b")])
        overlay = EdgeOverlay(True, (SemanticEdge("a", "c", 0.9),))

        result = derive_graph(store, MethodologySelection(), ClusterSelection(), overlay)

        assert len(result.links) == 1
        assert result.semantic_link_count == 0

    def test_existing_citation_not_duplicated(self) -> None:
        """Test that a semantic edge over an existing citation, either direction, is skipped."""
        store = make_store(["a", "b", "c"], [("a", "b")])
        overlay = EdgeOverlay(True, (
            SemanticEdge("b", "a", 0.9),
            SemanticEdge("a", "c", 0.8),
        ))

        result = derive_graph(store, MethodologySelection(), ClusterSelection(), overlay)

        semantic = [link for link in result.links if link.is_semantic]
        assert [(link.source, link.target) for link in semantic] == [("a", "c")]
        assert semantic[0].similarity == 0.8

    def test_repeated_edges_added_once(self) -> None:
        """Test that duplicate and reversed edges in one response are added once."""
        store = make_store(["a", "b"], [])
        overlay = EdgeOverlay(True, (
            SemanticEdge("a", "b", 0.9),
            SemanticEdge("a", "b", 0.9),
            SemanticEdge("b", "a", 0.7),
        ))

        result = derive_graph(store, MethodologySelection(), ClusterSelection(), overlay)

        assert result.semantic_link_count == 1

    def test_disabled_overlay(self) -> None:
        """Test that edges are ignored while the overlay is off."""
        graph = DerivedGraph(nodes=(Node(id="a"), Node(id="b")))
        overlay = EdgeOverlay(False, (SemanticEdge("a", "b", 0.9),))

        assert overlay_semantic_edges(graph, overlay) is graph

    def test_edges_only_between_filtered_nodes(self) -> None:
        """Test that the overlay runs on the filtered node set."""
        store = make_store(["a", "b", "c"], [])
        methodology = (MethodologyCluster(type="rct", name="RCT", article_ids=frozenset({"a", "b"})),)
        overlay = EdgeOverlay(True, (SemanticEdge("a", "c", 0.9), SemanticEdge("a", "b", 0.8)))

        result = derive_graph(store, MethodologySelection(methodology, "rct"), ClusterSelection(), overlay)

        assert [(link.source, link.target) for link in result.links] == [("a", "b")]


class TestPipelineProperties:
    """Closure and idempotence over the sample graph."""

    @pytest.mark.parametrize("methodology,cluster,edges_on", [
        (None, None, False),
        ("rct", None, True),
        (None, "s1", True),
        ("rct", "s1", True),
        ("cohort", "s2", False),
    ])
    def test_closure_and_idempotence(
        self,
        sample_store: GraphStore,
        methodology_clusters,
        semantic_clusters,
        semantic_edges,
        methodology: str | None,
        cluster: str | None,
        edges_on: bool,
    ) -> None:
        """Test that every link endpoint is drawn and re-running changes nothing."""
        selections = (
            MethodologySelection(methodology_clusters, methodology),
            ClusterSelection(semantic_clusters, cluster),
            EdgeOverlay(edges_on, semantic_edges),
        )
        first = derive_graph(sample_store, *selections)
        assert_closed(first)

        again = derive_graph(GraphStore(nodes=first.nodes, links=first.links), *selections)
        assert again.nodes == first.nodes
        assert again.links == first.links

    def test_store_not_mutated(self, sample_store: GraphStore, methodology_clusters) -> None:
        """Test that filtering never touches the raw store."""
        nodes_before = sample_store.nodes
        derive_graph(sample_store, MethodologySelection(methodology_clusters, "rct"), ClusterSelection(), EdgeOverlay())
        assert sample_store.nodes is nodes_before
        assert len(sample_store) == 5

    def test_keep_members_none(self) -> None:
        """Test that no membership means pass-through."""
        graph = DerivedGraph(nodes=(Node(id="a"),))
        assert keep_members(graph, None) is graph


class TestFilterPipeline:
    """Tests for the memoized pipeline front end."""

    def test_memoizes_identical_views(self, sample_store, methodology_clusters) -> None:
        """Test that the same store and view reuse the derived graph."""
        pipeline = FilterPipeline(cache_size=4)
        view = ViewState(methodology_filter="rct")

        first = pipeline.run(sample_store, view, methodology_clusters)
        second = pipeline.run(sample_store, view.evolve(highlight_p_value=True), methodology_clusters)

        assert first is second
        assert pipeline.cache_info().hits == 1

    def test_new_store_recomputes(self, graph_payload, methodology_clusters) -> None:
        """Test that a reload is never served from the cache."""
        pipeline = FilterPipeline()
        view = ViewState()

        pipeline.run(GraphStore.from_response(graph_payload), view, methodology_clusters)
        pipeline.run(GraphStore.from_response(graph_payload), view, methodology_clusters)

        assert pipeline.cache_info().misses == 2

    def test_clear(self, sample_store) -> None:
        """Test clearing the cache."""
        pipeline = FilterPipeline()
        pipeline.run(sample_store, ViewState())
        pipeline.clear()
        assert pipeline.cache_info().currsize == 0

    def test_summary(self, sample_store, semantic_edges) -> None:
        """Test link counts split by kind."""
        result = FilterPipeline().run(sample_store, ViewState(show_semantic_edges=True), semantic_edges=semantic_edges)
        assert result.summary() == {"nodes": 5, "links": 4, "semantic_links": 1}
