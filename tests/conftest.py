"""Pytest configuration and fixtures."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from citegraph.client import CitationGraphClient
from citegraph.config import Settings
from citegraph.graph import GraphStore
from citegraph.jobs import Notifier
from citegraph.models import MethodologyCluster, Node, SemanticCluster, SemanticEdge


@pytest.fixture
def test_settings() -> Settings:
    """Test settings; polling is driven manually with poll_once()."""
    return Settings(
        api_base_url="http://testserver",
        api_token="test-token",
        project_id="project-test",
        poll_interval=3600.0,
        stall_threshold=60.0,
        reload_settle_delay=0.0,
        info_message_ttl=5.0,
        warning_message_ttl=7.0,
        error_message_ttl=10.0,
    )


@pytest.fixture
def notifier() -> Notifier:
    return Notifier(info_ttl=5.0, warning_ttl=7.0, error_ttl=10.0)


@pytest.fixture
def graph_payload() -> dict[str, Any]:
    """getGraph response covering every graph level."""
    return {
        "nodes": [
            {
                "id": "p1",
                "label": "Smith 2020",
                "graphLevel": 1,
                "status": "selected",
                "source": "pubmed",
                "citedByCount": 50,
                "pmid": "111",
                "title": "Statins and outcomes",
                "year": 2020,
            },
            {
                "id": "p2",
                "label": "Lee 2021",
                "graphLevel": 1,
                "status": "candidate",
                "source": "doaj",
                "citedByCount": 0,
                "doi": "10.1000/p2",
                "title": "Open access cohort",
            },
            {
                "id": "r1",
                "label": "Ref 2010",
                "graphLevel": 2,
                "citedByCount": 300,
                "statsQuality": 2,
                "pmid": "222",
                "title": "Landmark trial",
            },
            {
                "id": "c1",
                "label": "Citing 2023",
                "graphLevel": 0,
                "citedByCount": 5,
                "pmid": "333",
            },
            {"id": "x1", "graphLevel": 3},
        ],
        "links": [
            {"source": "p1", "target": "r1"},
            {"source": "p2", "target": "r1"},
            {"source": "c1", "target": "p1"},
            {"source": "x1", "target": "r1"},
        ],
        "stats": {
            "totalNodes": 5,
            "totalLinks": 4,
            "levelCounts": {"level0": 1, "level1": 2, "level2": 1, "level3": 1},
            "availableReferences": 10,
            "availableCiting": 5,
        },
        "limits": {"maxLinksPerNode": 20, "maxExtraNodes": 3},
        "availableQueries": ["statins"],
        "yearRange": {"min": 2010, "max": 2023},
    }


@pytest.fixture
def sample_store(graph_payload: dict[str, Any]) -> GraphStore:
    return GraphStore.from_response(graph_payload)


@pytest.fixture
def sample_node() -> Node:
    """Project candidate from PubMed."""
    return Node(id="n1", graph_level=1, status="candidate", source="pubmed", cited_by_count=5)


@pytest.fixture
def methodology_clusters() -> tuple[MethodologyCluster, ...]:
    return (
        MethodologyCluster(type="rct", name="RCT", count=2, article_ids=frozenset({"p1", "r1"})),
        MethodologyCluster(type="cohort", name="Cohort", count=1, article_ids=frozenset({"p2"})),
    )


@pytest.fixture
def semantic_clusters() -> tuple[SemanticCluster, ...]:
    return (
        SemanticCluster(
            id="s1",
            color="#123456",
            name="Cardiology",
            central_article_id="p1",
            article_ids=frozenset({"p1", "r1", "c1"}),
        ),
        SemanticCluster(id="s2", color="#abcdef", name="Overlap", article_ids=frozenset({"r1", "x1"})),
    )


@pytest.fixture
def semantic_edges() -> tuple[SemanticEdge, ...]:
    return (
        SemanticEdge(source="p1", target="c1", similarity=0.9),
        SemanticEdge(source="p1", target="p2", similarity=0.8),
    )


@pytest.fixture
def mock_client(graph_payload: dict[str, Any]) -> MagicMock:
    """Mock API client for testing without a server."""
    client = MagicMock(spec=CitationGraphClient)

    client.get_graph = AsyncMock(return_value=graph_payload)
    client.import_from_graph = AsyncMock(return_value={"added": 2})
    client.get_semantic_neighbors = AsyncMock(return_value={"edges": []})
    client.get_semantic_clusters = AsyncMock(return_value={"clusters": []})
    client.create_semantic_clusters = AsyncMock(return_value={"clusters": []})
    client.delete_semantic_clusters = AsyncMock(return_value={})
    client.analyze_methodologies = AsyncMock(return_value={"clusters": []})

    client.fetch_references = AsyncMock(return_value={"jobId": "ref-job", "totalArticles": 10})
    client.fetch_references_status = AsyncMock(return_value={"hasJob": False})
    client.cancel_fetch_references = AsyncMock(return_value={})

    client.generate_embeddings = AsyncMock(
        return_value={"jobId": "emb-job", "status": "pending", "total": 10}
    )
    client.get_embedding_job = AsyncMock(return_value={"status": "running", "processed": 0, "total": 10})
    client.get_embedding_jobs = AsyncMock(return_value={"jobs": []})
    client.cancel_embedding_job = AsyncMock(return_value={})

    client.get_embedding_stats = AsyncMock(return_value={"withEmbeddings": 3, "total": 5})
    client.get_missing_articles_stats = AsyncMock(return_value={"missing": 0})
    client.close = AsyncMock()

    return client
