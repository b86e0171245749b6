"""Request/response wrappers for the AI-derived semantic structure."""

from citegraph.services.semantic import ClusterService, ClusterSettings, SemanticEdgeService

__all__ = [
    "ClusterService",
    "ClusterSettings",
    "SemanticEdgeService",
]
