"""Citegraph data models."""

from citegraph.models.cluster import MethodologyCluster, SemanticCluster, SemanticEdge
from citegraph.models.job import CancelReason, JobState, JobStatus
from citegraph.models.node import (
    ArticleMetadata,
    ArticleSource,
    ArticleStatus,
    Enriched,
    GraphLevel,
    Link,
    Node,
    Placeholder,
)

__all__ = [
    "Node",
    "Link",
    "GraphLevel",
    "ArticleStatus",
    "ArticleSource",
    "ArticleMetadata",
    "Placeholder",
    "Enriched",
    "MethodologyCluster",
    "SemanticCluster",
    "SemanticEdge",
    "JobState",
    "JobStatus",
    "CancelReason",
]
