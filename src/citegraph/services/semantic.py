"""Thin wrappers over the clustering and semantic-neighbor endpoints."""

import logging
from dataclasses import asdict, dataclass

from citegraph.client import CitationGraphClient
from citegraph.errors import ValidationError
from citegraph.graph.palette import Theme, palette_for
from citegraph.models import MethodologyCluster, SemanticCluster, SemanticEdge

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClusterSettings:
    """Parameters for building semantic clusters."""

    num_clusters: int = 5
    min_cluster_size: int = 3
    similarity_threshold: float = 0.6
    generate_names: bool = True

    def validate(self) -> None:
        if not 2 <= self.num_clusters <= 20:
            raise ValidationError(f"num_clusters must be within 2..20, got {self.num_clusters}")
        if not 2 <= self.min_cluster_size <= 50:
            raise ValidationError(f"min_cluster_size must be within 2..50, got {self.min_cluster_size}")
        if not 0.3 <= self.similarity_threshold <= 0.95:
            raise ValidationError(
                f"similarity_threshold must be within 0.3..0.95, got {self.similarity_threshold}"
            )

    def to_body(self) -> dict:
        data = asdict(self)
        return {
            "numClusters": data["num_clusters"],
            "minClusterSize": data["min_cluster_size"],
            "similarityThreshold": data["similarity_threshold"],
            "generateNames": data["generate_names"],
        }


class ClusterService:
    """Methodology and semantic cluster requests."""

    def __init__(self, client: CitationGraphClient, project_id: str) -> None:
        self.client = client
        self.project_id = project_id

    async def analyze_methodologies(self) -> tuple[MethodologyCluster, ...]:
        response = await self.client.analyze_methodologies(self.project_id)
        clusters = tuple(MethodologyCluster.from_dict(c) for c in response.get("clusters") or ())
        logger.info(f"Methodology analysis: {len(clusters)} clusters")
        return clusters

    async def get_semantic_clusters(self, theme: Theme = Theme.DARK) -> tuple[SemanticCluster, ...]:
        response = await self.client.get_semantic_clusters(self.project_id)
        return self._parse_clusters(response, theme)

    async def create_semantic_clusters(
        self,
        cluster_settings: ClusterSettings | None = None,
        theme: Theme = Theme.DARK,
    ) -> tuple[SemanticCluster, ...]:
        cluster_settings = cluster_settings or ClusterSettings()
        cluster_settings.validate()
        response = await self.client.create_semantic_clusters(self.project_id, cluster_settings.to_body())
        clusters = self._parse_clusters(response, theme)
        logger.info(f"Created {len(clusters)} semantic clusters")
        return clusters

    async def delete_semantic_clusters(self) -> None:
        await self.client.delete_semantic_clusters(self.project_id)
        logger.info(f"Deleted semantic clusters for project {self.project_id}")

    @staticmethod
    def _parse_clusters(response: dict, theme: Theme) -> tuple[SemanticCluster, ...]:
        palette = palette_for(theme)
        return tuple(
            SemanticCluster.from_dict(data, fallback_color=palette.cluster_color(index))
            for index, data in enumerate(response.get("clusters") or ())
        )


class SemanticEdgeService:
    """Similarity-derived article pairs for the semantic-edge overlay."""

    def __init__(self, client: CitationGraphClient, project_id: str) -> None:
        self.client = client
        self.project_id = project_id

    async def get_neighbors(self, threshold: float) -> tuple[SemanticEdge, ...]:
        response = await self.client.get_semantic_neighbors(self.project_id, threshold)
        edges: list[SemanticEdge] = []
        skipped = 0
        for data in response.get("edges") or ():
            try:
                edge = SemanticEdge.from_dict(data)
            except (KeyError, TypeError, ValueError):
                skipped += 1
                continue
            if not 0.0 <= edge.similarity <= 1.0 or edge.source == edge.target:
                skipped += 1
                continue
            edges.append(edge)
        if skipped:
            logger.warning(f"Dropped {skipped} malformed semantic edges")
        logger.info(f"Loaded {len(edges)} semantic edges (threshold={threshold})")
        return tuple(edges)
