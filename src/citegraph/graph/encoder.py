"""Visual encoding of graph nodes and links.

Size grows with citation count on a piecewise log scale; color follows a
first-match precedence table, then a semantic-cluster overlay replaces the
fill. AI-found articles are marked by a glow and outline layered on top of
the fill.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass

from citegraph.graph.palette import ColorRole, Palette, palette_for
from citegraph.graph.view_state import ViewState
from citegraph.models import ArticleSource, ArticleStatus, GraphLevel, Link, Node, SemanticCluster

HIGH_CITATION_GLOW_THRESHOLD = 200
AI_GLOW_BLUR = 12.0
AI_OUTLINE_WIDTH = 1.5
CLUSTER_STROKE_WIDTH = 1.2
DEFAULT_STROKE_WIDTH = 0.8
SEMANTIC_DASH = (4, 4)


@dataclass(frozen=True)
class SizeScale:
    """
    Piecewise citation-count scale.

    0 -> `zero`; 1..10 -> zero + linear * c; above that, each tier is
    `offset + log10(c) * k` up to its ceiling, with k shrinking per tier so
    growth decelerates.
    """

    zero: float
    linear: float
    tiers: tuple[tuple[float, float, float], ...]  # (ceiling, offset, k)
    level_uplift: float = 1.0
    ai_uplift: float = 1.0
    stats_bonus: float = 0.0  # Proportional bonus per stats-quality step

    def base(self, cited_by_count: int) -> float:
        count = max(0, cited_by_count)
        if count == 0:
            return self.zero
        if count <= 10:
            return self.zero + count * self.linear
        for ceiling, offset, k in self.tiers:
            if count <= ceiling:
                return offset + math.log10(count) * k
        raise ValueError(f"No size tier for {count} citations")

    def size(self, node: Node, ai_found: bool = False) -> float:
        size = self.base(node.cited_by_count)
        if node.graph_level == GraphLevel.PROJECT:
            size *= self.level_uplift
        if ai_found:
            size *= self.ai_uplift
        if node.stats_quality > 0:
            size *= 1 + self.stats_bonus * node.stats_quality
        return size


# Layout weight handed to the force layout
NODE_VALUE_SCALE = SizeScale(
    zero=12,
    linear=1.5,
    tiers=((100, 27, 12), (1000, 51, 8), (math.inf, 75, 3)),
    level_uplift=1.4,
    ai_uplift=1.5,
    stats_bonus=0.15,
)

# On-canvas radius in pixels
PIXEL_RADIUS_SCALE = SizeScale(
    zero=3,
    linear=0.6,
    tiers=((100, 9, 4), (1000, 17, 3), (math.inf, 26, 2.5)),
    level_uplift=1.1,
)


@dataclass(frozen=True)
class Glow:
    color: str
    blur: float


@dataclass(frozen=True)
class NodeEncoding:
    """Everything the renderer needs to draw one node."""

    value: float  # Layout weight
    radius: float  # Pixels
    fill: str
    role: ColorRole
    cluster_id: str | None = None
    glow: Glow | None = None
    stroke: str = ""
    stroke_width: float = DEFAULT_STROKE_WIDTH
    outline: str | None = None  # Extra ring for AI-found articles
    is_central: bool = False  # Central article of a semantic cluster

    def to_dict(self) -> dict:
        return {
            "size": round(self.value, 3),
            "radius": round(self.radius, 3),
            "color": self.fill,
            "role": self.role.value,
            "clusterId": self.cluster_id,
            "glow": {"color": self.glow.color, "blur": self.glow.blur} if self.glow else None,
            "stroke": self.stroke,
            "strokeWidth": self.stroke_width,
            "outline": self.outline,
            "isCentral": self.is_central,
        }


@dataclass(frozen=True)
class LinkStyle:
    color: str
    width: float
    dash: tuple[int, ...] | None = None

    def to_dict(self) -> dict:
        return {"color": self.color, "width": self.width, "dash": list(self.dash) if self.dash else None}


def classify_color(node: Node, view: ViewState) -> ColorRole:
    """Color precedence table; the first matching rule wins."""
    if view.is_ai_found(node.id):
        return ColorRole.AI_FOUND
    if view.highlight_p_value and node.stats_quality > 0:
        return ColorRole.P_VALUE

    level = node.graph_level
    if level == GraphLevel.CITING:
        return ColorRole.CITING
    if level == GraphLevel.PROJECT:
        status = node.article_status
        if status is ArticleStatus.SELECTED:
            return ColorRole.SELECTED
        if status is ArticleStatus.EXCLUDED:
            return ColorRole.EXCLUDED
        source = node.article_source
        if source is ArticleSource.DOAJ:
            return ColorRole.CANDIDATE_DOAJ
        if source is ArticleSource.WILEY:
            return ColorRole.CANDIDATE_WILEY
        return ColorRole.CANDIDATE_PUBMED
    if level == GraphLevel.REFERENCE:
        return ColorRole.REFERENCE
    if level == GraphLevel.RELATED:
        return ColorRole.RELATED
    return ColorRole.DEFAULT


def find_cluster(node_id: str, clusters: Iterable[SemanticCluster]) -> SemanticCluster | None:
    """First cluster, in iteration order, that contains the node."""
    for cluster in clusters:
        if node_id in cluster.article_ids:
            return cluster
    return None


class VisualEncoder:
    """Maps nodes to sizes and colors for one ViewState and cluster set."""

    def __init__(
        self,
        view: ViewState,
        clusters: Iterable[SemanticCluster] = (),
        value_scale: SizeScale = NODE_VALUE_SCALE,
        radius_scale: SizeScale = PIXEL_RADIUS_SCALE,
    ) -> None:
        self.view = view
        self.clusters = tuple(clusters)
        self.palette: Palette = palette_for(view.theme)
        self.value_scale = value_scale
        self.radius_scale = radius_scale
        self._central_ids = frozenset(
            c.central_article_id for c in self.clusters if c.central_article_id
        )

    def node_value(self, node: Node) -> float:
        return self.value_scale.size(node, ai_found=self.view.is_ai_found(node.id))

    def node_radius(self, node: Node) -> float:
        return self.radius_scale.size(node, ai_found=self.view.is_ai_found(node.id))

    def base_color(self, node: Node) -> str:
        return self.palette.color_for(classify_color(node, self.view))

    def encode(self, node: Node) -> NodeEncoding:
        role = classify_color(node, self.view)
        cluster = find_cluster(node.id, self.clusters)
        ai_found = self.view.is_ai_found(node.id)
        palette = self.palette

        fill = cluster.color if cluster else palette.color_for(role)

        glow = None
        if ai_found:
            glow = Glow(palette.ai_glow, AI_GLOW_BLUR)
        elif cluster:
            glow = Glow(cluster.color + palette.shadow_alpha, palette.cluster_glow_blur)
        elif node.cited_by_count > HIGH_CITATION_GLOW_THRESHOLD:
            glow = Glow(palette.high_citation_glow, palette.high_citation_glow_blur)

        return NodeEncoding(
            value=self.node_value(node),
            radius=self.node_radius(node),
            fill=fill,
            role=role,
            cluster_id=cluster.id if cluster else None,
            glow=glow,
            stroke=palette.cluster_stroke if cluster else palette.stroke,
            stroke_width=CLUSTER_STROKE_WIDTH if cluster else DEFAULT_STROKE_WIDTH,
            outline=palette.ai_outline if ai_found else None,
            is_central=node.id in self._central_ids,
        )

    def link_style(self, link: Link) -> LinkStyle:
        if link.is_semantic:
            similarity = link.similarity or 0.0
            return LinkStyle(
                color=self.palette.semantic_link,
                width=0.5 + similarity * 1.5,
                dash=SEMANTIC_DASH,
            )
        return LinkStyle(color=self.palette.link, width=0.5)
