"""GraphStore - immutable snapshot of one citation-graph load."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from citegraph.models import GraphLevel, Link, Node

logger = logging.getLogger(__name__)

UNLIMITED = 999999

StatusFilter = Literal["all", "selected", "excluded"]
SortBy = Literal["citations", "frequency", "year", "default"]


@dataclass
class GraphFilterOptions:
    """Server-side graph filters sent with every load.

    Mutable on purpose: controls write to it, reloads read it at fire time.
    """

    filter: StatusFilter = "all"
    depth: int = 1
    sort_by: SortBy = "default"
    max_total_nodes: int = 2000
    max_links_per_node: int = 20
    unlimited_nodes: bool = False
    unlimited_links: bool = False
    year_from: int | None = None
    year_to: int | None = None
    stats_quality: int = 0  # Minimum p-value statistics quality, 0 = off
    sources: list[str] = field(default_factory=list)
    source_queries: list[str] = field(default_factory=list)

    def to_params(self) -> dict[str, str]:
        """Serialize to query parameters, omitting unset filters."""
        params: dict[str, str] = {
            "filter": self.filter,
            "depth": str(self.depth),
            "sortBy": self.sort_by,
            "maxTotalNodes": str(UNLIMITED if self.unlimited_nodes else self.max_total_nodes),
            "maxLinksPerNode": str(UNLIMITED if self.unlimited_links else self.max_links_per_node),
        }
        if self.source_queries:
            params["sourceQueries"] = json.dumps(self.source_queries)
        if self.year_from is not None:
            params["yearFrom"] = str(self.year_from)
        if self.year_to is not None:
            params["yearTo"] = str(self.year_to)
        if self.stats_quality > 0:
            params["statsQuality"] = str(self.stats_quality)
        if self.sources:
            params["sources"] = json.dumps(self.sources)
        return params


@dataclass(frozen=True)
class GraphStats:
    total_nodes: int = 0
    total_links: int = 0
    level_counts: dict[str, int] = field(default_factory=dict, hash=False, compare=False)
    available_references: int = 0
    available_citing: int = 0

    @classmethod
    def from_dict(cls, data: dict | None) -> "GraphStats":
        data = data or {}
        return cls(
            total_nodes=int(data.get("totalNodes", 0)),
            total_links=int(data.get("totalLinks", 0)),
            level_counts={k: int(v) for k, v in (data.get("levelCounts") or {}).items() if v is not None},
            available_references=int(data.get("availableReferences") or 0),
            available_citing=int(data.get("availableCiting") or 0),
        )


@dataclass(frozen=True)
class GraphLimits:
    max_links_per_node: int
    max_extra_nodes: int


@dataclass(frozen=True)
class YearRange:
    min: int | None = None
    max: int | None = None


@dataclass(frozen=True, eq=False)
class GraphStore:
    """
    Raw node/link dataset for the current filter request.

    Identity-hashed: a store is never patched, every successful load builds a
    new one, so object identity is a sufficient memoization key.
    """

    nodes: tuple[Node, ...] = ()
    links: tuple[Link, ...] = ()
    stats: GraphStats = field(default_factory=GraphStats)
    limits: GraphLimits | None = None
    available_queries: tuple[str, ...] = ()
    year_range: YearRange | None = None
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        object.__setattr__(self, "_index", {n.id: n for n in self.nodes})

    def __len__(self) -> int:
        return len(self.nodes)

    def get(self, node_id: str) -> Node | None:
        return self._index.get(node_id)  # type: ignore[attr-defined]

    @property
    def node_ids(self) -> frozenset[str]:
        return frozenset(self._index)  # type: ignore[attr-defined]

    @property
    def p_value_article_count(self) -> int:
        """External articles (outside the project) carrying p-value statistics."""
        return sum(1 for n in self.nodes if n.graph_level != GraphLevel.PROJECT and n.has_p_value)

    @property
    def can_load_more(self) -> bool:
        """Whether raising the node limit would reveal more external articles."""
        if self.limits is None:
            return False
        total_available = self.stats.available_references + self.stats.available_citing
        current_extra = sum(1 for n in self.nodes if n.graph_level != GraphLevel.PROJECT)
        return current_extra < total_available and current_extra >= self.limits.max_extra_nodes * 0.9

    @classmethod
    def from_response(cls, payload: dict[str, Any]) -> "GraphStore":
        """Build a store from a getGraph response."""
        nodes = tuple(Node.from_dict(n) for n in payload.get("nodes") or ())
        links = tuple(Link.from_dict(link) for link in payload.get("links") or ())

        limits = None
        if payload.get("limits"):
            limits = GraphLimits(
                max_links_per_node=int(payload["limits"].get("maxLinksPerNode", 0)),
                max_extra_nodes=int(payload["limits"].get("maxExtraNodes", 0)),
            )

        year_range = None
        if payload.get("yearRange"):
            year_range = YearRange(
                min=payload["yearRange"].get("min"),
                max=payload["yearRange"].get("max"),
            )

        placeholders = sum(1 for n in nodes if n.is_placeholder)
        logger.debug(
            f"Ingested graph: {len(nodes)} nodes ({placeholders} placeholders), {len(links)} links"
        )

        return cls(
            nodes=nodes,
            links=links,
            stats=GraphStats.from_dict(payload.get("stats")),
            limits=limits,
            available_queries=tuple(payload.get("availableQueries") or ()),
            year_range=year_range,
        )
