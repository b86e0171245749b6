"""Cluster and semantic-edge models produced by the AI services."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class MethodologyCluster:
    """Articles grouped by study design (rct, cohort, meta_analysis, ...)."""

    type: str  # Stable key used for selection
    name: str
    count: int = 0
    percentage: float = 0.0
    article_ids: frozenset[str] = field(default_factory=frozenset)
    keywords: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "name": self.name,
            "count": self.count,
            "percentage": self.percentage,
            "articleIds": sorted(self.article_ids),
            "keywords": list(self.keywords),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MethodologyCluster":
        article_ids = frozenset(str(a) for a in data.get("articleIds") or ())
        return cls(
            type=data["type"],
            name=data.get("name") or data["type"],
            count=int(data.get("count", len(article_ids))),
            percentage=float(data.get("percentage", 0.0)),
            article_ids=article_ids,
            keywords=tuple(data.get("keywords") or ()),
        )


@dataclass(frozen=True)
class SemanticCluster:
    """
    Embedding-space cluster of articles.

    Clusters may overlap; consumers take the first matching cluster in
    iteration order.
    """

    id: str
    color: str
    name: str = ""
    central_article_id: str | None = None
    article_ids: frozenset[str] = field(default_factory=frozenset)
    keywords: tuple[str, ...] = ()

    def __contains__(self, article_id: object) -> bool:
        return article_id in self.article_ids

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "centralArticleId": self.central_article_id,
            "articleIds": sorted(self.article_ids),
            "keywords": list(self.keywords),
        }

    @classmethod
    def from_dict(cls, data: dict, fallback_color: str = "") -> "SemanticCluster":
        return cls(
            id=str(data["id"]),
            color=data.get("color") or fallback_color,
            name=data.get("name") or "",
            central_article_id=data.get("centralArticleId"),
            article_ids=frozenset(str(a) for a in data.get("articleIds") or ()),
            keywords=tuple(data.get("keywords") or ()),
        )


@dataclass(frozen=True)
class SemanticEdge:
    """Similarity-derived article pair from the semantic-neighbor service."""

    source: str
    target: str
    similarity: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SemanticEdge":
        return cls(
            source=str(data["source"]),
            target=str(data["target"]),
            similarity=float(data["similarity"]),
        )
