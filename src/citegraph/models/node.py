"""Graph node and link models - articles and citations as returned by the server."""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any


class GraphLevel(IntEnum):
    """Provenance distance of an article from the project's own articles."""

    CITING = 0  # Cites a project article
    PROJECT = 1  # In the project
    REFERENCE = 2  # Referenced by a project article
    RELATED = 3  # Also references a level-2 article


class ArticleStatus(str, Enum):
    """Review status of an article within the project."""

    CANDIDATE = "candidate"
    SELECTED = "selected"
    EXCLUDED = "excluded"
    DELETED = "deleted"


class ArticleSource(str, Enum):
    """Bibliographic database the article came from."""

    PUBMED = "pubmed"
    DOAJ = "doaj"
    WILEY = "wiley"


def _to_int(value: Any, default: int = 0) -> int:
    """Coerce a possibly missing/None/str number into an int."""
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Placeholder:
    """Node known only by its identifier (no metadata fetched yet)."""

    kind = "placeholder"


@dataclass(frozen=True)
class Enriched:
    """Node with bibliographic metadata."""

    title: str | None = None
    title_ru: str | None = None
    abstract: str | None = None
    abstract_ru: str | None = None
    year: int | None = None
    journal: str | None = None
    authors: str | None = None

    kind = "enriched"


ArticleMetadata = Placeholder | Enriched

_ENRICHING_FIELDS = ("title", "abstract", "year", "journal", "authors")


def resolve_metadata(data: dict) -> ArticleMetadata:
    """Resolve the metadata variant once, at ingestion."""
    if not any(data.get(name) not in (None, "") for name in _ENRICHING_FIELDS):
        return Placeholder()
    year = data.get("year")
    return Enriched(
        title=data.get("title"),
        title_ru=data.get("title_ru"),
        abstract=data.get("abstract"),
        abstract_ru=data.get("abstract_ru"),
        year=_to_int(year) if year not in (None, "") else None,
        journal=data.get("journal"),
        authors=data.get("authors"),
    )


@dataclass(frozen=True)
class Node:
    """
    An article in the citation graph.

    Raw nodes are never mutated by filtering; derived views select among them.
    `status` and `source` keep the raw server value, the enum views below
    normalize it for coloring.
    """

    id: str
    graph_level: int = GraphLevel.PROJECT
    status: str = ArticleStatus.CANDIDATE.value
    source: str | None = None
    cited_by_count: int = 0
    stats_quality: int = 0  # 0 = no p-value statistics, 3 = best
    has_embedding: bool = False

    label: str = ""
    pmid: str | None = None
    doi: str | None = None
    metadata: ArticleMetadata = Placeholder()

    @property
    def level(self) -> GraphLevel | None:
        """Known graph level, or None for out-of-range values."""
        try:
            return GraphLevel(self.graph_level)
        except ValueError:
            return None

    @property
    def article_status(self) -> ArticleStatus:
        try:
            return ArticleStatus(self.status)
        except ValueError:
            return ArticleStatus.CANDIDATE

    @property
    def article_source(self) -> ArticleSource:
        try:
            return ArticleSource(self.source or ArticleSource.PUBMED.value)
        except ValueError:
            return ArticleSource.PUBMED

    @property
    def is_placeholder(self) -> bool:
        return isinstance(self.metadata, Placeholder)

    @property
    def has_p_value(self) -> bool:
        return self.stats_quality > 0

    def to_dict(self) -> dict:
        """Convert to the camelCase wire shape."""
        data: dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "graphLevel": self.graph_level,
            "status": self.status,
            "source": self.source,
            "citedByCount": self.cited_by_count,
            "statsQuality": self.stats_quality,
            "hasEmbedding": self.has_embedding,
            "pmid": self.pmid,
            "doi": self.doi,
            "placeholder": self.is_placeholder,
        }
        if isinstance(self.metadata, Enriched):
            data.update({
                "title": self.metadata.title,
                "title_ru": self.metadata.title_ru,
                "abstract": self.metadata.abstract,
                "abstract_ru": self.metadata.abstract_ru,
                "year": self.metadata.year,
                "journal": self.metadata.journal,
                "authors": self.metadata.authors,
            })
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Node":
        """Create from a server payload (camelCase, optional fields)."""
        level = data.get("graphLevel")
        return cls(
            id=str(data["id"]),
            graph_level=GraphLevel.PROJECT if level is None else _to_int(level, GraphLevel.PROJECT),
            status=data.get("status") or ArticleStatus.CANDIDATE.value,
            source=data.get("source"),
            cited_by_count=max(0, _to_int(data.get("citedByCount"))),
            stats_quality=min(3, max(0, _to_int(data.get("statsQuality")))),
            has_embedding=bool(data.get("hasEmbedding", False)),
            label=data.get("label") or "",
            pmid=data.get("pmid") or None,
            doi=data.get("doi") or None,
            metadata=resolve_metadata(data),
        )


@dataclass(frozen=True)
class Link:
    """A directed citation (source cites target) or a synthesized semantic edge."""

    source: str
    target: str
    is_semantic: bool = False
    similarity: float | None = None

    @property
    def key(self) -> str:
        return f"{self.source}-{self.target}"

    @property
    def inverse_key(self) -> str:
        return f"{self.target}-{self.source}"

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"source": self.source, "target": self.target}
        if self.is_semantic:
            data["isSemantic"] = True
            data["similarity"] = self.similarity
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Link":
        # Force-graph libraries replace endpoint ids with node objects in place
        source = data["source"]
        target = data["target"]
        if isinstance(source, dict):
            source = source["id"]
        if isinstance(target, dict):
            target = target["id"]
        return cls(source=str(source), target=str(target))
