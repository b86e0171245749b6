"""ViewState - every UI toggle that graph derivation and encoding read."""

from dataclasses import dataclass, field, replace
from typing import Any

from citegraph.graph.palette import Theme


@dataclass(frozen=True)
class ViewState:
    """
    Immutable snapshot of the client-side view controls.

    Passed explicitly into the pipeline and encoder. Changing a control means
    building a new ViewState with `evolve()`.
    """

    methodology_filter: str | None = None  # MethodologyCluster.type
    semantic_cluster_id: str | None = None
    show_semantic_edges: bool = False
    highlight_p_value: bool = False
    ai_found_ids: frozenset[str] = field(default_factory=frozenset)
    theme: Theme = Theme.DARK

    def evolve(self, **changes: Any) -> "ViewState":
        if "ai_found_ids" in changes:
            changes["ai_found_ids"] = frozenset(changes["ai_found_ids"])
        if "theme" in changes:
            changes["theme"] = Theme(changes["theme"])
        return replace(self, **changes)

    def is_ai_found(self, node_id: str) -> bool:
        return node_id in self.ai_found_ids
