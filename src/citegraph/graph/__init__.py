"""Graph derivation: raw store, filter pipeline and visual encoding.

Provides:
- GraphStore snapshots of server loads
- FilterPipeline (methodology -> semantic cluster -> semantic edge overlay)
- VisualEncoder (citation-scaled sizes, precedence-based colors, glows)
"""

from citegraph.graph.encoder import (
    NODE_VALUE_SCALE,
    PIXEL_RADIUS_SCALE,
    Glow,
    LinkStyle,
    NodeEncoding,
    SizeScale,
    VisualEncoder,
    classify_color,
)
from citegraph.graph.palette import DARK_PALETTE, LIGHT_PALETTE, ColorRole, Palette, Theme, palette_for
from citegraph.graph.pipeline import (
    ClusterSelection,
    DerivedGraph,
    EdgeOverlay,
    FilterPipeline,
    MethodologySelection,
    derive_graph,
)
from citegraph.graph.store import GraphFilterOptions, GraphLimits, GraphStats, GraphStore, YearRange
from citegraph.graph.view_state import ViewState

__all__ = [
    # Store
    "GraphStore",
    "GraphStats",
    "GraphLimits",
    "YearRange",
    "GraphFilterOptions",
    # Pipeline
    "FilterPipeline",
    "DerivedGraph",
    "MethodologySelection",
    "ClusterSelection",
    "EdgeOverlay",
    "derive_graph",
    "ViewState",
    # Encoding
    "VisualEncoder",
    "NodeEncoding",
    "LinkStyle",
    "Glow",
    "SizeScale",
    "NODE_VALUE_SCALE",
    "PIXEL_RADIUS_SCALE",
    "classify_color",
    "ColorRole",
    "Palette",
    "Theme",
    "LIGHT_PALETTE",
    "DARK_PALETTE",
    "palette_for",
]
