"""Node color palettes for the light (pastel) and dark (vibrant) themes.

Both palettes carry the same role keys; switching theme swaps the whole
record, never individual fields.
"""

from dataclasses import dataclass
from enum import Enum


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


class ColorRole(str, Enum):
    """Semantic color keys produced by the node color precedence table."""

    AI_FOUND = "ai_found"
    P_VALUE = "pvalue"
    CITING = "citing"
    SELECTED = "selected"
    EXCLUDED = "excluded"
    CANDIDATE_PUBMED = "candidate_pubmed"
    CANDIDATE_DOAJ = "candidate_doaj"
    CANDIDATE_WILEY = "candidate_wiley"
    REFERENCE = "reference"
    RELATED = "related"
    DEFAULT = "default"


@dataclass(frozen=True)
class Palette:
    theme: Theme

    # Node fills by role
    citing: str
    selected: str
    excluded: str
    candidate_pubmed: str
    candidate_doaj: str
    candidate_wiley: str
    reference: str
    related: str
    ai_found: str
    pvalue: str
    default: str

    # Canvas
    background: str
    background_fullscreen: str
    link: str
    semantic_link: str
    stroke: str
    cluster_stroke: str
    text: str

    # Glows
    shadow_alpha: str  # Hex alpha suffix appended to cluster colors
    ai_glow: str
    ai_outline: str
    high_citation_glow: str
    cluster_glow_blur: float
    high_citation_glow_blur: float

    cluster_colors: tuple[str, ...]

    def color_for(self, role: ColorRole) -> str:
        return getattr(self, role.value)

    def cluster_color(self, index: int) -> str:
        return self.cluster_colors[index % len(self.cluster_colors)]


LIGHT_PALETTE = Palette(
    theme=Theme.LIGHT,
    citing="#F5BA5C",
    selected="#A3D9A5",
    excluded="#E8A59A",
    candidate_pubmed="#D99A3A",
    candidate_doaj="#FFEFD5",
    candidate_wiley="#C4A6D4",
    reference="#FFD48A",
    related="#B8D4D0",
    ai_found="#C87D2A",
    pvalue="#FFE4B8",
    default="#E0D6CA",
    background="#FDFCFB",
    background_fullscreen="#FFF8EC",
    link="rgba(140, 122, 107, 0.4)",
    semantic_link="rgba(200, 125, 42, 0.55)",
    stroke="rgba(107, 92, 77, 0.2)",
    cluster_stroke="rgba(107, 92, 77, 0.35)",
    text="rgba(45, 31, 16, 0.8)",
    shadow_alpha="40",
    ai_glow="rgba(0, 180, 220, 0.5)",
    ai_outline="rgba(0, 212, 255, 0.6)",
    high_citation_glow="rgba(100, 150, 200, 0.2)",
    cluster_glow_blur=4,
    high_citation_glow_blur=3,
    cluster_colors=(
        "#93c5fd",
        "#60a5fa",
        "#34d399",
        "#fbbf24",
        "#f87171",
        "#a78bfa",
        "#38bdf8",
        "#2dd4bf",
        "#f59e0b",
        "#818cf8",
    ),
)

DARK_PALETTE = Palette(
    theme=Theme.DARK,
    citing="#ec4899",
    selected="#22c55e",
    excluded="#ef4444",
    candidate_pubmed="#3b82f6",
    candidate_doaj="#eab308",
    candidate_wiley="#8b5cf6",
    reference="#f97316",
    related="#06b6d4",
    ai_found="#00ffff",
    pvalue="#fbbf24",
    default="#6b7280",
    background="#0b0f19",
    background_fullscreen="#050810",
    link="rgba(100, 130, 180, 0.25)",
    semantic_link="rgba(34, 211, 238, 0.45)",
    stroke="rgba(255, 255, 255, 0.15)",
    cluster_stroke="rgba(255, 255, 255, 0.3)",
    text="rgba(255, 255, 255, 0.7)",
    shadow_alpha="60",
    ai_glow="rgba(0, 212, 255, 0.6)",
    ai_outline="rgba(0, 212, 255, 0.6)",
    high_citation_glow="rgba(100, 150, 200, 0.3)",
    cluster_glow_blur=6,
    high_citation_glow_blur=4,
    cluster_colors=(
        "#3b82f6",
        "#10b981",
        "#f59e0b",
        "#ef4444",
        "#8b5cf6",
        "#ec4899",
        "#06b6d4",
        "#84cc16",
        "#f97316",
        "#6366f1",
    ),
)

PALETTES = {
    Theme.LIGHT: LIGHT_PALETTE,
    Theme.DARK: DARK_PALETTE,
}


def palette_for(theme: Theme | str) -> Palette:
    return PALETTES[Theme(theme)]
