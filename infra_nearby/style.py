"""Per-collection stroke styles."""

from dataclasses import dataclass
from typing import Final


__docformat__ = "google"
__all__ = (
    "CollectionStyle",
    "DEFAULT_PALETTE",
    "DEFAULT_STROKE_WIDTH",
    "POINT_LAYER_STROKE_WIDTH",
    "DEFAULT_STYLES",
    "default_style",
    "fill_color",
)


DEFAULT_PALETTE: Final[tuple[str, ...]] = (
    "#FF6B6B",  # red
    "#4ECDC4",  # teal
    "#9B59B6",  # purple
    "#E67E22",  # orange
    "#2ECC71",  # green
    "#F1C40F",  # yellow
)
"""Stroke colors that are assigned cyclically to collections without a registered style."""

DEFAULT_STROKE_WIDTH: Final[float] = 2.0
"""Stroke width of line layers."""

POINT_LAYER_STROKE_WIDTH: Final[float] = 3.0
"""Stroke width of point layers like kilometer posts, which render thicker than lines."""

_FILL_ALPHA = "20"
"""Alpha channel appended to stroke colors to derive polygon fills (0x20 / 0xFF ≈ 12.5%)."""


@dataclass(kw_only=True, slots=True, frozen=True)
class CollectionStyle:
    """
    How the primitives of one collection are drawn.

    Attributes:
        color: stroke color as ``#RRGGBB``
        width: stroke width in screen units
    """

    color: str
    width: float = DEFAULT_STROKE_WIDTH

    def __post_init__(self) -> None:
        if len(self.color) != 7 or not self.color.startswith("#"):
            msg = "'color' must be of the form '#RRGGBB'"
            raise ValueError(msg)
        if not self.width > 0.0:
            msg = "'width' must be > 0"
            raise ValueError(msg)

    @property
    def fill(self) -> str:
        """The stroke color at reduced opacity, as ``#RRGGBBAA``."""
        return fill_color(self.color)


DEFAULT_STYLES: Final[dict[str, CollectionStyle]] = {
    "highways-layer-0": CollectionStyle(color="#FF6B6B"),
    "highways-layer-1": CollectionStyle(color="#4ECDC4"),
    "highways-layer-2": CollectionStyle(color="#9B59B6"),
    "highways-layer-3": CollectionStyle(color="#E67E22"),
    "bridges-complete": CollectionStyle(color="#2ECC71"),
    "kilometer-posts-complete": CollectionStyle(
        color="#F1C40F",
        width=POINT_LAYER_STROKE_WIDTH,
    ),
}
"""Styles of the public works layers, keyed by the label of their source collection."""


def default_style(collection_index: int) -> CollectionStyle:
    """The palette style for a collection at the given position (cyclic)."""
    if collection_index < 0:
        msg = "'collection_index' must be >= 0"
        raise ValueError(msg)
    color = DEFAULT_PALETTE[collection_index % len(DEFAULT_PALETTE)]
    return CollectionStyle(color=color)


def fill_color(stroke_color: str) -> str:
    """Derive a translucent fill from a ``#RRGGBB`` stroke color."""
    return f"{stroke_color}{_FILL_ALPHA}"
