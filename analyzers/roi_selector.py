"""Region-of-interest selection and layer ↔ pixel coordinate mapping."""

import logging
from dataclasses import dataclass
from typing import Iterable

from analyzers.layout_analyzer import LayoutAnalyzer
from utils.geometry import Anchor, PixelRect, TableBox

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CoordinateMapper:
    """Maps between the page layer and a pixel buffer of that page.

    The x and y scale factors are independent (``buffer_dim / layer_dim``).
    """

    layer_width: float
    layer_height: float
    buffer_width: int
    buffer_height: int

    def __post_init__(self) -> None:
        if self.layer_width <= 0 or self.layer_height <= 0:
            raise ValueError(
                f"Layer size must be positive, got {self.layer_width}x{self.layer_height}"
            )

    @property
    def scale_x(self) -> float:
        return self.buffer_width / self.layer_width

    @property
    def scale_y(self) -> float:
        return self.buffer_height / self.layer_height

    def to_pixel_x(self, x: float) -> int:
        return max(0, min(self.buffer_width, round(x * self.scale_x)))

    def to_pixel_y(self, y: float) -> int:
        return max(0, min(self.buffer_height, round(y * self.scale_y)))

    def to_pixel_rect(self, left: float, top: float, right: float, bottom: float) -> PixelRect:
        return PixelRect(
            self.to_pixel_x(left),
            self.to_pixel_y(top),
            self.to_pixel_x(right),
            self.to_pixel_y(bottom),
        )

    def to_layer_box(self, box: TableBox) -> TableBox:
        """Scale a pixel-space box back into layer units."""
        return TableBox(
            box.left / self.scale_x,
            box.top / self.scale_y,
            box.right / self.scale_x,
            box.bottom / self.scale_y,
        )


@dataclass(frozen=True)
class RoiWindow:
    """Pixel window to analyze, plus the anchor's column in layer units."""

    rect: PixelRect
    column_start: float
    column_end: float


class RoiSelector:
    """Chooses the part of the page buffer the detector should look at.

    The window starts at the anchor's left edge (tables are left-aligned
    with their caption), stops at the anchor's column boundary and runs
    from somewhat above the anchor down to the bottom of the page, so
    tables captioned underneath are still covered.
    """

    # Gutter added to the column boundary on the right (layer units).
    COLUMN_GUTTER = 8.0
    # How far above the anchor the window starts, as a fraction of page height.
    ABOVE_ANCHOR_FRACTION = 0.25

    def __init__(self, layout_analyzer: LayoutAnalyzer | None = None) -> None:
        self._layout = layout_analyzer or LayoutAnalyzer()

    def select_roi(
        self,
        anchor: Anchor | None,
        layer_size: tuple[float, float],
        text_positions: Iterable[float],
        mapper: CoordinateMapper,
    ) -> RoiWindow | None:
        """Compute the pixel-space search window for *anchor*.

        Parameters
        ----------
        anchor:
            Label box in layer coordinates, or ``None`` to scan the whole page.
        layer_size:
            ``(width, height)`` of the page layer.
        text_positions:
            Left edges of all text nodes on the page (layer units), used to
            find the column boundary.
        mapper:
            Layer ↔ buffer mapping for the page.

        Returns
        -------
        RoiWindow | None
            ``None`` when the window would have no area.
        """
        layer_width, layer_height = layer_size
        split = self._layout.find_column_split(text_positions, layer_width)

        if anchor is None:
            rect = PixelRect(0, 0, mapper.buffer_width, mapper.buffer_height)
            return None if rect.is_empty else RoiWindow(rect, 0.0, layer_width)

        column_start, column_end = split.column_for(anchor.left)
        if split.is_multi_column and column_end < layer_width:
            right = min(layer_width, column_end + self.COLUMN_GUTTER)
        else:
            right = layer_width
        top = max(0.0, anchor.top - self.ABOVE_ANCHOR_FRACTION * layer_height)

        rect = mapper.to_pixel_rect(anchor.left, top, right, layer_height)
        if rect.is_empty:
            logger.debug("Empty ROI for anchor at (%.1f, %.1f).", anchor.left, anchor.top)
            return None

        logger.debug(
            "ROI px (%d, %d, %d, %d); column %.1f–%.1f.",
            rect.x0,
            rect.y0,
            rect.x1,
            rect.y1,
            column_start,
            column_end,
        )
        return RoiWindow(rect, column_start, column_end)
