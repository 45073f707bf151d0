"""Estimate a table/figure region from text positions alone.

No pixels are involved: the estimator looks at the text nodes near the
label in the same column and bounds the ones that look like the content
being referred to.  Used when no pixel buffer is available, or for figures,
whose pixels carry no ruling lines to follow.
"""

import logging
import re
from typing import Sequence

from analyzers.layout_analyzer import LayoutAnalyzer
from utils.geometry import Anchor, RectBounds, RegionKind, TextNode

logger = logging.getLogger(__name__)

_DIGIT_RE = re.compile(r"\d")
_DIGIT_OR_PERCENT_RE = re.compile(r"[\d%]")
_BOX_DRAWING_RE = re.compile(r"[|─┌┐└┘├┤┬┴┼]")
_PROSE_PUNCT_RE = re.compile(r"[.!?]{2,}")


class ContentBoundsEstimator:
    """Infers content bounds from the layout of sibling text nodes."""

    # Nearby-content search radii (layer units / fractions of page width).
    TABLE_ABOVE_SLACK = 20.0
    TABLE_HORIZONTAL_REACH = 100.0
    TABLE_MAX_BELOW = 200.0
    # Nearby-node filter: text shorter than this counts as table content.
    TABLE_SHORT_TEXT = 50
    FIGURE_MAX_VERTICAL = 300.0
    FIGURE_MAX_HORIZONTAL_RATIO = 0.4
    GENERIC_MAX_VERTICAL = 200.0
    GENERIC_MAX_HORIZONTAL_RATIO = 0.35

    # Table-cell heuristics.
    # Cell filter: text longer than this is prose, not a cell. Stricter than
    # TABLE_SHORT_TEXT; the two apply to different tiers.
    CELL_MAX_CHARS = 48
    CELL_MAX_WORDS = 6
    CELL_PADDING = 20.0
    CONSERVATIVE_TABLE_HEIGHT = 300.0

    # Inset from the column edges applied to the final bounds.
    COLUMN_INSET = 10.0

    def __init__(self, layout_analyzer: LayoutAnalyzer | None = None) -> None:
        self._layout = layout_analyzer or LayoutAnalyzer()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def estimate_from_text_layout(
        self,
        anchor: Anchor,
        text_nodes: Sequence[TextNode],
        kind: RegionKind,
        page_width: float,
    ) -> RectBounds | None:
        """Estimate the bounds of the content *anchor* labels.

        Parameters
        ----------
        anchor:
            The label's box in layer coordinates.
        text_nodes:
            Every text node on the page.
        kind:
            Table, figure or generic content.
        page_width:
            Width of the page layer.

        Returns
        -------
        RectBounds | None
            ``None`` when no candidate nodes sit near the anchor.
        """
        nodes = [n for n in text_nodes if n.text.strip()]
        if not nodes:
            return None

        split = self._layout.find_column_split((n.left for n in nodes), page_width)
        column_start, column_end = split.column_for(anchor.left)
        in_column = [n for n in nodes if split.same_column(n.left, anchor.left)]

        nearby = [n for n in in_column if self._is_nearby(n, anchor, kind, page_width)]
        if not nearby:
            logger.debug("No text near anchor for %s estimate.", kind.value)
            return None

        min_x = min(n.left for n in nearby)
        min_y = min(n.top for n in nearby)
        max_x = max(n.right for n in nearby)
        max_y = max(n.bottom for n in nearby)

        if kind is RegionKind.TABLE:
            cells = [
                n for n in nearby
                if n.top > anchor.top and self._looks_like_cell(n.text)
            ]
            if cells:
                span_top, span_bottom = self._cell_span(cells)
                min_y = min(min_y, max(anchor.top, span_top - self.CELL_PADDING))
                max_y = max(max_y, span_bottom + self.CELL_PADDING)
            else:
                max_y = max(max_y, anchor.top + self.CONSERVATIVE_TABLE_HEIGHT)

        # The label itself is always part of the region.
        min_x = min(min_x, anchor.left)
        min_y = min(min_y, anchor.top)
        max_x = max(max_x, anchor.right)
        max_y = max(max_y, anchor.bottom)

        min_x = max(column_start + self.COLUMN_INSET, min_x)
        max_x = min(column_end - self.COLUMN_INSET, max_x)

        if max_x <= min_x or max_y <= min_y:
            logger.debug("Text-layout estimate collapsed after column clamp.")
            return None

        bounds = RectBounds(left=min_x, top=min_y, width=max_x - min_x, height=max_y - min_y)
        logger.debug("Text-layout %s estimate from %d node(s): %s", kind.value, len(nearby), bounds)
        return bounds

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _is_nearby(
        self, node: TextNode, anchor: Anchor, kind: RegionKind, page_width: float
    ) -> bool:
        if kind is RegionKind.TABLE:
            below = node.top >= anchor.top - self.TABLE_ABOVE_SLACK
            overlaps = not (
                node.right < anchor.left - self.TABLE_HORIZONTAL_REACH
                or node.left > anchor.right + self.TABLE_HORIZONTAL_REACH
            )
            close = node.top - anchor.top < self.TABLE_MAX_BELOW
            text = node.text
            table_like = bool(
                _DIGIT_RE.search(text)
                or len(text) < self.TABLE_SHORT_TEXT
                or _BOX_DRAWING_RE.search(text)
            )
            return below and overlaps and close and table_like

        if kind is RegionKind.FIGURE:
            max_v, ratio = self.FIGURE_MAX_VERTICAL, self.FIGURE_MAX_HORIZONTAL_RATIO
        else:
            max_v, ratio = self.GENERIC_MAX_VERTICAL, self.GENERIC_MAX_HORIZONTAL_RATIO
        return (
            abs(node.top - anchor.top) < max_v
            and abs(node.left - anchor.left) < ratio * page_width
        )

    def _looks_like_cell(self, text: str) -> bool:
        """Short, numeric or few-word text that is not a sentence."""
        text = text.strip()
        if not text or len(text) > self.CELL_MAX_CHARS:
            return False
        if _PROSE_PUNCT_RE.search(text):
            return False
        return bool(_DIGIT_OR_PERCENT_RE.search(text)) or len(text.split()) <= self.CELL_MAX_WORDS

    @staticmethod
    def _cell_span(cells: list[TextNode]) -> tuple[float, float]:
        """Vertical extent of the cells, narrowed to numeric rows when any exist."""
        ordered = sorted(cells, key=lambda n: n.top)
        top, bottom = ordered[0].top, ordered[-1].bottom
        data_rows = [n for n in ordered if _DIGIT_RE.search(n.text)]
        if data_rows:
            top = data_rows[0].top
            bottom = max(n.bottom for n in data_rows)
        return top, bottom
