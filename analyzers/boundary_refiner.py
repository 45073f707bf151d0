"""Boundary refinement for a raw table candidate.

Two stages run at different points of the pipeline:

* :meth:`BoundaryRefiner.extend_bottom` works in pixel space on the same
  buffer the candidate came from.  Tables split by a double rule are only
  matched up to the rule by a line-pair search; following the row density
  downwards recovers the rest.
* :meth:`BoundaryRefiner.refine` works in layer space once the candidate
  has been mapped back, and pins it to the anchor that triggered the search.
"""

import logging

import numpy as np

from utils.geometry import DARK_THRESHOLD, Anchor, PixelBuffer, TableBox

logger = logging.getLogger(__name__)


class BoundaryRefiner:
    """Adjusts candidate rectangles using row density and anchor constraints."""

    # Rows above the candidate bottom used as the density baseline.
    BASELINE_ROWS = 12
    # Continuation threshold: max(MIN_ROW_DENSITY, BASELINE_RATIO * baseline).
    MIN_ROW_DENSITY = 0.08
    BASELINE_RATIO = 0.35
    # Consecutive sparse rows that end the table.
    MAX_GAP_ROWS = 22
    # Right edge may not come closer than this to the page edge.
    PAGE_EDGE_MARGIN = 20.0
    # Slack allowed past the column boundary.
    COLUMN_SLACK = 5.0
    # The right edge may be pulled in to this fraction of its detected value.
    RIGHT_SHRINK_RATIO = 0.8

    def __init__(self, threshold: float = DARK_THRESHOLD) -> None:
        self.threshold = threshold

    # ------------------------------------------------------------------
    # Pixel space
    # ------------------------------------------------------------------

    def extend_bottom(self, candidate: TableBox, pixels: PixelBuffer) -> TableBox:
        """Push ``candidate.bottom`` down while the rows below stay dense.

        The returned box never has a smaller ``bottom`` than *candidate*.
        """
        left = int(max(0, candidate.left))
        right = int(min(pixels.width, candidate.right + 1))
        bottom = int(candidate.bottom)
        if right <= left or bottom <= 0 or bottom >= pixels.height - 1:
            return candidate

        dark = pixels.dark_mask(self.threshold)[:, left:right]
        row_density = dark.mean(axis=1)

        base_start = max(int(candidate.top), bottom - self.BASELINE_ROWS)
        if base_start >= bottom:
            return candidate
        baseline = float(np.mean(row_density[base_start:bottom]))
        level = max(self.MIN_ROW_DENSITY, self.BASELINE_RATIO * baseline)

        new_bottom = bottom
        gap = 0
        for y in range(bottom + 1, pixels.height):
            if row_density[y] >= level:
                new_bottom = y
                gap = 0
            else:
                gap += 1
                if gap >= self.MAX_GAP_ROWS:
                    break

        if new_bottom > bottom:
            logger.debug(
                "Extended bottom %d → %d (baseline %.3f, level %.3f).",
                bottom,
                new_bottom,
                baseline,
                level,
            )
            return TableBox(candidate.left, candidate.top, candidate.right, new_bottom)
        return candidate

    # ------------------------------------------------------------------
    # Layer space
    # ------------------------------------------------------------------

    def refine(
        self,
        candidate: TableBox,
        anchor: Anchor | None = None,
        page_width: float | None = None,
        column_end: float | None = None,
    ) -> TableBox | None:
        """Lock the box to *anchor* and clamp its right edge.

        With an anchor the left edge becomes exactly ``anchor.left`` and the
        right edge is kept within
        ``[anchor.right, min(page_width - 20, max(column_end + 5, 0.8 * right))]``.
        When that range is empty the lower bound wins so the anchor stays
        covered.  Returns ``None`` if the result is degenerate.
        """
        left, top, right, bottom = candidate.left, candidate.top, candidate.right, candidate.bottom

        if anchor is not None:
            left = anchor.left
            upper = float("inf")
            if column_end is not None:
                upper = max(column_end + self.COLUMN_SLACK, self.RIGHT_SHRINK_RATIO * right)
            if page_width is not None:
                upper = min(upper, page_width - self.PAGE_EDGE_MARGIN)
            lower = anchor.right
            clamped = max(lower, min(right, upper))
            if clamped != right:
                logger.debug("Clamped right edge %.1f → %.1f.", right, clamped)
            right = clamped

        return TableBox.checked(left, top, right, bottom)
