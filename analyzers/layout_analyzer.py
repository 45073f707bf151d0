"""Layout analyzer module for detecting the column structure of a page.

Looks at the horizontal positions of the page's text nodes and splits the
page at the widest empty gap between them.
"""

import logging
from dataclasses import dataclass
from typing import Iterable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnSplit:
    """Column structure of one page in layer units.

    ``boundary`` is ``None`` for a single-column page.
    """

    page_width: float
    boundary: float | None = None

    @property
    def is_multi_column(self) -> bool:
        return self.boundary is not None

    def column_for(self, x: float) -> tuple[float, float]:
        """Return ``(start, end)`` of the column containing *x*."""
        if self.boundary is None:
            return (0.0, self.page_width)
        if x < self.boundary:
            return (0.0, self.boundary)
        return (self.boundary, self.page_width)

    def same_column(self, x: float, reference: float) -> bool:
        return self.column_for(x) == self.column_for(reference)


class LayoutAnalyzer:
    """Detects a two-column split from the left edges of text nodes.

    The split sits at the midpoint of the single largest horizontal gap
    between consecutive (sorted) x-positions, provided the gap is wider
    than ``COLUMN_GAP_MIN`` layer units.
    """

    # Minimum empty horizontal gap (layer units) that separates columns.
    COLUMN_GAP_MIN = 30.0

    def find_column_split(
        self,
        x_positions: Iterable[float],
        page_width: float,
    ) -> ColumnSplit:
        """Find the column boundary of a page.

        Args:
            x_positions: Left edges of every text node on the page.
            page_width: Width of the page layer.

        Returns:
            A :class:`ColumnSplit`; single-column when there are fewer than
            two positions or no gap exceeds ``COLUMN_GAP_MIN``.
        """
        xs = sorted(x_positions)
        if len(xs) < 2 or page_width <= 0:
            return ColumnSplit(page_width=page_width)

        max_gap = 0.0
        boundary: float | None = None
        for prev, cur in zip(xs, xs[1:]):
            gap = cur - prev
            if gap > self.COLUMN_GAP_MIN and gap > max_gap:
                max_gap = gap
                boundary = prev + gap / 2

        if boundary is None:
            logger.debug("No column gap above %.0f units; single column.", self.COLUMN_GAP_MIN)
        else:
            logger.debug("Column boundary at %.1f (gap %.1f).", boundary, max_gap)
        return ColumnSplit(page_width=page_width, boundary=boundary)
