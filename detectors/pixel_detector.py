"""Pixel pipeline for a single buffer: lines → rectangle → bottom extension."""

import logging

from analyzers.boundary_refiner import BoundaryRefiner
from detectors.line_detector import DARK_THRESHOLD, detect_lines
from detectors.rectangle_builder import build_rectangles, infer_by_density
from utils.geometry import PixelBuffer, TableBox

logger = logging.getLogger(__name__)


class PixelTableDetector:
    """Finds one table rectangle inside a pixel buffer.

    The line-pair search runs first; when it finds nothing the density
    fallback is tried.  Whatever candidate survives has its bottom edge
    extended by :meth:`BoundaryRefiner.extend_bottom`.
    """

    def __init__(
        self,
        threshold: float = DARK_THRESHOLD,
        refiner: BoundaryRefiner | None = None,
    ) -> None:
        self.threshold = threshold
        self._refiner = refiner or BoundaryRefiner(threshold)

    def detect(self, pixels: PixelBuffer) -> TableBox | None:
        """Return the table box in *pixels* coordinates, or ``None``."""
        if pixels.width == 0 or pixels.height == 0:
            return None

        lines = detect_lines(pixels, self.threshold)
        if lines.is_empty:
            logger.debug("No ruling lines; trying density only.")
        candidate = build_rectangles(
            lines.horizontal, lines.vertical, pixels.width, pixels.height
        )
        source = "line pairs"
        if candidate is None:
            candidate = infer_by_density(pixels, self.threshold, lines.horizontal)
            source = "density"
        if candidate is None:
            logger.debug("No table candidate in %dx%d buffer.", pixels.width, pixels.height)
            return None

        extended = self._refiner.extend_bottom(candidate, pixels)
        logger.debug("Candidate from %s: %s", source, extended)
        return extended
