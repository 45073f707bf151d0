"""Turn detected ruling lines into a single table rectangle.

Two strategies, tried in order by :class:`~detectors.pixel_detector.PixelTableDetector`:

1. **Line pairs** – the largest rectangle spanned by two horizontal and two
   vertical lines.
2. **Density** – many tables separate columns with whitespace instead of
   drawn rules.  Columns and rows are scored by how many dark pixels they
   hold and the table is taken to be the band of "busy" columns.
"""

import logging
from typing import Sequence

import numpy as np

from detectors.line_detector import DARK_THRESHOLD, detect_lines
from utils.geometry import ColumnRegion, PixelBuffer, TableBox

logger = logging.getLogger(__name__)

# A line-pair rectangle must cover more than this fraction of the buffer.
MIN_RECT_AREA_FRACTION = 0.02

# Density fallback tuning.
SMOOTHING_WINDOW = 9
ACTIVE_DENSITY_FRACTION = 0.08
MIN_REGION_WIDTH_PX = 8
MIN_REGION_WIDTH_FRACTION = 0.02
MIN_DENSITY_AREA_FRACTION = 0.01
MIN_BOX_WIDTH_PX = 15
MIN_BOX_WIDTH_FRACTION = 0.06


def build_rectangles(
    h_lines: Sequence[int],
    v_lines: Sequence[int],
    width: int,
    height: int,
) -> TableBox | None:
    """Pick the largest rectangle spanned by two horizontal and two vertical lines.

    Every pair ``(i < j)`` of horizontal lines and ``(k < l)`` of vertical
    lines is a candidate; candidates not larger than
    ``MIN_RECT_AREA_FRACTION`` of the buffer are ignored.  Returns ``None``
    when fewer than two lines exist on either axis or nothing clears the
    area floor.
    """
    if len(h_lines) < 2 or len(v_lines) < 2:
        return None

    ys = sorted(h_lines)
    xs = sorted(v_lines)
    # Area is (y_j - y_i) * (x_l - x_k) with independent factors, so the
    # outermost pair on each axis is the maximum and the first one scanned.
    top, bottom = ys[0], ys[-1]
    left, right = xs[0], xs[-1]
    area = (bottom - top) * (right - left)
    if area <= MIN_RECT_AREA_FRACTION * width * height:
        logger.debug(
            "Largest line-pair rectangle (%d px²) below area floor for %dx%d.",
            area,
            width,
            height,
        )
        return None
    return TableBox.checked(left, top, right, bottom)


def smooth(values: np.ndarray, window: int = SMOOTHING_WINDOW) -> np.ndarray:
    """Sliding mean over ``window`` samples, averaging only samples in range."""
    values = np.asarray(values, dtype=np.float64)
    if values.size == 0:
        return values
    half = max(1, window // 2)
    n = values.size
    cumulative = np.concatenate(([0.0], np.cumsum(values)))
    idx = np.arange(n)
    lo = np.maximum(0, idx - half)
    hi = np.minimum(n - 1, idx + half)
    return (cumulative[hi + 1] - cumulative[lo]) / (hi - lo + 1)


def column_regions(
    densities: np.ndarray,
    active_level: float,
    min_width: float,
    scale: float = 1.0,
) -> list[ColumnRegion]:
    """Merge consecutive entries of *densities* at or above *active_level*.

    Runs shorter than *min_width* are dropped.  Each region's ``density`` is
    the mean of its entries divided by *scale* (the perpendicular dimension),
    i.e. a dark-pixel fraction.
    """
    active = np.asarray(densities) >= active_level
    regions: list[ColumnRegion] = []
    if not active.any():
        return regions

    padded = np.concatenate(([False], active, [False])).astype(np.int8)
    edges = np.diff(padded)
    starts = np.nonzero(edges == 1)[0]
    ends = np.nonzero(edges == -1)[0] - 1
    for start, end in zip(starts, ends):
        mean = float(np.mean(densities[start : end + 1]))
        region = ColumnRegion(start=int(start), end=int(end), density=mean / scale if scale else 0.0)
        if region.length >= min_width:
            regions.append(region)
    return regions


def infer_by_density(
    pixels: PixelBuffer,
    threshold: float = DARK_THRESHOLD,
    horizontal_lines: Sequence[int] | None = None,
) -> TableBox | None:
    """Infer a table from dark-pixel density when ruling lines are insufficient.

    Parameters
    ----------
    pixels:
        The buffer (usually the region of interest).
    threshold:
        Brightness below which a pixel is dark.
    horizontal_lines:
        Already detected horizontal lines.  When at least two are given they
        bound the table vertically; ``None`` triggers a fresh line scan.

    Returns
    -------
    TableBox | None
        The band from the leftmost to the rightmost busy column region, or
        ``None`` when no confident box can be formed.
    """
    width, height = pixels.width, pixels.height
    if width == 0 or height == 0:
        return None
    if horizontal_lines is None:
        horizontal_lines = detect_lines(pixels, threshold).horizontal

    dark = pixels.dark_mask(threshold)
    smooth_cols = smooth(dark.sum(axis=0))
    smooth_rows = smooth(dark.sum(axis=1))

    min_width = max(MIN_REGION_WIDTH_PX, MIN_REGION_WIDTH_FRACTION * width)
    regions = column_regions(
        smooth_cols, ACTIVE_DENSITY_FRACTION * height, min_width, scale=height
    )
    if not regions:
        logger.debug("Density fallback: no busy column regions.")
        return None

    if len(horizontal_lines) >= 2:
        top, bottom = min(horizontal_lines), max(horizontal_lines)
    else:
        busy_rows = np.nonzero(smooth_rows >= ACTIVE_DENSITY_FRACTION * width)[0]
        if busy_rows.size == 0:
            logger.debug("Density fallback: no busy rows.")
            return None
        top, bottom = int(busy_rows[0]), int(busy_rows[-1])

    left, right = regions[0].start, regions[-1].end
    box_width = right - left
    area = (bottom - top) * box_width
    if area <= MIN_DENSITY_AREA_FRACTION * width * height:
        logger.debug("Density fallback: area %d too small.", area)
        return None
    if box_width <= max(MIN_BOX_WIDTH_PX, MIN_BOX_WIDTH_FRACTION * width):
        logger.debug("Density fallback: width %d too narrow.", box_width)
        return None

    logger.debug(
        "Density fallback: %d column region(s), box (%d, %d, %d, %d).",
        len(regions),
        left,
        top,
        right,
        bottom,
    )
    return TableBox.checked(left, top, right, bottom)
