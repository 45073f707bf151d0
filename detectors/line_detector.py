"""Ruling-line detection on a raw pixel buffer.

A ruling line is a long, unbroken run of dark pixels along a row
(horizontal) or a column (vertical).  The thresholds are asymmetric:
horizontal borders are usually drawn edge to edge while column separators
are often implicit whitespace or broken strokes.
"""

import logging

import numpy as np

from utils.geometry import DARK_THRESHOLD, LineSet, PixelBuffer

logger = logging.getLogger(__name__)

# Longest dark run in a row must exceed this fraction of the width.
HORIZONTAL_RUN_FRACTION = 0.20
# Longest dark run in a column must exceed this fraction of the height.
VERTICAL_RUN_FRACTION = 0.15


def longest_dark_runs(mask: np.ndarray) -> np.ndarray:
    """Return the longest run of ``True`` along axis 1 for every row of *mask*."""
    rows, cols = mask.shape
    longest = np.zeros(rows, dtype=np.int64)
    if rows == 0 or cols == 0:
        return longest

    padded = np.zeros((rows, cols + 2), dtype=np.int8)
    padded[:, 1:-1] = mask
    edges = np.diff(padded, axis=1)
    # nonzero() walks row-major, so starts and ends pair up row by row.
    start_rows, start_cols = np.nonzero(edges == 1)
    _, end_cols = np.nonzero(edges == -1)
    if start_rows.size:
        np.maximum.at(longest, start_rows, end_cols - start_cols)
    return longest


def detect_lines(pixels: PixelBuffer, threshold: float = DARK_THRESHOLD) -> LineSet:
    """Find horizontal and vertical ruling lines in *pixels*.

    Parameters
    ----------
    pixels:
        The buffer to scan.
    threshold:
        Brightness below which a pixel is dark.

    Returns
    -------
    LineSet
        ``horizontal`` holds the ``y`` of every qualifying row and
        ``vertical`` the ``x`` of every qualifying column, both ascending.
        A buffer without long dark runs yields empty lists.
    """
    if pixels.width == 0 or pixels.height == 0:
        return LineSet()

    dark = pixels.dark_mask(threshold)
    row_runs = longest_dark_runs(dark)
    col_runs = longest_dark_runs(dark.T)

    horizontal = np.nonzero(row_runs > HORIZONTAL_RUN_FRACTION * pixels.width)[0]
    vertical = np.nonzero(col_runs > VERTICAL_RUN_FRACTION * pixels.height)[0]

    lines = LineSet(
        horizontal=[int(y) for y in horizontal],
        vertical=[int(x) for x in vertical],
    )
    logger.debug(
        "Line scan on %dx%d buffer: %d horizontal, %d vertical.",
        pixels.width,
        pixels.height,
        len(lines.horizontal),
        len(lines.vertical),
    )
    return lines
