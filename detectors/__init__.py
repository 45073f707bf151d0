"""Detectors package - pixel-space table detection."""
from .line_detector import detect_lines
from .rectangle_builder import build_rectangles, infer_by_density
from .pixel_detector import PixelTableDetector

__all__ = ["detect_lines", "build_rectangles", "infer_by_density", "PixelTableDetector"]
