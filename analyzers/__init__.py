"""Analyzers package - layout, ROI and boundary analysis modules."""
from .layout_analyzer import LayoutAnalyzer
from .roi_selector import RoiSelector
from .boundary_refiner import BoundaryRefiner
from .content_bounds import ContentBoundsEstimator

__all__ = ["LayoutAnalyzer", "RoiSelector", "BoundaryRefiner", "ContentBoundsEstimator"]
