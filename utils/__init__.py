"""Utils package - Utility modules."""
from .geometry import Anchor, PixelBuffer, RectBounds, RegionKind, TableBox

__all__ = ["Anchor", "PixelBuffer", "RectBounds", "RegionKind", "TableBox"]
