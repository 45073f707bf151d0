"""Annotations package - typed events and overlay rendering."""
from .events import AnnotationChannel
from .overlay import OverlayRenderer

__all__ = ["AnnotationChannel", "OverlayRenderer"]
