"""Overlay consumer: paints located regions onto rendered page images."""

import logging
import os
from typing import Callable

from PIL import Image, ImageDraw

from annotations.events import AnnotationChannel, AnnotationsCleared, RegionLocated
from utils.geometry import PixelBuffer, RectBounds

logger = logging.getLogger(__name__)

_DEFAULT_COLOR = (239, 68, 68)
_DEFAULT_WIDTH = 3


class OverlayRenderer:
    """Draws an ellipse around each located region.

    Parameters
    ----------
    pages : dict[int, PixelBuffer]
        Rendered page buffers by page index.  Pages can also be added later
        with :meth:`add_page`.
    layer_sizes : dict[int, tuple[float, float]]
        Layer ``(width, height)`` per page, used to scale bounds to pixels.
    color, width :
        Outline colour and stroke width in pixels.
    page_loader : callable | None
        ``page_index -> (PixelBuffer, layer_size)`` used to render a page
        the first time a region is located on it.
    """

    def __init__(
        self,
        pages: dict[int, PixelBuffer] | None = None,
        layer_sizes: dict[int, tuple[float, float]] | None = None,
        color: tuple[int, int, int] = _DEFAULT_COLOR,
        width: int = _DEFAULT_WIDTH,
        page_loader: Callable[[int], tuple[PixelBuffer, tuple[float, float]]] | None = None,
    ) -> None:
        self.color = tuple(color)
        self.width = int(width)
        self._base: dict[int, Image.Image] = {}
        self._layer_sizes: dict[int, tuple[float, float]] = dict(layer_sizes or {})
        self._annotated: dict[int, Image.Image] = {}
        self._page_loader = page_loader
        for index, buffer in (pages or {}).items():
            self.add_page(index, buffer, self._layer_sizes.get(index))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def attach(self, channel: AnnotationChannel) -> None:
        channel.subscribe(RegionLocated, self.on_region_located)
        channel.subscribe(AnnotationsCleared, self.on_cleared)

    def add_page(
        self,
        page_index: int,
        buffer: PixelBuffer,
        layer_size: tuple[float, float] | None = None,
    ) -> None:
        self._base[page_index] = Image.fromarray(buffer.data.copy())
        if layer_size is not None:
            self._layer_sizes[page_index] = layer_size

    def on_region_located(self, event: RegionLocated) -> None:
        base = self._base.get(event.page_index)
        if base is None and self._page_loader is not None:
            buffer, layer_size = self._page_loader(event.page_index)
            self.add_page(event.page_index, buffer, layer_size)
            base = self._base[event.page_index]
        if base is None:
            logger.warning("No rendered image for page %d; overlay skipped.", event.page_index)
            return
        image = self._annotated.get(event.page_index)
        if image is None:
            image = base.copy()
            self._annotated[event.page_index] = image
        box = self._to_pixels(event.page_index, image.size, event.bounds)
        ImageDraw.Draw(image).ellipse(box, outline=self.color, width=self.width)
        logger.debug("Drew overlay for '%s' on page %d at %s.", event.label, event.page_index, box)

    def on_cleared(self, event: AnnotationsCleared) -> None:
        self._annotated.clear()

    def annotated_pages(self) -> dict[int, Image.Image]:
        return dict(self._annotated)

    def save(self, output_dir: str, prefix: str = "page") -> list[str]:
        """Write every annotated page as PNG and return the paths."""
        os.makedirs(output_dir, exist_ok=True)
        paths: list[str] = []
        for index in sorted(self._annotated):
            path = os.path.join(output_dir, f"{prefix}_{index}.png")
            self._annotated[index].convert("RGB").save(path)
            paths.append(path)
        logger.info("Saved %d overlay image(s) to %s.", len(paths), output_dir)
        return paths

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _to_pixels(
        self, page_index: int, image_size: tuple[int, int], bounds: RectBounds
    ) -> tuple[int, int, int, int]:
        img_w, img_h = image_size
        layer_w, layer_h = self._layer_sizes.get(page_index, (img_w, img_h))
        sx = img_w / layer_w if layer_w else 1.0
        sy = img_h / layer_h if layer_h else 1.0
        x0 = round(bounds.left * sx)
        y0 = round(bounds.top * sy)
        x1 = max(x0, round(bounds.right * sx))
        y1 = max(y0, round(bounds.bottom * sy))
        return (x0, y0, x1, y1)
