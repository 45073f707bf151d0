"""Ordered detection strategies for one page.

Each strategy is a callable taking a :class:`PageContext` and returning
``RectBounds | None``.  :class:`StrategyChain` tries them in order and
stops at the first result, so "pixels first, then text layout" is a list
rather than nested conditionals.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from analyzers.boundary_refiner import BoundaryRefiner
from analyzers.content_bounds import ContentBoundsEstimator
from analyzers.roi_selector import CoordinateMapper, RoiSelector
from detectors.pixel_detector import PixelTableDetector
from utils.geometry import (
    DARK_THRESHOLD,
    Anchor,
    PixelBuffer,
    RectBounds,
    RegionKind,
    TextNode,
)

logger = logging.getLogger(__name__)

Strategy = Callable[["PageContext"], "RectBounds | None"]

DEFAULT_STRATEGIES: dict[str, list[str]] = {
    "table": ["pixels", "text_layout"],
    "figure": ["text_layout"],
    "generic": ["text_layout"],
}


@dataclass
class PageContext:
    """Everything a strategy may look at for one page."""

    page_index: int
    layer_width: float
    layer_height: float
    text_nodes: list[TextNode] = field(default_factory=list)
    pixels: PixelBuffer | None = None
    anchor: Anchor | None = None
    kind: RegionKind = RegionKind.TABLE

    @property
    def layer_size(self) -> tuple[float, float]:
        return (self.layer_width, self.layer_height)


class PixelStrategy:
    """ROI → pixel detection → layer mapping → anchor refinement."""

    name = "pixels"

    def __init__(self, threshold: float = DARK_THRESHOLD) -> None:
        self._roi = RoiSelector()
        self._refiner = BoundaryRefiner(threshold)
        self._detector = PixelTableDetector(threshold, self._refiner)

    def __call__(self, ctx: PageContext) -> RectBounds | None:
        if ctx.pixels is None:
            logger.debug("Page %d: no pixel buffer; skipping pixel strategy.", ctx.page_index)
            return None

        mapper = CoordinateMapper(
            ctx.layer_width, ctx.layer_height, ctx.pixels.width, ctx.pixels.height
        )
        window = self._roi.select_roi(
            ctx.anchor, ctx.layer_size, (n.left for n in ctx.text_nodes), mapper
        )
        if window is None:
            return None

        box = self._detector.detect(ctx.pixels.crop(window.rect))
        if box is None:
            return None

        page_box = box.translate(window.rect.x0, window.rect.y0)
        layer_box = mapper.to_layer_box(page_box)
        refined = self._refiner.refine(
            layer_box,
            ctx.anchor,
            page_width=ctx.layer_width,
            column_end=window.column_end,
        )
        return RectBounds.from_box(refined) if refined is not None else None


class TextLayoutStrategy:
    """Bounds from the positions of neighbouring text nodes."""

    name = "text_layout"

    def __init__(self) -> None:
        self._estimator = ContentBoundsEstimator()

    def __call__(self, ctx: PageContext) -> RectBounds | None:
        if ctx.anchor is None:
            logger.debug("Page %d: text layout needs an anchor.", ctx.page_index)
            return None
        return self._estimator.estimate_from_text_layout(
            ctx.anchor, ctx.text_nodes, ctx.kind, ctx.layer_width
        )


class StrategyChain:
    """Runs strategies in order and returns the first non-``None`` result."""

    def __init__(self, strategies: Sequence[Strategy]) -> None:
        self.strategies = list(strategies)

    @property
    def needs_pixels(self) -> bool:
        return any(isinstance(s, PixelStrategy) for s in self.strategies)

    def run(self, ctx: PageContext) -> tuple[RectBounds, str] | None:
        """Return ``(bounds, strategy_name)`` from the first strategy that succeeds."""
        for strategy in self.strategies:
            name = getattr(strategy, "name", type(strategy).__name__)
            result = strategy(ctx)
            if result is not None:
                logger.debug("Page %d: %s located %s", ctx.page_index, name, result)
                return result, name
            logger.debug("Page %d: %s found nothing.", ctx.page_index, name)
        return None

    def __call__(self, ctx: PageContext) -> RectBounds | None:
        outcome = self.run(ctx)
        return outcome[0] if outcome is not None else None


def build_chain(kind: RegionKind, config: dict[str, Any] | None = None) -> StrategyChain:
    """Build the strategy chain configured for *kind*.

    ``config["strategies"][kind]`` lists strategy names in order; unknown
    names are logged and skipped.
    """
    config = config or {}
    threshold = float(config.get("dark_threshold", DARK_THRESHOLD))
    configured = config.get("strategies") or {}
    names = configured.get(kind.value) or DEFAULT_STRATEGIES[kind.value]

    factories: dict[str, Callable[[], Strategy]] = {
        PixelStrategy.name: lambda: PixelStrategy(threshold),
        TextLayoutStrategy.name: TextLayoutStrategy,
    }
    strategies: list[Strategy] = []
    for name in names:
        factory = factories.get(name)
        if factory is None:
            logger.warning("Unknown strategy '%s' for %s; skipping.", name, kind.value)
            continue
        strategies.append(factory())
    return StrategyChain(strategies)
