#!/usr/bin/env python3
"""PDF Region Locator — Main Orchestrator.

Finds the table or figure a label such as "Table 1" refers to and returns
its bounding rectangle in page coordinates (PDF points), optionally
drawing an ellipse around it on the rendered page.

Usage
-----
    python region_locator.py paper.pdf "Table 1"
    python region_locator.py --kind figure paper.pdf "Figure 2"
    python region_locator.py --pages 3-5 --overlay-dir out/ paper.pdf "Table 4"
    python region_locator.py --verbose --page 2 paper.pdf "Table 1"
"""

import argparse
import json
import logging
import os
import sys
from dataclasses import dataclass
from typing import Any

import fitz  # PyMuPDF
from tqdm import tqdm

from annotations.events import (
    AnnotationChannel,
    AnnotationsCleared,
    LocateRequested,
    RegionLocated,
    RegionNotFound,
)
from annotations.overlay import OverlayRenderer
from detectors.strategies import DEFAULT_STRATEGIES, PageContext, StrategyChain, build_chain
from utils.geometry import DARK_THRESHOLD, Anchor, RectBounds, RegionKind
from utils.page_source import (
    DEFAULT_DPI,
    find_anchor,
    find_leading_word,
    render_page,
    text_nodes,
)

logger = logging.getLogger("region_locator")

# Path to the default config file shipped alongside this script.
_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config", "settings.json")

# Strategy name of a result that only marks the label's leading word.
LABEL_WORD_STRATEGY = "label_word"


# ------------------------------------------------------------------ #
#  Helpers                                                            #
# ------------------------------------------------------------------ #

def _load_config(config_path: str | None = None) -> dict[str, Any]:
    """Load configuration from a JSON file, falling back to defaults."""
    path = config_path or _CONFIG_PATH
    defaults: dict[str, Any] = {
        "render_dpi": DEFAULT_DPI,
        "dark_threshold": DARK_THRESHOLD,
        "label_word_fallback": True,
        "strategies": {kind: list(names) for kind, names in DEFAULT_STRATEGIES.items()},
        "overlay": {
            "color": [239, 68, 68],
            "width": 3,
        },
    }
    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as fh:
                user = json.load(fh)
            defaults.update(user)
        except (OSError, ValueError):
            logger.warning("Could not load config from '%s'; using defaults.", path)
    return defaults


def _parse_page_range(value: str) -> tuple[int, int]:
    """Parse ``"A-B"`` or ``"A"`` (1-based, inclusive) into a 0-based range."""
    try:
        if "-" in value:
            first, last = value.split("-", 1)
            start, end = int(first), int(last)
        else:
            start = end = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid page range '{value}'") from None
    if start < 1 or end < start:
        raise argparse.ArgumentTypeError(f"Invalid page range '{value}'")
    return (start - 1, end - 1)


@dataclass(frozen=True)
class LocateResult:
    """Where a label's region was found."""

    page_index: int
    bounds: RectBounds
    strategy: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "page": self.page_index + 1,
            "strategy": self.strategy,
            "bounds": self.bounds.to_dict(),
        }


# ------------------------------------------------------------------ #
#  Locating                                                           #
# ------------------------------------------------------------------ #

def locate_on_page(
    page: fitz.Page,
    page_index: int,
    label: str,
    kind: RegionKind,
    config: dict[str, Any],
    chain: StrategyChain | None = None,
    anchor: Anchor | None = None,
) -> LocateResult | None:
    """Run the strategy chain on one page.

    *anchor* is searched for on the page when not given.  Returns ``None``
    when the label is not on the page or no strategy produced a confident
    rectangle.
    """
    chain = chain or build_chain(kind, config)
    if anchor is None:
        anchor = find_anchor(page, label)
    if anchor is None:
        return None

    pixels = None
    if chain.needs_pixels:
        pixels = render_page(page, int(config.get("render_dpi", DEFAULT_DPI)))

    ctx = PageContext(
        page_index=page_index,
        layer_width=page.rect.width,
        layer_height=page.rect.height,
        text_nodes=text_nodes(page),
        pixels=pixels,
        anchor=anchor,
        kind=kind,
    )
    outcome = chain.run(ctx)
    if outcome is None:
        return None
    bounds, strategy = outcome
    return LocateResult(page_index, bounds, strategy)


def _locate_leading_word(
    doc: fitz.Document, label: str, indices: range
) -> LocateResult | None:
    """Mark the first occurrence of the label's leading word.

    The result is the word's own box, not a region: the word alone cannot
    tell which table or figure the label meant.
    """
    for page_index in indices:
        try:
            anchor = find_leading_word(doc[page_index], label)
        except RuntimeError:
            logger.warning("Failed to search page %d – skipping", page_index + 1, exc_info=True)
            continue
        if anchor is not None:
            bounds = RectBounds(anchor.left, anchor.top, anchor.width, anchor.height)
            return LocateResult(page_index, bounds, LABEL_WORD_STRATEGY)
    return None


def locate_region(
    doc: fitz.Document,
    label: str,
    kind: RegionKind | str = RegionKind.TABLE,
    config: dict[str, Any] | None = None,
    page_range: tuple[int, int] | None = None,
    channel: AnnotationChannel | None = None,
    show_progress: bool = False,
) -> LocateResult | None:
    """Find the region *label* refers to in *doc*.

    Parameters
    ----------
    doc : fitz.Document
        The open document.
    label : str
        Label text such as ``"Table 1"``.
    kind : RegionKind | str
        ``table``, ``figure`` or ``generic``.
    config : dict | None
        Configuration as returned by :func:`_load_config`.
    page_range : tuple[int, int] | None
        0-based inclusive page range to restrict the search to (e.g. the
        section the reader is currently in).  ``None`` scans every page.
    channel : AnnotationChannel | None
        When given, ``RegionLocated`` or ``RegionNotFound`` is published.
    show_progress : bool
        Show a tqdm progress bar over the scanned pages.

    Returns
    -------
    LocateResult | None
        The first page (in page order) with a located region.  When the
        label itself is on no page and ``label_word_fallback`` is set, the
        box of its leading word with strategy ``"label_word"``.
    """
    kind = RegionKind.parse(kind)
    config = config if config is not None else _load_config()
    chain = build_chain(kind, config)

    first, last = 0, doc.page_count - 1
    if page_range is not None:
        first = max(first, page_range[0])
        last = min(last, page_range[1])
    indices = range(first, last + 1)
    logger.info("Locating '%s' (%s) on page(s) %d–%d.", label, kind.value, first + 1, last + 1)

    result: LocateResult | None = None
    label_seen = False
    for page_index in tqdm(indices, desc=f"Searching '{label}'", unit="page",
                           disable=not show_progress, file=sys.stderr):
        try:
            page = doc[page_index]
            anchor = find_anchor(page, label)
            if anchor is None:
                continue
            label_seen = True
            result = locate_on_page(page, page_index, label, kind, config, chain, anchor)
        except RuntimeError:
            logger.warning("Failed to analyse page %d – skipping", page_index + 1, exc_info=True)
            continue
        if result is not None:
            break

    if result is None and not label_seen and config.get("label_word_fallback", True):
        result = _locate_leading_word(doc, label, indices)
        if result is not None:
            logger.info("'%s' not found; marking its leading word instead.", label)

    if result is None:
        logger.info("No confident region for '%s'.", label)
        if channel is not None:
            channel.publish(RegionNotFound(label=label, kind=kind))
        return None

    logger.info(
        "Located '%s' on page %d via %s: %s",
        label,
        result.page_index + 1,
        result.strategy,
        result.bounds.to_dict(),
    )
    if channel is not None:
        channel.publish(
            RegionLocated(
                label=label,
                page_index=result.page_index,
                bounds=result.bounds,
                strategy=result.strategy,
            )
        )
    return result


class RegionLocatorService:
    """Answers ``LocateRequested`` events for one open document."""

    def __init__(self, doc: fitz.Document, config: dict[str, Any] | None = None) -> None:
        self._doc = doc
        self._config = config if config is not None else _load_config()
        self._channel: AnnotationChannel | None = None
        self.last_result: LocateResult | None = None

    def attach(self, channel: AnnotationChannel) -> None:
        self._channel = channel
        channel.subscribe(LocateRequested, self.on_locate_requested)

    def on_locate_requested(self, event: LocateRequested) -> None:
        self._channel.publish(AnnotationsCleared())
        self.last_result = locate_region(
            self._doc,
            event.label,
            event.kind,
            self._config,
            page_range=event.page_range,
            channel=self._channel,
        )


# ------------------------------------------------------------------ #
#  CLI entry point                                                    #
# ------------------------------------------------------------------ #

def main() -> None:
    """Parse arguments and locate the region."""
    parser = argparse.ArgumentParser(
        prog="region_locator",
        description="Locate the table or figure a label refers to in a PDF.",
    )
    parser.add_argument("input", help="Input PDF file path.")
    parser.add_argument("label", help='Label to look for, e.g. "Table 1".')
    parser.add_argument(
        "--kind",
        choices=[k.value for k in RegionKind],
        default=RegionKind.TABLE.value,
        help="What the label refers to (default: table).",
    )
    pages = parser.add_mutually_exclusive_group()
    pages.add_argument(
        "--page",
        type=int,
        default=None,
        help="Only search this 1-based page.",
    )
    pages.add_argument(
        "--pages",
        type=_parse_page_range,
        default=None,
        help="Only search this 1-based inclusive page range, e.g. 3-5.",
    )
    parser.add_argument(
        "--overlay-dir",
        type=str,
        default=None,
        help="Write the page with the located region circled as PNG here.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a custom configuration JSON file.",
    )
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a progress bar while scanning pages.",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging.",
    )

    args = parser.parse_args()

    # ── Logging ──────────────────────────────────────────────────────
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )

    # ── Config ───────────────────────────────────────────────────────
    config = _load_config(args.config)

    if not os.path.isfile(args.input):
        logger.error("Input file not found: '%s'", args.input)
        sys.exit(1)

    page_range = args.pages
    if args.page is not None:
        if args.page < 1:
            parser.error("--page must be 1 or greater.")
        page_range = (args.page - 1, args.page - 1)

    doc = fitz.open(args.input)
    try:
        channel = AnnotationChannel()
        overlay = None
        if args.overlay_dir:
            overlay_cfg = config.get("overlay", {}) or {}
            dpi = int(config.get("render_dpi", DEFAULT_DPI))

            def _load_page(index: int):
                page = doc[index]
                return render_page(page, dpi), (page.rect.width, page.rect.height)

            overlay = OverlayRenderer(
                color=tuple(overlay_cfg.get("color", (239, 68, 68))),
                width=int(overlay_cfg.get("width", 3)),
                page_loader=_load_page,
            )
            overlay.attach(channel)

        result = locate_region(
            doc,
            args.label,
            args.kind,
            config,
            page_range=page_range,
            channel=channel,
            show_progress=args.progress,
        )
        if overlay is not None and result is not None:
            stem = os.path.splitext(os.path.basename(args.input))[0]
            overlay.save(args.overlay_dir, prefix=stem)
    finally:
        doc.close()

    print(json.dumps(result.to_dict() if result is not None else None, indent=2))
    if result is None:
        sys.exit(2)


if __name__ == "__main__":
    main()
