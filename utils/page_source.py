"""PyMuPDF adapter: page pixels, text nodes and label search.

The detector itself never touches PyMuPDF; this module turns a
``fitz.Page`` into the plain inputs it consumes.  Layer coordinates are
PDF points in the unrotated page space.
"""

import logging
import re

import fitz  # PyMuPDF

from utils.geometry import Anchor, PixelBuffer, TextNode

logger = logging.getLogger(__name__)

DEFAULT_DPI = 144

_LEADING_WORD_RE = re.compile(r"^[A-Za-z]+")


def render_page(page: fitz.Page, dpi: int = DEFAULT_DPI) -> PixelBuffer:
    """Rasterize *page* to an RGBA :class:`PixelBuffer` at *dpi*."""
    zoom = dpi / 72.0
    pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
    logger.debug("Rendered page %d at %d DPI → %dx%d.", page.number, dpi, pix.width, pix.height)
    return PixelBuffer.from_pixmap(pix)


def text_nodes(page: fitz.Page) -> list[TextNode]:
    """Span-level text nodes of *page*; whitespace-only spans are skipped."""
    nodes: list[TextNode] = []
    text_dict = page.get_text("dict")
    for block in text_dict.get("blocks", []):
        # Skip image blocks (type == 1)
        if block.get("type") != 0:
            continue
        for line in block.get("lines", []):
            for span in line.get("spans", []):
                text = span.get("text", "")
                if not text.strip():
                    continue
                x0, y0, x1, y1 = span.get("bbox", (0, 0, 0, 0))
                nodes.append(
                    TextNode(text=text, left=x0, top=y0, width=x1 - x0, height=y1 - y0)
                )
    return nodes


def normalize_spaces(text: str) -> str:
    return re.sub(r"\s+", " ", text.replace("\u00a0", " ")).strip()


def find_anchor(page: fitz.Page, label: str) -> Anchor | None:
    """Locate *label* on *page* and return the box of the first hit.

    Tries the label as given, then with whitespace normalised.
    """
    for term in dict.fromkeys([label, normalize_spaces(label)]):
        anchor = _search(page, term)
        if anchor is not None:
            return anchor
    return None


def find_leading_word(page: fitz.Page, label: str) -> Anchor | None:
    """Locate just the leading word of *label* (``"Table"`` for ``"Table 1"``).

    Only a cue for where the label probably is; the word alone does not
    identify which table or figure is meant.
    """
    match = _LEADING_WORD_RE.match(normalize_spaces(label))
    if not match or match.group(0) == normalize_spaces(label):
        return None
    return _search(page, match.group(0))


def _search(page: fitz.Page, term: str) -> Anchor | None:
    if not term:
        return None
    hits = page.search_for(term)
    if not hits:
        return None
    rect = hits[0]
    logger.debug("Label '%s' found on page %d at %s.", term, page.number, rect)
    return Anchor(left=rect.x0, top=rect.y0, width=rect.width, height=rect.height)
