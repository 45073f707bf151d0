"""End-to-end tests on generated PDF documents."""

import argparse
import json
import os
import sys
import tempfile
import unittest

import fitz  # PyMuPDF

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from annotations.events import (
    AnnotationChannel,
    AnnotationsCleared,
    LocateRequested,
    RegionLocated,
    RegionNotFound,
)
from region_locator import (
    LABEL_WORD_STRATEGY,
    RegionLocatorService,
    _load_config,
    _parse_page_range,
    locate_region,
)
from utils.geometry import RegionKind
from utils.page_source import (
    find_anchor,
    find_leading_word,
    normalize_spaces,
    render_page,
    text_nodes,
)

CONFIG = {
    "render_dpi": 144,
    "dark_threshold": 180,
    "label_word_fallback": True,
    "strategies": {
        "table": ["pixels", "text_layout"],
        "figure": ["text_layout"],
        "generic": ["text_layout"],
    },
}


def _draw_table(page, caption="Table 1: Results"):
    """Caption at (72, 100) and a ruled 3×3 table spanning (80, 110)–(400, 290)."""
    page.insert_text(fitz.Point(72, 100), caption, fontsize=11)
    black = (0, 0, 0)
    for y in (110, 170, 230, 290):
        page.draw_line(fitz.Point(80, y), fitz.Point(400, y), color=black, width=1)
    for x in (80, 200, 300, 400):
        page.draw_line(fitz.Point(x, 110), fitz.Point(x, 290), color=black, width=1)


def _make_doc(table_page=0, page_count=1, captions=None):
    """Build a PDF in memory; *captions* gives one table caption per page (``None`` = blank)."""
    if captions is None:
        captions = ["Table 1: Results" if i == table_page else None for i in range(page_count)]
    src = fitz.open()
    for caption in captions:
        page = src.new_page(width=612, height=792)
        if caption is not None:
            _draw_table(page, caption)
    data = src.tobytes()
    src.close()
    return fitz.open(stream=data, filetype="pdf")


class TestPageSource(unittest.TestCase):
    """Test cases for the PyMuPDF adapter."""

    def setUp(self):
        self.doc = _make_doc()
        self.page = self.doc[0]

    def tearDown(self):
        self.doc.close()

    def test_render_page_size(self):
        buf = render_page(self.page, dpi=72)
        self.assertEqual((buf.width, buf.height), (612, 792))
        self.assertEqual(buf.data.shape, (792, 612, 4))
        self.assertTrue((buf.data[:, :, 3] == 255).all())

    def test_text_nodes(self):
        nodes = text_nodes(self.page)
        self.assertTrue(any("Table 1" in n.text for n in nodes))
        caption = next(n for n in nodes if "Table 1" in n.text)
        self.assertAlmostEqual(caption.left, 72, delta=1)

    def test_find_anchor(self):
        anchor = find_anchor(self.page, "Table 1")
        self.assertIsNotNone(anchor)
        self.assertAlmostEqual(anchor.left, 72, delta=1)
        self.assertLess(anchor.top, 100)

    def test_find_anchor_normalizes_whitespace(self):
        self.assertIsNotNone(find_anchor(self.page, "Table  1"))

    def test_find_anchor_is_exact(self):
        """A different number under the same word is not a match."""
        self.assertIsNone(find_anchor(self.page, "Table 9"))

    def test_find_leading_word(self):
        word = find_leading_word(self.page, "Table 9")
        self.assertIsNotNone(word)
        self.assertAlmostEqual(word.left, 72, delta=1)
        self.assertIsNone(find_leading_word(self.page, "Figure 9"))
        # A one-word label has no shorter cue to fall back to.
        self.assertIsNone(find_leading_word(self.page, "Table"))

    def test_normalize_spaces(self):
        self.assertEqual(normalize_spaces("  Table \n 1 "), "Table 1")


class TestLocateRegion(unittest.TestCase):
    """Test cases for locate_region."""

    def test_ruled_table(self):
        with _make_doc() as doc:
            anchor = find_anchor(doc[0], "Table 1")
            result = locate_region(doc, "Table 1", "table", CONFIG)
        self.assertIsNotNone(result)
        self.assertEqual(result.page_index, 0)
        self.assertEqual(result.strategy, "pixels")
        bounds = result.bounds
        self.assertAlmostEqual(bounds.left, anchor.left)
        self.assertAlmostEqual(bounds.top, 110, delta=2)
        self.assertAlmostEqual(bounds.right, 400, delta=2)
        self.assertAlmostEqual(bounds.bottom, 290, delta=2)

    def test_first_page_in_order(self):
        with _make_doc(table_page=1, page_count=3) as doc:
            result = locate_region(doc, "Table 1", RegionKind.TABLE, CONFIG)
        self.assertEqual(result.page_index, 1)
        self.assertEqual(result.to_dict()["page"], 2)

    def test_page_range_excludes_table(self):
        channel = AnnotationChannel()
        missing = []
        channel.subscribe(RegionNotFound, missing.append)
        with _make_doc(table_page=1, page_count=3) as doc:
            result = locate_region(doc, "Table 1", "table", CONFIG, page_range=(2, 5), channel=channel)
        self.assertIsNone(result)
        self.assertEqual(len(missing), 1)
        self.assertEqual(missing[0].kind, RegionKind.TABLE)

    def test_figure_uses_text_layout(self):
        with _make_doc() as doc:
            result = locate_region(doc, "Table 1", "figure", CONFIG)
        self.assertEqual(result.strategy, "text_layout")
        self.assertGreaterEqual(result.bounds.left, 10)
        self.assertGreater(result.bounds.width, 0)

    def test_label_not_in_document(self):
        with _make_doc() as doc:
            self.assertIsNone(locate_region(doc, "Figure 4", "figure", CONFIG))

    def test_publishes_located_event(self):
        channel = AnnotationChannel()
        located = []
        channel.subscribe(RegionLocated, located.append)
        with _make_doc() as doc:
            result = locate_region(doc, "Table 1", "table", CONFIG, channel=channel)
        self.assertEqual(len(located), 1)
        self.assertEqual(located[0].bounds, result.bounds)
        self.assertEqual(located[0].strategy, "pixels")

    def test_result_to_dict(self):
        with _make_doc() as doc:
            result = locate_region(doc, "Table 1", "table", CONFIG)
        payload = result.to_dict()
        self.assertEqual(set(payload), {"page", "strategy", "bounds"})
        self.assertEqual(set(payload["bounds"]), {"left", "top", "width", "height"})
        json.dumps(payload)


class TestLabelMatching(unittest.TestCase):
    """Test cases for which label a located region belongs to."""

    def setUp(self):
        self.doc = _make_doc(captions=["Table 1: A", "Table 2: B"])

    def tearDown(self):
        self.doc.close()

    def test_later_page_with_exact_label_wins(self):
        """An earlier page holding another table's caption is not a match."""
        result = locate_region(self.doc, "Table 2", "table", CONFIG)
        self.assertEqual(result.page_index, 1)
        self.assertEqual(result.strategy, "pixels")

    def test_missing_label_marks_leading_word_only(self):
        """A label on no page yields the word's own box, never a table region."""
        result = locate_region(self.doc, "Table 7", "table", CONFIG)
        self.assertEqual(result.page_index, 0)
        self.assertEqual(result.strategy, LABEL_WORD_STRATEGY)
        word = find_leading_word(self.doc[0], "Table 7")
        self.assertAlmostEqual(result.bounds.left, word.left)
        self.assertAlmostEqual(result.bounds.width, word.width)
        self.assertLess(result.bounds.height, 20)

    def test_missing_label_without_word_fallback(self):
        config = dict(CONFIG, label_word_fallback=False)
        self.assertIsNone(locate_region(self.doc, "Table 7", "table", config))


class TestRegionLocatorService(unittest.TestCase):
    """Test cases for the event-driven service."""

    def test_request_clears_then_locates(self):
        channel = AnnotationChannel()
        seen = []
        channel.subscribe(AnnotationsCleared, seen.append)
        channel.subscribe(RegionLocated, seen.append)
        with _make_doc() as doc:
            service = RegionLocatorService(doc, CONFIG)
            service.attach(channel)
            channel.publish(LocateRequested(label="Table 1"))
        self.assertEqual([type(e) for e in seen], [AnnotationsCleared, RegionLocated])
        self.assertEqual(service.last_result.page_index, 0)

    def test_request_with_section_range(self):
        channel = AnnotationChannel()
        missing = []
        channel.subscribe(RegionNotFound, missing.append)
        with _make_doc(table_page=0, page_count=2) as doc:
            service = RegionLocatorService(doc, CONFIG)
            service.attach(channel)
            channel.publish(LocateRequested(label="Table 1", page_range=(1, 1)))
        self.assertIsNone(service.last_result)
        self.assertEqual(len(missing), 1)


class TestHelpers(unittest.TestCase):
    """Test cases for configuration and argument helpers."""

    def test_parse_page_range(self):
        self.assertEqual(_parse_page_range("3-5"), (2, 4))
        self.assertEqual(_parse_page_range("2"), (1, 1))
        for bad in ("5-3", "0", "x", "1-y"):
            with self.assertRaises(argparse.ArgumentTypeError):
                _parse_page_range(bad)

    def test_load_config_merges_over_defaults(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "settings.json")
            with open(path, "w", encoding="utf-8") as fh:
                json.dump({"render_dpi": 72}, fh)
            config = _load_config(path)
        self.assertEqual(config["render_dpi"], 72)
        self.assertEqual(config["dark_threshold"], 180)
        self.assertEqual(config["strategies"]["table"], ["pixels", "text_layout"])

    def test_load_config_bad_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "settings.json")
            with open(path, "w", encoding="utf-8") as fh:
                fh.write("{not json")
            with self.assertLogs("region_locator", level="WARNING"):
                config = _load_config(path)
        self.assertEqual(config["render_dpi"], 144)

    def test_shipped_config(self):
        config = _load_config()
        self.assertEqual(config["overlay"]["color"], [239, 68, 68])
        self.assertTrue(config["label_word_fallback"])


def run_tests():
    """Run all tests."""
    unittest.main(argv=[''], exit=False, verbosity=2)


if __name__ == '__main__':
    run_tests()
