"""Tests for column detection, coordinate mapping and ROI selection."""

import os
import sys
import unittest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from analyzers.layout_analyzer import ColumnSplit, LayoutAnalyzer
from analyzers.roi_selector import CoordinateMapper, RoiSelector
from utils.geometry import Anchor, PixelRect, TableBox

TWO_COLUMN_XS = [50, 60, 72, 320, 330]


class TestLayoutAnalyzer(unittest.TestCase):
    """Test cases for LayoutAnalyzer.find_column_split."""

    def setUp(self):
        self.analyzer = LayoutAnalyzer()

    def test_boundary_at_midpoint_of_widest_gap(self):
        split = self.analyzer.find_column_split(TWO_COLUMN_XS, 612)
        self.assertTrue(split.is_multi_column)
        self.assertAlmostEqual(split.boundary, 196)
        self.assertEqual(split.column_for(60), (0.0, 196))
        self.assertEqual(split.column_for(330), (196, 612))

    def test_gap_must_exceed_minimum(self):
        """A gap of exactly 30 units does not split the page."""
        split = self.analyzer.find_column_split([10, 40, 70], 612)
        self.assertFalse(split.is_multi_column)
        self.assertEqual(split.column_for(500), (0.0, 612))

    def test_unsorted_input(self):
        split = self.analyzer.find_column_split([330, 50, 320, 72, 60], 612)
        self.assertAlmostEqual(split.boundary, 196)

    def test_too_few_positions(self):
        self.assertFalse(self.analyzer.find_column_split([100], 612).is_multi_column)
        self.assertFalse(self.analyzer.find_column_split([], 612).is_multi_column)

    def test_same_column(self):
        split = ColumnSplit(page_width=612, boundary=300)
        self.assertTrue(split.same_column(50, 299))
        self.assertFalse(split.same_column(50, 300))


class TestCoordinateMapper(unittest.TestCase):
    """Test cases for CoordinateMapper."""

    def setUp(self):
        self.mapper = CoordinateMapper(612, 792, 1224, 1584)

    def test_scales(self):
        self.assertAlmostEqual(self.mapper.scale_x, 2.0)
        self.assertAlmostEqual(self.mapper.scale_y, 2.0)

    def test_independent_axes(self):
        mapper = CoordinateMapper(100, 200, 300, 200)
        self.assertAlmostEqual(mapper.scale_x, 3.0)
        self.assertAlmostEqual(mapper.scale_y, 1.0)
        self.assertEqual(mapper.to_layer_box(TableBox(30, 20, 90, 60)), TableBox(10, 20, 30, 60))

    def test_pixel_rect_is_clamped(self):
        self.assertEqual(
            self.mapper.to_pixel_rect(-10, 100, 700, 900), PixelRect(0, 200, 1224, 1584)
        )

    def test_layer_box(self):
        self.assertEqual(
            self.mapper.to_layer_box(TableBox(100, 200, 300, 400)), TableBox(50, 100, 150, 200)
        )

    def test_rejects_empty_layer(self):
        with self.assertRaises(ValueError):
            CoordinateMapper(0, 792, 100, 100)


class TestRoiSelector(unittest.TestCase):
    """Test cases for RoiSelector.select_roi."""

    def setUp(self):
        self.selector = RoiSelector()
        self.mapper = CoordinateMapper(612, 792, 1224, 1584)
        self.layer_size = (612, 792)

    def test_left_column_anchor(self):
        """The window starts at the anchor and stops just past the column boundary."""
        anchor = Anchor(left=60, top=400, width=40, height=10)
        window = self.selector.select_roi(anchor, self.layer_size, TWO_COLUMN_XS, self.mapper)
        # top = 400 - 0.25 * 792 = 202, right = 196 + 8 = 204 (layer units)
        self.assertEqual(window.rect, PixelRect(120, 404, 408, 1584))
        self.assertAlmostEqual(window.column_end, 196)

    def test_right_column_anchor_runs_to_page_edge(self):
        anchor = Anchor(left=330, top=400, width=40, height=10)
        window = self.selector.select_roi(anchor, self.layer_size, TWO_COLUMN_XS, self.mapper)
        self.assertEqual(window.rect, PixelRect(660, 404, 1224, 1584))
        self.assertEqual(window.column_end, 612)

    def test_single_column(self):
        anchor = Anchor(left=60, top=50, width=40, height=10)
        window = self.selector.select_roi(anchor, self.layer_size, [50, 60, 72], self.mapper)
        self.assertEqual(window.rect, PixelRect(120, 0, 1224, 1584))

    def test_no_anchor_is_whole_page(self):
        window = self.selector.select_roi(None, self.layer_size, TWO_COLUMN_XS, self.mapper)
        self.assertEqual(window.rect, PixelRect(0, 0, 1224, 1584))

    def test_empty_window(self):
        anchor = Anchor(left=612, top=400, width=10, height=10)
        self.assertIsNone(self.selector.select_roi(anchor, self.layer_size, [], self.mapper))


def run_tests():
    """Run all tests."""
    unittest.main(argv=[''], exit=False, verbosity=2)


if __name__ == '__main__':
    run_tests()
