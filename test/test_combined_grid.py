#!/usr/bin/env python3
"""
Tests for the combined circle grid scanner.
"""

import unittest
import numpy as np
import os
import sys

# Add package to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from calibration_target_observer.combined_grid import (
    CombinedGridScanner,
    check_uniform_pitch,
    mask_subgrid,
    subgrid_corner_indices,
    subgrid_mask_polygon,
)
from calibration_target_observer.errors import InternalDetectionError
from calibration_target_observer.grid_detector import GridDetector
from calibration_target_observer.pattern_spec import PatternType
from calibration_target_observer.target_rendering import (
    combined_grid_centers,
    render_circle_grid,
    render_combined_circle_grid,
)


class DarkCenterFinder:
    """
    Stand-in sub-grid finder for synthetic combined targets.

    Reports the first known sub-grid whose circle centers are all still dark
    in the image, so masked sub-grids are no longer found.
    """

    def __init__(self, subgrids):
        self.subgrids = [np.asarray(g, dtype=np.float32) for g in subgrids]
        self.calls = 0

    def __call__(self, image, pattern_size):
        self.calls += 1
        for grid in self.subgrids:
            xs = np.round(grid[:, 0]).astype(int)
            ys = np.round(grid[:, 1]).astype(int)
            h, w = image.shape[:2]
            if xs.max() >= w or ys.max() >= h:
                continue
            if np.all(image[ys, xs] < 128):
                return grid.copy()
        return None


def opencv_finder(detector=None):
    """Sub-grid finder backed by the OpenCV symmetric circle grid search."""
    detector = detector or GridDetector()
    return lambda img, size: detector.find(img, PatternType.SYMMETRIC_CIRCLE_GRID, size)


def split_grid(rows, cols, split_col, jump=40):
    """Uniform grid whose columns from split_col on are shifted by an extra jump."""
    _, centers = render_circle_grid(rows=rows, cols=cols, spacing_px=40)
    grid = centers.reshape(rows, cols, 2).copy()
    grid[:, split_col:, 0] += jump
    return grid.reshape(-1, 2)


class TestMaskGeometry(unittest.TestCase):
    """Test sub-grid corner selection and mask polygons."""

    def test_corner_indices(self):
        """Test raster indices of the four sub-grid corners."""
        self.assertEqual(subgrid_corner_indices(3, 4), (0, 3, 8, 11))
        self.assertEqual(subgrid_corner_indices(1, 5), (0, 4, 0, 4))

    def test_degenerate_geometry(self):
        """Test empty sub-grid geometry is rejected."""
        with self.assertRaises(InternalDetectionError):
            subgrid_corner_indices(0, 4)

    def test_polygon_covers_grid_with_margin(self):
        """Test the mask reaches half a pitch past the outer centers."""
        _, centers = render_circle_grid(rows=3, cols=4, spacing_px=40, margin_px=50)
        polygon = subgrid_mask_polygon(centers, 3, 4, margin=0.5).reshape(-1, 2)
        self.assertEqual(polygon.dtype, np.int32)
        # Grid spans x 50..170, y 50..130; half a pitch is 20 px
        self.assertEqual(polygon[:, 0].min(), 30)
        self.assertEqual(polygon[:, 0].max(), 190)
        self.assertEqual(polygon[:, 1].min(), 30)
        self.assertEqual(polygon[:, 1].max(), 150)

    def test_polygon_is_convex_for_raster_corners(self):
        """Test raster-ordered corners still give a proper quadrilateral."""
        _, centers = render_circle_grid(rows=3, cols=3, spacing_px=40)
        polygon = subgrid_mask_polygon(centers, 3, 3, margin=0.0).reshape(-1, 2)
        self.assertEqual(len(polygon), 4)

    def test_single_row_polygon_has_area(self):
        """Test a single-row sub-grid still masks an area."""
        _, centers = render_circle_grid(rows=1, cols=4, spacing_px=40)
        polygon = subgrid_mask_polygon(centers, 1, 4, margin=0.5).reshape(-1, 2)
        self.assertGreater(np.ptp(polygon[:, 1]), 0)

    def test_too_few_points(self):
        """Test a find shorter than the sub-grid is rejected."""
        with self.assertRaises(InternalDetectionError):
            subgrid_mask_polygon(np.zeros((5, 2)), 3, 4)

    def test_masked_grid_is_not_found_again(self):
        """Test OpenCV no longer finds a sub-grid once it is masked."""
        image, centers = render_circle_grid(rows=4, cols=4)
        detector = GridDetector()
        points = detector.find(image, PatternType.SYMMETRIC_CIRCLE_GRID, (4, 4))
        self.assertIsNotNone(points)

        working = image.copy()
        mask_subgrid(working, points, 4, 4)
        self.assertTrue(np.all(working == 255))
        self.assertIsNone(detector.find(working, PatternType.SYMMETRIC_CIRCLE_GRID, (4, 4)))


class TestUniformPitch(unittest.TestCase):
    """Test rejection of finds that span two sub-grids."""

    def test_uniform_grid_accepted(self):
        """Test a regular grid passes the spacing check."""
        _, centers = render_circle_grid(rows=4, cols=5)
        check_uniform_pitch(centers, 4, 5)

    def test_perspective_grid_accepted(self):
        """Test a mildly foreshortened grid passes the spacing check."""
        _, centers = render_circle_grid(rows=4, cols=5)
        tilted = centers.copy()
        tilted[:, 0] = 50 + (tilted[:, 0] - 50) * (1.0 + 0.0005 * (tilted[:, 1] - 50))
        check_uniform_pitch(tilted, 4, 5)

    def test_grid_across_gap_rejected(self):
        """Test a grid with a jump between two columns is rejected."""
        with self.assertRaises(InternalDetectionError):
            check_uniform_pitch(split_grid(4, 5, split_col=2), 4, 5)

    def test_single_point_grid(self):
        """Test a 1x1 sub-grid has nothing to check."""
        check_uniform_pitch(np.array([[3.0, 4.0]]), 1, 1)


class TestCombinedGridScanner(unittest.TestCase):
    """Test the detect-and-mask loop."""

    def setUp(self):
        self.image, self.ordered = render_combined_circle_grid(3, 4, tiles_y=2, tiles_x=2)
        tiles = combined_grid_centers(3, 4, 2, 2)
        self.subgrids = list(tiles.reshape(-1, 12, 2))

    def test_finds_every_subgrid(self):
        """Test every sub-grid is found and masked once."""
        finder = DarkCenterFinder(self.subgrids)
        result = CombinedGridScanner(finder).scan(self.image, 3, 4)

        self.assertTrue(result.found)
        self.assertEqual(result.successes, 4)
        self.assertEqual(result.points.shape, (4 * 12, 2))
        self.assertEqual(len(result.masked_regions), 4)
        # One failed attempt ends the loop
        self.assertEqual(finder.calls, 5)

    def test_points_kept_in_discovery_order(self):
        """Test the scan does not reorder points."""
        finder = DarkCenterFinder(self.subgrids[::-1])
        result = CombinedGridScanner(finder).scan(self.image, 3, 4)
        np.testing.assert_array_equal(result.points[:12], self.subgrids[-1])

    def test_caller_image_untouched(self):
        """Test masking happens on a private copy."""
        before = self.image.copy()
        CombinedGridScanner(DarkCenterFinder(self.subgrids)).scan(self.image, 3, 4)
        np.testing.assert_array_equal(before, self.image)

    def test_nothing_found(self):
        """Test an empty result when no sub-grid is visible."""
        blank = np.full_like(self.image, 255)
        result = CombinedGridScanner(DarkCenterFinder(self.subgrids)).scan(blank, 3, 4)
        self.assertFalse(result.found)
        self.assertEqual(result.successes, 0)
        self.assertEqual(result.points.shape, (0, 2))

    def test_wrong_point_count_is_internal_error(self):
        """Test a find with the wrong number of points raises."""
        scanner = CombinedGridScanner(lambda image, size: np.zeros((5, 2), dtype=np.float32))
        with self.assertRaises(InternalDetectionError):
            scanner.scan(self.image, 3, 4)

    def test_unmasked_finder_hits_bound(self):
        """Test a finder that ignores the mask stops at the bound."""
        grid = self.subgrids[0]
        scanner = CombinedGridScanner(lambda image, size: grid.copy(), max_subgrids=3)
        with self.assertRaises(InternalDetectionError):
            scanner.scan(self.image, 3, 4)

    def test_bound_override_per_call(self):
        """Test the per-call bound overrides the scanner's bound."""
        scanner = CombinedGridScanner(DarkCenterFinder(self.subgrids), max_subgrids=1)
        result = scanner.scan(self.image, 3, 4, max_subgrids=4)
        self.assertEqual(result.successes, 4)

    def test_find_across_subgrids_is_internal_error(self):
        """Test a find spanning two sub-grids aborts the scan."""
        grid = split_grid(4, 5, split_col=3)
        scanner = CombinedGridScanner(lambda image, size: grid.copy())
        with self.assertRaises(InternalDetectionError):
            scanner.scan(self.image, 4, 5)

    def test_pitch_check_can_be_disabled(self):
        """Test pitch_tolerance None accepts irregular finds."""
        grids = [split_grid(4, 5, split_col=3)]
        scanner = CombinedGridScanner(lambda image, size: grids.pop() if grids else None,
                                      pitch_tolerance=None)
        result = scanner.scan(self.image, 4, 5)
        self.assertEqual(result.successes, 1)


class TestCombinedGridScannerOpenCV(unittest.TestCase):
    """Test the detect-and-mask loop with the real circle grid search."""

    def assert_all_found(self, sub_rows, sub_cols):
        image, ordered = render_combined_circle_grid(sub_rows, sub_cols, tiles_y=2, tiles_x=2)
        result = CombinedGridScanner(opencv_finder()).scan(image, sub_rows, sub_cols)

        self.assertEqual(result.successes, 4)
        self.assertEqual(len(result.points), len(ordered))
        for x, y in ordered:
            d = np.min(np.hypot(result.points[:, 0] - x, result.points[:, 1] - y))
            self.assertLess(d, 1.5)

    def test_single_subgrid(self):
        """Test one visible sub-grid gives one success."""
        image, centers = render_circle_grid(rows=4, cols=4)
        result = CombinedGridScanner(opencv_finder()).scan(image, 4, 4)
        self.assertEqual(result.successes, 1)
        self.assertEqual(len(result.points), 16)

    def test_square_subgrids(self):
        """Test four 4x4 sub-grids are all found."""
        self.assert_all_found(4, 4)

    def test_wide_subgrids(self):
        """Test four 3x5 sub-grids are all found."""
        self.assert_all_found(3, 5)


if __name__ == '__main__':
    unittest.main()
