"""
Detection of targets made of several identical circle sub-grids.

The number of sub-grids on the target is not known in advance. The scanner
repeatedly looks for one sub-grid in a working copy of the image, records its
points and paints the sub-grid region white so the next pass cannot find it
again. Scanning stops at the first pass that finds nothing.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import cv2
import numpy as np

from .errors import InternalDetectionError

logger = logging.getLogger(__name__)

# (image, (cols, rows)) -> (N, 2) points or None
GridFinder = Callable[[np.ndarray, Tuple[int, int]], Optional[np.ndarray]]

MASK_VALUE = 255
DEFAULT_MAX_SUBGRIDS = 64
DEFAULT_PITCH_TOLERANCE = 0.3


@dataclass
class ScanResult:
    """Points accumulated over all sub-grids found in one image."""
    points: np.ndarray                    # (successes * sub_rows * sub_cols, 2)
    successes: int = 0
    masked_regions: List[np.ndarray] = field(default_factory=list)  # int32 polygons

    @property
    def found(self) -> bool:
        return self.successes > 0


def subgrid_corner_indices(sub_rows: int, sub_cols: int) -> Tuple[int, int, int, int]:
    """Raster indices of the first, top-right, bottom-left and last points."""
    if sub_rows <= 0 or sub_cols <= 0:
        raise InternalDetectionError(
            f"Degenerate sub-grid geometry {sub_rows}x{sub_cols}"
        )
    return (0, sub_cols - 1, (sub_rows - 1) * sub_cols, sub_rows * sub_cols - 1)


def subgrid_mask_polygon(points: np.ndarray, sub_rows: int, sub_cols: int,
                         margin: float = 0.5) -> np.ndarray:
    """
    Polygon covering a found sub-grid.

    The four extreme raster points are pushed outwards by ``margin`` grid
    pitches along the row and column directions so that the outer circles
    are covered completely, then the convex hull is taken.

    Args:
        points: (sub_rows*sub_cols, 2) points in detector raster order
        sub_rows: Rows of the sub-grid
        sub_cols: Columns of the sub-grid
        margin: Outward growth in multiples of the grid pitch

    Returns:
        (K, 1, 2) int32 convex polygon
    """
    points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    first, top_right, bottom_left, last = subgrid_corner_indices(sub_rows, sub_cols)
    if len(points) <= last:
        raise InternalDetectionError(
            f"Sub-grid has {len(points)} points, corner index {last} out of range"
        )

    p0, p1, p2, p3 = points[first], points[top_right], points[bottom_left], points[last]

    # Pitch vectors along a row (u) and down a column (v)
    u = (p1 - p0) / (sub_cols - 1) if sub_cols > 1 else None
    v = (p2 - p0) / (sub_rows - 1) if sub_rows > 1 else None
    if u is None and v is not None:
        u = np.array([v[1], -v[0]])
    if v is None and u is not None:
        v = np.array([-u[1], u[0]])
    if u is None:
        u = v = np.zeros(2)

    corners = np.array([
        p0 - margin * u - margin * v,
        p1 + margin * u - margin * v,
        p3 + margin * u + margin * v,
        p2 - margin * u + margin * v,
    ])
    hull = cv2.convexHull(np.round(corners).astype(np.int32))
    return hull.reshape(-1, 1, 2)


def mask_subgrid(image: np.ndarray, points: np.ndarray, sub_rows: int, sub_cols: int,
                 margin: float = 0.5) -> np.ndarray:
    """
    Paint a found sub-grid white, in place.

    Returns:
        The polygon that was filled
    """
    polygon = subgrid_mask_polygon(points, sub_rows, sub_cols, margin)
    cv2.fillConvexPoly(image, polygon, MASK_VALUE)
    return polygon


def check_uniform_pitch(points: np.ndarray, sub_rows: int, sub_cols: int,
                        tolerance: float = 0.3) -> None:
    """
    Reject a find whose neighbour spacing jumps inside the grid.

    A circle grid detector can assemble a grid from circles of two adjacent
    sub-grids. Such a grid has a larger step where it crosses the gap between
    the sub-grids.

    Args:
        points: (sub_rows*sub_cols, 2) points in detector raster order
        sub_rows: Rows of the sub-grid
        sub_cols: Columns of the sub-grid
        tolerance: Allowed relative deviation of a step from the median step

    Raises:
        InternalDetectionError: if any step deviates more than tolerance
    """
    grid = np.asarray(points, dtype=np.float64).reshape(sub_rows, sub_cols, 2)
    steps = []
    if sub_cols > 1:
        steps.append(np.linalg.norm(np.diff(grid, axis=1), axis=2).ravel())
    if sub_rows > 1:
        steps.append(np.linalg.norm(np.diff(grid, axis=0), axis=2).ravel())
    if not steps:
        return

    steps = np.concatenate(steps)
    median = float(np.median(steps))
    if median <= 0:
        raise InternalDetectionError("Sub-grid points coincide")
    deviation = float(np.max(np.abs(steps / median - 1.0)))
    if deviation > tolerance:
        raise InternalDetectionError(
            f"Sub-grid spacing is not uniform (step deviates {deviation:.0%} from median "
            f"{median:.1f} px); grid spans more than one sub-grid"
        )


class CombinedGridScanner:
    """
    Finds an unknown number of identical symmetric circle sub-grids.
    """

    def __init__(self, find_grid: GridFinder, mask_margin: float = 0.5,
                 max_subgrids: int = DEFAULT_MAX_SUBGRIDS,
                 pitch_tolerance: Optional[float] = DEFAULT_PITCH_TOLERANCE):
        """
        Args:
            find_grid: Sub-grid finder, called with (image, (cols, rows))
            mask_margin: Mask growth around each found sub-grid, in grid pitches
            max_subgrids: Upper bound on sub-grids per image
            pitch_tolerance: Allowed relative step deviation inside one find
                (None disables the check)
        """
        self.find_grid = find_grid
        self.mask_margin = mask_margin
        self.max_subgrids = max_subgrids
        self.pitch_tolerance = pitch_tolerance

    def scan(self, image: np.ndarray, sub_rows: int, sub_cols: int,
             max_subgrids: Optional[int] = None) -> ScanResult:
        """
        Collect the points of every sub-grid visible in the image.

        The image is copied on entry; the caller's buffer is never modified.

        Args:
            image: Single-channel region of interest
            sub_rows: Rows of one sub-grid
            sub_cols: Columns of one sub-grid
            max_subgrids: Overrides the scanner's bound for this call

        Returns:
            ScanResult with points in discovery order (not yet sorted)

        Raises:
            InternalDetectionError: on malformed finds, on finds spanning more
                than one sub-grid, or when more sub-grids are found than the
                bound allows
        """
        limit = max_subgrids if max_subgrids is not None else self.max_subgrids
        points_per_grid = sub_rows * sub_cols
        subgrid_corner_indices(sub_rows, sub_cols)

        working = image.copy()
        found: List[np.ndarray] = []
        masks: List[np.ndarray] = []

        while True:
            points = self.find_grid(working, (sub_cols, sub_rows))
            if points is None:
                break

            points = np.asarray(points, dtype=np.float32).reshape(-1, 2)
            if len(points) != points_per_grid:
                raise InternalDetectionError(
                    f"Sub-grid find has {len(points)} points, expected {points_per_grid}"
                )
            if self.pitch_tolerance is not None:
                check_uniform_pitch(points, sub_rows, sub_cols, self.pitch_tolerance)
            found.append(points)
            if len(found) > limit:
                raise InternalDetectionError(
                    f"Found more than {limit} sub-grids; masking is not removing found grids"
                )

            masks.append(mask_subgrid(working, points, sub_rows, sub_cols, self.mask_margin))
            logger.info("Found sub-grid %d with %d circles", len(found), len(points))

        if found:
            all_points = np.concatenate(found, axis=0)
        else:
            all_points = np.empty((0, 2), dtype=np.float32)

        return ScanResult(points=all_points, successes=len(found), masked_regions=masks)
