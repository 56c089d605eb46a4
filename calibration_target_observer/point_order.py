"""
Deterministic ordering of detected target points.

Points are grouped into image rows and read left to right, top to bottom, so
that the index of a point refers to the same physical target location from one
frame to the next. This only holds while rows of the target stay well
separated in y, i.e. for targets roughly aligned with the image axes.
"""

from typing import Optional

import numpy as np
from scipy.spatial import cKDTree


def estimate_row_tolerance(points: np.ndarray) -> float:
    """Half the median nearest-neighbour distance between points."""
    points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    if len(points) < 2:
        return 0.0
    distances, _ = cKDTree(points).query(points, k=2)
    return 0.5 * float(np.median(distances[:, 1]))


def assign_rows(points: np.ndarray, row_tolerance: Optional[float] = None) -> np.ndarray:
    """
    Row bucket of every point.

    Points sorted by y start a new row when their y exceeds the y of the first
    point of the current row by more than ``row_tolerance``.

    Returns:
        (N,) int array of row numbers, aligned with the input points
    """
    points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    rows = np.zeros(len(points), dtype=np.int64)
    if len(points) == 0:
        return rows
    if row_tolerance is None:
        row_tolerance = estimate_row_tolerance(points)

    by_y = np.lexsort((points[:, 0], points[:, 1]))
    row = 0
    row_start_y = points[by_y[0], 1]
    for idx in by_y:
        y = points[idx, 1]
        if y - row_start_y > row_tolerance:
            row += 1
            row_start_y = y
        rows[idx] = row
    return rows


def order_points(points: np.ndarray, row_tolerance: Optional[float] = None) -> np.ndarray:
    """
    Sort points by (row bucket, x).

    Args:
        points: (N, 2) array of (x, y) pixel positions
        row_tolerance: Max y spread inside one row in pixels; estimated from
            the point spacing when None

    Returns:
        (N, 2) float32 array in target-point order
    """
    points = np.asarray(points, dtype=np.float32).reshape(-1, 2)
    if len(points) == 0:
        return points.copy()

    rows = assign_rows(points, row_tolerance)
    # lexsort keys are given least significant first
    order = np.lexsort((points[:, 1], points[:, 0], rows))
    return points[order]
