"""
Annotated images of the processed region for human inspection.
"""

import logging
from typing import Callable, Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)

DiagnosticsSink = Callable[[np.ndarray], None]


def draw_observations(image: np.ndarray, points: np.ndarray, pattern_cols: int) -> np.ndarray:
    """
    Copy of the image with a circle on every found point.

    A line joins the first and the last point of the first target row, which
    shows the orientation the points were numbered in.
    """
    vis = image.copy()
    points = np.asarray(points, dtype=np.float32).reshape(-1, 2)
    for x, y in points:
        cv2.circle(vis, (int(x), int(y)), 10, 255, 5)

    if len(points) > pattern_cols:
        p1 = tuple(int(v) for v in points[0])
        p2 = tuple(int(v) for v in points[pattern_cols - 1])
        cv2.line(vis, p1, p2, 255, 3)
    return vis


def draw_not_found(image: np.ndarray) -> np.ndarray:
    """Copy of the image with a heavy circle at its center."""
    vis = image.copy()
    height, width = vis.shape[:2]
    cv2.circle(vis, (width // 2, height // 2), 10, 255, 10)
    return vis


def publish(sink: Optional[DiagnosticsSink], image: np.ndarray) -> None:
    """Hand an annotated image to the sink; sink failures are only logged."""
    if sink is None:
        return
    try:
        sink(image)
    except Exception as e:
        logger.warning("Diagnostics sink failed: %s", e)
