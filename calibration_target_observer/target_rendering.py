"""
Rendering of synthetic calibration targets.

The renderers return the target image together with the ideal pixel position
of every target point, numbered row by row, so they can be used both for
printing targets and for checking detections.
"""

from typing import Tuple

import cv2
import numpy as np


def render_chessboard(rows: int, cols: int, square_px: int = 40,
                      margin_px: int = 40) -> Tuple[np.ndarray, np.ndarray]:
    """
    Render a chessboard with rows x cols inner corners.

    Args:
        rows: Inner corner rows (squares - 1)
        cols: Inner corner columns (squares - 1)
        square_px: Square side in pixels
        margin_px: White border around the board

    Returns:
        Tuple of (uint8 image, (rows*cols, 2) inner corner positions)
    """
    squares_y, squares_x = rows + 1, cols + 1
    height = squares_y * square_px + 2 * margin_px
    width = squares_x * square_px + 2 * margin_px
    image = np.full((height, width), 255, dtype=np.uint8)

    for sy in range(squares_y):
        for sx in range(squares_x):
            if (sx + sy) % 2 == 0:
                x0 = margin_px + sx * square_px
                y0 = margin_px + sy * square_px
                image[y0:y0 + square_px, x0:x0 + square_px] = 0

    corners = [
        [margin_px + (c + 1) * square_px, margin_px + (r + 1) * square_px]
        for r in range(rows) for c in range(cols)
    ]
    return image, np.array(corners, dtype=np.float32)


def circle_grid_centers(rows: int, cols: int, spacing_px: int,
                        origin: Tuple[int, int] = (0, 0),
                        asymmetric: bool = False) -> np.ndarray:
    """Ideal circle centers of a grid, row by row."""
    ox, oy = origin
    centers = []
    for r in range(rows):
        for c in range(cols):
            if asymmetric:
                x = ox + (2 * c + r % 2) * spacing_px
            else:
                x = ox + c * spacing_px
            centers.append([x, oy + r * spacing_px])
    return np.array(centers, dtype=np.float32)


def _draw_circles(image: np.ndarray, centers: np.ndarray, radius_px: int):
    for x, y in centers:
        cv2.circle(image, (int(round(x)), int(round(y))), radius_px, 0, -1, cv2.LINE_AA)


def render_circle_grid(rows: int, cols: int, spacing_px: int = 40, radius_px: int = 10,
                       margin_px: int = 50,
                       asymmetric: bool = False) -> Tuple[np.ndarray, np.ndarray]:
    """
    Render dark circles on a white background.

    Returns:
        Tuple of (uint8 image, (rows*cols, 2) circle centers)
    """
    centers = circle_grid_centers(rows, cols, spacing_px, (margin_px, margin_px), asymmetric)
    width = int(centers[:, 0].max()) + margin_px + 1
    height = int(centers[:, 1].max()) + margin_px + 1
    image = np.full((height, width), 255, dtype=np.uint8)
    _draw_circles(image, centers, radius_px)
    return image, centers


def combined_grid_centers(sub_rows: int, sub_cols: int, tiles_y: int, tiles_x: int,
                          spacing_px: int = 40, gap_px: int = 40,
                          margin_px: int = 50) -> np.ndarray:
    """
    Circle centers of a combined target, grouped per sub-grid.

    Returns:
        (tiles_y, tiles_x, sub_rows*sub_cols, 2) array
    """
    tile_w = sub_cols * spacing_px + gap_px
    tile_h = sub_rows * spacing_px + gap_px
    tiles = np.zeros((tiles_y, tiles_x, sub_rows * sub_cols, 2), dtype=np.float32)
    for ty in range(tiles_y):
        for tx in range(tiles_x):
            origin = (margin_px + tx * tile_w, margin_px + ty * tile_h)
            tiles[ty, tx] = circle_grid_centers(sub_rows, sub_cols, spacing_px, origin)
    return tiles


def render_combined_circle_grid(sub_rows: int, sub_cols: int, tiles_y: int, tiles_x: int,
                                spacing_px: int = 40, radius_px: int = 10, gap_px: int = 40,
                                margin_px: int = 50) -> Tuple[np.ndarray, np.ndarray]:
    """
    Render a target made of tiles_y x tiles_x identical symmetric sub-grids.

    ``gap_px`` is the extra space between neighbouring sub-grids on top of the
    circle pitch.

    Returns:
        Tuple of (uint8 image, (N, 2) centers numbered row by row across the
        whole target)
    """
    tiles = combined_grid_centers(sub_rows, sub_cols, tiles_y, tiles_x,
                                  spacing_px, gap_px, margin_px)
    centers = tiles.reshape(-1, 2)
    width = int(centers[:, 0].max()) + margin_px + 1
    height = int(centers[:, 1].max()) + margin_px + 1
    image = np.full((height, width), 255, dtype=np.uint8)
    _draw_circles(image, centers, radius_px)

    # Full-target row-major numbering: sort by row then column
    ordered = tiles.reshape(tiles_y, tiles_x, sub_rows, sub_cols, 2)
    ordered = ordered.transpose(0, 2, 1, 3, 4).reshape(-1, 2)
    return image, ordered
