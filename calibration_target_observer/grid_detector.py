"""
Grid detection primitives for chessboard and circle grid targets.

Each finder takes a single-channel image and a pattern size given as
(cols, rows) and returns the feature points in the detector's native raster
order, or None when the full grid is not visible.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Dict, Any

import cv2
import numpy as np

from .errors import InternalDetectionError
from .pattern_spec import PatternType

logger = logging.getLogger(__name__)


@dataclass
class DetectionResult:
    """Result of a single grid detection on an image."""
    success: bool
    pattern_size: Tuple[int, int]
    points: Optional[np.ndarray] = None  # (N, 2) float32, detector raster order
    num_points: int = 0


class GridDetector:
    """
    Stateless grid finder wrapping the OpenCV calibration pattern detectors.

    Configuration only tunes the detectors; no state is kept between calls
    and input images are never modified.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the grid detector.

        Args:
            config: 'detection' section of the target configuration (optional)
        """
        config = config or {}
        self.refine_corners = bool(config.get('refine_corners', False))
        self.subpix_window = int(config.get('subpix_window', 5))
        self.chessboard_flags = cv2.CALIB_CB_ADAPTIVE_THRESH
        if config.get('normalize_image', False):
            self.chessboard_flags |= cv2.CALIB_CB_NORMALIZE_IMAGE
        self.symmetric_circle_flags = cv2.CALIB_CB_SYMMETRIC_GRID
        if config.get('circle_clustering', False):
            self.symmetric_circle_flags |= cv2.CALIB_CB_CLUSTERING

        self.blob_detector = None
        blob_params = self._configure_blob_params(config)
        if blob_params is not None:
            self.blob_detector = cv2.SimpleBlobDetector_create(blob_params)

        self._finders = {
            PatternType.CHESSBOARD: self.find_chessboard_corners,
            PatternType.SYMMETRIC_CIRCLE_GRID: self.find_symmetric_circles,
            PatternType.ASYMMETRIC_CIRCLE_GRID: self.find_asymmetric_circles,
        }

    def _configure_blob_params(self, cfg: Dict[str, Any]) -> Optional[cv2.SimpleBlobDetector_Params]:
        """Build blob detector parameters from config, or None for OpenCV defaults."""
        param_map = {
            'blob_min_threshold': 'minThreshold',
            'blob_max_threshold': 'maxThreshold',
            'blob_threshold_step': 'thresholdStep',
            'blob_min_area': 'minArea',
            'blob_max_area': 'maxArea',
            'blob_min_circularity': 'minCircularity',
            'blob_min_convexity': 'minConvexity',
            'blob_min_inertia': 'minInertiaRatio',
            'blob_min_dist': 'minDistBetweenBlobs',
        }
        if not any(key in cfg for key in param_map):
            return None

        params = cv2.SimpleBlobDetector_Params()
        for yaml_key, cv_attr in param_map.items():
            if yaml_key in cfg:
                setattr(params, cv_attr, float(cfg[yaml_key]))

        # Filters are only applied when switched on
        params.filterByArea = 'blob_min_area' in cfg or 'blob_max_area' in cfg
        params.filterByCircularity = 'blob_min_circularity' in cfg
        params.filterByConvexity = 'blob_min_convexity' in cfg
        params.filterByInertia = 'blob_min_inertia' in cfg
        return params

    def find_chessboard_corners(self, image: np.ndarray,
                                pattern_size: Tuple[int, int]) -> Optional[np.ndarray]:
        """Find the inner corners of a chessboard."""
        found, corners = cv2.findChessboardCorners(
            image, pattern_size, flags=self.chessboard_flags
        )
        if not found or corners is None:
            return None

        if self.refine_corners:
            corners = cv2.cornerSubPix(
                image, corners,
                winSize=(self.subpix_window, self.subpix_window),
                zeroZone=(-1, -1),
                criteria=(cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 30, 0.001)
            )
        return corners

    def find_symmetric_circles(self, image: np.ndarray,
                               pattern_size: Tuple[int, int]) -> Optional[np.ndarray]:
        """Find the centers of a symmetric circle grid."""
        return self._find_circles(image, pattern_size, self.symmetric_circle_flags)

    def find_asymmetric_circles(self, image: np.ndarray,
                                pattern_size: Tuple[int, int]) -> Optional[np.ndarray]:
        """Find the centers of an asymmetric circle grid (clustering search)."""
        return self._find_circles(
            image, pattern_size, cv2.CALIB_CB_ASYMMETRIC_GRID | cv2.CALIB_CB_CLUSTERING
        )

    def _find_circles(self, image: np.ndarray, pattern_size: Tuple[int, int],
                      flags: int) -> Optional[np.ndarray]:
        if self.blob_detector is not None:
            found, centers = cv2.findCirclesGrid(
                image, pattern_size, flags=flags, blobDetector=self.blob_detector
            )
        else:
            found, centers = cv2.findCirclesGrid(image, pattern_size, flags=flags)
        if not found or centers is None:
            return None
        return centers

    def find(self, image: np.ndarray, pattern_type: PatternType,
             pattern_size: Tuple[int, int]) -> Optional[np.ndarray]:
        """
        Find a complete grid of the given type and size.

        Args:
            image: Single-channel uint8 image
            pattern_type: Chessboard, symmetric or asymmetric circle grid
            pattern_size: (cols, rows) of the grid

        Returns:
            (cols*rows, 2) float32 array in detector raster order, or None

        Raises:
            InternalDetectionError: for pattern types without a finder or
                when OpenCV fails
        """
        finder = self._finders.get(pattern_type)
        if finder is None:
            raise InternalDetectionError(f"No grid finder for pattern type {pattern_type}")

        try:
            points = finder(image, tuple(pattern_size))
        except cv2.error as e:
            raise InternalDetectionError(f"OpenCV grid detection failed: {e}") from e

        if points is None:
            return None

        points = np.asarray(points, dtype=np.float32).reshape(-1, 2)
        expected = pattern_size[0] * pattern_size[1]
        if len(points) != expected:
            raise InternalDetectionError(
                f"Detector returned {len(points)} points, expected {expected}"
            )
        return points

    def detect(self, image: np.ndarray, pattern_size: Tuple[int, int],
               pattern_type: PatternType = PatternType.SYMMETRIC_CIRCLE_GRID) -> DetectionResult:
        """
        Detect a grid and wrap the outcome in a DetectionResult.

        Args:
            image: Single-channel uint8 image
            pattern_size: (cols, rows) of the grid
            pattern_type: Which finder to use

        Returns:
            DetectionResult; success is False when the grid is not visible
        """
        points = self.find(image, pattern_type, pattern_size)
        if points is None:
            logger.debug("No %s of size %s found", pattern_type.value, pattern_size)
            return DetectionResult(success=False, pattern_size=tuple(pattern_size))

        return DetectionResult(
            success=True,
            pattern_size=tuple(pattern_size),
            points=points,
            num_points=len(points),
        )
