"""
Camera observer: finds the configured target in a frame and returns the
correspondences between image points and target point indices.
"""

import logging
from enum import Enum
from typing import Optional, Dict, Any, List

import numpy as np

from .combined_grid import CombinedGridScanner, DEFAULT_PITCH_TOLERANCE
from .diagnostics import DiagnosticsSink, draw_observations, draw_not_found, publish
from .errors import ConfigError, RoiError, PatternNotFoundError
from .grid_detector import GridDetector
from .observations import CorrespondenceRecord, DEFAULT_COST_TYPE, build_observations
from .pattern_spec import PatternSpec, PatternType, Roi
from .point_order import order_points
from .utils import to_grayscale

logger = logging.getLogger(__name__)


class ObserverState(Enum):
    IDLE = 'idle'
    TARGET_CONFIGURED = 'target_configured'
    DETECTION_RUN = 'detection_run'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'


def find_target_points(image: np.ndarray, spec: PatternSpec,
                       detector: Optional[GridDetector] = None,
                       config: Optional[Dict[str, Any]] = None) -> Optional[np.ndarray]:
    """
    Find the points of a target in a single-channel image.

    Direct patterns are returned in detector order unless
    ``order_direct_patterns`` is set; combined grids are always ordered.

    Args:
        image: Single-channel region of interest
        spec: Validated target description
        detector: Grid detector to use (built from config when None)
        config: 'detection' section of the target configuration

    Returns:
        (N, 2) float32 array of points in target order, or None if not found
    """
    config = config or {}
    detector = detector or GridDetector(config)
    row_tolerance = config.get('row_tolerance')
    pitch_tolerance = config.get('pitch_tolerance', DEFAULT_PITCH_TOLERANCE)

    logger.info("Pattern type %s, rows %d, cols %d",
                spec.pattern_type.value, spec.rows, spec.cols)

    if spec.pattern_type is PatternType.COMBINED_CIRCLE_GRID:
        logger.info("Finding circles in combined grid...")
        scanner = CombinedGridScanner(
            lambda img, size: detector.find(img, PatternType.SYMMETRIC_CIRCLE_GRID, size),
            mask_margin=float(config.get('mask_margin', 0.5)),
            max_subgrids=int(config.get('max_subgrids') or spec.max_subgrids),
            pitch_tolerance=None if pitch_tolerance is None else float(pitch_tolerance),
        )
        result = scanner.scan(image, spec.sub_rows, spec.sub_cols)
        if not result.found:
            return None
        logger.info("Found %d sub-grids, %d points", result.successes, len(result.points))
        logger.debug("Unsorted points: %s", result.points.tolist())
        points = order_points(result.points, row_tolerance)
        logger.debug("Sorted points: %s", points.tolist())
        return points

    logger.info("Finding %s...", spec.pattern_type.value.replace('_', ' '))
    points = detector.find(image, spec.pattern_type, spec.pattern_size)
    if points is None:
        return None
    if config.get('order_direct_patterns', False):
        points = order_points(points, row_tolerance)
    return points


def observe(image: np.ndarray, spec: PatternSpec, roi: Optional[Roi] = None,
            cost_type: str = DEFAULT_COST_TYPE,
            detector: Optional[GridDetector] = None,
            config: Optional[Dict[str, Any]] = None,
            diagnostics_sink: Optional[DiagnosticsSink] = None) -> List[CorrespondenceRecord]:
    """
    Detect a target in one frame and build its correspondence list.

    Args:
        image: Camera frame (grayscale or BGR)
        spec: Target description
        roi: Region of the frame to search (whole frame when None)
        cost_type: Cost function tag stamped on every record
        detector: Grid detector to use (built from config when None)
        config: 'detection' section of the target configuration
        diagnostics_sink: Receives an annotated copy of the searched region

    Returns:
        Correspondence records with target_point_id 0..N-1

    Raises:
        ConfigError: unsupported or inconsistent target
        RoiError: ROI larger than the frame
        PatternNotFoundError: target not visible
        InternalDetectionError: detector failure
    """
    spec.validate()
    if roi is None:
        roi = Roi.full_image(image.shape)

    logger.info("Image ROI region: %d %d %d %d", roi.x_min, roi.y_min, roi.width, roi.height)
    image_roi = to_grayscale(roi.crop(image))

    points = find_target_points(image_roi, spec, detector, config)

    if points is None:
        logger.warning("Pattern not found for pattern: %s", spec.pattern_type.value)
        if diagnostics_sink is not None:
            publish(diagnostics_sink, draw_not_found(image_roi))
        raise PatternNotFoundError(
            f"{spec.pattern_type.value} {spec.rows}x{spec.cols} not found"
        )

    logger.info("Number of points found: %d", len(points))
    if diagnostics_sink is not None:
        publish(diagnostics_sink, draw_observations(image_roi, points, spec.cols))
    return build_observations(points, cost_type, spec.name)


class CameraObserver:
    """
    Observes one configured target per camera.

    The observer keeps the configured target and the latest observations;
    each call to get_observations runs a complete, independent detection.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 diagnostics_sink: Optional[DiagnosticsSink] = None):
        """
        Args:
            config: 'detection' section of the target configuration
            diagnostics_sink: Receives annotated images of each detection
        """
        self.config = config or {}
        self.detector = GridDetector(self.config)
        self.diagnostics_sink = diagnostics_sink

        self.state = ObserverState.IDLE
        self.target: Optional[PatternSpec] = None
        self.roi: Optional[Roi] = None
        self.cost_type = DEFAULT_COST_TYPE
        self.observations: List[CorrespondenceRecord] = []

    def add_target(self, spec: PatternSpec, roi: Optional[Roi] = None,
                   cost_type: str = DEFAULT_COST_TYPE) -> None:
        """
        Configure the target to look for.

        Raises:
            ConfigError: unsupported pattern type or inconsistent geometry
        """
        spec.validate()
        self.target = spec
        self.roi = roi
        self.cost_type = cost_type
        self.state = ObserverState.TARGET_CONFIGURED
        logger.info("Added target %s (%s) and roi %s",
                    spec.name or '<unnamed>', spec.pattern_type.value, roi)

    def clear_targets(self) -> None:
        self.target = None
        self.roi = None
        self.state = ObserverState.IDLE

    def clear_observations(self) -> None:
        self.observations = []

    def get_observations(self, image: np.ndarray) -> List[CorrespondenceRecord]:
        """
        Detect the configured target in a frame.

        Args:
            image: Camera frame (grayscale or BGR)

        Returns:
            Correspondence records for this frame

        Raises:
            ConfigError: no target configured
            RoiError: ROI larger than the frame
            DetectionError: target not found or detector failure
        """
        if self.target is None:
            raise ConfigError("No target configured")

        if self.roi is not None and not self.roi.fits(image.shape):
            raise RoiError(
                f"ROI too big for image size: roi {self.roi.width}x{self.roi.height}, "
                f"image {image.shape[1]}x{image.shape[0]}"
            )

        self.state = ObserverState.DETECTION_RUN
        self.observations = []
        try:
            observations = observe(
                image, self.target, self.roi, self.cost_type,
                detector=self.detector, config=self.config,
                diagnostics_sink=self.diagnostics_sink,
            )
        except Exception:
            self.state = ObserverState.FAILED
            raise

        self.observations = observations
        self.state = ObserverState.SUCCEEDED
        return observations
