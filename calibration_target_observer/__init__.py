# calibration_target_observer package
"""
Calibration target observation for camera calibration.

This package finds the feature points of chessboard and circle grid targets
(including targets tiled from several identical circle sub-grids) in camera
frames and numbers them so they can be matched with the target geometry.
"""

from .errors import (
    TargetObserverError,
    ConfigError,
    RoiError,
    DetectionError,
    PatternNotFoundError,
    InternalDetectionError,
)
from .pattern_spec import PatternSpec, PatternType, Roi
from .grid_detector import GridDetector, DetectionResult
from .combined_grid import CombinedGridScanner, ScanResult
from .point_order import order_points
from .observations import CorrespondenceRecord, build_observations
from .observer import CameraObserver, ObserverState, observe
from .utils import load_target_config, create_target_points

__all__ = [
    'TargetObserverError',
    'ConfigError',
    'RoiError',
    'DetectionError',
    'PatternNotFoundError',
    'InternalDetectionError',
    'PatternSpec',
    'PatternType',
    'Roi',
    'GridDetector',
    'DetectionResult',
    'CombinedGridScanner',
    'ScanResult',
    'order_points',
    'CorrespondenceRecord',
    'build_observations',
    'CameraObserver',
    'ObserverState',
    'observe',
    'load_target_config',
    'create_target_points',
]
