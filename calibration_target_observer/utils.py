"""
Utility functions for the target observer.
"""

import cv2
import numpy as np
import yaml
from typing import Dict, Any, List, Optional

from .errors import ConfigError
from .observations import CorrespondenceRecord
from .pattern_spec import PatternSpec, PatternType


def load_target_config(config_path: str) -> Dict[str, Any]:
    """Load target configuration from YAML file."""
    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)
    if not isinstance(config, dict):
        raise ConfigError(f"Target configuration {config_path} is not a mapping")
    return config


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """
    Single-channel uint8 view of an image.

    BGR and BGRA images are converted; grayscale images are returned as is.
    """
    if len(image.shape) == 3:
        if image.shape[2] == 4:
            image = cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        elif image.shape[2] == 3:
            image = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        else:
            image = image[:, :, 0]
    if image.dtype != np.uint8:
        image = cv2.normalize(image, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)
    return np.ascontiguousarray(image)


def create_target_points(spec: PatternSpec, spacing: float = 1.0,
                         gap: Optional[float] = None) -> np.ndarray:
    """
    3D coordinates of all target points, indexed by target point id.

    Points are numbered row by row, left to right, which is the order the
    observer reports them in for a target seen upright. Asymmetric circle
    grids use the OpenCV staggered layout. Combined circle grids are laid
    out tile by tile, with ``gap`` added between neighbouring sub-grids on
    top of the circle pitch.

    Args:
        spec: Target description
        spacing: Distance between neighbouring points (chessboard square or
            circle pitch)
        gap: Extra space between sub-grids of a combined target (default:
            one pitch, as printed by scripts/generate_target.py)

    Returns:
        (rows*cols, 3) float32 array with z = 0
    """
    spec.validate()
    if gap is None:
        gap = spacing

    points = []
    for r in range(spec.rows):
        for c in range(spec.cols):
            if spec.pattern_type is PatternType.ASYMMETRIC_CIRCLE_GRID:
                x = (2 * c + r % 2) * spacing
                y = r * spacing
            elif spec.pattern_type is PatternType.COMBINED_CIRCLE_GRID:
                tile_w = spec.sub_cols * spacing + gap
                tile_h = spec.sub_rows * spacing + gap
                x = (c // spec.sub_cols) * tile_w + (c % spec.sub_cols) * spacing
                y = (r // spec.sub_rows) * tile_h + (r % spec.sub_rows) * spacing
            else:
                x = c * spacing
                y = r * spacing
            points.append([x, y, 0.0])
    return np.array(points, dtype=np.float32)


def save_observations_yaml(observations: List[CorrespondenceRecord], output_path: str,
                           image_name: Optional[str] = None):
    """
    Save observations to a YAML file.

    Args:
        observations: Correspondence records from the observer
        output_path: Path to save the YAML file
        image_name: Source image, written as a comment
    """
    lines = ["# Target observations computed by calibration_target_observer"]
    if image_name:
        lines.append(f"# Image: {image_name}")
    lines.append("# [target_point_id, image_x, image_y]")

    target_name = observations[0].target_name if observations else ""
    cost_type = observations[0].cost_type if observations else ""
    header = yaml.safe_dump({'target_name': target_name, 'cost_type': cost_type},
                            default_flow_style=False, sort_keys=False)
    lines.extend(header.splitlines())
    lines.append("observations:")
    for obs in observations:
        lines.append(f"  - [{obs.target_point_id}, {obs.image_x:.4f}, {obs.image_y:.4f}]")

    with open(output_path, 'w') as f:
        f.write('\n'.join(lines) + '\n')

    print(f"Saved {len(observations)} observations to {output_path}")


def load_observations_yaml(path: str) -> List[CorrespondenceRecord]:
    """Read observations written by save_observations_yaml."""
    with open(path, 'r') as f:
        data = yaml.safe_load(f) or {}

    target_name = data.get('target_name', '')
    cost_type = data.get('cost_type', '')
    return [
        CorrespondenceRecord(
            target_point_id=int(point_id),
            image_x=float(x),
            image_y=float(y),
            cost_type=cost_type,
            target_name=target_name,
        )
        for point_id, x, y in data.get('observations') or []
    ]
