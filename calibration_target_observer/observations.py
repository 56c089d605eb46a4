"""
Correspondences between detected pixels and target point indices.
"""

from dataclasses import dataclass
from typing import List

import numpy as np

DEFAULT_COST_TYPE = "CameraReprjErrorWithDistortion"


@dataclass(frozen=True)
class CorrespondenceRecord:
    """One observed target point."""
    target_point_id: int  # Index into the target's point table
    image_x: float
    image_y: float
    cost_type: str = DEFAULT_COST_TYPE
    target_name: str = ""


def build_observations(ordered_points: np.ndarray, cost_type: str = DEFAULT_COST_TYPE,
                       target_name: str = "") -> List[CorrespondenceRecord]:
    """
    Number ordered points 0..N-1 and stamp them with the cost function tag.
    """
    ordered_points = np.asarray(ordered_points, dtype=np.float64).reshape(-1, 2)
    return [
        CorrespondenceRecord(
            target_point_id=i,
            image_x=float(x),
            image_y=float(y),
            cost_type=cost_type,
            target_name=target_name,
        )
        for i, (x, y) in enumerate(ordered_points)
    ]


def observations_to_array(observations: List[CorrespondenceRecord]) -> np.ndarray:
    """(N, 2) image points indexed by target_point_id."""
    points = np.zeros((len(observations), 2), dtype=np.float64)
    for obs in observations:
        points[obs.target_point_id] = (obs.image_x, obs.image_y)
    return points
