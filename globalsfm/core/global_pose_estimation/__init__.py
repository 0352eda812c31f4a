"""
Global pose estimation: camera positions from pairwise relative translations
"""

from .position_estimator import PositionEstimator
from .least_unsquared_deviation_position_estimator import (
    EstimatorState,
    LeastUnsquaredDeviationPositionEstimator,
)
from .pipeline import GlobalPositionEstimation, estimate_positions_with_filtering

__all__ = [
    "PositionEstimator",
    "EstimatorState",
    "LeastUnsquaredDeviationPositionEstimator",
    "GlobalPositionEstimation",
    "estimate_positions_with_filtering",
]
