"""
Core global SfM components
"""

from .types import (
    INVALID_VIEW_ID,
    TwoViewInfo,
    ViewIdPair,
    swap_two_view_info,
)
from .config import (
    GlobalPositioningConfig,
    LeastUnsquaredDeviationOptions,
    ViewGraphFilterConfig,
)
from .view_graph import (
    ViewGraph,
    remove_disconnected_view_pairs,
    filter_to_largest_connected_component,
)
from .global_pose_estimation import (
    EstimatorState,
    GlobalPositionEstimation,
    LeastUnsquaredDeviationPositionEstimator,
    estimate_positions_with_filtering,
)


# Convenience functions for direct usage
def estimate_positions(view_pairs, orientations, config=None):
    """Estimate positions of the views in the largest connected component"""
    pipeline = GlobalPositionEstimation(config or GlobalPositioningConfig())
    return pipeline.run(view_pairs, orientations)


__all__ = [
    # Data types
    "INVALID_VIEW_ID",
    "TwoViewInfo",
    "ViewIdPair",
    "swap_two_view_info",
    # Configuration
    "GlobalPositioningConfig",
    "LeastUnsquaredDeviationOptions",
    "ViewGraphFilterConfig",
    # View graph
    "ViewGraph",
    "remove_disconnected_view_pairs",
    "filter_to_largest_connected_component",
    # Position estimation
    "EstimatorState",
    "GlobalPositionEstimation",
    "LeastUnsquaredDeviationPositionEstimator",
    "estimate_positions_with_filtering",
    "estimate_positions",
]
