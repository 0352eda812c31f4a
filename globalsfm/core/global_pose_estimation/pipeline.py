"""
Global positioning stage

raw view pairs -> view graph filter -> LUD position estimator -> positions

The caller's view pair mapping is never modified: the filter runs on a copy.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np

from ..config import GlobalPositioningConfig, LeastUnsquaredDeviationOptions
from ..types import TwoViewInfo, ViewId, ViewIdPair
from ..view_graph import remove_disconnected_view_pairs
from .least_unsquared_deviation_position_estimator import LeastUnsquaredDeviationPositionEstimator

logger = logging.getLogger(__name__)


class GlobalPositionEstimation:
    """
    Runs view graph filtering followed by robust position estimation
    """

    def __init__(self, config: Optional[GlobalPositioningConfig] = None):
        """
        Args:
            config: GlobalPositioningConfig or None (uses defaults)
        """
        self.config = config or GlobalPositioningConfig()
        self.logger = logging.getLogger(__name__)

        # Configure logging
        logging.basicConfig(level=getattr(logging, self.config.log_level))

        self.estimator = LeastUnsquaredDeviationPositionEstimator(self.config.estimator)

    def run(
        self,
        view_pairs: Mapping[ViewIdPair, TwoViewInfo],
        orientations: Mapping[ViewId, np.ndarray],
        initial_positions: Optional[Mapping[ViewId, np.ndarray]] = None,
    ) -> Tuple[bool, Dict[ViewId, np.ndarray]]:
        """
        Estimate positions for the views of the largest connected component

        Args:
            view_pairs: {ViewIdPair: TwoViewInfo} observations
            orientations: {view_id: angle-axis rotation}
            initial_positions: optional seeds, used when the estimator is
                configured with initialize_random_positions=False

        Returns:
            Tuple of (success, {view_id: position})
        """
        self.logger.info(f"Starting global position estimation on {len(view_pairs)} view pairs...")

        filtered_view_pairs = dict(view_pairs)
        if self.config.view_graph_filter.enabled:
            removed_view_ids = remove_disconnected_view_pairs(filtered_view_pairs)
            if removed_view_ids:
                self.logger.info(f"Views without estimated positions: {sorted(removed_view_ids)}")

        positions: Dict[ViewId, np.ndarray] = {}
        if initial_positions is not None:
            positions.update({view_id: np.asarray(position, dtype=np.float64)
                              for view_id, position in initial_positions.items()})

        success = self.estimator.estimate_positions(filtered_view_pairs, orientations, positions)
        if not success:
            self.logger.error("Global position estimation failed")
            return False, {}

        self.logger.info(
            f"Global position estimation completed: {len(positions)} positions, "
            f"state={self.estimator.state.value}"
        )
        return True, positions


def estimate_positions_with_filtering(
    view_pairs: Mapping[ViewIdPair, TwoViewInfo],
    orientations: Mapping[ViewId, np.ndarray],
    options: Optional[LeastUnsquaredDeviationOptions] = None,
    **config_overrides: Any,
) -> Tuple[bool, Dict[ViewId, np.ndarray]]:
    """
    Convenience function for filtering and position estimation

    Args:
        view_pairs: {ViewIdPair: TwoViewInfo} observations
        orientations: {view_id: angle-axis rotation}
        options: Optional estimator options
        **config_overrides: Other GlobalPositioningConfig fields (e.g. log_level)

    Returns:
        Tuple of (success, {view_id: position})
    """
    config = GlobalPositioningConfig(
        estimator=options or LeastUnsquaredDeviationOptions(),
        **config_overrides
    )
    return GlobalPositionEstimation(config).run(view_pairs, orientations)
