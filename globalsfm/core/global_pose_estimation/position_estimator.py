"""
Abstract interface for global position estimation
"""

from abc import ABC, abstractmethod
from typing import Dict, Mapping

import numpy as np

from ..types import TwoViewInfo, ViewId, ViewIdPair


class PositionEstimator(ABC):
    """
    Estimates camera positions from pairwise relative translations and known
    absolute orientations.
    """

    @abstractmethod
    def estimate_positions(
        self,
        view_pairs: Mapping[ViewIdPair, TwoViewInfo],
        orientations: Mapping[ViewId, np.ndarray],
        positions: Dict[ViewId, np.ndarray],
    ) -> bool:
        """
        Estimate one position per view

        Args:
            view_pairs: {ViewIdPair: TwoViewInfo} observations (read only)
            orientations: {view_id: angle-axis world-to-camera rotation} (read only)
            positions: output {view_id: (3,) position}; may hold initial
                guesses on input

        Returns:
            True on success. On failure the positions must not be trusted.
        """
        pass
