"""
Quality metrics for estimated camera positions

Global position estimation recovers positions only up to a global
translation and scale, so estimates are normalized before comparison.
"""

import logging
from typing import Dict, Mapping, Tuple

import numpy as np

from ..core.types import ViewId

logger = logging.getLogger(__name__)


def normalize_positions(positions: Mapping[ViewId, np.ndarray]) -> Dict[ViewId, np.ndarray]:
    """Translate the centroid to the origin and scale to unit RMS distance"""
    view_ids = sorted(positions.keys())
    if len(view_ids) == 0:
        return {}

    stacked = np.array([positions[view_id] for view_id in view_ids], dtype=np.float64)
    centered = stacked - stacked.mean(axis=0)
    rms = np.sqrt(np.mean(np.sum(centered ** 2, axis=1)))
    if rms > 0.0:
        centered = centered / rms

    return dict(zip(view_ids, centered))


def align_positions(
    estimated: Mapping[ViewId, np.ndarray],
    reference: Mapping[ViewId, np.ndarray],
) -> Tuple[Dict[ViewId, np.ndarray], Dict[ViewId, np.ndarray]]:
    """
    Bring both position sets to a common gauge over their shared views

    Returns:
        Tuple of (normalized estimated, normalized reference)
    """
    shared_view_ids = sorted(set(estimated.keys()) & set(reference.keys()))
    if len(shared_view_ids) < len(estimated) or len(shared_view_ids) < len(reference):
        logger.debug(f"Aligning on {len(shared_view_ids)} shared views")

    return (
        normalize_positions({view_id: estimated[view_id] for view_id in shared_view_ids}),
        normalize_positions({view_id: reference[view_id] for view_id in shared_view_ids}),
    )


def position_errors(
    estimated: Mapping[ViewId, np.ndarray],
    reference: Mapping[ViewId, np.ndarray],
) -> Dict[str, float]:
    """Mean/median/max distance between aligned estimated and reference positions"""
    aligned_estimated, aligned_reference = align_positions(estimated, reference)
    if not aligned_estimated:
        return {'mean_error': 0.0, 'median_error': 0.0, 'max_error': 0.0, 'num_views': 0}

    errors = np.array([
        np.linalg.norm(aligned_estimated[view_id] - aligned_reference[view_id])
        for view_id in aligned_estimated
    ])

    return {
        'mean_error': float(errors.mean()),
        'median_error': float(np.median(errors)),
        'max_error': float(errors.max()),
        'num_views': len(errors),
    }
