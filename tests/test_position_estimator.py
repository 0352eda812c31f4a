"""
Unit tests for least unsquared deviation position estimation
"""

import pytest
import numpy as np
from pathlib import Path
from scipy.spatial.transform import Rotation
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from globalsfm.core.config import GlobalPositioningConfig, LeastUnsquaredDeviationOptions
from globalsfm.core.types import TwoViewInfo, ViewIdPair
from globalsfm.core.global_pose_estimation import (
    EstimatorState,
    GlobalPositionEstimation,
    LeastUnsquaredDeviationPositionEstimator,
    estimate_positions_with_filtering,
)
from globalsfm.utils.quality_metrics import position_errors


def make_two_view_info(orientations, positions, view_id1, view_id2):
    """Noise-free observation of view2 from view1"""
    rotation1 = Rotation.from_rotvec(orientations[view_id1]).as_matrix()
    rotation2 = Rotation.from_rotvec(orientations[view_id2]).as_matrix()
    return TwoViewInfo(
        position_2=rotation1 @ (positions[view_id2] - positions[view_id1]),
        rotation_2=Rotation.from_matrix(rotation2 @ rotation1.T).as_rotvec(),
    )


def create_scene(num_views: int = 8, seed: int = 0, view_id_offset: int = 0):
    """
    Create ground truth positions/orientations and all pairwise observations

    Returns:
        Tuple of (view_pairs, orientations, positions)
    """
    rng = np.random.default_rng(seed)
    view_ids = [view_id_offset + i for i in range(num_views)]
    positions = {view_id: rng.uniform(-5.0, 5.0, size=3) for view_id in view_ids}
    orientations = {view_id: rng.normal(scale=0.3, size=3) for view_id in view_ids}

    view_pairs = {}
    for index, view_id1 in enumerate(view_ids):
        for view_id2 in view_ids[index + 1:]:
            view_pairs[ViewIdPair(view_id1, view_id2)] = make_two_view_info(
                orientations, positions, view_id1, view_id2
            )

    return view_pairs, orientations, positions


def corrupt_view_pair(view_pairs, view_id_pair):
    """Replace the observation of a pair with a wrong direction"""
    true_direction = view_pairs[view_id_pair].position_2
    wrong_direction = np.cross(true_direction, [0.0, 0.0, 1.0]) - 0.5 * true_direction
    view_pairs[view_id_pair] = TwoViewInfo(position_2=wrong_direction)


class TestLeastUnsquaredDeviationEstimator:
    """Test robust position estimation"""

    def test_recovers_ground_truth_without_noise(self):
        """Test that noise-free observations give the true positions up to gauge"""
        view_pairs, orientations, gt_positions = create_scene(num_views=8, seed=0)

        estimator = LeastUnsquaredDeviationPositionEstimator(
            LeastUnsquaredDeviationOptions(random_seed=3)
        )
        positions = {}
        success = estimator.estimate_positions(view_pairs, orientations, positions)

        assert success
        assert set(positions.keys()) == set(gt_positions.keys())

        errors = position_errors(positions, gt_positions)
        assert errors['max_error'] < 1e-3
        assert estimator.state in (EstimatorState.CONVERGED, EstimatorState.ITERATION_LIMIT_REACHED)

    def test_anchored_view_matches_ground_truth(self):
        """Test recovery after anchoring one view and fixing the scale"""
        view_pairs, orientations, gt_positions = create_scene(num_views=6, seed=1)

        estimator = LeastUnsquaredDeviationPositionEstimator(
            LeastUnsquaredDeviationOptions(random_seed=0)
        )
        positions = {}
        assert estimator.estimate_positions(view_pairs, orientations, positions)

        # Anchor view 0 and match the baseline to view 1
        offset = gt_positions[0] - positions[0]
        anchored = {view_id: position + offset for view_id, position in positions.items()}
        scale = np.linalg.norm(gt_positions[1] - gt_positions[0]) / np.linalg.norm(anchored[1] - anchored[0])
        anchored = {
            view_id: gt_positions[0] + scale * (position - gt_positions[0])
            for view_id, position in anchored.items()
        }

        for view_id, position in gt_positions.items():
            np.testing.assert_allclose(anchored[view_id], position, atol=1e-2)

    def test_robust_to_outlier(self):
        """Test that IRLS beats ordinary least squares with a corrupted pair"""
        view_pairs, orientations, gt_positions = create_scene(num_views=10, seed=2)

        # Point the observation of pair (0, 5) in a wrong direction
        outlier_pair = ViewIdPair(0, 5)
        corrupt_view_pair(view_pairs, outlier_pair)

        irls = LeastUnsquaredDeviationPositionEstimator(LeastUnsquaredDeviationOptions(random_seed=0))
        irls_positions = {}
        assert irls.estimate_positions(view_pairs, orientations, irls_positions)

        ordinary = LeastUnsquaredDeviationPositionEstimator(
            LeastUnsquaredDeviationOptions(random_seed=0, max_num_reweighted_iterations=1)
        )
        ordinary_positions = {}
        assert ordinary.estimate_positions(view_pairs, orientations, ordinary_positions)

        irls_error = position_errors(irls_positions, gt_positions)['mean_error']
        ordinary_error = position_errors(ordinary_positions, gt_positions)['mean_error']
        assert irls_error < ordinary_error

        inlier_weights = [weight for pair, weight in irls.weights.items() if pair != outlier_pair]
        assert irls.weights[outlier_pair] < 0.1 * np.median(inlier_weights)

    def test_initialize_from_priors(self):
        """Test seeding the solve with the caller's positions"""
        view_pairs, orientations, gt_positions = create_scene(num_views=6, seed=4)

        estimator = LeastUnsquaredDeviationPositionEstimator(
            LeastUnsquaredDeviationOptions(initialize_random_positions=False)
        )
        positions = {view_id: position.copy() for view_id, position in gt_positions.items()}
        assert estimator.estimate_positions(view_pairs, orientations, positions)

        errors = position_errors(positions, gt_positions)
        assert errors['max_error'] < 1e-3
        assert estimator.converged
        assert estimator.num_reweighted_iterations >= 2

    def test_seeded_solve_still_reweights(self):
        """Test that a seed equal to the least squares solution does not stop IRLS early"""
        view_pairs, orientations, gt_positions = create_scene(num_views=10, seed=2)
        corrupt_view_pair(view_pairs, ViewIdPair(0, 5))

        ordinary_positions = {}
        LeastUnsquaredDeviationPositionEstimator(
            LeastUnsquaredDeviationOptions(random_seed=0, max_num_reweighted_iterations=1)
        ).estimate_positions(view_pairs, orientations, ordinary_positions)
        ordinary_error = position_errors(ordinary_positions, gt_positions)['mean_error']

        irls_positions = {}
        LeastUnsquaredDeviationPositionEstimator(
            LeastUnsquaredDeviationOptions(random_seed=0)
        ).estimate_positions(view_pairs, orientations, irls_positions)
        irls_error = position_errors(irls_positions, gt_positions)['mean_error']

        seeded = LeastUnsquaredDeviationPositionEstimator(
            LeastUnsquaredDeviationOptions(initialize_random_positions=False)
        )
        seeded_positions = {view_id: position.copy() for view_id, position in ordinary_positions.items()}
        assert seeded.estimate_positions(view_pairs, orientations, seeded_positions)
        seeded_error = position_errors(seeded_positions, gt_positions)['mean_error']

        assert seeded.num_reweighted_iterations > 1
        assert seeded_error < 0.1 * ordinary_error
        assert seeded_error < irls_error + 1e-3

    def test_seeds_are_starting_point(self):
        """Test that seeded views start from the caller's positions"""
        view_pairs, orientations, gt_positions = create_scene(num_views=6, seed=11)
        corrupt_view_pair(view_pairs, ViewIdPair(1, 4))

        estimator = LeastUnsquaredDeviationPositionEstimator(
            LeastUnsquaredDeviationOptions(initialize_random_positions=False, random_seed=0)
        )
        constraints = estimator._add_camera_to_camera_constraints(view_pairs, orientations)

        # View 5 has no seed and gets a random start
        seeds = {view_id: 10.0 * position for view_id, position in gt_positions.items() if view_id != 5}
        initial_positions = estimator._initialize_positions(constraints, seeds)

        for index, view_id in enumerate(constraints.view_ids):
            if view_id in seeds:
                np.testing.assert_array_equal(initial_positions[index], seeds[view_id])
            else:
                assert np.all(np.abs(initial_positions[index]) <= 1.0)

    def test_iteration_limit_is_not_failure(self):
        """Test that exhausting the reweighting budget still succeeds"""
        view_pairs, orientations, _ = create_scene(num_views=5, seed=5)

        estimator = LeastUnsquaredDeviationPositionEstimator(
            LeastUnsquaredDeviationOptions(
                random_seed=0,
                max_num_reweighted_iterations=1,
                convergence_criterion=1e-300,
            )
        )
        positions = {}

        assert estimator.estimate_positions(view_pairs, orientations, positions)
        assert estimator.state == EstimatorState.ITERATION_LIMIT_REACHED
        assert estimator.num_reweighted_iterations == 1
        assert len(positions) == 5

    def test_multiple_threads_match_single_thread(self):
        """Test that threaded residual evaluation gives the same solution"""
        view_pairs, orientations, _ = create_scene(num_views=7, seed=6)

        single_positions = {}
        LeastUnsquaredDeviationPositionEstimator(
            LeastUnsquaredDeviationOptions(random_seed=1, num_threads=1)
        ).estimate_positions(view_pairs, orientations, single_positions)

        threaded_positions = {}
        LeastUnsquaredDeviationPositionEstimator(
            LeastUnsquaredDeviationOptions(random_seed=1, num_threads=2)
        ).estimate_positions(view_pairs, orientations, threaded_positions)

        for view_id, position in single_positions.items():
            np.testing.assert_allclose(threaded_positions[view_id], position, atol=1e-9)

    def test_two_views(self):
        """Test the minimal problem of a single view pair"""
        view_pairs, orientations, _ = create_scene(num_views=2, seed=7)

        positions = {}
        estimator = LeastUnsquaredDeviationPositionEstimator(LeastUnsquaredDeviationOptions(random_seed=0))

        assert estimator.estimate_positions(view_pairs, orientations, positions)
        baseline = positions[1] - positions[0]
        rotation0 = Rotation.from_rotvec(orientations[0]).as_matrix()
        expected_direction = rotation0.T @ view_pairs[ViewIdPair(0, 1)].position_2
        np.testing.assert_allclose(baseline / np.linalg.norm(baseline), expected_direction, atol=1e-6)


class TestEstimatorFailures:
    """Test insufficient input handling"""

    def test_empty_view_pairs(self):
        """Test that no observations is a failure"""
        estimator = LeastUnsquaredDeviationPositionEstimator()
        positions = {0: np.zeros(3)}

        assert not estimator.estimate_positions({}, {0: np.zeros(3)}, positions)
        assert positions == {}
        assert estimator.state == EstimatorState.FAILED

    def test_self_referential_pairs(self):
        """Test that pairs referencing a single view are a failure"""
        estimator = LeastUnsquaredDeviationPositionEstimator()
        view_pairs = {(3, 3): TwoViewInfo(position_2=[1.0, 0.0, 0.0])}
        positions = {}

        assert not estimator.estimate_positions(view_pairs, {3: np.zeros(3)}, positions)
        assert positions == {}

    def test_missing_orientations(self):
        """Test that pairs without orientations are unusable"""
        estimator = LeastUnsquaredDeviationPositionEstimator()
        view_pairs = {ViewIdPair(0, 1): TwoViewInfo(position_2=[1.0, 0.0, 0.0])}
        positions = {}

        assert not estimator.estimate_positions(view_pairs, {0: np.zeros(3)}, positions)

    def test_zero_translation(self):
        """Test that a pair without a translation direction is unusable"""
        estimator = LeastUnsquaredDeviationPositionEstimator()
        view_pairs = {ViewIdPair(0, 1): TwoViewInfo()}
        positions = {}

        assert not estimator.estimate_positions(view_pairs, {0: np.zeros(3), 1: np.zeros(3)}, positions)

    def test_all_zero_weights(self):
        """Test that pairs carrying no weight do not constrain anything"""
        view_pairs, orientations, _ = create_scene(num_views=5, seed=12)
        for info in view_pairs.values():
            info.weight = 0.0

        estimator = LeastUnsquaredDeviationPositionEstimator(LeastUnsquaredDeviationOptions(random_seed=0))
        positions = {}

        assert not estimator.estimate_positions(view_pairs, orientations, positions)
        assert positions == {}
        assert estimator.state == EstimatorState.FAILED

    def test_zero_weight_pairs_skipped(self):
        """Test that zero-weight pairs are dropped while the rest are solved"""
        view_pairs, orientations, gt_positions = create_scene(num_views=6, seed=13)
        view_pairs[ViewIdPair(0, 3)].weight = 0.0

        estimator = LeastUnsquaredDeviationPositionEstimator(LeastUnsquaredDeviationOptions(random_seed=0))
        positions = {}

        assert estimator.estimate_positions(view_pairs, orientations, positions)
        assert (0, 3) not in estimator.weights
        assert position_errors(positions, gt_positions)['max_error'] < 1e-3


class TestGlobalPositionEstimation:
    """Test filtering followed by estimation"""

    def test_disconnected_views_absent_from_output(self):
        """Test that only the largest component gets positions"""
        view_pairs, orientations, gt_positions = create_scene(num_views=6, seed=8)
        small_pairs, small_orientations, _ = create_scene(num_views=3, seed=9, view_id_offset=100)
        view_pairs.update(small_pairs)
        orientations.update(small_orientations)
        num_input_pairs = len(view_pairs)

        config = GlobalPositioningConfig(estimator=LeastUnsquaredDeviationOptions(random_seed=0))
        success, positions = GlobalPositionEstimation(config).run(view_pairs, orientations)

        assert success
        assert set(positions.keys()) == set(gt_positions.keys())
        assert len(view_pairs) == num_input_pairs
        assert position_errors(positions, gt_positions)['max_error'] < 1e-3

    def test_convenience_function(self):
        """Test the functional entry point"""
        view_pairs, orientations, _ = create_scene(num_views=4, seed=10)

        success, positions = estimate_positions_with_filtering(
            view_pairs, orientations, LeastUnsquaredDeviationOptions(random_seed=0)
        )

        assert success
        assert len(positions) == 4

    def test_failure_returns_empty(self):
        """Test that failures return no positions"""
        success, positions = estimate_positions_with_filtering({}, {})

        assert not success
        assert positions == {}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
