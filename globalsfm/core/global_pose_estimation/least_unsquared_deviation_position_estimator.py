"""
Least unsquared deviation (LUD) position estimation

Estimates camera positions from relative translation directions and known
absolute orientations with a robust (L1-like) cost, following:

    "Robust Camera Location Estimation by Convex Programming" by Ozyesil and
    Singer (CVPR 2015).

For each view pair (i, j) with world-frame direction t_ij = R_i^T * position_2:

    minimize  Σ || c_j - c_i - s_ij t_ij ||    subject to  s_ij >= 1
              ij

The unsquared norms are handled by iteratively reweighted least squares
(IRLS): every round solves

    minimize  Σ w_ij || c_j - c_i - s_ij t_ij ||²
              ij

with w_ij = 1 / max(||residual_ij||, eps) taken from the previous round. The
first round uses unit weights (ordinary least squares). The s_ij >= 1 bound
removes the trivial all-zero solution. The global translation is left free;
callers anchor or normalize the result.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np
import psutil
from scipy.optimize import least_squares
from scipy.sparse import coo_matrix, csr_matrix

from ..config import LeastUnsquaredDeviationOptions
from ..types import TwoViewInfo, ViewId, ViewIdPair, rotation_matrix_from_orientation
from .position_estimator import PositionEstimator

logger = logging.getLogger(__name__)


class EstimatorState(Enum):
    """Lifecycle of a single estimate_positions call"""

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    ITERATING = "iterating"
    CONVERGED = "converged"
    ITERATION_LIMIT_REACHED = "iteration_limit_reached"
    FAILED = "failed"


@dataclass
class PairwiseConstraints:
    """Camera-to-camera constraints in solver layout"""

    view_ids: List[ViewId]
    view_pairs: List[Tuple[ViewId, ViewId]]
    index_i: np.ndarray  # (M,) index of the first view of each pair
    index_j: np.ndarray  # (M,) index of the second view of each pair
    directions: np.ndarray  # (M, 3) unit world-frame translation directions
    prior_weights: np.ndarray  # (M,) TwoViewInfo weights

    @property
    def num_views(self) -> int:
        return len(self.view_ids)

    @property
    def num_pairs(self) -> int:
        return len(self.view_pairs)


class LeastUnsquaredDeviationPositionEstimator(PositionEstimator):
    """
    Robust global position estimator (LUD solved by IRLS)

    After a call, state, weights and num_reweighted_iterations describe how
    the solve terminated.
    """

    def __init__(self, options: Optional[LeastUnsquaredDeviationOptions] = None):
        """
        Args:
            options: LeastUnsquaredDeviationOptions or None (uses defaults)
        """
        self.options = options or LeastUnsquaredDeviationOptions()
        self.logger = logging.getLogger(__name__)

        # Residual evaluation threads, clamped to the machine
        self.num_threads = max(1, min(self.options.num_threads, psutil.cpu_count() or 1))

        self.state = EstimatorState.UNINITIALIZED
        self.weights: Dict[Tuple[ViewId, ViewId], float] = {}
        self.num_reweighted_iterations = 0

    @property
    def converged(self) -> bool:
        return self.state == EstimatorState.CONVERGED

    def estimate_positions(
        self,
        view_pairs: Mapping[ViewIdPair, TwoViewInfo],
        orientations: Mapping[ViewId, np.ndarray],
        positions: Dict[ViewId, np.ndarray],
    ) -> bool:
        self.state = EstimatorState.UNINITIALIZED
        self.weights = {}
        self.num_reweighted_iterations = 0

        constraints = self._add_camera_to_camera_constraints(view_pairs, orientations)
        if constraints is None:
            self.state = EstimatorState.FAILED
            positions.clear()
            return False

        self.logger.info(
            f"Estimating positions of {constraints.num_views} views "
            f"from {constraints.num_pairs} view pairs"
        )
        start_time = time.time()

        initial_positions = self._initialize_positions(constraints, positions)
        params = self._initialize_parameters(constraints, initial_positions)
        self.state = EstimatorState.INITIALIZED

        irls_weights = np.ones(constraints.num_pairs)
        executor = ThreadPoolExecutor(max_workers=self.num_threads) if self.num_threads > 1 else None

        try:
            for iteration in range(self.options.max_num_reweighted_iterations):
                self.state = EstimatorState.ITERATING

                if iteration > 0:
                    irls_weights = self._compute_weights(constraints, params)

                new_params = self._solve(constraints, params, irls_weights, executor)
                if new_params is None:
                    self.state = EstimatorState.FAILED
                    positions.clear()
                    return False

                previous_params = params
                params = new_params
                self.num_reweighted_iterations = iteration + 1

                # The first solve only has the seed to compare against, so
                # convergence is judged between consecutive solves
                if iteration == 0:
                    continue

                relative_change = self._relative_position_change(constraints, previous_params, params)
                self.logger.debug(
                    f"IRLS iteration {iteration + 1}: relative position change={relative_change:.3e}"
                )

                if relative_change < self.options.convergence_criterion:
                    self.state = EstimatorState.CONVERGED
                    break
            else:
                self.state = EstimatorState.ITERATION_LIMIT_REACHED
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        # Weights of the final solution, for diagnostics
        final_weights = self._compute_weights(constraints, params)
        self.weights = dict(zip(constraints.view_pairs, final_weights.tolist()))

        estimated = params[:3 * constraints.num_views].reshape(-1, 3)
        positions.clear()
        for index, view_id in enumerate(constraints.view_ids):
            positions[view_id] = estimated[index].copy()

        if self.state == EstimatorState.CONVERGED:
            self.logger.info(
                f"Position estimation converged after {self.num_reweighted_iterations} "
                f"reweighted iterations in {time.time() - start_time:.2f}s"
            )
        else:
            self.logger.warning(
                f"Position estimation stopped at the iteration limit "
                f"({self.options.max_num_reweighted_iterations}), using the last solution"
            )

        return True

    def _add_camera_to_camera_constraints(
        self,
        view_pairs: Mapping[ViewIdPair, TwoViewInfo],
        orientations: Mapping[ViewId, np.ndarray],
    ) -> Optional[PairwiseConstraints]:
        """
        Turn relative translations into world-frame direction constraints

        Pairs that reference a single view, lack an orientation, carry a zero
        translation or have a zero weight are skipped. Returns None if nothing
        usable is left.
        """
        usable_pairs = []
        directions = []
        prior_weights = []

        for view_id_pair, info in view_pairs.items():
            view_id1, view_id2 = view_id_pair
            if view_id1 == view_id2:
                self.logger.warning(f"Skipping self-referential view pair ({view_id1}, {view_id2})")
                continue

            if view_id1 not in orientations or view_id2 not in orientations:
                self.logger.warning(f"Skipping view pair ({view_id1}, {view_id2}): missing orientation")
                continue

            # Direction from view 1 to view 2 rotated into the world frame
            rotation1 = rotation_matrix_from_orientation(orientations[view_id1])
            direction = rotation1.T @ np.asarray(info.position_2, dtype=np.float64)
            norm = np.linalg.norm(direction)
            if not np.isfinite(norm) or norm == 0.0:
                self.logger.warning(f"Skipping view pair ({view_id1}, {view_id2}): invalid translation")
                continue

            if not info.weight > 0.0:
                self.logger.warning(f"Skipping view pair ({view_id1}, {view_id2}): zero weight")
                continue

            usable_pairs.append((view_id1, view_id2))
            directions.append(direction / norm)
            prior_weights.append(info.weight)

        if len(usable_pairs) == 0:
            self.logger.error("No usable view pairs for position estimation")
            return None

        view_ids = sorted({view_id for pair in usable_pairs for view_id in pair})
        if len(view_ids) < 2:
            self.logger.error(f"Position estimation needs at least 2 views, got {len(view_ids)}")
            return None

        view_id_to_index = {view_id: index for index, view_id in enumerate(view_ids)}

        return PairwiseConstraints(
            view_ids=view_ids,
            view_pairs=usable_pairs,
            index_i=np.array([view_id_to_index[pair[0]] for pair in usable_pairs], dtype=np.int64),
            index_j=np.array([view_id_to_index[pair[1]] for pair in usable_pairs], dtype=np.int64),
            directions=np.array(directions, dtype=np.float64),
            prior_weights=np.array(prior_weights, dtype=np.float64),
        )

    def _initialize_positions(
        self,
        constraints: PairwiseConstraints,
        positions: Mapping[ViewId, np.ndarray],
    ) -> np.ndarray:
        """Random positions, or the caller's positions when configured as priors"""
        rng = np.random.default_rng(self.options.random_seed)
        initial_positions = rng.uniform(-1.0, 1.0, size=(constraints.num_views, 3))

        if not self.options.initialize_random_positions:
            num_seeded = 0
            for index, view_id in enumerate(constraints.view_ids):
                if view_id in positions:
                    initial_positions[index] = np.asarray(positions[view_id], dtype=np.float64)
                    num_seeded += 1

            if num_seeded < constraints.num_views:
                self.logger.warning(
                    f"{constraints.num_views - num_seeded} views have no initial position, "
                    f"initializing them randomly"
                )

        return initial_positions

    @staticmethod
    def _initialize_parameters(
        constraints: PairwiseConstraints,
        initial_positions: np.ndarray,
    ) -> np.ndarray:
        """Stack positions and per-pair scales (scales start feasible, >= 1)"""
        baselines = initial_positions[constraints.index_j] - initial_positions[constraints.index_i]
        scales = np.maximum(1.0, np.einsum("ij,ij->i", baselines, constraints.directions))
        return np.concatenate([initial_positions.ravel(), scales])

    def _solve(
        self,
        constraints: PairwiseConstraints,
        params: np.ndarray,
        irls_weights: np.ndarray,
        executor: Optional[ThreadPoolExecutor],
    ) -> Optional[np.ndarray]:
        """One weighted least squares solve; None if the solver failed"""
        num_positions = 3 * constraints.num_views
        sqrt_weights = np.sqrt(irls_weights * constraints.prior_weights)

        jacobian = self._build_jacobian(constraints, sqrt_weights)

        def residual_fn(params_vec):
            return self._compute_residuals(constraints, params_vec, sqrt_weights, executor)

        lower_bounds = np.concatenate([np.full(num_positions, -np.inf), np.ones(constraints.num_pairs)])
        upper_bounds = np.full(params.shape, np.inf)

        try:
            result = least_squares(
                residual_fn,
                params,
                jac=lambda params_vec: jacobian,
                bounds=(lower_bounds, upper_bounds),
                method="trf",
                tr_solver="lsmr",
                ftol=1e-12,
                xtol=1e-12,
                gtol=1e-12,
                max_nfev=self.options.max_num_iterations,
            )
        except (ValueError, np.linalg.LinAlgError) as e:
            self.logger.error(f"Inner least squares solve failed: {e}")
            return None

        self.logger.debug(
            f"Inner solve finished: cost={result.cost:.6e}, evaluations={result.nfev}, "
            f"status={result.status}"
        )

        if result.status == -1 or not np.all(np.isfinite(result.x)):
            self.logger.error(f"Inner least squares solve diverged: {result.message}")
            return None

        return result.x

    @staticmethod
    def _build_jacobian(constraints: PairwiseConstraints, sqrt_weights: np.ndarray) -> csr_matrix:
        """
        Constant Jacobian of the weighted residuals

        Residual rows 3k..3k+2 depend on position i (-w), position j (+w) and
        scale k (-w * t_k).
        """
        num_pairs = constraints.num_pairs
        num_positions = 3 * constraints.num_views

        pair_index = np.repeat(np.arange(num_pairs), 3)
        axis = np.tile(np.arange(3), num_pairs)
        rows = 3 * pair_index + axis
        row_weights = sqrt_weights[pair_index]

        position_i_cols = 3 * constraints.index_i[pair_index] + axis
        position_j_cols = 3 * constraints.index_j[pair_index] + axis
        scale_cols = num_positions + pair_index

        data = np.concatenate([
            -row_weights,
            row_weights,
            -row_weights * constraints.directions.ravel(),
        ])
        all_rows = np.concatenate([rows, rows, rows])
        all_cols = np.concatenate([position_i_cols, position_j_cols, scale_cols])

        return coo_matrix(
            (data, (all_rows, all_cols)),
            shape=(3 * num_pairs, num_positions + num_pairs),
        ).tocsr()

    def _compute_residuals(
        self,
        constraints: PairwiseConstraints,
        params: np.ndarray,
        sqrt_weights: np.ndarray,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> np.ndarray:
        """Weighted residuals sqrt(w) * (c_j - c_i - s t), flattened to (3M,)"""
        positions = params[:3 * constraints.num_views].reshape(-1, 3)
        scales = params[3 * constraints.num_views:]

        def residual_block(pair_indices):
            baselines = positions[constraints.index_j[pair_indices]] - positions[constraints.index_i[pair_indices]]
            block = baselines - scales[pair_indices, None] * constraints.directions[pair_indices]
            return sqrt_weights[pair_indices, None] * block

        if executor is None:
            return residual_block(np.arange(constraints.num_pairs)).ravel()

        chunks = np.array_split(np.arange(constraints.num_pairs), self.num_threads)
        blocks = list(executor.map(residual_block, chunks))
        return np.concatenate(blocks, axis=0).ravel()

    def _compute_weights(self, constraints: PairwiseConstraints, params: np.ndarray) -> np.ndarray:
        """IRLS weights 1 / max(||c_j - c_i - s t||, eps) from unweighted residuals"""
        unit_weights = np.ones(constraints.num_pairs)
        residuals = self._compute_residuals(constraints, params, unit_weights).reshape(-1, 3)
        residual_norms = np.linalg.norm(residuals, axis=1)
        return 1.0 / np.maximum(residual_norms, self.options.min_weight_residual)

    @staticmethod
    def _relative_position_change(
        constraints: PairwiseConstraints,
        old_params: np.ndarray,
        new_params: np.ndarray,
    ) -> float:
        num_positions = 3 * constraints.num_views
        old_positions = old_params[:num_positions]
        new_positions = new_params[:num_positions]
        return float(
            np.linalg.norm(new_positions - old_positions)
            / max(np.linalg.norm(old_positions), np.finfo(np.float64).eps)
        )
