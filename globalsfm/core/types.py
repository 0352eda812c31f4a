"""
Shared data types for global structure-from-motion

- ViewId: integer identifier of a camera view
- ViewIdPair: canonicalized (smaller id first) unordered pair of views
- TwoViewInfo: relative pose observation attached to a view pair
"""

from collections import namedtuple
from dataclasses import dataclass, field
from typing import Dict, Union

import numpy as np
from scipy.spatial.transform import Rotation

ViewId = int
INVALID_VIEW_ID: ViewId = -1

_ViewIdPairBase = namedtuple("_ViewIdPairBase", ["first", "second"])


class ViewIdPair(_ViewIdPairBase):
    """
    Unordered pair of two distinct views

    The smaller id is always stored first so that (a, b) and (b, a) hash and
    compare identically.
    """

    __slots__ = ()

    def __new__(cls, view_id1: ViewId, view_id2: ViewId):
        if view_id1 == view_id2:
            raise ValueError(f"A view pair must reference two distinct views, got ({view_id1}, {view_id2})")
        if view_id2 < view_id1:
            view_id1, view_id2 = view_id2, view_id1
        return super().__new__(cls, int(view_id1), int(view_id2))

    def __repr__(self) -> str:
        return f"ViewIdPair({self.first}, {self.second})"


@dataclass(eq=False)
class TwoViewInfo:
    """Relative geometry between two views, expressed in the first view's frame"""

    focal_length_1: float = 0.0
    focal_length_2: float = 0.0

    # Center of view 2 in view 1's camera frame. Only the direction is known.
    position_2: np.ndarray = field(default_factory=lambda: np.zeros(3))

    # Angle-axis rotation taking view 1's frame to view 2's frame
    rotation_2: np.ndarray = field(default_factory=lambda: np.zeros(3))

    num_verified_matches: int = 0
    visibility_score: int = 0

    # Prior confidence of the observation, scales the IRLS weight
    weight: float = 1.0

    def __post_init__(self):
        self.position_2 = np.asarray(self.position_2, dtype=np.float64).reshape(3)
        self.rotation_2 = np.asarray(self.rotation_2, dtype=np.float64).reshape(3)

        norm = np.linalg.norm(self.position_2)
        if norm > 0.0:
            self.position_2 = self.position_2 / norm

        if self.weight < 0.0:
            raise ValueError(f"TwoViewInfo weight must be non-negative, got {self.weight}")


Orientation = np.ndarray
Position = np.ndarray
ViewPairs = Dict[ViewIdPair, TwoViewInfo]


def rotation_matrix_from_orientation(orientation: Union[np.ndarray, list]) -> np.ndarray:
    """Return a 3x3 rotation matrix for an angle-axis vector or a rotation matrix"""
    orientation = np.asarray(orientation, dtype=np.float64)
    if orientation.shape == (3, 3):
        return orientation
    if orientation.shape != (3,):
        raise ValueError(f"Orientation must be an angle-axis 3-vector or a 3x3 matrix, got shape {orientation.shape}")
    return Rotation.from_rotvec(orientation).as_matrix()


def swap_two_view_info(info: TwoViewInfo) -> TwoViewInfo:
    """
    Express the observation from the second view's point of view

    If R2 takes view 1's frame to view 2's frame, the swapped rotation is R2^T
    and view 1's center seen from view 2 is -R2 * position_2.
    """
    rotation_2 = Rotation.from_rotvec(info.rotation_2)

    return TwoViewInfo(
        focal_length_1=info.focal_length_2,
        focal_length_2=info.focal_length_1,
        position_2=-rotation_2.apply(info.position_2),
        rotation_2=rotation_2.inv().as_rotvec(),
        num_verified_matches=info.num_verified_matches,
        visibility_score=info.visibility_score,
        weight=info.weight,
    )
