"""
Pinhole camera model with two-term polynomial radial distortion
"""

from typing import List

import numpy as np

from .camera_intrinsics_model import (
    CameraIntrinsicsModel,
    array_namespace,
    as_array,
    stack_last,
)
from .intrinsics_prior import (
    CameraIntrinsicsModelType,
    CameraIntrinsicsPrior,
    OptimizeIntrinsicsType,
)

NUM_UNDISTORTION_ITERATIONS = 100
UNDISTORTION_EPSILON = 1e-16


class PinholeCameraModel(CameraIntrinsicsModel):
    """
    Pinhole camera: [focal_length, aspect_ratio, skew, ppx, ppy, k1, k2]

    Distortion scales a normalized point p by 1 + k1 * r^2 + k2 * r^4 where
    r = |p|. There is no closed-form inverse, so undistortion runs a
    fixed-point iteration.
    """

    INTRINSICS_SIZE = 7

    FOCAL_LENGTH = 0
    ASPECT_RATIO = 1
    SKEW = 2
    PRINCIPAL_POINT_X = 3
    PRINCIPAL_POINT_Y = 4
    RADIAL_DISTORTION_1 = 5
    RADIAL_DISTORTION_2 = 6

    def __init__(self):
        super().__init__()
        self.focal_length = 1.0
        self.aspect_ratio = 1.0
        self.skew = 0.0
        self.set_principal_point(0.0, 0.0)
        self.set_radial_distortion(0.0, 0.0)

    def type(self) -> CameraIntrinsicsModelType:
        return CameraIntrinsicsModelType.PINHOLE

    def set_from_camera_intrinsics_priors(self, prior: CameraIntrinsicsPrior) -> None:
        if prior.focal_length is not None:
            self.focal_length = prior.focal_length

        if prior.principal_point is not None:
            self.set_principal_point(*prior.principal_point)
        elif prior.image_width is not None and prior.image_height is not None:
            self.set_principal_point(prior.image_width / 2.0, prior.image_height / 2.0)

        if prior.aspect_ratio is not None:
            self.aspect_ratio = prior.aspect_ratio

        if prior.skew is not None:
            self.skew = prior.skew

        if prior.radial_distortion:
            k1 = prior.radial_distortion[0]
            k2 = prior.radial_distortion[1] if len(prior.radial_distortion) > 1 else 0.0
            self.set_radial_distortion(k1, k2)

    def get_subset_from_optimize_intrinsics_type(
        self,
        intrinsics_to_optimize: OptimizeIntrinsicsType,
    ) -> List[int]:
        subset = []
        if intrinsics_to_optimize & OptimizeIntrinsicsType.FOCAL_LENGTH:
            subset.append(self.FOCAL_LENGTH)
        if intrinsics_to_optimize & OptimizeIntrinsicsType.ASPECT_RATIO:
            subset.append(self.ASPECT_RATIO)
        if intrinsics_to_optimize & OptimizeIntrinsicsType.SKEW:
            subset.append(self.SKEW)
        if intrinsics_to_optimize & OptimizeIntrinsicsType.PRINCIPAL_POINTS:
            subset.extend([self.PRINCIPAL_POINT_X, self.PRINCIPAL_POINT_Y])
        if intrinsics_to_optimize & OptimizeIntrinsicsType.RADIAL_DISTORTION:
            subset.extend([self.RADIAL_DISTORTION_1, self.RADIAL_DISTORTION_2])
        return sorted(subset)

    def get_calibration_matrix(self) -> np.ndarray:
        focal_length = self.focal_length
        return np.array([
            [focal_length, self.skew, self.principal_point_x],
            [0.0, focal_length * self.aspect_ratio, self.principal_point_y],
            [0.0, 0.0, 1.0]
        ], dtype=np.float64)

    @classmethod
    def camera_to_pixel_coordinates(cls, intrinsic_parameters, point):
        xp = array_namespace(intrinsic_parameters, point)
        point = as_array(xp, point)
        params = as_array(xp, intrinsic_parameters, like=point)

        depth = point[..., 2]
        normalized_point = stack_last(xp, [point[..., 0] / depth, point[..., 1] / depth])

        distorted_point = cls.distort_point(params, normalized_point)

        focal_length = params[cls.FOCAL_LENGTH]
        focal_length_y = focal_length * params[cls.ASPECT_RATIO]
        skew = params[cls.SKEW]

        return stack_last(xp, [
            focal_length * distorted_point[..., 0] + skew * distorted_point[..., 1]
            + params[cls.PRINCIPAL_POINT_X],
            focal_length_y * distorted_point[..., 1] + params[cls.PRINCIPAL_POINT_Y],
        ])

    @classmethod
    def pixel_to_camera_coordinates(cls, intrinsic_parameters, pixel):
        xp = array_namespace(intrinsic_parameters, pixel)
        pixel = as_array(xp, pixel)
        params = as_array(xp, intrinsic_parameters, like=pixel)

        focal_length = params[cls.FOCAL_LENGTH]
        focal_length_y = focal_length * params[cls.ASPECT_RATIO]
        skew = params[cls.SKEW]

        # y first, since x depends on it through the skew
        distorted_y = (pixel[..., 1] - params[cls.PRINCIPAL_POINT_Y]) / focal_length_y
        distorted_x = (pixel[..., 0] - params[cls.PRINCIPAL_POINT_X] - skew * distorted_y) / focal_length

        undistorted_point = cls.undistort_point(params, stack_last(xp, [distorted_x, distorted_y]))
        return stack_last(xp, [
            undistorted_point[..., 0],
            undistorted_point[..., 1],
            xp.ones_like(undistorted_point[..., 0]),
        ])

    @classmethod
    def distort_point(cls, intrinsic_parameters, undistorted_point):
        xp = array_namespace(intrinsic_parameters, undistorted_point)
        undistorted_point = as_array(xp, undistorted_point)
        params = as_array(xp, intrinsic_parameters, like=undistorted_point)

        k1 = params[cls.RADIAL_DISTORTION_1]
        k2 = params[cls.RADIAL_DISTORTION_2]

        r_sq = undistorted_point[..., 0] ** 2 + undistorted_point[..., 1] ** 2
        radial_distortion = 1.0 + k1 * r_sq + k2 * r_sq * r_sq

        return undistorted_point * radial_distortion[..., None]

    @classmethod
    def undistort_point(cls, intrinsic_parameters, distorted_point):
        xp = array_namespace(intrinsic_parameters, distorted_point)
        distorted_point = as_array(xp, distorted_point)
        params = as_array(xp, intrinsic_parameters, like=distorted_point)

        k1 = params[cls.RADIAL_DISTORTION_1]
        k2 = params[cls.RADIAL_DISTORTION_2]

        undistorted_point = distorted_point
        previous_point = distorted_point
        for _ in range(NUM_UNDISTORTION_ITERATIONS):
            r_sq = undistorted_point[..., 0] ** 2 + undistorted_point[..., 1] ** 2
            radial_distortion = 1.0 + k1 * r_sq + k2 * r_sq * r_sq
            undistorted_point = distorted_point / radial_distortion[..., None]

            if float(xp.max(xp.abs(undistorted_point - previous_point))) < UNDISTORTION_EPSILON:
                break
            previous_point = undistorted_point

        return undistorted_point

    # ----------------------- Getters and setters ----------------------- #

    @property
    def aspect_ratio(self) -> float:
        return float(self._parameters[self.ASPECT_RATIO])

    @aspect_ratio.setter
    def aspect_ratio(self, aspect_ratio: float) -> None:
        self._parameters[self.ASPECT_RATIO] = aspect_ratio

    @property
    def skew(self) -> float:
        return float(self._parameters[self.SKEW])

    @skew.setter
    def skew(self, skew: float) -> None:
        self._parameters[self.SKEW] = skew

    def set_radial_distortion(self, radial_distortion_1: float, radial_distortion_2: float) -> None:
        self._parameters[self.RADIAL_DISTORTION_1] = radial_distortion_1
        self._parameters[self.RADIAL_DISTORTION_2] = radial_distortion_2

    @property
    def radial_distortion_1(self) -> float:
        return float(self._parameters[self.RADIAL_DISTORTION_1])

    @property
    def radial_distortion_2(self) -> float:
        return float(self._parameters[self.RADIAL_DISTORTION_2])
