"""
Field-of-view (FOV) camera model

An alternative representation for lenses with large radial distortion (e.g.
fisheye) where the distance between an image point and the principal point
is roughly proportional to the angle between the 3D point and the optical
axis. First proposed in:

    "Straight Lines Have to Be Straight: Automatic Calibration and Removal of
    Distortion from Scenes of Structured Environments" by Devernay and
    Faugeras (Machine Vision and Applications), 2001.
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

# Below this, omega or the squared radius are treated as no distortion
VERY_SMALL_NUMBER = 1e-8


class FOVCameraModel(CameraIntrinsicsModel):
    """FOV camera: [focal_length, aspect_ratio, ppx, ppy, omega]"""

    INTRINSICS_SIZE = 5

    FOCAL_LENGTH = 0
    ASPECT_RATIO = 1
    PRINCIPAL_POINT_X = 2
    PRINCIPAL_POINT_Y = 3
    RADIAL_DISTORTION_1 = 4

    def __init__(self):
        super().__init__()
        self.focal_length = 1.0
        self.aspect_ratio = 1.0
        self.set_principal_point(0.0, 0.0)
        self.radial_distortion_1 = 0.0

    def type(self) -> CameraIntrinsicsModelType:
        return CameraIntrinsicsModelType.FOV

    def set_from_camera_intrinsics_priors(self, prior: CameraIntrinsicsPrior) -> None:
        if prior.focal_length is not None:
            self.focal_length = prior.focal_length

        if prior.principal_point is not None:
            self.set_principal_point(*prior.principal_point)
        elif prior.image_width is not None and prior.image_height is not None:
            self.set_principal_point(prior.image_width / 2.0, prior.image_height / 2.0)

        if prior.aspect_ratio is not None:
            self.aspect_ratio = prior.aspect_ratio

        if prior.radial_distortion:
            self.radial_distortion_1 = prior.radial_distortion[0]

    def get_subset_from_optimize_intrinsics_type(
        self,
        intrinsics_to_optimize: OptimizeIntrinsicsType,
    ) -> List[int]:
        subset = []
        if intrinsics_to_optimize & OptimizeIntrinsicsType.FOCAL_LENGTH:
            subset.append(self.FOCAL_LENGTH)
        if intrinsics_to_optimize & OptimizeIntrinsicsType.ASPECT_RATIO:
            subset.append(self.ASPECT_RATIO)
        if intrinsics_to_optimize & OptimizeIntrinsicsType.PRINCIPAL_POINTS:
            subset.extend([self.PRINCIPAL_POINT_X, self.PRINCIPAL_POINT_Y])
        if intrinsics_to_optimize & OptimizeIntrinsicsType.RADIAL_DISTORTION:
            subset.append(self.RADIAL_DISTORTION_1)
        return sorted(subset)

    def get_calibration_matrix(self) -> np.ndarray:
        focal_length = self.focal_length
        return np.array([
            [focal_length, 0.0, self.principal_point_x],
            [0.0, focal_length * self.aspect_ratio, self.principal_point_y],
            [0.0, 0.0, 1.0]
        ], dtype=np.float64)

    @classmethod
    def camera_to_pixel_coordinates(cls, intrinsic_parameters, point):
        xp = array_namespace(intrinsic_parameters, point)
        point = as_array(xp, point)
        params = as_array(xp, intrinsic_parameters, like=point)

        # Normalized projection at depth 1
        depth = point[..., 2]
        normalized_point = stack_last(xp, [point[..., 0] / depth, point[..., 1] / depth])

        distorted_point = cls.distort_point(params, normalized_point)

        focal_length = params[cls.FOCAL_LENGTH]
        focal_length_y = focal_length * params[cls.ASPECT_RATIO]

        return stack_last(xp, [
            focal_length * distorted_point[..., 0] + params[cls.PRINCIPAL_POINT_X],
            focal_length_y * distorted_point[..., 1] + params[cls.PRINCIPAL_POINT_Y],
        ])

    @classmethod
    def pixel_to_camera_coordinates(cls, intrinsic_parameters, pixel):
        xp = array_namespace(intrinsic_parameters, pixel)
        pixel = as_array(xp, pixel)
        params = as_array(xp, intrinsic_parameters, like=pixel)

        focal_length = params[cls.FOCAL_LENGTH]
        focal_length_y = focal_length * params[cls.ASPECT_RATIO]

        distorted_point = stack_last(xp, [
            (pixel[..., 0] - params[cls.PRINCIPAL_POINT_X]) / focal_length,
            (pixel[..., 1] - params[cls.PRINCIPAL_POINT_Y]) / focal_length_y,
        ])

        undistorted_point = cls.undistort_point(params, distorted_point)
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

        omega = params[cls.RADIAL_DISTORTION_1]
        r_u_sq = undistorted_point[..., 0] ** 2 + undistorted_point[..., 1] ** 2

        # Substitute safe values where the distortion is effectively zero so
        # the unused branch never divides by zero (keeps gradients finite).
        omega_small = omega < VERY_SMALL_NUMBER
        radius_small = r_u_sq < VERY_SMALL_NUMBER
        safe_omega = xp.where(omega_small, xp.ones_like(omega), omega)
        r_u = xp.sqrt(xp.where(radius_small, xp.ones_like(r_u_sq), r_u_sq))

        r_d = xp.arctan(2.0 * r_u * xp.tan(safe_omega / 2.0)) / (r_u * safe_omega)
        scale = xp.where(omega_small | radius_small, xp.ones_like(r_d), r_d)

        return undistorted_point * scale[..., None]

    @classmethod
    def undistort_point(cls, intrinsic_parameters, distorted_point):
        xp = array_namespace(intrinsic_parameters, distorted_point)
        distorted_point = as_array(xp, distorted_point)
        params = as_array(xp, intrinsic_parameters, like=distorted_point)

        omega = params[cls.RADIAL_DISTORTION_1]
        r_d_sq = distorted_point[..., 0] ** 2 + distorted_point[..., 1] ** 2

        omega_small = omega < VERY_SMALL_NUMBER
        radius_small = r_d_sq < VERY_SMALL_NUMBER
        safe_omega = xp.where(omega_small, xp.ones_like(omega), omega)
        r_d = xp.sqrt(xp.where(radius_small, xp.ones_like(r_d_sq), r_d_sq))

        r_u = xp.tan(r_d * safe_omega) / (2.0 * r_d * xp.tan(safe_omega / 2.0))
        scale = xp.where(omega_small | radius_small, xp.ones_like(r_u), r_u)

        return distorted_point * scale[..., None]

    # ----------------------- Getters and setters ----------------------- #

    @property
    def aspect_ratio(self) -> float:
        return float(self._parameters[self.ASPECT_RATIO])

    @aspect_ratio.setter
    def aspect_ratio(self, aspect_ratio: float) -> None:
        self._parameters[self.ASPECT_RATIO] = aspect_ratio

    @property
    def radial_distortion_1(self) -> float:
        return float(self._parameters[self.RADIAL_DISTORTION_1])

    @radial_distortion_1.setter
    def radial_distortion_1(self, radial_distortion_1: float) -> None:
        self._parameters[self.RADIAL_DISTORTION_1] = radial_distortion_1
