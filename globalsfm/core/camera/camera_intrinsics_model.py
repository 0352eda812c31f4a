"""
Abstract camera intrinsics model

Describes the mapping between two coordinate systems:

1) Camera coordinate system: centered at the camera, z-axis pointing forward.
2) Image coordinate system: origin at the top-left of the image, x to the
   right and y pointing down.

The mapping may include focal length, principal point, lens distortion and
other model-specific parameters. The projection math is written once against
an array namespace so the same formulas evaluate plain numpy arrays and
torch tensors (which keeps them usable inside autograd-based cost functions).

Adding a new camera model:
1) Derive from CameraIntrinsicsModel and implement the abstract methods and
   the class-level projection methods.
2) Add a tag to CameraIntrinsicsModelType and register the class in
   globalsfm.core.camera.CAMERA_MODELS.
3) Add tests under tests/.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence

import numpy as np
import torch

from .intrinsics_prior import (
    CameraIntrinsicsModelType,
    CameraIntrinsicsPrior,
    OptimizeIntrinsicsType,
)

# Version of the serialized parameter record
CAMERA_INTRINSICS_FORMAT_VERSION = 0


def array_namespace(*values: Any):
    """Return torch if any value is a tensor, numpy otherwise"""
    for value in values:
        if isinstance(value, torch.Tensor):
            return torch
    return np


def as_array(xp, value: Any, like: Any = None):
    """Convert value into the namespace's array type (float64 for numpy)"""
    if xp is torch:
        if isinstance(value, torch.Tensor):
            return value
        dtype = like.dtype if isinstance(like, torch.Tensor) else torch.float64
        return torch.as_tensor(np.asarray(value, dtype=np.float64), dtype=dtype)
    return np.asarray(value, dtype=np.float64)


def stack_last(xp, arrays: List[Any]):
    """Stack equally shaped arrays along a new trailing axis"""
    if xp is torch:
        return torch.stack(arrays, dim=-1)
    return np.stack(arrays, axis=-1)


class CameraIntrinsicsModel(ABC):
    """
    Lens model projecting camera-space points onto image pixels

    Every derived class stores its parameters in a flat float64 vector and
    must define the FOCAL_LENGTH, PRINCIPAL_POINT_X and PRINCIPAL_POINT_Y
    indices into it. The remaining slots are model specific.
    """

    INTRINSICS_SIZE: int = 0

    FOCAL_LENGTH: int = -1
    PRINCIPAL_POINT_X: int = -1
    PRINCIPAL_POINT_Y: int = -1

    def __init__(self):
        self._parameters = np.zeros(self.INTRINSICS_SIZE, dtype=np.float64)

    @abstractmethod
    def type(self) -> CameraIntrinsicsModelType:
        """Camera model tag of this object"""
        pass

    def num_parameters(self) -> int:
        """Number of parameters the model uses (size of the parameter vector)"""
        return self.INTRINSICS_SIZE

    @abstractmethod
    def set_from_camera_intrinsics_priors(self, prior: CameraIntrinsicsPrior) -> None:
        """Initialize parameters from priors; unset fields keep their value"""
        pass

    @abstractmethod
    def get_subset_from_optimize_intrinsics_type(
        self,
        intrinsics_to_optimize: OptimizeIntrinsicsType,
    ) -> List[int]:
        """
        Indices of the parameters that are optimized for the given flags

        Args:
            intrinsics_to_optimize: OptimizeIntrinsicsType bit flags

        Returns:
            Sorted list of parameter indices
        """
        pass

    @abstractmethod
    def get_calibration_matrix(self) -> np.ndarray:
        """3x3 calibration matrix K"""
        pass

    # ------------------------------------------------------------------ #
    # Class-level projection math. Each derived class implements these so
    # they can be evaluated on raw parameter vectors (e.g. inside an
    # optimizer) without an instance.
    # ------------------------------------------------------------------ #

    @classmethod
    @abstractmethod
    def camera_to_pixel_coordinates(cls, intrinsic_parameters, point):
        """
        Project camera-space point(s) of shape (..., 3) to distorted pixels (..., 2)

        The depth must be non-zero; the result is undefined otherwise.
        """
        pass

    @classmethod
    @abstractmethod
    def pixel_to_camera_coordinates(cls, intrinsic_parameters, pixel):
        """
        Back-project pixel(s) of shape (..., 2) to rays (..., 3) with z == 1
        """
        pass

    @classmethod
    @abstractmethod
    def distort_point(cls, intrinsic_parameters, undistorted_point):
        """Apply lens distortion to normalized point(s) of shape (..., 2)"""
        pass

    @classmethod
    @abstractmethod
    def undistort_point(cls, intrinsic_parameters, distorted_point):
        """Remove lens distortion from normalized point(s) of shape (..., 2)"""
        pass

    # ------------------------------------------------------------------ #
    # Instance conveniences bound to the stored parameters
    # ------------------------------------------------------------------ #

    def camera_to_image_coordinates(self, point: Sequence[float]) -> np.ndarray:
        """Project a camera-space point into the image, applying distortion"""
        return self.camera_to_pixel_coordinates(self._parameters, np.asarray(point, dtype=np.float64))

    def image_to_camera_coordinates(self, pixel: Sequence[float]) -> np.ndarray:
        """Ray through the pixel in camera coordinates, calibration removed"""
        return self.pixel_to_camera_coordinates(self._parameters, np.asarray(pixel, dtype=np.float64))

    def distort(self, undistorted_point: Sequence[float]) -> np.ndarray:
        return self.distort_point(self._parameters, np.asarray(undistorted_point, dtype=np.float64))

    def undistort(self, distorted_point: Sequence[float]) -> np.ndarray:
        return self.undistort_point(self._parameters, np.asarray(distorted_point, dtype=np.float64))

    # ----------------------- Getters and setters ----------------------- #

    @property
    def focal_length(self) -> float:
        return float(self._parameters[self.FOCAL_LENGTH])

    @focal_length.setter
    def focal_length(self, focal_length: float) -> None:
        self._parameters[self.FOCAL_LENGTH] = focal_length

    @property
    def principal_point_x(self) -> float:
        return float(self._parameters[self.PRINCIPAL_POINT_X])

    @property
    def principal_point_y(self) -> float:
        return float(self._parameters[self.PRINCIPAL_POINT_Y])

    def set_principal_point(self, principal_point_x: float, principal_point_y: float) -> None:
        self._parameters[self.PRINCIPAL_POINT_X] = principal_point_x
        self._parameters[self.PRINCIPAL_POINT_Y] = principal_point_y

    def get_parameter(self, parameter_index: int) -> float:
        self._check_index(parameter_index)
        return float(self._parameters[parameter_index])

    def set_parameter(self, parameter_index: int, parameter_value: float) -> None:
        self._check_index(parameter_index)
        self._parameters[parameter_index] = parameter_value

    @property
    def parameters(self) -> np.ndarray:
        """Read-only view of the parameter vector"""
        view = self._parameters.view()
        view.flags.writeable = False
        return view

    @property
    def mutable_parameters(self) -> np.ndarray:
        return self._parameters

    def _check_index(self, parameter_index: int) -> None:
        if not 0 <= parameter_index < self.INTRINSICS_SIZE:
            raise IndexError(
                f"Parameter index {parameter_index} out of range for {self.type().name} "
                f"model with {self.INTRINSICS_SIZE} parameters"
            )

    # ------------------------- Serialization -------------------------- #

    def to_dict(self) -> Dict[str, Any]:
        """Versioned record of the model type and ordered parameters"""
        return {
            "format_version": CAMERA_INTRINSICS_FORMAT_VERSION,
            "model_type": self.type().name,
            "parameters": [float(value) for value in self._parameters],
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(parameters={self._parameters.tolist()})"
