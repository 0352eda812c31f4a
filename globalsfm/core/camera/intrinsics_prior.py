"""
Camera intrinsics priors and optimization flags

Priors carry best-guess calibration values (e.g. focal length from EXIF).
Every field is optional: None means the value is unknown.
"""

from dataclasses import dataclass, asdict
from enum import IntEnum, IntFlag
from typing import Optional, Tuple, Dict, Any


class CameraIntrinsicsModelType(IntEnum):
    """Tag selecting a concrete camera intrinsics model"""

    INVALID = -1
    PINHOLE = 0
    FOV = 1


class OptimizeIntrinsicsType(IntFlag):
    """Which intrinsic parameters a refinement stage is allowed to change"""

    NONE = 0
    FOCAL_LENGTH = 1
    ASPECT_RATIO = 2
    SKEW = 4
    PRINCIPAL_POINTS = 8
    RADIAL_DISTORTION = 16
    TANGENTIAL_DISTORTION = 32
    ALL = 63


@dataclass
class CameraIntrinsicsPrior:
    """Externally supplied calibration guesses for a single view"""

    focal_length: Optional[float] = None
    principal_point: Optional[Tuple[float, float]] = None
    aspect_ratio: Optional[float] = None
    skew: Optional[float] = None
    radial_distortion: Optional[Tuple[float, ...]] = None

    image_width: Optional[int] = None
    image_height: Optional[int] = None

    camera_intrinsics_model_type: CameraIntrinsicsModelType = CameraIntrinsicsModelType.PINHOLE

    def __post_init__(self):
        if self.focal_length is not None and self.focal_length <= 0.0:
            raise ValueError(f"Focal length prior must be positive, got {self.focal_length}")

        if self.principal_point is not None:
            if len(self.principal_point) != 2:
                raise ValueError(f"Principal point prior needs 2 values, got {len(self.principal_point)}")
            self.principal_point = tuple(self.principal_point)

        if self.radial_distortion is not None:
            self.radial_distortion = tuple(self.radial_distortion)

        self.camera_intrinsics_model_type = CameraIntrinsicsModelType(self.camera_intrinsics_model_type)

    @classmethod
    def from_dict(cls, prior_dict: Dict[str, Any]) -> "CameraIntrinsicsPrior":
        """Create a prior from a dictionary (JSON loading)"""
        prior_dict = dict(prior_dict)
        model_type = prior_dict.pop("camera_intrinsics_model_type", "PINHOLE")
        if isinstance(model_type, str):
            model_type = CameraIntrinsicsModelType[model_type]
        return cls(camera_intrinsics_model_type=model_type, **prior_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Export prior to a dictionary"""
        prior_dict = asdict(self)
        prior_dict["camera_intrinsics_model_type"] = self.camera_intrinsics_model_type.name
        return prior_dict
