"""
Camera intrinsics models

Concrete models are selected by their CameraIntrinsicsModelType tag through
create_camera_intrinsics_model; the rest of the pipeline only relies on the
CameraIntrinsicsModel interface.
"""

from typing import Any, Dict, Type

from .intrinsics_prior import (
    CameraIntrinsicsModelType,
    CameraIntrinsicsPrior,
    OptimizeIntrinsicsType,
)
from .camera_intrinsics_model import (
    CAMERA_INTRINSICS_FORMAT_VERSION,
    CameraIntrinsicsModel,
)
from .pinhole_camera_model import PinholeCameraModel
from .fov_camera_model import FOVCameraModel

CAMERA_MODELS: Dict[CameraIntrinsicsModelType, Type[CameraIntrinsicsModel]] = {
    CameraIntrinsicsModelType.PINHOLE: PinholeCameraModel,
    CameraIntrinsicsModelType.FOV: FOVCameraModel,
}


def create_camera_intrinsics_model(model_type: CameraIntrinsicsModelType) -> CameraIntrinsicsModel:
    """Create a camera model with default parameters for the given type tag"""
    try:
        if isinstance(model_type, str):
            model_type = CameraIntrinsicsModelType[model_type.upper()]
        model_type = CameraIntrinsicsModelType(model_type)
    except (KeyError, ValueError):
        raise ValueError(f"Unknown camera intrinsics model type: {model_type!r}")

    model_class = CAMERA_MODELS.get(model_type)
    if model_class is None:
        raise ValueError(f"Unsupported camera intrinsics model type: {model_type!r}")
    return model_class()


def camera_intrinsics_model_from_dict(record: Dict[str, Any]) -> CameraIntrinsicsModel:
    """
    Restore a camera model from its versioned parameter record

    Args:
        record: {'format_version': int, 'model_type': str, 'parameters': [float, ...]}

    Returns:
        CameraIntrinsicsModel with the stored parameters
    """
    version = record.get("format_version", 0)
    if isinstance(version, bool) or not isinstance(version, int):
        raise ValueError(f"Camera intrinsics format version must be an integer, got {version!r}")
    if version > CAMERA_INTRINSICS_FORMAT_VERSION:
        raise ValueError(
            f"Camera intrinsics format version {version} is newer than the "
            f"supported version {CAMERA_INTRINSICS_FORMAT_VERSION}"
        )

    if "model_type" not in record or "parameters" not in record:
        raise ValueError(f"Malformed camera intrinsics record: {record}")

    try:
        model_type = CameraIntrinsicsModelType[record["model_type"]]
    except KeyError:
        raise ValueError(f"Unknown camera intrinsics model type: {record['model_type']!r}")

    model = create_camera_intrinsics_model(model_type)

    parameters = record["parameters"]
    if len(parameters) != model.num_parameters():
        raise ValueError(
            f"{model_type.name} model expects {model.num_parameters()} parameters, "
            f"got {len(parameters)}"
        )

    model.mutable_parameters[:] = parameters
    return model


__all__ = [
    "CameraIntrinsicsModelType",
    "CameraIntrinsicsPrior",
    "OptimizeIntrinsicsType",
    "CameraIntrinsicsModel",
    "PinholeCameraModel",
    "FOVCameraModel",
    "CAMERA_MODELS",
    "CAMERA_INTRINSICS_FORMAT_VERSION",
    "create_camera_intrinsics_model",
    "camera_intrinsics_model_from_dict",
]
