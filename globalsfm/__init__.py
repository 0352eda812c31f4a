"""
Global Structure-from-Motion geometry core
Camera intrinsics models, view graph filtering and robust global position estimation
"""

__version__ = "0.1.0"


# Lazy imports for heavy dependencies (torch, scipy) - only import when actually used
def __getattr__(name):
    """Lazy import for module attributes"""

    # Core components
    if name in ("ViewIdPair", "TwoViewInfo"):
        from .core import types
        return getattr(types, name)
    elif name == "ViewGraph":
        from .core.view_graph import ViewGraph
        return ViewGraph
    elif name == "remove_disconnected_view_pairs":
        from .core.view_graph import remove_disconnected_view_pairs
        return remove_disconnected_view_pairs
    elif name == "LeastUnsquaredDeviationPositionEstimator":
        from .core.global_pose_estimation import LeastUnsquaredDeviationPositionEstimator
        return LeastUnsquaredDeviationPositionEstimator
    elif name == "GlobalPositionEstimation":
        from .core.global_pose_estimation import GlobalPositionEstimation
        return GlobalPositionEstimation
    elif name == "GlobalPositioningConfig":
        from .core.config import GlobalPositioningConfig
        return GlobalPositioningConfig
    elif name == "create_camera_intrinsics_model":
        from .core.camera import create_camera_intrinsics_model
        return create_camera_intrinsics_model
    # Utilities (lighter imports)
    elif name == "save_camera_intrinsics":
        from .utils.io_utils import save_camera_intrinsics
        return save_camera_intrinsics
    elif name == "write_ply_file":
        from .utils.io_utils import write_ply_file
        return write_ply_file
    elif name == "position_errors":
        from .utils.quality_metrics import position_errors
        return position_errors

    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = [
    # Core components
    "ViewIdPair",
    "TwoViewInfo",
    "ViewGraph",
    "remove_disconnected_view_pairs",
    "LeastUnsquaredDeviationPositionEstimator",
    "GlobalPositionEstimation",
    "GlobalPositioningConfig",
    "create_camera_intrinsics_model",

    # Utilities
    "save_camera_intrinsics",
    "write_ply_file",
    "position_errors",
]
