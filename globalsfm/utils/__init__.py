"""
Utilities: I/O and quality metrics
"""

from .io_utils import (
    save_camera_intrinsics,
    load_camera_intrinsics,
    save_positions_h5,
    load_positions_h5,
    write_ply_file,
)
from .quality_metrics import normalize_positions, align_positions, position_errors

__all__ = [
    "save_camera_intrinsics",
    "load_camera_intrinsics",
    "save_positions_h5",
    "load_positions_h5",
    "write_ply_file",
    "normalize_positions",
    "align_positions",
    "position_errors",
]
