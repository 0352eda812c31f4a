"""
I/O utilities for camera intrinsics and estimated positions
"""

import json
import logging
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

import h5py
import numpy as np

from ..core.camera import CameraIntrinsicsModel, camera_intrinsics_model_from_dict
from ..core.types import ViewId

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def save_camera_intrinsics(filepath: PathLike, models: Mapping[ViewId, CameraIntrinsicsModel]) -> None:
    """Save camera models as versioned parameter records in JSON format"""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    info = {
        'num_cameras': len(models),
        'cameras': {str(view_id): model.to_dict() for view_id, model in models.items()},
    }

    with open(filepath, 'w') as f:
        json.dump(info, f, indent=2)

    logger.info(f"Saved {len(models)} camera intrinsics to {filepath}")


def load_camera_intrinsics(filepath: PathLike) -> Dict[ViewId, CameraIntrinsicsModel]:
    """Load camera models written by save_camera_intrinsics"""
    with open(filepath, 'r') as f:
        info = json.load(f)

    return {
        int(view_id): camera_intrinsics_model_from_dict(record)
        for view_id, record in info.get('cameras', {}).items()
    }


def save_positions_h5(filepath: PathLike, positions: Mapping[ViewId, np.ndarray]) -> None:
    """Save {view_id: position} as 'view_ids' (N,) and 'positions' (N, 3) datasets"""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    view_ids = sorted(positions.keys())
    with h5py.File(filepath, 'w') as f:
        f.create_dataset('view_ids', data=np.array(view_ids, dtype=np.int64))
        f.create_dataset(
            'positions',
            data=np.array([positions[view_id] for view_id in view_ids], dtype=np.float64).reshape(-1, 3),
        )

    logger.info(f"Saved {len(view_ids)} positions to {filepath}")


def load_positions_h5(filepath: PathLike) -> Dict[ViewId, np.ndarray]:
    """Load positions written by save_positions_h5"""
    with h5py.File(filepath, 'r') as f:
        view_ids = f['view_ids'][()]
        positions = f['positions'][()]

    return {int(view_id): position.copy() for view_id, position in zip(view_ids, positions)}


def write_ply_file(
    filepath: PathLike,
    positions: Mapping[ViewId, np.ndarray],
    points: Optional[np.ndarray] = None,
) -> None:
    """
    Write camera positions (green) and optional 3D points (white) to an ASCII
    PLY file for viewing in software such as MeshLab
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    vertices = []
    if points is not None:
        for point in np.asarray(points, dtype=np.float64).reshape(-1, 3):
            vertices.append((point, (1.0, 1.0, 1.0)))
    for view_id in sorted(positions.keys()):
        vertices.append((np.asarray(positions[view_id], dtype=np.float64), (0.0, 1.0, 0.0)))

    with open(filepath, 'w') as f:
        f.write("ply\n")
        f.write("format ascii 1.0\n")
        f.write(f"element vertex {len(vertices)}\n")
        f.write("property double x\n")
        f.write("property double y\n")
        f.write("property double z\n")
        f.write("property float red\n")
        f.write("property float green\n")
        f.write("property float blue\n")
        f.write("end_header\n")
        for xyz, rgb in vertices:
            f.write(f"{xyz[0]} {xyz[1]} {xyz[2]} {rgb[0]} {rgb[1]} {rgb[2]}\n")

    logger.info(f"Wrote {len(vertices)} vertices to {filepath}")
