"""
Camera-LiDAR Calibration Matrices.

This module holds the supplied calibration used to project LiDAR points
into the camera image. Calibration is an input here: matrices are loaded,
validated and promoted to homogeneous form, never estimated.

Mathematical Background:
========================

Complete LiDAR to Image Projection:
    1. X_velo = [x, y, z, 1]^T (homogeneous, Velodyne frame)
    2. X_cam  = RT @ X_velo          (4x4 rigid transform, Velodyne -> camera)
    3. X_rect = R_rect @ X_cam       (4x4 rectification)
    4. Y      = P_rect @ X_rect      (3x4 rectified projection)
    5. (px, py) = (Y[0] / Y[2], Y[1] / Y[2])

Or combined:
    Y = P_rect * R_rect * RT * X_velo

KITTI Calibration Files:
========================

KITTI object calibration files store:
    P2: [12 values]             -> 3x4 projection (left color camera)
    R0_rect: [9 values]         -> 3x3 rectification
    Tr_velo_to_cam: [12 values] -> 3x4 rigid transform [R | t]

KITTI raw sequences use ``calib_cam_to_cam.txt`` with ``P_rect_02`` /
``R_rect_00`` and ``calib_velo_to_cam.txt`` with separate ``R`` and ``T``.
Both layouts are supported. The 3x3 and 3x4 matrices are promoted to 4x4
by padding with the identity.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np


def to_homogeneous(matrix: np.ndarray) -> np.ndarray:
    """
    Promote a 3x3 or 3x4 matrix to 4x4 homogeneous form.

    Args:
        matrix: 3x3, 3x4 or 4x4 matrix.

    Returns:
        np.ndarray: 4x4 matrix with identity padding.
    """
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.shape == (4, 4):
        return matrix.copy()

    T = np.eye(4, dtype=np.float64)
    if matrix.shape == (3, 3):
        T[:3, :3] = matrix
    elif matrix.shape == (3, 4):
        T[:3, :4] = matrix
    else:
        raise ValueError(f"Expected 3x3, 3x4 or 4x4 matrix, got {matrix.shape}")
    return T


def parse_calib_file(calib_file: Union[str, Path]) -> Dict[str, np.ndarray]:
    """
    Parse a ``key: v1 v2 ...`` calibration text file.

    Non-numeric entries (e.g. ``calib_time``) are skipped.

    Args:
        calib_file: Path to calibration file.

    Returns:
        Dictionary mapping keys to flat float arrays.

    Raises:
        FileNotFoundError: If the file doesn't exist.
    """
    calib_file = Path(calib_file)
    if not calib_file.exists():
        raise FileNotFoundError(f"Calibration file not found: {calib_file}")

    calibs = {}
    with open(calib_file, "r") as f:
        for line in f:
            if ":" not in line:
                continue
            key, value = line.split(":", 1)
            try:
                calibs[key.strip()] = np.array([float(x) for x in value.split()])
            except ValueError:
                continue

    return calibs


@dataclass
class CalibrationMatrices:
    """
    Projection, rectification and extrinsic matrices for one camera.

    Attributes:
        P_rect: Rectified projection matrix (3x4).
        R_rect: Rectification matrix in homogeneous form (4x4).
        RT: LiDAR to camera rigid transform in homogeneous form (4x4).

    Example:
        >>> calib = CalibrationMatrices.from_kitti_calib("calib/000000.txt")
        >>> M = calib.projection_matrix  # 3x4, P_rect @ R_rect @ RT
    """

    P_rect: np.ndarray = field(default_factory=lambda: np.hstack([np.eye(3), np.zeros((3, 1))]))
    R_rect: np.ndarray = field(default_factory=lambda: np.eye(4))
    RT: np.ndarray = field(default_factory=lambda: np.eye(4))

    def __post_init__(self):
        """Validate shapes and promote rectification/extrinsics to 4x4."""
        self.P_rect = np.asarray(self.P_rect, dtype=np.float64)
        if self.P_rect.shape != (3, 4):
            raise ValueError(f"P_rect must be 3x4, got {self.P_rect.shape}")

        self.R_rect = to_homogeneous(self.R_rect)
        self.RT = to_homogeneous(self.RT)

    @property
    def projection_matrix(self) -> np.ndarray:
        """
        Combined 3x4 LiDAR to image matrix.

        Returns:
            np.ndarray: P_rect @ R_rect @ RT.
        """
        return self.P_rect @ self.R_rect @ self.RT

    @classmethod
    def from_kitti_calib(
        cls,
        calib_file: Union[str, Path],
        camera: int = 2,
    ) -> "CalibrationMatrices":
        """
        Load from a KITTI object-detection calibration file.

        Args:
            calib_file: Path to ``calib/XXXXXX.txt``.
            camera: Camera index selecting ``P{camera}``.

        Returns:
            CalibrationMatrices instance.

        Raises:
            KeyError: If a required matrix is missing.
        """
        calibs = parse_calib_file(calib_file)
        return cls.from_dict(calibs, camera=camera)

    @classmethod
    def from_dict(
        cls,
        calibs: Dict[str, np.ndarray],
        camera: int = 2,
    ) -> "CalibrationMatrices":
        """
        Build from a parsed calibration dictionary.

        Accepts both object-detection keys (``P2``, ``R0_rect``,
        ``Tr_velo_to_cam``) and raw-sequence keys (``P_rect_02``,
        ``R_rect_00``, ``R`` + ``T``).

        Args:
            calibs: Dictionary of flat arrays.
            camera: Camera index.

        Returns:
            CalibrationMatrices instance.
        """
        P = _first_key(calibs, [f"P{camera}", f"P_rect_{camera:02d}"])
        if P is None:
            raise KeyError(f"Projection matrix for camera {camera} not found in calibration")

        R = _first_key(calibs, ["R0_rect", "R_rect_00", "R_rect"])
        if R is None:
            R = np.eye(3)

        Tr = _first_key(calibs, ["Tr_velo_to_cam", "Tr_velo_cam", "Tr_velo2cam"])
        if Tr is not None:
            Tr = Tr.reshape(3, 4)
        elif "R" in calibs and "T" in calibs:
            Tr = np.hstack([calibs["R"].reshape(3, 3), calibs["T"].reshape(3, 1)])
        else:
            raise KeyError("Velodyne to camera transformation not found in calibration")

        return cls(
            P_rect=P.reshape(3, 4),
            R_rect=R.reshape(3, 3) if R.size == 9 else R.reshape(4, 4),
            RT=Tr,
        )

    @classmethod
    def from_kitti_raw(
        cls,
        cam_to_cam_file: Union[str, Path],
        velo_to_cam_file: Union[str, Path],
        camera: int = 0,
    ) -> "CalibrationMatrices":
        """
        Load from KITTI raw-sequence calibration files.

        Args:
            cam_to_cam_file: Path to ``calib_cam_to_cam.txt``.
            velo_to_cam_file: Path to ``calib_velo_to_cam.txt``.
            camera: Camera index for ``P_rect_xx``.

        Returns:
            CalibrationMatrices instance.
        """
        calibs = parse_calib_file(cam_to_cam_file)
        calibs.update(parse_calib_file(velo_to_cam_file))
        return cls.from_dict(calibs, camera=camera)


def _first_key(calibs: Dict[str, np.ndarray], keys) -> Optional[np.ndarray]:
    for key in keys:
        if key in calibs:
            return calibs[key]
    return None
