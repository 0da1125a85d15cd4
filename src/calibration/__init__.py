"""
Calibration modules for camera-LiDAR geometry.

Calibration is supplied, not estimated: this package loads the rectified
projection, rectification and LiDAR-to-camera matrices and projects LiDAR
points into the image with them.

Classes:
    CalibrationMatrices: P_rect (3x4), R_rect (4x4), RT (4x4).
    GeometricSingularityError: Projection onto the principal plane.

Standalone Functions:
    project_lidar_point: Project one LiDAR point to a pixel.
    project_lidar_points: Vectorized projection with validity mask.
    parse_calib_file: Read ``key: values`` calibration text files.
    to_homogeneous: Promote 3x3/3x4 matrices to 4x4.

Example Usage:
    >>> from src.calibration import CalibrationMatrices, project_lidar_points
    >>> calib = CalibrationMatrices.from_kitti_calib("calib/000000.txt")
    >>> pixels, valid = project_lidar_points(lidar_array, calib)
"""

from .extrinsics import CalibrationMatrices, parse_calib_file, to_homogeneous
from .projection import (
    DEFAULT_SINGULARITY_EPS,
    GeometricSingularityError,
    project_lidar_point,
    project_lidar_points,
)

__all__ = [
    # Classes
    "CalibrationMatrices",
    "GeometricSingularityError",
    # Standalone functions
    "project_lidar_point",
    "project_lidar_points",
    "parse_calib_file",
    "to_homogeneous",
    "DEFAULT_SINGULARITY_EPS",
]
