"""
LiDAR to Image Projection.

Projects LiDAR points into pixel coordinates using supplied calibration:

    [u']                          [x]
    [v'] = P_rect * R_rect * RT * [y]
    [w ]                          [z]
                                  [1]

Then: px = u'/w, py = v'/w

Points whose homogeneous scale ``w`` is at or near zero lie on the camera's
principal plane and have no finite image position. The scalar projector
raises GeometricSingularityError for them; the batch projector returns a
validity mask so callers can drop them.
"""

from typing import Iterable, Tuple, Union

import numpy as np

from .extrinsics import CalibrationMatrices
from ..data.structures import LidarPoint, lidar_points_to_array


DEFAULT_SINGULARITY_EPS = 1e-9


class GeometricSingularityError(ValueError):
    """Raised when a point projects onto the camera's principal plane."""


def project_lidar_point(
    point: LidarPoint,
    calib: CalibrationMatrices,
    eps: float = DEFAULT_SINGULARITY_EPS,
) -> Tuple[float, float]:
    """
    Project a single LiDAR point into the image.

    Args:
        point: LiDAR point in sensor frame.
        calib: Calibration matrices.
        eps: Threshold on |w| below which the projection is undefined.

    Returns:
        Pixel coordinates (px, py).

    Raises:
        GeometricSingularityError: If |w| <= eps.

    Example:
        >>> calib = CalibrationMatrices()  # identity
        >>> project_lidar_point(LidarPoint(0.5, -0.2, 1.0), calib)
        (0.5, -0.2)
    """
    X = np.array([point.x, point.y, point.z, 1.0], dtype=np.float64)
    Y = calib.projection_matrix @ X

    if abs(Y[2]) <= eps:
        raise GeometricSingularityError(
            f"Projection scale {Y[2]:.3e} too small for point "
            f"({point.x:.3f}, {point.y:.3f}, {point.z:.3f})"
        )

    return float(Y[0] / Y[2]), float(Y[1] / Y[2])


def project_lidar_points(
    points: Union[np.ndarray, Iterable[LidarPoint]],
    calib: CalibrationMatrices,
    eps: float = DEFAULT_SINGULARITY_EPS,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Project many LiDAR points at once.

    Args:
        points: (N, 3) / (N, 4) array or iterable of LidarPoint.
        calib: Calibration matrices.
        eps: Threshold on |w| below which a projection is undefined.

    Returns:
        Tuple[np.ndarray, np.ndarray]:
            - pixels: (N, 2) pixel coordinates (NaN where invalid)
            - valid_mask: (N,) boolean mask of finite projections
    """
    if isinstance(points, np.ndarray):
        xyz = np.atleast_2d(points)[:, :3].astype(np.float64)
    else:
        xyz = lidar_points_to_array(list(points))[:, :3]

    if len(xyz) == 0:
        return np.zeros((0, 2)), np.zeros(0, dtype=bool)

    X = np.hstack([xyz, np.ones((len(xyz), 1))])
    Y = X @ calib.projection_matrix.T

    w = Y[:, 2]
    valid_mask = np.abs(w) > eps

    pixels = np.full((len(xyz), 2), np.nan)
    pixels[valid_mask] = Y[valid_mask, :2] / w[valid_mask, np.newaxis]

    return pixels, valid_mask
