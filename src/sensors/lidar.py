"""LiDAR point cloud loader and region-of-interest cropping for Velodyne data."""

from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np

from ..data.structures import LidarPoint, lidar_points_from_array


# Ego-lane crop used before associating points with detections.
DEFAULT_CROP = {
    "min_x": 2.0,     # meters ahead of the sensor
    "max_x": 20.0,
    "max_y": 2.0,     # lateral half-width
    "min_z": -1.5,    # just above the road surface
    "max_z": -0.9,
    "min_reflectivity": 0.1,
}


def crop_lidar_points(
    points: np.ndarray,
    min_x: float = DEFAULT_CROP["min_x"],
    max_x: float = DEFAULT_CROP["max_x"],
    max_y: float = DEFAULT_CROP["max_y"],
    min_z: float = DEFAULT_CROP["min_z"],
    max_z: float = DEFAULT_CROP["max_z"],
    min_reflectivity: float = DEFAULT_CROP["min_reflectivity"],
) -> np.ndarray:
    """
    Keep only points inside the ego-lane box.

    Args:
        points: Point cloud (N, 4) [x, y, z, reflectivity].
        min_x: Minimum forward distance.
        max_x: Maximum forward distance.
        max_y: Maximum absolute lateral offset.
        min_z: Minimum height.
        max_z: Maximum height.
        min_reflectivity: Minimum reflectivity.

    Returns:
        Cropped point cloud.
    """
    points = np.atleast_2d(points)
    if points.size == 0:
        return points.reshape(0, 4)

    mask = (
        (points[:, 0] >= min_x) & (points[:, 0] <= max_x) &
        (np.abs(points[:, 1]) <= max_y) &
        (points[:, 2] >= min_z) & (points[:, 2] <= max_z) &
        (points[:, 3] >= min_reflectivity)
    )
    return points[mask]


class LiDARLoader:
    """Load and crop LiDAR point clouds stored as KITTI ``.bin`` files."""

    def __init__(
        self,
        lidar_dir: Union[str, Path],
        crop: Optional[Dict[str, float]] = None,
    ):
        """
        Initialize the LiDAR loader.

        Args:
            lidar_dir: Directory containing ``*.bin`` scans.
            crop: Crop limits (see ``crop_lidar_points``); None disables cropping.
        """
        self.lidar_path = Path(lidar_dir)
        self.crop = crop

        self._validate_path()
        self._index_pointclouds()

    def _validate_path(self) -> None:
        """Validate that the LiDAR directory exists."""
        if not self.lidar_path.exists():
            raise FileNotFoundError(f"LiDAR directory not found: {self.lidar_path}")

    def _index_pointclouds(self) -> None:
        """Index all available point cloud files."""
        self.lidar_files = sorted(self.lidar_path.glob("*.bin"))

    def __len__(self) -> int:
        """Return the number of available point clouds."""
        return len(self.lidar_files)

    def __getitem__(self, index: int) -> np.ndarray:
        """Load point cloud by index."""
        return self.load_pointcloud(index)

    def load_pointcloud(self, index: Union[int, str]) -> np.ndarray:
        """
        Load a single point cloud, cropped if a crop is configured.

        Args:
            index: Point cloud index (int) or filename (str).

        Returns:
            Point cloud as numpy array (N, 4) with [x, y, z, reflectivity].
        """
        if isinstance(index, int):
            if index < 0 or index >= len(self.lidar_files):
                raise IndexError(f"Point cloud index {index} out of range [0, {len(self) - 1}]")
            lidar_path = self.lidar_files[index]
        else:
            lidar_path = self.lidar_path / index
            if not lidar_path.exists():
                raise FileNotFoundError(f"Point cloud not found: {lidar_path}")

        points = np.fromfile(str(lidar_path), dtype=np.float32).reshape(-1, 4)
        points = points.astype(np.float64)

        if self.crop is not None:
            points = crop_lidar_points(points, **self.crop)

        return points

    def load_lidar_points(self, index: Union[int, str]) -> List[LidarPoint]:
        """Load a point cloud as a list of LidarPoint."""
        return lidar_points_from_array(self.load_pointcloud(index))

    def get_frame_id(self, index: int) -> str:
        """
        Get frame ID for given index.

        Args:
            index: Point cloud index.

        Returns:
            Frame ID string (e.g., '000000').
        """
        return self.lidar_files[index].stem
