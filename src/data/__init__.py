"""Data structures and label loading for camera/LiDAR fusion."""

from .structures import (
    LidarPoint,
    Keypoint,
    KeypointMatch,
    BoundingBox,
    DataFrame,
    roi_contains,
    lidar_points_to_array,
    lidar_points_from_array,
)
from .kitti_loader import KITTI_CLASSES, load_kitti_boxes, parse_label_line

__all__ = [
    "LidarPoint",
    "Keypoint",
    "KeypointMatch",
    "BoundingBox",
    "DataFrame",
    "roi_contains",
    "lidar_points_to_array",
    "lidar_points_from_array",
    "KITTI_CLASSES",
    "load_kitti_boxes",
    "parse_label_line",
]
