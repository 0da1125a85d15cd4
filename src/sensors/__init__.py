"""Sensor modules for camera and LiDAR data loading."""

from .camera import CameraLoader
from .lidar import LiDARLoader, crop_lidar_points
from .synchronizer import SensorSynchronizer, SynchronizedFrame

__all__ = [
    "CameraLoader",
    "LiDARLoader",
    "crop_lidar_points",
    "SensorSynchronizer",
    "SynchronizedFrame",
]
