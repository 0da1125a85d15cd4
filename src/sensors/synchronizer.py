"""
Frame pairing across camera, LiDAR and label directories.

KITTI-style sequences name every sensor file after its frame
(``image_2/000042.png``, ``velodyne/000042.bin``, ``label_2/000042.txt``).
A frame is usable when both an image and a scan exist for its id; labels
are optional and missing label files give a frame without regions.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Union

import numpy as np

from ..data.kitti_loader import load_kitti_boxes
from ..data.structures import BoundingBox, DataFrame, lidar_points_from_array
from .camera import CameraLoader
from .lidar import LiDARLoader, crop_lidar_points


@dataclass
class SynchronizedFrame:
    """Raw sensor data of one frame id."""

    frame_id: str
    image: np.ndarray
    pointcloud: np.ndarray
    boxes: List[BoundingBox] = field(default_factory=list)

    def to_data_frame(self, crop: Optional[Dict[str, float]] = None) -> DataFrame:
        """
        Convert to a DataFrame ready for region association.

        Args:
            crop: Ego-lane crop limits (see ``crop_lidar_points``); the full
                scan is kept if None.

        Returns:
            DataFrame with image, LiDAR points and regions. Keypoints are
            left empty for the caller to fill.
        """
        points = self.pointcloud if crop is None else crop_lidar_points(self.pointcloud, **crop)
        return DataFrame(
            frame_id=self.frame_id,
            image=self.image,
            lidar_points=lidar_points_from_array(points),
            bounding_boxes=self.boxes,
        )


class SensorSynchronizer:
    """
    Index of frame ids present in both the camera and LiDAR directories.

    Example:
        >>> sync = SensorSynchronizer(CameraLoader("seq/image_2"),
        ...                           LiDARLoader("seq/velodyne"),
        ...                           label_dir="seq/label_2")
        >>> for synced in sync.iterate_frames():
        ...     frame = synced.to_data_frame(crop=DEFAULT_CROP)
    """

    def __init__(
        self,
        camera_loader: CameraLoader,
        lidar_loader: LiDARLoader,
        label_dir: Optional[Union[str, Path]] = None,
        classes: Optional[Sequence[str]] = None,
    ):
        """
        Args:
            camera_loader: Image source.
            lidar_loader: Scan source.
            label_dir: Directory of ``<frame_id>.txt`` KITTI labels.
            classes: Label classes to keep (all if None).
        """
        self.camera = camera_loader
        self.lidar = lidar_loader
        self.label_dir = Path(label_dir) if label_dir is not None else None
        self.classes = classes

        camera_ids = {camera_loader.get_frame_id(i): i for i in range(len(camera_loader))}
        lidar_ids = {lidar_loader.get_frame_id(i): i for i in range(len(lidar_loader))}

        self.frame_ids = sorted(camera_ids.keys() & lidar_ids.keys())
        self._sources = {fid: (camera_ids[fid], lidar_ids[fid]) for fid in self.frame_ids}

    def __len__(self) -> int:
        return len(self.frame_ids)

    def __getitem__(self, index: int) -> SynchronizedFrame:
        return self.get_frame(index)

    def __iter__(self) -> Iterator[SynchronizedFrame]:
        return self.iterate_frames()

    def get_frame(self, index: int) -> SynchronizedFrame:
        """
        Load the frame at position ``index`` of the sorted frame ids.

        Raises:
            IndexError: If index is out of range.
        """
        if index < 0 or index >= len(self):
            raise IndexError(f"Frame index {index} out of range [0, {len(self) - 1}]")
        return self.get_frame_by_id(self.frame_ids[index])

    def get_frame_by_id(self, frame_id: str) -> SynchronizedFrame:
        """
        Load a frame by id (e.g. ``'000042'``).

        Raises:
            KeyError: If the id is not present in both sensors.
        """
        if frame_id not in self._sources:
            raise KeyError(f"Frame ID '{frame_id}' not found")

        camera_index, lidar_index = self._sources[frame_id]
        return SynchronizedFrame(
            frame_id=frame_id,
            image=self.camera.load_image(camera_index),
            pointcloud=self.lidar.load_pointcloud(lidar_index),
            boxes=self.load_boxes(frame_id),
        )

    def load_boxes(self, frame_id: str) -> List[BoundingBox]:
        """Regions from the frame's label file, empty if there is none."""
        if self.label_dir is None:
            return []
        label_file = self.label_dir / f"{frame_id}.txt"
        if not label_file.exists():
            return []
        return load_kitti_boxes(label_file, classes=self.classes)

    def iterate_frames(
        self,
        start: int = 0,
        end: Optional[int] = None,
        step: int = 1,
    ) -> Iterator[SynchronizedFrame]:
        """Yield frames ``start`` to ``end`` (exclusive) in frame-id order."""
        end = len(self) if end is None else min(end, len(self))
        for i in range(start, end, step):
            yield self.get_frame(i)

    def get_statistics(self) -> Dict[str, int]:
        return {
            "total_camera_frames": len(self.camera),
            "total_lidar_frames": len(self.lidar),
            "synchronized_frames": len(self),
        }
