"""
Core data structures for camera/LiDAR time-to-collision estimation.

Coordinate Systems:
===================
- LiDAR (Velodyne): x=forward, y=left, z=up (meters)
- Image: u=right, v=down, origin at top-left (pixels)

Ownership:
==========
LidarPoint, Keypoint and KeypointMatch are immutable and owned by the frame
that captured them. BoundingBox is created by the external detector; only
its ``lidar_points``, ``keypoints`` and ``kpt_matches`` lists are filled in
by the fusion modules.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np


# =============================================================================
# Sensor Primitives
# =============================================================================

@dataclass(frozen=True)
class LidarPoint:
    """
    Single LiDAR return in the sensor frame.

    Attributes:
        x: Forward distance in meters.
        y: Lateral offset in meters (positive to the left).
        z: Height in meters (positive up).
        r: Reflectivity [0, 1].
    """
    x: float
    y: float
    z: float
    r: float = 0.0

    def to_array(self) -> np.ndarray:
        """Return [x, y, z, r] as float64 array."""
        return np.array([self.x, self.y, self.z, self.r], dtype=np.float64)


@dataclass(frozen=True)
class Keypoint:
    """
    2D image keypoint with descriptor metadata.

    Mirrors the fields of ``cv2.KeyPoint`` so detector output can be
    converted without losing information.
    """
    x: float
    y: float
    size: float = 1.0
    angle: float = -1.0
    response: float = 0.0
    octave: int = 0

    @property
    def pt(self) -> Tuple[float, float]:
        """Pixel position (x, y)."""
        return (self.x, self.y)

    @classmethod
    def from_cv2(cls, kp: Any) -> "Keypoint":
        """Create from a ``cv2.KeyPoint``."""
        return cls(
            x=float(kp.pt[0]),
            y=float(kp.pt[1]),
            size=float(kp.size),
            angle=float(kp.angle),
            response=float(kp.response),
            octave=int(kp.octave),
        )


@dataclass(frozen=True)
class KeypointMatch:
    """
    Correspondence between a previous-frame and a current-frame keypoint.

    Attributes:
        query_idx: Index into the previous frame's keypoints.
        train_idx: Index into the current frame's keypoints.
        distance: Descriptor distance reported by the matcher.
    """
    query_idx: int
    train_idx: int
    distance: float = 0.0

    @classmethod
    def from_cv2(cls, match: Any) -> "KeypointMatch":
        """Create from a ``cv2.DMatch``."""
        return cls(
            query_idx=int(match.queryIdx),
            train_idx=int(match.trainIdx),
            distance=float(match.distance),
        )


# =============================================================================
# Regions and Frames
# =============================================================================

@dataclass
class BoundingBox:
    """
    Detected object region in image space.

    The rectangle is stored as (x, y, width, height) in pixels and uses
    half-open containment: ``x <= px < x + width``, ``y <= py < y + height``.

    Attributes:
        box_id: Identifier, unique within a frame.
        roi: Rectangle (x, y, width, height) in pixels.
        class_id: Detector class label.
        confidence: Detector confidence [0, 1].
        lidar_points: LiDAR points assigned by region association.
        keypoints: Keypoints enclosed by the region.
        kpt_matches: Correspondences whose current keypoint lies in the region.
    """
    box_id: int
    roi: Tuple[float, float, float, float]
    class_id: int = -1
    confidence: float = 0.0
    lidar_points: List[LidarPoint] = field(default_factory=list)
    keypoints: List[Keypoint] = field(default_factory=list)
    kpt_matches: List[KeypointMatch] = field(default_factory=list)

    def __post_init__(self):
        """Normalize roi to a float tuple."""
        if len(self.roi) != 4:
            raise ValueError(f"roi must be (x, y, width, height), got {self.roi}")
        self.roi = tuple(float(v) for v in self.roi)

    @property
    def x(self) -> float:
        return self.roi[0]

    @property
    def y(self) -> float:
        return self.roi[1]

    @property
    def width(self) -> float:
        return self.roi[2]

    @property
    def height(self) -> float:
        return self.roi[3]

    def contains(self, pt: Tuple[float, float]) -> bool:
        """Check whether a pixel lies inside the region."""
        return roi_contains(self.roi, pt)

    @classmethod
    def from_xyxy(
        cls,
        box_id: int,
        bbox: Tuple[float, float, float, float],
        **kwargs,
    ) -> "BoundingBox":
        """
        Create from corner format [x1, y1, x2, y2].

        Args:
            box_id: Region identifier.
            bbox: Top-left and bottom-right corners in pixels.
            **kwargs: Remaining BoundingBox fields.

        Returns:
            BoundingBox with roi in (x, y, width, height) form.
        """
        x1, y1, x2, y2 = (float(v) for v in bbox)
        return cls(box_id=box_id, roi=(x1, y1, x2 - x1, y2 - y1), **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (point/match lists summarized by count)."""
        return {
            "box_id": self.box_id,
            "roi": list(self.roi),
            "class_id": self.class_id,
            "confidence": self.confidence,
            "num_lidar_points": len(self.lidar_points),
            "num_kpt_matches": len(self.kpt_matches),
        }


@dataclass
class DataFrame:
    """
    All data captured and derived for one time step.

    Attributes:
        frame_id: Frame identifier (e.g. file stem).
        image: Camera image, if kept.
        keypoints: Detected keypoints.
        descriptors: Descriptor matrix aligned with ``keypoints``.
        kpt_matches: Matches from the previous frame's keypoints (query)
            to this frame's keypoints (train).
        lidar_points: Cropped LiDAR scan.
        bounding_boxes: Detected regions.
        bb_matches: Previous box id -> current box id, set by box matching.
    """
    frame_id: str = ""
    image: Optional[np.ndarray] = None
    keypoints: List[Keypoint] = field(default_factory=list)
    descriptors: Optional[np.ndarray] = None
    kpt_matches: List[KeypointMatch] = field(default_factory=list)
    lidar_points: List[LidarPoint] = field(default_factory=list)
    bounding_boxes: List[BoundingBox] = field(default_factory=list)
    bb_matches: Dict[int, int] = field(default_factory=dict)

    def get_box(self, box_id: int) -> Optional[BoundingBox]:
        """Look up a region by id."""
        for box in self.bounding_boxes:
            if box.box_id == box_id:
                return box
        return None


# =============================================================================
# Helpers
# =============================================================================

def roi_contains(
    roi: Tuple[float, float, float, float],
    pt: Tuple[float, float],
) -> bool:
    """
    Half-open rectangle containment test.

    Args:
        roi: Rectangle (x, y, width, height).
        pt: Pixel (px, py).

    Returns:
        True if ``x <= px < x + width`` and ``y <= py < y + height``.
    """
    x, y, w, h = roi
    px, py = pt
    return x <= px < x + w and y <= py < y + h


def lidar_points_to_array(points: List[LidarPoint]) -> np.ndarray:
    """Stack LidarPoints into an (N, 4) array [x, y, z, r]."""
    if not points:
        return np.zeros((0, 4), dtype=np.float64)
    return np.array([[p.x, p.y, p.z, p.r] for p in points], dtype=np.float64)


def lidar_points_from_array(points: np.ndarray) -> List[LidarPoint]:
    """
    Convert an (N, 3) or (N, 4) array into LidarPoints.

    Reflectivity defaults to 0 when the array has only three columns.
    """
    points = np.atleast_2d(np.asarray(points, dtype=np.float64))
    if points.size == 0:
        return []
    if points.shape[1] == 3:
        return [LidarPoint(x, y, z) for x, y, z in points]
    return [LidarPoint(x, y, z, r) for x, y, z, r in points[:, :4]]
