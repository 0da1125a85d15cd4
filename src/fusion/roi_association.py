"""
Association of LiDAR Points and Keypoint Matches with 2D Regions.

LiDAR association:
==================
1. Project every LiDAR point into the image (P_rect * R_rect * RT * X).
2. Shrink every region symmetrically by ``shrink_factor`` so that points
   near the box edges, which often belong to the background, are ignored.
3. A point enclosed by exactly one shrunk region is appended to that
   region. Points enclosed by no region or by several regions are dropped.

Dropping is the outlier-rejection policy, not an error. Each pass returns
AssociationStats so the dropped points can still be counted.

Keypoint association:
=====================
A correspondence belongs to a region when its current-frame keypoint lies
inside the (unshrunk) region rectangle. Regions are processed one at a time,
so there is no uniqueness test.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np

from ..calibration.extrinsics import CalibrationMatrices
from ..calibration.projection import DEFAULT_SINGULARITY_EPS, project_lidar_points
from ..data.structures import BoundingBox, Keypoint, KeypointMatch, LidarPoint
from ..utils.logger import LoggerMixin


@dataclass
class AssociationStats:
    """
    Counts from one LiDAR association pass.

    Attributes:
        total: Number of input points.
        assigned: Points appended to exactly one region.
        unenclosed: Points outside every shrunk region.
        ambiguous: Points inside more than one shrunk region.
        singular: Points with no finite projection.
    """
    total: int = 0
    assigned: int = 0
    unenclosed: int = 0
    ambiguous: int = 0
    singular: int = 0

    @property
    def dropped(self) -> int:
        """Points not assigned to any region."""
        return self.unenclosed + self.ambiguous + self.singular

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total": self.total,
            "assigned": self.assigned,
            "unenclosed": self.unenclosed,
            "ambiguous": self.ambiguous,
            "singular": self.singular,
            "dropped": self.dropped,
        }


def shrink_roi(
    roi: Tuple[float, float, float, float],
    shrink_factor: float,
) -> Tuple[float, float, float, float]:
    """
    Shrink a rectangle symmetrically about its center.

    Each side moves inward by ``shrink_factor / 2`` of the corresponding
    dimension, so width and height scale by ``1 - shrink_factor``.

    Args:
        roi: Rectangle (x, y, width, height).
        shrink_factor: Fraction in [0, 1).

    Returns:
        Shrunk rectangle (x, y, width, height).

    Raises:
        ValueError: If shrink_factor is outside [0, 1).
    """
    _check_shrink_factor(shrink_factor)

    x, y, w, h = roi
    return (
        x + shrink_factor * w / 2.0,
        y + shrink_factor * h / 2.0,
        w * (1.0 - shrink_factor),
        h * (1.0 - shrink_factor),
    )


def _check_shrink_factor(shrink_factor: float) -> None:
    if not 0.0 <= shrink_factor < 1.0:
        raise ValueError(f"shrink_factor must be in [0, 1), got {shrink_factor}")


def _containment_matrix(
    pixels: np.ndarray,
    rois: Sequence[Tuple[float, float, float, float]],
) -> np.ndarray:
    """
    Half-open containment of N pixels in M rectangles.

    Returns:
        Boolean matrix (N, M). NaN pixels are contained nowhere.
    """
    if len(rois) == 0:
        return np.zeros((len(pixels), 0), dtype=bool)

    rects = np.asarray(rois, dtype=np.float64)
    x0, y0 = rects[:, 0], rects[:, 1]
    x1, y1 = x0 + rects[:, 2], y0 + rects[:, 3]

    px = pixels[:, 0:1]
    py = pixels[:, 1:2]
    return (px >= x0) & (px < x1) & (py >= y0) & (py < y1)


def cluster_lidar_with_roi(
    bounding_boxes: List[BoundingBox],
    lidar_points: List[LidarPoint],
    shrink_factor: float,
    calib: CalibrationMatrices,
    eps: float = DEFAULT_SINGULARITY_EPS,
) -> AssociationStats:
    """
    Assign LiDAR points to the regions whose shrunk rectangle encloses them.

    Points are appended to ``BoundingBox.lidar_points`` in input order.

    Args:
        bounding_boxes: Regions of the frame (mutated).
        lidar_points: LiDAR points of the frame.
        shrink_factor: Fraction in [0, 1) to shrink each region by.
        calib: Calibration matrices.
        eps: Projection singularity threshold.

    Returns:
        AssociationStats for the pass.

    Example:
        >>> stats = cluster_lidar_with_roi(frame.bounding_boxes,
        ...                                frame.lidar_points, 0.10, calib)
        >>> stats.assigned, stats.ambiguous
    """
    _check_shrink_factor(shrink_factor)

    stats = AssociationStats(total=len(lidar_points))
    if not lidar_points:
        return stats

    pixels, valid_mask = project_lidar_points(lidar_points, calib, eps=eps)
    stats.singular = int(np.count_nonzero(~valid_mask))

    shrunk = [shrink_roi(box.roi, shrink_factor) for box in bounding_boxes]
    inside = _containment_matrix(pixels, shrunk)
    enclosing_count = inside.sum(axis=1)

    stats.unenclosed = int(np.count_nonzero(valid_mask & (enclosing_count == 0)))
    stats.ambiguous = int(np.count_nonzero(enclosing_count > 1))

    unique_idx = np.flatnonzero(enclosing_count == 1)
    owners = np.argmax(inside[unique_idx], axis=1) if len(unique_idx) else []
    for point_idx, box_idx in zip(unique_idx, owners):
        bounding_boxes[box_idx].lidar_points.append(lidar_points[point_idx])

    stats.assigned = len(unique_idx)
    return stats


def cluster_kpt_matches_with_roi(
    bounding_box: BoundingBox,
    kpts_prev: Sequence[Keypoint],
    kpts_curr: Sequence[Keypoint],
    kpt_matches: Sequence[KeypointMatch],
) -> List[KeypointMatch]:
    """
    Attach the correspondences whose current keypoint lies in the region.

    Matches are appended to ``bounding_box.kpt_matches`` and the enclosed
    current keypoints to ``bounding_box.keypoints``. No shrink margin and
    no uniqueness test are applied.

    Args:
        bounding_box: Region to populate (mutated).
        kpts_prev: Previous-frame keypoints (query side).
        kpts_curr: Current-frame keypoints (train side).
        kpt_matches: All correspondences between the two frames.

    Returns:
        The matches that were attached.
    """
    attached = []
    for match in kpt_matches:
        kp = kpts_curr[match.train_idx]
        if bounding_box.contains(kp.pt):
            attached.append(match)
            bounding_box.keypoints.append(kp)

    bounding_box.kpt_matches.extend(attached)
    return attached


class RegionAssociator(LoggerMixin):
    """
    Associate LiDAR points and keypoint matches with detected regions.

    Example:
        >>> associator = RegionAssociator(calib, shrink_factor=0.10)
        >>> stats = associator.associate_lidar(frame.bounding_boxes, frame.lidar_points)
    """

    def __init__(
        self,
        calib: CalibrationMatrices,
        shrink_factor: float = 0.10,
        singularity_eps: float = DEFAULT_SINGULARITY_EPS,
    ):
        """
        Initialize associator.

        Args:
            calib: Calibration matrices.
            shrink_factor: Fraction in [0, 1) to shrink regions by.
            singularity_eps: Projection singularity threshold.
        """
        _check_shrink_factor(shrink_factor)

        self.calib = calib
        self.shrink_factor = shrink_factor
        self.singularity_eps = singularity_eps

    def associate_lidar(
        self,
        bounding_boxes: List[BoundingBox],
        lidar_points: List[LidarPoint],
    ) -> AssociationStats:
        """Assign LiDAR points to regions (see ``cluster_lidar_with_roi``)."""
        stats = cluster_lidar_with_roi(
            bounding_boxes,
            lidar_points,
            self.shrink_factor,
            self.calib,
            eps=self.singularity_eps,
        )
        self.logger.debug(
            f"LiDAR association: {stats.assigned}/{stats.total} assigned, "
            f"{stats.unenclosed} unenclosed, {stats.ambiguous} ambiguous, "
            f"{stats.singular} singular"
        )
        return stats

    def associate_matches(
        self,
        bounding_box: BoundingBox,
        kpts_prev: Sequence[Keypoint],
        kpts_curr: Sequence[Keypoint],
        kpt_matches: Sequence[KeypointMatch],
    ) -> List[KeypointMatch]:
        """Attach correspondences to one region (see ``cluster_kpt_matches_with_roi``)."""
        attached = cluster_kpt_matches_with_roi(bounding_box, kpts_prev, kpts_curr, kpt_matches)
        self.logger.debug(
            f"Box {bounding_box.box_id}: {len(attached)}/{len(kpt_matches)} matches inside"
        )
        return attached
