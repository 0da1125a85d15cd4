"""
Time-to-Collision Estimation from Camera and LiDAR.

Both estimators assume a constant relative velocity between the two frames,
which are ``dt = 1 / frame_rate`` seconds apart.

Camera (distance-ratio method):
===============================
For a rigid object at distance d, the pixel distance h between two of its
keypoints scales as h ~ 1/d. With h0 in the previous frame and h1 in the
current frame:

    ratio = h1 / h0 = d0 / d1
    TTC   = d1 / v = -dt / (1 - ratio)

The median ratio over all keypoint pairs is used, which makes the estimate
robust against mismatched keypoints.

LiDAR (median-distance method):
===============================
With forward distances d0 (previous) and d1 (current):

    v   = (d0 - d1) / dt
    TTC = d1 / v = dt * d1 / (d0 - d1)

The median x of each point set replaces the closest point so that single
spurious returns do not dominate.

Outcomes:
=========
Every estimate is returned as a TTCResult carrying a TTCStatus, so callers
can tell "no signal" apart from "object closing fast":

    VALID            finite, positive TTC
    EMPTY_MATCH_SET  no usable samples (value NaN)
    DEGENERATE       denominator at or near zero (value NaN)
    RECEDING         negative TTC, object moving away (raw value kept)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Sequence

import numpy as np
from scipy.spatial.distance import pdist

from ..data.structures import Keypoint, KeypointMatch, LidarPoint


DEFAULT_CAMERA_MIN_DIST = 100.0
DEFAULT_EPS = np.finfo(np.float64).eps
DEFAULT_DEGENERATE_EPS = 1e-9


# =============================================================================
# Result Types
# =============================================================================

class TTCStatus(Enum):
    """Outcome of a TTC estimate."""
    VALID = "valid"
    EMPTY_MATCH_SET = "empty_match_set"
    DEGENERATE = "degenerate"
    RECEDING = "receding"


@dataclass
class TTCResult:
    """
    Time-to-collision estimate.

    Attributes:
        value: TTC in seconds (NaN when undefined).
        status: Outcome classification.
        num_samples: Number of ratios / points the estimate is based on.
        median: Median ratio (camera) or median current distance (LiDAR).
        details: Human-readable explanation for non-valid outcomes.
    """
    value: float = float("nan")
    status: TTCStatus = TTCStatus.EMPTY_MATCH_SET
    num_samples: int = 0
    median: float = float("nan")
    details: str = ""

    @property
    def is_valid(self) -> bool:
        """True for a finite, positive TTC."""
        return self.status == TTCStatus.VALID

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "value": self.value,
            "status": self.status.value,
            "num_samples": self.num_samples,
            "median": self.median,
            "details": self.details,
        }


def _frame_interval(frame_rate: float) -> float:
    if frame_rate <= 0:
        raise ValueError(f"frame_rate must be positive, got {frame_rate}")
    return 1.0 / frame_rate


def _classify(value: float, num_samples: int, median: float) -> TTCResult:
    if value < 0:
        return TTCResult(
            value=value,
            status=TTCStatus.RECEDING,
            num_samples=num_samples,
            median=median,
            details="Negative TTC: object is moving away",
        )
    return TTCResult(value=value, status=TTCStatus.VALID, num_samples=num_samples, median=median)


# =============================================================================
# Camera TTC
# =============================================================================

def compute_distance_ratios(
    kpts_prev: Sequence[Keypoint],
    kpts_curr: Sequence[Keypoint],
    kpt_matches: Sequence[KeypointMatch],
    min_dist: float = DEFAULT_CAMERA_MIN_DIST,
    eps: float = DEFAULT_EPS,
) -> np.ndarray:
    """
    Pairwise keypoint distance ratios between two frames.

    Every unordered pair of distinct matches is considered once. A ratio
    ``dist_curr / dist_prev`` is kept only when ``dist_prev > eps`` and
    ``dist_curr >= min_dist``.

    Args:
        kpts_prev: Previous-frame keypoints (indexed by ``query_idx``).
        kpts_curr: Current-frame keypoints (indexed by ``train_idx``).
        kpt_matches: Correspondences of one object.
        min_dist: Minimum current-frame pixel distance of a pair.
        eps: Minimum previous-frame pixel distance of a pair.

    Returns:
        1D array of surviving ratios.
    """
    if len(kpt_matches) < 2:
        return np.zeros(0)

    pts_prev = np.array([kpts_prev[m.query_idx].pt for m in kpt_matches], dtype=np.float64)
    pts_curr = np.array([kpts_curr[m.train_idx].pt for m in kpt_matches], dtype=np.float64)

    # Condensed distance vectors enumerate pairs (i < j) in the same order
    dist_prev = pdist(pts_prev)
    dist_curr = pdist(pts_curr)

    keep = (dist_prev > eps) & (dist_curr >= min_dist)
    return dist_curr[keep] / dist_prev[keep]


def ttc_from_distance_ratios(
    dist_ratios: Sequence[float],
    frame_rate: float,
    eps: float = DEFAULT_DEGENERATE_EPS,
) -> TTCResult:
    """
    Camera TTC from a set of distance ratios.

    Args:
        dist_ratios: Ratios ``dist_curr / dist_prev``.
        frame_rate: Frames per second.
        eps: Tolerance on ``1 - median_ratio``.

    Returns:
        TTCResult.

    Example:
        >>> ttc_from_distance_ratios([0.9, 0.95, 1.0, 1.05], 10.0).value
        -4.0
    """
    dt = _frame_interval(frame_rate)
    ratios = np.asarray(dist_ratios, dtype=np.float64)

    if ratios.size == 0:
        return TTCResult(
            status=TTCStatus.EMPTY_MATCH_SET,
            details="No keypoint pair passed the distance thresholds",
        )

    med_ratio = float(np.median(ratios))
    denominator = 1.0 - med_ratio

    if abs(denominator) <= eps:
        return TTCResult(
            status=TTCStatus.DEGENERATE,
            num_samples=int(ratios.size),
            median=med_ratio,
            details=f"Median distance ratio {med_ratio} is within {eps} of 1",
        )

    return _classify(-dt / denominator, int(ratios.size), med_ratio)


def compute_ttc_camera(
    kpts_prev: Sequence[Keypoint],
    kpts_curr: Sequence[Keypoint],
    kpt_matches: Sequence[KeypointMatch],
    frame_rate: float,
    min_dist: float = DEFAULT_CAMERA_MIN_DIST,
    degenerate_eps: float = DEFAULT_DEGENERATE_EPS,
) -> TTCResult:
    """
    Camera-based TTC from keypoint correspondences of one object.

    Args:
        kpts_prev: Previous-frame keypoints.
        kpts_curr: Current-frame keypoints.
        kpt_matches: Filtered correspondences inside the object's region.
        frame_rate: Frames per second.
        min_dist: Minimum current-frame pixel distance of a keypoint pair.
        degenerate_eps: Tolerance on ``1 - median_ratio``.

    Returns:
        TTCResult.
    """
    ratios = compute_distance_ratios(kpts_prev, kpts_curr, kpt_matches, min_dist=min_dist)
    return ttc_from_distance_ratios(ratios, frame_rate, eps=degenerate_eps)


# =============================================================================
# LiDAR TTC
# =============================================================================

def compute_ttc_lidar(
    lidar_points_prev: Sequence[LidarPoint],
    lidar_points_curr: Sequence[LidarPoint],
    frame_rate: float,
    eps: float = DEFAULT_DEGENERATE_EPS,
) -> TTCResult:
    """
    LiDAR-based TTC from the median forward distance of two point sets.

    The input sequences are not reordered.

    Args:
        lidar_points_prev: Object points in the previous frame.
        lidar_points_curr: Object points in the current frame.
        frame_rate: Frames per second.
        eps: Tolerance on the distance difference.

    Returns:
        TTCResult.

    Example:
        >>> prev = [LidarPoint(8.0, 0.0, 0.0)]
        >>> curr = [LidarPoint(7.5, 0.0, 0.0)]
        >>> compute_ttc_lidar(prev, curr, 10.0).value
        1.5
    """
    dt = _frame_interval(frame_rate)

    if len(lidar_points_prev) == 0 or len(lidar_points_curr) == 0:
        return TTCResult(
            status=TTCStatus.EMPTY_MATCH_SET,
            details=(
                f"Empty LiDAR set (prev={len(lidar_points_prev)}, "
                f"curr={len(lidar_points_curr)})"
            ),
        )

    med_prev_x = float(np.median([p.x for p in lidar_points_prev]))
    med_curr_x = float(np.median([p.x for p in lidar_points_curr]))
    num_samples = min(len(lidar_points_prev), len(lidar_points_curr))

    denominator = med_prev_x - med_curr_x
    if abs(denominator) <= eps:
        return TTCResult(
            status=TTCStatus.DEGENERATE,
            num_samples=num_samples,
            median=med_curr_x,
            details=f"Median distance changed by less than {eps} m",
        )

    return _classify(dt * med_curr_x / denominator, num_samples, med_curr_x)
