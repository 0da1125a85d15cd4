"""
Frame-Pair Time-to-Collision Pipeline.

Processing order for consecutive frames (previous, current):

    1. prepare_frame(current)
         LiDAR points -> projection -> region association
    2. process_pair(previous, current)
         keypoint matches -> box matching (previous id -> current id)
         for every matched region pair:
             LiDAR TTC from the two regions' point sets
             keypoint matches -> current region -> match filter -> camera TTC

The previous frame is expected to have been prepared when it was the
current frame. A region whose estimates fail only gets non-valid
TTCResults; the remaining regions are still processed.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..calibration.extrinsics import CalibrationMatrices
from ..calibration.projection import DEFAULT_SINGULARITY_EPS
from ..data.structures import DataFrame
from ..utils.config_loader import get_nested
from ..utils.logger import LoggerMixin
from .box_matcher import match_bounding_boxes
from .match_filter import FilterDirection, MatchFilter, MatchFilterResult
from .roi_association import AssociationStats, RegionAssociator
from .ttc import (
    DEFAULT_CAMERA_MIN_DIST,
    DEFAULT_DEGENERATE_EPS,
    TTCResult,
    compute_ttc_camera,
    compute_ttc_lidar,
)


@dataclass
class ObjectTTC:
    """
    TTC estimates for one matched region pair.

    Attributes:
        prev_box_id: Region id in the previous frame.
        curr_box_id: Region id in the current frame.
        ttc_lidar: LiDAR estimate.
        ttc_camera: Camera estimate.
        num_lidar_prev: LiDAR points of the previous region.
        num_lidar_curr: LiDAR points of the current region.
        match_filter: Result of filtering the current region's matches.
    """
    prev_box_id: int
    curr_box_id: int
    ttc_lidar: TTCResult
    ttc_camera: TTCResult
    num_lidar_prev: int = 0
    num_lidar_curr: int = 0
    match_filter: Optional[MatchFilterResult] = None

    @property
    def both_valid(self) -> bool:
        """True when both estimators produced a valid TTC."""
        return self.ttc_lidar.is_valid and self.ttc_camera.is_valid

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "prev_box_id": self.prev_box_id,
            "curr_box_id": self.curr_box_id,
            "ttc_lidar": self.ttc_lidar.to_dict(),
            "ttc_camera": self.ttc_camera.to_dict(),
            "num_lidar_prev": self.num_lidar_prev,
            "num_lidar_curr": self.num_lidar_curr,
            "match_filter": self.match_filter.to_dict() if self.match_filter else None,
        }


@dataclass
class FramePairResult:
    """Everything computed for one (previous, current) frame pair."""
    bb_matches: Dict[int, int] = field(default_factory=dict)
    objects: List[ObjectTTC] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "bb_matches": dict(self.bb_matches),
            "objects": [obj.to_dict() for obj in self.objects],
        }


class TTCPipeline(LoggerMixin):
    """
    Camera/LiDAR TTC estimation over consecutive frames.

    Example:
        >>> pipeline = TTCPipeline(calib, frame_rate=10.0)
        >>> pipeline.prepare_frame(curr_frame)
        >>> result = pipeline.process_pair(prev_frame, curr_frame)
        >>> for obj in result.objects:
        ...     print(obj.ttc_lidar.value, obj.ttc_camera.value)
    """

    def __init__(
        self,
        calib: CalibrationMatrices,
        frame_rate: float = 10.0,
        shrink_factor: float = 0.10,
        camera_min_dist: float = DEFAULT_CAMERA_MIN_DIST,
        match_filter: Optional[MatchFilter] = None,
        singularity_eps: float = DEFAULT_SINGULARITY_EPS,
        degenerate_eps: float = DEFAULT_DEGENERATE_EPS,
    ):
        """
        Initialize pipeline.

        Args:
            calib: Calibration matrices.
            frame_rate: Frames per second between consecutive frames.
            shrink_factor: Region shrink factor for LiDAR association.
            camera_min_dist: Minimum pixel distance for camera TTC pairs.
            match_filter: Match filter (default: ratio 0.7, DROP_BELOW).
            singularity_eps: Projection singularity threshold.
            degenerate_eps: TTC denominators at or below this are degenerate.
        """
        if frame_rate <= 0:
            raise ValueError(f"frame_rate must be positive, got {frame_rate}")

        self.frame_rate = frame_rate
        self.camera_min_dist = camera_min_dist
        self.degenerate_eps = degenerate_eps
        self.associator = RegionAssociator(
            calib,
            shrink_factor=shrink_factor,
            singularity_eps=singularity_eps,
        )
        self.match_filter = match_filter or MatchFilter()

    @classmethod
    def from_config(
        cls,
        calib: CalibrationMatrices,
        config: Dict[str, Any],
    ) -> "TTCPipeline":
        """
        Build a pipeline from a configuration dictionary.

        Args:
            calib: Calibration matrices.
            config: Configuration (see ``configs/default.yaml``).

        Returns:
            TTCPipeline instance.
        """
        match_filter = MatchFilter(
            ratio=get_nested(config, "match_filter.ratio", 0.7),
            direction=FilterDirection(
                get_nested(config, "match_filter.direction", FilterDirection.DROP_BELOW.value)
            ),
        )
        return cls(
            calib,
            frame_rate=get_nested(config, "ttc.frame_rate", 10.0),
            shrink_factor=get_nested(config, "association.shrink_factor", 0.10),
            camera_min_dist=get_nested(config, "ttc.camera_min_dist", DEFAULT_CAMERA_MIN_DIST),
            match_filter=match_filter,
            singularity_eps=get_nested(
                config, "calibration.singularity_eps", DEFAULT_SINGULARITY_EPS
            ),
            degenerate_eps=get_nested(config, "ttc.degenerate_eps", DEFAULT_DEGENERATE_EPS),
        )

    def prepare_frame(self, frame: DataFrame) -> AssociationStats:
        """
        Associate a frame's LiDAR points with its regions.

        Region point lists are rebuilt, so preparing a frame again gives the
        same assignment.

        Args:
            frame: Frame with ``lidar_points`` and ``bounding_boxes`` (mutated).

        Returns:
            AssociationStats.
        """
        for box in frame.bounding_boxes:
            box.lidar_points = []
        return self.associator.associate_lidar(frame.bounding_boxes, frame.lidar_points)

    def process_pair(
        self,
        prev_frame: DataFrame,
        curr_frame: DataFrame,
    ) -> FramePairResult:
        """
        Match regions and estimate TTC for every matched pair.

        ``curr_frame.kpt_matches`` must index ``prev_frame.keypoints``
        (query) and ``curr_frame.keypoints`` (train). The best-match
        mapping is stored in ``curr_frame.bb_matches``.

        Args:
            prev_frame: Previous, already prepared frame.
            curr_frame: Current, already prepared frame.

        Returns:
            FramePairResult.
        """
        bb_matches = match_bounding_boxes(curr_frame.kpt_matches, prev_frame, curr_frame)
        curr_frame.bb_matches = bb_matches
        self.logger.debug(f"Frame {curr_frame.frame_id}: box matches {bb_matches}")

        result = FramePairResult(bb_matches=bb_matches)

        for prev_id, curr_id in sorted(bb_matches.items()):
            obj = self._process_object(prev_frame, curr_frame, prev_id, curr_id)
            result.objects.append(obj)

        return result

    def _process_object(
        self,
        prev_frame: DataFrame,
        curr_frame: DataFrame,
        prev_id: int,
        curr_id: int,
    ) -> ObjectTTC:
        prev_box = prev_frame.get_box(prev_id)
        curr_box = curr_frame.get_box(curr_id)

        ttc_lidar = compute_ttc_lidar(
            prev_box.lidar_points,
            curr_box.lidar_points,
            self.frame_rate,
            eps=self.degenerate_eps,
        )

        curr_box.keypoints = []
        curr_box.kpt_matches = []
        self.associator.associate_matches(
            curr_box,
            prev_frame.keypoints,
            curr_frame.keypoints,
            curr_frame.kpt_matches,
        )
        filter_result = self.match_filter.filter_box(curr_box)

        if filter_result.is_empty:
            ttc_camera = TTCResult(details=f"No keypoint matches inside box {curr_id}")
        else:
            ttc_camera = compute_ttc_camera(
                prev_frame.keypoints,
                curr_frame.keypoints,
                curr_box.kpt_matches,
                self.frame_rate,
                min_dist=self.camera_min_dist,
                degenerate_eps=self.degenerate_eps,
            )

        obj = ObjectTTC(
            prev_box_id=prev_id,
            curr_box_id=curr_id,
            ttc_lidar=ttc_lidar,
            ttc_camera=ttc_camera,
            num_lidar_prev=len(prev_box.lidar_points),
            num_lidar_curr=len(curr_box.lidar_points),
            match_filter=filter_result,
        )
        self._log_object(obj)
        return obj

    def _log_object(self, obj: ObjectTTC) -> None:
        for name, ttc in (("LiDAR", obj.ttc_lidar), ("camera", obj.ttc_camera)):
            if ttc.is_valid:
                self.logger.debug(
                    f"Box {obj.prev_box_id}->{obj.curr_box_id}: {name} TTC {ttc.value:.2f}s"
                )
            else:
                self.logger.info(
                    f"Box {obj.prev_box_id}->{obj.curr_box_id}: {name} TTC "
                    f"{ttc.status.value} ({ttc.details})"
                )
