"""Camera/LiDAR fusion modules for time-to-collision estimation."""

from .roi_association import (
    AssociationStats,
    RegionAssociator,
    cluster_kpt_matches_with_roi,
    cluster_lidar_with_roi,
    shrink_roi,
)
from .box_matcher import find_enclosing_box, match_bounding_boxes
from .match_filter import FilterDirection, MatchFilter, MatchFilterResult, MatchFilterStatus
from .ttc import (
    TTCResult,
    TTCStatus,
    compute_distance_ratios,
    compute_ttc_camera,
    compute_ttc_lidar,
    ttc_from_distance_ratios,
)
from .pipeline import FramePairResult, ObjectTTC, TTCPipeline

__all__ = [
    "AssociationStats",
    "RegionAssociator",
    "cluster_kpt_matches_with_roi",
    "cluster_lidar_with_roi",
    "shrink_roi",
    "find_enclosing_box",
    "match_bounding_boxes",
    "FilterDirection",
    "MatchFilter",
    "MatchFilterResult",
    "MatchFilterStatus",
    "TTCResult",
    "TTCStatus",
    "compute_distance_ratios",
    "compute_ttc_camera",
    "compute_ttc_lidar",
    "ttc_from_distance_ratios",
    "FramePairResult",
    "ObjectTTC",
    "TTCPipeline",
]
