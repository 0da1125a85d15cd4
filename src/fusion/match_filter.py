"""
Keypoint Match Filtering within a Region.

Correspondences attached to a region are compared against the mean
descriptor distance of the region's set:

    keep match  <=>  distance >= ratio * mean     (DROP_BELOW, default)
    keep match  <=>  distance <= ratio * mean     (DROP_ABOVE)

DROP_BELOW reproduces the established behavior of this pipeline. With
Hamming/L2 descriptor distances a *low* distance is a *good* match, so
DROP_BELOW discards the most confident matches. DROP_ABOVE is the
dissimilarity-aware alternative; which one is intended has not been
confirmed, so the choice is left to configuration.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..data.structures import BoundingBox, KeypointMatch
from ..utils.logger import LoggerMixin


# =============================================================================
# Enums and Data Classes
# =============================================================================

class FilterDirection(Enum):
    """Which side of ``ratio * mean`` is discarded."""
    DROP_BELOW = "drop_below"
    DROP_ABOVE = "drop_above"


class MatchFilterStatus(Enum):
    """Outcome of filtering one region."""
    OK = "ok"
    EMPTY_MATCH_SET = "empty_match_set"


@dataclass
class MatchFilterResult:
    """
    Result of filtering a region's correspondences.

    Attributes:
        status: OK, or EMPTY_MATCH_SET when there was nothing to filter.
        matches: Surviving correspondences.
        num_input: Correspondences before filtering.
        mean_distance: Mean distance before filtering (None when empty).
        threshold: ``ratio * mean_distance`` (None when empty).
    """
    status: MatchFilterStatus = MatchFilterStatus.OK
    matches: List[KeypointMatch] = field(default_factory=list)
    num_input: int = 0
    mean_distance: Optional[float] = None
    threshold: Optional[float] = None

    @property
    def num_removed(self) -> int:
        """Number of correspondences discarded."""
        return self.num_input - len(self.matches)

    @property
    def is_empty(self) -> bool:
        """True when the region had no usable matches."""
        return self.status == MatchFilterStatus.EMPTY_MATCH_SET

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "num_input": self.num_input,
            "num_kept": len(self.matches),
            "num_removed": self.num_removed,
            "mean_distance": self.mean_distance,
            "threshold": self.threshold,
        }


# =============================================================================
# Main Filter Class
# =============================================================================

class MatchFilter(LoggerMixin):
    """
    Distance-to-mean outlier filter for keypoint correspondences.

    Example:
        >>> match_filter = MatchFilter(ratio=0.7)
        >>> result = match_filter.filter_box(bounding_box)
        >>> if result.is_empty:
        ...     pass  # no camera TTC for this region
    """

    def __init__(
        self,
        ratio: float = 0.7,
        direction: FilterDirection = FilterDirection.DROP_BELOW,
    ):
        """
        Initialize match filter.

        Args:
            ratio: Multiple of the mean distance used as threshold.
            direction: Which side of the threshold to drop. Strings
                ("drop_below" / "drop_above") are accepted.
        """
        if ratio < 0:
            raise ValueError(f"ratio must be non-negative, got {ratio}")

        self.ratio = ratio
        self.direction = FilterDirection(direction)
        self._warned_direction = False

    def filter(self, matches: Sequence[KeypointMatch]) -> MatchFilterResult:
        """
        Filter a set of correspondences.

        Args:
            matches: Correspondences of one region.

        Returns:
            MatchFilterResult; the input sequence is not modified.
        """
        if len(matches) == 0:
            return MatchFilterResult(status=MatchFilterStatus.EMPTY_MATCH_SET)

        self._warn_direction_once()

        distances = np.array([m.distance for m in matches], dtype=np.float64)
        mean_distance = float(np.mean(distances))
        threshold = self.ratio * mean_distance

        if self.direction == FilterDirection.DROP_BELOW:
            keep = distances >= threshold
        else:
            keep = distances <= threshold

        kept = [m for m, k in zip(matches, keep) if k]

        return MatchFilterResult(
            status=MatchFilterStatus.OK,
            matches=kept,
            num_input=len(matches),
            mean_distance=mean_distance,
            threshold=threshold,
        )

    def filter_box(self, bounding_box: BoundingBox) -> MatchFilterResult:
        """
        Filter a region's correspondences in place.

        Args:
            bounding_box: Region whose ``kpt_matches`` are replaced by the
                surviving matches.

        Returns:
            MatchFilterResult.
        """
        result = self.filter(bounding_box.kpt_matches)

        if result.is_empty:
            self.logger.debug(f"Box {bounding_box.box_id}: no matches to filter")
        else:
            bounding_box.kpt_matches = list(result.matches)
            self.logger.debug(
                f"Box {bounding_box.box_id}: kept {len(result.matches)}/{result.num_input} "
                f"matches (mean distance {result.mean_distance:.2f})"
            )

        return result

    def _warn_direction_once(self) -> None:
        if self.direction == FilterDirection.DROP_BELOW and not self._warned_direction:
            self.logger.warning(
                "Match filter drops distances below the mean threshold; "
                "for dissimilarity distances this removes the best matches"
            )
            self._warned_direction = True
