"""
Frame-to-Frame Region Matching by Keypoint Voting.

Algorithm:
==========
1. For every keypoint correspondence, find the current-frame region that
   encloses the current keypoint and the previous-frame region that
   encloses the previous keypoint. When several regions enclose a keypoint
   the one with the lowest id wins.
2. Each correspondence with an enclosing region on both sides casts one
   vote for the (current id, previous id) pair.
3. Each current region is matched to the previous region with the most
   votes; vote ties go to the lowest previous id.
4. The result is keyed by previous id. If two current regions elect the
   same previous region, the one with more votes keeps it (ties: lowest
   current id). Current regions without votes are left unmatched.
   A conflict is settled by vote count, not by the order in which
   regions are enumerated.
"""

from collections import Counter, defaultdict
from typing import Dict, Optional, Sequence, Tuple

from ..data.structures import BoundingBox, DataFrame, Keypoint, KeypointMatch
from ..utils.logger import get_logger


logger = get_logger("box_matcher")


def find_enclosing_box(
    boxes: Sequence[BoundingBox],
    pt: Tuple[float, float],
) -> Optional[int]:
    """
    Id of the region enclosing a pixel.

    Args:
        boxes: Candidate regions.
        pt: Pixel (x, y).

    Returns:
        Lowest id among enclosing regions, or None if no region encloses it.
    """
    enclosing = [box.box_id for box in boxes if box.contains(pt)]
    return min(enclosing) if enclosing else None


def count_box_votes(
    kpt_matches: Sequence[KeypointMatch],
    kpts_prev: Sequence[Keypoint],
    kpts_curr: Sequence[Keypoint],
    boxes_prev: Sequence[BoundingBox],
    boxes_curr: Sequence[BoundingBox],
) -> Dict[int, Counter]:
    """
    Tally previous-region votes per current region.

    Returns:
        Mapping current id -> Counter of previous ids. Correspondences
        without an enclosing region on either side cast no vote.
    """
    votes: Dict[int, Counter] = defaultdict(Counter)

    for match in kpt_matches:
        curr_id = find_enclosing_box(boxes_curr, kpts_curr[match.train_idx].pt)
        prev_id = find_enclosing_box(boxes_prev, kpts_prev[match.query_idx].pt)

        if curr_id is None or prev_id is None:
            continue
        votes[curr_id][prev_id] += 1

    return votes


def _best_vote(counter: Counter) -> Tuple[int, int]:
    # Highest count first, then lowest id.
    prev_id, count = min(counter.items(), key=lambda item: (-item[1], item[0]))
    return prev_id, count


def match_bounding_boxes(
    kpt_matches: Sequence[KeypointMatch],
    prev_frame: DataFrame,
    curr_frame: DataFrame,
) -> Dict[int, int]:
    """
    Match previous-frame regions to current-frame regions.

    Args:
        kpt_matches: Correspondences (query = previous, train = current).
        prev_frame: Previous frame with keypoints and regions.
        curr_frame: Current frame with keypoints and regions.

    Returns:
        Mapping previous box id -> current box id.

    Example:
        >>> bb_matches = match_bounding_boxes(curr.kpt_matches, prev, curr)
        >>> curr.bb_matches = bb_matches
    """
    votes = count_box_votes(
        kpt_matches,
        prev_frame.keypoints,
        curr_frame.keypoints,
        prev_frame.bounding_boxes,
        curr_frame.bounding_boxes,
    )

    # previous id -> (votes, current id)
    claims: Dict[int, Tuple[int, int]] = {}

    for curr_id in sorted({box.box_id for box in curr_frame.bounding_boxes}):
        counter = votes.get(curr_id)
        if not counter:
            logger.debug(f"Current box {curr_id}: no votes, left unmatched")
            continue

        prev_id, count = _best_vote(counter)
        held = claims.get(prev_id)
        # Lower current ids are visited first, so '>' keeps them on ties.
        if held is None or count > held[0]:
            claims[prev_id] = (count, curr_id)

    return {prev_id: curr_id for prev_id, (_, curr_id) in claims.items()}
