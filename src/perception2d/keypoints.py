"""
Keypoint detection, description and matching with OpenCV.

Converts OpenCV output into the project's immutable Keypoint and
KeypointMatch records so frames do not hold on to cv2 objects.

Supported detectors:
====================
  ORB    binary descriptor, Hamming norm (default)
  BRISK  binary descriptor, Hamming norm
  AKAZE  binary descriptor, Hamming norm
  SIFT   float descriptor, L2 norm

Matching uses brute force with cross-check, so every returned
correspondence is the mutual best match of its two descriptors. The
previous frame is the query set and the current frame the train set,
which is the index convention of KeypointMatch.
"""

from typing import List, Optional, Tuple

import cv2
import numpy as np

from ..data.structures import Keypoint, KeypointMatch
from ..utils.logger import LoggerMixin


BINARY_DETECTORS = ("ORB", "BRISK", "AKAZE")
FLOAT_DETECTORS = ("SIFT",)


def _create_detector(name: str, max_features: int):
    if name == "ORB":
        return cv2.ORB_create(nfeatures=max_features)
    if name == "BRISK":
        return cv2.BRISK_create()
    if name == "AKAZE":
        return cv2.AKAZE_create()
    if name == "SIFT":
        return cv2.SIFT_create(nfeatures=max_features)
    raise ValueError(
        f"Unknown detector '{name}', expected one of "
        f"{BINARY_DETECTORS + FLOAT_DETECTORS}"
    )


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert a BGR image to grayscale; grayscale input is returned as is."""
    if image.ndim == 2:
        return image
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


class KeypointDetector(LoggerMixin):
    """
    Detects keypoints and matches descriptors between consecutive frames.

    Example:
        >>> detector = KeypointDetector("ORB", max_features=2000)
        >>> kpts_prev, desc_prev = detector.detect(prev_image)
        >>> kpts_curr, desc_curr = detector.detect(curr_image)
        >>> matches = detector.match(desc_prev, desc_curr)
    """

    def __init__(self, detector: str = "ORB", max_features: int = 2000):
        """
        Initialize detector.

        Args:
            detector: Detector name (ORB, BRISK, AKAZE, SIFT).
            max_features: Maximum number of keypoints (ORB and SIFT only).
        """
        self.name = detector.upper()
        self.max_features = max_features
        self._detector = _create_detector(self.name, max_features)

        norm = cv2.NORM_L2 if self.name in FLOAT_DETECTORS else cv2.NORM_HAMMING
        self._matcher = cv2.BFMatcher(norm, crossCheck=True)

    def detect(self, image: np.ndarray) -> Tuple[List[Keypoint], Optional[np.ndarray]]:
        """
        Detect keypoints and compute their descriptors.

        Args:
            image: BGR or grayscale image.

        Returns:
            Tuple of (keypoints, descriptors). Descriptors are None when no
            keypoint was found.
        """
        cv_kpts, descriptors = self._detector.detectAndCompute(to_grayscale(image), None)
        keypoints = [Keypoint.from_cv2(kp) for kp in cv_kpts]
        self.logger.debug(f"{self.name}: {len(keypoints)} keypoints")
        return keypoints, descriptors

    def match(
        self,
        desc_prev: Optional[np.ndarray],
        desc_curr: Optional[np.ndarray],
    ) -> List[KeypointMatch]:
        """
        Match previous-frame descriptors against current-frame descriptors.

        Args:
            desc_prev: Previous-frame descriptors (query).
            desc_curr: Current-frame descriptors (train).

        Returns:
            Correspondences sorted by descriptor distance.
        """
        if desc_prev is None or desc_curr is None or len(desc_prev) == 0 or len(desc_curr) == 0:
            return []

        cv_matches = sorted(self._matcher.match(desc_prev, desc_curr), key=lambda m: m.distance)
        matches = [KeypointMatch.from_cv2(m) for m in cv_matches]
        self.logger.debug(f"{self.name}: {len(matches)} matches")
        return matches
