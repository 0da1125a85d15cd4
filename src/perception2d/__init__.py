"""
2D perception glue for keypoint-based tracking.

Classes:
    KeypointDetector: OpenCV keypoint detection and descriptor matching

Functions:
    to_grayscale: Convert BGR images for feature detection

Example:
    >>> from src.perception2d import KeypointDetector
    >>>
    >>> detector = KeypointDetector("ORB", max_features=2000)
    >>> keypoints, descriptors = detector.detect(image)
"""

from .keypoints import KeypointDetector, to_grayscale

__all__ = [
    "KeypointDetector",
    "to_grayscale",
]
