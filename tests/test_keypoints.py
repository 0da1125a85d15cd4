"""Tests for keypoint detection and matching."""

import cv2
import numpy as np
import pytest


@pytest.fixture
def textured_image():
    """Smoothed random texture with plenty of corners."""
    rng = np.random.default_rng(0)
    noise = rng.integers(0, 256, size=(240, 320), dtype=np.uint8)
    noise = cv2.resize(noise[::8, ::8], (320, 240), interpolation=cv2.INTER_NEAREST)
    return cv2.cvtColor(noise, cv2.COLOR_GRAY2BGR)


class TestKeypointDetector:
    """Tests for KeypointDetector."""

    def test_detect_orb(self, textured_image):
        from src.data import Keypoint
        from src.perception2d import KeypointDetector

        keypoints, descriptors = KeypointDetector("ORB", max_features=500).detect(textured_image)

        assert 0 < len(keypoints) <= 500
        assert isinstance(keypoints[0], Keypoint)
        assert descriptors.shape == (len(keypoints), 32)

    def test_identical_images_match_exactly(self, textured_image):
        """Matching a frame against itself gives zero-distance matches."""
        from src.perception2d import KeypointDetector

        detector = KeypointDetector("ORB", max_features=500)
        keypoints, descriptors = detector.detect(textured_image)

        matches = detector.match(descriptors, descriptors)

        assert len(matches) > 0
        assert all(m.distance == 0.0 for m in matches)
        assert all(0 <= m.query_idx < len(keypoints) for m in matches)

    def test_matches_sorted_by_distance(self, textured_image):
        from src.perception2d import KeypointDetector

        detector = KeypointDetector("ORB", max_features=500)
        _, desc_prev = detector.detect(textured_image)
        shifted = np.roll(textured_image, 3, axis=1)
        _, desc_curr = detector.detect(shifted)

        distances = [m.distance for m in detector.match(desc_prev, desc_curr)]

        assert distances == sorted(distances)

    def test_blank_image(self):
        from src.perception2d import KeypointDetector

        detector = KeypointDetector("ORB")
        keypoints, descriptors = detector.detect(np.zeros((100, 100), dtype=np.uint8))

        assert keypoints == []
        assert detector.match(descriptors, descriptors) == []

    def test_unknown_detector(self):
        from src.perception2d import KeypointDetector

        with pytest.raises(ValueError):
            KeypointDetector("HARRIS")

    def test_grayscale_passthrough(self):
        from src.perception2d import to_grayscale

        gray = np.zeros((10, 10), dtype=np.uint8)

        assert to_grayscale(gray) is gray
        assert to_grayscale(np.zeros((10, 10, 3), dtype=np.uint8)).shape == (10, 10)
