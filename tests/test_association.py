"""Tests for LiDAR and keypoint association with regions."""

import numpy as np
import pytest


@pytest.fixture
def calib():
    """Identity calibration: a point (x, y, 1) projects to pixel (x, y)."""
    from src.calibration import CalibrationMatrices

    return CalibrationMatrices()


def make_point(px, py, r=0.5):
    """LiDAR point that projects to (px, py) under the identity calibration."""
    from src.data import LidarPoint

    return LidarPoint(float(px), float(py), 1.0, r)


class TestShrinkRoi:
    """Tests for region shrinking."""

    def test_shrink_values(self):
        """Test symmetric shrink about the center."""
        from src.fusion import shrink_roi

        assert shrink_roi((0, 0, 100, 50), 0.1) == pytest.approx((5.0, 2.5, 90.0, 45.0))

    def test_zero_shrink_is_identity(self):
        from src.fusion import shrink_roi

        assert shrink_roi((10, 20, 30, 40), 0.0) == pytest.approx((10, 20, 30, 40))

    def test_shrink_towards_center(self):
        """Shrink factors approaching 1 collapse the rectangle to its center."""
        from src.fusion import shrink_roi

        x, y, w, h = shrink_roi((0, 0, 100, 50), 0.999999)

        assert x == pytest.approx(50.0, abs=1e-3)
        assert y == pytest.approx(25.0, abs=1e-3)
        assert w == pytest.approx(0.0, abs=1e-3)
        assert h == pytest.approx(0.0, abs=1e-3)

    @pytest.mark.parametrize("factor", [-0.1, 1.0, 1.5])
    def test_invalid_factor(self, factor):
        from src.fusion import shrink_roi

        with pytest.raises(ValueError):
            shrink_roi((0, 0, 10, 10), factor)

    def test_nested_rectangles(self):
        """Larger shrink factors give rectangles nested in smaller ones."""
        from src.fusion import shrink_roi

        roi = (12.0, 7.0, 80.0, 60.0)
        previous = roi
        for factor in [0.0, 0.1, 0.25, 0.5, 0.9]:
            x, y, w, h = shrink_roi(roi, factor)
            px, py, pw, ph = previous
            assert x >= px and y >= py
            assert x + w <= px + pw and y + h <= py + ph
            previous = (x, y, w, h)


class TestRoiContainment:
    """Tests for half-open containment."""

    def test_half_open_bounds(self):
        from src.data import roi_contains

        roi = (0.0, 0.0, 10.0, 10.0)

        assert roi_contains(roi, (0.0, 0.0))
        assert roi_contains(roi, (9.99, 9.99))
        assert not roi_contains(roi, (10.0, 5.0))
        assert not roi_contains(roi, (5.0, 10.0))
        assert not roi_contains(roi, (-0.01, 5.0))


class TestClusterLidarWithRoi:
    """Tests for LiDAR association."""

    def test_points_assigned_to_enclosing_box(self, calib):
        """Test assignment, unenclosed and singular counting."""
        from src.data import BoundingBox, LidarPoint
        from src.fusion import cluster_lidar_with_roi

        boxes = [BoundingBox(0, (0, 0, 10, 10)), BoundingBox(1, (20, 0, 10, 10))]
        points = [
            make_point(5, 5),
            make_point(25, 5),
            make_point(50, 50),
            LidarPoint(5.0, 5.0, 0.0),
        ]

        stats = cluster_lidar_with_roi(boxes, points, 0.0, calib)

        assert boxes[0].lidar_points == [points[0]]
        assert boxes[1].lidar_points == [points[1]]
        assert stats.total == 4
        assert stats.assigned == 2
        assert stats.unenclosed == 1
        assert stats.singular == 1
        assert stats.ambiguous == 0
        assert stats.assigned + stats.dropped == stats.total

    def test_overlap_assigned_to_neither(self, calib):
        """A point inside two regions is dropped; inside one is kept."""
        from src.data import BoundingBox
        from src.fusion import cluster_lidar_with_roi

        boxes = [BoundingBox(0, (0, 0, 10, 10)), BoundingBox(1, (5, 0, 10, 10))]
        only_first = make_point(2, 5)
        both = make_point(7, 5)
        only_second = make_point(12, 5)

        stats = cluster_lidar_with_roi(boxes, [only_first, both, only_second], 0.0, calib)

        assert boxes[0].lidar_points == [only_first]
        assert boxes[1].lidar_points == [only_second]
        assert stats.ambiguous == 1

    def test_overlap_resolved_by_shrinking(self, calib):
        """Shrinking can turn an ambiguous point into an assigned one."""
        from src.data import BoundingBox
        from src.fusion import cluster_lidar_with_roi

        point = make_point(9.5, 50)
        boxes = [BoundingBox(0, (0, 0, 100, 100)), BoundingBox(1, (9, 0, 100, 100))]

        stats = cluster_lidar_with_roi(boxes, [point], 0.1, calib)

        # shrunk: (5, 5, 90, 90) and (14, 5, 90, 90)
        assert boxes[0].lidar_points == [point]
        assert boxes[1].lidar_points == []
        assert stats.assigned == 1

    def test_shrink_margin(self, calib):
        """Points inside the margin removed by shrinking are dropped."""
        from src.data import BoundingBox
        from src.fusion import cluster_lidar_with_roi

        box = BoundingBox(0, (0, 0, 100, 100))
        points = [make_point(3, 50), make_point(5, 50), make_point(94.9, 50), make_point(95, 50)]

        cluster_lidar_with_roi([box], points, 0.1, calib)

        assert box.lidar_points == [points[1], points[2]]

    def test_monotonic_in_shrink_factor(self, calib):
        """Larger shrink factors never assign more points."""
        from src.data import BoundingBox
        from src.fusion import cluster_lidar_with_roi

        rng = np.random.default_rng(42)
        points = [make_point(x, y) for x, y in rng.uniform(-10, 110, size=(300, 2))]

        counts = []
        for factor in [0.0, 0.1, 0.3, 0.6, 0.9]:
            box = BoundingBox(0, (0, 0, 100, 100))
            cluster_lidar_with_roi([box], points, factor, calib)
            counts.append(len(box.lidar_points))

        assert counts == sorted(counts, reverse=True)

    def test_each_point_in_at_most_one_box(self, calib):
        """Test uniqueness over random overlapping regions."""
        from src.data import BoundingBox
        from src.fusion import cluster_lidar_with_roi

        rng = np.random.default_rng(7)
        points = [make_point(x, y) for x, y in rng.uniform(0, 100, size=(200, 2))]
        boxes = [
            BoundingBox(0, (0, 0, 60, 60)),
            BoundingBox(1, (40, 40, 60, 60)),
            BoundingBox(2, (30, 0, 40, 100)),
        ]

        stats = cluster_lidar_with_roi(boxes, points, 0.1, calib)

        assigned = [id(p) for box in boxes for p in box.lidar_points]
        assert len(assigned) == len(set(assigned)) == stats.assigned

    def test_input_not_modified(self, calib):
        """Test that the input point list keeps its order and length."""
        from src.data import BoundingBox
        from src.fusion import cluster_lidar_with_roi

        points = [make_point(50, 50), make_point(200, 200), make_point(10, 90)]
        original = list(points)

        cluster_lidar_with_roi([BoundingBox(0, (0, 0, 100, 100))], points, 0.1, calib)

        assert points == original

    def test_empty_inputs(self, calib):
        from src.data import BoundingBox
        from src.fusion import cluster_lidar_with_roi

        assert cluster_lidar_with_roi([BoundingBox(0, (0, 0, 10, 10))], [], 0.1, calib).total == 0

        stats = cluster_lidar_with_roi([], [make_point(1, 1)], 0.1, calib)
        assert stats.unenclosed == 1

    def test_invalid_shrink_factor(self, calib):
        from src.fusion import cluster_lidar_with_roi

        with pytest.raises(ValueError):
            cluster_lidar_with_roi([], [make_point(1, 1)], 1.0, calib)


class TestClusterKptMatchesWithRoi:
    """Tests for keypoint match association."""

    def test_matches_inside_region(self):
        """Test selection by the current keypoint."""
        from src.data import BoundingBox, Keypoint, KeypointMatch
        from src.fusion import cluster_kpt_matches_with_roi

        kpts_prev = [Keypoint(500, 500), Keypoint(5, 5), Keypoint(5, 5)]
        kpts_curr = [Keypoint(10, 10), Keypoint(150, 10), Keypoint(99, 99)]
        matches = [KeypointMatch(0, 0, 1.0), KeypointMatch(1, 1, 2.0), KeypointMatch(2, 2, 3.0)]
        box = BoundingBox(0, (0, 0, 100, 100))

        attached = cluster_kpt_matches_with_roi(box, kpts_prev, kpts_curr, matches)

        assert attached == [matches[0], matches[2]]
        assert box.kpt_matches == [matches[0], matches[2]]
        assert box.keypoints == [kpts_curr[0], kpts_curr[2]]

    def test_no_shrink_margin(self):
        """Keypoints near the border are kept."""
        from src.data import BoundingBox, Keypoint, KeypointMatch
        from src.fusion import cluster_kpt_matches_with_roi

        kpts = [Keypoint(0.5, 0.5)]
        box = BoundingBox(0, (0, 0, 100, 100))

        attached = cluster_kpt_matches_with_roi(box, kpts, kpts, [KeypointMatch(0, 0)])

        assert len(attached) == 1


class TestRegionAssociator:
    """Tests for RegionAssociator."""

    def test_invalid_shrink_factor(self, calib):
        from src.fusion import RegionAssociator

        with pytest.raises(ValueError):
            RegionAssociator(calib, shrink_factor=1.2)

    def test_associate_lidar(self, calib):
        from src.data import BoundingBox
        from src.fusion import RegionAssociator

        associator = RegionAssociator(calib, shrink_factor=0.1)
        box = BoundingBox(0, (0, 0, 100, 100))

        stats = associator.associate_lidar([box], [make_point(50, 50), make_point(1, 1)])

        assert stats.assigned == 1
        assert stats.to_dict()["dropped"] == 1
        assert len(box.lidar_points) == 1
