"""Tests for the frame-pair TTC pipeline."""

import math

import numpy as np
import pytest


CENTER = np.array([500.0, 500.0])
CAR_OFFSETS = np.array([[-100, -100], [100, -100], [-100, 100], [100, 100]], dtype=float)
SIGN_POINTS = [(820.0, 320.0), (920.0, 680.0)]


@pytest.fixture
def calib():
    """Camera looking along LiDAR x with f=100 and principal point (500, 500)."""
    from src.calibration import CalibrationMatrices

    P_rect = np.array([
        [100.0, 0.0, 500.0, 0.0],
        [0.0, 100.0, 500.0, 0.0],
        [0.0, 0.0, 1.0, 0.0],
    ])
    RT = np.array([
        [0.0, -1.0, 0.0, 0.0],
        [0.0, 0.0, -1.0, 0.0],
        [1.0, 0.0, 0.0, 0.0],
    ])
    return CalibrationMatrices(P_rect=P_rect, RT=RT)


def make_frame(frame_id, distance, scale):
    """
    Frame with a car (box 0) at ``distance`` meters and a static sign (box 1).

    The car's keypoints are spread around the image center by ``scale``;
    the sign has keypoints but no LiDAR returns.
    """
    from src.data import BoundingBox, DataFrame, Keypoint, LidarPoint

    car_kpts = [Keypoint(*(CENTER + scale * offset)) for offset in CAR_OFFSETS]
    sign_kpts = [Keypoint(x, y) for x, y in SIGN_POINTS]

    lidar = [
        LidarPoint(distance, y, z, 0.5)
        for y in (-0.5, 0.0, 0.5)
        for z in (-0.3, 0.0, 0.3)
    ]

    return DataFrame(
        frame_id=frame_id,
        keypoints=car_kpts + sign_kpts,
        lidar_points=lidar,
        bounding_boxes=[
            BoundingBox(0, (300, 300, 400, 400), class_id=0),
            BoundingBox(1, (800, 300, 150, 400), class_id=7),
        ],
    )


@pytest.fixture
def frames():
    """Previous frame at 8.0 m and current frame at 7.5 m, with matches."""
    from src.data import KeypointMatch

    prev = make_frame("000000", 8.0, 1.0)
    curr = make_frame("000001", 7.5, 8.0 / 7.5)
    curr.kpt_matches = [KeypointMatch(i, i, 30.0) for i in range(len(curr.keypoints))]
    return prev, curr


class TestTTCPipeline:
    """Tests for TTCPipeline."""

    def test_prepare_frame_assigns_lidar(self, calib, frames):
        from src.fusion import TTCPipeline

        prev, _ = frames
        stats = TTCPipeline(calib).prepare_frame(prev)

        assert stats.assigned == 9
        assert len(prev.get_box(0).lidar_points) == 9
        assert prev.get_box(1).lidar_points == []

    def test_prepare_frame_twice_keeps_assignment(self, calib, frames):
        from src.fusion import TTCPipeline

        prev, _ = frames
        pipeline = TTCPipeline(calib)
        pipeline.prepare_frame(prev)
        pipeline.prepare_frame(prev)

        assert len(prev.get_box(0).lidar_points) == 9
        assert prev.get_box(1).lidar_points == []

    def test_lidar_and_camera_agree(self, calib, frames):
        """A car closing from 8.0 m to 7.5 m at 10 Hz gives 1.5 s on both sensors."""
        from src.fusion import TTCPipeline

        prev, curr = frames
        pipeline = TTCPipeline(calib, frame_rate=10.0)
        pipeline.prepare_frame(prev)
        pipeline.prepare_frame(curr)

        result = pipeline.process_pair(prev, curr)
        car = next(obj for obj in result.objects if obj.curr_box_id == 0)

        assert car.ttc_lidar.value == pytest.approx(1.5)
        assert car.ttc_camera.value == pytest.approx(1.5)
        assert car.both_valid
        assert car.num_lidar_prev == 9
        assert car.num_lidar_curr == 9

    def test_bb_matches_stored_on_current_frame(self, calib, frames):
        from src.fusion import TTCPipeline

        prev, curr = frames
        pipeline = TTCPipeline(calib)
        pipeline.prepare_frame(prev)
        pipeline.prepare_frame(curr)

        result = pipeline.process_pair(prev, curr)

        assert result.bb_matches == {0: 0, 1: 1}
        assert curr.bb_matches == result.bb_matches

    def test_failed_region_does_not_stop_others(self, calib, frames):
        """The sign has no LiDAR and no scale change; the car is unaffected."""
        from src.fusion import TTCPipeline, TTCStatus

        prev, curr = frames
        pipeline = TTCPipeline(calib)
        pipeline.prepare_frame(prev)
        pipeline.prepare_frame(curr)

        result = pipeline.process_pair(prev, curr)
        sign = next(obj for obj in result.objects if obj.curr_box_id == 1)
        car = next(obj for obj in result.objects if obj.curr_box_id == 0)

        assert sign.ttc_lidar.status == TTCStatus.EMPTY_MATCH_SET
        assert sign.ttc_camera.status == TTCStatus.DEGENERATE
        assert math.isnan(sign.ttc_lidar.value)
        assert car.both_valid

    def test_region_without_matches(self, calib, frames):
        """No correspondences inside a region yields an empty camera estimate."""
        from src.data import KeypointMatch
        from src.fusion import TTCPipeline, TTCStatus

        prev, curr = frames
        pipeline = TTCPipeline(calib)
        pipeline.prepare_frame(prev)
        pipeline.prepare_frame(curr)
        # Only the car votes, so only the car is matched; its matches are then
        # restricted to a single one, which leaves no keypoint pair.
        curr.kpt_matches = [KeypointMatch(0, 0, 30.0)]

        result = pipeline.process_pair(prev, curr)

        assert result.bb_matches == {0: 0}
        assert result.objects[0].ttc_camera.status == TTCStatus.EMPTY_MATCH_SET
        assert result.objects[0].ttc_lidar.is_valid

    def test_repeated_processing_is_stable(self, calib, frames):
        """Processing the same pair twice does not accumulate matches."""
        from src.fusion import TTCPipeline

        prev, curr = frames
        pipeline = TTCPipeline(calib)
        pipeline.prepare_frame(prev)
        pipeline.prepare_frame(curr)

        pipeline.process_pair(prev, curr)
        first = len(curr.get_box(0).kpt_matches)
        pipeline.process_pair(prev, curr)

        assert len(curr.get_box(0).kpt_matches) == first == 4

    def test_to_dict(self, calib, frames):
        from src.fusion import TTCPipeline

        prev, curr = frames
        pipeline = TTCPipeline(calib)
        pipeline.prepare_frame(prev)
        pipeline.prepare_frame(curr)

        summary = pipeline.process_pair(prev, curr).to_dict()

        assert summary["bb_matches"] == {0: 0, 1: 1}
        assert summary["objects"][0]["ttc_lidar"]["status"] == "valid"
        assert summary["objects"][0]["match_filter"]["num_kept"] == 4

    def test_invalid_frame_rate(self, calib):
        from src.fusion import TTCPipeline

        with pytest.raises(ValueError):
            TTCPipeline(calib, frame_rate=0.0)

    def test_invalid_shrink_factor(self, calib):
        from src.fusion import TTCPipeline

        with pytest.raises(ValueError):
            TTCPipeline(calib, shrink_factor=1.0)


class TestPipelineFromConfig:
    """Tests for configuration-driven construction."""

    def test_defaults(self, calib):
        from src.fusion import FilterDirection, TTCPipeline
        from src.utils import load_config

        pipeline = TTCPipeline.from_config(calib, load_config())

        assert pipeline.frame_rate == 10.0
        assert pipeline.associator.shrink_factor == pytest.approx(0.10)
        assert pipeline.match_filter.ratio == pytest.approx(0.7)
        assert pipeline.match_filter.direction == FilterDirection.DROP_BELOW

    def test_overrides(self, calib):
        from src.fusion import FilterDirection, TTCPipeline
        from src.utils import load_config

        config = load_config(overrides={
            "ttc": {"frame_rate": 20.0},
            "match_filter": {"direction": "drop_above"},
        })

        pipeline = TTCPipeline.from_config(calib, config)

        assert pipeline.frame_rate == 20.0
        assert pipeline.camera_min_dist == 100.0
        assert pipeline.match_filter.direction == FilterDirection.DROP_ABOVE

    def test_degenerate_eps_reaches_estimators(self, calib, frames):
        """A 0.5 m closing distance is degenerate under a 0.5 tolerance."""
        from src.fusion import TTCPipeline, TTCStatus
        from src.utils import load_config

        config = load_config(overrides={"ttc": {"degenerate_eps": 0.5}})
        pipeline = TTCPipeline.from_config(calib, config)
        prev, curr = frames
        pipeline.prepare_frame(prev)
        pipeline.prepare_frame(curr)

        result = pipeline.process_pair(prev, curr)
        car = next(obj for obj in result.objects if obj.curr_box_id == 0)

        assert pipeline.degenerate_eps == 0.5
        assert car.ttc_lidar.status == TTCStatus.DEGENERATE
        assert car.ttc_camera.status == TTCStatus.DEGENERATE
