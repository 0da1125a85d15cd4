"""Tests for keypoint match filtering."""

import logging

import pytest


def make_matches(distances):
    from src.data import KeypointMatch

    return [KeypointMatch(i, i, d) for i, d in enumerate(distances)]


class TestMatchFilter:
    """Tests for MatchFilter."""

    def test_drop_below_threshold(self):
        """Distances below 0.7 x mean are removed by default."""
        from src.fusion import MatchFilter

        matches = make_matches([10.0, 20.0, 30.0, 40.0])  # mean 25, threshold 17.5

        result = MatchFilter().filter(matches)

        assert [m.distance for m in result.matches] == [20.0, 30.0, 40.0]
        assert result.mean_distance == pytest.approx(25.0)
        assert result.threshold == pytest.approx(17.5)
        assert result.num_removed == 1

    def test_threshold_is_inclusive(self):
        from src.fusion import MatchFilter

        # mean 10, threshold 5
        result = MatchFilter(ratio=0.5).filter(make_matches([5.0, 10.0, 15.0]))

        assert len(result.matches) == 3

    def test_drop_above(self):
        """The reversed direction keeps the low distances."""
        from src.fusion import FilterDirection, MatchFilter

        matches = make_matches([10.0, 20.0, 30.0, 40.0])

        result = MatchFilter(direction=FilterDirection.DROP_ABOVE).filter(matches)

        assert [m.distance for m in result.matches] == [10.0]

    def test_direction_from_string(self):
        from src.fusion import FilterDirection, MatchFilter

        assert MatchFilter(direction="drop_above").direction == FilterDirection.DROP_ABOVE

    def test_invalid_direction(self):
        from src.fusion import MatchFilter

        with pytest.raises(ValueError):
            MatchFilter(direction="sideways")

    def test_negative_ratio(self):
        from src.fusion import MatchFilter

        with pytest.raises(ValueError):
            MatchFilter(ratio=-0.1)

    def test_empty_set(self):
        """An empty set reports EMPTY_MATCH_SET instead of a mean."""
        from src.fusion import MatchFilter, MatchFilterStatus

        result = MatchFilter().filter([])

        assert result.status == MatchFilterStatus.EMPTY_MATCH_SET
        assert result.is_empty
        assert result.mean_distance is None
        assert result.matches == []

    def test_input_not_modified(self):
        from src.fusion import MatchFilter

        matches = make_matches([1.0, 50.0, 60.0])
        original = list(matches)

        MatchFilter().filter(matches)

        assert matches == original

    def test_idempotent_when_remaining_above_new_threshold(self):
        """Refiltering removes nothing when survivors clear the new threshold."""
        from src.fusion import MatchFilter

        match_filter = MatchFilter()
        first = match_filter.filter(make_matches([10.0, 20.0, 30.0]))
        second = match_filter.filter(first.matches)

        # survivors 20, 30: new mean 25, threshold 17.5
        assert [m.distance for m in first.matches] == [20.0, 30.0]
        assert second.matches == first.matches
        assert second.num_removed == 0

    def test_filter_box_replaces_matches(self):
        from src.data import BoundingBox
        from src.fusion import MatchFilter

        box = BoundingBox(0, (0, 0, 10, 10), kpt_matches=make_matches([10.0, 20.0, 30.0, 40.0]))

        result = MatchFilter().filter_box(box)

        assert box.kpt_matches == result.matches
        assert len(box.kpt_matches) == 3

    def test_filter_box_empty(self):
        from src.data import BoundingBox
        from src.fusion import MatchFilter

        box = BoundingBox(0, (0, 0, 10, 10))

        assert MatchFilter().filter_box(box).is_empty
        assert box.kpt_matches == []

    def test_warns_once_for_drop_below(self, caplog):
        """The default direction logs a single warning per filter."""
        from src.fusion import MatchFilter

        match_filter = MatchFilter()
        with caplog.at_level(logging.WARNING):
            match_filter.filter(make_matches([1.0, 2.0]))
            match_filter.filter(make_matches([1.0, 2.0]))

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1

    def test_result_to_dict(self):
        from src.fusion import MatchFilter

        summary = MatchFilter().filter(make_matches([10.0, 20.0, 30.0, 40.0])).to_dict()

        assert summary["status"] == "ok"
        assert summary["num_kept"] == 3
        assert summary["num_removed"] == 1
