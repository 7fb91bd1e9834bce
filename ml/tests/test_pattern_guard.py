"""
Tests for stuck-pattern detection.
"""

import pytest

from ml.inference.pattern_guard import StrategicOverride, detect_stuck_pattern


@pytest.fixture
def window(series_factory):
    """Newest-first window of observations at heating 10 by default."""
    def _window(satisfactions, heating_times=None):
        heating_times = heating_times or [10.0] * len(satisfactions)
        return list(reversed(series_factory(heating_times, satisfactions)))
    return _window


class TestDetectStuckPattern:
    """Test the stuck-pattern decision procedure."""

    def test_very_cold_jumps_fifty_percent(self, config, window):
        override = detect_stuck_pattern(window([20, 25, 30, 20]), config)

        assert isinstance(override, StrategicOverride)
        assert override.jump == pytest.approx(0.5)
        assert override.heating_time == pytest.approx(15.0)
        assert override.direction == "increase"
        assert override.window == 4

    def test_moderately_cold_jumps_thirty_percent(self, config, window):
        override = detect_stuck_pattern(window([35, 40, 35, 38]), config)
        assert override.jump == pytest.approx(0.3)
        assert override.heating_time == pytest.approx(13.0)

    def test_very_hot_cuts_quarter(self, config, window):
        override = detect_stuck_pattern(window([80, 80, 85, 90]), config)
        assert override.jump == pytest.approx(-0.25)
        assert override.heating_time == pytest.approx(7.5)
        assert override.direction == "decrease"

    def test_moderately_hot_cuts_fifteen_percent(self, config, window):
        override = detect_stuck_pattern(window([60, 65, 60, 62]), config)
        assert override.heating_time == pytest.approx(8.5)

    def test_three_observations_suffice(self, config, window):
        assert detect_stuck_pattern(window([20, 20, 20]), config) is not None

    def test_too_few_observations(self, config, window):
        assert detect_stuck_pattern(window([20, 20]), config) is None

    def test_scattered_heating_times(self, config, window):
        recent = window([20, 20, 20, 20], heating_times=[10, 20, 10, 20])
        assert detect_stuck_pattern(recent, config) is None

    def test_mixed_sides(self, config, window):
        assert detect_stuck_pattern(window([20, 80, 20, 20]), config) is None

    def test_anchor_in_window_blocks_override(self, config, window):
        assert detect_stuck_pattern(window([20, 20, 20, 50]), config) is None

    def test_mostly_mild_feedback(self, config, window):
        assert detect_stuck_pattern(window([20, 20, 47, 46]), config) is None

    def test_only_latest_window_inspected(self, config, window):
        # oldest of five is an anchor, outside the four-observation window
        recent = window([50, 20, 25, 30, 20])
        override = detect_stuck_pattern(recent, config)
        assert override is not None
        assert override.window == 4
