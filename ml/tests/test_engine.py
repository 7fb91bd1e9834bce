"""
Tests for the heating-time engine as a whole.

Covers validation, cold start, bounds, monotonicity, anchor pull,
idempotence, the stuck-pattern path and the reference scenarios.
"""

from datetime import timedelta

import pytest

from ml.inference.blender import default_heating_time
from ml.inference.config import PredictorConfig
from ml.inference.engine import HeatingTimeEngine, validate_query
from ml.inference.errors import QueryValidationError
from ml.inference.records import HeatingQuery, PredictionSource


@pytest.fixture
def engine(config):
    return HeatingTimeEngine(config)


@pytest.fixture
def consistent_pool(observation_factory):
    """Perfectly rated history where heating follows 6 + 0.5d - 0.2t."""
    pool = []
    i = 0
    for duration in (5, 10, 15, 20, 25, 30, 35, 40):
        for temperature in (-5, 0, 5, 10, 15, 20, 25, 30):
            pool.append(observation_factory(
                6 + 0.5 * duration - 0.2 * temperature, 50,
                owner=f"user-{i % 7}", duration=duration, temperature=temperature,
                day=(i % 10) / 2, id=f"p-{i}",
            ))
            i += 1
    return pool


# ============================================================================
# Validation
# ============================================================================


class TestValidateQuery:
    """Test query validation."""

    @pytest.mark.parametrize("duration", [0, 0.5, 60.5, -3])
    def test_duration_out_of_range(self, config, duration):
        with pytest.raises(QueryValidationError) as exc_info:
            validate_query(HeatingQuery("alice", duration, 20), config)
        assert exc_info.value.field == "duration"

    @pytest.mark.parametrize("temperature", [-51, 50.5])
    def test_temperature_out_of_range(self, config, temperature):
        with pytest.raises(QueryValidationError) as exc_info:
            validate_query(HeatingQuery("alice", 15, temperature), config)
        assert exc_info.value.field == "temperature"

    def test_empty_owner(self, config):
        with pytest.raises(QueryValidationError) as exc_info:
            validate_query(HeatingQuery("  ", 15, 20), config)
        assert exc_info.value.field == "owner"

    def test_bounds_inclusive(self, config):
        validate_query(HeatingQuery("alice", 1, -50), config)
        validate_query(HeatingQuery("alice", 60, 50), config)

    def test_engine_validates(self, engine):
        with pytest.raises(ValueError):
            engine.estimate(HeatingQuery("alice", 0, 20), [], [])


# ============================================================================
# Cold Start & Fallbacks
# ============================================================================


class TestColdStart:
    """Test the default formula path."""

    def test_empty_history_returns_formula_exactly(self, engine, query, config):
        prediction = engine.estimate(query, [], [])

        expected = default_heating_time(15, 22, config)
        assert prediction.heating_time == expected
        assert prediction.raw_value == expected
        assert prediction.heating_time == pytest.approx(10.3)
        assert prediction.source == PredictionSource.DEFAULT
        assert prediction.user_weight == 0.0

    def test_degenerate_weights_fall_back(self, query, observation_factory):
        engine = HeatingTimeEngine(PredictorConfig(user_boost=0.0))
        prediction = engine.estimate(query, [observation_factory(30, 50)], [])
        assert prediction.source == PredictionSource.DEFAULT
        assert prediction.heating_time == pytest.approx(10.3)

    def test_far_only_history_falls_back(self, engine, observation_factory):
        far = observation_factory(100, 50, owner="bob", duration=60, temperature=-50)
        prediction = engine.estimate(HeatingQuery("alice", 5, 40), [], [far])

        assert prediction.source == PredictionSource.DEFAULT
        assert prediction.raw_value == pytest.approx(5.5)
        assert prediction.heating_time == prediction.raw_value

    def test_global_only(self, engine, query, global_pool):
        prediction = engine.estimate(query, [], global_pool)
        assert prediction.source == PredictionSource.GLOBAL
        assert prediction.user_weight == 0.0
        assert prediction.neighbors == len(global_pool)

    def test_foreign_observations_in_user_list_ignored(self, engine, query, observation_factory):
        prediction = engine.estimate(query, [observation_factory(30, 50, owner="bob")], [])
        assert prediction.source == PredictionSource.DEFAULT


# ============================================================================
# Reference Scenarios
# ============================================================================


class TestScenarios:
    """Test documented end-to-end scenarios."""

    def test_converging_owner(self, engine, query, series_factory):
        history = series_factory([10, 10, 11], [45, 46, 50])
        prediction = engine.estimate(query, history, [])

        assert 10 <= prediction.heating_time <= 11
        assert 10 <= prediction.raw_value <= 11
        assert prediction.source == PredictionSource.USER

    def test_too_hot_predicts_less(self, engine, query, observation_factory):
        prediction = engine.estimate(query, [observation_factory(20, 90)], [])
        assert prediction.heating_time < 20
        assert prediction.raw_value == pytest.approx(15.0)
        assert prediction.heating_time == 15

    def test_too_cold_predicts_more(self, engine, query, observation_factory):
        prediction = engine.estimate(query, [observation_factory(20, 10)], [])
        assert prediction.heating_time > 20

    def test_anchor_pull(self, engine, query, observation_factory):
        history = [
            observation_factory(18, 20, day=0),
            observation_factory(20, 30, day=1),
            observation_factory(16, 25, day=2),
            observation_factory(12, 50, day=3),
        ]
        unweighted = sum(o.heating_time for o in history) / len(history)
        prediction = engine.estimate(query, history, [])

        assert abs(prediction.raw_value - 12) < abs(unweighted - 12)
        assert abs(prediction.heating_time - 12) < abs(unweighted - 12)

    def test_blended_sources(self, engine, query, observation_factory, global_pool):
        prediction = engine.estimate(query, [observation_factory(11, 50)], global_pool)
        assert prediction.source == PredictionSource.BLENDED
        assert 0.0 < prediction.user_weight < 1.0
        assert prediction.uncertainty is not None


# ============================================================================
# Properties
# ============================================================================


class TestProperties:
    """Test engine-wide invariants."""

    def test_bounds_hold(self, engine, global_pool, series_factory, observation_factory):
        history = series_factory([3, 3, 3], [5, 10, 5]) + [
            observation_factory(h, s, duration=55, temperature=-40, day=d)
            for d, (h, s) in enumerate([(110, 95), (115, 99), (118, 98)])
        ]
        for duration in (1, 10, 30, 60):
            for temperature in (-50, -10, 0, 25, 50):
                query = HeatingQuery("alice", duration, temperature)
                prediction = engine.estimate(query, history, global_pool)
                assert 5 <= prediction.heating_time <= 120
                assert 5 <= prediction.raw_value <= 120

    def test_monotonic_in_duration(self, engine, consistent_pool):
        for temperature in (0, 12, 24):
            values = [
                engine.estimate(HeatingQuery("alice", d, temperature), [], consistent_pool)
                for d in range(5, 41, 3)
            ]
            for before, after in zip(values, values[1:]):
                assert after.raw_value >= before.raw_value - 0.5
                assert after.heating_time >= before.heating_time - 0.5

    def test_monotonic_in_temperature(self, engine, consistent_pool):
        for duration in (8, 20, 33):
            values = [
                engine.estimate(HeatingQuery("alice", duration, t), [], consistent_pool)
                for t in range(-5, 31, 3)
            ]
            for before, after in zip(values, values[1:]):
                assert after.raw_value <= before.raw_value + 0.5
                assert after.heating_time <= before.heating_time + 0.5

    def test_step_clamp_fades_without_a_cliff(self, engine, observation_factory):
        """Owner history at 40 min against a global pool at 10 min"""
        history = [observation_factory(40, 50, duration=15, temperature=20)]
        pool = [
            observation_factory(10, 50, owner=f"user-{i}", duration=15, temperature=20, id=f"g-{i}")
            for i in range(10)
        ]
        values = [
            engine.estimate(HeatingQuery("alice", d, 20), history, pool)
            for d in range(15, 27)
        ]

        # held at the 35% step cap under the owner's own conditions
        assert values[0].raw_value == pytest.approx(26.0)
        # owner influence fades out gradually, never in one jump
        for before, after in zip(values, values[1:]):
            assert after.raw_value >= before.raw_value - 2.5
            assert after.heating_time >= before.heating_time - 3.5
        assert values[-1].raw_value < 14.5

    def test_idempotent(self, engine, query, series_factory, global_pool):
        history = series_factory([10, 12, 11, 14], [40, 60, 45, 52])
        first = engine.estimate(query, history, global_pool)
        second = engine.estimate(query, list(history), list(global_pool))
        assert first == second

    def test_uniform_time_shift_cancels(self, engine, query, series_factory, global_pool):
        history = series_factory([10, 12, 11, 14], [40, 60, 45, 52])
        newest = max(o.occurred_at for o in history + global_pool)

        implicit = engine.estimate(query, history, global_pool)
        later = engine.estimate(query, history, global_pool, now=newest + timedelta(days=10))

        assert later.raw_value == pytest.approx(implicit.raw_value)
        assert later.heating_time == pytest.approx(implicit.heating_time)


# ============================================================================
# Strategic Override
# ============================================================================


class TestStrategicOverridePath:
    """Test that a stuck pattern bypasses the blender and step clamp."""

    def test_stuck_cold_owner_jumps(self, engine, query, series_factory, global_pool):
        history = series_factory([10, 10, 10, 10], [20, 25, 30, 20])
        prediction = engine.estimate(query, history, global_pool)

        assert prediction.source == PredictionSource.STRATEGIC_OVERRIDE
        # beyond the 35% step cap from 10
        assert prediction.raw_value == pytest.approx(15.0)
        assert prediction.heating_time == 15

    def test_override_still_clamped_absolutely(self, engine, query, series_factory):
        history = series_factory([100, 100, 100], [10, 10, 10])
        prediction = engine.estimate(query, history, [])
        assert prediction.source == PredictionSource.STRATEGIC_OVERRIDE
        assert prediction.heating_time == 120
