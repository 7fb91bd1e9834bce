"""
Tests for similarity weighting.

Covers distance kernel, recency decay, reliability, frequency dampening,
anchor detection and top-K selection.
"""

import math
from collections import Counter
from datetime import datetime, timedelta, timezone

import pytest

from ml.inference.config import PredictorConfig
from ml.inference.records import HeatingQuery
from ml.inference.similarity import (
    as_utc,
    bucket_counts,
    bucket_key,
    in_context,
    is_anchor,
    reference_time,
    top_neighbors,
    weigh_observations,
)


def _weigh(query, observations, config, is_user=False, counts=None):
    return weigh_observations(
        query,
        observations,
        config,
        is_user=is_user,
        reference=reference_time(observations),
        counts=counts if counts is not None else Counter(),
    )


# ============================================================================
# Reference Time
# ============================================================================


class TestReferenceTime:
    """Test the recency reference instant."""

    def test_newest_observation_is_reference(self, observation_factory):
        obs = [observation_factory(10, 50, day=d) for d in (0, 3, 1)]
        assert reference_time(obs) == obs[1].occurred_at

    def test_empty_snapshot_has_no_reference(self):
        assert reference_time([]) is None

    def test_naive_datetimes_treated_as_utc(self):
        naive = datetime(2024, 1, 1, 12, 0)
        assert as_utc(naive) == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# Weighting
# ============================================================================


class TestWeighObservations:
    """Test combined relevance weights."""

    def test_largest_weight_is_one(self, query, config, observation_factory):
        obs = [
            observation_factory(10, 50, duration=15, day=2),
            observation_factory(10, 50, duration=20, day=1),
        ]
        weights = [w.weight for w in _weigh(query, obs, config)]
        assert max(weights) == pytest.approx(1.0)

    def test_closer_conditions_weigh_more(self, query, config, observation_factory):
        near = observation_factory(10, 50, duration=16, day=0)
        far = observation_factory(10, 50, duration=25, day=0)
        weighted = _weigh(query, [near, far], config)
        assert weighted[0].weight > weighted[1].weight

    def test_recent_observations_weigh_more(self, query, config, observation_factory):
        old = observation_factory(10, 50, day=0)
        new = observation_factory(10, 50, day=5)
        weighted = _weigh(query, [old, new], config)
        # one half-life apart
        assert weighted[0].weight == pytest.approx(0.5 * weighted[1].weight)

    def test_anchor_flagged_and_boosted(self, query, config, observation_factory):
        anchor = observation_factory(10, 50, day=0)
        warm = observation_factory(10, 60, day=0)
        weighted = _weigh(query, [anchor, warm], config)

        assert weighted[0].anchor is True
        assert weighted[1].anchor is False
        assert weighted[1].weight < 0.5 * weighted[0].weight + 1e-9

    def test_unreliable_ratings_never_reach_zero(self, query, config, observation_factory):
        extreme = observation_factory(10, 1, day=0)
        perfect = observation_factory(10, 50, day=0)
        weighted = _weigh(query, [extreme, perfect], config)
        assert 0 < weighted[0].weight < weighted[1].weight

    def test_frequency_dampening(self, query, config, observation_factory):
        crowded = observation_factory(10, 60, duration=14, day=0)
        lonely = observation_factory(10, 60, duration=16, day=0)
        counts = Counter({bucket_key(crowded, config): 4, bucket_key(lonely, config): 1})

        weighted = _weigh(query, [crowded, lonely], config, counts=counts)

        assert weighted[0].weight == pytest.approx(0.5 * weighted[1].weight)

    def test_far_only_source_has_no_usable_weight(self, config, observation_factory):
        query = HeatingQuery("alice", duration=1, temperature=-50)
        far = observation_factory(10, 50, duration=60, temperature=50, day=0)
        weighted = _weigh(query, [far], config)
        assert weighted[0].weight == 0.0
        assert top_neighbors(weighted, config.neighbors) == []

    def test_distant_observations_keep_relative_shape(self, query, config, observation_factory):
        # 5 and 6 sigmas out: tiny raw weights, still within useful range
        nearer = observation_factory(10, 50, duration=35, day=0)
        farther = observation_factory(10, 50, duration=39, day=0)
        weighted = _weigh(query, [nearer, farther], config)
        assert weighted[0].weight == pytest.approx(1.0)
        assert weighted[1].weight == pytest.approx(math.exp(-5.5))

    def test_zero_user_boost_gives_no_usable_weight(self, query, observation_factory):
        config = PredictorConfig(user_boost=0.0)
        obs = [observation_factory(10, 50, day=0)]
        weighted = _weigh(query, obs, config, is_user=True)
        assert all(w.weight == 0.0 for w in weighted)

    def test_empty_source(self, query, config):
        assert _weigh(query, [], config) == []


# ============================================================================
# Helpers
# ============================================================================


class TestContextAndBuckets:
    """Test context radius, anchor test and bucketing."""

    def test_in_context_is_two_sigma(self, config, observation_factory):
        obs = observation_factory(10, 50, duration=15, temperature=22)
        assert in_context(obs, 23, 28, config)
        assert not in_context(obs, 23.5, 22, config)
        assert not in_context(obs, 15, 28.5, config)

    def test_anchor_band(self, config, observation_factory):
        assert is_anchor(observation_factory(10, 52), config)
        assert not is_anchor(observation_factory(10, 53), config)

    def test_bucket_counts(self, config, observation_factory):
        obs = [
            observation_factory(10, 50, duration=15.2, temperature=22.1),
            observation_factory(10, 50, duration=14.9, temperature=21.8),
            observation_factory(10, 50, duration=20, temperature=22),
        ]
        counts = bucket_counts(obs, config)
        assert counts[(15, 22)] == 2
        assert counts[(20, 22)] == 1


class TestTopNeighbors:
    """Test top-K selection."""

    def test_keeps_highest_weights(self, query, config, observation_factory):
        obs = [observation_factory(10, 50, day=d) for d in range(6)]
        weighted = _weigh(query, obs, config)
        top = top_neighbors(weighted, 3)

        assert len(top) == 3
        assert [w.observation.occurred_at for w in top] == [
            obs[5].occurred_at, obs[4].occurred_at, obs[3].occurred_at,
        ]

    def test_drops_zero_weights(self, query, observation_factory):
        config = PredictorConfig(user_boost=0.0)
        weighted = _weigh(query, [observation_factory(10, 50)], config, is_user=True)
        assert top_neighbors(weighted, 25) == []
