"""
Target Inference

Turns one observation into the heating time that, in hindsight, should have
been used:

- Within the deadband of perfect: the recorded time stands.
- Too hot: cut the time by a graduated fraction (a few percent for
  "slightly warm", 25% from satisfaction 85 on the 1-100 scale).
- Too cold: raise it by the same graduated fraction, plus a small capped
  overshoot for very cold ratings, so the cold side climbs faster at
  the top end.

The graduated fraction is a stepped ladder over the normalized error,
so hot and cold corrections of the same severity mirror each other.
A streak of same-side misses in the user's current context amplifies the
correction so a stuck setting is left behind faster.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ml.inference.config import PredictorConfig
from ml.inference.records import HeatingQuery, Observation
from ml.inference.similarity import as_utc, in_context


@dataclass(frozen=True)
class ContextStreak:
    """
    A run of consecutive same-side misses in the query context.

    Attributes:
        side: -1 for cold, +1 for hot
        length: Number of observations in the run
        members: Ids (or identities) of the observations in the run
    """
    side: int
    length: int
    members: frozenset


def correction_fraction(error: float, config: PredictorConfig) -> float:
    """
    Graduated correction for a normalized satisfaction error.

    Uses the fraction of the highest correction_ladder step |error| reaches.
    Errors outside the deadband but short of the first step get
    min_correction.
    """
    magnitude = round(abs(error), 9)
    if magnitude <= config.deadband:
        return 0.0
    fraction = config.min_correction
    for threshold, step_fraction in config.correction_ladder:
        if magnitude < threshold:
            break
        fraction = step_fraction
    return fraction


def cold_overshoot(error: float, config: PredictorConfig) -> float:
    """Extra increase for very cold ratings, capped at overshoot_cap."""
    magnitude = -error
    if magnitude < config.overshoot_threshold:
        return 0.0
    return min(config.overshoot_rate * magnitude, config.overshoot_cap)


def implied_target(obs: Observation, config: PredictorConfig, amplification: float = 1.0) -> float:
    """
    Heating time that obs suggests should have been used.

    Args:
        obs: The historical observation
        config: Engine configuration
        amplification: Multiplier on the base correction (streaks)

    Returns:
        Implied ideal heating time in minutes
    """
    error = config.scale.normalized_error(obs.satisfaction)
    base = correction_fraction(error, config)
    if base == 0.0:
        return obs.heating_time

    adjusted = base * amplification
    if amplification > 1.0:
        adjusted = min(adjusted, max(base, config.max_amplified_correction))

    if error > 0:
        return obs.heating_time * (1.0 - adjusted)
    return obs.heating_time * (1.0 + adjusted + cold_overshoot(error, config))


def context_history(
    query: HeatingQuery, user_observations: Sequence[Observation], config: PredictorConfig
) -> List[Observation]:
    """User observations recorded under the query's conditions, newest first."""
    matching = [
        o for o in user_observations
        if in_context(o, query.duration, query.temperature, config)
    ]
    return sorted(matching, key=lambda o: as_utc(o.occurred_at), reverse=True)


def find_streak(history: Sequence[Observation], config: PredictorConfig) -> Optional[ContextStreak]:
    """
    Longest run of same-side misses at the head of history (newest first).

    Returns None when the newest observation is within the deadband or the
    run is shorter than amplify_min_streak.
    """
    side = 0
    members = []
    for obs in history:
        error = config.scale.normalized_error(obs.satisfaction)
        if abs(error) <= config.deadband:
            break
        current = 1 if error > 0 else -1
        if side == 0:
            side = current
        elif current != side:
            break
        members.append(observation_key(obs))

    if len(members) < config.amplify_min_streak:
        return None
    return ContextStreak(side=side, length=len(members), members=frozenset(members))


def amplification_for(streak: Optional[ContextStreak], config: PredictorConfig) -> float:
    """double for two misses in a row, triple for three or more (amplify_max)"""
    if streak is None:
        return 1.0
    return float(min(streak.length, config.amplify_max))


def streak_amplifications(
    query: HeatingQuery, user_observations: Sequence[Observation], config: PredictorConfig
) -> Dict[object, float]:
    """Map each streak member's identity to its amplification multiplier."""
    streak = find_streak(context_history(query, user_observations, config), config)
    factor = amplification_for(streak, config)
    if streak is None:
        return {}
    return {member: factor for member in streak.members}


def observation_key(obs: Observation) -> object:
    return obs.id if obs.id is not None else obs


def carry_to_query(value: float, obs: Observation, query: HeatingQuery, config: PredictorConfig) -> float:
    """
    Move a heating time recorded under obs's conditions to the query's.

    Uses the default formula's slopes: longer showers need more heating,
    warmer days need less.
    """
    return (
        value
        + config.duration_slope * (query.duration - obs.duration)
        + config.temperature_slope * (query.temperature - obs.temperature)
    )
