"""
Trends Scorer -- decayed engagement score for a single status.

The raw score measures how far observed engagement exceeds a baseline
expectation of one interaction, squared and normalized by that baseline.
It then decays exponentially with the status's age: every `score_halflife`
halves it.

    observed = reblogs + favourites
    raw      = (observed - expected)^2 / expected   (0 below threshold)
    score    = raw * 0.5 ^ (age / halflife)
"""

from datetime import datetime, timedelta

from trends.models import Status
from trends.options import TrendsOptions

EXPECTED_ENGAGEMENT = 1.0


def raw_score(observed: float, threshold: int, expected: float = EXPECTED_ENGAGEMENT) -> float:
    """Undecayed score for `observed` interactions; 0 below threshold."""
    if expected > observed or observed < threshold:
        return 0.0
    return ((observed - expected) ** 2) / expected


def decay_factor(age: timedelta, halflife: timedelta) -> float:
    """Fraction of the raw score left after `age`."""
    return 0.5 ** (age.total_seconds() / halflife.total_seconds())


def compute_score(status: Status, now: datetime, options: TrendsOptions) -> float:
    """
    Score one status as of `now`.

    Args:
        status: Status with engagement counters and creation time.
        now: Reference time (same timezone awareness as created_at).
        options: Engine options supplying threshold and half-life.

    Returns:
        Non-negative decayed score.
    """
    observed = float(status.reblogs_count + status.favourites_count)
    raw = raw_score(observed, options.threshold)
    return raw * decay_factor(now - status.created_at, options.score_halflife)
