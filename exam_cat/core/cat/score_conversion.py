"""
Score conversion for Computerized Adaptive Testing.

Converts final theta (ability) estimates to the 0-100 exam score scale and
summarizes the measurement quality of a completed attempt.

Score Transformation:
    score = 100 / (1 + exp(-1.7 * theta)), clamped to [0, 100] and rounded

    1.7 is the usual scaling constant that makes the logistic curve approximate
    the normal ogive. theta = 0 -> 50, theta = -3 -> 1, theta = +3 -> 99, and
    theta = +/-1 -> 85 / 15.

Percentile Rank:
    percentile = Phi(theta) * 100

    Where Phi is the standard normal CDF, treating theta as a standard score.
"""

import logging
import math
from dataclasses import dataclass
from typing import Sequence

from scipy.stats import norm

logger = logging.getLogger(__name__)

SCORE_MIN = 0
SCORE_MAX = 100
LOGISTIC_SCALING = 1.7


@dataclass
class PerformanceSummary:
    """Measurement summary for a CAT attempt.

    Attributes:
        efficiency: Precision gained per administered item
            (1 / SE / items), 0.0 when nothing has been administered.
        precision: Reciprocal of the standard error.
        ability_estimate: Final theta.
        score: Score on the 0-100 scale.
        percentile: Percentile rank (0-100) from the standard normal CDF.
    """

    efficiency: float
    precision: float
    ability_estimate: float
    score: int
    percentile: float


def calculate_score(ability_estimate: float) -> int:
    """
    Convert an ability estimate to an integer score on the 0-100 scale.

    Args:
        ability_estimate: Final theta estimate.

    Returns:
        Integer score in [0, 100], monotonically non-decreasing in theta.

    Examples:
        >>> calculate_score(0.0)
        50
        >>> calculate_score(3.0)
        99
        >>> calculate_score(-3.0)
        1
    """
    exponent = -LOGISTIC_SCALING * ability_estimate
    # exp overflows for very negative abilities; the score is 0 there anyway
    if exponent > 700:
        return SCORE_MIN
    raw_score = SCORE_MAX / (1.0 + math.exp(exponent))
    return int(round(max(SCORE_MIN, min(SCORE_MAX, raw_score))))


def analyze_performance(
    ability_estimate: float,
    standard_error: float,
    responses: Sequence[object],
) -> PerformanceSummary:
    """
    Summarize the measurement quality of an attempt.

    Args:
        ability_estimate: Final theta estimate.
        standard_error: Final SE of the estimate (positive).
        responses: Response history; only its length is used.

    Returns:
        PerformanceSummary with efficiency, precision, score and percentile.
    """
    precision = 1.0 / standard_error
    efficiency = precision / len(responses) if responses else 0.0
    score = calculate_score(ability_estimate)
    percentile = round(float(norm.cdf(ability_estimate)) * 100, 1)

    logger.debug(
        f"analyze_performance: theta={ability_estimate:.3f}, "
        f"SE={standard_error:.3f}, items={len(responses)} -> "
        f"score={score}, percentile={percentile}"
    )

    return PerformanceSummary(
        efficiency=efficiency,
        precision=precision,
        ability_estimate=ability_estimate,
        score=score,
        percentile=percentile,
    )
