"""
MLE (Maximum Likelihood Estimation) ability estimation for Computerized Adaptive Testing.

Implements Newton-Raphson maximization of the 1PL (Rasch) log-likelihood over the
complete response history. The estimate is re-derived from scratch after every
response rather than updated incrementally; the 1PL MLE has no simple sequential
closed form and the history is bounded by the item ceiling of an attempt.

Difficulty scale:
    Items carry a difficulty on a [0, 1] scale which is mapped onto the IRT logit
    scale with a fixed affine convention:

        b = (difficulty - 0.5) * 6

    so 0.0 -> -3 (easiest), 0.5 -> 0 (medium), 1.0 -> +3 (hardest). Values outside
    [0, 1] are extrapolated along the same line.

Model:
    P(theta, b) = 1 / (1 + exp(-(theta - b)))      (discrimination fixed at 1)

Newton-Raphson step:
    L'(theta)  = sum(u_i - P_i)
    L''(theta) = -sum(P_i * (1 - P_i))
    theta <- theta - L'(theta) / L''(theta), clamped to [-3, 3]

Standard error:
    SE = 1 / sqrt(sum(I_i(theta_hat))),  I_i = P_i * (1 - P_i)
"""

import logging
import math
from typing import Iterable, Protocol, Sequence

logger = logging.getLogger(__name__)

# Ability scale bounds. All-correct or all-incorrect histories have no finite
# MLE; clamping after every step keeps the estimate on the reporting scale.
THETA_MIN = -3.0
THETA_MAX = 3.0

# Newton-Raphson configuration
MLE_MAX_ITERATIONS = 20
MLE_TOLERANCE = 0.001
SECOND_DERIVATIVE_EPSILON = 1e-10

# Difficulty-to-logit mapping: b = (difficulty - DIFFICULTY_MIDPOINT) * DIFFICULTY_SCALE
DIFFICULTY_MIDPOINT = 0.5
DIFFICULTY_SCALE = 6.0

# SE reported when no information has been accumulated
DEFAULT_STANDARD_ERROR = 1.0


class ScoredResponse(Protocol):
    """Protocol for a recorded response (difficulty on the [0, 1] scale)."""

    @property
    def difficulty(self) -> float:
        ...

    @property
    def is_correct(self) -> bool:
        ...


def convert_difficulty_to_irt(difficulty: float) -> float:
    """
    Map a [0, 1] difficulty onto the IRT logit scale.

    Args:
        difficulty: Item difficulty on the [0, 1] scale. Not range-checked.

    Returns:
        The IRT difficulty parameter b.

    Examples:
        >>> convert_difficulty_to_irt(0.5)
        0.0
        >>> convert_difficulty_to_irt(1.0)
        3.0
    """
    return (difficulty - DIFFICULTY_MIDPOINT) * DIFFICULTY_SCALE


def probability_correct(ability: float, difficulty: float) -> float:
    """
    Probability of a correct response under the 1PL model.

    Args:
        ability: Ability level (theta).
        difficulty: Item difficulty on the [0, 1] scale.

    Returns:
        P(correct | theta) in (0, 1).
    """
    logit = ability - convert_difficulty_to_irt(difficulty)

    # Numerically stable sigmoid
    if logit >= 0:
        return 1.0 / (1.0 + math.exp(-logit))
    exp_logit = math.exp(logit)
    return exp_logit / (1.0 + exp_logit)


def clamp_theta(theta: float) -> float:
    """Clamp an ability value to [THETA_MIN, THETA_MAX]."""
    return max(THETA_MIN, min(THETA_MAX, theta))


def estimate_ability_mle(
    responses: Sequence[ScoredResponse],
    max_iterations: int = MLE_MAX_ITERATIONS,
    tolerance: float = MLE_TOLERANCE,
) -> float:
    """
    Estimate ability by maximizing the 1PL likelihood with Newton-Raphson.

    Iteration starts at theta = 0 and stops when the step falls below
    ``tolerance``, when the second derivative is too close to zero to divide
    by, or after ``max_iterations`` steps. The estimate is clamped to [-3, 3]
    after every update.

    Args:
        responses: Full response history (objects with ``difficulty`` and
            ``is_correct``).
        max_iterations: Iteration cap.
        tolerance: Convergence threshold on the absolute step size.

    Returns:
        The ability estimate. With no responses, 0.0 is returned without
        iterating.
    """
    if not responses:
        return 0.0

    theta = 0.0

    for iteration in range(max_iterations):
        first_derivative = 0.0
        second_derivative = 0.0

        for response in responses:
            p = probability_correct(theta, response.difficulty)
            u = 1.0 if response.is_correct else 0.0
            first_derivative += u - p
            second_derivative -= p * (1.0 - p)

        if abs(second_derivative) < SECOND_DERIVATIVE_EPSILON:
            logger.debug(
                f"MLE stopped at iteration {iteration}: second derivative "
                f"{second_derivative:.3e} too close to zero (theta={theta:.3f})"
            )
            break

        delta = first_derivative / second_derivative
        theta = clamp_theta(theta - delta)

        if abs(delta) < tolerance:
            break

    return theta


def total_information(responses: Iterable[ScoredResponse], theta: float) -> float:
    """
    Sum of 1PL Fisher information across administered items at ``theta``.

    Args:
        responses: Administered items (objects with ``difficulty``).
        theta: Ability level at which information is evaluated.

    Returns:
        Total test information (non-negative).
    """
    information = 0.0
    for response in responses:
        p = probability_correct(theta, response.difficulty)
        information += p * (1.0 - p)
    return information


def calculate_standard_error(
    responses: Sequence[ScoredResponse],
    theta: float,
) -> float:
    """
    Standard error of the ability estimate: 1 / sqrt(total information).

    Args:
        responses: Full response history.
        theta: Ability estimate at which information is evaluated.

    Returns:
        The standard error, or DEFAULT_STANDARD_ERROR (maximal uncertainty)
        when there are no responses or total information is not positive.
    """
    if not responses:
        return DEFAULT_STANDARD_ERROR

    information = total_information(responses, theta)
    if information <= 0:
        return DEFAULT_STANDARD_ERROR

    return 1.0 / math.sqrt(information)
