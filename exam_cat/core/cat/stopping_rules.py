"""
Stopping rules for Computerized Adaptive Testing (CAT).

Stopping Rules (evaluated in priority order):
    1. Pool exhausted: no unanswered items remain
    2. Maximum items: test stops at max_questions, checked before the minimum
       so the ceiling wins even if min_questions is configured above it
    3. Precision: test stops once min_questions have been administered and
       SE(theta) < precision_threshold

The engine never stops on its own while processing a response; callers consult
these rules before presenting each item.

References:
    - Weiss, D. J., & Kingsbury, G. G. (1984). Application of computerized
      adaptive testing to educational problems. Journal of Educational
      Measurement, 21(4), 361-375.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Stop once SE(theta) drops below this value
PRECISION_THRESHOLD = 0.3

# Items administered before precision stopping is honored
MIN_QUESTIONS = 5

# Hard ceiling on items administered
MAX_QUESTIONS = 30


class StopReason(str, enum.Enum):
    """Why an adaptive attempt stopped administering items."""

    POOL_EXHAUSTED = "pool_exhausted"
    MAX_QUESTIONS = "max_questions"
    PRECISION_REACHED = "precision_reached"


@dataclass
class StoppingDecision:
    """
    Result of evaluating stopping criteria for a CAT attempt.

    Attributes:
        should_stop: Whether the attempt should stop administering items.
        reason: Reason for stopping (if should_stop=True), or None.
        details: Diagnostic information (se, num_items, thresholds, flags).
    """

    should_stop: bool
    reason: Optional[StopReason]
    details: Dict[str, Any]


def check_stopping_criteria(
    se: float,
    num_items: int,
    pool_size: Optional[int] = None,
    precision_threshold: float = PRECISION_THRESHOLD,
    min_items: int = MIN_QUESTIONS,
    max_items: int = MAX_QUESTIONS,
) -> StoppingDecision:
    """
    Evaluate the stopping criteria in priority order.

        1. If pool_size == 0: stop (POOL_EXHAUSTED)
        2. If num_items >= max_items: stop (MAX_QUESTIONS)
        3. If num_items >= min_items and se < precision_threshold:
           stop (PRECISION_REACHED)
        4. Otherwise: continue

    No inputs are validated; misconfigured thresholds simply shift which
    rule fires.

    Args:
        se: Current standard error of the ability estimate.
        num_items: Number of items administered so far.
        pool_size: Number of items still available, or None to skip the
            pool check (e.g. when asking whether to continue without a pool).
        precision_threshold: Target SE for stopping.
        min_items: Minimum items before precision stopping is honored.
        max_items: Maximum items.

    Returns:
        StoppingDecision with should_stop flag, reason, and diagnostic details.
    """
    details: Dict[str, Any] = {
        "se": se,
        "num_items": num_items,
        "pool_size": pool_size,
        "precision_threshold": precision_threshold,
        "min_items_met": num_items >= min_items,
        "at_max_items": num_items >= max_items,
    }

    if pool_size is not None and pool_size <= 0:
        logger.info(
            f"Stopping: item pool exhausted after {num_items} items",
            extra={"stop_reason": StopReason.POOL_EXHAUSTED.value},
        )
        return StoppingDecision(
            should_stop=True, reason=StopReason.POOL_EXHAUSTED, details=details
        )

    if num_items >= max_items:
        logger.info(
            f"Stopping: reached maximum items ({num_items}/{max_items})",
            extra={"stop_reason": StopReason.MAX_QUESTIONS.value},
        )
        return StoppingDecision(
            should_stop=True, reason=StopReason.MAX_QUESTIONS, details=details
        )

    if num_items >= min_items and se < precision_threshold:
        logger.info(
            f"Stopping: precision reached (SE={se:.4f} < {precision_threshold:.4f}) "
            f"after {num_items} items",
            extra={"stop_reason": StopReason.PRECISION_REACHED.value},
        )
        return StoppingDecision(
            should_stop=True, reason=StopReason.PRECISION_REACHED, details=details
        )

    logger.debug(
        f"Continuing: SE={se:.4f} (threshold={precision_threshold:.4f}), "
        f"items={num_items} (min={min_items}, max={max_items})"
    )
    return StoppingDecision(should_stop=False, reason=None, details=details)
