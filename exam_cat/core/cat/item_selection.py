"""
Maximum Fisher Information (MFI) item selection for Computerized Adaptive Testing.

Selects the next item from the pool of not-yet-administered items that maximizes
Fisher information at the current ability estimate (theta). For the 1PL model:

    I_i(theta) = P_i(theta) * (1 - P_i(theta))

Where P_i(theta) = 1 / (1 + exp(-(theta - b_i))) and b_i is the item's [0, 1]
difficulty mapped onto the logit scale. Information peaks at P = 0.5, so the
item whose difficulty sits closest to the current estimate is preferred.

Selection is deterministic: the pool is scanned once in order and an item only
replaces the current best when its information is strictly greater, so the
first-encountered item wins ties. Stopping decisions are not made here; see
``stopping_rules``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from exam_cat.core.cat.ability_estimation import probability_correct

logger = logging.getLogger(__name__)


@runtime_checkable
class DifficultyItem(Protocol):
    """Protocol for pool items carrying a difficulty on the [0, 1] scale."""

    @property
    def difficulty(self) -> float:
        ...


@dataclass
class CATNextQuestion:
    """The selected item together with a human-readable justification."""

    question: Any
    reason: str
    information: float


def fisher_information_1pl(ability: float, difficulty: float) -> float:
    """
    Compute Fisher information for a 1PL item at a given ability level.

    I(theta) = P(theta) * (1 - P(theta))

    Args:
        ability: Ability level (theta).
        difficulty: Item difficulty on the [0, 1] scale.

    Returns:
        Fisher information value in (0, 0.25].
    """
    p = probability_correct(ability, difficulty)
    return p * (1.0 - p)


def select_next_question(
    available_questions: Sequence[DifficultyItem],
    ability_estimate: float,
) -> Optional[CATNextQuestion]:
    """
    Select the item with the greatest Fisher information at ``ability_estimate``.

    Args:
        available_questions: Pool of items not yet administered in this
            attempt. Excluding answered items is the caller's responsibility.
        ability_estimate: Current ability estimate.

    Returns:
        CATNextQuestion for the most informative item, or None if the pool is
        empty.
    """
    best_question = None
    max_information = float("-inf")

    for question in available_questions:
        information = fisher_information_1pl(ability_estimate, question.difficulty)
        if information > max_information:
            max_information = information
            best_question = question

    if best_question is None:
        return None

    reason = (
        f"Selected question with difficulty {best_question.difficulty:.2f} "
        f"to maximize information at ability {ability_estimate:.2f}"
    )

    logger.debug(
        f"Item selection: theta={ability_estimate:.3f}, "
        f"eligible={len(available_questions)}, "
        f"selected difficulty={best_question.difficulty:.2f} "
        f"(info={max_information:.4f})",
        extra={
            "ability_estimate": ability_estimate,
            "difficulty": best_question.difficulty,
            "information": max_information,
        },
    )

    return CATNextQuestion(
        question=best_question,
        reason=reason,
        information=max_information,
    )
