"""
CATEngine: Orchestrator for adaptive exam attempts.

Combines ability estimation (MLE), item selection (maximum Fisher information),
stopping rules and score conversion behind one interface consumed by the exam
attempt workflow. The engine is stateless between calls: all state lives in the
CATState value the caller stores with the attempt, and every update returns a
new CATState instead of mutating the one passed in.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from exam_cat.core.cat.ability_estimation import (
    DEFAULT_STANDARD_ERROR,
    calculate_standard_error,
    estimate_ability_mle,
)
from exam_cat.core.cat.item_selection import (
    CATNextQuestion,
    DifficultyItem,
    select_next_question,
)
from exam_cat.core.cat.score_conversion import (
    PerformanceSummary,
    analyze_performance,
    calculate_score,
)
from exam_cat.core.cat.stopping_rules import (
    MAX_QUESTIONS,
    MIN_QUESTIONS,
    PRECISION_THRESHOLD,
    StoppingDecision,
    StopReason,
    check_stopping_criteria,
)
from exam_cat.core.config import settings as app_settings
from exam_cat.schemas.cat import CATSettingsSchema, CATStateSchema

logger = logging.getLogger(__name__)

# Starting theta for attempts initialized without exam settings
DEFAULT_INITIAL_ABILITY = 0.0


class CATStateError(ValueError):
    """Raised when a stored CAT state or settings payload cannot be loaded."""


@dataclass(frozen=True)
class CATSettings:
    """Adaptive-testing settings for one exam (immutable per attempt)."""

    initial_ability: float = DEFAULT_INITIAL_ABILITY
    precision_threshold: float = PRECISION_THRESHOLD
    min_questions: int = MIN_QUESTIONS
    max_questions: int = MAX_QUESTIONS

    @classmethod
    def from_config(cls) -> "CATSettings":
        """Build settings from the CAT_* environment configuration."""
        return cls(
            initial_ability=app_settings.CAT_INITIAL_ABILITY,
            precision_threshold=app_settings.CAT_PRECISION_THRESHOLD,
            min_questions=app_settings.CAT_MIN_QUESTIONS,
            max_questions=app_settings.CAT_MAX_QUESTIONS,
        )


@dataclass(frozen=True)
class CATResponse:
    """Single recorded response during an adaptive attempt.

    Immutable: states returned by update_ability share these entries.
    """

    question_id: str
    difficulty: float  # [0, 1] scale
    is_correct: bool


@dataclass
class CATState:
    """Adaptive-testing state of one exam attempt.

    Invariant: len(responses) == questions_administered.
    """

    ability_estimate: float
    standard_error: float
    questions_administered: int
    responses: List[CATResponse] = field(default_factory=list)


class CATEngine:
    """
    Computerized Adaptive Testing engine (1PL IRT).

    Manages:
    - State initialization with the exam's initial ability
    - Response recording and MLE re-estimation over the full history
    - Maximum-information item selection
    - Stopping criteria (pool exhausted, item ceiling, precision)
    - Final score conversion and performance summary
    """

    def __init__(self, default_settings: Optional[CATSettings] = None):
        """Initialize the engine with fallback settings (from config by default)."""
        self.default_settings = default_settings or CATSettings.from_config()

    def _resolve_settings(self, settings: Optional[CATSettings]) -> CATSettings:
        return settings if settings is not None else self.default_settings

    def initialize_state(self, settings: Optional[CATSettings] = None) -> CATState:
        """
        Create a fresh CATState for a new attempt.

        Only ``initial_ability`` is consulted from the settings. Without
        settings the attempt starts at theta = 0; engine defaults are not used.

        Args:
            settings: Optional exam settings

        Returns:
            CATState with the initial ability, SE of 1.0 and no responses
        """
        initial_ability = (
            settings.initial_ability if settings is not None else DEFAULT_INITIAL_ABILITY
        )
        state = CATState(
            ability_estimate=initial_ability,
            standard_error=DEFAULT_STANDARD_ERROR,
            questions_administered=0,
            responses=[],
        )
        logger.debug(
            f"Initialized CAT state with ability={state.ability_estimate:.3f}",
            extra={"ability_estimate": state.ability_estimate},
        )
        return state

    def update_ability(
        self,
        state: CATState,
        difficulty: float,
        is_correct: bool,
        question_id: Optional[str] = None,
    ) -> CATState:
        """
        Record a response and re-estimate ability from the full history.

        The input state is not modified; the returned state is authoritative.

        Args:
            state: Current state of the attempt
            difficulty: Difficulty of the answered item ([0, 1] scale, not
                range-checked)
            is_correct: Whether the response was correct
            question_id: Optional identifier of the answered item. Defaults to
                an ordinal label ``q_<n>``.

        Returns:
            New CATState with the response appended and ability/SE updated
        """
        if question_id is None:
            question_id = f"q_{state.questions_administered}"

        responses = list(state.responses)
        responses.append(
            CATResponse(
                question_id=question_id,
                difficulty=difficulty,
                is_correct=is_correct,
            )
        )

        ability_estimate = estimate_ability_mle(responses)
        standard_error = calculate_standard_error(responses, ability_estimate)

        new_state = CATState(
            ability_estimate=ability_estimate,
            standard_error=standard_error,
            questions_administered=state.questions_administered + 1,
            responses=responses,
        )

        logger.debug(
            f"Response #{new_state.questions_administered} "
            f"({question_id}, difficulty={difficulty:.2f}, correct={is_correct}) -> "
            f"theta={ability_estimate:.3f}, SE={standard_error:.3f}",
            extra={
                "ability_estimate": ability_estimate,
                "standard_error": standard_error,
                "questions_administered": new_state.questions_administered,
            },
        )

        return new_state

    def evaluate_stopping(
        self,
        state: CATState,
        available_questions: Optional[Sequence[Any]] = None,
        settings: Optional[CATSettings] = None,
    ) -> StoppingDecision:
        """
        Evaluate the stopping rules for the attempt.

        Args:
            state: Current state of the attempt
            available_questions: Remaining pool, or None to ignore pool size
            settings: Optional exam settings (engine defaults if omitted)

        Returns:
            StoppingDecision with the reason and diagnostics
        """
        resolved = self._resolve_settings(settings)
        return check_stopping_criteria(
            se=state.standard_error,
            num_items=state.questions_administered,
            pool_size=(
                len(available_questions) if available_questions is not None else None
            ),
            precision_threshold=resolved.precision_threshold,
            min_items=resolved.min_questions,
            max_items=resolved.max_questions,
        )

    def stop_reason(
        self,
        state: CATState,
        available_questions: Optional[Sequence[Any]] = None,
        settings: Optional[CATSettings] = None,
    ) -> Optional[StopReason]:
        """Return why the attempt should stop, or None if it should continue."""
        return self.evaluate_stopping(state, available_questions, settings).reason

    def select_next_question(
        self,
        state: CATState,
        available_questions: Sequence[DifficultyItem],
        settings: Optional[CATSettings] = None,
    ) -> Optional[CATNextQuestion]:
        """
        Select the next item to present, or None to stop administering items.

        Stopping rules are checked first (pool exhausted, item ceiling,
        precision); otherwise the most informative item at the current
        ability estimate is returned. Pure: the state is not modified.

        Args:
            state: Current state of the attempt
            available_questions: Items not yet administered in this attempt
            settings: Optional exam settings (engine defaults if omitted)

        Returns:
            CATNextQuestion with the item and the reason it was chosen, or None
        """
        decision = self.evaluate_stopping(state, available_questions, settings)
        if decision.should_stop:
            return None

        return select_next_question(available_questions, state.ability_estimate)

    def should_continue(
        self,
        state: CATState,
        settings: Optional[CATSettings] = None,
    ) -> bool:
        """
        Whether more items should be administered, independent of any pool.

        Uses the same precedence as ``select_next_question``: the item ceiling
        is checked before the minimum-items floor.
        """
        return not self.evaluate_stopping(state, None, settings).should_stop

    def calculate_score(self, ability_estimate: float) -> int:
        """Convert a final ability estimate to the 0-100 score scale."""
        return calculate_score(ability_estimate)

    def analyze_performance(self, state: CATState) -> PerformanceSummary:
        """Summarize measurement efficiency, precision and score for an attempt."""
        return analyze_performance(
            ability_estimate=state.ability_estimate,
            standard_error=state.standard_error,
            responses=state.responses,
        )


def serialize_state(state: CATState) -> Dict[str, Any]:
    """
    Serialize a CATState into a JSON-compatible dict.

    Args:
        state: The state to serialize

    Returns:
        Dictionary suitable for storage as the attempt's cat_state blob
    """
    return CATStateSchema.model_validate(state, from_attributes=True).model_dump()


def deserialize_state(data: Dict[str, Any]) -> CATState:
    """
    Load a CATState from its stored JSON representation.

    Args:
        data: Dictionary previously produced by ``serialize_state``

    Returns:
        The reconstructed CATState

    Raises:
        CATStateError: If the payload is malformed or the response history
            does not match questions_administered.
    """
    try:
        schema = CATStateSchema.model_validate(data)
    except ValidationError as e:
        raise CATStateError(f"Invalid CAT state payload: {e}") from e

    if len(schema.responses) != schema.questions_administered:
        raise CATStateError(
            f"CAT state has {len(schema.responses)} responses but "
            f"questions_administered={schema.questions_administered}"
        )

    return CATState(
        ability_estimate=schema.ability_estimate,
        standard_error=schema.standard_error,
        questions_administered=schema.questions_administered,
        responses=[
            CATResponse(
                question_id=r.question_id,
                difficulty=r.difficulty,
                is_correct=r.is_correct,
            )
            for r in schema.responses
        ],
    )


def settings_from_dict(
    data: Optional[Dict[str, Any]],
    defaults: Optional[CATSettings] = None,
) -> CATSettings:
    """
    Build CATSettings from an exam's stored cat_settings.

    Missing or null fields fall back to ``defaults`` (config defaults if
    omitted).

    Args:
        data: Stored settings dictionary, or None
        defaults: Fallback settings

    Returns:
        CATSettings

    Raises:
        CATStateError: If a provided value is out of range.
    """
    base = defaults or CATSettings.from_config()
    if not data:
        return base

    try:
        schema = CATSettingsSchema.model_validate(data)
    except ValidationError as e:
        raise CATStateError(f"Invalid CAT settings payload: {e}") from e

    overrides = schema.model_dump(exclude_none=True)
    return CATSettings(
        initial_ability=overrides.get("initial_ability", base.initial_ability),
        precision_threshold=overrides.get(
            "precision_threshold", base.precision_threshold
        ),
        min_questions=overrides.get("min_questions", base.min_questions),
        max_questions=overrides.get("max_questions", base.max_questions),
    )


cat_engine = CATEngine()
