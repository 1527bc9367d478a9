"""
CAT (Computerized Adaptive Testing) engine for exam attempts.

This module provides 1PL IRT ability estimation, item selection, stopping
rules and score conversion for adaptive exams.
"""

from .ability_estimation import (
    calculate_standard_error,
    convert_difficulty_to_irt,
    estimate_ability_mle,
    probability_correct,
)
from .engine import (
    CATEngine,
    CATResponse,
    CATSettings,
    CATState,
    CATStateError,
    cat_engine,
    deserialize_state,
    serialize_state,
    settings_from_dict,
)
from .item_selection import (
    CATNextQuestion,
    DifficultyItem,
    fisher_information_1pl,
    select_next_question,
)
from .score_conversion import (
    PerformanceSummary,
    analyze_performance,
    calculate_score,
)
from .stopping_rules import (
    StoppingDecision,
    StopReason,
    check_stopping_criteria,
)

__all__ = [
    "CATEngine",
    "CATSettings",
    "CATState",
    "CATResponse",
    "CATStateError",
    "cat_engine",
    "serialize_state",
    "deserialize_state",
    "settings_from_dict",
    "CATNextQuestion",
    "DifficultyItem",
    "fisher_information_1pl",
    "select_next_question",
    "calculate_standard_error",
    "convert_difficulty_to_irt",
    "estimate_ability_mle",
    "probability_correct",
    "PerformanceSummary",
    "analyze_performance",
    "calculate_score",
    "StoppingDecision",
    "StopReason",
    "check_stopping_criteria",
]
