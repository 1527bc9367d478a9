"""
CAT Simulation Engine for validating the adaptive testing algorithm.

Simulates N examinees with known ability levels taking adaptive exams against a
synthetic item bank, driving the same CATEngine the exam workflow uses. Collects
metrics to check the stopping rules, precision target and estimation accuracy.

Key Features:
- Monte Carlo simulation with configurable N and theta distribution
- Quintile-based analysis stratified by true ability level
- Markdown report of aggregate and per-quintile metrics

References:
    - Weiss, D. J. (2004). Computerized adaptive testing for effective and
      efficient measurement in counseling and education. Measurement and
      Evaluation in Counseling and Development, 37(2), 70-84.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import numpy as np

from exam_cat.core.cat.ability_estimation import probability_correct
from exam_cat.core.cat.engine import CATEngine, CATSettings
from exam_cat.core.cat.stopping_rules import (
    MAX_QUESTIONS,
    MIN_QUESTIONS,
    PRECISION_THRESHOLD,
)

logger = logging.getLogger(__name__)

# Synthetic item bank: difficulty on the [0, 1] scale ~ Normal(0.5, 0.2), clipped
DIFFICULTY_NORMAL_MEAN = 0.5
DIFFICULTY_NORMAL_SD = 0.2
DIFFICULTY_MIN = 0.0
DIFFICULTY_MAX = 1.0

# Ability quintiles for stratified analysis
QUINTILE_BOUNDARIES = [
    ("Very Low", -3.0, -1.2),
    ("Low", -1.2, -0.4),
    ("Average", -0.4, 0.4),
    ("High", 0.4, 1.2),
    ("Very High", 1.2, 3.0),
]


@dataclass
class SimulationConfig:
    """Configuration for a CAT simulation run."""

    n_examinees: int = 1000  # Number of simulated examinees
    theta_mean: float = 0.0  # Mean of theta distribution
    theta_sd: float = 1.0  # SD of theta distribution
    initial_ability: float = 0.0
    precision_threshold: float = PRECISION_THRESHOLD
    min_questions: int = MIN_QUESTIONS
    max_questions: int = MAX_QUESTIONS
    seed: int = 42  # Random seed for reproducibility

    def __post_init__(self) -> None:
        if self.n_examinees <= 0:
            raise ValueError(f"n_examinees must be positive, got {self.n_examinees}")
        if self.theta_sd < 0:
            raise ValueError(f"theta_sd must be non-negative, got {self.theta_sd}")

    def to_cat_settings(self) -> CATSettings:
        return CATSettings(
            initial_ability=self.initial_ability,
            precision_threshold=self.precision_threshold,
            min_questions=self.min_questions,
            max_questions=self.max_questions,
        )


@dataclass
class SimulatedItem:
    """Lightweight item representation for simulation (not a stored question)."""

    id: int
    difficulty: float  # [0, 1] scale


@dataclass
class ExamineeResult:
    """Per-examinee simulation results."""

    true_theta: float  # True ability
    estimated_theta: float  # Final theta estimate
    final_se: float  # Final standard error
    bias: float  # estimated_theta - true_theta
    items_administered: int  # Test length
    stopping_reason: str  # Why the test stopped
    converged: bool  # Whether SE < threshold
    score: int  # Final 0-100 score
    administered_item_ids: List[int] = field(default_factory=list)


@dataclass
class QuintileMetrics:
    """Metrics for an ability quintile."""

    label: str
    theta_range: Tuple[float, float]  # (min, max)
    n: int  # Count of examinees in this quintile
    mean_items: float
    median_items: float
    mean_se: float
    mean_bias: float
    rmse: float
    convergence_rate: float  # Proportion achieving SE < threshold


@dataclass
class SimulationResult:
    """Aggregate simulation results."""

    config: SimulationConfig
    examinee_results: List[ExamineeResult]
    overall_mean_items: float
    overall_median_items: float
    overall_mean_se: float
    overall_mean_bias: float
    overall_rmse: float
    overall_convergence_rate: float
    quintile_metrics: List[QuintileMetrics]
    stopping_reason_counts: Dict[str, int]


def generate_item_bank(n_items: int = 200, seed: int = 42) -> List[SimulatedItem]:
    """
    Generate a synthetic item bank with difficulties on the [0, 1] scale.

    Difficulty ~ Normal(0.5, 0.2), clipped to [0, 1], which places most items
    within +/-1.2 logits of the scale midpoint.

    Args:
        n_items: Number of items to generate.
        seed: Random seed for reproducibility.

    Returns:
        List of SimulatedItem.

    Raises:
        ValueError: If n_items is not positive.
    """
    if n_items <= 0:
        raise ValueError(f"n_items must be positive, got {n_items}")

    rng = np.random.default_rng(seed)
    difficulties = np.clip(
        rng.normal(loc=DIFFICULTY_NORMAL_MEAN, scale=DIFFICULTY_NORMAL_SD, size=n_items),
        DIFFICULTY_MIN,
        DIFFICULTY_MAX,
    )

    items = [
        SimulatedItem(id=item_id, difficulty=float(difficulty))
        for item_id, difficulty in enumerate(difficulties, start=1)
    ]

    logger.info(f"Generated item bank: {len(items)} items")

    return items


def simulate_response(
    true_theta: float,
    difficulty: float,
    rng: random.Random,
) -> bool:
    """
    Generate a simulated response using the 1PL IRT model.

    Args:
        true_theta: True ability level of the examinee.
        difficulty: Item difficulty on the [0, 1] scale.
        rng: Random number generator for reproducibility.

    Returns:
        True if the simulated response is correct, False otherwise.
    """
    return rng.random() < probability_correct(true_theta, difficulty)


def run_simulation(
    item_bank: List[SimulatedItem],
    config: SimulationConfig,
) -> SimulationResult:
    """
    Run an adaptive exam for each simulated examinee.

    For each simulated examinee:
    1. Draw true_theta from N(config.theta_mean, config.theta_sd)
    2. Initialize a CATState with config.initial_ability
    3. Loop: select_next_question -> simulate_response -> update_ability
       until the engine returns no question
    4. Record ExamineeResult with metrics

    Args:
        item_bank: Item pool shared by all examinees.
        config: Simulation configuration.

    Returns:
        SimulationResult with per-examinee and aggregate metrics.
    """
    logger.info(
        f"Starting CAT simulation: N={config.n_examinees}, "
        f"theta ~ N({config.theta_mean}, {config.theta_sd}²), "
        f"bank={len(item_bank)} items"
    )

    rng = random.Random(config.seed)
    np_rng = np.random.default_rng(config.seed)
    cat_settings = config.to_cat_settings()
    engine = CATEngine(default_settings=cat_settings)

    examinee_results = []

    for examinee_id in range(1, config.n_examinees + 1):
        true_theta = float(np_rng.normal(loc=config.theta_mean, scale=config.theta_sd))

        state = engine.initialize_state(cat_settings)
        available = list(item_bank)
        administered: List[int] = []

        while True:
            next_question = engine.select_next_question(state, available, cat_settings)
            if next_question is None:
                break

            item = next_question.question
            is_correct = simulate_response(true_theta, item.difficulty, rng)
            state = engine.update_ability(
                state, item.difficulty, is_correct, question_id=str(item.id)
            )
            available.remove(item)
            administered.append(item.id)

        reason = engine.stop_reason(state, available, cat_settings)
        stopping_reason = reason.value if reason is not None else "unknown"

        examinee_results.append(
            ExamineeResult(
                true_theta=true_theta,
                estimated_theta=state.ability_estimate,
                final_se=state.standard_error,
                bias=state.ability_estimate - true_theta,
                items_administered=state.questions_administered,
                stopping_reason=stopping_reason,
                converged=state.standard_error < config.precision_threshold,
                score=engine.calculate_score(state.ability_estimate),
                administered_item_ids=administered,
            )
        )

        if examinee_id % 100 == 0:
            logger.info(f"Completed {examinee_id}/{config.n_examinees} examinees")

    return _aggregate_results(config, examinee_results)


def _aggregate_results(
    config: SimulationConfig,
    examinee_results: List[ExamineeResult],
) -> SimulationResult:
    """Compute overall and per-quintile metrics from examinee results."""
    items = [r.items_administered for r in examinee_results]
    ses = [r.final_se for r in examinee_results]
    biases = [r.bias for r in examinee_results]

    overall_mean_items = float(np.mean(items))
    overall_median_items = float(np.median(items))
    overall_mean_se = float(np.mean(ses))
    overall_mean_bias = float(np.mean(biases))
    overall_rmse = float(np.sqrt(np.mean(np.square(biases))))
    overall_convergence_rate = sum(1 for r in examinee_results if r.converged) / len(
        examinee_results
    )

    stopping_reason_counts: Dict[str, int] = {}
    for result in examinee_results:
        reason = result.stopping_reason
        stopping_reason_counts[reason] = stopping_reason_counts.get(reason, 0) + 1

    quintile_metrics = compute_quintile_metrics(
        examinee_results, config.precision_threshold
    )

    logger.info(
        f"Simulation complete: "
        f"mean_items={overall_mean_items:.1f}, "
        f"median_items={overall_median_items:.1f}, "
        f"mean_SE={overall_mean_se:.3f}, "
        f"RMSE={overall_rmse:.3f}, "
        f"convergence_rate={overall_convergence_rate:.1%}"
    )

    return SimulationResult(
        config=config,
        examinee_results=examinee_results,
        overall_mean_items=overall_mean_items,
        overall_median_items=overall_median_items,
        overall_mean_se=overall_mean_se,
        overall_mean_bias=overall_mean_bias,
        overall_rmse=overall_rmse,
        overall_convergence_rate=overall_convergence_rate,
        quintile_metrics=quintile_metrics,
        stopping_reason_counts=stopping_reason_counts,
    )


def compute_quintile_metrics(
    examinee_results: List[ExamineeResult],
    se_threshold: float,
) -> List[QuintileMetrics]:
    """
    Compute stratified metrics for each ability quintile.

    Quintiles are defined by true_theta (not estimated theta) to avoid
    regression to the mean artifacts. The first and last quintiles are
    open-ended so extreme abilities are still counted.

    Args:
        examinee_results: List of per-examinee results.
        se_threshold: SE threshold for convergence rate calculation.

    Returns:
        List of QuintileMetrics, one per quintile.
    """
    quintile_metrics = []
    last_index = len(QUINTILE_BOUNDARIES) - 1

    for index, (label, theta_min, theta_max) in enumerate(QUINTILE_BOUNDARIES):
        quintile_results = [
            r
            for r in examinee_results
            if (index == 0 or r.true_theta >= theta_min)
            and (index == last_index or r.true_theta < theta_max)
        ]

        if not quintile_results:
            quintile_metrics.append(
                QuintileMetrics(
                    label=label,
                    theta_range=(theta_min, theta_max),
                    n=0,
                    mean_items=0.0,
                    median_items=0.0,
                    mean_se=0.0,
                    mean_bias=0.0,
                    rmse=0.0,
                    convergence_rate=0.0,
                )
            )
            continue

        items = [r.items_administered for r in quintile_results]
        ses = [r.final_se for r in quintile_results]
        biases = [r.bias for r in quintile_results]
        converged = sum(1 for r in quintile_results if r.final_se < se_threshold)

        quintile_metrics.append(
            QuintileMetrics(
                label=label,
                theta_range=(theta_min, theta_max),
                n=len(quintile_results),
                mean_items=float(np.mean(items)),
                median_items=float(np.median(items)),
                mean_se=float(np.mean(ses)),
                mean_bias=float(np.mean(biases)),
                rmse=float(np.sqrt(np.mean(np.square(biases)))),
                convergence_rate=converged / len(quintile_results),
            )
        )

    return quintile_metrics


def generate_report(result: SimulationResult) -> str:
    """
    Generate a markdown report of simulation results.

    Args:
        result: Results from run_simulation.

    Returns:
        Markdown-formatted report string.
    """
    cfg = result.config
    lines = [
        "# CAT Simulation Report",
        "",
        "## Simulation Configuration",
        "",
        f"- **N Examinees**: {cfg.n_examinees:,}",
        f"- **Theta Distribution**: N({cfg.theta_mean}, {cfg.theta_sd}²)",
        f"- **Precision Threshold**: {cfg.precision_threshold}",
        f"- **Min/Max Questions**: {cfg.min_questions}/{cfg.max_questions}",
        f"- **Seed**: {cfg.seed}",
        "",
        "## Overall Metrics",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Mean Items | {result.overall_mean_items:.2f} |",
        f"| Median Items | {result.overall_median_items:.1f} |",
        f"| Mean SE | {result.overall_mean_se:.3f} |",
        f"| Mean Bias | {result.overall_mean_bias:+.3f} |",
        f"| RMSE | {result.overall_rmse:.3f} |",
        f"| Convergence Rate | {result.overall_convergence_rate:.1%} |",
        "",
        "## Stopping Reasons",
        "",
        "| Reason | Count |",
        "|--------|-------|",
    ]

    for reason, count in sorted(result.stopping_reason_counts.items()):
        lines.append(f"| {reason} | {count} |")

    lines.extend(
        [
            "",
            "## Quintile Analysis",
            "",
            "| Quintile | Theta Range | N | Mean Items | Mean SE | Bias | RMSE | Converged |",
            "|----------|-------------|---|------------|---------|------|------|-----------|",
        ]
    )

    for q in result.quintile_metrics:
        lines.append(
            f"| {q.label} | [{q.theta_range[0]:.1f}, {q.theta_range[1]:.1f}) "
            f"| {q.n} | {q.mean_items:.2f} | {q.mean_se:.3f} "
            f"| {q.mean_bias:+.3f} | {q.rmse:.3f} | {q.convergence_rate:.1%} |"
        )

    lines.append("")
    return "\n".join(lines)
