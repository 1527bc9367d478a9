"""
Run a Monte Carlo simulation study of the adaptive exam engine.

Generates a synthetic item bank, administers adaptive exams to simulated
examinees and prints a markdown report (optionally also written to a file).

Exit codes:
    0 - Success
    2 - Simulation error
    3 - Configuration/import error
"""
import argparse
import logging
import sys
from typing import List, Optional

logger = logging.getLogger("cat_simulation")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Simulate adaptive exams against a synthetic item bank"
    )
    parser.add_argument(
        "--examinees",
        type=int,
        default=1000,
        help="Number of simulated examinees (default: 1000)",
    )
    parser.add_argument(
        "--items",
        type=int,
        default=200,
        help="Size of the synthetic item bank (default: 200)",
    )
    parser.add_argument(
        "--theta-mean",
        type=float,
        default=0.0,
        help="Mean of the true ability distribution (default: 0.0)",
    )
    parser.add_argument(
        "--theta-sd",
        type=float,
        default=1.0,
        help="SD of the true ability distribution (default: 1.0)",
    )
    parser.add_argument(
        "--precision-threshold",
        type=float,
        default=None,
        help="SE stopping threshold (default: CAT_PRECISION_THRESHOLD)",
    )
    parser.add_argument(
        "--min-questions",
        type=int,
        default=None,
        help="Minimum items before precision stopping (default: CAT_MIN_QUESTIONS)",
    )
    parser.add_argument(
        "--max-questions",
        type=int,
        default=None,
        help="Maximum items per exam (default: CAT_MAX_QUESTIONS)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed (default: 42)",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Also write the markdown report to this path",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # Defer imports so config/import failures produce exit code 3
    try:
        from exam_cat.core.cat.simulation import (
            SimulationConfig,
            generate_item_bank,
            generate_report,
            run_simulation,
        )
        from exam_cat.core.config import settings
        from exam_cat.core.logging_config import setup_logging
    except Exception as exc:
        logging.basicConfig(level=logging.INFO)
        logger.error("Failed to import required modules: %s", exc)
        return 3

    setup_logging()

    try:
        config = SimulationConfig(
            n_examinees=args.examinees,
            theta_mean=args.theta_mean,
            theta_sd=args.theta_sd,
            initial_ability=settings.CAT_INITIAL_ABILITY,
            precision_threshold=(
                args.precision_threshold
                if args.precision_threshold is not None
                else settings.CAT_PRECISION_THRESHOLD
            ),
            min_questions=(
                args.min_questions
                if args.min_questions is not None
                else settings.CAT_MIN_QUESTIONS
            ),
            max_questions=(
                args.max_questions
                if args.max_questions is not None
                else settings.CAT_MAX_QUESTIONS
            ),
            seed=args.seed,
        )
    except ValueError as exc:
        logger.error("Invalid simulation configuration: %s", exc)
        return 3

    try:
        item_bank = generate_item_bank(n_items=args.items, seed=args.seed)
        result = run_simulation(item_bank, config)
    except Exception as exc:
        logger.error("CAT simulation failed: %s", exc)
        return 2

    report = generate_report(result)
    print(report)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(report)
        logger.info("Report written to %s", args.output)

    return 0


if __name__ == "__main__":
    sys.exit(main())
