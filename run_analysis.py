"""
Main script to run the complete cap value analysis.

This script:
1. Loads the raw advanced-stats and salary tables for each season
2. Normalizes, joins and panels them by player-season
3. Builds lag and growth features, filters outliers
4. Fits the OLS regressions
5. Sweeps the k-NN cost-efficiency classifier
6. Prints the report (and optionally writes it to disk)

Usage:
    python run_analysis.py --data-dir data/raw

    # Different reference player-season and sweep range:
    python run_analysis.py --reference-player "Mikal Bridges" --reference-year 2020 --k-max 25

    # Write report.md, k_accuracy.csv and stage_audit.csv:
    python run_analysis.py --output-dir data/processed
"""

import sys
import argparse
from pathlib import Path

from cap_value.pipeline import (
    FIRST_YEAR,
    LAST_YEAR,
    MODEL_FIRST_YEAR,
    SALARY_FIRST_YEAR,
    AnalysisConfig,
    run_pipeline,
)
from cap_value.data_helper.filter_outliers import MIN_MINUTES, MIN_SALARY_FRACTION
from cap_value.models.classification.train_classification import (
    RANDOM_SEED,
    REFERENCE_PLAYER,
    REFERENCE_YEAR,
)
from cap_value.utils.errors import CapValueError
from cap_value.utils.io_utils import load_raw_seasons


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Can player performance predict contract value? Run the full analysis."
    )
    parser.add_argument("--data-dir", default="data/raw", help="Directory with advanced_{year}.csv and salaries_{year}.csv")
    parser.add_argument("--first-year", type=int, default=FIRST_YEAR, help="First season ingested (lag support)")
    parser.add_argument("--last-year", type=int, default=LAST_YEAR, help="Last season ingested")
    parser.add_argument("--model-first-year", type=int, default=MODEL_FIRST_YEAR, help="First season modeled")
    parser.add_argument("--salary-first-year", type=int, default=SALARY_FIRST_YEAR, help="First season joined with salaries")
    parser.add_argument("--reference-player", default=REFERENCE_PLAYER, help="Player whose ratio sets the cost-efficiency threshold")
    parser.add_argument("--reference-year", type=int, default=REFERENCE_YEAR, help="Season of the reference player")
    parser.add_argument("--seed", type=int, default=RANDOM_SEED, help="Seed for the train/test split")
    parser.add_argument("--k-min", type=int, default=1, help="Smallest neighbor count in the sweep")
    parser.add_argument("--k-max", type=int, default=40, help="Largest neighbor count in the sweep")
    parser.add_argument("--min-minutes", type=float, default=MIN_MINUTES, help="Keep rows with more minutes than this")
    parser.add_argument("--min-salary-fraction", type=float, default=MIN_SALARY_FRACTION, help="Keep rows above this cap fraction")
    parser.add_argument(
        "--lenient-parse",
        action="store_true",
        help="Count malformed numeric cells as missing instead of failing",
    )
    parser.add_argument("--output-dir", default=None, help="Write report.md, k_accuracy.csv and stage_audit.csv here")
    return parser


def config_from_args(args: argparse.Namespace) -> AnalysisConfig:
    return AnalysisConfig(
        first_year=args.first_year,
        last_year=args.last_year,
        model_first_year=args.model_first_year,
        salary_first_year=args.salary_first_year,
        reference_player=args.reference_player,
        reference_year=args.reference_year,
        seed=args.seed,
        k_values=range(args.k_min, args.k_max + 1),
        min_minutes=args.min_minutes,
        min_salary_fraction=args.min_salary_fraction,
        strict_parse=not args.lenient_parse,
    )


def main(argv=None):
    args = build_parser().parse_args(argv)
    config = config_from_args(args)

    print("\n" + "=" * 70)
    print("CAP VALUE ANALYSIS PIPELINE")
    print("=" * 70)
    print(f"Data directory: {Path(args.data_dir).absolute()}")
    print(f"Seasons: {config.first_year}-{config.last_year} (modeled {config.model_first_year}-{config.last_year})")
    print(f"Reference: {config.reference_player} {config.reference_year}")
    print("=" * 70)

    try:
        print("\n[Step 1/3] Loading raw season tables...")
        performance_raw = load_raw_seasons(args.data_dir, config.performance_years, "advanced")
        salary_raw = load_raw_seasons(args.data_dir, config.salary_years, "salaries")

        print("\n[Step 2/3] Running analysis...")
        result = run_pipeline(performance_raw, salary_raw, config)

        print("\n[Step 3/3] Report")
        print("=" * 70)
        print(result.report)

        if args.output_dir:
            output_dir = Path(args.output_dir)
            output_dir.mkdir(parents=True, exist_ok=True)
            report_path = output_dir / "report.md"
            report_path.write_text(result.report, encoding="utf-8")
            sweep_path = output_dir / "k_accuracy.csv"
            result.classification.sweep.to_csv(sweep_path, index=False)
            audit_path = output_dir / "stage_audit.csv"
            result.audit.to_frame().to_csv(audit_path, index=False)
            print(f"Saved report -> {report_path}")
            print(f"Saved k sweep -> {sweep_path}")
            print(f"Saved stage audit -> {audit_path}")

    except (CapValueError, FileNotFoundError) as e:
        print("\n" + "=" * 70)
        print("PIPELINE FAILED!")
        print("=" * 70)
        print(f"Error: {e}")
        print("=" * 70)
        return 1

    print("\n" + "=" * 70)
    print("PIPELINE COMPLETED SUCCESSFULLY!")
    print("=" * 70 + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
