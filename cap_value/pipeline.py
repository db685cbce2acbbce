"""
Cap value analysis pipeline.

Runs every stage in memory, in order:

1. normalize the raw advanced-stats and salary tables of each season
2. join salaries onto performance and build the multi-season panel
3. scale impact over the panel and compute lag / growth features
4. keep the modeling seasons, filter outliers, drop broken lag chains
5. fit the OLS regressions
6. label cost efficiency against the reference player-season and sweep k
7. render the report

Every stage records its row counts in a ``PipelineAudit``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from cap_value.data_helper.build_feature_panel import (
    MODEL_INPUT_COLUMNS,
    build_feature_panel,
    count_non_finite,
    scale_impact,
    select_feature_rows,
)
from cap_value.data_helper.filter_outliers import (
    MIN_MINUTES,
    MIN_SALARY_FRACTION,
    filter_outliers,
)
from cap_value.data_helper.join_seasons import SALARY_CAP_BY_YEAR, join_seasons
from cap_value.data_helper.normalize_records import (
    normalize_performance_table,
    normalize_salary_table,
)
from cap_value.models.classification.train_classification import (
    K_VALUES,
    RANDOM_SEED,
    REFERENCE_PLAYER,
    REFERENCE_YEAR,
    TRAIN_FRACTION,
    ClassificationResult,
    evaluate_classifier,
    reference_threshold,
)
from cap_value.models.regression.train_regression import RegressionSummary, run_regressions
from cap_value.report.render import render_report
from cap_value.report.schema import PipelineAudit
from cap_value.utils.errors import StructuralError
from cap_value.utils.io_utils import rows_to_table


# ----------------- Default seasons -----------------
FIRST_YEAR = 2015          # first season ingested (lag support only)
LAST_YEAR = 2021           # last season ingested
MODEL_FIRST_YEAR = 2017    # first season that becomes a feature row
SALARY_FIRST_YEAR = 2016   # prev_salary_fraction of 2017 needs 2016 salaries

# A season table is either a loaded DataFrame or the row mappings a scraper yields
RawTable = Union[pd.DataFrame, Sequence[Mapping[str, object]]]


@dataclass
class AnalysisConfig:
    first_year: int = FIRST_YEAR
    last_year: int = LAST_YEAR
    model_first_year: int = MODEL_FIRST_YEAR
    salary_first_year: int = SALARY_FIRST_YEAR
    reference_player: str = REFERENCE_PLAYER
    reference_year: int = REFERENCE_YEAR
    seed: int = RANDOM_SEED
    k_values: Sequence[int] = K_VALUES
    train_fraction: float = TRAIN_FRACTION
    min_minutes: float = MIN_MINUTES
    min_salary_fraction: float = MIN_SALARY_FRACTION
    strict_parse: bool = True
    salary_caps: Mapping[int, float] = field(default_factory=lambda: dict(SALARY_CAP_BY_YEAR))

    @property
    def performance_years(self) -> List[int]:
        return list(range(self.first_year, self.last_year + 1))

    @property
    def salary_years(self) -> List[int]:
        return list(range(self.salary_first_year, self.last_year + 1))

    @property
    def model_years(self) -> List[int]:
        return list(range(self.model_first_year, self.last_year + 1))


@dataclass
class AnalysisResult:
    audit: PipelineAudit
    panel: pd.DataFrame
    feature_rows: pd.DataFrame
    regressions: List[RegressionSummary]
    classification: Optional[ClassificationResult]
    report: str


def _as_table(raw: RawTable, table_name: str) -> pd.DataFrame:
    if isinstance(raw, pd.DataFrame):
        return raw
    return rows_to_table(raw, table_name)


def normalize_seasons(
    performance_raw: Mapping[int, RawTable],
    salary_raw: Mapping[int, RawTable],
    config: AnalysisConfig,
    audit: PipelineAudit,
) -> Tuple[Dict[int, pd.DataFrame], Dict[int, pd.DataFrame]]:
    """Normalize every configured season, keyed by year."""
    missing = [year for year in config.performance_years if year not in performance_raw]
    if missing:
        raise StructuralError(f"No advanced stats table for season(s) {missing}")

    performance: Dict[int, pd.DataFrame] = {}
    for year in config.performance_years:
        performance[year], diagnostics = normalize_performance_table(
            _as_table(performance_raw[year], f"advanced {year}"), year, strict=config.strict_parse
        )
        audit.parse_diagnostics.append(diagnostics)

    salaries: Dict[int, pd.DataFrame] = {}
    for year in config.salary_years:
        if year not in salary_raw:
            print(f"[pipeline] No salary table for {year}; season stays performance-only")
            continue
        salaries[year], diagnostics = normalize_salary_table(
            _as_table(salary_raw[year], f"salaries {year}"), year, strict=config.strict_parse
        )
        audit.parse_diagnostics.append(diagnostics)

    perf_diag = [d for d in audit.parse_diagnostics if d.table_name.startswith("advanced")]
    sal_diag = [d for d in audit.parse_diagnostics if d.table_name.startswith("salaries")]
    audit.record(
        "normalize advanced stats",
        sum(d.rows_in for d in perf_diag),
        sum(d.rows_out for d in perf_diag),
        "repeated headers and traded-player team rows removed",
    )
    audit.record(
        "normalize salaries",
        sum(d.rows_in for d in sal_diag),
        sum(d.rows_out for d in sal_diag),
        "rows without a salary removed, duplicate contracts summed",
    )
    return performance, salaries


def run_pipeline(
    performance_raw: Mapping[int, RawTable],
    salary_raw: Mapping[int, RawTable],
    config: Optional[AnalysisConfig] = None,
) -> AnalysisResult:
    """
    Run the whole analysis on raw text tables keyed by season year.

    A season may also be given as a list of row mappings (header -> text
    cell), which is turned into a table first.

    Args:
        performance_raw: Season -> raw advanced stats table or rows
        salary_raw: Season -> raw salary table or rows
        config: Seasons, thresholds, reference player and sweep settings

    Returns:
        AnalysisResult with the audit, panel, feature rows, model results
        and the rendered report
    """
    config = config or AnalysisConfig()
    audit = PipelineAudit()

    print("[pipeline] Normalizing season tables...")
    performance, salaries = normalize_seasons(performance_raw, salary_raw, config, audit)

    print("[pipeline] Joining salaries and building the panel...")
    salaries_in_range = {year: table for year, table in salaries.items() if year in performance}
    panel, unmatched = join_seasons(performance, salaries_in_range, config.salary_caps)
    audit.unmatched_by_year = unmatched
    joined_in = sum(len(performance[year]) for year in salaries_in_range)
    audit.record(
        "join salaries",
        joined_in,
        joined_in - sum(len(names) for names in unmatched.values()),
        "players without a salary match removed",
    )

    print("[pipeline] Building lag features...")
    scaled = scale_impact(panel)
    features = build_feature_panel(scaled)

    target = features[features["year"].isin(config.model_years)]
    audit.record("modeling seasons", len(features), len(target), f"{config.model_years[0]}-{config.model_years[-1]}")

    filtered, _ = filter_outliers(target, config.min_minutes, config.min_salary_fraction)
    audit.record(
        "outlier filter",
        len(target),
        len(filtered),
        f"minutes > {config.min_minutes:g}, salary fraction > {config.min_salary_fraction:g}",
    )

    feature_rows, _ = select_feature_rows(filtered)
    audit.record("lag chain", len(filtered), len(feature_rows), "needs the two previous seasons")
    if feature_rows.empty:
        raise StructuralError("No feature rows left after filtering; nothing to model")
    audit.growth_singular = int(feature_rows["growth_singular"].sum())
    audit.ratio_singular = int(feature_rows["ratio_singular"].sum())
    audit.non_finite_rows = count_non_finite(feature_rows, MODEL_INPUT_COLUMNS)

    print("[pipeline] Fitting regressions...")
    regressions = run_regressions(feature_rows)

    print("[pipeline] Evaluating classifier...")
    threshold = reference_threshold(scaled, config.reference_player, config.reference_year)
    classification = evaluate_classifier(
        feature_rows,
        threshold,
        k_values=config.k_values,
        seed=config.seed,
        train_fraction=config.train_fraction,
    )
    audit.record(
        "classifier inputs",
        len(feature_rows),
        len(feature_rows) - classification.n_excluded,
        "rows with inf/NaN features removed",
    )

    report = render_report(audit, regressions, classification)
    return AnalysisResult(
        audit=audit,
        panel=scaled,
        feature_rows=feature_rows,
        regressions=regressions,
        classification=classification,
        report=report,
    )
