"""Minutes / salary thresholds for the modeling seasons."""

from __future__ import annotations

from typing import Tuple

import pandas as pd


# Below ~800 minutes BPM is too noisy to rank a player on
MIN_MINUTES = 800
# Minimum and two-way contracts sit around 1% of the cap
MIN_SALARY_FRACTION = 0.01


def filter_outliers(
    table: pd.DataFrame,
    min_minutes: float = MIN_MINUTES,
    min_salary_fraction: float = MIN_SALARY_FRACTION,
) -> Tuple[pd.DataFrame, int]:
    """
    Keep rows with minutes > min_minutes and salary_fraction > min_salary_fraction.

    Apply this to the target seasons only, after the lags have been taken
    from the unfiltered panel. Rows with a missing value fail the test.

    Returns:
        (pd.DataFrame, int): kept rows and the number removed
    """
    keep = (table["minutes"] > min_minutes) & (table["salary_fraction"] > min_salary_fraction)
    kept = table[keep].copy()
    removed = len(table) - len(kept)
    print(
        f"[filter_outliers] kept {len(kept):,} of {len(table):,} rows "
        f"(minutes > {min_minutes:g}, salary fraction > {min_salary_fraction:g})"
    )
    return kept, removed
