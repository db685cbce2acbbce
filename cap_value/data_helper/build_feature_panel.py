"""
Feature Engine
==============

Builds the season-over-season features of the player panel:

    impact_scaled          BPM min-max scaled over the whole panel (0..1)
    impact_to_salary       impact_scaled / salary_fraction
    prev_impact_scaled     impact_scaled one season earlier
    prev_growth            relative change of impact_scaled between the
                           seasons two years and one year earlier
    prev_salary_fraction   salary_fraction one season earlier
    prev_impact_to_salary  prev_impact_scaled / prev_salary_fraction

A lag only exists for consecutive seasons: a player missing 2018 has no
2019 lag and no 2020 growth rate. Zero denominators are left as inf/NaN
and flagged, never replaced.
"""

from __future__ import annotations

from typing import Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from cap_value.utils.errors import EmptyTableError, MissingColumnsError


IMPACT_COLUMN = "bpm"

LAG_FEATURES = ["prev_impact_scaled", "prev_growth", "prev_salary_fraction"]

FEATURE_COLUMNS = [
    "player",
    "year",
    "team",
    "minutes",
    "salary_fraction",
    "impact_scaled",
    "impact_to_salary",
    "prev_impact_scaled",
    "prev_growth",
    "prev_salary_fraction",
    "prev_impact_to_salary",
    "growth_singular",
    "ratio_singular",
]

# Inputs of the regressions and the classifier; inf/NaN here keeps a row out of a fit
MODEL_INPUT_COLUMNS = [
    "impact_scaled",
    "impact_to_salary",
    "prev_impact_scaled",
    "prev_growth",
    "prev_salary_fraction",
    "prev_impact_to_salary",
]


def scale_impact(panel: pd.DataFrame, impact_col: str = IMPACT_COLUMN) -> pd.DataFrame:
    """
    Min-max scale the impact metric across the entire panel.

    Scaling over all seasons at once (not per season) keeps the values
    comparable between years and non-negative, so impact_to_salary is
    never negative.

    Parameters:
        panel (pd.DataFrame): Panel with impact_col and salary_fraction
        impact_col (str): Raw impact metric column

    Returns:
        pd.DataFrame: copy of the panel with impact_scaled and impact_to_salary
    """
    missing = {impact_col, "salary_fraction"} - set(panel.columns)
    if missing:
        raise MissingColumnsError("player panel", missing)
    if panel.empty:
        raise EmptyTableError("player panel")

    out = panel.copy()
    low = out[impact_col].min()
    high = out[impact_col].max()
    out["impact_scaled"] = (out[impact_col] - low) / (high - low)
    out["impact_to_salary"] = out["impact_scaled"] / out["salary_fraction"]
    return out


def build_feature_panel(panel: pd.DataFrame) -> pd.DataFrame:
    """
    Compute lagged and growth features for every (player, year) of the panel.

    Lags come from the previous rows of the same player after sorting by
    year, and only count when the year difference is exactly one (or two
    for the growth base). ``lag_complete`` marks rows where all three lag
    features have defined inputs; ``growth_singular`` marks the subset whose
    growth base is exactly zero and ``ratio_singular`` the subset whose
    previous salary fraction is zero (a $0 salary row).
    """
    if "impact_scaled" in panel.columns:
        df = panel.copy()
        if "impact_to_salary" not in df.columns:
            df["impact_to_salary"] = df["impact_scaled"] / df["salary_fraction"]
    else:
        df = scale_impact(panel)
    df = df.sort_values(["player", "year"], kind="mergesort").reset_index(drop=True)

    grouped = df.groupby("player", sort=False)
    has_prev = (df["year"] - grouped["year"].shift(1)) == 1
    has_prev2 = has_prev & ((df["year"] - grouped["year"].shift(2)) == 2)

    df["prev_impact_scaled"] = grouped["impact_scaled"].shift(1).where(has_prev)
    two_back = grouped["impact_scaled"].shift(2).where(has_prev2)
    df["prev_growth"] = (df["prev_impact_scaled"] - two_back) / two_back
    df["prev_salary_fraction"] = grouped["salary_fraction"].shift(1).where(has_prev)
    df["prev_impact_to_salary"] = df["prev_impact_scaled"] / df["prev_salary_fraction"]

    df["lag_complete"] = (
        has_prev2
        & df["prev_impact_scaled"].notna()
        & two_back.notna()
        & df["prev_salary_fraction"].notna()
    )
    df["growth_singular"] = df["lag_complete"] & (two_back == 0)
    df["ratio_singular"] = df["lag_complete"] & (df["prev_salary_fraction"] == 0)

    n_complete = int(df["lag_complete"].sum())
    n_singular = int(df["growth_singular"].sum())
    n_ratio_singular = int(df["ratio_singular"].sum())
    print(
        f"[build_feature_panel] {len(df):,} player-seasons, {n_complete:,} with a full lag chain, "
        f"{n_singular:,} with a zero growth base, {n_ratio_singular:,} with a zero previous salary"
    )
    return df


def select_feature_rows(
    features: pd.DataFrame,
    years: Optional[Iterable[int]] = None,
) -> Tuple[pd.DataFrame, int]:
    """
    Keep the modeling rows whose lag chain is complete.

    Parameters:
        features (pd.DataFrame): Output of build_feature_panel (optionally filtered)
        years (Iterable[int] | None): Seasons to keep; all seasons if None

    Returns:
        (pd.DataFrame, int): feature rows, and how many rows of the
        selected seasons were dropped for an incomplete lag chain
    """
    target = features
    if years is not None:
        target = features[features["year"].isin(list(years))]

    rows = target[target["lag_complete"]]
    dropped = len(target) - len(rows)
    return rows[FEATURE_COLUMNS].reset_index(drop=True), dropped


def count_non_finite(rows: pd.DataFrame, columns: Iterable[str]) -> int:
    """Number of rows holding NaN or +/-inf in any of ``columns``."""
    values = rows[list(columns)].to_numpy(dtype="float64")
    return int((~np.isfinite(values)).any(axis=1).sum())
