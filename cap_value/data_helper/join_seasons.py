"""
Season Joiner
=============

Attach salaries to the normalized performance records of each season and
express them as a fraction of that season's salary cap, then stack all
seasons into one player panel.

Seasons without a salary table stay in the panel with an empty salary:
they only feed lag features for later seasons.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Tuple

import numpy as np
import pandas as pd

from cap_value.utils.errors import EmptyTableError, MissingColumnsError, MissingSalaryCapError


# ----------------- Constants -----------------
# League salary cap per season, labelled by the season's ending year
SALARY_CAP_BY_YEAR: Dict[int, float] = {
    2015: 63_065_000,
    2016: 70_000_000,
    2017: 94_143_000,
    2018: 99_093_000,
    2019: 101_869_000,
    2020: 109_140_000,
    2021: 109_140_000,
    2022: 112_414_000,
}

PANEL_COLUMNS = [
    "year",
    "player",
    "team",
    "obpm",
    "dbpm",
    "bpm",
    "minutes",
    "salary",
    "salary_fraction",
]


def salary_cap_for(year: int, salary_caps: Mapping[int, float] = SALARY_CAP_BY_YEAR) -> float:
    try:
        cap = float(salary_caps[year])
    except KeyError:
        raise MissingSalaryCapError(year) from None
    if cap <= 0:
        raise MissingSalaryCapError(year)
    return cap


def join_season(
    performance: pd.DataFrame,
    salaries: pd.DataFrame,
    year: int,
    salary_caps: Mapping[int, float] = SALARY_CAP_BY_YEAR,
) -> Tuple[pd.DataFrame, List[str]]:
    """
    Join one season's performance records with its salaries.

    The join key is the exact player name. Players without a salary row are
    dropped (no contract, no cost efficiency) and returned by name so the
    report can show the gap between the two sources.

    Parameters:
        performance (pd.DataFrame): Normalized performance records for the season
        salaries (pd.DataFrame): Normalized (year, player, salary) table
        year (int): Season label
        salary_caps (Mapping[int, float]): Season -> salary cap

    Returns:
        (pd.DataFrame, List[str]): joined records with salary and
        salary_fraction, and the names that found no salary
    """
    for name, table, required in (
        (f"advanced {year}", performance, ["player"]),
        (f"salaries {year}", salaries, ["player", "salary"]),
    ):
        missing = set(required) - set(table.columns)
        if missing:
            raise MissingColumnsError(name, missing)

    cap = salary_cap_for(year, salary_caps)

    merged = performance.merge(
        salaries[["player", "salary"]],
        on="player",
        how="left",
        validate="many_to_one",
    )

    unmatched_mask = merged["salary"].isna()
    unmatched = merged.loc[unmatched_mask, "player"].tolist()
    joined = merged[~unmatched_mask].copy()
    joined["salary_fraction"] = joined["salary"] / cap

    print(
        f"[join_seasons] {year}: {len(joined):,} joined, "
        f"{len(unmatched):,} without salary (cap ${cap:,.0f})"
    )
    return joined.reset_index(drop=True), unmatched


def join_seasons(
    performance_by_year: Mapping[int, pd.DataFrame],
    salaries_by_year: Mapping[int, pd.DataFrame],
    salary_caps: Mapping[int, float] = SALARY_CAP_BY_YEAR,
) -> Tuple[pd.DataFrame, Dict[int, List[str]]]:
    """
    Build the player panel from per-season tables.

    Every season in ``performance_by_year`` is part of the panel. Seasons
    that also have a salary table are joined; the others keep NaN salary
    columns and serve as lag inputs only.

    Returns:
        (pd.DataFrame, Dict[int, List[str]]): panel sorted by player and
        year, and the unmatched player names of each joined season that has any
    """
    seasons = []
    unmatched_by_year: Dict[int, List[str]] = {}

    for year in sorted(performance_by_year):
        performance = performance_by_year[year]
        if year in salaries_by_year:
            joined, unmatched = join_season(performance, salaries_by_year[year], year, salary_caps)
            if unmatched:
                unmatched_by_year[year] = unmatched
            seasons.append(joined)
        else:
            bare = performance.copy()
            bare["salary"] = np.nan
            bare["salary_fraction"] = np.nan
            print(f"[join_seasons] {year}: {len(bare):,} performance-only records (lag support)")
            seasons.append(bare)

    ignored = sorted(set(salaries_by_year) - set(performance_by_year))
    if ignored:
        print(f"[join_seasons] Salary tables without performance data ignored: {ignored}")

    if not seasons:
        raise EmptyTableError("player panel")

    panel = pd.concat([season[PANEL_COLUMNS] for season in seasons], ignore_index=True)
    panel = panel.sort_values(["player", "year"], kind="mergesort").reset_index(drop=True)
    return panel, unmatched_by_year
