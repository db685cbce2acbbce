"""
I/O utility functions for loading raw season tables.

The scraping of the stats and salary sites happens upstream; what reaches
this module is one exported CSV per season and source. Every cell is kept
as text so that the normalizer, not pandas, decides what counts as empty
or malformed.

File naming:
    data/raw/advanced_{year}.csv   per-player advanced stats for a season
    data/raw/salaries_{year}.csv   per-player salaries for a season
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, Mapping, Sequence

import pandas as pd

from cap_value.utils.errors import EmptyTableError


RAW_FILE_PATTERNS = {
    "advanced": "advanced_{year}.csv",
    "salaries": "salaries_{year}.csv",
}


def _read_text_table(path: Path) -> pd.DataFrame:
    """
    Read a CSV with every cell as a string.

    ``keep_default_na=False`` stops pandas from turning "", "NA" or "N/A"
    into NaN on its own; empty cells stay as "" and are handled by the
    normalizer's parse step.
    """
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df.columns = [str(col).strip() for col in df.columns]
    return df


def load_raw_season(csv_path: str | Path) -> pd.DataFrame:
    """
    Load a single raw season table.

    Parameters
    ----------
    csv_path : str | Path
        Path to the CSV export of one season.

    Returns
    -------
    pd.DataFrame
        Table of text cells with stripped header labels.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    EmptyTableError
        If the file holds a header but no rows.
    """
    path = Path(csv_path)
    if not path.exists():
        raise FileNotFoundError(f"Raw season file not found: {path}")

    df = _read_text_table(path)
    if df.empty:
        raise EmptyTableError(path.name)
    return df


def load_raw_seasons(data_dir: str | Path, years: Iterable[int], kind: str) -> Dict[int, pd.DataFrame]:
    """
    Load one raw table per season into a mapping keyed by season year.

    Parameters
    ----------
    data_dir : str | Path
        Directory holding the exported CSVs.
    years : Iterable[int]
        Seasons to load, labelled by their ending year (2021 = 2020-21).
    kind : str
        Either "advanced" or "salaries".

    Examples
    --------
    >>> tables = load_raw_seasons("data/raw", range(2015, 2022), "advanced")
    >>> sorted(tables)
    [2015, 2016, 2017, 2018, 2019, 2020, 2021]
    """
    if kind not in RAW_FILE_PATTERNS:
        raise ValueError(f"Unknown raw table kind: {kind!r} (expected one of {sorted(RAW_FILE_PATTERNS)})")

    base = Path(data_dir)
    pattern = RAW_FILE_PATTERNS[kind]
    tables: Dict[int, pd.DataFrame] = {}
    for year in sorted(set(years)):
        tables[year] = load_raw_season(base / pattern.format(year=year))
        print(f"[io_utils] Loaded {kind} {year} with {len(tables[year]):,} rows")
    return tables


def rows_to_table(rows: Sequence[Mapping[str, object]], table_name: str = "raw table") -> pd.DataFrame:
    """Build a text table from in-memory row mappings (e.g. a scraper's output)."""
    if not rows:
        raise EmptyTableError(table_name)
    df = pd.DataFrame(list(rows))
    df.columns = [str(col).strip() for col in df.columns]
    return df.fillna("").astype(str)
