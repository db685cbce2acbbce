"""
Record Normalizer
=================

Turns one season's raw text table into canonical, numeric records:

1. rename the source headers to canonical column names
2. drop the repeated header lines that scraped tables carry
3. keep one row per player, preferring the aggregated "TOT" row of a
   player traded mid-season
4. parse the numeric columns cell by cell, counting what parsed, what was
   empty and what failed
5. project onto the canonical column set

Salary tables go through the same parse step after their currency
formatting is stripped.
"""

from __future__ import annotations

import re
import warnings
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from cap_value.utils.errors import (
    DuplicatePlayerWarning,
    EmptyTableError,
    MissingColumnsError,
    ParseError,
)


# ----------------- Constants -----------------
# Source header -> canonical column. "Tm" is the stats site's label, "Team"
# appears in newer exports of the same table.
PERFORMANCE_HEADER_MAP = {
    "Player": "player",
    "Tm": "team",
    "Team": "team",
    "MP": "minutes",
    "OBPM": "obpm",
    "DBPM": "dbpm",
    "BPM": "bpm",
}

CANONICAL_COLUMNS = ["year", "player", "team", "obpm", "dbpm", "bpm", "minutes"]
NUMERIC_COLUMNS = ["obpm", "dbpm", "bpm", "minutes"]

# Team code of the season-total row for a player who played for several teams
AGGREGATE_TEAM = "TOT"

SALARY_PLAYER_COLUMNS = ("Player", "player", "Name", "NAME")
NON_SALARY_COLUMNS = {"", "#", "Rk", "Team", "Tm", "Unnamed: 0"}

_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_CURRENCY_RE = re.compile(r"[$,\s]")

PARSE_OK = "ok"
PARSE_EMPTY = "empty"
PARSE_FAILED = "failed"


# ----------------- Cell parsing -----------------

@dataclass(frozen=True)
class ParsedCell:
    """Tagged outcome of parsing one text cell."""

    value: Optional[float]
    status: str
    raw: str

    @property
    def ok(self) -> bool:
        return self.status == PARSE_OK


def parse_numeric_cell(raw: object, currency: bool = False) -> ParsedCell:
    """
    Parse a text cell into a float without raising.

    Empty strings, None and NaN come back as ``empty``; anything that is not
    a plain decimal number comes back as ``failed``. With ``currency=True``
    dollar signs, thousands separators and whitespace are stripped first.

    Examples:
        >>> parse_numeric_cell("N/A").status
        'failed'
        >>> parse_numeric_cell("$40,231,758", currency=True).value
        40231758.0
        >>> parse_numeric_cell("").status
        'empty'
    """
    if raw is None or (isinstance(raw, float) and np.isnan(raw)):
        return ParsedCell(None, PARSE_EMPTY, "")

    text = str(raw).strip()
    if currency:
        text = _CURRENCY_RE.sub("", text)
    if text == "":
        return ParsedCell(None, PARSE_EMPTY, str(raw))
    if not _NUMBER_RE.match(text):
        return ParsedCell(None, PARSE_FAILED, str(raw))
    return ParsedCell(float(text), PARSE_OK, str(raw))


@dataclass
class ColumnParseStats:
    ok: int = 0
    empty: int = 0
    failed: int = 0

    def add(self, cell: ParsedCell) -> None:
        if cell.status == PARSE_OK:
            self.ok += 1
        elif cell.status == PARSE_EMPTY:
            self.empty += 1
        else:
            self.failed += 1


@dataclass
class ParseDiagnostics:
    """What happened to one raw table on its way to canonical records."""

    table_name: str
    rows_in: int = 0
    header_rows_dropped: int = 0
    duplicates_dropped: int = 0
    empty_value_rows_dropped: int = 0
    rows_out: int = 0
    columns: Dict[str, ColumnParseStats] = field(default_factory=dict)

    @property
    def failed_cells(self) -> int:
        return sum(stats.failed for stats in self.columns.values())

    @property
    def empty_cells(self) -> int:
        return sum(stats.empty for stats in self.columns.values())


def coerce_numeric_columns(
    df: pd.DataFrame,
    columns: Sequence[str],
    diagnostics: ParseDiagnostics,
    strict: bool = True,
    currency: bool = False,
) -> pd.DataFrame:
    """
    Parse text columns into float columns, recording per-column counts.

    With ``strict=True`` the first malformed cell raises ``ParseError``;
    otherwise malformed cells become NaN and are only counted.
    """
    out = df.copy()
    for col in columns:
        stats = diagnostics.columns.setdefault(col, ColumnParseStats())
        values: List[float] = []
        for label, raw in out[col].items():
            cell = parse_numeric_cell(raw, currency=currency)
            stats.add(cell)
            if cell.status == PARSE_FAILED and strict:
                raise ParseError(col, cell.raw, row_label=label)
            values.append(cell.value if cell.ok else np.nan)
        out[col] = pd.Series(values, index=out.index, dtype="float64")
    return out


# ----------------- Table helpers -----------------

def _require_columns(df: pd.DataFrame, required: Iterable[str], table_name: str) -> None:
    missing = set(required) - set(df.columns)
    if missing:
        raise MissingColumnsError(table_name, missing)


def _strip_text(series: pd.Series) -> pd.Series:
    return series.fillna("").astype(str).str.strip()


def drop_header_rows(df: pd.DataFrame, header_label: str = "Player") -> Tuple[pd.DataFrame, int]:
    """Remove blank player cells and the header lines repeated inside scraped tables."""
    keep = (df["player"] != "") & (df["player"] != header_label)
    return df[keep].copy(), int((~keep).sum())


def deduplicate_players(df: pd.DataFrame, year: int) -> Tuple[pd.DataFrame, int]:
    """
    Keep one row per player for the season.

    A traded player has one row per team plus a "TOT" row with the season
    totals; only the "TOT" row is kept. A player listed more than once
    without a "TOT" row keeps the first occurrence and raises a
    ``DuplicatePlayerWarning``.
    """
    df = df.reset_index(drop=True)
    is_total = df["team"] == AGGREGATE_TEAM
    row_count = df.groupby("player")["player"].transform("size")
    has_total = is_total.groupby(df["player"]).transform("any")

    inconsistent = df.loc[(row_count > 1) & ~has_total, "player"].unique().tolist()
    if inconsistent:
        warnings.warn(
            DuplicatePlayerWarning(
                f"{year}: {len(inconsistent)} player(s) listed more than once without a "
                f"'{AGGREGATE_TEAM}' row, keeping first occurrence: {inconsistent[:5]}"
            ),
            stacklevel=2,
        )

    # Stable sort puts TOT rows first while preserving source order otherwise
    order = (~is_total).sort_values(kind="mergesort").index
    deduped = df.loc[order].drop_duplicates("player", keep="first").sort_index()
    return deduped, len(df) - len(deduped)


# ----------------- Public normalizers -----------------

def normalize_performance_table(
    raw: pd.DataFrame,
    year: int,
    strict: bool = True,
) -> Tuple[pd.DataFrame, ParseDiagnostics]:
    """
    Normalize one season of advanced stats.

    Parameters:
        raw (pd.DataFrame): Text table for the season (source headers)
        year (int): Season label (ending year)
        strict (bool): Raise ParseError on malformed numeric cells

    Returns:
        (pd.DataFrame, ParseDiagnostics): canonical records with columns
        year, player, team, obpm, dbpm, bpm, minutes, and the parse report
    """
    table_name = f"advanced {year}"
    if raw is None or raw.empty:
        raise EmptyTableError(table_name)

    diagnostics = ParseDiagnostics(table_name=table_name, rows_in=len(raw))

    df = raw.rename(columns=lambda c: PERFORMANCE_HEADER_MAP.get(str(c).strip(), str(c).strip()))
    df = df.loc[:, ~df.columns.duplicated()]
    _require_columns(df, CANONICAL_COLUMNS[1:], table_name)

    df = df[CANONICAL_COLUMNS[1:]].copy()
    df["player"] = _strip_text(df["player"])
    df["team"] = _strip_text(df["team"])

    df, diagnostics.header_rows_dropped = drop_header_rows(df)
    if df.empty:
        raise EmptyTableError(table_name)

    df, diagnostics.duplicates_dropped = deduplicate_players(df, year)
    df = coerce_numeric_columns(df, NUMERIC_COLUMNS, diagnostics, strict=strict)

    df["year"] = int(year)
    df = df[CANONICAL_COLUMNS].reset_index(drop=True)
    diagnostics.rows_out = len(df)
    return df, diagnostics


def season_label(year: int) -> str:
    """Salary sites label a season by both years, e.g. 2021 -> '2020/21'."""
    return f"{year - 1}/{str(year)[-2:]}"


def resolve_salary_column(columns: Sequence[str], year: int, salary_column: Optional[str] = None) -> str:
    """
    Pick the column holding the salaries for ``year``.

    Order: an explicit ``salary_column``; the season label ("2020/21" or
    "2020-21"); the first column that is neither the player column nor a
    rank/team column.
    """
    table_name = f"salaries {year}"
    if salary_column is not None:
        if salary_column not in columns:
            raise MissingColumnsError(table_name, [salary_column])
        return salary_column

    label = season_label(year)
    for candidate in (label, label.replace("/", "-")):
        if candidate in columns:
            return candidate

    for col in columns:
        if col not in SALARY_PLAYER_COLUMNS and col not in NON_SALARY_COLUMNS:
            return col
    raise MissingColumnsError(table_name, [label])


def normalize_salary_table(
    raw: pd.DataFrame,
    year: int,
    salary_column: Optional[str] = None,
    strict: bool = True,
) -> Tuple[pd.DataFrame, ParseDiagnostics]:
    """
    Normalize one season of salaries into (year, player, salary).

    Rows without a salary for the season are dropped. A player listed twice
    (waived and re-signed in the same season) gets the sum of both
    contracts so that each player joins at most once.
    """
    table_name = f"salaries {year}"
    if raw is None or raw.empty:
        raise EmptyTableError(table_name)

    diagnostics = ParseDiagnostics(table_name=table_name, rows_in=len(raw))
    columns = [str(c).strip() for c in raw.columns]
    df = raw.copy()
    df.columns = columns

    player_col = next((c for c in SALARY_PLAYER_COLUMNS if c in columns), None)
    if player_col is None:
        raise MissingColumnsError(table_name, ["Player"])
    value_col = resolve_salary_column(columns, year, salary_column)

    df = df[[player_col, value_col]].rename(columns={player_col: "player", value_col: "salary"})
    df["player"] = _strip_text(df["player"])
    df, diagnostics.header_rows_dropped = drop_header_rows(df, header_label=player_col)

    df = coerce_numeric_columns(df, ["salary"], diagnostics, strict=strict, currency=True)
    has_salary = df["salary"].notna()
    diagnostics.empty_value_rows_dropped = int((~has_salary).sum())
    df = df[has_salary]
    if df.empty:
        raise EmptyTableError(table_name)

    before = len(df)
    df = df.groupby("player", sort=False, as_index=False)["salary"].sum()
    diagnostics.duplicates_dropped = before - len(df)

    df.insert(0, "year", int(year))
    diagnostics.rows_out = len(df)
    return df.reset_index(drop=True), diagnostics
