"""
Exception and warning types raised by the cap value pipeline.

Row-level anomalies (unmatched salaries, broken lag chains, zero
denominators) are not exceptions: those rows are dropped or flagged and
counted in the report. Only the failures below stop a run.
"""

from __future__ import annotations

from typing import Iterable, Optional


class CapValueError(Exception):
    """Base class for every error raised by the pipeline."""


class ParseError(CapValueError, ValueError):
    """Non-numeric content found in a numeric column."""

    def __init__(self, column: str, raw_value: str, row_label: Optional[object] = None) -> None:
        self.column = column
        self.raw_value = raw_value
        self.row_label = row_label
        location = f" (row {row_label})" if row_label is not None else ""
        super().__init__(f"Cannot parse {raw_value!r} in numeric column '{column}'{location}")


class StructuralError(CapValueError, ValueError):
    """Input is unusable as a whole (missing columns, empty tables, ...)."""


class MissingColumnsError(StructuralError):
    def __init__(self, table_name: str, missing: Iterable[str]) -> None:
        self.table_name = table_name
        self.missing = sorted(missing)
        super().__init__(f"{table_name} is missing required columns: {self.missing}")


class EmptyTableError(StructuralError):
    def __init__(self, table_name: str) -> None:
        self.table_name = table_name
        super().__init__(f"{table_name} has no rows")


class MissingSalaryCapError(StructuralError):
    def __init__(self, year: int) -> None:
        self.year = year
        super().__init__(f"No salary cap value known for season {year}")


class ReferencePlayerError(StructuralError):
    """The designated reference player-season cannot provide a threshold."""


class DuplicatePlayerWarning(UserWarning):
    """A player appears more than once in a season without a 'TOT' row."""
