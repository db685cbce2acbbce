"""
Data containers for the analysis report.

The pipeline fills a ``PipelineAudit`` as rows move from stage to stage so
the report can show where rows were lost and why. Model results have their
own containers next to the models (``RegressionSummary``,
``ClassificationResult``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

import pandas as pd

from cap_value.data_helper.normalize_records import ParseDiagnostics


@dataclass
class StageCount:
    """Rows entering and leaving one pipeline stage."""

    stage: str
    rows_in: int
    rows_out: int
    note: str = ""

    @property
    def dropped(self) -> int:
        return self.rows_in - self.rows_out


@dataclass
class PipelineAudit:
    """Row accounting for a full run."""

    stages: List[StageCount] = field(default_factory=list)
    parse_diagnostics: List[ParseDiagnostics] = field(default_factory=list)
    unmatched_by_year: Dict[int, List[str]] = field(default_factory=dict)
    growth_singular: int = 0
    ratio_singular: int = 0
    non_finite_rows: int = 0

    def record(self, stage: str, rows_in: int, rows_out: int, note: str = "") -> StageCount:
        count = StageCount(stage=stage, rows_in=int(rows_in), rows_out=int(rows_out), note=note)
        self.stages.append(count)
        print(f"[audit] {stage}: {count.rows_in:,} -> {count.rows_out:,} (dropped {count.dropped:,})")
        return count

    def to_frame(self) -> pd.DataFrame:
        """One row per stage, in pipeline order."""
        return pd.DataFrame(
            [
                {
                    "stage": s.stage,
                    "rows_in": s.rows_in,
                    "rows_out": s.rows_out,
                    "dropped": s.dropped,
                    "note": s.note,
                }
                for s in self.stages
            ],
            columns=["stage", "rows_in", "rows_out", "dropped", "note"],
        )
