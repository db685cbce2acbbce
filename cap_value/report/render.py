"""Markdown rendering of the audit, regression and classifier results."""

from __future__ import annotations

from typing import List, Optional, Sequence

from cap_value.models.classification.train_classification import ClassificationResult
from cap_value.models.regression.train_regression import RegressionSummary
from cap_value.report.schema import PipelineAudit


def _fmt(value: float, digits: int = 4) -> str:
    return f"{value:.{digits}f}"


def markdown_table(headers: Sequence[str], rows: Sequence[Sequence[object]]) -> str:
    """Plain pipe table; cells are rendered with str()."""
    lines = [
        "| " + " | ".join(str(h) for h in headers) + " |",
        "| " + " | ".join("---" for _ in headers) + " |",
    ]
    for row in rows:
        lines.append("| " + " | ".join(str(cell) for cell in row) + " |")
    return "\n".join(lines)


def render_audit(audit: PipelineAudit) -> str:
    lines = ["## Data audit", ""]
    lines.append(
        markdown_table(
            ["Stage", "Rows in", "Rows out", "Dropped", "Note"],
            [[s.stage, s.rows_in, s.rows_out, s.dropped, s.note] for s in audit.stages],
        )
    )

    if audit.parse_diagnostics:
        lines += ["", "### Parsing", ""]
        lines.append(
            markdown_table(
                ["Table", "Rows in", "Header rows", "Duplicates", "No salary", "Empty cells", "Failed cells", "Rows out"],
                [
                    [
                        d.table_name,
                        d.rows_in,
                        d.header_rows_dropped,
                        d.duplicates_dropped,
                        d.empty_value_rows_dropped,
                        d.empty_cells,
                        d.failed_cells,
                        d.rows_out,
                    ]
                    for d in audit.parse_diagnostics
                ],
            )
        )

    if audit.unmatched_by_year:
        lines += ["", "### Players without a salary match", ""]
        lines.append(
            markdown_table(
                ["Season", "Unmatched", "Examples"],
                [
                    [year, len(names), ", ".join(names[:5])]
                    for year, names in sorted(audit.unmatched_by_year.items())
                ],
            )
        )

    lines += [
        "",
        "### Division singularities",
        "",
        f"- feature rows with a zero growth base (growth is inf/NaN): {audit.growth_singular}",
        f"- feature rows with a zero previous salary (previous ratio is inf/NaN): {audit.ratio_singular}",
        f"- feature rows with any inf/NaN model input: {audit.non_finite_rows}",
    ]
    return "\n".join(lines)


def render_regression(summary: RegressionSummary) -> str:
    lines = [
        f"### {summary.name}",
        "",
        f"`{summary.formula}`",
        "",
        f"- observations: {summary.n_obs} (excluded as non-finite: {summary.n_excluded})",
        f"- R²: {_fmt(summary.r_squared)} (adjusted {_fmt(summary.adj_r_squared)})",
        "",
    ]
    rows = [
        [term, _fmt(coef), _fmt(summary.std_errors[term]), _fmt(summary.p_values[term])]
        for term, coef in summary.coefficients.items()
    ]
    lines.append(markdown_table(["Term", "Coefficient", "Std. error", "p-value"], rows))
    return "\n".join(lines)


def render_classification(result: ClassificationResult) -> str:
    lines = [
        "## Cost-efficiency classifier (k-NN)",
        "",
        f"- threshold (reference impact-to-salary): {_fmt(result.threshold)}",
        f"- train rows: {result.n_train}, test rows: {result.n_test}, excluded as non-finite: {result.n_excluded}",
        "- training label balance: "
        + ", ".join(f"{name} {count}" for name, count in result.train_balance.items()),
        f"- best k: {result.best_k} (test accuracy {_fmt(result.best_accuracy)})",
        "",
        "### Accuracy by neighbor count",
        "",
        markdown_table(
            ["k", "accuracy"],
            [[int(row.k), _fmt(row.accuracy)] for row in result.sweep.itertuples(index=False)],
        ),
        "",
        f"### Confusion matrix (k = {result.best_k})",
        "",
        markdown_table(
            ["", *result.confusion.columns],
            [[label, *values] for label, values in zip(result.confusion.index, result.confusion.to_numpy().tolist())],
        ),
    ]
    return "\n".join(lines)


def render_report(
    audit: PipelineAudit,
    regressions: List[RegressionSummary],
    classification: Optional[ClassificationResult],
    title: str = "Cap value analysis",
) -> str:
    """Assemble the full markdown report."""
    sections = [f"# {title}", render_audit(audit), "## Regression summaries"]
    sections += [render_regression(summary) for summary in regressions]
    if classification is not None:
        sections.append(render_classification(classification))
    return "\n\n".join(sections) + "\n"
