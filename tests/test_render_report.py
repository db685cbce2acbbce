import pandas as pd

from cap_value.data_helper.normalize_records import ParseDiagnostics
from cap_value.models.classification.train_classification import ClassificationResult
from cap_value.models.regression.train_regression import RegressionSummary
from cap_value.report.render import markdown_table, render_report
from cap_value.report.schema import PipelineAudit


def _audit():
    audit = PipelineAudit()
    audit.record("join salaries", 120, 110, "players without a salary match removed")
    audit.record("outlier filter", 110, 90)
    audit.parse_diagnostics.append(ParseDiagnostics(table_name="advanced 2021", rows_in=12, rows_out=10))
    audit.unmatched_by_year = {2021: ["Bobby Portis", "Thanasis Antetokounmpo"]}
    audit.growth_singular = 1
    audit.ratio_singular = 2
    audit.non_finite_rows = 3
    return audit


def _regression():
    return RegressionSummary(
        name="impact_on_prev",
        target="impact_scaled",
        features=["prev_impact_scaled"],
        n_obs=90,
        n_excluded=1,
        coefficients={"const": 0.1, "prev_impact_scaled": 0.8},
        std_errors={"const": 0.01, "prev_impact_scaled": 0.05},
        p_values={"const": 0.0, "prev_impact_scaled": 0.0},
        r_squared=0.64,
        adj_r_squared=0.63,
    )


def _classification():
    return ClassificationResult(
        threshold=4.2,
        n_train=66,
        n_test=23,
        n_excluded=1,
        sweep=pd.DataFrame({"k": [1, 2, 3], "accuracy": [0.6, 0.7, 0.7]}),
        best_k=2,
        best_accuracy=0.7,
        confusion=pd.DataFrame(
            [[12, 3], [4, 4]],
            index=["actual not cost-efficient", "actual cost-efficient"],
            columns=["predicted not cost-efficient", "predicted cost-efficient"],
        ),
        train_balance={"cost-efficient": 20, "not cost-efficient": 46},
    )


def test_audit_to_frame_counts_drops():
    frame = _audit().to_frame()

    assert frame["stage"].tolist() == ["join salaries", "outlier filter"]
    assert frame["dropped"].tolist() == [10, 20]


def test_markdown_table_layout():
    table = markdown_table(["a", "b"], [[1, 2]])

    assert table.splitlines() == ["| a | b |", "| --- | --- |", "| 1 | 2 |"]


def test_report_has_every_section():
    report = render_report(_audit(), [_regression()], _classification())

    assert report.startswith("# Cap value analysis")
    for heading in (
        "## Data audit",
        "### Parsing",
        "### Players without a salary match",
        "## Regression summaries",
        "### impact_on_prev",
        "## Cost-efficiency classifier (k-NN)",
        "### Accuracy by neighbor count",
        "### Confusion matrix (k = 2)",
    ):
        assert heading in report
    assert "`impact_scaled ~ prev_impact_scaled`" in report
    assert "| prev_impact_scaled | 0.8000 | 0.0500 | 0.0000 |" in report
    assert "best k: 2 (test accuracy 0.7000)" in report
    assert "| 2021 | 2 | Bobby Portis, Thanasis Antetokounmpo |" in report
    assert "| actual cost-efficient | 4 | 4 |" in report
    assert "### Division singularities" in report
    assert "zero growth base (growth is inf/NaN): 1" in report
    assert "zero previous salary (previous ratio is inf/NaN): 2" in report
    assert "any inf/NaN model input: 3" in report


def test_report_without_classifier():
    report = render_report(PipelineAudit(), [_regression()], None, title="Dry run")

    assert report.startswith("# Dry run")
    assert "k-NN" not in report
    assert "### Parsing" not in report
