import pandas as pd

from cap_value.data_helper.filter_outliers import filter_outliers


def _table():
    return pd.DataFrame(
        {
            "player": ["A", "B", "C", "D", "E", "F"],
            "minutes": [2000.0, 800.0, 801.0, 1500.0, 1500.0, float("nan")],
            "salary_fraction": [0.2, 0.2, 0.2, 0.01, float("nan"), 0.2],
        }
    )


def test_thresholds_are_strict_and_missing_values_fail():
    kept, removed = filter_outliers(_table())

    assert kept["player"].tolist() == ["A", "C"]
    assert removed == 4


def test_custom_thresholds():
    kept, removed = filter_outliers(_table(), min_minutes=0, min_salary_fraction=0.0)

    assert kept["player"].tolist() == ["A", "B", "C", "D"]
    assert removed == 2


def test_filter_keeps_index_and_input():
    table = _table()
    before = table.copy()

    kept, _ = filter_outliers(table)

    assert kept.index.tolist() == [0, 2]
    pd.testing.assert_frame_equal(table, before)
