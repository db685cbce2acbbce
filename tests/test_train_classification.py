import numpy as np
import pandas as pd
import pytest

from cap_value.models.classification.train_classification import (
    LABEL_COL,
    best_neighbor_count,
    evaluate_classifier,
    label_cost_efficiency,
    reference_threshold,
    split_train_test,
    sweep_neighbors,
)
from cap_value.utils.errors import ReferencePlayerError, StructuralError


def _features(n_low=30, n_high=10, seed=1):
    """Feature rows with ratios 1.0 (n_low rows) and 5.0 (n_high rows)."""
    rng = np.random.default_rng(seed)
    n = n_low + n_high
    return pd.DataFrame(
        {
            "player": [f"Player {i:02d}" for i in range(n)],
            "year": 2021,
            "prev_impact_scaled": rng.uniform(0.0, 1.0, n),
            "prev_growth": rng.normal(0.0, 0.5, n),
            "prev_salary_fraction": rng.uniform(0.02, 0.3, n),
            "impact_to_salary": [1.0] * n_low + [5.0] * n_high,
        }
    )


def test_reference_threshold_reads_the_ratio():
    panel = pd.DataFrame(
        {
            "player": ["Jrue Holiday", "Jrue Holiday", "Khris Middleton"],
            "year": [2020, 2021, 2021],
            "impact_to_salary": [2.0, 3.5, 1.0],
        }
    )

    assert reference_threshold(panel, "Jrue Holiday", 2021) == pytest.approx(3.5)


def test_reference_threshold_errors():
    panel = pd.DataFrame(
        {
            "player": ["Jrue Holiday", "Khris Middleton"],
            "year": [2021, 2021],
            "impact_to_salary": [float("nan"), 1.0],
        }
    )

    with pytest.raises(ReferencePlayerError):
        reference_threshold(panel, "Giannis Antetokounmpo", 2021)
    with pytest.raises(ReferencePlayerError):
        reference_threshold(panel, "Khris Middleton", 2019)
    with pytest.raises(ReferencePlayerError):
        reference_threshold(panel, "Jrue Holiday", 2021)


def test_label_is_inclusive_and_monotone_in_threshold():
    features = _features()

    at_threshold = label_cost_efficiency(features, 5.0)
    assert at_threshold[LABEL_COL].sum() == 10

    low = label_cost_efficiency(features, 0.5)[LABEL_COL]
    high = label_cost_efficiency(features, 2.0)[LABEL_COL]
    assert (high <= low).all()
    assert LABEL_COL not in features.columns


def test_split_sizes_and_reproducibility():
    data = label_cost_efficiency(_features(), 2.0)

    train_a, test_a = split_train_test(data, seed=7)
    train_b, test_b = split_train_test(data, seed=7)

    assert len(train_a) == 30
    assert len(test_a) == 10
    assert train_a.index.tolist() == train_b.index.tolist()
    assert set(train_a.index).isdisjoint(test_a.index)


def test_split_needs_two_rows():
    with pytest.raises(StructuralError):
        split_train_test(_features(1, 0))


def test_k_equal_to_train_size_predicts_training_majority():
    data = label_cost_efficiency(_features(), 2.0)
    train, test = split_train_test(data, seed=3)
    assert train[LABEL_COL].sum() < len(train) / 2

    sweep = sweep_neighbors(train, test, k_values=[len(train)])

    expected = float((~test[LABEL_COL]).mean())
    assert sweep["accuracy"].iloc[0] == pytest.approx(expected)


def test_sweep_uses_each_k_and_rejects_k_above_train_size():
    data = label_cost_efficiency(_features(), 2.0)
    train, test = split_train_test(data, seed=3)

    sweep = sweep_neighbors(train, test, k_values=range(1, 6))
    assert sweep["k"].tolist() == [1, 2, 3, 4, 5]
    assert sweep["accuracy"].between(0.0, 1.0).all()

    with pytest.raises(StructuralError):
        sweep_neighbors(train, test, k_values=[len(train) + 1])
    with pytest.raises(StructuralError):
        sweep_neighbors(train, test, k_values=[0, 1])


def test_best_k_prefers_smallest_on_tie():
    sweep = pd.DataFrame({"k": [3, 1, 2, 4], "accuracy": [0.8, 0.5, 0.8, 0.7]})

    assert best_neighbor_count(sweep) == (2, pytest.approx(0.8))


def test_evaluate_classifier_is_reproducible():
    features = _features()

    first = evaluate_classifier(features, threshold=2.0, k_values=range(1, 11), seed=11)
    second = evaluate_classifier(features, threshold=2.0, k_values=range(1, 11), seed=11)

    assert first.train_index == second.train_index
    pd.testing.assert_frame_equal(first.sweep, second.sweep)
    assert first.best_k == second.best_k
    assert (first.n_train, first.n_test) == (30, 10)
    assert int(first.confusion.to_numpy().sum()) == first.n_test
    assert sum(first.train_balance.values()) == first.n_train
    assert first.best_accuracy == pytest.approx(first.sweep["accuracy"].max())


def test_evaluate_classifier_excludes_non_finite_rows():
    features = _features()
    features.loc[0, "prev_growth"] = np.inf
    features.loc[1, "prev_growth"] = np.nan

    result = evaluate_classifier(features, threshold=2.0, k_values=range(1, 6))

    assert result.n_excluded == 2
    assert result.n_train + result.n_test == 38
    assert result.confusion.shape == (2, 2)
