"""
k-Nearest-Neighbors Classification of Cost-Efficient Players

Labels each feature row as cost-efficient when its impact-to-salary ratio
is at least the ratio of one reference player-season, then asks whether
the previous-season features alone can recover that label:

- seeded 75/25 random train/test split (without replacement)
- KNeighborsClassifier on prev_impact_scaled, prev_growth,
  prev_salary_fraction
- sweep of the neighbor count k, accuracy on the test split for each k
- best k (smallest k on ties), its confusion matrix and the class balance
  of the training labels

Features are used on their raw scale, as the lag features come out of the
feature engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np
import pandas as pd

from sklearn.model_selection import train_test_split
from sklearn.neighbors import KNeighborsClassifier
from sklearn.metrics import accuracy_score, confusion_matrix

from cap_value.data_helper.build_feature_panel import LAG_FEATURES
from cap_value.utils.errors import ReferencePlayerError, StructuralError


# ----------------- Model Configuration -----------------
REFERENCE_PLAYER = "Jrue Holiday"
REFERENCE_YEAR = 2021

TRAIN_FRACTION = 0.75
RANDOM_SEED = 42
K_VALUES = range(1, 41)

LABEL_COL = "cost_efficient"
CLASS_NAMES = {False: "not cost-efficient", True: "cost-efficient"}


@dataclass
class ClassificationResult:
    """Everything the report needs from one evaluation run."""

    threshold: float
    n_train: int
    n_test: int
    n_excluded: int
    sweep: pd.DataFrame
    best_k: int
    best_accuracy: float
    confusion: pd.DataFrame
    train_balance: Dict[str, int] = field(default_factory=dict)
    train_index: List[int] = field(default_factory=list)


# ----------------- Labels -----------------

def reference_threshold(panel: pd.DataFrame, player: str, year: int) -> float:
    """
    Return the impact-to-salary ratio of the reference player-season.

    Raises:
        ReferencePlayerError: if the player-season is absent from the panel
            or its ratio is undefined (not a joined season, zero salary)
    """
    match = panel[(panel["player"] == player) & (panel["year"] == year)]
    if match.empty:
        raise ReferencePlayerError(f"Reference player-season not in panel: {player} {year}")

    value = float(match["impact_to_salary"].iloc[0])
    if not np.isfinite(value):
        raise ReferencePlayerError(f"Reference ratio for {player} {year} is undefined ({value})")
    print(f"[train_classification] Reference {player} {year}: impact_to_salary = {value:.4f}")
    return value


def label_cost_efficiency(features: pd.DataFrame, threshold: float) -> pd.DataFrame:
    """Add the boolean cost_efficient column (ratio >= threshold)."""
    out = features.copy()
    out[LABEL_COL] = out["impact_to_salary"] >= threshold
    return out


# ----------------- Split & Sweep -----------------

def split_train_test(
    data: pd.DataFrame,
    train_fraction: float = TRAIN_FRACTION,
    seed: int = RANDOM_SEED,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Seeded random split without replacement; the same seed gives the same split."""
    if len(data) < 2:
        raise StructuralError(f"Need at least 2 labelled rows to split, got {len(data)}")

    train, test = train_test_split(
        data,
        train_size=train_fraction,
        random_state=seed,
        shuffle=True,
    )
    print(f"[train_classification] Train shape: {train.shape}, Test shape: {test.shape}")
    return train, test


def sweep_neighbors(
    train: pd.DataFrame,
    test: pd.DataFrame,
    k_values: Iterable[int] = K_VALUES,
    feature_cols: Sequence[str] = LAG_FEATURES,
) -> pd.DataFrame:
    """
    Fit a k-NN classifier for every k and score it on the test split.

    Returns:
        DataFrame with columns k and accuracy, one row per k, in k order
    """
    k_values = sorted(set(int(k) for k in k_values))
    if not k_values or k_values[0] < 1:
        raise StructuralError(f"Neighbor counts must be positive integers, got {k_values}")
    if k_values[-1] > len(train):
        raise StructuralError(
            f"Largest k ({k_values[-1]}) exceeds the training split ({len(train)} rows)"
        )

    X_train = train[list(feature_cols)].to_numpy(dtype="float64")
    y_train = train[LABEL_COL].to_numpy()
    X_test = test[list(feature_cols)].to_numpy(dtype="float64")
    y_test = test[LABEL_COL].to_numpy()

    rows = []
    for k in k_values:
        model = KNeighborsClassifier(n_neighbors=k)
        model.fit(X_train, y_train)
        y_pred = model.predict(X_test)
        rows.append({"k": k, "accuracy": float(accuracy_score(y_test, y_pred))})

    return pd.DataFrame(rows, columns=["k", "accuracy"])


def best_neighbor_count(sweep: pd.DataFrame) -> Tuple[int, float]:
    """Highest test accuracy; the smallest k wins a tie."""
    ordered = sweep.sort_values("k").reset_index(drop=True)
    best = ordered.loc[ordered["accuracy"].idxmax()]
    return int(best["k"]), float(best["accuracy"])


def confusion_for_k(
    train: pd.DataFrame,
    test: pd.DataFrame,
    k: int,
    feature_cols: Sequence[str] = LAG_FEATURES,
) -> pd.DataFrame:
    """Confusion matrix on the test split, rows = actual, columns = predicted."""
    model = KNeighborsClassifier(n_neighbors=k)
    model.fit(train[list(feature_cols)].to_numpy(dtype="float64"), train[LABEL_COL].to_numpy())
    y_pred = model.predict(test[list(feature_cols)].to_numpy(dtype="float64"))

    labels = [False, True]
    matrix = confusion_matrix(test[LABEL_COL].to_numpy(), y_pred, labels=labels)
    names = [CLASS_NAMES[label] for label in labels]
    return pd.DataFrame(
        matrix,
        index=[f"actual {n}" for n in names],
        columns=[f"predicted {n}" for n in names],
    )


# ----------------- Evaluation Pipeline -----------------

def evaluate_classifier(
    features: pd.DataFrame,
    threshold: float,
    k_values: Iterable[int] = K_VALUES,
    seed: int = RANDOM_SEED,
    train_fraction: float = TRAIN_FRACTION,
) -> ClassificationResult:
    """
    Label, split, sweep k and summarize the best classifier.

    Rows whose lag features or ratio are NaN/inf cannot be placed in the
    feature space; they are excluded before the split and counted.
    """
    print("[train_classification] Evaluating k-NN cost-efficiency classifier...")

    check_cols = [*LAG_FEATURES, "impact_to_salary"]
    values = features[check_cols].to_numpy(dtype="float64")
    finite = np.isfinite(values).all(axis=1)
    n_excluded = int((~finite).sum())
    usable = features[finite]

    labelled = label_cost_efficiency(usable, threshold)
    train, test = split_train_test(labelled, train_fraction=train_fraction, seed=seed)

    sweep = sweep_neighbors(train, test, k_values)
    best_k, best_accuracy = best_neighbor_count(sweep)
    confusion = confusion_for_k(train, test, best_k)

    counts = train[LABEL_COL].value_counts()
    train_balance = {CLASS_NAMES[label]: int(counts.get(label, 0)) for label in (True, False)}

    print(f"[train_classification] Training label balance: {train_balance}")
    print(f"[train_classification] Best k = {best_k} (accuracy {best_accuracy:.4f})")

    return ClassificationResult(
        threshold=threshold,
        n_train=len(train),
        n_test=len(test),
        n_excluded=n_excluded,
        sweep=sweep,
        best_k=best_k,
        best_accuracy=best_accuracy,
        confusion=confusion,
        train_balance=train_balance,
        train_index=train.index.tolist(),
    )
