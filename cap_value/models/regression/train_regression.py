"""
OLS Regressions: does last season predict this season?

Fits ordinary least squares (statsmodels) of a current-season target on
previous-season features:

- impact_scaled    ~ prev_impact_scaled (+ prev_growth)
- impact_to_salary ~ prev_impact_to_salary (+ prev_growth)

Each model is fit on the entire feature table. There is no hold-out or
cross-validation here; the R² values are in-sample and should be read as
descriptive.

Rows with NaN or infinite values in the target or a feature (zero growth
base, zero salary fraction) cannot enter a least-squares fit. They are
excluded per model and the count is reported with the summary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm

from cap_value.utils.errors import MissingColumnsError, StructuralError


# ----------------- Model Configuration -----------------

# (name, target, features)
REGRESSION_SPECS: List[Tuple[str, str, List[str]]] = [
    ("impact_on_prev", "impact_scaled", ["prev_impact_scaled"]),
    ("impact_on_prev_and_growth", "impact_scaled", ["prev_impact_scaled", "prev_growth"]),
    ("ratio_on_prev", "impact_to_salary", ["prev_impact_to_salary"]),
    ("ratio_on_prev_and_growth", "impact_to_salary", ["prev_impact_to_salary", "prev_growth"]),
]


@dataclass
class RegressionSummary:
    """Coefficient table and fit statistics of one OLS model."""

    name: str
    target: str
    features: List[str]
    n_obs: int
    n_excluded: int
    coefficients: Dict[str, float] = field(default_factory=dict)
    std_errors: Dict[str, float] = field(default_factory=dict)
    p_values: Dict[str, float] = field(default_factory=dict)
    r_squared: float = float("nan")
    adj_r_squared: float = float("nan")

    @property
    def formula(self) -> str:
        return f"{self.target} ~ {' + '.join(self.features)}"


# ----------------- Data Preparation -----------------

def build_design_matrix(
    data: pd.DataFrame,
    target: str,
    features: Sequence[str],
) -> Tuple[pd.DataFrame, pd.Series, int]:
    """
    Select the finite rows for one model.

    Args:
        data: Feature table
        target: Target column
        features: Predictor columns

    Returns:
        Tuple of (X, y, n_excluded) where X carries an intercept column
        named "const" and n_excluded counts rows dropped for NaN/inf
    """
    columns = [target, *features]
    missing = set(columns) - set(data.columns)
    if missing:
        raise MissingColumnsError("feature table", missing)

    values = data[columns].astype("float64")
    finite = np.isfinite(values.to_numpy()).all(axis=1)
    usable = values[finite]

    X = sm.add_constant(usable[list(features)], has_constant="add")
    y = usable[target]
    return X, y, int((~finite).sum())


# ----------------- Training -----------------

def fit_ols(
    data: pd.DataFrame,
    target: str,
    features: Sequence[str],
    name: Optional[str] = None,
) -> RegressionSummary:
    """
    Fit one OLS model on the whole table and summarize it.

    Raises:
        StructuralError: if fewer finite rows remain than parameters + 1
    """
    X, y, n_excluded = build_design_matrix(data, target, features)
    n_params = X.shape[1]
    if len(y) <= n_params:
        raise StructuralError(
            f"OLS {target} ~ {' + '.join(features)} needs more than {n_params} finite rows, got {len(y)}"
        )

    model = sm.OLS(y, X).fit()

    summary = RegressionSummary(
        name=name or f"{target}_on_{'_'.join(features)}",
        target=target,
        features=list(features),
        n_obs=int(model.nobs),
        n_excluded=n_excluded,
        coefficients={k: float(v) for k, v in model.params.items()},
        std_errors={k: float(v) for k, v in model.bse.items()},
        p_values={k: float(v) for k, v in model.pvalues.items()},
        r_squared=float(model.rsquared),
        adj_r_squared=float(model.rsquared_adj),
    )
    print(
        f"[train_regression] {summary.formula}: n={summary.n_obs} "
        f"(excluded {n_excluded}) R2={summary.r_squared:.4f}"
    )
    return summary


def run_regressions(
    features: pd.DataFrame,
    specs: Sequence[Tuple[str, str, List[str]]] = REGRESSION_SPECS,
) -> List[RegressionSummary]:
    """Fit every model in ``specs`` on the feature table."""
    print(f"[train_regression] Fitting {len(specs)} OLS models on {len(features):,} rows...")
    return [fit_ols(features, target, cols, name=name) for name, target, cols in specs]
