"""
Ordinary least squares with heteroskedasticity- and cluster-robust standard errors.
"""

from typing import Callable, Optional
import numpy as np
import pandas as pd
from scipy import stats
from scipy.linalg import solve

from .formula import parse_formula, model_matrix


SE_TYPES = ("classical", "HC0", "HC1", "HC2", "stata")


def tidy_estimates(terms, estimates, std_errors, df, alpha: float, outcome: str) -> pd.DataFrame:
    """Assemble t-based inference into the standard estimates frame."""
    estimates = np.asarray(estimates, dtype=float)
    std_errors = np.asarray(std_errors, dtype=float)
    df = np.broadcast_to(np.asarray(df, dtype=float), estimates.shape)

    with np.errstate(divide='ignore', invalid='ignore'):
        statistic = estimates / std_errors
    p_value = 2 * stats.t.sf(np.abs(statistic), df)
    critical = stats.t.ppf(1 - alpha / 2, df)

    return pd.DataFrame({
        'term': list(terms),
        'estimate': estimates,
        'std_error': std_errors,
        'statistic': statistic,
        'p_value': p_value,
        'conf_low': estimates - critical * std_errors,
        'conf_high': estimates + critical * std_errors,
        'df': df,
        'outcome': outcome
    })


def lm_robust(data: pd.DataFrame,
              formula: str,
              clusters: Optional[str] = None,
              se_type: Optional[str] = None,
              alpha: float = 0.05,
              subset: Optional[Callable[[pd.DataFrame], np.ndarray]] = None) -> pd.DataFrame:
    """Fit OLS and return one row per coefficient.

    Args:
        data: Data frame holding the outcome and regressors
        formula: Model formula, e.g. ``"Y ~ A + B + A:B"``
        clusters: Column identifying clusters; switches to cluster-robust errors
        se_type: One of "classical", "HC0", "HC1", "HC2" (default) or "stata"
            (default when clustered)
        alpha: Significance level for confidence intervals
        subset: Callable returning a boolean mask of rows to keep

    Returns:
        Frame with term, estimate, std_error, statistic, p_value, conf_low,
        conf_high, df and outcome columns
    """
    if se_type is None:
        se_type = "stata" if clusters is not None else "HC2"
    if se_type not in SE_TYPES:
        raise ValueError(f"se_type must be one of {', '.join(SE_TYPES)}")
    if se_type == "stata" and clusters is None:
        raise ValueError("se_type 'stata' requires clusters")
    if clusters is not None and se_type != "stata":
        raise ValueError("Only se_type 'stata' is available with clusters")

    if subset is not None:
        data = data[np.asarray(subset(data), dtype=bool)]

    outcome, terms, intercept = parse_formula(formula)
    X_frame = model_matrix(data, terms, intercept)
    X = X_frame.to_numpy(dtype=float)
    y = data[outcome].to_numpy(dtype=float)
    n, k = X.shape

    if n <= k:
        raise ValueError(f"Need more observations ({n}) than coefficients ({k})")
    if np.linalg.matrix_rank(X) < k:
        raise ValueError(f"Design matrix is rank deficient for formula {formula!r}")

    XtX = X.T @ X
    bread = solve(XtX, np.eye(k), assume_a='pos')
    beta = bread @ (X.T @ y)
    residuals = y - X @ beta

    if se_type == "classical":
        sigma2 = residuals @ residuals / (n - k)
        vcov = sigma2 * bread
        df = n - k
    elif se_type == "stata":
        groups = pd.Series(data[clusters].to_numpy())
        n_clusters = groups.nunique()
        if n_clusters < 2:
            raise ValueError("Cluster-robust errors need at least two clusters")
        scores = pd.DataFrame(X * residuals[:, None]).groupby(groups.to_numpy()).sum().to_numpy()
        meat = scores.T @ scores
        correction = n_clusters / (n_clusters - 1) * (n - 1) / (n - k)
        vcov = correction * bread @ meat @ bread
        df = n_clusters - 1
    else:
        squared = residuals ** 2
        if se_type == "HC2":
            leverage = np.sum((X @ bread) * X, axis=1)
            squared = squared / (1 - leverage)
        meat = (X * squared[:, None]).T @ X
        vcov = bread @ meat @ bread
        if se_type == "HC1":
            vcov = vcov * n / (n - k)
        df = n - k

    return tidy_estimates(X_frame.columns, beta, np.sqrt(np.diag(vcov)), df, alpha, outcome)
