"""
Difference-in-means estimator with blocked and clustered variants.
"""

from typing import Any, Callable, Optional, Tuple
import numpy as np
import pandas as pd

from .formula import parse_formula
from .lm_robust import tidy_estimates


def _two_group_difference(y: np.ndarray, z: np.ndarray) -> Tuple[float, float, float]:
    """Neyman difference in means with Welch degrees of freedom."""
    treated, control = y[z == 1], y[z == 0]
    n1, n0 = len(treated), len(control)
    if n1 < 2 or n0 < 2:
        raise ValueError("Each condition needs at least two units to estimate a standard error")

    v1, v0 = np.var(treated, ddof=1) / n1, np.var(control, ddof=1) / n0
    variance = v1 + v0
    if variance > 0:
        df = variance ** 2 / (v1 ** 2 / (n1 - 1) + v0 ** 2 / (n0 - 1))
    else:
        df = n1 + n0 - 2
    return np.mean(treated) - np.mean(control), variance, df


def _cluster_means(frame: pd.DataFrame, clusters: Optional[str]) -> pd.DataFrame:
    if clusters is None:
        return frame
    if (frame.groupby(clusters)['z'].nunique() > 1).any():
        raise ValueError("Treatment must be constant within clusters")
    return frame.groupby(clusters, as_index=False, sort=False).agg(y=('y', 'mean'), z=('z', 'first'))


def difference_in_means(data: pd.DataFrame,
                        formula: str,
                        blocks: Optional[str] = None,
                        clusters: Optional[str] = None,
                        condition1: Any = None,
                        condition2: Any = None,
                        alpha: float = 0.05,
                        subset: Optional[Callable[[pd.DataFrame], np.ndarray]] = None) -> pd.DataFrame:
    """Estimate the mean difference between two conditions.

    With `clusters`, units are averaged within clusters first. With `blocks`,
    block-level differences are averaged with weights proportional to block
    size; when every block holds exactly one treated and one control unit the
    matched-pairs variance is used.

    Args:
        data: Data frame with outcome and treatment columns
        formula: ``"Y ~ Z"``
        blocks: Column identifying blocks
        clusters: Column identifying clusters
        condition1: Control condition (default: smaller of the two observed values)
        condition2: Treatment condition (default: larger of the two observed values)
        alpha: Significance level for confidence intervals
        subset: Callable returning a boolean mask of rows to keep

    Returns:
        Single-row estimates frame with term named after the treatment
    """
    outcome, terms, _ = parse_formula(formula)
    if len(terms) != 1 or ":" in terms[0]:
        raise ValueError(f"difference_in_means needs a single treatment variable: {formula!r}")
    treatment = terms[0]

    if subset is not None:
        data = data[np.asarray(subset(data), dtype=bool)]

    if condition1 is None or condition2 is None:
        observed = sorted(pd.unique(data[treatment]))
        if len(observed) != 2:
            raise ValueError(f"{treatment} must take exactly two values; use condition1 and condition2")
        condition1, condition2 = observed
    data = data[data[treatment].isin([condition1, condition2])]

    frame = pd.DataFrame({
        'y': data[outcome].to_numpy(dtype=float),
        'z': (data[treatment] == condition2).to_numpy().astype(int)
    })
    for column in (blocks, clusters):
        if column is not None:
            frame[column] = data[column].to_numpy()

    if blocks is None:
        units = _cluster_means(frame, clusters)
        estimate, variance, df = _two_group_difference(units['y'].to_numpy(), units['z'].to_numpy())
        if clusters is not None:
            df = len(units) - 2
        return tidy_estimates([treatment], [estimate], [np.sqrt(variance)], df, alpha, outcome)

    block_rows = []
    for block, group in frame.groupby(blocks, sort=False):
        units = _cluster_means(group, clusters)
        z = units['z'].to_numpy()
        block_rows.append({
            'N': len(group),
            'n_units': len(units),
            'n_treated': int(z.sum()),
            'units': units,
        })

    total = sum(row['N'] for row in block_rows)
    n_blocks = len(block_rows)
    pairs = [row['n_units'] == 2 and row['n_treated'] == 1 for row in block_rows]

    if all(pairs):
        if n_blocks < 2:
            raise ValueError("Matched-pairs variance needs at least two blocks")
        weights = np.array([row['N'] for row in block_rows]) / total
        diffs = np.array([
            row['units']['y'][row['units']['z'] == 1].iloc[0] - row['units']['y'][row['units']['z'] == 0].iloc[0]
            for row in block_rows
        ])
        estimate = np.sum(weights * diffs)
        variance = n_blocks / (n_blocks - 1) * np.sum(weights ** 2 * (diffs - estimate) ** 2)
        df = n_blocks - 1
    elif any(pairs):
        raise ValueError("Cannot mix matched-pair blocks with larger blocks")
    else:
        estimate, variance = 0.0, 0.0
        for row in block_rows:
            units = row['units']
            diff, block_variance, _ = _two_group_difference(units['y'].to_numpy(), units['z'].to_numpy())
            weight = row['N'] / total
            estimate += weight * diff
            variance += weight ** 2 * block_variance
        n_units = sum(row['n_units'] for row in block_rows)
        df = n_units - 2 * n_blocks

    return tidy_estimates([treatment], [estimate], [np.sqrt(variance)], df, alpha, outcome)
