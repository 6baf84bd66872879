"""
Complete random assignment and sampling, optionally blocked and clustered.
"""

from typing import Any, Optional, Sequence, Tuple
import numpy as np
import pandas as pd


def randomized_count(n: int, prob: float, rng: np.random.Generator) -> int:
    """Number of units to select; fractional ``n * prob`` is resolved at random."""
    expected = n * prob
    count = int(np.floor(expected))
    if rng.random() < expected - count:
        count += 1
    return count


def complete_ra(n: int,
                rng: np.random.Generator,
                prob: Optional[float] = None,
                m: Optional[int] = None,
                conditions: Optional[Sequence[Any]] = None) -> Tuple[np.ndarray, np.ndarray]:
    """Complete random assignment of `n` units.

    Returns:
        assignment, probability of each unit's realised condition
    """
    if conditions is not None:
        k = len(conditions)
        counts = np.full(k, n // k)
        counts[rng.choice(k, n - counts.sum(), replace=False)] += 1
        assignment = rng.permutation(np.repeat(np.asarray(conditions), counts))
        return assignment, np.full(n, 1 / k)

    if m is not None:
        if m < 0 or m > n:
            raise ValueError(f"m must be between 0 and the number of units ({n})")
        prob = m / n
    else:
        if prob is None:
            prob = 0.5
        m = randomized_count(n, prob, rng)

    assignment = np.zeros(n, dtype=int)
    assignment[rng.choice(n, m, replace=False)] = 1
    return assignment, np.where(assignment == 1, prob, 1 - prob)


def unit_table(data: pd.DataFrame, blocks: Optional[str], clusters: Optional[str]) -> pd.DataFrame:
    """One row per randomization unit with its block."""
    units = pd.DataFrame({
        'unit': data[clusters].to_numpy() if clusters is not None else np.arange(len(data)),
        'block': data[blocks].to_numpy() if blocks is not None else 0
    })
    if clusters is not None and blocks is not None:
        if (units.groupby('unit')['block'].nunique() > 1).any():
            raise ValueError(f"Clusters ({clusters}) must be nested within blocks ({blocks})")
    return units.drop_duplicates('unit').reset_index(drop=True)


def unit_positions(data: pd.DataFrame, units: pd.DataFrame, clusters: Optional[str]) -> np.ndarray:
    """Row of `units` for each row of `data`."""
    if clusters is None:
        return np.arange(len(data))
    lookup = pd.Series(np.arange(len(units)), index=units['unit'].to_numpy())
    return lookup.loc[data[clusters].to_numpy()].to_numpy()
