"""
Sampling declarations.
"""

from typing import Optional
import numpy as np
import pandas as pd
from research_design import DesignStep

from .randomization import randomized_count, unit_table, unit_positions


class SamplingStep(DesignStep):
    """Complete random sampling, optionally within strata and by cluster."""

    step_type = "sampling"

    def __init__(self,
                 n: Optional[int] = None,
                 prob: Optional[float] = None,
                 strata: Optional[str] = None,
                 clusters: Optional[str] = None,
                 label: str = "sampling"):
        super().__init__(label)
        self.n = n
        self.prob = prob
        self.strata = strata
        self.clusters = clusters

    def __call__(self, data: pd.DataFrame, rng: np.random.Generator) -> pd.DataFrame:
        units = unit_table(data, self.strata, self.clusters)

        sampled = np.zeros(len(units), dtype=bool)
        inclusion_prob = np.zeros(len(units))
        for _, group in units.groupby('block', sort=False):
            positions = group.index.to_numpy()
            size = len(positions)
            if self.n is not None:
                if self.n > size:
                    raise ValueError(f"Cannot sample {self.n} units from a stratum of {size}")
                n, prob = self.n, self.n / size
            else:
                prob = self.prob
                n = randomized_count(size, prob, rng)
            sampled[rng.choice(positions, n, replace=False)] = True
            inclusion_prob[positions] = prob

        rows = unit_positions(data, units, self.clusters)
        keep = sampled[rows]
        data = data.loc[keep].reset_index(drop=True)
        previous = data['S_inclusion_prob'].to_numpy() if 'S_inclusion_prob' in data.columns else 1.0
        data['S_inclusion_prob'] = previous * inclusion_prob[rows][keep]
        return data


def declare_sampling(n: Optional[int] = None,
                     prob: Optional[float] = None,
                     strata: Optional[str] = None,
                     clusters: Optional[str] = None,
                     label: str = "sampling") -> SamplingStep:
    """Declare complete random sampling of `n` units (or a `prob` share) per stratum."""
    if (n is None) == (prob is None):
        raise ValueError("Specify exactly one of n and prob")
    if n is not None and n < 0:
        raise ValueError(f"n must be nonnegative, got {n}")
    if prob is not None and not 0 <= prob <= 1:
        raise ValueError(f"prob must be in [0,1], got {prob}")
    return SamplingStep(n=n, prob=prob, strata=strata, clusters=clusters, label=label)
