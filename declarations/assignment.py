"""
Treatment assignment declarations.
"""

from typing import Any, Optional, Sequence
import numpy as np
import pandas as pd
from research_design import DesignStep

from .randomization import complete_ra, unit_table, unit_positions


class AssignmentStep(DesignStep):
    """Complete random assignment, optionally within blocks and by cluster."""

    step_type = "assignment"

    def __init__(self,
                 prob: Optional[float] = None,
                 m: Optional[int] = None,
                 conditions: Optional[Sequence[Any]] = None,
                 blocks: Optional[str] = None,
                 clusters: Optional[str] = None,
                 assignment_variable: str = "Z",
                 label: str = "assignment"):
        super().__init__(label)
        self.prob = prob
        self.m = m
        self.conditions = list(conditions) if conditions is not None else None
        self.blocks = blocks
        self.clusters = clusters
        self.assignment_variable = assignment_variable

    def __call__(self, data: pd.DataFrame, rng: np.random.Generator) -> pd.DataFrame:
        units = unit_table(data, self.blocks, self.clusters)

        assignment = np.empty(len(units), dtype=object)
        cond_prob = np.empty(len(units))
        for _, group in units.groupby('block', sort=False):
            positions = group.index.to_numpy()
            z, p = complete_ra(len(positions), rng, prob=self.prob, m=self.m, conditions=self.conditions)
            assignment[positions] = z
            cond_prob[positions] = p

        rows = unit_positions(data, units, self.clusters)
        data = data.copy()
        data[self.assignment_variable] = pd.Series(assignment[rows]).infer_objects().to_numpy()
        data[f"{self.assignment_variable}_cond_prob"] = cond_prob[rows]
        return data


def declare_assignment(prob: Optional[float] = None,
                       m: Optional[int] = None,
                       conditions: Optional[Sequence[Any]] = None,
                       blocks: Optional[str] = None,
                       clusters: Optional[str] = None,
                       assignment_variable: str = "Z",
                       label: str = "assignment") -> AssignmentStep:
    """Declare complete random assignment.

    Args:
        prob: Probability of treatment (two arms; default 0.5)
        m: Number of treated units per block (two arms)
        conditions: Condition values for multi-arm assignment with equal probabilities
        blocks: Column identifying blocks; assignment is done separately in each
        clusters: Column identifying clusters; whole clusters are assigned together
        assignment_variable: Name of the assignment column
        label: Step label
    """
    if sum(arg is not None for arg in (prob, m, conditions)) > 1:
        raise ValueError("Specify at most one of prob, m and conditions")
    if prob is not None and not 0 <= prob <= 1:
        raise ValueError(f"prob must be in [0,1], got {prob}")
    if m is not None and m < 0:
        raise ValueError(f"m must be nonnegative, got {m}")
    if conditions is not None and len(conditions) < 2:
        raise ValueError("conditions must list at least two values")
    return AssignmentStep(prob=prob, m=m, conditions=conditions, blocks=blocks,
                          clusters=clusters, assignment_variable=assignment_variable, label=label)
