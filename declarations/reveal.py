"""
Reveal observed outcomes from potential outcomes.
"""

from typing import List, Sequence, Union
import numpy as np
import pandas as pd
from research_design import DesignStep


def _as_list(value: Union[str, Sequence[str]]) -> List[str]:
    return [value] if isinstance(value, str) else list(value)


class RevealStep(DesignStep):
    """Set each observed outcome from the potential outcome matching the realised assignment."""

    step_type = "reveal"

    def __init__(self, outcome_variables: List[str], assignment_variables: List[str], label: str = "reveal"):
        super().__init__(label)
        self.outcome_variables = outcome_variables
        self.assignment_variables = assignment_variables

    def __call__(self, data: pd.DataFrame, rng: np.random.Generator) -> pd.DataFrame:
        missing = [v for v in self.assignment_variables if v not in data.columns]
        if missing:
            raise ValueError(f"Assignment variables not found in data: {', '.join(missing)}")

        suffix = pd.Series("", index=data.index)
        for variable in self.assignment_variables:
            suffix = suffix + f"_{variable}_" + data[variable].astype(str)

        data = data.copy()
        for outcome in self.outcome_variables:
            columns = outcome + suffix
            observed = np.empty(len(data))
            for column in columns.unique():
                if column not in data.columns:
                    raise ValueError(f"Potential outcome {column} not found in data")
                mask = (columns == column).to_numpy()
                observed[mask] = data.loc[mask, column].to_numpy(dtype=float)
            data[outcome] = observed
        return data


def declare_reveal(outcome_variables: Union[str, Sequence[str]] = "Y",
                   assignment_variables: Union[str, Sequence[str]] = "Z",
                   label: str = "reveal") -> RevealStep:
    """Declare how observed outcomes are revealed from potential outcomes."""
    return RevealStep(_as_list(outcome_variables), _as_list(assignment_variables), label=label)
