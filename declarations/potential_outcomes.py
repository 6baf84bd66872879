"""
Potential outcome declarations.
"""

from typing import Any, Callable, Dict, Optional, Sequence
import itertools
import numpy as np
import pandas as pd
from research_design import DesignStep


def potential_outcome_name(outcome: str, assignment: Dict[str, Any]) -> str:
    """Column holding `outcome` under the given assignment, e.g. ``Y_A_0_B_1``."""
    return outcome + "".join(f"_{variable}_{value}" for variable, value in assignment.items())


class PotentialOutcomesStep(DesignStep):
    """Add one column per potential outcome."""

    step_type = "potential_outcomes"

    def __init__(self, columns: Dict[str, Callable], label: str = "potential_outcomes"):
        super().__init__(label)
        self.columns = columns

    def __call__(self, data: pd.DataFrame, rng: np.random.Generator) -> pd.DataFrame:
        data = data.copy()
        for name, outcome in self.columns.items():
            value = outcome(data, rng)
            data[name] = np.asarray(value) if np.ndim(value) > 0 else value
        return data


def declare_potential_outcomes(outcome_function: Optional[Callable] = None,
                               conditions: Optional[Dict[str, Sequence[Any]]] = None,
                               outcome_variable: str = "Y",
                               label: str = "potential_outcomes",
                               **columns) -> PotentialOutcomesStep:
    """Declare potential outcomes.

    Either give `outcome_function` ``f(data, rng, **assignment)`` and
    `conditions` such as ``{"Z": [0, 1]}`` (producing ``Y_Z_0`` and ``Y_Z_1``),
    or name each column explicitly with callables ``f(data, rng)``.
    """
    if outcome_function is None:
        if not columns:
            raise ValueError("declare_potential_outcomes needs an outcome function or named columns")
        if conditions is not None:
            raise ValueError("conditions are only used with an outcome function")
        return PotentialOutcomesStep(dict(columns), label=label)

    if columns:
        raise ValueError("Pass either an outcome function or named columns, not both")
    if not conditions:
        conditions = {"Z": [0, 1]}

    variables = list(conditions)
    generated: Dict[str, Callable] = {}
    for values in itertools.product(*(conditions[v] for v in variables)):
        assignment = dict(zip(variables, values))
        generated[potential_outcome_name(outcome_variable, assignment)] = _bind(outcome_function, assignment)

    return PotentialOutcomesStep(generated, label=label)


def _bind(outcome_function: Callable, assignment: Dict[str, Any]) -> Callable:
    return lambda data, rng: outcome_function(data, rng, **assignment)

