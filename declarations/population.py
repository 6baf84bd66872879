"""
Population declarations, single- and multi-level.
"""

from typing import Any, Callable, Dict, Optional, Union
import numpy as np
import pandas as pd
from research_design import DesignStep


Variable = Callable[[pd.DataFrame, np.random.Generator], Any]


def _ids(n: int) -> np.ndarray:
    width = len(str(n))
    return np.array([str(i).zfill(width) for i in range(1, n + 1)])


def _add_variables(data: pd.DataFrame, variables: Dict[str, Variable], rng: np.random.Generator) -> pd.DataFrame:
    for name, variable in variables.items():
        value = variable(data, rng) if callable(variable) else variable
        data[name] = np.asarray(value) if np.ndim(value) > 0 else value
    return data


class Level:
    """One level of a nested population."""

    def __init__(self, name: str, N: Union[int, Callable], variables: Dict[str, Variable]):
        self.name = name
        self.N = N
        self.variables = variables

    def fabricate(self, parent: Optional[pd.DataFrame], rng: np.random.Generator) -> pd.DataFrame:
        N = self.N(parent) if callable(self.N) else self.N

        if parent is None:
            n = _check_size(N, self.name)
            data = pd.DataFrame(index=range(n))
        else:
            counts = np.broadcast_to(np.asarray(N), (len(parent),))
            for count in counts:
                _check_size(count, self.name)
            data = parent.loc[parent.index.repeat(counts)].reset_index(drop=True)

        data[self.name] = _ids(len(data))
        return _add_variables(data, self.variables, rng)

    def __repr__(self) -> str:
        return f"Level({self.name!r}, N={self.N!r})"


def _check_size(N: Any, name: str) -> int:
    if isinstance(N, bool) or not float(N).is_integer() or N < 1:
        raise ValueError(f"N for {name} must be a positive integer, got {N!r}")
    return int(N)


def add_level(name: str, N: Union[int, Callable], **variables) -> Level:
    """Declare a population level; each row of the previous level gets `N` rows."""
    return Level(name, N, variables)


class PopulationStep(DesignStep):
    """Fabricate the study population."""

    step_type = "population"

    def __init__(self, levels, label: str = "population"):
        super().__init__(label)
        self.levels = levels

    def __call__(self, data: Optional[pd.DataFrame], rng: np.random.Generator) -> pd.DataFrame:
        population = None
        for level in self.levels:
            population = level.fabricate(population, rng)
        return population


def declare_population(*levels: Level, N: Optional[int] = None,
                       label: str = "population", **variables) -> PopulationStep:
    """Declare a population.

    Either pass `N` and variables for a single level with an ``ID`` column,
    or pass nested levels built with :func:`add_level`. Variables are
    callables ``f(data, rng)`` evaluated in order.
    """
    if levels:
        if N is not None or variables:
            raise ValueError("Pass either levels or N and variables, not both")
        for level in levels:
            if not isinstance(level, Level):
                raise ValueError("Positional arguments to declare_population must be add_level() levels")
        return PopulationStep(list(levels), label=label)

    if N is None:
        raise ValueError("declare_population needs N or levels")
    _check_size(N, "population")
    return PopulationStep([Level("ID", N, variables)], label=label)
