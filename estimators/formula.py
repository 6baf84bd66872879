"""
Minimal model formulas: ``"Y ~ A + B + A:B"``.
"""

from typing import List, Tuple
import numpy as np
import pandas as pd


INTERCEPT = "(Intercept)"


def parse_formula(formula: str) -> Tuple[str, List[str], bool]:
    """Split a formula into outcome, terms and intercept flag.

    Terms are additive; ``:`` joins interacted variables; ``1``/``0`` (or
    ``-1``) turn the intercept on or off.
    """
    if formula.count("~") != 1:
        raise ValueError(f"Formula must contain exactly one '~': {formula!r}")

    lhs, rhs = (side.strip() for side in formula.split("~"))
    if not lhs:
        raise ValueError(f"Formula has no outcome: {formula!r}")

    intercept = True
    terms = []
    for raw in rhs.replace("-", "+-").split("+"):
        term = raw.strip().replace(" ", "")
        if not term:
            continue
        if term == "1":
            intercept = True
        elif term in ("0", "-1"):
            intercept = False
        elif term.startswith("-"):
            raise ValueError(f"Removing terms is not supported: {formula!r}")
        elif term not in terms:
            terms.append(term)

    return lhs, terms, intercept


def model_matrix(data: pd.DataFrame, terms: List[str], intercept: bool = True) -> pd.DataFrame:
    """Build the design matrix for the given terms."""
    columns = {}
    if intercept:
        columns[INTERCEPT] = np.ones(len(data))

    for term in terms:
        variables = term.split(":")
        missing = [v for v in variables if v not in data.columns]
        if missing:
            raise ValueError(f"Variables not found in data: {', '.join(missing)}")
        values = np.ones(len(data))
        for variable in variables:
            values = values * data[variable].to_numpy(dtype=float)
        columns[term] = values

    return pd.DataFrame(columns, index=data.index)
