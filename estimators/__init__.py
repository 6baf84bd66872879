"""
Estimation models used by declared estimators.

Each model takes a data frame and a formula and returns a tidy frame with one
row per term.
"""

from .formula import parse_formula, model_matrix
from .lm_robust import lm_robust
from .difference_in_means import difference_in_means

__all__ = [
    'parse_formula',
    'model_matrix',
    'lm_robust',
    'difference_in_means'
]
