"""
Declarative design steps.

This package contains the step declarations that designers compose into
research designs with ``+``.
"""

from .population import declare_population, add_level
from .potential_outcomes import declare_potential_outcomes
from .inquiry import declare_inquiry
from .sampling import declare_sampling
from .assignment import declare_assignment
from .reveal import declare_reveal
from .estimator import declare_estimator

__all__ = [
    'declare_population',
    'add_level',
    'declare_potential_outcomes',
    'declare_inquiry',
    'declare_sampling',
    'declare_assignment',
    'declare_reveal',
    'declare_estimator'
]
