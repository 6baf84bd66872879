"""
Multi-arm experiment with pairwise comparisons.
"""

import itertools
import numpy as np
from declarations import (declare_population, declare_potential_outcomes, declare_inquiry,
                          declare_assignment, declare_reveal, declare_estimator)
from estimators import difference_in_means

from .design_code import construct_design_code, match_call_defaults, definitions_frame


def multi_arm_designer(N=30,
                       m_arms=3,
                       outcome_means=None,
                       sd_i=1,
                       outcome_sds=None,
                       conditions=None,
                       args_to_fix=None):
    """Create a design with `m_arms` experimental arms.

    Each arm is assigned with equal probability using complete random
    assignment. The estimands are the average treatment effects of every pair
    of arms, each estimated by a difference in means restricted to the two
    arms.

    Args:
        N: Sample size
        m_arms: Number of arms, an integer greater than one
        outcome_means: Average outcome in each arm; defaults to zeros
        sd_i: Standard deviation of the individual-level shock
        outcome_sds: Standard deviation of the additional shock in each arm; defaults to zeros
        conditions: Names of the arms; defaults to 1, ..., m_arms
        args_to_fix: Names of arguments to fix in the design code

    Returns:
        A multi-arm design
    """
    parameters = match_call_defaults(multi_arm_designer, locals())

    if isinstance(m_arms, bool) or not float(m_arms).is_integer() or m_arms <= 1:
        raise ValueError("m_arms should be an integer greater than one")
    m_arms = int(m_arms)
    for value in (outcome_means, outcome_sds, conditions):
        if value is not None and np.ndim(value) != 1:
            raise ValueError("outcome_means, outcome_sds and conditions arguments must be of length m_arms")
    outcome_means = [0] * m_arms if outcome_means is None else list(outcome_means)
    outcome_sds = [0] * m_arms if outcome_sds is None else list(outcome_sds)
    conditions = list(range(1, m_arms + 1)) if conditions is None else list(conditions)

    if len(outcome_means) != m_arms or len(outcome_sds) != m_arms or len(conditions) != m_arms:
        raise ValueError("outcome_means, outcome_sds and conditions arguments must be of length m_arms")
    if len(set(conditions)) != m_arms:
        raise ValueError("conditions must be distinct")
    if sd_i < 0:
        raise ValueError("sd_i should be nonnegative")
    if min(outcome_sds) < 0:
        raise ValueError("outcome_sds should be nonnegative")

    # {{{
    # M: Model
    population = declare_population(N=N, u=lambda data, rng: rng.normal(0, sd_i, len(data)))

    potential_outcomes = declare_potential_outcomes(
        lambda data, rng, Z: (outcome_means[conditions.index(Z)] + data.u
                              + rng.normal(0, outcome_sds[conditions.index(Z)], len(data))),
        conditions={"Z": conditions})

    # I: Inquiry
    estimand = declare_inquiry(**{
        f"ate_Y_{c2}_{c1}": (lambda data, c1=c1, c2=c2: np.mean(data[f"Y_Z_{c2}"] - data[f"Y_Z_{c1}"]))
        for c1, c2 in itertools.combinations(conditions, 2)
    })

    # D: Data Strategy
    assignment = declare_assignment(conditions=conditions)

    reveal_Y = declare_reveal(outcome_variables="Y", assignment_variables="Z")

    # A: Answer Strategy
    estimators = [
        declare_estimator("Y ~ Z",
                          model=difference_in_means,
                          condition1=c1,
                          condition2=c2,
                          inquiry=f"ate_Y_{c2}_{c1}",
                          label=f"DIM_{c2}_{c1}")
        for c1, c2 in itertools.combinations(conditions, 2)
    ]

    # Design
    multi_arm_design = sum(estimators, population + potential_outcomes + estimand + assignment + reveal_Y)
    # }}}

    multi_arm_design.code = construct_design_code(multi_arm_designer,
                                                  match_call_defaults(multi_arm_designer, locals()),
                                                  args_to_fix=args_to_fix)
    multi_arm_design.record_designer(multi_arm_designer, parameters, args_to_fix)

    return multi_arm_design


multi_arm_designer.definitions = definitions_frame([
    ("N", "Sample size", "integer", False, 6, np.inf, 30, 10),
    ("m_arms", "Number of arms", "integer", False, 2, np.inf, 2, 1),
    ("outcome_means", "Average outcome in each arm", "numeric", True, -np.inf, np.inf, 0, .1),
    ("sd_i", "Standard deviation of individual-level shock", "numeric", False, 0, np.inf, 0, .2),
    ("outcome_sds", "Standard deviation of additional shock in each arm", "numeric", True, 0, np.inf, 0, .1),
    ("conditions", "Names of the arms", "character", True, np.nan, np.nan, np.nan, np.nan),
    ("args_to_fix", "Names of arguments to be fixed", "character", True, np.nan, np.nan, np.nan, np.nan),
])

multi_arm_designer.shiny_arguments = {
    'N': [30, 60, 90],
    'm_arms': [2, 3, 4]
}

multi_arm_designer.description = """
<p> A design with <code>m_arms</code> experimental arms, each assigned with equal probabilities.
"""
