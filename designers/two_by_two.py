"""
Two-by-two factorial design with independent assignments.
"""

import warnings
import numpy as np
from declarations import (declare_population, declare_potential_outcomes, declare_inquiry,
                          declare_assignment, declare_reveal, declare_estimator)
from estimators import lm_robust

from .design_code import construct_design_code, match_call_defaults, definitions_frame


def two_by_two_designer(N=100,
                        prob_A=.5,
                        prob_B=.5,
                        weight_A=.5,
                        weight_B=.5,
                        outcome_means=(0, 0, 0, 0),
                        mean_A0B0=None,
                        mean_A0B1=None,
                        mean_A1B0=None,
                        mean_A1B1=None,
                        sd_i=1,
                        outcome_sds=(0, 0, 0, 0),
                        args_to_fix=None):
    """Create a two-by-two factorial design.

    Builds a two-by-two factorial design in which assignments to each factor
    are independent of each other.

    Three types of estimand are declared. First, weighted averages of the
    average treatment effects of each treatment, given the two conditions of
    the other treatment. Second and third, the difference in treatment effects
    of each treatment, given the conditions of the other treatment.

    Units are assigned to treatment using complete random assignment.
    Potential outcomes follow a normal distribution. Treatment A is assigned
    first and then treatment B within blocks defined by treatment A, so with 6
    units 3 are guaranteed to receive A but the number receiving B is
    stochastic. See :func:`multi_arm_designer` for a factorial design with
    non-independent assignments.

    Args:
        N: Size of sample
        prob_A: Probability of assignment to treatment A, in [0,1]
        prob_B: Probability of assignment to treatment B, in [0,1]
        weight_A: Weight placed on A=1 condition in the "average effect of B" estimand
        weight_B: Weight placed on B=1 condition in the "average effect of A" estimand
        outcome_means: Average outcome in each A,B condition, in order AB = 00, 01, 10, 11.
            Values overridden by mean_A0B0, mean_A0B1, mean_A1B0, mean_A1B1, if provided
        mean_A0B0: Mean outcome in A=0, B=0 condition
        mean_A0B1: Mean outcome in A=0, B=1 condition
        mean_A1B0: Mean outcome in A=1, B=0 condition
        mean_A1B1: Mean outcome in A=1, B=1 condition
        sd_i: Standard deviation of individual-level shock (common across arms)
        outcome_sds: Standard deviation of (additional) unit level shock in each condition,
            in order AB = 00, 01, 10, 11
        args_to_fix: Names of arguments to fix in the design code

    Returns:
        A two-by-two factorial design

    Examples:
        >>> design = two_by_two_designer(outcome_means=[0, 0, 0, 1])
        >>> # A design biased for the specified estimands:
        >>> design = two_by_two_designer(outcome_means=[0, 0, 0, 1], prob_A=.8, prob_B=.2)
    """
    parameters = match_call_defaults(two_by_two_designer, locals())

    if np.ndim(outcome_means) != 1 or np.ndim(outcome_sds) != 1:
        raise ValueError("outcome_means and outcome_sds must have length 4")
    outcome_means = list(outcome_means)
    outcome_sds = list(outcome_sds)
    if len(outcome_means) != 4 or len(outcome_sds) != 4:
        raise ValueError("outcome_means and outcome_sds must have length 4")
    if mean_A0B0 is None:
        mean_A0B0 = outcome_means[0]
    if mean_A0B1 is None:
        mean_A0B1 = outcome_means[1]
    if mean_A1B0 is None:
        mean_A1B0 = outcome_means[2]
    if mean_A1B1 is None:
        mean_A1B1 = outcome_means[3]

    if weight_A < 0 or weight_B < 0 or weight_A > 1 or weight_B > 1:
        raise ValueError("weight_A and weight_B must be in [0,1]")
    if min([sd_i] + outcome_sds) < 0:
        raise ValueError("sd_i and outcome_sds must be nonnegative")
    if min(prob_A, prob_B) < 0:
        raise ValueError("prob_ arguments must be nonnegative")
    if max(prob_A, prob_B) > 1:
        raise ValueError("prob_ arguments must not exceed 1")

    # {{{
    # M: Model
    population = declare_population(N=N, u=lambda data, rng: rng.normal(0, sd_i, len(data)))

    potential_outcomes = declare_potential_outcomes(
        Y_A_0_B_0=lambda data, rng: mean_A0B0 + data.u + rng.normal(0, outcome_sds[0], len(data)),
        Y_A_0_B_1=lambda data, rng: mean_A0B1 + data.u + rng.normal(0, outcome_sds[1], len(data)),
        Y_A_1_B_0=lambda data, rng: mean_A1B0 + data.u + rng.normal(0, outcome_sds[2], len(data)),
        Y_A_1_B_1=lambda data, rng: mean_A1B1 + data.u + rng.normal(0, outcome_sds[3], len(data)))

    # I: Inquiry
    estimand_1 = declare_inquiry(
        ate_A=lambda data: (weight_B * np.mean(data.Y_A_1_B_1 - data.Y_A_0_B_1)
                            + (1 - weight_B) * np.mean(data.Y_A_1_B_0 - data.Y_A_0_B_0)))

    estimand_2 = declare_inquiry(
        ate_B=lambda data: (weight_A * np.mean(data.Y_A_1_B_1 - data.Y_A_1_B_0)
                            + (1 - weight_A) * np.mean(data.Y_A_0_B_1 - data.Y_A_0_B_0)))

    estimand_3 = declare_inquiry(
        interaction=lambda data: np.mean((data.Y_A_1_B_1 - data.Y_A_1_B_0)
                                         - (data.Y_A_0_B_1 - data.Y_A_0_B_0)))

    # D: Data Strategy
    assign_A = declare_assignment(prob=prob_A, assignment_variable="A", label="assign_A")

    assign_B = declare_assignment(prob=prob_B, assignment_variable="B", blocks="A", label="assign_B")

    reveal_Y = declare_reveal(outcome_variables="Y", assignment_variables=["A", "B"])

    # A: Answer Strategy
    estimator_1 = declare_estimator("Y ~ A + B",
                                    model=lm_robust,
                                    term=["A", "B"],
                                    inquiry=["ate_A", "ate_B"],
                                    label="No_Interaction")

    estimator_2 = declare_estimator("Y ~ A + B + A:B",
                                    model=lm_robust,
                                    term="A:B",
                                    inquiry="interaction",
                                    label="Interaction")

    # Design
    two_by_two_design = (population + potential_outcomes
                         + estimand_1 + estimand_2 + estimand_3
                         + assign_A + assign_B + reveal_Y
                         + estimator_1 + estimator_2)
    # }}}

    two_by_two_design.code = construct_design_code(two_by_two_designer,
                                                   match_call_defaults(two_by_two_designer, locals()),
                                                   args_to_fix=args_to_fix,
                                                   exclude_args=["outcome_means"])
    two_by_two_design.record_designer(two_by_two_designer, parameters, args_to_fix)

    return two_by_two_design


two_by_two_designer.definitions = definitions_frame([
    ("N", "Sample size", "integer", False, 1, np.inf, 100, 50),
    ("prob_A", "Probability of assignment to treatment A", "numeric", False, 0, 1, 0, .2),
    ("prob_B", "Probability of assignment to treatment B", "numeric", False, 0, 1, 0, .2),
    ("weight_A", "Weight on A=1 condition for effect of B estimand", "numeric", False, 1 / 10000, 1, .1, .5),
    ("weight_B", "Weight on B=1 condition for effect of A estimand", "numeric", False, 1 / 10000, 1, .1, .5),
    ("outcome_means", "Average outcome in each A,B condition, in order: A0B0, A0B1, A1B0, A1B1.",
     "numeric", True, -np.inf, np.inf, -1, .2),
    ("mean_A0B0", "Mean outcome for A=0, B=0", "numeric", False, -np.inf, np.inf, -1, .2),
    ("mean_A0B1", "Mean outcome for A=0, B=1", "numeric", False, -np.inf, np.inf, -1, .2),
    ("mean_A1B0", "Mean outcome for A=1, B=0", "numeric", False, -np.inf, np.inf, -1, .2),
    ("mean_A1B1", "Mean outcome for A=1, B=1", "numeric", False, -np.inf, np.inf, -1, .2),
    ("sd_i", "Standard deviation of individual-level shock", "numeric", False, 0, np.inf, 0, .2),
    ("outcome_sds", "Standard deviation of unit level shock in each condition", "numeric", True, 0, np.inf, 0, .2),
    ("args_to_fix", "Names of arguments to be fixed", "character", True, np.nan, np.nan, np.nan, np.nan),
])

two_by_two_designer.shiny_arguments = {
    'N': [16, 32, 64],
    'weight_A': [0, .5],
    'mean_A0B1': [0, 1],
    'mean_A1B0': [0, 1],
    'mean_A1B1': [-1, 0, 1, 2, 3]
}

two_by_two_designer.description = """
<p> A 2x2 factorial design of sample size <code>N</code> with independent treatment assignment.
"""


def simple_factorial_designer(*args, **kwargs):
    """Deprecated alias of :func:`two_by_two_designer`."""
    warnings.warn("simple_factorial_designer is deprecated; use two_by_two_designer instead",
                  DeprecationWarning, stacklevel=2)
    return two_by_two_designer(*args, **kwargs)
