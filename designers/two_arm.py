"""
Simple two-arm experiment.
"""

import numpy as np
from declarations import (declare_population, declare_potential_outcomes, declare_inquiry,
                          declare_assignment, declare_reveal, declare_estimator)

from .design_code import construct_design_code, match_call_defaults, definitions_frame


def two_arm_designer(N=100,
                     assignment_prob=.5,
                     control_mean=0,
                     control_sd=1,
                     ate=1,
                     treatment_mean=None,
                     treatment_sd=None,
                     rho=1,
                     args_to_fix=None):
    """Create a simple two-arm design.

    Units are assigned to treatment with probability `assignment_prob` using
    complete random assignment. Potential outcomes are normally distributed
    with correlation `rho` between the control and treatment shocks. The
    estimand is the average treatment effect, estimated by difference in
    means.

    Args:
        N: Sample size
        assignment_prob: Probability of assignment to treatment, in [0,1]
        control_mean: Average outcome in control
        control_sd: Standard deviation in control
        ate: Average treatment effect
        treatment_mean: Average outcome in treatment; defaults to control_mean + ate
        treatment_sd: Standard deviation in treatment; defaults to control_sd
        rho: Correlation between control and treatment outcomes, in [-1,1]
        args_to_fix: Names of arguments to fix in the design code

    Returns:
        A simple two-arm design
    """
    parameters = match_call_defaults(two_arm_designer, locals())

    if treatment_mean is None:
        treatment_mean = control_mean + ate
    if treatment_sd is None:
        treatment_sd = control_sd

    if control_sd < 0:
        raise ValueError("control_sd must be nonnegative")
    if treatment_sd < 0:
        raise ValueError("treatment_sd must be nonnegative")
    if assignment_prob < 0 or assignment_prob > 1:
        raise ValueError("assignment_prob must be in [0,1]")
    if abs(rho) > 1:
        raise ValueError("rho must be in [-1,1]")

    # {{{
    # M: Model
    population = declare_population(
        N=N,
        u_0=lambda data, rng: rng.normal(0, 1, len(data)),
        u_1=lambda data, rng: rng.normal(rho * data.u_0, np.sqrt(1 - rho ** 2), len(data)))

    potential_outcomes = declare_potential_outcomes(
        lambda data, rng, Z: ((1 - Z) * (data.u_0 * control_sd + control_mean)
                              + Z * (data.u_1 * treatment_sd + treatment_mean)),
        conditions={"Z": [0, 1]})

    # I: Inquiry
    estimand = declare_inquiry(ATE=lambda data: np.mean(data.Y_Z_1 - data.Y_Z_0))

    # D: Data Strategy
    assignment = declare_assignment(prob=assignment_prob)

    reveal_Y = declare_reveal(outcome_variables="Y", assignment_variables="Z")

    # A: Answer Strategy
    estimator = declare_estimator("Y ~ Z", inquiry=estimand)

    # Design
    two_arm_design = population + potential_outcomes + estimand + assignment + reveal_Y + estimator
    # }}}

    two_arm_design.code = construct_design_code(two_arm_designer,
                                                match_call_defaults(two_arm_designer, locals()),
                                                args_to_fix=args_to_fix,
                                                exclude_args=["ate"])
    two_arm_design.record_designer(two_arm_designer, parameters, args_to_fix)

    return two_arm_design


two_arm_designer.definitions = definitions_frame([
    ("N", "Sample size", "integer", False, 4, np.inf, 10, 20),
    ("assignment_prob", "Probability of assignment to treatment", "numeric", False, 0, 1, .1, .1),
    ("control_mean", "Average outcome in control", "numeric", False, -np.inf, np.inf, -1, .1),
    ("control_sd", "Standard deviation in control", "numeric", False, 0, np.inf, 0, .1),
    ("ate", "Average treatment effect", "numeric", False, -np.inf, np.inf, 0, .1),
    ("treatment_mean", "Average outcome in treatment", "numeric", False, -np.inf, np.inf, -1, .1),
    ("treatment_sd", "Standard deviation in treatment", "numeric", False, 0, np.inf, 0, .1),
    ("rho", "Correlation between control and treatment outcomes", "numeric", False, -1, 1, 0, .1),
    ("args_to_fix", "Names of arguments to be fixed", "character", True, np.nan, np.nan, np.nan, np.nan),
])

two_arm_designer.shiny_arguments = {
    'N': [10, 20, 50],
    'ate': [0, .5],
    'rho': [0, .5, 1]
}

two_arm_designer.description = """
<p> A simple two-arm design of sample size <code>N</code> and with average treatment effect equal to <code>ate</code>.
"""
