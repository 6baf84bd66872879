"""
Two-arm experiment with blocks and clusters.
"""

import numpy as np
from declarations import (declare_population, add_level, declare_potential_outcomes,
                          declare_inquiry, declare_assignment, declare_reveal, declare_estimator)
from estimators import difference_in_means

from .design_code import construct_design_code, match_call_defaults, definitions_frame


def block_cluster_two_arm_designer(N_blocks=10,
                                   N_clusters_in_block=2,
                                   N_i_in_cluster=5,
                                   sd_block=.2,
                                   sd_cluster=.2,
                                   sd_i_0=None,
                                   sd_i_1=None,
                                   rho=1,
                                   assignment_prob=.5,
                                   control_mean=0,
                                   ate=0,
                                   treatment_mean=None,
                                   args_to_fix=None):
    """Create a two-arm design with blocks and clusters.

    Units are nested in clusters, which are nested in blocks. Whole clusters
    are assigned to treatment using complete random assignment within blocks.
    Block, cluster and individual shocks are normal; with the default
    individual standard deviation the total outcome variance in control is 1.
    The average treatment effect is estimated by a blocked, clustered
    difference in means.

    Args:
        N_blocks: Number of blocks
        N_clusters_in_block: Number of clusters in each block
        N_i_in_cluster: Individuals per cluster
        sd_block: Standard deviation of block level shocks
        sd_cluster: Standard deviation of cluster level shock
        sd_i_0: Standard deviation of individual level shock in control;
            defaults to sqrt(1 - sd_block^2 - sd_cluster^2)
        sd_i_1: Standard deviation of individual level shock in treatment; defaults to sd_i_0
        rho: Correlation in individual shock between potential outcomes, in [-1,1]
        assignment_prob: Treatment assignment probability, in [0,1]
        control_mean: Average outcome in control
        ate: Average treatment effect
        treatment_mean: Average outcome in treatment; defaults to control_mean + ate
        args_to_fix: Names of arguments to fix in the design code

    Returns:
        A block cluster two-arm design
    """
    parameters = match_call_defaults(block_cluster_two_arm_designer, locals())

    if sd_block < 0 or sd_cluster < 0:
        raise ValueError("sd_block and sd_cluster must be nonnegative")
    if sd_i_0 is None:
        if sd_block ** 2 + sd_cluster ** 2 > 1:
            raise ValueError("sd_block^2 + sd_cluster^2 must not exceed 1 when sd_i_0 is derived")
        sd_i_0 = np.sqrt(1 - sd_block ** 2 - sd_cluster ** 2)
    if sd_i_1 is None:
        sd_i_1 = sd_i_0
    if treatment_mean is None:
        treatment_mean = control_mean + ate

    if sd_i_0 < 0 or sd_i_1 < 0:
        raise ValueError("sd_i_0 and sd_i_1 must be nonnegative")
    if assignment_prob < 0 or assignment_prob > 1:
        raise ValueError("assignment_prob must be in [0,1]")
    if abs(rho) > 1:
        raise ValueError("rho must be in [-1,1]")
    for name, value in (("N_blocks", N_blocks), ("N_clusters_in_block", N_clusters_in_block),
                        ("N_i_in_cluster", N_i_in_cluster)):
        if not float(value).is_integer() or value < 1:
            raise ValueError(f"{name} must be a positive integer")

    # {{{
    # M: Model
    population = declare_population(
        add_level("blocks", N=N_blocks,
                  u_b=lambda data, rng: rng.normal(0, 1, len(data)) * sd_block),
        add_level("clusters", N=N_clusters_in_block,
                  u_c=lambda data, rng: rng.normal(0, 1, len(data)) * sd_cluster,
                  cluster_size=N_i_in_cluster),
        add_level("i", N=N_i_in_cluster,
                  u_0=lambda data, rng: rng.normal(0, 1, len(data)),
                  u_1=lambda data, rng: rng.normal(rho * data.u_0, np.sqrt(1 - rho ** 2), len(data))))

    potential_outcomes = declare_potential_outcomes(
        lambda data, rng, Z: ((1 - Z) * (control_mean + data.u_0 * sd_i_0 + data.u_b + data.u_c)
                              + Z * (treatment_mean + data.u_1 * sd_i_1 + data.u_b + data.u_c)),
        conditions={"Z": [0, 1]})

    # I: Inquiry
    estimand = declare_inquiry(ATE=lambda data: np.mean(data.Y_Z_1 - data.Y_Z_0))

    # D: Data Strategy
    assignment = declare_assignment(prob=assignment_prob, blocks="blocks", clusters="clusters")

    reveal_Y = declare_reveal(outcome_variables="Y", assignment_variables="Z")

    # A: Answer Strategy
    estimator = declare_estimator("Y ~ Z",
                                  model=difference_in_means,
                                  blocks="blocks",
                                  clusters="clusters",
                                  inquiry=estimand,
                                  label="DIM")

    # Design
    block_cluster_two_arm_design = (population + potential_outcomes + estimand
                                    + assignment + reveal_Y + estimator)
    # }}}

    block_cluster_two_arm_design.code = construct_design_code(
        block_cluster_two_arm_designer,
        match_call_defaults(block_cluster_two_arm_designer, locals()),
        args_to_fix=args_to_fix,
        exclude_args=["ate"])
    block_cluster_two_arm_design.record_designer(block_cluster_two_arm_designer, parameters, args_to_fix)

    return block_cluster_two_arm_design


block_cluster_two_arm_designer.definitions = definitions_frame([
    ("N_blocks", "Number of blocks", "integer", False, 1, np.inf, 1, 1),
    ("N_clusters_in_block", "Number of clusters in each block", "integer", False, 2, np.inf, 2, 2),
    ("N_i_in_cluster", "Individuals per cluster", "integer", False, 1, np.inf, 1, 10),
    ("sd_block", "Standard deviation of block level shocks", "numeric", False, 0, np.inf, 0, .1),
    ("sd_cluster", "Standard deviation of cluster level shock", "numeric", False, 0, np.inf, 0, .1),
    ("sd_i_0", "Standard deviation of individual level shock in control", "numeric", False, 0, np.inf, 0, .1),
    ("sd_i_1", "Standard deviation of individual level shock in treatment", "numeric", False, 0, np.inf, 0, .1),
    ("rho", "Correlation in individual shock between potential outcomes", "numeric", False, -1, 1, -1, .1),
    ("assignment_prob", "Treatment assignment probability", "numeric", False, 0, 1, .1, .1),
    ("control_mean", "Average outcome in control", "numeric", False, -np.inf, np.inf, -1, .1),
    ("ate", "Average treatment effect", "numeric", False, -np.inf, np.inf, 0, .1),
    ("treatment_mean", "Average outcome in treatment", "numeric", False, -np.inf, np.inf, -1, .1),
    ("args_to_fix", "Names of arguments to be fixed", "character", True, np.nan, np.nan, np.nan, np.nan),
])

block_cluster_two_arm_designer.shiny_arguments = {
    'N_blocks': [2, 5, 10],
    'N_clusters_in_block': [2, 4],
    'N_i_in_cluster': [1, 5, 10],
    'ate': [0, .1, .3]
}

block_cluster_two_arm_designer.description = """
<p> A two-arm design with <code>N_blocks</code> blocks, each containing <code>N_clusters_in_block</code>
clusters of <code>N_i_in_cluster</code> units. Treatment is assigned by cluster within blocks.
"""
