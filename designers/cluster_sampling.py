"""
Two-stage cluster sampling for estimating a population mean.
"""

import numpy as np
from declarations import (declare_population, add_level, declare_inquiry,
                          declare_sampling, declare_estimator)
from estimators import lm_robust

from .design_code import construct_design_code, match_call_defaults, definitions_frame


def cluster_sampling_designer(N_blocks=1,
                              N_clusters_in_block=1000,
                              N_i_in_cluster=50,
                              n_clusters_in_block=30,
                              n_i_in_cluster=20,
                              icc=.2,
                              mean=0,
                              args_to_fix=None):
    """Create a two-stage cluster sampling design.

    Clusters are sampled within blocks, then individuals within the sampled
    clusters. Outcomes have intra-cluster correlation `icc` and unit total
    variance. The population mean is estimated by an intercept-only
    regression with cluster-robust standard errors.

    Args:
        N_blocks: Number of blocks (strata)
        N_clusters_in_block: Population clusters per block
        N_i_in_cluster: Population individuals per cluster
        n_clusters_in_block: Clusters sampled per block
        n_i_in_cluster: Individuals sampled per sampled cluster
        icc: Intra-cluster correlation, in [0,1]
        mean: Population mean
        args_to_fix: Names of arguments to fix in the design code

    Returns:
        A cluster sampling design
    """
    parameters = match_call_defaults(cluster_sampling_designer, locals())

    for name, value in (("N_blocks", N_blocks), ("N_clusters_in_block", N_clusters_in_block),
                        ("N_i_in_cluster", N_i_in_cluster), ("n_clusters_in_block", n_clusters_in_block),
                        ("n_i_in_cluster", n_i_in_cluster)):
        if not float(value).is_integer() or value < 1:
            raise ValueError(f"{name} must be a positive integer")
    if n_clusters_in_block > N_clusters_in_block:
        raise ValueError("n_clusters_in_block must not exceed N_clusters_in_block")
    if n_i_in_cluster > N_i_in_cluster:
        raise ValueError("n_i_in_cluster must not exceed N_i_in_cluster")
    if n_clusters_in_block * N_blocks < 2:
        raise ValueError("At least two clusters must be sampled")
    if icc < 0 or icc > 1:
        raise ValueError("icc must be in [0,1]")

    # {{{
    # M: Model
    population = declare_population(
        add_level("blocks", N=N_blocks),
        add_level("clusters", N=N_clusters_in_block,
                  cluster_shock=lambda data, rng: rng.normal(0, np.sqrt(icc), len(data))),
        add_level("i", N=N_i_in_cluster,
                  Y=lambda data, rng: mean + data.cluster_shock + rng.normal(0, np.sqrt(1 - icc), len(data))))

    # I: Inquiry
    estimand = declare_inquiry(mean_Y=lambda data: np.mean(data.Y))

    # D: Data Strategy
    cluster_sampling = declare_sampling(n=n_clusters_in_block, strata="blocks", clusters="clusters",
                                        label="cluster_sampling")

    individual_sampling = declare_sampling(n=n_i_in_cluster, strata="clusters",
                                           label="individual_sampling")

    # A: Answer Strategy
    estimator = declare_estimator("Y ~ 1",
                                  model=lm_robust,
                                  clusters="clusters",
                                  term="(Intercept)",
                                  inquiry=estimand,
                                  label="OLS")

    # Design
    cluster_sampling_design = population + estimand + cluster_sampling + individual_sampling + estimator
    # }}}

    cluster_sampling_design.code = construct_design_code(cluster_sampling_designer,
                                                         match_call_defaults(cluster_sampling_designer, locals()),
                                                         args_to_fix=args_to_fix)
    cluster_sampling_design.record_designer(cluster_sampling_designer, parameters, args_to_fix)

    return cluster_sampling_design


cluster_sampling_designer.definitions = definitions_frame([
    ("N_blocks", "Number of blocks", "integer", False, 1, np.inf, 1, 1),
    ("N_clusters_in_block", "Population clusters per block", "integer", False, 2, np.inf, 100, 100),
    ("N_i_in_cluster", "Population individuals per cluster", "integer", False, 1, np.inf, 10, 10),
    ("n_clusters_in_block", "Clusters sampled per block", "integer", False, 1, np.inf, 10, 5),
    ("n_i_in_cluster", "Individuals sampled per cluster", "integer", False, 1, np.inf, 5, 5),
    ("icc", "Intra-cluster correlation", "numeric", False, 0, 1, 0, .1),
    ("mean", "Population mean", "numeric", False, -np.inf, np.inf, -1, .1),
    ("args_to_fix", "Names of arguments to be fixed", "character", True, np.nan, np.nan, np.nan, np.nan),
])

cluster_sampling_designer.shiny_arguments = {
    'n_clusters_in_block': [10, 30, 50],
    'n_i_in_cluster': [5, 20],
    'icc': [0, .2, .5]
}

cluster_sampling_designer.description = """
<p> A two-stage cluster sampling design: <code>n_clusters_in_block</code> clusters are sampled per block,
then <code>n_i_in_cluster</code> individuals per sampled cluster.
"""
