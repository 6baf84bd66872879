"""
Pre-built research designers.

This package contains parameterized designer functions. Each returns a
research design with its reconstructed code attached as ``design.code``.
"""

from .two_arm import two_arm_designer
from .two_by_two import two_by_two_designer, simple_factorial_designer
from .multi_arm import multi_arm_designer
from .block_cluster_two_arm import block_cluster_two_arm_designer
from .cluster_sampling import cluster_sampling_designer
from .design_code import construct_design_code, match_call_defaults, eval_design_code

DESIGNERS = {
    'two_arm': two_arm_designer,
    'two_by_two': two_by_two_designer,
    'multi_arm': multi_arm_designer,
    'block_cluster_two_arm': block_cluster_two_arm_designer,
    'cluster_sampling': cluster_sampling_designer
}

__all__ = [
    'two_arm_designer',
    'two_by_two_designer',
    'simple_factorial_designer',
    'multi_arm_designer',
    'block_cluster_two_arm_designer',
    'cluster_sampling_designer',
    'construct_design_code',
    'match_call_defaults',
    'eval_design_code',
    'DESIGNERS'
]
