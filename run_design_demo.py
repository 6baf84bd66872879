"""
Design Library Demo

This demo diagnoses the pre-built designers and draws a power curve for the
two-arm design over a range of sample sizes.
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from pathlib import Path

from research_design import DesignLibrary, create_diagnosis_suite, diagnose_design, expand_design
from designers import DESIGNERS, two_arm_designer


def power_curve(sample_sizes, ate=.5, sims=200, seed=42) -> pd.DataFrame:
    """Diagnose two-arm designs across sample sizes."""
    rows = []
    for N, design in zip(sample_sizes, expand_design(two_arm_designer, N=sample_sizes, ate=[ate])):
        diagnosis = diagnose_design(design, sims=sims, bootstrap_sims=50, seed=seed)
        diagnosands = diagnosis.diagnosands.iloc[0]
        rows.append({
            'N': N,
            'power': diagnosands['power'],
            'se_power': diagnosands['se(power)'],
            'coverage': diagnosands['coverage'],
            'bias': diagnosands['bias']
        })
    return pd.DataFrame(rows)


def plot_power_curve(results: pd.DataFrame, output_file: Path):
    """Plot power against sample size."""
    sns.set_style("whitegrid")
    fig, ax = plt.subplots(figsize=(7, 4.5))

    ax.errorbar(results['N'], results['power'], yerr=1.96 * results['se_power'],
                marker='o', capsize=3, label='Power')
    ax.axhline(0.8, color='grey', linestyle='--', linewidth=1, label='80% power')
    ax.set_xlabel('Sample size (N)')
    ax.set_ylabel('Power')
    ax.set_ylim(0, 1.05)
    ax.set_title('Two-arm design: power by sample size')
    ax.legend()

    fig.tight_layout()
    fig.savefig(output_file)
    plt.close(fig)


def main_demo(output_dir: str = "design_demo_results", sims: int = 200):
    """Run the library suite and the power curve."""
    output_dir = Path(output_dir)

    library = DesignLibrary(str(output_dir))
    for name, designer in DESIGNERS.items():
        library.register_designer(name, designer)

    # Smaller defaults keep the cluster sampling population quick to fabricate
    configs = create_diagnosis_suite([name for name in DESIGNERS if name != 'cluster_sampling'], sims=sims)
    results = library.run_suite(configs)

    sampling = library.diagnose('cluster_sampling', sims=sims,
                                N_clusters_in_block=200, N_i_in_cluster=20,
                                n_clusters_in_block=20, n_i_in_cluster=10)
    results['cluster_sampling'] = sampling

    print("\nDiagnosands")
    print("=" * 70)
    for name, result in results.items():
        print(f"\n{name}")
        print(result.diagnosands[['estimator', 'term', 'inquiry', 'bias', 'rmse', 'power', 'coverage']]
              .round(3).to_string(index=False))

    sample_sizes = list(np.arange(20, 220, 40))
    curve = power_curve(sample_sizes, sims=sims)
    plot_power_curve(curve, output_dir / "two_arm_power_curve.pdf")

    print("\nPower curve")
    print(curve.round(3).to_string(index=False))

    return results, curve


if __name__ == "__main__":
    print("Design Library Demo")
    print()

    main_demo()

    print("\n" + "=" * 70)
    print("DEMO COMPLETED")
    print("=" * 70)
    print("Results saved to: ./design_demo_results/")
    print("Power curve: ./design_demo_results/two_arm_power_curve.pdf")
    print()
    print("To run tests:")
    print("   python -m pytest -v")
    print("=" * 70)
