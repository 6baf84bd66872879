"""
Research Design Declaration - A Declarative Interface

This module provides the core model for declaring, simulating and diagnosing
research designs. A design is an ordered pipeline of declarative steps that is
simulated end to end, then summarised across many simulations.

Core Components:
- DesignStep: A single declaration (population, potential outcomes, inquiry,
  sampling, assignment, reveal, estimator)
- Design: An ordered composition of steps, built with ``+``
- diagnose_design: Monte Carlo diagnosis (bias, RMSE, power, coverage, ...)
- DesignLibrary: Registry of designers and main interface for running diagnoses

Usage:
    library = DesignLibrary()
    library.register_designer("two_arm", two_arm_designer)
    result = library.diagnose("two_arm", sims=500, N=200)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Tuple, Optional, Any, Callable, Sequence
import copy
import itertools
import numpy as np
import pandas as pd
from pathlib import Path
import logging
import json
import pickle
from datetime import datetime


logger = logging.getLogger(__name__)

DATA_STEPS = ("population", "potential_outcomes", "sampling", "assignment", "reveal")

DIAGNOSANDS = (
    'mean_estimand', 'mean_estimate', 'bias', 'sd_estimate', 'rmse',
    'power', 'coverage', 'type_s_rate', 'mean_se'
)

GROUP_COLUMNS = ['estimator', 'term', 'inquiry']


class DesignStep(ABC):
    """Abstract base class for declarative design steps."""

    step_type = "step"

    def __init__(self, label: str):
        self.label = label

    @abstractmethod
    def __call__(self, data: Optional[pd.DataFrame], rng: np.random.Generator) -> pd.DataFrame:
        """Apply the step.

        Data steps return the transformed data, inquiry steps a frame of
        estimands and estimator steps a frame of estimates.
        """
        pass

    @property
    def name(self) -> str:
        """Step name."""
        return f"{self.step_type}({self.label})"

    def __add__(self, other) -> 'Design':
        return Design([self]) + other

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.label!r}>"


@dataclass
class SimulationResult:
    """Output of a single run of a design."""
    data: pd.DataFrame
    estimands: pd.DataFrame
    estimates: pd.DataFrame


class Design:
    """An ordered composition of design steps."""

    def __init__(self, steps: Optional[Sequence[DesignStep]] = None):
        self.steps: List[DesignStep] = []
        self.code: Optional[str] = None
        self.designer: Optional[Callable] = None
        self.parameters: Dict[str, Any] = {}
        self.fixed_parameters: Tuple[str, ...] = ()

        for step in steps or []:
            self._append(step)

    def _append(self, step: DesignStep) -> None:
        if not isinstance(step, DesignStep):
            raise TypeError(f"Cannot add {type(step).__name__} to a design")
        labels = self.step_labels
        if step.label in labels:
            suffix = 2
            while f"{step.label}_{suffix}" in labels:
                suffix += 1
            logger.debug(f"Duplicate step label {step.label!r}, renamed to {step.label}_{suffix}")
            # relabel a copy; the step may be shared with other designs
            renamed = copy.copy(step)
            renamed.label = f"{step.label}_{suffix}"
            step = renamed
        self.steps.append(step)

    def __add__(self, other) -> 'Design':
        combined = Design(self.steps)
        if isinstance(other, Design):
            for step in other.steps:
                combined._append(step)
        else:
            combined._append(other)
        return combined

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)

    def __getitem__(self, label: str) -> DesignStep:
        for step in self.steps:
            if step.label == label:
                return step
        raise KeyError(label)

    @property
    def step_labels(self) -> List[str]:
        return [step.label for step in self.steps]

    @property
    def step_types(self) -> List[str]:
        return [step.step_type for step in self.steps]

    def record_designer(self, designer: Callable, parameters: Dict[str, Any],
                        args_to_fix: Optional[Sequence[str]] = None) -> None:
        """Remember the designer call that produced this design (used by redesign)."""
        self.designer = designer
        self.parameters = {k: v for k, v in parameters.items() if k != 'args_to_fix'}
        self.fixed_parameters = tuple(args_to_fix or ())

    def simulate(self, rng: np.random.Generator) -> SimulationResult:
        """Run every step once in declaration order."""
        data = None
        estimands, estimates = [], []

        for step in self.steps:
            if step.step_type in DATA_STEPS:
                if data is None and step.step_type != "population":
                    raise ValueError(f"Step {step.label!r} needs data; a design must start with a population")
                data = step(data, rng)
            elif step.step_type == "inquiry":
                estimands.append(step(data, rng))
            elif step.step_type == "estimator":
                estimates.append(step(data, rng))
            else:
                raise ValueError(f"Unknown step type: {step.step_type}")

        return SimulationResult(
            data=data,
            estimands=_concat(estimands, ['inquiry', 'estimand']),
            estimates=_concat(estimates, ['estimator', 'term', 'estimate', 'std_error',
                                          'statistic', 'p_value', 'conf_low', 'conf_high',
                                          'df', 'outcome', 'inquiry']),
        )

    def __repr__(self) -> str:
        lines = [f"Research design with {len(self.steps)} steps:"]
        for i, step in enumerate(self.steps, start=1):
            lines.append(f"  {i}. {step.step_type}: {step.label}")
        return "\n".join(lines)


def _concat(frames: List[pd.DataFrame], columns: List[str]) -> pd.DataFrame:
    frames = [frame for frame in frames if len(frame) > 0]
    if not frames:
        return pd.DataFrame(columns=columns)
    return pd.concat(frames, ignore_index=True)


def draw_data(design: Design, seed: Optional[int] = None) -> pd.DataFrame:
    """Simulate a dataset from the data-generating steps of a design."""
    rng = np.random.default_rng(seed)
    data = None
    for step in design.steps:
        if step.step_type in DATA_STEPS:
            if data is None and step.step_type != "population":
                raise ValueError(f"Step {step.label!r} needs data; a design must start with a population")
            data = step(data, rng)
    return data


def get_estimands(design: Design, data: Optional[pd.DataFrame] = None,
                  seed: Optional[int] = None) -> pd.DataFrame:
    """Compute the design's estimands, on `data` if given or on a fresh simulation."""
    if data is None:
        return run_design(design, seed).estimands
    rng = np.random.default_rng(seed)
    return _concat([step(data, rng) for step in design.steps if step.step_type == "inquiry"],
                   ['inquiry', 'estimand'])


def get_estimates(design: Design, data: Optional[pd.DataFrame] = None,
                  seed: Optional[int] = None) -> pd.DataFrame:
    """Compute the design's estimates, on `data` if given or on a fresh simulation."""
    if data is None:
        return run_design(design, seed).estimates
    rng = np.random.default_rng(seed)
    return _concat([step(data, rng) for step in design.steps if step.step_type == "estimator"],
                   ['estimator', 'term', 'estimate'])


def run_design(design: Design, seed: Optional[int] = None) -> SimulationResult:
    """Run one simulation of the design."""
    return design.simulate(np.random.default_rng(seed))


@dataclass
class Diagnosis:
    """Results of a Monte Carlo diagnosis."""
    simulations: pd.DataFrame
    diagnosands: pd.DataFrame
    sims: int
    failed_sims: int = 0
    bootstrap_sims: int = 0

    @property
    def success_rate(self) -> float:
        return (self.sims - self.failed_sims) / self.sims

    def get_diagnosand(self, diagnosand: str, estimator: Optional[str] = None,
                       term: Optional[str] = None) -> float:
        """Look up a single diagnosand value."""
        rows = self.diagnosands
        if estimator is not None:
            rows = rows[rows['estimator'] == estimator]
        if term is not None:
            rows = rows[rows['term'] == term]
        if len(rows) != 1:
            raise ValueError(f"Expected one diagnosand row, found {len(rows)}; specify estimator and term")
        return float(rows[diagnosand].iloc[0])


def compute_diagnosands(simulations: pd.DataFrame, alpha: float = 0.05) -> pd.DataFrame:
    """Summarise simulations per (estimator, term, inquiry)."""
    rows = []
    for keys, group in simulations.groupby(GROUP_COLUMNS, dropna=False, sort=False):
        estimate = group['estimate'].to_numpy(dtype=float)
        estimand = group['estimand'].to_numpy(dtype=float)
        p_value = group['p_value'].to_numpy(dtype=float)
        error = estimate - estimand
        significant = p_value <= alpha
        linked = not np.all(np.isnan(estimand))

        if linked and np.any(significant):
            type_s_rate = np.mean(np.sign(estimate[significant]) != np.sign(estimand[significant]))
        else:
            type_s_rate = np.nan

        if linked:
            coverage = np.mean((group['conf_low'] <= group['estimand'])
                               & (group['estimand'] <= group['conf_high']))
        else:
            coverage = np.nan

        rows.append({
            **dict(zip(GROUP_COLUMNS, keys)),
            'mean_estimand': np.mean(estimand),
            'mean_estimate': np.mean(estimate),
            'bias': np.mean(error),
            'sd_estimate': np.std(estimate),
            'rmse': np.sqrt(np.mean(error ** 2)),
            'power': np.mean(significant),
            'coverage': coverage,
            'type_s_rate': type_s_rate,
            'mean_se': group['std_error'].mean(),
            'n_sims': group['sim_ID'].nunique(),
        })

    return pd.DataFrame(rows, columns=GROUP_COLUMNS + list(DIAGNOSANDS) + ['n_sims'])


def _bootstrap_diagnosands(simulations: pd.DataFrame, diagnosands: pd.DataFrame,
                           bootstrap_sims: int, alpha: float,
                           rng: np.random.Generator) -> pd.DataFrame:
    """Attach bootstrap standard errors of each diagnosand."""
    rows_by_sim = simulations.groupby('sim_ID').indices
    sim_ids = list(rows_by_sim)

    replicates = []
    for _ in range(bootstrap_sims):
        draw = rng.choice(len(sim_ids), size=len(sim_ids), replace=True)
        positions = [rows_by_sim[sim_ids[i]] for i in draw]
        resampled = simulations.iloc[np.concatenate(positions)].copy()
        # resampled simulations count as distinct draws
        resampled['sim_ID'] = np.repeat(np.arange(len(positions)), [len(p) for p in positions])
        replicates.append(compute_diagnosands(resampled, alpha))

    stacked = pd.concat(replicates, ignore_index=True)
    errors = (stacked.groupby(GROUP_COLUMNS, dropna=False, sort=False)[list(DIAGNOSANDS)]
              .std()
              .add_prefix('se(')
              .rename(columns=lambda c: c + ')')
              .reset_index())
    return diagnosands.merge(errors, on=GROUP_COLUMNS, how='left')


def diagnose_design(design: Design,
                    sims: int = 500,
                    bootstrap_sims: int = 100,
                    alpha: float = 0.05,
                    seed: Optional[int] = None) -> Diagnosis:
    """Diagnose a design by simulation.

    Args:
        design: Design to diagnose
        sims: Number of simulations
        bootstrap_sims: Number of bootstrap replicates for diagnosand standard errors (0 to skip)
        alpha: Significance level used for power and type S rate
        seed: Random seed

    Returns:
        Diagnosis with raw simulations and diagnosands
    """
    if sims < 1:
        raise ValueError("sims must be a positive integer")
    if not 0 < alpha < 1:
        raise ValueError("alpha must be in (0, 1)")

    rng = np.random.default_rng(seed)
    sim_seeds = rng.integers(0, 2 ** 31 - 1, size=sims)

    frames = []
    failed_sims = 0

    for sim_id, sim_seed in enumerate(sim_seeds, start=1):
        try:
            result = run_design(design, seed=int(sim_seed))
        except Exception as e:
            logger.warning(f"Simulation {sim_id} failed: {str(e)}")
            failed_sims += 1
            continue

        estimates = result.estimates
        if 'inquiry' not in estimates.columns:
            estimates = estimates.assign(inquiry=None)
        estimands = result.estimands.astype({'inquiry': object})
        merged = estimates.astype({'inquiry': object}).merge(estimands, on='inquiry', how='left')
        merged['sim_ID'] = sim_id
        frames.append(merged)

    if not frames:
        raise ValueError(f"All {sims} simulations failed")

    simulations = pd.concat(frames, ignore_index=True)
    diagnosands = compute_diagnosands(simulations, alpha)

    if bootstrap_sims > 0:
        diagnosands = _bootstrap_diagnosands(simulations, diagnosands, bootstrap_sims, alpha, rng)

    return Diagnosis(
        simulations=simulations,
        diagnosands=diagnosands,
        sims=sims,
        failed_sims=failed_sims,
        bootstrap_sims=bootstrap_sims
    )


def redesign(design: Design, **changes) -> Design:
    """Rebuild a designer-made design with some parameters changed."""
    if design.designer is None:
        raise ValueError("redesign requires a design built by a designer")

    unknown = [name for name in changes if name not in design.parameters]
    if unknown:
        raise ValueError(f"Unknown designer arguments: {', '.join(unknown)}")

    fixed = [name for name in changes if name in design.fixed_parameters]
    if fixed:
        raise ValueError(f"Cannot change fixed arguments: {', '.join(fixed)}")

    parameters = dict(design.parameters)
    parameters.update(changes)
    return design.designer(args_to_fix=list(design.fixed_parameters) or None, **parameters)


def expand_design(designer: Callable, **alternatives) -> List[Design]:
    """Build one design per combination of the given argument alternatives."""
    names = list(alternatives)
    designs = []
    for values in itertools.product(*(alternatives[name] for name in names)):
        designs.append(designer(**dict(zip(names, values))))
    return designs


@dataclass
class DiagnosisConfig:
    """Configuration for a diagnosis run."""
    designer: str
    sims: int = 500
    bootstrap_sims: int = 100
    seed: int = 42
    alpha: float = 0.05
    designer_params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DiagnosisResult:
    """Results from a diagnosis run."""
    config: DiagnosisConfig
    diagnosands: pd.DataFrame
    simulations: pd.DataFrame
    execution_time: float
    success_rate: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    def summary_stats(self) -> Dict[str, float]:
        """Compute summary statistics averaged over estimators."""
        diagnosands = self.diagnosands
        return {
            'n_estimators': int(len(diagnosands)),
            'mean_bias': float(diagnosands['bias'].mean()),
            'mean_rmse': float(diagnosands['rmse'].mean()),
            'mean_power': float(diagnosands['power'].mean()),
            'mean_coverage': float(diagnosands['coverage'].mean()),
            'success_rate': self.success_rate
        }


class DesignLibrary:
    """Main interface for registering designers and running diagnoses."""

    def __init__(self, output_dir: str = "diagnosis_results"):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        # Registry of designers
        self.designers: Dict[str, Callable[..., Design]] = {}

        self._setup_logging()

    def _setup_logging(self):
        """Setup diagnosis logging."""
        log_file = self.output_dir / "diagnosis.log"
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=[
                logging.FileHandler(log_file),
                logging.StreamHandler()
            ]
        )
        self.logger = logging.getLogger(__name__)

    def register_designer(self, name: str, designer: Callable[..., Design]):
        """Register a designer."""
        self.designers[name] = designer
        self.logger.info(f"Registered designer: {name}")

    def design(self, designer: str, **designer_params) -> Design:
        """Build a design from a registered designer."""
        if designer not in self.designers:
            raise ValueError(f"Unknown designer: {designer}")
        return self.designers[designer](**designer_params)

    def diagnose(self,
                 designer: str,
                 sims: int = 500,
                 seed: int = 42,
                 bootstrap_sims: int = 100,
                 alpha: float = 0.05,
                 **designer_params) -> DiagnosisResult:
        """Run a diagnosis of a registered designer.

        Args:
            designer: Name of registered designer
            sims: Number of simulations
            seed: Random seed
            bootstrap_sims: Bootstrap replicates for diagnosand standard errors
            alpha: Significance level
            **designer_params: Arguments passed to the designer

        Returns:
            DiagnosisResult with diagnosands and raw simulations
        """
        design = self.design(designer, **designer_params)

        self.logger.info(f"Starting diagnosis: {designer} ({sims} simulations)")
        start_time = datetime.now()

        diagnosis = diagnose_design(design, sims=sims, bootstrap_sims=bootstrap_sims,
                                    alpha=alpha, seed=seed)

        end_time = datetime.now()
        execution_time = (end_time - start_time).total_seconds()

        config = DiagnosisConfig(
            designer=designer,
            sims=sims,
            bootstrap_sims=bootstrap_sims,
            seed=seed,
            alpha=alpha,
            designer_params=dict(designer_params)
        )

        result = DiagnosisResult(
            config=config,
            diagnosands=diagnosis.diagnosands,
            simulations=diagnosis.simulations,
            execution_time=execution_time,
            success_rate=diagnosis.success_rate,
            metadata={
                'failed_sims': diagnosis.failed_sims,
                'steps': design.step_labels,
                'code': design.code
            }
        )

        self.logger.info(f"Completed diagnosis in {execution_time:.2f}s, success rate: {diagnosis.success_rate:.2%}")

        self._save_result(result)

        return result

    def run_suite(self, configs: List[DiagnosisConfig]) -> Dict[str, DiagnosisResult]:
        """Run multiple diagnosis configurations."""
        results = {}

        for i, config in enumerate(configs):
            self.logger.info(f"Running configuration {i+1}/{len(configs)}")

            result = self.diagnose(
                config.designer,
                sims=config.sims,
                seed=config.seed,
                bootstrap_sims=config.bootstrap_sims,
                alpha=config.alpha,
                **config.designer_params
            )

            config_name = config.designer
            if config.designer_params:
                config_name += "_" + "_".join(f"{k}={v}" for k, v in sorted(config.designer_params.items()))
            results[config_name] = result

        self._generate_suite_report(results)

        return results

    def _save_result(self, result: DiagnosisResult):
        """Save diagnosis result."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        filename = f"{result.config.designer}_{timestamp}.pkl"

        filepath = self.output_dir / filename
        with open(filepath, 'wb') as f:
            pickle.dump(result, f)

        # Also save summary as JSON
        summary_file = filepath.with_suffix('.json')
        with open(summary_file, 'w') as f:
            summary = result.summary_stats()
            summary['config'] = {
                'designer': result.config.designer,
                'sims': result.config.sims,
                'seed': result.config.seed,
                'designer_params': {k: repr(v) for k, v in result.config.designer_params.items()}
            }
            json.dump(summary, f, indent=2)

    def _generate_suite_report(self, results: Dict[str, DiagnosisResult]):
        """Generate comparative report for multiple results."""
        frames = []
        for name, result in results.items():
            frames.append(result.diagnosands.assign(config_name=name, designer=result.config.designer))

        df = pd.concat(frames, ignore_index=True)

        # Save detailed results
        df.to_csv(self.output_dir / "suite_results.csv", index=False)

        summary = df.groupby(['designer', 'estimator'], dropna=False).agg({
            'bias': 'mean',
            'rmse': 'mean',
            'power': 'mean',
            'coverage': 'mean'
        }).round(4)

        summary.to_csv(self.output_dir / "suite_summary.csv")

        self.logger.info("Suite report generated")

    def list_components(self) -> Dict[str, List[str]]:
        """List all registered components."""
        return {
            'designers': list(self.designers.keys())
        }


def create_diagnosis_suite(designer_names: List[str],
                           sims: int = 500,
                           seed: int = 42) -> List[DiagnosisConfig]:
    """Create a diagnosis suite with default arguments for each designer."""
    configs = []

    for designer in designer_names:
        config = DiagnosisConfig(
            designer=designer,
            sims=sims,
            seed=seed
        )
        configs.append(config)

    return configs
