"""
Tests for the declarative design steps.
"""

import numpy as np
import pandas as pd
import pytest

from declarations import (declare_population, add_level, declare_potential_outcomes, declare_inquiry,
                          declare_sampling, declare_assignment, declare_reveal, declare_estimator)
from estimators import lm_robust


class TestPopulation:
    """Test population declarations."""

    def setup_method(self):
        """Setup random generator."""
        self.rng = np.random.default_rng(42)

    def test_single_level(self):
        """Test N rows with zero-padded IDs and ordered variables."""
        population = declare_population(
            N=10,
            u=lambda data, rng: rng.normal(0, 1, len(data)),
            v=lambda data, rng: data.u * 2)
        data = population(None, self.rng)

        assert len(data) == 10
        assert data['ID'].tolist()[:2] == ["01", "02"]
        assert data['ID'].iloc[-1] == "10"
        assert np.allclose(data['v'], data['u'] * 2)

    def test_multi_level(self):
        """Test nested levels expand parents and keep parent variables constant."""
        population = declare_population(
            add_level("blocks", N=3, u_b=lambda data, rng: rng.normal(0, 1, len(data))),
            add_level("clusters", N=2, size=4),
            add_level("i", N=4, u_i=lambda data, rng: rng.normal(0, 1, len(data))))
        data = population(None, self.rng)

        assert len(data) == 24
        assert data['blocks'].nunique() == 3
        assert data['clusters'].nunique() == 6
        assert data['i'].nunique() == 24
        assert (data.groupby('blocks')['u_b'].nunique() == 1).all()
        assert (data.groupby('clusters').size() == 4).all()
        assert (data['size'] == 4).all()

    def test_invalid_sizes(self):
        """Test non-positive and fractional sizes are rejected."""
        with pytest.raises(ValueError):
            declare_population(N=0)
        with pytest.raises(ValueError):
            declare_population(N=2.5)
        with pytest.raises(ValueError):
            declare_population()
        with pytest.raises(ValueError):
            declare_population(add_level("a", N=2), N=3)


class TestPotentialOutcomes:
    """Test potential outcome declarations."""

    def setup_method(self):
        """Setup base population."""
        self.rng = np.random.default_rng(0)
        self.data = declare_population(N=20, u=lambda data, rng: rng.normal(0, 1, len(data)))(None, self.rng)

    def test_condition_form(self):
        """Test one column per condition."""
        step = declare_potential_outcomes(lambda data, rng, Z: data.u + 2 * Z, conditions={"Z": [0, 1]})
        data = step(self.data, self.rng)

        assert np.allclose(data['Y_Z_1'] - data['Y_Z_0'], 2)

    def test_factorial_conditions(self):
        """Test column names for several assignment variables."""
        step = declare_potential_outcomes(lambda data, rng, A, B: A + 10 * B,
                                          conditions={"A": [0, 1], "B": [0, 1]})
        data = step(self.data, self.rng)

        for column, value in [("Y_A_0_B_0", 0), ("Y_A_0_B_1", 10), ("Y_A_1_B_0", 1), ("Y_A_1_B_1", 11)]:
            assert (data[column] == value).all()

    def test_explicit_columns(self):
        """Test explicitly named potential outcomes."""
        step = declare_potential_outcomes(Y_Z_0=lambda data, rng: data.u, Y_Z_1=lambda data, rng: data.u + 1)
        data = step(self.data, self.rng)
        assert np.allclose(data['Y_Z_1'] - data['Y_Z_0'], 1)

    def test_invalid(self):
        """Test mixing the two forms is rejected."""
        with pytest.raises(ValueError):
            declare_potential_outcomes()
        with pytest.raises(ValueError):
            declare_potential_outcomes(lambda data, rng, Z: Z, Y_Z_0=lambda data, rng: 0)


class TestInquiry:
    """Test inquiry declarations."""

    def test_estimands(self):
        """Test estimands are computed and labelled."""
        data = pd.DataFrame({'Y_Z_0': [0.0, 1.0], 'Y_Z_1': [1.0, 3.0]})
        step = declare_inquiry(ATE=lambda data: np.mean(data.Y_Z_1 - data.Y_Z_0))

        assert step.label == "ATE"
        estimands = step(data, None)
        assert estimands['inquiry'].tolist() == ["ATE"]
        assert estimands['estimand'].tolist() == [1.5]

    def test_subset(self):
        """Test inquiries on a subset of units."""
        data = pd.DataFrame({'Y': [1.0, 2.0, 3.0], 'x': [0, 1, 1]})
        step = declare_inquiry(mean_Y=lambda data: data.Y.mean(), subset=lambda data: data.x == 1)
        assert step(data, None)['estimand'].iloc[0] == 2.5

    def test_invalid(self):
        """Test inquiries must be callables."""
        with pytest.raises(ValueError):
            declare_inquiry()
        with pytest.raises(ValueError):
            declare_inquiry(ATE=1)


class TestAssignment:
    """Test complete random assignment."""

    def setup_method(self):
        """Setup a blocked, clustered population."""
        self.rng = np.random.default_rng(7)
        self.data = declare_population(
            add_level("blocks", N=4),
            add_level("clusters", N=4),
            add_level("i", N=5))(None, self.rng)

    def test_complete_assignment(self):
        """Test exactly N * prob units are treated."""
        data = declare_assignment(prob=.5)(self.data, self.rng)
        assert data['Z'].sum() == 40
        assert np.allclose(data['Z_cond_prob'], .5)

    def test_fractional_count(self):
        """Test fractional N * prob resolves to floor or ceiling."""
        small = self.data.head(5)
        counts = {declare_assignment(prob=.5)(small, self.rng)['Z'].sum() for _ in range(50)}
        assert counts <= {2, 3}
        assert len(counts) == 2

    def test_blocked(self):
        """Test half of each block is treated."""
        data = declare_assignment(prob=.5, blocks="blocks")(self.data, self.rng)
        assert (data.groupby('blocks')['Z'].sum() == 10).all()

    def test_clustered(self):
        """Test whole clusters share an assignment."""
        data = declare_assignment(prob=.5, blocks="blocks", clusters="clusters")(self.data, self.rng)
        assert (data.groupby('clusters')['Z'].nunique() == 1).all()
        treated_clusters = data.groupby('clusters')['Z'].first().groupby(
            data.groupby('clusters')['blocks'].first()).sum()
        assert (treated_clusters == 2).all()

    def test_multi_arm(self):
        """Test conditions are filled as evenly as possible."""
        data = declare_assignment(conditions=[1, 2, 3])(self.data.head(31), self.rng)
        counts = data['Z'].value_counts()
        assert sorted(counts.tolist()) == [10, 10, 11]
        assert set(data['Z']) == {1, 2, 3}
        assert np.allclose(data['Z_cond_prob'], 1 / 3)

    def test_fixed_m(self):
        """Test m treated units."""
        data = declare_assignment(m=7, assignment_variable="T")(self.data, self.rng)
        assert data['T'].sum() == 7

    def test_invalid(self):
        """Test out-of-range arguments fail at declaration."""
        with pytest.raises(ValueError):
            declare_assignment(prob=1.5)
        with pytest.raises(ValueError):
            declare_assignment(prob=-.1)
        with pytest.raises(ValueError):
            declare_assignment(prob=.5, m=3)
        with pytest.raises(ValueError):
            declare_assignment(conditions=[1])


class TestSampling:
    """Test complete random sampling."""

    def setup_method(self):
        """Setup a clustered population."""
        self.rng = np.random.default_rng(3)
        self.data = declare_population(
            add_level("clusters", N=10),
            add_level("i", N=10))(None, self.rng)

    def test_sample_size(self):
        """Test n units are kept with their inclusion probability."""
        data = declare_sampling(n=10)(self.data, self.rng)
        assert len(data) == 10
        assert np.allclose(data['S_inclusion_prob'], .1)

    def test_two_stage(self):
        """Test clusters then units within clusters."""
        data = declare_sampling(n=3, clusters="clusters")(self.data, self.rng)
        data = declare_sampling(n=4, strata="clusters")(data, self.rng)

        assert data['clusters'].nunique() == 3
        assert (data.groupby('clusters').size() == 4).all()
        assert np.allclose(data['S_inclusion_prob'], .3 * .4)

    def test_stratum_too_small(self):
        """Test sampling more units than a stratum holds."""
        with pytest.raises(ValueError):
            declare_sampling(n=11, strata="clusters")(self.data, self.rng)

    def test_invalid(self):
        """Test exactly one of n and prob."""
        with pytest.raises(ValueError):
            declare_sampling()
        with pytest.raises(ValueError):
            declare_sampling(n=1, prob=.5)
        with pytest.raises(ValueError):
            declare_sampling(prob=2)


class TestRevealAndEstimator:
    """Test revealing outcomes and estimating."""

    def setup_method(self):
        """Setup a two-arm dataset."""
        self.rng = np.random.default_rng(11)
        data = declare_population(N=100, u=lambda data, rng: rng.normal(0, 1, len(data)))(None, self.rng)
        data = declare_potential_outcomes(lambda data, rng, Z: data.u + Z,
                                          conditions={"Z": [0, 1]})(data, self.rng)
        self.data = declare_assignment(prob=.5)(data, self.rng)

    def test_reveal(self):
        """Test observed outcomes follow the assignment."""
        data = declare_reveal()(self.data, self.rng)
        expected = np.where(data['Z'] == 1, data['Y_Z_1'], data['Y_Z_0'])
        assert np.allclose(data['Y'], expected)

    def test_reveal_missing_column(self):
        """Test a missing potential outcome column raises."""
        data = self.data.drop(columns=['Y_Z_1'])
        with pytest.raises(ValueError, match="not found"):
            declare_reveal()(data, self.rng)

    def test_default_estimator(self):
        """Test the default estimator reports the treatment term."""
        data = declare_reveal()(self.data, self.rng)
        estimates = declare_estimator(inquiry="ATE")(data, self.rng)

        assert estimates['estimator'].tolist() == ["estimator"]
        assert estimates['term'].tolist() == ["Z"]
        assert estimates['inquiry'].tolist() == ["ATE"]

    def test_first_non_intercept_term(self):
        """Test lm_robust defaults to the first slope."""
        data = declare_reveal()(self.data, self.rng)
        estimates = declare_estimator("Y ~ Z + u", model=lm_robust)(data, self.rng)
        assert estimates['term'].tolist() == ["Z"]
        assert estimates['inquiry'].isna().all()

    def test_terms_paired_with_inquiries(self):
        """Test equal-length terms and inquiries are paired, otherwise crossed."""
        data = declare_reveal()(self.data, self.rng)

        paired = declare_estimator("Y ~ Z + u", model=lm_robust, term=["Z", "u"],
                                   inquiry=["effect_Z", "effect_u"])(data, self.rng)
        assert list(zip(paired['term'], paired['inquiry'])) == [("Z", "effect_Z"), ("u", "effect_u")]

        crossed = declare_estimator("Y ~ Z + u", model=lm_robust, term=["Z", "u"],
                                    inquiry="effect")(data, self.rng)
        assert len(crossed) == 2
        assert (crossed['inquiry'] == "effect").all()

        everything = declare_estimator("Y ~ Z + u", model=lm_robust, term=True)(data, self.rng)
        assert everything['term'].tolist() == ["(Intercept)", "Z", "u"]

    def test_inquiry_step_link(self):
        """Test linking an estimator to an inquiry step."""
        inquiry = declare_inquiry(ATE=lambda data: 1.0, ATT=lambda data: 1.0)
        data = declare_reveal()(self.data, self.rng)
        estimates = declare_estimator(inquiry=inquiry)(data, self.rng)
        assert sorted(estimates['inquiry']) == ["ATE", "ATT"]

    def test_unknown_term(self):
        """Test requesting a term the model does not estimate."""
        data = declare_reveal()(self.data, self.rng)
        with pytest.raises(ValueError, match="Terms not estimated"):
            declare_estimator("Y ~ Z", model=lm_robust, term="X")(data, self.rng)
