"""
Tests for the estimation models.
"""

import numpy as np
import pandas as pd
import pytest

from estimators import parse_formula, model_matrix, lm_robust, difference_in_means


class TestFormula:
    """Test formula parsing."""

    def test_additive_terms_and_interactions(self):
        """Test terms are split on + and keep : interactions."""
        outcome, terms, intercept = parse_formula("Y ~ A + B + A:B")
        assert outcome == "Y"
        assert terms == ["A", "B", "A:B"]
        assert intercept

    def test_intercept_control(self):
        """Test 0, -1 and 1 toggle the intercept."""
        assert parse_formula("Y ~ Z - 1") == ("Y", ["Z"], False)
        assert parse_formula("Y ~ 0 + Z") == ("Y", ["Z"], False)
        assert parse_formula("Y ~ 1") == ("Y", [], True)

    def test_invalid_formula(self):
        """Test formulas without a single ~ are rejected."""
        with pytest.raises(ValueError):
            parse_formula("Y")
        with pytest.raises(ValueError):
            parse_formula(" ~ Z")

    def test_model_matrix(self):
        """Test interaction columns are products."""
        data = pd.DataFrame({'A': [0, 1, 1], 'B': [1, 1, 0]})
        X = model_matrix(data, ["A", "B", "A:B"])
        assert list(X.columns) == ["(Intercept)", "A", "B", "A:B"]
        assert X["A:B"].tolist() == [0, 1, 0]

    def test_model_matrix_missing_variable(self):
        """Test unknown variables raise."""
        with pytest.raises(ValueError, match="not found"):
            model_matrix(pd.DataFrame({'A': [1]}), ["B"])


class TestLmRobust:
    """Test OLS with robust standard errors."""

    def setup_method(self):
        """Setup regression data."""
        rng = np.random.default_rng(42)
        self.n = 200
        x = rng.normal(0, 1, self.n)
        self.data = pd.DataFrame({
            'x': x,
            'Y': 1.0 + 2.0 * x + rng.normal(0, 1, self.n),
            'cluster': np.repeat(np.arange(20), 10)
        })

    def test_coefficients_match_least_squares(self):
        """Test point estimates equal ordinary least squares."""
        fit = lm_robust(self.data, "Y ~ x")
        X = np.column_stack([np.ones(self.n), self.data['x']])
        expected, *_ = np.linalg.lstsq(X, self.data['Y'], rcond=None)

        assert fit['term'].tolist() == ["(Intercept)", "x"]
        assert np.allclose(fit['estimate'], expected)
        assert abs(fit['estimate'].iloc[1] - 2.0) < 0.3

    def test_output_columns(self):
        """Test the tidy output layout."""
        fit = lm_robust(self.data, "Y ~ x")
        for column in ['term', 'estimate', 'std_error', 'statistic', 'p_value',
                       'conf_low', 'conf_high', 'df', 'outcome']:
            assert column in fit.columns
        assert (fit['outcome'] == "Y").all()
        assert (fit['df'] == self.n - 2).all()
        assert ((fit['p_value'] >= 0) & (fit['p_value'] <= 1)).all()
        assert (fit['conf_low'] < fit['estimate']).all()
        assert (fit['estimate'] < fit['conf_high']).all()

    def test_hc0_matches_sandwich(self):
        """Test HC0 errors equal the textbook sandwich."""
        fit = lm_robust(self.data, "Y ~ x", se_type="HC0")
        X = np.column_stack([np.ones(self.n), self.data['x']])
        y = self.data['Y'].to_numpy()
        bread = np.linalg.inv(X.T @ X)
        e = y - X @ (bread @ X.T @ y)
        vcov = bread @ (X.T * e ** 2) @ X @ bread
        assert np.allclose(fit['std_error'], np.sqrt(np.diag(vcov)))

    def test_hc2_larger_than_hc0(self):
        """Test the leverage correction inflates errors."""
        hc0 = lm_robust(self.data, "Y ~ x", se_type="HC0")
        hc2 = lm_robust(self.data, "Y ~ x", se_type="HC2")
        assert (hc2['std_error'] > hc0['std_error']).all()

    def test_classical(self):
        """Test classical errors use the pooled residual variance."""
        fit = lm_robust(self.data, "Y ~ 1", se_type="classical")
        expected = self.data['Y'].std(ddof=1) / np.sqrt(self.n)
        assert np.isclose(fit['std_error'].iloc[0], expected)

    def test_clustered(self):
        """Test cluster-robust errors use clusters - 1 degrees of freedom."""
        fit = lm_robust(self.data, "Y ~ x", clusters="cluster")
        assert (fit['df'] == 19).all()
        assert np.all(fit['std_error'] > 0)

    def test_interaction_term(self):
        """Test interaction terms are named with a colon."""
        rng = np.random.default_rng(1)
        data = pd.DataFrame({'A': rng.integers(0, 2, 100), 'B': rng.integers(0, 2, 100)})
        data['Y'] = data.A * data.B + rng.normal(0, 1, 100)
        fit = lm_robust(data, "Y ~ A + B + A:B")
        assert fit['term'].tolist() == ["(Intercept)", "A", "B", "A:B"]

    def test_subset(self):
        """Test the subset callable restricts rows."""
        fit = lm_robust(self.data, "Y ~ x", subset=lambda data: data.x > 0)
        assert (fit['df'] == (self.data.x > 0).sum() - 2).all()

    def test_invalid_inputs(self):
        """Test degenerate fits and bad se types raise."""
        data = self.data.assign(x2=self.data.x * 2)
        with pytest.raises(ValueError, match="rank deficient"):
            lm_robust(data, "Y ~ x + x2")
        with pytest.raises(ValueError):
            lm_robust(self.data.head(2), "Y ~ x")
        with pytest.raises(ValueError):
            lm_robust(self.data, "Y ~ x", se_type="HC3")
        with pytest.raises(ValueError):
            lm_robust(self.data, "Y ~ x", se_type="stata")


class TestDifferenceInMeans:
    """Test the difference-in-means estimator."""

    def test_simple_difference(self):
        """Test estimate and Neyman standard error on a small example."""
        data = pd.DataFrame({'Y': [1, 2, 3, 3, 5, 7], 'Z': [0, 0, 0, 1, 1, 1]})
        fit = difference_in_means(data, "Y ~ Z")

        assert fit['term'].tolist() == ["Z"]
        assert np.isclose(fit['estimate'].iloc[0], 3.0)
        assert np.isclose(fit['std_error'].iloc[0], np.sqrt(4 / 3 + 1 / 3))

    def test_matched_pairs(self):
        """Test the matched-pairs variance when each block is a pair."""
        data = pd.DataFrame({
            'Y': [0, 1, 0, 2, 0, 3],
            'Z': [0, 1, 0, 1, 0, 1],
            'block': [1, 1, 2, 2, 3, 3]
        })
        fit = difference_in_means(data, "Y ~ Z", blocks="block")

        assert np.isclose(fit['estimate'].iloc[0], 2.0)
        assert np.isclose(fit['std_error'].iloc[0], np.sqrt(1 / 3))
        assert fit['df'].iloc[0] == 2

    def test_blocked(self):
        """Test blocked estimates weight block differences by block size."""
        data = pd.DataFrame({
            'Y': [0, 1, 2, 3, 10, 11, 12, 13, 14, 15],
            'Z': [0, 0, 1, 1, 0, 0, 0, 1, 1, 1],
            'block': [1, 1, 1, 1, 2, 2, 2, 2, 2, 2]
        })
        fit = difference_in_means(data, "Y ~ Z", blocks="block")
        expected = 0.4 * (2.5 - 0.5) + 0.6 * (14 - 11)
        assert np.isclose(fit['estimate'].iloc[0], expected)

    def test_clustered(self):
        """Test clustered estimates use cluster means."""
        data = pd.DataFrame({
            'Y': [0, 2, 1, 1, 4, 6, 5, 5],
            'Z': [0, 0, 0, 0, 1, 1, 1, 1],
            'cluster': [1, 1, 2, 2, 3, 3, 4, 4]
        })
        fit = difference_in_means(data, "Y ~ Z", clusters="cluster")
        assert np.isclose(fit['estimate'].iloc[0], 4.0)
        assert fit['df'].iloc[0] == 2

    def test_treatment_varies_within_cluster(self):
        """Test clusters must share a treatment status."""
        data = pd.DataFrame({'Y': [0, 1, 2, 3], 'Z': [0, 1, 0, 1], 'cluster': [1, 1, 2, 2]})
        with pytest.raises(ValueError, match="constant within clusters"):
            difference_in_means(data, "Y ~ Z", clusters="cluster")

    def test_conditions(self):
        """Test multi-valued treatments need explicit conditions."""
        data = pd.DataFrame({'Y': [1, 2, 3, 4, 5, 6, 7, 8, 9], 'Z': [1, 2, 3] * 3})
        with pytest.raises(ValueError, match="exactly two values"):
            difference_in_means(data, "Y ~ Z")

        fit = difference_in_means(data, "Y ~ Z", condition1=1, condition2=3)
        assert np.isclose(fit['estimate'].iloc[0], 2.0)

    def test_too_few_units(self):
        """Test a condition with one unit cannot produce a standard error."""
        data = pd.DataFrame({'Y': [1, 2, 3], 'Z': [0, 0, 1]})
        with pytest.raises(ValueError):
            difference_in_means(data, "Y ~ Z")
