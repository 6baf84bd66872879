"""
Estimator declarations.
"""

from typing import Callable, List, Sequence, Union
import numpy as np
import pandas as pd
from research_design import DesignStep
from estimators.difference_in_means import difference_in_means
from estimators.formula import INTERCEPT

from .inquiry import InquiryStep


def _inquiry_labels(inquiry) -> List[str]:
    if inquiry is None:
        return []
    if isinstance(inquiry, InquiryStep):
        return inquiry.inquiry_names
    if isinstance(inquiry, str):
        return [inquiry]
    labels = []
    for item in inquiry:
        labels.extend(_inquiry_labels(item))
    return labels


class EstimatorStep(DesignStep):
    """Fit a model and report the requested terms."""

    step_type = "estimator"

    def __init__(self, formula: str, model: Callable, term, inquiries: List[str],
                 label: str, model_args: dict):
        super().__init__(label)
        self.formula = formula
        self.model = model
        self.term = term
        self.inquiries = inquiries
        self.model_args = model_args

    def _select_terms(self, fit: pd.DataFrame) -> pd.DataFrame:
        if self.term is True:
            return fit
        if self.term is None:
            rows = fit[fit['term'] != INTERCEPT]
            return (rows if len(rows) else fit).iloc[:1]

        terms = [self.term] if isinstance(self.term, str) else list(self.term)
        missing = [t for t in terms if t not in set(fit['term'])]
        if missing:
            raise ValueError(f"Terms not estimated by {self.label}: {', '.join(missing)}")
        return fit.set_index('term').loc[terms].reset_index()

    def __call__(self, data: pd.DataFrame, rng: np.random.Generator) -> pd.DataFrame:
        estimates = self._select_terms(self.model(data, self.formula, **self.model_args))
        estimates = estimates.reset_index(drop=True)
        estimates.insert(0, 'estimator', self.label)

        if not self.inquiries:
            estimates['inquiry'] = None
        elif len(self.inquiries) == len(estimates):
            estimates['inquiry'] = self.inquiries
        else:
            estimates = estimates.merge(pd.DataFrame({'inquiry': self.inquiries}), how='cross')
        return estimates


def declare_estimator(formula: str = "Y ~ Z",
                      model: Callable = difference_in_means,
                      term: Union[None, bool, str, Sequence[str]] = None,
                      inquiry=None,
                      label: str = "estimator",
                      **model_args) -> EstimatorStep:
    """Declare an estimator.

    Args:
        formula: Model formula
        model: Estimation function ``model(data, formula, **model_args)``
        term: Term(s) to report; None for the first non-intercept term, True for all
        inquiry: Inquiry label, list of labels or inquiry step the estimates target.
            Terms and inquiries of equal length are paired in order; otherwise
            every term is linked to every inquiry.
        label: Estimator label
        **model_args: Extra arguments for the model (blocks, clusters, ...)
    """
    if not callable(model):
        raise ValueError("model must be callable")
    return EstimatorStep(formula, model, term, _inquiry_labels(inquiry), label, model_args)
