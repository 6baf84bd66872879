"""
Inquiry (estimand) declarations.
"""

from typing import Callable, Dict, List, Optional
import numpy as np
import pandas as pd
from research_design import DesignStep


class InquiryStep(DesignStep):
    """Compute estimands from the current data."""

    step_type = "inquiry"

    def __init__(self, inquiries: Dict[str, Callable[[pd.DataFrame], float]],
                 label: str, subset: Optional[Callable] = None):
        super().__init__(label)
        self.inquiries = inquiries
        self.subset = subset

    @property
    def inquiry_names(self) -> List[str]:
        return list(self.inquiries)

    def __call__(self, data: pd.DataFrame, rng: np.random.Generator) -> pd.DataFrame:
        if self.subset is not None:
            data = data[np.asarray(self.subset(data), dtype=bool)]
        return pd.DataFrame({
            'inquiry': self.inquiry_names,
            'estimand': [float(inquiry(data)) for inquiry in self.inquiries.values()]
        })


def declare_inquiry(label: Optional[str] = None, subset: Optional[Callable] = None,
                    **inquiries) -> InquiryStep:
    """Declare one or more estimands, each a callable ``f(data)`` returning a number."""
    if not inquiries:
        raise ValueError("declare_inquiry needs at least one named inquiry")
    for name, inquiry in inquiries.items():
        if not callable(inquiry):
            raise ValueError(f"Inquiry {name!r} must be callable")
    return InquiryStep(dict(inquiries), label=label or next(iter(inquiries)), subset=subset)
