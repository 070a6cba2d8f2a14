from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Standardization:
    """
    Column means and standard deviations of the training data.

    Constant columns are inactive: they are never divided by and always
    receive a coefficient of exactly zero. The response is only centered
    and scaled for the identity-link Gaussian family.
    """

    xcenter: np.ndarray
    xscale: np.ndarray
    ycenter: float
    yscale: float
    active: np.ndarray

    @classmethod
    def fit(cls, x, y, family):
        xcenter = x.mean(axis=0)
        xscale = x.std(axis=0, ddof=1) if x.shape[0] > 1 else np.zeros(x.shape[1])
        active = (np.ptp(x, axis=0) > 0) & (xscale > 0)
        if family.is_gaussian_identity:
            ycenter = float(np.mean(y))
            yscale = float(np.std(y, ddof=1))
        else:
            ycenter, yscale = 0.0, 1.0
        for arr in (xcenter, xscale, active):
            arr.setflags(write=False)
        return cls(xcenter=xcenter, xscale=xscale, ycenter=ycenter, yscale=yscale, active=active)

    @property
    def safe_xscale(self):
        return np.where(self.active, self.xscale, 1.0)

    def transform(self, x):
        """Standardize predictors; constant columns become zero."""
        z = (x - self.xcenter) / self.safe_xscale
        z[:, ~self.active] = 0.0
        return z

    def transform_response(self, y):
        return (np.asarray(y, dtype=float) - self.ycenter) / self.yscale

    def rescale(self, std_coef):
        """Map standardized coefficients to the original predictor units."""
        beta = np.zeros(len(self.xscale))
        beta[self.active] = self.yscale * std_coef[self.active] / self.xscale[self.active]
        return beta
