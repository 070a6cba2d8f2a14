"""
Response families for SPAR.

A family bundles everything the fitting engine needs to know about the
response distribution: the link and its inverse, the variance function,
the deviance residuals, a response-domain check and a penalized fit in
reduced space. Screening, marginal fitting and validation only talk to
this interface and never branch on family names.

Built-in families are ``gaussian`` (identity link), ``binomial`` (logit
link) and ``poisson`` (log link). :class:`CustomFamily` wraps arbitrary
user-supplied link, mean and deviance functions and is fitted by
penalized IRLS.
"""

from typing import Callable, Optional

import numpy as np
from scipy.special import expit, logit, xlogy
from sklearn.linear_model import LogisticRegression, PoissonRegressor

from .glm import fit_penalized_irls

_EPS = np.finfo(float).eps


class Family:
    """Base class for response families."""

    name = None
    link_name = None

    @property
    def is_gaussian_identity(self):
        return self.name == "gaussian" and self.link_name == "identity"

    @property
    def is_binomial(self):
        return self.name == "binomial"

    def link(self, mu):
        raise NotImplementedError

    def linkinv(self, eta):
        raise NotImplementedError

    def mu_eta(self, eta):
        """Derivative of the inverse link with respect to ``eta``."""
        raise NotImplementedError

    def variance(self, mu):
        raise NotImplementedError

    def dev_resids(self, y, mu):
        raise NotImplementedError

    def deviance(self, y, mu):
        """Total deviance between observed ``y`` and fitted means ``mu``."""
        return float(np.sum(self.dev_resids(np.asarray(y, dtype=float),
                                            np.asarray(mu, dtype=float))))

    def initialize(self, y):
        """Starting means for IRLS."""
        y = np.asarray(y, dtype=float)
        return (y + y.mean()) / 2

    def validate_response(self, y):
        y = np.asarray(y)
        if not np.all(np.isfinite(y)):
            raise ValueError(f"Response for family '{self.name}' contains non-finite values")

    def fit_penalized(self, X, y, penalty):
        """
        Fit a ridge-penalized GLM with an unpenalized intercept.

        The objective is ``deviance / (2 n) + penalty / 2 * ||coef||^2``,
        matching the glmnet parametrization.

        Returns
        -------
        intercept : float
        coef : ndarray of shape (n_features,)
        """
        return fit_penalized_irls(X, y, self, penalty)

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r}, link={self.link_name!r})"


class GaussianFamily(Family):
    name = "gaussian"
    link_name = "identity"

    def link(self, mu):
        return np.asarray(mu, dtype=float)

    def linkinv(self, eta):
        return np.asarray(eta, dtype=float)

    def mu_eta(self, eta):
        return np.ones_like(np.asarray(eta, dtype=float))

    def variance(self, mu):
        return np.ones_like(np.asarray(mu, dtype=float))

    def dev_resids(self, y, mu):
        return (y - mu) ** 2

    def initialize(self, y):
        return np.asarray(y, dtype=float)


class BinomialFamily(Family):
    name = "binomial"
    link_name = "logit"

    def link(self, mu):
        return logit(np.clip(mu, _EPS, 1 - _EPS))

    def linkinv(self, eta):
        return expit(np.asarray(eta, dtype=float))

    def mu_eta(self, eta):
        mu = self.linkinv(eta)
        return np.maximum(mu * (1 - mu), _EPS)

    def variance(self, mu):
        return mu * (1 - mu)

    def dev_resids(self, y, mu):
        mu = np.clip(mu, _EPS, 1 - _EPS)
        return 2 * (xlogy(y, y / mu) + xlogy(1 - y, (1 - y) / (1 - mu)))

    def initialize(self, y):
        return (np.asarray(y, dtype=float) + 0.5) / 2

    def validate_response(self, y):
        super().validate_response(y)
        if not np.all(np.isin(np.asarray(y, dtype=float), (0.0, 1.0))):
            raise ValueError("Response for family 'binomial' must be coded as 0/1")

    def fit_penalized(self, X, y, penalty):
        n = X.shape[0]
        # sklearn minimizes ||w||^2 / 2 + C * sum(log-loss)
        model = LogisticRegression(C=1.0 / (n * penalty), max_iter=1000)
        model.fit(X, y)
        return float(model.intercept_[0]), np.asarray(model.coef_[0], dtype=float)


class PoissonFamily(Family):
    name = "poisson"
    link_name = "log"

    def link(self, mu):
        return np.log(np.maximum(mu, _EPS))

    def linkinv(self, eta):
        return np.maximum(np.exp(np.asarray(eta, dtype=float)), _EPS)

    def mu_eta(self, eta):
        return self.linkinv(eta)

    def variance(self, mu):
        return mu

    def dev_resids(self, y, mu):
        mu = np.maximum(mu, _EPS)
        return 2 * (xlogy(y, y / mu) - (y - mu))

    def initialize(self, y):
        return np.asarray(y, dtype=float) + 0.1

    def validate_response(self, y):
        super().validate_response(y)
        if np.any(np.asarray(y, dtype=float) < 0):
            raise ValueError("Response for family 'poisson' must be non-negative")

    def fit_penalized(self, X, y, penalty):
        model = PoissonRegressor(alpha=penalty, max_iter=1000)
        model.fit(X, y)
        return float(model.intercept_), np.asarray(model.coef_, dtype=float)


class CustomFamily(Family):
    """
    Family defined by user-supplied functions.

    Parameters
    ----------
    name, link_name : str
        Labels used in results and messages.
    link_fn, linkinv_fn, mu_eta_fn, variance_fn : callable
        Elementwise functions of ``mu`` or ``eta``.
    dev_resids_fn : callable
        ``dev_resids_fn(y, mu)`` returning per-observation deviance residuals.
    validate : callable, optional
        Called with the response; should raise ``ValueError`` when the
        response is outside the family's domain.

    Fitting with ``n_jobs > 1`` requires the functions to be picklable
    (module-level functions rather than lambdas).
    """

    def __init__(self, name: str, link_name: str, link_fn: Callable, linkinv_fn: Callable,
                 mu_eta_fn: Callable, variance_fn: Callable, dev_resids_fn: Callable,
                 validate: Optional[Callable] = None):
        self.name = name
        self.link_name = link_name
        self.link_fn = link_fn
        self.linkinv_fn = linkinv_fn
        self.mu_eta_fn = mu_eta_fn
        self.variance_fn = variance_fn
        self.dev_resids_fn = dev_resids_fn
        self.validate = validate

    def link(self, mu):
        return np.asarray(self.link_fn(mu), dtype=float)

    def linkinv(self, eta):
        return np.asarray(self.linkinv_fn(eta), dtype=float)

    def mu_eta(self, eta):
        return np.asarray(self.mu_eta_fn(eta), dtype=float)

    def variance(self, mu):
        return np.asarray(self.variance_fn(mu), dtype=float)

    def dev_resids(self, y, mu):
        return np.asarray(self.dev_resids_fn(y, mu), dtype=float)

    def validate_response(self, y):
        super().validate_response(y)
        if self.validate is not None:
            self.validate(y)


_FAMILIES = {
    "gaussian": GaussianFamily,
    "binomial": BinomialFamily,
    "poisson": PoissonFamily,
}


def resolve_family(family):
    """
    Map a family name or instance to a :class:`Family`.

    Parameters
    ----------
    family : str or Family
        One of ``'gaussian'``, ``'binomial'``, ``'poisson'`` or an
        already constructed family.
    """
    if isinstance(family, Family):
        return family
    if isinstance(family, str):
        key = family.lower()
        if key not in _FAMILIES:
            raise ValueError(
                f"Unknown family '{family}'. Choose one of {sorted(_FAMILIES)} "
                f"or pass a Family instance."
            )
        return _FAMILIES[key]()
    raise ValueError(f"family must be a string or a Family instance, got {type(family).__name__}")
