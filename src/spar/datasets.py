"""
Synthetic data with a sparse linear predictor.
"""

from collections import namedtuple

import numpy as np

from .families import resolve_family

SparseData = namedtuple('SparseData', ['x', 'y', 'xtest', 'ytest', 'beta', 'intercept'])


def make_sparse_data(n=100, p=50, n_active=3, family='gaussian', n_test=None,
                     signal=3.0, sigma=1.0, intercept=1.0, rho=0.0, seed=123):
    """
    Generate training and test data from a sparse (generalized) linear model.

    Parameters
    ----------
    n, p : int
        Number of training observations and predictors.
    n_active : int
        Number of leading predictors with nonzero coefficients.
    family : str or Family
        ``'gaussian'``, ``'binomial'`` or ``'poisson'``.
    n_test : int, optional
        Number of test observations; defaults to ``n``.
    signal : float
        Magnitude of the nonzero coefficients; signs alternate.
    sigma : float
        Noise standard deviation for the Gaussian family.
    intercept : float
    rho : float
        AR(1) correlation between neighbouring predictors.
    seed : int
        Random seed for reproducibility.

    Returns
    -------
    SparseData
        ``x``, ``y``, ``xtest``, ``ytest``, the true ``beta`` and ``intercept``.
    """
    if not 0 <= n_active <= p:
        raise ValueError("n_active must be between 0 and p")
    if not -1 < rho < 1:
        raise ValueError("rho must lie in (-1, 1)")
    fam = resolve_family(family)
    generator = np.random.default_rng(seed)
    n_test = n if n_test is None else n_test

    beta = np.zeros(p)
    beta[:n_active] = signal * np.where(np.arange(n_active) % 2 == 0, 1.0, -1.0)

    def draw_x(rows):
        x = generator.standard_normal((rows, p))
        if rho != 0:
            for j in range(1, p):
                x[:, j] = rho * x[:, j - 1] + np.sqrt(1 - rho ** 2) * x[:, j]
        return x

    def draw_y(x):
        eta = x @ beta + intercept
        if fam.name == 'gaussian':
            return eta + generator.normal(0, sigma, x.shape[0])
        if fam.name == 'binomial':
            return generator.binomial(1, fam.linkinv(eta)).astype(float)
        if fam.name == 'poisson':
            return generator.poisson(fam.linkinv(eta)).astype(float)
        raise ValueError(f"Cannot simulate responses for family '{fam.name}'")

    x = draw_x(n)
    xtest = draw_x(n_test)
    return SparseData(x=x, y=draw_y(x), xtest=xtest, ytest=draw_y(xtest),
                      beta=beta, intercept=intercept)
