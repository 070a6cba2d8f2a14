"""
Linear algebra and penalized GLM helpers shared by screening and
marginal model fitting.
"""

import warnings

import numpy as np
from scipy import linalg


def solve_with_ridge_fallback(gram, rhs, ridge):
    """
    Solve ``gram @ x = rhs``, retrying with ``gram + ridge * I`` when the
    system is singular or numerically ill-conditioned.

    Parameters
    ----------
    gram : ndarray of shape (k, k)
        Symmetric normal-equations matrix.
    rhs : ndarray of shape (k,) or (k, r)
    ridge : float
        Diagonal term added on the retry.
    """
    with warnings.catch_warnings():
        warnings.simplefilter("error", linalg.LinAlgWarning)
        try:
            return linalg.solve(gram, rhs, assume_a="sym", check_finite=False)
        except (linalg.LinAlgError, linalg.LinAlgWarning):
            pass
    stabilized = gram + ridge * np.eye(gram.shape[0])
    return linalg.solve(stabilized, rhs, assume_a="pos", check_finite=False)


def smallest_path_penalty(X, y):
    """
    Smallest penalty of a glmnet-style ridge regularization path.

    The path starts at ``lambda_max = max|X^T (y - mean(y))| / (n * 0.001)``
    (ridge paths are computed as if alpha were 0.001) and ends at
    ``ratio * lambda_max`` with ``ratio = 0.01`` when ``n < p`` and
    ``1e-4`` otherwise.
    """
    n, p = X.shape
    y = np.asarray(y, dtype=float)
    lambda_max = np.max(np.abs(X.T @ (y - y.mean()))) / (n * 1e-3) if p > 0 else 0.0
    if not np.isfinite(lambda_max) or lambda_max <= 0:
        lambda_max = 1.0
    ratio = 0.01 if n < p else 1e-4
    return ratio * lambda_max


def fit_penalized_irls(X, y, family, penalty, max_iter=100, tol=1e-8):
    """
    Ridge-penalized GLM fit by iteratively reweighted least squares.

    Minimizes ``deviance / (2 n) + penalty / 2 * ||coef||^2`` with an
    unpenalized intercept, using only the family's link, inverse link,
    ``mu_eta`` and variance functions.

    Returns
    -------
    intercept : float
    coef : ndarray of shape (n_features,)
    """
    X = np.asarray(X, dtype=float)
    y = np.asarray(y, dtype=float)
    n, p = X.shape
    design = np.column_stack([np.ones(n), X])
    penalty_diag = np.full(p + 1, n * penalty)
    penalty_diag[0] = 0.0

    mu = family.initialize(y)
    eta = family.link(mu)
    beta = np.zeros(p + 1)
    dev_old = family.deviance(y, mu)

    for _ in range(max_iter):
        d_mu = family.mu_eta(eta)
        weights = d_mu ** 2 / np.maximum(family.variance(mu), 1e-12)
        working = eta + (y - mu) / d_mu
        weighted = design * weights[:, None]
        gram = design.T @ weighted + np.diag(penalty_diag)
        beta = solve_with_ridge_fallback(gram, weighted.T @ working, ridge=1e-2)
        eta = design @ beta
        mu = family.linkinv(eta)
        dev = family.deviance(y, mu)
        if abs(dev - dev_old) / (abs(dev) + 0.1) < tol:
            break
        dev_old = dev

    return float(beta[0]), beta[1:]
