import numpy as np
import pandas as pd
from scipy import sparse
from tqdm import tqdm

VAL_COLUMNS = ['nu_index', 'nu', 'nummod', 'num_active', 'measure']


def threshold_grid(betas_std, nnu):
    """
    Default thresholds: zero followed by the ``1/(nnu-1), ..., 1``
    quantiles of the absolute nonzero standardized coefficients.
    """
    abs_coef = np.abs(sparse.csc_matrix(betas_std).data)
    abs_coef = abs_coef[abs_coef > 0]
    if nnu <= 1 or abs_coef.size == 0:
        return np.zeros(1)
    probs = np.arange(1, nnu) / (nnu - 1)
    return np.concatenate([[0.0], np.quantile(abs_coef, probs)])


def average_coef(betas_std, nummod, nu):
    """
    Row means of the first ``nummod`` columns after zeroing every entry
    whose absolute value is below ``nu``.
    """
    coef = sparse.csc_matrix(betas_std[:, :nummod], copy=True)
    coef.data[np.abs(coef.data) < nu] = 0.0
    return np.asarray(coef.sum(axis=1)).ravel() / nummod


def compute_coef(betas_std, intercepts, standardization, nummod, nu):
    """
    Thresholded, averaged coefficients in original units.

    Returns
    -------
    intercept : float
    beta : ndarray of shape (p,)
    """
    beta = standardization.rescale(average_coef(betas_std, nummod, nu))
    intercept = (standardization.ycenter + float(np.mean(intercepts[:nummod]))
                 - float(np.dot(standardization.xcenter, beta)))
    return intercept, beta


def validate_grid(betas_std, intercepts, standardization, nus, nummods,
                  xval, yval, measure, verbose=False):
    """
    Score every (nummod, nu) combination on the validation data.

    Parameters
    ----------
    betas_std : sparse matrix of shape (p, max(nummods))
        Standardized coefficients of the marginal models.
    intercepts : ndarray of shape (max(nummods),)
    standardization : Standardization
    nus : array-like
        Thresholds.
    nummods : sequence of int
        Numbers of marginal models to average.
    xval, yval : ndarray
        Validation predictors and responses.
    measure : callable
        ``measure(y, eta)`` as returned by :func:`spar.measures.create_measure`.

    Returns
    -------
    pandas.DataFrame
        One row per combination with columns ``nu_index``, ``nu``,
        ``nummod``, ``num_active`` and ``measure``.
    """
    rows = []
    grid = [(nummod, l, nu) for nummod in nummods for l, nu in enumerate(nus)]
    for nummod, l, nu in tqdm(grid, desc="Validating", disable=not verbose):
        intercept, beta = compute_coef(betas_std, intercepts, standardization, nummod, nu)
        eta_hat = xval @ beta + intercept
        rows.append((l, float(nu), int(nummod), int(np.count_nonzero(beta)), measure(yval, eta_hat)))
    return pd.DataFrame(rows, columns=VAL_COLUMNS)
