"""
Random projection matrices.

Every generator returns an ``m x p`` matrix in ``scipy.sparse`` CSC
format. Count-sketch style matrices (``'cwdatadriven'`` and ``'cw'``)
have exactly one stored entry per column, so their values can be
replaced without touching the sparsity pattern.
"""

import numpy as np
from scipy import sparse

PROJECTION_TYPES = ('cwdatadriven', 'cw', 'gaussian', 'sparse')


def generate_cw_rp(m, p, coef, rng):
    """
    Clarkson-Woodruff (count-sketch) projection with given column values.

    Each of the ``p`` columns is hashed to one of the ``m`` rows and
    carries the value ``coef[j]``. When ``p >= m`` every row receives at
    least one column.
    """
    goal_dims = rng.integers(0, m, size=p)
    if p >= m:
        goal_dims[rng.choice(p, size=m, replace=False)] = np.arange(m)
    return sparse.csc_matrix(
        (np.asarray(coef, dtype=float).copy(), goal_dims, np.arange(p + 1)),
        shape=(m, p),
    )


def generate_gaussian_rp(m, p, rng):
    """Dense i.i.d. N(0, 1/m) projection."""
    return sparse.csc_matrix(rng.standard_normal((m, p)) / np.sqrt(m))


def generate_sparse_rp(m, p, rng, psi=None):
    """
    Sparse (Achlioptas-type) projection.

    Entries are ``sqrt(1/psi) * {-1, 0, +1}`` with probabilities
    ``{1/(2 psi), 1 - 1/psi, 1/(2 psi)}``; ``psi`` defaults to ``sqrt(p)``.
    """
    if psi is None:
        psi = np.sqrt(p)
    psi = max(float(psi), 1.0)
    values = rng.choice(
        np.array([-1.0, 0.0, 1.0]),
        size=(m, p),
        p=[1 / (2 * psi), 1 - 1 / psi, 1 / (2 * psi)],
    )
    return sparse.csc_matrix(values * np.sqrt(1 / psi))


def generate_rpm(type_rpm, m, p, rng, coef=None, psi=None):
    """
    Draw a projection matrix of the requested type.

    Falls back to the ``p x p`` identity when ``p < m``, in which case no
    reduction takes place.

    Parameters
    ----------
    type_rpm : str
        One of ``'cwdatadriven'``, ``'cw'``, ``'gaussian'``, ``'sparse'``.
    m : int
        Target reduced dimension.
    p : int
        Number of selected variables.
    rng : numpy.random.Generator
    coef : ndarray of shape (p,), optional
        Normalized screening coefficients, required for ``'cwdatadriven'``.
    psi : float, optional
        Sparsity level for ``'sparse'``.
    """
    if p < m:
        return identity_rpm(p)
    if type_rpm == 'cwdatadriven':
        if coef is None:
            raise ValueError("coef is required for 'cwdatadriven' projections")
        return generate_cw_rp(m, p, coef, rng)
    if type_rpm == 'cw':
        return generate_cw_rp(m, p, rng.choice(np.array([-1.0, 1.0]), size=p), rng)
    if type_rpm == 'gaussian':
        return generate_gaussian_rp(m, p, rng)
    if type_rpm == 'sparse':
        return generate_sparse_rp(m, p, rng, psi=psi)
    raise ValueError(f"type_rpm must be one of {PROJECTION_TYPES}, got '{type_rpm}'")


def identity_rpm(p):
    """Unit ``p x p`` projection stored with one entry per column."""
    return sparse.csc_matrix((np.ones(p), np.arange(p), np.arange(p + 1)), shape=(p, p))


def reweight_rpm(rpm, coef):
    """
    Copy of a count-sketch projection with its stored values replaced.

    The sparsity pattern is kept; only the one value per column changes.
    The input matrix is left untouched.
    """
    rpm = sparse.csc_matrix(rpm, copy=True)
    coef = np.asarray(coef, dtype=float)
    if rpm.nnz != rpm.shape[1] or not np.array_equal(np.diff(rpm.indptr), np.ones(rpm.shape[1])):
        raise ValueError(
            "Only projections with exactly one stored entry per column can be "
            "re-weighted with screening coefficients"
        )
    if coef.shape != (rpm.shape[1],):
        raise ValueError(f"Expected {rpm.shape[1]} coefficients, got {coef.shape[0]}")
    rpm.data = coef.copy()
    return rpm
