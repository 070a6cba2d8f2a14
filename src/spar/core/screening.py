import numpy as np

from ..glm import smallest_path_penalty, solve_with_ridge_fallback

SCREENING_TYPES = ('ridge', 'marglik', 'corr')


def screening_ridge(z, yz, family):
    """
    Ridge coefficients in the limit of a vanishing penalty.

    For the identity-link Gaussian family the limit is computed from
    whichever normal-equation form is stable for the aspect ratio of
    ``z``, with a fallback penalty ``sqrt(p) + sqrt(n)`` on the diagonal.
    Other families use a ridge GLM at the smallest penalty of the
    regularization path.

    Parameters
    ----------
    z : ndarray of shape (n, p)
        Standardized active predictors.
    yz : ndarray of shape (n,)
        Standardized (Gaussian) or raw response.
    family : Family
    """
    n, p = z.shape
    if not family.is_gaussian_identity:
        _, coef = family.fit_penalized(z, yz, smallest_path_penalty(z, yz))
        return coef

    ridge = np.sqrt(p) + np.sqrt(n)
    if p < n / 2:
        return solve_with_ridge_fallback(z.T @ z, z.T @ yz, ridge)
    if p < 2 * n:
        return z.T @ np.linalg.solve(z @ z.T + ridge * np.eye(n), yz)
    return z.T @ solve_with_ridge_fallback(z @ z.T, yz, ridge)


def screening_marglik(z, yz, family):
    """Slope of a univariate GLM of the response on each predictor."""
    if family.is_gaussian_identity:
        zc = z - z.mean(axis=0)
        denom = np.sum(zc ** 2, axis=0)
        num = zc.T @ (yz - yz.mean())
        coef = np.zeros(z.shape[1])
        np.divide(num, denom, out=coef, where=denom > 0)
        return coef

    coef = np.zeros(z.shape[1])
    for j in range(z.shape[1]):
        if np.ptp(z[:, j]) == 0:
            continue
        _, slope = family.fit_penalized(z[:, [j]], yz, 1e-8)
        coef[j] = slope[0]
    return coef


def screening_corr(z, yz, family):
    """Pearson correlation between each predictor and the response."""
    zc = z - z.mean(axis=0)
    yc = yz - yz.mean()
    denom = np.sqrt(np.sum(zc ** 2, axis=0) * np.sum(yc ** 2))
    coef = np.zeros(z.shape[1])
    np.divide(zc.T @ yc, denom, out=coef, where=denom > 0)
    return coef


_SCREENERS = {
    'ridge': screening_ridge,
    'marglik': screening_marglik,
    'corr': screening_corr,
}


def compute_screening_coef(z, yz, family, type_screening='ridge'):
    """
    Screening coefficients of the active standardized predictors.

    Raises
    ------
    ValueError
        If every coefficient is zero, since inclusion probabilities are
        normalized by the largest absolute coefficient.
    """
    if type_screening not in _SCREENERS:
        raise ValueError(f"type_screening must be one of {SCREENING_TYPES}, got '{type_screening}'")
    scr_coef = np.asarray(_SCREENERS[type_screening](z, yz, family), dtype=float)
    if not np.any(np.abs(scr_coef) > 0):
        raise ValueError(
            "All screening coefficients are zero; the response carries no "
            "information about the predictors."
        )
    return scr_coef


def inclusion_probabilities(scr_coef):
    """Normalized absolute screening coefficients, ``|coef| / max|coef|``."""
    abs_coef = np.abs(scr_coef)
    return abs_coef / abs_coef.max()
