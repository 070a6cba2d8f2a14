from collections import namedtuple
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..families import Family
from ..glm import smallest_path_penalty, solve_with_ridge_fallback
from .projections import generate_rpm, reweight_rpm

# Ridge added to the reduced normal equations when they are singular
MARGINAL_RIDGE = 0.01

MarginalFit = namedtuple('MarginalFit', ['inds', 'coef', 'intercept', 'rpm'])


@dataclass(frozen=True)
class MarginalContext:
    """
    Data shared read-only by all marginal models of one fit.

    Attributes
    ----------
    z : ndarray of shape (n_fit, p)
        Standardized predictors restricted to the fitting rows. Constant
        columns are all zero.
    yz : ndarray of shape (n_fit,)
        Standardized (Gaussian) or raw response on the fitting rows.
    family : Family
    active : ndarray of bool, shape (p,)
        Mask of non-constant predictors.
    inc_probs : ndarray of shape (p_active,)
        Inclusion probabilities of the active predictors.
    scr_weights : ndarray of shape (p,)
        Screening coefficients divided by their largest absolute value,
        zero at constant predictors.
    nscreen : int
    type_rpm : str
    psi : float or None
    """

    z: np.ndarray
    yz: np.ndarray
    family: Family
    active: np.ndarray
    inc_probs: np.ndarray
    scr_weights: np.ndarray
    nscreen: int
    type_rpm: str
    psi: Optional[float] = None

    @property
    def active_idx(self):
        return np.flatnonzero(self.active)


def draw_indices(active_idx, inc_probs, nscreen, rng):
    """
    Sample ``nscreen`` active predictors without replacement, weighted by
    their inclusion probabilities.

    All active predictors are kept, in order, when ``nscreen`` is not
    smaller than their number. Predictors with zero probability are only
    drawn when there are fewer than ``nscreen`` with positive probability.
    """
    p_active = len(active_idx)
    if nscreen >= p_active:
        return active_idx.copy()

    positive = np.flatnonzero(inc_probs > 0)
    if len(positive) >= nscreen:
        chosen = rng.choice(p_active, size=nscreen, replace=False, p=inc_probs / inc_probs.sum())
    else:
        zero = np.flatnonzero(inc_probs <= 0)
        fill = rng.choice(zero, size=nscreen - len(positive), replace=False)
        chosen = np.concatenate([rng.permutation(positive), fill])
    return active_idx[chosen]


def fit_marginal_model(ctx, rng, inds=None, rpm=None, m=None):
    """
    Fit one marginal model.

    Selects predictors (unless ``inds`` is given), builds a projection
    (unless ``rpm`` is given), fits the projected data and maps the
    reduced coefficients back to the selected predictors.

    Parameters
    ----------
    ctx : MarginalContext
    rng : numpy.random.Generator
        Generator owned by this marginal model.
    inds : ndarray of int, optional
        Predictor columns to use.
    rpm : scipy.sparse matrix, optional
        Projection of shape ``(m, len(inds))``. For ``'cwdatadriven'`` its
        stored values are replaced by the current screening weights.
    m : int, optional
        Target reduced dimension, required when ``rpm`` is not given.

    Returns
    -------
    MarginalFit
        Selected columns, their standardized coefficients, the intercept
        and the projection used.
    """
    if inds is None:
        inds = draw_indices(ctx.active_idx, ctx.inc_probs, ctx.nscreen, rng)
    inds = np.asarray(inds, dtype=int)

    if rpm is None:
        rpm = generate_rpm(ctx.type_rpm, m, len(inds), rng,
                           coef=ctx.scr_weights[inds], psi=ctx.psi)
    elif ctx.type_rpm == 'cwdatadriven':
        rpm = reweight_rpm(rpm, ctx.scr_weights[inds])

    znew = np.asarray(rpm @ ctx.z[:, inds].T).T

    if ctx.family.is_gaussian_identity:
        mar_coef = solve_with_ridge_fallback(znew.T @ znew, znew.T @ ctx.yz, MARGINAL_RIDGE)
        intercept = 0.0
    else:
        intercept, mar_coef = ctx.family.fit_penalized(
            znew, ctx.yz, smallest_path_penalty(znew, ctx.yz))

    coef = np.asarray(rpm.T @ mar_coef, dtype=float).ravel()
    coef[~ctx.active[inds]] = 0.0
    return MarginalFit(inds=inds, coef=coef, intercept=float(intercept), rpm=rpm)
