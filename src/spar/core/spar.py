"""
Sparse Projected Averaged Regression (SPAR).

SPAR fits many low-dimensional marginal models, each on a screened
subset of the predictors compressed by a random projection, and averages
their back-projected coefficients. Small coefficients are thresholded
before averaging; the threshold ``nu`` and the number of averaged models
``nummod`` are chosen on validation data.
"""

import warnings
from collections import namedtuple
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from math import ceil, floor
from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd
from scipy import sparse
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.utils.validation import check_is_fitted
from tqdm import tqdm

from ..config import validate_control
from ..families import Family, resolve_family
from ..measures import create_measure
from .marginal import MarginalContext, fit_marginal_model
from .projections import PROJECTION_TYPES
from .screening import SCREENING_TYPES, compute_screening_coef, inclusion_probabilities
from .standardization import Standardization
from .validation import compute_coef, threshold_grid, validate_grid

SPARCoef = namedtuple('SPARCoef', ['intercept', 'beta', 'nummod', 'nu'])

PREDICTION_TYPES = ('response', 'link')
AVERAGING_TYPES = ('link', 'response')


@dataclass(frozen=True, eq=False)
class SPARResult:
    """
    Fitted SPAR ensemble.

    Attributes
    ----------
    betas : scipy.sparse.csc_matrix of shape (p, max(nummods))
        Standardized coefficients of each marginal model; rows of constant
        predictors are zero.
    intercepts : ndarray of shape (max(nummods),)
        Intercept of each marginal model (zero for the Gaussian family).
    scr_coef : ndarray of shape (p_active,)
        Screening coefficients of the non-constant predictors.
    inds : tuple of ndarray
        Predictor columns used by each marginal model.
    rpms : tuple of scipy.sparse.csc_matrix
        Projection matrix of each marginal model.
    val_res : pandas.DataFrame
        Validation measure and number of active predictors for every
        combination of ``nus`` and ``nummods``. Returned as a copy; all
        arrays of the result are read-only.
    val_set : bool
        Whether separate validation data were used.
    nus : ndarray
        Thresholds considered.
    nummods : tuple of int
        Numbers of marginal models considered.
    standardization : Standardization
        Centering and scaling of predictors and response.
    family : Family
    type_measure, type_rpm, type_screening : str
    control : dict
        Fully resolved control block.
    """

    betas: sparse.csc_matrix
    intercepts: np.ndarray
    scr_coef: np.ndarray
    inds: Tuple[np.ndarray, ...]
    rpms: Tuple[sparse.csc_matrix, ...]
    _val_res: pd.DataFrame
    val_set: bool
    nus: np.ndarray
    nummods: Tuple[int, ...]
    standardization: Standardization
    family: Family
    type_measure: str
    type_rpm: str
    type_screening: str
    control: Dict[str, Any]

    @property
    def val_res(self):
        return self._val_res.copy()

    @property
    def xcenter(self):
        return self.standardization.xcenter

    @property
    def xscale(self):
        return self.standardization.xscale

    @property
    def ycenter(self):
        return self.standardization.ycenter

    @property
    def yscale(self):
        return self.standardization.yscale

    @property
    def n_models(self):
        return self.betas.shape[1]


def _as_matrix(x, name):
    x = np.asarray(x, dtype=float)
    if x.ndim != 2:
        raise ValueError(f"{name} must be a 2-dimensional array, got {x.ndim} dimensions")
    return x


def _as_vector(y, name):
    y = np.asarray(y, dtype=float)
    if y.ndim == 2 and y.shape[1] == 1:
        y = y.ravel()
    if y.ndim != 1:
        raise ValueError(f"{name} must be a 1-dimensional array")
    return y


def _check_nummods(nummods):
    values = np.atleast_1d(np.asarray(nummods))
    if values.ndim != 1 or values.size == 0:
        raise ValueError("nummods must be a non-empty sequence of positive integers")
    result = tuple(int(k) for k in values)
    if any(k < 1 for k in result) or not np.array_equal(values.astype(float), np.asarray(result, dtype=float)):
        raise ValueError(f"nummods must contain positive integers, got {list(values)}")
    return result


def _check_supplied(inds, rpms, n_models, p, expected_len, type_rpm):
    """Validate caller-supplied index sets and projection matrices."""
    if inds is not None:
        if len(inds) != n_models:
            raise ValueError(f"inds must contain max(nummods) = {n_models} index sets, got {len(inds)}")
        checked = []
        for i, ind in enumerate(inds):
            ind = np.asarray(ind)
            if ind.ndim != 1 or ind.size == 0 or not np.issubdtype(ind.dtype, np.integer):
                raise ValueError(f"inds[{i}] must be a non-empty 1-dimensional integer array")
            if ind.min() < 0 or ind.max() >= p or len(np.unique(ind)) != len(ind):
                raise ValueError(f"inds[{i}] must hold distinct column indices in [0, {p})")
            checked.append(ind.astype(int))
        inds = checked

    if rpms is not None:
        if len(rpms) != n_models:
            raise ValueError(f"rpms must contain max(nummods) = {n_models} matrices, got {len(rpms)}")
        checked = []
        for i, rpm in enumerate(rpms):
            rpm = sparse.csc_matrix(rpm, copy=True)
            width = len(inds[i]) if inds is not None else expected_len
            if rpm.shape[1] != width or rpm.shape[0] < 1:
                raise ValueError(
                    f"rpms[{i}] has shape {rpm.shape}, expected {width} columns to match "
                    f"the selected predictors"
                )
            if type_rpm == 'cwdatadriven' and (
                    rpm.nnz != width or not np.all(np.diff(rpm.indptr) == 1)):
                raise ValueError(
                    f"rpms[{i}] must have exactly one stored entry per column for "
                    f"'cwdatadriven' re-weighting"
                )
            checked.append(rpm)
        rpms = checked
    return inds, rpms


def _freeze_sparse(mat):
    mat.sort_indices()
    for arr in (mat.data, mat.indices, mat.indptr):
        arr.setflags(write=False)
    return mat


_WORKER_CONTEXT = None


def _init_worker(ctx):
    global _WORKER_CONTEXT
    _WORKER_CONTEXT = ctx


def _fit_member(task):
    rng, inds, rpm, m = task
    return fit_marginal_model(_WORKER_CONTEXT, rng, inds=inds, rpm=rpm, m=m)


def spar(x, y, family='gaussian', xval=None, yval=None, nnu=20, nus=None,
         nummods=(20,), type_measure='deviance', type_rpm='cwdatadriven',
         type_screening='ridge', inds=None, rpms=None, control=None,
         random_state=None, n_jobs=None, verbose=False):
    """
    Fit SPAR for given thresholds and numbers of marginal models.

    Parameters
    ----------
    x : array-like of shape (n, p)
        Predictors.
    y : array-like of shape (n,)
        Response.
    family : str or Family, default='gaussian'
        Family of the marginal (generalized) linear models.
    xval, yval : array-like, optional
        Validation data for choosing ``nu`` and ``nummod``. The training
        data are used when not given.
    nnu : int, default=20
        Number of thresholds, ignored when ``nus`` is given.
    nus : array-like, optional
        Thresholds; by default zero and ``nnu - 1`` quantiles of the
        absolute nonzero standardized coefficients.
    nummods : sequence of int, default=(20,)
        Numbers of marginal models to validate.
    type_measure : str, default='deviance'
        ``'deviance'``, ``'mse'``, ``'mae'``, ``'class'`` or ``'1-auc'``.
    type_rpm : str, default='cwdatadriven'
        ``'cwdatadriven'``, ``'cw'``, ``'gaussian'`` or ``'sparse'``.
    type_screening : str, default='ridge'
        ``'ridge'``, ``'marglik'`` or ``'corr'``.
    inds : sequence of array-like, optional
        Predictor columns for each of the ``max(nummods)`` marginal models.
    rpms : sequence of matrices, optional
        Projection matrices for each marginal model. For ``'cwdatadriven'``
        their stored values are refreshed from the screening coefficients.
    control : dict, optional
        Control block, see :mod:`spar.config`.
    random_state : int, numpy.random.Generator or None
    n_jobs : int, optional
        Number of worker processes for the marginal models.
    verbose : bool, default=False
        Show progress bars.

    Returns
    -------
    SPARResult
    """
    fam = resolve_family(family)
    x = _as_matrix(x, "x")
    y = _as_vector(y, "y")
    n, p = x.shape
    if len(y) != n:
        raise ValueError(f"x has {n} rows but y has {len(y)} entries")
    fam.validate_response(y)
    if np.var(y) == 0:
        raise ValueError("y has zero variance")

    if (xval is None) != (yval is None):
        raise ValueError("xval and yval must be given together")
    val_set = xval is not None
    if val_set:
        xval = _as_matrix(xval, "xval")
        yval = _as_vector(yval, "yval")
        if xval.shape[1] != p:
            raise ValueError(f"xval must have {p} columns like x, got {xval.shape[1]}")
        if len(yval) != xval.shape[0]:
            raise ValueError(f"xval has {xval.shape[0]} rows but yval has {len(yval)} entries")
        fam.validate_response(yval)
    else:
        xval, yval = x, y

    if type_rpm not in PROJECTION_TYPES:
        raise ValueError(f"type_rpm must be one of {PROJECTION_TYPES}, got '{type_rpm}'")
    if type_screening not in SCREENING_TYPES:
        raise ValueError(f"type_screening must be one of {SCREENING_TYPES}, got '{type_screening}'")
    measure = create_measure(type_measure, fam)
    nummods = _check_nummods(nummods)
    n_models = max(nummods)
    if nus is not None:
        nus = np.array(nus, dtype=float, ndmin=1)
        if nus.ndim != 1 or nus.size == 0 or np.any(~np.isfinite(nus)) or np.any(nus < 0):
            raise ValueError("nus must be a non-empty sequence of non-negative thresholds")
    elif int(nnu) < 1:
        raise ValueError(f"nnu must be a positive integer, got {nnu}")

    ctrl = validate_control(control, n, p)
    nscreen = ctrl['scr']['nscreen']
    split_data = bool(ctrl['scr']['split_data'])
    if split_data and n < 8:
        raise ValueError("split_data requires at least 8 observations")

    std = Standardization.fit(x, y, fam)
    p_active = int(np.sum(std.active))
    if p_active == 0:
        raise ValueError("All predictors have zero variance")
    inds, rpms = _check_supplied(inds, rpms, n_models, p, min(nscreen, p_active), type_rpm)

    rng = np.random.default_rng(random_state)
    if split_data:
        scr_rows = np.sort(rng.choice(n, size=n // 4, replace=False))
        fit_rows = np.setdiff1d(np.arange(n), scr_rows)
    else:
        scr_rows = fit_rows = np.arange(n)
    if fam.is_binomial and split_data:
        for part, part_rows in (('screening', scr_rows), ('fitting', fit_rows)):
            if len(np.unique(y[part_rows])) < 2:
                raise ValueError(
                    f"split_data left only one class of the binomial response in the "
                    f"{part} rows; use more observations or split_data=False"
                )

    z = std.transform(x)
    yz = std.transform_response(y)

    scr_coef = compute_screening_coef(z[np.ix_(scr_rows, std.active)], yz[scr_rows],
                                      fam, type_screening)
    scr_weights = np.zeros(p)
    scr_weights[std.active] = scr_coef / np.max(np.abs(scr_coef))

    if rpms is None:
        mslow, msup = ctrl['rpm']['mslow'], ctrl['rpm']['msup']
        ms = rng.integers(floor(mslow), ceil(msup), size=n_models, endpoint=True)
    else:
        ms = [None] * n_models
    member_rngs = rng.spawn(n_models)

    ctx = MarginalContext(
        z=z[fit_rows], yz=yz[fit_rows], family=fam, active=std.active,
        inc_probs=inclusion_probabilities(scr_coef), scr_weights=scr_weights,
        nscreen=nscreen, type_rpm=type_rpm, psi=ctrl['rpm']['psi'],
    )
    tasks = [
        (member_rngs[i],
         None if inds is None else inds[i],
         None if rpms is None else rpms[i],
         ms[i])
        for i in range(n_models)
    ]

    if n_jobs is not None and n_jobs > 1:
        with ProcessPoolExecutor(max_workers=n_jobs, initializer=_init_worker,
                                 initargs=(ctx,)) as executor:
            fits = list(tqdm(executor.map(_fit_member, tasks), total=n_models,
                             desc="Marginal models", disable=not verbose))
    else:
        fits = [fit_marginal_model(ctx, member_rng, inds=ind, rpm=rpm, m=m)
                for member_rng, ind, rpm, m in tqdm(tasks, desc="Marginal models",
                                                    disable=not verbose)]

    rows = np.concatenate([fit.inds for fit in fits])
    cols = np.concatenate([np.full(len(fit.inds), i) for i, fit in enumerate(fits)])
    betas = sparse.csc_matrix(
        (np.concatenate([fit.coef for fit in fits]), (rows, cols)), shape=(p, n_models))
    betas.eliminate_zeros()
    intercepts = np.array([fit.intercept for fit in fits])

    if nus is None:
        nus = threshold_grid(betas, int(nnu))

    val_res = validate_grid(betas, intercepts, std, nus, nummods, xval, yval,
                            measure, verbose=verbose)

    for arr in (intercepts, scr_coef, nus, *(fit.inds for fit in fits)):
        arr.setflags(write=False)
    for mat in (betas, *(fit.rpm for fit in fits)):
        _freeze_sparse(mat)
    return SPARResult(
        betas=betas,
        intercepts=intercepts,
        scr_coef=scr_coef,
        inds=tuple(fit.inds for fit in fits),
        rpms=tuple(fit.rpm for fit in fits),
        _val_res=val_res,
        val_set=val_set,
        nus=nus,
        nummods=nummods,
        standardization=std,
        family=fam,
        type_measure=type_measure,
        type_rpm=type_rpm,
        type_screening=type_screening,
        control=ctrl,
    )


def _best_row(val_res):
    if val_res['measure'].isna().all():
        warnings.warn("All validation measures are missing; using the first fitted combination.")
        return val_res.iloc[0]
    return val_res.loc[val_res['measure'].idxmin()]


def _match_nu(val_res, nu):
    mask = np.isclose(val_res['nu'].to_numpy(), nu, rtol=1e-10, atol=0.0)
    if not mask.any():
        raise ValueError(f"nu={nu} is not among the fitted thresholds {sorted(set(val_res['nu']))}")
    return mask


def extract_coef(result, nummod=None, nu=None):
    """
    Coefficients of a fitted SPAR ensemble.

    Parameters
    ----------
    result : SPARResult
    nummod : int, optional
        Number of marginal models to average. Chosen by minimal
        validation measure when not given.
    nu : float, optional
        Threshold. Chosen by minimal validation measure when not given.

    Returns
    -------
    SPARCoef
        ``intercept``, ``beta`` (length p), ``nummod`` and ``nu``.
    """
    val_res = result.val_res
    if nummod is not None and np.ndim(nummod) != 0:
        raise ValueError("nummod must be a single value")
    if nu is not None and np.ndim(nu) != 0:
        raise ValueError("nu must be a single value")

    if nummod is not None:
        nummod = int(nummod)
        if nummod > result.n_models:
            warnings.warn(
                f"nummod={nummod} exceeds the {result.n_models} fitted marginal models; "
                f"using {result.n_models} instead."
            )
            nummod = result.n_models
        if nummod not in set(val_res['nummod']):
            raise ValueError(
                f"nummod={nummod} is not among the fitted numbers of models {list(result.nummods)}")

    if nummod is None and nu is None:
        row = _best_row(val_res)
        nummod, nu = int(row['nummod']), float(row['nu'])
    elif nummod is None:
        sub = val_res[_match_nu(val_res, nu)]
        row = _best_row(sub)
        nummod, nu = int(row['nummod']), float(row['nu'])
    elif nu is None:
        row = _best_row(val_res[val_res['nummod'] == nummod])
        nu = float(row['nu'])
    else:
        nu = float(val_res['nu'][_match_nu(val_res, nu)].iloc[0])

    intercept, beta = compute_coef(result.betas, result.intercepts,
                                   result.standardization, nummod, nu)
    return SPARCoef(intercept=intercept, beta=beta, nummod=nummod, nu=nu)


def predict(result, xnew, type='response', avg_type='link', nummod=None, nu=None, coef=None):
    """
    Predict responses for new predictors.

    Parameters
    ----------
    result : SPARResult
    xnew : array-like of shape (n_new, p)
    type : {'response', 'link'}, default='response'
        Scale of the predictions.
    avg_type : {'link', 'response'}, default='link'
        Average the marginal models' coefficients (``'link'``) or their
        response-scale predictions (``'response'``).
    nummod, nu : optional
        Passed to :func:`extract_coef` when ``coef`` is not given.
    coef : SPARCoef, optional
        Previously extracted coefficients.

    Returns
    -------
    ndarray of shape (n_new,)
    """
    xnew = _as_matrix(xnew, "xnew")
    if xnew.shape[1] != len(result.xscale):
        raise ValueError(f"xnew must have {len(result.xscale)} columns like x, got {xnew.shape[1]}")
    if type not in PREDICTION_TYPES:
        raise ValueError(f"type must be one of {PREDICTION_TYPES}, got '{type}'")
    if avg_type not in AVERAGING_TYPES:
        raise ValueError(f"avg_type must be one of {AVERAGING_TYPES}, got '{avg_type}'")
    if coef is None:
        coef = extract_coef(result, nummod, nu)

    eta = xnew @ coef.beta + coef.intercept
    if type == 'link':
        return eta
    if avg_type == 'link':
        return result.family.linkinv(eta)

    preds = np.empty((coef.nummod, xnew.shape[0]))
    for j in range(coef.nummod):
        intercept_j, beta_j = compute_coef(result.betas[:, [j]], result.intercepts[j:j + 1],
                                           result.standardization, 1, coef.nu)
        preds[j] = result.family.linkinv(xnew @ beta_j + intercept_j)
    return preds.mean(axis=0)


class SPAR(BaseEstimator, RegressorMixin):
    """
    Sparse Projected Averaged Regression estimator.

    Parameters
    ----------
    family : str or Family, default='gaussian'
        Family of the marginal models.
    nnu : int, default=20
        Number of thresholds when ``nus`` is not given.
    nus : array-like or None, default=None
        Thresholds to validate.
    nummods : sequence of int, default=(20,)
        Numbers of marginal models to validate.
    type_measure : str, default='deviance'
        Validation loss.
    type_rpm : str, default='cwdatadriven'
        Type of random projection.
    type_screening : str, default='ridge'
        Type of screening coefficients.
    control : dict or None, default=None
        Control block, see :mod:`spar.config`.
    n_jobs : int or None, default=None
        Worker processes for fitting marginal models.
    verbose : bool, default=False
        Show progress bars.
    random_state : int or None, default=None
        Random number generator seed.
    """

    def __init__(self, family='gaussian', nnu=20, nus=None, nummods=(20,),
                 type_measure='deviance', type_rpm='cwdatadriven',
                 type_screening='ridge', control=None, n_jobs=None,
                 verbose=False, random_state=None):
        self.family = family
        self.nnu = nnu
        self.nus = nus
        self.nummods = nummods
        self.type_measure = type_measure
        self.type_rpm = type_rpm
        self.type_screening = type_screening
        self.control = control
        self.n_jobs = n_jobs
        self.verbose = verbose
        self.random_state = random_state

    def fit(self, X, y, X_val=None, y_val=None, inds=None, rpms=None):
        """
        Fit the ensemble and select ``nummod`` and ``nu``.

        Parameters
        ----------
        X : array-like, shape (n_samples, n_features)
            Training data
        y : array-like, shape (n_samples,)
            Target values
        X_val, y_val : array-like, optional
            Validation data; the training data are used when omitted.
        inds, rpms : sequence, optional
            Index sets and projection matrices to reuse.

        Returns
        -------
        self : object
            Returns fitted estimator
        """
        self.result_ = spar(
            X, y, family=self.family, xval=X_val, yval=y_val, nnu=self.nnu,
            nus=self.nus, nummods=self.nummods, type_measure=self.type_measure,
            type_rpm=self.type_rpm, type_screening=self.type_screening,
            inds=inds, rpms=rpms, control=self.control,
            random_state=self.random_state, n_jobs=self.n_jobs, verbose=self.verbose,
        )
        best = extract_coef(self.result_)
        self.coef_ = best.beta
        self.intercept_ = best.intercept
        self.nummod_ = best.nummod
        self.nu_ = best.nu
        self.n_features_in_ = self.result_.betas.shape[0]
        return self

    def get_coef(self, nummod=None, nu=None):
        """Coefficients for the given (or validated best) ``nummod`` and ``nu``."""
        check_is_fitted(self, 'result_')
        return extract_coef(self.result_, nummod=nummod, nu=nu)

    def predict(self, X, type='response', avg_type='link', nummod=None, nu=None):
        """
        Predict using the fitted ensemble.

        Parameters
        ----------
        X : array-like, shape (n_samples, n_features)
            Data to predict
        type : {'response', 'link'}, default='response'
        avg_type : {'link', 'response'}, default='link'
        nummod, nu : optional
            Defaults to the combination with minimal validation measure.

        Returns
        -------
        y_pred : array, shape (n_samples,)
            Predicted target values
        """
        check_is_fitted(self, 'result_')
        if isinstance(X, pd.DataFrame):
            X = X.values
        return predict(self.result_, X, type=type, avg_type=avg_type, nummod=nummod, nu=nu)
