import numpy as np
import pytest

from spar.core.marginal import MarginalContext, draw_indices, fit_marginal_model
from spar.core.projections import identity_rpm
from spar.families import BinomialFamily, GaussianFamily


def make_context(z, yz, family=None, active=None, type_rpm='cwdatadriven', nscreen=None):
    p = z.shape[1]
    active = np.ones(p, dtype=bool) if active is None else active
    weights = np.where(active, 1.0, 0.0)
    return MarginalContext(
        z=z, yz=yz, family=family or GaussianFamily(), active=active,
        inc_probs=weights[active], scr_weights=weights,
        nscreen=p if nscreen is None else nscreen, type_rpm=type_rpm,
    )


def test_draw_all_when_nscreen_covers_active():
    active_idx = np.array([0, 2, 5])
    chosen = draw_indices(active_idx, np.ones(3), 10, np.random.default_rng(0))
    np.testing.assert_array_equal(chosen, active_idx)


def test_draw_weighted_without_replacement():
    active_idx = np.arange(10, 20)
    probs = np.linspace(0.1, 1, 10)
    chosen = draw_indices(active_idx, probs, 4, np.random.default_rng(1))
    assert len(chosen) == 4
    assert len(np.unique(chosen)) == 4
    assert set(chosen) <= set(active_idx)


def test_draw_prefers_positive_probabilities():
    active_idx = np.arange(6)
    probs = np.array([0.0, 1.0, 0.0, 0.5, 0.0, 0.0])
    chosen = draw_indices(active_idx, probs, 2, np.random.default_rng(2))
    assert set(chosen) == {1, 3}


def test_draw_fills_with_zero_probability_predictors():
    active_idx = np.arange(6)
    probs = np.array([0.0, 1.0, 0.0, 0.5, 0.0, 0.0])
    chosen = draw_indices(active_idx, probs, 4, np.random.default_rng(3))
    assert len(np.unique(chosen)) == 4
    assert {1, 3} <= set(chosen)


def test_identity_projection_recovers_least_squares(small_design):
    generator = np.random.default_rng(4)
    yz = small_design @ np.arange(1.0, 9.0) + generator.normal(0, 0.1, small_design.shape[0])
    yz = yz - yz.mean()
    ctx = make_context(small_design, yz, type_rpm='gaussian')

    fit = fit_marginal_model(ctx, generator, inds=np.arange(8), rpm=identity_rpm(8))

    ols, *_ = np.linalg.lstsq(small_design, yz, rcond=None)
    np.testing.assert_allclose(fit.coef, ols, rtol=1e-6)
    assert fit.intercept == 0.0


def test_drawn_projection_has_requested_dimension(small_design):
    yz = small_design[:, 0] - small_design[:, 0].mean()
    ctx = make_context(small_design, yz)

    fit = fit_marginal_model(ctx, np.random.default_rng(5), m=3)

    assert fit.rpm.shape == (3, 8)
    assert fit.coef.shape == (8,)
    np.testing.assert_array_equal(fit.inds, np.arange(8))


def test_inactive_supplied_columns_get_zero(small_design):
    z = small_design.copy()
    z[:, 2] = 0.0
    active = np.ones(8, dtype=bool)
    active[2] = False
    yz = z[:, 0] - z[:, 0].mean()
    ctx = make_context(z, yz, active=active, type_rpm='gaussian')

    fit = fit_marginal_model(ctx, np.random.default_rng(6), inds=np.arange(8), m=4)

    assert fit.coef[2] == 0.0


def test_datadriven_supplied_projection_is_reweighted(small_design):
    yz = small_design[:, 1] - small_design[:, 1].mean()
    ctx = make_context(small_design, yz)
    rpm = identity_rpm(8)
    rpm.data[:] = 7.0

    fit = fit_marginal_model(ctx, np.random.default_rng(7), inds=np.arange(8), rpm=rpm)

    np.testing.assert_allclose(fit.rpm.data, np.ones(8))
    np.testing.assert_allclose(rpm.data, np.full(8, 7.0))


def test_binomial_marginal_model_has_intercept(binomial_data):
    x = binomial_data.x
    z = (x - x.mean(axis=0)) / x.std(axis=0, ddof=1)
    ctx = make_context(z, binomial_data.y, family=BinomialFamily())

    fit = fit_marginal_model(ctx, np.random.default_rng(8), m=5)

    assert fit.coef.shape == (x.shape[1],)
    assert np.isfinite(fit.intercept)
    assert fit.intercept != pytest.approx(0.0, abs=1e-12)
