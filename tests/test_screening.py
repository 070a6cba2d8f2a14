import numpy as np
import pytest

from spar.core.screening import (compute_screening_coef, inclusion_probabilities,
                                 screening_corr, screening_marglik, screening_ridge)
from spar.families import BinomialFamily, GaussianFamily


@pytest.fixture
def response(small_design):
    generator = np.random.default_rng(1)
    y = small_design[:, 0] * 2 - small_design[:, 3] + generator.normal(0, 0.5, small_design.shape[0])
    return (y - y.mean()) / y.std(ddof=1)


def test_ridge_low_dimensional_is_least_squares(small_design, response):
    coef = screening_ridge(small_design, response, GaussianFamily())
    ols, *_ = np.linalg.lstsq(small_design, response, rcond=None)
    np.testing.assert_allclose(coef, ols, rtol=1e-8, atol=1e-10)


def test_ridge_intermediate_dimension_uses_penalized_dual_form():
    generator = np.random.default_rng(2)
    n, p = 20, 30
    z = generator.standard_normal((n, p))
    y = generator.standard_normal(n)
    ridge = np.sqrt(p) + np.sqrt(n)

    coef = screening_ridge(z, y, GaussianFamily())

    expected = np.linalg.solve(z.T @ z + ridge * np.eye(p), z.T @ y)
    np.testing.assert_allclose(coef, expected, rtol=1e-8, atol=1e-10)


def test_ridge_high_dimensional_interpolates():
    generator = np.random.default_rng(3)
    z = generator.standard_normal((15, 60))
    y = generator.standard_normal(15)

    coef = screening_ridge(z, y, GaussianFamily())

    np.testing.assert_allclose(z @ coef, y, atol=1e-8)


def test_corr_matches_pearson(small_design, response):
    coef = screening_corr(small_design, response, GaussianFamily())
    expected = [np.corrcoef(small_design[:, j], response)[0, 1] for j in range(small_design.shape[1])]
    np.testing.assert_allclose(coef, expected, rtol=1e-10)


def test_marglik_gaussian_is_univariate_slope(small_design, response):
    coef = screening_marglik(small_design, response, GaussianFamily())
    for j in range(small_design.shape[1]):
        slope = np.polyfit(small_design[:, j], response, 1)[0]
        assert coef[j] == pytest.approx(slope, rel=1e-8)


def test_marglik_binomial_sign(binomial_data):
    x = binomial_data.x
    z = (x - x.mean(axis=0)) / x.std(axis=0, ddof=1)
    coef = screening_marglik(z, binomial_data.y, BinomialFamily())
    assert coef[0] > 0
    assert coef[1] < 0


def test_ridge_binomial_returns_one_coefficient_per_column(binomial_data):
    x = binomial_data.x
    z = (x - x.mean(axis=0)) / x.std(axis=0, ddof=1)
    coef = compute_screening_coef(z, binomial_data.y, BinomialFamily(), 'ridge')
    assert coef.shape == (x.shape[1],)
    assert np.argmax(np.abs(coef)) in (0, 1, 2)


def test_unknown_screening_type(small_design, response):
    with pytest.raises(ValueError):
        compute_screening_coef(small_design, response, GaussianFamily(), 'lasso')


def test_all_zero_coefficients_raise(small_design):
    with pytest.raises(ValueError, match="zero"):
        compute_screening_coef(small_design, np.zeros(small_design.shape[0]), GaussianFamily(), 'corr')


def test_inclusion_probabilities():
    probs = inclusion_probabilities(np.array([0.5, -2.0, 0.0, 1.0]))
    np.testing.assert_allclose(probs, [0.25, 1.0, 0.0, 0.5])
