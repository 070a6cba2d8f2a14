import numpy as np
import pytest
from scipy import sparse

from spar.core.standardization import Standardization
from spar.core.validation import average_coef, compute_coef, threshold_grid, validate_grid
from spar.families import GaussianFamily
from spar.measures import create_measure


@pytest.fixture
def betas():
    dense = np.array([
        [0.5, 0.0, 0.2],
        [0.0, -1.0, 0.0],
        [0.1, 0.3, -0.4],
        [0.0, 0.0, 0.0],
    ])
    return sparse.csc_matrix(dense)


@pytest.fixture
def standardization():
    generator = np.random.default_rng(0)
    x = generator.normal(2.0, 3.0, (30, 4))
    y = generator.normal(1.0, 2.0, 30)
    return Standardization.fit(x, y, GaussianFamily())


def test_threshold_grid(betas):
    nus = threshold_grid(betas, 5)
    assert len(nus) == 5
    assert nus[0] == 0.0
    assert nus[-1] == pytest.approx(1.0)
    assert np.all(np.diff(nus) >= 0)


def test_threshold_grid_degenerate_cases(betas):
    np.testing.assert_array_equal(threshold_grid(betas, 1), [0.0])
    np.testing.assert_array_equal(threshold_grid(sparse.csc_matrix((4, 3)), 5), [0.0])


def test_average_uses_first_models_only(betas):
    np.testing.assert_allclose(average_coef(betas, 2, 0.0), [0.25, -0.5, 0.2, 0.0])


def test_average_thresholds_small_entries(betas):
    np.testing.assert_allclose(average_coef(betas, 3, 0.3), [0.5 / 3, -1 / 3, -0.1 / 3, 0.0])


def test_average_leaves_input_untouched(betas):
    before = betas.toarray().copy()
    average_coef(betas, 3, 10.0)
    np.testing.assert_array_equal(betas.toarray(), before)


def test_compute_coef_original_units(betas, standardization):
    intercepts = np.zeros(3)
    intercept, beta = compute_coef(betas, intercepts, standardization, 3, 0.0)

    expected = standardization.yscale * average_coef(betas, 3, 0.0) / standardization.xscale
    np.testing.assert_allclose(beta, expected)
    assert intercept == pytest.approx(standardization.ycenter - standardization.xcenter @ expected)


def test_validate_grid_rows(betas, standardization):
    generator = np.random.default_rng(1)
    xval = generator.normal(size=(10, 4))
    yval = generator.normal(size=10)
    nus = np.array([0.0, 0.15, 0.6])

    val_res = validate_grid(betas, np.zeros(3), standardization, nus, (1, 3), xval, yval,
                            create_measure('mse', GaussianFamily()))

    assert list(val_res.columns) == ['nu_index', 'nu', 'nummod', 'num_active', 'measure']
    assert len(val_res) == 6
    assert list(val_res['nummod']) == [1, 1, 1, 3, 3, 3]
    assert list(val_res['nu_index']) == [0, 1, 2, 0, 1, 2]
    assert list(val_res['num_active']) == [2, 1, 0, 3, 3, 1]
    assert np.all(np.isfinite(val_res['measure']))
