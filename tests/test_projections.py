import numpy as np
import pytest
from scipy import sparse

from spar.core.projections import (generate_cw_rp, generate_gaussian_rp, generate_rpm,
                                   generate_sparse_rp, identity_rpm, reweight_rpm)


def test_cw_structure_and_values():
    rng = np.random.default_rng(0)
    coef = np.linspace(-1, 1, 40)

    rpm = generate_cw_rp(7, 40, coef, rng)

    assert sparse.isspmatrix_csc(rpm)
    assert rpm.shape == (7, 40)
    np.testing.assert_array_equal(np.diff(rpm.indptr), np.ones(40))
    np.testing.assert_allclose(rpm.toarray().sum(axis=0), coef)
    # every reduced dimension receives at least one predictor
    assert len(np.unique(rpm.indices)) == 7


def test_cw_does_not_alias_coefficients():
    coef = np.ones(10)
    rpm = generate_cw_rp(3, 10, coef, np.random.default_rng(1))
    rpm.data[:] = 5.0
    np.testing.assert_array_equal(coef, np.ones(10))


def test_plain_cw_has_unit_signs():
    rpm = generate_rpm('cw', 5, 30, np.random.default_rng(2))
    assert set(np.unique(rpm.data)) <= {-1.0, 1.0}
    assert rpm.nnz == 30


def test_gaussian_projection():
    rpm = generate_gaussian_rp(4, 25, np.random.default_rng(3))
    assert rpm.shape == (4, 25)
    assert sparse.isspmatrix_csc(rpm)


def test_sparse_projection_values():
    psi = 4.0
    rpm = generate_sparse_rp(6, 200, np.random.default_rng(4), psi=psi)
    values = np.unique(rpm.toarray())
    assert set(np.round(values, 12)) <= {-0.5, 0.0, 0.5}
    # expected density 1 / psi
    assert 0.15 < rpm.nnz / (6 * 200) < 0.35


def test_identity_when_fewer_predictors_than_target():
    for type_rpm in ('cwdatadriven', 'cw', 'gaussian', 'sparse'):
        rpm = generate_rpm(type_rpm, 10, 4, np.random.default_rng(5), coef=np.ones(4))
        np.testing.assert_array_equal(rpm.toarray(), np.eye(4))


def test_identity_has_one_entry_per_column():
    rpm = identity_rpm(3)
    np.testing.assert_array_equal(np.diff(rpm.indptr), np.ones(3))


def test_datadriven_requires_coefficients():
    with pytest.raises(ValueError):
        generate_rpm('cwdatadriven', 3, 10, np.random.default_rng(6))


def test_unknown_type():
    with pytest.raises(ValueError):
        generate_rpm('hadamard', 3, 10, np.random.default_rng(7))


def test_same_seed_same_projection():
    a = generate_rpm('sparse', 5, 50, np.random.default_rng(8))
    b = generate_rpm('sparse', 5, 50, np.random.default_rng(8))
    np.testing.assert_array_equal(a.toarray(), b.toarray())


def test_reweight_keeps_pattern_and_input():
    rpm = generate_cw_rp(4, 12, np.ones(12), np.random.default_rng(9))
    before = rpm.toarray().copy()
    coef = np.arange(12, dtype=float)

    new = reweight_rpm(rpm, coef)

    np.testing.assert_array_equal(rpm.toarray(), before)
    np.testing.assert_array_equal(new.indices, rpm.indices)
    np.testing.assert_allclose(new.toarray().sum(axis=0), coef)


def test_reweight_rejects_dense_projection():
    rpm = generate_gaussian_rp(3, 8, np.random.default_rng(10))
    with pytest.raises(ValueError):
        reweight_rpm(rpm, np.ones(8))


def test_reweight_rejects_wrong_length():
    rpm = identity_rpm(5)
    with pytest.raises(ValueError):
        reweight_rpm(rpm, np.ones(4))
