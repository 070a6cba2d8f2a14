import numpy as np
import pytest

from spar import make_sparse_data


@pytest.fixture
def gaussian_data():
    return make_sparse_data(n=100, p=50, n_active=3, family='gaussian', seed=1)


@pytest.fixture
def binomial_data():
    return make_sparse_data(n=120, p=20, n_active=3, family='binomial', signal=2.0, seed=2)


@pytest.fixture
def small_design():
    generator = np.random.default_rng(0)
    z = generator.standard_normal((60, 8))
    z = (z - z.mean(axis=0)) / z.std(axis=0, ddof=1)
    return z
