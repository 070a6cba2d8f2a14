"""
Example: fitting SPAR on simulated high-dimensional data.

Fits a Gaussian and a binomial ensemble, prints the validation table and
the selected coefficients, and evaluates predictions on test data.
"""

import numpy as np

from spar import SPAR, extract_coef, make_sparse_data, predict, spar


def example_gaussian():
    """Gaussian response with more predictors than observations."""
    data = make_sparse_data(n=200, p=2000, n_active=5, family='gaussian', seed=42)

    result = spar(data.x, data.y, nummods=[10, 20], nnu=10, random_state=42, verbose=True)

    print("=== VALIDATION TABLE ===")
    print(result.val_res.to_string(index=False))

    coef = extract_coef(result)
    support = np.flatnonzero(coef.beta)
    print(f"\nChosen nummod={coef.nummod}, nu={coef.nu:.4f}")
    print(f"Active predictors: {len(support)}")
    print(f"Largest coefficients at columns {np.argsort(-np.abs(coef.beta))[:5]}")

    pred = predict(result, data.xtest)
    rmse = np.sqrt(np.mean((pred - data.ytest) ** 2))
    print(f"Test RMSE: {rmse:.3f}")


def example_binomial():
    """Binomial response fitted through the estimator interface."""
    data = make_sparse_data(n=300, p=500, n_active=4, family='binomial', signal=1.5, seed=7)

    model = SPAR(family='binomial', nummods=(20,), type_measure='class', random_state=7)
    model.fit(data.x, data.y)

    prob = model.predict(data.xtest)
    accuracy = np.mean(np.round(prob) == data.ytest)
    print("\n=== BINOMIAL ===")
    print(f"Chosen nummod={model.nummod_}, nu={model.nu_:.4f}")
    print(f"Test accuracy: {accuracy:.3f}")


if __name__ == "__main__":
    example_gaussian()
    example_binomial()
