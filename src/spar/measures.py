import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error, roc_auc_score

MEASURES = ('deviance', 'mse', 'mae', 'class', '1-auc')


def create_measure(type_measure, family):
    """
    Create the validation loss for a given family.

    Parameters
    ----------
    type_measure : str
        One of ``'deviance'``, ``'mse'``, ``'mae'``, ``'class'`` or
        ``'1-auc'``. The last two require the binomial family.
    family : Family
        Response family providing the inverse link and deviance.

    Returns
    -------
    callable
        ``measure(y, eta)`` returning the loss of linear predictor ``eta``
        on responses ``y`` (lower is better). ``'1-auc'`` returns NaN when
        ``y`` has no variance.
    """
    if type_measure not in MEASURES:
        raise ValueError(f"type_measure must be one of {MEASURES}, got '{type_measure}'")
    if type_measure in ('class', '1-auc') and not family.is_binomial:
        raise ValueError(f"type_measure '{type_measure}' is only available for the binomial family")

    if type_measure == 'deviance':
        def measure(y, eta):
            return family.deviance(y, family.linkinv(eta))
    elif type_measure == 'mse':
        def measure(y, eta):
            return float(mean_squared_error(y, family.linkinv(eta)))
    elif type_measure == 'mae':
        def measure(y, eta):
            return float(mean_absolute_error(y, family.linkinv(eta)))
    elif type_measure == 'class':
        def measure(y, eta):
            return float(np.mean(y != np.round(family.linkinv(eta))))
    else:
        def measure(y, eta):
            if np.var(y) == 0:
                return np.nan
            return float(1 - roc_auc_score(y, family.linkinv(eta)))

    return measure
