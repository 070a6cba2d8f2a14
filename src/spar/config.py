"""
Control-block loading and validation.

The control block is a nested dictionary with two sections:

``rpm``
    ``mslow``, ``msup`` -- lower and upper bounds for the per-model
    reduced dimension; ``psi`` -- sparsity level of ``'sparse'`` random
    projections (``None`` means ``sqrt(p_use)``).
``scr``
    ``nscreen`` -- number of variables kept after screening;
    ``split_data`` -- use 1/4 of the rows for screening and 3/4 for the
    marginal models.
"""

import copy
import json
from math import ceil, log
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np

_SECTIONS = {
    'rpm': ('mslow', 'msup', 'psi'),
    'scr': ('nscreen', 'split_data'),
}


def default_control(n: int, p: int) -> Dict[str, Dict[str, Any]]:
    """Default control block for data with ``n`` rows and ``p`` predictors."""
    return {
        'rpm': {
            'mslow': ceil(log(p)) if p > 1 else 1,
            'msup': ceil(n / 2),
            'psi': None,
        },
        'scr': {
            'nscreen': 2 * n,
            'split_data': False,
        },
    }


def load_control(control_path: Union[str, Path]) -> Dict[str, Any]:
    """Load a (possibly partial) control block from a JSON file."""
    with open(control_path, 'r') as f:
        control = json.load(f)
    return control


def validate_control(control: Optional[Dict[str, Any]], n: int, p: int) -> Dict[str, Dict[str, Any]]:
    """
    Fill in defaults and validate a control block.

    Parameters
    ----------
    control : dict or None
        Partial control block; missing entries take their defaults.
    n, p : int
        Number of rows and predictors of the training data.

    Returns
    -------
    dict
        Fully populated copy of the control block.

    Raises
    ------
    ValueError
        If the block has unknown entries or inconsistent bounds.
    """
    resolved = default_control(n, p)
    if control is None:
        control = {}
    if not isinstance(control, dict):
        raise ValueError("control must be a dict with sections 'rpm' and 'scr'")

    for section, values in control.items():
        if section not in _SECTIONS:
            raise ValueError(f"Unknown control section '{section}', expected one of {list(_SECTIONS)}")
        if values is None:
            continue
        for key, value in values.items():
            if key not in _SECTIONS[section]:
                raise ValueError(
                    f"Unknown control parameter '{section}.{key}', "
                    f"expected one of {list(_SECTIONS[section])}"
                )
            if value is not None:
                resolved[section][key] = copy.deepcopy(value)

    rpm = resolved['rpm']
    scr = resolved['scr']

    for key in ('mslow', 'msup'):
        if not np.isfinite(rpm[key]) or rpm[key] < 1:
            raise ValueError(f"rpm.{key} must be a positive number, got {rpm[key]}")
    if not np.isfinite(scr['nscreen']) or scr['nscreen'] < 1:
        raise ValueError(f"scr.nscreen must be a positive number, got {scr['nscreen']}")
    if rpm['mslow'] > rpm['msup']:
        raise ValueError(f"rpm.mslow ({rpm['mslow']}) must not exceed rpm.msup ({rpm['msup']})")
    if rpm['msup'] > scr['nscreen']:
        raise ValueError(f"rpm.msup ({rpm['msup']}) must not exceed scr.nscreen ({scr['nscreen']})")
    if rpm['psi'] is not None and rpm['psi'] < 1:
        raise ValueError(f"rpm.psi must be at least 1, got {rpm['psi']}")
    if not isinstance(scr['split_data'], (bool, np.bool_)):
        raise ValueError("scr.split_data must be a boolean")

    scr['nscreen'] = int(scr['nscreen'])
    return resolved
