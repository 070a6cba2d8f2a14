from .core.spar import SPAR, SPARCoef, SPARResult, extract_coef, predict, spar
from .families import (BinomialFamily, CustomFamily, Family, GaussianFamily,
                       PoissonFamily, resolve_family)
from .config import load_control, validate_control
from .datasets import make_sparse_data

__version__ = "0.1.0"

__all__ = [
    'SPAR',
    'SPARCoef',
    'SPARResult',
    'spar',
    'extract_coef',
    'predict',
    'Family',
    'GaussianFamily',
    'BinomialFamily',
    'PoissonFamily',
    'CustomFamily',
    'resolve_family',
    'load_control',
    'validate_control',
    'make_sparse_data',
]
