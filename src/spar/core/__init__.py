from .spar import SPAR, SPARCoef, SPARResult, extract_coef, predict, spar
