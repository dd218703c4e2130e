"""
Exceptions and warnings raised by diagnostic computations.
"""

import numpy as np


class DiagnosticsError(Exception):
    """Base class for all diagnostic failures."""
    pass


class RankDeficientError(DiagnosticsError, np.linalg.LinAlgError):
    """Design matrix does not have full column rank."""

    def __init__(self, rank: int, n_coef: int):
        self.rank = rank
        self.n_coef = n_coef
        super().__init__(
            f"Design matrix is rank deficient: rank {rank} < {n_coef} columns"
        )


class SingularMatrixError(DiagnosticsError, np.linalg.LinAlgError):
    """Triangular factor R cannot be inverted."""
    pass


class DiagnosticsCancelledError(DiagnosticsError):
    """In-flight computation was cancelled or ran past its deadline."""
    pass


class DegenerateLeverageWarning(RuntimeWarning):
    """
    Leverage of 1 makes a per-observation diagnostic infinite.

    The affected entries are reported inline as ``inf``; all other
    observations remain valid.
    """
    pass


__all__ = [
    "DiagnosticsError",
    "RankDeficientError",
    "SingularMatrixError",
    "DiagnosticsCancelledError",
    "DegenerateLeverageWarning",
]
