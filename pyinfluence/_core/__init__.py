"""
Core algorithms (backend-agnostic).
"""

from .qr import qr_decomposition
from .hat import selection_matrix, leverage, hat_matrix
from .covariance import unscaled_covariance
from .influence import cooks_distance, studentized_residuals

__all__ = [
    "qr_decomposition",
    "selection_matrix",
    "leverage",
    "hat_matrix",
    "unscaled_covariance",
    "cooks_distance",
    "studentized_residuals",
]
