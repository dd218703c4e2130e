"""
PyInfluence: QR-based influence diagnostics for OLS regression.

Copyright (C) 2024 SGCX
Licensed under GPL-3.0
"""

__version__ = "1.0.0"

# Import main user-facing API
from .model import FittedModel, ArrayModel, LinearModel, lm
from .diagnostics import (
    Diagnostics,
    DiagnosticsConfig,
    leverage_points,
    hat_matrix,
    cooks_distance,
    studentized_residuals,
    variance_covariance_matrix,
)
from .exceptions import (
    DiagnosticsError,
    RankDeficientError,
    SingularMatrixError,
    DiagnosticsCancelledError,
    DegenerateLeverageWarning,
)

# Import backend utilities (for advanced users)
from ._backends import get_backend, list_available_backends

__all__ = [
    'FittedModel',
    'ArrayModel',
    'LinearModel',
    'lm',
    'Diagnostics',
    'DiagnosticsConfig',
    'leverage_points',
    'hat_matrix',
    'cooks_distance',
    'studentized_residuals',
    'variance_covariance_matrix',
    'DiagnosticsError',
    'RankDeficientError',
    'SingularMatrixError',
    'DiagnosticsCancelledError',
    'DegenerateLeverageWarning',
    'get_backend',
    'list_available_backends',
]
