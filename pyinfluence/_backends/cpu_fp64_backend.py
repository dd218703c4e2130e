"""
CPU backend using NumPy + SciPy.

This is the reference implementation.
"""

import numpy as np
from scipy.linalg import qr, solve_triangular
from typing import Optional

from .base import (
    CPUBackend,
    LinearModelResult,
    QRResult,
    _check_mode,
    numerical_rank,
)


class CPUBackendFP64(CPUBackend):
    """
    CPU backend using NumPy + SciPy.

    Householder QR with column pivoting (LAPACK geqp3).
    Always uses FP64 precision.
    """

    def __init__(self):
        self.name = "cpu_fp64"
        self.precision = "fp64"

    def qr(
        self,
        X: np.ndarray,
        mode: str = 'economic',
        tol: Optional[float] = None,
    ) -> QRResult:
        """QR decomposition with column pivoting via LAPACK."""
        mode = _check_mode(mode)
        X = np.asarray(X, dtype=np.float64)
        n, p = X.shape

        Q, R, P = qr(X, mode=mode, pivoting=True)
        R = R[:p, :p]
        rank, tol = numerical_rank(np.diag(R), n, p, tol)

        return QRResult(
            Q=Q,
            R=R,
            pivot=P.astype(np.int64),
            rank=rank,
            tol=tol,
        )

    def invert_upper_triangular(self, R: np.ndarray) -> np.ndarray:
        """Solve R Z = I by back-substitution."""
        R = np.asarray(R, dtype=np.float64)
        identity = np.eye(R.shape[0], dtype=np.float64)
        return solve_triangular(R, identity, lower=False, check_finite=True)

    def fit_linear_model(self, X: np.ndarray, y: np.ndarray) -> LinearModelResult:
        """
        Fit linear model using NumPy/LAPACK.

        Aliased columns get NaN coefficients, as in R.
        """
        X = np.asarray(X, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        n, p = X.shape

        Q, R, P = qr(X, mode='economic', pivoting=True)
        rank, _ = numerical_rank(np.diag(R), n, p)

        # Solve R β = Q'y
        qty = Q.T @ y

        coef = np.full(p, np.nan, dtype=np.float64)
        if rank > 0:
            coef[P[:rank]] = solve_triangular(
                R[:rank, :rank],
                qty[:rank],
                lower=False
            )

        valid_coef = ~np.isnan(coef)
        if np.any(valid_coef):
            fitted = X[:, valid_coef] @ coef[valid_coef]
        else:
            fitted = np.zeros(n, dtype=np.float64)

        return LinearModelResult(
            coef=coef,
            residuals=y - fitted,
            fitted_values=fitted,
            rank=rank,
            df_residual=n - rank,
        )

    def get_device_info(self) -> dict:
        """Get backend information."""
        import scipy
        return {
            'backend': 'cpu',
            'precision': 'fp64',
            'library': f'NumPy {np.__version__}, SciPy {scipy.__version__}',
        }
