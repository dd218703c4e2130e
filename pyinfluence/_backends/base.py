"""
Abstract base classes for backends.

Defines the interface all backends must implement.
"""

from abc import ABC, abstractmethod
import numpy as np
from typing import Optional
from dataclasses import dataclass


@dataclass
class QRResult:
    """QR factorization of a design matrix: X[:, pivot] = Q @ R."""
    Q: np.ndarray        # n x n (full) or n x p (economic)
    R: np.ndarray        # p x p upper triangular
    pivot: np.ndarray    # 0-indexed column permutation
    rank: int            # Numerical rank
    tol: float           # Absolute tolerance used for the rank

    @property
    def n_coef(self) -> int:
        return self.R.shape[1]


@dataclass
class LinearModelResult:
    """OLS fit results (all numpy arrays)."""
    coef: np.ndarray
    residuals: np.ndarray
    fitted_values: np.ndarray
    rank: int
    df_residual: int


def numerical_rank(R_diag: np.ndarray, n: int, p: int,
                   tol: Optional[float] = None):
    """
    Rank of a triangular factor from its diagonal.

    Default tolerance is max(n, p) * eps * max|R_ii|.

    Returns
    -------
    (rank, tol)
    """
    R_diag = np.abs(np.asarray(R_diag, dtype=np.float64))
    if tol is None:
        scale = float(R_diag.max()) if R_diag.size else 0.0
        tol = max(n, p) * np.finfo(np.float64).eps * scale
    rank = int(np.sum(R_diag > tol))
    return rank, float(tol)


class BackendBase(ABC):
    """Abstract base class for all backends."""

    name: str = "base"
    precision: str = "fp64"

    @abstractmethod
    def qr(
        self,
        X: np.ndarray,
        mode: str = 'economic',
        tol: Optional[float] = None,
    ) -> QRResult:
        """
        QR factorization of the design matrix.

        Parameters
        ----------
        X : ndarray, shape (n, p)
            Design matrix, n >= p
        mode : {'economic', 'full'}
            'economic' returns Q as n x p, 'full' as n x n
        tol : float, optional
            Absolute rank tolerance on |diag(R)|

        Returns
        -------
        QRResult
            Factors converted to numpy, R trimmed to p x p
        """
        pass

    @abstractmethod
    def invert_upper_triangular(self, R: np.ndarray) -> np.ndarray:
        """Inverse of a nonsingular upper triangular matrix."""
        pass

    @abstractmethod
    def fit_linear_model(self, X: np.ndarray, y: np.ndarray) -> LinearModelResult:
        """
        Fit OLS by QR - complete computation.

        Parameters
        ----------
        X : ndarray, shape (n, p)
            Full design matrix (intercept already included if wanted)
        y : ndarray, shape (n,)
            Response vector
        """
        pass

    @abstractmethod
    def get_device_info(self) -> dict:
        """Get backend information."""
        pass

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r})"


class CPUBackend(BackendBase):
    """CPU backend base class (always FP64)."""
    pass


class GPUBackendFP64(BackendBase):
    """GPU backend base class for FP64."""
    pass


def _check_mode(mode: str) -> str:
    if mode not in ('economic', 'full'):
        raise ValueError(f"mode must be 'economic' or 'full', got {mode!r}")
    return mode
