"""
GPU backend using PyTorch with FP64 precision.

For data center GPUs: A100, H100, V100.
"""

import logging
import numpy as np
import warnings
from typing import Optional

from ..exceptions import RankDeficientError
from .base import (
    GPUBackendFP64,
    LinearModelResult,
    QRResult,
    _check_mode,
    numerical_rank,
)

logger = logging.getLogger(__name__)


class PyTorchBackendFP64(GPUBackendFP64):
    """
    PyTorch backend with FP64 precision.

    QR is unpivoted (torch.linalg.qr), so the pivot is the identity.
    Results are converted back to numpy at exit.
    """

    def __init__(self, device: Optional[str] = None):
        """Initialize PyTorch FP64 backend."""
        self.name = "pytorch_fp64"
        self.precision = "fp64"

        try:
            import torch
            self.torch = torch
        except ImportError:
            raise ImportError(
                "PyTorch required for GPU backend. "
                "Install: pip install torch"
            )

        # No FP64 on Apple Metal
        if device == 'mps':
            raise RuntimeError(
                "FP64 not supported on Apple Metal. "
                "Use the CPU backend."
            )

        if device is None:
            if torch.cuda.is_available():
                device = 'cuda'
            else:
                warnings.warn("No CUDA GPU available, using CPU")
                device = 'cpu'

        self.device = torch.device(device)
        logger.debug("PyTorch FP64 backend on %s", self.device)

    def _to_device(self, a: np.ndarray):
        # Copy: model arrays are read-only and torch wants writable memory
        return self.torch.from_numpy(
            np.array(a, dtype=np.float64, order='C')
        ).to(self.device)

    def qr(
        self,
        X: np.ndarray,
        mode: str = 'economic',
        tol: Optional[float] = None,
    ) -> QRResult:
        """Unpivoted QR on device."""
        torch = self.torch
        mode = _check_mode(mode)
        n, p = X.shape

        X_gpu = self._to_device(X)
        Q, R = torch.linalg.qr(
            X_gpu, mode='reduced' if mode == 'economic' else 'complete'
        )
        R = R[:p, :p].cpu().numpy()
        rank, tol = numerical_rank(np.diag(R), n, p, tol)

        return QRResult(
            Q=Q.cpu().numpy(),
            R=R,
            pivot=np.arange(p, dtype=np.int64),
            rank=rank,
            tol=tol,
        )

    def invert_upper_triangular(self, R: np.ndarray) -> np.ndarray:
        """Solve R Z = I on device."""
        torch = self.torch
        R_gpu = self._to_device(R)
        identity = torch.eye(R_gpu.shape[0], dtype=torch.float64, device=self.device)
        R_inv = torch.linalg.solve_triangular(R_gpu, identity, upper=True)
        return R_inv.cpu().numpy()

    def fit_linear_model(self, X: np.ndarray, y: np.ndarray) -> LinearModelResult:
        """
        Fit linear model on GPU with FP64 precision.

        Without pivoting aliased columns cannot be dropped, so
        rank deficient designs are rejected.
        """
        torch = self.torch
        n, p = X.shape

        X_gpu = self._to_device(X)
        y_gpu = self._to_device(y)

        Q, R = torch.linalg.qr(X_gpu, mode='reduced')
        rank, _ = numerical_rank(torch.diag(R).cpu().numpy(), n, p)
        if rank < p:
            raise RankDeficientError(rank, p)

        # Solve R β = Q'y
        qty = Q.T @ y_gpu
        coef = torch.linalg.solve_triangular(
            R,
            qty.unsqueeze(1),  # Make it (p, 1)
            upper=True
        ).squeeze(1)

        fitted = X_gpu @ coef
        residuals = y_gpu - fitted

        return LinearModelResult(
            coef=coef.cpu().numpy(),
            residuals=residuals.cpu().numpy(),
            fitted_values=fitted.cpu().numpy(),
            rank=rank,
            df_residual=n - rank,
        )

    def get_device_info(self) -> dict:
        """Get backend information."""
        return {
            'backend': 'gpu' if self.device.type == 'cuda' else 'cpu',
            'precision': 'fp64',
            'device': str(self.device),
            'library': f'PyTorch {self.torch.__version__}',
        }
