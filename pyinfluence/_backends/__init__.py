"""
Backend selection and management.

Provides a unified interface for the CPU (NumPy/SciPy) and
PyTorch FP64 backends.
"""

import logging
from typing import Union
import warnings

from .base import BackendBase, QRResult, LinearModelResult

logger = logging.getLogger(__name__)

# Try importing CPU backend (always available)
try:
    from .cpu_fp64_backend import CPUBackendFP64
    CPU_AVAILABLE = True
except ImportError:
    CPU_AVAILABLE = False
    warnings.warn("CPU backend unavailable - installation error!")

# Try importing PyTorch backend (optional dependency)
try:
    import torch
    from .gpu_fp64_backend import PyTorchBackendFP64
    PYTORCH_FP64_AVAILABLE = True
except ImportError:
    PYTORCH_FP64_AVAILABLE = False


def _cuda_available() -> bool:
    return PYTORCH_FP64_AVAILABLE and torch.cuda.is_available()


def get_backend(backend: Union[str, BackendBase] = 'cpu') -> BackendBase:
    """
    Get computational backend.

    Parameters
    ----------
    backend : str or BackendBase
        Backend selection:
        - 'auto': PyTorch on CUDA if available, otherwise CPU
        - 'cpu': CPU with NumPy/SciPy (FP64)
        - 'pytorch': Force PyTorch (CUDA if available, else torch CPU)
        - a BackendBase instance is returned unchanged

    Returns
    -------
    BackendBase
        Backend instance

    Examples
    --------
    >>> backend = get_backend('auto')
    >>> backend = get_backend('cpu')
    """
    if isinstance(backend, BackendBase):
        return backend

    if backend == 'auto':
        if _cuda_available():
            return PyTorchBackendFP64()
        if not CPU_AVAILABLE:
            raise RuntimeError("No backends available!")
        return CPUBackendFP64()

    elif backend == 'cpu':
        if not CPU_AVAILABLE:
            raise RuntimeError("CPU backend unavailable!")
        return CPUBackendFP64()

    elif backend == 'pytorch':
        if not PYTORCH_FP64_AVAILABLE:
            raise RuntimeError(
                "PyTorch backend unavailable.\n"
                "Install: pip install torch"
            )
        return PyTorchBackendFP64()

    else:
        raise ValueError(
            f"Unknown backend: '{backend}'\n"
            f"Valid options: 'auto', 'cpu', 'pytorch'"
        )


def list_available_backends() -> list:
    """List names of available backends."""
    backends = []
    if CPU_AVAILABLE:
        backends.append('cpu')
    if PYTORCH_FP64_AVAILABLE:
        backends.append('pytorch')
    return backends


__all__ = [
    'get_backend',
    'list_available_backends',
    'BackendBase',
    'QRResult',
    'LinearModelResult',
    'CPU_AVAILABLE',
    'PYTORCH_FP64_AVAILABLE',
]
