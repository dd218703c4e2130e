"""
QR factorization of the design matrix.

Backend-agnostic interface to QR factorization.
"""

import logging
import numpy as np
from typing import Optional

from .._backends import QRResult
from .._utils import check_design
from ..exceptions import RankDeficientError

logger = logging.getLogger(__name__)


def qr_decomposition(
    X: np.ndarray,
    mode: str = 'economic',
    check_rank: bool = True,
    tol: Optional[float] = None,
    backend=None,
) -> QRResult:
    """
    QR decomposition of an n x p design matrix (n >= p).

    Delegates to backend-specific implementation.

    Parameters
    ----------
    X : ndarray, shape (n, p)
        Matrix to decompose
    mode : {'economic', 'full'}
        Shape of Q: n x p or n x n
    check_rank : bool, default=True
        Raise RankDeficientError if rank < p
    tol : float, optional
        Absolute tolerance on |diag(R)| for rank determination
    backend : Backend, optional
        Computational backend

    Returns
    -------
    result : QRResult
        Factors with R trimmed to p x p

    Raises
    ------
    RankDeficientError
        If check_rank and the columns of X are linearly dependent
    """
    X = check_design(X)

    if backend is None:
        from .._backends import get_backend
        backend = get_backend('cpu')

    result = backend.qr(X, mode=mode, tol=tol)
    logger.debug(
        "QR of %d x %d design on %s: rank %d (tol %.3g)",
        X.shape[0], X.shape[1], backend.name, result.rank, result.tol,
    )

    if check_rank and result.rank < result.n_coef:
        raise RankDeficientError(result.rank, result.n_coef)
    return result
