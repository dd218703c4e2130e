"""
Variance-covariance matrix of the regression coefficients.

(X'X)^-1 via X = QR:
    ((QR)'QR)^-1 = (R'R)^-1 = R^-1 (R^-1)'
"""

import logging
import numpy as np

from .._backends import QRResult
from ..exceptions import SingularMatrixError

logger = logging.getLogger(__name__)


def unscaled_covariance(qr: QRResult, backend) -> np.ndarray:
    """
    (X'X)^-1 from the triangular factor, in the column order of X.

    Parameters
    ----------
    qr : QRResult
        Factorization of X (rank is not required to be full)
    backend : Backend
        Backend used for the triangular inversion

    Returns
    -------
    ndarray, shape (p, p)

    Raises
    ------
    SingularMatrixError
        If R has an effectively zero diagonal entry
    """
    p = qr.n_coef
    R_aug = qr.R[:p, :p]

    if qr.rank < p:
        raise SingularMatrixError(
            f"R matrix is not invertible: rank {qr.rank} < {p} columns"
        )

    try:
        R_inv = backend.invert_upper_triangular(R_aug)
    except np.linalg.LinAlgError as exc:
        raise SingularMatrixError(f"R matrix is not invertible: {exc}") from exc

    if not np.all(np.isfinite(R_inv)):
        raise SingularMatrixError("R matrix inverse is not finite")

    cov_pivoted = R_inv @ R_inv.T

    # Undo column pivoting
    cov = np.empty_like(cov_pivoted)
    cov[np.ix_(qr.pivot, qr.pivot)] = cov_pivoted
    logger.debug("Inverted %d x %d triangular factor", p, p)

    return 0.5 * (cov + cov.T)
