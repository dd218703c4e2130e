"""
Hat (projection) matrix and leverage values.

H = X(X'X)^-1 X'. With X = QR this reduces to Q_p Q_p', where Q_p
holds the first p columns of Q, so X'X is never formed.
"""

import numpy as np

from .._backends import QRResult


def selection_matrix(k: int, p: int) -> np.ndarray:
    """
    k x p selector of the leading p columns.

    Exactly one 1 per column, at (i, i) for i < p; zeros elsewhere.
    Q @ selection_matrix(Q.shape[1], p) is the first p columns of Q.
    """
    if k < 0 or p < 0:
        raise ValueError("dimensions must be non-negative")
    if p > k:
        raise ValueError(f"cannot select {p} columns out of {k}")
    S = np.zeros((k, p), dtype=np.float64)
    idx = np.arange(p)
    S[idx, idx] = 1.0
    return S


def leading_columns(qr: QRResult) -> np.ndarray:
    """Q_p = Q S, the orthonormal basis of the column space of X."""
    Q = qr.Q
    return Q @ selection_matrix(Q.shape[1], qr.n_coef)


def leverage(qr: QRResult) -> np.ndarray:
    """
    Diagonal of the hat matrix.

    h_i = sum_j Q_p[i, j]^2, computed row-wise so the n x n matrix is
    not materialized. Rounding can push values marginally outside
    [0, 1]; they are clipped back.
    """
    Q_p = leading_columns(qr)
    h = np.einsum('ij,ij->i', Q_p, Q_p)
    return np.clip(h, 0.0, 1.0)


def hat_matrix(qr: QRResult) -> np.ndarray:
    """Full n x n hat matrix H = Q_p Q_p' (symmetric, idempotent)."""
    Q_p = leading_columns(qr)
    H = Q_p @ Q_p.T
    # Enforce exact symmetry
    return 0.5 * (H + H.T)


def saturated(h: np.ndarray, tol: float) -> np.ndarray:
    """Mask of observations whose leverage is 1 within tol."""
    return h >= 1.0 - tol
