"""
Influence diagnostics for a fitted OLS model.

Diagnostics owns the QR factorization and hat matrix of one model and
computes them at most once, so repeated requests (possibly from several
threads) share the work without writing anything back to the model.
"""

import logging
import threading
import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Optional, Union

from . import _core
from ._backends import BackendBase, QRResult, get_backend
from ._utils import check_bounds, check_vector
from .exceptions import RankDeficientError
from .model import FittedModel

logger = logging.getLogger(__name__)


@dataclass
class DiagnosticsConfig:
    """
    Settings for diagnostic computations.

    Attributes
    ----------
    backend : str or BackendBase
        'cpu', 'pytorch', 'auto' or a backend instance
    max_workers : int, optional
        Thread pool size for Cook's distance
    chunk_size : int, optional
        Observations per Cook's distance task
    leverage_tol : float
        Leverage within this of 1 is treated as exactly 1
    rank_tol : float, optional
        Absolute tolerance on |diag(R)|; default max(n, p) * eps * max|R_ii|
    """
    backend: Union[str, BackendBase] = 'cpu'
    max_workers: Optional[int] = None
    chunk_size: Optional[int] = None
    leverage_tol: float = 1e-10
    rank_tol: Optional[float] = None

    def __post_init__(self):
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if self.chunk_size is not None and self.chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        if not 0 <= self.leverage_tol < 1:
            raise ValueError("leverage_tol must be in [0, 1)")


class Diagnostics:
    """
    Leverage, Cook's distance, studentized residuals and coefficient
    covariance for one fitted model.

    Parameters
    ----------
    model : FittedModel
        Fitted model; never modified
    config : DiagnosticsConfig, optional
        Computation settings

    Examples
    --------
    >>> diag = Diagnostics(model)
    >>> diag.leverage_points()
    >>> diag.cooks_distance(bounds=(0, 100))
    >>> diag.influence_frame()
    """

    def __init__(self, model: FittedModel, config: Optional[DiagnosticsConfig] = None):
        if not isinstance(model, FittedModel):
            raise TypeError(
                f"model must implement FittedModel, got {type(model).__name__}"
            )
        self.model = model
        self.config = config if config is not None else DiagnosticsConfig()
        self.backend = get_backend(self.config.backend)

        self._lock = threading.Lock()
        self._qr: Optional[QRResult] = None
        self._leverage: Optional[np.ndarray] = None
        self._hat: Optional[np.ndarray] = None

    def _factorization(self) -> QRResult:
        """QR of X without the rank check, computed once."""
        if self._qr is None:
            with self._lock:
                if self._qr is None:
                    self._qr = _core.qr_decomposition(
                        self.model.X,
                        mode='economic',
                        check_rank=False,
                        tol=self.config.rank_tol,
                        backend=self.backend,
                    )
        return self._qr

    def _residuals(self) -> np.ndarray:
        """Residuals of the model, checked against its design matrix."""
        r = check_vector(self.model.residuals, name='residuals')
        if r.shape[0] != self.model.n_obs:
            raise ValueError(
                f"residuals has length {r.shape[0]}, "
                f"model has {self.model.n_obs} observations"
            )
        return r

    def _mse(self) -> float:
        mse = float(self.model.mse)
        if not np.isfinite(mse) or mse < 0:
            raise ValueError(f"mse must be finite and non-negative (got {mse})")
        return mse

    def _full_rank_factorization(self) -> QRResult:
        qr = self._factorization()
        if qr.rank < qr.n_coef:
            raise RankDeficientError(qr.rank, qr.n_coef)
        return qr

    def leverage_points(self) -> np.ndarray:
        """
        Leverage of each observation (diagonal of the hat matrix).

        Returns
        -------
        ndarray, shape (n,)
            Values in [0, 1] summing to p

        Raises
        ------
        RankDeficientError
            If X does not have full column rank
        """
        if self._leverage is None:
            qr = self._full_rank_factorization()
            with self._lock:
                if self._leverage is None:
                    h = _core.leverage(qr)
                    h.flags.writeable = False
                    self._leverage = h
        return self._leverage.copy()

    def hat_matrix(self) -> np.ndarray:
        """
        Full n x n hat matrix H = Q_p Q_p'.

        Memoized on this object; O(n^2) memory.
        """
        if self._hat is None:
            qr = self._full_rank_factorization()
            with self._lock:
                if self._hat is None:
                    logger.debug("Forming %d x %d hat matrix", qr.Q.shape[0], qr.Q.shape[0])
                    H = _core.hat_matrix(qr)
                    H.flags.writeable = False
                    self._hat = H
        return self._hat.copy()

    def cooks_distance(
        self,
        bounds=None,
        cancel_event: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> np.ndarray:
        """
        Cook's distance, computed in parallel over observations.

        D_i = r_i^2 / (p * MSE) * h_i / (1 - h_i)^2

        Parameters
        ----------
        bounds : (start, stop), range or slice, optional
            Restrict the computation to observations start <= i < stop
        cancel_event : threading.Event, optional
            Set it from another thread to abandon the computation
        timeout : float, optional
            Seconds to wait for the workers

        Returns
        -------
        ndarray, shape (n,)
            >= 0; inf where leverage is 1; nan outside bounds

        Raises
        ------
        RankDeficientError
            If X does not have full column rank
        DiagnosticsCancelledError
            If cancelled or timed out
        """
        model = self.model
        start, stop = check_bounds(bounds, model.n_obs)
        h = self.leverage_points()
        return _core.cooks_distance(
            self._residuals(),
            h,
            model.n_coef,
            self._mse(),
            (start, stop),
            max_workers=self.config.max_workers,
            chunk_size=self.config.chunk_size,
            leverage_tol=self.config.leverage_tol,
            cancel_event=cancel_event,
            timeout=timeout,
        )

    def studentized_residuals(self) -> np.ndarray:
        """
        Studentized residuals r_i / (sigma * sqrt(1 - h_i)).

        sigma is the sample standard deviation of the residuals.
        """
        h = self.leverage_points()
        return _core.studentized_residuals(
            self._residuals(),
            h,
            leverage_tol=self.config.leverage_tol,
        )

    def variance_covariance_matrix(self, scale: bool = False) -> np.ndarray:
        """
        (X'X)^-1 computed as R^-1 (R^-1)' from X = QR.

        Parameters
        ----------
        scale : bool
            Multiply by MSE to get Var(β) = σ² (X'X)^-1

        Raises
        ------
        SingularMatrixError
            If R is not invertible (collinear columns)
        """
        cov = _core.unscaled_covariance(self._factorization(), self.backend)
        if scale:
            cov = cov * self._mse()
        return cov

    def standard_errors(self) -> np.ndarray:
        """Coefficient standard errors sqrt(diag(MSE (X'X)^-1))."""
        return np.sqrt(np.diag(self.variance_covariance_matrix(scale=True)))

    def influential_points(self, threshold: Optional[float] = None) -> np.ndarray:
        """
        Indices whose Cook's distance exceeds threshold (default 4/n).
        """
        if threshold is None:
            threshold = 4.0 / self.model.n_obs
        D = self.cooks_distance()
        return np.flatnonzero(D > threshold)

    def influence_frame(self) -> pd.DataFrame:
        """Per-observation diagnostics as a DataFrame."""
        return pd.DataFrame({
            'leverage': self.leverage_points(),
            'cooks_distance': self.cooks_distance(),
            'studentized_residual': self.studentized_residuals(),
        }, index=pd.RangeIndex(self.model.n_obs, name='observation'))

    def __repr__(self):
        return (f"Diagnostics(n={self.model.n_obs}, p={self.model.n_coef}, "
                f"backend={self.backend.name!r})")


def _diagnostics(model, config=None, **kwargs) -> Diagnostics:
    if isinstance(model, Diagnostics):
        return model
    if config is None:
        config = DiagnosticsConfig(**kwargs)
    return Diagnostics(model, config)


def leverage_points(model, **kwargs) -> np.ndarray:
    """Leverage values of a fitted model. See Diagnostics.leverage_points."""
    return _diagnostics(model, **kwargs).leverage_points()


def hat_matrix(model, **kwargs) -> np.ndarray:
    """Full hat matrix of a fitted model. See Diagnostics.hat_matrix."""
    return _diagnostics(model, **kwargs).hat_matrix()


def cooks_distance(model, bounds=None, cancel_event=None, timeout=None,
                   **kwargs) -> np.ndarray:
    """Cook's distance of a fitted model. See Diagnostics.cooks_distance."""
    return _diagnostics(model, **kwargs).cooks_distance(
        bounds=bounds, cancel_event=cancel_event, timeout=timeout
    )


def studentized_residuals(model, **kwargs) -> np.ndarray:
    """Studentized residuals. See Diagnostics.studentized_residuals."""
    return _diagnostics(model, **kwargs).studentized_residuals()


def variance_covariance_matrix(model, scale: bool = False, **kwargs) -> np.ndarray:
    """Coefficient covariance. See Diagnostics.variance_covariance_matrix."""
    return _diagnostics(model, **kwargs).variance_covariance_matrix(scale=scale)
