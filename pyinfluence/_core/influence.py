"""
Residual based influence measures.

Cook's distance:
    D_i = r_i^2 / (p * MSE) * h_i / (1 - h_i)^2

Studentized residuals:
    t_i = r_i / (sigma * sqrt(1 - h_i))

Cook's distance is fanned out over a thread pool in disjoint index
blocks; each task writes only its own slots of a pre-allocated output.
"""

import logging
import math
import os
import threading
import warnings
import numpy as np
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Optional, Tuple

from ..exceptions import DegenerateLeverageWarning, DiagnosticsCancelledError
from .hat import saturated

logger = logging.getLogger(__name__)

# Indices handed to a worker per task when chunk_size is not given
_BLOCKS_PER_WORKER = 4


def _warn_saturated(mask: np.ndarray, what: str):
    idx = np.flatnonzero(mask)
    if idx.size:
        shown = ', '.join(str(i) for i in idx[:10])
        more = ', ...' if idx.size > 10 else ''
        warnings.warn(
            f"Leverage of 1 at observation(s) [{shown}{more}]: "
            f"{what} is infinite there",
            DegenerateLeverageWarning,
            stacklevel=3,
        )


def _cooks_block(residuals, h, scale, leverage_tol, out, start, stop,
                 cancel_event):
    """Fill out[start:stop]; return the number of slots written."""
    if cancel_event is not None and cancel_event.is_set():
        return 0

    r = residuals[start:stop]
    hb = h[start:stop]
    sat = saturated(hb, leverage_tol)

    left = r ** 2 / scale if scale > 0 else np.zeros_like(r)
    with np.errstate(divide='ignore', invalid='ignore'):
        D = left * (hb / (1.0 - hb) ** 2)
    out[start:stop] = np.where(sat, np.inf, D)
    return stop - start


def _blocks(start: int, stop: int, chunk_size: int):
    return [(lo, min(lo + chunk_size, stop)) for lo in range(start, stop, chunk_size)]


def cooks_distance(
    residuals: np.ndarray,
    h: np.ndarray,
    n_coef: int,
    mse: float,
    bounds: Tuple[int, int],
    max_workers: Optional[int] = None,
    chunk_size: Optional[int] = None,
    leverage_tol: float = 1e-10,
    cancel_event: Optional[threading.Event] = None,
    timeout: Optional[float] = None,
) -> np.ndarray:
    """
    Cook's distance over observations bounds[0] <= i < bounds[1].

    Parameters
    ----------
    residuals, h : ndarray, shape (n,)
        Residuals and leverage values
    n_coef : int
        Number of coefficients p
    mse : float
        Mean squared error of the fit
    bounds : (start, stop)
        Half-open, already validated index range
    max_workers : int, optional
        Thread pool size
    chunk_size : int, optional
        Observations per task
    leverage_tol : float
        Leverage within this of 1 is treated as saturated
    cancel_event : threading.Event, optional
        Set by the caller to abandon the computation
    timeout : float, optional
        Seconds to wait for all tasks

    Returns
    -------
    ndarray, shape (n,)
        nan outside bounds, inf at saturated leverage

    Raises
    ------
    DiagnosticsCancelledError
        If cancelled or the timeout expires
    """
    n = residuals.shape[0]
    start, stop = bounds
    out = np.full(n, np.nan, dtype=np.float64)
    if start == stop:
        return out

    if not np.isfinite(mse):
        raise ValueError(f"mse must be finite (got {mse})")
    scale = n_coef * mse
    if scale <= 0 and np.any(residuals[start:stop] != 0):
        raise ValueError(f"mse must be positive for a non-perfect fit (got {mse})")

    if max_workers is None:
        # Same default as ThreadPoolExecutor
        max_workers = min(32, (os.cpu_count() or 1) + 4)
    if chunk_size is None:
        chunk_size = math.ceil((stop - start) / (_BLOCKS_PER_WORKER * max_workers))
    chunk_size = max(1, int(chunk_size))

    blocks = _blocks(start, stop, chunk_size)
    logger.debug(
        "Cook's distance: %d observations in %d tasks on %d workers",
        stop - start, len(blocks), max_workers,
    )

    executor = ThreadPoolExecutor(max_workers=max_workers,
                                  thread_name_prefix='cooks')
    try:
        futures = [
            executor.submit(_cooks_block, residuals, h, scale, leverage_tol,
                            out, lo, hi, cancel_event)
            for lo, hi in blocks
        ]
        # Join exactly the submitted tasks
        done, not_done = wait(futures, timeout=timeout,
                              return_when=FIRST_EXCEPTION)
        for f in not_done:
            f.cancel()
        for f in done:
            exc = f.exception()
            if exc is not None:
                raise exc
        if not_done:
            logger.debug("Cook's distance: %d tasks abandoned", len(not_done))
            raise DiagnosticsCancelledError(
                f"Cook's distance timed out after {timeout} s "
                f"({len(not_done)} of {len(futures)} tasks pending)"
            )
        written = sum(f.result() for f in futures)
    finally:
        executor.shutdown(wait=True, cancel_futures=True)

    if written != stop - start:
        if cancel_event is not None and cancel_event.is_set():
            raise DiagnosticsCancelledError("Cook's distance computation cancelled")
        raise RuntimeError(
            f"Cook's distance collected {written} of {stop - start} results"
        )

    sat = np.zeros(n, dtype=bool)
    sat[start:stop] = saturated(h[start:stop], leverage_tol)
    _warn_saturated(sat, "Cook's distance")
    return out


def studentized_residuals(
    residuals: np.ndarray,
    h: np.ndarray,
    leverage_tol: float = 1e-10,
) -> np.ndarray:
    """
    Residuals scaled by sigma * sqrt(1 - h_i).

    sigma is the sample standard deviation of the residuals. A zero
    residual gives 0; saturated leverage gives +/-inf.
    """
    n = residuals.shape[0]
    sigma = float(np.std(residuals, ddof=1)) if n > 1 else 0.0

    sat = saturated(h, leverage_tol)
    denom = sigma * np.sqrt(np.where(sat, 0.0, 1.0 - h))

    t = np.zeros(n, dtype=np.float64)
    nonzero = residuals != 0
    np.divide(residuals, denom, out=t, where=nonzero & (denom > 0))
    # No spread estimate (n == 1 or constant residuals)
    t[nonzero & ~sat & (denom == 0)] = np.nan
    t[sat] = np.copysign(np.inf, residuals[sat])

    _warn_saturated(sat, "studentized residual")
    return t
