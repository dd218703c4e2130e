"""
Utility functions.
"""

import numpy as np


def check_array(X, name='X', dtype=np.float64):
    """Validate array input."""
    X = np.asarray(X, dtype=dtype)
    if X.ndim != 2:
        raise ValueError(f"{name} must be 2-dimensional")
    if not np.all(np.isfinite(X)):
        raise ValueError(f"{name} contains NaN or Inf")
    return X


def check_vector(y, name='y', dtype=np.float64):
    """Validate vector input."""
    y = np.asarray(y, dtype=dtype)
    if y.ndim != 1:
        raise ValueError(f"{name} must be 1-dimensional")
    if not np.all(np.isfinite(y)):
        raise ValueError(f"{name} contains NaN or Inf")
    return y


def check_design(X, name='X'):
    """Validate a design matrix: 2-D, finite, non-empty, n >= p."""
    X = check_array(X, name=name)
    n, p = X.shape
    if p == 0:
        raise ValueError(f"{name} must have at least one column")
    if n < p:
        raise ValueError(
            f"{name} must have at least as many rows as columns (got {n} x {p})"
        )
    return X


def check_bounds(bounds, n):
    """
    Normalize an observation index restriction to ``(start, stop)``.

    Accepts None (all observations), a ``(start, stop)`` pair, a ``range``
    or a ``slice`` with step 1. The range is half-open.
    """
    if bounds is None:
        return 0, n

    if isinstance(bounds, slice):
        if bounds.step not in (None, 1):
            raise ValueError("bounds must have step 1")
        start, stop = bounds.start, bounds.stop
    elif isinstance(bounds, range):
        if bounds.step != 1:
            raise ValueError("bounds must have step 1")
        start, stop = bounds.start, bounds.stop
    else:
        try:
            start, stop = bounds
        except (TypeError, ValueError):
            raise ValueError(
                "bounds must be None, a (start, stop) pair, a range or a slice"
            )

    start = 0 if start is None else int(start)
    stop = n if stop is None else int(stop)
    if not 0 <= start <= stop <= n:
        raise ValueError(
            f"bounds ({start}, {stop}) outside observation range [0, {n}]"
        )
    return start, stop
