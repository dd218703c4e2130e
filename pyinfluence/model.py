"""
Fitted OLS models consumed by the diagnostics.

The diagnostics only need read access to the design matrix, the
residuals and the mean squared error; FittedModel is that interface.
ArrayModel wraps arrays from any external fit, LinearModel fits one.
"""

import numpy as np
import pandas as pd
from abc import ABC, abstractmethod
from typing import Optional, Union, List

from ._backends import get_backend
from ._utils import check_design, check_vector


class FittedModel(ABC):
    """Read-only view of a fitted OLS model."""

    @property
    @abstractmethod
    def X(self) -> np.ndarray:
        """Design matrix, shape (n, p)."""
        pass

    @property
    @abstractmethod
    def residuals(self) -> np.ndarray:
        """Residual vector, shape (n,)."""
        pass

    @property
    @abstractmethod
    def mse(self) -> float:
        """Mean squared error of the fit."""
        pass

    @property
    def n_obs(self) -> int:
        return self.X.shape[0]

    @property
    def n_coef(self) -> int:
        return self.X.shape[1]

    def diagnostics(self, **kwargs):
        """Diagnostics bound to this model (kwargs go to DiagnosticsConfig)."""
        from .diagnostics import Diagnostics, DiagnosticsConfig
        return Diagnostics(self, DiagnosticsConfig(**kwargs))


def _default_mse(residuals: np.ndarray, n_coef: int) -> float:
    df = residuals.shape[0] - n_coef
    if df <= 0:
        raise ValueError(
            "mse cannot be estimated with no residual degrees of freedom; "
            "pass it explicitly"
        )
    return float(np.sum(residuals ** 2) / df)


class ArrayModel(FittedModel):
    """
    FittedModel over caller-held arrays.

    Parameters
    ----------
    X : array, shape (n, p)
        Design matrix as used in the fit (intercept column included)
    residuals : array, shape (n,)
        Residuals of the fit
    mse : float, optional
        Mean squared error; defaults to RSS / (n - p)

    Examples
    --------
    >>> model = ArrayModel([[1, 1], [1, 2], [1, 3]], [0.1, -0.2, 0.1], mse=0.01)
    >>> model.n_obs, model.n_coef
    (3, 2)
    """

    def __init__(self, X, residuals, mse: Optional[float] = None):
        X = check_design(X)
        residuals = check_vector(residuals, name='residuals')
        if residuals.shape[0] != X.shape[0]:
            raise ValueError(
                f"residuals has length {residuals.shape[0]}, "
                f"X has {X.shape[0]} rows"
            )
        if mse is None:
            mse = _default_mse(residuals, X.shape[1])
        mse = float(mse)
        if not np.isfinite(mse) or mse < 0:
            raise ValueError(f"mse must be finite and non-negative (got {mse})")

        # Read-only copies; the diagnostics never write to the model
        self._X = X.copy()
        self._X.flags.writeable = False
        self._residuals = residuals.copy()
        self._residuals.flags.writeable = False
        self._mse = mse

    @property
    def X(self) -> np.ndarray:
        return self._X

    @property
    def residuals(self) -> np.ndarray:
        return self._residuals

    @property
    def mse(self) -> float:
        return self._mse

    def __repr__(self):
        return f"ArrayModel(n={self.n_obs}, p={self.n_coef}, mse={self.mse:.4g})"


class LinearModel(FittedModel):
    """
    Fit an OLS model (like R's lm()) for use with the diagnostics.

    Examples
    --------
    >>> from pyinfluence import lm
    >>> model = lm(y='mpg', X=['wt', 'hp'], data=mtcars)
    >>> model.coef
    >>> model.diagnostics().influence_frame()
    """

    def __init__(
        self,
        y: Union[str, np.ndarray],
        X: Union[List[str], np.ndarray],
        data: Optional[pd.DataFrame] = None,
        add_intercept: bool = True,
        backend: str = 'cpu',
    ):
        """
        Fit linear regression model.

        Parameters
        ----------
        y : str or array
            Response variable
            - If string: column name in data
            - If array: numeric values
        X : list of str or array
            Predictor variables
            - If list of strings: column names in data
            - If array: numeric matrix (n × k)
        data : DataFrame, optional
            Dataset containing y and X variables
        add_intercept : bool
            Prepend a column of ones to X
        backend : str
            Computational backend: 'auto', 'cpu', 'pytorch'
        """
        if isinstance(y, str):
            if data is None:
                raise ValueError("Must provide data when y is a string")
            self.y_values = check_vector(data[y].values, name=y)
            self.y_name = y
        else:
            self.y_values = check_vector(y)
            self.y_name = 'y'

        if isinstance(X, list) and all(isinstance(x, str) for x in X):
            if data is None:
                raise ValueError("Must provide data when X is list of strings")
            X_values = data[X].values
            self.X_names = list(X)
        else:
            X_values = np.asarray(X, dtype=np.float64)
            if X_values.ndim == 1:
                X_values = X_values[:, np.newaxis]
            self.X_names = [f'x{i}' for i in range(X_values.shape[1])]

        if add_intercept:
            X_values = np.column_stack([np.ones(len(X_values)), X_values])
            self.var_names = ['Intercept'] + self.X_names
        else:
            self.var_names = list(self.X_names)

        self._X = check_design(X_values)
        if self._X.shape[0] != self.y_values.shape[0]:
            raise ValueError(
                f"y has length {self.y_values.shape[0]}, "
                f"X has {self._X.shape[0]} rows"
            )
        self._X.flags.writeable = False

        self.backend = get_backend(backend)
        result = self.backend.fit_linear_model(self._X, self.y_values)

        self.coefficients = result.coef
        self._residuals = result.residuals
        self._residuals.flags.writeable = False
        self.fitted_values = result.fitted_values
        self.rank = result.rank
        self.df_residual = result.df_residual

        rss = float(np.sum(self._residuals ** 2))
        self._mse = rss / self.df_residual if self.df_residual > 0 else np.nan

    @property
    def X(self) -> np.ndarray:
        return self._X

    @property
    def residuals(self) -> np.ndarray:
        return self._residuals

    @property
    def mse(self) -> float:
        return self._mse

    @property
    def coef(self):
        """Named coefficients (pandas Series)."""
        return pd.Series(self.coefficients, index=self.var_names)

    def __repr__(self):
        return f"LinearModel(n={self.n_obs}, p={self.n_coef}, rank={self.rank})"


def lm(y, X, data=None, **kwargs):
    """
    Fit linear regression model (convenience function).

    Parameters
    ----------
    y : str or array
        Response variable
    X : list of str or array
        Predictor variables
    data : DataFrame, optional
        Dataset
    **kwargs
        Additional arguments passed to LinearModel

    Returns
    -------
    LinearModel
        Fitted model object
    """
    return LinearModel(y=y, X=X, data=data, **kwargs)
