# =============================================================================
# module: model.py
# Purpose: Define base and OLS regression models with testing and reporting hooks
# Key Types/Classes: ModelBase, OLS
# Key Functions: fit, predict, conf_int, param_measures
# Dependencies: pandas, numpy, statsmodels, typing, .testset.TestSet,
#               .report.OLS_ModelReport, .errors
# =============================================================================

import logging
import warnings
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Sequence, Tuple, Type

import numpy as np
import pandas as pd
import statsmodels.api as sm
from pandas.api.types import is_numeric_dtype
from statsmodels.stats.outliers_influence import variance_inflation_factor

from .config import INTERCEPT_NAME
from .errors import InsufficientDataError, SingularDesignError
from .report import ModelReportBase, OLS_ModelReport
from .test import ModelTestBase
from .testset import TestSet, default_ols_testset_func

logger = logging.getLogger(__name__)


class ModelBase(ABC):
    """
    Abstract base class for statistical models with testing and reporting.

    A model is bound to one response and an ordered list of predictors. Data
    can come from a DataManager (complete-case rows for this response only)
    or be passed directly as ``X``/``y``.

    Parameters
    ----------
    response : str
        Name of the response column.
    predictors : sequence of str, optional
        Ordered predictor names. Defaults to every predictor of ``dm`` or to
        the columns of ``X``.
    dm : DataManager, optional
        Source of complete-case model frames.
    X : DataFrame, optional
        Pre-built predictor matrix. Overrides ``dm`` when given with ``y``.
    y : Series, optional
        Pre-built response vector.
    testset_func : callable, optional
        Builds the mapping of test alias to ModelTestBase after fitting.
    testset_cls : type, default TestSet
        Class aggregating the built tests.
    report_cls : type, optional
        Class producing the model report.
    """

    def __init__(
        self,
        response: str,
        predictors: Optional[Sequence[str]] = None,
        dm: Any = None,
        X: Optional[pd.DataFrame] = None,
        y: Optional[pd.Series] = None,
        testset_func: Optional[Callable[['ModelBase'], Dict[str, ModelTestBase]]] = None,
        testset_cls: Type = TestSet,
        report_cls: Optional[Type] = None
    ):
        if (X is None) != (y is None):
            raise ValueError("X and y must be provided together.")
        if X is None and dm is None:
            raise ValueError("DataManager (dm) is required when X and y are not provided.")

        self.response = response
        self.dm = dm

        if X is not None:
            self.predictors: Tuple[str, ...] = tuple(predictors) if predictors is not None else tuple(X.columns)
            self._X = X[list(self.predictors)]
            self._y = y
        else:
            self.predictors = tuple(predictors) if predictors is not None else tuple(dm.predictors)
            self._X, self._y = dm.model_frame(response, self.predictors)

        self.testset_func = testset_func
        self.testset_cls = testset_cls
        self.testset: Optional[TestSet] = None
        self.report_cls = report_cls
        self.is_fitted = False

    @staticmethod
    def _validate_data(X: pd.DataFrame, y: pd.Series) -> None:
        """
        Reject missing or infinite values in the fitting data.

        DataManager frames are already complete cases; this guards the
        direct ``X``/``y`` path.
        """
        frame = pd.concat([X, y.rename('__response__')], axis=1)
        bad_nan = [c for c in frame.columns if frame[c].isna().any()]
        bad_inf = [
            c for c in frame.columns
            if c not in bad_nan and is_numeric_dtype(frame[c]) and not np.isfinite(frame[c]).all()
        ]
        if bad_nan or bad_inf:
            bad_nan = ['y' if c == '__response__' else c for c in bad_nan]
            bad_inf = ['y' if c == '__response__' else c for c in bad_inf]
            raise ValueError(
                f"Cannot fit with missing values in {bad_nan} or infinite values in {bad_inf}."
            )

    @property
    def X(self) -> pd.DataFrame:
        """Predictor matrix used for fitting (no intercept column)."""
        return self._X

    @property
    def y(self) -> pd.Series:
        """Response vector used for fitting."""
        return self._y

    @property
    def nobs(self) -> int:
        return len(self._y)

    @abstractmethod
    def fit(self) -> 'ModelBase':
        ...

    @abstractmethod
    def predict(self, X_new: pd.DataFrame) -> pd.Series:
        ...

    @property
    def report(self) -> ModelReportBase:
        if not self.is_fitted:
            raise RuntimeError("Model has not been fitted yet.")
        if self.report_cls is None:
            raise ValueError("No report_cls provided.")
        return self.report_cls(self)

    def load_testset(
        self,
        testset_func: Optional[Callable[['ModelBase'], Dict[str, ModelTestBase]]] = None
    ) -> Optional[TestSet]:
        """
        Build and attach the TestSet for this fitted model.

        Parameters
        ----------
        testset_func : callable, optional
            Overrides the function given at construction.
        """
        func = testset_func or self.testset_func
        if func is None:
            self.testset = None
            return None
        self.testset = self.testset_cls(func(self))
        return self.testset


class OLS(ModelBase):
    """
    Ordinary Least Squares regression model with built-in testing and reporting.

    The design matrix is the predictor matrix with a column of ones prepended
    (labelled ``const``). Fitting fails with InsufficientDataError when there
    are no residual degrees of freedom and with SingularDesignError when the
    design matrix is rank deficient.

    Examples
    --------
    >>> mdl = OLS('Y', dm=dm).fit()
    >>> mdl.params
    const    5.01
    A        1.99
    B       -1.02
    C        0.01
    dtype: float64
    """

    def __init__(
        self,
        response: str,
        predictors: Optional[Sequence[str]] = None,
        dm: Any = None,
        X: Optional[pd.DataFrame] = None,
        y: Optional[pd.Series] = None,
        testset_func: Optional[Callable[['ModelBase'], Dict[str, ModelTestBase]]] = default_ols_testset_func,
        testset_cls: Type = TestSet,
        report_cls: Type = OLS_ModelReport
    ):
        super().__init__(
            response=response,
            predictors=predictors,
            dm=dm,
            X=X,
            y=y,
            testset_func=testset_func,
            testset_cls=testset_cls,
            report_cls=report_cls
        )
        # Fit result placeholders
        self.fitted = None
        self.exog: Optional[pd.DataFrame] = None
        self.params = None
        self.bse = None
        self.tvalues = None
        self.pvalues = None
        self.rsquared = None
        self.rsquared_adj = None
        self.fvalue = None
        self.f_pvalue = None
        self.y_fitted_in = None
        self.resid = None
        self.rank: Optional[int] = None
        self.df_resid: Optional[float] = None
        self.df_model: Optional[float] = None
        self.vif = None
        self.llf = None
        self.aic: Optional[float] = None
        self.bic: Optional[float] = None
        self.conf_int_alpha: float = 0.05
        self.conf_int_df: Optional[pd.DataFrame] = None

    def _design_matrix(self, X: pd.DataFrame) -> pd.DataFrame:
        if INTERCEPT_NAME in X.columns:
            raise ValueError(f"Predictor name '{INTERCEPT_NAME}' is reserved for the intercept.")
        return sm.add_constant(X.astype(float), prepend=True, has_constant='add')

    def fit(self) -> 'OLS':
        """
        Fit OLS and compute coefficient and model-level inference.

        Raises
        ------
        InsufficientDataError
            If complete observations do not exceed the number of design columns.
        SingularDesignError
            If the design matrix does not have full column rank.
        """
        self._validate_data(self.X, self.y)

        Xc = self._design_matrix(self.X)
        n, p = Xc.shape
        if n <= p:
            raise InsufficientDataError(
                f"Response '{self.response}': {n} complete observations for "
                f"{p} design columns; residual degrees of freedom must be positive.",
                response=self.response, nobs=n, n_params=p
            )

        rank = int(np.linalg.matrix_rank(Xc.values))
        if rank < p:
            raise SingularDesignError(
                f"Response '{self.response}': design matrix has rank {rank} "
                f"but {p} columns; predictors are collinear.",
                response=self.response, rank=rank, n_params=p
            )

        res = sm.OLS(self.y.astype(float), Xc).fit()

        # store core attributes
        self.fitted = res
        self.exog = Xc
        self.params = res.params
        self.bse = res.bse
        self.tvalues = res.tvalues
        self.pvalues = res.pvalues
        self.rsquared = float(res.rsquared)
        self.rsquared_adj = float(res.rsquared_adj)
        self.fvalue = float(res.fvalue)
        self.f_pvalue = float(res.f_pvalue)
        self.y_fitted_in = res.fittedvalues
        self.resid = res.resid
        self.rank = rank
        self.df_resid = float(res.df_resid)
        self.df_model = float(res.df_model)
        self.llf = float(res.llf)
        self.aic = float(res.aic)
        self.bic = float(res.bic)
        self.conf_int_df = pd.DataFrame(
            res.conf_int(alpha=self.conf_int_alpha),
            index=self.params.index,
            columns=[0, 1]
        )
        # VIF is undefined for the constant column
        with warnings.catch_warnings(), np.errstate(divide='ignore', invalid='ignore'):
            warnings.simplefilter('ignore', RuntimeWarning)
            self.vif = pd.Series({
                col: variance_inflation_factor(Xc.values, i)
                for i, col in enumerate(Xc.columns) if col != INTERCEPT_NAME
            }, dtype=float)
        self.is_fitted = True

        logger.debug(
            "Fitted %s: nobs=%d rank=%d df_resid=%.0f R2=%.4f",
            self.response, n, rank, self.df_resid, self.rsquared
        )

        self.load_testset()
        return self

    def predict(self, X_new: pd.DataFrame) -> pd.Series:
        """Predicted response for new predictor rows, indexed like ``X_new``."""
        if not self.is_fitted or self.fitted is None:
            raise RuntimeError("Model has not been fitted yet.")
        Xc_new = self._design_matrix(X_new[list(self.predictors)])
        return pd.Series(self.fitted.predict(Xc_new), index=X_new.index, name=self.response)

    def conf_int(self, alpha: float = 0.05) -> pd.DataFrame:
        """
        Lower (column 0) and upper (column 1) bounds per coefficient.

        The bounds for the last requested ``alpha`` are cached.
        """
        if not self.is_fitted or self.fitted is None:
            raise RuntimeError("Model has not been fitted yet.")

        if alpha != self.conf_int_alpha:
            self.conf_int_alpha = alpha
            self.conf_int_df = pd.DataFrame(
                self.fitted.conf_int(alpha=alpha),
                index=self.params.index,
                columns=[0, 1]
            )
        return self.conf_int_df

    @property
    def param_measures(self) -> pd.DataFrame:
        """
        Parameter measures: coefficient, standard error, t-value, p-value, VIF
        and confidence interval bounds, in design order (intercept first).
        The bound columns are named after the cached interval level, e.g.
        ``CI_2_5``/``CI_97_5`` by default and ``CI_5``/``CI_95`` after
        ``conf_int(alpha=0.10)``.
        """
        if not self.is_fitted or self.fitted is None:
            return pd.DataFrame()

        lo_pct = 100 * self.conf_int_alpha / 2
        lo_col = 'CI_' + f"{lo_pct:g}".replace('.', '_')
        hi_col = 'CI_' + f"{100 - lo_pct:g}".replace('.', '_')

        param_data = []
        for var in self.params.index:
            param_data.append({
                'variable': var,
                'coef': float(self.params[var]),
                'se': float(self.bse[var]),
                'tvalue': float(self.tvalues[var]),
                'pvalue': float(self.pvalues[var]),
                'vif': float(self.vif.get(var, np.nan)),
                lo_col: float(self.conf_int_df.loc[var, 0]),
                hi_col: float(self.conf_int_df.loc[var, 1]),
            })
        return pd.DataFrame(param_data)

    def __repr__(self) -> str:
        rhs = '+'.join(('C',) + self.predictors)
        return f"OLS:{self.response}~{rhs}"
