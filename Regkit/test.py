# =============================================================================
# module: test.py
# Purpose: Model testing framework: fit measures, significance filters and
#          the Breusch–Pagan heteroscedasticity diagnostic
# Key Types/Classes: ModelTestBase, FitMeasure, ErrorMeasure, FTest, CoefTest,
#                    HetTest, HetResult
# Key Functions: filter_significant_models, filter_significant_coefs,
#                run_het_test
# Dependencies: pandas, numpy, statsmodels, abc, dataclasses, typing
# =============================================================================
import logging
import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from statsmodels.stats.diagnostic import het_breuschpagan

from .config import DEFAULT_ALPHA
from .report import CoefficientRecord, ModelSummary

logger = logging.getLogger(__name__)

# ----------------------------------------------------------------------------
# ModelTestBase class
# ----------------------------------------------------------------------------

class ModelTestBase(ABC):
    """
    Base class for a single diagnostic or filter attached to a fitted model.

    Parameters
    ----------
    alias : Optional[str]
        Display name; TestSet overwrites it with the key the test is stored under.
    filter_on : bool, default True
        Whether the test takes part in TestSet.filter_pass.
    """
    category: str = 'base'

    def __init__(
        self,
        alias: Optional[str] = None,
        filter_on: bool = True,
    ):
        self.alias = alias or ''
        self.filter_on = filter_on

    @property
    def name(self) -> str:
        """
        Display name for the test: alias if provided, else class name.
        """
        return self.alias or type(self).__name__

    @property
    @abstractmethod
    def test_result(self) -> Any:
        """
        Execute the test(s) and return a print-friendly result object,
        usually a small DataFrame or Series.
        """
        ...

    @property
    @abstractmethod
    def test_filter(self) -> bool:
        """
        Return True/False based on the content of `test_result`.
        """
        ...

# ----------------------------------------------------------------------------
# FitMeasure class
# ----------------------------------------------------------------------------
class FitMeasure(ModelTestBase):
    """
    In-sample R² and adjusted R² of a fitted model (reporting only).

    Parameters
    ----------
    actual : pd.Series
        Observed response.
    predicted : pd.Series
        The model's fitted values.
    n_features : int
        Slope count k; adjusted R² uses n - k - 1 residual degrees of freedom.
    """
    category = 'measure'

    def __init__(
        self,
        actual: pd.Series,
        predicted: pd.Series,
        n_features: int,
        alias: Optional[str] = None,
        filter_on: bool = False
    ):
        super().__init__(alias=alias, filter_on=filter_on)
        self.actual = actual
        self.predicted = predicted
        self.n = len(actual)
        self.p = n_features

    @property
    def test_result(self) -> pd.DataFrame:
        """
        Example output structure
        ------------------------
        ┌──────────┬─────────┐
        │ Metric   │ Value   │
        ├──────────┼─────────┤
        │ R²       │ 0.87    │
        │ Adj R²   │ 0.85    │
        └──────────┴─────────┘
        """
        sse = float(np.sum((self.actual - self.predicted) ** 2))
        sst = float(np.sum((self.actual - self.actual.mean()) ** 2))
        resid_df = self.n - self.p - 1
        r2 = 1.0 - sse / sst if sst > 0 else float('nan')
        adj_r2 = 1.0 - (1.0 - r2) * (self.n - 1) / resid_df if resid_df > 0 else float('nan')
        return pd.DataFrame({'Value': [r2, adj_r2]}, index=pd.Index(['R²', 'Adj R²'], name='Metric'))

    @property
    def test_filter(self) -> bool:
        """
        Always pass; this test is for reporting measures, not for filtering.
        """
        return True

# ----------------------------------------------------------------------------
# ErrorMeasure class
# ----------------------------------------------------------------------------
class ErrorMeasure(ModelTestBase):
    """
    Compute and expose error diagnostics (ME, MAE, RMSE) for a fitted model.
    """
    category = 'measure'

    def __init__(
        self,
        actual: pd.Series,
        predicted: pd.Series,
        alias: Optional[str] = None,
        filter_on: bool = False
    ):
        super().__init__(alias=alias, filter_on=filter_on)
        self.errors = actual - predicted

    @property
    def test_result(self) -> pd.DataFrame:
        abs_err = self.errors.abs()
        df = pd.DataFrame(
            [{'Metric': 'ME', 'Value': float(abs_err.max())},
             {'Metric': 'MAE', 'Value': float(abs_err.mean())},
             {'Metric': 'RMSE', 'Value': float(np.sqrt((self.errors ** 2).mean()))}]
        ).set_index('Metric')
        return df

    @property
    def test_filter(self) -> bool:
        return True

# ----------------------------------------------------------------------------
# FTest class
# ----------------------------------------------------------------------------

class FTest(ModelTestBase):
    """
    Overall F-test of a regression: all slope coefficients equal to zero.

    Parameters
    ----------
    fvalue : float
        F-statistic with (p-1, n-p) degrees of freedom.
    f_pvalue : float
        Its p-value.
    alpha : float, default 0.05
        The model passes when ``f_pvalue <= alpha``.
    """
    category = 'performance'

    def __init__(
        self,
        fvalue: float,
        f_pvalue: float,
        alpha: float = DEFAULT_ALPHA,
        alias: Optional[str] = None,
        filter_on: bool = True
    ):
        super().__init__(alias=alias, filter_on=filter_on)
        self.fvalue = fvalue
        self.f_pvalue = f_pvalue
        self.alpha = alpha

    @property
    def filter_mode_desc(self) -> str:
        return f"Require overall F-test p-value <= {self.alpha}."

    @property
    def test_result(self) -> pd.Series:
        s = pd.Series({'F': self.fvalue, 'P-value': self.f_pvalue}, name=self.name)
        s.index.name = 'Metric'
        return s

    @property
    def test_filter(self) -> bool:
        # NaN p-values (degenerate fits) never pass
        return bool(self.f_pvalue <= self.alpha)

# ----------------------------------------------------------------------------
# CoefTest class
# ----------------------------------------------------------------------------

class CoefTest(ModelTestBase):
    """
    Check individual coefficient significance of model parameters.

    Parameters
    ----------
    pvalues : pd.Series
        Series of p-values for each coefficient, indexed by name.
    alpha : float, default 0.05
        A coefficient passes when its p-value is <= alpha.
    """
    category = 'performance'

    def __init__(
        self,
        pvalues: pd.Series,
        alpha: float = DEFAULT_ALPHA,
        alias: Optional[str] = None,
        filter_on: bool = True
    ):
        super().__init__(alias=alias, filter_on=filter_on)
        self.pvalues = pvalues
        self.alpha = alpha

    @property
    def filter_mode_desc(self) -> str:
        return f"Require p-value <= {self.alpha} for all coefficients."

    @property
    def test_result(self) -> pd.DataFrame:
        """
        Example output structure
        ------------------------
        ┌──────────────┬──────────┬────────┐
        │ Coefficient  │ P-value  │ Passed │
        ├──────────────┼──────────┼────────┤
        │ const        │ 0.000    │ True   │
        │ A            │ 0.012    │ True   │
        │ C            │ 0.640    │ False  │
        └──────────────┴──────────┴────────┘
        """
        df = pd.DataFrame({
            'P-value': self.pvalues,
            'Passed': self.pvalues <= self.alpha
        })
        df.index.name = 'Coefficient'
        return df

    @property
    def significant(self) -> List[str]:
        """Names of passing coefficients, in input order."""
        res = self.test_result
        return [str(name) for name in res.index[res['Passed']]]

    @property
    def test_filter(self) -> bool:
        """
        All coefficients must pass to pass the test.
        """
        return bool(self.test_result['Passed'].all())

# ----------------------------------------------------------------------------
# HetTest class
# ----------------------------------------------------------------------------

@dataclass(frozen=True)
class HetResult:
    """
    Breusch–Pagan outcome for one model.

    ``homoscedastic`` is True iff ``pvalue >= alpha``. When the auxiliary
    regression fails numerically, statistic and p-value are NaN,
    ``homoscedastic`` is False and ``error`` holds the reason.
    """
    response: str
    statistic: float
    df: int
    pvalue: float
    homoscedastic: bool
    error: Optional[str] = None


class HetTest(ModelTestBase):
    """
    Breusch–Pagan test for homoscedasticity of regression residuals.

    Squared residuals are regressed on the original design matrix; the LM
    statistic is ``n * R²_aux`` and is referred to a chi-square distribution
    with one degree of freedom per predictor (intercept excluded).

    Parameters
    ----------
    resids : array-like
        Residuals from a fitted regression model.
    exog : array-like
        Design matrix of the original model, intercept column included.
    alpha : float, default 0.05
        Homoscedasticity is retained when the p-value is >= alpha.
    response : str, optional
        Label carried into the HetResult.
    """
    category = 'assumption'

    def __init__(
        self,
        resids: Union[np.ndarray, pd.Series],
        exog: Union[np.ndarray, pd.DataFrame],
        alpha: float = DEFAULT_ALPHA,
        response: str = '',
        alias: Optional[str] = None,
        filter_on: bool = True
    ):
        super().__init__(alias=alias, filter_on=filter_on)
        self.resids = np.asarray(resids, dtype=float)
        self.exog = np.asarray(exog, dtype=float)
        self.alpha = alpha
        self.response = response
        self._result: Optional[HetResult] = None

    @property
    def filter_mode_desc(self) -> str:
        return f"Require Breusch–Pagan p-value >= {self.alpha}."

    @property
    def result(self) -> HetResult:
        """Run the test once and cache the HetResult."""
        if self._result is None:
            self._result = self._run()
        return self._result

    def _run(self) -> HetResult:
        dof = int(self.exog.shape[1] - 1) if self.exog.ndim == 2 else 0
        try:
            with warnings.catch_warnings(), np.errstate(divide='ignore', invalid='ignore'):
                warnings.simplefilter('ignore', RuntimeWarning)
                lm, lm_pvalue, _, _ = het_breuschpagan(self.resids, self.exog)
            lm = float(lm)
            lm_pvalue = float(lm_pvalue)
            if not (np.isfinite(lm) and np.isfinite(lm_pvalue)):
                raise FloatingPointError("auxiliary regression produced a non-finite statistic")
        except (ValueError, FloatingPointError, np.linalg.LinAlgError) as exc:
            msg = f"{type(exc).__name__}: {exc}"
            logger.warning("Breusch–Pagan test failed for %s: %s", self.response or '<model>', msg)
            return HetResult(
                response=self.response,
                statistic=float('nan'),
                df=dof,
                pvalue=float('nan'),
                homoscedastic=False,
                error=msg,
            )
        # n * R² is non-negative; clip rounding noise around zero
        lm = max(lm, 0.0)
        return HetResult(
            response=self.response,
            statistic=lm,
            df=dof,
            pvalue=lm_pvalue,
            homoscedastic=bool(lm_pvalue >= self.alpha),
        )

    @property
    def test_result(self) -> pd.DataFrame:
        """
        Example output structure
        ------------------------
        ┌────────────────┬───────────┬────┬──────────┬────────┐
        │ Test           │ Statistic │ DF │ P-value  │ Passed │
        ├────────────────┼───────────┼────┼──────────┼────────┤
        │ Breusch–Pagan  │ 2.31      │ 3  │ 0.51     │ True   │
        └────────────────┴───────────┴────┴──────────┴────────┘
        """
        res = self.result
        df = pd.DataFrame([{
            'Test': 'Breusch–Pagan',
            'Statistic': res.statistic,
            'DF': res.df,
            'P-value': res.pvalue,
            'Passed': res.homoscedastic,
        }]).set_index('Test')
        return df

    @property
    def test_filter(self) -> bool:
        return self.result.homoscedastic


def run_het_test(model: Any, alpha: float = DEFAULT_ALPHA) -> HetResult:
    """
    Breusch–Pagan test on a fitted OLS model's residuals and design matrix.
    """
    return HetTest(
        resids=model.resid,
        exog=model.exog,
        alpha=alpha,
        response=model.response,
    ).result

# ----------------------------------------------------------------------------
# Significance filters
# ----------------------------------------------------------------------------

def filter_significant_models(
    summaries: Iterable[ModelSummary],
    alpha: float = DEFAULT_ALPHA
) -> List[ModelSummary]:
    """
    Keep models whose overall F-test p-value is <= alpha, ranked by
    descending adjusted R².

    Ties keep their input order. An empty result is a valid outcome.
    """
    passed = [s for s in summaries if FTest(s.fvalue, s.f_pvalue, alpha=alpha).test_filter]
    # sorted() is stable, so equal adjusted R² keep input order
    return sorted(passed, key=lambda s: -s.rsquared_adj)


def filter_significant_coefs(
    coefs: Union[ModelSummary, Sequence[CoefficientRecord]],
    alpha: float = DEFAULT_ALPHA
) -> Tuple[CoefficientRecord, ...]:
    """
    Keep coefficient records whose p-value is <= alpha, in their original order.

    Accepts a ModelSummary or an already filtered sequence of records, so
    re-filtering is a no-op.
    """
    records = coefs.coefficients if isinstance(coefs, ModelSummary) else tuple(coefs)
    if not records:
        return ()
    pvalues = pd.Series([rec.pvalue for rec in records], index=[rec.name for rec in records])
    keep = set(CoefTest(pvalues, alpha=alpha).significant)
    return tuple(rec for rec in records if rec.name in keep)


__all__ = [
    'ModelTestBase', 'FitMeasure', 'ErrorMeasure', 'FTest', 'CoefTest',
    'HetTest', 'HetResult', 'run_het_test',
    'filter_significant_models', 'filter_significant_coefs',
]
