# =============================================================================
# module: sensitivity.py
# Purpose: Elasticity and relative-error (delta) metrics for homoscedastic models
# Key Types/Classes: SensitivityRecord, SensitivityTest
# Key Functions: compute_elasticity, compute_delta, run_sensitivity
# Dependencies: pandas, numpy, dataclasses, typing, .errors, .test.HetResult
# =============================================================================
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from .config import DEFAULT_ALPHA, INTERCEPT_NAME, SENSITIVITY_SCOPES
from .errors import DivisionByZeroError
from .test import HetResult

logger = logging.getLogger(__name__)

# Record status labels
STATUS_OK = 'ok'
STATUS_IMPRECISE = 'imprecise'
STATUS_ZERO_COEF = 'zero_coefficient'
STATUS_ZERO_MEAN = 'zero_mean_prediction'

# A delta at or above 100% means the standard error is at least the coefficient
IMPRECISE_DELTA = 100.0

SENSITIVITY_COLUMNS = ['Response', 'Coefficient', 'Coef', 'SE', 'Mean', 'Elasticity',
                       'Delta', 'Significant', 'Status']


@dataclass(frozen=True)
class SensitivityRecord:
    """
    Practical-impact metrics for one coefficient of one homoscedastic model.

    Attributes
    ----------
    elasticity : float
        ``coef * mean(x) / mean(y_hat)``; the intercept uses mean(x) = 1.
    delta : float
        ``100 * se / |coef|``; NaN when the coefficient is exactly zero.
    status : str
        'ok', 'imprecise' (delta >= 100 or non-finite), 'zero_coefficient',
        or 'zero_mean_prediction' (elasticity undefined).
    """
    response: str
    coefficient: str
    coef: float
    se: float
    mean: float
    elasticity: float
    delta: float
    significant: bool
    status: str = STATUS_OK


def compute_elasticity(coef: float, mean_x: float, mean_yhat: float) -> float:
    """
    Elasticity of the predicted outcome with respect to one predictor, at means.

    A zero coefficient gives exactly 0.0. A zero mean prediction gives NaN.
    """
    if coef == 0:
        return 0.0
    if mean_yhat == 0:
        return float('nan')
    return float(coef * mean_x / mean_yhat)


def compute_delta(
    coef: float,
    se: float,
    response: Optional[str] = None,
    coefficient: Optional[str] = None
) -> float:
    """
    Relative standard error of a coefficient in percent: ``100 * se / |coef|``.

    Raises
    ------
    DivisionByZeroError
        If ``coef`` is exactly zero.
    """
    if coef == 0:
        raise DivisionByZeroError(
            f"Delta undefined for zero coefficient '{coefficient}' in model '{response}'.",
            response=response, coefficient=coefficient
        )
    with np.errstate(over='ignore'):
        return float(100.0 * se / abs(coef))


class SensitivityTest:
    """
    Per-coefficient elasticity and delta for one fitted, homoscedastic model.

    Parameters
    ----------
    model : OLS
        Fitted model exposing ``params``, ``bse``, ``pvalues``, ``exog`` and
        ``y_fitted_in``.
    scope : {'all', 'significant'}, default 'significant'
        'all' scores every coefficient; 'significant' only those with
        p-value <= alpha. The intercept is scored like any other
        coefficient, so it is included under 'significant' whenever its own
        p-value passes.
    alpha : float, default 0.05
        Threshold used to set each record's ``significant`` flag.

    Example
    -------
    >>> sens = SensitivityTest(OLS('Y', dm=dm).fit())
    >>> sens.test_result
       Response Coefficient    Coef  ...  Delta  Significant Status
    0         Y       const  5.0131  ...   1.92         True     ok
    1         Y           A  1.9954  ...   1.61         True     ok
    """

    def __init__(
        self,
        model: Any,
        scope: str = 'significant',
        alpha: float = DEFAULT_ALPHA
    ):
        if not getattr(model, 'is_fitted', False):
            raise ValueError("model must be fitted before sensitivity testing")
        if scope not in SENSITIVITY_SCOPES:
            raise ValueError(f"scope must be one of {SENSITIVITY_SCOPES}")
        self.model = model
        self.response = model.response
        self.scope = scope
        self.alpha = alpha
        self._records: Optional[Tuple[SensitivityRecord, ...]] = None

    @property
    def param_names(self) -> List[str]:
        """Coefficient names covered by this test, in design order."""
        names = [str(n) for n in self.model.params.index]
        if self.scope == 'significant':
            names = [n for n in names if self.model.pvalues[n] <= self.alpha]
        return names

    @property
    def X_mean(self) -> pd.Series:
        """Means of the design columns; the intercept column has mean 1."""
        return self.model.exog.mean()

    @property
    def records(self) -> Tuple[SensitivityRecord, ...]:
        if self._records is None:
            self._records = tuple(self._score(name) for name in self.param_names)
        return self._records

    def _score(self, name: str) -> SensitivityRecord:
        coef = float(self.model.params[name])
        se = float(self.model.bse[name])
        mean_x = 1.0 if name == INTERCEPT_NAME else float(self.X_mean[name])
        mean_yhat = float(np.mean(self.model.y_fitted_in))
        significant = bool(self.model.pvalues[name] <= self.alpha)

        elasticity = compute_elasticity(coef, mean_x, mean_yhat)
        status = STATUS_OK
        try:
            delta = compute_delta(coef, se, response=self.response, coefficient=name)
        except DivisionByZeroError as exc:
            logger.warning("%s; recording NaN delta", exc)
            delta = float('nan')
            status = STATUS_ZERO_COEF
        else:
            if not np.isfinite(delta) or delta >= IMPRECISE_DELTA:
                status = STATUS_IMPRECISE
        if status == STATUS_OK and not np.isfinite(elasticity):
            status = STATUS_ZERO_MEAN

        return SensitivityRecord(
            response=self.response,
            coefficient=name,
            coef=coef,
            se=se,
            mean=mean_x,
            elasticity=elasticity,
            delta=delta,
            significant=significant,
            status=status,
        )

    @property
    def test_result(self) -> pd.DataFrame:
        return records_to_frame({self.response: self.records})


def run_sensitivity(
    models: Mapping[str, Any],
    het_results: Mapping[str, HetResult],
    scope: str = 'significant',
    alpha: float = DEFAULT_ALPHA
) -> Dict[str, Tuple[SensitivityRecord, ...]]:
    """
    Sensitivity records for every homoscedastic model, keyed by response.

    Models without a HetResult, or whose HetResult is not homoscedastic, are
    skipped. Output order follows ``models``.
    """
    out: Dict[str, Tuple[SensitivityRecord, ...]] = {}
    for response, model in models.items():
        het = het_results.get(response)
        if het is None or not het.homoscedastic:
            continue
        out[response] = SensitivityTest(model, scope=scope, alpha=alpha).records
    return out


def records_to_frame(
    table: Mapping[str, Iterable[SensitivityRecord]]
) -> pd.DataFrame:
    """Long DataFrame of sensitivity records keyed by response."""
    rows = [
        {
            'Response': response,
            'Coefficient': rec.coefficient,
            'Coef': rec.coef,
            'SE': rec.se,
            'Mean': rec.mean,
            'Elasticity': rec.elasticity,
            'Delta': rec.delta,
            'Significant': rec.significant,
            'Status': rec.status,
        }
        for response, records in table.items()
        for rec in records
    ]
    return pd.DataFrame(rows, columns=SENSITIVITY_COLUMNS)
