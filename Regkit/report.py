# =============================================================================
# module: report.py
# Purpose: Flatten fitted models into summary records and tabular reports
# Key Types/Classes: CoefficientRecord, ModelSummary, ModelReportBase,
#                    OLS_ModelReport, ReportSet
# Key Functions: extract_summary, summaries_to_frame, coefficients_to_frame
# Dependencies: pandas, dataclasses, typing
# =============================================================================
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Tuple

import pandas as pd
from pandas import DataFrame

from .config import INTERCEPT_NAME


@dataclass(frozen=True)
class CoefficientRecord:
    """
    Inference for one design column of one fitted model.

    Attributes
    ----------
    name : str
        Column name; the intercept is labelled ``const``.
    coef : float
        Point estimate.
    se : float
        Standard error.
    tvalue : float
        coef / se.
    pvalue : float
        Two-sided p-value from Student's t with the model's residual df.
    is_intercept : bool
        True only for the prepended column of ones.
    """
    name: str
    coef: float
    se: float
    tvalue: float
    pvalue: float
    is_intercept: bool = False


@dataclass(frozen=True)
class ModelSummary:
    """
    Model-level statistics plus the ordered coefficient records of one fit.

    Coefficients are ordered intercept first, then predictors in declared
    order. Lookups go through ``coefficient(name)``; downstream stages never
    rely on position.
    """
    response: str
    predictors: Tuple[str, ...]
    nobs: int
    df_model: float
    df_resid: float
    rsquared: float
    rsquared_adj: float
    fvalue: float
    f_pvalue: float
    coefficients: Tuple[CoefficientRecord, ...]

    @property
    def coef_names(self) -> Tuple[str, ...]:
        return tuple(rec.name for rec in self.coefficients)

    def coefficient(self, name: str) -> CoefficientRecord:
        for rec in self.coefficients:
            if rec.name == name:
                return rec
        raise KeyError(f"No coefficient '{name}' in model for '{self.response}'.")

    def to_series(self) -> pd.Series:
        """Model-level statistics as a Series named after the response."""
        return pd.Series({
            'nobs': self.nobs,
            'df_model': self.df_model,
            'df_resid': self.df_resid,
            'R²': self.rsquared,
            'Adj R²': self.rsquared_adj,
            'F': self.fvalue,
            'F p-value': self.f_pvalue,
        }, name=self.response)


def extract_summary(model: Any) -> ModelSummary:
    """
    Normalize a fitted OLS model into a ModelSummary.

    Every coefficient is read by name from the model's Series, so the
    record order mirrors the design order and each value stays attached to
    its own label.
    """
    if not getattr(model, 'is_fitted', False):
        raise RuntimeError("Model has not been fitted yet.")

    records = tuple(
        CoefficientRecord(
            name=str(name),
            coef=float(model.params[name]),
            se=float(model.bse[name]),
            tvalue=float(model.tvalues[name]),
            pvalue=float(model.pvalues[name]),
            is_intercept=(name == INTERCEPT_NAME),
        )
        for name in model.params.index
    )
    return ModelSummary(
        response=model.response,
        predictors=tuple(model.predictors),
        nobs=int(model.nobs),
        df_model=float(model.df_model),
        df_resid=float(model.df_resid),
        rsquared=float(model.rsquared),
        rsquared_adj=float(model.rsquared_adj),
        fvalue=float(model.fvalue),
        f_pvalue=float(model.f_pvalue),
        coefficients=records,
    )


def summaries_to_frame(summaries: Iterable[ModelSummary]) -> DataFrame:
    """One row of model-level statistics per summary, indexed by response."""
    rows = [s.to_series() for s in summaries]
    if rows:
        df = pd.DataFrame(rows)
    else:
        df = pd.DataFrame(columns=['nobs', 'df_model', 'df_resid', 'R²', 'Adj R²', 'F', 'F p-value'])
    df.index.name = 'Response'
    return df


def coefficients_to_frame(
    coefs: Mapping[str, Iterable[CoefficientRecord]]
) -> DataFrame:
    """
    Long table of coefficient records keyed by response.

    Parameters
    ----------
    coefs : mapping
        Response name to its coefficient records (full or filtered).
    """
    rows = []
    for response, records in coefs.items():
        for rec in records:
            rows.append({
                'Response': response,
                'Coefficient': rec.name,
                'Coef': rec.coef,
                'SE': rec.se,
                'T-value': rec.tvalue,
                'P-value': rec.pvalue,
            })
    return pd.DataFrame(rows, columns=['Response', 'Coefficient', 'Coef', 'SE', 'T-value', 'P-value'])


class ModelReportBase(ABC):
    """
    Abstract base for model-specific reports, initialized with a fitted model.

    Parameters
    ----------
    model : ModelBase
        Fitted model exposing ``testset`` and fit attributes.
    """
    def __init__(self, model: Any):
        self.model = model

    def show_test_tbl(self) -> None:
        """
        Print all test results from the model's TestSet in a reader-friendly format.
        """
        if self.model.testset is None:
            print("No tests loaded.")
            return
        results = self.model.testset.all_test_results
        for test_name, result in results.items():
            print(f"--- {test_name} ---")
            if hasattr(result, 'to_string'):
                print(result.to_string())
            else:
                print(result)
            print()

    def show_perf_tbl(self) -> DataFrame:
        """
        Return fit and error measures as a single-row DataFrame.
        """
        if self.model.testset is None:
            return pd.DataFrame()
        perf = self.model.testset.perf_measures
        if perf.empty:
            return pd.DataFrame()
        return pd.DataFrame([perf])

    @abstractmethod
    def show_params_tbl(self) -> DataFrame:
        """Return parameter measures as a DataFrame."""
        ...


class OLS_ModelReport(ModelReportBase):
    """
    Report for OLS models: displays performance, tests, and parameter tables.
    """

    def show_params_tbl(self) -> DataFrame:
        """
        Parameter table with columns: Variable, Coef, SE, T-value, Pvalue, VIF,
        and the two interval bounds (CI_2_5, CI_97_5 at the default level).
        """
        df = self.model.param_measures
        if df.empty:
            return pd.DataFrame()

        column_mapping = {
            'variable': 'Variable',
            'coef': 'Coef',
            'se': 'SE',
            'tvalue': 'T-value',
            'pvalue': 'Pvalue',
            'vif': 'VIF',
        }
        df = df.rename(columns=column_mapping)
        display_cols = list(column_mapping.values()) + [c for c in df.columns if c.startswith('CI_')]
        return df[[col for col in display_cols if col in df.columns]]

    def show_report(self, show_tests: bool = False) -> None:
        """
        Print performance measures, the parameter table, and optionally every test.
        """
        print(f'=== {self.model.response}: Performance ===')
        print(self.show_perf_tbl().to_string(index=False, float_format='{:.4f}'.format))
        print(f'\n=== {self.model.response}: Parameters ===')
        print(self.show_params_tbl().to_string(index=False, float_format='{:.4f}'.format))
        if show_tests:
            print(f'\n=== {self.model.response}: Tests ===')
            self.show_test_tbl()


class ReportSet:
    """
    Aggregates multiple ModelReportBase instances into consolidated tables.

    :param reports: dict mapping response name to ModelReportBase.
    """
    def __init__(self, reports: Dict[str, ModelReportBase]):
        if not isinstance(reports, dict) or not all(isinstance(r, ModelReportBase) for r in reports.values()):
            raise TypeError("`reports` must be a dict mapping response to ModelReportBase instances.")
        self._reports = reports

    def show_perf_set(self) -> pd.DataFrame:
        """
        Each model's performance as one row, indexed by response.
        """
        dfs = []
        for response, rpt in self._reports.items():
            df = rpt.show_perf_tbl().copy()
            df.index = [response] * len(df)
            dfs.append(df)
        if dfs:
            result = pd.concat(dfs, axis=0)
            result.index.name = 'Response'
            return result
        return pd.DataFrame()

    def show_params_set(self) -> pd.DataFrame:
        """
        Stacked parameter tables with a leading Response column.
        """
        dfs = []
        for response, rpt in self._reports.items():
            df = rpt.show_params_tbl().copy()
            df.insert(0, 'Response', response)
            dfs.append(df)
        if dfs:
            return pd.concat(dfs, axis=0, ignore_index=True)
        return pd.DataFrame()

    def show_report(self, show_params: bool = True) -> None:
        print("=== Performance ===")
        print(self.show_perf_set().to_string(float_format='{:.4f}'.format))
        if show_params:
            for response, report in self._reports.items():
                print(f"\n=== Model: {response}: Parameters ===")
                print(report.show_params_tbl().to_string(index=False, float_format='{:.4f}'.format))
