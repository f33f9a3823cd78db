# =============================================================================
# module: segment.py
# Purpose: Fit one OLS model per response and run the significance, equation,
#          heteroscedasticity and sensitivity stages over the batch.
# Key Types/Classes: Segment, SegmentResult
# Key Functions: fit_models, run, export, analyze_errors
# Dependencies: concurrent.futures, logging, collections, numpy, pandas, tqdm,
#               internal modules
# =============================================================================
import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Type, Union

import numpy as np
import pandas as pd
from tqdm import tqdm

from .config import AnalysisConfig
from .data import DataManager
from .equation import render_equation
from .errors import RegkitError
from .export import ExportFormatHandler, ExportManager
from .model import ModelBase, OLS
from .report import CoefficientRecord, ModelSummary, ReportSet, extract_summary
from .sensitivity import SensitivityRecord, run_sensitivity
from .test import HetResult, filter_significant_coefs, filter_significant_models, run_het_test
from .testset import default_ols_testset_func

LOGGER = logging.getLogger(__name__)

# Failures that mark a single response as failed without stopping the batch
FIT_ERRORS = (RegkitError, ValueError, np.linalg.LinAlgError)


@dataclass(frozen=True)
class SegmentResult:
    """
    Everything produced by one Segment run.

    Every mapping is keyed by response and ordered as the responses were
    declared; ``significant_models`` is ranked by descending adjusted R².

    Attributes
    ----------
    responses : tuple of str
        Declared responses, including failed ones.
    models : dict
        Fitted models for responses whose fit succeeded.
    summaries : dict
        ModelSummary per fitted response.
    significant_models : list of ModelSummary
        Models passing the overall F-test.
    significant_coefs : dict
        Significant coefficient records per fitted model.
    equations : dict
        Rendered equation per fitted model.
    het_results : dict
        Breusch–Pagan result per fitted model.
    sensitivity : dict
        Sensitivity records per homoscedastic model.
    errors : dict
        ``(error_type, message)`` per failed response.
    """
    responses: Tuple[str, ...]
    models: Dict[str, ModelBase] = field(default_factory=dict)
    summaries: Dict[str, ModelSummary] = field(default_factory=dict)
    significant_models: List[ModelSummary] = field(default_factory=list)
    significant_coefs: Dict[str, Tuple[CoefficientRecord, ...]] = field(default_factory=dict)
    equations: Dict[str, str] = field(default_factory=dict)
    het_results: Dict[str, HetResult] = field(default_factory=dict)
    sensitivity: Dict[str, Tuple[SensitivityRecord, ...]] = field(default_factory=dict)
    errors: Dict[str, Tuple[str, str]] = field(default_factory=dict)

    @property
    def homoscedastic(self) -> List[str]:
        """Responses whose residuals passed Breusch–Pagan."""
        return [r for r, het in self.het_results.items() if het.homoscedastic]


# ----------------------------------------------------------------------------
# Segment class
# ----------------------------------------------------------------------------

class Segment:
    """
    Manages the batch of per-response OLS models sharing one predictor set.

    Parameters
    ----------
    dm : DataManager
        Validated data with declared predictors and responses.
    config : AnalysisConfig, optional
        Thresholds and run options. Defaults to AnalysisConfig() with the
        predictors and responses of ``dm``.
    model_cls : Type[ModelBase], default OLS
        ModelBase subclass used for every response.

    Examples
    --------
    >>> seg = Segment(DataManager(df, ['A', 'B', 'C'], ['Y', 'Z']))
    >>> result = seg.run()
    >>> result.equations['Y']
    'Y = 5.0131 + 1.9954*A - 1.0211*B'
    """

    def __init__(
        self,
        dm: DataManager,
        config: Optional[AnalysisConfig] = None,
        model_cls: Type[ModelBase] = OLS
    ):
        if not isinstance(dm, DataManager):
            raise TypeError("dm must be a DataManager instance.")
        if config is None:
            config = AnalysisConfig(predictors=dm.predictors, responses=dm.responses)
        self.dm = dm
        self.config = config
        self.model_cls = model_cls
        self.models: Dict[str, ModelBase] = {}
        self.error_log: Dict[str, Tuple[str, str]] = {}
        self.result: Optional[SegmentResult] = None

    @classmethod
    def from_config(
        cls,
        data: pd.DataFrame,
        config: AnalysisConfig,
        model_cls: Type[ModelBase] = OLS
    ) -> 'Segment':
        """Build the DataManager from ``config`` and wrap it in a Segment."""
        dm = DataManager(data, predictors=config.predictors, responses=config.responses)
        return cls(dm, config=config, model_cls=model_cls)

    @property
    def responses(self) -> Tuple[str, ...]:
        return self.dm.responses

    def _fit_one(self, response: str) -> Tuple[str, Optional[ModelBase], Optional[Tuple[str, str]]]:
        try:
            model = self.model_cls(
                response,
                predictors=self.dm.predictors,
                dm=self.dm,
                testset_func=partial(
                    default_ols_testset_func,
                    alpha_model=self.config.alpha_model,
                    alpha_coef=self.config.alpha_coef,
                    alpha_het=self.config.alpha_het
                )
            ).fit()
        except FIT_ERRORS as e:
            LOGGER.warning("Fit failed for %s: %s: %s", response, type(e).__name__, e)
            return response, None, (type(e).__name__, str(e))
        return response, model, None

    def fit_models(self) -> Dict[str, ModelBase]:
        """
        Fit one model per declared response.

        A response whose fit raises is recorded in ``error_log`` and skipped;
        the remaining responses are unaffected. With ``n_jobs > 1`` fits run
        in a thread pool, and the returned mapping is still in declared order.

        Returns
        -------
        dict
            Response to fitted model, for successful fits only.
        """
        responses = list(self.responses)
        n_jobs = min(self.config.n_jobs, len(responses))

        if n_jobs > 1:
            with ThreadPoolExecutor(max_workers=n_jobs) as pool:
                outcomes = pool.map(self._fit_one, responses)
                outcomes = list(tqdm(outcomes, total=len(responses), desc='Fitting',
                                     disable=not self.config.show_progress))
        else:
            outcomes = [
                self._fit_one(r)
                for r in tqdm(responses, desc='Fitting', disable=not self.config.show_progress)
            ]

        by_response = {response: (model, err) for response, model, err in outcomes}
        self.models = {}
        self.error_log = {}
        for response in responses:
            model, err = by_response[response]
            if err is not None:
                self.error_log[response] = err
            else:
                self.models[response] = model
        return self.models

    def run(self) -> SegmentResult:
        """
        Fit every response and run the downstream stages.

        Every fitted model goes through summary extraction, the coefficient
        filter, equation rendering and Breusch–Pagan. The model filter only
        ranks; sensitivity covers the homoscedastic models.
        """
        cfg = self.config
        models = self.fit_models()

        summaries = {r: extract_summary(m) for r, m in models.items()}
        significant = filter_significant_models(summaries.values(), alpha=cfg.alpha_model)
        significant_coefs = {
            r: filter_significant_coefs(summaries[r], alpha=cfg.alpha_coef)
            for r in summaries
        }
        equations = {
            r: render_equation(r, significant_coefs[r], decimals=cfg.decimals)
            for r in summaries
        }
        het_results = {r: run_het_test(m, alpha=cfg.alpha_het) for r, m in models.items()}
        sensitivity = run_sensitivity(
            models,
            het_results,
            scope=cfg.sensitivity_scope,
            alpha=cfg.alpha_coef
        )

        self.result = SegmentResult(
            responses=tuple(self.responses),
            models=dict(models),
            summaries=summaries,
            significant_models=significant,
            significant_coefs=significant_coefs,
            equations=equations,
            het_results=het_results,
            sensitivity=sensitivity,
            errors=dict(self.error_log),
        )
        LOGGER.info(
            "Segment run: responses=%d, fitted=%d, significant=%d, homoscedastic=%d, errors=%d",
            len(self.responses), len(models), len(significant),
            len(sensitivity), len(self.error_log)
        )
        return self.result

    @property
    def report_set(self) -> ReportSet:
        """ReportSet over the fitted models, in declared order."""
        if not self.models:
            raise RuntimeError("No fitted models; call run() or fit_models() first.")
        return ReportSet({r: m.report for r, m in self.models.items()})

    def export(
        self,
        output_dir: Union[str, Path],
        format_handler: Optional[ExportFormatHandler] = None,
        content_types: Optional[Sequence[str]] = None
    ) -> List[Path]:
        """
        Write the artifacts of the last run into ``output_dir``.

        Runs the pipeline first if it has not been run yet.
        """
        if self.result is None:
            self.run()
        manager = ExportManager(
            format_handler=format_handler,
            content_types=set(content_types) if content_types else None
        )
        return manager.export(self.result, Path(output_dir))

    def analyze_errors(self) -> pd.DataFrame:
        """
        Summarize failed responses by error type.

        Returns
        -------
        pd.DataFrame
            Columns 'Error Type', 'Occurrence Count' and 'Responses',
            sorted by count descending.
        """
        counts = Counter(err_type for err_type, _ in self.error_log.values())
        rows = [
            {
                'Error Type': err_type,
                'Occurrence Count': count,
                'Responses': ', '.join(r for r, (t, _) in self.error_log.items() if t == err_type),
            }
            for err_type, count in counts.most_common()
        ]
        return pd.DataFrame(rows, columns=['Error Type', 'Occurrence Count', 'Responses'])

    def __repr__(self) -> str:
        return (f"Segment(model_cls={self.model_cls.__name__}, "
                f"responses={list(self.responses)}, fitted={len(self.models)})")
