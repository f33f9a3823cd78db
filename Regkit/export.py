"""
Export module for the Regkit multi-response regression toolkit.

Writes the results of a Segment run as flat, diff-friendly text artifacts.
Content extraction and file formats are kept apart:

- ExportFormatHandler: how a table or a text block is written to disk
- CSVFormatHandler / TextFormatHandler: concrete handlers
- ExportManager: decides which artifacts exist and their file names

All artifacts are overwritten on each export, rows follow the declared
response order, and floats use a fixed format, so unchanged inputs
reproduce byte-identical files.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Set
import logging
import math

import pandas as pd

from .report import coefficients_to_frame, summaries_to_frame
from .sensitivity import SensitivityRecord

# Module logger
logger = logging.getLogger(__name__)

FLOAT_FORMAT = '%.10g'

HET_COLUMNS = ['Response', 'Statistic', 'DF', 'P-value', 'Homoscedastic', 'Error']
ERROR_COLUMNS = ['Response', 'Error Type', 'Message']
SIGNIFICANT_COLUMNS = ['Rank', 'Response', 'Adj R²', 'R²', 'F', 'F p-value']

# Define available export content types as constants
EXPORT_CONTENT_TYPES = {
    'model_summary': 'Model-level statistics for every fitted response',
    'coefficients': 'Coefficient estimates and inference for every fitted response',
    'significant_models': 'Models passing the overall F-test, ranked by adjusted R²',
    'equations': 'Rendered equations from significant coefficients',
    'heteroscedasticity': 'Breusch–Pagan results per model',
    'sensitivity': 'Elasticity and delta blocks per homoscedastic model',
    'errors': 'Responses whose fit failed, with the error raised',
}

EXPORT_FILENAMES = {
    'model_summary': 'model_summary.csv',
    'coefficients': 'coefficients.csv',
    'significant_models': 'significant_models.csv',
    'equations': 'equations.txt',
    'heteroscedasticity': 'heteroscedasticity.csv',
    'sensitivity': 'sensitivity.txt',
    'errors': 'errors.csv',
}


def _fmt(value: float, width: int = 14) -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return f"{'nan':>{width}}"
    return f"{value:>{width}.6f}"


def format_sensitivity_text(
    table: Mapping[str, Iterable[SensitivityRecord]]
) -> str:
    """
    Render sensitivity records as one text block per model.

    Example
    -------
    ::

        [Y]
        coefficient              elasticity       delta(%)  status
        const                      0.512345       1.923456  ok
        A                          0.401234       1.612345  ok
    """
    blocks: List[str] = []
    for response, records in table.items():
        lines = [f"[{response}]",
                 f"{'coefficient':<20} {'elasticity':>14} {'delta(%)':>14}  status"]
        for rec in records:
            lines.append(
                f"{rec.coefficient:<20} {_fmt(rec.elasticity)} {_fmt(rec.delta)}  {rec.status}"
            )
        blocks.append('\n'.join(lines))
    return '\n\n'.join(blocks) + ('\n' if blocks else '')


class ExportFormatHandler(ABC):
    """Abstract base class for output format handlers."""

    @abstractmethod
    def save_dataframe(self, df: pd.DataFrame, filepath: Path) -> None:
        """Write a table to ``filepath``."""
        pass

    @abstractmethod
    def save_text(self, text: str, filepath: Path) -> None:
        """Write a text block to ``filepath``."""
        pass


class CSVFormatHandler(ExportFormatHandler):
    """Tables as CSV, text blocks as UTF-8 files with ``\\n`` line endings."""

    def __init__(self, float_format: str = FLOAT_FORMAT):
        self.float_format = float_format

    def save_dataframe(self, df: pd.DataFrame, filepath: Path) -> None:
        df.to_csv(filepath, index=False, float_format=self.float_format, lineterminator='\n')

    def save_text(self, text: str, filepath: Path) -> None:
        with open(filepath, 'w', encoding='utf-8', newline='\n') as f:
            f.write(text)


class TextFormatHandler(CSVFormatHandler):
    """Tables as fixed-width plain text instead of CSV."""

    def save_dataframe(self, df: pd.DataFrame, filepath: Path) -> None:
        text = df.to_string(index=False, float_format=lambda v: self.float_format % v)
        self.save_text(text + '\n', filepath)


class ExportManager:
    """
    Orchestrates writing every artifact of a Segment run.

    Parameters
    ----------
    format_handler : ExportFormatHandler, optional
        Defaults to CSVFormatHandler.
    content_types : set of str, optional
        Subset of EXPORT_CONTENT_TYPES to write; all by default.
    """

    def __init__(
        self,
        format_handler: Optional[ExportFormatHandler] = None,
        content_types: Optional[Set[str]] = None
    ):
        self.format_handler = format_handler or CSVFormatHandler()
        self.content_types = content_types or set(EXPORT_CONTENT_TYPES.keys())

        invalid_types = self.content_types - set(EXPORT_CONTENT_TYPES.keys())
        if invalid_types:
            raise ValueError(f"Invalid content types: {invalid_types}. Valid types are: {list(EXPORT_CONTENT_TYPES.keys())}")
        self._written_files: List[Path] = []

    def should_export(self, content_type: str) -> bool:
        return content_type in self.content_types

    def get_written_files(self) -> List[Path]:
        return list(self._written_files)

    # ------------------------------------------------------------------
    # Content builders
    # ------------------------------------------------------------------
    @staticmethod
    def significant_frame(result: Any) -> pd.DataFrame:
        rows = [
            {'Rank': i, 'Response': s.response, 'Adj R²': s.rsquared_adj, 'R²': s.rsquared,
             'F': s.fvalue, 'F p-value': s.f_pvalue}
            for i, s in enumerate(result.significant_models, start=1)
        ]
        return pd.DataFrame(rows, columns=SIGNIFICANT_COLUMNS)

    @staticmethod
    def het_frame(result: Any) -> pd.DataFrame:
        rows = [
            {'Response': r.response, 'Statistic': r.statistic, 'DF': r.df, 'P-value': r.pvalue,
             'Homoscedastic': r.homoscedastic, 'Error': r.error or ''}
            for r in result.het_results.values()
        ]
        return pd.DataFrame(rows, columns=HET_COLUMNS)

    @staticmethod
    def error_frame(result: Any) -> pd.DataFrame:
        rows = [
            {'Response': response, 'Error Type': err_type, 'Message': message}
            for response, (err_type, message) in result.errors.items()
        ]
        return pd.DataFrame(rows, columns=ERROR_COLUMNS)

    def _build(self, content_type: str, result: Any) -> Any:
        if content_type == 'model_summary':
            return summaries_to_frame(result.summaries.values()).reset_index()
        if content_type == 'coefficients':
            return coefficients_to_frame({r: s.coefficients for r, s in result.summaries.items()})
        if content_type == 'significant_models':
            return self.significant_frame(result)
        if content_type == 'equations':
            return ''.join(f"{eq}\n" for eq in result.equations.values())
        if content_type == 'heteroscedasticity':
            return self.het_frame(result)
        if content_type == 'sensitivity':
            return format_sensitivity_text(result.sensitivity)
        if content_type == 'errors':
            return self.error_frame(result)
        raise ValueError(f"Unknown content type: {content_type}")

    def export(self, result: Any, output_dir: Path) -> List[Path]:
        """
        Write the selected artifacts of ``result`` into ``output_dir``.

        Parameters
        ----------
        result : SegmentResult
            Outcome of Segment.run().
        output_dir : Path
            Created if missing.

        Returns
        -------
        list of Path
            Files written, in EXPORT_CONTENT_TYPES order.
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        written: List[Path] = []

        for content_type in EXPORT_CONTENT_TYPES:
            if not self.should_export(content_type):
                continue
            filepath = output_dir / EXPORT_FILENAMES[content_type]
            content = self._build(content_type, result)
            try:
                if isinstance(content, pd.DataFrame):
                    self.format_handler.save_dataframe(content, filepath)
                else:
                    self.format_handler.save_text(content, filepath)
            except OSError as e:
                logger.exception("Failed to write %s file to %s: %s", content_type, filepath, e)
                raise
            logger.info("Successfully wrote %s file: %s", content_type, filepath)
            written.append(filepath)

        self._written_files.extend(written)
        return written


__all__ = [
    'EXPORT_CONTENT_TYPES', 'EXPORT_FILENAMES', 'format_sensitivity_text',
    'ExportFormatHandler', 'CSVFormatHandler', 'TextFormatHandler', 'ExportManager',
]
