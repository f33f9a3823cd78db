# =============================================================================
# module: data.py
# Purpose: Hold the numeric dataset and hand out complete-case model frames
# Key Types/Classes: DataManager
# Key Functions: model_frame
# Dependencies: pandas, numpy, typing
# =============================================================================
import logging
from typing import List, Sequence, Tuple

import numpy as np
import pandas as pd
from pandas.api.types import is_bool_dtype, is_numeric_dtype

from .equation import check_term_name

logger = logging.getLogger(__name__)

# ----------------------------------------------------------------------------
# DataManager class
# ----------------------------------------------------------------------------

class DataManager:
    """
    Read-only access to a numeric table partitioned into predictors and responses.

    The DataManager validates the table once on construction and then serves
    per-fit slices. Missing values are handled pairwise per model: a row is
    dropped only from the fits that use one of its missing columns.

    Parameters
    ----------
    data : pd.DataFrame
        Observations in rows, variables in columns. All used columns must
        already be numeric; no coercion is attempted.
    predictors : sequence of str
        Ordered predictor column names. The order is preserved in every model.
    responses : sequence of str
        Ordered response column names. Results are reported in this order.

    Raises
    ------
    ValueError
        If predictors or responses are empty, overlap, repeat a name, or a
        used column contains infinite values.
    KeyError
        If a named column is missing from ``data``.
    TypeError
        If a named column is not numeric.

    Examples
    --------
    >>> dm = DataManager(df, predictors=['A', 'B', 'C'], responses=['Y'])
    >>> X, y = dm.model_frame('Y')
    """

    def __init__(
        self,
        data: pd.DataFrame,
        predictors: Sequence[str],
        responses: Sequence[str]
    ):
        self.predictors: Tuple[str, ...] = tuple(predictors)
        self.responses: Tuple[str, ...] = tuple(responses)

        if not self.predictors:
            raise ValueError("At least one predictor is required.")
        if not self.responses:
            raise ValueError("At least one response is required.")
        for label, names in (('predictors', self.predictors), ('responses', self.responses)):
            if len(set(names)) != len(names):
                raise ValueError(f"Duplicate names in {label}: {list(names)}")
        for name in self.predictors:
            check_term_name(str(name))
        overlap = set(self.predictors) & set(self.responses)
        if overlap:
            raise ValueError(f"Columns cannot be both predictor and response: {sorted(overlap)}")

        used = list(self.predictors) + list(self.responses)
        missing = [c for c in used if c not in data.columns]
        if missing:
            raise KeyError(f"Columns not found in data: {missing}")

        self._validate_data(data[used])

        # Private copy so later edits to the caller's frame cannot leak in
        self._data = data[used].copy()

    @staticmethod
    def _validate_data(df: pd.DataFrame) -> None:
        """
        Validate that every column is numeric and free of infinite values.

        NaNs are allowed; they are excluded per fit.
        """
        non_numeric: List[str] = []
        inf_cols: List[str] = []

        for col in df.columns:
            s = df[col]
            if not is_numeric_dtype(s) or is_bool_dtype(s):
                non_numeric.append(col)
            elif not np.isfinite(s.dropna()).all():
                inf_cols.append(col)

        if non_numeric:
            raise TypeError(f"Columns must be numeric: {non_numeric}")
        if inf_cols:
            raise ValueError(f"Data validation error: infinite values in {inf_cols}")

    @property
    def data(self) -> pd.DataFrame:
        """Copy of the validated table (predictors then responses)."""
        return self._data.copy()

    @property
    def nobs(self) -> int:
        """Number of rows in the table, before any per-fit exclusion."""
        return len(self._data)

    def model_frame(
        self,
        response: str,
        predictors: Sequence[str] = None
    ) -> Tuple[pd.DataFrame, pd.Series]:
        """
        Return complete-case predictor matrix and response vector for one fit.

        Parameters
        ----------
        response : str
            Response column to model.
        predictors : sequence of str, optional
            Predictor subset in the desired order; defaults to all predictors.

        Returns
        -------
        X : pd.DataFrame
            Predictor columns restricted to rows with no missing value among
            the used columns.
        y : pd.Series
            Response values on the same rows.
        """
        if response not in self.responses:
            raise KeyError(f"'{response}' is not a declared response.")
        cols = list(self.predictors if predictors is None else predictors)
        unknown = [c for c in cols if c not in self.predictors]
        if unknown:
            raise KeyError(f"Not declared predictors: {unknown}")

        frame = self._data[cols + [response]].dropna(how='any')
        dropped = self.nobs - len(frame)
        if dropped:
            logger.debug("Response %s: dropped %d incomplete rows", response, dropped)
        return frame[cols].copy(), frame[response].copy()

    def __repr__(self) -> str:
        return (f"DataManager(nobs={self.nobs}, predictors={list(self.predictors)}, "
                f"responses={list(self.responses)})")
