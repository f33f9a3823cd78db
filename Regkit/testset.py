# =============================================================================
# module: testset.py
# Purpose: Aggregate model tests and build the default OLS test set.
# Key Types/Classes: TestSet
# Key Functions: default_ols_testset_func
# Dependencies: pandas, typing, .test module classes
#
# A testset function maps aliases to tests for one fitted model. Tests with
# category 'measure' (FitMeasure, ErrorMeasure) feed TestSet.perf_measures and
# should come first so the performance row reads R², Adj R², ME, MAE, RMSE.
# =============================================================================

from typing import TYPE_CHECKING, Any, Dict, List, Tuple

import pandas as pd

from .config import DEFAULT_ALPHA
from .test import CoefTest, ErrorMeasure, FitMeasure, FTest, HetTest, ModelTestBase

if TYPE_CHECKING:
    from .model import ModelBase


# ----------------------------------------------------------------------------
# TestSet class
# ----------------------------------------------------------------------------

class TestSet:
    """
    Ordered collection of the tests attached to one fitted model.

    Parameters
    ----------
    tests : dict
        Alias to test; each alias replaces the test's own and the order is kept.
    """
    __test__ = False  # not a pytest test class

    def __init__(
        self,
        tests: Dict[str, ModelTestBase]
    ):
        for alias, test_obj in tests.items():
            test_obj.alias = alias
        self.tests: List[ModelTestBase] = list(tests.values())

    def __getitem__(self, name: str) -> ModelTestBase:
        for t in self.tests:
            if t.name == name:
                return t
        raise KeyError(name)

    @property
    def all_test_results(self) -> Dict[str, Any]:
        """
        Return the test_result for every test in this set, keyed by the
        test's display name, including both active and inactive tests.
        """
        return {t.name: t.test_result for t in self.tests}

    @property
    def filter_test_info(self) -> Dict[str, str]:
        """
        Description of each active test (filter_on=True), keyed by name.
        """
        return {
            t.name: getattr(t, 'filter_mode_desc', '')
            for t in self.tests if t.filter_on
        }

    @property
    def perf_measures(self) -> pd.Series:
        """
        Flatten every 'measure' category test into one Series of metrics.
        """
        parts = []
        for t in self.tests:
            if getattr(t, 'category', None) == 'measure':
                parts.append(t.test_result['Value'])
        if not parts:
            return pd.Series(dtype=float)
        return pd.concat(parts)

    def filter_pass(
        self,
        fast_filter: bool = False
    ) -> Tuple[bool, List[str]]:
        """
        Evaluate the filtering tests (filter_on=True).

        Returns
        -------
        (passed, failed_names)

        Parameters
        ----------
        fast_filter : bool, default False
            Return as soon as one filtering test fails.
        """
        failed = []
        for t in self.tests:
            if not t.filter_on:
                continue
            if not t.test_filter:
                failed.append(t.name)
                if fast_filter:
                    return False, failed
        return len(failed) == 0, failed

    def print_test_info(self) -> None:
        """
        Print filtering tests with their description, then the reporting-only tests.
        """
        print("Filtering Tests:")
        for name, desc in self.filter_test_info.items():
            print(f"- {name} | desc: {desc}")

        inactive = [t for t in self.tests if not t.filter_on]
        if inactive:
            print("\nNo-Filtering Tests:")
            for test in inactive:
                print(f"- {test.name}")


def default_ols_testset_func(
    mdl: 'ModelBase',
    alpha_model: float = DEFAULT_ALPHA,
    alpha_coef: float = DEFAULT_ALPHA,
    alpha_het: float = DEFAULT_ALPHA
) -> Dict[str, ModelTestBase]:
    """
    Pre-defined TestSet for OLS models, each test at its own significance level:
    - Fit and error measures (reporting only)
    - Overall F-test (filtering)
    - Individual coefficient significance (reporting only; the pipeline
      subsets coefficients rather than rejecting the model)
    - Breusch–Pagan heteroscedasticity (reporting only)
    """
    tests: Dict[str, ModelTestBase] = {}

    tests['Fit Measures'] = FitMeasure(
        actual=mdl.y,
        predicted=mdl.y_fitted_in,
        n_features=len(mdl.params) - 1  # subtract intercept
    )
    tests['Error Measures'] = ErrorMeasure(
        actual=mdl.y,
        predicted=mdl.y_fitted_in
    )
    tests['Model F-test'] = FTest(
        fvalue=mdl.fvalue,
        f_pvalue=mdl.f_pvalue,
        alpha=alpha_model
    )
    tests['Coefficient Significance'] = CoefTest(
        pvalues=mdl.pvalues,
        alpha=alpha_coef,
        filter_on=False
    )
    tests['Residual Heteroscedasticity'] = HetTest(
        resids=mdl.resid,
        exog=mdl.exog,
        alpha=alpha_het,
        response=mdl.response,
        filter_on=False
    )
    return tests
