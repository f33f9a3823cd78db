import unittest
import numpy as np
import pandas as pd
import os
import sys

# Ensure the repository root is in sys.path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from Regkit.report import CoefficientRecord, ModelSummary
from Regkit.test import (
    CoefTest,
    ErrorMeasure,
    FitMeasure,
    FTest,
    filter_significant_coefs,
    filter_significant_models,
)
from Regkit.testset import TestSet


def make_summary(response, rsquared_adj, f_pvalue, pvalues=(0.01, 0.02, 0.5)):
    names = ('const', 'A', 'B')
    coefs = tuple(
        CoefficientRecord(name, 1.0, 0.1, 10.0, p, is_intercept=(name == 'const'))
        for name, p in zip(names, pvalues)
    )
    return ModelSummary(
        response=response,
        predictors=('A', 'B'),
        nobs=50,
        df_model=2.0,
        df_resid=47.0,
        rsquared=rsquared_adj + 0.01,
        rsquared_adj=rsquared_adj,
        fvalue=10.0,
        f_pvalue=f_pvalue,
        coefficients=coefs,
    )


class TestModelFilter(unittest.TestCase):
    def setUp(self):
        self.summaries = [
            make_summary('Y1', 0.40, 0.001),
            make_summary('Y2', 0.90, 0.20),
            make_summary('Y3', 0.70, 0.05),
            make_summary('Y4', 0.40, 0.0001),
            make_summary('Y5', 0.80, float('nan')),
        ]

    def test_keeps_significant_and_ranks_by_adj_r2(self):
        out = filter_significant_models(self.summaries)
        self.assertEqual([s.response for s in out], ['Y3', 'Y1', 'Y4'])

    def test_threshold_is_inclusive(self):
        out = filter_significant_models([make_summary('Y', 0.5, 0.05)], alpha=0.05)
        self.assertEqual(len(out), 1)

    def test_ties_keep_input_order(self):
        out = filter_significant_models(list(reversed(self.summaries)))
        self.assertEqual([s.response for s in out], ['Y3', 'Y4', 'Y1'])

    def test_empty_result_is_valid(self):
        self.assertEqual(filter_significant_models([make_summary('Y', 0.9, 0.6)]), [])
        self.assertEqual(filter_significant_models([]), [])

    def test_soundness_and_completeness(self):
        base = filter_significant_models(self.summaries)
        with_bad = filter_significant_models(self.summaries + [make_summary('Y6', 0.99, 0.5)])
        self.assertEqual(base, with_bad)

        without_y1 = filter_significant_models([s for s in self.summaries if s.response != 'Y1'])
        self.assertNotIn('Y1', [s.response for s in without_y1])
        self.assertEqual(len(without_y1), len(base) - 1)


class TestCoefFilter(unittest.TestCase):
    def setUp(self):
        self.summary = make_summary('Y', 0.5, 0.01, pvalues=(0.2, 0.001, 0.05))

    def test_keeps_order_and_drops_insignificant_intercept(self):
        out = filter_significant_coefs(self.summary)
        self.assertEqual([r.name for r in out], ['A', 'B'])

    def test_keeps_significant_intercept(self):
        summary = make_summary('Y', 0.5, 0.01, pvalues=(0.001, 0.3, 0.02))
        out = filter_significant_coefs(summary)
        self.assertEqual([r.name for r in out], ['const', 'B'])
        self.assertTrue(out[0].is_intercept)

    def test_idempotent_and_subset(self):
        once = filter_significant_coefs(self.summary)
        twice = filter_significant_coefs(once)
        self.assertEqual(once, twice)
        self.assertTrue(set(r.name for r in once) <= set(self.summary.coef_names))

    def test_stricter_alpha(self):
        out = filter_significant_coefs(self.summary, alpha=0.01)
        self.assertEqual([r.name for r in out], ['A'])

    def test_empty_input(self):
        self.assertEqual(filter_significant_coefs(()), ())


class TestModelTests(unittest.TestCase):
    def test_ftest(self):
        self.assertTrue(FTest(12.0, 0.001).test_filter)
        self.assertFalse(FTest(0.5, 0.6).test_filter)
        self.assertFalse(FTest(float('nan'), float('nan')).test_filter)
        self.assertEqual(FTest(12.0, 0.001, alias='F').test_result.name, 'F')

    def test_coef_test(self):
        pvalues = pd.Series({'const': 0.001, 'A': 0.5})
        test = CoefTest(pvalues, alpha=0.05)
        self.assertEqual(test.significant, ['const'])
        self.assertFalse(test.test_filter)
        self.assertEqual(list(test.test_result['Passed']), [True, False])
        self.assertTrue(CoefTest(pvalues, alpha=0.6).test_filter)

    def test_fit_and_error_measures(self):
        actual = pd.Series([1.0, 2.0, 3.0, 4.0, 5.0])
        predicted = pd.Series([1.0, 2.0, 3.0, 4.0, 7.0])
        fit = FitMeasure(actual, predicted, n_features=1).test_result
        self.assertAlmostEqual(fit.loc['R²', 'Value'], 1 - 4.0 / 10.0)
        self.assertAlmostEqual(fit.loc['Adj R²', 'Value'], 1 - 0.4 * 4 / 3)
        err = ErrorMeasure(actual, predicted).test_result
        self.assertAlmostEqual(err.loc['ME', 'Value'], 2.0)
        self.assertAlmostEqual(err.loc['MAE', 'Value'], 0.4)
        self.assertAlmostEqual(err.loc['RMSE', 'Value'], np.sqrt(0.8))

    def test_testset_filter_pass(self):
        ts = TestSet({
            'Model F-test': FTest(12.0, 0.001),
            'Loose F-test': FTest(1.0, 0.4),
            'Coefficient Significance': CoefTest(pd.Series({'A': 0.9}), filter_on=False),
        })
        self.assertEqual([t.name for t in ts.tests], ['Model F-test', 'Loose F-test', 'Coefficient Significance'])
        passed, failed = ts.filter_pass()
        self.assertFalse(passed)
        self.assertEqual(failed, ['Loose F-test'])
        self.assertEqual(set(ts.filter_test_info), {'Model F-test', 'Loose F-test'})
        self.assertEqual(set(ts.all_test_results), {'Model F-test', 'Loose F-test', 'Coefficient Significance'})
        self.assertTrue(ts.perf_measures.empty)
        with self.assertRaises(KeyError):
            ts['missing']


if __name__ == '__main__':
    unittest.main()
