import unittest
from unittest.mock import patch
import numpy as np
import pandas as pd
from scipy import stats
import os
import sys

# Ensure the repository root is in sys.path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from Regkit.model import OLS
from Regkit.test import HetResult, HetTest, run_het_test


def fit(y, X):
    return OLS('Y', X=X, y=pd.Series(y, index=X.index, name='Y')).fit()


class TestBreuschPagan(unittest.TestCase):
    def setUp(self):
        rng = np.random.default_rng(11)
        n = 400
        self.X = pd.DataFrame({
            'A': rng.uniform(1.0, 5.0, n),
            'B': rng.normal(size=n),
            'C': rng.normal(size=n),
        })
        self.z = rng.normal(size=n)

    def test_variance_growing_with_predictor_is_flagged(self):
        y = 5.0 + 2.0 * self.X['A'] - self.X['B'] + self.z * self.X['A'] ** 2
        res = run_het_test(fit(y, self.X))
        self.assertIsInstance(res, HetResult)
        self.assertEqual(res.response, 'Y')
        self.assertEqual(res.df, 3)
        self.assertGreater(res.statistic, 0.0)
        self.assertLess(res.pvalue, 1e-6)
        self.assertFalse(res.homoscedastic)
        self.assertIsNone(res.error)

    def test_constant_variance(self):
        y = 5.0 + 2.0 * self.X['A'] - self.X['B'] + 0.5 * self.z
        res = run_het_test(fit(y, self.X), alpha=1e-6)
        self.assertGreaterEqual(res.statistic, 0.0)
        self.assertTrue(0.0 <= res.pvalue <= 1.0)
        self.assertTrue(res.homoscedastic)

    def test_classification_threshold_is_inclusive(self):
        with patch('Regkit.test.het_breuschpagan', return_value=(3.0, 0.05, 1.0, 0.05)):
            res = HetTest(np.ones(10), np.ones((10, 2)), alpha=0.05).result
        self.assertTrue(res.homoscedastic)

    def test_numeric_failure_is_recorded(self):
        with patch('Regkit.test.het_breuschpagan', side_effect=np.linalg.LinAlgError('singular')):
            test = HetTest(np.ones(10), np.ones((10, 3)), response='Y')
            res = test.result
        self.assertTrue(np.isnan(res.statistic))
        self.assertTrue(np.isnan(res.pvalue))
        self.assertFalse(res.homoscedastic)
        self.assertEqual(res.df, 2)
        self.assertIn('singular', res.error)
        self.assertFalse(test.test_filter)

    def test_non_finite_statistic_is_a_failure(self):
        nan = float('nan')
        with patch('Regkit.test.het_breuschpagan', return_value=(nan, nan, nan, nan)):
            res = HetTest(np.ones(10), np.ones((10, 2)), response='Y').result
        self.assertFalse(res.homoscedastic)
        self.assertIn('FloatingPointError', res.error)

    def test_negative_rounding_noise_is_clipped(self):
        with patch('Regkit.test.het_breuschpagan', return_value=(-1e-13, 1.0, 0.0, 1.0)):
            res = HetTest(np.ones(10), np.ones((10, 2))).result
        self.assertEqual(res.statistic, 0.0)

    def test_result_is_cached(self):
        with patch('Regkit.test.het_breuschpagan', return_value=(1.0, 0.5, 1.0, 0.5)) as bp:
            test = HetTest(np.ones(10), np.ones((10, 2)))
            test.result
            test.test_result
            test.test_filter
        bp.assert_called_once()

    def test_result_table(self):
        y = 5.0 + 2.0 * self.X['A'] + 0.5 * self.z
        tbl = fit(y, self.X).testset['Residual Heteroscedasticity'].test_result
        self.assertEqual(list(tbl.columns), ['Statistic', 'DF', 'P-value', 'Passed'])
        self.assertEqual(tbl.index[0], 'Breusch–Pagan')


class TestBreuschPaganCalibration(unittest.TestCase):
    def test_pvalues_are_uniform_under_constant_variance(self):
        rng = np.random.default_rng(20240501)
        n, draws = 200, 200
        pvals = []
        for _ in range(draws):
            X = pd.DataFrame(rng.normal(size=(n, 3)), columns=['A', 'B', 'C'])
            y = 1.0 + X['A'] - 0.5 * X['B'] + rng.normal(size=n)
            mdl = OLS('Y', X=X, y=pd.Series(y, name='Y'), testset_func=None).fit()
            res = run_het_test(mdl)
            self.assertIsNone(res.error)
            pvals.append(res.pvalue)

        pvals = np.asarray(pvals)
        self.assertGreater(stats.kstest(pvals, 'uniform').pvalue, 1e-3)
        # Expected 10 rejections at 0.05; 1 and 25 are beyond 3 binomial sd
        rejections = int((pvals < 0.05).sum())
        self.assertGreaterEqual(rejections, 1)
        self.assertLessEqual(rejections, 25)


if __name__ == '__main__':
    unittest.main()
