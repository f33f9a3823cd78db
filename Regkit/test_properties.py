"""
Property-based tests using Hypothesis for the estimator, filters, equation
renderer and Breusch–Pagan test.

These check invariants over generated inputs rather than fixed examples.
"""
import unittest
import numpy as np
import pandas as pd
import os
import sys

from hypothesis import given, settings
from hypothesis import strategies as st

# Ensure the repository root is in sys.path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from Regkit.equation import parse_equation, render_equation
from Regkit.model import OLS
from Regkit.report import CoefficientRecord, ModelSummary
from Regkit.test import filter_significant_coefs, filter_significant_models, run_het_test

pvalues = st.floats(min_value=0.0, max_value=1.0, allow_nan=False)
coef_values = st.floats(min_value=-1e4, max_value=1e4, allow_nan=False, allow_infinity=False)


def random_fit(seed, n, k):
    rng = np.random.default_rng(seed)
    X = pd.DataFrame(rng.normal(size=(n, k)), columns=[f'x{i}' for i in range(k)])
    y = pd.Series(rng.normal(size=n) + X.sum(axis=1) * rng.uniform(-1.0, 1.0), name='Y')
    return OLS('Y', X=X, y=y, testset_func=None).fit()


def summaries_from(pairs):
    return [
        ModelSummary(
            response=f'R{i}', predictors=('A',), nobs=30, df_model=1.0, df_resid=28.0,
            rsquared=adj, rsquared_adj=adj, fvalue=1.0, f_pvalue=fp, coefficients=(),
        )
        for i, (adj, fp) in enumerate(pairs)
    ]


class TestEstimatorProperties(unittest.TestCase):
    @settings(max_examples=30, deadline=None)
    @given(seed=st.integers(0, 2 ** 32 - 1), n=st.integers(8, 60), k=st.integers(1, 4))
    def test_adjusted_r2_never_exceeds_r2(self, seed, n, k):
        mdl = random_fit(seed, n, k)
        self.assertLessEqual(mdl.rsquared_adj, mdl.rsquared + 1e-12)
        self.assertEqual(mdl.df_resid, n - k - 1)

    @settings(max_examples=30, deadline=None)
    @given(seed=st.integers(0, 2 ** 32 - 1), n=st.integers(8, 60), k=st.integers(1, 4))
    def test_breusch_pagan_statistic_is_non_negative(self, seed, n, k):
        res = run_het_test(random_fit(seed, n, k))
        if res.error is None:
            self.assertGreaterEqual(res.statistic, 0.0)
            self.assertTrue(0.0 <= res.pvalue <= 1.0)
            self.assertEqual(res.homoscedastic, res.pvalue >= 0.05)
        else:
            self.assertFalse(res.homoscedastic)
        self.assertEqual(res.df, k)


class TestFilterProperties(unittest.TestCase):
    @given(pairs=st.lists(st.tuples(st.floats(-1.0, 1.0), pvalues), max_size=20),
           alpha=st.floats(0.001, 0.5))
    def test_model_filter_is_sound_complete_and_ranked(self, pairs, alpha):
        summaries = summaries_from(pairs)
        out = filter_significant_models(summaries, alpha=alpha)
        names = [s.response for s in out]
        self.assertEqual(set(names), {s.response for s in summaries if s.f_pvalue <= alpha})
        adj = [s.rsquared_adj for s in out]
        self.assertEqual(adj, sorted(adj, reverse=True))
        # Stable: equal adjusted R² keep input order
        for a, b in zip(out, out[1:]):
            if a.rsquared_adj == b.rsquared_adj:
                self.assertLess(int(a.response[1:]), int(b.response[1:]))

    @given(ps=st.lists(pvalues, max_size=10), alpha=st.floats(0.001, 0.5))
    def test_coef_filter_is_an_idempotent_subset(self, ps, alpha):
        records = tuple(CoefficientRecord(f'x{i}', 1.0, 1.0, 1.0, p) for i, p in enumerate(ps))
        once = filter_significant_coefs(records, alpha=alpha)
        self.assertTrue(set(r.name for r in once) <= set(r.name for r in records))
        self.assertTrue(all(r.pvalue <= alpha for r in once))
        self.assertEqual(filter_significant_coefs(once, alpha=alpha), once)


class TestEquationProperties(unittest.TestCase):
    @given(intercept=st.one_of(st.none(), coef_values),
           slopes=st.lists(coef_values, max_size=6))
    def test_render_then_parse_recovers_rounded_coefficients(self, intercept, slopes):
        records = [CoefficientRecord(f'x{i}', c, 1.0, 1.0, 0.0) for i, c in enumerate(slopes)]
        if intercept is not None:
            records.insert(0, CoefficientRecord('const', intercept, 1.0, 1.0, 0.0, is_intercept=True))
        response, parsed = parse_equation(render_equation('Y', records))
        self.assertEqual(response, 'Y')
        self.assertEqual(list(parsed), [r.name for r in records])
        for r in records:
            self.assertAlmostEqual(parsed[r.name], round(r.coef, 4), places=9)

    @given(slopes=st.lists(st.floats(0.001, 1e3), min_size=1, max_size=6), data=st.data())
    def test_sign_flip_touches_one_term(self, slopes, data):
        i = data.draw(st.integers(0, len(slopes) - 1))
        records = [CoefficientRecord(f'x{j}', c, 1.0, 1.0, 0.0) for j, c in enumerate(slopes)]
        flipped = list(records)
        flipped[i] = CoefficientRecord(f'x{i}', -slopes[i], 1.0, 1.0, 0.0)
        before = parse_equation(render_equation('Y', records))[1]
        after = parse_equation(render_equation('Y', flipped))[1]
        for name in before:
            if name == f'x{i}':
                self.assertEqual(after[name], -before[name])
            else:
                self.assertEqual(after[name], before[name])


if __name__ == '__main__':
    unittest.main()
