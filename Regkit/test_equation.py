import unittest
import os
import sys

# Ensure the repository root is in sys.path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from Regkit.equation import check_term_name, format_term, parse_equation, render_equation
from Regkit.report import CoefficientRecord


def rec(name, coef, is_intercept=False):
    return CoefficientRecord(name, coef, 0.1, coef / 0.1, 0.001, is_intercept=is_intercept)


class TestRenderEquation(unittest.TestCase):
    def test_canonical_form(self):
        coefs = [rec('const', 5.012345, True), rec('A', 2.0), rec('B', -1.02)]
        self.assertEqual(render_equation('Y', coefs), 'Y = 5.0123 + 2.0000*A - 1.0200*B')

    def test_intercept_is_emitted_first(self):
        coefs = [rec('A', 2.0), rec('const', 5.0, True)]
        self.assertEqual(render_equation('Y', coefs), 'Y = 5.0000 + 2.0000*A')

    def test_negative_leading_terms(self):
        self.assertEqual(
            render_equation('Y', [rec('const', -3.0, True), rec('A', 2.0)]),
            'Y = -3.0000 + 2.0000*A'
        )
        self.assertEqual(render_equation('Y', [rec('B', -1.02)]), 'Y = -1.0200*B')

    def test_empty_set(self):
        self.assertEqual(render_equation('Y', []), 'Y = 0')
        self.assertEqual(parse_equation('Y = 0'), ('Y', {}))

    def test_rounded_zero_has_no_minus(self):
        self.assertEqual(render_equation('Y', [rec('A', -0.00001)]), 'Y = 0.0000*A')
        self.assertEqual(format_term(rec('A', -0.00001)), ('+', '0.0000*A'))

    def test_decimals(self):
        coefs = [rec('const', 5.016, True), rec('A', -2.5)]
        self.assertEqual(render_equation('Y', coefs, decimals=2), 'Y = 5.02 - 2.50*A')
        self.assertEqual(render_equation('Y', coefs, decimals=0), 'Y = 5 - 2*A')

    def test_sign_flip_changes_only_that_term(self):
        coefs = [rec('const', 5.0, True), rec('A', 2.0), rec('B', 1.0)]
        flipped = [coefs[0], coefs[1], rec('B', -1.0)]
        before = render_equation('Y', coefs)
        after = render_equation('Y', flipped)
        self.assertEqual(before, 'Y = 5.0000 + 2.0000*A + 1.0000*B')
        self.assertEqual(after, 'Y = 5.0000 + 2.0000*A - 1.0000*B')
        diffs = [i for i, (a, b) in enumerate(zip(before, after)) if a != b]
        self.assertEqual(len(diffs), 1)

    def test_intercept_named_by_flag_not_label(self):
        coefs = [rec('(Intercept)', 1.5), rec('Intercept_x', -2.0)]
        text = render_equation('Y', coefs)
        self.assertEqual(text, 'Y = 1.5000*(Intercept) - 2.0000*Intercept_x')
        self.assertEqual(parse_equation(text)[1], {'(Intercept)': 1.5, 'Intercept_x': -2.0})

    def test_names_with_dashes_are_not_split(self):
        text = render_equation('Y', [rec('x-1', 2.0), rec('x+2', -3.0)])
        self.assertEqual(text, 'Y = 2.0000*x-1 - 3.0000*x+2')
        self.assertEqual(parse_equation(text)[1], {'x-1': 2.0, 'x+2': -3.0})

    def test_names_that_read_as_separators_are_rejected(self):
        for name in ('a + -b', 'x - y', '-b', 'b+', 'x -1', ''):
            with self.assertRaises(ValueError, msg=name):
                render_equation('Y', [rec(name, 2.0), rec('c', 1.0)])
        self.assertEqual(check_term_name('x-1'), 'x-1')

    def test_intercept_label_is_not_checked(self):
        self.assertEqual(render_equation('Y', [rec('- const', 1.0, True)]), 'Y = 1.0000')


class TestParseEquation(unittest.TestCase):
    def test_round_trip(self):
        coefs = [rec('const', -5.98765, True), rec('A', 2.00004), rec('B', -0.12345)]
        response, parsed = parse_equation(render_equation('Y', coefs))
        self.assertEqual(response, 'Y')
        self.assertEqual(list(parsed), ['const', 'A', 'B'])
        for r in coefs:
            self.assertAlmostEqual(parsed[r.name], r.coef, delta=0.5e-4 + 1e-12)

    def test_malformed_input(self):
        for text in ('Y', 'Y = abc*A', 'Y = 1.0*', 'Y = 1.0*A + 2.0*A', 'Y = 1.0*A +  2.0*B'):
            with self.assertRaises(ValueError, msg=text):
                parse_equation(text)


if __name__ == '__main__':
    unittest.main()
