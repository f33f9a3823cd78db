# =============================================================================
# module: equation.py
# Purpose: Render fitted coefficients as a linear equation string and parse it back
# Key Functions: check_term_name, format_term, render_equation, parse_equation
# Dependencies: re, typing, .report.CoefficientRecord
# =============================================================================
import re
from typing import Dict, Iterable, List, Tuple

from .config import DEFAULT_DECIMALS, INTERCEPT_NAME
from .report import CoefficientRecord

# Terms are joined by a single space, the sign, and a single space
_SEPARATOR = re.compile(r' ([+-]) ')
_NUMBER = re.compile(r'^\d+(?:\.\d+)?$')
# A sign next to whitespace or at either end of a name would read as a separator
_AMBIGUOUS_SIGN = re.compile(r'(?:^|\s)[+-]|[+-](?:\s|$)')

EMPTY_RHS = '0'


def check_term_name(name: str) -> str:
    """
    Return ``name`` if it can appear in a rendered equation.

    A '+' or '-' that touches whitespace or either end of the name (as in
    ``'x - y'`` or ``'-b'``) is rejected, so every rendered equation parses
    back to the same terms. Embedded signs such as ``'x-1'`` are allowed.

    Raises
    ------
    ValueError
        If the name is empty or contains an ambiguous sign.
    """
    if not name or _AMBIGUOUS_SIGN.search(name):
        raise ValueError(f"Name {name!r} cannot be rendered unambiguously in an equation.")
    return name


def format_term(record: CoefficientRecord, decimals: int = DEFAULT_DECIMALS) -> Tuple[str, str]:
    """
    Format one coefficient as (sign, body).

    The sign is taken from the rounded value so that a coefficient that
    rounds to zero never renders as ``-0.0000``. The intercept body is the
    bare constant; any other body is ``<magnitude>*<name>``.

    Examples
    --------
    >>> format_term(CoefficientRecord('B', -1.02, 0.1, -10.2, 0.0))
    ('-', '1.0200*B')
    """
    value = round(record.coef, decimals)
    sign = '-' if value < 0 else '+'
    magnitude = f"{abs(value):.{decimals}f}"
    if record.is_intercept:
        return sign, magnitude
    check_term_name(record.name)
    return sign, f"{magnitude}*{record.name}"


def render_equation(
    response: str,
    coefs: Iterable[CoefficientRecord],
    decimals: int = DEFAULT_DECIMALS
) -> str:
    """
    Build ``response = c0 + c1*x1 - c2*x2 ...`` from significant coefficients.

    The intercept, when present, comes first as a bare constant; slope terms
    follow in input order. Negative terms render as `` - |c|*x`` and a
    negative leading term as ``-|c|*x``. An empty coefficient set renders as
    ``response = 0``.

    Parameters
    ----------
    response : str
        Left-hand side label.
    coefs : iterable of CoefficientRecord
        Coefficients to include (usually the significant subset).
    decimals : int, default 4
        Rounding applied to every coefficient.
    """
    records = list(coefs)
    ordered = [r for r in records if r.is_intercept] + [r for r in records if not r.is_intercept]
    if not ordered:
        return f"{response} = {EMPTY_RHS}"

    parts: List[str] = []
    for i, rec in enumerate(ordered):
        sign, body = format_term(rec, decimals)
        if i == 0:
            parts.append(f"-{body}" if sign == '-' else body)
        else:
            parts.append(f" {sign} {body}")
    return f"{response} = " + ''.join(parts)


def parse_equation(text: str) -> Tuple[str, Dict[str, float]]:
    """
    Parse a string produced by render_equation.

    Returns
    -------
    response : str
        Left-hand side label.
    coefs : dict
        Coefficient value by name; the bare constant is keyed ``const``.
        ``response = 0`` yields an empty dict.

    Raises
    ------
    ValueError
        If the text is not in canonical form.
    """
    if ' = ' not in text:
        raise ValueError(f"Not an equation: {text!r}")
    response, rhs = text.split(' = ', 1)
    if rhs == EMPTY_RHS:
        return response, {}

    negative_first = rhs.startswith('-')
    if negative_first:
        rhs = rhs[1:]

    # re.split with one group yields [term, sign, term, sign, term, ...]
    pieces = _SEPARATOR.split(rhs)
    signs = ['-' if negative_first else '+'] + pieces[1::2]
    terms = pieces[0::2]

    coefs: Dict[str, float] = {}
    for sign, term in zip(signs, terms):
        magnitude, star, name = term.partition('*')
        if not _NUMBER.match(magnitude):
            raise ValueError(f"Malformed term {term!r} in {text!r}")
        if not star:
            name = INTERCEPT_NAME
        elif not name:
            raise ValueError(f"Missing variable name in term {term!r}")
        if name in coefs:
            raise ValueError(f"Duplicate term for '{name}' in {text!r}")
        value = float(magnitude)
        coefs[name] = -value if sign == '-' else value
    return response, coefs
