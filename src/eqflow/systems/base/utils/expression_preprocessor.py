# Copyright (C) 2025 Gil Benezer
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
Expression Preprocessor

Normalizes free-form equation text into the canonical scalar form the
classifier and the expression service expect.

Two stages:

1. ``normalize_equation``: applied to a whole raw equation before vector
   expansion. Folds unicode operators to ASCII, collapses derivative
   notation variants to ``dy/dt`` and rewrites subscripted logarithms.
2. ``normalize_expression``: applied to a right-hand side just before
   compilation. Makes implicit multiplication explicit, then strips
   whitespace.

Implicit multiplication must run before whitespace is stripped: ``x y`` is a
product, ``xy`` is a single name.
"""

import re
from typing import Tuple

from eqflow.systems.base.utils.codegen_utils import KNOWN_FUNCTIONS
from eqflow.systems.base.utils.equation_validator import MalformedEquationError

UNICODE_REPLACEMENTS = {
    "‒": "-",  # figure dash
    "–": "-",  # en dash
    "—": "-",  # em dash
    "−": "-",  # minus sign
    "﹣": "-",  # small hyphen-minus
    "－": "-",  # fullwidth hyphen-minus
    "×": "*",  # multiplication sign
    "⋅": "*",  # dot operator
    "·": "*",  # middle dot
    "÷": "/",  # division sign
}

# (d y)/(d t), ( d(y) )/( dt ) -> dy/dt
_DERIVATIVE_VARIANT = re.compile(
    r"\(\s*d\s*(?:\(\s*([A-Za-z_]\w*)\s*\)|([A-Za-z_]\w*))\s*\)\s*/\s*\(\s*d\s*([A-Za-z_]\w*)\s*\)"
)

# log_2 x, log_b(x) -> log(x, b)
_SUBSCRIPT_LOG_CALL = re.compile(r"\blog\s*_\s*([A-Za-z0-9.]+)\s*\(")
_SUBSCRIPT_LOG_TOKEN = re.compile(r"\blog\s*_\s*([A-Za-z0-9.]+)\s+([A-Za-z0-9.]+)")
_SUBSCRIPT_LOG_NUMERIC = re.compile(r"\blog\s*_\s*(\d+(?:\.\d+)?)([A-Za-z_]\w*)")

_ADJACENT_IDENTIFIERS = re.compile(r"([A-Za-z_]\w*)\s+(?=[A-Za-z_])")
_IDENTIFIER_CALL = re.compile(r"\b([A-Za-z_]\w*)\s*\(")
_NUMBER_BEFORE_TERM = re.compile(
    r"(?<![\w.])(\d+(?:\.\d*)?|\.\d+)(?![eE][+-]?\d)\s*(?=[A-Za-z_(])"
)
_CLOSE_BEFORE_TERM = re.compile(r"\)\s*(?=[A-Za-z_(\d.])")
_WHITESPACE = re.compile(r"\s+")


def replace_unicode_operators(text: str) -> str:
    """Fold unicode minus/times/divide variants to ASCII operators."""
    for old, new in UNICODE_REPLACEMENTS.items():
        text = text.replace(old, new)
    return text


def collapse_derivative_notation(text: str) -> str:
    """
    Rewrite decorated derivative forms as ``dy/dt``.

    Examples:
        >>> collapse_derivative_notation("(d y)/(d t) = -x")
        'dy/dt = -x'
        >>> collapse_derivative_notation("(d(y))/(dt) = -x")
        'dy/dt = -x'
    """

    def _replace(match):
        name = match.group(1) or match.group(2)
        return f"d{name}/d{match.group(3)}"

    return _DERIVATIVE_VARIANT.sub(_replace, text)


def rewrite_subscript_logarithms(text: str) -> str:
    """
    Rewrite ``log_b x`` and ``log_b(x)`` as ``log(x, b)``.

    Examples:
        >>> rewrite_subscript_logarithms("log_2 x")
        'log(x, 2)'
        >>> rewrite_subscript_logarithms("log_10y")
        'log(y, 10)'
        >>> rewrite_subscript_logarithms("log_e(x+1)")
        'log(x+1, e)'
    """
    text = _SUBSCRIPT_LOG_TOKEN.sub(r"log(\2, \1)", text)
    text = _SUBSCRIPT_LOG_NUMERIC.sub(r"log(\2, \1)", text)

    while True:
        match = _SUBSCRIPT_LOG_CALL.search(text)
        if match is None:
            return text
        base = match.group(1)
        start = match.end()
        end = _matching_paren(text, start - 1)
        if end is None:
            return text
        argument = text[start:end]
        text = f"{text[:match.start()]}log({argument}, {base}){text[end + 1:]}"


def _matching_paren(text: str, open_index: int):
    """Index of the ``)`` closing the ``(`` at ``open_index``, or None."""
    depth = 0
    for i in range(open_index, len(text)):
        if text[i] == "(":
            depth += 1
        elif text[i] == ")":
            depth -= 1
            if depth == 0:
                return i
    return None


def normalize_equation(raw: str) -> str:
    """
    Equation-level normalization applied before vector expansion.

    Examples:
        >>> normalize_equation("(d x)/(d t) = −x")
        'dx/dt = -x'
    """
    text = replace_unicode_operators(raw)
    text = collapse_derivative_notation(text)
    text = rewrite_subscript_logarithms(text)
    return text.strip()


def insert_implicit_multiplication(expr: str) -> str:
    """
    Make implicit multiplication explicit.

    Rules:
    - identifiers separated only by whitespace: ``beta z`` -> ``beta*z``
    - identifier before ``(`` that is not a known function:
      ``sigma(y-x)`` -> ``sigma*(y-x)`` (``sin(x)`` is left alone)
    - number before an identifier or ``(``: ``2x`` -> ``2*x``
    - ``)`` before an identifier, ``(`` or number:
      ``(1)/(2)x`` -> ``(1)/(2)*x``, ``(a)(b)`` -> ``(a)*(b)``

    Examples:
        >>> insert_implicit_multiplication("x(rho-z)-y")
        'x*(rho-z)-y'
    """
    expr = _ADJACENT_IDENTIFIERS.sub(r"\1*", expr)

    def _call_or_product(match):
        name = match.group(1)
        if name in KNOWN_FUNCTIONS:
            return f"{name}("
        return f"{name}*("

    expr = _IDENTIFIER_CALL.sub(_call_or_product, expr)
    expr = _NUMBER_BEFORE_TERM.sub(r"\1*", expr)
    expr = _CLOSE_BEFORE_TERM.sub(")*", expr)
    return expr


def strip_whitespace(text: str) -> str:
    """Remove every whitespace character."""
    return _WHITESPACE.sub("", text)


def normalize_expression(expr: str) -> str:
    """
    Right-hand side normalization applied before compilation.

    Examples:
        >>> normalize_expression("x y - beta z")
        'x*y-beta*z'
    """
    return strip_whitespace(insert_implicit_multiplication(expr))


def split_equation(equation: str) -> Tuple[str, str]:
    """
    Split an equation on its single ``=``.

    Returns the raw sides (whitespace preserved, so implicit multiplication
    can still be recognized on them).

    Raises:
        MalformedEquationError: If there is not exactly one ``=`` or a side
            is empty
    """
    count = equation.count("=")
    if count != 1:
        raise MalformedEquationError(
            equation, f"expected exactly one '=', found {count}"
        )

    lhs, rhs = equation.split("=")
    if not strip_whitespace(lhs) or not strip_whitespace(rhs):
        raise MalformedEquationError(equation, "both sides of '=' must be non-empty")

    return lhs, rhs
