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
Code Generation Utilities - Expression Service

Compiles sanitized algebraic strings into numeric callables using SymPy for
parsing and ``sympy.lambdify`` onto NumPy for evaluation.

The equation core never touches SymPy objects directly: it receives a
``CompiledExpression`` and only calls ``evaluate(scope)``. The grammar
(operators, precedence, ``^`` as power) belongs to SymPy.

Name resolution:
- Names in ``KNOWN_FUNCTIONS`` and ``KNOWN_CONSTANTS`` resolve to SymPy
  functions/constants.
- Every other identifier becomes a plain ``sympy.Symbol``, including names
  SymPy would otherwise claim (``beta``, ``gamma``, ``N``, ``S``, ``I``) and
  Python keywords (``lambda``).

Expressions are parsed unevaluated: SymPy does no constant folding, so
``x/x`` stays a quotient and ``1/0`` stays a division. Numeric literals are
printed as ``numpy.float64`` and every operation follows IEEE 754 at
evaluation time.
"""

import keyword
import re
from tokenize import TokenError
from typing import Callable, Dict, FrozenSet, Mapping, Tuple

import numpy as np
import sympy as sp
from sympy.parsing.sympy_parser import (
    convert_xor,
    parse_expr,
    standard_transformations,
)
from sympy.printing.numpy import NumPyPrinter

from eqflow.systems.base.utils.equation_validator import (
    ExpressionSyntaxError,
    NonScalarResultError,
    UndefinedSymbolError,
)

# Helper functions


def _numpy_min(*args):
    """
    Handle SymPy Min for the NumPy backend.

    SymPy's Min can take arbitrary number of arguments: Min(x, y, z)
    NumPy's np.minimum only takes 2 arguments.

    Examples:
        >>> _numpy_min(1, 2, 3)
        1
    """
    if len(args) == 0:
        raise ValueError("Min requires at least one argument")
    result = args[0]
    for arg in args[1:]:
        result = np.minimum(result, arg)
    return result


def _numpy_max(*args):
    """
    Handle SymPy Max for the NumPy backend.

    Examples:
        >>> _numpy_max(1, 2, 3)
        3
    """
    if len(args) == 0:
        raise ValueError("Max requires at least one argument")
    result = args[0]
    for arg in args[1:]:
        result = np.maximum(result, arg)
    return result


SYMPY_TO_NUMPY_LAMBDIFY = {
    # Min/Max handling
    "Min": _numpy_min,
    "Max": _numpy_max,
}


class Float64Printer(NumPyPrinter):
    """
    NumPy printer that emits every numeric literal as ``numpy.float64``.

    Python ints and floats in the generated source would raise
    ``ZeroDivisionError`` for ``1/0``; float64 literals follow IEEE 754 like
    the float64 arguments do.
    """

    def _float64(self, text) -> str:
        return "{}({})".format(self._module_format(self._module + ".float64"), text)

    def _print_Integer(self, expr):
        return self._float64(expr.p)

    def _print_Rational(self, expr):
        return "{}/{}".format(self._float64(expr.p), self._float64(expr.q))

    def _print_Float(self, expr):
        return self._float64(repr(float(expr)))

    def _print_Mul(self, expr):
        # The base printer multiplies a negative coefficient back into the
        # remaining factors, which would fold 2*(1/0) into zoo.
        coeff, rest = expr.as_coeff_Mul()
        if coeff.is_negative and coeff is not sp.S.NegativeOne:
            expr = sp.Mul(
                sp.S.NegativeOne,
                sp.Mul(-coeff, *sp.Mul.make_args(rest), evaluate=False),
                evaluate=False,
            )
        return super()._print_Mul(expr)


def _log(arg, base=None, evaluate=True):
    """
    Natural logarithm, or ``log(arg)/log(base)`` when a base is given.

    NumPy has no two-argument log, so a based logarithm never reaches the
    printer as ``log(arg, base)``.
    """
    if base is None:
        return sp.log(arg, evaluate=evaluate)
    return sp.Mul(
        sp.log(arg, evaluate=evaluate),
        sp.Pow(sp.log(base, evaluate=evaluate), -1, evaluate=evaluate),
        evaluate=evaluate,
    )


def _log10(arg, evaluate=True):
    return _log(arg, 10, evaluate=evaluate)


def _unevaluated(func: Callable) -> Callable:
    """Wrap a SymPy function so that calls build unevaluated nodes."""

    def build(*args, **kwargs):
        return func(*args, evaluate=False)

    return build


# Names understood by the expression grammar

KNOWN_FUNCTIONS: Dict[str, Callable] = {
    # Trigonometric
    "sin": sp.sin,
    "cos": sp.cos,
    "tan": sp.tan,
    "asin": sp.asin,
    "acos": sp.acos,
    "atan": sp.atan,
    "atan2": sp.atan2,
    "sinh": sp.sinh,
    "cosh": sp.cosh,
    "tanh": sp.tanh,
    # Exponential/Logarithmic
    "exp": sp.exp,
    "log": _log,
    "ln": _log,
    "log10": _log10,
    "sqrt": sp.sqrt,
    # Absolute value and sign
    "abs": sp.Abs,
    "sign": sp.sign,
    # Power
    "pow": sp.Pow,
    # Min/Max
    "min": sp.Min,
    "max": sp.Max,
    # Rounding
    "floor": sp.floor,
    "ceil": sp.ceiling,
}

KNOWN_CONSTANTS: Dict[str, sp.Expr] = {
    "pi": sp.pi,
    "e": sp.E,
}

IDENTIFIER_PATTERN = re.compile(r"\b[A-Za-z_]\w*\b")
NUMBER_PATTERN = re.compile(r"^\d+(\.\d*)?([eE][+-]?\d+)?$")

_TRANSFORMATIONS = standard_transformations + (convert_xor,)
_KEYWORD_PREFIX = "_kw_"


def is_builtin_name(name: str) -> bool:
    """Return True if ``name`` is a function or constant of the grammar."""
    return name in KNOWN_FUNCTIONS or name in KNOWN_CONSTANTS


def extract_identifiers(expr: str) -> Tuple[str, ...]:
    """
    Scan an expression for user identifiers.

    Numeric literals and names known to the grammar (functions and
    constants) are excluded. Order of first appearance is preserved.

    Examples:
        >>> extract_identifiers("sigma*(y-x)+sin(t)")
        ('sigma', 'y', 'x', 't')
    """
    found = []
    for match in IDENTIFIER_PATTERN.finditer(expr):
        name = match.group(0)
        if NUMBER_PATTERN.match(name) or is_builtin_name(name):
            continue
        if name not in found:
            found.append(name)
    return tuple(found)


def _build_local_dict(expr: str) -> Tuple[str, Dict[str, object]]:
    """
    Build the parse namespace for ``expr``.

    Returns the (possibly rewritten) text and the namespace. Python keywords
    cannot reach the parser as identifiers, so they are renamed in the text
    and mapped back to a Symbol carrying the original name.
    """
    local_dict: Dict[str, object] = {
        name: _unevaluated(func) for name, func in KNOWN_FUNCTIONS.items()
    }
    local_dict.update(KNOWN_CONSTANTS)

    for name in extract_identifiers(expr):
        if keyword.iskeyword(name):
            alias = _KEYWORD_PREFIX + name
            expr = re.sub(rf"\b{name}\b", alias, expr)
            local_dict[alias] = sp.Symbol(name)
        else:
            local_dict[name] = sp.Symbol(name)

    return expr, local_dict


def parse_expression(expr: str) -> sp.Expr:
    """
    Parse a sanitized algebraic string into a SymPy expression.

    Args:
        expr: Expression text, e.g. ``"sigma*(y-x)"``

    Returns:
        SymPy expression

    Raises:
        ExpressionSyntaxError: If the text is not a valid expression
    """
    text, local_dict = _build_local_dict(expr)
    try:
        parsed = parse_expr(
            text,
            local_dict=local_dict,
            transformations=_TRANSFORMATIONS,
            evaluate=False,
        )
    except (
        SyntaxError,
        TokenError,
        TypeError,
        ValueError,
        NameError,
        AttributeError,
        sp.SympifyError,
    ) as e:
        raise ExpressionSyntaxError(expr, str(e)) from e

    # Relationals, booleans and tuples are Basic but not Expr.
    if not isinstance(parsed, sp.Expr):
        raise ExpressionSyntaxError(expr, "not a scalar arithmetic expression")

    return parsed


class CompiledExpression:
    """
    Numeric function compiled from an expression string.

    Satisfies ``CompiledExpressionProtocol``: callers only use ``source``,
    ``symbols`` and ``evaluate(scope)``.

    Attributes
    ----------
    source : str
        Expression text that was compiled
    symbols : FrozenSet[str]
        Free names read from the scope

    Examples
    --------
    >>> expr = compile_expression("sigma*(y-x)")
    >>> expr.evaluate({"sigma": 10.0, "x": 1.0, "y": 2.0})
    10.0
    """

    def __init__(self, source: str, sympy_expr: sp.Expr):
        self.source = source
        self.sympy_expr = sympy_expr

        free = sorted(sympy_expr.free_symbols, key=lambda s: s.name)
        self._arg_symbols = tuple(free)
        self.symbols: FrozenSet[str] = frozenset(s.name for s in free)
        printer = Float64Printer(
            {
                "fully_qualified_modules": False,
                "inline": True,
                "allow_unknown_functions": True,
                # Keep source order; sorting terms would inspect unevaluated nodes
                "order": "none",
                "user_functions": {name: name for name in SYMPY_TO_NUMPY_LAMBDIFY},
            }
        )
        self._func = sp.lambdify(
            self._arg_symbols,
            sympy_expr,
            modules=[SYMPY_TO_NUMPY_LAMBDIFY, "numpy"],
            printer=printer,
        )

    def evaluate(self, scope: Mapping[str, float]) -> float:
        """
        Evaluate with every free name looked up in ``scope``.

        Arithmetic runs in float64 with floating-point warnings suppressed:
        ``1/0`` gives ``inf``, ``-1/0`` and ``log(0)`` give ``-inf`` and ``0/0``
        gives ``nan``.

        Raises:
            UndefinedSymbolError: If a free name is missing from ``scope``
            NonScalarResultError: If the result is not a real scalar
        """
        args = []
        for symbol in self._arg_symbols:
            try:
                args.append(np.float64(scope[symbol.name]))
            except KeyError:
                raise UndefinedSymbolError(symbol.name, self.source) from None

        with np.errstate(all="ignore"):
            result = self._func(*args)

        return _as_real_scalar(result, self.source)

    def __repr__(self) -> str:
        return f"CompiledExpression({self.source!r})"


def _as_real_scalar(value, name: str) -> float:
    """Convert a lambdified result to ``float`` or raise."""
    if isinstance(value, np.ndarray):
        if value.size != 1:
            raise NonScalarResultError(name, value, kind="Expression")
        value = value.reshape(-1)[0]
    if isinstance(value, (bool, np.bool_)):
        raise NonScalarResultError(name, value, kind="Expression")
    if isinstance(value, (complex, np.complexfloating)):
        raise NonScalarResultError(name, value, kind="Expression")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise NonScalarResultError(name, value, kind="Expression") from None


def compile_expression(expr: str) -> CompiledExpression:
    """
    Compile an expression string into a ``CompiledExpression``.

    Args:
        expr: Sanitized algebraic string (implicit multiplication already
            made explicit, whitespace already stripped)

    Returns:
        Compiled expression

    Raises:
        ExpressionSyntaxError: If the text cannot be parsed

    Examples:
        >>> f = compile_expression("x^2+1")
        >>> f.evaluate({"x": 2.0})
        5.0
    """
    return CompiledExpression(expr, parse_expression(expr))
