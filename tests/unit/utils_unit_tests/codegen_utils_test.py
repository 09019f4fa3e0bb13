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
Unit tests for codegen_utils.py (expression service)

Tests verify that sanitized expression strings compile to NumPy-backed
callables with the expected name resolution and float semantics.

Run with:
    pytest tests/unit/utils_unit_tests/codegen_utils_test.py -v
"""

import math

import numpy as np
import pytest
import sympy as sp

from eqflow.systems.base.utils.codegen_utils import (
    KNOWN_CONSTANTS,
    KNOWN_FUNCTIONS,
    CompiledExpression,
    _as_real_scalar,
    _numpy_max,
    _numpy_min,
    compile_expression,
    extract_identifiers,
    is_builtin_name,
    parse_expression,
)
from eqflow.systems.base.utils.equation_validator import (
    ExpressionSyntaxError,
    NonScalarResultError,
    UndefinedSymbolError,
)
from eqflow.types.protocols import CompiledExpressionProtocol


# ============================================================================
# Test: Min/Max Helpers
# ============================================================================


class TestMinMaxHelpers:
    """Test variadic Min/Max helpers"""

    def test_numpy_min(self):
        """Test minimum of several values"""
        assert _numpy_min(3.0, 1.0, 2.0) == 1.0

    def test_numpy_max(self):
        """Test maximum of several values"""
        assert _numpy_max(3.0, 1.0, 2.0) == 3.0

    def test_empty_arguments(self):
        """Test that no arguments is an error"""
        with pytest.raises(ValueError):
            _numpy_min()
        with pytest.raises(ValueError):
            _numpy_max()


# ============================================================================
# Test: Identifier Scanning
# ============================================================================


class TestExtractIdentifiers:
    """Test identifier extraction"""

    def test_order_of_first_appearance(self):
        """Test that identifiers come back in source order without repeats"""
        assert extract_identifiers("sigma*(y-x)+sin(t)+x") == ("sigma", "y", "x", "t")

    def test_constants_and_functions_excluded(self):
        """Test that pi, e and function names are not identifiers"""
        assert extract_identifiers("2*pi*e*exp(x)") == ("x",)

    def test_scientific_notation_ignored(self):
        """Test that the exponent marker of 2e3 is not an identifier"""
        assert extract_identifiers("2e3*k") == ("k",)

    def test_builtin_names(self):
        """Test the grammar's reserved names"""
        assert is_builtin_name("sin")
        assert is_builtin_name("pi")
        assert not is_builtin_name("sigma")

    def test_grammar_tables(self):
        """Test that the grammar exposes the documented names"""
        for name in ("sin", "cos", "exp", "log", "sqrt", "abs", "min", "max", "atan2"):
            assert name in KNOWN_FUNCTIONS
        assert KNOWN_CONSTANTS["pi"] == sp.pi
        assert KNOWN_CONSTANTS["e"] == sp.E


# ============================================================================
# Test: Parsing
# ============================================================================


class TestParseExpression:
    """Test SymPy parsing with the eqflow grammar"""

    def test_caret_is_power(self):
        """Test that ^ means exponentiation"""
        expr = parse_expression("x^2")

        assert expr.is_Pow
        assert expr.base == sp.Symbol("x")
        assert expr.exp == 2

    def test_bare_symbol(self):
        """Test that a lone name parses to a Symbol"""
        assert parse_expression("y") == sp.Symbol("y")

    def test_sympy_names_become_symbols(self):
        """Test that beta, gamma, N, S and I are plain symbols"""
        expr = parse_expression("beta*gamma*N*S*I")

        assert {s.name for s in expr.free_symbols} == {"beta", "gamma", "N", "S", "I"}

    def test_keyword_identifier(self):
        """Test that Python keywords can be used as names"""
        expr = parse_expression("-lambda")

        assert {s.name for s in expr.free_symbols} == {"lambda"}

    def test_no_constant_folding(self):
        """Test that SymPy does not simplify the parsed expression"""
        x = sp.Symbol("x")
        expr = parse_expression("x/x")

        assert expr != 1
        assert expr.free_symbols == {x}

    def test_literal_division_by_zero_not_folded(self):
        """Test that 1/0 stays a division instead of becoming infinity"""
        expr = parse_expression("1/0")

        assert not expr.has(sp.zoo)
        assert not expr.has(sp.oo)

    def test_invalid_syntax(self):
        """Test that broken syntax raises ExpressionSyntaxError"""
        with pytest.raises(ExpressionSyntaxError):
            parse_expression("x+*y")

    def test_unbalanced_parenthesis(self):
        """Test an unclosed parenthesis"""
        with pytest.raises(ExpressionSyntaxError):
            parse_expression("(x+1")

    def test_relational_rejected(self):
        """Test that comparisons are not arithmetic expressions"""
        with pytest.raises(ExpressionSyntaxError, match="not a scalar arithmetic"):
            parse_expression("x<y")

    def test_tuple_rejected(self):
        """Test that a comma separated list is not a scalar expression"""
        with pytest.raises(ExpressionSyntaxError, match="not a scalar arithmetic"):
            parse_expression("x,y")


# ============================================================================
# Test: Compilation and Evaluation
# ============================================================================


class TestCompiledExpression:
    """Test compiled expression evaluation"""

    def test_satisfies_protocol(self):
        """Test the structural protocol"""
        assert isinstance(compile_expression("x+1"), CompiledExpressionProtocol)

    def test_simple_evaluation(self):
        """Test polynomial evaluation"""
        f = compile_expression("x^2+1")

        assert f.evaluate({"x": 2.0}) == 5.0

    def test_symbols(self):
        """Test that free names are reported"""
        f = compile_expression("sigma*(y-x)")

        assert f.symbols == frozenset({"sigma", "x", "y"})
        assert f.source == "sigma*(y-x)"

    def test_result_is_python_float(self):
        """Test that results are plain floats"""
        result = compile_expression("x*2").evaluate({"x": 1.5})

        assert type(result) is float
        assert result == 3.0

    def test_constant_expression(self):
        """Test an expression without free names"""
        f = compile_expression("2*pi")

        assert f.symbols == frozenset()
        assert f.evaluate({}) == pytest.approx(2 * math.pi)

    def test_extra_scope_entries_ignored(self):
        """Test that unused scope names are harmless"""
        assert compile_expression("x").evaluate({"x": 1.0, "unused": 5.0}) == 1.0

    def test_integer_inputs(self):
        """Test that integer scope values are promoted to float"""
        assert compile_expression("x/2").evaluate({"x": 3}) == 1.5

    def test_functions(self):
        """Test a selection of grammar functions"""
        scope = {"x": 1.0, "y": 3.0}

        assert compile_expression("max(x,y)+min(x,y)").evaluate(scope) == 4.0
        assert compile_expression("atan2(x,x)").evaluate(scope) == pytest.approx(math.pi / 4)
        assert compile_expression("abs(x-y)").evaluate(scope) == 2.0
        assert compile_expression("pow(y,2)").evaluate(scope) == 9.0
        assert compile_expression("sqrt(y+1)").evaluate(scope) == 2.0

    def test_logarithms(self):
        """Test natural and based logarithms"""
        assert compile_expression("log(x,2)").evaluate({"x": 8.0}) == pytest.approx(3.0)
        assert compile_expression("ln(x)").evaluate({"x": math.e}) == pytest.approx(1.0)
        assert compile_expression("log10(x)").evaluate({"x": 1000.0}) == pytest.approx(3.0)

    def test_euler_constant(self):
        """Test that e is Euler's number"""
        assert compile_expression("e").evaluate({}) == pytest.approx(math.e)

    def test_time_dependence(self):
        """Test an expression of t"""
        assert compile_expression("sin(t)").evaluate({"t": math.pi / 2}) == pytest.approx(1.0)

    def test_division_by_zero_is_infinite(self):
        """Test that 1/x at x=0 is inf, not an error"""
        result = compile_expression("1/x").evaluate({"x": 0.0})

        assert result == math.inf

    def test_zero_over_zero_is_nan(self):
        """Test that 0/0 is nan"""
        assert math.isnan(compile_expression("0/0").evaluate({}))

    def test_nan_input_propagates(self):
        """Test that nan inputs produce nan"""
        assert math.isnan(compile_expression("x+1").evaluate({"x": np.nan}))

    def test_missing_symbol(self):
        """Test that a missing name raises UndefinedSymbolError"""
        f = compile_expression("x+k")

        with pytest.raises(UndefinedSymbolError, match="'k'") as exc_info:
            f.evaluate({"x": 1.0})

        assert exc_info.value.symbol == "k"
        assert exc_info.value.expression == "x+k"

    def test_square_root_of_negative_is_nan(self):
        """Test that sqrt(-1) is nan like sqrt(x) at x=-1"""
        assert math.isnan(compile_expression("sqrt(-1)").evaluate({}))
        assert math.isnan(compile_expression("sqrt(x)").evaluate({"x": -1.0}))

    def test_complex_result_rejected(self):
        """Test that a complex value raises NonScalarResultError"""
        with pytest.raises(NonScalarResultError):
            _as_real_scalar(np.complex128(1j), "z")

    def test_bare_symbol_evaluation(self):
        """Test that a lone name evaluates to its scope value"""
        f = compile_expression("y")

        assert f.symbols == frozenset({"y"})
        assert f.evaluate({"y": 2.0}) == 2.0

    def test_literal(self):
        """Test that a lone number evaluates to itself"""
        assert compile_expression("5").evaluate({}) == 5.0

    def test_repr(self):
        """Test string representation"""
        assert repr(compile_expression("x+1")) == "CompiledExpression('x+1')"

    def test_is_compiled_expression(self):
        """Test factory return type"""
        assert isinstance(compile_expression("x"), CompiledExpression)


# ============================================================================
# Test: IEEE 754 Semantics of Literals
# ============================================================================


class TestFloatingPointLiterals:
    """Test that literal arithmetic behaves like float64 arithmetic"""

    def test_positive_over_zero(self):
        """Test that 1/0 is +inf"""
        assert compile_expression("1/0").evaluate({}) == math.inf

    def test_negative_over_zero(self):
        """Test that -1/0 is -inf, not +inf"""
        assert compile_expression("-1/0").evaluate({}) == -math.inf
        assert compile_expression("-2/0").evaluate({}) == -math.inf

    def test_log_of_zero(self):
        """Test that log(0) is -inf for literals and scope values alike"""
        assert compile_expression("log(0)").evaluate({}) == -math.inf
        assert compile_expression("log(x)").evaluate({"x": 0.0}) == -math.inf

    def test_self_quotient_at_zero(self):
        """Test that x/x at x=0 is nan rather than a folded 1"""
        f = compile_expression("x/x")

        assert math.isnan(f.evaluate({"x": 0.0}))
        assert f.evaluate({"x": 2.0}) == 1.0

    def test_self_difference_keeps_nan(self):
        """Test that x-x is not folded to 0"""
        assert math.isnan(compile_expression("x-x").evaluate({"x": math.inf}))

    def test_zero_to_negative_power(self):
        """Test that 0^-1 and pow(0,-1) are +inf"""
        assert compile_expression("0^-1").evaluate({}) == math.inf
        assert compile_expression("pow(0,-1)").evaluate({}) == math.inf

    def test_fractional_literals(self):
        """Test literal quotients and decimal literals"""
        assert compile_expression("1/2").evaluate({}) == 0.5
        assert compile_expression("2^-1").evaluate({}) == 0.5
        assert compile_expression("x*0.25").evaluate({"x": 4.0}) == 1.0

    def test_subtraction_and_negation(self):
        """Test that unevaluated subtraction keeps its sign"""
        scope = {"x": 5.0, "y": 2.0, "z": 3.0}

        assert compile_expression("x-y*z").evaluate(scope) == -1.0
        assert compile_expression("-x/y").evaluate(scope) == -2.5
        assert compile_expression("x-2*y").evaluate(scope) == 1.0

    def test_based_logarithm_of_literals(self):
        """Test that a literal based logarithm divides natural logarithms"""
        assert compile_expression("log(8,2)").evaluate({}) == pytest.approx(3.0)
        assert compile_expression("log10(100)").evaluate({}) == pytest.approx(2.0)
