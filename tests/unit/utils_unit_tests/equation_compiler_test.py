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
Unit tests for equation_compiler.py

Tests cover:
1. Equation classification (variable vs helper)
2. Derivative written on either side
3. Whole-system compilation: sorted names, aliases, redeclaration
4. Malformed input
"""

import itertools

import pytest

from eqflow.systems.base.utils.equation_compiler import (
    DERIVATIVE_PATTERN,
    CompiledSystem,
    EquationCompiler,
    compile_system,
    extract_dependencies,
)
from eqflow.systems.base.utils.equation_validator import (
    DimensionMismatchError,
    EquationParseError,
    ExpressionSyntaxError,
    MalformedEquationError,
)
from eqflow.types import EquationKind, Expression


@pytest.fixture
def compiler():
    return EquationCompiler()


# ============================================================================
# Test: Patterns and Dependencies
# ============================================================================


class TestDerivativePattern:
    """Test recognition of derivative targets"""

    @pytest.mark.parametrize("text,name", [
        ("dx/dt", "x"),
        ("dtheta/dt", "theta"),
        ("(dx)/(dt)", "x"),
        ("dx/dT", "x"),
        ("dx_1/dt", "x_1"),
    ])
    def test_matches(self, text, name):
        """Test accepted derivative spellings"""
        match = DERIVATIVE_PATTERN.match(text)

        assert match is not None
        assert match.group(1) == name

    @pytest.mark.parametrize("text", ["x", "dx/dy", "d/dt", "dx/dt+1"])
    def test_rejects(self, text):
        """Test non-derivative text"""
        assert DERIVATIVE_PATTERN.match(text) is None


class TestExtractDependencies:
    """Test dependency extraction"""

    def test_free_names(self):
        """Test that functions and numbers are excluded"""
        assert extract_dependencies("sigma*(y-x)+sin(t)") == frozenset(
            {"sigma", "y", "x", "t"}
        )

    def test_constant(self):
        """Test an expression without names"""
        assert extract_dependencies("(8)/(3)") == frozenset()


# ============================================================================
# Test: Single Equations
# ============================================================================


class TestCompileEquation:
    """Test classification and compilation of one equation"""

    def test_variable_equation(self, compiler):
        """Test a derivative equation"""
        eq = compiler.compile_equation("dx/dt = sigma(y - x)")

        assert eq.kind is EquationKind.VARIABLE
        assert eq.name == "x"
        assert eq.dependencies == frozenset()
        assert eq({"x": 1.0, "y": 2.0}, 0.0, {"sigma": 10.0}) == 10.0

    def test_helper_equation(self, compiler):
        """Test a helper equation"""
        eq = compiler.compile_equation("a = x + y")

        assert eq.kind is EquationKind.HELPER
        assert eq.name == "a"
        assert eq.dependencies == frozenset({"x", "y"})
        assert eq({"x": 1.0, "y": 2.0}, 0.0) == 3.0

    def test_derivative_on_right(self, compiler):
        """Test y = dx/dt"""
        eq = compiler.compile_equation("y = dx/dt")

        assert eq.kind is EquationKind.VARIABLE
        assert eq.name == "x"
        assert eq({"y": 4.0}, 0.0) == 4.0

    def test_time_is_in_scope(self, compiler):
        """Test that t is supplied to every call"""
        eq = compiler.compile_equation("dx/dt = 2 t")

        assert eq({}, 1.5) == 3.0

    def test_helpers_override_state(self, compiler):
        """Test that helper values shadow state values of the same name"""
        eq = compiler.compile_equation("dx/dt = k")

        assert eq({"k": 1.0}, 0.0, {"k": 2.0}) == 2.0

    def test_function_property(self, compiler):
        """Test that function is the callable equation"""
        eq = compiler.compile_equation("dx/dt = 1")

        assert eq.function({}, 0.0) == 1.0

    def test_source_kept(self, compiler):
        """Test that the scalar text is recorded"""
        assert compiler.compile_equation("dx/dt = y").source == "dx/dt = y"

    def test_bad_left_side(self, compiler):
        """Test a left side that is neither derivative nor name"""
        with pytest.raises(MalformedEquationError, match="neither a derivative"):
            compiler.compile_equation("x + 1 = y")

    def test_bad_right_side(self, compiler):
        """Test that parse errors name the whole equation"""
        with pytest.raises(ExpressionSyntaxError) as exc_info:
            compiler.compile_equation("dx/dt = y +* 2")

        assert exc_info.value.equation == "dx/dt = y +* 2"


# ============================================================================
# Test: Whole Systems
# ============================================================================


class TestCompileSystem:
    """Test compilation of equation sets"""

    def test_variables_sorted(self):
        """Test that variables come back sorted"""
        compiled = compile_system(["dy/dt = 1", "dx/dt = 2"])

        assert compiled.variables == ("x", "y")

    def test_order_independent(self):
        """Test that every permutation yields the same names"""
        equations = ["dz/dt = a", "a = x + y", "dx/dt = y", "dy/dt = -x"]

        for permutation in itertools.permutations(equations):
            compiled = compile_system(list(permutation))
            assert compiled.variables == ("x", "y", "z")
            assert compiled.helpers == ("a",)

    def test_helpers_and_dependencies(self):
        """Test helper table and dependency map"""
        compiled = compile_system(["rho = 28", "c = rho - x", "dx/dt = c"])

        assert compiled.helpers == ("c", "rho")
        assert compiled.helper_dependencies == {
            "c": frozenset({"rho", "x"}),
            "rho": frozenset(),
        }

    def test_expressions_kept_verbatim(self):
        """Test that inputs are stored as supplied"""
        source = [Expression("dx/dt = y", latex=r"\frac{dx}{dt} = y"), "dy/dt = -x"]
        compiled = compile_system(source)

        assert compiled.expressions == tuple(source)
        assert compiled.variables == ("x", "y")

    def test_vector_equation(self):
        """Test that vector equations produce scalar variables"""
        compiled = compile_system(["d((x,y,z))/dt = ((y,-x,x+y))"])

        assert compiled.variables == ("x", "y", "z")

    def test_vector_aliases_recorded(self):
        """Test alias table on the compiled system"""
        compiled = compile_system(["r = ((x, y))", "dr/dt = ((y, -x))"])

        assert dict(compiled.vector_aliases) == {"r": ("x", "y")}
        assert compiled.variables == ("x", "y")
        assert compiled.helpers == ()

    def test_unicode_and_decorated_derivative(self):
        """Test that normalization runs before classification"""
        compiled = compile_system(["(d x)/(d t) = −y"])

        assert compiled.variables == ("x",)
        assert compiled.variable_equations["x"]({"y": 2.0}, 0.0) == -2.0

    def test_redeclaration_last_wins(self):
        """Test that a later equation replaces an earlier one"""
        compiled = compile_system(["dx/dt = 1", "dx/dt = 2"])

        assert compiled.redeclared == ("x",)
        assert compiled.variable_equations["x"]({}, 0.0) == 2.0

    def test_equations_iteration(self):
        """Test helpers first, then variables"""
        compiled = compile_system(["dy/dt = b", "dx/dt = a", "b = 1", "a = 2"])

        assert [eq.name for eq in compiled.equations()] == ["a", "b", "x", "y"]

    def test_tables_read_only(self):
        """Test that compiled tables cannot be mutated"""
        compiled = compile_system(["dx/dt = 1"])

        with pytest.raises(TypeError):
            compiled.variable_equations["y"] = compiled.variable_equations["x"]

    def test_is_compiled_system(self):
        """Test return type"""
        assert isinstance(compile_system([]), CompiledSystem)

    def test_empty_equation_rejected(self):
        """Test that blank equations are malformed"""
        with pytest.raises(MalformedEquationError):
            compile_system(["dx/dt = y", "   "])

    def test_dimension_mismatch(self):
        """Test that mismatched vectors fail compilation"""
        with pytest.raises(DimensionMismatchError):
            compile_system(["d((x,y))/dt = ((1,2,3))"])

    def test_errors_share_base(self):
        """Test that compile errors are EquationParseError and ValueError"""
        with pytest.raises(EquationParseError):
            compile_system(["dx/dt = = y"])
        with pytest.raises(ValueError):
            compile_system(["dx/dt = = y"])

    def test_non_string_rejected(self):
        """Test that inputs must be text or Expression records"""
        with pytest.raises(TypeError):
            compile_system([42])
