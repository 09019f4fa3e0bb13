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
Unit tests for eqflow.types

Tests cover:
1. Expression records and equation_text
2. EquationKind
3. Protocol conformance of the concrete classes
"""

import numpy as np
import pytest

from eqflow.systems.base.core.equation_system import EquationSystem
from eqflow.systems.base.numerical_integration import ExplicitEulerIntegrator
from eqflow.types import (
    EquationKind,
    Expression,
    IntegratorProtocol,
    SteppableSystemProtocol,
    TimeValue,
    equation_text,
)


# ============================================================================
# Test: Equation Inputs
# ============================================================================


class TestExpression:
    """Test Expression records"""

    def test_defaults(self):
        """Test optional display fields"""
        expr = Expression("dx/dt = y")

        assert expr.sanitized == "dx/dt = y"
        assert expr.latex is None
        assert expr.ascii_math is None

    def test_str(self):
        """Test that str() is the compilable text"""
        assert str(Expression("dx/dt = y", latex=r"\dot{x} = y")) == "dx/dt = y"

    def test_frozen(self):
        """Test immutability"""
        expr = Expression("dx/dt = y")

        with pytest.raises(AttributeError):
            expr.sanitized = "dx/dt = z"


class TestEquationText:
    """Test equation_text"""

    def test_string(self):
        """Test raw text passes through"""
        assert equation_text("a = 1") == "a = 1"

    def test_expression(self):
        """Test Expression uses its sanitized text"""
        assert equation_text(Expression("a = 1", ascii_math="a = 1")) == "a = 1"

    def test_invalid(self):
        """Test unsupported input types"""
        with pytest.raises(TypeError):
            equation_text(None)


class TestEquationKind:
    """Test EquationKind values"""

    def test_values(self):
        """Test enum values"""
        assert EquationKind.VARIABLE.value == "variable"
        assert EquationKind.HELPER.value == "helper"


# ============================================================================
# Test: Protocols
# ============================================================================


class TestProtocols:
    """Test structural typing"""

    def test_system_is_steppable(self):
        """Test EquationSystem satisfies SteppableSystemProtocol"""
        system = EquationSystem(["dx/dt = 1"], {"x": 0.0})

        assert isinstance(system, SteppableSystemProtocol)

    def test_integrator_protocol(self):
        """Test ExplicitEulerIntegrator satisfies IntegratorProtocol"""
        assert isinstance(ExplicitEulerIntegrator(), IntegratorProtocol)

    def test_system_time_is_time_value(self):
        """Test that t and start_time are plain TimeValue floats"""
        system = EquationSystem(["dx/dt = 1"], {"x": 0.0}, t=np.float64(1.5))

        assert type(system.t) is TimeValue
        assert type(system.start_time) is TimeValue

        system.step(np.float64(0.5))
        assert type(system.t) is TimeValue
        assert system.t == 2.0

    def test_non_conforming(self):
        """Test that arbitrary objects do not conform"""
        assert not isinstance(object(), SteppableSystemProtocol)
