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
eqflow
======

Turns free-form mathematical notation into live, steppable dynamical
systems.

>>> from eqflow import EquationSystem
>>> system = EquationSystem(
...     ["d((x,y,z))/dt = ((y, -x, x+y))"], initial_state={"x": 1, "y": 2, "z": 3}
... )
>>> system.evaluate_var("y")
-1.0
>>> system.step(0.5)
{'x': 2.0, 'y': 1.5, 'z': 4.5}
"""

from eqflow.systems.base.core.equation_system import EquationSystem
from eqflow.systems.base.numerical_integration import (
    ExplicitEulerIntegrator,
    IntegratorBase,
    create_fixed_step_integrator,
)
from eqflow.systems.base.utils import (
    CyclicDependencyError,
    DimensionMismatchError,
    EquationError,
    EquationEvaluationError,
    EquationParseError,
    EquationValidator,
    MalformedEquationError,
    NonScalarResultError,
    UndefinedSymbolError,
    UnknownVariableError,
    compile_system,
)
from eqflow.types import Expression, IntegrationResult, State

__version__ = "0.1.0"

__all__ = [
    "EquationSystem",
    "Expression",
    "State",
    "IntegrationResult",
    "IntegratorBase",
    "ExplicitEulerIntegrator",
    "create_fixed_step_integrator",
    "EquationValidator",
    "compile_system",
    "EquationError",
    "EquationParseError",
    "EquationEvaluationError",
    "MalformedEquationError",
    "DimensionMismatchError",
    "UnknownVariableError",
    "UndefinedSymbolError",
    "CyclicDependencyError",
    "NonScalarResultError",
]
