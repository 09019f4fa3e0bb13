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
Structural Subtyping Protocols for eqflow
=========================================

Protocol classes decouple the equation core from concrete implementations:

- ``CompiledExpressionProtocol``: opaque handle returned by the expression
  service. The compiler only ever calls ``evaluate(scope)``; any expression
  engine that honours this contract can be substituted.
- ``SteppableSystemProtocol``: what an integrator needs from a system. Any
  object exposing the state/time/derivative contract can be stepped.
- ``IntegratorProtocol``: what a system needs from its stepping strategy.

All protocols use the "Protocol" suffix to distinguish them from concrete
classes:

**Protocols** (interfaces):
- CompiledExpressionProtocol
- SteppableSystemProtocol
- IntegratorProtocol

**Concrete Classes** (implementations):
- CompiledExpression (eqflow.systems.base.utils.codegen_utils)
- EquationSystem (eqflow.systems.base.core.equation_system)
- ExplicitEulerIntegrator (eqflow.systems.base.numerical_integration)

Examples
--------
>>> def peak_derivative(system: SteppableSystemProtocol) -> float:
...     '''Largest derivative magnitude of any steppable system.'''
...     derivs = system.evaluate_derivatives()
...     return max(abs(v) for v in derivs.values())
"""

from typing import FrozenSet, List, Mapping, Optional, Protocol, runtime_checkable

from eqflow.types.core import EvaluationResult, State, TimeValue


@runtime_checkable
class CompiledExpressionProtocol(Protocol):
    """
    Opaque capability for a compiled arithmetic expression.

    Required Attributes
    -------------------
    source : str
        Expression text that was compiled
    symbols : FrozenSet[str]
        Free names the expression reads from its scope

    Required Methods
    ----------------
    evaluate(scope) -> float
        Evaluate the expression with names resolved from ``scope``
    """

    source: str
    symbols: FrozenSet[str]

    def evaluate(self, scope: Mapping[str, float]) -> float:
        ...


@runtime_checkable
class SteppableSystemProtocol(Protocol):
    """
    Minimal interface an integrator needs from a system.

    Required Attributes
    -------------------
    t : float
        Current simulation time

    Required Methods
    ----------------
    get_variables() -> List[str]
        Sorted state variable names
    get_state() -> State
        Independent copy of the current state
    evaluate_derivatives() -> EvaluationResult
        Derivative of every variable at the current state and time
    """

    t: TimeValue

    def get_variables(self) -> List[str]:
        ...

    def get_state(self) -> State:
        ...

    def evaluate_derivatives(self) -> EvaluationResult:
        ...


@runtime_checkable
class IntegratorProtocol(Protocol):
    """
    Stepping strategy: computes the state at ``t + dt``.

    Implementations must return a brand-new State and must evaluate every
    derivative against the same pre-step state (synchronous update).
    """

    @property
    def name(self) -> str:
        ...

    def step(self, system: SteppableSystemProtocol, dt: Optional[float] = None) -> State:
        ...


__all__ = [
    "CompiledExpressionProtocol",
    "SteppableSystemProtocol",
    "IntegratorProtocol",
]
