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
Dependency-Ordered Evaluator for CompiledSystem

Evaluates helpers in dependency order, then derivatives against the
resulting helper scope.

Responsibilities:
- Topological ordering of helpers with cycle detection
- Fresh helper evaluation on every call (state changes every step)
- Single-name lookup with helpers taking priority over variables
- Full evaluation (helpers + derivatives) against one shared helper scope
- Performance tracking

Ordering uses an explicit stack with temporary/permanent marks instead of
native recursion, so long helper chains cannot exhaust the call stack.
"""

import time
from typing import TYPE_CHECKING, Iterator, List, Optional, Tuple

from eqflow.systems.base.utils.equation_validator import (
    CyclicDependencyError,
    NonScalarResultError,
    UnknownVariableError,
)
from eqflow.types.core import (
    EquationKind,
    EvaluationResult,
    ExecutionStats,
    HelperScope,
    StateLike,
    TimeValue,
)

if TYPE_CHECKING:
    from eqflow.systems.base.utils.equation_compiler import CompiledEquation, CompiledSystem


class DependencyEvaluator:
    """
    Evaluates a compiled equation system at a given state and time.

    The evaluator holds no simulation state: every method takes the state
    and time explicitly and helper values never outlive the call that
    computed them.

    Example:
        >>> evaluator = DependencyEvaluator(compile_system(["a = x + y", "dx/dt = -a"]))
        >>> evaluator.evaluate_all({"x": 1.0, "y": 2.0}, t=0.0)
        {'a': 3.0, 'x': -3.0}
    """

    def __init__(self, compiled: "CompiledSystem"):
        """
        Initialize evaluator.

        Args:
            compiled: Compiled equation set to evaluate
        """
        self.compiled = compiled
        self._order: Optional[Tuple[str, ...]] = None

        # Performance tracking
        self._stats = {
            "calls": 0,
            "time": 0.0,
        }

    # ========================================================================
    # Ordering
    # ========================================================================

    def evaluation_order(self) -> List[str]:
        """
        Helpers sorted so that every helper follows its helper dependencies.

        Dependencies that are not helpers (state variables, ``t``, unknown
        names) are leaves and never cause cycles.

        Raises:
            CyclicDependencyError: Naming the helper at which a cycle closes
        """
        if self._order is None:
            self._order = self._topological_order()
        return list(self._order)

    def _helper_children(self, name: str) -> Iterator[str]:
        helpers = self.compiled.helper_equations
        deps = helpers[name].dependencies
        return iter(sorted(dep for dep in deps if dep in helpers))

    def _topological_order(self) -> Tuple[str, ...]:
        order: List[str] = []
        permanent = set()
        temporary = set()

        for root in self.compiled.helpers:
            if root in permanent:
                continue

            temporary.add(root)
            stack = [(root, self._helper_children(root))]

            while stack:
                name, children = stack[-1]
                for child in children:
                    if child in permanent:
                        continue
                    if child in temporary:
                        path = [entry[0] for entry in stack]
                        cycle = path[path.index(child):] + [child]
                        raise CyclicDependencyError(child, cycle)
                    temporary.add(child)
                    stack.append((child, self._helper_children(child)))
                    break
                else:
                    stack.pop()
                    temporary.discard(name)
                    permanent.add(name)
                    order.append(name)

        return tuple(order)

    # ========================================================================
    # Main Evaluation API
    # ========================================================================

    def evaluate_helpers(self, state: StateLike, t: TimeValue) -> HelperScope:
        """
        Evaluate every helper, each exactly once.

        Args:
            state: Current state
            t: Current time

        Returns:
            Mapping helper name -> value

        Raises:
            CyclicDependencyError: If helpers depend on each other cyclically
            NonScalarResultError: If a helper does not evaluate to a number
        """
        evaluated: HelperScope = {}
        for name in self.evaluation_order():
            equation = self.compiled.helper_equations[name]
            evaluated[name] = self._call(equation, state, t, evaluated)
        return evaluated

    def evaluate_var(self, name: str, state: StateLike, t: TimeValue) -> float:
        """
        Evaluate a single name: a helper value or a variable's derivative.

        Helpers are consulted before variables.

        Raises:
            UnknownVariableError: If ``name`` is neither a helper nor a variable
        """
        start_time = time.time()
        try:
            if name in self.compiled.helper_equations:
                return self.evaluate_helpers(state, t)[name]
            if name in self.compiled.variable_equations:
                helpers = self.evaluate_helpers(state, t)
                return self._call(self.compiled.variable_equations[name], state, t, helpers)
            raise UnknownVariableError(name)
        finally:
            self._record(start_time)

    def evaluate_all(self, state: StateLike, t: TimeValue) -> EvaluationResult:
        """
        Evaluate every helper and every variable's derivative.

        Returns:
            ``{**helpers, **derivatives}``, derivatives keyed by bare
            variable name
        """
        start_time = time.time()
        try:
            helpers = self.evaluate_helpers(state, t)
            result: EvaluationResult = dict(helpers)
            for name in self.compiled.variables:
                equation = self.compiled.variable_equations[name]
                result[name] = self._call(equation, state, t, helpers)
            return result
        finally:
            self._record(start_time)

    def evaluate_derivatives(self, state: StateLike, t: TimeValue) -> EvaluationResult:
        """
        Derivative of every variable, looked up like ``evaluate_var``.

        One helper scope is shared by all variables. A helper with the same
        name as a variable takes priority, as in ``evaluate_var``.

        Returns:
            Mapping variable name -> derivative value
        """
        start_time = time.time()
        try:
            helpers = self.evaluate_helpers(state, t)
            derivatives: EvaluationResult = {}
            for name in self.compiled.variables:
                if name in helpers:
                    derivatives[name] = helpers[name]
                else:
                    equation = self.compiled.variable_equations[name]
                    derivatives[name] = self._call(equation, state, t, helpers)
            return derivatives
        finally:
            self._record(start_time)

    # ========================================================================
    # Internals
    # ========================================================================

    @staticmethod
    def _call(
        equation: "CompiledEquation", state: StateLike, t: TimeValue, helpers: HelperScope
    ) -> float:
        try:
            return equation(state, t, helpers)
        except NonScalarResultError as e:
            kind = "Helper" if equation.kind is EquationKind.HELPER else "Derivative of"
            raise NonScalarResultError(equation.name, e.value, kind=kind) from e

    def _record(self, start_time: float):
        self._stats["calls"] += 1
        self._stats["time"] += time.time() - start_time

    # ========================================================================
    # Performance Tracking
    # ========================================================================

    def get_stats(self) -> ExecutionStats:
        """
        Get performance statistics.

        Returns:
            ExecutionStats
                Structured performance metrics with call count and timing

        Example:
            >>> stats: ExecutionStats = evaluator.get_stats()
            >>> print(f"Calls: {stats['calls']}")
        """
        return {
            "calls": self._stats["calls"],
            "total_time": self._stats["time"],
            "avg_time": self._stats["time"] / max(1, self._stats["calls"]),
        }

    def reset_stats(self):
        """Reset performance counters."""
        self._stats["calls"] = 0
        self._stats["time"] = 0.0

    def __repr__(self) -> str:
        return (
            f"DependencyEvaluator("
            f"variables={len(self.compiled.variables)}, "
            f"helpers={len(self.compiled.helpers)}, "
            f"calls={self._stats['calls']})"
        )
