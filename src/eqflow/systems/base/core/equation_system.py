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
Equation System - Live Dynamical System from Textual Equations
==============================================================

``EquationSystem`` is the facade over the equation core. It compiles a list
of free-form equations once, then owns the evolving state and time that an
integrator advances step by step.

Architecture
-----------
```
    equations (text)
          |
    EquationCompiler  ->  CompiledSystem (immutable)
                                |
                       DependencyEvaluator
                                |
    EquationSystem  <---  IntegratorBase (strategy)
    (state, t)
```

Key Features
------------
- Vector shorthand: ``d((x,y,z))/dt = ((y,-x,x+y))``, ``r = ((x,y,z))``
- Helpers (aliases) evaluated in dependency order, cycles rejected
- Implicit multiplication: ``sigma(y-x)``, ``x y``, ``2x``
- Pluggable stepping strategy, swappable without recompiling
- Atomic recompilation: a failed recompile leaves the system untouched

Usage Example
-------------
```python
system = EquationSystem(
    ["dx/dt = sigma(y - x)", "dy/dt = x(rho - z) - y", "dz/dt = x y - beta z",
     "rho = 28", "sigma = 10", "beta = 8/3"],
    initial_state={"x": 1.0, "y": 1.0, "z": 1.0},
)

system.get_variables()      # ['x', 'y', 'z']
system.evaluate_var("y")    # 26.0
system.step(0.01)           # {'x': 1.0, 'y': 1.26, 'z': 0.98333...}

result = system.integrate(t_end=10.0, dt=0.01)
result["x"].shape           # (1001, 3)
```

Authors
-------
Gil Benezer

License
-------
AGPL-3.0
"""

import math
import time
from typing import Dict, List, Optional, Sequence

import numpy as np

from eqflow.systems.base.numerical_integration.fixed_step_integrators import (
    ExplicitEulerIntegrator,
)
from eqflow.systems.base.numerical_integration.integrator_base import IntegratorBase
from eqflow.systems.base.utils.dependency_evaluator import DependencyEvaluator
from eqflow.systems.base.utils.equation_compiler import CompiledSystem, compile_system
from eqflow.systems.base.utils.equation_validator import EquationValidator, ValidationResult
from eqflow.types.core import (
    EquationInput,
    EvaluationResult,
    ScalarLike,
    State,
    StateLike,
    TimeValue,
)
from eqflow.types.trajectories import IntegrationResult


def _copy_state(state: Optional[StateLike]) -> State:
    """Independent float-valued copy of a state mapping."""
    if state is None:
        return {}
    return {str(name): float(value) for name, value in state.items()}


class EquationSystem:
    """
    Steppable dynamical system compiled from textual equations.

    The compiled equations are read-only after construction. The state and
    time are owned by the system and only change through ``set_state``,
    ``set_time``, ``reset`` or stepping; every accessor returns a copy.

    Parameters
    ----------
    equations : Sequence[EquationInput]
        Equations as strings or ``Expression`` records, one per entry
    initial_state : Optional[StateLike]
        Starting value per variable (also restored by ``reset``)
    t : float
        Starting time (also restored by ``reset``)
    integrator : Optional[IntegratorBase]
        Stepping strategy; defaults to ``ExplicitEulerIntegrator``

    Raises
    ------
    EquationParseError
        If any equation cannot be compiled

    Examples
    --------
    >>> system = EquationSystem(["dy/dt = -x", "dx/dt = y"], {"x": 1.0, "y": 0.0})
    >>> system.get_variables()
    ['x', 'y']
    >>> system.evaluate_all()
    {'x': 0.0, 'y': -1.0}
    """

    def __init__(
        self,
        equations: Sequence[EquationInput],
        initial_state: Optional[StateLike] = None,
        t: ScalarLike = 0.0,
        integrator: Optional[IntegratorBase] = None,
    ):
        self._compiled: CompiledSystem = compile_system(equations)
        self._evaluator = DependencyEvaluator(self._compiled)

        self._initial_state: State = _copy_state(initial_state)
        self._state: State = dict(self._initial_state)
        self.start_time: TimeValue = float(t)
        self.t: TimeValue = float(t)

        self.integrator: IntegratorBase = (
            integrator if integrator is not None else ExplicitEulerIntegrator()
        )

    # ========================================================================
    # Compiled Equations (read-only)
    # ========================================================================

    @property
    def compiled(self) -> CompiledSystem:
        """Compiled equation set currently in use."""
        return self._compiled

    @property
    def evaluator(self) -> DependencyEvaluator:
        """Evaluator bound to the current compiled equation set."""
        return self._evaluator

    def get_variables(self) -> List[str]:
        """Sorted names of all state variables."""
        return list(self._compiled.variables)

    def get_helpers(self) -> List[str]:
        """Sorted names of all helpers."""
        return list(self._compiled.helpers)

    def get_vector_aliases(self) -> Dict[str, List[str]]:
        """Vector alias table, e.g. ``{'r': ['x', 'y', 'z']}``."""
        return {name: list(parts) for name, parts in self._compiled.vector_aliases.items()}

    def get_expressions(self) -> List[EquationInput]:
        """Equations exactly as supplied."""
        return list(self._compiled.expressions)

    def recompile(self, equations: Sequence[EquationInput]) -> None:
        """
        Replace the equation set, keeping state and time.

        The new set is fully compiled before anything is swapped in; if
        compilation raises, the system keeps its previous equations.
        """
        compiled = compile_system(equations)
        evaluator = DependencyEvaluator(compiled)
        self._compiled, self._evaluator = compiled, evaluator

    # ========================================================================
    # State and Time
    # ========================================================================

    def get_state(self) -> State:
        """Independent copy of the current state."""
        return dict(self._state)

    def set_state(self, new_state: StateLike, t: Optional[ScalarLike] = None) -> None:
        """
        Replace the state wholesale, optionally setting the time.

        Keys absent from ``new_state`` are dropped, not kept.
        """
        self._state = _copy_state(new_state)
        if t is not None:
            self.t = float(t)

    def set_time(self, t: ScalarLike) -> None:
        """Set the current time without touching the state."""
        self.t = float(t)

    def set_start_time(self, t0: ScalarLike) -> None:
        """Set the time ``reset`` returns to."""
        self.start_time = float(t0)

    def set_initial_state(self, initial_state: StateLike, t0: Optional[ScalarLike] = None) -> None:
        """
        Replace the initial conditions and reset to them.

        Parameters
        ----------
        initial_state : StateLike
            New starting value per variable
        t0 : Optional[float]
            New start time (keeps the current start time if None)
        """
        self._initial_state = _copy_state(initial_state)
        if t0 is not None:
            self.start_time = float(t0)
        self.reset()

    def reset(self) -> None:
        """Restore the initial state and the start time."""
        self._state = dict(self._initial_state)
        self.t = self.start_time

    # ========================================================================
    # Evaluation
    # ========================================================================

    def evaluate_var(self, name: str) -> float:
        """
        Value of a helper, or derivative of a variable, at the current state.

        Helpers are consulted first.

        Raises
        ------
        UnknownVariableError
            If ``name`` is neither a helper nor a variable
        """
        return self._evaluator.evaluate_var(name, self._state, self.t)

    def evaluate_all(self) -> EvaluationResult:
        """
        Every helper value and every variable's derivative.

        Derivatives are keyed by the bare variable name (``"x"``), so the
        result is a helper scope plus ``{x: dx/dt, ...}``.
        """
        return self._evaluator.evaluate_all(self._state, self.t)

    def evaluate_derivatives(self) -> EvaluationResult:
        """Derivative of every variable at the current state and time."""
        return self._evaluator.evaluate_derivatives(self._state, self.t)

    def validate(self, raise_on_error: bool = True) -> ValidationResult:
        """
        Validate equations against the current state.

        See ``EquationValidator`` for the checks performed.
        """
        return EquationValidator(self).validate(raise_on_error=raise_on_error)

    # ========================================================================
    # Stepping
    # ========================================================================

    def set_integrator(self, integrator: IntegratorBase) -> None:
        """Swap the stepping strategy; compiled equations are untouched."""
        self.integrator = integrator

    def step(self, dt: ScalarLike) -> State:
        """
        Advance by one step of size ``dt``.

        The integrator's result replaces the state and ``t`` advances by
        ``dt``.

        Returns
        -------
        State
            Copy of the new state
        """
        dt = float(dt)
        new_state = self.integrator.step(self, dt)
        self._state = _copy_state(new_state)
        self.t += dt
        return self.get_state()

    def advance(self, elapsed: ScalarLike, max_dt: ScalarLike) -> List[State]:
        """
        Advance by ``elapsed`` in steps no larger than ``max_dt``.

        The last step is shortened so the system lands exactly on
        ``t + elapsed``. A remainder within floating-point tolerance of zero
        is folded into the previous step rather than taken on its own.

        Returns
        -------
        List[State]
            Starting state followed by the state after each step
        """
        elapsed = float(elapsed)
        max_dt = float(max_dt)
        if elapsed < 0 or not math.isfinite(elapsed):
            raise ValueError(f"elapsed must be non-negative and finite, got {elapsed}")
        if max_dt <= 0 or not math.isfinite(max_dt):
            raise ValueError(f"max_dt must be positive and finite, got {max_dt}")

        # Residue left by repeated subtraction (0.7 - 7*0.1) is not another step
        tolerance = 1e-12 * max(1.0, elapsed)

        points = [self.get_state()]
        remaining = elapsed
        while remaining > tolerance:
            h = max_dt if remaining - max_dt > tolerance else remaining
            points.append(self.step(h))
            remaining -= h
        return points

    def integrate(self, t_end: ScalarLike, dt: ScalarLike) -> IntegrationResult:
        """
        Step from the current time up to ``t_end``.

        The final step is shortened so the trajectory ends exactly at
        ``t_end``. The system is left at ``t_end``.

        Parameters
        ----------
        t_end : float
            Final time, not before the current time
        dt : float
            Step size

        Returns
        -------
        IntegrationResult
            TypedDict containing:
            - t: Time points (T,)
            - x: State trajectory (T, nx), columns in ``variables`` order
            - variables: Column names
            - success, message, nfev, nsteps, integration_time, solver

        Examples
        --------
        >>> result = system.integrate(t_end=1.0, dt=0.1)
        >>> result["nsteps"]
        10
        """
        t_end = float(t_end)
        dt = float(dt)
        if t_end < self.t:
            raise ValueError(f"t_end={t_end} is before the current time t={self.t}")
        if dt <= 0 or not math.isfinite(dt):
            raise ValueError(f"dt must be positive and finite, got {dt}")

        start_time = time.time()
        variables = self.get_variables()
        tolerance = 1e-12 * max(1.0, abs(t_end))
        fev_before = self.integrator.get_stats()["total_fev"]

        times = [self.t]
        rows = [[self._state.get(name, 0.0) for name in variables]]
        nsteps = 0
        while t_end - self.t > tolerance:
            state = self.step(min(dt, t_end - self.t))
            nsteps += 1
            times.append(self.t)
            rows.append([state[name] for name in variables])

        result: IntegrationResult = {
            "t": np.asarray(times),
            "x": np.asarray(rows, dtype=float).reshape(len(times), len(variables)),
            "variables": variables,
            "success": True,
            "message": f"{self.integrator.name} integration completed",
            "nfev": self.integrator.get_stats()["total_fev"] - fev_before,
            "nsteps": nsteps,
            "integration_time": time.time() - start_time,
            "solver": self.integrator.name,
        }
        return result

    # ========================================================================
    # String Representations
    # ========================================================================

    def __repr__(self) -> str:
        return (
            f"EquationSystem(variables={self.get_variables()}, "
            f"helpers={self.get_helpers()}, t={self.t})"
        )
