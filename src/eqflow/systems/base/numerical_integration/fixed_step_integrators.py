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
Fixed-Step Integrators

Implements explicit fixed time-step integration for equation systems:
- Explicit Euler (1st order)

Every derivative is evaluated once per step from the state and time at the
start of the step, and all variables are updated together.
"""

import time
import warnings
from typing import TYPE_CHECKING, Dict, Optional, Type

from eqflow.systems.base.numerical_integration.integrator_base import IntegratorBase
from eqflow.systems.base.utils.equation_validator import MissingStateWarning
from eqflow.types.core import ScalarLike, State

if TYPE_CHECKING:
    from eqflow.types.protocols import SteppableSystemProtocol


class ExplicitEulerIntegrator(IntegratorBase):
    """
    Explicit Euler integrator (Forward Euler).

    First-order method: x_{k+1} = x_k + dt * f(x_k, t_k)

    Characteristics:
    - Order: 1 (error ∝ dt)
    - Stability: Conditionally stable (small dt required)
    - One derivative evaluation per step

    Variables missing from the state start from 0 (with a
    ``MissingStateWarning``). State entries that are not variables are
    carried over unchanged.

    Examples
    --------
    >>> system = EquationSystem(["dx/dt = -x"], {"x": 1.0})
    >>> ExplicitEulerIntegrator().step(system, dt=0.1)
    {'x': 0.9}
    """

    def step(self, system: "SteppableSystemProtocol", dt: Optional[ScalarLike] = None) -> State:
        """
        Take one Euler step: x_{k+1} = x_k + dt * f(x_k, t_k).

        Parameters
        ----------
        system : SteppableSystemProtocol
            System to step
        dt : Optional[float]
            Time step (uses self.dt if None)

        Returns
        -------
        State
            New state; the system's own state is not modified
        """
        dt = self._resolve_dt(dt)
        start_time = time.time()

        state = system.get_state()
        derivatives = system.evaluate_derivatives()

        next_state = dict(state)
        for name in system.get_variables():
            current = state.get(name)
            if current is None:
                warnings.warn(
                    f"Missing variable in state: {name}; starting it at 0",
                    MissingStateWarning,
                )
                current = 0.0
            next_state[name] = current + dt * derivatives[name]

        self._stats["total_steps"] += 1
        self._stats["total_fev"] += 1
        self._stats["total_time"] += time.time() - start_time

        return next_state

    @property
    def name(self) -> str:
        return "Explicit Euler"


FIXED_STEP_METHODS: Dict[str, Type[IntegratorBase]] = {
    "euler": ExplicitEulerIntegrator,
}


def create_fixed_step_integrator(
    method: str = "euler", dt: Optional[ScalarLike] = None, **options
) -> IntegratorBase:
    """
    Factory function for fixed-step integrators.

    Parameters
    ----------
    method : str
        Integration method name (case-insensitive): 'euler'
    dt : Optional[float]
        Default time step
    **options
        Integrator options

    Returns
    -------
    IntegratorBase
        Integrator instance

    Raises
    ------
    ValueError
        If method is not known

    Examples
    --------
    >>> integrator = create_fixed_step_integrator("euler", dt=0.01)
    """
    key = method.lower()
    if key not in FIXED_STEP_METHODS:
        raise ValueError(
            f"Unknown fixed-step method '{method}'. "
            f"Available: {sorted(FIXED_STEP_METHODS)}"
        )
    return FIXED_STEP_METHODS[key](dt=dt, **options)
