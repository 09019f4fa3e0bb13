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
Integrator Base - Abstract Interface for Fixed-Step Integration

Defines the stepping strategy contract used by ``EquationSystem``.

An integrator is a strategy object: it is not bound to a system and can be
swapped on a live system without recompiling equations. Each call to
``step(system, dt)`` reads the system's state and time, and returns a
brand-new state for ``t + dt``. The system, not the integrator, replaces
its state and advances its clock.
"""

import math
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Optional

from eqflow.types.core import ScalarLike, State

if TYPE_CHECKING:
    from eqflow.types.protocols import SteppableSystemProtocol


class StepMode(Enum):
    """
    Integration step mode.

    Attributes
    ----------
    FIXED : str
        Fixed time step - integrator uses the dt it is given
    """

    FIXED = "fixed"


class IntegratorBase(ABC):
    """
    Abstract base class for stepping strategies.

    All integrators must implement:
    - step(): Single integration step
    - name: Integrator name for display

    Contract for implementations:
    - Return a new dict; never mutate the system's state in place
    - Evaluate all derivatives from the same pre-step state (synchronous
      update), so coupled systems stay consistent

    Examples
    --------
    >>> integrator = ExplicitEulerIntegrator(dt=0.01)
    >>> next_state = integrator.step(system)          # uses dt=0.01
    >>> next_state = integrator.step(system, dt=0.1)  # explicit dt
    """

    def __init__(self, dt: Optional[ScalarLike] = None, **options):
        """
        Initialize integrator.

        Parameters
        ----------
        dt : Optional[float]
            Default time step used when ``step`` is called without one
        **options : dict
            Integrator-specific options, kept on ``self.options``

        Raises
        ------
        ValueError
            If dt is given but not a positive finite number
        """
        self.dt = self._validate_dt(dt) if dt is not None else None
        self.step_mode = StepMode.FIXED
        self.options = options

        # Statistics
        self._stats = {
            "total_steps": 0,
            "total_fev": 0,  # Derivative evaluations
            "total_time": 0.0,
        }

    @staticmethod
    def _validate_dt(dt: ScalarLike) -> float:
        try:
            value = float(dt)
        except (TypeError, ValueError):
            raise ValueError(f"Time step dt must be a number, got {dt!r}") from None
        if not math.isfinite(value) or value <= 0:
            raise ValueError(f"Time step dt must be positive and finite, got {dt!r}")
        return value

    def _resolve_dt(self, dt: Optional[ScalarLike]) -> float:
        if dt is not None:
            return self._validate_dt(dt)
        if self.dt is None:
            raise ValueError(
                f"{self.name} has no default dt. Pass dt to step() or the constructor."
            )
        return self.dt

    @abstractmethod
    def step(self, system: "SteppableSystemProtocol", dt: Optional[ScalarLike] = None) -> State:
        """
        Take one integration step: state(t) -> state(t + dt).

        Parameters
        ----------
        system : SteppableSystemProtocol
            System whose current state and time are read
        dt : Optional[float]
            Step size (uses self.dt if None)

        Returns
        -------
        State
            New state at t + dt
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Get integrator name for display.

        Returns
        -------
        str
            Human-readable integrator name
        """
        pass

    def get_stats(self) -> dict:
        """
        Get integration statistics.

        Returns
        -------
        dict
            ``total_steps``, ``total_fev``, ``total_time`` and
            ``avg_fev_per_step``
        """
        return {
            **self._stats,
            "avg_fev_per_step": self._stats["total_fev"] / max(1, self._stats["total_steps"]),
        }

    def reset_stats(self):
        """Reset integration statistics."""
        self._stats["total_steps"] = 0
        self._stats["total_fev"] = 0
        self._stats["total_time"] = 0.0

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(dt={self.dt})"
