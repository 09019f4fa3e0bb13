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
Trajectory and Result Types

Defines types for time series produced by stepping an equation system:
- Time points and trajectories (time-major arrays)
- Integration results

Shape Conventions:
- Time points: (T,)
- Trajectory: (T, nx), columns ordered like ``system.get_variables()``

Usage
-----
>>> from eqflow.types.trajectories import IntegrationResult
>>>
>>> result: IntegrationResult = system.integrate(t_end=10.0, dt=0.01)
>>> x_over_time = result["x"][:, result["variables"].index("x")]
"""

from typing import List

import numpy as np
from typing_extensions import TypedDict

TimePoints = np.ndarray
"""
Time points of a trajectory, shape (T,).
"""

StateTrajectory = np.ndarray
"""
State trajectory, shape (T, nx), time-major.

``trajectory[:, i]`` is the i-th variable over time.
"""


class IntegrationResult(TypedDict, total=False):
    """
    Result from fixed-step integration of an equation system.

    Attributes
    ----------
    t : TimePoints
        Time points (T,), including the starting time
    x : StateTrajectory
        State trajectory (T, nx) - time-major ordering
    variables : List[str]
        Column names of ``x`` (sorted variable names)
    success : bool
        Whether integration succeeded
    message : str
        Status message
    nfev : int
        Number of derivative evaluations
    nsteps : int
        Number of integration steps
    integration_time : float
        Computation time in seconds
    solver : str
        Name of the integrator used
    """

    t: TimePoints
    x: StateTrajectory
    variables: List[str]
    success: bool
    message: str
    nfev: int
    nsteps: int
    integration_time: float
    solver: str


__all__ = [
    "TimePoints",
    "StateTrajectory",
    "IntegrationResult",
]
