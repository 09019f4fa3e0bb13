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
Core Types for Equation-Driven Systems

Defines the fundamental type aliases used throughout eqflow:
- Scalar values and time
- State mappings (variable name -> value)
- Helper scopes and evaluation results
- Equation inputs (raw strings or Expression records)
- Compiled equation callables
- Execution statistics

Unlike array-based state-space libraries, an eqflow state is keyed by
variable *name*. The set of names is derived from the compiled equations,
so a state is a plain ``dict`` rather than a fixed-length vector.

Usage
-----
>>> from eqflow.types.core import State, HelperScope, EquationInput
>>>
>>> state: State = {"x": 1.0, "y": 2.0}
>>> helpers: HelperScope = {"a": 3.0}
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Mapping, Optional, Union

import numpy as np
from typing_extensions import TypedDict

# ============================================================================
# Scalar Types
# ============================================================================

ScalarLike = Union[float, int, np.number]
"""
Scalar numeric value.

Anything that ``float()`` accepts without loss of meaning: Python numbers
and NumPy scalar types. Results of compiled expressions are always
normalized to Python ``float``.

Examples
--------
>>> dt: ScalarLike = 0.01
>>> t: ScalarLike = np.float64(2.0)
"""

TimeValue = float
"""
Simulation time t.

Examples
--------
>>> t: TimeValue = 0.0
"""

# ============================================================================
# State and Scope Mappings
# ============================================================================

State = Dict[str, float]
"""
Mapping from variable name to current value.

Keys are unique; insertion order carries no meaning. A State owned by a
system is never handed out directly; callers receive copies.

Examples
--------
>>> state: State = {"x": 1.0, "y": 1.0, "z": 1.0}
"""

StateLike = Mapping[str, ScalarLike]
"""
Read-only state accepted as input (any mapping of name -> number).
"""

HelperScope = Dict[str, float]
"""
Mapping from helper name to its value for one evaluation call.

Computed fresh for every call; helper values are never cached across steps.
"""

EvaluationResult = Dict[str, float]
"""
Combined mapping returned by ``evaluate_all``.

Holds every helper value plus every variable's derivative, the latter keyed
by the bare variable name (``"x"``, not ``"dx/dt"``).
"""

CompiledFunction = Callable[[StateLike, float, Optional[HelperScope]], float]
"""
Compiled right-hand side: ``(state, t, helpers) -> float``.

Examples
--------
>>> fn: CompiledFunction = compiled.function
>>> fn({"x": 1.0}, 0.0, {})
2.0
"""

# ============================================================================
# Equation Inputs
# ============================================================================


class EquationKind(Enum):
    """
    Classification of a scalar equation.

    Attributes
    ----------
    VARIABLE : str
        Defines the time derivative of a state variable (``dx/dt = ...``)
    HELPER : str
        Defines an algebraic quantity (``a = ...``), never integrated
    """

    VARIABLE = "variable"
    HELPER = "helper"


@dataclass(frozen=True)
class Expression:
    """
    Equation record as produced by an input widget.

    Attributes
    ----------
    sanitized : str
        Plain-text equation that gets compiled
    latex : Optional[str]
        LaTeX source, kept for display only
    ascii_math : Optional[str]
        AsciiMath source, kept for display only
    """

    sanitized: str
    latex: Optional[str] = None
    ascii_math: Optional[str] = None

    def __str__(self) -> str:
        return self.sanitized


EquationInput = Union[str, Expression]
"""
A single equation as accepted by the compiler: raw text or an Expression.
"""


def equation_text(equation: EquationInput) -> str:
    """Return the compilable text of an equation input."""
    if isinstance(equation, Expression):
        return equation.sanitized
    if isinstance(equation, str):
        return equation
    raise TypeError(
        f"Equation must be a str or Expression, got {type(equation).__name__}"
    )


# ============================================================================
# Statistics
# ============================================================================


class ExecutionStats(TypedDict):
    """Execution statistics for tracking evaluation performance.

    Tracks runtime performance of any callable component:
    - Call frequency
    - Total evaluation time
    - Average execution time
    """

    calls: int
    total_time: float
    avg_time: float


__all__ = [
    "ScalarLike",
    "TimeValue",
    "State",
    "StateLike",
    "HelperScope",
    "EvaluationResult",
    "CompiledFunction",
    "EquationKind",
    "Expression",
    "EquationInput",
    "equation_text",
    "ExecutionStats",
]
