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
Type System for eqflow
======================

Centralized type aliases, result TypedDicts and protocols.

>>> from eqflow.types import State, Expression, IntegrationResult
"""

from .core import (
    CompiledFunction,
    EquationInput,
    EquationKind,
    EvaluationResult,
    ExecutionStats,
    Expression,
    HelperScope,
    ScalarLike,
    State,
    StateLike,
    TimeValue,
    equation_text,
)
from .protocols import (
    CompiledExpressionProtocol,
    IntegratorProtocol,
    SteppableSystemProtocol,
)
from .trajectories import IntegrationResult, StateTrajectory, TimePoints

__all__ = [
    # Core
    "CompiledFunction",
    "EquationInput",
    "EquationKind",
    "EvaluationResult",
    "ExecutionStats",
    "Expression",
    "HelperScope",
    "ScalarLike",
    "State",
    "StateLike",
    "TimeValue",
    "equation_text",
    # Protocols
    "CompiledExpressionProtocol",
    "IntegratorProtocol",
    "SteppableSystemProtocol",
    # Trajectories
    "IntegrationResult",
    "StateTrajectory",
    "TimePoints",
]
