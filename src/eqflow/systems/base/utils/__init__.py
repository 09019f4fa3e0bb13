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
Equation Utilities
==================

Building blocks of the equation core: text normalization, vector
expansion, classification and compilation, dependency-ordered evaluation
and validation.

Compilation
-----------
>>> from eqflow.systems.base.utils import compile_system, DependencyEvaluator
>>>
>>> compiled = compile_system(["rho = 28", "dx/dt = rho - x"])
>>> evaluator = DependencyEvaluator(compiled)
>>> evaluator.evaluate_var("x", {"x": 8.0}, t=0.0)
20.0

Authors
-------
Gil Benezer

License
-------
GNU Affero General Public License v3.0
"""

from .codegen_utils import (
    KNOWN_CONSTANTS,
    KNOWN_FUNCTIONS,
    CompiledExpression,
    compile_expression,
)
from .dependency_evaluator import DependencyEvaluator
from .equation_compiler import (
    CompiledEquation,
    CompiledSystem,
    EquationCompiler,
    compile_system,
    extract_dependencies,
)
from .equation_validator import (
    CyclicDependencyError,
    DimensionMismatchError,
    EquationError,
    EquationEvaluationError,
    EquationParseError,
    EquationValidator,
    ExpressionSyntaxError,
    MalformedEquationError,
    MissingStateWarning,
    NonScalarResultError,
    UndefinedSymbolError,
    UnknownVariableError,
    ValidationError,
    ValidationResult,
)
from .expression_preprocessor import (
    insert_implicit_multiplication,
    normalize_equation,
    normalize_expression,
    split_equation,
)
from .vector_expander import VectorExpander, find_vector_literals

__all__ = [
    # Expression service
    "KNOWN_CONSTANTS",
    "KNOWN_FUNCTIONS",
    "CompiledExpression",
    "compile_expression",
    # Preprocessing
    "insert_implicit_multiplication",
    "normalize_equation",
    "normalize_expression",
    "split_equation",
    # Vector expansion
    "VectorExpander",
    "find_vector_literals",
    # Compilation
    "CompiledEquation",
    "CompiledSystem",
    "EquationCompiler",
    "compile_system",
    "extract_dependencies",
    # Evaluation
    "DependencyEvaluator",
    # Validation and errors
    "EquationValidator",
    "ValidationResult",
    "EquationError",
    "EquationParseError",
    "MalformedEquationError",
    "ExpressionSyntaxError",
    "DimensionMismatchError",
    "EquationEvaluationError",
    "UnknownVariableError",
    "UndefinedSymbolError",
    "CyclicDependencyError",
    "NonScalarResultError",
    "ValidationError",
    "MissingStateWarning",
]
