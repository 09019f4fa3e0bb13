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
Equation Errors and Equation-Set Validator

Defines the exception taxonomy raised by the equation compiler and
evaluator, and an opt-in validator that inspects a compiled system for
problems that would only surface later, mid-simulation.

Exception hierarchy::

    EquationError(ValueError)
     ├─ EquationParseError            raised while compiling
     │   ├─ MalformedEquationError
     │   │   └─ ExpressionSyntaxError
     │   └─ DimensionMismatchError
     ├─ EquationEvaluationError       raised while evaluating / stepping
     │   ├─ UnknownVariableError
     │   ├─ UndefinedSymbolError
     │   ├─ CyclicDependencyError
     │   └─ NonScalarResultError
     └─ ValidationError

The validator is completely standalone and can validate any object exposing
``compiled``, ``evaluator`` and ``get_state()``.
"""

import math
import warnings
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from eqflow.systems.base.core.equation_system import EquationSystem


# ============================================================================
# Exceptions
# ============================================================================


class EquationError(ValueError):
    """Base class for every error raised by the equation core"""

    pass


class EquationParseError(EquationError):
    """Raised when an equation set cannot be compiled"""

    pass


class MalformedEquationError(EquationParseError):
    """
    Raised when an equation does not have a recognized shape.

    Attributes
    ----------
    equation : str
        Raw text of the offending equation
    """

    def __init__(self, equation: str, reason: str = ""):
        self.equation = equation
        self.reason = reason
        message = f"Malformed equation '{equation}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ExpressionSyntaxError(MalformedEquationError):
    """Raised when the expression service rejects a right-hand side"""

    pass


class DimensionMismatchError(EquationParseError):
    """Raised when vector literals in one equation differ in length"""

    def __init__(self, equation: str, dimensions: List[int]):
        self.equation = equation
        self.dimensions = list(dimensions)
        super().__init__(
            f"Mismatched vector dimensions {self.dimensions} in equation '{equation}'"
        )


class EquationEvaluationError(EquationError):
    """Raised when a compiled system cannot be evaluated"""

    pass


class UnknownVariableError(EquationEvaluationError, KeyError):
    """Raised when a requested name is neither a helper nor a variable"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown variable: {name}")

    def __str__(self) -> str:
        return self.args[0]


class UndefinedSymbolError(EquationEvaluationError):
    """Raised when an expression reads a name missing from its scope"""

    def __init__(self, symbol: str, expression: str):
        self.symbol = symbol
        self.expression = expression
        super().__init__(f"Undefined symbol '{symbol}' in expression '{expression}'")


class CyclicDependencyError(EquationEvaluationError):
    """
    Raised when helpers depend on each other in a cycle.

    Attributes
    ----------
    helper : str
        Helper at which the cycle was detected
    cycle : List[str]
        Helpers along the cycle, starting and ending at ``helper``
    """

    def __init__(self, helper: str, cycle: Optional[List[str]] = None):
        self.helper = helper
        self.cycle = list(cycle) if cycle else [helper, helper]
        super().__init__(
            f"Cyclic dependency detected at helper '{helper}': "
            + " -> ".join(self.cycle)
        )


class NonScalarResultError(EquationEvaluationError):
    """Raised when a compiled function does not produce a real scalar"""

    def __init__(self, name: str, value: object, kind: str = "Helper"):
        self.name = name
        self.value = value
        super().__init__(f"{kind} '{name}' evaluated to non-scalar value: {value!r}")


class ValidationError(EquationError):
    """Raised when equation-set validation fails"""

    pass


class MissingStateWarning(UserWarning):
    """Issued when a variable has no value in the state being stepped"""

    pass


# ============================================================================
# Validation Result Container
# ============================================================================


@dataclass
class ValidationResult:
    """
    Container for validation results.

    Attributes
    ----------
    is_valid : bool
        True if the system passed all validation checks
    errors : List[str]
        List of validation errors (empty if valid)
    warnings : List[str]
        List of validation warnings (non-fatal issues)
    info : Dict
        Additional information about the validated system
    """

    is_valid: bool
    errors: List[str]
    warnings: List[str]
    info: Dict


# ============================================================================
# Equation Validator
# ============================================================================


class EquationValidator:
    """
    Validates a compiled equation system against its current state.

    Compilation already rejects malformed text. This validator reports the
    problems that compilation accepts but evaluation would trip over (or
    silently tolerate):

    Errors:
    - helper dependency cycles
    - expressions reading names that are neither variables, helpers, ``t``,
      nor present in the state

    Warnings:
    - variables without an initial value (stepping treats them as 0)
    - names declared by more than one equation (last one wins)
    - helpers sharing a name with a variable (helper shadows it in lookups)
    - non-finite values in the state

    Examples
    --------
    >>> validator = EquationValidator(system)
    >>> result = validator.validate(raise_on_error=False)
    >>> if not result.is_valid:
    ...     print(f"Errors: {result.errors}")
    """

    def __init__(self, system: "EquationSystem"):
        """
        Initialize validator with the system to validate.

        Parameters
        ----------
        system : EquationSystem
            System to validate
        """
        self.system = system
        self._errors: List[str] = []
        self._warnings: List[str] = []

    # ========================================================================
    # Public API
    # ========================================================================

    def validate(self, raise_on_error: bool = True) -> ValidationResult:
        """
        Validate the system.

        Parameters
        ----------
        raise_on_error : bool
            If True, raise ValidationError on validation failure
            If False, return ValidationResult with errors

        Returns
        -------
        ValidationResult
            Validation results with errors, warnings, and info

        Raises
        ------
        ValidationError
            If validation fails and raise_on_error=True
        """
        self._errors = []
        self._warnings = []

        self._validate_dependency_graph()
        self._validate_symbols()
        self._validate_state()
        self._check_redeclarations()

        is_valid = len(self._errors) == 0

        result = ValidationResult(
            is_valid=is_valid,
            errors=self._errors.copy(),
            warnings=self._warnings.copy(),
            info=self._build_info(),
        )

        if result.warnings:
            self._issue_warnings(result.warnings)

        if not is_valid and raise_on_error:
            raise ValidationError(self._format_error_message())

        return result

    # ========================================================================
    # Validation Checks
    # ========================================================================

    def _validate_dependency_graph(self):
        """Check that helpers can be ordered"""
        try:
            self.system.evaluator.evaluation_order()
        except CyclicDependencyError as e:
            self._errors.append(str(e))

    def _validate_symbols(self):
        """Check that every free symbol resolves to something"""
        compiled = self.system.compiled
        state = self.system.get_state()
        known = set(compiled.variables) | set(compiled.helpers) | set(state) | {"t"}

        for equation in compiled.equations():
            undefined = sorted(equation.expression.symbols - known)
            if undefined:
                self._errors.append(
                    f"Equation '{equation.source}' references undefined symbol(s) "
                    f"{undefined}. Define them as helpers or give them a state value."
                )

    def _validate_state(self):
        """Check state coverage and values"""
        compiled = self.system.compiled
        state = self.system.get_state()

        missing = [name for name in compiled.variables if name not in state]
        if missing:
            self._warnings.append(
                f"Variables {missing} have no initial value and will start at 0."
            )

        for name, value in state.items():
            if not math.isfinite(value):
                self._warnings.append(f"State value {name} = {value} is not finite.")

        shadowed = sorted(set(compiled.helpers) & set(compiled.variables))
        if shadowed:
            self._warnings.append(
                f"Helpers {shadowed} share a name with a variable; lookups "
                f"return the helper value."
            )

    def _check_redeclarations(self):
        """Report names defined by more than one equation"""
        redeclared = self.system.compiled.redeclared
        if redeclared:
            self._warnings.append(
                f"Names {list(redeclared)} are declared more than once; "
                f"the last declaration is used."
            )

    # ========================================================================
    # Info Building
    # ========================================================================

    def _build_info(self) -> Dict:
        """Build info dictionary with system characteristics."""
        compiled = self.system.compiled
        return {
            "n_variables": len(compiled.variables),
            "n_helpers": len(compiled.helpers),
            "n_vector_aliases": len(compiled.vector_aliases),
            "is_autonomous": not any(
                "t" in eq.expression.symbols for eq in compiled.equations()
            ),
        }

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def _issue_warnings(self, warnings_list: List[str]):
        """Issue Python warnings for validation warnings"""
        for warning in warnings_list:
            warnings.warn(f"Equation validation warning: {warning}", UserWarning)

    def _format_error_message(self) -> str:
        """Format error messages in a readable way"""
        msg = "Equation validation failed:\n\n"
        msg += "Errors:\n"
        msg += "\n".join(f"  • {error}" for error in self._errors)

        if self._warnings:
            msg += "\n\nWarnings:\n"
            msg += "\n".join(f"  • {warning}" for warning in self._warnings)

        return msg

    # ========================================================================
    # Convenience Methods
    # ========================================================================

    @staticmethod
    def validate_system(
        system: "EquationSystem", raise_on_error: bool = True
    ) -> ValidationResult:
        """
        Static convenience method for one-off validation.

        Parameters
        ----------
        system : EquationSystem
            System to validate
        raise_on_error : bool
            If True, raise ValidationError on failure

        Returns
        -------
        ValidationResult
        """
        validator = EquationValidator(system)
        return validator.validate(raise_on_error=raise_on_error)
