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
Equation Classifier & Compiler

Turns scalar equation text into compiled callables and assembles the
immutable ``CompiledSystem`` that an evaluator runs against.

Classification:
- ``dx/dt = f``  (or ``f = dx/dt``)  -> VARIABLE ``x``
- ``a = f``                          -> HELPER ``a``, with the free names of
  ``f`` recorded as its dependencies

Every compiled callable has the signature ``(state, t, helpers) -> float``
and resolves names from ``{**state, **helpers, "t": t}``.

Compilation is all-or-nothing: ``compile_system`` either returns a complete
``CompiledSystem`` or raises.
"""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterator, List, Mapping, Optional, Sequence, Tuple

from eqflow.systems.base.utils.codegen_utils import compile_expression, extract_identifiers
from eqflow.systems.base.utils.equation_validator import MalformedEquationError
from eqflow.systems.base.utils.expression_preprocessor import (
    normalize_equation,
    normalize_expression,
    split_equation,
    strip_whitespace,
)
from eqflow.systems.base.utils.vector_expander import VectorExpander
from eqflow.types.core import (
    CompiledFunction,
    EquationInput,
    EquationKind,
    HelperScope,
    StateLike,
    TimeValue,
    equation_text,
)
from eqflow.types.protocols import CompiledExpressionProtocol

DERIVATIVE_PATTERN = re.compile(r"^\(?d([A-Za-z]\w*)\)?/\(?d[tT]\)?$")
HELPER_NAME_PATTERN = re.compile(r"^[A-Za-z_]\w*$")


def extract_dependencies(expr: str) -> FrozenSet[str]:
    """
    Free identifiers of an expression.

    Numeric literals and the grammar's own functions and constants are
    excluded.

    Examples:
        >>> sorted(extract_dependencies("sigma*(y-x)+sin(t)"))
        ['sigma', 't', 'x', 'y']
    """
    return frozenset(extract_identifiers(expr))


# ============================================================================
# Compiled Containers
# ============================================================================


@dataclass(frozen=True)
class CompiledEquation:
    """
    One compiled scalar equation.

    Attributes
    ----------
    name : str
        Variable name (for derivatives) or helper name
    kind : EquationKind
        VARIABLE or HELPER
    source : str
        Scalar equation text it was compiled from
    expression : CompiledExpressionProtocol
        Compiled right-hand side
    dependencies : FrozenSet[str]
        Free names of the right-hand side (helpers only, empty otherwise)
    """

    name: str
    kind: EquationKind
    source: str
    expression: CompiledExpressionProtocol
    dependencies: FrozenSet[str] = frozenset()

    def __call__(
        self, state: StateLike, t: TimeValue, helpers: Optional[HelperScope] = None
    ) -> float:
        """Evaluate with names resolved from state, helpers and ``t``."""
        scope = dict(state)
        if helpers:
            scope.update(helpers)
        scope["t"] = t
        return self.expression.evaluate(scope)

    @property
    def function(self) -> CompiledFunction:
        return self.__call__


@dataclass(frozen=True)
class CompiledSystem:
    """
    Immutable result of compiling an equation set.

    Attributes
    ----------
    expressions : Tuple[EquationInput, ...]
        Equations exactly as supplied
    variable_equations : Mapping[str, CompiledEquation]
        Derivative equation per variable
    helper_equations : Mapping[str, CompiledEquation]
        Defining equation per helper
    vector_aliases : Mapping[str, Tuple[str, ...]]
        Vector alias table recorded during expansion
    redeclared : Tuple[str, ...]
        Names defined by more than one equation (last one kept)
    """

    expressions: Tuple[EquationInput, ...]
    variable_equations: Mapping[str, CompiledEquation]
    helper_equations: Mapping[str, CompiledEquation]
    vector_aliases: Mapping[str, Tuple[str, ...]]
    redeclared: Tuple[str, ...] = ()
    variables: Tuple[str, ...] = field(init=False)
    helpers: Tuple[str, ...] = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "variables", tuple(sorted(self.variable_equations)))
        object.__setattr__(self, "helpers", tuple(sorted(self.helper_equations)))

    @property
    def helper_dependencies(self) -> Dict[str, FrozenSet[str]]:
        return {name: eq.dependencies for name, eq in self.helper_equations.items()}

    def equations(self) -> Iterator[CompiledEquation]:
        """Iterate helpers then variables, each in sorted order."""
        for name in self.helpers:
            yield self.helper_equations[name]
        for name in self.variables:
            yield self.variable_equations[name]


# ============================================================================
# Compiler
# ============================================================================


class EquationCompiler:
    """
    Classifies and compiles equations.

    Examples
    --------
    >>> compiler = EquationCompiler()
    >>> eq = compiler.compile_equation("dx/dt = sigma(y - x)")
    >>> eq.kind, eq.name
    (<EquationKind.VARIABLE: 'variable'>, 'x')
    >>> eq({"x": 1.0, "y": 2.0}, 0.0, {"sigma": 10.0})
    10.0
    """

    def compile_equation(self, equation: str) -> CompiledEquation:
        """
        Classify and compile one scalar equation.

        Raises:
            MalformedEquationError: If the equation has no recognized shape
                or its right-hand side cannot be parsed
        """
        lhs, rhs = split_equation(equation)

        # Derivative may be written on either side
        if DERIVATIVE_PATTERN.match(strip_whitespace(rhs)) and not DERIVATIVE_PATTERN.match(
            strip_whitespace(lhs)
        ):
            lhs, rhs = rhs, lhs

        target = strip_whitespace(lhs)
        body = normalize_expression(rhs)

        derivative = DERIVATIVE_PATTERN.match(target)
        if derivative:
            return CompiledEquation(
                name=derivative.group(1),
                kind=EquationKind.VARIABLE,
                source=equation,
                expression=self._compile_rhs(equation, body),
            )

        if not HELPER_NAME_PATTERN.match(target):
            raise MalformedEquationError(
                equation,
                f"left-hand side '{target}' is neither a derivative 'd<name>/dt' nor a name",
            )

        return CompiledEquation(
            name=target,
            kind=EquationKind.HELPER,
            source=equation,
            expression=self._compile_rhs(equation, body),
            dependencies=extract_dependencies(body),
        )

    @staticmethod
    def _compile_rhs(equation: str, body: str) -> CompiledExpressionProtocol:
        try:
            return compile_expression(body)
        except MalformedEquationError as e:
            raise type(e)(equation, e.reason) from e

    def compile_system(self, equations: Sequence[EquationInput]) -> CompiledSystem:
        """
        Compile a full equation set.

        Each equation is normalized, vector-expanded and compiled in order.
        Later definitions of the same name replace earlier ones.

        Raises:
            EquationParseError: On the first equation that fails
        """
        expressions = tuple(equations)
        expander = VectorExpander()

        variable_equations: Dict[str, CompiledEquation] = {}
        helper_equations: Dict[str, CompiledEquation] = {}
        redeclared: List[str] = []

        for expression in expressions:
            normalized = normalize_equation(equation_text(expression))
            for scalar in expander.expand(normalized):
                compiled = self.compile_equation(scalar)
                table = (
                    variable_equations
                    if compiled.kind is EquationKind.VARIABLE
                    else helper_equations
                )
                if compiled.name in table and compiled.name not in redeclared:
                    redeclared.append(compiled.name)
                table[compiled.name] = compiled

        return CompiledSystem(
            expressions=expressions,
            variable_equations=MappingProxyType(variable_equations),
            helper_equations=MappingProxyType(helper_equations),
            vector_aliases=MappingProxyType(
                {name: tuple(parts) for name, parts in expander.vector_aliases.items()}
            ),
            redeclared=tuple(redeclared),
        )


def compile_system(equations: Sequence[EquationInput]) -> CompiledSystem:
    """
    Convenience function: compile an equation set.

    Examples:
        >>> compiled = compile_system(["dx/dt = y", "dy/dt = -x"])
        >>> compiled.variables
        ('x', 'y')
    """
    return EquationCompiler().compile_system(equations)
