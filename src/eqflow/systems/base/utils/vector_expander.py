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
Vector Expander

Rewrites vector shorthand into equivalent scalar equations.

Recognized vector literals are ``((a, b, c))`` and ``[[a, b, c]]``. Shapes,
checked in order:

1. Derivative of an alias, ``dr/dt = ((...))``: one derivative equation per
   component of the alias ``r`` (or ``r_1 .. r_N`` if ``r`` is not known yet).
2. Any vector literal:
   - ``r = ((x, y, z))`` records the alias ``r -> [x, y, z]`` and emits
     nothing;
   - otherwise component ``i`` of every literal is substituted in turn,
     giving N scalar equations (``d((x,y))/dt = ((y,-x))`` ->
     ``dx/dt = y``, ``dy/dt = -x``).
3. No vector syntax: the equation is returned unchanged.

Aliases must be declared before the equations that use them.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from eqflow.systems.base.utils.equation_validator import DimensionMismatchError

_BRACKETS = {"((": "))", "[[": "]]"}
_OPENERS = "(["
_CLOSERS = ")]"

_IDENTIFIER = re.compile(r"^\s*([A-Za-z]\w*)\s*$")
_DERIVATIVE_OF_NAME = re.compile(r"^\s*\(?\s*d\s*([A-Za-z]\w*)\s*\)?\s*/\s*\(?\s*d\s*[tT]\s*\)?\s*$")


@dataclass(frozen=True)
class VectorLiteral:
    """
    A vector literal found in equation text.

    Attributes
    ----------
    start : int
        Index of the opening bracket pair
    end : int
        Index one past the closing bracket pair
    components : Tuple[str, ...]
        Trimmed component expressions
    """

    start: int
    end: int
    components: Tuple[str, ...]

    @property
    def dimension(self) -> int:
        return len(self.components)


def split_top_level(text: str, separator: str = ",") -> List[str]:
    """
    Split on ``separator`` outside any parentheses or brackets.

    Examples:
        >>> split_top_level("y, max(x, 1), -z")
        ['y', 'max(x, 1)', '-z']
    """
    parts = []
    depth = 0
    current = []
    for char in text:
        if char in _OPENERS:
            depth += 1
        elif char in _CLOSERS:
            depth -= 1
        if char == separator and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    parts.append("".join(current).strip())
    return parts


def _scan_literal(text: str, start: int) -> Optional[VectorLiteral]:
    """Try to read a vector literal opening at ``start``."""
    closer = _BRACKETS[text[start:start + 2]]
    depth = 0
    i = start + 2
    while i < len(text):
        if depth == 0 and text.startswith(closer, i):
            body = text[start + 2:i]
            components = split_top_level(body)
            if len(components) < 2:
                return None
            return VectorLiteral(start, i + 2, tuple(components))
        char = text[i]
        if char in _OPENERS:
            depth += 1
        elif char in _CLOSERS:
            depth -= 1
            if depth < 0:
                return None
        i += 1
    return None


def find_vector_literals(text: str) -> List[VectorLiteral]:
    """
    Find every vector literal in ``text``, left to right.

    Double brackets only form a literal when they enclose at least one
    top-level comma; ``((x+1))`` is plain grouping.

    Examples:
        >>> [v.components for v in find_vector_literals("d((x,y))/dt = ((y, sin(x)))")]
        [('x', 'y'), ('y', 'sin(x)')]
    """
    literals = []
    i = 0
    while i < len(text) - 1:
        if text[i:i + 2] in _BRACKETS:
            literal = _scan_literal(text, i)
            if literal is not None:
                literals.append(literal)
                i = literal.end
                continue
        i += 1
    return literals


def _is_whole_literal(text: str) -> Optional[VectorLiteral]:
    """Return the literal if ``text`` is exactly one vector literal."""
    stripped = text.strip()
    literals = find_vector_literals(stripped)
    if len(literals) == 1 and literals[0].start == 0 and literals[0].end == len(stripped):
        return literals[0]
    return None


_SIMPLE_OPERAND = re.compile(r"^(?:[A-Za-z_]\w*|\d+(?:\.\d*)?)$")


def _as_operand(component: str) -> str:
    """Parenthesize a component unless it is a single name or number."""
    if _SIMPLE_OPERAND.match(component):
        return component
    return f"({component})"


class VectorExpander:
    """
    Expands vector-shorthand equations into scalar equations.

    One expander is used per compilation; its alias table lives only as long
    as that compilation.

    Examples
    --------
    >>> expander = VectorExpander()
    >>> expander.expand("r = ((x, y, z))")
    []
    >>> expander.expand("dr/dt = ((y, -x, x+y))")
    ['dx/dt = y', 'dy/dt = (-x)', 'dz/dt = (x+y)']
    """

    def __init__(self):
        self.vector_aliases: Dict[str, List[str]] = {}

    def expand(self, equation: str) -> List[str]:
        """
        Expand one equation into zero, one or many scalar equations.

        Raises:
            DimensionMismatchError: If vector literals differ in length
        """
        expanded = self._expand_alias_derivative(equation)
        if expanded is not None:
            return expanded

        literals = find_vector_literals(equation)
        if not literals:
            return [equation]

        dimensions = [literal.dimension for literal in literals]
        if len(set(dimensions)) != 1:
            raise DimensionMismatchError(equation, dimensions)

        alias = self._match_alias_declaration(equation)
        if alias is not None:
            name, literal = alias
            self.vector_aliases[name] = [re.sub(r"\s", "", c) for c in literal.components]
            return []

        return [
            self._substitute_component(equation, literals, i) for i in range(dimensions[0])
        ]

    # ========================================================================
    # Shapes
    # ========================================================================

    def _expand_alias_derivative(self, equation: str) -> Optional[List[str]]:
        """Handle ``dr/dt = ((...))`` with the derivative on either side."""
        if equation.count("=") != 1:
            return None
        lhs, rhs = equation.split("=")

        match = _DERIVATIVE_OF_NAME.match(lhs)
        vector_side = rhs
        if match is None:
            match = _DERIVATIVE_OF_NAME.match(rhs)
            vector_side = lhs
        if match is None or _is_whole_literal(vector_side) is None:
            return None

        alias = match.group(1)
        components = [c.strip() for c in self.expand(vector_side.strip())]

        targets = self.vector_aliases.get(alias)
        if targets is None:
            targets = [f"{alias}_{i + 1}" for i in range(len(components))]
        elif len(targets) != len(components):
            raise DimensionMismatchError(equation, [len(targets), len(components)])

        return [f"d{name}/dt = {rhs}" for name, rhs in zip(targets, components)]

    def _match_alias_declaration(self, equation: str) -> Optional[Tuple[str, VectorLiteral]]:
        """Return ``(name, literal)`` for ``name = ((...))``."""
        if equation.count("=") != 1:
            return None
        lhs, rhs = equation.split("=")
        name_match = _IDENTIFIER.match(lhs)
        if name_match is None:
            return None
        literal = _is_whole_literal(rhs)
        if literal is None:
            return None
        return name_match.group(1), literal

    @staticmethod
    def _substitute_component(equation: str, literals: List[VectorLiteral], index: int) -> str:
        """Replace every literal with its ``index``-th component."""
        pieces = []
        cursor = 0
        for literal in literals:
            pieces.append(equation[cursor:literal.start])
            pieces.append(_as_operand(literal.components[index]))
            cursor = literal.end
        pieces.append(equation[cursor:])
        return "".join(pieces)
