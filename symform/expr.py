"""
Expression trees for SYMFORM.

An expression is one of three immutable node types:

    Constant(5.0)                       - a numeric constant
    Variable("a")                       - a named variable
    Operator(OpKind.SIN, (Variable("a"),))  - an operator with ordered operands

Operand order is significant and the number of operands is fixed by the
operator kind. Two trees are identical when they have the same shape, the
same operator kinds, the same variable names and exactly equal constants.

Trees are usually built with the E builder or parse_formula() from
symform.syntax rather than by hand.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union


class OpKind(Enum):
    """Operator kinds with their textual symbol and fixed arity."""

    ADD = ("+", 2)
    SUBTRACT = ("-", 2)
    MULTIPLY = ("*", 2)
    DIVIDE = ("/", 2)
    NEGATE = ("neg", 1)
    POWER = ("^", 2)
    LOG = ("log", 2)
    SIN = ("sin", 1)
    COS = ("cos", 1)
    TAN = ("tan", 1)
    COT = ("cot", 1)
    ASIN = ("asin", 1)
    ACOS = ("acos", 1)
    ATAN = ("atan", 1)
    ACOT = ("acot", 1)
    SINH = ("sinh", 1)
    COSH = ("cosh", 1)
    ASINH = ("asinh", 1)
    ACOSH = ("acosh", 1)
    ATAN2 = ("atan2", 2)
    PARTIAL_DERIVATIVE = ("partial_derivative", 2)
    TOTAL_DERIVATIVE = ("total_derivative", 2)

    def __init__(self, symbol: str, arity: int):
        self.symbol = symbol
        self.arity = arity

    @property
    def is_function(self) -> bool:
        """True for kinds written as name(args) in infix notation."""
        return self.symbol[0].isalpha()

    @classmethod
    def from_symbol(cls, symbol: str) -> 'OpKind':
        """
        Look up an operator kind by its symbol.

        Examples:
            OpKind.from_symbol("+")   -> OpKind.ADD
            OpKind.from_symbol("sin") -> OpKind.SIN

        Raises:
            ValueError: If no operator has this symbol
        """
        for kind in cls:
            if kind.symbol == symbol:
                return kind
        raise ValueError(f"Unknown operator: {symbol!r}")


@dataclass(frozen=True)
class Constant:
    """A numeric constant. The value is always stored as a float."""

    value: float

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
            raise TypeError(f"Constant value must be a number, got {self.value!r}")
        object.__setattr__(self, "value", float(self.value))

    def __str__(self) -> str:
        from .syntax import format_formula
        return format_formula(self)


@dataclass(frozen=True)
class Variable:
    """A variable, identified by its name."""

    name: str

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise TypeError(f"Variable name must be a non-empty string, got {self.name!r}")

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Operator:
    """An operator applied to an ordered tuple of operands."""

    kind: OpKind
    operands: Tuple['ExprType', ...] = ()

    def __post_init__(self):
        if not isinstance(self.kind, OpKind):
            raise TypeError(f"Operator kind must be an OpKind, got {self.kind!r}")
        operands = tuple(self.operands)
        for operand in operands:
            if not is_expression(operand):
                raise TypeError(f"Operand is not an expression: {operand!r}")
        if len(operands) != self.kind.arity:
            raise ValueError(
                f"{self.kind.symbol} takes {self.kind.arity} operand(s), "
                f"got {len(operands)}"
            )
        object.__setattr__(self, "operands", operands)

    def __str__(self) -> str:
        from .syntax import format_formula
        return format_formula(self)


# Type alias for any expression node
ExprType = Union[Constant, Variable, Operator]


def is_expression(obj) -> bool:
    """Check if obj is an expression tree node."""
    return isinstance(obj, (Constant, Variable, Operator))


def identical(a: ExprType, b: ExprType) -> bool:
    """
    Deep structural equality of two expression trees.

    Operand order matters and constants are compared exactly.

    Examples:
        identical(E("sin(b+c)"), E("sin(b+c)"))  -> True
        identical(E("sin(b+c)"), E("sin(c+b)"))  -> False
    """
    if isinstance(a, Constant):
        return isinstance(b, Constant) and a.value == b.value
    if isinstance(a, Variable):
        return isinstance(b, Variable) and a.name == b.name
    if isinstance(a, Operator):
        if not isinstance(b, Operator) or a.kind is not b.kind:
            return False
        if len(a.operands) != len(b.operands):
            return False
        return all(identical(x, y) for x, y in zip(a.operands, b.operands))
    raise TypeError(f"Not an expression: {a!r}")
