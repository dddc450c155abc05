"""
Text syntax for SYMFORM expressions.

Two notations are supported.

Infix formulas (the default):
    a + sin(5 * a)
    TREE_a^2 + 2*TREE_a*TREE_b + TREE_b^2
    log(2, x) - atan2(y, x)

    Precedence, lowest first: + -, * /, unary -, ^.
    A parenthesised signed number such as (-2) is a negative constant.
    + - * / are left associative, ^ is right associative.
    Functions are called by name: sin, cos, tan, cot, asin, acos, atan,
    acot, sinh, cosh, asinh, acosh, neg, log(base, x), atan2(y, x),
    partial_derivative(f, v), total_derivative(f, v).

S-expressions:
    (+ a (sin (* 5 a)))

Both parse into the same expression trees, and the formatters render
trees back into text that parses to an identical tree.
"""

import re
from typing import Callable, Dict, List, Optional, Tuple, Union

from .expr import ExprType, OpKind, Constant, Variable, Operator


class FormulaSyntaxError(ValueError):
    """Raised when a formula or s-expression cannot be parsed."""

    def __init__(self, message: str, text: str = "", position: Optional[int] = None):
        self.text = text
        self.position = position
        if position is not None:
            message = f"{message} at position {position}"
        super().__init__(message)


# ============================================================
# Infix Formulas
# ============================================================

_NUMBER = r'(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?'
_NAME = r'[A-Za-z_][A-Za-z0-9_]*'
_TOKEN = re.compile(rf'\s*(?:(?P<num>{_NUMBER})|(?P<name>{_NAME})|(?P<op>[-+*/^(),]))')

# Binding strength used by the formatter
_PRECEDENCE = {
    OpKind.ADD: 1,
    OpKind.SUBTRACT: 1,
    OpKind.MULTIPLY: 2,
    OpKind.DIVIDE: 2,
    OpKind.NEGATE: 3,
    OpKind.POWER: 4,
}
_ATOM_PRECEDENCE = 5


def _tokenize(text: str) -> List[Tuple[str, str, int]]:
    """Split a formula into (type, text, position) tokens."""
    tokens = []
    pos = 0
    end = len(text.rstrip())
    while pos < end:
        m = _TOKEN.match(text, pos)
        if not m:
            bad = len(text) - len(text[pos:].lstrip())
            raise FormulaSyntaxError(f"Unexpected character {text[bad]!r}", text, bad)
        kind = m.lastgroup
        tokens.append((kind, m.group(kind), m.start(kind)))
        pos = m.end()
    return tokens


class _FormulaParser:
    """Recursive descent parser over the token list of one formula."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = _tokenize(text)
        self.index = 0

    def peek(self) -> Optional[Tuple[str, str, int]]:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def next(self) -> Tuple[str, str, int]:
        token = self.peek()
        if token is None:
            raise FormulaSyntaxError("Unexpected end of formula", self.text, len(self.text))
        self.index += 1
        return token

    def accept(self, op: str) -> bool:
        token = self.peek()
        if token is not None and token[0] == "op" and token[1] == op:
            self.index += 1
            return True
        return False

    def expect(self, op: str) -> None:
        token = self.next()
        if token[0] != "op" or token[1] != op:
            raise FormulaSyntaxError(f"Expected {op!r}, got {token[1]!r}", self.text, token[2])

    def parse(self) -> ExprType:
        if not self.tokens:
            raise FormulaSyntaxError("Empty formula", self.text, 0)
        expr = self.additive()
        token = self.peek()
        if token is not None:
            raise FormulaSyntaxError(f"Unexpected {token[1]!r}", self.text, token[2])
        return expr

    def additive(self) -> ExprType:
        left = self.multiplicative()
        while True:
            if self.accept("+"):
                left = Operator(OpKind.ADD, (left, self.multiplicative()))
            elif self.accept("-"):
                left = Operator(OpKind.SUBTRACT, (left, self.multiplicative()))
            else:
                return left

    def multiplicative(self) -> ExprType:
        left = self.unary()
        while True:
            if self.accept("*"):
                left = Operator(OpKind.MULTIPLY, (left, self.unary()))
            elif self.accept("/"):
                left = Operator(OpKind.DIVIDE, (left, self.unary()))
            else:
                return left

    def unary(self) -> ExprType:
        if self.accept("-"):
            return Operator(OpKind.NEGATE, (self.unary(),))
        return self.power()

    def power(self) -> ExprType:
        base = self.primary()
        if self.accept("^"):
            # right associative: a^b^c is a^(b^c)
            return Operator(OpKind.POWER, (base, self.unary()))
        return base

    def primary(self) -> ExprType:
        kind, text, pos = self.next()

        if kind == "num":
            return Constant(float(text))

        if kind == "name":
            if not self.accept("("):
                return Variable(text)
            return self.call(text, pos)

        if text == "(":
            literal = self.negative_literal()
            if literal is not None:
                return literal
            expr = self.additive()
            self.expect(")")
            return expr

        raise FormulaSyntaxError(f"Unexpected {text!r}", self.text, pos)

    def negative_literal(self) -> Optional[Constant]:
        """Read "-N)" after an opening parenthesis as the constant -N."""
        window = self.tokens[self.index:self.index + 3]
        if (len(window) == 3
                and window[0][:2] == ("op", "-")
                and window[1][0] == "num"
                and window[2][:2] == ("op", ")")):
            self.index += 3
            return Constant(-float(window[1][1]))
        return None

    def call(self, name: str, pos: int) -> ExprType:
        try:
            op = OpKind.from_symbol(name)
        except ValueError:
            raise FormulaSyntaxError(f"Unknown function {name!r}", self.text, pos) from None
        if not op.is_function:
            raise FormulaSyntaxError(f"Unknown function {name!r}", self.text, pos)

        args = []
        if not self.accept(")"):
            args.append(self.additive())
            while self.accept(","):
                args.append(self.additive())
            self.expect(")")

        if len(args) != op.arity:
            raise FormulaSyntaxError(
                f"{name}() takes {op.arity} argument(s), got {len(args)}", self.text, pos
            )
        return Operator(op, tuple(args))


def parse_formula(text: str) -> ExprType:
    """
    Parse an infix formula into an expression tree.

    Examples:
        parse_formula("a + 1")       -> Operator(ADD, (Variable("a"), Constant(1.0)))
        parse_formula("sin(5 * a)")  -> Operator(SIN, (Operator(MULTIPLY, ...),))

    Raises:
        FormulaSyntaxError: If the text is not a valid formula
    """
    if not isinstance(text, str):
        raise TypeError(f"parse_formula() requires a string, got {text!r}")
    return _FormulaParser(text).parse()


def _format_number(value: float) -> str:
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(value)


def _precedence(expr: ExprType) -> int:
    if isinstance(expr, Operator):
        return _PRECEDENCE.get(expr.kind, _ATOM_PRECEDENCE)
    return _ATOM_PRECEDENCE


def _wrap(expr: ExprType, parens: bool) -> str:
    text = format_formula(expr)
    return f"({text})" if parens else text


def format_formula(expr: ExprType) -> str:
    """
    Format an expression tree as an infix formula.

    Only the parentheses needed to preserve the tree shape are written.
    Negative constants are written in parentheses, as "(-2)", which the
    parser reads back as a constant. "-2" without them is a negation.

    Examples:
        format_formula(E("(a + b) * c"))  -> "(a + b) * c"
        format_formula(E("a - (b - c)"))  -> "a - (b - c)"
    """
    if isinstance(expr, Constant):
        text = _format_number(expr.value)
        return f"({text})" if expr.value < 0 else text

    if isinstance(expr, Variable):
        return expr.name

    if not isinstance(expr, Operator):
        raise TypeError(f"Not an expression: {expr!r}")

    kind = expr.kind
    if kind not in _PRECEDENCE:
        args = ", ".join(format_formula(operand) for operand in expr.operands)
        return f"{kind.symbol}({args})"

    prec = _PRECEDENCE[kind]
    if kind is OpKind.NEGATE:
        (operand,) = expr.operands
        return "-" + _wrap(operand, _precedence(operand) < prec)

    left, right = expr.operands
    if kind is OpKind.POWER:
        return _wrap(left, _precedence(left) <= prec) + "^" + _wrap(right, _precedence(right) < prec)

    return (_wrap(left, _precedence(left) < prec)
            + f" {kind.symbol} "
            + _wrap(right, _precedence(right) <= prec))


# ============================================================
# S-Expressions
# ============================================================

def _read_sexpr(s: str) -> Union[str, List]:
    """
    Read an S-expression string into nested lists of atom strings.

    Examples:
        "(+ x 1)" -> ["+", "x", "1"]
        "(sin (* 5 a))" -> ["sin", ["*", "5", "a"]]
    """
    s = s.strip()
    if not s:
        raise FormulaSyntaxError("Empty s-expression", s, 0)

    if not s.startswith('('):
        if '(' in s or ')' in s or any(c in s for c in ' \t\n'):
            raise FormulaSyntaxError(f"Malformed atom {s!r}", s)
        return s

    depth = 0
    parts = []
    current = ''
    i = 1  # Skip opening paren

    while i < len(s):
        c = s[i]
        if c == '(':
            depth += 1
            current += c
        elif c == ')':
            if depth == 0:
                if current.strip():
                    parts.append(_read_sexpr(current.strip()))
                if s[i + 1:].strip():
                    raise FormulaSyntaxError("Unexpected text after ')'", s, i + 1)
                return parts
            depth -= 1
            current += c
        elif c in ' \t\n' and depth == 0:
            if current.strip():
                parts.append(_read_sexpr(current.strip()))
            current = ''
        else:
            current += c
        i += 1

    raise FormulaSyntaxError("Unbalanced parentheses", s, len(s))


def _build_sexpr(item: Union[str, List], text: str) -> ExprType:
    if isinstance(item, str):
        if re.fullmatch(r"[-+]?" + _NUMBER, item):
            return Constant(float(item))
        if re.fullmatch(_NAME, item):
            return Variable(item)
        raise FormulaSyntaxError(f"Invalid atom {item!r}", text)

    if not item or not isinstance(item[0], str):
        raise FormulaSyntaxError("Compound expression needs an operator", text)
    try:
        op = OpKind.from_symbol(item[0])
    except ValueError as e:
        raise FormulaSyntaxError(str(e), text) from None

    operands = tuple(_build_sexpr(sub, text) for sub in item[1:])
    if len(operands) != op.arity:
        raise FormulaSyntaxError(
            f"{op.symbol} takes {op.arity} operand(s), got {len(operands)}", text
        )
    return Operator(op, operands)


def parse_sexpr(s: str) -> ExprType:
    """
    Parse an S-expression string into an expression tree.

    Examples:
        "(+ x 1)" -> Operator(ADD, (Variable("x"), Constant(1.0)))
        "(neg (^ x 2))" -> Operator(NEGATE, (Operator(POWER, ...),))

    Raises:
        FormulaSyntaxError: If the text is not a valid s-expression
    """
    if not isinstance(s, str):
        raise TypeError(f"parse_sexpr() requires a string, got {s!r}")
    return _build_sexpr(_read_sexpr(s), s)


def format_sexpr(expr: ExprType) -> str:
    """
    Format an expression tree as an S-expression string.

    Examples:
        E("x + 1") -> "(+ x 1)"
        E("sin(5 * a)") -> "(sin (* 5 a))"
    """
    if isinstance(expr, Constant):
        return _format_number(expr.value)
    if isinstance(expr, Variable):
        return expr.name
    if isinstance(expr, Operator):
        parts = [expr.kind.symbol] + [format_sexpr(e) for e in expr.operands]
        return "(" + " ".join(parts) + ")"
    raise TypeError(f"Not an expression: {expr!r}")


# Text syntaxes selectable by name (pattern files, CLI)
SYNTAXES: Dict[str, Callable[[str], ExprType]] = {
    "infix": parse_formula,
    "sexpr": parse_sexpr,
}

FORMATTERS: Dict[str, Callable[[ExprType], str]] = {
    "infix": format_formula,
    "sexpr": format_sexpr,
}


def get_parser(syntax: str) -> Callable[[str], ExprType]:
    """Return the parse function for a syntax name."""
    try:
        return SYNTAXES[syntax]
    except KeyError:
        available = ", ".join(SYNTAXES)
        raise ValueError(f"Unknown syntax: {syntax!r} (available: {available})") from None


# ============================================================
# Expression Builder
# ============================================================

def _lift(arg) -> ExprType:
    if isinstance(arg, str):
        return Variable(arg)
    if isinstance(arg, (int, float)) and not isinstance(arg, bool):
        return Constant(arg)
    return arg


class _ExprBuilder:
    """
    Expression builder for SYMFORM.

    Examples:
        from symform import E

        # Parse an infix formula
        expr = E("a + sin(5 * a)")

        # Build programmatically with E.op(); strings become variables
        # and numbers become constants
        expr = E.op("+", "a", E.op("sin", E.op("*", 5, "a")))

        # Create variables
        x, y = E.vars("x", "y")
        expr = E.op("*", x, y)
    """

    def __call__(self, s: str) -> ExprType:
        """
        Parse an infix formula.

        Examples:
            E("x + 1") -> Operator(ADD, (Variable("x"), Constant(1.0)))
        """
        return parse_formula(s)

    def op(self, symbol: str, *args) -> Operator:
        """
        Build an operator node from its symbol and operands.

        Examples:
            E.op("+", "x", 1)      -> x + 1
            E.op("atan2", "y", "x") -> atan2(y, x)

        Raises:
            ValueError: If the symbol is unknown or the arity is wrong
        """
        return Operator(OpKind.from_symbol(symbol), tuple(_lift(a) for a in args))

    def var(self, name: str) -> Variable:
        """Create a variable."""
        return Variable(name)

    def vars(self, *names: str) -> Tuple[Variable, ...]:
        """
        Create multiple variables for unpacking.

        Example:
            x, y, z = E.vars("x", "y", "z")
        """
        return tuple(Variable(name) for name in names)

    def const(self, value: Union[int, float]) -> Constant:
        """Create a constant."""
        return Constant(value)

    def __repr__(self) -> str:
        return "E (expression builder)"


# Singleton instance
E = _ExprBuilder()
