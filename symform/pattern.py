"""
Pattern compilation and matching for SYMFORM.

A pattern is built from an ordinary expression tree in which a few
variable names have a special meaning:

    TREE              - matches any subtree
    CONST             - matches any constant
    VAR               - matches any variable
    TREE_name         - matches any subtree; every TREE_name must be the same tree
    CONST_name        - matches any constant; every CONST_name must be equal
    VAR_name          - matches any variable; every VAR_name must be the same variable

Everything else in the template has to appear literally in the matched tree.

Examples:
    pattern = Pattern.from_string("VAR_foo + sin(CONST * VAR_foo)")
    pattern.match(E("a + sin(5 * a)"))   # => True
    pattern.match(E("a + sin(5 * b)"))   # => False, VAR_foo is already "a"

A named placeholder may carry several aliases separated by underscores:
TREE_a_b matches if the tree agrees with whatever "a" or "b" is already
bound to, or else binds the first alias that is still free. Bindings are
never retracted: once a name is bound during a match it stays bound for
the rest of that match, even if the subtree that bound it later fails.
There is no backtracking.

A compiled Pattern is immutable. Each call to match() works on its own
binding environment, so one Pattern can be shared freely between threads.

Matching recurses once per tree level and is therefore limited by the
interpreter's recursion limit (sys.getrecursionlimit(), 1000 by default).
Trees nested more than a few hundred levels deep raise RecursionError.
"""

import logging
import operator
import re
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, NamedTuple, Optional, Tuple

from .expr import ExprType, Constant, Variable, Operator, identical, is_expression

logger = logging.getLogger(__name__)

# Tolerance for constant literals. Named constants compare exactly.
EPSILON = 1e-29

_NAMED_PLACEHOLDER = re.compile(r'(TREE|CONST|VAR)_([A-Za-z0-9_]+)')


class PatternInvariantError(RuntimeError):
    """A compiled pattern is inconsistent with its own name registry."""


class PatternKind(Enum):
    """Kinds of pattern nodes."""

    CONST_LITERAL = "const-literal"
    VAR_LITERAL = "var-literal"
    OPERATOR = "operator"
    ANY_TREE = "any-tree"
    ANY_CONST = "any-const"
    ANY_VAR = "any-var"
    NAMED_TREE = "named-tree"
    NAMED_CONST = "named-const"
    NAMED_VAR = "named-var"


class PatternNode(NamedTuple):
    """
    A node of a compiled pattern.

    payload holds the constant value, the variable name, the OpKind or the
    tuple of aliases, depending on kind. operands is only used by
    OPERATOR nodes.
    """

    kind: PatternKind
    payload: Any = None
    operands: Tuple['PatternNode', ...] = ()


class NameRegistry(NamedTuple):
    """Alias names used by a pattern, per placeholder category."""

    trees: FrozenSet[str] = frozenset()
    constants: FrozenSet[str] = frozenset()
    variables: FrozenSet[str] = frozenset()


_ANY = {
    "TREE": PatternKind.ANY_TREE,
    "CONST": PatternKind.ANY_CONST,
    "VAR": PatternKind.ANY_VAR,
}

_NAMED = {
    "TREE": (PatternKind.NAMED_TREE, "trees"),
    "CONST": (PatternKind.NAMED_CONST, "constants"),
    "VAR": (PatternKind.NAMED_VAR, "variables"),
}


# ============================================================
# Compiler
# ============================================================

def split_aliases(rest: str) -> Tuple[str, ...]:
    """
    Split the part after TREE_/CONST_/VAR_ into aliases.

    Empty segments are kept as literal aliases, except at the end.

    Examples:
        split_aliases("foo")   -> ("foo",)
        split_aliases("a_b")   -> ("a", "b")
        split_aliases("a__b")  -> ("a", "", "b")
        split_aliases("a_")    -> ("a",)
    """
    aliases = rest.split('_')
    while aliases and not aliases[-1]:
        aliases.pop()
    return tuple(aliases)


def _build(template: ExprType, names: Dict[str, set]) -> PatternNode:
    if isinstance(template, Constant):
        return PatternNode(PatternKind.CONST_LITERAL, template.value)

    if isinstance(template, Operator):
        return PatternNode(
            PatternKind.OPERATOR,
            template.kind,
            tuple(_build(operand, names) for operand in template.operands),
        )

    if isinstance(template, Variable):
        name = template.name
        if name in _ANY:
            return PatternNode(_ANY[name])

        named = _NAMED_PLACEHOLDER.fullmatch(name)
        if named:
            kind, category = _NAMED[named.group(1)]
            aliases = split_aliases(named.group(2))
            names[category].update(aliases)
            return PatternNode(kind, aliases)

        return PatternNode(PatternKind.VAR_LITERAL, name)

    raise TypeError(f"Not an expression: {template!r}")


def compile_pattern(template: ExprType) -> Tuple[PatternNode, NameRegistry]:
    """
    Compile a template expression into a pattern tree and its name registry.

    Args:
        template: Expression tree, possibly containing placeholder variables

    Returns:
        (root pattern node, registry of alias names)

    Raises:
        TypeError: If template is not an expression tree
    """
    if not is_expression(template):
        raise TypeError(f"compile_pattern() requires an expression tree, got {template!r}")

    names: Dict[str, set] = {"trees": set(), "constants": set(), "variables": set()}
    root = _build(template, names)
    registry = NameRegistry(
        trees=frozenset(names["trees"]),
        constants=frozenset(names["constants"]),
        variables=frozenset(names["variables"]),
    )
    logger.debug(
        "Compiled pattern: trees=%s constants=%s variables=%s",
        sorted(registry.trees), sorted(registry.constants), sorted(registry.variables),
    )
    return root, registry


# ============================================================
# Matcher
# ============================================================

class _Environment:
    """Per-match bindings: alias name -> bound value, or None while unbound."""

    __slots__ = ('trees', 'constants', 'variables')

    def __init__(self, registry: NameRegistry):
        self.trees: Dict[str, Optional[ExprType]] = dict.fromkeys(registry.trees)
        self.constants: Dict[str, Optional[float]] = dict.fromkeys(registry.constants)
        self.variables: Dict[str, Optional[str]] = dict.fromkeys(registry.variables)


def _bind(aliases: Tuple[str, ...], value, table: Dict[str, Any],
          category: str, same: Callable[[Any, Any], bool]) -> bool:
    """Succeed on the first alias that already agrees with value or is still free."""
    for name in aliases:
        if name not in table:
            raise PatternInvariantError(
                f"{category} name {name!r} should exist, but does not"
            )
        bound = table[name]
        if bound is None:
            table[name] = value
            return True
        if same(bound, value):
            return True
    return False


def _try_match(pat: PatternNode, tree: ExprType, env: _Environment) -> bool:
    kind = pat.kind

    if kind is PatternKind.CONST_LITERAL:
        return isinstance(tree, Constant) and abs(tree.value - pat.payload) < EPSILON

    if kind is PatternKind.VAR_LITERAL:
        return isinstance(tree, Variable) and tree.name == pat.payload

    if kind is PatternKind.OPERATOR:
        if not isinstance(tree, Operator) or tree.kind is not pat.payload:
            return False
        if len(tree.operands) != len(pat.operands):
            return False
        for sub_pat, sub_tree in zip(pat.operands, tree.operands):
            if not _try_match(sub_pat, sub_tree, env):
                return False
        return True

    if kind is PatternKind.ANY_TREE:
        return True

    if kind is PatternKind.ANY_CONST:
        return isinstance(tree, Constant)

    if kind is PatternKind.ANY_VAR:
        return isinstance(tree, Variable)

    if kind is PatternKind.NAMED_TREE:
        return _bind(pat.payload, tree, env.trees, "tree", identical)

    if kind is PatternKind.NAMED_CONST:
        if not isinstance(tree, Constant):
            return False
        return _bind(pat.payload, tree.value, env.constants, "constant", operator.eq)

    if kind is PatternKind.NAMED_VAR:
        if not isinstance(tree, Variable):
            return False
        return _bind(pat.payload, tree.name, env.variables, "variable", operator.eq)

    raise PatternInvariantError(f"Invalid pattern node kind: {kind!r}")


class Pattern:
    """
    A compiled pattern.

    Example:
        pattern = Pattern(E("TREE_a + 5*TREE_a"))
        pattern.match(E("sin(b+c) + 5*sin(b+c)"))  # => True
        pattern.match(E("sin(b+c) + 5*cos(b+c)"))  # => False
    """

    __slots__ = ('_template', '_root', '_names')

    def __init__(self, template: ExprType):
        """
        Compile a template expression.

        Raises:
            TypeError: If template is not an expression tree
        """
        self._root, self._names = compile_pattern(template)
        self._template = template

    @classmethod
    def from_string(cls, text: str, syntax: str = "infix") -> 'Pattern':
        """
        Parse and compile a template string.

        Args:
            text: Template text, e.g. "VAR_x + VAR_x"
            syntax: "infix" (default) or "sexpr"
        """
        from .syntax import get_parser
        return cls(get_parser(syntax)(text))

    @property
    def template(self) -> ExprType:
        """The expression this pattern was compiled from."""
        return self._template

    @property
    def root(self) -> PatternNode:
        return self._root

    @property
    def names(self) -> NameRegistry:
        return self._names

    def match(self, tree: ExprType) -> bool:
        """
        Check whether tree has the form described by this pattern.

        Raises:
            TypeError: If tree is not an expression tree
            PatternInvariantError: If the pattern references an unregistered name
        """
        if not is_expression(tree):
            raise TypeError(f"match() requires an expression tree, got {tree!r}")
        ok = _try_match(self._root, tree, _Environment(self._names))
        logger.debug("%r %s %s", self, "matches" if ok else "does not match", tree)
        return ok

    def __repr__(self) -> str:
        return f"Pattern({str(self._template)!r})"


def match(pattern: Pattern, tree: ExprType) -> bool:
    """Match a compiled pattern against an expression tree."""
    if not isinstance(pattern, Pattern):
        raise TypeError(f"match() requires a Pattern, got {pattern!r}")
    return pattern.match(tree)
