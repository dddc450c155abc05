"""
SYMFORM - structural pattern matching on symbolic expression trees

A template is an ordinary expression in which a few variable names act as
placeholders. It is compiled once into a Pattern and then matched against
any number of expression trees.

Quick Start:
    from symform import Pattern, E

    pattern = Pattern.from_string("VAR_foo + sin(CONST * VAR_foo)")
    pattern.match(E("a + sin(5 * a)"))   # => True
    pattern.match(E("a + sin(5 * b)"))   # => False

Placeholder Syntax:
    TREE         - match any subtree
    CONST        - match any constant
    VAR          - match any variable
    TREE_x       - match any subtree; all TREE_x must be identical
    CONST_x      - match any constant; all CONST_x must be equal
    VAR_x        - match any variable; all VAR_x must be the same name
    TREE_x_y     - aliases: agree with x or y, else bind the first free one

Convenience:
    is_of_form(E("a + b"), "VAR + VAR")   # => True (parses the template)
    is_of_form(tree, to_pattern(template))  # faster for repeated use
"""

__version__ = "0.1.0"

# Expression trees
from .expr import (
    OpKind,
    Constant,
    Variable,
    Operator,
    ExprType,
    identical,
    is_expression,
)

# Patterns
from .pattern import (
    Pattern,
    PatternKind,
    PatternNode,
    NameRegistry,
    PatternInvariantError,
    EPSILON,
    compile_pattern,
    match,
)

# Text syntax
from .syntax import (
    E,
    FormulaSyntaxError,
    parse_formula,
    format_formula,
    parse_sexpr,
    format_sexpr,
    SYNTAXES,
)

# Convenience layer and libraries
from .forms import to_pattern, is_of_form
from .library import (
    PatternLibrary,
    FormMetadata,
    load_patterns_from_dsl,
    load_patterns_from_file,
    load_patterns_from_json,
)

# Public API
__all__ = [
    # Version
    "__version__",
    # Expression trees
    "OpKind",
    "Constant",
    "Variable",
    "Operator",
    "ExprType",
    "identical",
    "is_expression",
    # Patterns
    "Pattern",
    "PatternKind",
    "PatternNode",
    "NameRegistry",
    "PatternInvariantError",
    "EPSILON",
    "compile_pattern",
    "match",
    # Syntax
    "E",
    "FormulaSyntaxError",
    "parse_formula",
    "format_formula",
    "parse_sexpr",
    "format_sexpr",
    "SYNTAXES",
    # Convenience
    "to_pattern",
    "is_of_form",
    # Libraries
    "PatternLibrary",
    "FormMetadata",
    "load_patterns_from_dsl",
    "load_patterns_from_file",
    "load_patterns_from_json",
]
