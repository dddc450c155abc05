"""
Convenience layer over Pattern.

    to_pattern(tree)        - compile any expression tree into a Pattern
    is_of_form(tree, form)  - test a tree against a Pattern, a template
                              string or a template expression tree

Passing a compiled Pattern is the fast way. A string is parsed and compiled
on every call, and a template tree is compiled on every call, so hold on to
to_pattern()'s result when the same form is tested repeatedly.
"""

from typing import Union

from .expr import ExprType, is_expression
from .pattern import Pattern
from .syntax import parse_formula

FormType = Union[Pattern, str, ExprType]


def to_pattern(tree: ExprType) -> Pattern:
    """
    Compile an expression tree into a Pattern.

    Example:
        pattern = to_pattern(E("VAR + TREE"))
    """
    return Pattern(tree)


def is_of_form(tree: ExprType, form: FormType) -> bool:
    """
    Check whether tree has the given form.

    Examples:
        is_of_form(E("a + sin(5 * a)"), "VAR_foo + sin(CONST * VAR_foo)")  # => True
        is_of_form(E("a + b"), to_pattern(E("VAR + VAR")))                   # => True
        is_of_form(E("a + b"), E("a + b"))                                   # => True

    Raises:
        TypeError: If form is none of the accepted kinds, or tree is not
            an expression tree
        FormulaSyntaxError: If form is a string that does not parse
    """
    if isinstance(form, Pattern):
        pattern = form
    elif isinstance(form, str):
        pattern = Pattern(parse_formula(form))
    elif is_expression(form):
        pattern = Pattern(form)
    else:
        raise TypeError(
            f"is_of_form() requires a Pattern, a template string or an expression tree, got {form!r}"
        )
    return pattern.match(tree)
