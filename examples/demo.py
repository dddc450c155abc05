#!/usr/bin/env python3
"""
SYMFORM Feature Demonstration

This script walks through the main features of the SYMFORM library.
"""

from pathlib import Path
from symform import (
    Pattern, PatternLibrary, E,
    is_of_form, to_pattern, format_sexpr,
)


def section(title: str):
    """Print a section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def show(pattern: Pattern, formulas):
    for text in formulas:
        verdict = "matches" if pattern.match(E(text)) else "does not match"
        print(f"  {text:30} {verdict}")


def demo_wildcards():
    """Unnamed wildcards."""
    section("Wildcards: TREE, CONST, VAR")

    pattern = Pattern.from_string("VAR + (VAR * CONST)")
    print(f"  pattern: {pattern}")
    show(pattern, ["a + (b * 2)", "a + (a * 2)", "a + (b * c)", "1 + (b * 2)"])


def demo_named():
    """Named placeholders must agree."""
    section("Named Placeholders")

    pattern = Pattern.from_string("VAR_foo + sin(CONST * VAR_foo)")
    print(f"  pattern: {pattern}")
    show(pattern, ["a + sin(5 * a)", "a + sin(5 * b)"])

    pattern = Pattern.from_string("TREE_a + 5*TREE_a")
    print(f"\n  pattern: {pattern}")
    show(pattern, ["sin(b+c) + 5*sin(b+c)", "sin(b+c) + 5*cos(b+c)", "sin(b+c) + 5*sin(c+b)"])

    pattern = Pattern.from_string("CONST_foo * a + atan(CONST_foo)")
    print(f"\n  pattern: {pattern}")
    show(pattern, ["0.5*a + atan(0.5)", "2*a + atan(0.5)"])


def demo_aliases():
    """Multi-alias placeholders."""
    section("Aliases")

    pattern = Pattern.from_string("VAR_a + VAR_b + VAR_a_b")
    print(f"  pattern: {pattern}")
    show(pattern, ["x + y + x", "x + y + y", "x + y + z"])

    print("\n  Aliases are bound greedily and never revisited:")
    pattern = Pattern.from_string("VAR_a_b + VAR_a")
    print(f"  pattern: {pattern}")
    show(pattern, ["x + x", "x + y"])


def demo_forms():
    """is_of_form() with the three kinds of forms."""
    section("is_of_form")

    tree = E("x^2 + 2*x + 1")
    compiled = to_pattern(E("TREE^2 + TREE"))
    print(f"  tree: {tree}   (s-expression: {format_sexpr(tree)})")
    print(f"  compiled pattern  TREE^2 + TREE      -> {is_of_form(tree, compiled)}")
    print(f"  template string   TREE + CONST       -> {is_of_form(tree, 'TREE + CONST')}")
    print(f"  template tree     x^2 + 2*x + 1      -> {is_of_form(tree, E('x^2 + 2*x + 1'))}")


def demo_library():
    """Named pattern libraries."""
    section("Pattern Library")

    path = Path(__file__).parent / "identities.forms"
    library = PatternLibrary.from_file(path)
    print(f"  loaded {library} from {path.name}")
    for text in ["sin(t)^2 + cos(t)^2", "(a + b)^2", "2 * sin(w) * cos(w)", "x"]:
        names = library.matching(E(text))
        print(f"  {text:30} {', '.join(names) or '-'}")


if __name__ == "__main__":
    demo_wildcards()
    demo_named()
    demo_aliases()
    demo_forms()
    demo_library()
