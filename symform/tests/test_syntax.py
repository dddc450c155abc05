"""Tests for formula and s-expression syntax and the E builder."""

import pytest
from symform import (
    E, OpKind, Constant, Variable, Operator, FormulaSyntaxError,
    parse_formula, format_formula, parse_sexpr, format_sexpr, identical,
)
from symform.syntax import get_parser

a, b, c, x = Variable("a"), Variable("b"), Variable("c"), Variable("x")


def op(kind, *operands):
    return Operator(kind, operands)


class TestParseFormula:
    """Tests for infix parsing."""

    def test_atoms(self):
        """Numbers and names parse to constants and variables."""
        assert parse_formula("x") == x
        assert parse_formula("42") == Constant(42)
        assert parse_formula("0.5") == Constant(0.5)
        assert parse_formula(".5") == Constant(0.5)
        assert parse_formula("1e3") == Constant(1000)
        assert parse_formula("1e-30") == Constant(1e-30)
        assert parse_formula("TREE_a_b") == Variable("TREE_a_b")

    def test_precedence(self):
        """* binds tighter than +."""
        assert parse_formula("a + b * c") == op(OpKind.ADD, a, op(OpKind.MULTIPLY, b, c))
        assert parse_formula("(a + b) * c") == op(OpKind.MULTIPLY, op(OpKind.ADD, a, b), c)

    def test_left_associative(self):
        """- and / group to the left."""
        assert parse_formula("a - b - c") == op(OpKind.SUBTRACT, op(OpKind.SUBTRACT, a, b), c)
        assert parse_formula("a / b / c") == op(OpKind.DIVIDE, op(OpKind.DIVIDE, a, b), c)

    def test_power_right_associative(self):
        """^ groups to the right."""
        assert parse_formula("a ^ b ^ c") == op(OpKind.POWER, a, op(OpKind.POWER, b, c))

    def test_unary_minus(self):
        """Unary minus is a negation node binding looser than ^."""
        assert parse_formula("-a") == op(OpKind.NEGATE, a)
        assert parse_formula("-a^2") == op(OpKind.NEGATE, op(OpKind.POWER, a, Constant(2)))
        assert parse_formula("2^-1") == op(OpKind.POWER, Constant(2), op(OpKind.NEGATE, Constant(1)))
        assert parse_formula("a * -b") == op(OpKind.MULTIPLY, a, op(OpKind.NEGATE, b))
        assert parse_formula("--a") == op(OpKind.NEGATE, op(OpKind.NEGATE, a))

    def test_functions(self):
        """Named operators are called like functions."""
        assert parse_formula("sin(x)") == op(OpKind.SIN, x)
        assert parse_formula("log(2, x)") == op(OpKind.LOG, Constant(2), x)
        assert parse_formula("atan2(a, b)") == op(OpKind.ATAN2, a, b)
        assert parse_formula("neg(a)") == op(OpKind.NEGATE, a)
        assert parse_formula("sin(cos(x))") == op(OpKind.SIN, op(OpKind.COS, x))

    def test_whitespace_ignored(self):
        """Whitespace between tokens is insignificant."""
        assert parse_formula("  a+sin( 5*a )  ") == parse_formula("a + sin(5 * a)")

    def test_wrong_arity(self):
        """Calling a function with the wrong number of arguments fails."""
        with pytest.raises(FormulaSyntaxError, match="takes 1"):
            parse_formula("sin(x, y)")
        with pytest.raises(FormulaSyntaxError, match="takes 2"):
            parse_formula("log(x)")

    def test_unknown_function(self):
        """Unknown function names fail."""
        with pytest.raises(FormulaSyntaxError, match="Unknown function"):
            parse_formula("foo(x)")

    def test_errors(self):
        """Malformed formulas raise FormulaSyntaxError."""
        for text in ["", "   ", "a +", "(a + b", "a b", "a + * b", ")", "sin(x"]:
            with pytest.raises(FormulaSyntaxError):
                parse_formula(text)

    def test_error_position(self):
        """Errors report where they happened."""
        with pytest.raises(FormulaSyntaxError) as info:
            parse_formula("a $ b")
        assert info.value.position == 2
        assert "position 2" in str(info.value)

    def test_syntax_error_is_value_error(self):
        """FormulaSyntaxError is a ValueError."""
        assert issubclass(FormulaSyntaxError, ValueError)

    def test_requires_string(self):
        """Non-string input raises TypeError."""
        with pytest.raises(TypeError):
            parse_formula(42)


class TestFormatFormula:
    """Tests for infix formatting."""

    def test_minimal_parentheses(self):
        """Only needed parentheses are written."""
        cases = {
            "a + b + c": "a + b + c",
            "a + (b + c)": "a + (b + c)",
            "(a + b) * c": "(a + b) * c",
            "a - (b - c)": "a - (b - c)",
            "a / (b * c)": "a / (b * c)",
            "a^b^c": "a^b^c",
            "(a^b)^c": "(a^b)^c",
            "(-a)^2": "(-a)^2",
            "-(a + b)": "-(a + b)",
            "a * -b": "a * -b",
            "sin(5*a)": "sin(5 * a)",
            "log(2, x)": "log(2, x)",
            "2.5": "2.5",
        }
        for text, expected in cases.items():
            assert format_formula(E(text)) == expected, text

    def test_round_trip(self):
        """Formatted formulas parse back to identical trees."""
        for text in [
            "a + sin(5 * a)", "TREE_a + 5*TREE_a", "-a^2", "(a - b) - (c - a)",
            "atan2(y, x) / (1 + x^2)", "partial_derivative(x^2, x)", "0.125 * x",
        ]:
            tree = E(text)
            assert identical(parse_formula(format_formula(tree)), tree), text

    def test_negative_constant(self):
        """Negative constants are parenthesized."""
        assert format_formula(Constant(-1)) == "(-1)"
        assert format_formula(E.op("+", "x", -2)) == "x + (-2)"

    def test_negative_constant_round_trip(self):
        """A parenthesised negative number reads back as a constant."""
        assert parse_formula("(-2)") == Constant(-2)
        assert parse_formula("(-0.5)") == Constant(-0.5)
        assert parse_formula("(-a)") == op(OpKind.NEGATE, a)
        assert parse_formula("-2") == op(OpKind.NEGATE, Constant(2))
        for tree in [
            Constant(-2),
            E.op("*", E.const(-2), "TREE"),
            E.op("^", -1.5, "x"),
            E.op("-", "a", -3),
            E.op("neg", -3),
            E.op("neg", 3),
        ]:
            assert identical(parse_formula(format_formula(tree)), tree), tree


class TestSexpr:
    """Tests for s-expression syntax."""

    def test_parse(self):
        """S-expressions parse to the same trees as formulas."""
        assert parse_sexpr("(+ a (sin (* 5 a)))") == E("a + sin(5 * a)")
        assert parse_sexpr("x") == x
        assert parse_sexpr("42") == Constant(42)
        assert parse_sexpr("-2") == Constant(-2)
        assert parse_sexpr("(neg (^ x 2))") == E("-x^2")

    def test_format(self):
        """Trees format as s-expressions."""
        assert format_sexpr(E("x + 1")) == "(+ x 1)"
        assert format_sexpr(E("sin(5 * a)")) == "(sin (* 5 a))"
        assert format_sexpr(Constant(0.5)) == "0.5"

    def test_round_trip(self):
        """format_sexpr output parses back to the same tree."""
        for text in ["a + sin(5 * a)", "log(2, x) - atan2(y, x)", "-(a + b)"]:
            tree = E(text)
            assert parse_sexpr(format_sexpr(tree)) == tree
        assert parse_sexpr(format_sexpr(Constant(-3))) == Constant(-3)

    def test_errors(self):
        """Malformed s-expressions raise FormulaSyntaxError."""
        for text in ["", "()", "(foo x)", "(+ x)", "(+ x 1", "(+ x 1) y", "(1 2)", "a-b c"]:
            with pytest.raises(FormulaSyntaxError):
                parse_sexpr(text)

    def test_get_parser(self):
        """get_parser() returns parsers by syntax name."""
        assert get_parser("infix") is parse_formula
        assert get_parser("sexpr") is parse_sexpr
        with pytest.raises(ValueError, match="Unknown syntax"):
            get_parser("latex")


class TestExprBuilder:
    """Tests for the E expression builder."""

    def test_call_parses(self):
        """E() parses infix formulas."""
        assert E("a + b") == op(OpKind.ADD, a, b)

    def test_op_lifts_atoms(self):
        """E.op() turns strings into variables and numbers into constants."""
        assert E.op("+", "x", 1) == op(OpKind.ADD, x, Constant(1))
        assert E.op("sin", E.op("*", 5, "a")) == E("sin(5 * a)")

    def test_op_errors(self):
        """E.op() rejects unknown symbols and wrong arity."""
        with pytest.raises(ValueError):
            E.op("foo", "x")
        with pytest.raises(ValueError):
            E.op("+", "x")

    def test_var_vars_const(self):
        """E.var, E.vars and E.const create leaves."""
        assert E.var("x") == x
        assert E.vars("a", "b") == (a, b)
        assert E.const(3) == Constant(3.0)

    def test_repr(self):
        """E has a descriptive repr."""
        assert "builder" in repr(E)
