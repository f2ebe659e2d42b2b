"""
Tests for the tokenizer and the recursive-descent parser.

Trees are compared structurally, so each test spells out the tree it
expects for a line of input.
"""

import math

import pytest

from errors import ParseError
from fields import Complex, UnitVal
from parser import (
    BinOpNode,
    CallNode,
    DefineFuncNode,
    DefineVarNode,
    LatexNode,
    NumberNode,
    VariableNode,
    parse,
    tokenize,
)


def num(x):
    return NumberNode(UnitVal.scalar(x))


def unit(symbol):
    return NumberNode(UnitVal.from_unit(1.0, symbol))


def var(name):
    return VariableNode(name)


class TestTokenize:
    def test_kinds(self):
        tokens = tokenize(r"2x + \frac{1}{2}")
        assert [t.kind for t in tokens] == [
            "NUMBER", "NAME", "+", "COMMAND", "{", "NUMBER", "}", "{", "NUMBER", "}",
        ]

    def test_offsets(self):
        tokens = tokenize("ab + 12")
        assert [(t.text, t.start, t.end) for t in tokens] == [("ab", 0, 2), ("+", 3, 4), ("12", 5, 7)]

    def test_latex_delimiters_and_operators(self):
        tokens = tokenize(r"\left( 2 \cdot 3 \right) \div 4")
        assert [t.kind for t in tokens] == ["(", "NUMBER", "*", "NUMBER", ")", "/", "NUMBER"]

    def test_latex_spacing_ignored(self):
        assert [t.kind for t in tokenize(r"1 \, + \quad 2")] == ["NUMBER", "+", "NUMBER"]

    def test_scientific_notation(self):
        assert [t.text for t in tokenize("1.5e-3 + 2E4")] == ["1.5e-3", "+", "2E4"]

    def test_unexpected_character(self):
        with pytest.raises(ParseError, match="Unexpected character '\\$'"):
            tokenize("a $ b")


class TestArithmetic:
    """Precedence and associativity."""

    def test_decimal(self):
        assert parse("1.2") == num(1.2)

    def test_multi_level_expression(self):
        expected = BinOpNode(
            BinOpNode(num(1), "*", num(2)),
            "+",
            BinOpNode(num(3), "/", BinOpNode(num(4), "^", num(6))),
        )
        assert parse("1 * 2 + 3 / 4 ^ 6") == expected

    def test_parentheses(self):
        expected = BinOpNode(BinOpNode(num(1), "+", num(2)), "*", num(3))
        assert parse(r"(1 + 2) * \left(3\right)") == expected

    def test_left_associative(self):
        expected = BinOpNode(BinOpNode(num(8), "-", num(2)), "-", num(1))
        assert parse("8 - 2 - 1") == expected

    def test_power_right_associative(self):
        expected = BinOpNode(num(2), "^", BinOpNode(num(3), "^", num(2)))
        assert parse("2^3^2") == expected

    def test_unary_minus(self):
        assert parse("-2") == BinOpNode(num(-1), "*", num(2))

    def test_braced_exponent(self):
        assert parse("x^{1+1}") == BinOpNode(var("x"), "^", BinOpNode(num(1), "+", num(1)))

    def test_implicit_multiplication(self):
        assert parse("2x") == BinOpNode(num(2), "*", var("x"))
        assert parse("3(1 + 2)") == BinOpNode(num(3), "*", BinOpNode(num(1), "+", num(2)))

    def test_constants(self):
        assert parse("pi") == num(math.pi)
        assert parse(r"\pi") == num(math.pi)
        assert parse("e") == num(math.e)


class TestDefinitionsAndCalls:
    def test_variable_definition(self):
        assert parse("a = 2") == DefineVarNode("a", num(2))

    def test_function_definition(self):
        expected = DefineFuncNode("f", ["x", "y"], BinOpNode(var("x"), "+", var("y")))
        assert parse("f(x, y) = x + y") == expected

    def test_function_call(self):
        assert parse("f(1,a)") == CallNode("f", [num(1), var("a")])

    def test_name_then_space_is_not_a_call(self):
        """Only f(...) with no gap is a call; 'f (1)' is a stray group."""
        with pytest.raises(ParseError):
            parse("f (1)")

    def test_non_name_parameter(self):
        with pytest.raises(ParseError, match="must be plain names"):
            parse("f(2x) = x")

    def test_repeated_parameter(self):
        with pytest.raises(ParseError, match="repeated"):
            parse("f(x, x) = x")

    def test_definition_must_start_with_name(self):
        with pytest.raises(ParseError, match="Definition must start with a name"):
            parse("2 = x")

    def test_bad_right_hand_side_names_definition(self):
        with pytest.raises(ParseError, match="In right-hand side of 'f'"):
            parse("f(x) = x +")


class TestLatex:
    def test_frac(self):
        assert parse(r"\frac{1}{2}") == LatexNode("frac", [num(1), num(2)])

    def test_sum_scripts_in_either_order(self):
        expected = LatexNode(
            "sum",
            [var("i")],
            superscript=num(3),
            subscript=DefineVarNode("i", num(1)),
        )
        assert parse(r"\sum^{3}_{i=1}{i}") == expected
        assert parse(r"\sum_{i=1}^{3}{i}") == expected

    def test_bare_script_takes_one_character(self):
        expected = LatexNode(
            "sum",
            [num(4)],
            superscript=num(3),
            subscript=DefineVarNode("i", num(1)),
        )
        assert parse(r"\sum_{i=1}^34") == expected

    def test_unbraced_argument_is_next_term(self):
        expected = LatexNode("sqrt", [BinOpNode(num(2), "*", var("x"))])
        assert parse(r"\sqrt 2 * x") == expected

    def test_parenthesised_arguments(self):
        assert parse(r"\sin(0)") == LatexNode("sin", [num(0)])

    def test_script_set_twice(self):
        with pytest.raises(ParseError, match="Superscript already set"):
            parse(r"\sum^{3}^{4}{i}")

    def test_command_without_argument(self):
        with pytest.raises(ParseError, match="needs an argument"):
            parse(r"\alpha")

    def test_full(self):
        expected = DefineFuncNode(
            "f",
            ["x", "y"],
            BinOpNode(
                var("x"),
                "+",
                LatexNode(
                    "sum",
                    [BinOpNode(var("i"), "*", var("y"))],
                    superscript=num(3),
                    subscript=DefineVarNode("i", num(1)),
                ),
            ),
        )
        assert parse(r"f(x, y) = x + \sum^{3}_{i=1}{i*y}") == expected


class TestUnits:
    """Unit symbols become dimensioned literals."""

    def test_units(self):
        expected = BinOpNode(
            BinOpNode(num(1), "*", unit("km")),
            "+",
            BinOpNode(num(1), "*", unit("m")),
        )
        assert parse("1 km + 1 m") == expected

    def test_unit_power(self):
        expected = BinOpNode(num(100), "*", BinOpNode(unit("m"), "^", num(2)))
        assert parse("100 m^2") == expected

    def test_unit_shadows_variable(self):
        assert parse("s") == unit("s")

    def test_other_field(self):
        expected = BinOpNode(NumberNode(Complex(1)), "+", NumberNode(Complex(1j)))
        assert parse("1 + i", field=Complex) == expected


class TestErrors:
    """Parse errors carry where they happened."""

    def test_end_of_input(self):
        with pytest.raises(ParseError) as info:
            parse("1 +")
        assert info.value.span.offset == 3
        assert "at end of input" in str(info.value)

    def test_span_points_at_fragment(self):
        with pytest.raises(ParseError) as info:
            parse("1 + )", line=4)
        span = info.value.span
        assert (span.line, span.offset, span.fragment) == (4, 4, ")")
        assert str(info.value).startswith("line 4, col 5:")

    def test_unclosed_group(self):
        with pytest.raises(ParseError, match="Expected '\\)' to close '\\('"):
            parse("(1 + 2")

    def test_trailing_input(self):
        with pytest.raises(ParseError, match="Unexpected '2' after a complete expression"):
            parse("1 2")

    def test_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse("*")
