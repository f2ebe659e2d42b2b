"""
Tests for the evaluator and the session context.

Lines are run in order against one Context, the way a notebook runs them.
"""

import math

import pytest

from errors import EvalError, UnitError
from evaluator import Context, evaluate
from fields import Complex, Real, UnitVal
from parser import BinOpNode, DefineVarNode, NumberNode, parse


def run(*lines, context=None, field=None):
    """Evaluate each line in one context and return the last value."""
    context = Context() if context is None else context
    value = None
    for line in lines:
        value = evaluate(parse(line, field=field), context)
    return value


def scalar(x):
    return UnitVal.scalar(x)


class TestContext:
    def test_child_sees_parent(self):
        ctx = Context()
        ctx.define_var("a", scalar(1))
        assert ctx.child().get_var("a") == scalar(1)

    def test_child_bindings_stay_local(self):
        ctx = Context()
        scope = ctx.child()
        scope.bind("x", scalar(2))
        assert scope.get_var("x") == scalar(2)
        assert ctx.get_var("x") is None

    def test_bind_shadows_parent(self):
        ctx = Context()
        ctx.define_var("x", scalar(1))
        scope = ctx.child()
        scope.bind("x", scalar(2))
        assert scope.get_var("x") == scalar(2)
        assert ctx.get_var("x") == scalar(1)

    def test_definitions_are_write_once(self):
        ctx = Context()
        ctx.define_var("a", scalar(1))
        with pytest.raises(EvalError, match="already defined"):
            ctx.define_func("a", ["x"], NumberNode(scalar(1)))
        with pytest.raises(EvalError, match="already defined"):
            ctx.child().define_var("a", scalar(2))


class TestArithmetic:
    def test_nested_arithmetic(self):
        assert run("1 + 2 * 3") == scalar(7)
        assert run("(1 + 2) * 3") == scalar(9)

    def test_frac_and_sqrt(self):
        assert run(r"\frac{1}{2}") == scalar(0.5)
        assert run(r"\sqrt{16}") == scalar(4)
        assert run(r"\sqrt{2}").value == pytest.approx(math.sqrt(2))

    def test_builtins(self):
        assert run("sin(0)") == scalar(0)
        assert run(r"\cos{0}") == scalar(1)
        assert run("sqrt(9)") == scalar(3)

    def test_builtin_arity(self):
        with pytest.raises(EvalError, match="expects 1 argument"):
            run("sin(1, 2)")

    def test_trig_of_infinity(self):
        with pytest.raises(EvalError, match="Cannot take sin of inf"):
            run("a = 1e200 * 1e200", "sin(a)")

    def test_division_by_zero(self):
        with pytest.raises(EvalError, match="Division by zero"):
            run("1 / (2 - 2)")

    def test_unknown_command(self):
        with pytest.raises(EvalError, match="Unknown command"):
            run(r"\foo{1}")

    def test_frac_arity(self):
        with pytest.raises(EvalError, match="expects 2 arguments"):
            run(r"\frac{1}")


class TestVariables:
    def test_define_and_use(self):
        assert run("a = 3") == scalar(3)
        assert run("a = 3", "a") == scalar(3)

    def test_two_variables(self):
        assert run("a = 3", "b = 2", "a + b") == scalar(5)

    def test_redefinition(self):
        ctx = Context()
        run("a = 1", context=ctx)
        with pytest.raises(EvalError, match="'a' is already defined"):
            run("a = 2", context=ctx)
        assert ctx.get_var("a") == scalar(1)

    def test_undefined(self):
        with pytest.raises(EvalError, match="Undefined variable 'q'"):
            run("q + 1")

    def test_self_reference(self):
        ctx = Context()
        with pytest.raises(EvalError, match="cannot be defined recursively"):
            run("a = a + 1", context=ctx)
        assert not ctx.is_defined("a")

    def test_failed_line_commits_nothing(self):
        ctx = Context()
        with pytest.raises(UnitError):
            run("a = 1 m + 1 s", context=ctx)
        assert run("a = 3", context=ctx) == scalar(3)

    def test_nested_definition_rejected(self):
        node = BinOpNode(NumberNode(scalar(1)), "+", DefineVarNode("b", NumberNode(scalar(2))))
        with pytest.raises(EvalError, match="definitions must start the line"):
            evaluate(node, Context())


class TestFunctions:
    def test_define_and_call(self):
        ctx = Context()
        assert run("f(x, y) = x + y", context=ctx) is None
        assert run("f(1, 2)", context=ctx) == scalar(3)

    def test_arity(self):
        with pytest.raises(EvalError, match="expects 2 arguments, but got 1"):
            run("f(x, y) = x + y", "f(1)")

    def test_undefined_function(self):
        with pytest.raises(EvalError, match="Undefined function 'g'"):
            run("g(1)")

    def test_parameter_shadows_variable(self):
        assert run("x = 10", "f(x) = x + 1", "f(1)") == scalar(2)

    def test_body_sees_later_globals(self):
        assert run("f(x) = x + k", "k = 5", "f(1)") == scalar(6)

    def test_nested_calls(self):
        assert run("f(x) = 2x", "g(x) = f(x) + f(1)", "g(3)") == scalar(8)
        assert run("f(x) = 2x", "f(f(2))") == scalar(8)

    def test_parameters_do_not_leak(self):
        ctx = Context()
        run("f(x) = x", "f(1)", context=ctx)
        assert ctx.get_var("x") is None

    def test_name_clash_with_variable(self):
        with pytest.raises(EvalError, match="already defined"):
            run("a = 1", "a(x) = x")

    def test_builtin_cannot_be_redefined(self):
        with pytest.raises(EvalError, match="built-in"):
            run("sin(x) = x")

    def test_direct_recursion(self):
        ctx = Context()
        with pytest.raises(EvalError, match="cannot be defined recursively"):
            run("f(x) = f(x) + 1", context=ctx)
        assert ctx.get_func("f") is None

    def test_mutual_recursion(self):
        with pytest.raises(EvalError, match="calls itself recursively"):
            run("g(x) = h(x)", "h(x) = g(x)", "g(1)")

    def test_variable_from_function(self):
        assert run("f(x) = x^2", "b = f(3)") == scalar(9)


class TestReductions:
    def test_sum_either_script_order(self):
        assert run(r"\sum^{3}_{i=1}{i}") == scalar(6)
        assert run(r"\sum_{i=1}^{3}{i}") == scalar(6)

    def test_prod(self):
        assert run(r"\prod_{i=1}^{4}{i}") == scalar(24)

    def test_empty_range(self):
        assert run(r"\sum_{i=3}^{1}{i}") == scalar(0)
        assert run(r"\prod_{i=3}^{1}{i}") == scalar(1)

    def test_dimensioned_terms(self):
        assert str(run(r"\sum_{i=1}^{3}{i * 1 m}")) == "6 m"

    def test_uses_session(self):
        assert run("n = 4", r"\sum_{i=1}^{n}{i}") == scalar(10)
        assert run("f(x, y) = x + \\sum^{3}_{i=1}{i*y}", "f(1, 2)") == scalar(13)

    def test_bound_variable_is_local(self):
        ctx = Context()
        run(r"\sum_{i=1}^{3}{i}", context=ctx)
        with pytest.raises(EvalError, match="Undefined variable 'i'"):
            run("i", context=ctx)

    def test_non_integer_bound(self):
        with pytest.raises(EvalError, match="must be integers"):
            run(r"\sum_{i=1}^{2.5}{i}")

    def test_bound_variable_already_defined(self):
        """The subscript defines its variable, so the name must be free."""
        with pytest.raises(EvalError, match="'i' is already defined"):
            run("i = 5", r"\sum_{i=1}^{3}{i}")

    def test_bound_variable_matches_parameter(self):
        with pytest.raises(EvalError, match="'i' is already defined"):
            run(r"f(i) = \sum_{i=1}^{3}{i}", "f(1)")

    def test_infinite_bound(self):
        with pytest.raises(EvalError, match="must be integers"):
            run(r"\sum_{i=1}^{1e400}{i}")

    def test_subscript_must_bind(self):
        with pytest.raises(EvalError, match="must bind a variable"):
            run(r"\sum_{1}^{3}{1}")

    def test_missing_scripts(self):
        with pytest.raises(EvalError, match="expects a subscript"):
            run(r"\sum{1}")


class TestUnits:
    def test_mismatched_addition(self):
        with pytest.raises(UnitError, match="different units"):
            run("1 m + 1 s")

    def test_sum_of_lengths(self):
        assert str(run("1 km + 1000 m")) == "2 km"

    def test_mixed_multiplication(self):
        assert str(run("2 m * 3 s")) == "6 m*s"

    @pytest.mark.parametrize(
        "line, expected",
        [
            ("1 N/kg", "1 m/s^2"),
            ("1 kPa/N", "1000 /m^2"),
            ("0.01 km^2", "10000 m^2"),
            ("100 ft^2", "9.290304 m^2"),
            ("12 J / 4 s", "3 W"),
        ],
    )
    def test_conversions(self, line, expected):
        assert str(run(line)) == expected

    def test_cube_root_of_volume(self):
        value = run("(1 km^3 + 300 m^3)^(1/3)")
        assert value.dim == (1, 0, 0, 0, 0, 0, 0)
        assert value.value == pytest.approx((1e9 + 300) ** (1 / 3))

    def test_sqrt_of_length(self):
        with pytest.raises(UnitError):
            run("sqrt(1 m)")
        assert str(run("sqrt(4 m^2)")) == "2 m"

    def test_function_over_units(self):
        assert str(run("g0 = 9.81 m/s^2", "f(mass) = mass * g0", "f(2 kg)")) == "19.62 N"


class TestOtherFields:
    def test_real(self):
        assert run("2^0.5", field=Real).value == pytest.approx(math.sqrt(2))
        assert run("a = 2", "a * 3", field=Real) == Real(6)

    def test_complex(self):
        assert run("i * i", field=Complex) == Complex(-1)
        assert run(r"\sum_{k=1}^{2}{i}", field=Complex) == Complex(2j)
