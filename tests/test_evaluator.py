"""
Tests for the tree-walking evaluator and the scope it runs against.
"""

import math

import pytest

from algoengine.engine_exceptions import EvaluationError
from algoengine.expressions.ast_nodes import FunctionNode, LiteralNode
from algoengine.expressions.builtins import format_number, format_value, get_builtin_tables
from algoengine.expressions.evaluator import Evaluator, VariableScope, evaluate_expression
from algoengine.expressions.parser import parse_expression


def run(source, **variables):
    scope = VariableScope({**variables, **get_builtin_tables()})
    return evaluate_expression(parse_expression(source), scope)


# =============================================================================
# Operators
# =============================================================================

class TestArithmetic:

    @pytest.mark.parametrize("source,expected", [
        ("2 + 3 * 4", 14),
        ("10 / 4", 2.5),
        ("7 % 3", 1),
        ("-7 % 3", -1),
        ("2 ^ 10", 1024),
        ("2 ** 3", 8),
        ("-2 ^ 2", -4),
        ("(1 + 2) * 3", 9),
        ("true + 1", 2),
        ("+5", 5),
    ])
    def test_values(self, source, expected):
        assert run(source) == expected

    def test_integral_division_is_int(self):
        result = run("6 / 3")
        assert result == 2
        assert isinstance(result, int)

    @pytest.mark.parametrize("source", ["1 / 0", "5 % 0", "n / 0"])
    def test_division_by_zero_raises(self, source):
        with pytest.raises(EvaluationError):
            run(source, n=3)

    def test_non_numeric_arithmetic_raises(self):
        with pytest.raises(EvaluationError, match="expects numbers"):
            run("'a' - 1")

    def test_incomparable_values_raise(self):
        with pytest.raises(EvaluationError, match="Cannot compare"):
            run("1 < 'a'")

    @pytest.mark.parametrize("source,expected", [
        ("2.5 ^ 100000", math.inf),
        ("10 ^ 400", math.inf),
        ("10 ^ 400 / 3", math.inf),
        ("(-10) ^ 401", -math.inf),
        ("(-10) ^ 400", math.inf),
        ("0 ^ -1", math.inf),
        ("Math.pow(10, 400)", math.inf),
        ("Math.exp(1000)", math.inf),
    ])
    def test_overflow_is_infinity(self, source, expected):
        assert run(source) == expected

    def test_power_stays_fast_and_finite_results_stay_exact(self):
        assert run("2 ^ 52") == 2 ** 52
        assert isinstance(run("2 ^ 10"), int)
        assert run("4 ^ 0.5") == 2
        assert run("2 ^ -1") == 0.5


class TestStringsAndLogic:

    def test_concatenation(self):
        assert run("'a' + 1") == "a1"
        assert run("1 + 2 + 'px'") == "3px"
        assert run("'on: ' + true") == "on: true"
        assert run("'w' + 2.0") == "w2"

    def test_and_returns_operand(self):
        assert run("n > 2 && 'big'", n=3) == "big"
        assert run("n > 2 && 'big'", n=1) is False

    def test_or_returns_operand(self):
        assert run("0 || 5") == 5
        assert run("'x' || missing") == "x"

    def test_short_circuit_skips_right_side(self):
        assert run("false && missing") is False

    def test_not(self):
        assert run("!0") is True
        assert run("!'text'") is False

    @pytest.mark.parametrize("source,expected", [
        ("1 == 1.0", True),
        ("1 === 1.0", True),
        ("1 === true", False),
        ("'a' !== 'a'", False),
        ("2 != 3", True),
        ("3 >= 3", True),
    ])
    def test_comparisons(self, source, expected):
        assert run(source) is expected


# =============================================================================
# Identifiers and Functions
# =============================================================================

class TestIdentifiers:

    def test_variable_lookup(self):
        assert run("base * n", base=4, n=2) == 8

    def test_undefined_variable(self):
        with pytest.raises(EvaluationError, match="'missing' is not defined"):
            run("missing + 1")

    def test_null(self):
        assert run("null") is None
        assert run("x == null", x=None) is True

    def test_literal_without_value(self):
        with pytest.raises(EvaluationError, match="missing value"):
            evaluate_expression(LiteralNode(), VariableScope())

    def test_fallback_literal_cannot_be_evaluated(self):
        with pytest.raises(EvaluationError, match="Unsupported expression construct"):
            run("a ? b : c", a=1, b=2, c=3)

    def test_unknown_node(self):
        with pytest.raises(EvaluationError):
            Evaluator({}).evaluate(None)


class TestFunctions:

    @pytest.mark.parametrize("source,expected", [
        ("Math.max(1, n)", 5),
        ("Math.min()", math.inf),
        ("Math.max()", -math.inf),
        ("Math.round(2.5)", 3),
        ("Math.round(-2.5)", -2),
        ("Math.floor(2.7)", 2),
        ("Math.ceil(2.1)", 3),
        ("Math.abs(-3)", 3),
        ("Math.sqrt(9)", 3),
        ("Math.pow(2, 3)", 8),
        ("Math.exp(0)", 1),
    ])
    def test_math_table(self, source, expected):
        assert run(source, n=5) == expected

    def test_math_constants(self):
        assert run("Math.PI") == math.pi
        assert run("Math.E * 1") == math.e

    def test_array_predicate(self):
        assert run("Array.isArray(items)", items=[1, 2]) is True
        assert run("Array.isArray(n)", n=1) is False

    def test_unknown_function(self):
        with pytest.raises(EvaluationError, match="'Math.nope' is not defined"):
            run("Math.nope(1)")

    def test_constant_called_with_arguments(self):
        with pytest.raises(EvaluationError, match="is not a function"):
            evaluate_expression(
                FunctionNode(function_name="Math.PI", arguments=(LiteralNode(value=1),)),
                VariableScope(get_builtin_tables()),
            )

    def test_bad_argument_raises_evaluation_error(self):
        with pytest.raises(EvaluationError):
            run("Math.sqrt(-1)")

    def test_namespaces_must_be_bound(self):
        with pytest.raises(EvaluationError, match="'Math' is not defined"):
            evaluate_expression(parse_expression("Math.abs(1)"), VariableScope())


# =============================================================================
# Assignment and Scope
# =============================================================================

class TestAssignment:

    def test_assignment_writes_scope(self):
        scope = VariableScope({"base": 4})
        assert evaluate_expression(parse_expression("size = base * 2"), scope) == 8
        assert scope["size"] == 8

    def test_chained_assignment(self):
        scope = VariableScope()
        evaluate_expression(parse_expression("a = b = 3"), scope)
        assert scope.to_dict() == {"a": 3, "b": 3}

    def test_alias_reads_and_writes_canonical_name(self):
        scope = VariableScope({"base": 4})
        scope.add_alias("v_base", "base")
        assert evaluate_expression(parse_expression("v_base + 1"), scope) == 5
        evaluate_expression(parse_expression("v_base = 10"), scope)
        assert scope["base"] == 10
        assert list(scope) == ["base"]

    def test_alias_does_not_shadow_existing_name(self):
        scope = VariableScope({"base": 4, "v_base": 99})
        scope.add_alias("v_base", "base")
        assert scope["v_base"] == 99

    def test_scope_mapping_protocol(self):
        scope = VariableScope({"a": 1})
        scope.add_alias("id_a", "a")
        assert "id_a" in scope
        assert len(scope) == 1
        clone = scope.copy()
        clone["id_a"] = 2
        assert scope["a"] == 1
        assert clone["a"] == 2
        del clone["id_a"]
        assert "a" not in clone


# =============================================================================
# Formatting Helpers
# =============================================================================

class TestFormatting:

    @pytest.mark.parametrize("value,text", [
        (2, "2"), (2.0, "2"), (2.5, "2.5"), (-0.5, "-0.5"),
        (math.inf, "Infinity"), (-math.inf, "-Infinity"), (math.nan, "NaN"),
    ])
    def test_format_number(self, value, text):
        assert format_number(value) == text

    @pytest.mark.parametrize("value,text", [
        (True, "true"), (None, ""), ([1, 2.0, "a"], "1,2,a"), ("x", "x"),
    ])
    def test_format_value(self, value, text):
        assert format_value(value) == text
