"""
Tests for the expression optimizer and code generator.
"""

import math
import time

import pytest

from algoengine.engine_exceptions import CodeGenerationError
from algoengine.expressions import optimizer
from algoengine.expressions.ast_nodes import (
    AssignmentNode,
    BinaryNode,
    FunctionNode,
    GroupNode,
    LiteralNode,
    UnaryNode,
    VariableNode,
)
from algoengine.expressions.builtins import get_builtin_tables
from algoengine.expressions.codegen import generate_code, generate_javascript
from algoengine.expressions.evaluator import evaluate_expression
from algoengine.expressions.optimizer import (
    fold_constants,
    optimize_expression,
    remove_redundant_operations,
    simplify_expressions,
)
from algoengine.expressions.parser import parse_expression

X = VariableNode(variable_name="x")


def optimized(source):
    return optimize_expression(parse_expression(source))


# =============================================================================
# Constant Folding
# =============================================================================

class TestConstantFolding:

    @pytest.mark.parametrize("source,value", [
        ("2+3*4", 14),
        ("10 / 4", 2.5),
        ("7 - 10", -3),
        ("2 ^ 3", 8),
        ("(2 + 3) * 4", 20),
        ("-5", -5),
        ("Math.sqrt(16)", 4),
        ("Math.max(1, 7, 3)", 7),
        ("Math.round(2.5)", 3),
        ("Math.pow(2, 10)", 1024),
    ])
    def test_folds_to_literal(self, source, value):
        assert optimized(source) == LiteralNode(value=value)

    def test_integral_results_are_ints(self):
        assert isinstance(optimized("6 / 3").value, int)

    def test_not_folds_to_boolean(self):
        assert optimized("!0") == LiteralNode(value=True)

    def test_division_by_zero_is_not_folded(self):
        node = optimized("5/0")
        assert isinstance(node, BinaryNode)
        assert node == parse_expression("5/0")

    @pytest.mark.parametrize("source", ["Math.sqrt(-1)", "(-8) ^ 0.5"])
    def test_non_real_results_are_not_folded(self, source):
        assert not isinstance(optimized(source), LiteralNode)

    def test_functions_outside_allow_list_are_kept(self):
        assert isinstance(optimized("Math.sin(0)"), FunctionNode)

    def test_calls_with_variable_arguments_are_kept(self):
        assert optimized("Math.max(n, 2)") == parse_expression("Math.max(n, 2)")

    def test_modulo_is_not_folded(self):
        assert isinstance(optimized("7 % 3"), BinaryNode)

    def test_huge_power_is_left_alone_quickly(self):
        node = parse_expression("7 ^ 30000000")
        started = time.perf_counter()
        result = optimize_expression(node)
        assert time.perf_counter() - started < 1.0
        assert result == node

    def test_overflowing_power_is_not_folded(self):
        assert isinstance(optimized("10 ^ 400"), BinaryNode)

    def test_negative_base_folds(self):
        assert optimized("(-2) ^ 3") == LiteralNode(value=-8)

    def test_fold_pass_alone(self):
        assert fold_constants(parse_expression("1 + 2")) == LiteralNode(value=3)


# =============================================================================
# Redundant Operations
# =============================================================================

class TestRedundantOperations:

    @pytest.mark.parametrize("source", ["x+0", "0+x", "x*1", "1*x", "x^1", "(x)", "-(-x)", "- -x"])
    def test_reduces_to_bare_variable(self, source):
        assert optimized(source) == X

    def test_power_of_zero(self):
        assert optimized("x^0") == LiteralNode(value=1)

    def test_string_concatenation_with_zero_is_kept(self):
        node = optimized("'a' + 0")
        assert isinstance(node, BinaryNode)

    def test_group_around_compound_expression_is_kept(self):
        assert isinstance(optimized("(x + y) * z").left, GroupNode)

    def test_redundant_pass_alone(self):
        node = BinaryNode(operator="*", left=X, right=LiteralNode(value=1))
        assert remove_redundant_operations(node) == X


# =============================================================================
# Algebraic Simplification
# =============================================================================

class TestSimplification:

    def test_like_terms(self):
        assert optimized("x + x") == BinaryNode(
            operator="*", left=LiteralNode(value=2), right=X
        )

    def test_different_variables_are_kept(self):
        assert optimized("x + y") == parse_expression("x + y")

    def test_inside_assignment(self):
        assert optimized("y = n + n") == AssignmentNode(
            variable_name="y",
            expression=BinaryNode(
                operator="*", left=LiteralNode(value=2), right=VariableNode(variable_name="n")
            ),
        )

    def test_simplify_pass_alone(self):
        node = BinaryNode(operator="+", left=X, right=X)
        assert simplify_expressions(node).operator == "*"


# =============================================================================
# Optimizer Contract
# =============================================================================

IDEMPOTENCE_CASES = [
    "2+3*4", "x + 0 + 0", "(x + x) * 1", "-(-(x + 0))", "y = (base * 1) + (n + n)",
    "Math.max(1, 2) + Math.min(n, 3)", "((x))", "x ^ 0 + 5 / 0", "'a' + 0", "a ? b : c",
    "(2 + 3) * (x + 0)",
]


class TestOptimizerContract:

    @pytest.mark.parametrize("source", IDEMPOTENCE_CASES)
    def test_idempotent(self, source):
        once = optimized(source)
        assert optimize_expression(once) == once

    def test_input_is_not_modified(self):
        node = parse_expression("x * 1 + 2 * 3")
        before = node.to_dict()
        optimize_expression(node)
        assert node.to_dict() == before

    def test_root_metadata_complexity_is_recomputed(self):
        node = parse_expression("2+3*4")
        assert node.metadata.complexity == "medium"
        result = optimize_expression(node)
        assert result.metadata.complexity == "low"
        assert result.metadata.ast_version == node.metadata.ast_version

    def test_failure_returns_original(self, monkeypatch):
        def broken(node):
            raise RuntimeError("boom")

        monkeypatch.setattr(optimizer, "OPTIMIZATION_PASSES", (broken,))
        node = parse_expression("x + 0")
        assert optimize_expression(node) is node

    def test_none_passes_through(self):
        assert optimize_expression(None) is None

    @pytest.mark.parametrize("source,expected", [
        ("2+3*4", 14),
        ("x + 0 + 0", 3),
        ("(x + x) * 1", 6),
        ("-(-(x + 0))", 3),
        ("y = (base * 1) + (n + n)", 8),
        ("Math.max(1, 2) + Math.min(n, 3)", 4),
        ("((x))", 3),
        ("(2 + 3) * (x + 0)", 15),
        ("(-2) ^ n", 4),
        ("(0 - 3) ^ x", -27),
        ("x ^ 0 + 10 ^ 400", math.inf),
    ])
    def test_preserves_value(self, source, expected):
        scope = {"x": 3, "y": 0, "base": 4, "n": 2, **get_builtin_tables()}
        node = parse_expression(source)
        assert evaluate_expression(node, dict(scope)) == expected
        assert evaluate_expression(optimize_expression(node), dict(scope)) == expected


# =============================================================================
# Code Generation
# =============================================================================

class TestCodeGeneration:

    @pytest.mark.parametrize("source,code", [
        ("2+3*4", "(2 + (3 * 4))"),
        ("x = base * 2", "x = (base * 2)"),
        ("Math.pow(base, n)", "Math.pow(base, n)"),
        ("Math.PI", "Math.PI"),
        ("random()", "random()"),
        ("-x", "-x"),
        ("!flag", "!flag"),
        ("(x)", "(x)"),
        ("'hi'", '"hi"'),
        ("true", "true"),
        ("2.5", "2.5"),
        ("a ** b", "(a ^ b)"),
        ("x == null", "(x == null)"),
    ])
    def test_render(self, source, code):
        assert generate_javascript(parse_expression(source)) == code

    def test_generate_code_matches_generate_javascript(self):
        node = parse_expression("y = Math.max(a, b) / 2")
        assert generate_code(node) == generate_javascript(node)

    def test_string_escaping(self):
        assert generate_code(LiteralNode(value='a "b"\n')) == '"a \\"b\\"\\n"'

    def test_integral_float_renders_without_fraction(self):
        assert generate_code(LiteralNode(value=2.0)) == "2"

    def test_negative_literals_are_parenthesized(self):
        base = BinaryNode(operator="^", left=LiteralNode(value=-2), right=VariableNode(variable_name="n"))
        assert generate_code(base) == "((-2) ^ n)"
        assert generate_code(UnaryNode(operator="-", operand=LiteralNode(value=-2.5))) == "-(-2.5)"
        assert generate_code(LiteralNode(value=0.0)) == "0"

    @pytest.mark.parametrize("source", ["(-2) ^ n", "(0 - 3) ^ n", "x - -2", "-(-(2)) ^ n"])
    def test_optimized_output_reparses_to_same_value(self, source):
        node = optimize_expression(parse_expression(source))
        reparsed = parse_expression(generate_code(node))
        assert reparsed.metadata.validation_errors == ()
        for n in (2, 3):
            scope = {"n": n, "x": 5, **get_builtin_tables()}
            assert evaluate_expression(reparsed, dict(scope)) == evaluate_expression(node, dict(scope))

    @pytest.mark.parametrize("source", [
        "size = base * Math.pow(2, n)", "-(x + 1) * 3", "a >= b && c != 'x'", "(-2) ^ n",
    ])
    def test_output_reparses_to_same_value(self, source):
        scope = {"base": 4, "n": 3, "x": 2, "a": 1, "b": 1, "c": "y", **get_builtin_tables()}
        node = parse_expression(source)
        reparsed = parse_expression(generate_code(node))
        assert reparsed.metadata.validation_errors == ()
        assert evaluate_expression(reparsed, dict(scope)) == evaluate_expression(node, dict(scope))

    @pytest.mark.parametrize("node", [
        None,
        LiteralNode(),
        BinaryNode(operator="+", left=LiteralNode(value=1)),
        UnaryNode(operator="-"),
        FunctionNode(),
        AssignmentNode(variable_name="x"),
        GroupNode(),
        VariableNode(),
    ])
    def test_missing_fields_raise(self, node):
        with pytest.raises(CodeGenerationError):
            generate_javascript(node)

    def test_nested_missing_field_raises(self):
        node = GroupNode(body=BinaryNode(operator="+", left=X))
        with pytest.raises(CodeGenerationError):
            generate_code(node)
