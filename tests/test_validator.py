"""
Tests for AST validation and complexity scoring.
"""

import pytest

from algoengine.expressions.ast_nodes import (
    AssignmentNode,
    BinaryNode,
    FunctionNode,
    GroupNode,
    LiteralNode,
    UnaryNode,
    VariableNode,
)
from algoengine.expressions.complexity import (
    calculate_complexity,
    calculate_complexity_score,
)
from algoengine.expressions.parser import parse_expression
from algoengine.expressions.validator import (
    ASTValidator,
    Severity,
    is_warning,
    validate_ast,
)


# =============================================================================
# Structural Validation
# =============================================================================

class TestStructure:
    """Missing required fields are errors; traversal continues."""

    def test_well_formed_tree_has_no_messages(self):
        assert validate_ast(parse_expression("n * 2")) == []

    @pytest.mark.parametrize("node,message", [
        (BinaryNode(operator="+", left=VariableNode(variable_name="n")),
         "Invalid binary expression: missing left, right, or operator"),
        (UnaryNode(operator="-"),
         "Invalid unary expression: missing operand or operator"),
        (FunctionNode(arguments=()),
         "Invalid function call: missing function name"),
        (VariableNode(),
         "Invalid variable: missing variable name"),
        (LiteralNode(),
         "Invalid literal: missing value"),
        (AssignmentNode(expression=LiteralNode(value=1)),
         "Invalid assignment: missing variable name"),
        (GroupNode(),
         "Invalid group: missing body expression"),
    ])
    def test_missing_fields(self, node, message):
        assert message in validate_ast(node)

    def test_traversal_continues_past_errors(self):
        node = BinaryNode(
            operator="+",
            left=LiteralNode(),
            right=UnaryNode(operator="-"),
        )
        messages = validate_ast(node)
        assert "Invalid literal: missing value" in messages
        assert "Invalid unary expression: missing operand or operator" in messages

    def test_null_literal_has_a_value(self):
        node = parse_expression("x == null")
        assert ASTValidator().validate(node).valid
        assert "Invalid literal: missing value" not in validate_ast(node)
        assert validate_ast(LiteralNode(value=None, is_null=True)) == []

    def test_non_node_input(self):
        assert validate_ast("n + 1") == ["Invalid AST structure: AST must be a node"]

    def test_parse_errors_are_reported(self):
        messages = validate_ast(parse_expression("2 +"))
        assert messages[0].startswith("Parse error: ")


# =============================================================================
# Semantic Warnings
# =============================================================================

class TestWarnings:
    """Advisory warnings share the message list, prefixed with 'Warning:'."""

    def test_division_by_literal_zero(self):
        assert "Warning: Division by zero detected" in validate_ast(parse_expression("value / 0"))

    def test_division_by_variable_is_fine(self):
        assert validate_ast(parse_expression("value / n")) == []

    def test_unrecognized_variable(self):
        messages = validate_ast(parse_expression("foo + 1"))
        assert messages == ["Warning: Variable 'foo' may be undefined"]

    def test_system_prefix_is_recognized(self):
        assert validate_ast(parse_expression("system_offset + 1")) == []

    def test_complex_subtree(self):
        messages = validate_ast(parse_expression("Math.max(n, base, exponent)"))
        assert any(
            m.startswith("Warning: Complex expression detected (complexity: 6)")
            for m in messages
        )

    def test_simple_subtree_is_not_complex(self):
        assert validate_ast(parse_expression("Math.abs(n)")) == []

    def test_fallback_literal_warning(self):
        messages = validate_ast(parse_expression("a ? b : c"))
        assert "Warning: Unsupported expression construct kept as an opaque literal" in messages

    def test_warnings_do_not_invalidate(self):
        result = ASTValidator().validate(parse_expression("foo / 0"))
        assert result.valid
        assert len(result.warnings) == 2
        assert all(is_warning(m) for m in result.messages())


class TestValidatorConfiguration:

    def test_custom_recognized_variables(self):
        validator = ASTValidator(recognized_variables=frozenset({"foo"}))
        assert validator.validate(parse_expression("foo + 1")).issues == []

    def test_custom_threshold(self):
        validator = ASTValidator(complexity_threshold=100)
        result = validator.validate(parse_expression("Math.max(n, base, exponent)"))
        assert result.issues == []

    def test_threshold_from_environment(self, monkeypatch):
        monkeypatch.setenv("ALGOENGINE_COMPLEXITY_WARNING_THRESHOLD", "2")
        result = ASTValidator().validate(parse_expression("n + 1"))
        assert [i.severity for i in result.issues] == [Severity.WARNING]

    def test_errors_view(self):
        result = ASTValidator().validate(BinaryNode(operator="+"))
        assert not result.valid
        assert not result
        assert [i.node_type for i in result.errors] == ["binary"]


# =============================================================================
# Complexity Scoring
# =============================================================================

class TestComplexity:

    @pytest.mark.parametrize("source,score,tier", [
        ("1", 1, "low"),
        ("x + 1", 3, "low"),
        ("(x)", 2, "low"),
        ("y = x", 2, "low"),
        ("-x", 2, "low"),
        ("Math.pow(2, 3)", 5, "medium"),
        ("a*b + c*d - e", 9, "high"),
    ])
    def test_scores_and_tiers(self, source, score, tier):
        node = parse_expression(source)
        assert calculate_complexity_score(node) == score
        assert calculate_complexity(node) == tier

    def test_tier_boundaries(self):
        assert calculate_complexity(parse_expression("a + b + c + d")) == "medium"  # 7
        assert calculate_complexity(parse_expression("a + b + c + -d")) == "medium"  # 8
        assert calculate_complexity(parse_expression("a + b + c + d + e")) == "high"  # 9

    @pytest.mark.parametrize("source", [
        "x", "Math.max(a, b)", "-(a + b)", "y = a * b", "(a)", "a ? b : c",
    ])
    def test_wrapping_in_binary_increases_score(self, source):
        node = parse_expression(source)
        wrapped = BinaryNode(operator="+", left=node, right=LiteralNode(value=1))
        assert calculate_complexity_score(wrapped) > calculate_complexity_score(node)

    def test_sibling_order_does_not_matter(self):
        a = parse_expression("Math.max(a, b) + c")
        b = parse_expression("c + Math.max(a, b)")
        assert calculate_complexity_score(a) == calculate_complexity_score(b)
