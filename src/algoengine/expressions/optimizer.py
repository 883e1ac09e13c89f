"""
Expression Optimizer - best-effort tree rewrites.

Three independent passes, always applied in this order:
- Constant folding: evaluate operators and Math calls over numeric literals
- Redundant-operation elimination: x + 0, x * 1, x ^ 1, x ^ 0, -(-x), (x)
- Algebraic simplification: x + x -> 2 * x

Each pass is a pure node -> node function; nodes are immutable, so the
caller's tree is never touched. The pass sequence repeats until the tree
stops changing, which makes optimize_expression idempotent.
"""

import math
from dataclasses import replace
from typing import Callable, Optional

from .ast_nodes import (
    ASTNode,
    AssignmentNode,
    BinaryNode,
    FunctionNode,
    GroupNode,
    LiteralNode,
    UnaryNode,
    VariableNode,
    is_literal_value,
    is_number,
    is_numeric_literal,
    with_metadata,
)
from .builtins import FOLDABLE_MATH_FUNCTIONS, MATH_FUNCTIONS, js_pow, normalize_number
from .complexity import calculate_complexity
from ..logging_config import configure_logger_for_debug_trace
from ..services.config_loader import get_engine_config

logger = configure_logger_for_debug_trace(__name__)

MATH_PREFIX = "Math."

Pass = Callable[[ASTNode], ASTNode]


def _map_children(node: ASTNode, fn: Pass) -> ASTNode:
    """Rebuild node with fn applied to each present child."""
    def apply(child: Optional[ASTNode]) -> Optional[ASTNode]:
        return fn(child) if child is not None else None

    if isinstance(node, BinaryNode):
        return replace(node, left=apply(node.left), right=apply(node.right))
    if isinstance(node, UnaryNode):
        return replace(node, operand=apply(node.operand))
    if isinstance(node, FunctionNode):
        return replace(node, arguments=tuple(apply(a) for a in node.arguments))
    if isinstance(node, AssignmentNode):
        return replace(node, expression=apply(node.expression))
    if isinstance(node, GroupNode):
        return replace(node, body=apply(node.body))
    return node


def _finite(value) -> bool:
    return is_number(value) and math.isfinite(value)


# ============================================================
# CONSTANT FOLDING
# ============================================================

def _fold_binary(operator: str, left, right):
    if operator == "+":
        return left + right
    if operator == "-":
        return left - right
    if operator == "*":
        return left * right
    if operator == "/":
        return left / right
    if operator == "^":
        return js_pow(left, right)
    return None


def fold_constants(node: ASTNode) -> ASTNode:
    """Bottom-up evaluation of operators whose operands are numeric literals."""
    node = _map_children(node, fold_constants)

    if isinstance(node, BinaryNode):
        if not (is_numeric_literal(node.left) and is_numeric_literal(node.right)):
            return node
        # x / 0 is left alone rather than folded to a non-number
        if node.operator == "/" and node.right.value == 0:
            return node
        try:
            result = _fold_binary(node.operator, node.left.value, node.right.value)
        except (ArithmeticError, ValueError):
            return node
        if not _finite(result):
            return node
        return LiteralNode(value=normalize_number(result))

    if isinstance(node, UnaryNode) and is_numeric_literal(node.operand):
        value = node.operand.value
        if node.operator == "-":
            return LiteralNode(value=normalize_number(-value))
        if node.operator == "!":
            return LiteralNode(value=not value)
        return node

    if isinstance(node, FunctionNode):
        name = node.function_name or ""
        if not name.startswith(MATH_PREFIX) or not node.arguments:
            return node
        short_name = name[len(MATH_PREFIX):]
        if short_name not in FOLDABLE_MATH_FUNCTIONS:
            return node
        if not all(is_numeric_literal(arg) for arg in node.arguments):
            return node
        try:
            result = MATH_FUNCTIONS[short_name](*(arg.value for arg in node.arguments))
        except (ArithmeticError, ValueError, TypeError):
            return node
        if not _finite(result):
            return node
        return LiteralNode(value=normalize_number(result))

    return node


# ============================================================
# REDUNDANT OPERATION ELIMINATION
# ============================================================

def _is_string_literal(node: Optional[ASTNode]) -> bool:
    return isinstance(node, LiteralNode) and isinstance(node.value, str)


def remove_redundant_operations(node: ASTNode) -> ASTNode:
    """Drop identity operations and parentheses around atoms."""
    node = _map_children(node, remove_redundant_operations)

    if isinstance(node, BinaryNode) and node.left is not None and node.right is not None:
        left, right, op = node.left, node.right, node.operator

        if op == "+":
            # "a" + 0 concatenates, so only drop zeros next to non-strings
            if is_literal_value(right, 0) and not _is_string_literal(left):
                return left
            if is_literal_value(left, 0) and not _is_string_literal(right):
                return right
        elif op == "*":
            if is_literal_value(right, 1):
                return left
            if is_literal_value(left, 1):
                return right
        elif op == "^":
            if is_literal_value(right, 1):
                return left
            if is_literal_value(right, 0):
                return LiteralNode(value=1)
        return node

    if isinstance(node, UnaryNode) and node.operator == "-":
        inner = node.operand
        while isinstance(inner, GroupNode):
            inner = inner.body
        if isinstance(inner, UnaryNode) and inner.operator == "-" and inner.operand is not None:
            return inner.operand
        return node

    if isinstance(node, GroupNode) and isinstance(node.body, (LiteralNode, VariableNode)):
        return node.body

    return node


# ============================================================
# ALGEBRAIC SIMPLIFICATION
# ============================================================

def simplify_expressions(node: ASTNode) -> ASTNode:
    """Combine like terms: x + x becomes 2 * x."""
    node = _map_children(node, simplify_expressions)

    if (isinstance(node, BinaryNode)
            and node.operator == "+"
            and isinstance(node.left, VariableNode)
            and isinstance(node.right, VariableNode)
            and node.left.variable_name
            and node.left.variable_name == node.right.variable_name):
        return BinaryNode(
            operator="*",
            left=LiteralNode(value=2),
            right=node.right,
        )

    return node


OPTIMIZATION_PASSES = (
    fold_constants,
    remove_redundant_operations,
    simplify_expressions,
)


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def optimize_expression(node: ASTNode, max_rounds: Optional[int] = None) -> ASTNode:
    """
    Optimize a tree; returns the input unchanged if anything goes wrong.

    Root metadata is carried over with its complexity recomputed.
    """
    if node is None:
        return node

    if max_rounds is None:
        max_rounds = get_engine_config().optimizer_max_rounds

    try:
        current = with_metadata(node, None)
        for _ in range(max(1, max_rounds)):
            optimized = current
            for optimization_pass in OPTIMIZATION_PASSES:
                optimized = optimization_pass(optimized)
            if optimized == current:
                break
            current = optimized

        metadata = None
        if node.metadata is not None:
            metadata = replace(node.metadata, complexity=calculate_complexity(current))
        return with_metadata(current, metadata)

    except Exception as e:
        logger.warning(f"Expression optimization failed: {e}")
        return node
