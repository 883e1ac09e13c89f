"""Expression complexity scoring."""

from typing import Optional

from .ast_nodes import (
    ASTNode,
    AssignmentNode,
    BinaryNode,
    FunctionNode,
    GroupNode,
    UnaryNode,
)

LOW_COMPLEXITY_MAX = 3
MEDIUM_COMPLEXITY_MAX = 8

# Extra cost charged for every function call on top of the base cost.
FUNCTION_SURCHARGE = 2


def calculate_complexity_score(node: Optional[ASTNode]) -> int:
    """
    Score a tree: 1 per node, plus children for binary/unary, plus a
    surcharge and arguments for calls. Groups and assignments add their
    inner expression's cost without a surcharge.
    """
    if node is None:
        return 0

    score = 1
    if isinstance(node, BinaryNode):
        score += calculate_complexity_score(node.left)
        score += calculate_complexity_score(node.right)
    elif isinstance(node, UnaryNode):
        score += calculate_complexity_score(node.operand)
    elif isinstance(node, FunctionNode):
        score += FUNCTION_SURCHARGE
        score += sum(calculate_complexity_score(arg) for arg in node.arguments)
    elif isinstance(node, GroupNode):
        score += calculate_complexity_score(node.body)
    elif isinstance(node, AssignmentNode):
        score += calculate_complexity_score(node.expression)
    return score


def complexity_tier(score: int) -> str:
    if score <= LOW_COMPLEXITY_MAX:
        return "low"
    if score <= MEDIUM_COMPLEXITY_MAX:
        return "medium"
    return "high"


def calculate_complexity(node: Optional[ASTNode]) -> str:
    """Classify a tree as 'low', 'medium' or 'high'."""
    return complexity_tier(calculate_complexity_score(node))
