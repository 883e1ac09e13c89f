"""
Expression layer: parse, validate, score, optimize, render and evaluate
algorithm expressions.
"""

from .ast_nodes import (
    AST_VERSION,
    ASTNode,
    AssignmentNode,
    BinaryNode,
    FunctionNode,
    GroupNode,
    LiteralNode,
    NodeMetadata,
    UnaryNode,
    VariableNode,
    extract_variables,
    node_from_dict,
)
from .parser import ExpressionParser, parse_expression
from .validator import ASTValidator, Severity, ValidationIssue, ValidationResult, validate_ast
from .complexity import calculate_complexity, calculate_complexity_score
from .optimizer import optimize_expression
from .codegen import CodeGenerator, generate_code, generate_javascript
from .evaluator import Evaluator, VariableScope, evaluate_expression

__all__ = [
    "AST_VERSION",
    "ASTNode",
    "AssignmentNode",
    "BinaryNode",
    "FunctionNode",
    "GroupNode",
    "LiteralNode",
    "NodeMetadata",
    "UnaryNode",
    "VariableNode",
    "extract_variables",
    "node_from_dict",
    "ExpressionParser",
    "parse_expression",
    "ASTValidator",
    "Severity",
    "ValidationIssue",
    "ValidationResult",
    "validate_ast",
    "calculate_complexity",
    "calculate_complexity_score",
    "optimize_expression",
    "CodeGenerator",
    "generate_code",
    "generate_javascript",
    "Evaluator",
    "VariableScope",
    "evaluate_expression",
]
