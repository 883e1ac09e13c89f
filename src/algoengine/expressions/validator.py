"""
Expression Validator - structural and semantic checks over an AST.

This module validates expression trees for:
- Structure (every variant has its required fields)
- Division by a literal zero
- Variables outside the recognized set
- Subtrees complex enough to be worth splitting

Structural problems are errors; the rest are warnings. Validation never
stops early and never raises.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional

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
)
from .complexity import calculate_complexity_score
from ..services.config_loader import get_engine_config

WARNING_PREFIX = "Warning:"


# ============================================================
# VALIDATION RESULT TYPES
# ============================================================

class Severity(Enum):
    """Severity level for validation issues."""
    ERROR = "error"      # Tree is malformed
    WARNING = "warning"  # Tree is usable but suspicious


@dataclass
class ValidationIssue:
    """Represents a validation issue found in an expression tree."""
    severity: Severity
    message: str
    node_type: Optional[str] = None

    def __str__(self) -> str:
        if self.severity == Severity.WARNING:
            return f"{WARNING_PREFIX} {self.message}"
        return self.message


@dataclass
class ValidationResult:
    """Result of validating an expression tree."""
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    @property
    def valid(self) -> bool:
        return not self.errors

    def messages(self) -> List[str]:
        return [str(i) for i in self.issues]

    def __bool__(self) -> bool:
        return self.valid


def is_warning(message: str) -> bool:
    return message.startswith(WARNING_PREFIX)


# ============================================================
# VALIDATOR
# ============================================================

class ASTValidator:
    """
    Validates expression trees.

    Usage:
        result = ASTValidator().validate(node)
        for issue in result.issues:
            print(issue)
    """

    def __init__(
        self,
        recognized_variables: Optional[FrozenSet[str]] = None,
        system_variable_prefix: Optional[str] = None,
        complexity_threshold: Optional[int] = None,
    ):
        config = get_engine_config()
        self.recognized_variables = (
            recognized_variables
            if recognized_variables is not None
            else frozenset(config.recognized_variables)
        )
        self.system_variable_prefix = (
            system_variable_prefix
            if system_variable_prefix is not None
            else config.system_variable_prefix
        )
        self.complexity_threshold = (
            complexity_threshold
            if complexity_threshold is not None
            else config.complexity_warning_threshold
        )
        self.issues: List[ValidationIssue] = []

    def validate(self, node: Optional[ASTNode]) -> ValidationResult:
        self.issues = []

        if not isinstance(node, ASTNode):
            self._error("Invalid AST structure: AST must be a node")
            return ValidationResult(issues=self.issues)

        if node.metadata is not None:
            for message in node.metadata.validation_errors:
                self._error(f"Parse error: {message}", node)

        self._validate_structure(node)
        self._check_common_issues(node)
        return ValidationResult(issues=self.issues)

    # ============================================================
    # STRUCTURE
    # ============================================================

    def _validate_structure(self, node: Optional[ASTNode]) -> None:
        if node is None:
            return

        if isinstance(node, BinaryNode):
            if node.left is None or node.right is None or not node.operator:
                self._error("Invalid binary expression: missing left, right, or operator", node)
        elif isinstance(node, UnaryNode):
            if node.operand is None or not node.operator:
                self._error("Invalid unary expression: missing operand or operator", node)
        elif isinstance(node, FunctionNode):
            if not node.function_name:
                self._error("Invalid function call: missing function name", node)
            if any(arg is None for arg in node.arguments):
                self._error("Invalid function call: missing argument", node)
        elif isinstance(node, VariableNode):
            if not node.variable_name:
                self._error("Invalid variable: missing variable name", node)
        elif isinstance(node, LiteralNode):
            if not node.has_value:
                self._error("Invalid literal: missing value", node)
        elif isinstance(node, AssignmentNode):
            if not node.variable_name:
                self._error("Invalid assignment: missing variable name", node)
            if node.expression is None:
                self._error("Invalid assignment: missing expression", node)
        elif isinstance(node, GroupNode):
            if node.body is None:
                self._error("Invalid group: missing body expression", node)

        for child in node.children():
            self._validate_structure(child)

    # ============================================================
    # SEMANTIC WARNINGS
    # ============================================================

    def _check_common_issues(self, node: Optional[ASTNode]) -> None:
        if node is None:
            return

        if isinstance(node, BinaryNode) and node.operator == "/":
            if is_literal_value(node.right, 0):
                self._warning("Division by zero detected", node)

        if isinstance(node, VariableNode) and node.variable_name:
            name = node.variable_name
            if (name not in self.recognized_variables
                    and not name.startswith(self.system_variable_prefix)):
                self._warning(f"Variable '{name}' may be undefined", node)

        if isinstance(node, LiteralNode) and node.fallback:
            self._warning("Unsupported expression construct kept as an opaque literal", node)

        if isinstance(node, (BinaryNode, FunctionNode)):
            score = calculate_complexity_score(node)
            if score > self.complexity_threshold:
                self._warning(
                    f"Complex expression detected (complexity: {score}). "
                    "Consider breaking into smaller parts.",
                    node,
                )

        for child in node.children():
            self._check_common_issues(child)

    # ============================================================
    # HELPERS
    # ============================================================

    def _error(self, message: str, node: Optional[ASTNode] = None) -> None:
        self.issues.append(ValidationIssue(
            Severity.ERROR, message, node.node_type if node is not None else None
        ))

    def _warning(self, message: str, node: Optional[ASTNode] = None) -> None:
        self.issues.append(ValidationIssue(
            Severity.WARNING, message, node.node_type if node is not None else None
        ))


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def validate_ast(node: Optional[ASTNode]) -> List[str]:
    """Validate a tree; errors and 'Warning:'-prefixed warnings in one list."""
    return ASTValidator().validate(node).messages()
