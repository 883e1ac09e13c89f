"""
Code Generator - renders an AST back to expression source text.

The output re-parses to an equivalent tree; it does not reproduce the
original text (binary operations are always parenthesized, for one).
Unlike parsing, generation assumes a well-formed tree and raises
CodeGenerationError for a node missing a required field.
"""

from typing import Optional

from .ast_nodes import (
    ASTNode,
    AssignmentNode,
    BinaryNode,
    FunctionNode,
    GroupNode,
    LiteralNode,
    UnaryNode,
    VariableNode,
    is_number,
)
from .builtins import MATH_FUNCTIONS, format_number
from ..engine_exceptions import CodeGenerationError


def _is_math_constant(name: str) -> bool:
    namespace, _, member = name.partition(".")
    return namespace == "Math" and member in MATH_FUNCTIONS and not callable(MATH_FUNCTIONS[member])


def quote_string(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


class CodeGenerator:
    """Recursive AST -> text renderer."""

    def generate(self, node: Optional[ASTNode]) -> str:
        if node is None:
            raise CodeGenerationError("Invalid AST: missing node")

        method_name = f"_generate_{node.node_type}"
        if not hasattr(self, method_name):
            raise CodeGenerationError(f"Unsupported AST node type: {node.node_type}")
        return getattr(self, method_name)(node)

    def _generate_binary(self, node: BinaryNode) -> str:
        if node.left is None or node.right is None or not node.operator:
            raise CodeGenerationError("Invalid binary operation: missing left, right, or operator")
        return f"({self.generate(node.left)} {node.operator} {self.generate(node.right)})"

    def _generate_unary(self, node: UnaryNode) -> str:
        if node.operand is None or not node.operator:
            raise CodeGenerationError("Invalid unary operation: missing operand or operator")
        return f"{node.operator}{self.generate(node.operand)}"

    def _generate_variable(self, node: VariableNode) -> str:
        if not node.variable_name:
            raise CodeGenerationError("Invalid variable: missing variable name")
        return node.variable_name

    def _generate_literal(self, node: LiteralNode) -> str:
        value = node.value
        if not node.has_value:
            raise CodeGenerationError("Invalid literal: missing value")
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        if is_number(value):
            text = format_number(value)
            # A bare "-2" would bind looser than ^ when re-parsed
            return f"({text})" if text.startswith("-") else text
        return quote_string(str(value))

    def _generate_function(self, node: FunctionNode) -> str:
        if not node.function_name:
            raise CodeGenerationError("Invalid function call: missing function name")
        if not node.arguments and _is_math_constant(node.function_name):
            return node.function_name
        args = ", ".join(self.generate(arg) for arg in node.arguments)
        return f"{node.function_name}({args})"

    def _generate_assignment(self, node: AssignmentNode) -> str:
        if not node.variable_name or node.expression is None:
            raise CodeGenerationError("Invalid assignment: missing variable name or expression")
        return f"{node.variable_name} = {self.generate(node.expression)}"

    def _generate_group(self, node: GroupNode) -> str:
        if node.body is None:
            raise CodeGenerationError("Invalid group: missing body expression")
        return f"({self.generate(node.body)})"


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def generate_javascript(node: ASTNode) -> str:
    """Render a tree as JavaScript-compatible expression text."""
    return CodeGenerator().generate(node)


def generate_code(node: ASTNode) -> str:
    """Render a tree as expression text (same output as generate_javascript)."""
    return CodeGenerator().generate(node)
