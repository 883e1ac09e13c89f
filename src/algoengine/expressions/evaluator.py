"""
Expression Evaluator - a tree-walking interpreter over the engine AST.

Expressions are evaluated directly against a VariableScope; no source
text is ever compiled or executed. The scope exposes exactly what was
bound into it (algorithm variables, the iteration value, caller context
and the Math/Array tables), so there is nothing else for an expression
to reach.
"""

import math
import operator
from typing import Any, Callable, Dict, Iterator, List, MutableMapping, Optional

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
from .builtins import format_value, js_pow, normalize_number
from ..engine_exceptions import EvaluationError


# ============================================================
# SCOPE
# ============================================================

class VariableScope(MutableMapping):
    """
    Name -> value bindings with declared aliases.

    An alias (a variable's stable id) resolves to its canonical name once,
    at registration time; reads and writes through the alias land on the
    canonical binding. Iteration yields canonical names only.
    """

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = dict(values or {})
        self._aliases: Dict[str, str] = {}

    def add_alias(self, alias: str, name: str) -> None:
        if alias and alias != name:
            self._aliases[alias] = name

    def resolve(self, key: str) -> str:
        """Canonical name for key (key itself if it is not an alias)."""
        if key in self._values:
            return key
        return self._aliases.get(key, key)

    @property
    def aliases(self) -> Dict[str, str]:
        return dict(self._aliases)

    def __getitem__(self, key: str) -> Any:
        return self._values[self.resolve(key)]

    def __setitem__(self, key: str, value: Any) -> None:
        self._values[self.resolve(key)] = value

    def __delitem__(self, key: str) -> None:
        del self._values[self.resolve(key)]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.resolve(key) in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def copy(self) -> "VariableScope":
        clone = VariableScope(self._values)
        clone._aliases = dict(self._aliases)
        return clone

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def __repr__(self) -> str:
        return f"VariableScope({self._values!r})"


# ============================================================
# OPERATORS
# ============================================================

def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


def _to_number(value: Any, symbol: str) -> Any:
    if isinstance(value, bool):
        return int(value)
    if is_number(value):
        return value
    raise EvaluationError(
        f"Operator '{symbol}' expects numbers, got {_type_name(value)}"
    )


def _add(left: Any, right: Any) -> Any:
    if isinstance(left, str) or isinstance(right, str):
        return format_value(left) + format_value(right)
    return _to_number(left, "+") + _to_number(right, "+")


def _divide(left: Any, right: Any) -> Any:
    divisor = _to_number(right, "/")
    if divisor == 0:
        raise EvaluationError("Division by zero")
    return _to_number(left, "/") / divisor


def _remainder(left: Any, right: Any) -> Any:
    divisor = _to_number(right, "%")
    if divisor == 0:
        raise EvaluationError("Modulo by zero")
    # JavaScript keeps the sign of the dividend
    return math.fmod(_to_number(left, "%"), divisor)


_COMPARISONS = {"<": operator.lt, ">": operator.gt, "<=": operator.le, ">=": operator.ge}


def _compare(symbol: str) -> Callable[[Any, Any], bool]:
    fn = _COMPARISONS[symbol]

    def compare(left: Any, right: Any) -> bool:
        try:
            return fn(left, right)
        except TypeError:
            raise EvaluationError(
                f"Cannot compare {_type_name(left)} and {_type_name(right)} with '{symbol}'"
            )
    return compare


def _strict_equal(left: Any, right: Any) -> bool:
    if is_number(left) and is_number(right):
        return left == right
    return type(left) is type(right) and left == right


ARITHMETIC_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "+": _add,
    "-": lambda a, b: _to_number(a, "-") - _to_number(b, "-"),
    "*": lambda a, b: _to_number(a, "*") * _to_number(b, "*"),
    "/": _divide,
    "%": _remainder,
    "^": lambda a, b: js_pow(_to_number(a, "^"), _to_number(b, "^")),
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "===": _strict_equal,
    "!==": lambda a, b: not _strict_equal(a, b),
    "<": _compare("<"),
    ">": _compare(">"),
    "<=": _compare("<="),
    ">=": _compare(">="),
}


# ============================================================
# EVALUATOR
# ============================================================

class Evaluator:
    """
    Evaluates expression trees against a scope.

    Assignments write their value into the scope and return it.
    """

    def __init__(self, scope: MutableMapping):
        self.scope = scope

    def evaluate(self, node: Optional[ASTNode]) -> Any:
        if node is None:
            raise EvaluationError("Invalid expression: missing node")

        method_name = f"_eval_{node.node_type}"
        if not hasattr(self, method_name):
            raise EvaluationError(f"Unsupported AST node type: {node.node_type}")
        return getattr(self, method_name)(node)

    # --------------------------------------------------------
    # Leaves
    # --------------------------------------------------------

    def _eval_literal(self, node: LiteralNode) -> Any:
        if node.fallback:
            raise EvaluationError(
                f"Unsupported expression construct: {node.value}"
            )
        if not node.has_value:
            raise EvaluationError("Invalid literal: missing value")
        return node.value

    def _eval_variable(self, node: VariableNode) -> Any:
        name = node.variable_name
        if not name:
            raise EvaluationError("Invalid variable: missing variable name")
        if name not in self.scope:
            raise EvaluationError(f"'{name}' is not defined")
        return self.scope[name]

    # --------------------------------------------------------
    # Operators
    # --------------------------------------------------------

    def _eval_binary(self, node: BinaryNode) -> Any:
        if node.left is None or node.right is None or not node.operator:
            raise EvaluationError("Invalid binary expression: missing left, right, or operator")

        # && and || short-circuit and yield an operand, as in JavaScript
        if node.operator == "&&":
            left = self.evaluate(node.left)
            return self.evaluate(node.right) if left else left
        if node.operator == "||":
            left = self.evaluate(node.left)
            return left if left else self.evaluate(node.right)

        fn = ARITHMETIC_OPERATORS.get(node.operator)
        if fn is None:
            raise EvaluationError(f"Unsupported operator: {node.operator}")

        left = self.evaluate(node.left)
        right = self.evaluate(node.right)
        try:
            return normalize_number(fn(left, right))
        except EvaluationError:
            raise
        except (ArithmeticError, ValueError) as e:
            raise EvaluationError(f"Arithmetic error in '{node.operator}': {e}") from e

    def _eval_unary(self, node: UnaryNode) -> Any:
        if node.operand is None or not node.operator:
            raise EvaluationError("Invalid unary expression: missing operand or operator")

        value = self.evaluate(node.operand)
        if node.operator == "!":
            return not value
        if node.operator == "-":
            return normalize_number(-_to_number(value, "-"))
        if node.operator == "+":
            return _to_number(value, "+")
        raise EvaluationError(f"Unsupported unary operator: {node.operator}")

    def _eval_group(self, node: GroupNode) -> Any:
        return self.evaluate(node.body)

    def _eval_assignment(self, node: AssignmentNode) -> Any:
        if not node.variable_name:
            raise EvaluationError("Invalid assignment: missing variable name")
        value = self.evaluate(node.expression)
        self.scope[node.variable_name] = value
        return value

    # --------------------------------------------------------
    # Calls
    # --------------------------------------------------------

    def _resolve_function(self, dotted: str) -> Any:
        parts = dotted.split(".")
        head = parts[0]
        if head not in self.scope:
            raise EvaluationError(f"'{head}' is not defined")
        target = self.scope[head]
        for part in parts[1:]:
            if isinstance(target, dict) and part in target:
                target = target[part]
            else:
                raise EvaluationError(f"'{dotted}' is not defined")
        return target

    def _eval_function(self, node: FunctionNode) -> Any:
        if not node.function_name:
            raise EvaluationError("Invalid function call: missing function name")

        target = self._resolve_function(node.function_name)
        args: List[Any] = [self.evaluate(arg) for arg in node.arguments]

        if not callable(target):
            # Member reads such as Math.PI parse as zero-argument calls
            if not args:
                return target
            raise EvaluationError(f"'{node.function_name}' is not a function")

        try:
            return normalize_number(target(*args))
        except EvaluationError:
            raise
        except (ArithmeticError, ValueError, TypeError) as e:
            raise EvaluationError(f"Error calling {node.function_name}: {e}") from e


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def evaluate_expression(node: ASTNode, scope: MutableMapping) -> Any:
    """Evaluate a tree against scope (assignments write into scope)."""
    return Evaluator(scope).evaluate(node)
