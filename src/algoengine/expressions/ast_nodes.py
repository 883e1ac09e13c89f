"""
Expression AST - node types for the algorithm expression engine.

Nodes are immutable values. A rewrite never edits a node in place; it
builds a new node of whatever variant it needs, so a tree can never hold
a node with fields from two variants at once.

Every field except the variant tag is optional so that malformed trees
received as plain data (for example, from an editor that stores ASTs
as JSON) can still be represented and reported by the validator.
"""

from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

AST_VERSION = "1.0.0"

LiteralValue = Union[str, int, float, bool]


@dataclass(frozen=True)
class NodeMetadata:
    """Parser-supplied annotations; only ever attached to a tree's root."""
    ast_version: str = AST_VERSION
    validation_errors: Tuple[str, ...] = ()
    complexity: str = "low"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "astVersion": self.ast_version,
            "validationErrors": list(self.validation_errors),
            "complexity": self.complexity,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeMetadata":
        return cls(
            ast_version=data.get("astVersion", AST_VERSION),
            validation_errors=tuple(data.get("validationErrors") or ()),
            complexity=data.get("complexity", "low"),
        )


@dataclass(frozen=True)
class ASTNode:
    """Base class for all expression nodes."""
    node_type: ClassVar[str] = "node"

    metadata: Optional[NodeMetadata] = field(
        default=None, compare=False, repr=False, kw_only=True
    )

    def children(self) -> List["ASTNode"]:
        """Child nodes in source order (missing children are skipped)."""
        return []

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.node_type}
        data.update(self._fields_to_dict())
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        return data

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {}


def _dump(node: Optional[ASTNode]) -> Optional[Dict[str, Any]]:
    return node.to_dict() if node is not None else None


@dataclass(frozen=True)
class BinaryNode(ASTNode):
    node_type: ClassVar[str] = "binary"

    operator: Optional[str] = None
    left: Optional[ASTNode] = None
    right: Optional[ASTNode] = None

    def children(self) -> List[ASTNode]:
        return [c for c in (self.left, self.right) if c is not None]

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {
            "operator": self.operator,
            "left": _dump(self.left),
            "right": _dump(self.right),
        }


@dataclass(frozen=True)
class UnaryNode(ASTNode):
    node_type: ClassVar[str] = "unary"

    operator: Optional[str] = None
    operand: Optional[ASTNode] = None

    def children(self) -> List[ASTNode]:
        return [self.operand] if self.operand is not None else []

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {"operator": self.operator, "operand": _dump(self.operand)}


@dataclass(frozen=True)
class VariableNode(ASTNode):
    node_type: ClassVar[str] = "variable"

    variable_name: Optional[str] = None

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {"variableName": self.variable_name}


@dataclass(frozen=True)
class LiteralNode(ASTNode):
    """
    A constant value.

    `value` None with `is_null` set is the source's `null`; without it the
    literal has no value at all (plain data missing the field) and is
    malformed. In plain data the difference is whether the "value" key is
    present. `fallback` marks a literal that captures a source construct
    the engine does not model; its value is the serialized original and
    it cannot be evaluated.
    """
    node_type: ClassVar[str] = "literal"

    value: Optional[LiteralValue] = None
    is_null: bool = False
    fallback: bool = False

    @property
    def has_value(self) -> bool:
        return self.value is not None or self.is_null

    def _fields_to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"value": self.value} if self.has_value else {}
        if self.fallback:
            data["fallback"] = True
        return data


@dataclass(frozen=True)
class FunctionNode(ASTNode):
    node_type: ClassVar[str] = "function"

    function_name: Optional[str] = None
    arguments: Tuple[ASTNode, ...] = ()

    def children(self) -> List[ASTNode]:
        return [a for a in self.arguments if a is not None]

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {
            "functionName": self.function_name,
            "arguments": [_dump(a) for a in self.arguments],
        }


@dataclass(frozen=True)
class AssignmentNode(ASTNode):
    node_type: ClassVar[str] = "assignment"

    variable_name: Optional[str] = None
    expression: Optional[ASTNode] = None

    def children(self) -> List[ASTNode]:
        return [self.expression] if self.expression is not None else []

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {
            "variableName": self.variable_name,
            "expression": _dump(self.expression),
        }


@dataclass(frozen=True)
class GroupNode(ASTNode):
    node_type: ClassVar[str] = "group"

    body: Optional[ASTNode] = None

    def children(self) -> List[ASTNode]:
        return [self.body] if self.body is not None else []

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {"body": _dump(self.body)}


NODE_TYPES = {
    cls.node_type: cls
    for cls in (
        BinaryNode, UnaryNode, VariableNode, LiteralNode,
        FunctionNode, AssignmentNode, GroupNode,
    )
}


def is_number(value: Any) -> bool:
    """True for int/float values; booleans do not count as numbers."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_numeric_literal(node: Optional[ASTNode]) -> bool:
    return isinstance(node, LiteralNode) and not node.fallback and is_number(node.value)


def is_literal_value(node: Optional[ASTNode], value: Any) -> bool:
    """True when node is a numeric literal equal to value."""
    return is_numeric_literal(node) and node.value == value


def with_metadata(node: ASTNode, metadata: Optional[NodeMetadata]) -> ASTNode:
    """Return a copy of node carrying the given root metadata."""
    return replace(node, metadata=metadata)


def node_from_dict(data: Optional[Dict[str, Any]]) -> Optional[ASTNode]:
    """
    Rebuild an AST from its plain-data (camelCase JSON) form.

    Missing fields stay None so the validator can report them.

    Raises:
        ValueError: if `type` is missing or not a known node variant
    """
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ValueError(f"AST node must be a mapping, got {type(data).__name__}")

    node_type = data.get("type")
    if node_type not in NODE_TYPES:
        raise ValueError(f"Unsupported AST node type: {node_type!r}")

    metadata = None
    if isinstance(data.get("metadata"), dict):
        metadata = NodeMetadata.from_dict(data["metadata"])

    if node_type == "binary":
        node: ASTNode = BinaryNode(
            operator=data.get("operator"),
            left=node_from_dict(data.get("left")),
            right=node_from_dict(data.get("right")),
        )
    elif node_type == "unary":
        node = UnaryNode(
            operator=data.get("operator"),
            operand=node_from_dict(data.get("operand")),
        )
    elif node_type == "variable":
        node = VariableNode(variable_name=data.get("variableName"))
    elif node_type == "literal":
        node = LiteralNode(
            value=data.get("value"),
            is_null="value" in data and data["value"] is None,
            fallback=bool(data.get("fallback", False)),
        )
    elif node_type == "function":
        node = FunctionNode(
            function_name=data.get("functionName"),
            arguments=tuple(node_from_dict(a) for a in data.get("arguments") or ()),
        )
    elif node_type == "assignment":
        node = AssignmentNode(
            variable_name=data.get("variableName"),
            expression=node_from_dict(data.get("expression")),
        )
    else:
        node = GroupNode(body=node_from_dict(data.get("body")))

    if metadata is not None:
        node = with_metadata(node, metadata)
    return node


def extract_variables(node: Optional[ASTNode]) -> List[str]:
    """
    Collect variable names referenced by a tree.

    Depth-first, first occurrence wins, no duplicates.
    """
    seen: Dict[str, None] = {}

    def traverse(current: Optional[ASTNode]) -> None:
        if current is None:
            return
        if isinstance(current, VariableNode) and current.variable_name:
            seen.setdefault(current.variable_name, None)
        for child in current.children():
            traverse(child)

    traverse(node)
    return list(seen)
