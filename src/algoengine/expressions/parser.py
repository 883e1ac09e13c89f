"""
Expression Parser - Lark-based parser for algorithm expressions.

This module parses formula and condition source text into the engine's
own AST (see ast_nodes). Parsing is total: malformed input never raises,
it comes back as a literal node carrying the raw text and the parser's
error message in its metadata.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from lark import Lark, Tree, Token
from lark.exceptions import (
    UnexpectedInput,
    UnexpectedToken,
    UnexpectedCharacters,
    UnexpectedEOF,
)

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
    with_metadata,
)
from .complexity import calculate_complexity
from ..logging_config import configure_logger_for_debug_trace

logger = configure_logger_for_debug_trace(__name__)

# Namespace whose member reads are modelled as zero-argument calls.
MATH_NAMESPACE = "Math"

# Grammar rule name -> AST binary operator
BINARY_OPERATORS: Dict[str, str] = {
    "add": "+",
    "sub": "-",
    "mul": "*",
    "div": "/",
    "mod": "%",
    "pow": "^",
    "eq": "==",
    "ne": "!=",
    "strict_eq": "===",
    "strict_ne": "!==",
    "lt": "<",
    "gt": ">",
    "le": "<=",
    "ge": ">=",
    "and_": "&&",
    "or_": "||",
}

UNARY_OPERATORS: Dict[str, str] = {
    "neg": "-",
    "pos": "+",
    "not_": "!",
}


# ============================================================
# PARSER
# ============================================================

class ExpressionParser:
    """
    Parser for algorithm expressions.

    Usage:
        parser = ExpressionParser()
        node = parser.parse("spacing = base * Math.pow(ratio, n)")
        if node.metadata.validation_errors:
            ...  # malformed input, node is a literal holding the raw text
    """

    _instance: Optional["ExpressionParser"] = None
    _parser: Optional[Lark] = None

    def __new__(cls) -> "ExpressionParser":
        """Singleton pattern for parser reuse."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize the parser with the grammar file."""
        if ExpressionParser._parser is not None:
            return

        grammar_path = Path(__file__).parent / "grammar.lark"

        if not grammar_path.exists():
            raise FileNotFoundError(
                f"Grammar file not found: {grammar_path}\n"
                "Ensure grammar.lark is in the same directory as parser.py"
            )

        with open(grammar_path, "r", encoding="utf-8") as f:
            grammar = f.read()

        ExpressionParser._parser = Lark(
            grammar,
            start="start",
            parser="lalr",
            propagate_positions=True,
            maybe_placeholders=False,
        )

    @property
    def parser(self) -> Lark:
        """Get the Lark parser instance."""
        if ExpressionParser._parser is None:
            raise RuntimeError("Parser not initialized")
        return ExpressionParser._parser

    @classmethod
    def reset(cls) -> None:
        """Reset the parser cache to force grammar reload on next use."""
        cls._parser = None
        cls._instance = None

    def parse_tree(self, source: str) -> Tree:
        """
        Parse source text into the raw lark tree.

        Raises:
            lark.exceptions.UnexpectedInput: on malformed input
        """
        return self.parser.parse(source)

    def parse(self, source: str) -> ASTNode:
        """
        Parse an expression into an AST.

        Args:
            source: Expression source text

        Returns:
            AST root with metadata attached; never raises
        """
        try:
            tree = self.parse_tree(source)
            node = ASTBuilder().build(tree)
        except UnexpectedInput as e:
            return self._error_node(source, self._describe_error(e, source))
        except Exception as e:
            # Anything else (e.g. recursion limits on pathological input)
            # still has to come back as a node.
            logger.debug(f"Unexpected parser failure for {source!r}: {e}")
            return self._error_node(source, f"{type(e).__name__}: {e}")

        return with_metadata(node, NodeMetadata(
            ast_version=AST_VERSION,
            validation_errors=(),
            complexity=calculate_complexity(node),
        ))

    # --------------------------------------------------------
    # Error handling
    # --------------------------------------------------------

    @staticmethod
    def _error_node(source: str, message: str) -> LiteralNode:
        return LiteralNode(
            value=source,
            metadata=NodeMetadata(
                ast_version=AST_VERSION,
                validation_errors=(message,),
                complexity="low",
            ),
        )

    @staticmethod
    def _describe_error(error: UnexpectedInput, source: str) -> str:
        """Turn a lark error into a one-line message with location."""
        line = getattr(error, "line", None) or 1
        column = getattr(error, "column", None) or 1

        if isinstance(error, UnexpectedEOF) or (
            isinstance(error, UnexpectedToken) and error.token.type == "$END"
        ):
            if not source.strip():
                return "Empty expression"
            return f"Unexpected end of expression at line {line}, column {column}"

        if isinstance(error, UnexpectedToken):
            return (
                f"Unexpected token {str(error.token)!r} "
                f"at line {line}, column {column}"
            )

        if isinstance(error, UnexpectedCharacters):
            char = source[error.pos_in_stream] if error.pos_in_stream < len(source) else ""
            return f"Unexpected character {char!r} at line {line}, column {column}"

        return f"Syntax error at line {line}, column {column}"


# ============================================================
# TREE CONVERSION
# ============================================================

class ASTBuilder:
    """
    Converts lark parse trees into engine AST nodes.

    Constructs the engine does not model (ternaries, indexing, array
    literals, member reads outside the Math namespace) become fallback
    literals holding the serialized original node.
    """

    def build(self, node: Union[Tree, Token]) -> ASTNode:
        if isinstance(node, Token):
            return self._build_token(node)

        if node.data in BINARY_OPERATORS:
            return BinaryNode(
                operator=BINARY_OPERATORS[node.data],
                left=self.build(node.children[0]),
                right=self.build(node.children[1]),
            )

        if node.data in UNARY_OPERATORS:
            return UnaryNode(
                operator=UNARY_OPERATORS[node.data],
                operand=self.build(node.children[0]),
            )

        method_name = f"_build_{node.data}"
        if hasattr(self, method_name):
            return getattr(self, method_name)(node)

        return self._fallback(node)

    def _build_token(self, token: Token) -> ASTNode:
        if token.type == "NAME":
            return VariableNode(variable_name=str(token))
        if token.type == "NUMBER":
            return LiteralNode(value=parse_number(str(token)))
        if token.type == "STRING":
            return LiteralNode(value=unquote(str(token)))
        return LiteralNode(value=str(token), fallback=True)

    # --------------------------------------------------------
    # Atoms
    # --------------------------------------------------------

    def _build_start(self, node: Tree) -> ASTNode:
        return self.build(node.children[0])

    def _build_number(self, node: Tree) -> ASTNode:
        return LiteralNode(value=parse_number(str(node.children[0])))

    def _build_string(self, node: Tree) -> ASTNode:
        return LiteralNode(value=unquote(str(node.children[0])))

    def _build_true(self, node: Tree) -> ASTNode:
        return LiteralNode(value=True)

    def _build_false(self, node: Tree) -> ASTNode:
        return LiteralNode(value=False)

    def _build_null(self, node: Tree) -> ASTNode:
        return LiteralNode(value=None, is_null=True)

    def _build_var(self, node: Tree) -> ASTNode:
        return VariableNode(variable_name=str(node.children[0]))

    def _build_group(self, node: Tree) -> ASTNode:
        return GroupNode(body=self.build(node.children[0]))

    # --------------------------------------------------------
    # Assignment, calls and member access
    # --------------------------------------------------------

    def _build_assignment(self, node: Tree) -> ASTNode:
        return AssignmentNode(
            variable_name=str(node.children[0]),
            expression=self.build(node.children[1]),
        )

    def _build_call(self, node: Tree) -> ASTNode:
        callee = node.children[0]
        args: List[ASTNode] = []
        for child in node.children[1:]:
            if isinstance(child, Tree) and child.data == "arguments":
                args.extend(self.build(arg) for arg in child.children)
        return FunctionNode(
            function_name=dotted_name(callee) or "unknown",
            arguments=tuple(args),
        )

    def _build_member(self, node: Tree) -> ASTNode:
        obj, prop = node.children[0], str(node.children[1])
        if _is_name(obj, MATH_NAMESPACE):
            return FunctionNode(function_name=f"{MATH_NAMESPACE}.{prop}", arguments=())
        name = dotted_name(node)
        if name is not None:
            return LiteralNode(value=name, fallback=True)
        return self._fallback(node)

    def _fallback(self, node: Tree) -> ASTNode:
        return LiteralNode(value=serialize_tree(node), fallback=True)


# ============================================================
# HELPERS
# ============================================================

def _is_name(node: Union[Tree, Token], name: str) -> bool:
    return isinstance(node, Tree) and node.data == "var" and str(node.children[0]) == name


def dotted_name(node: Union[Tree, Token]) -> Optional[str]:
    """Flatten `a`, `a.b`, `a.b.c` callees into a single dotted name."""
    if isinstance(node, Token) and node.type == "NAME":
        return str(node)
    if isinstance(node, Tree):
        if node.data == "var":
            return str(node.children[0])
        if node.data == "member":
            base = dotted_name(node.children[0])
            if base is not None:
                return f"{base}.{node.children[1]}"
    return None


def parse_number(text: str) -> Union[int, float]:
    """Integers stay int; anything with a fraction or exponent is a float."""
    if any(c in text for c in ".eE"):
        value = float(text)
        return int(value) if value.is_integer() and abs(value) < 2 ** 53 else value
    return int(text)


def unquote(s: str) -> str:
    """Remove quotes from a string literal and resolve simple escapes."""
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ("'", '"'):
        s = s[1:-1]
    out = []
    i = 0
    escapes = {"n": "\n", "t": "\t", "r": "\r"}
    while i < len(s):
        c = s[i]
        if c == "\\" and i + 1 < len(s):
            nxt = s[i + 1]
            out.append(escapes.get(nxt, nxt))
            i += 2
            continue
        out.append(c)
        i += 1
    return "".join(out)


def _tree_to_data(node: Union[Tree, Token]) -> Any:
    if isinstance(node, Token):
        return {"type": node.type, "value": str(node)}
    return {
        "type": node.data,
        "children": [_tree_to_data(child) for child in node.children],
    }


def serialize_tree(node: Union[Tree, Token]) -> str:
    """Serialize a parse node to JSON (lossy, not re-parseable)."""
    return json.dumps(_tree_to_data(node), separators=(",", ":"))


def pretty_print_tree(source: str) -> str:
    """Pretty-print the raw lark tree for a source string (debug aid)."""
    try:
        return ExpressionParser().parse_tree(source).pretty()
    except UnexpectedInput as e:
        return f"Parse error: {e}"


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def parse_expression(text: str) -> ASTNode:
    """Parse expression text into an AST; never raises."""
    if not isinstance(text, str):
        text = "" if text is None else str(text)
    return ExpressionParser().parse(text)
