"""
Expression syntax tree.

Each node kind is its own frozen dataclass. Consumers never subclass nodes;
they walk a tree with visit_expr_node() and dispatch on the node type in their
enter/leave callbacks.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol, Union

from exprguard.expressions.tokenizer import Token


@dataclass(frozen=True)
class ExprNode:
    """Base of every node. `token` is the first token of the node's source."""
    token: Token


# ---------------------------------------------------------------------------
# Literals
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NullNode(ExprNode):
    pass


@dataclass(frozen=True)
class BoolNode(ExprNode):
    value: bool


@dataclass(frozen=True)
class NumberNode(ExprNode):
    value: Union[int, float]


@dataclass(frozen=True)
class StringNode(ExprNode):
    value: str


# ---------------------------------------------------------------------------
# References and property access
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VariableNode(ExprNode):
    """Reference to a context root such as `github` or `inputs`."""
    name: str


@dataclass(frozen=True)
class ObjectDerefNode(ExprNode):
    """`receiver.property`"""
    receiver: ExprNode
    property: str


@dataclass(frozen=True)
class ArrayDerefNode(ExprNode):
    """`receiver.*` object filter."""
    receiver: ExprNode


@dataclass(frozen=True)
class IndexAccessNode(ExprNode):
    """`receiver[index]`. A string literal index is the same as `.property`."""
    receiver: ExprNode
    index: ExprNode


@dataclass(frozen=True)
class FuncCallNode(ExprNode):
    callee: str
    args: tuple[ExprNode, ...]


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------

class CompareOpKind(Enum):
    LESS = "<"
    LESS_EQ = "<="
    GREATER = ">"
    GREATER_EQ = ">="
    EQ = "=="
    NOT_EQ = "!="


class LogicalOpKind(Enum):
    AND = "&&"
    OR = "||"


@dataclass(frozen=True)
class NotOpNode(ExprNode):
    operand: ExprNode


@dataclass(frozen=True)
class CompareOpNode(ExprNode):
    kind: CompareOpKind
    left: ExprNode
    right: ExprNode


@dataclass(frozen=True)
class LogicalOpNode(ExprNode):
    kind: LogicalOpKind
    left: ExprNode
    right: ExprNode


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------

class NodeVisitor(Protocol):
    def on_visit_node_enter(self, node: ExprNode) -> None: ...

    def on_visit_node_leave(self, node: ExprNode) -> None: ...


VisitFunc = Callable[[ExprNode, Optional[ExprNode], bool], None]


def children(node: ExprNode) -> tuple[ExprNode, ...]:
    """
    Child nodes in visiting order.

    The index of an index access is visited before its receiver, so a property
    chain used as an index is fully processed before the receiver chain starts.
    """
    if isinstance(node, (ObjectDerefNode, ArrayDerefNode)):
        return (node.receiver,)
    if isinstance(node, IndexAccessNode):
        return (node.index, node.receiver)
    if isinstance(node, NotOpNode):
        return (node.operand,)
    if isinstance(node, (CompareOpNode, LogicalOpNode)):
        return (node.left, node.right)
    if isinstance(node, FuncCallNode):
        return node.args
    return ()


def walk(node: ExprNode, func: VisitFunc, parent: Optional[ExprNode] = None) -> None:
    """Depth-first walk calling func(node, parent, entering) before and after the children."""
    func(node, parent, True)
    for child in children(node):
        walk(child, func, node)
    func(node, parent, False)


def visit_expr_node(node: ExprNode, visitor: NodeVisitor) -> None:
    """Walk a tree, calling visitor.on_visit_node_enter/on_visit_node_leave on every node."""
    def _dispatch(n: ExprNode, _parent: Optional[ExprNode], entering: bool) -> None:
        if entering:
            visitor.on_visit_node_enter(n)
        else:
            visitor.on_visit_node_leave(n)

    walk(node, _dispatch)
