"""Identity checks on nodes.

All checks read the ``kind`` discriminant assigned at construction, so
they never compare type ids at evaluation time.
"""

from ._node import Node, NodeKind, is_node


def is_lit(node: Node) -> bool:
    return node.kind is NodeKind.LIT


def is_ref(node: Node) -> bool:
    return node.kind is NodeKind.REF


def is_op(node: Node) -> bool:
    return node.kind is NodeKind.OP


def is_expr(node: Node) -> bool:
    """Check if a node is any expression (literal, reference, operator, or typed as Expr)."""
    return node.kind.is_expression or node.kind is NodeKind.EXPR


def is_type(node: Node) -> bool:
    return node.kind is NodeKind.TYPE


def is_constraint(node: Node) -> bool:
    return node.kind is NodeKind.CONSTRAINT


def is_operator(node: Node) -> bool:
    return node.kind is NodeKind.OPERATOR


def type_name(node: object) -> str:
    """Get the id of a node's type, or ``"Unknown"`` for non-nodes."""
    if isinstance(node, Node):
        return node.type.id
    return "Unknown"


__all__ = [
    "is_constraint",
    "is_expr",
    "is_lit",
    "is_node",
    "is_op",
    "is_operator",
    "is_ref",
    "is_type",
    "type_name",
]
