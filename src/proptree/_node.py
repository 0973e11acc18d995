"""The universal recursive record every proptree structure is made of."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum, auto
from typing import Any, ClassVar


class NodeKind(StrEnum):
    """Variant of a node, fixed when the node is constructed."""

    LIT = auto()  # Literal expression
    REF = auto()  # Reference expression
    OP = auto()  # Operator-call expression
    EXPR = auto()  # Typed as the generic expression type
    TYPE = auto()  # A type node
    CONSTRAINT = auto()  # Validation rule
    OPERATOR = auto()  # Operator declaration
    PLAIN = auto()  # Anything else ("resting" data)

    @classmethod
    def for_type_id(cls, type_id: str) -> NodeKind:
        return _KIND_BY_TYPE_ID.get(type_id, cls.PLAIN)

    @property
    def is_expression(self) -> bool:
        """Whether nodes of this kind are evaluated by the evaluator (literal, reference, operator)."""
        return self in (NodeKind.LIT, NodeKind.REF, NodeKind.OP)


_KIND_BY_TYPE_ID: dict[str, NodeKind] = {
    "Lit": NodeKind.LIT,
    "Ref": NodeKind.REF,
    "Op": NodeKind.OP,
    "Expr": NodeKind.EXPR,
    "Type": NodeKind.TYPE,
    "Constraint": NodeKind.CONSTRAINT,
    "Operator": NodeKind.OPERATOR,
}


@dataclass(slots=True, eq=False, repr=False, weakref_slot=True)
class Node:
    """A node of the property tree.

    Structure, types, expressions and constraints are all nodes. The three
    maps are independent namespaces:

    - ``children``: what the node is made of.
    - ``metadata``: descriptive or computed attributes.
    - ``constraints``: named validation rules.

    ``None`` stands for an absent ``value``/``default_value``. Equality is
    identity; use :func:`proptree.nodes_equal` for structural comparison.

    Attributes:
        id: Identifier, unique among siblings of one map.
        type: The type node. Shared, never owned.
        value: A literal, an expression node, or any node to evaluate.
        default_value: Target of ``reset``.
        metadata: Named attribute nodes.
        constraints: Named constraint nodes.
        children: Named child nodes.
        kind: Variant derived from ``type`` at construction.

    """

    id: str
    type: Node
    value: Any = None
    default_value: Any = None
    metadata: dict[str, Node] = field(default_factory=dict)
    constraints: dict[str, Node] = field(default_factory=dict)
    children: dict[str, Node] = field(default_factory=dict)
    kind: NodeKind = field(init=False)

    MAP_FIELDS: ClassVar[tuple[str, ...]] = ("metadata", "constraints", "children")

    def __post_init__(self) -> None:
        if not isinstance(self.type, Node):
            msg = f"Node '{self.id}' needs a type node, got: {type(self.type).__name__}"
            raise TypeError(msg)
        self.kind = NodeKind.for_type_id(self.type.id)

    def __repr__(self) -> str:
        # Never recurse through `type`: the root type is its own type.
        parts = [f"id={self.id!r}", f"type={self.type.id!r}"]
        if self.value is not None:
            parts.append(f"value={self.value!r}")
        for name in self.MAP_FIELDS:
            entries = getattr(self, name)
            if entries:
                parts.append(f"{name}={sorted(entries)!r}")
        return f"Node({', '.join(parts)})"


def is_node(value: object) -> bool:
    """Check whether a value is a Node."""
    return isinstance(value, Node)
