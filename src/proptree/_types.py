"""Built-in type nodes.

Types are nodes too. ``TYPE`` is the type of all types and is its own type,
which terminates the type-of-type chain.
"""

from ._node import Node, NodeKind


def _bootstrap_root_type() -> Node:
    # Two-phase construction: allocate, then point `type` back at itself.
    root = object.__new__(Node)
    root.id = "Type"
    root.type = root
    root.value = None
    root.default_value = None
    root.metadata = {}
    root.constraints = {}
    root.children = {}
    root.kind = NodeKind.TYPE
    return root


TYPE = _bootstrap_root_type()

EXPR = Node(id="Expr", type=TYPE)
OPERATOR = Node(id="Operator", type=TYPE)
CONSTRAINT = Node(id="Constraint", type=TYPE)
PROPERTY = Node(id="Property", type=TYPE)

LIT = Node(id="Lit", type=EXPR)
REF = Node(id="Ref", type=EXPR)
OP = Node(id="Op", type=EXPR)

BUILTIN_TYPES: tuple[Node, ...] = (TYPE, EXPR, OPERATOR, CONSTRAINT, PROPERTY, LIT, REF, OP)
