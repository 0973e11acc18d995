"""Factories for expression and plain nodes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ._node import Node
from ._types import CONSTRAINT, LIT, OP, PROPERTY, REF

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

ARG_PREFIX = "arg"


def lit(value: Any) -> Node:
    """Create a literal expression.

    Example:
        >>> lit(42).value
        42

    """
    return Node(id="lit", type=LIT, value=value)


def ref(path: str | Sequence[str]) -> Node:
    """Create a reference expression.

    The path is either a dotted string (``"self.value"``) or a sequence of
    segments (``["parent", "name", "value"]``). Leading segments ``self``,
    ``root`` and ``parent`` select the origin; anything else is looked up in
    the loop bindings first and otherwise navigated from ``self``.

    Raises:
        ValueError: If the path is empty.

    """
    segments = path.split(".") if isinstance(path, str) else list(path)
    if not segments or segments == [""]:
        msg = "Reference path must not be empty"
        raise ValueError(msg)
    return Node(id="ref", type=REF, value=segments)


def op(name: str, *args: Node) -> Node:
    """Create an operator expression.

    Arguments are stored as children under ``arg0``, ``arg1``, ... in call order.

    Example:
        >>> op("add", lit(1), lit(2)).children.keys()
        dict_keys(['arg0', 'arg1'])

    """
    return Node(
        id=name,
        type=OP,
        children={f"{ARG_PREFIX}{i}": arg for i, arg in enumerate(args)},
    )


def constraint(name: str, expr: Node, message: str | None = None) -> Node:
    """Create a constraint node whose value must evaluate truthy to pass."""
    metadata = {}
    if message is not None:
        metadata["message"] = Node(id="message", type=PROPERTY, value=message)
    return Node(id=name, type=CONSTRAINT, value=expr, metadata=metadata)


def prop(  # noqa: PLR0913
    id: str,  # noqa: A002
    value: Any = None,
    *,
    type: Node = PROPERTY,  # noqa: A002
    default_value: Any = None,
    metadata: Mapping[str, Node] | None = None,
    constraints: Mapping[str, Node] | None = None,
    children: Mapping[str, Node] | None = None,
) -> Node:
    """Create a plain node, ``PROPERTY``-typed unless told otherwise."""
    return Node(
        id=id,
        type=type,
        value=value,
        default_value=default_value,
        metadata=dict(metadata or {}),
        constraints=dict(constraints or {}),
        children=dict(children or {}),
    )
