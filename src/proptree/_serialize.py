"""Structural serialization, cloning and equality of node trees.

The serialized form is a JSON-compatible dict mirroring the node shape::

    {
        "id": "name",
        "type": {"id": "Property"},
        "value": ...,
        "defaultValue": ...,
        "metadata": {...},
        "constraints": {...},
        "children": {...},
    }

Absent values and empty maps are omitted. Node-valued ``value`` fields
(nested expressions) are serialized recursively, including inside lists and
dicts.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

from ._node import Node
from ._types import BUILTIN_TYPES, TYPE

logger = logging.getLogger(__name__)

TypeResolver: TypeAlias = "Callable[[str], Node]"


class SerializedType(BaseModel):
    """Reference to a type by id."""

    id: str


class SerializedNode(BaseModel):
    """Shape of a serialized node, used to validate payloads before rebuilding."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: SerializedType
    value: Any = None
    default_value: Any = Field(default=None, alias="defaultValue")
    metadata: dict[str, SerializedNode] = Field(default_factory=dict)
    constraints: dict[str, SerializedNode] = Field(default_factory=dict)
    children: dict[str, SerializedNode] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Serialize


def serialize_node(node: Node) -> dict[str, Any]:
    """Project a node onto its plain serialized form."""
    result: dict[str, Any] = {"id": node.id, "type": {"id": node.type.id}}
    if node.value is not None:
        result["value"] = serialize_value(node.value)
    if node.default_value is not None:
        result["defaultValue"] = serialize_value(node.default_value)
    for name in Node.MAP_FIELDS:
        entries: dict[str, Node] = getattr(node, name)
        if entries:
            result[name] = {key: serialize_node(entry) for key, entry in entries.items()}
    return result


def serialize_value(value: Any) -> Any:
    if isinstance(value, Node):
        return serialize_node(value)
    if isinstance(value, list | tuple):
        return [serialize_value(v) for v in value]
    if isinstance(value, Mapping):
        return {k: serialize_value(v) for k, v in value.items()}
    return value


# ---------------------------------------------------------------------------
# Deserialize


def make_type_resolver(*types: Node) -> TypeResolver:
    """Build a resolver mapping type ids to type nodes.

    The built-in types are always known; ``types`` adds or overrides entries.
    An unknown id resolves to a placeholder type node typed ``TYPE``, created
    once per id so nodes sharing a type id also share the placeholder.

    Example:
        >>> FIELD = Node(id="Field", type=TYPE)
        >>> resolver = make_type_resolver(FIELD)
        >>> resolver("Field") is FIELD
        True

    """
    known: dict[str, Node] = {t.id: t for t in BUILTIN_TYPES}
    known.update((t.id, t) for t in types)

    def resolve(type_id: str) -> Node:
        resolved = known.get(type_id)
        if resolved is None:
            logger.debug("Creating placeholder type '%s'", type_id)
            resolved = Node(id=type_id, type=TYPE)
            known[type_id] = resolved
        return resolved

    return resolve


def _looks_like_node(value: Any) -> bool:
    return (
        isinstance(value, Mapping)
        and isinstance(value.get("id"), str)
        and isinstance(value.get("type"), Mapping)
        and isinstance(value["type"].get("id"), str)
    )


def _rebuild_value(value: Any, resolve: TypeResolver) -> Any:
    if _looks_like_node(value):
        return _rebuild_node(SerializedNode.model_validate(value), resolve)
    if isinstance(value, list):
        return [_rebuild_value(v, resolve) for v in value]
    if isinstance(value, Mapping):
        return {k: _rebuild_value(v, resolve) for k, v in value.items()}
    return value


def _rebuild_node(data: SerializedNode, resolve: TypeResolver) -> Node:
    return Node(
        id=data.id,
        type=resolve(data.type.id),
        value=_rebuild_value(data.value, resolve),
        default_value=_rebuild_value(data.default_value, resolve),
        metadata={key: _rebuild_node(entry, resolve) for key, entry in data.metadata.items()},
        constraints={key: _rebuild_node(entry, resolve) for key, entry in data.constraints.items()},
        children={key: _rebuild_node(entry, resolve) for key, entry in data.children.items()},
    )


def deserialize_node(data: Mapping[str, Any], type_resolver: TypeResolver | None = None) -> Node:
    """Rebuild a node from its serialized form.

    Type identity cannot be recovered from an id string alone, so types are
    looked up through ``type_resolver``. Without one, a fresh
    :func:`make_type_resolver` is used.

    A value shaped like a serialized node (a dict with a string ``id`` and a
    ``type`` dict carrying a string ``id``) is rebuilt as a node.

    Raises:
        pydantic.ValidationError: If the payload does not have the node shape.

    """
    resolve = type_resolver or make_type_resolver()
    return _rebuild_node(SerializedNode.model_validate(data), resolve)


# ---------------------------------------------------------------------------
# Clone


def clone_node(node: Node) -> Node:
    """Deep-copy a node. Type links are shared, never copied."""
    return Node(
        id=node.id,
        type=node.type,
        value=clone_value(node.value),
        default_value=clone_value(node.default_value),
        metadata={key: clone_node(entry) for key, entry in node.metadata.items()},
        constraints={key: clone_node(entry) for key, entry in node.constraints.items()},
        children={key: clone_node(entry) for key, entry in node.children.items()},
    )


def clone_value(value: Any) -> Any:
    if isinstance(value, Node):
        return clone_node(value)
    if isinstance(value, list):
        return [clone_value(v) for v in value]
    if isinstance(value, dict):
        return {k: clone_value(v) for k, v in value.items()}
    return value


# ---------------------------------------------------------------------------
# Equality


def nodes_equal(a: Node, b: Node) -> bool:
    """Compare two nodes structurally.

    Types are compared by id. Map entry order does not matter.
    """
    if a is b:
        return True
    if a.id != b.id or a.type.id != b.type.id:
        return False
    if not values_equal(a.value, b.value) or not values_equal(a.default_value, b.default_value):
        return False
    for name in Node.MAP_FIELDS:
        left: dict[str, Node] = getattr(a, name)
        right: dict[str, Node] = getattr(b, name)
        if left.keys() != right.keys():
            return False
        if not all(nodes_equal(left[key], right[key]) for key in left):
            return False
    return True


def values_equal(a: Any, b: Any) -> bool:  # noqa: PLR0911
    """Compare two values, delegating to :func:`nodes_equal` for nodes."""
    if a is b:
        return True
    if a is None or b is None:
        return False
    if isinstance(a, Node) or isinstance(b, Node):
        return isinstance(a, Node) and isinstance(b, Node) and nodes_equal(a, b)
    if isinstance(a, list | tuple) and isinstance(b, list | tuple):
        return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b, strict=True))
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        return a.keys() == b.keys() and all(values_equal(a[key], b[key]) for key in a)
    return a == b
