"""Reactive tree wrapper over a node tree.

A `TreeNode` wraps one `Node` and adds navigation, evaluated reads,
in-place mutation with change notification, validation, traversal and
serialization. Child wrappers are created lazily on first access and cached,
so navigating to the same child twice yields the same wrapper.
"""

from __future__ import annotations

import itertools
import json
import logging
from collections import deque
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeAlias, TypeVar

from ._errors import ConfigurationError, NodeDestroyedError
from ._evaluator import EvaluationContext, evaluate, find_parent
from ._node import Node
from ._serialize import (
    TypeResolver,
    clone_node,
    clone_value,
    deserialize_node,
    nodes_equal,
    serialize_node,
    serialize_value,
)

if TYPE_CHECKING:
    from ._registry import Registry

logger = logging.getLogger(__name__)

SNAPSHOT_VALUE_KEY = "_value"
# Reserved: a child literally named "root" reports its errors under the same
# key as the root node itself.
ROOT_ERROR_KEY = "root"

ChangeCallback: TypeAlias = "Callable[[list[str]], object]"
PathFilter: TypeAlias = "str | Sequence[str] | Callable[[str], bool]"
TraversalVisitor: TypeAlias = "Callable[[TreeNode, list[str]], bool | None]"
NodePredicate: TypeAlias = "Callable[[TreeNode], bool]"

_Path: TypeAlias = "tuple[str, ...]"

T = TypeVar("T")


def _to_segments(path: str | Sequence[str]) -> _Path:
    if isinstance(path, str):
        return tuple(path.split(".")) if path else ()
    return tuple(path)


def _render(path: _Path) -> str:
    return ".".join(path)


def _matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(f"{prefix}.")


def _filter_paths(paths: list[str], path_filter: PathFilter | None) -> list[str]:
    if path_filter is None or path_filter == "":
        return paths
    if isinstance(path_filter, str):
        return [p for p in paths if _matches(p, path_filter)]
    if callable(path_filter):
        return [p for p in paths if path_filter(p)]
    return [p for p in paths if any(_matches(p, f) for f in path_filter)]


@dataclass(slots=True, frozen=True)
class _Subscriber:
    callback: ChangeCallback
    path_filter: PathFilter | None


@dataclass(slots=True, frozen=True)
class Subscription:
    """Handle returned by `TreeNode.subscribe`."""

    id: str
    _subscribers: dict[str, _Subscriber] = field(repr=False)

    @property
    def is_active(self) -> bool:
        return self.id in self._subscribers

    def unsubscribe(self) -> None:
        self._subscribers.pop(self.id, None)


@dataclass(slots=True, frozen=True)
class ValidationResult:
    """Outcome of validating one node: failure messages keyed by constraint name."""

    valid: bool
    errors: dict[str, str]


@dataclass(slots=True, frozen=True)
class DeepValidationResult:
    """Outcome of validating a subtree: `ValidationResult.errors` keyed by dotted path."""

    valid: bool
    errors: dict[str, dict[str, str]]


@dataclass(slots=True, frozen=True)
class _SavedState:
    value: Any
    default_value: Any
    metadata: dict[str, Node]
    constraints: dict[str, Node]
    children: dict[str, Node]


def _capture(root: Node) -> list[tuple[Node, _SavedState]]:
    """Record the fields of every node reachable through the three maps."""
    saved: list[tuple[Node, _SavedState]] = []
    seen: set[int] = set()
    stack = [root]
    while stack:
        node = stack.pop()
        if id(node) in seen:
            continue
        seen.add(id(node))
        saved.append(
            (
                node,
                _SavedState(
                    value=clone_value(node.value),
                    default_value=clone_value(node.default_value),
                    metadata=dict(node.metadata),
                    constraints=dict(node.constraints),
                    children=dict(node.children),
                ),
            ),
        )
        for name in Node.MAP_FIELDS:
            stack.extend(getattr(node, name).values())
    return saved


def _restore(saved: list[tuple[Node, _SavedState]]) -> None:
    for node, state in saved:
        node.value = state.value
        node.default_value = state.default_value
        for name in Node.MAP_FIELDS:
            entries: dict[str, Node] = getattr(node, name)
            entries.clear()
            entries.update(getattr(state, name))


class TreeNode:
    """Stateful facade over a node tree.

    Evaluated reads (`get_value`, `get_metadata`, `get_constraint`, ...) need
    a `Registry`, set on this wrapper or any ancestor.

    Mutations notify subscribers of this wrapper with the changed path
    relative to it, then bubble to each ancestor with the child key
    prefixed. Paths are dotted strings; a change to the node's own value has
    the empty path ``""``.

    Example:
        form = TreeNode(prop("form", children={"name": prop("name", "")}), registry)
        form.subscribe(print)
        form.set_value("Ada", path="name")  # prints ['name']

    """

    def __init__(self, node: Node, registry: Registry | None = None) -> None:
        self._node = node
        self._registry = registry
        self._parent: TreeNode | None = None
        self._key: str | None = None
        self._child_cache: dict[str, TreeNode] = {}
        self._subscribers: dict[str, _Subscriber] = {}
        self._subscription_ids = itertools.count(1)
        self._batched: list[_Path] | None = None
        self._destroyed = False

    @classmethod
    def wrap(cls, node: Node, registry: Registry | None = None) -> TreeNode:
        return cls(node, registry)

    @classmethod
    def from_json(cls, data: Mapping[str, Any], type_resolver: TypeResolver | None = None) -> TreeNode:
        """Wrap a node rebuilt from its serialized form."""
        return cls(deserialize_node(data, type_resolver))

    # ------------------------------------------------------------------
    # Registry and identity

    def set_registry(self, registry: Registry | None) -> TreeNode:
        self._registry = registry
        return self

    def get_registry(self) -> Registry | None:
        """Get the registry of this wrapper or the nearest ancestor that has one."""
        wrapper: TreeNode | None = self
        while wrapper is not None:
            if wrapper._registry is not None:
                return wrapper._registry
            wrapper = wrapper._parent
        return None

    @property
    def node(self) -> Node:
        return self._node

    @property
    def id(self) -> str:
        return self._node.id

    @property
    def type(self) -> Node:
        return self._node.type

    # ------------------------------------------------------------------
    # Navigation

    @property
    def parent(self) -> TreeNode | None:
        return self._parent

    @property
    def root(self) -> TreeNode:
        wrapper = self
        while wrapper._parent is not None:
            wrapper = wrapper._parent
        return wrapper

    @property
    def is_root(self) -> bool:
        return self._parent is None

    @property
    def depth(self) -> int:
        return len(self.ancestors())

    def child(self, key: str) -> TreeNode | None:
        """Get the wrapper for a child, creating and caching it on first access."""
        raw = self._node.children.get(key)
        if raw is None:
            return None
        cached = self._child_cache.get(key)
        if cached is not None and cached._node is raw:
            return cached
        self._drop_cached(key)
        return self._wrap_child(key, raw)

    def _wrap_child(self, key: str, raw: Node) -> TreeNode:
        wrapper = TreeNode(raw)
        wrapper._parent = self
        wrapper._key = key
        self._child_cache[key] = wrapper
        return wrapper

    def children(self) -> list[TreeNode]:
        return [wrapper for key in self.child_keys() if (wrapper := self.child(key)) is not None]

    def child_keys(self) -> list[str]:
        return list(self._node.children)

    def has_children(self) -> bool:
        return bool(self._node.children)

    @property
    def child_count(self) -> int:
        return len(self._node.children)

    def get(self, path: str | Sequence[str]) -> TreeNode | None:
        """Get a descendant by dotted path or segments. The empty path is this node."""
        wrapper: TreeNode | None = self
        for segment in _to_segments(path):
            if wrapper is None:
                return None
            wrapper = wrapper.child(segment)
        return wrapper

    def _key_in_parent(self) -> str | None:
        if self._parent is None or self._key is None:
            return None
        if self._parent._node.children.get(self._key) is not self._node:
            return None
        return self._key

    def path(self) -> list[str]:
        """Get the child keys leading from the root to this node."""
        parts: list[str] = []
        wrapper = self
        while wrapper._parent is not None:
            key = wrapper._key_in_parent()
            if key is not None:
                parts.append(key)
            wrapper = wrapper._parent
        parts.reverse()
        return parts

    def path_string(self) -> str:
        return ".".join(self.path())

    def ancestors(self) -> list[TreeNode]:
        """Get the ancestors, nearest first."""
        result: list[TreeNode] = []
        wrapper = self._parent
        while wrapper is not None:
            result.append(wrapper)
            wrapper = wrapper._parent
        return result

    def descendants(self) -> list[TreeNode]:
        return [wrapper for wrapper in self.find_all(lambda _: True) if wrapper is not self]

    def siblings(self) -> list[TreeNode]:
        if self._parent is None:
            return []
        return [wrapper for wrapper in self._parent.children() if wrapper is not self]

    def _sibling_at(self, offset: int) -> TreeNode | None:
        key = self._key_in_parent()
        if self._parent is None or key is None:
            return None
        keys = self._parent.child_keys()
        index = keys.index(key) + offset
        if 0 <= index < len(keys):
            return self._parent.child(keys[index])
        return None

    @property
    def next_sibling(self) -> TreeNode | None:
        return self._sibling_at(1)

    @property
    def previous_sibling(self) -> TreeNode | None:
        return self._sibling_at(-1)

    # ------------------------------------------------------------------
    # Values

    @property
    def raw_value(self) -> Any:
        """The stored value, never evaluated."""
        return self._node.value

    def set_value(self, value: Any, *, path: str | Sequence[str] | None = None, silent: bool = False) -> None:
        """Set the value of this node, or of the descendant at ``path``.

        A ``path`` that does not resolve is ignored.
        """
        self._check_destroyed()
        segments = _to_segments(path) if path is not None else ()
        target = self.get(segments)
        if target is None:
            logger.debug("Ignoring set_value on missing path '%s'", _render(segments))
            return
        target._node.value = value
        if not silent:
            self._emit([segments])

    async def get_value(self, path: str | Sequence[str] | None = None) -> Any:
        """Evaluate the value of this node, or of the descendant at ``path``.

        Returns None when ``path`` does not resolve.

        Raises:
            ConfigurationError: If no registry is reachable.

        """
        self._check_destroyed()
        target = self.get(path) if path is not None else self
        if target is None:
            return None
        ctx = self._context(target)
        raw = target._node
        if raw.kind.is_expression:
            return await evaluate(raw, ctx)
        if isinstance(raw.value, Node):
            return await evaluate(raw.value, ctx)
        return raw.value

    @property
    def default_value(self) -> Any:
        return self._node.default_value

    def has_default_value(self) -> bool:
        return self._node.default_value is not None

    def has_value(self) -> bool:
        return self._node.value is not None

    def is_empty(self) -> bool:
        """Check if the node has neither a value nor children."""
        return not self.has_value() and not self.has_children()

    def reset(self, *, silent: bool = False) -> None:
        """Copy the default value back into the value, if there is a default."""
        self._check_destroyed()
        if self.has_default_value():
            self.set_value(clone_value(self._node.default_value), silent=silent)

    def reset_deep(self, *, silent: bool = False) -> None:
        """Reset this node and every descendant.

        Each node is reset silently; unless ``silent``, subscribers then get
        one notification listing every reset path.
        """
        self._check_destroyed()
        changed: list[_Path] = []

        def visit(wrapper: TreeNode, path: list[str]) -> None:
            if wrapper.has_default_value():
                wrapper.reset(silent=True)
                changed.append(tuple(path))

        self.traverse(visit)
        if changed and not silent:
            self._emit(changed)

    # ------------------------------------------------------------------
    # Metadata

    def metadata_keys(self) -> list[str]:
        return list(self._node.metadata)

    def has_metadata(self, key: str | None = None) -> bool:
        if key is not None:
            return key in self._node.metadata
        return bool(self._node.metadata)

    def get_raw_metadata(self, key: str) -> Node | None:
        return self._node.metadata.get(key)

    async def get_metadata(self, key: str) -> Any:
        """Evaluate a metadata entry with this node as ``self``.

        Returns None for a missing key.
        """
        self._check_destroyed()
        meta = self._node.metadata.get(key)
        if meta is None:
            return None
        ctx = self._context(self)
        if meta.kind.is_expression:
            return await evaluate(meta, ctx)
        if isinstance(meta.value, Node):
            return await evaluate(meta.value, ctx)
        return meta.value

    def set_metadata(self, key: str, value: Node, *, silent: bool = False) -> None:
        self._check_destroyed()
        self._node.metadata[key] = value
        if not silent:
            self._emit([("metadata", key)])

    def remove_metadata(self, key: str, *, silent: bool = False) -> bool:
        self._check_destroyed()
        if self._node.metadata.pop(key, None) is None:
            return False
        if not silent:
            self._emit([("metadata", key)])
        return True

    # ------------------------------------------------------------------
    # Constraints

    def constraint_keys(self) -> list[str]:
        return list(self._node.constraints)

    def has_constraints(self, key: str | None = None) -> bool:
        if key is not None:
            return key in self._node.constraints
        return bool(self._node.constraints)

    def get_raw_constraint(self, key: str) -> Node | None:
        return self._node.constraints.get(key)

    async def get_constraint(self, key: str) -> bool:
        """Check one constraint. A missing constraint or one without a value passes.

        A boolean value is used as is, an expression is evaluated with this
        node as ``self``, and anything else is tested for truthiness.
        """
        self._check_destroyed()
        rule = self._node.constraints.get(key)
        if rule is None or rule.value is None:
            return True
        if isinstance(rule.value, bool):
            return rule.value
        if isinstance(rule.value, Node):
            return bool(await evaluate(rule.value, self._context(self)))
        return bool(rule.value)

    def set_constraint(self, key: str, value: Node, *, silent: bool = False) -> None:
        self._check_destroyed()
        self._node.constraints[key] = value
        if not silent:
            self._emit([("constraints", key)])

    def remove_constraint(self, key: str, *, silent: bool = False) -> bool:
        self._check_destroyed()
        if self._node.constraints.pop(key, None) is None:
            return False
        if not silent:
            self._emit([("constraints", key)])
        return True

    async def _failure_message(self, key: str, rule: Node) -> str:
        message = rule.metadata.get("message")
        if message is None or message.value is None:
            return f"Constraint {key} failed"
        if isinstance(message.value, Node):
            return str(await evaluate(message.value, self._context(self)))
        return str(message.value)

    async def validate(self) -> ValidationResult:
        """Check every constraint on this node."""
        self._check_destroyed()
        errors: dict[str, str] = {}
        for key, rule in list(self._node.constraints.items()):
            if not await self.get_constraint(key):
                errors[key] = await self._failure_message(key, rule)
        return ValidationResult(valid=not errors, errors=errors)

    async def validate_deep(self) -> DeepValidationResult:
        """Validate every node in the subtree.

        Failures are keyed by dotted path relative to this node, with
        ``"root"`` standing for this node itself. A child named ``root`` shares
        that key and one entry overwrites the other.
        """
        self._check_destroyed()
        targets: list[tuple[TreeNode, list[str]]] = []
        self.traverse(lambda wrapper, path: targets.append((wrapper, path)))

        errors: dict[str, dict[str, str]] = {}
        for wrapper, path in targets:
            result = await wrapper.validate()
            if not result.valid:
                errors[".".join(path) or ROOT_ERROR_KEY] = result.errors
        return DeepValidationResult(valid=not errors, errors=errors)

    # ------------------------------------------------------------------
    # Structure

    def add_child(self, key: str, node: Node) -> TreeNode:
        """Add or replace a child and return its wrapper."""
        self._check_destroyed()
        self._node.children[key] = node
        self._drop_cached(key)
        return self._wrap_child(key, node)

    def remove_child(self, key: str) -> bool:
        self._check_destroyed()
        if self._node.children.pop(key, None) is None:
            return False
        self._drop_cached(key)
        return True

    def _drop_cached(self, key: str) -> None:
        cached = self._child_cache.pop(key, None)
        if cached is not None:
            logger.debug("Invalidating cached wrapper for child '%s' of '%s'", key, self.id)
            cached.destroy()

    def _sync_child_cache(self) -> None:
        for key, cached in list(self._child_cache.items()):
            if self._node.children.get(key) is cached._node:
                cached._sync_child_cache()
            else:
                self._drop_cached(key)

    # ------------------------------------------------------------------
    # Traversal

    def traverse(self, visitor: TraversalVisitor) -> None:
        """Visit the subtree depth-first, parents before children.

        The visitor receives each wrapper and its path relative to this node.
        Returning False stops the traversal.
        """
        self._traverse_pre(visitor, [])

    def _traverse_pre(self, visitor: TraversalVisitor, path: list[str]) -> bool:
        if visitor(self, path) is False:
            return False
        for key in self.child_keys():
            wrapper = self.child(key)
            if wrapper is not None and not wrapper._traverse_pre(visitor, [*path, key]):
                return False
        return True

    def traverse_post_order(self, visitor: TraversalVisitor) -> None:
        """Visit the subtree depth-first, children before parents."""
        self._traverse_post(visitor, [])

    def _traverse_post(self, visitor: TraversalVisitor, path: list[str]) -> bool:
        for key in self.child_keys():
            wrapper = self.child(key)
            if wrapper is not None and not wrapper._traverse_post(visitor, [*path, key]):
                return False
        return visitor(self, path) is not False

    def traverse_breadth_first(self, visitor: TraversalVisitor) -> None:
        queue: deque[tuple[TreeNode, list[str]]] = deque([(self, [])])
        while queue:
            wrapper, path = queue.popleft()
            if visitor(wrapper, path) is False:
                return
            for key in wrapper.child_keys():
                child = wrapper.child(key)
                if child is not None:
                    queue.append((child, [*path, key]))

    def find(self, predicate: NodePredicate) -> TreeNode | None:
        found: list[TreeNode] = []

        def visit(wrapper: TreeNode, _path: list[str]) -> bool:
            if predicate(wrapper):
                found.append(wrapper)
                return False
            return True

        self.traverse(visit)
        return found[0] if found else None

    def find_all(self, predicate: NodePredicate) -> list[TreeNode]:
        found: list[TreeNode] = []
        self.traverse(lambda wrapper, _path: found.append(wrapper) if predicate(wrapper) else None)
        return found

    def find_by_id(self, node_id: str) -> TreeNode | None:
        return self.find(lambda wrapper: wrapper.id == node_id)

    def find_by_type(self, type_id: str) -> list[TreeNode]:
        return self.find_all(lambda wrapper: wrapper.type.id == type_id)

    def map(self, fn: Callable[[TreeNode, list[str]], T]) -> list[T]:
        results: list[T] = []
        self.traverse(lambda wrapper, path: results.append(fn(wrapper, path)))
        return results

    def filter(self, predicate: NodePredicate) -> list[TreeNode]:
        return self.find_all(predicate)

    def reduce(self, fn: Callable[[T, TreeNode, list[str]], T], initial: T) -> T:
        result = initial

        def visit(wrapper: TreeNode, path: list[str]) -> None:
            nonlocal result
            result = fn(result, wrapper, path)

        self.traverse(visit)
        return result

    def some(self, predicate: NodePredicate) -> bool:
        return self.find(predicate) is not None

    def every(self, predicate: NodePredicate) -> bool:
        return self.find(lambda wrapper: not predicate(wrapper)) is None

    def count(self) -> int:
        """Count the nodes in the subtree, this one included."""
        return self.reduce(lambda n, _wrapper, _path: n + 1, 0)

    def __iter__(self) -> Iterator[TreeNode]:
        """Iterate over the subtree in pre-order."""
        return iter(self.find_all(lambda _: True))

    # ------------------------------------------------------------------
    # Subscriptions

    def subscribe(self, callback: ChangeCallback, path_filter: PathFilter | None = None) -> Subscription:
        """Call ``callback`` with the changed paths on every change in the subtree.

        ``path_filter`` narrows the paths delivered: a path string or list of
        them matches that path and everything below it, a predicate is
        called per path. A callback is not called when nothing matches.
        """
        self._check_destroyed()
        subscription_id = f"sub_{next(self._subscription_ids)}"
        self._subscribers[subscription_id] = _Subscriber(callback, path_filter)
        return Subscription(subscription_id, self._subscribers)

    def watch(self, path: str | Sequence[str], callback: ChangeCallback) -> Subscription:
        """Subscribe to changes at or below ``path``."""
        return self.subscribe(callback, _render(_to_segments(path)))

    def unsubscribe_all(self) -> None:
        self._subscribers.clear()

    @property
    def subscription_count(self) -> int:
        return len(self._subscribers)

    def emit_change(self, path: str | Sequence[str] = "") -> None:
        """Announce a change at ``path`` relative to this node."""
        self._check_destroyed()
        self._emit([_to_segments(path)])

    def _emit(self, paths: list[_Path]) -> None:
        if self._batched is not None:
            self._batched.extend(paths)
            return
        self._notify(paths)
        key = self._key_in_parent()
        if self._parent is not None and key is not None:
            self._parent._emit([(key, *path) for path in paths])

    def _notify(self, paths: list[_Path]) -> None:
        rendered = [_render(path) for path in paths]
        for subscriber in list(self._subscribers.values()):
            matched = _filter_paths(rendered, subscriber.path_filter)
            if matched:
                subscriber.callback(matched)

    @contextmanager
    def batched(self) -> Iterator[None]:
        """Collect changes made in the block and announce them once at the end.

        Nested blocks join the outermost one. Duplicate paths are announced
        once. Nothing is announced if the block raises.
        """
        self._check_destroyed()
        if self._batched is not None:
            yield
            return
        self._batched = []
        try:
            yield
            paths = list(dict.fromkeys(self._batched))
        finally:
            self._batched = None
        if paths:
            self._emit(paths)

    def batch(self, fn: Callable[[], T]) -> T:
        """Run ``fn`` with notifications batched. See `batched`."""
        with self.batched():
            return fn()

    def transaction(self, fn: Callable[[], T]) -> T:
        """Run ``fn``; if it raises, restore the subtree and re-raise.

        Values, defaults, metadata, constraints and children of every node
        below this one are put back as they were, on the same node objects.
        Notifications emitted by ``fn`` are not retracted.
        """
        self._check_destroyed()
        saved = _capture(self._node)
        try:
            return fn()
        except Exception:
            logger.debug("Rolling back transaction on '%s'", self.path_string() or self.id)
            _restore(saved)
            self._sync_child_cache()
            raise

    # ------------------------------------------------------------------
    # Serialization

    def to_json(self) -> dict[str, Any]:
        """Serialize the subtree. See `proptree.serialize_node`."""
        return serialize_node(self._node)

    def clone(self) -> TreeNode:
        """Deep-copy the subtree into a new root wrapper sharing this registry."""
        return TreeNode(clone_node(self._node), self.get_registry())

    def equals(self, other: TreeNode) -> bool:
        return nodes_equal(self._node, other._node)

    async def snapshot(self) -> Any:
        """Evaluate the subtree into plain data.

        A leaf becomes its value. A node with children becomes a dict of its
        children's snapshots, plus its own value under ``"_value"`` if it has
        one.
        """
        self._check_destroyed()
        return await self._build_snapshot()

    async def _build_snapshot(self) -> Any:
        if self._node.kind.is_expression:
            return await self.get_value()
        result: dict[str, Any] = {}
        if self.has_value():
            value = await self.get_value()
            if not self.has_children():
                return value
            result[SNAPSHOT_VALUE_KEY] = value
        for key in self.child_keys():
            wrapper = self.child(key)
            if wrapper is None:
                continue
            if wrapper.has_children() or wrapper.node.kind.is_expression:
                result[key] = await wrapper._build_snapshot()
            else:
                result[key] = await wrapper.get_value()
        return result

    def print_tree(self, indent: int = 0) -> str:
        """Render the structure as indented text, one line per node."""
        prefix = "  " * indent
        value = ""
        if self._node.value is not None:
            value = f" = {json.dumps(serialize_value(self._node.value), default=str)}"
        lines = [f"{prefix}{self.id} ({self.type.id}){value}"]
        for key in self.child_keys():
            wrapper = self.child(key)
            if wrapper is not None:
                lines.append(f"{prefix}  [{key}]:")
                lines.append(wrapper.print_tree(indent + 2))
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Lifecycle

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    def destroy(self) -> None:
        """Detach the wrapper and its cached children. The underlying nodes are untouched."""
        for cached in self._child_cache.values():
            cached.destroy()
        self._child_cache.clear()
        self._subscribers.clear()
        self._parent = None
        self._destroyed = True

    def _check_destroyed(self) -> None:
        if self._destroyed:
            msg = f"TreeNode '{self.id}' has been destroyed"
            raise NodeDestroyedError(msg)

    # ------------------------------------------------------------------
    # Evaluation context

    def _context(self, target: TreeNode) -> EvaluationContext:
        registry = self.get_registry()
        if registry is None:
            msg = "No registry set. Call set_registry() first."
            raise ConfigurationError(msg)
        root = self.root._node

        def lookup(node: Node) -> Node | None:
            # Wrapped ancestors of the target know their parents already.
            wrapper: TreeNode | None = target
            while wrapper is not None:
                if wrapper._node is node:
                    return wrapper._parent._node if wrapper._parent is not None else None
                wrapper = wrapper._parent
            return find_parent(node, root)

        return EvaluationContext(current=target._node, root=root, registry=registry, find_parent=lookup)

    def __repr__(self) -> str:
        return f"TreeNode({self.id!r}, type={self.type.id!r}, path={self.path_string() or 'root'!r})"
