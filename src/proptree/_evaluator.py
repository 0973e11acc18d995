"""Expression evaluation engine.

Evaluates the three expression forms against a tree of nodes:

- Literal: returns its stored value.
- Reference: navigates the tree along a path of segments.
- Operator: dispatches to a registered function with unevaluated arguments.

Any other node evaluates to its raw ``value``.

Evaluation is a coroutine. Operators may be plain functions or coroutine
functions; their results are awaited uniformly.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import sys
import weakref
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, TypeAlias

from ._errors import EvaluationError, MaxDepthExceededError, UnknownOperatorError
from ._expressions import ARG_PREFIX
from ._node import Node, NodeKind

if TYPE_CHECKING:
    from ._registry import Registry

logger = logging.getLogger(__name__)

MAX_DEPTH = 1000

ParentLookup: TypeAlias = "Callable[[Node], Node | None]"


@dataclass(frozen=True, slots=True)
class EvaluationContext:
    """Context threaded through an evaluation.

    Attributes:
        current: The node ``self`` refers to.
        root: The root of the tree.
        registry: Operator registry used for dispatch.
        bindings: Named variables for loop-style operators.
        depth: Number of nested ``evaluate`` calls so far.
        find_parent: Parent lookup; falls back to searching from ``root``.

    """

    current: Node
    root: Node
    registry: Registry
    bindings: Mapping[str, Any] | None = None
    depth: int = 0
    find_parent: ParentLookup | None = None


# Ordered argument keys per operator expression, so a static expression is
# only sorted once however often it is evaluated.
_sorted_arg_keys: weakref.WeakKeyDictionary[Node, tuple[str, ...]] = weakref.WeakKeyDictionary()


def _arg_index(key: str) -> int:
    index = key.removeprefix(ARG_PREFIX)
    if index == key or not index.isdigit():
        msg = f"Invalid operator argument key: {key!r}"
        raise EvaluationError(msg)
    return int(index)


def _ordered_args(expr: Node) -> list[Node]:
    keys = _sorted_arg_keys.get(expr)
    if keys is None:
        keys = tuple(sorted(expr.children, key=_arg_index))
        _sorted_arg_keys[expr] = keys
    return [expr.children[key] for key in keys if key in expr.children]


def find_parent(target: Node, root: Node) -> Node | None:
    """Find the node holding ``target`` in its children, metadata or constraints.

    Searches depth-first from ``root`` by identity.
    """

    def search(node: Node) -> Node | None:
        for entries in (node.children, node.metadata, node.constraints):
            for entry in entries.values():
                if entry is target:
                    return node
                found = search(entry)
                if found is not None:
                    return found
        return None

    if root is target:
        return None
    return search(root)


# Interpreter frames a single evaluation level may use, counting operator
# bodies and the argument helpers between two ``evaluate`` calls.
_FRAMES_PER_LEVEL = 10
_RECURSION_LIMIT = MAX_DEPTH * _FRAMES_PER_LEVEL + 1000

_active_evaluations = 0
_saved_recursion_limit: int | None = None


@contextmanager
def _deep_stack() -> Iterator[None]:
    """Hold the interpreter recursion limit high enough for ``MAX_DEPTH`` levels.

    The limit is raised when the first evaluation starts and restored when the
    last one, including any running concurrently, finishes.
    """
    global _active_evaluations, _saved_recursion_limit  # noqa: PLW0603
    if _active_evaluations == 0 and sys.getrecursionlimit() < _RECURSION_LIMIT:
        _saved_recursion_limit = sys.getrecursionlimit()
        sys.setrecursionlimit(_RECURSION_LIMIT)
    _active_evaluations += 1
    try:
        yield
    finally:
        _active_evaluations -= 1
        if _active_evaluations == 0 and _saved_recursion_limit is not None:
            sys.setrecursionlimit(_saved_recursion_limit)
            _saved_recursion_limit = None


async def evaluate(expr: Node, ctx: EvaluationContext) -> Any:
    """Evaluate a node and return its value.

    Raises:
        UnknownOperatorError: If an operator is not registered.
        MaxDepthExceededError: If evaluation nests deeper than ``MAX_DEPTH``.

    """
    try:
        with _deep_stack():
            return await _evaluate(expr, ctx)
    except RecursionError as e:
        # Only reachable when operators themselves recurse heavily.
        logger.debug("Interpreter recursion limit hit at depth %d", ctx.depth)
        msg = "Maximum evaluation depth exceeded - possible circular reference"
        raise MaxDepthExceededError(msg) from e


async def _evaluate(expr: Node, ctx: EvaluationContext) -> Any:
    depth = ctx.depth + 1
    if depth > MAX_DEPTH:
        msg = "Maximum evaluation depth exceeded - possible circular reference"
        raise MaxDepthExceededError(msg)

    match expr.kind:
        case NodeKind.LIT:
            return expr.value
        case NodeKind.REF:
            return await resolve_ref(expr.value, replace(ctx, depth=depth))
        case NodeKind.OP:
            fn = ctx.registry.get(expr.id)
            if fn is None:
                raise UnknownOperatorError(expr.id)
            logger.debug("Dispatching operator '%s' at depth %d", expr.id, depth)
            result = fn(_ordered_args(expr), replace(ctx, depth=depth))
            if inspect.isawaitable(result):
                result = await result
            return result
        case _:
            return expr.value


def _lookup_parent(node: Node, ctx: EvaluationContext) -> Node | None:
    if ctx.find_parent is not None:
        return ctx.find_parent(node)
    return find_parent(node, ctx.root)


# Node fields a binding path may read, e.g. ``item.id`` or ``item.children.name``.
_NODE_FIELDS = frozenset({"id", "type", "value", "default_value", *Node.MAP_FIELDS})


def _index_binding(value: Any, segments: Sequence[str]) -> Any:
    for segment in segments:
        if isinstance(value, Node):
            value = getattr(value, segment) if segment in _NODE_FIELDS else None
        elif isinstance(value, Mapping):
            value = value.get(segment)
        elif isinstance(value, Sequence) and not isinstance(value, str) and segment.isdigit():
            index = int(segment)
            value = value[index] if index < len(value) else None
        else:
            return None
    return value


async def _evaluate_owned(node: Node, owner: Node | None, ctx: EvaluationContext) -> Any:
    return await evaluate(node, replace(ctx, current=owner if owner is not None else ctx.current))


async def resolve_ref(path: Sequence[str], ctx: EvaluationContext) -> Any:  # noqa: C901, PLR0911, PLR0912
    """Resolve a reference path.

    Two cursors move along the path: ``current`` is the node being navigated
    and ``owner`` is the node an expression found on the way sees as ``self``.
    Entering ``children`` makes the child its own owner; entering
    ``metadata`` or ``constraints`` keeps the containing node as owner, so a
    metadata expression's ``self`` is the node it describes.

    A bare segment looks in children first, then metadata. A missing segment
    resolves to None rather than raising.
    """
    if not path:
        return None

    start = path[0]
    i = 1
    match start:
        case "self":
            current: Node | None = ctx.current
        case "root":
            current = ctx.root
        case "parent":
            current = _lookup_parent(ctx.current, ctx)
        case _:
            if ctx.bindings is not None and start in ctx.bindings:
                return _index_binding(ctx.bindings[start], path[1:])
            current = ctx.current
            i = 0
    owner = current

    while current is not None and i < len(path):
        segment = path[i]
        match segment:
            case "value":
                if current.value is None:
                    return None
                if current.kind.is_expression:
                    return await _evaluate_owned(current, owner, ctx)
                if isinstance(current.value, Node):
                    return await _evaluate_owned(current.value, owner, ctx)
                return current.value
            case "type":
                current = current.type
                owner = current
            case "id":
                return current.id
            case "children":
                i += 1
                if i >= len(path):
                    return None
                current = current.children.get(path[i])
                owner = current
            case "metadata" | "constraints":
                i += 1
                if i >= len(path):
                    return None
                owner = current
                current = getattr(current, segment).get(path[i])
            case "parent":
                current = _lookup_parent(current, ctx)
                owner = current
            case _:
                if segment in current.children:
                    current = current.children[segment]
                    owner = current
                elif segment in current.metadata:
                    owner = current
                    current = current.metadata[segment]
                else:
                    return None
        i += 1

    if current is None:
        return None
    if current.kind.is_expression:
        return await _evaluate_owned(current, owner, ctx)
    if current.value is not None:
        if isinstance(current.value, Node):
            return await _evaluate_owned(current.value, owner, ctx)
        return current.value
    return current


async def eval_arg(arg: Node, ctx: EvaluationContext) -> Any:
    """Evaluate one operator argument."""
    return await evaluate(arg, ctx)


async def eval_args(args: Sequence[Node], ctx: EvaluationContext) -> list[Any]:
    """Evaluate arguments one after another, left to right."""
    return [await evaluate(arg, ctx) for arg in args]


async def eval_args_parallel(args: Sequence[Node], ctx: EvaluationContext) -> list[Any]:
    """Evaluate arguments concurrently. Only for side-effect-free arguments."""
    return list(await asyncio.gather(*(evaluate(arg, ctx) for arg in args)))


def with_bindings(ctx: EvaluationContext, bindings: Mapping[str, Any]) -> EvaluationContext:
    """Return a new context with extra bindings layered over the existing ones."""
    merged = {**ctx.bindings, **bindings} if ctx.bindings else dict(bindings)
    return replace(ctx, bindings=merged)


def loop_context(ctx: EvaluationContext) -> tuple[EvaluationContext, dict[str, Any]]:
    """Return a context and its bindings dict, to be updated in place per iteration.

    Example:
        loop_ctx, bindings = loop_context(ctx)
        for index, item in enumerate(items):
            bindings["item"] = item
            bindings["index"] = index
            results.append(await evaluate(body, loop_ctx))

    """
    bindings: dict[str, Any] = dict(ctx.bindings) if ctx.bindings else {}
    return replace(ctx, bindings=bindings), bindings
