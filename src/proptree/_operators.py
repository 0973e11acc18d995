"""Standard operator library.

Nothing here is registered by default. Install it explicitly:

    registry = register_standard_operators(Registry())
    # or
    registry = standard_registry()

Missing operands are treated leniently: arithmetic reads an absent operand as
0, string operators read a non-string as empty, and comparisons between
incomparable values (such as ``None`` and a number) are False.
"""

from __future__ import annotations

import logging
import operator
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from ._evaluator import eval_arg, eval_args, evaluate, loop_context
from ._registry import Registry

if TYPE_CHECKING:
    from ._evaluator import EvaluationContext
    from ._node import Node
    from ._registry import OperatorFn

logger = logging.getLogger(__name__)


def _num(value: Any) -> Any:
    return 0 if value is None else value


async def _arg_or_none(args: list[Node], index: int, ctx: EvaluationContext) -> Any:
    if index >= len(args):
        return None
    return await eval_arg(args[index], ctx)


async def _pair(args: list[Node], ctx: EvaluationContext) -> tuple[Any, Any]:
    return await _arg_or_none(args, 0, ctx), await _arg_or_none(args, 1, ctx)


# ---------------------------------------------------------------------------
# Arithmetic


def _arithmetic(fn: Callable[[Any, Any], Any]) -> OperatorFn:
    async def apply(args: list[Node], ctx: EvaluationContext) -> Any:
        a, b = await _pair(args, ctx)
        return fn(_num(a), _num(b))

    return apply


async def _div(args: list[Node], ctx: EvaluationContext) -> Any:
    a, b = await _pair(args, ctx)
    if not b:
        return 0
    return _num(a) / b


# ---------------------------------------------------------------------------
# Comparison


def _comparison(fn: Callable[[Any, Any], bool]) -> OperatorFn:
    async def apply(args: list[Node], ctx: EvaluationContext) -> bool:
        a, b = await _pair(args, ctx)
        try:
            return bool(fn(a, b))
        except TypeError:
            return False

    return apply


# ---------------------------------------------------------------------------
# Logic


async def _and(args: list[Node], ctx: EvaluationContext) -> bool:
    for arg in args:
        if not await eval_arg(arg, ctx):
            return False
    return True


async def _or(args: list[Node], ctx: EvaluationContext) -> bool:
    for arg in args:
        if await eval_arg(arg, ctx):
            return True
    return False


async def _not(args: list[Node], ctx: EvaluationContext) -> bool:
    return not await _arg_or_none(args, 0, ctx)


async def _if(args: list[Node], ctx: EvaluationContext) -> Any:
    """Evaluate only the branch selected by the condition."""
    if await _arg_or_none(args, 0, ctx):
        return await _arg_or_none(args, 1, ctx)
    return await _arg_or_none(args, 2, ctx)


# ---------------------------------------------------------------------------
# Strings


async def _concat(args: list[Node], ctx: EvaluationContext) -> str:
    return "".join("" if v is None else str(v) for v in await eval_args(args, ctx))


async def _to_string(args: list[Node], ctx: EvaluationContext) -> str:
    value = await _arg_or_none(args, 0, ctx)
    return "" if value is None else str(value)


async def _strlen(args: list[Node], ctx: EvaluationContext) -> int:
    value = await _arg_or_none(args, 0, ctx)
    return len(value) if isinstance(value, str) else 0


async def _includes(args: list[Node], ctx: EvaluationContext) -> bool:
    text, search = await _pair(args, ctx)
    return isinstance(text, str) and isinstance(search, str) and search in text


def _string_method(fn: Callable[[str], str]) -> OperatorFn:
    async def apply(args: list[Node], ctx: EvaluationContext) -> str:
        value = await _arg_or_none(args, 0, ctx)
        return fn(value) if isinstance(value, str) else ""

    return apply


# ---------------------------------------------------------------------------
# Presence


async def _is_not_null(args: list[Node], ctx: EvaluationContext) -> bool:
    return await _arg_or_none(args, 0, ctx) is not None


async def _is_not_blank(args: list[Node], ctx: EvaluationContext) -> bool:
    value = await _arg_or_none(args, 0, ctx)
    return isinstance(value, str) and bool(value.strip())


# ---------------------------------------------------------------------------
# Collections
#
# The body expression is evaluated once per element with ``item`` and
# ``index`` bound; ``reduce`` also binds ``acc``.


async def _items(args: list[Node], ctx: EvaluationContext) -> Sequence[Any]:
    items = await _arg_or_none(args, 0, ctx)
    if items is None:
        return []
    if not isinstance(items, Sequence) or isinstance(items, str):
        logger.debug("Collection operator got a non-sequence: %r", items)
        return []
    return items


async def _map(args: list[Node], ctx: EvaluationContext) -> list[Any]:
    items = await _items(args, ctx)
    body = args[1]
    loop_ctx, bindings = loop_context(ctx)
    results = []
    for index, item in enumerate(items):
        bindings["item"] = item
        bindings["index"] = index
        results.append(await evaluate(body, loop_ctx))
    return results


async def _filter(args: list[Node], ctx: EvaluationContext) -> list[Any]:
    items = await _items(args, ctx)
    body = args[1]
    loop_ctx, bindings = loop_context(ctx)
    kept = []
    for index, item in enumerate(items):
        bindings["item"] = item
        bindings["index"] = index
        if await evaluate(body, loop_ctx):
            kept.append(item)
    return kept


async def _reduce(args: list[Node], ctx: EvaluationContext) -> Any:
    items = await _items(args, ctx)
    body = args[1]
    acc = await _arg_or_none(args, 2, ctx)
    loop_ctx, bindings = loop_context(ctx)
    for index, item in enumerate(items):
        bindings["acc"] = acc
        bindings["item"] = item
        bindings["index"] = index
        acc = await evaluate(body, loop_ctx)
    return acc


STANDARD_OPERATORS: dict[str, OperatorFn] = {
    "add": _arithmetic(operator.add),
    "sub": _arithmetic(operator.sub),
    "mul": _arithmetic(operator.mul),
    "div": _div,
    "eq": _comparison(operator.eq),
    "neq": _comparison(operator.ne),
    "lt": _comparison(operator.lt),
    "lte": _comparison(operator.le),
    "gt": _comparison(operator.gt),
    "gte": _comparison(operator.ge),
    "and": _and,
    "or": _or,
    "not": _not,
    "if": _if,
    "concat": _concat,
    "to_string": _to_string,
    "strlen": _strlen,
    "includes": _includes,
    "upper": _string_method(str.upper),
    "lower": _string_method(str.lower),
    "trim": _string_method(str.strip),
    "is_not_null": _is_not_null,
    "is_not_blank": _is_not_blank,
    "map": _map,
    "filter": _filter,
    "reduce": _reduce,
}


def register_standard_operators(registry: Registry) -> Registry:
    """Register every standard operator, replacing same-named ones."""
    for name, fn in STANDARD_OPERATORS.items():
        registry.register(name, fn)
    return registry


def standard_registry() -> Registry:
    """Create a new registry holding the standard operators."""
    return register_standard_operators(Registry())
