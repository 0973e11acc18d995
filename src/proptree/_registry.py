"""Name-keyed table of operator functions."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from ._evaluator import EvaluationContext
    from ._node import Node

OperatorFn: TypeAlias = "Callable[[list[Node], EvaluationContext], Any | Awaitable[Any]]"
"""Operator signature: ordered, unevaluated arguments and the context.

The function decides which arguments to evaluate and in which order, and
may return a value or an awaitable.
"""


class Registry:
    """Registry of operator functions.

    Nothing is registered by default. Every operator an expression uses,
    including arithmetic and logic, is supplied by the application.

    Example:
        registry = Registry()

        @registry.operator("add")
        async def add(args, ctx):
            a, b = await eval_args(args, ctx)
            return a + b

    """

    def __init__(self) -> None:
        self._operators: dict[str, OperatorFn] = {}

    def register(self, name: str, fn: OperatorFn) -> Registry:
        """Register an operator, replacing any existing one with the same name."""
        self._operators[name] = fn
        return self

    def operator(self, name: str | None = None) -> Callable[[OperatorFn], OperatorFn]:
        """Register the decorated function, under its own name unless one is given."""

        def decorator(fn: OperatorFn) -> OperatorFn:
            self.register(name or fn.__name__, fn)  # ty: ignore[unresolved-attribute]
            return fn

        return decorator

    def unregister(self, name: str) -> bool:
        """Remove an operator. Returns True if it was registered.

        Expressions naming a removed operator fail with ``UnknownOperatorError``.
        """
        return self._operators.pop(name, None) is not None

    def get(self, name: str) -> OperatorFn | None:
        return self._operators.get(name)

    def has(self, name: str) -> bool:
        return name in self._operators

    def keys(self) -> Iterator[str]:
        return iter(list(self._operators))

    @property
    def size(self) -> int:
        return len(self._operators)

    def clear(self) -> Registry:
        self._operators.clear()
        return self

    def __contains__(self, name: object) -> bool:
        return name in self._operators

    def __len__(self) -> int:
        return len(self._operators)

    def __iter__(self) -> Iterator[str]:
        return self.keys()

    def __repr__(self) -> str:
        return f"Registry({sorted(self._operators)!r})"
