"""Ready-made constraint nodes built on the standard operators.

Each builder returns a fresh `CONSTRAINT` node checking ``self.value``, with
a default failure message that ``message`` overrides. Evaluating them needs
a registry with the standard operators installed.

Example:
    name = prop("name", "", constraints={
        "required": required(),
        "min_length": min_length(2),
    })

"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ._expressions import constraint, lit, op, ref

if TYPE_CHECKING:
    from ._node import Node


def _own_value() -> Node:
    return ref("self.value")


def required(message: str | None = None) -> Node:
    """Value is present and not blank once converted to text."""
    return constraint(
        "required",
        op("and", op("is_not_null", _own_value()), op("is_not_blank", op("to_string", _own_value()))),
        message or "This field is required",
    )


def min_length(n: int, message: str | None = None) -> Node:
    return constraint(
        "min_length",
        op("gte", op("strlen", _own_value()), lit(n)),
        message or f"Minimum {n} characters required",
    )


def max_length(n: int, message: str | None = None) -> Node:
    return constraint(
        "max_length",
        op("lte", op("strlen", _own_value()), lit(n)),
        message or f"Maximum {n} characters allowed",
    )


def min_value(n: Any, message: str | None = None) -> Node:
    return constraint("min_value", op("gte", _own_value(), lit(n)), message or f"Minimum value is {n}")


def max_value(n: Any, message: str | None = None) -> Node:
    return constraint("max_value", op("lte", _own_value(), lit(n)), message or f"Maximum value is {n}")


def in_range(low: Any, high: Any, message: str | None = None) -> Node:
    """Value lies between ``low`` and ``high``, both inclusive."""
    return constraint(
        "in_range",
        op("and", op("gte", _own_value(), lit(low)), op("lte", _own_value(), lit(high))),
        message or f"Must be between {low} and {high}",
    )
