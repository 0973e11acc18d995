"""Homoiconic reactive property trees."""

__all__ = [
    "BUILTIN_TYPES",
    "CONSTRAINT",
    "EXPR",
    "LIT",
    "MAX_DEPTH",
    "OP",
    "OPERATOR",
    "PROPERTY",
    "REF",
    "TYPE",
    "ConfigurationError",
    "DeepValidationResult",
    "EvaluationContext",
    "EvaluationError",
    "MaxDepthExceededError",
    "Node",
    "NodeDestroyedError",
    "NodeKind",
    "ProptreeError",
    "Registry",
    "SerializedNode",
    "Subscription",
    "TreeNode",
    "UnknownOperatorError",
    "ValidationResult",
    "clone_node",
    "constraint",
    "deserialize_node",
    "eval_arg",
    "eval_args",
    "eval_args_parallel",
    "evaluate",
    "find_parent",
    "in_range",
    "is_constraint",
    "is_expr",
    "is_lit",
    "is_node",
    "is_op",
    "is_operator",
    "is_ref",
    "is_type",
    "lit",
    "loop_context",
    "make_type_resolver",
    "max_length",
    "max_value",
    "min_length",
    "min_value",
    "nodes_equal",
    "op",
    "prop",
    "ref",
    "register_standard_operators",
    "required",
    "resolve_ref",
    "serialize_node",
    "standard_registry",
    "type_name",
    "values_equal",
    "with_bindings",
]

from ._constraints import in_range, max_length, max_value, min_length, min_value, required
from ._errors import (
    ConfigurationError,
    EvaluationError,
    MaxDepthExceededError,
    NodeDestroyedError,
    ProptreeError,
    UnknownOperatorError,
)
from ._evaluator import (
    MAX_DEPTH,
    EvaluationContext,
    eval_arg,
    eval_args,
    eval_args_parallel,
    evaluate,
    find_parent,
    loop_context,
    resolve_ref,
    with_bindings,
)
from ._expressions import constraint, lit, op, prop, ref
from ._guards import is_constraint, is_expr, is_lit, is_node, is_op, is_operator, is_ref, is_type, type_name
from ._node import Node, NodeKind
from ._operators import register_standard_operators, standard_registry
from ._registry import Registry
from ._serialize import (
    SerializedNode,
    clone_node,
    deserialize_node,
    make_type_resolver,
    nodes_equal,
    serialize_node,
    values_equal,
)
from ._tree import DeepValidationResult, Subscription, TreeNode, ValidationResult
from ._types import BUILTIN_TYPES, CONSTRAINT, EXPR, LIT, OP, OPERATOR, PROPERTY, REF, TYPE
