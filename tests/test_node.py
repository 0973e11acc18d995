"""Tests for the node model, built-in types, guards and factories."""

import pytest

from proptree import (
    BUILTIN_TYPES,
    CONSTRAINT,
    EXPR,
    LIT,
    OP,
    PROPERTY,
    REF,
    TYPE,
    Node,
    NodeKind,
    constraint,
    is_constraint,
    is_expr,
    is_lit,
    is_node,
    is_op,
    is_operator,
    is_ref,
    is_type,
    lit,
    op,
    prop,
    ref,
    type_name,
)
from proptree._types import OPERATOR


class TestBuiltinTypes:
    def test_root_type_is_its_own_type(self) -> None:
        assert TYPE.type is TYPE
        assert TYPE.kind is NodeKind.TYPE

    def test_type_chain_terminates(self) -> None:
        """Following type links from any node reaches TYPE."""
        seen = []
        node = lit(1)
        while node not in seen:
            seen.append(node)
            node = node.type
        assert node is TYPE
        assert [n.id for n in seen] == ["lit", "Lit", "Expr", "Type"]

    def test_expression_types_are_typed_expr(self) -> None:
        for expression_type in (LIT, REF, OP):
            assert expression_type.type is EXPR

    def test_builtin_types_have_unique_ids(self) -> None:
        ids = [t.id for t in BUILTIN_TYPES]
        assert len(ids) == len(set(ids))


class TestNode:
    def test_maps_default_to_independent_empty_dicts(self) -> None:
        a = Node(id="a", type=PROPERTY)
        b = Node(id="b", type=PROPERTY)
        a.children["x"] = prop("x")

        assert b.children == {}
        assert a.metadata == {}
        assert a.constraints == {}

    def test_kind_follows_type_id(self) -> None:
        assert lit(1).kind is NodeKind.LIT
        assert ref("self").kind is NodeKind.REF
        assert op("add").kind is NodeKind.OP
        assert prop("x").kind is NodeKind.PLAIN
        assert Node(id="rule", type=CONSTRAINT).kind is NodeKind.CONSTRAINT
        assert Node(id="add", type=OPERATOR).kind is NodeKind.OPERATOR
        assert PROPERTY.kind is NodeKind.TYPE

    def test_requires_a_type_node(self) -> None:
        with pytest.raises(TypeError, match="needs a type node"):
            Node(id="bad", type="Property")  # type: ignore[arg-type]

    def test_equality_is_identity(self) -> None:
        assert prop("x", 1) != prop("x", 1)
        node = prop("x", 1)
        assert node == node  # noqa: PLR0124

    def test_repr_does_not_recurse_through_type(self) -> None:
        assert repr(TYPE) == "Node(id='Type', type='Type')"
        assert repr(prop("name", "Ada")) == "Node(id='name', type='Property', value='Ada')"

    def test_repr_lists_map_keys(self) -> None:
        node = prop("form", children={"b": prop("b"), "a": prop("a")})
        assert repr(node) == "Node(id='form', type='Property', children=['a', 'b'])"


class TestGuards:
    def test_expression_guards(self) -> None:
        assert is_lit(lit(1))
        assert is_ref(ref("self.value"))
        assert is_op(op("add", lit(1), lit(2)))
        assert not is_lit(ref("self"))
        assert not is_op(prop("x"))

    def test_is_expr_covers_all_expression_forms(self) -> None:
        assert is_expr(lit(1))
        assert is_expr(ref("self"))
        assert is_expr(op("add"))
        assert is_expr(Node(id="custom", type=EXPR))
        assert not is_expr(prop("x"))

    def test_type_constraint_and_operator_guards(self) -> None:
        assert is_type(TYPE)
        assert is_type(PROPERTY)
        assert is_constraint(constraint("required", lit(value=True)))
        assert is_operator(Node(id="add", type=OPERATOR))
        assert not is_type(prop("x"))

    def test_is_node(self) -> None:
        assert is_node(prop("x"))
        assert not is_node({"id": "x", "type": {"id": "Property"}})

    def test_type_name(self) -> None:
        assert type_name(lit(1)) == "Lit"
        assert type_name(prop("x")) == "Property"
        assert type_name(42) == "Unknown"


class TestFactories:
    def test_lit_holds_value(self) -> None:
        assert lit([1, 2]).value == [1, 2]

    def test_ref_splits_dotted_path(self) -> None:
        assert ref("self.metadata.label").value == ["self", "metadata", "label"]

    def test_ref_accepts_segments(self) -> None:
        assert ref(("parent", "name")).value == ["parent", "name"]

    @pytest.mark.parametrize("path", ["", []])
    def test_ref_rejects_empty_path(self, path: str | list[str]) -> None:
        with pytest.raises(ValueError, match="must not be empty"):
            ref(path)

    def test_op_stores_arguments_in_order(self) -> None:
        a, b, c = lit(1), lit(2), lit(3)
        expr = op("sum", a, b, c)

        assert expr.id == "sum"
        assert list(expr.children) == ["arg0", "arg1", "arg2"]
        assert expr.children["arg2"] is c

    def test_constraint_carries_message(self) -> None:
        rule = constraint("positive", op("gt", ref("self.value"), lit(0)), "Must be positive")

        assert rule.type is CONSTRAINT
        assert is_op(rule.value)
        assert rule.metadata["message"].value == "Must be positive"

    def test_constraint_without_message(self) -> None:
        assert constraint("ok", lit(value=True)).metadata == {}

    def test_prop_copies_maps(self) -> None:
        children = {"a": prop("a")}
        node = prop("form", children=children, default_value=0)

        node.children["b"] = prop("b")

        assert list(children) == ["a"]
        assert node.default_value == 0
        assert node.type is PROPERTY
