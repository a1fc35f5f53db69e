"""Tests for the layer data model and its persisted form."""

import dataclasses as _dataclasses

import pytest as _pytest

import trellis.layers.types as types

# =============================================================================
# Layer
# =============================================================================


class TestLayer:
    """Tests for the Layer dataclass."""

    def test_defaults(self) -> None:
        """A bare layer has no props, no children and no name."""
        layer = types.Layer(id="a", type="div")
        assert layer.props == {}
        assert layer.children is None
        assert layer.name is None

    def test_list_children_become_tuple(self) -> None:
        """Child lists should be stored as tuples."""
        child = types.Layer(id="b", type="span", children="x")
        layer = types.Layer(id="a", type="div", children=[child])
        assert layer.children == (child,)

    def test_frozen(self) -> None:
        """Layers cannot be changed in place."""
        layer = types.Layer(id="a", type="div")
        with _pytest.raises(_dataclasses.FrozenInstanceError):
            layer.id = "b"  # type: ignore[misc]

    def test_to_dict_omits_missing_name_and_children(self) -> None:
        """Absent name and children are left out of the persisted form."""
        assert types.Layer(id="a", type="div").to_dict() == {
            "id": "a",
            "type": "div",
            "props": {},
        }

    def test_round_trip(self) -> None:
        """A tree with text, references and nested props survives to_dict/from_dict."""
        layer = types.Layer(
            id="root",
            type="div",
            name="Root",
            props={"style": {"color": types.VariableReference("c")}, "items": [1, 2]},
            children=[
                types.Layer(id="t", type="span", children=types.VariableReference("v")),
                types.Layer(id="u", type="span", children="plain"),
            ],
        )
        assert types.Layer.from_dict(layer.to_dict()) == layer

    def test_to_dict_encodes_references(self) -> None:
        """References should be written as marker dicts."""
        layer = types.Layer(
            id="a",
            type="Button",
            props={"label": types.VariableReference("v1")},
            children=types.VariableReference("v2"),
        )
        data = layer.to_dict()
        assert data["props"] == {"label": {"__variableRef": "v1"}}
        assert data["children"] == {"__variableRef": "v2"}

    def test_to_dict_strips_callables(self) -> None:
        """Callables are dropped at any depth of the props."""
        layer = types.Layer(
            id="a",
            type="Button",
            props={
                "onClick": lambda: None,
                "nested": {"handler": print, "keep": 1},
                "list": [len, "x"],
            },
        )
        assert layer.to_dict()["props"] == {"nested": {"keep": 1}, "list": ["x"]}


# =============================================================================
# Variable
# =============================================================================


class TestVariable:
    """Tests for the Variable dataclass."""

    def test_to_dict_uses_camel_case(self) -> None:
        """defaultValue should be camelCase in the persisted form."""
        variable = types.Variable(id="v", name="count", type="number", default_value=3)
        assert variable.to_dict() == {
            "id": "v",
            "name": "count",
            "type": "number",
            "defaultValue": 3,
        }

    def test_from_dict(self) -> None:
        """Should read the persisted form back."""
        variable = types.Variable.from_dict(
            {"id": "v", "name": "flag", "type": "boolean", "defaultValue": False}
        )
        assert variable == types.Variable(id="v", name="flag", type="boolean", default_value=False)


# =============================================================================
# Codec
# =============================================================================


class TestCodec:
    """Tests for prop decoding."""

    def test_decode_marker(self) -> None:
        """A marker dict decodes to a VariableReference."""
        assert types.decode_prop_value({"__variableRef": "x"}) == types.VariableReference("x")

    def test_decode_nested(self) -> None:
        """Markers inside nested maps decode too."""
        decoded = types.decode_props({"style": {"color": {"__variableRef": "c"}, "size": 2}})
        assert decoded == {"style": {"color": types.VariableReference("c"), "size": 2}}

    def test_decode_keeps_scalars(self) -> None:
        """Plain values pass through unchanged."""
        assert types.decode_props({"a": 1, "b": "x", "c": None}) == {"a": 1, "b": "x", "c": None}

    def test_is_variable_reference_dict(self) -> None:
        """Only mappings carrying the reserved key are markers."""
        assert types.is_variable_reference_dict({"__variableRef": "x"})
        assert not types.is_variable_reference_dict({"other": "x"})
        assert not types.is_variable_reference_dict("__variableRef")

    def test_decode_children(self) -> None:
        """Children decode to text, a reference, layers or None."""
        assert types.decode_children(None) is None
        assert types.decode_children("hi") == "hi"
        assert types.decode_children({"__variableRef": "v"}) == types.VariableReference("v")
        decoded = types.decode_children([{"id": "a", "type": "div"}])
        assert decoded == (types.Layer(id="a", type="div"),)
