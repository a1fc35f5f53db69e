"""Tests for the pure layer mutation algorithms."""

import logging as _logging

import pytest as _pytest

import trellis.errors as errors
import trellis.layers.mutations as mutations
import trellis.layers.traversal as traversal
import trellis.layers.types as types
import trellis.registry as registry


def _second_page() -> types.Layer:
    return types.Layer(
        id="page-2",
        type="div",
        name="Page 2",
        children=[types.Layer(id="p2-child", type="span", children="Two")],
    )


# =============================================================================
# add_layer
# =============================================================================


class TestAddLayer:
    """Tests for add_layer."""

    def test_append(self, page: types.Layer) -> None:
        """New layer is appended when no position is given."""
        new = types.Layer(id="new", type="span", children="x")
        roots = mutations.add_layer([page], new, "row-1")
        row = traversal.find_layer_recursive(roots, "row-1")
        assert [c.id for c in row.children] == ["text-1", "inner-1", "new"]

    def test_then_find(self, page: types.Layer) -> None:
        """An added layer can be found with its parent recorded."""
        new = types.Layer(id="new", type="span", children="x")
        roots = mutations.add_layer([page], new, "inner-1")
        assert traversal.find_layer_recursive(roots, "new") == new
        assert traversal.find_parent_layer(roots, "new").id == "inner-1"

    def test_count_grows_by_subtree(self, page: types.Layer) -> None:
        """The parent's count grows by one plus the new layer's descendants."""
        new = types.Layer(
            id="new",
            type="div",
            children=[
                types.Layer(id="n1", type="span", children="a"),
                types.Layer(id="n2", type="div", children=[types.Layer(id="n3", type="span")]),
            ],
        )
        before = traversal.count_layers(traversal.find_layer_recursive([page], "row-1").children)
        roots = mutations.add_layer([page], new, "row-1")
        after = traversal.count_layers(traversal.find_layer_recursive(roots, "row-1").children)
        assert after == before + 1 + traversal.count_layers(new.children)
        assert after == 6

    @_pytest.mark.parametrize(
        "position,expected",
        [
            (0, ["new", "text-1", "inner-1"]),
            (1, ["text-1", "new", "inner-1"]),
            (10, ["text-1", "inner-1", "new"]),
            (-1, ["new", "text-1", "inner-1"]),
        ],
    )
    def test_positions(self, page: types.Layer, position: int, expected: list[str]) -> None:
        """Out-of-range positions append; negative positions prepend."""
        new = types.Layer(id="new", type="span")
        roots = mutations.add_layer([page], new, "row-1", position)
        row = traversal.find_layer_recursive(roots, "row-1")
        assert [c.id for c in row.children] == expected

    def test_text_parent_unchanged(self, page: types.Layer) -> None:
        """A parent holding text does not accept children."""
        new = types.Layer(id="new", type="span")
        roots = mutations.add_layer([page], new, "text-1")
        assert roots[0] is page

    def test_missing_parent_unchanged(self, page: types.Layer) -> None:
        """Unknown parents leave the tree untouched."""
        roots = mutations.add_layer([page], types.Layer(id="new", type="span"), "nope")
        assert roots == [page]
        assert roots[0] is page

    def test_input_not_mutated(self, page: types.Layer) -> None:
        """The original tree keeps its children."""
        mutations.add_layer([page], types.Layer(id="new", type="span"), "page-1")
        assert len(page.children) == 2


# =============================================================================
# remove_layer
# =============================================================================


class TestRemoveLayer:
    """Tests for remove_layer."""

    def test_remove_nested(self, page: types.Layer) -> None:
        """Removes the layer and its subtree."""
        roots = mutations.remove_layer([page], "row-1")
        assert traversal.collect_ids(roots) == {"page-1", "button-1"}

    def test_add_remove_round_trip(self, page: types.Layer) -> None:
        """Adding then removing a layer restores an equal tree."""
        new = types.Layer(id="new", type="span", children="x")
        added = mutations.add_layer([page], new, "row-1")
        assert mutations.remove_layer(added, "new") == [page]

    def test_remove_root_with_other_roots(self, page: types.Layer) -> None:
        """A page is dropped when others remain."""
        roots = mutations.remove_layer([page, _second_page()], "page-1")
        assert [r.id for r in roots] == ["page-2"]

    def test_remove_last_root_raises(self, page: types.Layer) -> None:
        """Removing the only page raises LastPageError."""
        with _pytest.raises(errors.LastPageError):
            mutations.remove_layer([page], "page-1")

    def test_remove_missing_is_noop(self, page: types.Layer) -> None:
        """Unknown ids leave the same objects in place."""
        roots = mutations.remove_layer([page], "nope")
        assert roots[0] is page


# =============================================================================
# duplicate
# =============================================================================


class TestDuplicate:
    """Tests for duplicate_with_new_ids and duplicate_layer."""

    def test_clone_ids_disjoint(self, page: types.Layer) -> None:
        """Every node of the clone gets an id not used by the original."""
        clone = mutations.duplicate_with_new_ids(page)
        original_ids = traversal.collect_ids([page])
        clone_ids = traversal.collect_ids([clone])
        assert len(clone_ids) == len(original_ids)
        assert not original_ids & clone_ids

    def test_clone_name_suffix_root_only(self, page: types.Layer) -> None:
        """Only the clone's root name gets the suffix."""
        clone = mutations.duplicate_with_new_ids(page)
        assert clone.name == "Page 1 (Copy)"
        assert clone.children[1].name == "Row"

    def test_clone_props_independent(self) -> None:
        """Nested props are deep copied."""
        layer = types.Layer(id="a", type="div", props={"style": {"color": "red"}})
        clone = mutations.duplicate_with_new_ids(layer)
        assert clone.props == layer.props
        assert clone.props["style"] is not layer.props["style"]

    def test_duplicate_nested_inserted_after_original(self, page: types.Layer) -> None:
        """A nested duplicate lands right after its original."""
        roots, clone = mutations.duplicate_layer([page], "button-1")
        assert clone is not None
        assert [c.id for c in roots[0].children] == ["button-1", clone.id, "row-1"]
        assert clone.name == "Button (Copy)"

    def test_duplicate_page_appends(self, page: types.Layer) -> None:
        """A duplicated page is appended to the roots."""
        roots, clone = mutations.duplicate_layer([page], "page-1")
        assert len(roots) == 2
        assert roots[1] is clone
        assert clone.name == "Page 1 (Copy)"

    def test_duplicate_ids_unique_in_document(self, page: types.Layer) -> None:
        """Ids stay unique across the whole document after duplication."""
        roots, _clone = mutations.duplicate_layer([page], "row-1")
        all_ids = [layer.id for layer in traversal.iter_layers(roots)]
        assert len(all_ids) == len(set(all_ids)) == 8

    def test_duplicate_missing(self, page: types.Layer, caplog: _pytest.LogCaptureFixture) -> None:
        """Unknown ids log a warning and return no clone."""
        with caplog.at_level(_logging.WARNING):
            roots, clone = mutations.duplicate_layer([page], "nope")
        assert clone is None
        assert roots == [page]
        assert "not found" in caplog.text


# =============================================================================
# move_layer
# =============================================================================


class TestMoveLayer:
    """Tests for move_layer."""

    def test_move_keeps_identity(self, page: types.Layer) -> None:
        """The moved subtree is the same object under its new parent."""
        button = page.children[0]
        roots = mutations.move_layer([page], "button-1", "inner-1")
        inner = traversal.find_layer_recursive(roots, "inner-1")
        assert inner.children == (button,)
        assert inner.children[0] is button
        assert [c.id for c in roots[0].children] == ["row-1"]

    def test_move_with_position(self, page: types.Layer) -> None:
        """Position is applied within the new parent."""
        roots = mutations.move_layer([page], "button-1", "row-1", 1)
        row = traversal.find_layer_recursive(roots, "row-1")
        assert [c.id for c in row.children] == ["text-1", "button-1", "inner-1"]

    def test_move_into_descendant_refused(self, page: types.Layer) -> None:
        """A layer cannot become its own descendant."""
        roots = mutations.move_layer([page], "row-1", "inner-1")
        assert roots[0] is page

    def test_move_into_text_refused(self, page: types.Layer) -> None:
        """Text layers cannot receive children."""
        roots = mutations.move_layer([page], "inner-1", "text-1")
        assert roots[0] is page

    def test_move_page_refused(self, page: types.Layer) -> None:
        """Pages cannot be moved."""
        second = _second_page()
        roots = mutations.move_layer([page, second], "page-2", "row-1")
        assert roots == [page, second]


# =============================================================================
# update_layer
# =============================================================================


class TestUpdateLayer:
    """Tests for update_layer."""

    def test_merges_props(self, page: types.Layer) -> None:
        """Props are shallow-merged over existing props."""
        roots = mutations.update_layer([page], "page-1", "button-1", {"variant": "outline"})
        button = traversal.find_layer_recursive(roots, "button-1")
        assert button.props == {"label": "Submit", "variant": "outline"}

    def test_updates_fields(self, page: types.Layer) -> None:
        """Name and children can be overwritten."""
        roots = mutations.update_layer(
            [page], "page-1", "text-1", {}, {"name": "Caption", "children": "Bye"}
        )
        text = traversal.find_layer_recursive(roots, "text-1")
        assert text.name == "Caption"
        assert text.children == "Bye"

    def test_updates_page_itself(self, page: types.Layer) -> None:
        """The selected page can be updated by its own id."""
        roots = mutations.update_layer([page], "page-1", "page-1", {"className": "x"})
        assert roots[0].props == {"className": "x"}

    def test_no_match_returns_none(self, page: types.Layer) -> None:
        """Unknown layer ids give None."""
        assert mutations.update_layer([page], "page-1", "nope", {"a": 1}) is None

    def test_only_selected_page_searched(self, page: types.Layer) -> None:
        """Layers of other pages are not matched."""
        assert mutations.update_layer([page, _second_page()], "page-1", "p2-child", {}) is None

    def test_invalid_field(self, page: types.Layer) -> None:
        """Only type, name and children can be overwritten."""
        with _pytest.raises(ValueError, match="id"):
            mutations.update_layer([page], "page-1", "button-1", {}, {"id": "other"})


# =============================================================================
# create_component_layer
# =============================================================================


class TestCreateComponentLayer:
    """Tests for create_component_layer."""

    def test_schema_defaults(self, component_registry: registry.ComponentRegistry) -> None:
        """Props start from schema defaults and children from the definition."""
        layer = mutations.create_component_layer("Button", component_registry, layer_id="b")
        assert layer.id == "b"
        assert layer.name == "Button"
        assert layer.props == {"label": "Click me", "variant": "default", "disabled": False}
        assert layer.children == "Button"

    def test_default_child_layers_get_fresh_ids(
        self, component_registry: registry.ComponentRegistry
    ) -> None:
        """Template children are cloned, not shared."""
        first = mutations.create_component_layer("Card", component_registry)
        second = mutations.create_component_layer("Card", component_registry)
        first_ids = traversal.collect_ids(first.children)
        second_ids = traversal.collect_ids(second.children)
        assert len(first_ids) == 3
        assert not first_ids & second_ids
        assert "tpl-header" not in first_ids

    def test_variable_bindings(self, component_registry: registry.ComponentRegistry) -> None:
        """Default bindings apply only for variables that exist."""
        variables = [types.Variable(id="brand-name", name="brand", type="string")]
        layer = mutations.create_component_layer(
            "Badge",
            component_registry,
            apply_variable_bindings=True,
            variables=variables,
        )
        assert layer.props["label"] == types.VariableReference("brand-name")
        assert layer.props["tone"] == "neutral"

    def test_unknown_type(self, component_registry: registry.ComponentRegistry) -> None:
        """Unregistered types raise."""
        with _pytest.raises(errors.UnknownComponentTypeError):
            mutations.create_component_layer("Nope", component_registry)


class TestAcceptsChildren:
    """Tests for accepts_children."""

    @_pytest.mark.parametrize(
        "children,expected",
        [(None, True), ((), True), ("", True), ("text", False)],
    )
    def test_accepts(self, children: types.Children, expected: bool) -> None:
        """Empty text counts as no children."""
        layer = types.Layer(id="a", type="div", children=children)
        assert mutations.accepts_children(layer) is expected

    def test_reference_children(self) -> None:
        """A layer whose text comes from a variable does not accept children."""
        layer = types.Layer(id="a", type="span", children=types.VariableReference("v"))
        assert not mutations.accepts_children(layer)
