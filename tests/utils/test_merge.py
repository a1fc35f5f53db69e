"""Tests for trellis.utils.deep_merge."""

import trellis.utils as utils


class TestDeepMerge:
    """Tests for deep_merge."""

    def test_later_layer_wins(self) -> None:
        """Scalar values from later layers override earlier ones."""
        assert utils.deep_merge({"a": 1, "b": 2}, {"b": 3}) == {"a": 1, "b": 3}

    def test_nested_merge(self) -> None:
        """Nested mappings merge key by key."""
        merged = utils.deep_merge(
            {"history": {"limit": 10}, "logging": {"level": "debug"}},
            {"history": {"limit": 20}, "logging": {"enabled": True}},
        )
        assert merged == {
            "history": {"limit": 20},
            "logging": {"level": "debug", "enabled": True},
        }

    def test_lists_replaced(self) -> None:
        """Lists are replaced, not concatenated."""
        assert utils.deep_merge({"a": [1, 2]}, {"a": [3]}) == {"a": [3]}

    def test_mapping_replaces_scalar(self) -> None:
        """A mapping over a scalar replaces it."""
        assert utils.deep_merge({"a": 1}, {"a": {"x": 1}}) == {"a": {"x": 1}}

    def test_skips_empty_layers(self) -> None:
        """None and empty layers are ignored."""
        assert utils.deep_merge(None, {}, {"a": 1}) == {"a": 1}
        assert utils.deep_merge() == {}

    def test_inputs_not_modified(self) -> None:
        """Nested dicts in the result are copies."""
        base = {"a": {"x": 1}}
        merged = utils.deep_merge(base, {"a": {"y": 2}})
        merged["a"]["z"] = 3
        assert base == {"a": {"x": 1}}
        single = utils.deep_merge(base)
        assert single["a"] is not base["a"]
