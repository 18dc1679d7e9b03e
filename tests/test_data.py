"""
Tests for path-keyed flattening, reconstruction, lookup and merging.
"""

import pytest

from doctreedb.data import (
    DEFAULT_CODEC,
    PathCodec,
    PathCodecConfig,
    find,
    find_value,
    flatten,
    merge,
    unflatten,
)
from doctreedb.errors import StructuralInconsistencyError


class TestFlatten:
    """Test nested structures turning into flat maps."""

    def test_nested_list_uses_wrapped_indices(self):
        assert flatten({"a": {"b": [1, 2]}}) == {"a/b/[0]": 1, "a/b/[1]": 2}

    def test_first_visit_order(self):
        flat = flatten({"z": 1, "a": {"y": 2, "b": 3}, "m": [4]})
        assert list(flat) == ["z", "a/y", "a/b", "m/[0]"]

    def test_empty_containers_produce_no_keys(self):
        assert flatten({"a": {}, "b": [], "c": 1}) == {"c": 1}

    def test_none_is_a_leaf(self):
        assert flatten({"a": None, "b": [None]}) == {"a": None, "b/[0]": None}

    def test_top_level_list(self):
        assert flatten([1, {"x": 2}]) == {"[0]": 1, "[1]/x": 2}

    def test_scalar_input_flattens_to_nothing(self):
        assert flatten(42) == {}

    def test_custom_divider_and_wrapper(self):
        config = PathCodecConfig(divider=".", array_wrapper=("<", ">"))
        assert flatten({"a": {"b": [1]}}, config=config) == {"a.b.<0>": 1}


class TestUnflatten:
    """Test reconstruction of nested structures."""

    def test_round_trip(self):
        nested = {"a": {"b": [1, 2]}, "c": "x", "d": [{"e": True}, {"f": None}]}
        assert unflatten(flatten(nested)) == nested

    def test_flatten_after_unflatten_keeps_leaves(self):
        flat = {"a/b/[0]": 1, "a/b/[1]": 2, "a/c": "x", "d": 3.5}
        assert flatten(unflatten(flat)) == flat

    def test_list_slots_are_padded(self):
        assert unflatten({"a/[2]": "x"}) == {"a": [None, None, "x"]}

    def test_list_filled_out_of_order(self):
        assert unflatten({"a/[1]": "b", "a/[0]": "a"}) == {"a": ["a", "b"]}

    def test_non_index_segment_in_list_raises(self):
        with pytest.raises(StructuralInconsistencyError) as info:
            unflatten({"a/[0]": 1, "a/b": 2})
        assert info.value.path == "a/b"

    def test_scalar_collision_at_root(self):
        """A key running into a scalar is stored under the nearest mapping."""
        assert unflatten({"a": 1, "a/b": 2}) == {"a": 1, "a/b": 2}

    def test_scalar_collision_nested(self):
        result = unflatten({"x/y": 1, "x/y/z": 2})
        assert result == {"x": {"y": 1, "y/z": 2}}

    def test_scalar_collision_under_list_raises(self):
        with pytest.raises(StructuralInconsistencyError, match="Value key not found"):
            unflatten({"a/[0]": 1, "a/[0]/b": 2})

    def test_custom_divider(self):
        config = PathCodecConfig(divider="::", array_wrapper=("(", ")"))
        flat = {"a::b::(1)": "y", "a::c": 1}
        assert unflatten(flat, config=config) == {"a": {"b": [None, "y"], "c": 1}}


class TestFind:
    """Test path lookup."""

    @pytest.fixture
    def nested(self):
        return {"a": {"b": [1, 2], "c": {"d": "x"}}}

    def test_string_path(self, nested):
        assert find("a/b/[1]", nested) == 2
        assert find("a/c", nested) == {"d": "x"}

    def test_segment_sequence(self, nested):
        assert find(["a", "b", 0], nested) == 1

    def test_negative_index_does_not_resolve(self, nested):
        assert find(["a", "b", -1], nested) is None
        assert find(["a", "b", -1], nested, default="none") == "none"

    def test_missing_returns_default(self, nested):
        assert find("a/x", nested) is None
        assert find("a/x", nested, default=0) == 0
        assert find("a/b/[7]", nested, "none") == "none"

    def test_descending_into_scalar_returns_default(self, nested):
        assert find("a/b/[0]/deeper", nested) is None

    def test_empty_path_returns_structure(self, nested):
        assert find("", nested) is nested


class TestFindValue:
    """Test lookup with prefix backtracking."""

    @pytest.fixture
    def nested(self):
        return {"a": {"b": [1, 2]}}

    def test_exact_hit(self, nested):
        assert find_value("a/b/[0]", nested) == (1, ["a", "b", "[0]"])

    def test_backtracks_to_existing_prefix(self, nested):
        value, path = find_value("a/b/[5]/q", nested)
        assert value == [1, 2]
        assert path == ["a", "b"]

    def test_skip_scalar(self, nested):
        value, path = find_value("a/b/[0]", nested, skip_scalar=True)
        assert value == [1, 2]
        assert path == ["a", "b"]

    def test_empty_prefix_is_the_structure(self, nested):
        assert find_value("z/y", nested) == (nested, [])

    def test_nothing_found(self):
        assert find_value("a", 5, skip_scalar=True) == (None, [])

    def test_bounded_backtracking(self):
        config = PathCodecConfig(max_deep_unflatten=1)
        assert find_value("a/x/y", {"a": {}}, config=config) == (None, ["a", "x"])


class TestMerge:
    """Test deep merging."""

    def test_does_not_mutate_target(self):
        target = {"x": {"y": 1, "z": [1]}, "k": 1}
        merged = merge(target, {"x": {"y": 2, "z": [3]}})
        assert merged == {"x": {"y": 2, "z": [3]}, "k": 1}
        assert target == {"x": {"y": 1, "z": [1]}, "k": 1}

    def test_lists_replace_and_are_copied(self):
        source = {"items": [1, 2]}
        merged = merge({"items": [0, 0, 0]}, source)
        assert merged["items"] == [1, 2]
        assert merged["items"] is not source["items"]

    def test_mapping_over_scalar(self):
        assert merge({"a": 1}, {"a": {"b": 2}}) == {"a": {"b": 2}}

    def test_none_target(self):
        assert merge(None, {"a": 1}) == {"a": 1}

    def test_merged_nested_dict_is_independent(self):
        target = {"a": {"b": {"c": 1}}}
        merged = merge(target, {"d": 2})
        merged["a"]["b"]["c"] = 99
        assert target["a"]["b"]["c"] == 1


class TestPathCodec:
    """Test codec configuration."""

    def test_default_codec(self):
        assert DEFAULT_CODEC.divider == "/"
        assert DEFAULT_CODEC.config.array_wrapper == ("[", "]")

    def test_wrapper_given_as_string(self):
        assert PathCodecConfig(array_wrapper="[]").array_wrapper == ("[", "]")

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            PathCodecConfig(divider="")
        with pytest.raises(ValueError):
            PathCodecConfig(array_wrapper=("<", ">", "!"))
        with pytest.raises(ValueError):
            PathCodecConfig(max_deep_unflatten=0)

    def test_index_of(self):
        codec = PathCodec()
        assert codec.index_of("[3]") == 3
        assert codec.index_of(2) == 2
        assert codec.index_of("3") is None
        assert codec.index_of("x") is None
        assert codec.index_of(True) is None
        assert codec.index_of(-1) is None

    def test_codecs_are_independent(self):
        dotted = PathCodec(PathCodecConfig(divider="."))
        assert dotted.flatten({"a": {"b": 1}}) == {"a.b": 1}
        assert flatten({"a": {"b": 1}}) == {"a/b": 1}
