from __future__ import annotations

from tableau_report.equality import (
    is_value_sequence,
    mapping_changed,
    scalars_equal,
    values_equal,
)


def test_reordered_filter_values_are_unchanged() -> None:
    assert values_equal([1, 2], [2, 1])
    assert not mapping_changed({"region": [1, 2]}, {"region": [2, 1]})


def test_different_filter_values_are_changed() -> None:
    assert not values_equal([1, 2], [1, 3])
    assert mapping_changed({"region": [1, 2]}, {"region": [1, 3]})


def test_multiset_counts_matter() -> None:
    assert not values_equal([1, 1, 2], [1, 2, 2])
    assert not values_equal([1, 2], [1, 2, 2])


def test_values_equal_does_not_mutate_inputs() -> None:
    a = [3, 1, 2]
    b = [2, 3, 1]

    assert values_equal(a, b)
    assert a == [3, 1, 2]
    assert b == [2, 3, 1]


def test_mixed_type_sequences_compare_without_type_error() -> None:
    assert values_equal(["a", 1, None], [None, "a", 1])
    assert not values_equal(["a", 1], ["a", "1"])


def test_scalars_and_strings_fall_back_to_structural_equality() -> None:
    assert values_equal("West", "West")
    assert not values_equal("West", "East")
    assert values_equal({"a": 1}, {"a": 1})
    assert not values_equal([1], 1)
    assert not values_equal("West", ["West"])


def test_strings_are_not_treated_as_sequences() -> None:
    assert not is_value_sequence("abc")
    assert is_value_sequence(("a", "b"))
    assert is_value_sequence({"a"})
    assert not values_equal("ab", "ba")


def test_parameter_equality_is_strict() -> None:
    assert scalars_equal(5, 5)
    assert not scalars_equal(5, 6)
    assert not scalars_equal(True, 1)
    assert not scalars_equal("5", 5)
    assert not mapping_changed({"x": 5}, {"x": 5}, scalars_equal)
    assert mapping_changed({"x": 5}, {"x": 6}, scalars_equal)


def test_added_or_removed_keys_count_as_change() -> None:
    assert mapping_changed({}, {"region": ["West"]})
    assert mapping_changed({"region": ["West"], "year": 2020}, {"region": ["West"]})


def test_identical_mapping_object_is_unchanged() -> None:
    filters = {"region": [1, 2]}
    assert not mapping_changed(filters, filters)
