"""Property-based checks for the order-insensitive filter comparison."""

from __future__ import annotations

import pytest

from tableau_report.equality import values_equal

try:
    from hypothesis import given
    from hypothesis import strategies as st
except ModuleNotFoundError:  # pragma: no cover - environment-specific fallback
    pytest.skip("hypothesis is required for property-based tests", allow_module_level=True)


FILTER_VALUES = st.lists(st.one_of(st.integers(-50, 50), st.text(max_size=4)), max_size=8)


@given(values=FILTER_VALUES, data=st.data())
def test_any_permutation_is_equal(values: list, data) -> None:
    """Reordering a filter value list never counts as a change."""
    permuted = data.draw(st.permutations(values))
    assert values_equal(values, list(permuted))


@given(values=FILTER_VALUES, extra=st.integers(-50, 50))
def test_adding_an_element_is_a_change(values: list, extra: int) -> None:
    assert not values_equal(values, values + [extra])


@given(a=st.lists(st.integers(0, 3), max_size=6), b=st.lists(st.integers(0, 3), max_size=6))
def test_equal_iff_same_multiset(a: list[int], b: list[int]) -> None:
    expected = sorted(a) == sorted(b)
    assert values_equal(a, b) is expected
