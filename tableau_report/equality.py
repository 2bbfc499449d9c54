"""Change detection for filter and parameter values.

Two comparison policies are used by the reconciler:

- :func:`values_equal` treats two sequences as equal when they hold the same
  multiset of elements, regardless of order. Filters use this policy so that
  ``{"region": [1, 2]}`` and ``{"region": [2, 1]}`` are the same selection.
- :func:`scalars_equal` is strict per-value equality. Parameters use this
  policy; ``True`` and ``1`` are different values here.

:func:`mapping_changed` lifts either policy to whole mappings with
shallow-equal semantics: differing key sets always count as a change.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence, Set
from typing import Any

__all__ = ["is_value_sequence", "mapping_changed", "scalars_equal", "values_equal"]

Comparator = Callable[[Any, Any], bool]


def is_value_sequence(value: Any) -> bool:
    """Return True when *value* is a multi-valued filter entry.

    Strings and bytes are scalars here even though they are sequences.
    """
    if isinstance(value, (str, bytes, bytearray)):
        return False
    return isinstance(value, (Sequence, Set))


def _sorted_values(values: Any) -> list[Any]:
    items = list(values)
    try:
        return sorted(items)
    except TypeError:
        # Mixed element types have no natural order; fall back to a stable key.
        return sorted(items, key=lambda item: (type(item).__name__, repr(item)))


def values_equal(a: Any, b: Any) -> bool:
    """Compare two filter values, ignoring element order for sequences.

    Neither argument is mutated.

    Examples
    --------
    >>> values_equal([1, 2], [2, 1])
    True
    >>> values_equal([1, 2], [1, 3])
    False
    >>> values_equal("West", "West")
    True
    """
    if is_value_sequence(a) and is_value_sequence(b):
        return _sorted_values(a) == _sorted_values(b)
    return a == b


def scalars_equal(a: Any, b: Any) -> bool:
    """Strict equality for parameter values (no bool/int coercion)."""
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


def mapping_changed(
    previous: Mapping[str, Any],
    current: Mapping[str, Any],
    compare: Comparator = values_equal,
) -> bool:
    """Return True when *current* differs from *previous* under *compare*.

    Parameters
    ----------
    previous, current : Mapping[str, Any]
        Mappings to compare. Identity short-circuits to "unchanged".
    compare : callable, optional
        Per-value comparator; defaults to :func:`values_equal`.
    """
    if previous is current:
        return False
    if previous.keys() != current.keys():
        return True
    return any(not compare(previous[key], current[key]) for key in current)
