"""Ordered-list merge helpers shared by metadata records."""

from __future__ import annotations

from typing import Iterable, List, TypeVar

T = TypeVar("T")


def merge_lists(first: Iterable[T], second: Iterable[T]) -> List[T]:
    """Append the elements of ``second`` to ``first``, skipping duplicates.

    Only elements originally in ``first`` are checked for equality, so
    duplicates within ``second`` itself are kept. Relative order of both
    inputs is preserved. The cost is O(n * m), so this is meant for metadata
    lists of at most a few dozen entries.

    Example:
        >>> merge_lists(["A", "B"], ["B", "C"])
        ['A', 'B', 'C']
    """
    merged = list(first)
    initial_size = len(merged)
    for element in second:
        if element not in merged[:initial_size]:
            merged.append(element)
    return merged
