from loadsort.metadata.collections import merge_lists
from loadsort.metadata.models import File


def test_merge_lists_appends_new_elements_in_order():
    assert merge_lists(["A", "B"], ["C", "B", "D"]) == ["A", "B", "C", "D"]


def test_merge_lists_keeps_duplicates_within_second_list():
    """Only elements from the first list are checked for equality."""
    assert merge_lists(["A"], ["B", "B", "A"]) == ["A", "B", "B"]


def test_merge_lists_keeps_duplicates_within_first_list():
    assert merge_lists(["A", "A"], ["A"]) == ["A", "A"]


def test_merge_lists_does_not_modify_inputs():
    first = [File("A.esp")]
    second = [File("B.esp")]

    merged = merge_lists(first, second)

    assert merged == [File("A.esp"), File("B.esp")]
    assert first == [File("A.esp")]
    assert second == [File("B.esp")]


def test_merge_lists_uses_full_equality():
    """Entries with the same name but different conditions are distinct."""
    first = [File("A.esp")]
    second = [File("A.esp", condition='file("Foo.esp")')]

    assert merge_lists(first, second) == first + second
