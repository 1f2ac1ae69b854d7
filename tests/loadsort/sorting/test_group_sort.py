import pytest

from loadsort.exceptions import CyclicInteractionError, UndefinedGroupError
from loadsort.metadata.models import DEFAULT_GROUP, Group
from loadsort.sorting.graph import EdgeType, Vertex
from loadsort.sorting.group_sort import (
    build_group_graph,
    check_for_cycles,
    get_groups_path,
    preceding_groups,
)


@pytest.fixture
def groups():
    """C loads after B and D; B and D both load after A."""
    return [
        Group("A"),
        Group("B", "", ["A"]),
        Group("C", "", ["B", "D"]),
        Group("D", "", ["A"]),
        Group("Z"),
    ]


class TestBuildGroupGraph:
    def test_default_group_is_always_present(self):
        graph = build_group_graph([])
        assert graph.names() == [DEFAULT_GROUP]

    def test_edges_point_in_load_order(self, groups):
        graph = build_group_graph(groups)
        a, b = graph.index_of("A"), graph.index_of("B")

        assert graph.has_edge(a, b)
        assert graph.edge_type(a, b) is EdgeType.MASTERLIST_GROUP

    def test_user_edges_are_typed_separately(self, groups):
        graph = build_group_graph(groups, [Group("Z", "", ["C"])])

        assert graph.edge_type(graph.index_of("C"), graph.index_of("Z")) is EdgeType.USER_GROUP

    def test_edge_in_both_lists_keeps_masterlist_type(self, groups):
        graph = build_group_graph(groups, [Group("B", "", ["A"])])

        assert graph.edge_type(graph.index_of("A"), graph.index_of("B")) is EdgeType.MASTERLIST_GROUP

    def test_undefined_after_group(self):
        with pytest.raises(UndefinedGroupError, match="missing") as exc_info:
            build_group_graph([Group("A", "", ["missing"])])
        assert exc_info.value.group == "missing"


class TestGroupsPath:
    def test_path_has_fewest_hops(self, groups):
        path = get_groups_path(build_group_graph(groups), "A", "C")

        assert path == [
            Vertex("A", EdgeType.MASTERLIST_GROUP),
            Vertex("B", EdgeType.MASTERLIST_GROUP),
            Vertex("C"),
        ]

    def test_disconnected_groups_have_no_path(self, groups):
        assert get_groups_path(build_group_graph(groups), "A", "Z") == []

    def test_path_runs_only_in_load_order(self, groups):
        assert get_groups_path(build_group_graph(groups), "C", "A") == []

    def test_unknown_group(self, groups):
        with pytest.raises(UndefinedGroupError):
            get_groups_path(build_group_graph(groups), "A", "Y")


class TestCheckForCycles:
    def test_acyclic(self, groups):
        check_for_cycles(build_group_graph(groups))

    def test_cycle_names_participating_groups(self, groups):
        graph = build_group_graph(groups, [Group("A", "", ["C"])])

        with pytest.raises(CyclicInteractionError) as exc_info:
            check_for_cycles(graph)

        cycle = exc_info.value.cycle
        assert len(cycle) == 3
        assert set(exc_info.value.names) in ({"A", "B", "C"}, {"A", "D", "C"})
        assert cycle[-1].out_edge_type is not None


class TestPrecedingGroups:
    def test_ordering_is_transitive(self, groups):
        before = preceding_groups(build_group_graph(groups))

        assert set(before["C"]) == {"A", "B", "D"}
        assert before["A"] == {}
        assert before["Z"] == {}

    def test_user_edges_mark_predecessors_as_user(self, groups):
        before = preceding_groups(build_group_graph(groups, [Group("Z", "", ["C"])]))

        assert before["Z"]["C"] is EdgeType.USER_GROUP
        assert before["Z"]["A"] is EdgeType.USER_GROUP
        assert before["C"]["A"] is EdgeType.MASTERLIST_GROUP
