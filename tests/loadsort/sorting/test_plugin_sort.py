import time

import pytest

from loadsort.exceptions import CyclicInteractionError, UndefinedGroupError
from loadsort.game.installation import Plugin
from loadsort.metadata.models import DEFAULT_GROUP, File, Group, PluginMetadata
from loadsort.sorting.graph import EdgeType
from loadsort.sorting.group_sort import build_group_graph
from loadsort.sorting.plugin_sort import PluginSorter, PluginSortingData


def _data(name, index=None, *, group=DEFAULT_GROUP, is_master=False, masters=(), after=(), req=(), user_after=(),
          user_req=()):
    masterlist = PluginMetadata(name, load_after=[File(n) for n in after], requirements=[File(n) for n in req])
    user = PluginMetadata(name, load_after=[File(n) for n in user_after], requirements=[File(n) for n in user_req])
    return PluginSortingData(
        plugin=Plugin(name, is_master=is_master, masters=list(masters)),
        group=group,
        load_order_index=index,
        masterlist_metadata=masterlist,
        user_metadata=user,
    )


def _sort(plugins, groups=(), user_groups=()):
    sorter = PluginSorter(plugins, build_group_graph(groups, user_groups))
    return sorter.sort(), sorter


@pytest.fixture
def tiered_groups():
    """``middle`` holds no plugins in these tests but still orders the others."""
    return [Group("early"), Group("middle", "", ["early"]), Group("late", "", ["middle"])]


class TestOrdering:
    def test_empty_input(self):
        assert _sort([])[0] == []

    def test_valid_order_is_preserved(self):
        plugins = [_data("Base.esm", 0, is_master=True), _data("A.esp", 1), _data("C.esp", 2), _data("B.esp", 3)]

        order, _ = _sort(plugins)

        assert order == ["Base.esm", "A.esp", "C.esp", "B.esp"]

    def test_sort_is_idempotent(self):
        plugins = [
            _data("Z.esp", 0, after=["Y.esp"]),
            _data("Y.esp", 1),
            _data("Base.esm", 2, is_master=True),
            _data("New.esp"),
        ]

        first, _ = _sort(plugins)
        reordered = [
            _data(d.name, first.index(d.name), is_master=d.is_master, after=[f.name for f in d.masterlist_metadata.load_after])
            for d in plugins
        ]
        second, _ = _sort(reordered)

        assert first == ["Base.esm", "Y.esp", "Z.esp", "New.esp"]
        assert second == first

    def test_input_order_does_not_matter(self):
        plugins = [_data("B.esp", 1), _data("A.esp", 0), _data("C.esp", 2)]

        assert _sort(plugins)[0] == ["A.esp", "B.esp", "C.esp"]
        assert _sort(list(reversed(plugins)))[0] == ["A.esp", "B.esp", "C.esp"]

    def test_unknown_plugins_load_last_by_name(self):
        plugins = [_data("b.esp"), _data("Z.esp", 0), _data("A.esp")]

        assert _sort(plugins)[0] == ["Z.esp", "A.esp", "b.esp"]


class TestMasters:
    def test_masters_load_before_non_masters(self):
        order, sorter = _sort([_data("Foo.esp", 0), _data("Base.esm", 1, is_master=True)])

        assert order == ["Base.esm", "Foo.esp"]
        graph = sorter.graph
        assert graph.edge_type(graph.index_of("Base.esm"), graph.index_of("Foo.esp")) is EdgeType.MASTER_FLAG

    def test_declared_masters_load_first(self):
        order, sorter = _sort([_data("A.esp", 0, masters=["b.esp"]), _data("B.esp", 1)])

        assert order == ["B.esp", "A.esp"]
        graph = sorter.graph
        assert graph.edge_type(graph.index_of("B.esp"), graph.index_of("A.esp")) is EdgeType.MASTER

    def test_missing_master_is_ignored(self):
        assert _sort([_data("A.esp", 0, masters=["Missing.esm"])])[0] == ["A.esp"]


class TestRules:
    def test_masterlist_load_after(self):
        order, sorter = _sort([_data("A.esp", 0, after=["B.esp"]), _data("B.esp", 1)])

        assert order == ["B.esp", "A.esp"]
        graph = sorter.graph
        assert graph.edge_type(graph.index_of("B.esp"), graph.index_of("A.esp")) is EdgeType.MASTERLIST_LOAD_AFTER

    def test_user_requirement(self):
        order, sorter = _sort([_data("A.esp", 0, user_req=["B.esp"]), _data("B.esp", 1)])

        assert order == ["B.esp", "A.esp"]
        graph = sorter.graph
        assert graph.edge_type(graph.index_of("B.esp"), graph.index_of("A.esp")) is EdgeType.USER_REQUIREMENT

    def test_masterlist_requirement_and_user_load_after(self):
        _, sorter = _sort([
            _data("A.esp", 0, req=["B.esp"]),
            _data("B.esp", 1),
            _data("C.esp", 2, user_after=["A.esp"]),
        ])

        graph = sorter.graph
        assert graph.edge_type(graph.index_of("B.esp"), graph.index_of("A.esp")) is EdgeType.MASTERLIST_REQUIREMENT
        assert graph.edge_type(graph.index_of("A.esp"), graph.index_of("C.esp")) is EdgeType.USER_LOAD_AFTER

    def test_rules_for_uninstalled_plugins_are_ignored(self):
        assert _sort([_data("A.esp", 0, after=["Missing.esp"], req=["Other.esm"])])[0] == ["A.esp"]

    def test_cycle_names_every_plugin(self):
        plugins = [
            _data("P1.esp", 0, after=["P2.esp"]),
            _data("P2.esp", 1, after=["P3.esp"]),
            _data("P3.esp", 2, after=["P1.esp"]),
        ]

        with pytest.raises(CyclicInteractionError) as exc_info:
            _sort(plugins)

        assert set(exc_info.value.names) == {"P1.esp", "P2.esp", "P3.esp"}
        assert all(v.out_edge_type is EdgeType.MASTERLIST_LOAD_AFTER for v in exc_info.value.cycle)

    def test_master_loading_after_non_master_is_a_cycle(self):
        plugins = [_data("Base.esm", 0, is_master=True, user_after=["Foo.esp"]), _data("Foo.esp", 1)]

        with pytest.raises(CyclicInteractionError) as exc_info:
            _sort(plugins)

        assert {v.out_edge_type for v in exc_info.value.cycle} == {EdgeType.MASTER_FLAG, EdgeType.USER_LOAD_AFTER}


class TestGroups:
    def test_group_order_is_applied(self, tiered_groups):
        order, sorter = _sort(
            [_data("A.esp", 0, group="middle"), _data("B.esp", 1, group="early")],
            tiered_groups,
        )

        assert order == ["B.esp", "A.esp"]
        graph = sorter.graph
        assert graph.edge_type(graph.index_of("B.esp"), graph.index_of("A.esp")) is EdgeType.MASTERLIST_GROUP

    def test_group_order_is_transitive_through_empty_groups(self, tiered_groups):
        order, _ = _sort(
            [_data("A.esp", 0, group="late"), _data("B.esp", 1, group="early")],
            tiered_groups,
        )

        assert order == ["B.esp", "A.esp"]

    def test_user_group_edges(self, tiered_groups):
        _, sorter = _sort(
            [_data("A.esp", 0, group="early"), _data("B.esp", 1, group="extra")],
            tiered_groups,
            [Group("early", "", ["extra"]), Group("extra")],
        )

        graph = sorter.graph
        assert graph.edge_type(graph.index_of("B.esp"), graph.index_of("A.esp")) is EdgeType.USER_GROUP

    def test_explicit_rules_override_groups(self, tiered_groups):
        order, _ = _sort(
            [_data("A.esp", 0, group="late"), _data("B.esp", 1, group="early", after=["A.esp"])],
            tiered_groups,
        )

        assert order == ["A.esp", "B.esp"]

    def test_group_never_puts_non_master_before_master(self, tiered_groups):
        order, _ = _sort(
            [_data("Base.esm", 0, group="late", is_master=True), _data("Foo.esp", 1, group="early")],
            tiered_groups,
        )

        assert order == ["Base.esm", "Foo.esp"]

    def test_unrelated_groups_keep_load_order(self, tiered_groups):
        order, _ = _sort(
            [_data("A.esp", 0, group="late"), _data("B.esp", 1, group=DEFAULT_GROUP)],
            tiered_groups,
        )

        assert order == ["A.esp", "B.esp"]

    def test_undefined_group(self):
        with pytest.raises(UndefinedGroupError, match="nowhere"):
            _sort([_data("A.esp", 0, group="nowhere")])

    def test_group_names_are_case_insensitive(self, tiered_groups):
        order, _ = _sort(
            [_data("A.esp", 0, group="LATE"), _data("B.esp", 1, group="early")],
            tiered_groups,
        )

        assert order == ["B.esp", "A.esp"]

    def test_transitive_group_edges_are_implied(self, tiered_groups):
        order, sorter = _sort(
            [_data("A.esp", 0, group="late"), _data("B.esp", 1, group="middle"), _data("C.esp", 2, group="early")],
            tiered_groups,
        )

        assert order == ["C.esp", "B.esp", "A.esp"]
        graph = sorter.graph
        assert graph.edge_type(graph.index_of("B.esp"), graph.index_of("A.esp")) is EdgeType.MASTERLIST_GROUP
        assert graph.edge_type(graph.index_of("C.esp"), graph.index_of("B.esp")) is EdgeType.MASTERLIST_GROUP
        assert not graph.has_edge(graph.index_of("C.esp"), graph.index_of("A.esp"))

    def test_group_edge_contradicting_an_earlier_group_edge_is_skipped(self, tiered_groups, caplog):
        order, sorter = _sort(
            [
                _data("A.esp", 0, group="middle"),
                _data("B.esp", 1, group="late"),
                _data("C.esp", 2, group="early", after=["B.esp"]),
            ],
            tiered_groups,
        )

        assert order == ["B.esp", "C.esp", "A.esp"]
        graph = sorter.graph
        assert not graph.has_edge(graph.index_of("A.esp"), graph.index_of("B.esp"))
        assert "it would contradict other rules" in caplog.text


class TestLargeInstallations:
    def test_many_plugins_across_chained_groups(self):
        groups = [Group("g0")] + [Group(f"g{i}", "", [f"g{i - 1}"]) for i in range(1, 5)]
        plugins = [_data(f"Master{i:02}.esm", i, group=f"g{i % 5}", is_master=True) for i in range(20)]
        plugins += [_data(f"Plugin{i:04}.esp", 20 + i, group=f"g{i % 5}") for i in range(1000)]

        start = time.perf_counter()
        order, _ = _sort(plugins, groups)
        elapsed = time.perf_counter() - start

        assert elapsed < 10
        assert len(order) == 1020
        group_of = {data.name: int(data.group[1:]) for data in plugins}
        non_masters = [group_of[name] for name in order if name.endswith(".esp")]
        assert non_masters == sorted(non_masters)
        assert all(name.endswith(".esm") for name in order[:20])
