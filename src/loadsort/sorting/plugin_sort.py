"""Plugin graph construction and topological sort.

The plugin graph combines three kinds of constraint:

1. master flags and declared masters,
2. explicit ``after`` and ``req`` rules from masterlist and user metadata,
3. group membership, applied transitively through the group graph.

Sorting uses Kahn's algorithm, always placing the ready plugin that came
earliest in the current load order. An already valid load order is
therefore returned unchanged.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from typing import Iterator, List, Sequence

from loadsort.exceptions import CyclicInteractionError, UndefinedGroupError
from loadsort.game.installation import Plugin
from loadsort.metadata.models import PluginMetadata

from .graph import DirectedGraph, EdgeType
from .group_sort import preceding_groups

logger = logging.getLogger(__name__)


@dataclass
class PluginSortingData:
    """Everything the sorter needs to know about one installed plugin.

    Metadata is expected to be condition-filtered already.
    """

    plugin: Plugin
    group: str
    load_order_index: int | None = None
    masterlist_metadata: PluginMetadata | None = None
    user_metadata: PluginMetadata | None = None

    @property
    def name(self) -> str:
        return self.plugin.name

    @property
    def is_master(self) -> bool:
        return self.plugin.is_master

    def sort_key(self) -> tuple[int, int, str]:
        if self.load_order_index is None:
            return (1, 0, self.name.casefold())
        return (0, self.load_order_index, self.name.casefold())


def _iter_bits(bits: int) -> Iterator[int]:
    while bits:
        lowest = bits & -bits
        yield lowest.bit_length() - 1
        bits ^= lowest


class _Reachability:
    """Ancestor and descendant bitsets of an acyclic graph.

    Args:
        graph: The graph to index.
        order: A topological order of every vertex in ``graph``.
    """

    def __init__(self, graph: DirectedGraph, order: Sequence[int]):
        size = len(graph)
        self._descendants: List[int] = [0] * size
        self._ancestors: List[int] = [0] * size
        predecessors: List[List[int]] = [[] for _ in range(size)]

        for vertex in reversed(order):
            bits = 0
            for successor in graph.successors(vertex):
                bits |= self._descendants[successor] | (1 << successor)
                predecessors[successor].append(vertex)
            self._descendants[vertex] = bits

        for vertex in order:
            bits = 0
            for predecessor in predecessors[vertex]:
                bits |= self._ancestors[predecessor] | (1 << predecessor)
            self._ancestors[vertex] = bits

    def ancestors(self, vertex: int) -> int:
        return self._ancestors[vertex]

    def descendants(self, vertex: int) -> int:
        return self._descendants[vertex]

    def set_ancestors(self, vertex: int, ancestors: int) -> None:
        """Record new edges into ``vertex`` that give it ``ancestors``.

        ``ancestors`` must include the vertex's current ancestors and none
        of its descendants. Only the vertices gaining a path are updated.
        """
        gained = ancestors & ~self._ancestors[vertex]
        if not gained:
            return
        downstream = self._descendants[vertex] | (1 << vertex)
        for target in _iter_bits(downstream):
            self._ancestors[target] |= gained
        for source in _iter_bits(gained):
            self._descendants[source] |= downstream


class PluginSorter:
    """Sorts one set of installed plugins.

    Args:
        plugins: The plugins to sort, with their metadata and group.
        groups_graph: The acyclic group graph from
            :func:`~loadsort.sorting.group_sort.build_group_graph`.
    """

    def __init__(self, plugins: Sequence[PluginSortingData], groups_graph: DirectedGraph):
        self._plugins = sorted(plugins, key=PluginSortingData.sort_key)
        self._groups_graph = groups_graph
        self._graph = DirectedGraph()

    def sort(self) -> List[str]:
        """Return the plugin names in load order.

        Raises:
            UndefinedGroupError: If a plugin's group is not defined.
            CyclicInteractionError: If the constraints are contradictory.
        """
        if not self._plugins:
            return []

        logger.info("Sorting %d plugins", len(self._plugins))
        self._build_graph()
        order = self._topological_sort()
        logger.info("Sorted %d plugins", len(order))
        return order

    @property
    def graph(self) -> DirectedGraph:
        return self._graph

    # -- graph construction ---------------------------------------------

    def _build_graph(self) -> None:
        # Vertex indices follow sort_key order, so the index doubles as the
        # tie-break priority during the sort.
        for data in self._plugins:
            self._graph.add_vertex(data.name)

        self._add_master_flag_edges()
        self._add_master_edges()
        self._add_rule_edges()
        self._add_group_edges()
        logger.debug("Plugin graph has %d vertices and %d edges", len(self._graph), self._graph.edge_count())

    def _add(self, source: int, target: int, edge_type: EdgeType) -> None:
        if self._graph.add_edge(source, target, edge_type):
            logger.debug(
                "Added %s edge from \"%s\" to \"%s\"",
                edge_type, self._graph.name_of(source), self._graph.name_of(target),
            )

    def _add_master_flag_edges(self) -> None:
        masters = [i for i, d in enumerate(self._plugins) if d.is_master]
        others = [i for i, d in enumerate(self._plugins) if not d.is_master]
        for master in masters:
            for other in others:
                self._graph.add_edge(master, other, EdgeType.MASTER_FLAG)

    def _add_master_edges(self) -> None:
        for index, data in enumerate(self._plugins):
            for master_name in data.plugin.masters:
                master = self._graph.index_of(master_name)
                if master is None:
                    logger.debug("\"%s\" has master \"%s\", which is not installed", data.name, master_name)
                    continue
                if master != index:
                    self._add(master, index, EdgeType.MASTER)

    def _add_rule_edges(self) -> None:
        for index, data in enumerate(self._plugins):
            for metadata, after_type, requirement_type in (
                (data.masterlist_metadata, EdgeType.MASTERLIST_LOAD_AFTER, EdgeType.MASTERLIST_REQUIREMENT),
                (data.user_metadata, EdgeType.USER_LOAD_AFTER, EdgeType.USER_REQUIREMENT),
            ):
                if metadata is None:
                    continue
                for files, edge_type in (
                    (metadata.load_after, after_type),
                    (metadata.requirements, requirement_type),
                ):
                    for file in files:
                        other = self._graph.index_of(file.name)
                        if other is None:
                            logger.warning(
                                "\"%s\" has a %s rule for \"%s\", which is not installed",
                                data.name, edge_type, file.name,
                            )
                            continue
                        if other != index:
                            self._add(other, index, edge_type)

    def _add_group_edges(self) -> None:
        members: dict[str, List[int]] = {}
        group_names: List[str] = []
        for index, data in enumerate(self._plugins):
            group_index = self._groups_graph.index_of(data.group)
            if group_index is None:
                raise UndefinedGroupError(data.group)
            name = self._groups_graph.name_of(group_index)
            group_names.append(name)
            members.setdefault(name, []).append(index)

        order = self._kahn_order()
        if len(order) < len(self._graph):
            logger.debug("Master and rule edges are cyclic, skipping group edges")
            return

        before = preceding_groups(self._groups_graph)
        reachability = _Reachability(self._graph, order)

        for index, data in enumerate(self._plugins):
            # preceding_groups lists the nearest groups first.
            implied = reachability.ancestors(index)
            descendants = reachability.descendants(index)
            for group, edge_type in before[group_names[index]].items():
                for other in members.get(group, []):
                    if implied >> other & 1:
                        continue
                    other_data = self._plugins[other]
                    if data.is_master and not other_data.is_master:
                        logger.debug(
                            "Skipping %s edge from \"%s\" to \"%s\": a non-master cannot load before a master",
                            edge_type, other_data.name, data.name,
                        )
                        continue
                    if descendants >> other & 1:
                        logger.warning(
                            "Skipping %s edge from \"%s\" to \"%s\": it would contradict other rules",
                            edge_type, other_data.name, data.name,
                        )
                        continue
                    self._add(other, index, edge_type)
                    implied |= reachability.ancestors(other) | (1 << other)
            reachability.set_ancestors(index, implied)

    # -- sorting --------------------------------------------------------

    def _kahn_order(self) -> List[int]:
        """Kahn's algorithm, taking the lowest ready index first.

        The result is shorter than the graph if the graph has a cycle.
        """
        in_degrees = self._graph.in_degrees()
        ready = [i for i, degree in enumerate(in_degrees) if degree == 0]
        heapq.heapify(ready)

        order: List[int] = []
        while ready:
            current = heapq.heappop(ready)
            order.append(current)
            for successor in self._graph.successors(current):
                in_degrees[successor] -= 1
                if in_degrees[successor] == 0:
                    heapq.heappush(ready, successor)
        return order

    def _topological_sort(self) -> List[str]:
        order = self._kahn_order()
        if len(order) < len(self._graph):
            placed = set(order)
            remaining = [i for i in range(len(self._graph)) if i not in placed]
            cycle = self._graph.shortest_cycle(remaining)
            assert cycle is not None
            raise CyclicInteractionError(self._graph.to_vertices(cycle, closed=True))

        return [self._graph.name_of(i) for i in order]
