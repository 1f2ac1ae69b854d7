"""Group graph construction and queries.

An edge runs from a group to each group that lists it in its ``after``
set, so edges point in load order: the source's plugins load first.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, List

from loadsort.exceptions import CyclicInteractionError, UndefinedGroupError
from loadsort.metadata.models import DEFAULT_GROUP, Group

from .graph import DirectedGraph, EdgeType, Vertex

logger = logging.getLogger(__name__)


def build_group_graph(
    masterlist_groups: Iterable[Group],
    user_groups: Iterable[Group] = (),
) -> DirectedGraph:
    """Build the group graph from masterlist and user group definitions.

    Groups defined in either list become vertices, plus the implicit
    ``default`` group. Edges from masterlist definitions are added first, so
    an edge both lists declare keeps its masterlist type.

    Raises:
        UndefinedGroupError: If an ``after`` entry names an undefined group.
    """
    masterlist_groups = list(masterlist_groups)
    user_groups = list(user_groups)

    graph = DirectedGraph()
    for group in masterlist_groups + user_groups:
        graph.add_vertex(group.name)
    graph.add_vertex(DEFAULT_GROUP)

    for groups, edge_type in (
        (masterlist_groups, EdgeType.MASTERLIST_GROUP),
        (user_groups, EdgeType.USER_GROUP),
    ):
        for group in groups:
            target = graph.index_of(group.name)
            assert target is not None
            for after_name in group.after_groups:
                source = graph.index_of(after_name)
                if source is None:
                    raise UndefinedGroupError(after_name)
                if graph.add_edge(source, target, edge_type):
                    logger.debug("Added %s edge from group \"%s\" to \"%s\"", edge_type, after_name, group.name)

    return graph


def check_for_cycles(graph: DirectedGraph) -> None:
    """Raise if the group graph is cyclic.

    Raises:
        CyclicInteractionError: Naming the groups on the shortest cycle.
    """
    cycle = graph.find_cycle()
    if cycle is None:
        return
    shortest = graph.shortest_cycle(cycle) or cycle
    raise CyclicInteractionError(graph.to_vertices(shortest, closed=True))


def get_groups_path(graph: DirectedGraph, from_group: str, to_group: str) -> List[Vertex]:
    """Return the fewest-hop path from ``from_group`` to ``to_group``.

    An empty list means the groups are unrelated.

    Raises:
        UndefinedGroupError: If either group is not in the graph.
    """
    source = graph.index_of(from_group)
    if source is None:
        raise UndefinedGroupError(from_group)
    target = graph.index_of(to_group)
    if target is None:
        raise UndefinedGroupError(to_group)

    return graph.to_vertices(graph.shortest_path(source, target))


def preceding_groups(graph: DirectedGraph) -> dict[str, dict[str, EdgeType]]:
    """Map each group to every group that must load before it.

    Ordering is transitive, including through groups that hold no plugins.
    A predecessor is typed ``MASTERLIST_GROUP`` if masterlist edges alone
    reach it, and ``USER_GROUP`` if user edges are needed.
    """
    predecessors: List[List[int]] = [[] for _ in range(len(graph))]
    for source in range(len(graph)):
        for target in graph.successors(source):
            predecessors[target].append(source)

    def reach(start: int, masterlist_only: bool) -> List[int]:
        seen = {start}
        order = []
        queue = deque([start])
        while queue:
            current = queue.popleft()
            for previous in predecessors[current]:
                if previous in seen:
                    continue
                if masterlist_only and graph.edge_type(previous, current) != EdgeType.MASTERLIST_GROUP:
                    continue
                seen.add(previous)
                order.append(previous)
                queue.append(previous)
        return order

    result: dict[str, dict[str, EdgeType]] = {}
    for vertex in range(len(graph)):
        masterlist_reach = set(reach(vertex, masterlist_only=True))
        result[graph.name_of(vertex)] = {
            graph.name_of(p): EdgeType.MASTERLIST_GROUP if p in masterlist_reach else EdgeType.USER_GROUP
            for p in reach(vertex, masterlist_only=False)
        }
    return result
