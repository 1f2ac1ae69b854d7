"""Directed graph over named vertices, stored as dense integer indices.

Vertex names are kept in a list and adjacency lists hold indices into it,
so traversal never follows object references. Edges remember why they were
added (an :class:`EdgeType`), and duplicate edges collapse into the first.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import StrEnum
from typing import Iterable, List


class EdgeType(StrEnum):
    """Where an ordering constraint came from."""
    MASTER_FLAG = "master flag"
    MASTER = "master"
    MASTERLIST_REQUIREMENT = "masterlist requirement"
    USER_REQUIREMENT = "user requirement"
    MASTERLIST_LOAD_AFTER = "masterlist load after"
    USER_LOAD_AFTER = "user load after"
    MASTERLIST_GROUP = "masterlist group"
    USER_GROUP = "user group"


@dataclass(frozen=True)
class Vertex:
    """A named vertex on a path or cycle.

    ``out_edge_type`` is the type of the edge to the next vertex, or None
    for the last vertex of a path.
    """
    name: str
    out_edge_type: EdgeType | None = None


_WHITE, _GREY, _BLACK = 0, 1, 2


class DirectedGraph:
    """Vertices addressed by index; names are matched case-insensitively."""

    def __init__(self) -> None:
        self._names: List[str] = []
        self._index: dict[str, int] = {}
        self._successors: List[List[int]] = []
        self._edge_types: List[dict[int, EdgeType]] = []

    def __len__(self) -> int:
        return len(self._names)

    def add_vertex(self, name: str) -> int:
        """Return the index of ``name``, adding it if it is new."""
        key = name.casefold()
        index = self._index.get(key)
        if index is None:
            index = len(self._names)
            self._index[key] = index
            self._names.append(name)
            self._successors.append([])
            self._edge_types.append({})
        return index

    def index_of(self, name: str) -> int | None:
        return self._index.get(name.casefold())

    def name_of(self, index: int) -> str:
        return self._names[index]

    def names(self) -> List[str]:
        return list(self._names)

    def add_edge(self, source: int, target: int, edge_type: EdgeType) -> bool:
        """Add an edge, returning False if it was already present."""
        if target in self._edge_types[source]:
            return False
        self._successors[source].append(target)
        self._edge_types[source][target] = edge_type
        return True

    def has_edge(self, source: int, target: int) -> bool:
        return target in self._edge_types[source]

    def edge_type(self, source: int, target: int) -> EdgeType:
        return self._edge_types[source][target]

    def successors(self, index: int) -> List[int]:
        return list(self._successors[index])

    def edge_count(self) -> int:
        return sum(len(s) for s in self._successors)

    def in_degrees(self) -> List[int]:
        degrees = [0] * len(self._names)
        for targets in self._successors:
            for target in targets:
                degrees[target] += 1
        return degrees

    def shortest_path(self, source: int, target: int) -> List[int]:
        """Breadth-first search for the path with fewest edges.

        Ties go to the path discovered first in adjacency-list order. Returns
        an empty list when ``target`` is unreachable.
        """
        if source == target:
            return [source]

        predecessors: dict[int, int] = {source: source}
        queue = deque([source])
        while queue:
            current = queue.popleft()
            for successor in self._successors[current]:
                if successor in predecessors:
                    continue
                predecessors[successor] = current
                if successor == target:
                    return self._unwind(predecessors, source, target)
                queue.append(successor)
        return []

    def find_cycle(self) -> List[int] | None:
        """Depth-first search with three-colour marking.

        Returns the vertices of the first cycle found, in edge order, or None
        if the graph is acyclic.
        """
        colours = [_WHITE] * len(self._names)
        for root in range(len(self._names)):
            if colours[root] != _WHITE:
                continue
            colours[root] = _GREY
            stack = [(root, iter(self._successors[root]))]
            path = [root]
            while stack:
                vertex, successors = stack[-1]
                advanced = False
                for successor in successors:
                    if colours[successor] == _GREY:
                        return path[path.index(successor):]
                    if colours[successor] == _WHITE:
                        colours[successor] = _GREY
                        stack.append((successor, iter(self._successors[successor])))
                        path.append(successor)
                        advanced = True
                        break
                if not advanced:
                    colours[vertex] = _BLACK
                    stack.pop()
                    path.pop()
        return None

    def shortest_cycle(self, candidates: Iterable[int] | None = None) -> List[int] | None:
        """Return a cycle with the fewest edges through any of ``candidates``.

        Only edges between candidate vertices are followed. Runs one BFS per
        candidate, so it is meant for reporting, not for routine checks.
        """
        allowed = set(range(len(self._names)) if candidates is None else candidates)
        best: List[int] | None = None
        for start in sorted(allowed):
            predecessors: dict[int, int] = {start: start}
            queue = deque([start])
            found = None
            while queue and found is None:
                current = queue.popleft()
                for successor in self._successors[current]:
                    if successor not in allowed:
                        continue
                    if successor == start:
                        found = current
                        break
                    if successor not in predecessors:
                        predecessors[successor] = current
                        queue.append(successor)
            if found is None:
                continue
            cycle = self._unwind(predecessors, start, found)
            if best is None or len(cycle) < len(best):
                best = cycle
        return best

    def to_vertices(self, indices: List[int], *, closed: bool = False) -> List[Vertex]:
        """Convert a path (or, if ``closed``, a cycle) to named vertices."""
        vertices = []
        for position, index in enumerate(indices):
            if position + 1 < len(indices):
                edge_type: EdgeType | None = self.edge_type(index, indices[position + 1])
            elif closed and indices:
                edge_type = self.edge_type(index, indices[0])
            else:
                edge_type = None
            vertices.append(Vertex(self._names[index], edge_type))
        return vertices

    @staticmethod
    def _unwind(predecessors: dict[int, int], source: int, target: int) -> List[int]:
        path = [target]
        while path[-1] != source:
            path.append(predecessors[path[-1]])
        path.reverse()
        return path
