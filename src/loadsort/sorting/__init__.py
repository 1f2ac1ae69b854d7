"""Group graph and plugin graph sorting."""

from .graph import DirectedGraph, EdgeType, Vertex
from .group_sort import build_group_graph, check_for_cycles, get_groups_path
from .plugin_sort import PluginSorter, PluginSortingData

__all__ = [
    "DirectedGraph",
    "EdgeType",
    "Vertex",
    "build_group_graph",
    "check_for_cycles",
    "get_groups_path",
    "PluginSorter",
    "PluginSortingData",
]
