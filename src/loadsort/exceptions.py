"""Exception hierarchy for load order resolution."""

from __future__ import annotations

from pathlib import Path
from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from .sorting.graph import Vertex


class LoadSortError(Exception):
    """Base exception for load order resolution errors."""
    pass


class FileAccessError(LoadSortError):
    """A metadata file could not be read or written."""

    def __init__(self, path: Path | str, message: str):
        self.path = Path(path)
        super().__init__(message)


class MetadataSyntaxError(LoadSortError):
    """Serialized metadata is malformed or has an unexpected shape."""

    def __init__(self, message: str, path: Path | str | None = None):
        self.path = Path(path) if path is not None else None
        if self.path is not None:
            message = f"{self.path}: {message}"
        super().__init__(message)


class ConditionSyntaxError(LoadSortError):
    """A condition string could not be parsed."""

    def __init__(self, condition: str, message: str):
        self.condition = condition
        super().__init__(f"Failed to parse condition {condition!r}: {message}")


class CyclicInteractionError(LoadSortError):
    """A group graph or plugin graph contains a cycle.

    The ``cycle`` attribute lists the participating vertices in order; each
    vertex records the type of the edge leading to the next one, and the last
    vertex's edge leads back to the first.
    """

    def __init__(self, cycle: List["Vertex"]):
        self.cycle = cycle
        description = " -> ".join(
            f"{v.name} [{v.out_edge_type.value}]" if v.out_edge_type else v.name
            for v in cycle
        )
        if cycle:
            description += f" -> {cycle[0].name}"
        super().__init__(f"Cyclic interaction detected: {description}")

    @property
    def names(self) -> list[str]:
        return [v.name for v in self.cycle]


class UndefinedGroupError(LoadSortError):
    """A referenced group is not defined in the merged group set."""

    def __init__(self, group: str):
        self.group = group
        super().__init__(f"The group \"{group}\" does not exist")


class ConfigError(LoadSortError):
    """Raised when the engine configuration file cannot be parsed."""
