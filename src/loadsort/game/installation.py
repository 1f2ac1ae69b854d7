"""Installed plugin state handed to the engine by the plugin scanner.

Reading plugin headers is not done here: a scanner fills an
:class:`Installation` with :class:`Plugin` records, and the condition
evaluator and sorter only ever read from it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional

logger = logging.getLogger(__name__)

PLUGIN_EXTENSIONS = (".esp", ".esm", ".esl")
GHOST_EXTENSION = ".ghost"

FileVersionReader = Callable[[Path], Optional[str]]


def is_plugin_filename(name: str) -> bool:
    lowered = name.lower()
    if lowered.endswith(GHOST_EXTENSION):
        lowered = lowered[: -len(GHOST_EXTENSION)]
    return lowered.endswith(PLUGIN_EXTENSIONS)


def strip_ghost_extension(name: str) -> str:
    if name.lower().endswith(GHOST_EXTENSION):
        return name[: -len(GHOST_EXTENSION)]
    return name


@dataclass(frozen=True)
class Plugin:
    """A plugin as read from its file header."""

    name: str
    is_master: bool = False
    masters: list[str] = field(default_factory=list)
    version: str | None = None
    crc: int | None = None


class Installation:
    """The plugins and files of one game install.

    Plugin lookups are case-insensitive. The load order is the order the
    game currently uses; plugins absent from it are treated as new.
    """

    def __init__(
        self,
        data_path: Path,
        plugins: Iterable[Plugin] = (),
        *,
        active_plugins: Iterable[str] = (),
        load_order: Iterable[str] = (),
        file_version_reader: FileVersionReader | None = None,
    ):
        self.data_path = Path(data_path)
        self._plugins: dict[str, Plugin] = {}
        self._active: set[str] = set()
        self._load_order: list[str] = []
        self._file_version_reader = file_version_reader

        for plugin in plugins:
            self.add_plugin(plugin)
        self.set_active_plugins(active_plugins)
        self.set_load_order(load_order)

    def add_plugin(self, plugin: Plugin) -> None:
        """Add or replace a loaded plugin record."""
        self._plugins[plugin.name.casefold()] = plugin

    def get_plugin(self, name: str) -> Plugin | None:
        return self._plugins.get(name.casefold())

    def get_plugins(self) -> list[Plugin]:
        return list(self._plugins.values())

    def is_plugin_active(self, name: str) -> bool:
        return name.casefold() in self._active

    def set_active_plugins(self, names: Iterable[str]) -> None:
        self._active = {n.casefold() for n in names}

    def get_load_order(self) -> list[str]:
        return list(self._load_order)

    def set_load_order(self, names: Iterable[str]) -> None:
        self._load_order = list(names)

    def get_load_order_index(self, name: str) -> int | None:
        key = name.casefold()
        for index, entry in enumerate(self._load_order):
            if entry.casefold() == key:
                return index
        return None

    def read_file_version(self, path: Path) -> str | None:
        """Return the version of a non-plugin file, if a reader is configured."""
        if self._file_version_reader is None:
            logger.debug("No file version reader configured, cannot read %s", path)
            return None
        return self._file_version_reader(path)
