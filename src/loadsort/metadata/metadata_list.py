"""A single metadata file (masterlist or userlist) held in memory."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, List

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from loadsort.exceptions import FileAccessError, MetadataSyntaxError

from .models import Group, Message, PluginMetadata

logger = logging.getLogger(__name__)

PRELUDE_KEY = "prelude:"


def replace_prelude(masterlist: str, prelude: str) -> str:
    """Swap the masterlist's top-level ``prelude:`` block for ``prelude``.

    The block runs from the ``prelude:`` line up to the next line that starts
    a new top-level key. The prelude text is indented under the key so that
    anchors it defines are visible to the rest of the document.
    """
    lines = masterlist.splitlines(keepends=True)
    start = next((i for i, line in enumerate(lines) if line.startswith(PRELUDE_KEY)), None)
    if start is None:
        return masterlist

    end = start + 1
    while end < len(lines):
        line = lines[end]
        if line.strip() and not line[0].isspace() and not line.startswith("#"):
            break
        end += 1

    indented = "".join(
        f"  {line}" if line.strip() else line
        for line in prelude.splitlines(keepends=True)
    )
    if indented and not indented.endswith("\n"):
        indented += "\n"
    return "".join(lines[:start]) + PRELUDE_KEY + "\n" + indented + "".join(lines[end:])


class MetadataList:
    """Bash Tags, global messages, groups and plugin entries of one file.

    Exact plugin entries are unique by case-insensitive name. Entries whose
    name is a regular expression are kept separately and merged into the
    result of :meth:`find_plugin` for every plugin name they match.
    """

    def __init__(self) -> None:
        self._bash_tags: List[str] = []
        self._messages: List[Message] = []
        self._groups: List[Group] = []
        self._plugins: dict[str, PluginMetadata] = {}
        self._regex_plugins: List[PluginMetadata] = []

    # -- loading and saving ---------------------------------------------

    def load(self, path: Path) -> None:
        """Replace this list's contents with the parsed contents of ``path``."""
        text = _read_text(path)
        self._load_document(_parse_yaml(text, path), path)

    def load_with_prelude(self, path: Path, prelude_path: Path) -> None:
        """Like :meth:`load`, substituting ``prelude_path`` for the prelude block."""
        text = replace_prelude(_read_text(path), _read_text(prelude_path))
        self._load_document(_parse_yaml(text, path), path)

    def _load_document(self, document: Any, path: Path) -> None:
        if document is None:
            document = {}
        if not isinstance(document, dict):
            raise MetadataSyntaxError("the document root must be a map", path)

        try:
            bash_tags = [str(t) for t in _top_level_list(document, "bash_tags")]
            messages = [Message.from_yaml(m) for m in _top_level_list(document, "globals")]
            groups = [Group.from_yaml(g) for g in _top_level_list(document, "groups")]
            plugins = [PluginMetadata.from_yaml(p) for p in _top_level_list(document, "plugins")]
        except MetadataSyntaxError as exc:
            raise MetadataSyntaxError(str(exc), path) from exc

        seen_groups: set[str] = set()
        for group in groups:
            if group.name.casefold() in seen_groups:
                raise MetadataSyntaxError(f"more than one entry exists for group \"{group.name}\"", path)
            seen_groups.add(group.name.casefold())

        exact: dict[str, PluginMetadata] = {}
        regex: List[PluginMetadata] = []
        for plugin in plugins:
            if plugin.is_regex_plugin:
                regex.append(plugin)
                continue
            key = plugin.name.casefold()
            if key in exact:
                raise MetadataSyntaxError(f"more than one entry exists for plugin \"{plugin.name}\"", path)
            exact[key] = plugin

        self._bash_tags = bash_tags
        self._messages = messages
        self._groups = groups
        self._plugins = exact
        self._regex_plugins = regex
        logger.info(
            "Loaded %s: %d plugin entries, %d groups, %d global messages",
            path, len(exact) + len(regex), len(groups), len(messages),
        )

    def to_yaml(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self._bash_tags:
            data["bash_tags"] = list(self._bash_tags)
        if self._messages:
            data["globals"] = [m.to_yaml() for m in self._messages]
        if self._groups:
            data["groups"] = [g.to_yaml() for g in self._groups]
        plugins = self.plugins()
        if plugins:
            data["plugins"] = [p.to_yaml() for p in plugins]
        return data

    def save(self, path: Path) -> None:
        yaml = YAML()
        yaml.default_flow_style = False
        yaml.width = 4096  # Prevent line wrapping

        try:
            with open(path, "w", encoding="utf-8") as f:
                yaml.dump(self.to_yaml(), f)
        except OSError as exc:
            raise FileAccessError(path, f"Failed to write {path}: {exc}") from exc
        logger.info("Wrote metadata to %s", path)

    # -- accessors ------------------------------------------------------

    def bash_tags(self) -> List[str]:
        return list(self._bash_tags)

    def messages(self) -> List[Message]:
        return list(self._messages)

    def groups(self) -> List[Group]:
        return list(self._groups)

    def set_groups(self, groups: Iterable[Group]) -> None:
        self._groups = list(groups)

    def plugins(self) -> List[PluginMetadata]:
        return list(self._plugins.values()) + list(self._regex_plugins)

    def find_plugin(self, plugin_name: str) -> PluginMetadata | None:
        """Return the merged metadata applying to ``plugin_name``, or None."""
        match = self._plugins.get(plugin_name.casefold())
        found = match is not None
        if match is None:
            match = PluginMetadata(plugin_name)

        for regex_plugin in self._regex_plugins:
            if regex_plugin.name_matches(plugin_name):
                match = match.extend_with(regex_plugin)
                found = True

        return match if found else None

    def add_plugin(self, plugin: PluginMetadata) -> None:
        if plugin.is_regex_plugin:
            self._regex_plugins.append(plugin)
            return
        key = plugin.name.casefold()
        if key in self._plugins:
            raise ValueError(f"Cannot add \"{plugin.name}\": an entry for it already exists")
        self._plugins[key] = plugin

    def erase_plugin(self, plugin_name: str) -> None:
        """Remove the exact entry (or identically named regex entries)."""
        self._plugins.pop(plugin_name.casefold(), None)
        self._regex_plugins = [p for p in self._regex_plugins if p.name != plugin_name]

    def clear(self) -> None:
        self._bash_tags.clear()
        self._messages.clear()
        self._groups.clear()
        self._plugins.clear()
        self._regex_plugins.clear()


def _read_text(path: Path) -> str:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except UnicodeDecodeError as exc:
        raise MetadataSyntaxError(f"the file is not valid UTF-8: {exc}", path) from exc
    except OSError as exc:
        raise FileAccessError(path, f"Failed to read {path}: {exc}") from exc


def _parse_yaml(text: str, path: Path) -> Any:
    yaml = YAML(typ="safe")
    try:
        return yaml.load(text)
    except YAMLError as exc:
        raise MetadataSyntaxError(f"invalid YAML: {exc}", path) from exc


def _top_level_list(document: dict, key: str) -> list:
    value = document.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise MetadataSyntaxError(f"'{key}' must be a list")
    return value
