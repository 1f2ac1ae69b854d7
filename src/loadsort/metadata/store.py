"""Masterlist and userlist storage with merge-aware accessors.

The store never writes a merged view back to disk: merges are computed on
every query, and only the userlist (or a minimal masterlist subset) can be
written out.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List

from loadsort.conditions.evaluator import ConditionEvaluator
from loadsort.exceptions import FileAccessError

from .metadata_list import MetadataList
from .models import Group, Message, PluginMetadata

if TYPE_CHECKING:
    from loadsort.sorting.graph import Vertex

logger = logging.getLogger(__name__)


def merge_groups(masterlist_groups: Iterable[Group], user_groups: Iterable[Group]) -> List[Group]:
    """Merge userlist group definitions over masterlist ones.

    A user group with a new name is appended after all masterlist groups.
    A user group overriding a masterlist group replaces its description
    only if the user description is non-empty, and has its ``after`` list
    concatenated onto the masterlist one. Duplicate ``after`` entries are
    kept; they collapse into a single edge in the group graph. Group names
    compare case-insensitively and the masterlist spelling is kept.
    """
    merged = list(masterlist_groups)
    positions = {group.name.casefold(): i for i, group in enumerate(merged)}
    new_groups: List[Group] = []

    for user_group in user_groups:
        position = positions.get(user_group.name.casefold())
        if position is None:
            new_groups.append(user_group)
            continue

        existing = merged[position]
        merged[position] = Group(
            name=existing.name,
            description=user_group.description or existing.description,
            after_groups=list(existing.after_groups) + list(user_group.after_groups),
        )

    return merged + new_groups


def _check_output_path(output_file: Path, overwrite: bool) -> None:
    if not output_file.parent.exists():
        raise FileAccessError(output_file, f"Output directory does not exist: {output_file.parent}")
    if output_file.exists() and not overwrite:
        raise FileAccessError(output_file, f"Output file exists but overwrite is not set to true: {output_file}")


class MetadataStore:
    """Holds the masterlist and userlist for one game.

    Args:
        condition_evaluator: Evaluator shared with other callers; its cache
            belongs to the evaluator, not to any one query.
    """

    def __init__(self, condition_evaluator: ConditionEvaluator):
        self.condition_evaluator = condition_evaluator
        self._masterlist = MetadataList()
        self._userlist = MetadataList()

    # -- loading ----------------------------------------------------------

    def load_masterlist(self, masterlist_path: Path) -> None:
        """Replace the masterlist with the contents of ``masterlist_path``.

        Raises:
            FileAccessError: If the path does not exist.
            MetadataSyntaxError: If the file cannot be parsed.
        """
        masterlist_path = Path(masterlist_path)
        if not masterlist_path.exists():
            raise FileAccessError(masterlist_path, f"The given masterlist path does not exist: {masterlist_path}")

        temp = MetadataList()
        temp.load(masterlist_path)
        self._masterlist = temp

    def load_masterlist_with_prelude(self, masterlist_path: Path, prelude_path: Path) -> None:
        """Like :meth:`load_masterlist`, substituting the prelude file first."""
        masterlist_path = Path(masterlist_path)
        prelude_path = Path(prelude_path)
        if not masterlist_path.exists():
            raise FileAccessError(masterlist_path, f"The given masterlist path does not exist: {masterlist_path}")
        if not prelude_path.exists():
            raise FileAccessError(prelude_path, f"The given masterlist prelude path does not exist: {prelude_path}")

        temp = MetadataList()
        temp.load_with_prelude(masterlist_path, prelude_path)
        self._masterlist = temp

    def load_userlist(self, userlist_path: Path) -> None:
        userlist_path = Path(userlist_path)
        if not userlist_path.exists():
            raise FileAccessError(userlist_path, f"The given userlist path does not exist: {userlist_path}")

        temp = MetadataList()
        temp.load(userlist_path)
        self._userlist = temp

    # -- writing ----------------------------------------------------------

    def write_user_metadata(self, output_file: Path, overwrite: bool) -> None:
        """Write the userlist to ``output_file``.

        Raises:
            FileAccessError: If the parent directory is missing, or the file
                exists and ``overwrite`` is False.
        """
        output_file = Path(output_file)
        _check_output_path(output_file, overwrite)
        self._userlist.save(output_file)

    def write_minimal_list(self, output_file: Path, overwrite: bool) -> None:
        """Write masterlist Bash Tag suggestions and dirty info only.

        Only plugins that carry tags or dirty info are included, with just
        their name, tags and dirty info.
        """
        output_file = Path(output_file)
        _check_output_path(output_file, overwrite)

        minimal = MetadataList()
        for plugin in self._masterlist.plugins():
            if not plugin.tags and not plugin.dirty_info:
                continue
            minimal.add_plugin(PluginMetadata(
                plugin.name,
                tags=list(plugin.tags),
                dirty_info=list(plugin.dirty_info),
            ))
        minimal.save(output_file)

    # -- conditions -------------------------------------------------------

    def evaluate(self, condition: str) -> bool:
        return self.condition_evaluator.evaluate(condition)

    # -- global data ------------------------------------------------------

    def get_known_bash_tags(self) -> List[str]:
        return self._masterlist.bash_tags() + self._userlist.bash_tags()

    def get_general_messages(self, evaluate_conditions: bool = False) -> List[Message]:
        """Masterlist then userlist global messages, without deduplication.

        When ``evaluate_conditions`` is set the condition cache is cleared
        first and messages whose condition is false are dropped.
        """
        messages = self._masterlist.messages() + self._userlist.messages()
        if not evaluate_conditions:
            return messages

        self.condition_evaluator.clear_condition_cache()
        return [m for m in messages if self.condition_evaluator.evaluate(m.condition)]

    # -- groups -----------------------------------------------------------

    def get_groups(self, include_user_metadata: bool = True) -> List[Group]:
        if include_user_metadata:
            return merge_groups(self._masterlist.groups(), self._userlist.groups())
        return self._masterlist.groups()

    def get_user_groups(self) -> List[Group]:
        return self._userlist.groups()

    def set_user_groups(self, groups: Iterable[Group]) -> None:
        self._userlist.set_groups(groups)

    def get_groups_path(self, from_group: str, to_group: str) -> List[Vertex]:
        """Fewest-hop path between two groups; empty if they are unrelated."""
        from loadsort.sorting.group_sort import build_group_graph, get_groups_path

        graph = build_group_graph(self.get_groups(False), self.get_user_groups())
        return get_groups_path(graph, from_group, to_group)

    # -- plugin metadata --------------------------------------------------

    def get_plugin_metadata(
        self,
        plugin: str,
        include_user_metadata: bool = True,
        evaluate_conditions: bool = False,
    ) -> PluginMetadata | None:
        """Return the metadata for ``plugin``, or None if there is none.

        User metadata, when included and present, is merged over the
        masterlist entry. With ``evaluate_conditions`` every conditional
        entry is filtered through the condition evaluator.
        """
        metadata = self._masterlist.find_plugin(plugin)

        if include_user_metadata:
            user_metadata = self._userlist.find_plugin(plugin)
            if user_metadata is not None:
                if metadata is not None:
                    user_metadata = user_metadata.merge_metadata(metadata)
                metadata = user_metadata

        if evaluate_conditions and metadata is not None:
            return self.condition_evaluator.evaluate_all(metadata)
        return metadata

    def get_plugin_user_metadata(self, plugin: str, evaluate_conditions: bool = False) -> PluginMetadata | None:
        metadata = self._userlist.find_plugin(plugin)
        if evaluate_conditions and metadata is not None:
            return self.condition_evaluator.evaluate_all(metadata)
        return metadata

    def set_plugin_user_metadata(self, plugin_metadata: PluginMetadata) -> None:
        """Replace any userlist entry of the same name (no merge)."""
        self._userlist.erase_plugin(plugin_metadata.name)
        self._userlist.add_plugin(plugin_metadata)

    def discard_plugin_user_metadata(self, plugin: str) -> None:
        self._userlist.erase_plugin(plugin)

    def discard_all_user_metadata(self) -> None:
        self._userlist.clear()
