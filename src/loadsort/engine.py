"""Load order engine: one installation, its metadata and the sorter.

Each engine owns its own condition evaluator and metadata store, so several
engines (one per game, say) can coexist without sharing any state. Calls
against one engine must be serialized by the caller.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List

from loadsort.conditions.evaluator import ConditionEvaluator
from loadsort.config import EngineConfig
from loadsort.game.installation import Installation
from loadsort.metadata.models import DEFAULT_GROUP, Message, MessageType
from loadsort.metadata.store import MetadataStore
from loadsort.sorting.group_sort import build_group_graph, check_for_cycles
from loadsort.sorting.plugin_sort import PluginSorter, PluginSortingData

logger = logging.getLogger(__name__)


class LoadOrderEngine:
    """Computes load orders for one installation."""

    def __init__(self, installation: Installation, *, language: str = "en"):
        self.installation = installation
        self.language = language
        self.condition_evaluator = ConditionEvaluator(installation)
        self.database = MetadataStore(self.condition_evaluator)

    @classmethod
    def from_config(cls, config: EngineConfig, installation: Installation | None = None) -> LoadOrderEngine:
        """Create an engine and load the configured metadata files.

        The masterlist is loaded with its prelude when one is configured.
        Configured files that do not exist yet are skipped.
        """
        if installation is None:
            if config.game.data_path is None:
                raise ValueError("No installation given and no game data_path configured")
            installation = Installation(config.game.data_path)

        engine = cls(installation, language=config.language)
        paths = config.metadata
        if paths.masterlist is not None and paths.masterlist.exists():
            prelude = paths.prelude
            if prelude is not None and not prelude.exists():
                logger.warning("Masterlist prelude not found: %s", prelude)
                prelude = None
            if prelude is not None:
                engine.database.load_masterlist_with_prelude(paths.masterlist, prelude)
            else:
                engine.database.load_masterlist(paths.masterlist)
        elif paths.masterlist is not None:
            logger.warning("Masterlist not found: %s", paths.masterlist)

        if paths.userlist is not None and paths.userlist.exists():
            engine.database.load_userlist(paths.userlist)
        return engine

    def load_metadata(self, masterlist_path: Path, userlist_path: Path | None = None) -> None:
        self.database.load_masterlist(masterlist_path)
        if userlist_path is not None:
            self.database.load_userlist(userlist_path)

    def _localise(self, messages: Iterable[Message]) -> List[tuple[MessageType, str]]:
        localised = []
        for message in messages:
            content = message.select_content(self.language)
            if content is not None:
                localised.append((message.type, content.text))
        return localised

    def get_general_messages(self) -> List[tuple[MessageType, str]]:
        """Applicable global messages as (type, text) in the engine's language."""
        return self._localise(self.database.get_general_messages(evaluate_conditions=True))

    def get_plugin_messages(self, plugin_name: str) -> List[tuple[MessageType, str]]:
        """Applicable messages for one plugin as (type, text)."""
        metadata = self.database.get_plugin_metadata(plugin_name, evaluate_conditions=True)
        if metadata is None:
            return []
        return self._localise(metadata.messages)

    def _sorting_data(self, plugin_names: Iterable[str]) -> List[PluginSortingData]:
        data = []
        for name in plugin_names:
            plugin = self.installation.get_plugin(name)
            if plugin is None:
                raise ValueError(f"The plugin \"{name}\" has not been loaded")

            merged = self.database.get_plugin_metadata(plugin.name, include_user_metadata=True)
            data.append(PluginSortingData(
                plugin=plugin,
                group=merged.effective_group if merged is not None else DEFAULT_GROUP,
                load_order_index=self.installation.get_load_order_index(plugin.name),
                masterlist_metadata=self.database.get_plugin_metadata(
                    plugin.name, include_user_metadata=False, evaluate_conditions=True,
                ),
                user_metadata=self.database.get_plugin_user_metadata(plugin.name, evaluate_conditions=True),
            ))
        return data

    def sort_plugins(self, plugin_names: Iterable[str] | None = None) -> List[str]:
        """Sort the given plugins (all loaded plugins by default).

        Conditions are evaluated from scratch. The current load order of the
        installation is used to break ties, so a valid order is preserved.

        Raises:
            CyclicInteractionError: If the group graph or plugin graph is cyclic.
            UndefinedGroupError: If a group is referenced but never defined.
            ConditionSyntaxError: If a condition cannot be parsed.
        """
        if plugin_names is None:
            plugin_names = [p.name for p in self.installation.get_plugins()]

        self.condition_evaluator.clear_condition_cache()

        groups_graph = build_group_graph(self.database.get_groups(False), self.database.get_user_groups())
        check_for_cycles(groups_graph)

        sorter = PluginSorter(self._sorting_data(plugin_names), groups_graph)
        return sorter.sort()
