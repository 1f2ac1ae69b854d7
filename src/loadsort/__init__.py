"""Load order resolution for game content plugins."""

from .exceptions import (
    LoadSortError,
    FileAccessError,
    MetadataSyntaxError,
    ConditionSyntaxError,
    CyclicInteractionError,
    UndefinedGroupError,
    ConfigError,
)
from .game import Installation, Plugin
from .conditions import ConditionEvaluator
from .metadata import (
    Group,
    MetadataStore,
    PluginMetadata,
)
from .sorting import EdgeType, Vertex
from .config import EngineConfig, load_engine_config
from .engine import LoadOrderEngine

__all__ = [
    "LoadSortError",
    "FileAccessError",
    "MetadataSyntaxError",
    "ConditionSyntaxError",
    "CyclicInteractionError",
    "UndefinedGroupError",
    "ConfigError",
    "Installation",
    "Plugin",
    "ConditionEvaluator",
    "Group",
    "MetadataStore",
    "PluginMetadata",
    "EdgeType",
    "Vertex",
    "EngineConfig",
    "load_engine_config",
    "LoadOrderEngine",
]

__version__ = "0.1.0"
