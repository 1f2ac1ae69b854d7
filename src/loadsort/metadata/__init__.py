"""Plugin and group metadata: records, lists and the merging store."""

from .collections import merge_lists
from .models import (
    DEFAULT_GROUP,
    File,
    Group,
    Location,
    Message,
    MessageContent,
    MessageType,
    PluginCleaningData,
    PluginMetadata,
    Tag,
)
from .metadata_list import MetadataList
from .store import MetadataStore, merge_groups

__all__ = [
    "merge_lists",
    "DEFAULT_GROUP",
    "File",
    "Group",
    "Location",
    "Message",
    "MessageContent",
    "MessageType",
    "PluginCleaningData",
    "PluginMetadata",
    "Tag",
    "MetadataList",
    "MetadataStore",
    "merge_groups",
]
