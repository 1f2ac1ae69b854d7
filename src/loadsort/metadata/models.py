"""Core data models for plugin and group metadata.

Every record type knows how to decode itself from the parsed YAML node
(``from_yaml``) and encode itself back (``to_yaml``). Decoding raises
:class:`~loadsort.exceptions.MetadataSyntaxError` for nodes of the wrong
shape, and validates any condition string it carries.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import StrEnum
from functools import lru_cache
from typing import Any, List

from loadsort.conditions.parser import parse_condition
from loadsort.exceptions import ConditionSyntaxError, MetadataSyntaxError

from .collections import merge_lists

DEFAULT_GROUP = "default"
DEFAULT_LANGUAGE = "en"

# A plugin entry whose name contains any of these is a regular expression.
REGEX_PLUGIN_CHARS = set(":\\*?|")


def _require_mapping(node: Any, what: str) -> dict:
    if not isinstance(node, dict):
        raise MetadataSyntaxError(f"{what} must be a map, got {type(node).__name__}: {node!r}")
    return node


def _require_string(node: dict, key: str, what: str) -> str:
    value = node.get(key)
    if not isinstance(value, str) or not value:
        raise MetadataSyntaxError(f"{what} is missing a '{key}' string: {dict(node)!r}")
    return value


def _condition(node: dict) -> str:
    condition = node.get("condition", "") or ""
    if not isinstance(condition, str):
        raise MetadataSyntaxError(f"condition must be a string: {condition!r}")
    try:
        parse_condition(condition)
    except ConditionSyntaxError as exc:
        raise MetadataSyntaxError(str(exc)) from exc
    return condition


def _sequence(node: dict, key: str) -> list:
    value = node.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise MetadataSyntaxError(f"'{key}' must be a list, got {type(value).__name__}")
    return value


class MessageType(StrEnum):
    """Severity of a message shown to the user."""
    SAY = "say"
    WARN = "warn"
    ERROR = "error"


@dataclass(frozen=True)
class MessageContent:
    """Message text in one language."""
    text: str
    language: str = DEFAULT_LANGUAGE

    def to_yaml(self) -> dict[str, Any]:
        return {"text": self.text, "lang": self.language}


@dataclass(frozen=True)
class Message:
    """A note, warning or error, optionally gated by a condition."""
    type: MessageType
    content: List[MessageContent]
    condition: str = ""

    def select_content(self, language: str = DEFAULT_LANGUAGE) -> MessageContent | None:
        """Pick the content best matching ``language``.

        Tries an exact match, then a match on the language prefix (so
        ``pt_BR`` falls back to ``pt``), then English, then the first entry.
        """
        if not self.content:
            return None
        if len(self.content) == 1:
            return self.content[0]

        prefix = language.split("_", 1)[0]
        english = None
        for item in self.content:
            if item.language == language:
                return item
        for item in self.content:
            if item.language.split("_", 1)[0] == prefix:
                return item
            if item.language == DEFAULT_LANGUAGE and english is None:
                english = item
        return english or self.content[0]

    @classmethod
    def from_yaml(cls, node: Any) -> Message:
        node = _require_mapping(node, "Message")
        raw_type = _require_string(node, "type", "Message")
        try:
            message_type = MessageType(raw_type.lower())
        except ValueError:
            raise MetadataSyntaxError(f"unknown message type {raw_type!r}") from None

        subs = [str(s) for s in _sequence(node, "subs")]
        raw_content = node.get("content")
        if isinstance(raw_content, str):
            content = [MessageContent(_substitute(raw_content, subs))]
        elif isinstance(raw_content, list) and raw_content:
            content = []
            for item in raw_content:
                item = _require_mapping(item, "Message content")
                content.append(MessageContent(
                    _substitute(_require_string(item, "text", "Message content"), subs),
                    str(item.get("lang", DEFAULT_LANGUAGE)),
                ))
            if len(content) > 1 and not any(c.language == DEFAULT_LANGUAGE for c in content):
                raise MetadataSyntaxError("multilingual messages must contain an English content string")
        else:
            raise MetadataSyntaxError(f"Message has no valid content: {dict(node)!r}")

        return cls(message_type, content, _condition(node))

    def to_yaml(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": str(self.type)}
        if len(self.content) == 1 and self.content[0].language == DEFAULT_LANGUAGE:
            data["content"] = self.content[0].text
        else:
            data["content"] = [c.to_yaml() for c in self.content]
        if self.condition:
            data["condition"] = self.condition
        return data


def _substitute(text: str, subs: list[str]) -> str:
    for index, value in enumerate(subs):
        text = text.replace("{%d}" % index, value)
    return text


@dataclass(frozen=True)
class Tag:
    """A Bash Tag suggestion: add (default) or remove a tag."""
    name: str
    is_addition: bool = True
    condition: str = ""

    @classmethod
    def from_yaml(cls, node: Any) -> Tag:
        if isinstance(node, str):
            raw, condition = node, ""
        else:
            node = _require_mapping(node, "Tag")
            raw, condition = _require_string(node, "name", "Tag"), _condition(node)
        is_addition = not raw.startswith("-")
        name = raw if is_addition else raw[1:]
        if not name:
            raise MetadataSyntaxError(f"Tag has an empty name: {node!r}")
        return cls(name, is_addition, condition)

    def to_yaml(self) -> Any:
        raw = self.name if self.is_addition else f"-{self.name}"
        if not self.condition:
            return raw
        return {"name": raw, "condition": self.condition}


@dataclass(frozen=True)
class File:
    """A reference to another file, used by ordering rules."""
    name: str
    display_name: str = ""
    detail: str = ""
    condition: str = ""

    @classmethod
    def from_yaml(cls, node: Any) -> File:
        if isinstance(node, str):
            if not node:
                raise MetadataSyntaxError("File reference has an empty name")
            return cls(node)
        node = _require_mapping(node, "File")
        return cls(
            name=_require_string(node, "name", "File"),
            display_name=str(node.get("display", "") or ""),
            detail=str(node.get("detail", "") or ""),
            condition=_condition(node),
        )

    def to_yaml(self) -> Any:
        if not (self.display_name or self.detail or self.condition):
            return self.name
        data: dict[str, Any] = {"name": self.name}
        if self.display_name:
            data["display"] = self.display_name
        if self.detail:
            data["detail"] = self.detail
        if self.condition:
            data["condition"] = self.condition
        return data


@dataclass(frozen=True)
class PluginCleaningData:
    """Dirty or clean info for one specific plugin checksum."""
    crc: int
    cleaning_utility: str
    itm_count: int = 0
    deleted_reference_count: int = 0
    deleted_navmesh_count: int = 0
    detail: str = ""

    @classmethod
    def from_yaml(cls, node: Any) -> PluginCleaningData:
        node = _require_mapping(node, "Cleaning data")
        crc = node.get("crc")
        if not isinstance(crc, int):
            raise MetadataSyntaxError(f"Cleaning data has no integer 'crc': {dict(node)!r}")
        try:
            return cls(
                crc=crc,
                cleaning_utility=_require_string(node, "util", "Cleaning data"),
                itm_count=int(node.get("itm", 0) or 0),
                deleted_reference_count=int(node.get("udr", 0) or 0),
                deleted_navmesh_count=int(node.get("nav", 0) or 0),
                detail=str(node.get("detail", "") or ""),
            )
        except (TypeError, ValueError) as exc:
            raise MetadataSyntaxError(f"Cleaning data has invalid counts: {exc}") from exc

    def to_yaml(self) -> dict[str, Any]:
        data: dict[str, Any] = {"crc": self.crc, "util": self.cleaning_utility}
        if self.itm_count:
            data["itm"] = self.itm_count
        if self.deleted_reference_count:
            data["udr"] = self.deleted_reference_count
        if self.deleted_navmesh_count:
            data["nav"] = self.deleted_navmesh_count
        if self.detail:
            data["detail"] = self.detail
        return data


@dataclass(frozen=True)
class Location:
    """Where a plugin can be downloaded from."""
    url: str
    name: str = ""

    @classmethod
    def from_yaml(cls, node: Any) -> Location:
        if isinstance(node, str):
            return cls(node)
        if isinstance(node, list):
            raise MetadataSyntaxError(f"Location must be a string or a map, not a list: {node!r}")
        node = _require_mapping(node, "Location")
        return cls(_require_string(node, "link", "Location"), str(node.get("name", "") or ""))

    def to_yaml(self) -> Any:
        if not self.name:
            return self.url
        return {"link": self.url, "name": self.name}


@dataclass(frozen=True)
class Group:
    """A named bucket of plugins that loads after its ``after_groups``."""
    name: str
    description: str = ""
    after_groups: List[str] = field(default_factory=list)

    @classmethod
    def from_yaml(cls, node: Any) -> Group:
        node = _require_mapping(node, "Group")
        after = _sequence(node, "after")
        if not all(isinstance(a, str) for a in after):
            raise MetadataSyntaxError(f"Group 'after' entries must be strings: {after!r}")
        return cls(
            name=_require_string(node, "name", "Group"),
            description=str(node.get("description", "") or ""),
            after_groups=list(after),
        )

    def to_yaml(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.description:
            data["description"] = self.description
        if self.after_groups:
            data["after"] = list(self.after_groups)
        return data


@lru_cache(maxsize=1024)
def _compile_plugin_regex(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


@dataclass
class PluginMetadata:
    """All metadata recorded for one plugin (or one regex of plugins).

    ``group`` is ``None`` when the entry does not set a group, which lets a
    merge tell "explicitly in the default group" from "not specified".
    """

    name: str
    group: str | None = None
    load_after: List[File] = field(default_factory=list)
    requirements: List[File] = field(default_factory=list)
    incompatibilities: List[File] = field(default_factory=list)
    messages: List[Message] = field(default_factory=list)
    tags: List[Tag] = field(default_factory=list)
    dirty_info: List[PluginCleaningData] = field(default_factory=list)
    clean_info: List[PluginCleaningData] = field(default_factory=list)
    locations: List[Location] = field(default_factory=list)

    @property
    def effective_group(self) -> str:
        return self.group if self.group is not None else DEFAULT_GROUP

    @property
    def is_regex_plugin(self) -> bool:
        return any(c in REGEX_PLUGIN_CHARS for c in self.name)

    def name_matches(self, plugin_name: str) -> bool:
        """Case-insensitive name comparison; regex entries match the whole name."""
        if self.is_regex_plugin:
            return _compile_plugin_regex(self.name).fullmatch(plugin_name) is not None
        return self.name.casefold() == plugin_name.casefold()

    def has_name_only(self) -> bool:
        return self.group is None and not any((
            self.load_after, self.requirements, self.incompatibilities, self.messages,
            self.tags, self.dirty_info, self.clean_info, self.locations,
        ))

    def merge_metadata(self, other: PluginMetadata) -> PluginMetadata:
        """Return this record merged over ``other``.

        The group is taken from this record if it sets one, otherwise from
        ``other``. Every list keeps ``other``'s entries in full and appends
        this record's entries that ``other`` does not already contain.
        """
        return self._combine(other, other, self)

    def extend_with(self, other: PluginMetadata) -> PluginMetadata:
        """Like :meth:`merge_metadata`, but this record's list entries come first."""
        return self._combine(other, self, other)

    def _combine(self, other: PluginMetadata, first: PluginMetadata, second: PluginMetadata) -> PluginMetadata:
        return replace(
            self,
            group=self.group if self.group is not None else other.group,
            load_after=merge_lists(first.load_after, second.load_after),
            requirements=merge_lists(first.requirements, second.requirements),
            incompatibilities=merge_lists(first.incompatibilities, second.incompatibilities),
            messages=merge_lists(first.messages, second.messages),
            tags=merge_lists(first.tags, second.tags),
            dirty_info=merge_lists(first.dirty_info, second.dirty_info),
            clean_info=merge_lists(first.clean_info, second.clean_info),
            locations=merge_lists(first.locations, second.locations),
        )

    @classmethod
    def from_yaml(cls, node: Any) -> PluginMetadata:
        node = _require_mapping(node, "Plugin metadata")
        name = _require_string(node, "name", "Plugin metadata")
        group = node.get("group")
        if group is not None and (not isinstance(group, str) or not group):
            raise MetadataSyntaxError(f"'{name}' has an invalid group: {group!r}")

        metadata = cls(
            name=name,
            group=group,
            load_after=[File.from_yaml(n) for n in _sequence(node, "after")],
            requirements=[File.from_yaml(n) for n in _sequence(node, "req")],
            incompatibilities=[File.from_yaml(n) for n in _sequence(node, "inc")],
            messages=[Message.from_yaml(n) for n in _sequence(node, "msg")],
            tags=[Tag.from_yaml(n) for n in _sequence(node, "tag")],
            dirty_info=[PluginCleaningData.from_yaml(n) for n in _sequence(node, "dirty")],
            clean_info=[PluginCleaningData.from_yaml(n) for n in _sequence(node, "clean")],
            locations=[Location.from_yaml(n) for n in _sequence(node, "url")],
        )
        if metadata.is_regex_plugin:
            try:
                _compile_plugin_regex(name)
            except re.error as exc:
                raise MetadataSyntaxError(f"invalid plugin regex {name!r}: {exc}") from exc
        return metadata

    def to_yaml(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.group is not None:
            data["group"] = self.group
        for key, items in (
            ("after", self.load_after),
            ("req", self.requirements),
            ("inc", self.incompatibilities),
            ("msg", self.messages),
            ("tag", self.tags),
            ("dirty", self.dirty_info),
            ("clean", self.clean_info),
            ("url", self.locations),
        ):
            if items:
                data[key] = [item.to_yaml() for item in items]
        return data
