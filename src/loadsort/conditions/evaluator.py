"""Condition evaluation against the current installation.

Results are cached per evaluator instance, keyed by the exact condition
string. A cached result is returned even if the installation has changed
since it was computed; call :meth:`ConditionEvaluator.clear_condition_cache`
before any pass that must observe fresh state.
"""

from __future__ import annotations

import logging
import os
import re
import zlib
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Iterator

from loadsort.game.installation import (
    GHOST_EXTENSION,
    Installation,
    is_plugin_filename,
    strip_ghost_extension,
)

from .parser import (
    And,
    Comparator,
    Constant,
    Expression,
    FunctionCall,
    Not,
    Or,
    parse_condition,
    split_regex_path,
)

if TYPE_CHECKING:
    from loadsort.metadata.models import PluginMetadata

logger = logging.getLogger(__name__)

_CRC_CHUNK_SIZE = 1024 * 1024


def compare_versions(first: str, second: str) -> int:
    """Compare two version strings, returning -1, 0 or 1.

    Components separated by ``.``, ``-``, ``+`` or spaces are compared
    numerically when both are integers and case-insensitively otherwise.
    Missing trailing components count as zero, so ``1.0`` equals ``1.0.0``.
    """
    a = [p for p in re.split(r"[.\-+ ]", first.strip().lower()) if p]
    b = [p for p in re.split(r"[.\-+ ]", second.strip().lower()) if p]
    length = max(len(a), len(b))
    a += ["0"] * (length - len(a))
    b += ["0"] * (length - len(b))

    for x, y in zip(a, b):
        if x.isdigit() and y.isdigit():
            x_key: object = int(x)
            y_key: object = int(y)
        else:
            x_key, y_key = x, y
        if x_key == y_key:
            continue
        return -1 if x_key < y_key else 1  # type: ignore[operator]
    return 0


def _compare(actual: str | None, expected: str, comparator: Comparator) -> bool:
    if actual is None:
        return comparator in (Comparator.NOT_EQUAL, Comparator.LESS_THAN, Comparator.LESS_THAN_OR_EQUAL)

    result = compare_versions(actual, expected)
    return {
        Comparator.EQUAL: result == 0,
        Comparator.NOT_EQUAL: result != 0,
        Comparator.LESS_THAN: result < 0,
        Comparator.GREATER_THAN: result > 0,
        Comparator.LESS_THAN_OR_EQUAL: result <= 0,
        Comparator.GREATER_THAN_OR_EQUAL: result >= 0,
    }[comparator]


class ConditionEvaluator:
    """Evaluates condition strings for one installation, with memoization."""

    def __init__(self, installation: Installation):
        self.installation = installation
        self._condition_cache: dict[str, bool] = {}
        self._crc_cache: dict[str, int] = {}

    def evaluate(self, condition: str) -> bool:
        """Evaluate ``condition``, returning a cached result when available.

        Raises:
            ConditionSyntaxError: If the condition cannot be parsed.
        """
        if not condition:
            return True

        cached = self._condition_cache.get(condition)
        if cached is not None:
            logger.debug("Condition cache hit for %r: %s", condition, cached)
            return cached

        result = self._evaluate_expression(parse_condition(condition))
        self._condition_cache[condition] = result
        logger.debug("Condition %r evaluated to %s", condition, result)
        return result

    def clear_condition_cache(self) -> None:
        """Forget all cached condition results and file checksums."""
        self._condition_cache.clear()
        self._crc_cache.clear()

    def evaluate_all(self, metadata: PluginMetadata) -> PluginMetadata:
        """Return a copy of ``metadata`` without entries that do not apply.

        Conditional entries are kept if their condition holds. Dirty and
        clean info is kept only if its CRC matches the installed plugin.
        Relative order within each list is preserved.
        """
        if metadata.is_regex_plugin:
            dirty_info, clean_info = metadata.dirty_info, metadata.clean_info
        else:
            dirty_info = [d for d in metadata.dirty_info if self._checksum(metadata.name, d.crc)]
            clean_info = [c for c in metadata.clean_info if self._checksum(metadata.name, c.crc)]

        return replace(
            metadata,
            load_after=[f for f in metadata.load_after if self.evaluate(f.condition)],
            requirements=[f for f in metadata.requirements if self.evaluate(f.condition)],
            incompatibilities=[f for f in metadata.incompatibilities if self.evaluate(f.condition)],
            messages=[m for m in metadata.messages if self.evaluate(m.condition)],
            tags=[t for t in metadata.tags if self.evaluate(t.condition)],
            dirty_info=dirty_info,
            clean_info=clean_info,
            locations=list(metadata.locations),
        )

    # -- expression evaluation ---------------------------------------------

    def _evaluate_expression(self, expression: Expression) -> bool:
        if isinstance(expression, Constant):
            return expression.value
        if isinstance(expression, Not):
            return not self._evaluate_expression(expression.operand)
        if isinstance(expression, And):
            return all(self._evaluate_expression(e) for e in expression.operands)
        if isinstance(expression, Or):
            return any(self._evaluate_expression(e) for e in expression.operands)
        return self._call(expression)

    def _call(self, call: FunctionCall) -> bool:
        if call.name == "file":
            if call.is_regex:
                return next(self._matching_files(call.path), None) is not None
            return self._file_exists(call.path)
        if call.name == "readable":
            return os.access(self._resolve(call.path), os.R_OK)
        if call.name == "active":
            if call.is_regex:
                return next(self._matching_active_plugins(call.path), None) is not None
            return self.installation.is_plugin_active(call.path)
        if call.name == "many":
            return _at_least_two(self._matching_files(call.path))
        if call.name == "many_active":
            return _at_least_two(self._matching_active_plugins(call.path))
        if call.name == "is_master":
            plugin = self.installation.get_plugin(call.path)
            return plugin is not None and plugin.is_master
        if call.name == "checksum":
            assert call.crc is not None
            return self._checksum(call.path, call.crc)
        if call.name in ("version", "product_version"):
            assert call.version is not None and call.comparator is not None
            return _compare(self._read_version(call), call.version, call.comparator)
        raise AssertionError(f"unhandled condition function {call.name}")

    # -- installation probes -----------------------------------------------

    def _resolve(self, path: str) -> Path:
        return self.installation.data_path / path

    def _file_exists(self, path: str) -> bool:
        resolved = self._resolve(path)
        if resolved.exists():
            return True
        if is_plugin_filename(path):
            return resolved.with_name(resolved.name + GHOST_EXTENSION).exists()
        return False

    def _matching_files(self, path: str) -> Iterator[str]:
        parent, pattern = split_regex_path(path)
        directory = self._resolve(parent) if parent else self.installation.data_path
        if not directory.is_dir():
            return
        regex = re.compile(pattern, re.IGNORECASE)
        for entry in sorted(directory.iterdir()):
            name = strip_ghost_extension(entry.name) if is_plugin_filename(entry.name) else entry.name
            if regex.fullmatch(name):
                yield entry.name

    def _matching_active_plugins(self, path: str) -> Iterator[str]:
        _, pattern = split_regex_path(path)
        regex = re.compile(pattern, re.IGNORECASE)
        for plugin in self.installation.get_plugins():
            if regex.fullmatch(plugin.name) and self.installation.is_plugin_active(plugin.name):
                yield plugin.name

    def _checksum(self, path: str, expected: int) -> bool:
        actual = self._get_crc(path)
        return actual is not None and actual == expected

    def _get_crc(self, path: str) -> int | None:
        key = path.casefold()
        if key in self._crc_cache:
            return self._crc_cache[key]

        crc: int | None = None
        plugin = self.installation.get_plugin(path)
        if plugin is not None and plugin.crc is not None:
            crc = plugin.crc
        else:
            resolved = self._resolve(path)
            if not resolved.is_file() and is_plugin_filename(path):
                resolved = resolved.with_name(resolved.name + GHOST_EXTENSION)
            if resolved.is_file():
                crc = _file_crc32(resolved)

        if crc is not None:
            self._crc_cache[key] = crc
        return crc

    def _read_version(self, call: FunctionCall) -> str | None:
        if call.name == "version" and is_plugin_filename(call.path):
            plugin = self.installation.get_plugin(call.path)
            if plugin is not None:
                return plugin.version
            return None

        resolved = self._resolve(call.path)
        if not resolved.exists():
            return None
        return self.installation.read_file_version(resolved)


def _at_least_two(items: Iterator[str]) -> bool:
    return next(items, None) is not None and next(items, None) is not None


def _file_crc32(path: Path) -> int:
    crc = 0
    with open(path, "rb") as f:
        while chunk := f.read(_CRC_CHUNK_SIZE):
            crc = zlib.crc32(chunk, crc)
    return crc & 0xFFFFFFFF
