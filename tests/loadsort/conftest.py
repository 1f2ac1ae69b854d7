"""Pytest fixtures for loadsort tests."""

import textwrap
from pathlib import Path
from typing import Callable

import pytest

from loadsort.conditions.evaluator import ConditionEvaluator
from loadsort.game.installation import Installation, Plugin
from loadsort.metadata.store import MetadataStore


@pytest.fixture
def data_path(tmp_path: Path) -> Path:
    """Empty game data directory inside a game directory."""
    path = tmp_path / "game" / "Data"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def installation(data_path: Path) -> Installation:
    """Installation with a master, two plugins and one active plugin."""
    plugins = [
        Plugin("Base.esm", is_master=True, version="1.2.0"),
        Plugin("Foo.esp", masters=["Base.esm"], version="0.9"),
        Plugin("Bar.esp", masters=["Base.esm"]),
    ]
    for plugin in plugins:
        (data_path / plugin.name).write_bytes(plugin.name.encode("utf-8"))
    return Installation(
        data_path,
        plugins,
        active_plugins=["Base.esm", "Foo.esp"],
        load_order=["Base.esm", "Foo.esp", "Bar.esp"],
    )


@pytest.fixture
def evaluator(installation: Installation) -> ConditionEvaluator:
    return ConditionEvaluator(installation)


@pytest.fixture
def store(evaluator: ConditionEvaluator) -> MetadataStore:
    return MetadataStore(evaluator)


@pytest.fixture
def write_yaml(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write dedented YAML text to a file under tmp_path and return its path."""

    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(content).lstrip(), encoding="utf-8")
        return path

    return _write
