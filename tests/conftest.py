"""Shared fixtures: module archive builder, fake runtime, recording sink."""

import json
import textwrap
import zipfile
from pathlib import Path
from typing import Any, Callable

import pytest
import yaml

from modtoggler.discovery import DiscoveryEngine, MetadataExtractor
from modtoggler.layout import ModuleLayout

PLUGIN_SOURCE = '''
from modtoggler.sdk import ModulePlugin, module_info


@module_info("{name}", "{version}")
class Plugin(ModulePlugin):
    def on_load(self):
        return "{name}"
'''

NOT_A_PLUGIN_SOURCE = """
class Helper:
    def run(self):
        return 42
"""


def write_module_archive(
    path: Path,
    header: dict[str, Any] | None = None,
    sources: dict[str, str] | None = None,
) -> Path:
    """Write a zip module archive with optional module.yaml and Python members."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        if header is not None:
            zf.writestr("module.yaml", yaml.safe_dump(header, sort_keys=False))
        for member, source in (sources or {}).items():
            zf.writestr(member, textwrap.dedent(source))
    return path


class FakeRuntime:
    """Runtime with a mutable list of loaded paths."""

    def __init__(self) -> None:
        self.paths: list[Path] = []
        self.hooks: list[Callable[[], Any]] = []

    def loaded_paths(self) -> list[Path]:
        return list(self.paths)

    def add_shutdown_hook(self, hook: Callable[[], Any]) -> None:
        self.hooks.append(hook)


class RecordingSink:
    """NotificationSink that keeps decoded messages."""

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []

    async def broadcast(self, message: str) -> None:
        self.messages.append(json.loads(message))

    def of_type(self, kind: str) -> list[dict[str, Any]]:
        return [m for m in self.messages if m["type"] == kind]


@pytest.fixture
def root_dir(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture
def modules_dir(root_dir: Path) -> Path:
    path = root_dir / "modules"
    path.mkdir()
    return path


@pytest.fixture
def layout(modules_dir: Path) -> ModuleLayout:
    return ModuleLayout(modules_dir=modules_dir)


@pytest.fixture
def extractor(layout: ModuleLayout) -> MetadataExtractor:
    return MetadataExtractor(layout)


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def engine(extractor: MetadataExtractor, fake_runtime: FakeRuntime) -> DiscoveryEngine:
    return DiscoveryEngine(extractor, runtime=fake_runtime)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def make_module(modules_dir: Path) -> Callable[..., Path]:
    """Factory: make_module("Alpha.pkg", name="Alpha", version="1.0.0", header=..., sources=...)."""

    def _make(
        file_name: str,
        name: str | None = None,
        version: str = "1.0.0",
        header: dict[str, Any] | None = None,
        sources: dict[str, str] | None = None,
    ) -> Path:
        display = name or file_name.split(".")[0].split("/")[-1]
        if header is None:
            header = {"name": display, "version": version}
        if sources is None:
            sources = {"plugin.py": PLUGIN_SOURCE.format(name=display, version=version)}
        return write_module_archive(modules_dir / file_name, header=header, sources=sources)

    return _make
