"""ModuleHost: reference runtime that keeps active module archives open.

An open archive handle is what locks a module file on Windows, which is why the
toggler defers disabling loaded modules. Shutdown fires the registered hooks
first (the retry scheduler's flush) and only then releases the handles, so the
scheduler's delayed pass runs after the files are free.
"""

import inspect
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

from modtoggler.contract import ShutdownHook
from modtoggler.discovery.extractor import MetadataExtractor
from modtoggler.layout import ModuleLayout
from modtoggler.models import ModuleRecord

logger = logging.getLogger(__name__)


@dataclass
class LoadedModule:
    record: ModuleRecord
    path: Path
    handle: zipfile.ZipFile = field(repr=False)


class ModuleHost:
    """Loads modules and tracks their backing paths. Satisfies the Runtime protocol."""

    def __init__(self, extractor: MetadataExtractor) -> None:
        self._extractor = extractor
        self._loaded: dict[str, LoadedModule] = {}
        self._hooks: list[ShutdownHook] = []
        self._shut_down = False

    def loaded_paths(self) -> list[Path]:
        return [m.path for m in self._loaded.values()]

    def loaded_modules(self) -> list[ModuleRecord]:
        return [m.record for m in self._loaded.values()]

    def is_loaded(self, module_key: str) -> bool:
        return module_key in self._loaded

    def add_shutdown_hook(self, hook: ShutdownHook) -> None:
        self._hooks.append(hook)

    def load(self, path: Path, module_key: str | None = None) -> ModuleRecord | None:
        """Open one active archive if it classifies as a module. Returns its record."""
        record = self._extractor.classify(path, loaded=True, key=module_key)
        if record is None:
            logger.debug("Not loading %s: not a module", path)
            return None
        if record.key in self._loaded:
            return self._loaded[record.key].record
        handle = zipfile.ZipFile(path)
        self._loaded[record.key] = LoadedModule(record=record, path=path, handle=handle)
        logger.info("Loaded module %s %s from %s", record.name, record.version, path)
        return record

    def load_active(self, layout: ModuleLayout) -> list[ModuleRecord]:
        """Load every active-convention module under the layout's directory."""
        if not layout.modules_dir.is_dir():
            logger.warning("Modules directory not found: %s", layout.modules_dir)
            return []
        records: list[ModuleRecord] = []
        for path in sorted(layout.modules_dir.rglob(layout.active_pattern)):
            if not path.is_file():
                continue
            try:
                record = self.load(path, module_key=layout.key_for(path))
            except Exception as e:
                logger.exception("Failed to load module %s: %s", path, e)
                continue
            if record is not None:
                records.append(record)
        logger.info("Loaded %d modules", len(records))
        return records

    def unload(self, module_key: str) -> bool:
        loaded = self._loaded.pop(module_key, None)
        if loaded is None:
            return False
        loaded.handle.close()
        logger.info("Unloaded module %s", module_key)
        return True

    async def shutdown(self) -> None:
        """Fire shutdown hooks, then release every module handle. Runs once."""
        if self._shut_down:
            return
        self._shut_down = True
        logger.info("Module host shutting down (%d hooks)", len(self._hooks))
        for hook in self._hooks:
            try:
                result = hook()
                if inspect.iscoroutine(result):
                    await result
            except Exception as e:
                logger.exception("Shutdown hook failed: %s", e)
        for key in list(self._loaded):
            self.unload(key)
