"""DiscoveryEngine: scan the modules directory and build the module inventory."""

import logging
from pathlib import Path
from typing import Iterator

from modtoggler.contract import Runtime, is_path_loaded
from modtoggler.discovery.extractor import MetadataExtractor
from modtoggler.layout import ModuleLayout
from modtoggler.models import CandidateFile, ModuleRecord

logger = logging.getLogger(__name__)


class DiscoveryEngine:
    """Active-convention files first, then inactive ones; each goes through the extractor.

    Read-only apart from the extractor's temporary copies. A rename that happens
    mid-scan may make one file show up late or not at all.
    """

    def __init__(
        self,
        extractor: MetadataExtractor,
        runtime: Runtime | None = None,
        directory: str = "modules",
    ) -> None:
        self._extractor = extractor
        self._runtime = runtime
        self._directory = directory

    def layout_for(self, root_dir: Path) -> ModuleLayout:
        """Layout rooted at root_dir/<directory> with the extractor's naming convention."""
        convention = self._extractor.layout
        return ModuleLayout.for_root(
            root_dir,
            directory=self._directory,
            extension=convention.extension,
            disabled_suffix=convention.disabled_suffix,
        )

    def iter_candidates(self, root_dir: Path) -> Iterator[CandidateFile]:
        """Yield active-convention files, then inactive-convention files, recursively."""
        layout = self.layout_for(root_dir)
        if not layout.modules_dir.is_dir():
            return
        # Materialize each group before classifying: the extractor creates
        # temporary unsuffixed copies that must not be picked up as active files.
        active = [p for p in layout.modules_dir.rglob(layout.active_pattern) if p.is_file()]
        inactive = [p for p in layout.modules_dir.rglob(layout.inactive_pattern) if p.is_file()]
        for path in active:
            yield CandidateFile(path=path, active=True)
        for path in inactive:
            yield CandidateFile(path=path, active=False)

    def discover_all(self, root_dir: Path) -> list[ModuleRecord]:
        """Inventory of every module under root_dir/<directory>. Missing directory: empty list."""
        layout = self.layout_for(root_dir)
        if not layout.modules_dir.is_dir():
            logger.warning("Modules directory not found: %s", layout.modules_dir)
            return []

        records: list[ModuleRecord] = []
        seen: set[str] = set()
        for candidate in list(self.iter_candidates(root_dir)):
            try:
                key = layout.key_for(candidate.path)
                if key in seen:
                    logger.debug("Skipping duplicate module file %s", candidate.path)
                    continue
                loaded = candidate.active and is_path_loaded(self._runtime, candidate.path)
                record = self._extractor.classify(candidate.path, loaded=loaded, key=key)
            except Exception as e:
                logger.exception("Error reading module info from %s: %s", candidate.path, e)
                continue
            if record is not None:
                seen.add(key)
                records.append(record)
        logger.info("Discovered %d modules in %s", len(records), layout.modules_dir)
        return records
