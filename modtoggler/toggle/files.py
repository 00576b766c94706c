"""ModuleFiles: renames between the active and inactive naming conventions."""

import logging
import os
import threading
from pathlib import Path

from modtoggler.layout import ModuleLayout
from modtoggler.models import ToggleState

logger = logging.getLogger(__name__)


class ModuleFiles:
    """File-level operations on module keys. Renames are serialized by a lock and
    never overwrite an existing file, so one module keeps exactly one file."""

    def __init__(self, layout: ModuleLayout) -> None:
        self.layout = layout
        self._lock = threading.Lock()

    def active_path(self, key: str) -> Path:
        return self.layout.active_path(key)

    def inactive_path(self, key: str) -> Path:
        return self.layout.inactive_path(key)

    def state_of(self, key: str) -> ToggleState | None:
        """ENABLED/DISABLED from what is on disk, None when neither file exists."""
        if self.active_path(key).exists():
            return ToggleState.ENABLED
        if self.inactive_path(key).exists():
            return ToggleState.DISABLED
        return None

    def move(self, src: Path, dst: Path) -> None:
        """Rename src to dst. Raises FileNotFoundError / FileExistsError / OSError."""
        with self._lock:
            if not src.exists():
                raise FileNotFoundError(f"Module file not found: {src}")
            if dst.exists():
                raise FileExistsError(f"Target already exists: {dst}")
            os.rename(src, dst)
        logger.debug("Renamed %s -> %s", src, dst)

    def apply(self, key: str, desired: ToggleState) -> bool:
        """Move key's file into the desired convention.

        True when the file was moved or already is in the desired state; False
        when there is no file to move. Rename errors propagate.
        """
        active, inactive = self.active_path(key), self.inactive_path(key)
        src, dst = (inactive, active) if desired is ToggleState.ENABLED else (active, inactive)
        if not src.exists():
            return dst.exists()
        self.move(src, dst)
        return True
