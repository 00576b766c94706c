"""PendingToggleStore: in-memory desired-state changes, keyed by module."""

import logging
import threading

from modtoggler.models import PendingToggle, ToggleState

logger = logging.getLogger(__name__)


class PendingToggleStore:
    """Last write wins per module key. Owned by whoever builds the toggler and
    injected into both the toggler and the retry scheduler. Never persisted."""

    def __init__(self) -> None:
        self._entries: dict[str, PendingToggle] = {}
        self._lock = threading.RLock()

    def schedule(self, module_key: str, desired: ToggleState) -> PendingToggle:
        if desired is ToggleState.LOCKED_PENDING_DISABLE:
            raise ValueError("Pending toggles target ENABLED or DISABLED")
        entry = PendingToggle(module_key=module_key, desired=desired)
        with self._lock:
            self._entries[module_key] = entry
        logger.info(
            "Scheduled module %s to be %s on shutdown",
            module_key,
            "enabled" if entry.enable else "disabled",
        )
        return entry

    def remove(self, module_key: str) -> PendingToggle | None:
        with self._lock:
            return self._entries.pop(module_key, None)

    def get(self, module_key: str) -> PendingToggle | None:
        with self._lock:
            return self._entries.get(module_key)

    def entries(self) -> list[PendingToggle]:
        """Copy of the current entries; safe to iterate while the store changes."""
        with self._lock:
            return list(self._entries.values())

    def snapshot(self) -> dict[str, bool]:
        """{module_key: enable} as published to clients."""
        with self._lock:
            return {key: entry.enable for key, entry in self._entries.items()}

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, module_key: object) -> bool:
        with self._lock:
            return module_key in self._entries
