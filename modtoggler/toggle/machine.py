"""ModuleToggler: enable/disable modules by renaming, deferring locked files.

States per module key:
  ENABLED                 active file on disk
  DISABLED                inactive file on disk
  LOCKED_PENDING_DISABLE  active file on disk, held by the runtime, pending disable

Inactive files are never loaded, so inactive -> active is always attempted
right away. If that rename hits a lock (another process holding the file), the
enable is stored as a pending ENABLED toggle and applied by the retry
scheduler; the module stays DISABLED until then.
"""

import asyncio
import logging
from typing import Iterable

from modtoggler.contract import Runtime, is_path_loaded
from modtoggler.errors import InvalidModuleKey, is_lock_error
from modtoggler.models import ToggleOutcome, ToggleState
from modtoggler.notify import Notifier
from modtoggler.toggle.files import ModuleFiles
from modtoggler.toggle.store import PendingToggleStore

logger = logging.getLogger(__name__)

MSG_DISABLED = "Module disabled successfully."
MSG_ENABLED = "Module enabled. Restart the host to load it."
MSG_LOCKED = "Module scheduled for disable on shutdown. File is currently locked."
MSG_LOCK_ERROR = "Module file is locked. Scheduled for disable on shutdown."
MSG_ENABLE_LOCK_ERROR = "Module file is locked. Scheduled for enable on shutdown."


class ModuleToggler:
    """Handles toggle requests one at a time."""

    def __init__(
        self,
        files: ModuleFiles,
        store: PendingToggleStore,
        runtime: Runtime | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self._files = files
        self._store = store
        self._runtime = runtime
        self._notifier = notifier or Notifier()
        self._lock = asyncio.Lock()

    @property
    def store(self) -> PendingToggleStore:
        return self._store

    def state_of(self, module_key: str) -> ToggleState | None:
        """Current state, including LOCKED_PENDING_DISABLE. None when no file exists."""
        state = self._files.state_of(module_key)
        pending = self._store.get(module_key)
        if (
            state is ToggleState.ENABLED
            and pending is not None
            and pending.desired is ToggleState.DISABLED
        ):
            return ToggleState.LOCKED_PENDING_DISABLE
        return state

    async def toggle(self, module_key: str) -> ToggleOutcome:
        """Flip the module between enabled and disabled. Never raises."""
        logger.debug("Toggle requested: %s", module_key)
        async with self._lock:
            try:
                return await self._toggle(module_key)
            except InvalidModuleKey as e:
                logger.error("Rejected toggle for %r: %s", module_key, e)
                await self._notifier.error(f"Invalid module: {module_key}", module=module_key)
                return ToggleOutcome.FAILED
            except Exception as e:
                logger.exception("Error toggling module %s: %s", module_key, e)
                await self._notifier.error(f"Error toggling module: {e}", module=module_key)
                return ToggleOutcome.FAILED

    async def toggle_many(self, module_keys: Iterable[str]) -> dict[str, ToggleOutcome]:
        return {key: await self.toggle(key) for key in module_keys}

    async def _toggle(self, module_key: str) -> ToggleOutcome:
        active_path = self._files.active_path(module_key)
        inactive_path = self._files.inactive_path(module_key)

        if active_path.exists():
            if is_path_loaded(self._runtime, active_path):
                logger.warning(
                    "Module %s is loaded and cannot be disabled until shutdown", module_key
                )
                return await self._defer(module_key, ToggleState.DISABLED, MSG_LOCKED)
            try:
                self._files.move(active_path, inactive_path)
            except OSError as e:
                if not is_lock_error(e):
                    raise
                logger.error("Module file is locked: %s (%s)", module_key, e)
                return await self._defer(module_key, ToggleState.DISABLED, MSG_LOCK_ERROR)
            self._store.remove(module_key)
            logger.info("Disabled module: %s", module_key)
            await self._notifier.module_toggled(module_key, active=False, message=MSG_DISABLED)
            return ToggleOutcome.DISABLED

        if inactive_path.exists():
            try:
                self._files.move(inactive_path, active_path)
            except OSError as e:
                if not is_lock_error(e):
                    raise
                logger.error("Module file is locked: %s (%s)", module_key, e)
                return await self._defer(module_key, ToggleState.ENABLED, MSG_ENABLE_LOCK_ERROR)
            self._store.remove(module_key)
            logger.info("Enabled module: %s", module_key)
            await self._notifier.module_toggled(module_key, active=True, message=MSG_ENABLED)
            return ToggleOutcome.ENABLED

        logger.error("Module file not found: %s (%s)", module_key, active_path)
        await self._notifier.error(f"Module file not found: {module_key}", module=module_key)
        return ToggleOutcome.NOT_FOUND

    async def _defer(self, module_key: str, desired: ToggleState, message: str) -> ToggleOutcome:
        entry = self._store.schedule(module_key, desired)
        await self._notifier.module_scheduled(module_key, active=entry.enable, message=message)
        return ToggleOutcome.SCHEDULED
