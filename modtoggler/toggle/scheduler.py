"""DeferredRetryScheduler: apply pending toggles when the runtime shuts down.

flush() runs two passes over the same store:
  immediate  one attempt per entry, synchronously;
  delayed    background task, after a grace period that lets the runtime
             release its file handles, up to max_attempts per remaining entry.
Entries that still fail stay in the store and are lost with the process.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from modtoggler.contract import Runtime
from modtoggler.models import PendingToggle
from modtoggler.toggle.files import ModuleFiles
from modtoggler.toggle.store import PendingToggleStore

logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD = 1.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_PAUSE = 0.2


@dataclass
class RetryReport:
    """Outcome of one pass."""

    resolved: list[str] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.resolved) + len(self.unresolved)


class DeferredRetryScheduler:
    def __init__(
        self,
        files: ModuleFiles,
        store: PendingToggleStore,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_pause: float = DEFAULT_RETRY_PAUSE,
    ) -> None:
        self._files = files
        self._store = store
        self._grace_period = grace_period
        self._max_attempts = max(1, max_attempts)
        self._retry_pause = retry_pause
        self._delayed_task: asyncio.Task[RetryReport] | None = None

    @property
    def delayed_task(self) -> asyncio.Task[RetryReport] | None:
        return self._delayed_task

    def attach(self, runtime: Runtime) -> None:
        """Flush pending toggles when the runtime fires its shutdown hooks."""
        runtime.add_shutdown_hook(self.flush)

    def flush(self) -> asyncio.Task[RetryReport] | None:
        """Immediate pass now, delayed pass as a background task.

        Returns the delayed task, or None when nothing was pending. Without a
        running event loop only the immediate pass happens.
        """
        if not len(self._store):
            return None
        logger.info("Processing %d pending module toggles immediately...", len(self._store))
        self.run_immediate_pass()
        try:
            self._delayed_task = asyncio.get_running_loop().create_task(
                self.run_delayed_pass()
            )
        except RuntimeError as e:
            logger.warning("Could not schedule delayed toggle processing: %s", e)
            return None
        return self._delayed_task

    async def wait(self) -> RetryReport | None:
        """Wait for the delayed pass started by flush(), if any."""
        if self._delayed_task is None:
            return None
        return await self._delayed_task

    def run_immediate_pass(self) -> RetryReport:
        report = RetryReport()
        for entry in self._store.entries():
            try:
                if self._files.apply(entry.module_key, entry.desired):
                    self._store.remove(entry.module_key)
                    report.resolved.append(entry.module_key)
                    logger.info(
                        "Immediately %s pending module: %s", _verb(entry), entry.module_key
                    )
                else:
                    report.unresolved.append(entry.module_key)
            except Exception as e:
                report.unresolved.append(entry.module_key)
                logger.error(
                    "Failed to immediately process pending toggle for %s: %s",
                    entry.module_key,
                    e,
                )
        if report.resolved:
            logger.info("Immediately processed %d pending module toggles", len(report.resolved))
        return report

    async def run_delayed_pass(self) -> RetryReport:
        logger.info("Starting delayed processing of %d pending module toggles...", len(self._store))
        await asyncio.sleep(self._grace_period)
        report = RetryReport()
        for entry in self._store.entries():
            try:
                ok = await self._apply_with_retries(entry)
            except Exception as e:
                ok = False
                logger.error("Failed to process pending toggle for %s: %s", entry.module_key, e)
            if ok:
                self._store.remove(entry.module_key)
                report.resolved.append(entry.module_key)
            else:
                report.unresolved.append(entry.module_key)
                logger.error(
                    "Failed to process pending toggle for %s after %d attempts",
                    entry.module_key,
                    self._max_attempts,
                )
        if report.resolved:
            logger.info("Processed %d pending module toggles during shutdown", len(report.resolved))
        if report.unresolved:
            logger.warning("%d module toggles could not be processed", len(report.unresolved))
        return report

    async def _apply_with_retries(self, entry: PendingToggle) -> bool:
        for attempt in range(1, self._max_attempts + 1):
            try:
                if self._files.apply(entry.module_key, entry.desired):
                    logger.info(
                        "%s pending module during shutdown: %s",
                        _verb(entry).capitalize(),
                        entry.module_key,
                    )
                    return True
                logger.warning("Attempt %d for %s: module file not found", attempt, entry.module_key)
            except OSError as e:
                logger.warning("Attempt %d failed for %s: %s", attempt, entry.module_key, e)
            if attempt < self._max_attempts:
                await asyncio.sleep(self._retry_pause)
        return False


def _verb(entry: PendingToggle) -> str:
    return "enabled" if entry.enable else "disabled"
