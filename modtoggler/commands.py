"""CommandDispatcher: route inbound text commands to discovery and toggling.

Commands are JSON objects with a "type" field:
  {"type": "toggle-module", "module": "Alpha"}
  {"type": "toggle-module", "modules": ["Alpha", "sub/Beta"]}
  {"type": "get-modules"}
  {"type": "get-pending-toggles"}
"""

import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from modtoggler.discovery.engine import DiscoveryEngine
from modtoggler.models import ModuleRecord
from modtoggler.notify import Notifier
from modtoggler.toggle.machine import ModuleToggler

logger = logging.getLogger(__name__)


class CommandType:
    TOGGLE_MODULE = "toggle-module"
    GET_MODULES = "get-modules"
    GET_PENDING_TOGGLES = "get-pending-toggles"


class ModuleCommand(BaseModel):
    """Inbound command. 'module' and 'modules' are merged for toggles."""

    type: str
    module: str | None = None
    modules: list[str] = Field(default_factory=list)

    def module_keys(self) -> list[str]:
        keys: list[str] = []
        for key in [self.module, *self.modules]:
            if key and key not in keys:
                keys.append(key)
        return keys


class CommandDispatcher:
    def __init__(
        self,
        root_dir: Path,
        engine: DiscoveryEngine,
        toggler: ModuleToggler,
        notifier: Notifier,
    ) -> None:
        self._root_dir = root_dir
        self._engine = engine
        self._toggler = toggler
        self._notifier = notifier

    async def publish_modules(self) -> list[ModuleRecord]:
        """Scan and broadcast the inventory as a module-info message."""
        logger.info("Building modules info from %s", self._root_dir)
        try:
            records = self._engine.discover_all(self._root_dir)
        except Exception as e:
            logger.exception("Module discovery failed: %s", e)
            records = []
        logger.info("Publishing modules info: %d modules found", len(records))
        await self._notifier.module_info(records)
        return records

    async def publish_pending_toggles(self) -> dict[str, bool]:
        snapshot = self._toggler.store.snapshot()
        logger.info("Publishing pending toggles: %d pending", len(snapshot))
        await self._notifier.pending_toggles(snapshot)
        return snapshot

    async def handle(self, raw: str) -> None:
        """Parse and execute one command. Errors are logged, never raised."""
        logger.info("Received command: %s", raw)
        try:
            command = ModuleCommand.model_validate_json(raw)
        except ValidationError as e:
            logger.error("Error processing message: %s", e)
            return
        await self.dispatch(command)

    async def dispatch(self, command: ModuleCommand) -> None:
        kind = command.type.lower()
        if kind == CommandType.TOGGLE_MODULE:
            keys = command.module_keys()
            if not keys:
                logger.warning("toggle-module command without module")
                await self._notifier.error("No module given to toggle")
                return
            await self._toggler.toggle_many(keys)
        elif kind == CommandType.GET_MODULES:
            await self.publish_modules()
        elif kind == CommandType.GET_PENDING_TOGGLES:
            await self.publish_pending_toggles()
        else:
            logger.warning("Unknown command type: %s", command.type)
