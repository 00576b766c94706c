"""Notifier: JSON messages about module state pushed to a broadcast sink."""

import json
import logging
from typing import Any, Iterable

from modtoggler.contract import NotificationSink
from modtoggler.models import ModuleRecord

logger = logging.getLogger(__name__)


class NotificationKind:
    MODULE_INFO = "module-info"
    MODULE_TOGGLED = "module-toggled"
    MODULE_SCHEDULED = "module-scheduled"
    PENDING_TOGGLES = "pending-toggles"
    ERROR = "error"


class Notifier:
    """Builds messages and hands them to the sink. No sink: no-op.

    Delivery is best effort; sink failures are logged and swallowed.
    """

    def __init__(self, sink: NotificationSink | None = None) -> None:
        self._sink = sink

    def set_sink(self, sink: NotificationSink | None) -> None:
        self._sink = sink

    async def emit(self, kind: str, **fields: Any) -> None:
        if self._sink is None:
            return
        message = json.dumps({"type": kind, **fields})
        try:
            await self._sink.broadcast(message)
        except Exception as e:
            logger.warning("Failed to deliver %s notification: %s", kind, e)

    async def module_toggled(self, module: str, active: bool, message: str) -> None:
        await self.emit(NotificationKind.MODULE_TOGGLED, module=module, active=active, message=message)

    async def module_scheduled(self, module: str, active: bool, message: str) -> None:
        await self.emit(NotificationKind.MODULE_SCHEDULED, module=module, active=active, message=message)

    async def error(self, message: str, module: str | None = None) -> None:
        await self.emit(NotificationKind.ERROR, module=module, message=message)

    async def module_info(self, records: Iterable[ModuleRecord]) -> None:
        data = [r.model_dump(mode="json", by_alias=True) for r in records]
        await self.emit(NotificationKind.MODULE_INFO, data=data)

    async def pending_toggles(self, snapshot: dict[str, bool]) -> None:
        await self.emit(NotificationKind.PENDING_TOGGLES, data=snapshot)
